"""
_tree.py
========
A single phylogenetic tree stored as a flat, index-addressed node arena.

Public API
----------
  Tree(newick_string)
      Constructor.  Parses the NEWICK string and flattens it into the arena.

  Tree.from_nested(root)
      Flatten an already parsed ``NewickNode`` structure.

  .leaves()
  .is_leaf(u)
  .midpoint_root()
  .validate()
  .to_newick()

Arena layout
------------
Every per-node attribute is a plain list indexed by node ID:

  names    : list[str]         Label; '' for unnamed nodes.
  distance : list[float]       Branch length to parent; 0.0 for the root
                               and for branches without a length.
  parent   : list[int]         Parent ID; -1 for the root.
  children : list[list[int]]   Ordered child IDs; [] for leaves.

Node IDs are assigned in pre-order (root = 0) when the tree is flattened.
Midpoint rooting inserts one node, may splice out the old root (renumbering
the highest ID into its slot) and changes ``root``; nothing else edits the
arena.  Lists rather than numpy arrays are used here because the
arena is edited in place by rerooting; the derived, read-only arrays live in
``AncestorIndex``.

Nodes reference each other by integer ID only, so the undirected view needed
by rerooting (parent plus children) never creates object reference cycles.
"""

import logging
from typing import List, Tuple

import numpy as np

from distree._exceptions import EmptyTreeError, TreeStructureError
from distree._newick import NewickNode, parse_newick

logger = logging.getLogger(__name__)


class Tree:
    """
    A rooted, possibly multifurcating phylogenetic tree.

    Attributes
    ----------
    root     : int   Node ID of the root.
    n_nodes  : int   Number of nodes in the arena.
    n_leaves : int   Number of named leaves (the rows of a distance matrix).
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(self, newick_string: str) -> None:
        """
        Parse *newick_string* and build the node arena.

        Parameters
        ----------
        newick_string : str
            A NEWICK-formatted tree string (trailing ';' optional).

        Raises
        ------
        NewickParseError
            If the string is malformed.
        """
        self._flatten(parse_newick(newick_string))

    @classmethod
    def from_nested(cls, root: NewickNode) -> "Tree":
        """Build a Tree from an already parsed nested structure."""
        tree = cls.__new__(cls)
        tree._flatten(root)
        return tree

    # ================================================================== #
    # Properties                                                           #
    # ================================================================== #

    @property
    def n_nodes(self) -> int:
        return len(self.parent)

    @property
    def n_leaves(self) -> int:
        return sum(
            1
            for u in range(self.n_nodes)
            if not self.children[u] and self.names[u] != ""
        )

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def is_leaf(self, u: int) -> bool:
        return not self.children[u]

    def leaves(self) -> List[Tuple[str, int]]:
        """
        Return ``(label, node_id)`` for every named leaf, sorted by label.

        Unnamed leaves and internal nodes (named or not) are excluded.  The
        sort is by code point, so 'B' precedes 'a'.

        Raises
        ------
        EmptyTreeError
            If the tree has no named leaves.
        """
        pairs = [
            (self.names[u], u)
            for u in range(self.n_nodes)
            if not self.children[u] and self.names[u] != ""
        ]
        if not pairs:
            raise EmptyTreeError("No labeled leaves found in the tree.")

        pairs.sort(key=lambda pair: pair[0])

        for k in range(1, len(pairs)):
            if pairs[k][0] == pairs[k - 1][0]:
                logger.warning(
                    "Duplicate leaf label '%s'; rows and columns for this "
                    "label will be repeated",
                    pairs[k][0],
                )
        return pairs

    def midpoint_root(self) -> int:
        """
        Move the root to the midpoint of the tree's diameter.

        See ``distree._reroot.midpoint_root``.  Returns the new root ID.
        """
        from distree._reroot import midpoint_root

        return midpoint_root(self)

    def validate(self) -> None:
        """
        Check the arena invariants.

        * exactly one node has no parent, and it is ``self.root``;
        * every parent link is mirrored by exactly one entry in the parent's
          child list, and vice versa;
        * every node is reachable from the root (hence no cycles).

        Raises
        ------
        TreeStructureError
            On the first violated invariant.
        """
        n = self.n_nodes
        roots = [u for u in range(n) if self.parent[u] == -1]
        if roots != [self.root]:
            raise TreeStructureError(
                f"Expected a single root {self.root}, found parentless nodes {roots}."
            )

        for u in range(n):
            p = self.parent[u]
            if p != -1 and self.children[p].count(u) != 1:
                raise TreeStructureError(
                    f"Node {u} has parent {p}, but is listed "
                    f"{self.children[p].count(u)} times among its children."
                )
            for c in self.children[u]:
                if self.parent[c] != u:
                    raise TreeStructureError(
                        f"Node {c} is a child of {u} but its parent is "
                        f"{self.parent[c]}."
                    )

        seen = np.zeros(n, dtype=bool)
        stack = [self.root]
        seen[self.root] = True
        while stack:
            u = stack.pop()
            for c in self.children[u]:
                if seen[c]:
                    raise TreeStructureError(f"Node {c} is reachable twice.")
                seen[c] = True
                stack.append(c)
        if not seen.all():
            missing = np.flatnonzero(~seen).tolist()
            raise TreeStructureError(f"Nodes {missing} are unreachable from the root.")

    def to_newick(self) -> str:
        """
        Serialise the tree (from the current root) as a NEWICK string.

        Every non-root node is written with an explicit branch length, using
        the shortest repr of the float.
        """
        parts = []
        # Explicit stack of (node, state): 0 opens, 1 closes, 2 writes a comma.
        stack = [(self.root, 0)]
        while stack:
            u, state = stack.pop()
            if state == 2:
                parts.append(",")
                continue
            kids = self.children[u]
            if state == 0 and kids:
                parts.append("(")
                stack.append((u, 1))
                for k in range(len(kids) - 1, -1, -1):
                    stack.append((kids[k], 0))
                    if k > 0:
                        stack.append((-1, 2))
                continue
            if state == 1:
                parts.append(")")
            parts.append(self.names[u])
            if u != self.root:
                parts.append(f":{self.distance[u]!r}")
        return "".join(parts) + ";"

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    def _flatten(self, raw_root: NewickNode) -> None:
        """
        **Private.**  Flatten *raw_root* into the arena in pre-order.

        Each node gets the next free ID when it is first visited; its ID is
        appended to its parent's child list at that moment, so child order
        matches the textual order of the NEWICK string.

        Populates
        ---------
        self.names, self.distance, self.parent, self.children, self.root
        """
        names = []
        distance = []
        parent = []
        children = []

        stack = [(raw_root, -1)]
        while stack:
            raw, p = stack.pop()
            node_id = len(parent)
            names.append(raw.name if raw.name is not None else "")
            distance.append(float(raw.length) if p != -1 else 0.0)
            parent.append(p)
            children.append([])
            if p != -1:
                children[p].append(node_id)
            # Reverse push so the first child is popped (and numbered) first.
            for k in range(len(raw.children) - 1, -1, -1):
                stack.append((raw.children[k], node_id))

        self.names = names
        self.distance = distance
        self.parent = parent
        self.children = children
        self.root = 0

        # Name index: built lazily on first name-based query.
        self._name_index = None

    def _resolve_node(self, node) -> int:
        """
        **Private.**  Return the integer node ID for *node*.

        Integers (including numpy integers) are returned unchanged; strings
        are looked up in the lazily built name index.

        Raises
        ------
        KeyError     if *node* is a string not present in the tree.
        IndexError   if *node* is an integer outside the arena.
        """
        if isinstance(node, (int, np.integer)):
            node_id = int(node)
            if node_id < 0 or node_id >= self.n_nodes:
                raise IndexError(
                    f"Node ID {node_id} out of range for a tree with "
                    f"{self.n_nodes} nodes."
                )
            return node_id
        if self._name_index is None:
            self._build_name_index()
        if node not in self._name_index:
            raise KeyError(f"No node with name '{node}' found in tree.")
        return self._name_index[node]

    def _build_name_index(self) -> None:
        """
        **Private.**  Build and cache ``self._name_index``: a dict mapping
        each non-empty node name to its integer node ID.

        Raises
        ------
        ValueError   if duplicate names are found.
        """
        idx = {}
        for node_id in range(len(self.names)):
            name = self.names[node_id]
            if name != "":
                if name in idx:
                    raise ValueError(
                        f"Duplicate node name '{name}' at IDs "
                        f"{idx[name]} and {node_id}."
                    )
                idx[name] = node_id
        self._name_index = idx
