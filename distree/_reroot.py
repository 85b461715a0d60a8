"""
_reroot.py
==========
Midpoint rooting of a ``Tree`` arena, in place.

Algorithm
---------
1. From a leaf (reached by following first children down from the root), a
   depth-first search over the undirected view of the tree finds the
   farthest leaf A by summed branch length.
2. A second search from A finds the farthest leaf B and the diameter
   d(A, B).  Its predecessor trace gives the path B -> ... -> A.
3. Walking the path from B, the edge on which the running length reaches
   d / 2 is split by a new unnamed node R.  R receives the two halves of
   the edge: ``half - accumulated`` towards B and the remainder towards A.
4. The chain of former ancestors above the split edge is inverted so that R
   is the only node without a parent.  Branch lengths stay attached to the
   edges they describe, so every leaf-to-leaf distance is unchanged.
5. If the old root is left with a single child it is spliced out (its two
   branch lengths are summed).  An old root that had only one child ends up
   childless; it is removed, and the node it hung from is spliced out in
   turn.  The arena is compacted after each removal: the node with the
   highest ID takes over the freed ID.  Node IDs may therefore change;
   callers must read leaf IDs after rerooting.

Tie-breaking
------------
Farthest-leaf ties go to the leaf discovered first by the fixed traversal
order (parent pushed before children, last pushed popped first).  A strictly
greater distance is required to replace the current best.

Degenerate trees
----------------
A tree whose diameter path is a single leaf is left as it is.  A path on
which no straddling edge is found (only possible with negative branch
lengths) makes its first node the root directly.
"""

import logging
from typing import List, Tuple

from distree._exceptions import TreeStructureError
from distree._logging import log_reroot

logger = logging.getLogger(__name__)


def _farthest_leaf(tree, start: int) -> Tuple[int, float, List[int]]:
    """
    Return ``(leaf, distance, predecessor)`` for the leaf farthest from
    *start*, treating parent and child links as one undirected graph.

    ``predecessor[u]`` is the neighbour through which *u* was first reached
    (-1 for *start* and for unvisited nodes).
    """
    parent = tree.parent
    children = tree.children
    distance = tree.distance
    n = tree.n_nodes

    best_leaf = start
    best_dist = 0.0
    predecessor = [-1] * n
    visited = [False] * n
    visited[start] = True
    stack = [(start, 0.0)]

    while stack:
        u, dist_u = stack.pop()
        if not children[u] and dist_u > best_dist:
            best_dist = dist_u
            best_leaf = u

        p = parent[u]
        if p != -1 and not visited[p]:
            visited[p] = True
            predecessor[p] = u
            stack.append((p, dist_u + distance[u]))

        for v in children[u]:
            if not visited[v]:
                visited[v] = True
                predecessor[v] = u
                stack.append((v, dist_u + distance[v]))

    return best_leaf, best_dist, predecessor


def _edge_length(tree, u: int, v: int) -> float:
    """Length of the edge joining adjacent nodes *u* and *v*."""
    if tree.parent[v] == u:
        return tree.distance[v]
    if tree.parent[u] == v:
        return tree.distance[u]
    raise TreeStructureError(f"Nodes {u} and {v} are not adjacent.")


def _detach(tree, child: int, parent: int) -> None:
    """Remove *child* from the child list of *parent*."""
    siblings = tree.children[parent]
    try:
        siblings.remove(child)
    except ValueError:
        raise TreeStructureError(
            f"Node {child} is not among the children of its parent {parent}."
        ) from None


def _hang(tree, node: int, new_parent: int, new_length: float) -> None:
    """
    Attach *node* below *new_parent* (or make it the root when
    *new_parent* is -1) and invert the chain of its former ancestors.

    Each former ancestor becomes a child of its former child and takes over
    the length of the edge that joined them.
    """
    while node != -1:
        old_parent = tree.parent[node]
        old_length = tree.distance[node]

        if old_parent != -1:
            _detach(tree, node, old_parent)

        tree.parent[node] = new_parent
        tree.distance[node] = new_length
        if new_parent != -1:
            tree.children[new_parent].append(node)

        new_parent = node
        new_length = old_length
        node = old_parent


def _remove_node(tree, node: int) -> None:
    """
    Delete *node* (already unlinked) from the arena.

    The node with the highest ID moves into the freed slot and every link
    to it is renamed, so IDs stay contiguous.
    """
    last = tree.n_nodes - 1
    if node != last:
        tree.names[node] = tree.names[last]
        tree.distance[node] = tree.distance[last]
        tree.parent[node] = tree.parent[last]
        tree.children[node] = tree.children[last]

        p = tree.parent[node]
        if p != -1:
            siblings = tree.children[p]
            siblings[siblings.index(last)] = node
        for c in tree.children[node]:
            tree.parent[c] = node
        if tree.root == last:
            tree.root = node

    tree.names.pop()
    tree.distance.pop()
    tree.parent.pop()
    tree.children.pop()
    tree._name_index = None


def _suppress_unifurcation(tree, node: int) -> bool:
    """
    Splice out *node* if it is a non-root node with exactly one child.

    The child is attached to the grandparent at *node*'s position with the
    two branch lengths summed.  Returns True when the node was removed.
    """
    kids = tree.children[node]
    p = tree.parent[node]
    if p == -1 or len(kids) != 1:
        return False

    c = kids[0]
    siblings = tree.children[p]
    try:
        pos = siblings.index(node)
    except ValueError:
        raise TreeStructureError(
            f"Node {node} is not among the children of its parent {p}."
        ) from None
    siblings[pos] = c
    tree.parent[c] = p
    tree.distance[c] += tree.distance[node]

    tree.parent[node] = -1
    tree.children[node] = []
    _remove_node(tree, node)
    return True


def _prune_leaf(tree, node: int) -> int:
    """
    Remove the childless non-root *node* and return the ID its parent has
    afterwards (the parent is renumbered if it held the highest ID).
    """
    p = tree.parent[node]
    last = tree.n_nodes - 1
    _detach(tree, node, p)
    tree.parent[node] = -1
    _remove_node(tree, node)
    return node if p == last else p


def _retire_old_root(tree, old_root: int) -> None:
    """
    Tidy the former root once it hangs below the new one.

    A chain of unary nodes above the original tree ends up childless after
    inversion; those nodes are removed from the bottom up.  The first node
    that still has children is spliced out if it has exactly one.
    """
    node = old_root
    while tree.parent[node] != -1 and not tree.children[node]:
        node = _prune_leaf(tree, node)
    _suppress_unifurcation(tree, node)


def _diameter_path(tree) -> Tuple[List[int], float]:
    """Return the diameter path (from B back to A) and its length."""
    any_leaf = tree.root
    while tree.children[any_leaf]:
        any_leaf = tree.children[any_leaf][0]

    leaf_a, _, _ = _farthest_leaf(tree, any_leaf)
    leaf_b, diameter, predecessor = _farthest_leaf(tree, leaf_a)

    path = [leaf_b]
    cur = leaf_b
    while cur != leaf_a:
        cur = predecessor[cur]
        if cur == -1:
            raise TreeStructureError(
                f"Diameter path from leaf {leaf_b} does not lead back to {leaf_a}."
            )
        path.append(cur)
    return path, diameter


def midpoint_root(tree) -> int:
    """
    Reroot *tree* in place at the midpoint of its diameter.

    Parameters
    ----------
    tree : Tree
        The arena is edited in place: a root node is inserted (unless the
        tree is degenerate), a single-child old root is removed, and
        ``tree.root`` is updated.

    Returns
    -------
    int
        Node ID of the new root.
    """
    old_root = tree.root
    path, diameter = _diameter_path(tree)
    half = diameter / 2.0
    accum = 0.0

    for k in range(len(path) - 1):
        u = path[k]
        v = path[k + 1]
        edge_len = _edge_length(tree, u, v)

        if accum + edge_len >= half:
            to_u = half - accum
            to_v = edge_len - to_u
            if tree.parent[v] == u:
                upper, lower = u, v
                upper_len, lower_len = to_u, to_v
            else:
                upper, lower = v, u
                upper_len, lower_len = to_v, to_u

            new_root = tree.n_nodes
            tree.names.append("")
            tree.distance.append(0.0)
            tree.parent.append(-1)
            tree.children.append([])

            _detach(tree, lower, upper)
            tree.parent[lower] = new_root
            tree.distance[lower] = lower_len
            tree.children[new_root].append(lower)

            _hang(tree, upper, new_root, upper_len)
            tree.root = new_root
            _retire_old_root(tree, old_root)

            log_reroot(path[0], path[-1], diameter, tree.root, upper, lower)
            return tree.root

        accum += edge_len

    if len(path) == 1:
        logger.debug("Single-leaf diameter path; midpoint rooting is a no-op")
        return tree.root

    # No straddling edge: the path's first node becomes the root directly.
    start = path[0]
    if tree.parent[start] != -1:
        logger.warning(
            "Midpoint not found on the diameter path (diameter %g); "
            "rooting at node %d",
            diameter,
            start,
        )
        _hang(tree, start, -1, 0.0)
        tree.root = start
        _retire_old_root(tree, old_root)
    return tree.root
