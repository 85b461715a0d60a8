"""
_lca.py
=======
Binary-lifting ancestor index over a ``Tree`` arena, with O(log n) LCA
queries.

Public API
----------
  AncestorIndex(tree)
      Constructor.  One traversal from the root plus one vectorised gather
      per doubling level: O(n log n) time and space.

  .lca(u, v)
  .lca_row(u, targets)
  .branch_distance(u, v)
  .edge_distance(u, v)

Arrays (all read-only after construction)
-----------------------------------------
  up           : int64  [n_levels, n_nodes]  2**k-th ancestor; -1 above root.
  depth_length : float64[n_nodes]            Branch length from the root.
  depth_edges  : int64  [n_nodes]            Edge count from the root.

  n_levels = ceil(log2(n_nodes)) + 1, so every ancestor chain ends inside
  the table.

numba notes
-----------
``_lca_core`` and ``_lca_row_core`` are ``@staticmethod`` functions taking
only arrays and integers.  ``distree._cpu_kernels`` holds the ``@njit``
counterparts used by the cpu-parallel backend; both must return identical
results (see TestBackendAgreement in tests/test_distance.py).
"""

import math

import numpy as np

from distree._exceptions import TreeStructureError


class AncestorIndex:
    """
    Immutable LCA structure built from a (possibly rerooted) ``Tree``.

    Attributes
    ----------
    n_nodes  : int   Number of nodes indexed.
    n_levels : int   Rows of the jump table.
    root     : int   Root node ID at build time.
    max_depth: int   Largest edge depth.
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(self, tree) -> None:
        """
        Build the jump table and both depth arrays for *tree*.

        Raises
        ------
        TreeStructureError
            If a node is not reachable from ``tree.root``.
        """
        self._tree = tree
        self.n_nodes: int = int(tree.n_nodes)
        self.root: int = int(tree.root)
        self.n_levels: int = (
            int(math.ceil(math.log2(self.n_nodes))) + 1 if self.n_nodes > 1 else 1
        )
        self._build()
        self.max_depth: int = int(np.max(self.depth_edges))

    def _build(self) -> None:
        """
        **Private.**  Populate ``up``, ``depth_length`` and ``depth_edges``.

        The traversal uses an explicit stack so deeply nested trees do not
        recurse.  Level k of the jump table is one numpy gather of level
        k - 1 into itself; entries whose intermediate ancestor is -1 stay -1.
        """
        n = self.n_nodes
        root = self.root
        children = self._tree.children
        distance = self._tree.distance

        up = np.full((self.n_levels, n), -1, dtype=np.int64)
        depth_length = np.zeros(n, dtype=np.float64)
        depth_edges = np.zeros(n, dtype=np.int64)
        reached = np.zeros(n, dtype=bool)

        reached[root] = True
        stack = [root]
        while stack:
            u = stack.pop()
            for v in children[u]:
                up[0, v] = u
                depth_length[v] = depth_length[u] + distance[v]
                depth_edges[v] = depth_edges[u] + 1
                reached[v] = True
                stack.append(v)

        if not reached.all():
            missing = np.flatnonzero(~reached).tolist()
            raise TreeStructureError(
                f"Nodes {missing} are not reachable from root {root}."
            )

        for k in range(1, self.n_levels):
            prev = up[k - 1]
            hop = prev[np.maximum(prev, 0)]
            up[k] = np.where(prev >= 0, hop, -1)

        self.up = up
        self.depth_length = depth_length
        self.depth_edges = depth_edges

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def lca(self, u, v) -> int:
        """
        Return the node ID of the lowest common ancestor of *u* and *v*.

        Parameters
        ----------
        u, v : int | str   Node IDs or taxon names (resolved independently).

        Complexity
        ----------
        O(log n) per call.
        """
        u_id = self._tree._resolve_node(u)
        v_id = self._tree._resolve_node(v)
        return AncestorIndex._lca_core(u_id, v_id, self.up, self.depth_edges)

    def lca_row(self, u, targets) -> np.ndarray:
        """
        Return ``lca(u, t)`` for every node ID in *targets*, computed for all
        targets at once.

        Parameters
        ----------
        u       : int | str          Fixed node.
        targets : array-like of int  Node IDs.

        Returns
        -------
        int64 ndarray, same length as *targets*.
        """
        u_id = self._tree._resolve_node(u)
        targets = np.asarray(targets, dtype=np.int64)
        return AncestorIndex._lca_row_core(
            u_id, targets, self.up, self.depth_edges
        )

    def branch_distance(self, u, v) -> float:
        """Sum of branch lengths on the path between *u* and *v*."""
        u_id = self._tree._resolve_node(u)
        v_id = self._tree._resolve_node(v)
        m = AncestorIndex._lca_core(u_id, v_id, self.up, self.depth_edges)
        dl = self.depth_length
        return float(dl[u_id] + dl[v_id] - 2.0 * dl[m])

    def edge_distance(self, u, v) -> int:
        """Number of edges on the path between *u* and *v*."""
        u_id = self._tree._resolve_node(u)
        v_id = self._tree._resolve_node(v)
        m = AncestorIndex._lca_core(u_id, v_id, self.up, self.depth_edges)
        de = self.depth_edges
        return max(int(de[u_id] + de[v_id] - 2 * de[m]), 0)

    # ================================================================== #
    # Private static methods (pure computational kernels)                  #
    # ================================================================== #

    @staticmethod
    def _lca_core(u: int, v: int, up, depth_edges) -> int:
        """
        **Private static.**  Binary-lifting LCA of two resolved node IDs.

        1. ``u == v``: return it.
        2. Make ``u`` the deeper node.
        3. Lift ``u`` by the depth difference, one jump per set bit.
        4. Equal now: return it.
        5. From the highest level down, advance both while their ancestors
           at that level differ; the common parent is the answer.

        Raises
        ------
        TreeStructureError
            If a required ancestor is undefined.
        """
        if u == v:
            return u
        if depth_edges[u] < depth_edges[v]:
            u, v = v, u

        diff = int(depth_edges[u] - depth_edges[v])
        k = 0
        while diff > 0:
            if diff & 1:
                u = int(up[k, u])
                if u < 0:
                    raise TreeStructureError(
                        f"Ancestor at level {k} is undefined while lifting."
                    )
            diff >>= 1
            k += 1

        if u == v:
            return u

        for k in range(up.shape[0] - 1, -1, -1):
            au = int(up[k, u])
            av = int(up[k, v])
            if au >= 0 and av >= 0 and au != av:
                u = au
                v = av

        m = int(up[0, u])
        if m < 0:
            raise TreeStructureError(
                f"Nodes {u} and {v} have no common ancestor."
            )
        return m

    @staticmethod
    def _lca_row_core(u: int, targets, up, depth_edges):
        """
        **Private static.**  ``_lca_core(u, t)`` for every ``t`` in
        *targets*, as whole-array numpy operations.

        Every step of the scalar algorithm becomes a masked update over the
        column vectors ``a`` (deeper side) and ``b`` (shallower side).
        """
        m = targets.shape[0]
        a = np.full(m, u, dtype=np.int64)
        b = targets.copy()

        swap = depth_edges[a] < depth_edges[b]
        a[swap], b[swap] = b[swap], a[swap]

        diff = depth_edges[a] - depth_edges[b]
        for k in range(up.shape[0]):
            lift = ((diff >> k) & 1).astype(bool)
            if lift.any():
                a[lift] = up[k, a[lift]]
                if (a[lift] < 0).any():
                    raise TreeStructureError(
                        f"Ancestor at level {k} is undefined while lifting."
                    )

        done = a == b
        for k in range(up.shape[0] - 1, -1, -1):
            ua = up[k, a]
            ub = up[k, b]
            step = ~done & (ua >= 0) & (ub >= 0) & (ua != ub)
            a[step] = ua[step]
            b[step] = ub[step]

        result = np.where(done, a, up[0, a])
        if (result < 0).any():
            raise TreeStructureError("Some node pairs have no common ancestor.")
        return result
