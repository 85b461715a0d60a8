"""
_cpu_kernels.py
===============
CPU-parallel LCA kernels compiled with Numba.

This module contains ONLY numba-compiled code and does not import other
project modules, so importing it never pulls in the rest of the package.

Exported Functions
------------------
_lca_nb : njit function
    Binary-lifting LCA of two node IDs (scalar; inlined into the row kernel).

_lca_row_njit : njit(parallel=True) function
    LCA of one node against every node of a column vector.  The column loop
    runs under ``prange``; each iteration writes only its own output slot.

Notes
-----
- Kernels return -1 instead of raising when an ancestor is missing; the
  Python caller checks the output and raises ``TreeStructureError``.
- cache=True persists the compiled binary to disk for faster later runs.
"""

import numpy as np
from numba import njit, prange


@njit(cache=True)
def _lca_nb(u, v, up, depth_edges):
    """
    Binary-lifting LCA, identical in logic to ``AncestorIndex._lca_core``.

    Parameters
    ----------
    u, v        : int
        Node IDs.
    up          : int64[n_levels, n_nodes]
        Jump table; -1 above the root.
    depth_edges : int64[n_nodes]
        Edge depth of each node.

    Returns
    -------
    int
        LCA node ID, or -1 if the table is inconsistent.
    """
    if u == v:
        return u
    if depth_edges[u] < depth_edges[v]:
        u, v = v, u

    diff = depth_edges[u] - depth_edges[v]
    k = 0
    while diff > 0:
        if diff & 1:
            u = up[k, u]
            if u < 0:
                return -1
        diff >>= 1
        k += 1

    if u == v:
        return u

    for k in range(up.shape[0] - 1, -1, -1):
        au = up[k, u]
        av = up[k, v]
        if au >= 0 and av >= 0 and au != av:
            u = au
            v = av

    return up[0, u]


@njit(parallel=True, cache=True)
def _lca_row_njit(u, targets, up, depth_edges, lca_out):
    """
    Fill ``lca_out[j] = LCA(u, targets[j])`` for every column j in parallel.

    Parameters
    ----------
    u           : int
        Row node ID.
    targets     : int64[n_cols]
        Column node IDs.
    up          : int64[n_levels, n_nodes]
    depth_edges : int64[n_nodes]
    lca_out     : int64[n_cols]
        Output; -1 marks an inconsistent table.
    """
    for j in prange(targets.shape[0]):
        lca_out[j] = _lca_nb(u, targets[j], up, depth_edges)


def lca_row_parallel(u, targets, up, depth_edges):
    """Allocate the output vector and run ``_lca_row_njit``."""
    lca_out = np.empty(targets.shape[0], dtype=np.int64)
    _lca_row_njit(u, targets, up, depth_edges, lca_out)
    return lca_out
