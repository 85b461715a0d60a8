"""
_distance.py
============
Pairwise leaf-distance matrices from an ``AncestorIndex``.

Public API
----------
  DistanceOptions(metric='patristic', midpoint=False, backend='best')
  DistanceEngine(index, leaves, metric='patristic', backend='best')
      .row(i)      -> float64 ndarray, one matrix row
      .rows()      -> generator of (label, row) in row order
      .matrix()    -> DistanceMatrix
  DistanceMatrix(labels, values)
  distance_matrix(tree, metric='patristic', midpoint=False, backend='best')
  iter_distance_rows(tree, metric='patristic', midpoint=False, backend='best')

Metrics
-------
With L = depth_length, E = depth_edges and m = LCA(u, v):

  patristic    L[u] + L[v] - 2 L[m]
  topological  max(E[u] + E[v] - 2 E[m], 0)      (integer valued)
  lmm          L[m]                              (diagonal = L[u])

Parallelism
-----------
Each cell is a pure function of (u, v, metric, index).  A row is computed in
one data-parallel step over its columns: a numba ``prange`` kernel for the
'cpu-parallel' backend, whole-array numpy operations for 'python'.  Columns
are always stored at their own position, so completion order never matters.
Rows are produced strictly in order by the calling thread; kernels never see
the output sink.

Logging
-------
On first import the module logs system and optimisation status at INFO
level and routes NumbaPerformanceWarning through the package logger.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple, Union

import numpy as np

from distree._backend import BACKENDS, BEST_BACKEND, resolve_backend
from distree._context import get_backend_override
from distree._cpu_kernels import lca_row_parallel
from distree._exceptions import TreeStructureError
from distree._lca import AncestorIndex
from distree._logging import (
    install_numba_warning_filter,
    log_backend_availability,
    log_index_statistics,
    log_matrix_plan,
    log_optimization_status,
    log_tree_statistics,
)
from distree._tree import Tree

logger = logging.getLogger(__name__)

METRICS = ("patristic", "topological", "lmm")

# Compilation of the parallel kernel happens on its first call.
_kernel_first_call = {"cpu-parallel": True}

log_optimization_status()
log_backend_availability(BACKENDS, BEST_BACKEND)
install_numba_warning_filter()


@dataclass(frozen=True)
class DistanceOptions:
    """
    Run configuration for a distance matrix.

    Attributes
    ----------
    metric : str
        One of 'patristic' (default), 'topological', 'lmm'.
    midpoint : bool
        Midpoint-root the tree before building the ancestor index.
    backend : str
        'best', 'python' or 'cpu-parallel'.
    """

    metric: str = "patristic"
    midpoint: bool = False
    backend: str = "best"

    def __post_init__(self) -> None:
        if self.metric not in METRICS:
            raise ValueError(
                f"Unknown metric '{self.metric}'. Choose one of: {', '.join(METRICS)}"
            )
        if self.backend != "best" and self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend '{self.backend}'")


@dataclass(frozen=True)
class DistanceMatrix:
    """Row/column labels (sorted) and the square matrix in the same order."""

    labels: List[str]
    values: np.ndarray

    def __len__(self) -> int:
        return len(self.labels)


class DistanceEngine:
    """
    Compute distance-matrix rows over the named leaves of an indexed tree.

    Parameters
    ----------
    index : AncestorIndex
        Built after any rerooting; never modified.
    leaves : sequence of (label, node_id)
        Row/column order, normally ``tree.leaves()``.
    metric : str
        'patristic', 'topological' or 'lmm'.
    backend : str
        'best', 'python' or 'cpu-parallel'.  An active ``use_backend()``
        block takes precedence.  Any other name raises ``ValueError``.
    """

    def __init__(
        self,
        index: AncestorIndex,
        leaves: Sequence[Tuple[str, int]],
        metric: str = "patristic",
        backend: str = "best",
    ) -> None:
        if metric not in METRICS:
            raise ValueError(
                f"Unknown metric '{metric}'. Choose one of: {', '.join(METRICS)}"
            )

        backend_override = get_backend_override()
        if backend_override is not None:
            backend = backend_override

        resolved_backend = resolve_backend(backend)

        self.index = index
        self.metric = metric
        self.backend = resolved_backend
        self.labels: List[str] = [label for label, _ in leaves]
        self.leaf_ids = np.asarray([node for _, node in leaves], dtype=np.int64)

    def __len__(self) -> int:
        return len(self.labels)

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def row(self, i: int) -> np.ndarray:
        """
        Return row *i* of the matrix (distances from leaf *i* to every leaf,
        in column order).

        Raises
        ------
        TreeStructureError
            If an LCA lookup hits an undefined ancestor.
        """
        u = int(self.leaf_ids[i])
        lca = self._lca_row(u)
        return self._apply_metric(u, lca)

    def rows(self) -> Iterator[Tuple[str, np.ndarray]]:
        """Yield ``(label, row)`` for every leaf, strictly in row order."""
        log_matrix_plan(len(self), self.metric, self.backend)
        for i in range(len(self)):
            yield self.labels[i], self.row(i)

    def matrix(self) -> DistanceMatrix:
        """Compute every row and return the full matrix."""
        n = len(self)
        values = np.empty((n, n), dtype=np.float64)
        for i, (_, row) in enumerate(self.rows()):
            values[i] = row
        return DistanceMatrix(labels=list(self.labels), values=values)

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    def _lca_row(self, u: int) -> np.ndarray:
        index = self.index
        if self.backend == "cpu-parallel":
            if _kernel_first_call["cpu-parallel"]:
                logger.info("  Compiling cpu-parallel kernel (cached for future calls)")
                _kernel_first_call["cpu-parallel"] = False
            lca = lca_row_parallel(u, self.leaf_ids, index.up, index.depth_edges)
            if (lca < 0).any():
                raise TreeStructureError(
                    f"Undefined ancestor while computing LCAs for node {u}."
                )
            return lca
        return AncestorIndex._lca_row_core(
            u, self.leaf_ids, index.up, index.depth_edges
        )

    def _apply_metric(self, u: int, lca: np.ndarray) -> np.ndarray:
        index = self.index
        if self.metric == "lmm":
            return index.depth_length[lca]
        if self.metric == "topological":
            de = index.depth_edges
            edges = de[u] + de[self.leaf_ids] - 2 * de[lca]
            return np.maximum(edges, 0).astype(np.float64)
        dl = index.depth_length
        return dl[u] + dl[self.leaf_ids] - 2.0 * dl[lca]


# ======================================================================== #
# Top-level helpers                                                         #
# ======================================================================== #


def _prepare(
    tree: Union[Tree, str], metric: str, midpoint: bool, backend: str
) -> DistanceEngine:
    options = DistanceOptions(metric=metric, midpoint=midpoint, backend=backend)

    if isinstance(tree, str):
        tree = Tree(tree)

    if options.midpoint:
        tree.midpoint_root()

    leaves = tree.leaves()
    n_unnamed = sum(
        1 for u in range(tree.n_nodes) if tree.is_leaf(u) and tree.names[u] == ""
    )
    log_tree_statistics(tree.n_nodes, len(leaves), n_unnamed)

    index = AncestorIndex(tree)
    log_index_statistics(index.n_nodes, index.n_levels, index.max_depth)
    return DistanceEngine(index, leaves, metric=options.metric, backend=options.backend)


def iter_distance_rows(
    tree: Union[Tree, str],
    metric: str = "patristic",
    midpoint: bool = False,
    backend: str = "best",
) -> Tuple[List[str], Iterator[Tuple[str, np.ndarray]]]:
    """
    Prepare a run and return ``(labels, rows)`` where *rows* yields
    ``(label, row)`` pairs in order.

    The tree is parsed, optionally midpoint-rooted and indexed before this
    function returns, so input errors surface before any row is produced.
    A ``Tree`` argument is rerooted in place when *midpoint* is True.

    Raises
    ------
    NewickParseError, EmptyTreeError, ValueError
    """
    engine = _prepare(tree, metric, midpoint, backend)
    return list(engine.labels), engine.rows()


def distance_matrix(
    tree: Union[Tree, str],
    metric: str = "patristic",
    midpoint: bool = False,
    backend: str = "best",
) -> DistanceMatrix:
    """
    Compute the full leaf-distance matrix of *tree*.

    Parameters
    ----------
    tree : Tree | str
        A built tree or a NEWICK string.  A ``Tree`` is rerooted in place
        when *midpoint* is True.
    metric : str
        'patristic' (default), 'topological' or 'lmm'.
    midpoint : bool
        Midpoint-root before computing distances.
    backend : str
        'best', 'python' or 'cpu-parallel'.

    Returns
    -------
    DistanceMatrix
        Labels sorted lexicographically and the matching square matrix.

    Examples
    --------
    >>> result = distance_matrix('((A:1,B:2):3,C:4);')
    >>> result.labels
    ['A', 'B', 'C']
    >>> result.values[0].tolist()
    [0.0, 3.0, 8.0]
    """
    return _prepare(tree, metric, midpoint, backend).matrix()
