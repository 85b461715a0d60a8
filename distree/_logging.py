"""
_logging.py
===========
Log-only helpers.  Each takes values already computed by the caller and
emits messages; none of them changes distree state.

The first group runs once, when ``distree._distance`` is imported.  The
second group reports on a single tree and matrix computation.
"""

import logging
import os
import platform
import warnings
from typing import Sequence

import numba
from numba.core.errors import NumbaPerformanceWarning

logger = logging.getLogger(__name__)


# ============================================================================ #
# Import-time status                                                           #
# ============================================================================ #


def log_optimization_status() -> None:
    """
    Log the host (machine, CPU count, Python version, memory when psutil is
    installed) and the numba toolchain at INFO level.
    """
    logger.info(
        "System: %s (%s), %d CPU cores, Python %s",
        platform.machine(),
        platform.system(),
        os.cpu_count() or 1,
        platform.python_version(),
    )

    try:
        import psutil
    except ImportError:
        psutil = None
    if psutil is not None:
        mem = psutil.virtual_memory()
        logger.info(
            "Memory: %.1f GB total, %.1f GB available",
            mem.total / (1024**3),
            mem.available / (1024**3),
        )

    logger.info("Numba %s", numba.__version__)
    try:
        import llvmlite

        logger.info("LLVM backend: llvmlite %s", llvmlite.__version__)
    except (ImportError, AttributeError):
        pass

    # threading_layer() raises until a parallel kernel has run.
    try:
        logger.info(
            "Numba threading: %s layer, %d threads active",
            numba.threading_layer(),
            numba.get_num_threads(),
        )
    except ValueError:
        logger.info("Numba threads available: %d", numba.get_num_threads())


def install_numba_warning_filter() -> None:
    """
    Send ``NumbaPerformanceWarning`` to this module's logger at WARNING
    level instead of stderr.  Other warnings are passed on unchanged.
    """
    original_showwarning = warnings.showwarning

    def showwarning(message, category, filename, lineno, file=None, line=None):
        if issubclass(category, NumbaPerformanceWarning):
            logger.warning("Numba performance issue: %s (%s:%d)", message, filename, lineno)
            return
        original_showwarning(message, category, filename, lineno, file, line)

    warnings.showwarning = showwarning


def log_backend_availability(backends: Sequence[str], best: str) -> None:
    """Log the row backends and the one 'best' stands for."""
    logger.info("Row backends: %s ('best' = %s)", ", ".join(backends), best)
    logger.debug("  python: numpy whole-array reference rows")
    logger.debug("  cpu-parallel: numba.njit + prange rows")


# ============================================================================ #
# Tree and Matrix Logging (called during a run)
# ============================================================================ #


def log_tree_statistics(n_nodes: int, n_leaves: int, n_unnamed_leaves: int) -> None:
    """
    Log the size of a freshly built tree.

    Parameters
    ----------
    n_nodes : int
        Nodes in the arena.
    n_leaves : int
        Named leaves (matrix rows).
    n_unnamed_leaves : int
        Leaves without a label; they never appear in the matrix.
    """
    logger.info("Tree built: %d nodes, %d named leaves", n_nodes, n_leaves)
    if n_unnamed_leaves:
        logger.warning(
            "%d unnamed leaves will be left out of the matrix", n_unnamed_leaves
        )


def log_reroot(
    leaf_b: int, leaf_a: int, diameter: float, new_root: int, upper: int, lower: int
) -> None:
    """
    Log the result of midpoint rooting.

    Parameters
    ----------
    leaf_b, leaf_a : int
        Endpoints of the diameter path.
    diameter : float
        Branch-length distance between them.
    new_root : int
        ID of the inserted root.
    upper, lower : int
        Former parent and child of the split edge.
    """
    logger.info(
        "Midpoint rooting: diameter %g between nodes %d and %d", diameter, leaf_b, leaf_a
    )
    logger.debug(
        "Inserted root %d on edge %d -> %d", new_root, upper, lower
    )


def log_index_statistics(n_nodes: int, n_levels: int, max_depth: int) -> None:
    """Log the dimensions of a freshly built ancestor index."""
    mem_kb = (n_levels * n_nodes * 8 + n_nodes * 16) / 1024
    logger.info(
        "Ancestor index: %d nodes, %d jump levels, max depth %d, %.1f KB",
        n_nodes,
        n_levels,
        max_depth,
        mem_kb,
    )


def log_matrix_plan(n_leaves: int, metric: str, backend: str) -> None:
    """
    Log the shape and execution mode of a matrix computation.

    Parameters
    ----------
    n_leaves : int
        Rows (and columns) of the matrix.
    metric : str
        'patristic', 'topological' or 'lmm'.
    backend : str
        Resolved backend name.
    """
    logger.info(
        "Computing %d x %d %s matrix (backend=%s)", n_leaves, n_leaves, metric, backend
    )
    dense_mb = n_leaves * n_leaves * 8 / (1024**2)
    if dense_mb >= 1024:
        logger.warning(
            "A dense matrix would need %.1f GB; prefer streaming rows with "
            "iter_distance_rows()",
            dense_mb / 1024,
        )
