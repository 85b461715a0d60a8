"""
_backend.py
===========
Row backends for the distance engine.

  python         whole-array numpy row LCA (``AncestorIndex.lca_row``)
  cpu-parallel   numba ``prange`` row kernel (``_cpu_kernels.lca_row_parallel``)

numpy and numba are both hard dependencies, so both backends are always
present.  'best' is an alias for 'cpu-parallel'.
"""

from typing import List

BACKENDS = ("python", "cpu-parallel")
BEST_BACKEND = "cpu-parallel"


def get_available_backends() -> List[str]:
    """Backend names, slowest first."""
    return list(BACKENDS)


def resolve_backend(backend: str) -> str:
    """
    Map a backend name to one of ``BACKENDS``.

    Raises
    ------
    ValueError
        If *backend* is neither 'best' nor a known backend.

    Examples
    --------
    >>> resolve_backend('best')
    'cpu-parallel'
    >>> resolve_backend('python')
    'python'
    """
    if backend == "best":
        return BEST_BACKEND
    if backend not in BACKENDS:
        raise ValueError(
            f"Unknown backend '{backend}'. "
            f"Choose 'best' or one of: {', '.join(BACKENDS)}"
        )
    return backend
