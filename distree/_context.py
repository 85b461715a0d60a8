"""
_context.py
===========
Context managers that change distree state for the duration of a block.

  suppress_logger(name, level)   raise one logger's threshold
  quiet(level)                   the same for the whole 'distree' hierarchy
  use_backend(name)              force the row backend of new engines

Each one restores the previous state on exit, exceptions included.
"""

import logging
from contextlib import contextmanager
from typing import Optional

from distree._backend import resolve_backend

_PACKAGE_LOGGER = "distree"

# Backend name forced by the innermost active use_backend() block.
_backend_override = None


# ============================================================================ #
# Logging                                                                      #
# ============================================================================ #


@contextmanager
def suppress_logger(logger_name: str, level: int = logging.CRITICAL):
    """
    Set *logger_name* to *level* inside the block.

    >>> with suppress_logger('distree._newick'):
    ...     tree = Tree(multi_tree_text)
    """
    logger = logging.getLogger(logger_name)
    original_level = logger.level
    try:
        logger.setLevel(level)
        yield
    finally:
        logger.setLevel(original_level)


@contextmanager
def quiet(level: int = logging.CRITICAL):
    """Silence every distree module logger below *level*."""
    with suppress_logger(_PACKAGE_LOGGER, level):
        yield


# ============================================================================ #
# Backend                                                                      #
# ============================================================================ #


@contextmanager
def use_backend(backend: str):
    """
    Make every ``DistanceEngine`` created inside the block use *backend*,
    whatever its own ``backend=`` argument says.

    *backend* is 'best', 'python' or 'cpu-parallel'; anything else raises
    ``ValueError`` before the block is entered.  The override is module
    state, so it is not thread-safe.

    >>> with use_backend('python'):
    ...     result = distance_matrix(tree)
    """
    global _backend_override

    resolve_backend(backend)
    original_override = _backend_override
    try:
        _backend_override = backend
        yield
    finally:
        _backend_override = original_override


def get_backend_override() -> Optional[str]:
    """Backend forced by the innermost ``use_backend()``, or None."""
    return _backend_override
