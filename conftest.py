"""
conftest.py
===========
Session-level pytest configuration for the test suite.

Custom marks
------------
large_scale
    Applied to tests that build trees with tens of thousands of nodes.
    Runs by default; deselect with ``-m "not large_scale"``.

Warning filters
---------------
NumbaPerformanceWarning messages are filtered out during tests.  Warnings
about thread under-utilisation are expected with the tiny rows used here and
are not informative for correctness testing.
"""

import warnings

from numba.core.errors import NumbaPerformanceWarning


def pytest_configure(config):
    """
    Configure pytest before test collection begins.

    This runs before any test module is imported, which is important for
    catching warnings raised while numba compiles the kernels.
    """
    config.addinivalue_line(
        "markers",
        "large_scale: builds trees with tens of thousands of nodes "
        "(deselect with -m 'not large_scale')",
    )
    warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)


def pytest_unconfigure(config):
    """Restore default warning behavior."""
    warnings.resetwarnings()
