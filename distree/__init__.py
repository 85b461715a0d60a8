"""
distree
=======

Pairwise leaf-distance matrices from phylogenetic trees.

A NEWICK tree is flattened into an index-addressed node arena, optionally
midpoint-rooted, and indexed with binary-lifting jump tables so that every
lowest-common-ancestor query costs O(log n).  Each matrix row is then
computed in one data-parallel step over its columns.

Main Classes
------------
Tree : Node arena with NEWICK parsing and midpoint rooting
AncestorIndex : Binary-lifting LCA structure with depth tables
DistanceEngine : Row-by-row matrix computation under one metric

Metrics
-------
patristic   : sum of branch lengths between two leaves (default)
topological : number of edges between two leaves
lmm         : branch-length depth of the leaves' common ancestor
              (phylogenetic variance-covariance matrix)

Context Managers
----------------
quiet : Suppress logging during operations
suppress_logger : Suppress specific logger
use_backend : Force specific computational backend

Examples
--------
>>> from distree import distance_matrix
>>> result = distance_matrix('((A:1,B:2):3,C:4);')
>>> result.labels
['A', 'B', 'C']
>>> result.values.tolist()
[[0.0, 3.0, 8.0], [3.0, 0.0, 9.0], [8.0, 9.0, 0.0]]

Streaming rows for large trees:

>>> from distree import iter_distance_rows
>>> labels, rows = iter_distance_rows(tree, metric='lmm', midpoint=True)
>>> for label, row in rows:
...     handle(label, row)
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Main classes
from ._tree import Tree
from ._lca import AncestorIndex
from ._reroot import midpoint_root
from ._newick import NewickNode, parse_newick
from ._distance import (
    METRICS,
    DistanceEngine,
    DistanceMatrix,
    DistanceOptions,
    distance_matrix,
    iter_distance_rows,
)

# Exceptions
from ._exceptions import EmptyTreeError, NewickParseError, TreeStructureError

# Context managers (user-facing utilities)
from ._context import suppress_logger, quiet, use_backend

# Output helpers
from ._output import format_value, write_tsv

# Backend names
from ._backend import get_available_backends

# Public API
__all__ = [
    # Main classes
    "Tree",
    "AncestorIndex",
    "DistanceEngine",
    "DistanceMatrix",
    "DistanceOptions",
    "NewickNode",
    # Functions
    "distance_matrix",
    "iter_distance_rows",
    "midpoint_root",
    "parse_newick",
    "METRICS",
    # Exceptions
    "EmptyTreeError",
    "NewickParseError",
    "TreeStructureError",
    # Context managers
    "suppress_logger",
    "quiet",
    "use_backend",
    # Output
    "format_value",
    "write_tsv",
    # Backend names
    "get_available_backends",
    # Version info
    "__version__",
]
