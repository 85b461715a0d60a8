"""
tests/test_lca.py
=================
Pytest test suite for AncestorIndex (binary-lifting LCA and depth tables).

Reference trees (IDs in pre-order, root = 0):

  ((A:1,B:2):3,C:4);
      root=0  AB=1  A=2  B=3  C=4
      depth_length: 0 3 4 5 4      depth_edges: 0 1 2 2 1

  (A:1,(B:1,(C:1,(D:1,E:1):1):1):1);
      root=0 A=1 BCDE=2 B=3 CDE=4 C=5 DE=6 D=7 E=8
"""

import itertools
import os
import sys

import numpy as np
import pytest

_TREES_DIR = os.path.join(os.path.dirname(__file__), "trees")

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from distree._exceptions import TreeStructureError
from distree._lca import AncestorIndex
from distree._tree import Tree


def load_tree(filename: str) -> Tree:
    path = os.path.join(_TREES_DIR, filename)
    with open(path) as fh:
        return Tree(fh.read().strip())


def naive_lca(tree: Tree, u: int, v: int) -> int:
    """LCA by walking parent links; independent of the jump table."""
    ancestors = set()
    x = u
    while x != -1:
        ancestors.add(x)
        x = tree.parent[x]
    x = v
    while x not in ancestors:
        x = tree.parent[x]
    return x


@pytest.fixture(scope="module")
def three_leaf():
    tree = load_tree("three_leaf.tree")
    return tree, AncestorIndex(tree)


@pytest.fixture(scope="module")
def caterpillar():
    tree = load_tree("caterpillar_5leaf.tree")
    return tree, AncestorIndex(tree)


@pytest.fixture(scope="module", params=[
    "three_leaf.tree",
    "balanced_4leaf.tree",
    "caterpillar_5leaf.tree",
    "asymmetric_4leaf.tree",
    "multifurcating_6leaf.tree",
])
def indexed(request):
    tree = load_tree(request.param)
    return tree, AncestorIndex(tree)


# ======================================================================== #
# 1. Tables                                                                 #
# ======================================================================== #


class TestTables:
    def test_levels(self, three_leaf):
        _, index = three_leaf
        # ceil(log2(5)) + 1
        assert index.n_levels == 4
        assert index.up.shape == (4, 5)
        assert index.up.dtype == np.int64

    def test_parent_level(self, three_leaf):
        _, index = three_leaf
        assert index.up[0].tolist() == [-1, 0, 1, 1, 0]
        assert index.up[1].tolist() == [-1, -1, 0, 0, -1]
        assert (index.up[2:] == -1).all()

    def test_depths(self, three_leaf):
        _, index = three_leaf
        assert index.depth_length.tolist() == [0.0, 3.0, 4.0, 5.0, 4.0]
        assert index.depth_edges.tolist() == [0, 1, 2, 2, 1]
        assert index.max_depth == 2

    def test_single_node(self):
        index = AncestorIndex(Tree("A;"))
        assert index.n_levels == 1
        assert index.up.tolist() == [[-1]]
        assert index.lca(0, 0) == 0

    def test_caterpillar_levels(self, caterpillar):
        _, index = caterpillar
        assert index.n_levels == 5
        assert index.max_depth == 4
        # E=8 jumps: parent DE, grandparent CDE, 4 up is the root
        assert index.up[0, 8] == 6
        assert index.up[1, 8] == 4
        assert index.up[2, 8] == 0
        assert index.up[3, 8] == -1

    def test_jump_composition(self, indexed):
        tree, index = indexed
        for k in range(1, index.n_levels):
            for u in range(tree.n_nodes):
                mid = index.up[k - 1, u]
                expected = -1 if mid < 0 else index.up[k - 1, mid]
                assert index.up[k, u] == expected

    def test_unreachable_node(self):
        tree = Tree("((A:1,B:2):3,C:4);")
        tree.children[0].remove(4)
        with pytest.raises(TreeStructureError, match="not reachable"):
            AncestorIndex(tree)


# ======================================================================== #
# 2. LCA queries                                                            #
# ======================================================================== #


class TestLCA:
    @pytest.mark.parametrize(
        "u, v, expected",
        [("D", "E", 6), ("A", "E", 0), ("C", "E", 4), ("B", "D", 2), ("E", "E", 8)],
    )
    def test_caterpillar_by_name(self, caterpillar, u, v, expected):
        _, index = caterpillar
        assert index.lca(u, v) == expected

    def test_ancestor_of_itself(self, caterpillar):
        _, index = caterpillar
        assert index.lca(8, 6) == 6
        assert index.lca(0, 7) == 0

    def test_matches_naive(self, indexed):
        tree, index = indexed
        for u, v in itertools.product(range(tree.n_nodes), repeat=2):
            assert index.lca(u, v) == naive_lca(tree, u, v)

    def test_symmetric(self, indexed):
        tree, index = indexed
        for u, v in itertools.combinations(range(tree.n_nodes), 2):
            assert index.lca(u, v) == index.lca(v, u)

    def test_depth_bound(self, indexed):
        tree, index = indexed
        de = index.depth_edges
        for u, v in itertools.combinations(range(tree.n_nodes), 2):
            m = index.lca(u, v)
            assert de[m] <= min(de[u], de[v])

    def test_row_matches_scalar(self, indexed):
        tree, index = indexed
        targets = np.arange(tree.n_nodes, dtype=np.int64)
        for u in range(tree.n_nodes):
            row = index.lca_row(u, targets)
            assert row.tolist() == [index.lca(u, v) for v in targets]

    def test_row_by_name(self, three_leaf):
        _, index = three_leaf
        assert index.lca_row("A", [2, 3, 4]).tolist() == [2, 1, 0]

    def test_unknown_name(self, three_leaf):
        _, index = three_leaf
        with pytest.raises(KeyError):
            index.lca("A", "Z")


# ======================================================================== #
# 3. Distances                                                              #
# ======================================================================== #


class TestDistances:
    @pytest.mark.parametrize(
        "u, v, expected", [("A", "B", 3.0), ("A", "C", 8.0), ("B", "C", 9.0)]
    )
    def test_branch_distance(self, three_leaf, u, v, expected):
        _, index = three_leaf
        assert index.branch_distance(u, v) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "u, v, expected", [("A", "B", 2), ("A", "C", 3), ("B", "C", 3), ("A", "A", 0)]
    )
    def test_edge_distance(self, three_leaf, u, v, expected):
        _, index = three_leaf
        assert index.edge_distance(u, v) == expected

    def test_balanced(self):
        tree = load_tree("balanced_4leaf.tree")
        index = AncestorIndex(tree)
        assert index.branch_distance("A", "C") == pytest.approx(1.5)
        assert index.branch_distance("C", "D") == pytest.approx(0.7)
        assert index.edge_distance("A", "D") == 4


# ======================================================================== #
# 4. Corrupted tables                                                       #
# ======================================================================== #


class TestCorruptTable:
    def test_scalar_raises(self, three_leaf):
        _, index = three_leaf
        up = index.up.copy()
        up[0, 1] = -1
        with pytest.raises(TreeStructureError):
            AncestorIndex._lca_core(2, 4, up, index.depth_edges)

    def test_row_raises(self, three_leaf):
        _, index = three_leaf
        up = index.up.copy()
        up[0, 1] = -1
        with pytest.raises(TreeStructureError):
            AncestorIndex._lca_row_core(
                2, np.array([3, 4], dtype=np.int64), up, index.depth_edges
            )
