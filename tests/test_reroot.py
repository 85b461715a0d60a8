"""
tests/test_reroot.py
====================
Pytest test suite for midpoint rooting.

Each test builds a fresh Tree, because rerooting edits the arena in place.

Worked example
--------------
  ((A:1,B:2):3,C:4);

  The diameter is B..C = 2 + 3 + 4 = 9, so the midpoint lies 4.5 from B,
  on the edge between AB and the old root, 0.5 below the old root.  The old
  root is left with the single child C and is spliced out:

      ((A:1.0,B:2.0):2.5,C:4.5);
"""

import os
import sys

import numpy as np
import pytest

_TREES_DIR = os.path.join(os.path.dirname(__file__), "trees")

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from distree._lca import AncestorIndex
from distree._reroot import midpoint_root
from distree._tree import Tree


def read_newick(filename: str) -> str:
    path = os.path.join(_TREES_DIR, filename)
    with open(path) as fh:
        return fh.read().strip()


def leaf_depths(tree: Tree) -> dict:
    """Branch-length depth of every named leaf, keyed by label."""
    index = AncestorIndex(tree)
    return {label: float(index.depth_length[u]) for label, u in tree.leaves()}


def pairwise(tree: Tree) -> np.ndarray:
    """Patristic matrix over the sorted named leaves."""
    index = AncestorIndex(tree)
    ids = [u for _, u in tree.leaves()]
    return np.array([[index.branch_distance(u, v) for v in ids] for u in ids])


FIXTURES = [
    "three_leaf.tree",
    "balanced_4leaf.tree",
    "caterpillar_5leaf.tree",
    "asymmetric_4leaf.tree",
    "multifurcating_6leaf.tree",
    "unary_root_2leaf.tree",
]


# ======================================================================== #
# 1. Worked examples                                                        #
# ======================================================================== #


class TestExamples:
    def test_three_leaf(self):
        tree = Tree("((A:1,B:2):3,C:4);")
        new_root = midpoint_root(tree)
        assert new_root == tree.root == 0
        assert tree.n_nodes == 5
        assert tree.to_newick() == "((A:1.0,B:2.0):2.5,C:4.5);"

    def test_three_leaf_depths(self):
        tree = Tree("((A:1,B:2):3,C:4);")
        tree.midpoint_root()
        depths = leaf_depths(tree)
        assert depths["A"] == pytest.approx(3.5)
        assert depths["B"] == pytest.approx(4.5)
        assert depths["C"] == pytest.approx(4.5)

    def test_caterpillar(self):
        tree = Tree(read_newick("caterpillar_5leaf.tree"))
        tree.midpoint_root()
        assert tree.n_nodes == 9
        assert (
            tree.to_newick()
            == "((C:1.0,(D:1.0,E:1.0):1.0):0.5,(B:1.0,A:2.0):0.5);"
        )

    def test_unary_root_is_removed(self):
        tree = Tree(read_newick("unary_root_2leaf.tree"))
        tree.midpoint_root()
        tree.validate()
        # No unnamed leaf carrying the old root edge is left behind.
        assert tree.n_nodes == 3
        assert tree.to_newick() == "(B:1.5,A:1.5);"

    def test_unary_chain_is_removed(self):
        tree = Tree("(((A:1,B:2):3):4);")
        tree.midpoint_root()
        tree.validate()
        assert tree.n_nodes == 3
        assert tree.to_newick() == "(B:1.5,A:1.5);"

    def test_unary_root_second_pass_is_stable(self):
        tree = Tree(read_newick("unary_root_2leaf.tree"))
        tree.midpoint_root()
        tree.midpoint_root()
        depths = leaf_depths(tree)
        assert depths["A"] == pytest.approx(1.5)
        assert depths["B"] == pytest.approx(1.5)
        assert all(
            tree.names[u] != "" for u in range(tree.n_nodes) if tree.is_leaf(u)
        )

    def test_trifurcating_root_is_kept(self):
        tree = Tree("(A:1,B:2,C:3);")
        tree.midpoint_root()
        # The old root keeps two children, so it stays as an internal node.
        assert tree.n_nodes == 5
        assert tree.to_newick() == "(C:2.5,(A:1.0,B:2.0):0.5);"

    def test_multifurcating(self):
        tree = Tree(read_newick("multifurcating_6leaf.tree"))
        tree.midpoint_root()
        depths = leaf_depths(tree)
        # Diameter C..E = 5 + 1 + 3 + 10 = 19.
        assert depths["C"] == pytest.approx(9.5)
        assert depths["E"] == pytest.approx(9.5)


# ======================================================================== #
# 2. Invariants                                                             #
# ======================================================================== #


class TestInvariants:
    @pytest.mark.parametrize("filename", FIXTURES)
    def test_structure_valid(self, filename):
        tree = Tree(read_newick(filename))
        tree.midpoint_root()
        tree.validate()
        assert tree.parent[tree.root] == -1
        assert tree.distance[tree.root] == 0.0

    @pytest.mark.parametrize("filename", FIXTURES)
    def test_distances_preserved(self, filename):
        before = Tree(read_newick(filename))
        after = Tree(read_newick(filename))
        after.midpoint_root()
        assert [label for label, _ in before.leaves()] == [
            label for label, _ in after.leaves()
        ]
        np.testing.assert_allclose(pairwise(after), pairwise(before))

    @pytest.mark.parametrize("filename", FIXTURES)
    def test_deepest_leaf_at_half_diameter(self, filename):
        tree = Tree(read_newick(filename))
        diameter = pairwise(tree).max()
        tree.midpoint_root()
        assert max(leaf_depths(tree).values()) == pytest.approx(diameter / 2)

    @pytest.mark.parametrize("filename", FIXTURES)
    def test_idempotent(self, filename):
        tree = Tree(read_newick(filename))
        tree.midpoint_root()
        first = leaf_depths(tree)
        n_nodes = tree.n_nodes
        tree.midpoint_root()
        second = leaf_depths(tree)
        assert tree.n_nodes == n_nodes
        for label, depth in first.items():
            assert second[label] == pytest.approx(depth)

    def test_no_unifurcations_introduced(self):
        tree = Tree("((A:1,B:2):3,C:4);")
        tree.midpoint_root()
        for u in range(tree.n_nodes):
            assert len(tree.children[u]) != 1

    def test_name_lookup_after_compaction(self):
        tree = Tree("((A:1,B:2):3,C:4);")
        assert tree._resolve_node("C") == 4
        tree.midpoint_root()
        assert tree.names[tree._resolve_node("C")] == "C"
        assert dict(tree.leaves())["C"] == tree._resolve_node("C")


# ======================================================================== #
# 3. Degenerate trees                                                       #
# ======================================================================== #


class TestDegenerate:
    def test_single_leaf(self):
        tree = Tree("A;")
        assert midpoint_root(tree) == 0
        assert tree.to_newick() == "A;"

    def test_single_leaf_under_root(self):
        tree = Tree("(A:1);")
        tree.midpoint_root()
        tree.validate()
        assert tree.n_nodes >= 2
        assert leaf_depths(tree)["A"] >= 0.0

    def test_two_leaves(self):
        tree = Tree("(A:1,B:3);")
        tree.midpoint_root()
        tree.validate()
        depths = leaf_depths(tree)
        assert depths["A"] == pytest.approx(2.0)
        assert depths["B"] == pytest.approx(2.0)

    def test_zero_lengths(self):
        tree = Tree("((A,B),C);")
        tree.midpoint_root()
        tree.validate()
        assert set(leaf_depths(tree).values()) == {0.0}
