"""
Module 02 - Wide Merkle Tree Unit Tests
Tests for core/merkle/wide_tree.py
"""
import pytest

from core.crypto.hashing import hash_internal, hash_leaf, sha256
from core.merkle.wide_tree import (
    BRANCHING_FACTOR,
    WideProof,
    build_wide_levels,
    build_wide_proof,
    build_wide_root,
    compute_wide_depth,
    compute_wide_root,
    verify_wide_proof,
)


def _leaves(n: int) -> list[bytes]:
    return [hash_leaf(i.to_bytes(4, "little")) for i in range(n)]


class TestWideStructure:
    """Chunking by 256 per level."""

    def test_single_leaf_root_is_leaf(self):
        leaf = hash_leaf(b"one")
        assert build_wide_root([leaf]) == leaf
        assert build_wide_proof([leaf], 0).sibling_sets == []

    def test_small_tree_is_one_node(self):
        """Up to 256 leaves hash into the root directly."""
        leaves = _leaves(5)
        assert build_wide_root(leaves) == hash_internal(leaves)

    def test_full_chunk(self):
        leaves = _leaves(BRANCHING_FACTOR)
        levels = build_wide_levels(leaves)
        assert len(levels) == 2
        assert levels[1] == [hash_internal(leaves)]

    def test_trailing_single_chunk_is_hashed(self):
        """257 leaves: the lone 257th leaf still gets its own parent hash."""
        leaves = _leaves(257)
        levels = build_wide_levels(leaves)
        assert levels[1] == [hash_internal(leaves[:256]), hash_internal([leaves[256]])]
        assert levels[2] == [hash_internal(levels[1])]

    def test_empty_raises(self):
        with pytest.raises(ValueError, match="no leaves"):
            build_wide_root([])


class TestWideProofs:
    """Proof extraction and verification."""

    @pytest.mark.parametrize("n", [1, 2, 3, 255, 256, 257, 600])
    def test_all_proofs_verify(self, n):
        leaves = _leaves(n)
        root = build_wide_root(leaves)
        # Every index for small trees, a spread of indexes for larger ones
        indexes = range(n) if n <= 300 else [0, 1, 255, 256, 511, 512, n - 1]
        for i in indexes:
            proof = build_wide_proof(leaves, i)
            assert proof.root == root
            assert verify_wide_proof(proof), f"proof {i} of {n} failed"

    def test_proof_levels_list_chunk_members(self):
        leaves = _leaves(10)
        proof = build_wide_proof(leaves, 4)
        assert len(proof.sibling_sets) == 1
        assert proof.sibling_sets[0] == leaves[:4] + leaves[5:]

    def test_lone_leaf_has_empty_level(self):
        """The 257th leaf has no chunk siblings at the bottom level."""
        leaves = _leaves(257)
        proof = build_wide_proof(leaves, 256)
        assert proof.sibling_sets[0] == []
        assert len(proof.sibling_sets[1]) == 1
        assert verify_wide_proof(proof)

    def test_tampered_sibling_fails(self):
        leaves = _leaves(20)
        proof = build_wide_proof(leaves, 3)
        sets = [list(level) for level in proof.sibling_sets]
        sets[0][0] = sha256(b"evil")
        assert not verify_wide_proof(WideProof(proof.leaf, proof.index, sets, proof.root))

    def test_dropped_sibling_fails(self):
        leaves = _leaves(20)
        proof = build_wide_proof(leaves, 3)
        sets = [list(level[1:]) for level in proof.sibling_sets]
        assert not verify_wide_proof(WideProof(proof.leaf, proof.index, sets, proof.root))

    def test_oversized_level_rejected(self):
        leaf = hash_leaf(b"x")
        siblings = [_leaves(BRANCHING_FACTOR)]
        with pytest.raises(ValueError, match="siblings"):
            compute_wide_root(leaf, siblings)
        assert not verify_wide_proof(WideProof(leaf, 0, siblings, leaf))


class TestWideDepth:
    """Tests for compute_wide_depth()."""

    @pytest.mark.parametrize(
        "n,depth",
        [(1, 0), (2, 1), (256, 1), (257, 2), (65536, 2), (65537, 3)],
    )
    def test_depth(self, n, depth):
        assert compute_wide_depth(n) == depth

    def test_depth_matches_levels(self):
        leaves = _leaves(600)
        assert len(build_wide_levels(leaves)) - 1 == compute_wide_depth(600)
