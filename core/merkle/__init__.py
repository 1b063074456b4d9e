"""
Module 02 - Claim Leaves and Merkle Trees

This module provides:
- ClaimLeaf: fixed 41-byte claim encoding and its leaf hash
- Narrow (binary) tree: build_merkle_root / build_merkle_proof / verify_merkle_proof
- Wide (256-ary) tree: build_wide_root / build_wide_proof / verify_wide_proof
- ClaimTree / ClaimProof / ProofVerifier: shape-tagged cohort trees

Usage:
    from core.merkle import ClaimLeaf, TreeKind, build_claim_tree, ProofVerifier

    tree = build_claim_tree(leaves, TreeKind.WIDE)
    proof = tree.proof(0)
    assert ProofVerifier.verify(tree.root, tree.leaves[0], proof)
"""
from .leaf import LEAF_SIZE, U8_MAX, U64_MAX, ClaimLeaf

from .merkle_tree import (
    MerkleProof,
    build_levels,
    build_merkle_proof,
    build_merkle_root,
    compute_tree_depth,
    verify_merkle_proof,
)

from .wide_tree import (
    BRANCHING_FACTOR,
    WideProof,
    build_wide_levels,
    build_wide_proof,
    build_wide_root,
    compute_wide_depth,
    verify_wide_proof,
)

from .claim_tree import (
    ClaimProof,
    ClaimTree,
    ProofVerifier,
    TreeKind,
    build_claim_tree,
    max_proof_depth,
)


__all__ = [
    # Leaf
    "ClaimLeaf",
    "LEAF_SIZE",
    "U8_MAX",
    "U64_MAX",
    # Narrow
    "MerkleProof",
    "build_levels",
    "build_merkle_root",
    "build_merkle_proof",
    "verify_merkle_proof",
    "compute_tree_depth",
    # Wide
    "BRANCHING_FACTOR",
    "WideProof",
    "build_wide_levels",
    "build_wide_root",
    "build_wide_proof",
    "verify_wide_proof",
    "compute_wide_depth",
    # Tagged
    "TreeKind",
    "ClaimProof",
    "ClaimTree",
    "ProofVerifier",
    "build_claim_tree",
    "max_proof_depth",
]
