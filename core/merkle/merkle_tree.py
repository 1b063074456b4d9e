"""
Module 02 - Narrow (Binary) Merkle Tree
Deterministic binary tree construction, proof generation, and verification.

Module ID: M02

Commitment Rules (Hard Contracts):
1. Leaves are already domain-hashed: sha256(0x00 || leaf_bytes)
2. Parent hashing: sha256(0x01 || min(a, b) || max(a, b))
3. Odd level: the last node is promoted unchanged to the next level and
   contributes no proof element at that level
4. Empty leaves: rejected
5. Single leaf: root = leaf (the leaf hash itself), proof = []

Because parents hash their children sorted, a proof is a flat list of
sibling hashes bottom-up with no left/right flags.

Proof length is at most ceil(log2 N).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from core.crypto.hashing import hash_pair


@dataclass(frozen=True)
class MerkleProof:
    """
    A binary Merkle proof for a single leaf.

    Attributes:
        leaf: The leaf hash being proven
        index: The 0-based index of the leaf in the leaf list
        siblings: Sibling hashes from bottom to top
        root: The Merkle root this proof is against
    """
    leaf: bytes
    index: int
    siblings: list[bytes]
    root: bytes

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"Leaf index must be non-negative, got {self.index}")


def build_levels(leaves: Sequence[bytes]) -> list[list[bytes]]:
    """
    Build every level of the tree, leaves first, root last.

    Raises:
        ValueError: If leaves is empty
    """
    if len(leaves) == 0:
        raise ValueError("Cannot build a Merkle tree with no leaves")

    levels: list[list[bytes]] = [list(leaves)]
    current = levels[0]
    while len(current) > 1:
        next_level = [
            hash_pair(current[i], current[i + 1])
            for i in range(0, len(current) - 1, 2)
        ]
        if len(current) % 2 == 1:
            next_level.append(current[-1])
        levels.append(next_level)
        current = next_level
    return levels


def build_merkle_root(leaves: Sequence[bytes]) -> bytes:
    """
    Build the binary Merkle root over leaf hashes.

    Example:
        >>> root = build_merkle_root([hash_leaf(b"a"), hash_leaf(b"b")])
        >>> len(root)
        32
    """
    return build_levels(leaves)[-1][0]


def proof_from_levels(levels: list[list[bytes]], index: int) -> MerkleProof:
    """Extract the proof for leaf `index` from precomputed levels."""
    leaves = levels[0]
    if index < 0 or index >= len(leaves):
        raise IndexError(f"Leaf index {index} out of range for {len(leaves)} leaves")

    siblings: list[bytes] = []
    current_index = index
    for level in levels[:-1]:
        sibling_index = current_index ^ 1
        # A promoted node has no sibling at this level
        if sibling_index < len(level):
            siblings.append(level[sibling_index])
        current_index //= 2

    return MerkleProof(
        leaf=leaves[index],
        index=index,
        siblings=siblings,
        root=levels[-1][0],
    )


def build_merkle_proof(leaves: Sequence[bytes], index: int) -> MerkleProof:
    """
    Generate a Merkle proof for the leaf at the given index.

    Raises:
        IndexError: If index is out of range
        ValueError: If leaves is empty
    """
    return proof_from_levels(build_levels(leaves), index)


def compute_root(leaf: bytes, siblings: Sequence[bytes]) -> bytes:
    """Fold a leaf hash through its siblings."""
    current = leaf
    for sibling in siblings:
        current = hash_pair(current, sibling)
    return current


def verify_merkle_proof(proof: MerkleProof) -> bool:
    """Verify a binary proof against its claimed root."""
    return compute_root(proof.leaf, proof.siblings) == proof.root


def compute_tree_depth(num_leaves: int) -> int:
    """
    Number of levels above the leaves, i.e. the longest possible proof.

    Returns 0 for a single leaf.
    """
    if num_leaves < 1:
        raise ValueError("Tree needs at least one leaf")
    depth = 0
    n = num_leaves
    while n > 1:
        n = (n + 1) // 2
        depth += 1
    return depth


__all__ = [
    "MerkleProof",
    "build_levels",
    "build_merkle_root",
    "proof_from_levels",
    "build_merkle_proof",
    "compute_root",
    "verify_merkle_proof",
    "compute_tree_depth",
]
