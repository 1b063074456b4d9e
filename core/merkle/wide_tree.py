"""
Module 02 - Wide (256-ary) Merkle Tree

Each level is split into consecutive chunks of up to 256 nodes and every
chunk is hashed into one parent, including a trailing chunk of a single
node. A proof lists, per level, the other members of the node's chunk
(0..255 hashes). Verification folds:

    current = sha256(0x01 || concat(sorted([current] + siblings)))

Proof depth is ceil(log256 N): two levels cover 65,536 leaves and three
cover 16.7 million.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from core.crypto.hashing import MAX_CHILDREN, hash_internal


BRANCHING_FACTOR = MAX_CHILDREN


@dataclass(frozen=True)
class WideProof:
    """
    A wide-tree proof for a single leaf.

    Attributes:
        leaf: The leaf hash being proven
        index: The 0-based index of the leaf
        sibling_sets: Per level (bottom-up), the other hashes of the chunk
        root: The root this proof is against
    """
    leaf: bytes
    index: int
    sibling_sets: list[list[bytes]]
    root: bytes


def build_wide_levels(leaves: Sequence[bytes]) -> list[list[bytes]]:
    """
    Build every level of the wide tree, leaves first, root last.

    Raises:
        ValueError: If leaves is empty
    """
    if len(leaves) == 0:
        raise ValueError("Cannot build a Merkle tree with no leaves")

    levels: list[list[bytes]] = [list(leaves)]
    current = levels[0]
    while len(current) > 1:
        current = [
            hash_internal(current[i:i + BRANCHING_FACTOR])
            for i in range(0, len(current), BRANCHING_FACTOR)
        ]
        levels.append(current)
    return levels


def build_wide_root(leaves: Sequence[bytes]) -> bytes:
    return build_wide_levels(leaves)[-1][0]


def wide_proof_from_levels(levels: list[list[bytes]], index: int) -> WideProof:
    """Extract the proof for leaf `index` from precomputed levels."""
    leaves = levels[0]
    if index < 0 or index >= len(leaves):
        raise IndexError(f"Leaf index {index} out of range for {len(leaves)} leaves")

    sibling_sets: list[list[bytes]] = []
    current_index = index
    for level in levels[:-1]:
        chunk = current_index // BRANCHING_FACTOR
        start = chunk * BRANCHING_FACTOR
        members = level[start:start + BRANCHING_FACTOR]
        position = current_index - start
        sibling_sets.append(members[:position] + members[position + 1:])
        current_index = chunk

    return WideProof(
        leaf=leaves[index],
        index=index,
        sibling_sets=sibling_sets,
        root=levels[-1][0],
    )


def build_wide_proof(leaves: Sequence[bytes], index: int) -> WideProof:
    return wide_proof_from_levels(build_wide_levels(leaves), index)


def compute_wide_root(leaf: bytes, sibling_sets: Sequence[Sequence[bytes]]) -> bytes:
    current = leaf
    for siblings in sibling_sets:
        if len(siblings) >= BRANCHING_FACTOR:
            raise ValueError(
                f"Proof level has {len(siblings)} siblings (max {BRANCHING_FACTOR - 1})"
            )
        current = hash_internal([current, *siblings])
    return current


def verify_wide_proof(proof: WideProof) -> bool:
    """Verify a wide proof against its claimed root."""
    try:
        return compute_wide_root(proof.leaf, proof.sibling_sets) == proof.root
    except ValueError:
        return False


def compute_wide_depth(num_leaves: int) -> int:
    """Number of levels above the leaves. Returns 0 for a single leaf."""
    if num_leaves < 1:
        raise ValueError("Tree needs at least one leaf")
    depth = 0
    n = num_leaves
    while n > 1:
        n = -(-n // BRANCHING_FACTOR)
        depth += 1
    return depth


__all__ = [
    "BRANCHING_FACTOR",
    "WideProof",
    "build_wide_levels",
    "build_wide_root",
    "wide_proof_from_levels",
    "build_wide_proof",
    "compute_wide_root",
    "verify_wide_proof",
    "compute_wide_depth",
]
