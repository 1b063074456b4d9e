"""
Module 02 - Claim Trees
Narrow and wide cohort trees behind one interface.

Module ID: M02

This module provides class-based interfaces:
- TreeKind: the shape tag (narrow / wide)
- ClaimProof: a shape-tagged proof, serializable to JSON for the store
- ClaimTree: a built cohort tree with lazily extracted per-leaf proofs
- ProofVerifier: verifies any ClaimProof against a root

Everything downstream of the tree builder handles ClaimTree / ClaimProof
only and never branches on the shape.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from core.crypto.hashing import HASH_SIZE, from_hex, to_hex
from core.crypto.identity import PublicKey
from core.merkle.leaf import ClaimLeaf
from core.merkle.merkle_tree import (
    build_levels,
    compute_root,
    compute_tree_depth,
    proof_from_levels,
)
from core.merkle.wide_tree import (
    build_wide_levels,
    compute_wide_depth,
    compute_wide_root,
    wide_proof_from_levels,
)
from core.schemas.errors import TreeConstructionException


class TreeKind(str, Enum):
    """Tree shape tag persisted with every cohort."""
    NARROW = "narrow"
    WIDE = "wide"


@dataclass(frozen=True)
class ClaimProof:
    """
    Shape-tagged membership proof.

    `path` holds one tuple of sibling hashes per level, bottom-up. For a
    narrow proof every tuple has exactly one hash; for a wide proof a
    tuple has 0..255 hashes.
    """
    kind: TreeKind
    path: tuple[tuple[bytes, ...], ...]

    def __len__(self) -> int:
        return len(self.path)

    @property
    def hash_count(self) -> int:
        return sum(len(level) for level in self.path)

    def to_json_obj(self) -> list[Any]:
        """narrow: ["0x..", ...]; wide: [["0x..", ...], ...]"""
        if self.kind is TreeKind.NARROW:
            return [to_hex(level[0]) for level in self.path]
        return [[to_hex(h) for h in level] for level in self.path]

    @classmethod
    def from_json_obj(cls, kind: TreeKind | str, data: list[Any]) -> "ClaimProof":
        kind = TreeKind(kind)
        if kind is TreeKind.NARROW:
            path = tuple((from_hex(h),) for h in data)
        else:
            path = tuple(tuple(from_hex(h) for h in level) for level in data)
        return cls(kind=kind, path=path)


class ProofVerifier:
    """
    Verifies claim proofs for either tree shape.

    Example:
        >>> proof = tree.proof(3)
        >>> ProofVerifier.verify(tree.root, tree.leaves[3], proof)
        True
    """

    @staticmethod
    def compute_root(leaf_hash: bytes, proof: ClaimProof) -> bytes:
        if proof.kind is TreeKind.NARROW:
            for level in proof.path:
                if len(level) != 1:
                    raise ValueError("Narrow proof levels carry exactly one sibling")
            return compute_root(leaf_hash, [level[0] for level in proof.path])
        return compute_wide_root(leaf_hash, proof.path)

    @staticmethod
    def verify_hash(root: bytes, leaf_hash: bytes, proof: ClaimProof) -> bool:
        """Verify an already-hashed leaf."""
        if len(root) != HASH_SIZE:
            return False
        try:
            return ProofVerifier.compute_root(leaf_hash, proof) == root
        except ValueError:
            return False

    @staticmethod
    def verify(root: bytes, leaf: ClaimLeaf, proof: ClaimProof) -> bool:
        """Recompute the leaf hash and fold it through the proof."""
        return ProofVerifier.verify_hash(root, leaf.hash(), proof)


class ClaimTree:
    """
    A cohort's tree. The root is fixed at construction; membership or
    amount changes require building a new tree.
    """

    def __init__(self, kind: TreeKind | str, leaves: Sequence[ClaimLeaf]) -> None:
        self._kind = TreeKind(kind)
        if not leaves:
            raise TreeConstructionException("Cannot build a claim tree with zero leaves")

        seen: dict[PublicKey, int] = {}
        for i, leaf in enumerate(leaves):
            if leaf.claimant in seen:
                raise TreeConstructionException(
                    f"Duplicate claimant {leaf.claimant} in claim tree",
                    details={"claimant": str(leaf.claimant), "indexes": [seen[leaf.claimant], i]},
                )
            seen[leaf.claimant] = i

        self._leaves = tuple(leaves)
        self._positions = seen
        hashes = [leaf.hash() for leaf in self._leaves]
        if self._kind is TreeKind.NARROW:
            self._levels = build_levels(hashes)
        else:
            self._levels = build_wide_levels(hashes)

    @property
    def kind(self) -> TreeKind:
        return self._kind

    @property
    def root(self) -> bytes:
        return self._levels[-1][0]

    @property
    def leaves(self) -> tuple[ClaimLeaf, ...]:
        return self._leaves

    @property
    def leaf_hashes(self) -> list[bytes]:
        return list(self._levels[0])

    @property
    def depth(self) -> int:
        """Levels above the leaves; the longest proof in this tree."""
        return len(self._levels) - 1

    def __len__(self) -> int:
        return len(self._leaves)

    def index_of(self, claimant: PublicKey) -> int:
        try:
            return self._positions[claimant]
        except KeyError:
            raise KeyError(f"Claimant {claimant} is not in this tree") from None

    def proof(self, index: int) -> ClaimProof:
        """Extract the proof for the leaf at `index`."""
        if index < 0 or index >= len(self._leaves):
            raise IndexError(f"Leaf index {index} out of range for {len(self._leaves)} leaves")

        if self._kind is TreeKind.NARROW:
            narrow = proof_from_levels(self._levels, index)
            path = tuple((sibling,) for sibling in narrow.siblings)
        else:
            wide = wide_proof_from_levels(self._levels, index)
            path = tuple(tuple(siblings) for siblings in wide.sibling_sets)
        return ClaimProof(kind=self._kind, path=path)

    def proof_for(self, claimant: PublicKey) -> ClaimProof:
        return self.proof(self.index_of(claimant))

    def verify(self, leaf: ClaimLeaf, proof: ClaimProof) -> bool:
        return ProofVerifier.verify(self.root, leaf, proof)


def build_claim_tree(leaves: Sequence[ClaimLeaf], kind: TreeKind | str) -> ClaimTree:
    """
    Build a cohort tree with leaves ordered by claimant bytes.

    Input order never affects the root or proofs.
    """
    return ClaimTree(kind, sorted(leaves, key=lambda leaf: leaf.claimant.raw))


def max_proof_depth(num_leaves: int, kind: TreeKind | str) -> int:
    """Proof depth for a cohort of the given size, without building it."""
    if TreeKind(kind) is TreeKind.NARROW:
        return compute_tree_depth(num_leaves)
    return compute_wide_depth(num_leaves)


__all__ = [
    "TreeKind",
    "ClaimProof",
    "ClaimTree",
    "ProofVerifier",
    "build_claim_tree",
    "max_proof_depth",
]
