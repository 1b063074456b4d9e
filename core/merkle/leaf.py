"""
Module 02 - Claim Leaf
The claim leaf and its fixed-width binary encoding.

Encoding (41 bytes, never changes shape):

    claimant              32 bytes
    assigned_vault_index   1 byte   (u8)
    entitlements           8 bytes  (u64, little-endian)

The on-chain verifier recomputes this encoding byte for byte, so it is
pinned by a golden-value test.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass

from core.crypto.hashing import hash_leaf
from core.crypto.identity import PUBKEY_SIZE, PublicKey


U8_MAX = 0xFF
U64_MAX = 0xFFFF_FFFF_FFFF_FFFF

LEAF_SIZE = PUBKEY_SIZE + 1 + 8

_TAIL = struct.Struct("<BQ")


@dataclass(frozen=True)
class ClaimLeaf:
    """
    One claim record within a cohort.

    Attributes:
        claimant: Identity entitled to the claim
        assigned_vault_index: Vault servicing this claimant (u8)
        entitlements: Number of entitlement units (> 0, u64)
    """

    claimant: PublicKey
    assigned_vault_index: int
    entitlements: int

    def __post_init__(self) -> None:
        if not 0 <= self.assigned_vault_index <= U8_MAX:
            raise ValueError(
                f"Vault index must fit in u8, got {self.assigned_vault_index}"
            )
        if self.entitlements <= 0:
            raise ValueError(f"Entitlements must be positive, got {self.entitlements}")
        if self.entitlements > U64_MAX:
            raise ValueError(f"Entitlements exceed u64: {self.entitlements}")

    def to_bytes(self) -> bytes:
        return self.claimant.raw + _TAIL.pack(self.assigned_vault_index, self.entitlements)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ClaimLeaf":
        if len(data) != LEAF_SIZE:
            raise ValueError(f"Leaf encoding must be {LEAF_SIZE} bytes, got {len(data)}")
        vault_index, entitlements = _TAIL.unpack(data[PUBKEY_SIZE:])
        return cls(PublicKey(data[:PUBKEY_SIZE]), vault_index, entitlements)

    def hash(self) -> bytes:
        """Domain-separated leaf hash: sha256(0x00 || to_bytes())."""
        return hash_leaf(self.to_bytes())


__all__ = [
    "ClaimLeaf",
    "LEAF_SIZE",
    "U8_MAX",
    "U64_MAX",
]
