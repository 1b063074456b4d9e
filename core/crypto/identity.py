"""
Module 02 - Identities & Account References

Claimant, admin and asset identities are 32-byte public keys. They are
accepted as base58 text (the ledger's native form) or as 0x-prefixed hex,
and always displayed as base58.

Account references for the campaign, its cohorts and their vaults are
derived deterministically, so the deploy planner can query the ledger for
them without any stored state:

    campaign = sha256("campaign" || admin || fingerprint)
    cohort   = sha256("cohort"   || campaign || cohort_root)
    vault    = sha256("vault"    || cohort || u8(vault_index))
"""
from __future__ import annotations

from dataclasses import dataclass

import base58

from core.crypto.hashing import HASH_SIZE, from_hex, sha256


PUBKEY_SIZE = 32

CAMPAIGN_SEED = b"campaign"
COHORT_SEED = b"cohort"
VAULT_SEED = b"vault"


@dataclass(frozen=True, order=True)
class PublicKey:
    """A 32-byte identity. Ordering is by raw bytes."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != PUBKEY_SIZE:
            raise ValueError(
                f"Public key must be {PUBKEY_SIZE} bytes, got {len(self.raw)}"
            )

    @classmethod
    def parse(cls, text: str) -> "PublicKey":
        """
        Parse a base58 or 0x-hex encoded public key.

        Raises:
            ValueError: If the text is empty, malformed, or not 32 bytes
        """
        text = text.strip()
        if not text:
            raise ValueError("Public key is empty")
        if text.startswith("0x"):
            return cls(from_hex(text))
        try:
            raw = base58.b58decode(text)
        except ValueError as e:
            raise ValueError(f"Invalid base58 public key {text!r}: {e}") from e
        return cls(raw)

    def to_base58(self) -> str:
        return base58.b58encode(self.raw).decode("ascii")

    def __str__(self) -> str:
        return self.to_base58()


def campaign_address(admin: PublicKey, fingerprint: bytes) -> PublicKey:
    """Account reference of a campaign."""
    if len(fingerprint) != HASH_SIZE:
        raise ValueError("Fingerprint must be 32 bytes")
    return PublicKey(sha256(CAMPAIGN_SEED + admin.raw + fingerprint))


def cohort_address(campaign: PublicKey, cohort_root: bytes) -> PublicKey:
    """Account reference of a cohort within a campaign."""
    if len(cohort_root) != HASH_SIZE:
        raise ValueError("Cohort root must be 32 bytes")
    return PublicKey(sha256(COHORT_SEED + campaign.raw + cohort_root))


def vault_address(cohort: PublicKey, vault_index: int) -> PublicKey:
    """Account reference of one of a cohort's vaults."""
    if not 0 <= vault_index <= 255:
        raise ValueError(f"Vault index must fit in u8, got {vault_index}")
    return PublicKey(sha256(VAULT_SEED + cohort.raw + bytes([vault_index])))


__all__ = [
    "PUBKEY_SIZE",
    "PublicKey",
    "campaign_address",
    "cohort_address",
    "vault_address",
]
