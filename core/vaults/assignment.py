"""
Module 03 - Vault Assignment
Deterministic, stateless mapping of claimants to a cohort's vaults.

The default assigner reads the first 8 bytes of sha256(claimant) as a
little-endian u64 and reduces it modulo the vault count. It depends only
on (claimant, vault_count), so compile, audit and verification all agree.

The assigner is pluggable: anything matching `VaultAssigner` can be passed
to the compiler. Per-vault counts are always tallied from the actual
assignments, never assumed from uniformity.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from core.crypto.hashing import sha256
from core.crypto.identity import PublicKey
from core.merkle.leaf import U8_MAX


MAX_VAULTS = U8_MAX


class VaultAssigner(Protocol):
    """Maps a claimant to a vault index in [0, vault_count)."""

    def __call__(self, claimant: PublicKey, vault_count: int) -> int:
        ...


def sha256_assign(claimant: PublicKey, vault_count: int) -> int:
    """
    Default assigner: u64_le(sha256(claimant)[:8]) % vault_count.

    Raises:
        ValueError: If vault_count is outside 1..255
    """
    if not 1 <= vault_count <= MAX_VAULTS:
        raise ValueError(f"vault_count must be within 1..{MAX_VAULTS}, got {vault_count}")
    digest = sha256(claimant.raw)
    return int.from_bytes(digest[:8], "little") % vault_count


assign_vault: VaultAssigner = sha256_assign


def vault_count_for(claimant_count: int, claimants_per_vault: int) -> int:
    """
    Number of vaults for a cohort: ceil(claimants / claimants_per_vault).

    The caller enforces the upper bound, since it knows which cohort
    overflowed.
    """
    if claimant_count < 1:
        raise ValueError("A cohort needs at least one claimant")
    if claimants_per_vault < 1:
        raise ValueError("claimants_per_vault must be at least 1")
    return -(-claimant_count // claimants_per_vault)


@dataclass
class VaultTally:
    """Actual load of one vault."""
    index: int
    claimant_count: int = 0
    entitlements: int = 0


def tally_vaults(
    assignments: Iterable[tuple[int, int]],
    vault_count: int,
) -> list[VaultTally]:
    """
    Count claimants and entitlements per vault.

    Args:
        assignments: (vault_index, entitlements) per claimant
        vault_count: Number of vaults; empty vaults still get a tally

    Raises:
        ValueError: If an index is outside [0, vault_count)
    """
    tallies = [VaultTally(index=i) for i in range(vault_count)]
    for vault_index, entitlements in assignments:
        if not 0 <= vault_index < vault_count:
            raise ValueError(
                f"Vault index {vault_index} out of range for {vault_count} vaults"
            )
        tally = tallies[vault_index]
        tally.claimant_count += 1
        tally.entitlements += entitlements
    return tallies


__all__ = [
    "MAX_VAULTS",
    "VaultAssigner",
    "VaultTally",
    "assign_vault",
    "sha256_assign",
    "tally_vaults",
    "vault_count_for",
]
