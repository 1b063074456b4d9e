"""
Vault assignment and per-vault tallies.
"""
from .assignment import (
    MAX_VAULTS,
    VaultAssigner,
    VaultTally,
    assign_vault,
    sha256_assign,
    tally_vaults,
    vault_count_for,
)

__all__ = [
    "MAX_VAULTS",
    "VaultAssigner",
    "VaultTally",
    "assign_vault",
    "sha256_assign",
    "tally_vaults",
    "vault_count_for",
]
