"""
Core cryptographic utilities.

Module 02 provides domain-separated hashing and identity handling.
"""
from .hashing import (
    HASH_SIZE,
    INTERNAL_PREFIX,
    LEAF_PREFIX,
    MAX_CHILDREN,
    campaign_fingerprint,
    from_hex,
    hash_canonical,
    hash_internal,
    hash_leaf,
    hash_pair,
    sha256,
    to_hex,
)
from .identity import (
    PUBKEY_SIZE,
    PublicKey,
    campaign_address,
    cohort_address,
    vault_address,
)

__all__ = [
    "HASH_SIZE",
    "INTERNAL_PREFIX",
    "LEAF_PREFIX",
    "MAX_CHILDREN",
    "campaign_fingerprint",
    "from_hex",
    "hash_canonical",
    "hash_internal",
    "hash_leaf",
    "hash_pair",
    "sha256",
    "to_hex",
    "PUBKEY_SIZE",
    "PublicKey",
    "campaign_address",
    "cohort_address",
    "vault_address",
]
