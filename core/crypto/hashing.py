"""
Module 02 - Hashing Utilities
Domain-separated hashing for claim trees and campaign commitments.

This module provides:
- SHA-256 hashing for raw bytes
- Leaf / internal-node hashing with domain separation prefixes
- Campaign fingerprint aggregation over cohort roots
- Hex encoding/decoding with 0x prefix

Hashing Rules (Hard Contracts):
1. Leaf:      sha256(0x00 || leaf_bytes)
2. Internal:  sha256(0x01 || concat(sorted(children)))
3. Fingerprint: sha256(concat(sorted(cohort_roots)))

The two prefixes keep a leaf hash from ever being reinterpreted as an
internal node. Children are sorted before hashing, so verifiers only need
the flat list of siblings at each level, never a left/right flag.
"""
from __future__ import annotations

import hashlib
from typing import Any, Iterable, Sequence

from core.schemas.canonical import dumps_canonical


LEAF_PREFIX: bytes = b"\x00"
INTERNAL_PREFIX: bytes = b"\x01"

HASH_SIZE = 32

# Upper bound on children per internal node (wide trees)
MAX_CHILDREN = 256


def sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 hash of raw bytes.

    Args:
        data: Raw bytes to hash

    Returns:
        32-byte SHA-256 digest

    Example:
        >>> sha256(b"hello").hex()
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    return hashlib.sha256(data).digest()


def hash_canonical(obj: Any) -> bytes:
    """
    Hash an object using canonical JSON serialization.

    Used for operation identifiers and audit digests, never for claim
    leaves (those have a fixed binary encoding).
    """
    canonical_json = dumps_canonical(obj)
    return sha256(canonical_json.encode("utf-8"))


def hash_leaf(leaf_bytes: bytes) -> bytes:
    """
    Hash an encoded claim leaf with the leaf domain prefix.

    Args:
        leaf_bytes: Fixed-width leaf encoding

    Returns:
        32-byte digest of 0x00 || leaf_bytes
    """
    return sha256(LEAF_PREFIX + leaf_bytes)


def hash_internal(children: Sequence[bytes]) -> bytes:
    """
    Hash an internal node over 1..256 child hashes.

    Children are sorted lexicographically before concatenation, which
    makes the result independent of child order.

    Args:
        children: Child hashes (32 bytes each)

    Returns:
        32-byte digest of 0x01 || concat(sorted(children))

    Raises:
        ValueError: If there are no children or more than 256
    """
    if not children:
        raise ValueError("Cannot hash an internal node with no children")
    if len(children) > MAX_CHILDREN:
        raise ValueError(
            f"Too many children for an internal node: {len(children)} (max {MAX_CHILDREN})"
        )
    return sha256(INTERNAL_PREFIX + b"".join(sorted(children)))


def hash_pair(left: bytes, right: bytes) -> bytes:
    """Internal node over exactly two children (narrow trees)."""
    return hash_internal((left, right))


def campaign_fingerprint(cohort_roots: Iterable[bytes]) -> bytes:
    """
    Aggregate cohort roots into the campaign fingerprint.

    Roots are sorted ascending before concatenation so the fingerprint
    does not depend on the order cohorts were declared.

    Raises:
        ValueError: If no roots are given
    """
    roots = sorted(cohort_roots)
    if not roots:
        raise ValueError("Cannot fingerprint a campaign without cohort roots")
    for root in roots:
        if len(root) != HASH_SIZE:
            raise ValueError(f"Cohort root must be {HASH_SIZE} bytes, got {len(root)}")
    return sha256(b"".join(roots))


def to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string with 0x prefix.

    Example:
        >>> to_hex(bytes.fromhex("deadbeef"))
        '0xdeadbeef'
    """
    return "0x" + data.hex()


def from_hex(hex_string: str) -> bytes:
    """
    Convert hexadecimal string (with 0x prefix) to bytes.

    Raises:
        ValueError: If string doesn't start with 0x, has odd length,
                   or contains invalid hex characters
    """
    if not hex_string.startswith("0x"):
        raise ValueError(
            f"Hex string must start with '0x' prefix, got: {hex_string[:10]}..."
        )

    hex_content = hex_string[2:]

    if len(hex_content) % 2 != 0:
        raise ValueError(
            f"Hex string must have even length after 0x prefix, "
            f"got length {len(hex_content)}"
        )

    try:
        return bytes.fromhex(hex_content)
    except ValueError as e:
        raise ValueError(f"Invalid hex characters in string: {e}") from e


__all__ = [
    "LEAF_PREFIX",
    "INTERNAL_PREFIX",
    "HASH_SIZE",
    "MAX_CHILDREN",
    "sha256",
    "hash_canonical",
    "hash_leaf",
    "hash_internal",
    "hash_pair",
    "campaign_fingerprint",
    "to_hex",
    "from_hex",
]
