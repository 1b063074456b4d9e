"""
Module 03 - Vault Assignment Unit Tests
Tests for core/vaults/assignment.py
"""
import hashlib

import pytest

from core.vaults.assignment import (
    MAX_VAULTS,
    VaultTally,
    assign_vault,
    sha256_assign,
    tally_vaults,
    vault_count_for,
)

from fixtures import make_key, make_keys


class TestSha256Assign:
    """Default assigner: u64 LE of sha256(claimant)[:8] mod vault_count."""

    def test_definition(self):
        key = make_key("alice")
        digest = hashlib.sha256(key.raw).digest()
        expected = int.from_bytes(digest[:8], "little") % 7
        assert sha256_assign(key, 7) == expected

    def test_default_is_sha256(self):
        assert assign_vault is sha256_assign

    def test_deterministic(self):
        key = make_key("bob")
        assert {assign_vault(key, 13) for _ in range(5)} == {assign_vault(key, 13)}

    def test_single_vault(self):
        assert all(assign_vault(k, 1) == 0 for k in make_keys(50))

    def test_in_range(self):
        for key in make_keys(200):
            assert 0 <= assign_vault(key, MAX_VAULTS) < MAX_VAULTS

    @pytest.mark.parametrize("count", [0, 256, -1])
    def test_bad_count_rejected(self, count):
        with pytest.raises(ValueError, match="vault_count"):
            assign_vault(make_key("x"), count)

    def test_approximately_uniform(self):
        """10,000 claimants over 10 vaults land within 20% of the mean."""
        counts = [0] * 10
        for key in make_keys(10_000):
            counts[assign_vault(key, 10)] += 1
        for count in counts:
            assert 800 <= count <= 1200, counts


class TestVaultCount:
    """ceil(claimants / claimants_per_vault)."""

    @pytest.mark.parametrize(
        "claimants,per_vault,expected",
        [(1, 200, 1), (200, 200, 1), (201, 200, 2), (1000, 3, 334), (7, 1, 7)],
    )
    def test_ceiling(self, claimants, per_vault, expected):
        assert vault_count_for(claimants, per_vault) == expected

    def test_zero_claimants_rejected(self):
        with pytest.raises(ValueError):
            vault_count_for(0, 10)

    def test_zero_per_vault_rejected(self):
        with pytest.raises(ValueError):
            vault_count_for(10, 0)


class TestTally:
    """Per-vault counts come from actual assignments."""

    def test_tally(self):
        tallies = tally_vaults([(0, 2), (1, 5), (0, 1)], 3)
        assert tallies == [
            VaultTally(index=0, claimant_count=2, entitlements=3),
            VaultTally(index=1, claimant_count=1, entitlements=5),
            VaultTally(index=2, claimant_count=0, entitlements=0),
        ]

    def test_out_of_range_index(self):
        with pytest.raises(ValueError, match="out of range"):
            tally_vaults([(3, 1)], 3)
