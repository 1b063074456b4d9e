"""
Test fixtures package for claimforge tests.

This package provides factory functions and fakes for creating test objects.
Organized into layers:
- common.py: Identities, input rows, leaves and compiled campaigns
- fake_ledger.py: In-memory ledger, signer and clock with fault injection

Usage:
    from fixtures import make_inputs, make_params, FakeLedger

    def test_something():
        campaign = make_compiled_campaign(store)
        ledger = FakeLedger()
"""

from .common import (
    ADMIN,
    ASSET,
    FIXED_CREATED_AT,
    make_claimant_rows,
    make_cohort_row,
    make_compiled_campaign,
    make_inputs,
    make_key,
    make_keys,
    make_leaves,
    make_params,
)

from .fake_ledger import (
    FakeAccount,
    FakeClock,
    FakeLedger,
    FakeSigner,
)

__all__ = [
    # Common
    "ADMIN",
    "ASSET",
    "FIXED_CREATED_AT",
    "make_claimant_rows",
    "make_cohort_row",
    "make_compiled_campaign",
    "make_inputs",
    "make_key",
    "make_keys",
    "make_leaves",
    "make_params",
    # Fakes
    "FakeAccount",
    "FakeClock",
    "FakeLedger",
    "FakeSigner",
]
