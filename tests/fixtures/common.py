"""
Common test fixtures shared by all modules.

Provides factory functions for core claimforge data structures:
- PublicKey identities
- ClaimantRow / CohortRow / CampaignInputs / CampaignParameters
- ClaimLeaf lists
- Compiled and persisted campaigns

These are the foundational building blocks used by higher-level fixtures.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from core.config.runtime import CompilerConfig
from core.crypto.hashing import sha256
from core.crypto.identity import PublicKey
from core.merkle.leaf import ClaimLeaf
from core.store.database import CampaignStore
from compiler.campaign_compiler import CampaignCompiler
from compiler.inputs import CampaignInputs, CampaignParameters, ClaimantRow, CohortRow
from compiler.models import CompiledCampaign


FIXED_CREATED_AT = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Identities
# =============================================================================

def make_key(seed: int | str) -> PublicKey:
    """Deterministic 32-byte identity derived from a seed."""
    return PublicKey(sha256(f"claimforge-test-key:{seed}".encode("utf-8")))


def make_keys(count: int, prefix: str = "claimant") -> list[PublicKey]:
    return [make_key(f"{prefix}-{i}") for i in range(count)]


ADMIN = make_key("admin")
ASSET = make_key("asset")


# =============================================================================
# Input rows
# =============================================================================

def make_claimant_rows(
    cohort: str,
    entitlements: Sequence[int],
    keys: Optional[Sequence[PublicKey]] = None,
) -> list[ClaimantRow]:
    """One ClaimantRow per entitlement value."""
    keys = list(keys) if keys is not None else make_keys(len(entitlements), prefix=cohort)
    return [
        ClaimantRow(cohort=cohort, claimant=str(key), entitlements=count, line=i + 2)
        for i, (key, count) in enumerate(zip(keys, entitlements))
    ]


def make_cohort_row(
    cohort: str,
    amount: Optional[str] = "100",
    share: Optional[str] = None,
) -> CohortRow:
    return CohortRow(
        cohort=cohort,
        amount_per_entitlement=Decimal(amount) if amount is not None else None,
        share_percentage=Decimal(share) if share is not None else None,
    )


def make_inputs(cohorts: Optional[dict[str, Sequence[int]]] = None, amount: str = "100") -> CampaignInputs:
    """
    Build CampaignInputs from {cohort: [entitlements, ...]}.

    Defaults to two small cohorts.
    """
    if cohorts is None:
        cohorts = {"early": [2, 5, 1], "late": [3, 3, 3, 3]}
    claimants: list[ClaimantRow] = []
    for name, entitlements in cohorts.items():
        claimants.extend(make_claimant_rows(name, entitlements))
    return CampaignInputs(
        claimants=claimants,
        cohorts=[make_cohort_row(name, amount) for name in cohorts],
    )


def make_params(decimals: int = 0, total_budget: str = "1000000") -> CampaignParameters:
    return CampaignParameters(
        admin=str(ADMIN),
        asset=str(ASSET),
        decimals=decimals,
        total_budget=Decimal(total_budget),
    )


# =============================================================================
# Leaves
# =============================================================================

def make_leaves(count: int, vault_count: int = 1) -> list[ClaimLeaf]:
    """Leaves with distinct claimants and entitlements 1..count."""
    return [
        ClaimLeaf(claimant=key, assigned_vault_index=i % vault_count, entitlements=i + 1)
        for i, key in enumerate(make_keys(count))
    ]


# =============================================================================
# Compiled campaigns
# =============================================================================

def make_compiled_campaign(
    store: Optional[CampaignStore] = None,
    cohorts: Optional[dict[str, Sequence[int]]] = None,
    claimants_per_vault: int = 2,
    tree_kind: str = "wide",
    amount: str = "100",
) -> CompiledCampaign:
    """Compile (and persist when a store is given) a small campaign."""
    compiler = CampaignCompiler(
        CompilerConfig(claimants_per_vault=claimants_per_vault, tree_kind=tree_kind),
        store=store,
    )
    return compiler.compile(
        make_inputs(cohorts, amount=amount),
        make_params(),
        created_at=FIXED_CREATED_AT,
    )
