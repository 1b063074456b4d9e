"""
Rows read back from the persisted store.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from core.crypto.identity import PublicKey
from core.merkle.claim_tree import ClaimProof, TreeKind


@dataclass(frozen=True)
class VaultRecord:
    cohort: str
    index: int
    address: PublicKey
    claimant_count: int
    entitlements: int
    required_funding: int
    created_signature: Optional[str] = None
    funded_signature: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.created_signature is not None

    @property
    def funded(self) -> bool:
        return self.funded_signature is not None


@dataclass(frozen=True)
class CohortRecord:
    name: str
    address: PublicKey
    root: bytes
    tree_kind: TreeKind
    amount_per_entitlement: Decimal
    amount_per_entitlement_base: Decimal
    share_percentage: Optional[Decimal]
    total_entitlements: int
    claimant_count: int
    vault_count: int
    dust: Decimal
    vaults: tuple[VaultRecord, ...] = ()
    created_signature: Optional[str] = None
    activated_signature: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.created_signature is not None

    @property
    def activated(self) -> bool:
        return self.activated_signature is not None


@dataclass(frozen=True)
class CampaignRecord:
    """Desired state of a persisted campaign plus its progress markers."""
    fingerprint: bytes
    address: PublicKey
    admin: PublicKey
    asset: PublicKey
    decimals: int
    total_budget: Decimal
    unallocated_budget: int
    created_at: str
    cohorts: tuple[CohortRecord, ...] = ()
    created_signature: Optional[str] = None
    activated_signature: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.created_signature is not None

    @property
    def activated(self) -> bool:
        return self.activated_signature is not None


@dataclass(frozen=True)
class ClaimantRecord:
    """One claimant's entry in one cohort, with its stored proof."""
    cohort: str
    claimant: PublicKey
    entitlements: int
    vault_index: int
    leaf_index: int
    proof: ClaimProof


@dataclass(frozen=True)
class CompletionRecord:
    """A completed deployment operation to persist."""
    operation_key: str
    kind: str
    cohort: Optional[str] = None
    vault_index: Optional[int] = None
    confirmation_id: Optional[str] = None


@dataclass
class DeploymentStatus:
    """Progress summary read from the store."""
    fingerprint: str
    campaign_created: bool = False
    campaign_activated: bool = False
    cohorts_total: int = 0
    cohorts_created: int = 0
    cohorts_activated: int = 0
    vaults_total: int = 0
    vaults_created: int = 0
    vaults_to_fund: int = 0
    vaults_funded: int = 0
    operations_logged: int = 0
    last_recorded_at: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.campaign_activated


__all__ = [
    "CampaignRecord",
    "ClaimantRecord",
    "CohortRecord",
    "CompletionRecord",
    "DeploymentStatus",
    "VaultRecord",
]
