"""
Compiled campaign structures.

In-memory result of a compile. These carry built ClaimTrees, so they are
plain dataclasses rather than pydantic models; the store flattens them
into rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Optional

from core.crypto.hashing import to_hex
from core.crypto.identity import PublicKey, campaign_address, cohort_address, vault_address
from core.merkle.claim_tree import ClaimProof, ClaimTree, TreeKind
from core.merkle.leaf import ClaimLeaf
from compiler.funding import CohortFunding


@dataclass(frozen=True)
class CompiledVault:
    """One vault of a cohort with its actual tallied load."""
    index: int
    claimant_count: int
    entitlements: int
    required_funding: int


@dataclass(frozen=True)
class CompiledCohort:
    """A cohort after tree construction and funding."""
    name: str
    tree: ClaimTree
    funding: CohortFunding
    vaults: tuple[CompiledVault, ...]
    share_percentage: Optional[Decimal] = None

    @property
    def root(self) -> bytes:
        return self.tree.root

    @property
    def tree_kind(self) -> TreeKind:
        return self.tree.kind

    @property
    def vault_count(self) -> int:
        return len(self.vaults)

    @property
    def claimant_count(self) -> int:
        return len(self.tree)

    @property
    def amount_per_entitlement(self) -> Decimal:
        return self.funding.amount_per_entitlement

    @property
    def total_entitlements(self) -> int:
        return self.funding.total_entitlements

    @property
    def total_funding(self) -> int:
        return self.funding.total_funding

    @property
    def dust(self) -> Decimal:
        return self.funding.dust

    def claims(self) -> Iterator[tuple[int, ClaimLeaf, ClaimProof]]:
        """(leaf_index, leaf, proof) for every claimant, in tree order."""
        for index, leaf in enumerate(self.tree.leaves):
            yield index, leaf, self.tree.proof(index)


@dataclass(frozen=True)
class CompiledCampaign:
    """
    A fully compiled campaign. The fingerprint is computed once, here,
    and never recomputed for a persisted campaign.
    """
    fingerprint: bytes
    admin: PublicKey
    asset: PublicKey
    decimals: int
    total_budget: Decimal
    unallocated_budget: int
    cohorts: tuple[CompiledCohort, ...]
    created_at: datetime
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def fingerprint_hex(self) -> str:
        return to_hex(self.fingerprint)

    @property
    def address(self) -> PublicKey:
        return campaign_address(self.admin, self.fingerprint)

    def cohort(self, name: str) -> CompiledCohort:
        for cohort in self.cohorts:
            if cohort.name == name:
                return cohort
        raise KeyError(f"Unknown cohort {name!r}")

    def cohort_address(self, name: str) -> PublicKey:
        return cohort_address(self.address, self.cohort(name).root)

    def vault_address(self, name: str, index: int) -> PublicKey:
        return vault_address(self.cohort_address(name), index)

    @property
    def total_funding(self) -> int:
        return sum(cohort.total_funding for cohort in self.cohorts)


__all__ = [
    "CompiledCampaign",
    "CompiledCohort",
    "CompiledVault",
]
