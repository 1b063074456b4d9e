"""
Eligibility Check

Looks up a claimant in a persisted campaign and re-verifies each stored
proof against the stored cohort root, the same way the on-chain verifier
would before authorizing a claim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.crypto.identity import PublicKey
from core.merkle.claim_tree import ClaimProof, ProofVerifier, TreeKind
from core.merkle.leaf import ClaimLeaf
from core.schemas.errors import MerkleVerificationException
from core.store.database import CampaignStore
from compiler.funding import claim_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Eligibility:
    """One cohort entitlement of a claimant."""
    cohort: str
    claimant: PublicKey
    entitlements: int
    vault_index: int
    vault_address: PublicKey
    amount_owed: int
    tree_kind: TreeKind
    proof: ClaimProof
    proof_valid: bool


def check_eligibility(
    store: CampaignStore,
    fingerprint: bytes,
    claimant: PublicKey,
    *,
    strict: bool = False,
) -> list[Eligibility]:
    """
    Every entitlement of `claimant` in the campaign, with proof status.

    Returns an empty list when the claimant is not part of the campaign.

    Raises:
        CampaignNotFoundException: No such fingerprint
        MerkleVerificationException: A stored proof does not verify (strict only)
    """
    campaign = store.load_campaign(fingerprint)
    cohorts = {cohort.name: cohort for cohort in campaign.cohorts}

    results = []
    for entry in store.get_claimant_entries(fingerprint, claimant):
        cohort = cohorts[entry.cohort]
        leaf = ClaimLeaf(
            claimant=entry.claimant,
            assigned_vault_index=entry.vault_index,
            entitlements=entry.entitlements,
        )
        valid = (
            entry.proof.kind is cohort.tree_kind
            and ProofVerifier.verify(cohort.root, leaf, entry.proof)
        )
        if not valid:
            logger.warning(
                "Stored proof for %s in cohort '%s' does not verify", claimant, entry.cohort
            )
            if strict:
                raise MerkleVerificationException(
                    f"Stored proof for {claimant} in cohort '{entry.cohort}' does not verify",
                    leaf_index=entry.leaf_index,
                    details={"cohort": entry.cohort, "claimant": str(claimant)},
                )
        results.append(
            Eligibility(
                cohort=entry.cohort,
                claimant=entry.claimant,
                entitlements=entry.entitlements,
                vault_index=entry.vault_index,
                vault_address=cohort.vaults[entry.vault_index].address,
                amount_owed=claim_amount(cohort.amount_per_entitlement_base, entry.entitlements),
                tree_kind=cohort.tree_kind,
                proof=entry.proof,
                proof_valid=valid,
            )
        )
    return results


__all__ = ["Eligibility", "check_eligibility"]
