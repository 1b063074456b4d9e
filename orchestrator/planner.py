"""
Deploy Planner

Computes the missing operations of a persisted campaign:

    desired  = the compiled campaign in the store
    actual   = store completion markers  UNION  live ledger state
    plan     = desired - actual, in dependency order

Live state is queried every time; nothing is cached between runs. An
operation found complete on the ledger but not in the store is returned
as `observed` so the caller can record it.

Re-running against a fully deployed campaign yields an empty plan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from core.crypto.hashing import to_hex
from core.crypto.identity import PublicKey
from core.schemas.errors import UnresolvableDependencyException
from core.store.database import CampaignStore
from core.store.records import CampaignRecord, CohortRecord, VaultRecord
from ledger.client import AccountState, LedgerClient
from orchestrator.operations import DeploymentOperation, OperationKind, operation_key

logger = logging.getLogger(__name__)


def _exists(state: AccountState) -> bool:
    return state.exists


def _is_active(state: AccountState) -> bool:
    return state.exists and state.active


@dataclass
class DeploymentPlan:
    """Ordered missing operations plus operations observed complete on the ledger."""
    fingerprint: bytes
    operations: list[DeploymentOperation] = field(default_factory=list)
    observed: list[DeploymentOperation] = field(default_factory=list)
    completed: set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def __len__(self) -> int:
        return len(self.operations)

    @property
    def keys(self) -> list[str]:
        return [op.key for op in self.operations]


def validate_dependencies(
    operations: Iterable[DeploymentOperation],
    completed: set[str],
) -> None:
    """
    Every dependency must be complete or planned earlier in the list.

    Raises:
        UnresolvableDependencyException: on the first violation
    """
    planned: set[str] = set()
    for op in operations:
        for dependency in op.depends_on:
            if dependency not in completed and dependency not in planned:
                raise UnresolvableDependencyException(op.key, dependency)
        planned.add(op.key)


class DeployPlanner:
    """
    Plans deployments for campaigns in a store against a live ledger.

    Example:
        planner = DeployPlanner(store, ledger_client)
        plan = planner.plan(fingerprint)
    """

    def __init__(self, store: CampaignStore, client: LedgerClient) -> None:
        self.store = store
        self.client = client

    def plan(self, fingerprint: bytes) -> DeploymentPlan:
        """
        Compute the remaining operations for a campaign.

        Raises:
            CampaignNotFoundException: No such campaign in the store
            UnresolvableDependencyException: The derived plan is inconsistent
            LedgerException: A live query failed
        """
        campaign = self.store.load_campaign(fingerprint)
        plan = DeploymentPlan(fingerprint=campaign.fingerprint)
        fp = to_hex(campaign.fingerprint)

        # Tier 0
        create_campaign = self._campaign_op(campaign, OperationKind.CREATE_CAMPAIGN, ())
        self._consider(plan, create_campaign, campaign.created, campaign.address)

        # Tiers 1-3
        vault_keys: dict[str, list[str]] = {}
        for cohort in campaign.cohorts:
            create_cohort = self._cohort_op(
                campaign, cohort, OperationKind.CREATE_COHORT, (create_campaign.key,)
            )
            self._consider(plan, create_cohort, cohort.created, cohort.address)

            keys: list[str] = []
            for vault in cohort.vaults:
                create_vault = self._vault_op(
                    cohort, vault, OperationKind.CREATE_VAULT, (create_cohort.key,)
                )
                live = self._consider(plan, create_vault, vault.created, vault.address)
                keys.append(create_vault.key)

                if vault.required_funding > 0:
                    keys.append(self._plan_funding(plan, cohort, vault, create_vault.key, live))
            vault_keys[cohort.name] = keys

        # Tier 4
        cohort_keys: list[str] = []
        for cohort in campaign.cohorts:
            activate_cohort = self._cohort_op(
                campaign, cohort, OperationKind.ACTIVATE_COHORT, tuple(vault_keys[cohort.name])
            )
            self._consider(
                plan,
                activate_cohort,
                cohort.activated,
                cohort.address,
                done_when=_is_active,
            )
            cohort_keys.append(activate_cohort.key)

        # Tier 5
        activate_campaign = self._campaign_op(
            campaign, OperationKind.ACTIVATE_CAMPAIGN, tuple(cohort_keys)
        )
        self._consider(
            plan,
            activate_campaign,
            campaign.activated,
            campaign.address,
            done_when=_is_active,
        )

        plan.operations.sort(key=lambda op: op.tier)
        validate_dependencies(plan.operations, plan.completed)

        logger.info(
            "Planned %d operations for campaign %s (%d complete, %d observed live)",
            len(plan.operations), fp, len(plan.completed), len(plan.observed),
        )
        return plan

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _consider(
        self,
        plan: DeploymentPlan,
        op: DeploymentOperation,
        marked: bool,
        address: PublicKey,
        done_when: Callable[[AccountState], bool] = _exists,
    ) -> Optional[AccountState]:
        """
        Classify one operation as completed, observed or planned.

        Returns the live account state when it was queried.
        """
        if marked:
            plan.completed.add(op.key)
            return None

        state = self.client.get_account(address)
        done = done_when(state)
        if done:
            plan.completed.add(op.key)
            plan.observed.append(op)
        else:
            plan.operations.append(op)
        return state

    def _plan_funding(
        self,
        plan: DeploymentPlan,
        cohort: CohortRecord,
        vault: VaultRecord,
        create_key: str,
        live: Optional[AccountState],
    ) -> str:
        """
        Plan a vault funding for whatever the live balance still lacks.

        A vault whose balance already covers its requirement is observed
        complete, so a funding that landed but was never recorded is not
        sent twice.
        """
        key = operation_key(OperationKind.FUND_VAULT, cohort.name, vault.index)
        if vault.funded:
            plan.completed.add(key)
            return key

        state = live if live is not None else self.client.get_account(vault.address)
        shortfall = vault.required_funding - (state.balance if state.exists else 0)
        op = self._vault_op(cohort, vault, OperationKind.FUND_VAULT, (create_key,), shortfall)
        if shortfall <= 0:
            plan.completed.add(key)
            plan.observed.append(op)
        else:
            plan.operations.append(op)
        return key

    @staticmethod
    def _campaign_op(
        campaign: CampaignRecord,
        kind: OperationKind,
        depends_on: tuple[str, ...],
    ) -> DeploymentOperation:
        fp = to_hex(campaign.fingerprint)
        data: dict = {"fingerprint": fp}
        if kind is OperationKind.CREATE_CAMPAIGN:
            data.update({
                "admin": str(campaign.admin),
                "asset": str(campaign.asset),
                "cohort_count": len(campaign.cohorts),
            })
        return DeploymentOperation(
            key=operation_key(kind, fp),
            kind=kind,
            target=str(campaign.address),
            data=data,
            depends_on=depends_on,
        )

    @staticmethod
    def _cohort_op(
        campaign: CampaignRecord,
        cohort: CohortRecord,
        kind: OperationKind,
        depends_on: tuple[str, ...],
    ) -> DeploymentOperation:
        data: dict = {"campaign": str(campaign.address)}
        if kind is OperationKind.CREATE_COHORT:
            data.update({
                "root": to_hex(cohort.root),
                "tree_kind": cohort.tree_kind.value,
                "amount_per_entitlement": cohort.amount_per_entitlement_base,
                "vault_count": cohort.vault_count,
            })
        return DeploymentOperation(
            key=operation_key(kind, cohort.name),
            kind=kind,
            target=str(cohort.address),
            cohort=cohort.name,
            data=data,
            depends_on=depends_on,
        )

    @staticmethod
    def _vault_op(
        cohort: CohortRecord,
        vault: VaultRecord,
        kind: OperationKind,
        depends_on: tuple[str, ...],
        amount: Optional[int] = None,
    ) -> DeploymentOperation:
        data: dict = {"cohort": str(cohort.address), "vault_index": vault.index}
        if kind is OperationKind.FUND_VAULT:
            data["amount"] = str(amount if amount is not None else vault.required_funding)
        return DeploymentOperation(
            key=operation_key(kind, cohort.name, vault.index),
            kind=kind,
            target=str(vault.address),
            cohort=cohort.name,
            vault_index=vault.index,
            data=data,
            depends_on=depends_on,
        )


__all__ = ["DeployPlanner", "DeploymentPlan", "validate_dependencies"]
