"""
Deploy Planner Unit Tests
Tests for orchestrator/planner.py

The plan is desired state minus (store markers UNION live ledger state),
in tier order. Live completions the store does not know about are
reported as observed.
"""
import pytest

from core.schemas.canonical import canonicalize_value
from core.schemas.errors import CampaignNotFoundException, UnresolvableDependencyException
from core.store.records import CompletionRecord
from orchestrator.operations import DeploymentOperation, OperationKind
from orchestrator.planner import DeployPlanner, validate_dependencies

from fixtures import FakeAccount, make_compiled_campaign


def _expected_count(campaign) -> int:
    vaults = [v for c in campaign.cohorts for v in c.vaults]
    funded = [v for v in vaults if v.required_funding > 0]
    return 1 + 2 * len(campaign.cohorts) + len(vaults) + len(funded) + 1


def _complete(store, plan):
    store.record_completions(
        plan.fingerprint,
        [
            CompletionRecord(op.key, op.kind.value, op.cohort, op.vault_index, "sig")
            for op in plan.operations
        ],
    )


class TestFreshPlan:
    """A campaign with nothing deployed."""

    def test_full_plan(self, store, fake_ledger, persisted_campaign):
        plan = DeployPlanner(store, fake_ledger).plan(persisted_campaign.fingerprint)
        assert len(plan) == _expected_count(persisted_campaign)
        assert plan.observed == []
        assert plan.completed == set()
        assert plan.operations[0].kind is OperationKind.CREATE_CAMPAIGN
        assert plan.operations[-1].kind is OperationKind.ACTIVATE_CAMPAIGN

    def test_tier_order(self, store, fake_ledger, persisted_campaign):
        plan = DeployPlanner(store, fake_ledger).plan(persisted_campaign.fingerprint)
        tiers = [op.tier for op in plan.operations]
        assert tiers == sorted(tiers)
        validate_dependencies(plan.operations, set())

    def test_fund_amounts(self, store, fake_ledger, persisted_campaign):
        plan = DeployPlanner(store, fake_ledger).plan(persisted_campaign.fingerprint)
        funds = [op for op in plan.operations if op.kind is OperationKind.FUND_VAULT]
        assert funds
        for op in funds:
            vault = persisted_campaign.cohort(op.cohort).vaults[op.vault_index]
            assert int(op.data["amount"]) == vault.required_funding > 0

    def test_targets_are_derived_addresses(self, store, fake_ledger, persisted_campaign):
        plan = DeployPlanner(store, fake_ledger).plan(persisted_campaign.fingerprint)
        by_kind = {op.kind: op for op in plan.operations}
        assert by_kind[OperationKind.CREATE_CAMPAIGN].target == str(persisted_campaign.address)
        cohort_op = by_kind[OperationKind.CREATE_COHORT]
        assert cohort_op.target == str(persisted_campaign.cohort_address(cohort_op.cohort))

    def test_activation_depends_on_vaults(self, store, fake_ledger, persisted_campaign):
        plan = DeployPlanner(store, fake_ledger).plan(persisted_campaign.fingerprint)
        activate = next(
            op for op in plan.operations
            if op.kind is OperationKind.ACTIVATE_COHORT and op.cohort == "early"
        )
        vault_ops = {
            op.key for op in plan.operations
            if op.cohort == "early" and op.kind in (OperationKind.CREATE_VAULT, OperationKind.FUND_VAULT)
        }
        assert set(activate.depends_on) == vault_ops

    def test_unknown_campaign(self, store, fake_ledger):
        with pytest.raises(CampaignNotFoundException):
            DeployPlanner(store, fake_ledger).plan(b"\x09" * 32)


class TestCohortPayload:
    """What create_cohort carries to the ledger."""

    def test_amount_is_whole_base_units(self, store, fake_ledger):
        campaign = make_compiled_campaign(store, cohorts={"a": [1, 2, 3]}, amount="2.75")
        plan = DeployPlanner(store, fake_ledger).plan(campaign.fingerprint)
        create = next(op for op in plan.operations if op.kind is OperationKind.CREATE_COHORT)
        assert canonicalize_value(create.data)["amount_per_entitlement"] == "2"
        funds = [op for op in plan.operations if op.kind is OperationKind.FUND_VAULT]
        assert sum(int(op.data["amount"]) for op in funds) == 12

    def test_zero_amount_plans_no_funding(self, store, fake_ledger):
        campaign = make_compiled_campaign(store, cohorts={"a": [1, 2, 3]}, amount="0")
        plan = DeployPlanner(store, fake_ledger).plan(campaign.fingerprint)
        kinds = [op.kind for op in plan.operations]
        assert OperationKind.FUND_VAULT not in kinds
        assert plan.observed == []
        activate = next(op for op in plan.operations if op.kind is OperationKind.ACTIVATE_COHORT)
        assert all(key.startswith("create_vault:") for key in activate.depends_on)


class TestIdempotence:
    """Re-planning after completion."""

    def test_recorded_campaign_plans_nothing(self, store, fake_ledger, persisted_campaign):
        planner = DeployPlanner(store, fake_ledger)
        _complete(store, planner.plan(persisted_campaign.fingerprint))
        plan = planner.plan(persisted_campaign.fingerprint)
        assert plan.is_empty
        assert plan.observed == []
        assert len(plan.completed) == _expected_count(persisted_campaign)

    def test_partially_recorded(self, store, fake_ledger, persisted_campaign):
        planner = DeployPlanner(store, fake_ledger)
        first = planner.plan(persisted_campaign.fingerprint)
        done = [op for op in first.operations if op.tier <= 1]
        store.record_completions(
            first.fingerprint,
            [CompletionRecord(op.key, op.kind.value, op.cohort, op.vault_index, "sig") for op in done],
        )
        second = planner.plan(persisted_campaign.fingerprint)
        assert second.operations[0].kind is OperationKind.CREATE_VAULT
        assert len(second) == len(first) - len(done)
        assert {op.key for op in done} <= second.completed


class TestLiveState:
    """Completions found on the ledger but not in the store."""

    def test_landed_but_unrecorded(self, store, fake_ledger, persisted_campaign):
        planner = DeployPlanner(store, fake_ledger)
        first = planner.plan(persisted_campaign.fingerprint)
        fake_ledger.apply_operations([op.wire() for op in first.operations])

        plan = planner.plan(persisted_campaign.fingerprint)
        assert plan.is_empty
        assert sorted(op.key for op in plan.observed) == sorted(first.keys)

    def test_existing_account_not_active(self, store, fake_ledger, persisted_campaign):
        """An account that exists but is not active still needs activation."""
        fake_ledger.accounts[str(persisted_campaign.address)] = FakeAccount()
        plan = DeployPlanner(store, fake_ledger).plan(persisted_campaign.fingerprint)
        kinds = [op.kind for op in plan.operations]
        assert OperationKind.CREATE_CAMPAIGN not in kinds
        assert OperationKind.ACTIVATE_CAMPAIGN in kinds
        assert [op.kind for op in plan.observed] == [OperationKind.CREATE_CAMPAIGN]

    def _funded_vault(self, campaign):
        for cohort in campaign.cohorts:
            for vault in cohort.vaults:
                if vault.required_funding > 1:
                    return cohort.name, vault
        raise AssertionError("no funded vault")

    def test_partial_balance_funds_shortfall(self, store, fake_ledger, persisted_campaign):
        name, vault = self._funded_vault(persisted_campaign)
        address = persisted_campaign.vault_address(name, vault.index)
        fake_ledger.accounts[str(address)] = FakeAccount(balance=vault.required_funding - 1)

        plan = DeployPlanner(store, fake_ledger).plan(persisted_campaign.fingerprint)
        fund = next(
            op for op in plan.operations
            if op.kind is OperationKind.FUND_VAULT and op.target == str(address)
        )
        assert fund.data["amount"] == "1"
        assert f"create_vault:{name}:{vault.index}" in {op.key for op in plan.observed}

    def test_covered_balance_observed(self, store, fake_ledger, persisted_campaign):
        name, vault = self._funded_vault(persisted_campaign)
        address = persisted_campaign.vault_address(name, vault.index)
        fake_ledger.accounts[str(address)] = FakeAccount(balance=vault.required_funding)

        plan = DeployPlanner(store, fake_ledger).plan(persisted_campaign.fingerprint)
        key = f"fund_vault:{name}:{vault.index}"
        assert key not in plan.keys
        assert key in {op.key for op in plan.observed}
        assert key in plan.completed


class TestValidateDependencies:
    """Dependency check over an ordered operation list."""

    def _op(self, key, depends_on=()):
        return DeploymentOperation(
            key=key, kind=OperationKind.CREATE_COHORT, target="x", depends_on=depends_on
        )

    def test_satisfied_by_earlier(self):
        validate_dependencies([self._op("a"), self._op("b", ("a",))], set())

    def test_satisfied_by_completed(self):
        validate_dependencies([self._op("b", ("a",))], {"a"})

    def test_later_dependency_fails(self):
        with pytest.raises(UnresolvableDependencyException):
            validate_dependencies([self._op("b", ("a",)), self._op("a")], set())
