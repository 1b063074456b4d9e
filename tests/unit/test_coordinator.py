"""
Deployment Coordinator Unit Tests
Tests for orchestrator/coordinator.py
"""
import pytest

from core.store.schema import OBSERVED_MARKER
from orchestrator.coordinator import DeploymentCoordinator
from orchestrator.planner import DeployPlanner
from orchestrator.packer import TransactionPacker
from orchestrator.transmitter import BatchOutcome, BatchState


def _first_batch(store, ledger, campaign):
    plan = DeployPlanner(store, ledger).plan(campaign.fingerprint)
    return plan, TransactionPacker().pack(plan.operations)[0]


class TestRecordBatch:
    """Confirmed batches land in the store in one write."""

    def test_records_confirmed_batch(self, store, fake_ledger, persisted_campaign):
        _, batch = _first_batch(store, fake_ledger, persisted_campaign)
        outcome = BatchOutcome(batch=batch, state=BatchState.CONFIRMED, confirmation_id="sig-9")
        coordinator = DeploymentCoordinator(store, persisted_campaign.fingerprint)

        completions = coordinator.record_batch(outcome)

        assert [c.operation_key for c in completions] == batch.operation_keys
        assert coordinator.recorded == batch.operation_keys
        record = store.load_campaign(persisted_campaign.fingerprint)
        assert record.created_signature == "sig-9"
        log = store.deployment_log(persisted_campaign.fingerprint)
        assert log[0]["batch_index"] == batch.index
        assert log[0]["confirmation_id"] == "sig-9"

    def test_unconfirmed_refused(self, store, fake_ledger, persisted_campaign):
        _, batch = _first_batch(store, fake_ledger, persisted_campaign)
        coordinator = DeploymentCoordinator(store, persisted_campaign.fingerprint)
        with pytest.raises(ValueError, match="not confirmed"):
            coordinator.record_batch(BatchOutcome(batch=batch, state=BatchState.FAILED))
        assert store.deployment_log(persisted_campaign.fingerprint) == []

    def test_recorded_operations_leave_the_plan(self, store, fake_ledger, persisted_campaign):
        plan, batch = _first_batch(store, fake_ledger, persisted_campaign)
        DeploymentCoordinator(store, persisted_campaign.fingerprint).record_batch(
            BatchOutcome(batch=batch, state=BatchState.CONFIRMED, confirmation_id="sig")
        )
        replanned = DeployPlanner(store, fake_ledger).plan(persisted_campaign.fingerprint)
        assert set(batch.operation_keys).isdisjoint(replanned.keys)
        assert len(replanned) == len(plan) - len(batch)


class TestRecordObserved:
    """Live completions are recorded with the observed marker."""

    def test_observed(self, store, fake_ledger, persisted_campaign):
        plan = DeployPlanner(store, fake_ledger).plan(persisted_campaign.fingerprint)
        coordinator = DeploymentCoordinator(store, persisted_campaign.fingerprint)
        coordinator.record_observed(plan.operations[:1])
        record = store.load_campaign(persisted_campaign.fingerprint)
        assert record.created_signature == OBSERVED_MARKER
        assert store.deployment_log(persisted_campaign.fingerprint)[0]["confirmation_id"] is None

    def test_nothing_observed(self, store, persisted_campaign):
        coordinator = DeploymentCoordinator(store, persisted_campaign.fingerprint)
        assert coordinator.record_observed([]) == []
        assert coordinator.recorded == []
