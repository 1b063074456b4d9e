"""
Campaign Store Unit Tests
Tests for core/store/database.py

Atomic campaign writes, read-back of the desired state, claimant lookups
and deployment markers.
"""
import sqlite3

import pytest

from core.config.runtime import CompilerConfig
from core.crypto.hashing import to_hex
from core.merkle.claim_tree import ProofVerifier
from core.merkle.leaf import ClaimLeaf
from core.schemas.errors import (
    CampaignExistsException,
    CampaignNotFoundException,
    ErrorCodes,
    StoreException,
)
from core.store.database import CampaignStore
from core.store.records import CompletionRecord
from core.store.schema import OBSERVED_MARKER
from compiler.campaign_compiler import CampaignCompiler

from fixtures import make_compiled_campaign, make_inputs, make_key, make_params


class TestSaveAndLoad:
    """Campaign rows survive a round trip through SQLite."""

    def test_load_matches_compiled(self, store, persisted_campaign):
        record = store.load_campaign(persisted_campaign.fingerprint)
        assert record.fingerprint == persisted_campaign.fingerprint
        assert record.address == persisted_campaign.address
        assert record.admin == persisted_campaign.admin
        assert [c.name for c in record.cohorts] == ["early", "late"]
        for cohort in record.cohorts:
            compiled = persisted_campaign.cohort(cohort.name)
            assert cohort.root == compiled.root
            assert cohort.address == persisted_campaign.cohort_address(cohort.name)
            assert cohort.vault_count == len(cohort.vaults) == compiled.vault_count
            assert [v.required_funding for v in cohort.vaults] == [
                v.required_funding for v in compiled.vaults
            ]

    def test_nothing_marked_after_compile(self, store, persisted_campaign):
        record = store.load_campaign(persisted_campaign.fingerprint)
        assert not record.created and not record.activated
        assert all(not c.created for c in record.cohorts)
        assert all(not v.created and not v.funded for c in record.cohorts for v in c.vaults)

    def test_u64_values_survive(self, store):
        """Values above the signed 64-bit range round-trip through TEXT columns."""
        compiler = CampaignCompiler(CompilerConfig(claimants_per_vault=2))
        campaign = compiler.compile(
            make_inputs({"big": [2**63, 1]}, amount="1"),
            make_params(total_budget=str(2**64 - 1)),
        )
        store.save_campaign(campaign)
        record = store.load_campaign(campaign.fingerprint)
        assert record.cohorts[0].total_entitlements == 2**63 + 1

    def test_duplicate_refused(self, store, persisted_campaign):
        with pytest.raises(CampaignExistsException) as exc:
            store.save_campaign(persisted_campaign)
        assert exc.value.code == ErrorCodes.CAMPAIGN_EXISTS

    def test_unknown_fingerprint(self, store):
        with pytest.raises(CampaignNotFoundException):
            store.load_campaign(b"\x00" * 32)

    def test_list_and_has(self, store, persisted_campaign):
        assert store.list_campaigns() == [persisted_campaign.fingerprint_hex]
        assert store.has_campaign(persisted_campaign.fingerprint)
        assert not store.has_campaign(b"\x01" * 32)

    def test_file_backed_store_reopens(self, tmp_path):
        path = tmp_path / "campaigns.db"
        with CampaignStore(path) as first:
            campaign = make_compiled_campaign(first)
        with CampaignStore(path) as second:
            assert second.has_campaign(campaign.fingerprint)

    def test_unsupported_schema_version(self, tmp_path):
        path = tmp_path / "future.db"
        CampaignStore(path).close()
        conn = sqlite3.connect(path)
        conn.execute("UPDATE schema_version SET version = 99")
        conn.commit()
        conn.close()
        with pytest.raises(StoreException):
            CampaignStore(path)


class TestClaimantEntries:
    """Per-claimant lookups carry proofs that verify."""

    def test_entries_verify(self, store, persisted_campaign):
        cohort = persisted_campaign.cohort("early")
        leaf = cohort.tree.leaves[0]
        entries = store.get_claimant_entries(persisted_campaign.fingerprint, leaf.claimant)
        assert len(entries) == 1
        entry = entries[0]
        assert entry.cohort == "early"
        assert entry.entitlements == leaf.entitlements
        rebuilt = ClaimLeaf(entry.claimant, entry.vault_index, entry.entitlements)
        assert ProofVerifier.verify(cohort.root, rebuilt, entry.proof)

    def test_unknown_claimant(self, store, persisted_campaign):
        assert store.get_claimant_entries(persisted_campaign.fingerprint, make_key("nobody")) == []


class TestCompletions:
    """Markers and the deployment log."""

    def test_record_sets_markers(self, store, persisted_campaign):
        fp = persisted_campaign.fingerprint
        store.record_completions(
            fp,
            [
                CompletionRecord("campaign", "create_campaign", confirmation_id="sig-1"),
                CompletionRecord("cohort:early", "create_cohort", cohort="early", confirmation_id="sig-1"),
                CompletionRecord("vault:early:0", "create_vault", cohort="early", vault_index=0),
            ],
            batch_index=0,
        )
        record = store.load_campaign(fp)
        assert record.created_signature == "sig-1"
        early = record.cohorts[0]
        assert early.created_signature == "sig-1"
        assert early.vaults[0].created_signature == OBSERVED_MARKER
        assert not early.vaults[0].funded

        log = store.deployment_log(fp)
        assert [row["operation_key"] for row in log] == [
            "campaign", "cohort:early", "vault:early:0",
        ]
        assert log[0]["batch_index"] == 0
        assert log[2]["confirmation_id"] is None

    def test_first_record_wins(self, store, persisted_campaign):
        fp = persisted_campaign.fingerprint
        store.record_completions(fp, [CompletionRecord("campaign", "create_campaign", confirmation_id="a")])
        store.record_completions(fp, [CompletionRecord("campaign", "create_campaign", confirmation_id="b")])
        assert store.load_campaign(fp).created_signature == "a"
        assert len(store.deployment_log(fp)) == 1

    def test_unknown_kind_rolls_back(self, store, persisted_campaign):
        fp = persisted_campaign.fingerprint
        with pytest.raises(StoreException):
            store.record_completions(
                fp,
                [
                    CompletionRecord("campaign", "create_campaign", confirmation_id="a"),
                    CompletionRecord("x", "launch_rocket"),
                ],
            )
        assert not store.load_campaign(fp).created
        assert store.deployment_log(fp) == []

    def test_status(self, store, persisted_campaign):
        fp = persisted_campaign.fingerprint
        status = store.deployment_status(fp)
        assert status.fingerprint == to_hex(fp)
        assert status.cohorts_total == 2
        assert status.vaults_total == sum(c.vault_count for c in persisted_campaign.cohorts)
        assert status.vaults_created == 0
        assert status.operations_logged == 0
        assert not status.complete

        store.record_completions(
            fp,
            [
                CompletionRecord("campaign", "create_campaign", confirmation_id="a"),
                CompletionRecord("campaign:activate", "activate_campaign", confirmation_id="b"),
            ],
        )
        status = store.deployment_status(fp)
        assert status.campaign_created and status.complete
        assert status.operations_logged == 2
        assert status.last_recorded_at is not None
