"""
Deployment Pipeline

Composes planner, packer, transmitter and coordinator:

    plan -> record observed -> pack -> transmit tier by tier -> record

Tiers run strictly in order. The batches of one tier are transmitted
concurrently, bounded by `max_concurrency`. Each confirmed batch is
recorded before its worker returns. After a tier finishes, any failed
batch stops the deployment; everything already recorded stays recorded,
and the next run plans only what is still missing.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Optional

from core.config.runtime import RuntimeConfig, get_default_config
from core.crypto.hashing import to_hex
from core.schemas.errors import BatchTransmissionException, DeploymentFailedException
from core.store.database import CampaignStore
from core.store.records import DeploymentStatus
from ledger.client import LedgerClient, Signer
from ledger.rpc import JsonRpcLedgerClient

from orchestrator.coordinator import DeploymentCoordinator
from orchestrator.operations import Batch
from orchestrator.packer import TransactionPacker, batches_by_tier
from orchestrator.planner import DeploymentPlan, DeployPlanner
from orchestrator.transmitter import BatchOutcome, TransactionTransmitter


logger = logging.getLogger(__name__)


# =============================================================================
# Result
# =============================================================================

@dataclass
class DeploymentResult:
    """Summary of one deployment run."""
    fingerprint: str
    dry_run: bool
    plan: DeploymentPlan
    batches: list[Batch] = field(default_factory=list)
    outcomes: list[BatchOutcome] = field(default_factory=list)
    failures: list[BatchTransmissionException] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def batches_sent(self) -> int:
        return len(self.outcomes)

    @property
    def operations_completed(self) -> int:
        return sum(len(o.batch) for o in self.outcomes)

    @property
    def operations_observed(self) -> int:
        return len(self.plan.observed)

    def summary(self) -> dict:
        return {
            "fingerprint": self.fingerprint,
            "dry_run": self.dry_run,
            "operations_planned": len(self.plan),
            "operations_observed": self.operations_observed,
            "batches_planned": len(self.batches),
            "batches_sent": self.batches_sent,
            "operations_completed": self.operations_completed,
            "failed_batches": [f.batch_index for f in self.failures],
        }


# =============================================================================
# Pipeline
# =============================================================================

class DeploymentPipeline:
    """
    Deploys persisted campaigns to the ledger.

    Usage:
        pipeline = DeploymentPipeline(store, client, signer)
        result = pipeline.deploy(fingerprint)

    Safe to re-run after any failure: each run re-derives the remaining
    work from the store and live ledger state.
    """

    def __init__(
        self,
        store: CampaignStore,
        client: LedgerClient,
        signer: Signer,
        config: Optional[RuntimeConfig] = None,
        *,
        transmitter: Optional[TransactionTransmitter] = None,
    ) -> None:
        """
        Args:
            store: Campaign store holding desired state and progress
            client: Ledger access
            signer: Signs every batch submission
            config: Runtime configuration (default: process default)
            transmitter: Pre-built transmitter (tests inject fake clocks here)
        """
        self.config = config or get_default_config()
        self.store = store
        self.client = client
        self.signer = signer
        self.planner = DeployPlanner(store, client)
        self.packer = TransactionPacker(self.config.packer)
        self.transmitter = transmitter or TransactionTransmitter(
            client, signer, self.config.transmitter
        )

    @classmethod
    def from_config(cls, config: RuntimeConfig, signer: Signer) -> "DeploymentPipeline":
        """Build a pipeline on the configured store path and JSON-RPC endpoint."""
        return cls(
            store=CampaignStore(config.store.path),
            client=JsonRpcLedgerClient(config.ledger),
            signer=signer,
            config=config,
        )

    def deploy(
        self,
        fingerprint: bytes,
        *,
        dry_run: bool = False,
        raise_on_failure: bool = True,
    ) -> DeploymentResult:
        """
        Deploy whatever is still missing for a campaign.

        Args:
            fingerprint: Campaign fingerprint
            dry_run: Plan and pack only; nothing is sent or recorded
            raise_on_failure: Raise DeploymentFailedException when a tier
                has failed batches (otherwise return them in the result)

        Raises:
            CampaignNotFoundException: Unknown campaign
            PlanningException: The plan cannot be packed
            DeploymentFailedException: A batch exhausted its retries
            StoreException: Recording progress failed
        """
        fp = to_hex(fingerprint)
        plan = self.planner.plan(fingerprint)
        coordinator = DeploymentCoordinator(self.store, fingerprint)

        if not dry_run:
            coordinator.record_observed(plan.observed)

        batches = self.packer.pack(plan.operations)
        result = DeploymentResult(fingerprint=fp, dry_run=dry_run, plan=plan, batches=batches)

        if dry_run:
            logger.info(
                "Dry run for %s: %d operations in %d batches",
                fp[:16], len(plan), len(batches),
            )
            return result
        if not batches:
            logger.info("Campaign %s is fully deployed", fp[:16])
            return result

        for tier_batches in batches_by_tier(batches):
            tier = tier_batches[0].tier
            logger.info("Tier %d: transmitting %d batches", tier, len(tier_batches))
            outcomes, failures = self._run_tier(tier_batches, coordinator, fp)
            result.outcomes.extend(outcomes)

            if failures:
                result.failures.extend(failures)
                logger.error(
                    "Tier %d: %d of %d batches failed; stopping",
                    tier, len(failures), len(tier_batches),
                )
                if raise_on_failure:
                    raise DeploymentFailedException(failures)
                break

        logger.info(
            "Deployment of %s finished: %d batches, %d operations",
            fp[:16], result.batches_sent, result.operations_completed,
        )
        return result

    def _run_tier(
        self,
        batches: list[Batch],
        coordinator: DeploymentCoordinator,
        fingerprint: str,
    ) -> tuple[list[BatchOutcome], list[BatchTransmissionException]]:
        outcomes: list[BatchOutcome] = []
        failures: list[BatchTransmissionException] = []
        workers = max(1, min(self.config.transmitter.max_concurrency, len(batches)))

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self._send, batch, coordinator, fingerprint) for batch in batches
            ]
            for future in as_completed(futures):
                try:
                    outcomes.append(future.result())
                except BatchTransmissionException as e:
                    failures.append(e)

        outcomes.sort(key=lambda o: o.batch.index)
        failures.sort(key=lambda f: f.batch_index)
        return outcomes, failures

    def _send(
        self,
        batch: Batch,
        coordinator: DeploymentCoordinator,
        fingerprint: str,
    ) -> BatchOutcome:
        outcome = self.transmitter.transmit(batch, fingerprint)
        coordinator.record_batch(outcome)
        return outcome

    def status(self, fingerprint: bytes) -> DeploymentStatus:
        """Deployment progress as recorded in the store."""
        return self.store.deployment_status(fingerprint)


__all__ = ["DeploymentPipeline", "DeploymentResult"]
