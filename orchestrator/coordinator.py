"""
Deployment Coordinator

Durably records completed operations in the store. A confirmed batch is
written in one transaction before the pipeline moves past it, so a crash
loses at most the batch in flight. Recovery is a fresh planning pass,
never a replay of the log.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from core.crypto.hashing import to_hex
from core.store.database import CampaignStore
from core.store.records import CompletionRecord
from orchestrator.operations import DeploymentOperation
from orchestrator.transmitter import BatchOutcome

logger = logging.getLogger(__name__)


def _completion(op: DeploymentOperation, confirmation_id: str | None) -> CompletionRecord:
    return CompletionRecord(
        operation_key=op.key,
        kind=op.kind.value,
        cohort=op.cohort,
        vault_index=op.vault_index,
        confirmation_id=confirmation_id,
    )


class DeploymentCoordinator:
    """Writes batch completions for one campaign."""

    def __init__(self, store: CampaignStore, fingerprint: bytes) -> None:
        self.store = store
        self.fingerprint = fingerprint
        self._lock = threading.Lock()
        self.recorded: list[str] = []

    def record_batch(self, outcome: BatchOutcome) -> list[CompletionRecord]:
        """
        Record every operation of a confirmed batch.

        Raises:
            ValueError: the batch is not confirmed
            StoreException: the store write failed
        """
        if not outcome.confirmed:
            raise ValueError(f"Batch {outcome.batch.index} is not confirmed ({outcome.state.value})")

        completions = [
            _completion(op, outcome.confirmation_id) for op in outcome.batch.operations
        ]
        with self._lock:
            self.store.record_completions(
                self.fingerprint, completions, batch_index=outcome.batch.index
            )
            self.recorded.extend(c.operation_key for c in completions)

        logger.info(
            "Recorded batch %d for campaign %s: %d operations, confirmation %s",
            outcome.batch.index,
            to_hex(self.fingerprint)[:16],
            len(completions),
            outcome.confirmation_id,
        )
        return completions

    def record_observed(self, operations: Iterable[DeploymentOperation]) -> list[CompletionRecord]:
        """Record operations found complete on the ledger but missing locally."""
        completions = [_completion(op, None) for op in operations]
        if not completions:
            return []

        with self._lock:
            self.store.record_completions(self.fingerprint, completions)
            self.recorded.extend(c.operation_key for c in completions)

        logger.info(
            "Recorded %d operations observed on the ledger for campaign %s",
            len(completions), to_hex(self.fingerprint)[:16],
        )
        return completions


__all__ = ["DeploymentCoordinator"]
