"""
Transaction Transmitter

Drives one batch through an explicit state machine:

    PENDING -> SUBMITTED -> CONFIRMED
                         -> FAILED

Every attempt fetches a fresh sequencing token and re-signs the batch
before submitting, then polls for confirmation until the per-attempt
timeout. A failed or timed-out attempt waits an exponential backoff with
jitter and goes back to PENDING. Exhausting `max_attempts`, or a
non-retryable ledger error, ends in FAILED and raises a
BatchTransmissionException scoped to that one batch.

Batches are independent: a transmitter never touches another batch's
outcome.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from core.config.runtime import TransmitterConfig
from core.schemas.errors import BatchTransmissionException, LedgerException
from ledger.client import LedgerClient, SignedBatch, Signer, SubmissionStatus
from orchestrator.operations import Batch

logger = logging.getLogger(__name__)


class BatchState(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class AttemptRecord:
    """What happened on one submission attempt."""
    attempt: int
    sequencing_token: Optional[str] = None
    submission_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BatchOutcome:
    """Terminal or in-flight state of one batch."""
    batch: Batch
    state: BatchState = BatchState.PENDING
    attempts: int = 0
    confirmation_id: Optional[str] = None
    history: list[AttemptRecord] = field(default_factory=list)

    @property
    def confirmed(self) -> bool:
        return self.state is BatchState.CONFIRMED

    @property
    def last_error(self) -> Optional[str]:
        for record in reversed(self.history):
            if record.error:
                return record.error
        return None


def backoff_delay(
    attempt: int,
    config: TransmitterConfig,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Delay before the attempt after `attempt` (1-based).

    min(max_delay, base * 2^(attempt-1)), scaled by a random factor in
    [1 - jitter, 1 + jitter].
    """
    delay = min(config.max_delay_s, config.base_delay_s * (2 ** (attempt - 1)))
    if config.jitter > 0:
        rng = rng or random.Random()
        delay *= 1 + rng.uniform(-config.jitter, config.jitter)
    return max(0.0, delay)


class TransactionTransmitter:
    """
    Submits batches with token refresh, re-signing and bounded retries.

    Usage:
        transmitter = TransactionTransmitter(client, signer, TransmitterConfig())
        outcome = transmitter.transmit(batch, fingerprint_hex)
    """

    def __init__(
        self,
        client: LedgerClient,
        signer: Signer,
        config: Optional[TransmitterConfig] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Args:
            client: Ledger access
            signer: Signs every attempt's message
            config: Retry, backoff and timeout policy
            sleep: Blocking wait (tests pass a fake)
            clock: Monotonic time source (tests pass a fake)
            rng: Jitter source
        """
        self.client = client
        self.signer = signer
        self.config = config or TransmitterConfig()
        if self.config.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()

    def transmit(self, batch: Batch, fingerprint: str) -> BatchOutcome:
        """
        Transmit one batch until it confirms or retries are exhausted.

        Args:
            batch: The batch to submit
            fingerprint: Hex campaign fingerprint bound into the message

        Returns:
            A CONFIRMED BatchOutcome

        Raises:
            BatchTransmissionException: the batch ended FAILED
        """
        outcome = BatchOutcome(batch=batch)
        max_attempts = self.config.max_attempts

        while outcome.state is BatchState.PENDING:
            outcome.attempts += 1
            record = AttemptRecord(attempt=outcome.attempts)
            outcome.history.append(record)
            logger.info(
                "Batch %d attempt %d/%d (%d operations)",
                batch.index, outcome.attempts, max_attempts, len(batch),
            )

            try:
                signed = self._sign(batch, fingerprint, record)
                record.submission_id = self.client.submit_batch(signed)
                outcome.state = BatchState.SUBMITTED
                outcome.confirmation_id = self._await_confirmation(record.submission_id)
                outcome.state = BatchState.CONFIRMED
            except LedgerException as e:
                record.error = e.message
                outcome.state = BatchState.PENDING
                logger.warning(
                    "Batch %d attempt %d failed: %s", batch.index, outcome.attempts, e.message
                )
                if not e.retryable or outcome.attempts >= max_attempts:
                    outcome.state = BatchState.FAILED
                else:
                    self._sleep(backoff_delay(outcome.attempts, self.config, self._rng))

        if outcome.state is BatchState.FAILED:
            logger.error(
                "Batch %d failed after %d attempts: %s",
                batch.index, outcome.attempts, outcome.last_error,
            )
            raise BatchTransmissionException(
                batch_index=batch.index,
                operation_keys=batch.operation_keys,
                attempts=outcome.attempts,
                last_error=outcome.last_error or "unknown error",
            )

        logger.info(
            "Batch %d confirmed as %s after %d attempt(s)",
            batch.index, outcome.confirmation_id, outcome.attempts,
        )
        return outcome

    def _sign(self, batch: Batch, fingerprint: str, record: AttemptRecord) -> SignedBatch:
        token = self.client.get_sequencing_token()
        record.sequencing_token = token
        message = batch.message(fingerprint, token)
        signature = self.signer.sign(message)
        return SignedBatch(
            batch_index=batch.index,
            sequencing_token=token,
            message=message.decode("utf-8"),
            signer=str(self.signer.public_key),
            signature=signature.hex(),
        )

    def _await_confirmation(self, submission_id: str) -> str:
        """
        Poll until the submission confirms.

        Raises:
            LedgerException: rejected by the ledger or not confirmed in time
        """
        deadline = self._clock() + self.config.confirmation_timeout_s
        while True:
            status = self.client.get_batch_status(submission_id)
            if status.status is SubmissionStatus.CONFIRMED:
                return status.confirmation_id or submission_id
            if status.status is SubmissionStatus.FAILED:
                raise LedgerException(
                    f"Submission {submission_id} rejected: {status.error or 'no reason given'}",
                    details={"submission_id": submission_id},
                )
            if self._clock() >= deadline:
                raise LedgerException(
                    f"Submission {submission_id} not confirmed within "
                    f"{self.config.confirmation_timeout_s}s",
                    details={"submission_id": submission_id},
                )
            self._sleep(self.config.poll_interval_s)


__all__ = [
    "AttemptRecord",
    "BatchOutcome",
    "BatchState",
    "TransactionTransmitter",
    "backoff_delay",
]
