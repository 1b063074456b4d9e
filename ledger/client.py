"""
Ledger Access Layer

The only ledger capabilities the deployment pipeline consumes:

- fetch a current sequencing token
- submit a signed batch
- poll a submission for confirmation
- query whether an account exists, its balance and activation flag

Everything else about the ledger is out of scope.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from core.crypto.identity import PublicKey


class SubmissionStatus(str, Enum):
    """Ledger-side status of a submitted batch."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchStatusResult:
    status: SubmissionStatus
    confirmation_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class AccountState:
    """Live state of one account."""
    exists: bool
    balance: int = 0
    active: bool = False


MISSING_ACCOUNT = AccountState(exists=False)


class SignedBatch(BaseModel):
    """A batch message bound to one sequencing token and signed."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    batch_index: int = Field(..., ge=0)
    sequencing_token: str = Field(..., min_length=1)
    message: str = Field(..., description="Canonical JSON of the batch")
    signer: str = Field(..., description="Base58 public key of the signer")
    signature: str = Field(..., description="Hex signature over message")


class Signer(Protocol):
    """Signs batch messages. Keys are supplied and held by the caller."""

    @property
    def public_key(self) -> PublicKey:
        ...

    def sign(self, message: bytes) -> bytes:
        ...


class LedgerClient(ABC):
    """
    Abstract ledger interface.

    Implementations raise LedgerException; `retryable` tells the
    transmitter whether another attempt can help.
    """

    @abstractmethod
    def get_sequencing_token(self) -> str:
        """A fresh token; batches bound to older tokens eventually expire."""

    @abstractmethod
    def submit_batch(self, batch: SignedBatch) -> str:
        """Submit a signed batch and return its submission id."""

    @abstractmethod
    def get_batch_status(self, submission_id: str) -> BatchStatusResult:
        """Current status of a submission."""

    @abstractmethod
    def get_account(self, address: PublicKey) -> AccountState:
        """Live state of an account; MISSING_ACCOUNT if it does not exist."""


__all__ = [
    "AccountState",
    "BatchStatusResult",
    "LedgerClient",
    "MISSING_ACCOUNT",
    "SignedBatch",
    "Signer",
    "SubmissionStatus",
]
