"""
Deployment Operations

A DeploymentOperation is one logical ledger write. Operations are created
by the planner, grouped into Batches by the packer, submitted by the
transmitter and recorded complete by the coordinator. Completion lives in
the store, keyed by the operation key; an operation with a recorded
completion is never planned again.

Dependency tiers (a batch never spans two tiers):

    0  create_campaign
    1  create_cohort      (registers with its campaign)
    2  create_vault       (registers with its cohort)
    3  fund_vault
    4  activate_cohort    (after every vault of the cohort is created and funded)
    5  activate_campaign  (after every cohort is activated)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.schemas.canonical import dumps_canonical


class OperationKind(str, Enum):
    CREATE_CAMPAIGN = "create_campaign"
    CREATE_COHORT = "create_cohort"
    CREATE_VAULT = "create_vault"
    FUND_VAULT = "fund_vault"
    ACTIVATE_COHORT = "activate_cohort"
    ACTIVATE_CAMPAIGN = "activate_campaign"


OPERATION_TIERS: dict[OperationKind, int] = {
    OperationKind.CREATE_CAMPAIGN: 0,
    OperationKind.CREATE_COHORT: 1,
    OperationKind.CREATE_VAULT: 2,
    OperationKind.FUND_VAULT: 3,
    OperationKind.ACTIVATE_COHORT: 4,
    OperationKind.ACTIVATE_CAMPAIGN: 5,
}


def operation_key(kind: OperationKind, *parts: Any) -> str:
    """Stable identifier, e.g. "fund_vault:airdrop:3"."""
    return ":".join([kind.value, *(str(p) for p in parts)])


class DeploymentOperation(BaseModel):
    """
    One ledger write.

    `target` is the account the operation creates or mutates; `data` is the
    instruction payload sent on the wire.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    key: str = Field(..., min_length=1)
    kind: OperationKind
    target: str = Field(..., description="Base58 account reference")
    cohort: Optional[str] = None
    vault_index: Optional[int] = Field(default=None, ge=0, le=255)
    data: dict[str, Any] = Field(default_factory=dict)
    depends_on: tuple[str, ...] = ()

    @property
    def tier(self) -> int:
        return OPERATION_TIERS[self.kind]

    def wire(self) -> dict[str, Any]:
        """What is actually sent to the ledger for this operation."""
        return {"kind": self.kind.value, "target": self.target, "data": self.data}

    def encoded_size(self) -> int:
        """UTF-8 bytes of the canonical wire form, plus one separator."""
        return len(dumps_canonical(self.wire()).encode("utf-8")) + 1


class Batch(BaseModel):
    """Operations submitted together. All share one tier."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    index: int = Field(..., ge=0)
    tier: int = Field(..., ge=0)
    operations: tuple[DeploymentOperation, ...]
    encoded_size: int = Field(..., ge=0)

    @property
    def operation_keys(self) -> list[str]:
        return [op.key for op in self.operations]

    def __len__(self) -> int:
        return len(self.operations)

    def message(self, fingerprint: str, sequencing_token: str) -> bytes:
        """Canonical bytes to sign for one submission attempt."""
        return dumps_canonical({
            "campaign": fingerprint,
            "sequencing_token": sequencing_token,
            "operations": [op.wire() for op in self.operations],
        }).encode("utf-8")


__all__ = [
    "Batch",
    "DeploymentOperation",
    "OPERATION_TIERS",
    "OperationKind",
    "operation_key",
]
