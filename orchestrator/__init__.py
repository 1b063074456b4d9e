"""
Deployment Orchestration

Turns a persisted campaign into ledger state, resumably.

Public API:
- DeploymentPipeline: plan, pack, transmit and record in one call
- DeploymentResult: Summary of one deployment run
- DeployPlanner / DeploymentPlan: Remaining operations for a campaign
- TransactionPacker: Size- and count-bounded batching
- TransactionTransmitter: Per-batch retry state machine
- DeploymentCoordinator: Durable completion records
"""

from orchestrator.coordinator import DeploymentCoordinator
from orchestrator.operations import (
    OPERATION_TIERS,
    Batch,
    DeploymentOperation,
    OperationKind,
    operation_key,
)
from orchestrator.packer import TransactionPacker, batches_by_tier
from orchestrator.pipeline import DeploymentPipeline, DeploymentResult
from orchestrator.planner import DeploymentPlan, DeployPlanner, validate_dependencies
from orchestrator.transmitter import (
    AttemptRecord,
    BatchOutcome,
    BatchState,
    TransactionTransmitter,
    backoff_delay,
)


__all__ = [
    # Pipeline
    "DeploymentPipeline",
    "DeploymentResult",
    # Planning
    "DeployPlanner",
    "DeploymentPlan",
    "validate_dependencies",
    "OperationKind",
    "OPERATION_TIERS",
    "DeploymentOperation",
    "Batch",
    "operation_key",
    # Packing
    "TransactionPacker",
    "batches_by_tier",
    # Transmission
    "TransactionTransmitter",
    "BatchState",
    "BatchOutcome",
    "AttemptRecord",
    "backoff_delay",
    # Recording
    "DeploymentCoordinator",
]
