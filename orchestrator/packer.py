"""
Transaction Packer

Partitions an ordered operation list into batches:

- greedy first-fit in list order, so operations are never reordered
- a batch holds operations of one dependency tier only
- overhead + sum(encoded sizes) <= max_batch_bytes
- len(batch) <= max_operations_per_batch

An operation that cannot fit into an empty batch is a planning error.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from core.config.runtime import PackerConfig
from core.schemas.errors import OperationTooLargeException, PlanningException
from orchestrator.operations import Batch, DeploymentOperation

logger = logging.getLogger(__name__)


class TransactionPacker:
    """
    Packs operations into size- and count-bounded batches.

    Example:
        packer = TransactionPacker(PackerConfig(max_batch_bytes=1232))
        batches = packer.pack(plan.operations)
    """

    def __init__(self, config: Optional[PackerConfig] = None) -> None:
        self.config = config or PackerConfig()
        if self.config.max_operations_per_batch < 1:
            raise ValueError("max_operations_per_batch must be at least 1")
        if self.config.batch_overhead_bytes >= self.config.max_batch_bytes:
            raise ValueError("batch_overhead_bytes must be below max_batch_bytes")

    @property
    def payload_limit(self) -> int:
        """Bytes available for operations in one batch."""
        return self.config.max_batch_bytes - self.config.batch_overhead_bytes

    def check_order(self, operations: Sequence[DeploymentOperation]) -> None:
        """
        Tiers must be nondecreasing and no operation may depend on one
        planned in its own or a later tier.

        Raises:
            PlanningException: on the first violation
        """
        tier_of: dict[str, int] = {op.key: op.tier for op in operations}
        previous = -1
        for op in operations:
            if op.tier < previous:
                raise PlanningException(
                    f"Operation {op.key} (tier {op.tier}) follows tier {previous}",
                    details={"operation_key": op.key, "tier": op.tier, "previous_tier": previous},
                )
            previous = op.tier
            for dependency in op.depends_on:
                dep_tier = tier_of.get(dependency)
                if dep_tier is not None and dep_tier >= op.tier:
                    raise PlanningException(
                        f"Operation {op.key} depends on {dependency} in tier {dep_tier}",
                        details={"operation_key": op.key, "dependency": dependency},
                    )

    def pack(self, operations: Sequence[DeploymentOperation]) -> list[Batch]:
        """
        Pack operations into batches with global sequential indices.

        Raises:
            PlanningException: operations out of dependency order
            OperationTooLargeException: one operation exceeds the batch limit
        """
        self.check_order(operations)

        limit = self.payload_limit
        for op in operations:
            size = op.encoded_size()
            if size > limit:
                raise OperationTooLargeException(
                    op.key, size + self.config.batch_overhead_bytes, self.config.max_batch_bytes
                )

        batches: list[Batch] = []
        current: list[DeploymentOperation] = []
        current_size = 0
        current_tier: Optional[int] = None

        def flush() -> None:
            nonlocal current, current_size
            if current:
                batches.append(Batch(
                    index=len(batches),
                    tier=current_tier,
                    operations=tuple(current),
                    encoded_size=self.config.batch_overhead_bytes + current_size,
                ))
            current = []
            current_size = 0

        for op in operations:
            size = op.encoded_size()
            fits = (
                op.tier == current_tier
                and current_size + size <= limit
                and len(current) < self.config.max_operations_per_batch
            )
            if not fits:
                flush()
                current_tier = op.tier
            current.append(op)
            current_size += size
        flush()

        logger.info("Packed %d operations into %d batches", len(operations), len(batches))
        return batches


def batches_by_tier(batches: Sequence[Batch]) -> list[list[Batch]]:
    """Group consecutive batches of the same tier, in order."""
    groups: list[list[Batch]] = []
    for batch in batches:
        if groups and groups[-1][0].tier == batch.tier:
            groups[-1].append(batch)
        else:
            groups.append([batch])
    return groups


__all__ = ["TransactionPacker", "batches_by_tier"]
