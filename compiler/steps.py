"""
Compile Step Executor

Purpose: Keep compile steps composable and testable with minimal abstraction.

Provides:
- CompileStep: Protocol for individual compile steps
- CompileState: Dataclass holding intermediate results incrementally
- StepExecutor: Runner that executes steps in sequence

A step that raises stops the run. The executor records which step failed
and re-raises the original exception so callers see the typed error.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, Protocol

from core.config.runtime import CompilerConfig
from core.merkle.claim_tree import ClaimTree
from core.merkle.leaf import ClaimLeaf
from core.vaults.assignment import VaultTally
from compiler.funding import CohortFunding
from compiler.inputs import CampaignInputs, CampaignParameters, ClaimantRow

if TYPE_CHECKING:
    from compiler.models import CompiledCampaign

logger = logging.getLogger(__name__)


@dataclass
class CompileState:
    """
    Holds intermediate results as the compile progresses.

    Each step reads from and writes to this state. Per-cohort maps are
    keyed by cohort name.
    """

    # Input
    inputs: CampaignInputs
    params: CampaignParameters
    config: CompilerConfig = field(default_factory=CompilerConfig)

    # Step 1: validation
    groups: dict[str, list[ClaimantRow]] = field(default_factory=dict)

    # Step 2: vault counts
    vault_counts: dict[str, int] = field(default_factory=dict)

    # Step 3: assignment
    leaves: dict[str, list[ClaimLeaf]] = field(default_factory=dict)
    tallies: dict[str, list[VaultTally]] = field(default_factory=dict)

    # Step 4: trees
    trees: dict[str, ClaimTree] = field(default_factory=dict)

    # Step 5: fingerprint
    fingerprint: Optional[bytes] = None

    # Step 6: funding
    fundings: dict[str, CohortFunding] = field(default_factory=dict)
    unallocated_budget: Optional[int] = None

    # Step 7: result / persistence
    campaign: Optional["CompiledCampaign"] = None
    persisted: bool = False

    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


class CompileStep(Protocol):
    """A single named compile step."""

    @property
    def name(self) -> str:
        ...

    def run(self, state: CompileState) -> CompileState:
        ...


@dataclass
class FunctionStep:
    """
    Adapter to create a CompileStep from a plain function.

    Example:
        step = FunctionStep("validate", lambda s: validate(s))
    """

    _name: str
    _func: Callable[[CompileState], CompileState]

    @property
    def name(self) -> str:
        return self._name

    def run(self, state: CompileState) -> CompileState:
        return self._func(state)


class StepExecutor:
    """
    Runs CompileSteps in order, stopping at the first failure.

    Step results are kept as (step_name, success, error_message, seconds).
    """

    def __init__(self) -> None:
        self._step_results: list[tuple[str, bool, Optional[str], float]] = []

    def execute(self, steps: list[CompileStep], state: CompileState) -> CompileState:
        """
        Execute all steps in sequence.

        Raises:
            Exception: whatever the failing step raised, unchanged
        """
        self._step_results = []

        for step in steps:
            started = time.perf_counter()
            try:
                state = step.run(state)
            except Exception as e:
                elapsed = time.perf_counter() - started
                self._step_results.append((step.name, False, str(e), elapsed))
                logger.error("Compile step '%s' failed: %s", step.name, e)
                raise
            elapsed = time.perf_counter() - started
            self._step_results.append((step.name, True, None, elapsed))
            logger.debug("Compile step '%s' done in %.3fs", step.name, elapsed)

        return state

    @property
    def step_results(self) -> list[tuple[str, bool, Optional[str], float]]:
        return self._step_results.copy()

    def get_failed_steps(self) -> list[str]:
        return [name for name, success, _, _ in self._step_results if not success]

    def all_steps_succeeded(self) -> bool:
        return all(success for _, success, _, _ in self._step_results)


def make_step(name: str, func: Callable[[CompileState], CompileState]) -> CompileStep:
    """Convenience function to create a step from a function."""
    return FunctionStep(name, func)


__all__ = [
    "CompileState",
    "CompileStep",
    "FunctionStep",
    "StepExecutor",
    "make_step",
]
