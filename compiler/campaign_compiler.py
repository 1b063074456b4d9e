"""
Campaign Compiler

Turns validated claimant and cohort rows into a compiled campaign:

    1. validate        referential integrity (cohorts exist, no duplicates)
    2. vault_counts    ceil(claimants / claimants_per_vault), at most 255
    3. assign_vaults   deterministic vault per claimant, tallied per vault
    4. build_trees     one narrow or wide tree per cohort
    5. fingerprint     sha256 over sorted cohort roots
    6. funding         fixed-point per-vault funding, dust, budget check
    7. assemble        CompiledCampaign
    8. persist         one store transaction (only when a store is given)

Any failing step aborts the compile with its typed exception. Persistence
is the last step, so a failed compile never leaves a campaign behind.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from core.config.runtime import CompilerConfig
from core.crypto.hashing import campaign_fingerprint, to_hex
from core.merkle.claim_tree import ClaimTree, TreeKind, build_claim_tree
from core.merkle.leaf import ClaimLeaf
from core.schemas.errors import TreeConstructionException, VaultLimitException
from core.store.database import CampaignStore
from core.vaults.assignment import VaultAssigner, assign_vault, tally_vaults, vault_count_for
from compiler.funding import (
    amount_from_share,
    check_budget,
    compute_cohort_funding,
    floor_to_precision,
)
from compiler.inputs import CampaignInputs, CampaignParameters, load_inputs
from compiler.models import CompiledCampaign, CompiledCohort, CompiledVault
from compiler.steps import CompileState, CompileStep, StepExecutor, make_step

logger = logging.getLogger(__name__)


class CampaignCompiler:
    """
    Compiles campaigns. Pure except for the final persist step.

    Example:
        compiler = CampaignCompiler(CompilerConfig(tree_kind="wide"), store=store)
        compiled = compiler.compile_files("claimants.csv", "cohorts.csv", params)
    """

    def __init__(
        self,
        config: Optional[CompilerConfig] = None,
        store: Optional[CampaignStore] = None,
        assigner: VaultAssigner = assign_vault,
    ) -> None:
        self.config = config or CompilerConfig()
        self.store = store
        self.assigner = assigner
        self._executor = StepExecutor()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def compile(
        self,
        inputs: CampaignInputs,
        params: CampaignParameters,
        *,
        persist: bool = True,
        created_at: Optional[datetime] = None,
    ) -> CompiledCampaign:
        """
        Compile a campaign.

        Args:
            inputs: Claimant and cohort rows
            params: Admin, asset, precision, budget
            persist: Save to the store (ignored when no store is configured)
            created_at: Creation time to record (defaults to now, UTC)

        Raises:
            InputValidationException: (and subclasses) bad rows or references
            VaultLimitException: A cohort needs more than max_vaults vaults
            TreeConstructionException: Two cohorts produce the same claim tree
            FundingArithmeticException: (and subclasses) overflow, rounding, budget
            CampaignExistsException: The fingerprint is already persisted
        """
        state = CompileState(inputs=inputs, params=params, config=self.config)
        steps = self.build_steps(
            persist=persist and self.store is not None,
            created_at=created_at or datetime.now(timezone.utc),
        )
        state = self._executor.execute(steps, state)
        assert state.campaign is not None
        logger.info(
            "Compiled campaign %s: %d cohorts, %d claimants, funding %d",
            state.campaign.fingerprint_hex,
            len(state.campaign.cohorts),
            sum(c.claimant_count for c in state.campaign.cohorts),
            state.campaign.total_funding,
        )
        return state.campaign

    def compile_files(
        self,
        claimants_path: str | Path,
        cohorts_path: str | Path,
        params: CampaignParameters,
        *,
        persist: bool = True,
    ) -> CompiledCampaign:
        """Load both CSV files and compile them."""
        inputs = load_inputs(claimants_path, cohorts_path)
        return self.compile(inputs, params, persist=persist)

    @property
    def step_results(self) -> list[tuple[str, bool, Optional[str], float]]:
        return self._executor.step_results

    def build_steps(self, *, persist: bool, created_at: datetime) -> list[CompileStep]:
        steps = [
            make_step("validate", self._validate),
            make_step("vault_counts", self._vault_counts),
            make_step("assign_vaults", self._assign_vaults),
            make_step("build_trees", self._build_trees),
            make_step("fingerprint", self._fingerprint),
            make_step("funding", self._funding),
            make_step("assemble", lambda s: self._assemble(s, created_at)),
        ]
        if persist:
            steps.append(make_step("persist", self._persist))
        return steps

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _validate(self, state: CompileState) -> CompileState:
        state.inputs.validate_references()
        state.groups = state.inputs.claimants_by_cohort()
        return state

    def _vault_counts(self, state: CompileState) -> CompileState:
        per_vault = state.config.claimants_per_vault
        for name, rows in state.groups.items():
            count = vault_count_for(len(rows), per_vault)
            if count > state.config.max_vaults:
                raise VaultLimitException(name, len(rows), per_vault, count)
            state.vault_counts[name] = count
        return state

    def _assign_vaults(self, state: CompileState) -> CompileState:
        for name, rows in state.groups.items():
            vault_count = state.vault_counts[name]
            leaves = []
            for row in rows:
                claimant = row.public_key
                leaves.append(
                    ClaimLeaf(
                        claimant=claimant,
                        assigned_vault_index=self.assigner(claimant, vault_count),
                        entitlements=row.entitlements,
                    )
                )
            state.leaves[name] = leaves
            state.tallies[name] = tally_vaults(
                ((leaf.assigned_vault_index, leaf.entitlements) for leaf in leaves),
                vault_count,
            )
            empty = [t.index for t in state.tallies[name] if t.claimant_count == 0]
            if empty:
                logger.debug("Cohort '%s': vaults %s received no claimants", name, empty)
        return state

    def _build_trees(self, state: CompileState) -> CompileState:
        kind = TreeKind(state.config.tree_kind)
        names = sorted(state.leaves)

        def build(name: str) -> ClaimTree:
            return build_claim_tree(state.leaves[name], kind)

        if state.config.parallel_cohorts and len(names) > 1:
            with ThreadPoolExecutor(max_workers=state.config.max_workers) as pool:
                trees = list(pool.map(build, names))
        else:
            trees = [build(name) for name in names]

        for name, tree in zip(names, trees):
            state.trees[name] = tree
            logger.debug(
                "Cohort '%s': %s tree over %d leaves, root %s",
                name, kind.value, len(tree), to_hex(tree.root),
            )
        return state

    def _fingerprint(self, state: CompileState) -> CompileState:
        # Cohort addresses derive from the root, so roots must be distinct
        owners: dict[bytes, str] = {}
        for name in sorted(state.trees):
            root = state.trees[name].root
            if root in owners:
                raise TreeConstructionException(
                    f"Cohorts '{owners[root]}' and '{name}' have identical claim trees "
                    f"(root {to_hex(root)}); they would share on-ledger addresses",
                    details={"cohorts": [owners[root], name], "root": to_hex(root)},
                )
            owners[root] = name
        state.fingerprint = campaign_fingerprint(tree.root for tree in state.trees.values())
        return state

    def _funding(self, state: CompileState) -> CompileState:
        params = state.params
        for row in state.inputs.cohorts:
            tallies = state.tallies[row.cohort]
            if row.share_percentage is not None:
                total_entitlements = sum(t.entitlements for t in tallies)
                amount = amount_from_share(
                    params.total_budget,
                    row.share_percentage,
                    total_entitlements,
                    params.decimals,
                )
            else:
                # The ledger counts whole base units
                amount = floor_to_precision(row.amount_per_entitlement, params.decimals)
                if amount != row.amount_per_entitlement:
                    state.warn(
                        f"Cohort '{row.cohort}' (line {row.line}): amount_per_entitlement "
                        f"{row.amount_per_entitlement} rounded down to {amount} "
                        f"at {params.decimals} decimals"
                    )
            funding = compute_cohort_funding(
                row.cohort,
                [t.entitlements for t in tallies],
                amount,
                params.decimals,
            )
            if funding.is_zero_amount:
                state.warn(
                    f"Cohort '{row.cohort}' has amount_per_entitlement 0; "
                    "its claimants can claim nothing"
                )
            state.fundings[row.cohort] = funding

        state.unallocated_budget = check_budget(
            list(state.fundings.values()), params.total_budget, params.decimals
        )
        return state

    def _assemble(self, state: CompileState, created_at: datetime) -> CompileState:
        shares = {row.cohort: row.share_percentage for row in state.inputs.cohorts}
        cohorts = []
        for name in sorted(state.trees):
            funding = state.fundings[name]
            vaults = tuple(
                CompiledVault(
                    index=tally.index,
                    claimant_count=tally.claimant_count,
                    entitlements=tally.entitlements,
                    required_funding=funding.vault_fundings[tally.index],
                )
                for tally in state.tallies[name]
            )
            cohorts.append(
                CompiledCohort(
                    name=name,
                    tree=state.trees[name],
                    funding=funding,
                    vaults=vaults,
                    share_percentage=shares[name],
                )
            )

        assert state.fingerprint is not None and state.unallocated_budget is not None
        state.campaign = CompiledCampaign(
            fingerprint=state.fingerprint,
            admin=state.params.admin_key,
            asset=state.params.asset_key,
            decimals=state.params.decimals,
            total_budget=state.params.total_budget,
            unallocated_budget=state.unallocated_budget,
            cohorts=tuple(cohorts),
            created_at=created_at,
            warnings=tuple(state.warnings),
        )
        return state

    def _persist(self, state: CompileState) -> CompileState:
        assert self.store is not None and state.campaign is not None
        self.store.save_campaign(state.campaign)
        state.persisted = True
        return state


def compile_campaign(
    inputs: CampaignInputs,
    params: CampaignParameters,
    config: Optional[CompilerConfig] = None,
    store: Optional[CampaignStore] = None,
) -> CompiledCampaign:
    """Convenience wrapper around CampaignCompiler.compile."""
    return CampaignCompiler(config, store=store).compile(inputs, params)


__all__ = [
    "CampaignCompiler",
    "compile_campaign",
]
