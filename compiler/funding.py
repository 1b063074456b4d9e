"""
Funding Arithmetic

Fixed-point decimal arithmetic for vault funding. Amounts are given in
token units and converted to base units with the asset precision:

    base = token * 10**decimals

Per vault:

    funding(vault) = floor(entitlements(vault) * amount_per_entitlement_base)

Leftover dust is tracked per cohort and never redistributed:

    sum(fundings) + dust == total_entitlements * amount_per_entitlement_base
    dust < amount_per_entitlement_base            (when the amount is > 0)

Nothing is clamped or wrapped: a value outside u64 raises
FundingOverflowException, a dust invariant violation raises
ImpossibleRoundingException.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import (
    ROUND_FLOOR,
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import Sequence

from core.merkle.leaf import U64_MAX
from core.schemas.errors import (
    BudgetExceededException,
    FundingOverflowException,
    ImpossibleRoundingException,
)


# u64 has 20 digits and precision tops out at 28 decimals, so 80 digits
# keep every product exact. Inexact is trapped to prove it.
EXACT_CONTEXT = Context(
    prec=80,
    rounding=ROUND_FLOOR,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact],
)

# Divisions (budget shares) are expected to be inexact and round down.
DIVISION_CONTEXT = Context(
    prec=80,
    rounding=ROUND_FLOOR,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)


def to_base_units(amount: Decimal, decimals: int) -> Decimal:
    """Exact conversion from token units to (possibly fractional) base units."""
    with localcontext(EXACT_CONTEXT):
        return amount.scaleb(decimals)


def floor_to_int(value: Decimal) -> int:
    with localcontext(EXACT_CONTEXT):
        return int(value.to_integral_value(rounding=ROUND_FLOOR))


def require_u64(value: int, what: str) -> int:
    """
    Raises:
        FundingOverflowException: If value is negative or above u64::MAX
    """
    if value < 0 or value > U64_MAX:
        raise FundingOverflowException(
            f"{what} = {value} does not fit an unsigned 64-bit integer",
            details={"what": what, "value": str(value)},
        )
    return value


def claim_amount(amount_per_entitlement_base: Decimal, entitlements: int) -> int:
    """Base units owed to one claimant: floor(entitlements * amount_base)."""
    with localcontext(EXACT_CONTEXT):
        return floor_to_int(Decimal(entitlements) * amount_per_entitlement_base)


def floor_to_precision(amount: Decimal, decimals: int) -> Decimal:
    """Round a token amount down to the asset precision."""
    with localcontext(DIVISION_CONTEXT):
        return amount.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_FLOOR)


def amount_from_share(
    total_budget: Decimal,
    share_percentage: Decimal,
    total_entitlements: int,
    decimals: int,
) -> Decimal:
    """
    Per-entitlement amount for a cohort that receives a share of the budget.

        floor_to_precision(total_budget * share / 100 / total_entitlements)
    """
    if total_entitlements <= 0:
        raise ValueError("total_entitlements must be positive")
    with localcontext(DIVISION_CONTEXT):
        raw = total_budget * share_percentage / Decimal(100) / Decimal(total_entitlements)
    return floor_to_precision(raw, decimals)


@dataclass(frozen=True)
class CohortFunding:
    """
    Funding outcome for one cohort.

    Attributes:
        amount_per_entitlement: Token units, as given or derived
        amount_per_entitlement_base: Base units (may be fractional)
        total_entitlements: Sum over every claimant in the cohort
        vault_fundings: Required funding per vault, base units, index order
        dust: Base units left over after rounding every vault down
    """
    amount_per_entitlement: Decimal
    amount_per_entitlement_base: Decimal
    total_entitlements: int
    vault_fundings: tuple[int, ...]
    dust: Decimal

    @property
    def total_funding(self) -> int:
        return sum(self.vault_fundings)

    @property
    def exact_total(self) -> Decimal:
        """total_entitlements * amount_per_entitlement_base."""
        with localcontext(EXACT_CONTEXT):
            return Decimal(self.total_entitlements) * self.amount_per_entitlement_base

    @property
    def is_zero_amount(self) -> bool:
        return self.amount_per_entitlement == 0


def compute_cohort_funding(
    cohort: str,
    vault_entitlements: Sequence[int],
    amount_per_entitlement: Decimal,
    decimals: int,
) -> CohortFunding:
    """
    Compute per-vault funding and dust for one cohort.

    Args:
        cohort: Cohort name, for diagnostics
        vault_entitlements: Actual tallied entitlements per vault index
        amount_per_entitlement: Token units per entitlement (>= 0)
        decimals: Asset precision

    Raises:
        FundingOverflowException: A vault funding or the per-entitlement
            amount does not fit u64
        ImpossibleRoundingException: The dust invariant does not hold
    """
    if amount_per_entitlement < 0:
        raise ValueError("amount_per_entitlement must not be negative")

    try:
        amount_base = to_base_units(amount_per_entitlement, decimals)
        require_u64(floor_to_int(amount_base), f"{cohort}: amount_per_entitlement in base units")

        fundings: list[int] = []
        with localcontext(EXACT_CONTEXT):
            for index, entitlements in enumerate(vault_entitlements):
                exact = Decimal(entitlements) * amount_base
                fundings.append(
                    require_u64(floor_to_int(exact), f"{cohort}: vault {index} funding")
                )
            total_entitlements = sum(vault_entitlements)
            exact_total = Decimal(total_entitlements) * amount_base
            dust = exact_total - Decimal(sum(fundings))
    except (Inexact, Overflow, InvalidOperation) as e:
        raise FundingOverflowException(
            f"{cohort}: funding arithmetic exceeded exact precision",
            details={"cohort": cohort, "error": type(e).__name__},
        ) from e

    if dust < 0 or (amount_base > 0 and dust >= amount_base):
        raise ImpossibleRoundingException(
            f"{cohort}: rounding left {dust} base units of dust, "
            f"not below one entitlement ({amount_base})",
            details={
                "cohort": cohort,
                "dust": str(dust),
                "amount_per_entitlement_base": str(amount_base),
                "vault_count": len(vault_entitlements),
            },
        )

    return CohortFunding(
        amount_per_entitlement=amount_per_entitlement,
        amount_per_entitlement_base=amount_base,
        total_entitlements=total_entitlements,
        vault_fundings=tuple(fundings),
        dust=dust,
    )


def check_budget(fundings: Sequence[CohortFunding], total_budget: Decimal, decimals: int) -> int:
    """
    Verify the campaign budget covers every cohort.

    Returns:
        Unallocated budget in base units

    Raises:
        FundingOverflowException: Budget does not fit u64
        BudgetExceededException: Required funding exceeds the budget
    """
    budget_base = floor_to_int(to_base_units(total_budget, decimals))
    require_u64(budget_base, "total budget in base units")
    required = sum(f.total_funding for f in fundings)
    if required > budget_base:
        raise BudgetExceededException(required=required, budget=budget_base)
    return budget_base - required


__all__ = [
    "CohortFunding",
    "amount_from_share",
    "check_budget",
    "claim_amount",
    "compute_cohort_funding",
    "floor_to_int",
    "floor_to_precision",
    "require_u64",
    "to_base_units",
]
