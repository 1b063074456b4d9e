"""
Module 01 - Schemas & Canonicalization
File: errors.py

Purpose: Standard error taxonomy across the compiler and deployment pipeline.
Defines both a Pydantic model for structured error reporting
and Python exceptions for control flow.
"""

from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Error Codes (Machine-Readable Constants)
# =============================================================================

class ErrorCodes:
    """Stable machine-readable error codes used across the pipeline."""

    # Schema & Input Errors
    SCHEMA_VALIDATION_ERROR = "SCHEMA_VALIDATION_ERROR"
    CANONICALIZATION_ERROR = "CANONICALIZATION_ERROR"
    INPUT_VALIDATION_ERROR = "INPUT_VALIDATION_ERROR"
    DUPLICATE_CLAIMANT = "DUPLICATE_CLAIMANT"
    MISSING_COHORT = "MISSING_COHORT"
    VAULT_LIMIT_EXCEEDED = "VAULT_LIMIT_EXCEEDED"

    # Arithmetic Errors
    FUNDING_OVERFLOW = "FUNDING_OVERFLOW"
    IMPOSSIBLE_ROUNDING = "IMPOSSIBLE_ROUNDING"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"

    # Merkle & Commitment Errors
    TREE_CONSTRUCTION_FAILED = "TREE_CONSTRUCTION_FAILED"
    MERKLE_PROOF_INVALID = "MERKLE_PROOF_INVALID"

    # Planning Errors
    PLANNING_ERROR = "PLANNING_ERROR"
    OPERATION_TOO_LARGE = "OPERATION_TOO_LARGE"
    UNRESOLVABLE_DEPENDENCY = "UNRESOLVABLE_DEPENDENCY"

    # Transmission Errors
    LEDGER_ERROR = "LEDGER_ERROR"
    BATCH_TRANSMISSION_FAILED = "BATCH_TRANSMISSION_FAILED"
    DEPLOYMENT_FAILED = "DEPLOYMENT_FAILED"

    # Persistence Errors
    STORE_ERROR = "STORE_ERROR"
    CAMPAIGN_EXISTS = "CAMPAIGN_EXISTS"
    CAMPAIGN_NOT_FOUND = "CAMPAIGN_NOT_FOUND"


# =============================================================================
# Pydantic Error Model (Structured Communication)
# =============================================================================

class ClaimforgeError(BaseModel):
    """
    Base error model for structured error reporting.

    Used when errors are collected (e.g. per-batch deployment failures)
    rather than raised, and for serializing diagnostics.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=False,
        validate_assignment=True,
    )

    code: str = Field(
        ...,
        description="Stable machine-readable error code",
        examples=[ErrorCodes.INPUT_VALIDATION_ERROR],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional structured details about the error",
    )
    retryable: bool = Field(
        default=False,
        description="Whether the operation can be retried",
    )

    def to_exception(self) -> "ClaimforgeException":
        """Convert this error model to a raised exception."""
        return ClaimforgeException(
            code=self.code,
            message=self.message,
            details=self.details,
            retryable=self.retryable,
        )


# =============================================================================
# Python Exceptions (Control Flow)
# =============================================================================

class ClaimforgeException(Exception):
    """
    Base exception for all claimforge errors.

    This exception carries structured error information and can be
    converted to a ClaimforgeError model.
    """

    def __init__(
        self,
        message: str,
        code: str = "CLAIMFORGE_ERROR",
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def to_error_model(self) -> ClaimforgeError:
        """Convert this exception to a ClaimforgeError model."""
        return ClaimforgeError(
            code=self.code,
            message=self.message,
            details=self.details,
            retryable=self.retryable,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class CanonicalizationException(ClaimforgeException):
    """Exception raised when canonical serialization fails."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCodes.CANONICALIZATION_ERROR,
            details=details,
        )


# -----------------------------------------------------------------------------
# Input validation
# -----------------------------------------------------------------------------

class InputValidationException(ClaimforgeException):
    """A malformed input file or row. Aborts the compile."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        line: int | None = None,
        details: dict[str, Any] | None = None,
        code: str = ErrorCodes.INPUT_VALIDATION_ERROR,
    ) -> None:
        full_details = details or {}
        if source:
            full_details["source"] = source
        if line is not None:
            full_details["line"] = line
        super().__init__(message=message, code=code, details=full_details)
        self.source = source
        self.line = line


class DuplicateClaimantException(InputValidationException):
    """The same claimant appears twice within one cohort."""

    def __init__(self, cohort: str, claimant: str, line: int | None = None) -> None:
        super().__init__(
            message=f"Duplicate claimant {claimant} in cohort '{cohort}'",
            line=line,
            details={"cohort": cohort, "claimant": claimant},
            code=ErrorCodes.DUPLICATE_CLAIMANT,
        )
        self.cohort = cohort
        self.claimant = claimant


class MissingCohortException(InputValidationException):
    """A claimant row references a cohort that was never defined."""

    def __init__(self, cohort: str, line: int | None = None) -> None:
        super().__init__(
            message=f"Cohort '{cohort}' is referenced by claimants but not defined",
            line=line,
            details={"cohort": cohort},
            code=ErrorCodes.MISSING_COHORT,
        )
        self.cohort = cohort


class VaultLimitException(ClaimforgeException):
    """A cohort needs more vaults than a u8 vault index can address."""

    def __init__(self, cohort: str, claimant_count: int, claimants_per_vault: int, vault_count: int) -> None:
        super().__init__(
            message=(
                f"Cohort '{cohort}': {claimant_count} claimants at {claimants_per_vault} per vault "
                f"requires {vault_count} vaults (max 255)"
            ),
            code=ErrorCodes.VAULT_LIMIT_EXCEEDED,
            details={
                "cohort": cohort,
                "claimant_count": claimant_count,
                "claimants_per_vault": claimants_per_vault,
                "vault_count": vault_count,
            },
        )


# -----------------------------------------------------------------------------
# Arithmetic
# -----------------------------------------------------------------------------

class FundingArithmeticException(ClaimforgeException):
    """Base for fixed-point funding failures. Never clamped or wrapped."""


class FundingOverflowException(FundingArithmeticException):
    """A base-unit amount does not fit an unsigned 64-bit integer."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCodes.FUNDING_OVERFLOW, details=details)


class ImpossibleRoundingException(FundingArithmeticException):
    """Rounding down left more dust than one entitlement is worth."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCodes.IMPOSSIBLE_ROUNDING, details=details)


class BudgetExceededException(FundingArithmeticException):
    """Required funding is larger than the campaign budget."""

    def __init__(self, required: Any, budget: Any) -> None:
        super().__init__(
            message=f"Required funding {required} exceeds campaign budget {budget}",
            code=ErrorCodes.BUDGET_EXCEEDED,
            details={"required": str(required), "budget": str(budget)},
        )


# -----------------------------------------------------------------------------
# Merkle
# -----------------------------------------------------------------------------

class TreeConstructionException(ClaimforgeException):
    """A claim tree could not be built from the given leaves."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCodes.TREE_CONSTRUCTION_FAILED, details=details)


class MerkleVerificationException(ClaimforgeException):
    """Exception raised when Merkle proof verification fails."""

    def __init__(
        self,
        message: str,
        leaf_index: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if leaf_index is not None:
            full_details["leaf_index"] = leaf_index
        super().__init__(
            message=message,
            code=ErrorCodes.MERKLE_PROOF_INVALID,
            details=full_details,
        )


# -----------------------------------------------------------------------------
# Planning
# -----------------------------------------------------------------------------

class PlanningException(ClaimforgeException):
    """Raised before any network interaction when a plan cannot be executed."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: str = ErrorCodes.PLANNING_ERROR,
    ) -> None:
        super().__init__(message=message, code=code, details=details)


class OperationTooLargeException(PlanningException):
    """A single operation can never fit into a batch."""

    def __init__(self, operation_key: str, size: int, limit: int) -> None:
        super().__init__(
            message=f"Operation {operation_key} needs {size} bytes, batch limit is {limit}",
            details={"operation_key": operation_key, "size": size, "limit": limit},
            code=ErrorCodes.OPERATION_TOO_LARGE,
        )
        self.operation_key = operation_key


class UnresolvableDependencyException(PlanningException):
    """An operation depends on something neither planned nor completed."""

    def __init__(self, operation_key: str, dependency: str) -> None:
        super().__init__(
            message=f"Operation {operation_key} depends on {dependency}, which is neither planned nor complete",
            details={"operation_key": operation_key, "dependency": dependency},
            code=ErrorCodes.UNRESOLVABLE_DEPENDENCY,
        )


# -----------------------------------------------------------------------------
# Transmission
# -----------------------------------------------------------------------------

class LedgerException(ClaimforgeException):
    """A call to the ledger access layer failed."""

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCodes.LEDGER_ERROR,
            details=details,
            retryable=retryable,
        )


class BatchTransmissionException(ClaimforgeException):
    """
    A batch exhausted its retries.

    Scoped to exactly one batch: carries the batch index and the keys of
    the operations it contained. Earlier confirmed batches are unaffected.
    """

    def __init__(
        self,
        batch_index: int,
        operation_keys: Sequence[str],
        attempts: int,
        last_error: str,
    ) -> None:
        super().__init__(
            message=(
                f"Batch {batch_index} failed after {attempts} attempts: {last_error}"
            ),
            code=ErrorCodes.BATCH_TRANSMISSION_FAILED,
            details={
                "batch_index": batch_index,
                "operation_keys": list(operation_keys),
                "attempts": attempts,
                "last_error": last_error,
            },
            retryable=True,
        )
        self.batch_index = batch_index
        self.operation_keys = list(operation_keys)
        self.attempts = attempts
        self.last_error = last_error


class DeploymentFailedException(ClaimforgeException):
    """One or more batches of a deployment tier failed."""

    def __init__(self, failures: Sequence[BatchTransmissionException]) -> None:
        indexes = [f.batch_index for f in failures]
        super().__init__(
            message=f"Deployment stopped: {len(failures)} batch(es) failed {indexes}",
            code=ErrorCodes.DEPLOYMENT_FAILED,
            details={"failed_batches": indexes},
            retryable=True,
        )
        self.failures = list(failures)


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------

class StoreException(ClaimforgeException):
    """The persisted store is unreachable or corrupt. Fatal to the run."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCodes.STORE_ERROR, details=details)


class CampaignExistsException(StoreException):
    """Campaign records are write-once."""

    def __init__(self, fingerprint: str) -> None:
        super().__init__(message=f"Campaign {fingerprint} is already persisted")
        self.code = ErrorCodes.CAMPAIGN_EXISTS
        self.fingerprint = fingerprint


class CampaignNotFoundException(StoreException):
    """No campaign with the given fingerprint."""

    def __init__(self, fingerprint: str) -> None:
        super().__init__(message=f"Campaign {fingerprint} not found")
        self.code = ErrorCodes.CAMPAIGN_NOT_FOUND
        self.fingerprint = fingerprint
