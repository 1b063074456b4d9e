"""
Module 01 - Error Taxonomy
File: tests/unit/test_errors.py

Purpose: Typed exceptions carry stable codes and structured details, and
round-trip through the ClaimforgeError model.
"""

import pytest

from core.schemas.errors import (
    BatchTransmissionException,
    BudgetExceededException,
    CampaignExistsException,
    ClaimforgeError,
    ClaimforgeException,
    DeploymentFailedException,
    DuplicateClaimantException,
    ErrorCodes,
    InputValidationException,
    LedgerException,
    OperationTooLargeException,
    PlanningException,
    StoreException,
)


class TestExceptionModel:
    """Exception <-> model conversion."""

    def test_to_error_model(self):
        exc = LedgerException("boom", details={"method": "submitBatch"})
        model = exc.to_error_model()
        assert model.code == ErrorCodes.LEDGER_ERROR
        assert model.retryable is True
        assert model.details == {"method": "submitBatch"}

    def test_model_to_exception(self):
        model = ClaimforgeError(code=ErrorCodes.STORE_ERROR, message="disk full")
        exc = model.to_exception()
        assert isinstance(exc, ClaimforgeException)
        assert exc.code == ErrorCodes.STORE_ERROR
        assert str(exc) == "disk full"

    def test_model_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            ClaimforgeError(code="X", message="m", extra_field=1)


class TestHierarchy:
    """Subclass relationships callers rely on."""

    def test_duplicate_is_input_error(self):
        exc = DuplicateClaimantException("early", "abc", line=7)
        assert isinstance(exc, InputValidationException)
        assert exc.code == ErrorCodes.DUPLICATE_CLAIMANT
        assert exc.details == {"cohort": "early", "claimant": "abc", "line": 7}

    def test_operation_too_large_is_planning_error(self):
        assert isinstance(OperationTooLargeException("k", 2000, 1232), PlanningException)

    def test_campaign_exists_is_store_error(self):
        assert isinstance(CampaignExistsException("0xab"), StoreException)

    def test_ledger_retryable_flag(self):
        assert LedgerException("x").retryable
        assert not LedgerException("x", retryable=False).retryable

    def test_budget_details(self):
        exc = BudgetExceededException(required=800, budget=799)
        assert exc.code == ErrorCodes.BUDGET_EXCEEDED


class TestDeploymentFailures:
    """Batch failures are scoped and aggregated."""

    def test_deployment_failed_lists_batches(self):
        failures = [
            BatchTransmissionException(2, ["a"], 5, "timeout"),
            BatchTransmissionException(4, ["b", "c"], 5, "rejected"),
        ]
        exc = DeploymentFailedException(failures)
        assert exc.details["failed_batches"] == [2, 4]
        assert exc.failures == failures
        assert exc.retryable
        assert exc.code == ErrorCodes.DEPLOYMENT_FAILED

    def test_batch_failure_details(self):
        exc = BatchTransmissionException(3, ("k1", "k2"), 4, "no confirmation")
        assert exc.details["operation_keys"] == ["k1", "k2"]
        assert "Batch 3 failed after 4 attempts" in exc.message
