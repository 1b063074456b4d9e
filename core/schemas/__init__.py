"""
Module 01 - Schemas & Canonicalization
File: __init__.py

Purpose: Export the public API for the schemas module: version constants,
canonical serialization, and the error taxonomy.
"""

# Version constants
from .versioning import (
    CSV_FORMAT_VERSION,
    CSV_VERSION_MARKER,
    LEAF_ENCODING_VERSION,
    STORE_SCHEMA_VERSION,
    UnsupportedSchemaVersionError,
    assert_supported_store_version,
    is_compatible_csv_version,
)

# Canonical serialization API
from .canonical import (
    CANONICAL_JSON_SEPARATORS,
    canonical_equals,
    canonicalize_value,
    dumps_canonical,
    encoded_size,
    ensure_utc,
    format_datetime_canonical,
    format_decimal_canonical,
    loads_canonical,
)

# Error models and exceptions
from .errors import (
    BatchTransmissionException,
    BudgetExceededException,
    CampaignExistsException,
    CampaignNotFoundException,
    CanonicalizationException,
    ClaimforgeError,
    ClaimforgeException,
    DeploymentFailedException,
    DuplicateClaimantException,
    ErrorCodes,
    FundingArithmeticException,
    FundingOverflowException,
    ImpossibleRoundingException,
    InputValidationException,
    LedgerException,
    MerkleVerificationException,
    MissingCohortException,
    OperationTooLargeException,
    PlanningException,
    StoreException,
    TreeConstructionException,
    UnresolvableDependencyException,
    VaultLimitException,
)

__all__ = [
    # Versioning
    "CSV_FORMAT_VERSION",
    "CSV_VERSION_MARKER",
    "LEAF_ENCODING_VERSION",
    "STORE_SCHEMA_VERSION",
    "UnsupportedSchemaVersionError",
    "assert_supported_store_version",
    "is_compatible_csv_version",
    # Canonical
    "CANONICAL_JSON_SEPARATORS",
    "canonical_equals",
    "canonicalize_value",
    "dumps_canonical",
    "encoded_size",
    "ensure_utc",
    "format_datetime_canonical",
    "format_decimal_canonical",
    "loads_canonical",
    # Errors
    "BatchTransmissionException",
    "BudgetExceededException",
    "CampaignExistsException",
    "CampaignNotFoundException",
    "CanonicalizationException",
    "ClaimforgeError",
    "ClaimforgeException",
    "DeploymentFailedException",
    "DuplicateClaimantException",
    "ErrorCodes",
    "FundingArithmeticException",
    "FundingOverflowException",
    "ImpossibleRoundingException",
    "InputValidationException",
    "LedgerException",
    "MerkleVerificationException",
    "MissingCohortException",
    "OperationTooLargeException",
    "PlanningException",
    "StoreException",
    "TreeConstructionException",
    "UnresolvableDependencyException",
    "VaultLimitException",
]
