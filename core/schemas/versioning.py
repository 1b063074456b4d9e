"""
Module 01 - Schemas & Canonicalization
File: versioning.py

Purpose: Centralize store/input format version constants.
No imports from other schema files to avoid circular dependencies.
"""

# Persisted store layout. Bumped on any table change.
STORE_SCHEMA_VERSION: int = 1

# Optional "# claimforge-csv-version: N" header accepted in input files
CSV_FORMAT_VERSION: int = 1
CSV_VERSION_MARKER: str = "claimforge-csv-version:"

# Leaf encoding version. Changing the leaf shape invalidates every issued proof.
LEAF_ENCODING_VERSION: int = 1

SUPPORTED_STORE_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})
SUPPORTED_CSV_FORMAT_VERSIONS: frozenset[int] = frozenset({1})


class UnsupportedSchemaVersionError(ValueError):
    """Raised when a store was written by an unsupported layout version."""

    def __init__(self, version: int, supported: frozenset[int] | None = None) -> None:
        self.version = version
        self.supported = supported or SUPPORTED_STORE_SCHEMA_VERSIONS
        super().__init__(
            f"Unsupported store schema version: {version}. "
            f"Supported versions: {sorted(self.supported)}"
        )


def assert_supported_store_version(version: int) -> None:
    """
    Validate that the given store schema version is supported.

    Raises:
        UnsupportedSchemaVersionError: If the version is not supported.
    """
    if version not in SUPPORTED_STORE_SCHEMA_VERSIONS:
        raise UnsupportedSchemaVersionError(version)


def is_compatible_csv_version(version: int) -> bool:
    """Check if a CSV format version is readable without raising."""
    return version in SUPPORTED_CSV_FORMAT_VERSIONS
