"""
Persisted store layout.

Amounts are u64 values, which overflow SQLite's signed INTEGER, so they
are stored as decimal TEXT. Hashes are 0x-hex, keys are base58.

Structural columns are written once by the compiler. Only the *_signature
marker columns and deployment_log change afterwards.
"""

from core.schemas.versioning import STORE_SCHEMA_VERSION


SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS campaigns (
        fingerprint TEXT PRIMARY KEY,
        address TEXT NOT NULL,
        admin TEXT NOT NULL,
        asset TEXT NOT NULL,
        decimals INTEGER NOT NULL,
        total_budget TEXT NOT NULL,
        unallocated_budget TEXT NOT NULL,
        created_at TEXT NOT NULL,
        created_signature TEXT,
        activated_signature TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cohorts (
        campaign_fingerprint TEXT NOT NULL REFERENCES campaigns(fingerprint),
        name TEXT NOT NULL,
        address TEXT NOT NULL,
        root TEXT NOT NULL,
        tree_kind TEXT NOT NULL,
        amount_per_entitlement TEXT NOT NULL,
        amount_per_entitlement_base TEXT NOT NULL,
        share_percentage TEXT,
        total_entitlements TEXT NOT NULL,
        claimant_count INTEGER NOT NULL,
        vault_count INTEGER NOT NULL,
        dust TEXT NOT NULL,
        created_signature TEXT,
        activated_signature TEXT,
        PRIMARY KEY (campaign_fingerprint, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS claimants (
        campaign_fingerprint TEXT NOT NULL,
        cohort TEXT NOT NULL,
        claimant TEXT NOT NULL,
        entitlements TEXT NOT NULL,
        vault_index INTEGER NOT NULL,
        leaf_index INTEGER NOT NULL,
        proof TEXT NOT NULL,
        PRIMARY KEY (campaign_fingerprint, cohort, claimant)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS claimants_by_claimant
        ON claimants (campaign_fingerprint, claimant)
    """,
    """
    CREATE TABLE IF NOT EXISTS vaults (
        campaign_fingerprint TEXT NOT NULL,
        cohort TEXT NOT NULL,
        vault_index INTEGER NOT NULL,
        address TEXT NOT NULL,
        claimant_count INTEGER NOT NULL,
        entitlements TEXT NOT NULL,
        required_funding TEXT NOT NULL,
        created_signature TEXT,
        funded_signature TEXT,
        PRIMARY KEY (campaign_fingerprint, cohort, vault_index)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS deployment_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        campaign_fingerprint TEXT NOT NULL,
        operation_key TEXT NOT NULL,
        kind TEXT NOT NULL,
        confirmation_id TEXT,
        batch_index INTEGER,
        recorded_at TEXT NOT NULL,
        UNIQUE (campaign_fingerprint, operation_key)
    )
    """,
)


# Operation kind -> (table, marker column)
MARKER_COLUMNS: dict[str, tuple[str, str]] = {
    "create_campaign": ("campaigns", "created_signature"),
    "activate_campaign": ("campaigns", "activated_signature"),
    "create_cohort": ("cohorts", "created_signature"),
    "activate_cohort": ("cohorts", "activated_signature"),
    "create_vault": ("vaults", "created_signature"),
    "fund_vault": ("vaults", "funded_signature"),
}

# Marker value when completion was observed on the ledger rather than
# confirmed by one of our own batches.
OBSERVED_MARKER = "observed"


__all__ = [
    "MARKER_COLUMNS",
    "OBSERVED_MARKER",
    "SCHEMA_STATEMENTS",
    "STORE_SCHEMA_VERSION",
]
