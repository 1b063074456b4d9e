"""
Campaign Store

SQLite persistence for compiled campaigns and deployment progress.

- A campaign is written in one transaction, or not at all.
- Structural rows are write-once; a fingerprint that already exists is
  refused.
- Deployment progress is recorded as marker columns plus an append-only
  deployment_log, one transaction per confirmed batch.

The store is the only place deployment state lives. A single connection
is shared across worker threads behind a lock.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Optional

from core.crypto.hashing import from_hex, to_hex
from core.crypto.identity import PublicKey
from core.merkle.claim_tree import ClaimProof, TreeKind
from core.schemas.canonical import format_datetime_canonical, format_decimal_canonical
from core.schemas.errors import (
    CampaignExistsException,
    CampaignNotFoundException,
    StoreException,
)
from core.schemas.versioning import (
    STORE_SCHEMA_VERSION,
    UnsupportedSchemaVersionError,
    assert_supported_store_version,
)
from core.store.records import (
    CampaignRecord,
    ClaimantRecord,
    CohortRecord,
    CompletionRecord,
    DeploymentStatus,
    VaultRecord,
)
from core.store.schema import MARKER_COLUMNS, OBSERVED_MARKER, SCHEMA_STATEMENTS

if TYPE_CHECKING:
    from compiler.models import CompiledCampaign

logger = logging.getLogger(__name__)


def _now() -> str:
    return format_datetime_canonical(datetime.now(timezone.utc))


class CampaignStore:
    """
    SQLite-backed store.

    Example:
        with CampaignStore(":memory:") as store:
            store.save_campaign(compiled)
            record = store.load_campaign(compiled.fingerprint)
    """

    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._initialize()
        except sqlite3.Error as e:
            raise StoreException(f"Cannot open store at {self.path}: {e}") from e
        logger.debug("Opened campaign store at %s", self.path)

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _initialize(self) -> None:
        with self._conn:
            for statement in SCHEMA_STATEMENTS:
                self._conn.execute(statement)
            row = self._conn.execute("SELECT version FROM schema_version").fetchone()
            if row is None:
                self._conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)", (STORE_SCHEMA_VERSION,)
                )
                return
        try:
            assert_supported_store_version(row["version"])
        except UnsupportedSchemaVersionError as e:
            raise StoreException(str(e), details={"version": row["version"]}) from e

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialize access and commit/rollback as one unit."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.IntegrityError:
                raise
            except sqlite3.Error as e:
                raise StoreException(f"Store operation failed: {e}") from e

    def _query(self, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, tuple(params)).fetchall()
            except sqlite3.Error as e:
                raise StoreException(f"Store query failed: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "CampaignStore":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Campaign writes
    # ------------------------------------------------------------------

    def save_campaign(self, campaign: "CompiledCampaign") -> None:
        """
        Persist a compiled campaign atomically.

        Raises:
            CampaignExistsException: The fingerprint is already stored
            StoreException: Any database failure (nothing is written)
        """
        fingerprint = to_hex(campaign.fingerprint)
        campaign_addr = campaign.address

        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO campaigns (
                        fingerprint, address, admin, asset, decimals,
                        total_budget, unallocated_budget, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        fingerprint,
                        str(campaign_addr),
                        str(campaign.admin),
                        str(campaign.asset),
                        campaign.decimals,
                        format_decimal_canonical(campaign.total_budget),
                        str(campaign.unallocated_budget),
                        format_datetime_canonical(campaign.created_at),
                    ),
                )
                for cohort in campaign.cohorts:
                    cohort_addr = campaign.cohort_address(cohort.name)
                    conn.execute(
                        """
                        INSERT INTO cohorts (
                            campaign_fingerprint, name, address, root, tree_kind,
                            amount_per_entitlement, amount_per_entitlement_base,
                            share_percentage, total_entitlements, claimant_count,
                            vault_count, dust
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            fingerprint,
                            cohort.name,
                            str(cohort_addr),
                            to_hex(cohort.root),
                            cohort.tree_kind.value,
                            format_decimal_canonical(cohort.amount_per_entitlement),
                            format_decimal_canonical(cohort.funding.amount_per_entitlement_base),
                            (
                                format_decimal_canonical(cohort.share_percentage)
                                if cohort.share_percentage is not None
                                else None
                            ),
                            str(cohort.total_entitlements),
                            cohort.claimant_count,
                            cohort.vault_count,
                            format_decimal_canonical(cohort.dust),
                        ),
                    )
                    conn.executemany(
                        """
                        INSERT INTO vaults (
                            campaign_fingerprint, cohort, vault_index, address,
                            claimant_count, entitlements, required_funding
                        ) VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (
                                fingerprint,
                                cohort.name,
                                vault.index,
                                str(campaign.vault_address(cohort.name, vault.index)),
                                vault.claimant_count,
                                str(vault.entitlements),
                                str(vault.required_funding),
                            )
                            for vault in cohort.vaults
                        ],
                    )
                    conn.executemany(
                        """
                        INSERT INTO claimants (
                            campaign_fingerprint, cohort, claimant, entitlements,
                            vault_index, leaf_index, proof
                        ) VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            (
                                fingerprint,
                                cohort.name,
                                str(leaf.claimant),
                                str(leaf.entitlements),
                                leaf.assigned_vault_index,
                                index,
                                json.dumps(proof.to_json_obj(), separators=(",", ":")),
                            )
                            for index, leaf, proof in cohort.claims()
                        ),
                    )
        except sqlite3.IntegrityError as e:
            if self.has_campaign(campaign.fingerprint):
                raise CampaignExistsException(fingerprint) from e
            raise StoreException(f"Integrity error saving campaign {fingerprint}: {e}") from e

        logger.info(
            "Persisted campaign %s (%d cohorts)", fingerprint, len(campaign.cohorts)
        )

    # ------------------------------------------------------------------
    # Campaign reads
    # ------------------------------------------------------------------

    def has_campaign(self, fingerprint: bytes) -> bool:
        rows = self._query(
            "SELECT 1 FROM campaigns WHERE fingerprint = ?", (to_hex(fingerprint),)
        )
        return bool(rows)

    def list_campaigns(self) -> list[str]:
        """Fingerprints (0x-hex) of every stored campaign, oldest first."""
        rows = self._query("SELECT fingerprint FROM campaigns ORDER BY created_at, fingerprint")
        return [row["fingerprint"] for row in rows]

    def load_campaign(self, fingerprint: bytes) -> CampaignRecord:
        """
        Load the desired state and progress markers of a campaign.

        Raises:
            CampaignNotFoundException: No such fingerprint
        """
        fp = to_hex(fingerprint)
        with self._lock:
            rows = self._query("SELECT * FROM campaigns WHERE fingerprint = ?", (fp,))
            if not rows:
                raise CampaignNotFoundException(fp)
            campaign_row = rows[0]
            cohort_rows = self._query(
                "SELECT * FROM cohorts WHERE campaign_fingerprint = ? ORDER BY name", (fp,)
            )
            vault_rows = self._query(
                "SELECT * FROM vaults WHERE campaign_fingerprint = ? ORDER BY cohort, vault_index",
                (fp,),
            )

        try:
            vaults_by_cohort: dict[str, list[VaultRecord]] = {}
            for row in vault_rows:
                vaults_by_cohort.setdefault(row["cohort"], []).append(
                    VaultRecord(
                        cohort=row["cohort"],
                        index=row["vault_index"],
                        address=PublicKey.parse(row["address"]),
                        claimant_count=row["claimant_count"],
                        entitlements=int(row["entitlements"]),
                        required_funding=int(row["required_funding"]),
                        created_signature=row["created_signature"],
                        funded_signature=row["funded_signature"],
                    )
                )

            cohorts = tuple(
                CohortRecord(
                    name=row["name"],
                    address=PublicKey.parse(row["address"]),
                    root=from_hex(row["root"]),
                    tree_kind=TreeKind(row["tree_kind"]),
                    amount_per_entitlement=Decimal(row["amount_per_entitlement"]),
                    amount_per_entitlement_base=Decimal(row["amount_per_entitlement_base"]),
                    share_percentage=(
                        Decimal(row["share_percentage"])
                        if row["share_percentage"] is not None
                        else None
                    ),
                    total_entitlements=int(row["total_entitlements"]),
                    claimant_count=row["claimant_count"],
                    vault_count=row["vault_count"],
                    dust=Decimal(row["dust"]),
                    vaults=tuple(vaults_by_cohort.get(row["name"], [])),
                    created_signature=row["created_signature"],
                    activated_signature=row["activated_signature"],
                )
                for row in cohort_rows
            )

            return CampaignRecord(
                fingerprint=from_hex(campaign_row["fingerprint"]),
                address=PublicKey.parse(campaign_row["address"]),
                admin=PublicKey.parse(campaign_row["admin"]),
                asset=PublicKey.parse(campaign_row["asset"]),
                decimals=campaign_row["decimals"],
                total_budget=Decimal(campaign_row["total_budget"]),
                unallocated_budget=int(campaign_row["unallocated_budget"]),
                created_at=campaign_row["created_at"],
                cohorts=cohorts,
                created_signature=campaign_row["created_signature"],
                activated_signature=campaign_row["activated_signature"],
            )
        except (ValueError, ArithmeticError) as e:
            raise StoreException(
                f"Campaign {fp} has corrupt rows: {e}", details={"fingerprint": fp}
            ) from e

    def get_claimant_entries(self, fingerprint: bytes, claimant: PublicKey) -> list[ClaimantRecord]:
        """Every cohort entry of one claimant, ordered by cohort name."""
        fp = to_hex(fingerprint)
        rows = self._query(
            """
            SELECT c.cohort, c.claimant, c.entitlements, c.vault_index, c.leaf_index,
                   c.proof, h.tree_kind
            FROM claimants c
            JOIN cohorts h
              ON h.campaign_fingerprint = c.campaign_fingerprint AND h.name = c.cohort
            WHERE c.campaign_fingerprint = ? AND c.claimant = ?
            ORDER BY c.cohort
            """,
            (fp, str(claimant)),
        )
        try:
            return [
                ClaimantRecord(
                    cohort=row["cohort"],
                    claimant=PublicKey.parse(row["claimant"]),
                    entitlements=int(row["entitlements"]),
                    vault_index=row["vault_index"],
                    leaf_index=row["leaf_index"],
                    proof=ClaimProof.from_json_obj(row["tree_kind"], json.loads(row["proof"])),
                )
                for row in rows
            ]
        except (ValueError, TypeError) as e:
            raise StoreException(f"Corrupt claimant row for {claimant}: {e}") from e

    # ------------------------------------------------------------------
    # Deployment progress
    # ------------------------------------------------------------------

    def record_completions(
        self,
        fingerprint: bytes,
        completions: list[CompletionRecord],
        batch_index: Optional[int] = None,
    ) -> None:
        """
        Mark operations complete and append them to the deployment log.

        All completions are written in a single transaction. An operation
        that is already logged keeps its first record.
        """
        fp = to_hex(fingerprint)
        recorded_at = _now()
        with self._transaction() as conn:
            for completion in completions:
                marker = MARKER_COLUMNS.get(completion.kind)
                if marker is None:
                    raise StoreException(f"Unknown operation kind {completion.kind!r}")
                table, column = marker
                signature = completion.confirmation_id or OBSERVED_MARKER
                if table == "campaigns":
                    conn.execute(
                        f"UPDATE campaigns SET {column} = COALESCE({column}, ?) WHERE fingerprint = ?",
                        (signature, fp),
                    )
                elif table == "cohorts":
                    conn.execute(
                        f"UPDATE cohorts SET {column} = COALESCE({column}, ?) "
                        "WHERE campaign_fingerprint = ? AND name = ?",
                        (signature, fp, completion.cohort),
                    )
                else:
                    conn.execute(
                        f"UPDATE vaults SET {column} = COALESCE({column}, ?) "
                        "WHERE campaign_fingerprint = ? AND cohort = ? AND vault_index = ?",
                        (signature, fp, completion.cohort, completion.vault_index),
                    )
                conn.execute(
                    """
                    INSERT OR IGNORE INTO deployment_log (
                        campaign_fingerprint, operation_key, kind,
                        confirmation_id, batch_index, recorded_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        fp,
                        completion.operation_key,
                        completion.kind,
                        completion.confirmation_id,
                        batch_index,
                        recorded_at,
                    ),
                )

    def deployment_log(self, fingerprint: bytes) -> list[dict[str, Any]]:
        rows = self._query(
            """
            SELECT operation_key, kind, confirmation_id, batch_index, recorded_at
            FROM deployment_log WHERE campaign_fingerprint = ? ORDER BY id
            """,
            (to_hex(fingerprint),),
        )
        return [dict(row) for row in rows]

    def deployment_status(self, fingerprint: bytes) -> DeploymentStatus:
        """
        Summarize deployment progress from the markers.

        Raises:
            CampaignNotFoundException: No such fingerprint
        """
        record = self.load_campaign(fingerprint)
        status = DeploymentStatus(
            fingerprint=to_hex(record.fingerprint),
            campaign_created=record.created,
            campaign_activated=record.activated,
            cohorts_total=len(record.cohorts),
            cohorts_created=sum(1 for c in record.cohorts if c.created),
            cohorts_activated=sum(1 for c in record.cohorts if c.activated),
        )
        for cohort in record.cohorts:
            for vault in cohort.vaults:
                status.vaults_total += 1
                status.vaults_created += int(vault.created)
                if vault.required_funding > 0:
                    status.vaults_to_fund += 1
                    status.vaults_funded += int(vault.funded)

        log = self.deployment_log(fingerprint)
        status.operations_logged = len(log)
        if log:
            status.last_recorded_at = log[-1]["recorded_at"]
        return status


__all__ = ["CampaignStore"]
