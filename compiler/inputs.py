"""
Compiler Inputs

Reads and validates the two input files of a campaign:

    claimants.csv   cohort,claimant,entitlements
    cohorts.csv     cohort,amount_per_entitlement[,share_percentage]

A leading "# claimforge-csv-version: 1" line is accepted in either file.
Every row is validated with pydantic; the first bad row aborts the load
with its file and line number in the diagnostic.
"""

from __future__ import annotations

import csv
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TextIO

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from core.crypto.identity import PublicKey
from core.merkle.leaf import U64_MAX
from core.schemas.errors import (
    DuplicateClaimantException,
    InputValidationException,
    MissingCohortException,
)
from core.schemas.versioning import CSV_VERSION_MARKER, is_compatible_csv_version

logger = logging.getLogger(__name__)


CLAIMANT_HEADERS = ("cohort", "claimant", "entitlements")
COHORT_HEADERS = ("cohort", "amount_per_entitlement")
COHORT_HEADERS_WITH_SHARE = ("cohort", "amount_per_entitlement", "share_percentage")

MAX_COHORT_NAME_LENGTH = 64
MAX_DECIMALS = 28


def _parse_public_key(value: str) -> str:
    try:
        return PublicKey.parse(value).to_base58()
    except ValueError as e:
        raise ValueError(f"invalid public key: {e}") from e


class ClaimantRow(BaseModel):
    """One claimant entitlement within a cohort."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    cohort: str = Field(..., min_length=1, max_length=MAX_COHORT_NAME_LENGTH)
    claimant: str = Field(..., description="Base58 public key (hex input is normalized)")
    entitlements: int = Field(..., gt=0, le=U64_MAX)
    line: Optional[int] = Field(default=None, description="Source line for diagnostics")

    @field_validator("cohort")
    @classmethod
    def _strip_cohort(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("cohort name is blank")
        return v

    @field_validator("claimant")
    @classmethod
    def _normalize_claimant(cls, v: str) -> str:
        return _parse_public_key(v)

    @property
    def public_key(self) -> PublicKey:
        return PublicKey.parse(self.claimant)


class CohortRow(BaseModel):
    """
    One cohort definition.

    Exactly one of amount_per_entitlement (token units) or share_percentage
    (of the campaign budget) must be given.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    cohort: str = Field(..., min_length=1, max_length=MAX_COHORT_NAME_LENGTH)
    amount_per_entitlement: Optional[Decimal] = Field(default=None, ge=0)
    share_percentage: Optional[Decimal] = Field(default=None, gt=0, le=100)
    line: Optional[int] = None

    @field_validator("cohort")
    @classmethod
    def _strip_cohort(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("cohort name is blank")
        return v

    @field_validator("amount_per_entitlement", "share_percentage")
    @classmethod
    def _finite(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and not v.is_finite():
            raise ValueError("must be a finite number")
        return v

    @model_validator(mode="after")
    def _one_amount_source(self) -> "CohortRow":
        has_amount = self.amount_per_entitlement is not None
        has_share = self.share_percentage is not None
        if has_amount == has_share:
            raise ValueError(
                "exactly one of amount_per_entitlement or share_percentage is required"
            )
        return self


class CampaignParameters(BaseModel):
    """Campaign-wide compile parameters."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    admin: str = Field(..., description="Campaign authority public key")
    asset: str = Field(..., description="Distributed asset (mint) public key")
    decimals: int = Field(..., ge=0, le=MAX_DECIMALS, description="Asset precision")
    total_budget: Decimal = Field(..., ge=0, description="Budget in token units")

    @field_validator("admin", "asset")
    @classmethod
    def _normalize_key(cls, v: str) -> str:
        return _parse_public_key(v)

    @field_validator("total_budget")
    @classmethod
    def _finite_budget(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("must be a finite number")
        return v

    @property
    def admin_key(self) -> PublicKey:
        return PublicKey.parse(self.admin)

    @property
    def asset_key(self) -> PublicKey:
        return PublicKey.parse(self.asset)


class CampaignInputs(BaseModel):
    """Validated claimant and cohort rows, ready for compilation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    claimants: list[ClaimantRow]
    cohorts: list[CohortRow]

    def validate_references(self) -> None:
        """
        Referential integrity across the two files.

        Raises:
            InputValidationException: duplicate cohort definition, orphan
                cohort, empty input, or shares over 100%
            MissingCohortException: claimant references an undefined cohort
            DuplicateClaimantException: claimant repeated within a cohort
        """
        if not self.cohorts:
            raise InputValidationException("No cohorts defined")
        if not self.claimants:
            raise InputValidationException("No claimants defined")

        defined: dict[str, CohortRow] = {}
        for row in self.cohorts:
            if row.cohort in defined:
                raise InputValidationException(
                    f"Cohort '{row.cohort}' is defined more than once",
                    line=row.line,
                    details={"cohort": row.cohort},
                )
            defined[row.cohort] = row

        seen: dict[str, set[str]] = {}
        for row in self.claimants:
            if row.cohort not in defined:
                raise MissingCohortException(row.cohort, line=row.line)
            members = seen.setdefault(row.cohort, set())
            if row.claimant in members:
                raise DuplicateClaimantException(row.cohort, row.claimant, line=row.line)
            members.add(row.claimant)

        orphans = sorted(set(defined) - set(seen))
        if orphans:
            raise InputValidationException(
                f"Cohorts defined without claimants: {orphans}",
                details={"cohorts": orphans},
            )

        total_share = sum(
            (row.share_percentage for row in self.cohorts if row.share_percentage is not None),
            Decimal(0),
        )
        if total_share > 100:
            raise InputValidationException(
                f"Cohort shares total {total_share}%, more than 100%",
                details={"total_share": str(total_share)},
            )

    def claimants_by_cohort(self) -> dict[str, list[ClaimantRow]]:
        grouped: dict[str, list[ClaimantRow]] = {row.cohort: [] for row in self.cohorts}
        for row in self.claimants:
            grouped[row.cohort].append(row)
        return grouped


# =============================================================================
# CSV reading
# =============================================================================

def _data_lines(stream: TextIO, source: str) -> Iterator[tuple[int, str]]:
    """Yield (line_number, text), handling the optional version comment."""
    for number, text in enumerate(stream, start=1):
        stripped = text.strip()
        if not stripped:
            continue
        if stripped.startswith("#"):
            comment = stripped.lstrip("#").strip()
            if comment.startswith(CSV_VERSION_MARKER):
                raw_version = comment[len(CSV_VERSION_MARKER):].strip()
                if not raw_version.isdigit() or not is_compatible_csv_version(int(raw_version)):
                    raise InputValidationException(
                        f"Unsupported CSV format version {raw_version!r}",
                        source=source,
                        line=number,
                    )
            continue
        yield number, text


def _csv_rows(reader: Iterator[list[str]], numbers: list[int], source: str) -> Iterator[list[str]]:
    """csv.reader rows, with csv.Error reported against the offending line."""
    position = 0
    while True:
        try:
            cells = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            raise InputValidationException(
                f"Malformed CSV: {e}",
                source=source,
                line=numbers[min(position, len(numbers) - 1)],
            ) from e
        position += 1
        yield cells


def _read_rows(
    stream: TextIO,
    source: str,
    accepted_headers: tuple[tuple[str, ...], ...],
) -> Iterator[tuple[int, dict[str, Any]]]:
    lines = list(_data_lines(stream, source))
    if not lines:
        raise InputValidationException("File is empty", source=source)

    numbers = [number for number, _ in lines]
    reader = csv.reader(text for _, text in lines)

    header: Optional[tuple[str, ...]] = None
    for position, cells in enumerate(_csv_rows(reader, numbers, source)):
        number = numbers[position]
        cells = [cell.strip() for cell in cells]
        if header is None:
            if cells:
                cells[0] = cells[0].lstrip("\ufeff")
            header = tuple(cells)
            if header not in accepted_headers:
                expected = " or ".join(",".join(h) for h in accepted_headers)
                raise InputValidationException(
                    f"Unexpected header {','.join(header)!r}, expected {expected!r}",
                    source=source,
                    line=number,
                )
            continue
        if len(cells) != len(header):
            raise InputValidationException(
                f"Expected {len(header)} columns, got {len(cells)}",
                source=source,
                line=number,
            )
        # Empty cells are absent values
        yield number, {k: (v if v != "" else None) for k, v in zip(header, cells)}


def _validated(model: type[BaseModel], values: dict[str, Any], source: str, line: int) -> Any:
    try:
        return model(**values, line=line)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'row'}: {err['msg']}"
            for err in e.errors()
        )
        raise InputValidationException(
            f"Invalid row: {problems}",
            source=source,
            line=line,
        ) from e


def read_claimants(stream: TextIO, source: str = "<claimants>") -> list[ClaimantRow]:
    """Parse claimant rows from an open text stream."""
    rows = [
        _validated(ClaimantRow, values, source, number)
        for number, values in _read_rows(stream, source, (CLAIMANT_HEADERS,))
    ]
    logger.debug("Read %d claimant rows from %s", len(rows), source)
    return rows


def read_cohorts(stream: TextIO, source: str = "<cohorts>") -> list[CohortRow]:
    """Parse cohort rows from an open text stream."""
    rows = []
    for number, values in _read_rows(stream, source, (COHORT_HEADERS, COHORT_HEADERS_WITH_SHARE)):
        rows.append(_validated(CohortRow, values, source, number))
    logger.debug("Read %d cohort rows from %s", len(rows), source)
    return rows


def _read_file(path: Path, reader: Callable[[TextIO, str], list[Any]]) -> list[Any]:
    # utf-8-sig drops a leading byte order mark
    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            return reader(f, str(path))
    except UnicodeDecodeError as e:
        raise InputValidationException(
            f"File is not valid UTF-8 (byte offset {e.start})",
            source=str(path),
            details={"offset": e.start},
        ) from e
    except OSError as e:
        raise InputValidationException(f"Cannot read input file: {e}", source=str(path)) from e


def load_inputs(claimants_path: str | Path, cohorts_path: str | Path) -> CampaignInputs:
    """
    Load and cross-validate both input files.

    Raises:
        InputValidationException: (or a subclass) on the first problem found
    """
    claimants_path = Path(claimants_path)
    cohorts_path = Path(cohorts_path)
    for path in (claimants_path, cohorts_path):
        if not path.exists():
            raise InputValidationException(f"Input file not found: {path}", source=str(path))

    claimants = _read_file(claimants_path, read_claimants)
    cohorts = _read_file(cohorts_path, read_cohorts)

    inputs = CampaignInputs(claimants=claimants, cohorts=cohorts)
    inputs.validate_references()
    logger.info(
        "Loaded %d claimants across %d cohorts", len(claimants), len(cohorts)
    )
    return inputs


__all__ = [
    "CLAIMANT_HEADERS",
    "COHORT_HEADERS",
    "COHORT_HEADERS_WITH_SHARE",
    "CampaignInputs",
    "CampaignParameters",
    "ClaimantRow",
    "CohortRow",
    "load_inputs",
    "read_claimants",
    "read_cohorts",
]
