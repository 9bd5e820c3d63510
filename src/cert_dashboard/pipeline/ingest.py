from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from cert_dashboard.config import AppConfig, IngestConfig
from cert_dashboard.errors import ValidationError
from cert_dashboard.io.read import read_raw_rows
from cert_dashboard.io.schema import validate_headers
from cert_dashboard.models import DeveloperRecord
from cert_dashboard.preprocess.names import resolve_names
from cert_dashboard.preprocess.time import correct_ampm, parse_timestamp

LOGGER = logging.getLogger(__name__)

# Row numbers in messages count the header as row 1.
FIRST_DATA_ROW = 2


def parse_flag(value: str | None, truthy_values: Iterable[str]) -> bool:
    return str(value or "").strip().lower() in {item.lower() for item in truthy_values}


def parse_progress(value: str | None, *, row: int, column: str) -> int:
    text = str(value or "").strip()
    try:
        progress = int(text)
    except ValueError:
        raise ValidationError(
            f"Invalid '{column}': {value!r}", row=row, column=column
        ) from None
    if progress < 0 or progress > 100:
        raise ValidationError(f"Invalid '{column}': {value!r}", row=row, column=column)
    return progress


def _normalize_row(
    row: Mapping[str, str],
    row_number: int,
    config: AppConfig,
) -> DeveloperRecord:
    columns = config.columns
    ingest: IngestConfig = config.ingest

    progress = parse_progress(
        row.get(columns.percentage_completed), row=row_number, column=columns.percentage_completed
    )

    enrollment_raw = row.get(columns.created_at, "")
    enrollment = parse_timestamp(enrollment_raw, ingest.timezone)
    if enrollment is None:
        raise ValidationError(
            f"Invalid '{columns.created_at}' date: {enrollment_raw!r}",
            row=row_number,
            column=columns.created_at,
        )

    completed_raw = str(row.get(columns.completed_at, "") or "").strip()
    completed_at = None
    if completed_raw:
        completed_at = parse_timestamp(completed_raw, ingest.timezone)
        if completed_at is None:
            raise ValidationError(
                f"Invalid '{columns.completed_at}' date: {completed_raw!r}",
                row=row_number,
                column=columns.completed_at,
            )
        if ingest.ampm_correction:
            completed_at = correct_ampm(enrollment, completed_at)
        if ingest.reject_inverted_completion and completed_at < enrollment:
            raise ValidationError(
                f"'{columns.completed_at}' precedes '{columns.created_at}'",
                row=row_number,
                column=columns.completed_at,
            )

    developer_id = str(row.get(columns.email, "") or "").strip()
    first_name, last_name = resolve_names(
        row.get(columns.first_name), row.get(columns.last_name), developer_id
    )

    return DeveloperRecord(
        developer_id=developer_id,
        first_name=first_name,
        last_name=last_name,
        community_code=str(row.get(columns.code, "") or "").strip(),
        country=str(row.get(columns.country, "") or "").strip() or "Unknown",
        certification_progress=progress,
        enrollment_date=enrollment,
        completed_at=completed_at,
        subscribed=parse_flag(row.get(columns.accepted_marketing), ingest.truthy_values),
        accepted_membership=parse_flag(row.get(columns.accepted_membership), ingest.truthy_values),
    )


def normalize_rows(
    rows: Sequence[Mapping[str, str]],
    headers: Iterable[str],
    config: AppConfig,
) -> list[DeveloperRecord]:
    """
    Turn raw CSV rows into developer records, in input order.

    The whole batch is rejected with ``ValidationError`` on the first invalid
    header or row; no partial record set is ever returned.
    """
    validate_headers(headers, config.columns)
    return [
        _normalize_row(row, row_number=index + FIRST_DATA_ROW, config=config)
        for index, row in enumerate(rows)
    ]


def load_developer_records(csv_path: Path, config: AppConfig) -> list[DeveloperRecord]:
    headers, rows = read_raw_rows(csv_path)
    records = normalize_rows(rows, headers, config)
    LOGGER.info("Parsed %d developer records from %s", len(records), csv_path.name)
    return records
