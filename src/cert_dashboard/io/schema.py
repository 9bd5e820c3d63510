from __future__ import annotations

from typing import Iterable

from cert_dashboard.config import ColumnsConfig
from cert_dashboard.errors import ValidationError

REQUIRED_FIELDS = (
    "email",
    "code",
    "country",
    "percentage_completed",
    "created_at",
    "accepted_marketing",
    "accepted_membership",
    "completed_at",
)


def required_headers(columns: ColumnsConfig) -> list[str]:
    return [getattr(columns, name) for name in REQUIRED_FIELDS]


def validate_headers(headers: Iterable[str], columns: ColumnsConfig) -> None:
    """Reject the upload when any required source header is absent."""
    present = set(headers)
    missing = [header for header in required_headers(columns) if header not in present]
    if missing:
        raise ValidationError(f"Missing required headers: {', '.join(missing)}")


def match_community_header(headers: Iterable[str], columns: ColumnsConfig) -> str:
    accepted = {value.strip().lower() for value in columns.community_list_headers}
    for header in headers:
        if str(header).strip().lower() in accepted:
            return str(header)
    names = ", ".join(f'"{value}"' for value in columns.community_list_headers)
    raise ValidationError(f"CSV must contain a header named one of {names}")
