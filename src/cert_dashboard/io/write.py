from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from cert_dashboard.models import DeveloperRecord

EXPORT_COLUMNS = [
    "Email",
    "Code",
    "Country",
    "Percentage Completed",
    "Created At",
    "Accepted Marketing",
    "Accepted Membership",
    "Completed At",
]


def write_table(df: pd.DataFrame, path: Path, fmt: str = "csv") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "parquet":
        df.to_parquet(path, index=False)
        return path
    if fmt == "csv":
        df.to_csv(path, index=False)
        return path
    raise ValueError(f"Unsupported table format: {fmt}")


def write_summary(data: dict[str, Any], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, sort_keys=True, default=str), encoding="utf-8")
    return path


def developers_export_frame(records: Iterable[DeveloperRecord]) -> pd.DataFrame:
    rows = [
        {
            "Email": record.developer_id,
            "Code": record.community_code,
            "Country": record.country,
            "Percentage Completed": record.certification_progress,
            "Created At": record.enrollment_date.isoformat(),
            "Accepted Marketing": record.subscribed,
            "Accepted Membership": record.accepted_membership,
            "Completed At": record.completed_at.isoformat() if record.completed_at else "",
        }
        for record in records
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_developers_csv(records: Iterable[DeveloperRecord], path: Path) -> Path:
    frame = developers_export_frame(records)
    if frame.empty:
        raise ValueError("No data available to export")
    return write_table(frame, path, fmt="csv")
