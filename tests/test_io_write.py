from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd
import pytest

from cert_dashboard.io.write import (
    EXPORT_COLUMNS,
    export_developers_csv,
    write_summary,
    write_table,
)
from cert_dashboard.models import DeveloperRecord

UTC = timezone.utc


def _record(completed: datetime | None) -> DeveloperRecord:
    return DeveloperRecord(
        developer_id="jane@example.com",
        first_name="Jane",
        last_name="",
        community_code="NY",
        country="US",
        certification_progress=100 if completed else 30,
        enrollment_date=datetime(2024, 1, 1, 9, 0, tzinfo=UTC),
        completed_at=completed,
        subscribed=True,
    )


def test_export_developers_csv_projects_fixed_columns(tmp_path: Path) -> None:
    path = export_developers_csv(
        [_record(datetime(2024, 1, 3, tzinfo=UTC)), _record(None)],
        tmp_path / "export" / "developers.csv",
    )

    frame = pd.read_csv(path, dtype=str, keep_default_na=False)
    assert list(frame.columns) == EXPORT_COLUMNS
    assert frame.loc[0, "Created At"] == "2024-01-01T09:00:00+00:00"
    assert frame.loc[0, "Completed At"] == "2024-01-03T00:00:00+00:00"
    assert frame.loc[1, "Completed At"] == ""
    assert frame.loc[1, "Percentage Completed"] == "30"


def test_export_developers_csv_rejects_empty_input(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="No data"):
        export_developers_csv([], tmp_path / "developers.csv")


def test_write_summary_and_table(tmp_path: Path) -> None:
    summary = write_summary({"count": 1, "when": datetime(2024, 1, 1)}, tmp_path / "s" / "x.json")
    table = write_table(pd.DataFrame({"a": [1]}), tmp_path / "t" / "x.csv")

    assert json.loads(summary.read_text(encoding="utf-8"))["count"] == 1
    assert table.read_text(encoding="utf-8").splitlines() == ["a", "1"]
    with pytest.raises(ValueError, match="Unsupported"):
        write_table(pd.DataFrame(), tmp_path / "x.xlsx", fmt="xlsx")
