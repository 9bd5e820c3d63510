from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from cert_dashboard.detectors.base import Detector, DetectorResult
from cert_dashboard.features.aggregates import (
    DEFAULT_RAPID_COMPLETION_HOURS,
    add_completion_features,
    records_frame,
)
from cert_dashboard.models import DeveloperRecord

RAPID_COMPLETION_COLUMNS = [
    "developer_id",
    "community_code",
    "enrollment_date",
    "completed_at",
    "elapsed_hours",
]


@dataclass(frozen=True)
class RapidCompletions:
    count: int
    developers: tuple[DeveloperRecord, ...]


class RapidCompletionsDetector(Detector):
    """Completions logged less than ``hours`` after enrollment (strictly less)."""

    name = "rapid_completions"

    def __init__(self, hours: float = DEFAULT_RAPID_COMPLETION_HOURS) -> None:
        self.hours = float(hours)

    def run(self, df: pd.DataFrame) -> DetectorResult:
        if df.empty:
            return DetectorResult(
                detector=self.name,
                summary={"count": 0, "threshold_hours": self.hours},
                tables={"rapid_completions": pd.DataFrame(columns=RAPID_COMPLETION_COLUMNS)},
                record_flags=pd.Series(dtype=bool),
            )

        working = add_completion_features(df, rapid_completion_hours=self.hours)
        flags = working["completed_at"].notna() & working["is_rapid"]
        flagged = working.loc[flags, RAPID_COMPLETION_COLUMNS].reset_index(drop=True)
        return DetectorResult(
            detector=self.name,
            summary={"count": int(flags.sum()), "threshold_hours": self.hours},
            tables={"rapid_completions": flagged},
            record_flags=flags,
        )


def find_rapid_completions(
    records: Sequence[DeveloperRecord],
    hours: float = DEFAULT_RAPID_COMPLETION_HOURS,
) -> RapidCompletions:
    result = RapidCompletionsDetector(hours).run(records_frame(records))
    flags = result.record_flags if result.record_flags is not None else pd.Series(dtype=bool)
    developers = tuple(record for record, flagged in zip(records, flags.tolist()) if flagged)
    return RapidCompletions(count=len(developers), developers=developers)
