from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Mapping, Sequence
from zoneinfo import ZoneInfo

import numpy as np
import pandas as pd

from cert_dashboard.models import (
    CommunityMetaData,
    CommunityWithMetadata,
    DateRange,
    DeveloperRecord,
)

DEFAULT_RAPID_COMPLETION_HOURS = 5.0
DEFAULT_TOP_PERFORMERS = 5
SECONDS_PER_DAY = 24 * 60 * 60

RECORD_COLUMNS = [
    "developer_id",
    "community_code",
    "country",
    "certification_progress",
    "enrollment_date",
    "completed_at",
    "subscribed",
    "accepted_membership",
    "certified",
]


@dataclass(frozen=True)
class GlobalStats:
    overall_average_completion_days: float | None
    top_performing_communities: tuple[CommunityWithMetadata, ...]


def records_frame(records: Sequence[DeveloperRecord]) -> pd.DataFrame:
    """Columnar view of developer records; row ``i`` is ``records[i]``."""
    if not records:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    frame = pd.DataFrame(
        {
            "developer_id": [record.developer_id for record in records],
            "community_code": [record.community_code for record in records],
            "country": [record.country for record in records],
            "certification_progress": [record.certification_progress for record in records],
            "enrollment_date": pd.to_datetime(
                [record.enrollment_date for record in records], utc=True
            ),
            "completed_at": pd.to_datetime(
                [record.completed_at for record in records], utc=True
            ),
            "subscribed": [bool(record.subscribed) for record in records],
            "accepted_membership": [bool(record.accepted_membership) for record in records],
            "certified": [record.certified for record in records],
        }
    )
    return frame


def add_completion_features(
    frame: pd.DataFrame,
    rapid_completion_hours: float = DEFAULT_RAPID_COMPLETION_HOURS,
) -> pd.DataFrame:
    """
    Add ``elapsed_hours``, ``completion_days`` and ``is_rapid`` columns.

    ``completion_days`` is the whole-day ceiling of the absolute elapsed time
    and is only set for certified developers with a completion timestamp, so
    any inversion left behind by the AM/PM repair still yields a positive
    duration. ``is_rapid`` uses the signed elapsed time.
    """
    working = frame.copy()
    elapsed = working["completed_at"] - working["enrollment_date"]
    seconds = elapsed.dt.total_seconds()
    eligible = working["certified"].astype(bool) & working["completed_at"].notna()

    working["elapsed_hours"] = seconds / 3600.0
    working["completion_days"] = np.ceil(seconds.abs() / SECONDS_PER_DAY).where(eligible)
    working["is_rapid"] = working["elapsed_hours"] < float(rapid_completion_hours)
    return working


def filter_by_date_range(
    records: Sequence[DeveloperRecord], date_range: DateRange
) -> list[DeveloperRecord]:
    return [record for record in records if date_range.contains(record.enrollment_date)]


def aggregate_communities(
    records: Sequence[DeveloperRecord],
    date_range: DateRange,
    metadata: Mapping[str, CommunityMetaData],
    *,
    rapid_completion_hours: float = DEFAULT_RAPID_COMPLETION_HOURS,
) -> list[CommunityWithMetadata]:
    """
    Fold developer records into per-community rollups for one date window.

    Communities keep the order in which their code first appears, then are
    sorted by developer count descending with a stable sort. The result is a
    pure function of the inputs.
    """
    filtered = filter_by_date_range(records, date_range)
    if not filtered:
        return []

    frame = add_completion_features(records_frame(filtered), rapid_completion_hours)
    grouped = frame.groupby("community_code", sort=False)
    rollup = grouped.agg(
        developer_count=("developer_id", "count"),
        subscribed_count=("subscribed", "sum"),
        certified_count=("certified", "sum"),
        average_progress=("certification_progress", "mean"),
        average_completion_days=("completion_days", "mean"),
        has_rapid_completions=("is_rapid", "any"),
    )
    rollup = rollup.sort_values("developer_count", ascending=False, kind="stable")
    member_positions = grouped.indices

    default_meta = CommunityMetaData()
    communities: list[CommunityWithMetadata] = []
    for code, row in rollup.iterrows():
        completion_days = row["average_completion_days"]
        communities.append(
            CommunityWithMetadata(
                code=str(code),
                developer_count=int(row["developer_count"]),
                subscribed_count=int(row["subscribed_count"]),
                certified_count=int(row["certified_count"]),
                average_progress=float(row["average_progress"]),
                average_completion_days=(
                    None if pd.isna(completion_days) else float(completion_days)
                ),
                has_rapid_completions=bool(row["has_rapid_completions"]),
                meta=metadata.get(str(code), default_meta),
                developers=tuple(filtered[int(position)] for position in member_positions[code]),
            )
        )
    return communities


def overall_average_completion_days(
    communities: Sequence[CommunityWithMetadata],
) -> float | None:
    developers = [developer for community in communities for developer in community.developers]
    if not developers:
        return None
    completion_days = add_completion_features(records_frame(developers))["completion_days"]
    if completion_days.notna().sum() == 0:
        return None
    return float(completion_days.mean())


def top_performing_communities(
    communities: Sequence[CommunityWithMetadata],
    limit: int = DEFAULT_TOP_PERFORMERS,
) -> list[CommunityWithMetadata]:
    # Ranked by progress x (certified + 1) so progress still counts with no certifications.
    eligible = [
        community
        for community in communities
        if community.average_progress > 0 or community.certified_count > 0
    ]
    ranked = sorted(eligible, key=lambda community: community.performance_score, reverse=True)
    return ranked[:limit]


def build_global_stats(
    communities: Sequence[CommunityWithMetadata],
    top_n: int = DEFAULT_TOP_PERFORMERS,
) -> GlobalStats:
    return GlobalStats(
        overall_average_completion_days=overall_average_completion_days(communities),
        top_performing_communities=tuple(top_performing_communities(communities, limit=top_n)),
    )


def day_range(
    from_day: date | None,
    to_day: date | None,
    timezone: str = "UTC",
) -> DateRange:
    """Inclusive range from the start of ``from_day`` to the last instant of ``to_day``."""
    tz = ZoneInfo(timezone)
    start = datetime.combine(from_day, time.min, tzinfo=tz) if from_day else None
    end = datetime.combine(to_day, time.max, tzinfo=tz) if to_day else None
    return DateRange(start=start, end=end)


def default_date_range(records: Sequence[DeveloperRecord], timezone: str = "UTC") -> DateRange:
    """Initial filter window covering every enrollment day in ``records``."""
    if not records:
        return DateRange()
    tz = ZoneInfo(timezone)
    enrollments = [record.enrollment_date.astimezone(tz) for record in records]
    return day_range(min(enrollments).date(), max(enrollments).date(), timezone=timezone)
