from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from cert_dashboard.features.aggregates import records_frame
from cert_dashboard.models import CommunityWithMetadata, DeveloperRecord


@dataclass(frozen=True)
class SummaryCounts:
    total_developers: int
    started_course: int
    active_communities: int
    total_certified: int
    total_subscribed: int


@dataclass(frozen=True)
class MembershipSummary:
    total_developers: int
    total_members: int
    membership_rate: float
    growth: pd.DataFrame


@dataclass(frozen=True)
class ManagementStats:
    total_registered: int
    active_count: int
    inactive_count: int
    activation_rate: float
    inactive_codes: tuple[str, ...]


def _enrollment_day(frame: pd.DataFrame, timezone: str) -> pd.Series:
    return frame["enrollment_date"].dt.tz_convert(timezone).dt.date


def summary_counts(
    records: Sequence[DeveloperRecord],
    communities: Sequence[CommunityWithMetadata],
) -> SummaryCounts:
    return SummaryCounts(
        total_developers=len(records),
        started_course=sum(1 for record in records if record.certification_progress > 0),
        active_communities=sum(
            1
            for community in communities
            if any(developer.certification_progress > 0 for developer in community.developers)
        ),
        total_certified=sum(1 for record in records if record.certified),
        total_subscribed=sum(1 for record in records if record.subscribed),
    )


def country_distribution(records: Sequence[DeveloperRecord]) -> pd.DataFrame:
    """Developers per country, largest first; ties keep first-seen order."""
    frame = records_frame(records)
    if frame.empty:
        return pd.DataFrame(columns=["country", "developers"])
    countries = frame["country"].replace("", "Unknown")
    counts = countries.groupby(countries, sort=False).size().rename("developers")
    counts.index.name = "country"
    return (
        counts.reset_index()
        .sort_values("developers", ascending=False, kind="stable")
        .reset_index(drop=True)
    )


def membership_summary(
    records: Sequence[DeveloperRecord],
    timezone: str = "UTC",
) -> MembershipSummary:
    members = [record for record in records if record.accepted_membership]
    total = len(records)
    rate = (len(members) / total) * 100.0 if total else 0.0

    growth = pd.DataFrame(columns=["date", "members"])
    if members:
        frame = records_frame(members).sort_values("enrollment_date", kind="stable")
        per_day = frame.groupby(_enrollment_day(frame, timezone), sort=True).size()
        growth = pd.DataFrame({"date": per_day.index, "members": per_day.cumsum().to_numpy()})

    return MembershipSummary(
        total_developers=total,
        total_members=len(members),
        membership_rate=rate,
        growth=growth,
    )


def membership_evolution(community: CommunityWithMetadata, timezone: str = "UTC") -> pd.DataFrame:
    """Cumulative developers and course starters at the end of each enrollment day."""
    if not community.developers:
        return pd.DataFrame(columns=["date", "developers", "started_course"])
    frame = records_frame(community.developers).sort_values("enrollment_date", kind="stable")
    frame["day"] = _enrollment_day(frame, timezone)
    frame["started"] = frame["certification_progress"] > 0
    per_day = frame.groupby("day", sort=True).agg(
        developers=("developer_id", "count"),
        started_course=("started", "sum"),
    )
    cumulative = per_day.cumsum()
    return pd.DataFrame(
        {
            "date": cumulative.index,
            "developers": cumulative["developers"].astype(int).to_numpy(),
            "started_course": cumulative["started_course"].astype(int).to_numpy(),
        }
    )


def management_stats(
    registered_codes: Sequence[str],
    communities: Sequence[CommunityWithMetadata],
) -> ManagementStats | None:
    """Activation of the registered community list against the current rollups."""
    if not registered_codes:
        return None
    active_codes = {community.code for community in communities}
    inactive = tuple(code for code in registered_codes if code not in active_codes)
    total = len(registered_codes)
    return ManagementStats(
        total_registered=total,
        active_count=len(active_codes),
        inactive_count=len(inactive),
        activation_rate=(len(active_codes) / total) * 100.0,
        inactive_codes=inactive,
    )
