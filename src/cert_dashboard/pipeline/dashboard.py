from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Hashable, Mapping, Sequence

import pandas as pd

from cert_dashboard.config import AppConfig
from cert_dashboard.detectors.base import DetectorResult
from cert_dashboard.detectors.rapid_completions import RapidCompletions, find_rapid_completions
from cert_dashboard.detectors.registry import default_detectors
from cert_dashboard.detectors.suspicious_accounts import (
    SuspiciousAccounts,
    flag_suspicious_accounts,
)
from cert_dashboard.features.aggregates import (
    GlobalStats,
    aggregate_communities,
    build_global_stats,
    filter_by_date_range,
    records_frame,
)
from cert_dashboard.features.distributions import (
    MembershipSummary,
    SummaryCounts,
    country_distribution,
    membership_summary,
    summary_counts,
)
from cert_dashboard.io.write import write_summary, write_table
from cert_dashboard.models import (
    CommunityMetaData,
    CommunityWithMetadata,
    DateRange,
    DeveloperRecord,
)
from cert_dashboard.paths import build_output_paths

LOGGER = logging.getLogger(__name__)

COMMUNITY_TABLE_COLUMNS = [
    "code",
    "developer_count",
    "subscribed_count",
    "certified_count",
    "average_progress",
    "average_completion_days",
    "has_rapid_completions",
    "is_important",
    "follow_up_date",
]


@dataclass(frozen=True)
class DashboardSnapshot:
    date_range: DateRange
    communities: tuple[CommunityWithMetadata, ...]
    global_stats: GlobalStats
    suspicious_accounts: SuspiciousAccounts
    rapid_completions: RapidCompletions
    summary: SummaryCounts
    membership: MembershipSummary
    countries: pd.DataFrame

    def as_dict(self) -> dict[str, Any]:
        return {
            "dateRange": {
                "from": self.date_range.start.isoformat() if self.date_range.start else None,
                "to": self.date_range.end.isoformat() if self.date_range.end else None,
            },
            "summary": {
                "totalDevelopers": self.summary.total_developers,
                "startedCourse": self.summary.started_course,
                "activeCommunities": self.summary.active_communities,
                "totalCertified": self.summary.total_certified,
                "totalSubscribed": self.summary.total_subscribed,
            },
            "overallAverageCompletionDays": self.global_stats.overall_average_completion_days,
            "topPerformingCommunities": [
                community.code for community in self.global_stats.top_performing_communities
            ],
            "communities": [community.as_dict() for community in self.communities],
            "suspiciousAccounts": {
                "count": self.suspicious_accounts.count,
                "percentage": self.suspicious_accounts.percentage,
            },
            "rapidCompletions": {
                "count": self.rapid_completions.count,
                "developers": [
                    developer.developer_id for developer in self.rapid_completions.developers
                ],
            },
            "membership": {
                "totalMembers": self.membership.total_members,
                "membershipRate": self.membership.membership_rate,
            },
        }


def communities_table(communities: Sequence[CommunityWithMetadata]) -> pd.DataFrame:
    rows = [
        {
            "code": community.code,
            "developer_count": community.developer_count,
            "subscribed_count": community.subscribed_count,
            "certified_count": community.certified_count,
            "average_progress": community.average_progress,
            "average_completion_days": community.average_completion_days,
            "has_rapid_completions": community.has_rapid_completions,
            "is_important": community.meta.is_important,
            "follow_up_date": community.meta.follow_up_date,
        }
        for community in communities
    ]
    return pd.DataFrame(rows, columns=COMMUNITY_TABLE_COLUMNS)


def build_dashboard(
    records: Sequence[DeveloperRecord],
    date_range: DateRange,
    metadata: Mapping[str, CommunityMetaData],
    config: AppConfig,
) -> DashboardSnapshot:
    """
    Compute every dashboard figure for one in-scope record set and date window.

    ``records`` must already be access-filtered. The fraud passes and the
    distributions run over the date-filtered subset.
    """
    communities = aggregate_communities(
        records,
        date_range,
        metadata,
        rapid_completion_hours=config.metrics.rapid_completion_hours,
    )
    filtered = filter_by_date_range(records, date_range)
    return DashboardSnapshot(
        date_range=date_range,
        communities=tuple(communities),
        global_stats=build_global_stats(communities, top_n=config.metrics.top_performers),
        suspicious_accounts=flag_suspicious_accounts(filtered, config.fraud.disposable_domains),
        rapid_completions=find_rapid_completions(filtered, config.metrics.rapid_completion_hours),
        summary=summary_counts(filtered, communities),
        membership=membership_summary(filtered, timezone=config.ingest.timezone),
        countries=country_distribution(filtered),
    )


def _flags_table(flags: pd.Series, developer_ids: pd.Series) -> pd.DataFrame:
    return pd.DataFrame(
        {"developer_id": developer_ids.to_numpy(), "flag": flags.astype(bool).to_numpy()}
    )


def write_dashboard_outputs(
    snapshot: DashboardSnapshot,
    records: Sequence[DeveloperRecord],
    out_dir: Path,
    config: AppConfig,
) -> dict[str, DetectorResult]:
    """Write the dashboard summary, rollup tables and per-detector outputs under ``out_dir``."""
    paths = build_output_paths(out_dir)
    extension = "parquet" if config.outputs.tables_format == "parquet" else "csv"
    fmt = config.outputs.tables_format

    write_summary(snapshot.as_dict(), paths.summary / "dashboard.json")
    write_table(
        communities_table(snapshot.communities),
        paths.tables / f"communities.{extension}",
        fmt=fmt,
    )
    write_table(snapshot.countries, paths.tables / f"countries.{extension}", fmt=fmt)
    write_table(
        snapshot.membership.growth, paths.tables / f"membership_growth.{extension}", fmt=fmt
    )

    frame = records_frame(filter_by_date_range(records, snapshot.date_range))
    results: dict[str, DetectorResult] = {}
    for detector in default_detectors(config):
        result = detector.run(frame)
        results[result.detector] = result
        write_summary(result.summary, paths.summary / f"{result.detector}.json")
        for table_name, table in result.tables.items():
            write_table(
                table,
                paths.tables / f"{result.detector}__{table_name}.{extension}",
                fmt=fmt,
            )
        if result.record_flags is not None and not frame.empty:
            write_table(
                _flags_table(result.record_flags, frame["developer_id"]),
                paths.flags / f"{result.detector}__record_flags.{extension}",
                fmt=fmt,
            )
        LOGGER.info("Detector %s flagged %s records", result.detector, result.summary["count"])
    return results


@dataclass(frozen=True)
class PipelineKey:
    developers_version: int
    date_range: DateRange
    metadata_version: int
    scope: Hashable = None


class DashboardPipeline:
    """
    Memoized dashboard recomputation keyed by input identity.

    A result is only adopted when its key is still the latest one requested;
    anything computed for a superseded key is discarded.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self._latest_key: PipelineKey | None = None
        self._key: PipelineKey | None = None
        self._result: DashboardSnapshot | None = None

    @property
    def current(self) -> DashboardSnapshot | None:
        return self._result

    def request(self, key: PipelineKey) -> None:
        self._latest_key = key

    def submit(self, key: PipelineKey, result: DashboardSnapshot) -> bool:
        if key != self._latest_key:
            LOGGER.debug("Discarding dashboard computed for superseded key %s", key)
            return False
        self._key = key
        self._result = result
        return True

    def refresh(
        self,
        key: PipelineKey,
        records: Sequence[DeveloperRecord],
        metadata: Mapping[str, CommunityMetaData],
    ) -> DashboardSnapshot:
        if key == self._key and self._result is not None:
            self._latest_key = key
            return self._result
        self.request(key)
        result = build_dashboard(records, key.date_range, metadata, self.config)
        if not self.submit(key, result) and self._result is not None:
            return self._result
        return result
