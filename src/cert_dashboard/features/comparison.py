from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Sequence

from cert_dashboard.models import CommunityWithMetadata, DateRange, DeveloperRecord

# Smallest step between two datetimes; the previous window ends one step
# before the current one starts.
TIME_RESOLUTION = timedelta(microseconds=1)


@dataclass(frozen=True)
class PeriodStats:
    start: datetime
    end: datetime
    developer_count: int
    certified_count: int
    average_progress: float


@dataclass(frozen=True)
class PeerAverage:
    peer_count: int
    average_developer_count: float
    average_certified_count: float
    average_progress: float


@dataclass(frozen=True)
class CommunityComparison:
    community_code: str
    current: CommunityWithMetadata | None
    previous: PeriodStats
    peers: PeerAverage | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "communityCode": self.community_code,
            "current": self.current.as_dict() if self.current is not None else None,
            "previousPeriod": {
                "from": self.previous.start.isoformat(),
                "to": self.previous.end.isoformat(),
                "developerCount": self.previous.developer_count,
                "certifiedCount": self.previous.certified_count,
                "averageProgress": self.previous.average_progress,
            },
            "peerAverage": (
                None
                if self.peers is None
                else {
                    "peerCount": self.peers.peer_count,
                    "averageDeveloperCount": self.peers.average_developer_count,
                    "averageCertifiedCount": self.peers.average_certified_count,
                    "averageProgress": self.peers.average_progress,
                }
            ),
        }


def previous_period(date_range: DateRange) -> DateRange | None:
    """Equal-length window ending at the instant before ``date_range`` starts."""
    if not date_range.is_bounded:
        return None
    previous_end = date_range.start - TIME_RESOLUTION
    return DateRange(start=previous_end - date_range.duration, end=previous_end)


def previous_period_stats(
    records: Sequence[DeveloperRecord],
    date_range: DateRange,
    community_code: str | None,
) -> PeriodStats | None:
    window = previous_period(date_range)
    if window is None or not community_code:
        return None
    members = [
        record
        for record in records
        if record.community_code == community_code and window.contains(record.enrollment_date)
    ]
    count = len(members)
    return PeriodStats(
        start=window.start,
        end=window.end,
        developer_count=count,
        certified_count=sum(1 for record in members if record.certified),
        average_progress=(
            sum(record.certification_progress for record in members) / count if count else 0.0
        ),
    )


def peer_average(
    communities: Sequence[CommunityWithMetadata],
    community_code: str | None,
) -> PeerAverage | None:
    """
    Unweighted mean of the other communities' own rollups.

    Each peer community counts once regardless of its size.
    """
    if not community_code:
        return None
    peers = [community for community in communities if community.code != community_code]
    if not peers:
        return None
    n = len(peers)
    return PeerAverage(
        peer_count=n,
        average_developer_count=sum(peer.developer_count for peer in peers) / n,
        average_certified_count=sum(peer.certified_count for peer in peers) / n,
        average_progress=sum(peer.average_progress for peer in peers) / n,
    )


def compare_community(
    records: Sequence[DeveloperRecord],
    communities: Sequence[CommunityWithMetadata],
    date_range: DateRange,
    community_code: str | None,
) -> CommunityComparison | None:
    """Previous-period and peer benchmarks for one community; ``None`` when not computable."""
    previous = previous_period_stats(records, date_range, community_code)
    if previous is None or not community_code:
        return None
    current = next(
        (community for community in communities if community.code == community_code), None
    )
    return CommunityComparison(
        community_code=community_code,
        current=current,
        previous=previous,
        peers=peer_average(communities, community_code),
    )
