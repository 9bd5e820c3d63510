from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cert_dashboard.features.aggregates import aggregate_communities
from cert_dashboard.features.comparison import (
    TIME_RESOLUTION,
    compare_community,
    peer_average,
    previous_period,
    previous_period_stats,
)
from cert_dashboard.models import (
    CommunityMetaData,
    CommunityWithMetadata,
    DateRange,
    DeveloperRecord,
)

UTC = timezone.utc
CURRENT = DateRange(
    start=datetime(2024, 1, 11, tzinfo=UTC),
    end=datetime(2024, 1, 21, tzinfo=UTC),
)


def _record(
    developer_id: str, code: str, enrolled: datetime, progress: int = 0
) -> DeveloperRecord:
    return DeveloperRecord(
        developer_id=developer_id,
        first_name="",
        last_name="",
        community_code=code,
        country="US",
        certification_progress=progress,
        enrollment_date=enrolled,
    )


def _community(code: str, count: int, certified: int, progress: float) -> CommunityWithMetadata:
    return CommunityWithMetadata(
        code=code,
        developer_count=count,
        subscribed_count=0,
        certified_count=certified,
        average_progress=progress,
        average_completion_days=None,
        has_rapid_completions=False,
        meta=CommunityMetaData(),
    )


def test_previous_period_is_adjacent_and_equal_length() -> None:
    window = previous_period(CURRENT)

    assert window.end == CURRENT.start - TIME_RESOLUTION
    assert window.end - window.start == CURRENT.end - CURRENT.start
    assert window.start == datetime(2023, 12, 31, 23, 59, 59, 999999, tzinfo=UTC)


def test_previous_period_requires_bounded_range() -> None:
    assert previous_period(DateRange(start=CURRENT.start)) is None
    assert previous_period(DateRange(end=CURRENT.end)) is None


def test_date_range_duration_and_bounds() -> None:
    assert CURRENT.is_bounded
    assert CURRENT.duration == timedelta(days=10)
    assert not DateRange(start=CURRENT.start).is_bounded
    assert DateRange(start=CURRENT.start).duration is None


def test_previous_period_stats_filter_by_community_and_window() -> None:
    records = [
        _record("old@example.com", "A", datetime(2024, 1, 5, tzinfo=UTC), progress=100),
        _record("old2@example.com", "A", datetime(2024, 1, 6, tzinfo=UTC), progress=50),
        _record("other@example.com", "B", datetime(2024, 1, 6, tzinfo=UTC), progress=100),
        _record("now@example.com", "A", datetime(2024, 1, 12, tzinfo=UTC), progress=100),
        _record("edge@example.com", "A", CURRENT.start, progress=100),
    ]

    stats = previous_period_stats(records, CURRENT, "A")

    assert stats.developer_count == 2
    assert stats.certified_count == 1
    assert stats.average_progress == 75.0


def test_previous_period_stats_empty_window() -> None:
    stats = previous_period_stats([], CURRENT, "A")

    assert stats.developer_count == 0
    assert stats.average_progress == 0.0


def test_peer_average_is_unweighted_over_other_communities() -> None:
    communities = [
        _community("A", 2, 1, 75.0),
        _community("B", 2, 0, 0.0),
        _community("C", 2000, 3, 100.0),
    ]

    peers = peer_average(communities, "A")

    assert peers.peer_count == 2
    assert peers.average_developer_count == 1001.0
    assert peers.average_certified_count == 1.5
    assert peers.average_progress == 50.0


def test_peer_average_without_target_or_peers() -> None:
    communities = [_community("A", 2, 1, 75.0)]

    assert peer_average(communities, None) is None
    assert peer_average(communities, "A") is None


def test_compare_community_combines_both_benchmarks() -> None:
    records = [
        _record("prev@example.com", "A", datetime(2024, 1, 2, tzinfo=UTC), progress=40),
        _record("a@example.com", "A", datetime(2024, 1, 15, tzinfo=UTC), progress=80),
        _record("b@example.com", "B", datetime(2024, 1, 15, tzinfo=UTC), progress=20),
    ]
    communities = aggregate_communities(records, CURRENT, {})

    comparison = compare_community(records, communities, CURRENT, "A")

    assert comparison.current.developer_count == 1
    assert comparison.previous.developer_count == 1
    assert comparison.previous.average_progress == 40.0
    assert comparison.peers.average_progress == pytest.approx(20.0)
    payload = comparison.as_dict()
    assert payload["communityCode"] == "A"
    assert payload["peerAverage"]["peerCount"] == 1


def test_compare_community_is_none_when_not_computable() -> None:
    assert compare_community([], [], DateRange(), "A") is None
    assert compare_community([], [], CURRENT, None) is None
    assert compare_community([], [], CURRENT, "") is None


def test_previous_window_shift_matches_resolution() -> None:
    assert TIME_RESOLUTION == timedelta(microseconds=1)
