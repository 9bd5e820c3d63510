from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from cert_dashboard.features.aggregates import aggregate_communities
from cert_dashboard.features.distributions import (
    country_distribution,
    management_stats,
    membership_evolution,
    membership_summary,
    summary_counts,
)
from cert_dashboard.models import DateRange, DeveloperRecord

UTC = timezone.utc
T0 = datetime(2024, 1, 1, 10, 0, tzinfo=UTC)


def _record(
    developer_id: str,
    code: str = "A",
    country: str = "US",
    progress: int = 0,
    day: int = 0,
    member: bool = False,
    subscribed: bool = False,
) -> DeveloperRecord:
    return DeveloperRecord(
        developer_id=developer_id,
        first_name="",
        last_name="",
        community_code=code,
        country=country,
        certification_progress=progress,
        enrollment_date=T0 + timedelta(days=day),
        subscribed=subscribed,
        accepted_membership=member,
    )


def test_summary_counts() -> None:
    records = [
        _record("a@example.com", "A", progress=100, subscribed=True),
        _record("b@example.com", "A", progress=0),
        _record("c@example.com", "B", progress=0, subscribed=True),
        _record("d@example.com", "C", progress=10),
    ]
    communities = aggregate_communities(records, DateRange(), {})

    counts = summary_counts(records, communities)

    assert counts.total_developers == 4
    assert counts.started_course == 2
    assert counts.active_communities == 2
    assert counts.total_certified == 1
    assert counts.total_subscribed == 2


def test_country_distribution_orders_by_count_then_first_seen() -> None:
    records = [
        _record("a@example.com", country="CA"),
        _record("b@example.com", country="US"),
        _record("c@example.com", country="US"),
        _record("d@example.com", country="MX"),
        _record("e@example.com", country="CA"),
        _record("f@example.com", country="BR"),
    ]

    table = country_distribution(records)

    assert table["country"].tolist() == ["CA", "US", "MX", "BR"]
    assert table["developers"].tolist() == [2, 2, 1, 1]


def test_country_distribution_empty() -> None:
    table = country_distribution([])

    assert table.empty
    assert list(table.columns) == ["country", "developers"]


def test_membership_summary_counts_and_growth() -> None:
    records = [
        _record("a@example.com", member=True, day=0),
        _record("b@example.com", member=True, day=0),
        _record("c@example.com", member=False, day=1),
        _record("d@example.com", member=True, day=2),
    ]

    summary = membership_summary(records)

    assert summary.total_developers == 4
    assert summary.total_members == 3
    assert summary.membership_rate == 75.0
    assert summary.growth["date"].tolist() == [date(2024, 1, 1), date(2024, 1, 3)]
    assert summary.growth["members"].tolist() == [2, 3]


def test_membership_summary_empty() -> None:
    summary = membership_summary([])

    assert summary.membership_rate == 0.0
    assert summary.growth.empty


def test_membership_evolution_is_cumulative_per_day() -> None:
    records = [
        _record("a@example.com", progress=10, day=1),
        _record("b@example.com", progress=0, day=0),
        _record("c@example.com", progress=0, day=1),
        _record("d@example.com", progress=50, day=3),
    ]
    community = aggregate_communities(records, DateRange(), {})[0]

    evolution = membership_evolution(community)

    assert evolution["date"].tolist() == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 4)]
    assert evolution["developers"].tolist() == [1, 3, 4]
    assert evolution["started_course"].tolist() == [0, 1, 2]


def test_management_stats() -> None:
    records = [_record("a@example.com", "NY"), _record("b@example.com", "SF")]
    communities = aggregate_communities(records, DateRange(), {})

    stats = management_stats(["NY", "LA", "SF", "BOS"], communities)

    assert stats.total_registered == 4
    assert stats.active_count == 2
    assert stats.inactive_count == 2
    assert stats.activation_rate == 50.0
    assert stats.inactive_codes == ("LA", "BOS")
    assert management_stats([], communities) is None
