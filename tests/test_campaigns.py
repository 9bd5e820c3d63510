from __future__ import annotations

from datetime import datetime, timezone

from cert_dashboard.campaigns import (
    DEFAULT_TEMPLATES,
    CampaignRequest,
    build_campaign,
    render_template,
    select_audience,
    split_events,
)
from cert_dashboard.models import DeveloperRecord, Event

UTC = timezone.utc


def _record(
    developer_id: str, code: str, progress: int, subscribed: bool = True
) -> DeveloperRecord:
    return DeveloperRecord(
        developer_id=developer_id,
        first_name="Jane",
        last_name="Doe",
        community_code=code,
        country="US",
        certification_progress=progress,
        enrollment_date=datetime(2024, 1, 1, tzinfo=UTC),
        subscribed=subscribed,
    )


RECORDS = [
    _record("a@example.com", "NY", 90),
    _record("b@example.com", "NY", 20),
    _record("c@example.com", "SF", 95),
    _record("d@example.com", "NY", 99, subscribed=False),
]


def test_select_audience_filters_subscription_community_and_progress() -> None:
    audience = select_audience(RECORDS, community_filter="NY", min_progress=80, max_progress=100)

    assert [record.developer_id for record in audience] == ["a@example.com"]
    assert len(select_audience(RECORDS)) == 3
    assert len(select_audience(RECORDS, min_progress=20, max_progress=20)) == 1


def test_render_template_replaces_known_tags() -> None:
    text = render_template(
        "Hi {{first_name}} {{last_name}} ({{community_code}}): {{completion_percentage}}%",
        RECORDS[0],
    )

    assert text == "Hi Jane Doe (NY): 90%"


def test_render_template_leaves_unknown_tags() -> None:
    text = render_template("{{first_name}} {{nickname}} {{event_name}}", RECORDS[0])

    assert text == "Jane {{nickname}} {{event_name}}"


def test_render_template_with_event() -> None:
    event = Event(id="e1", name="Study Jam", date="2024-03-09", link="")

    text = render_template("{{event_name}} on {{event_date}} at {{event_link}}", RECORDS[0], event)

    assert text == "Study Jam on 03/09/2024 at #"


def test_default_templates_render_cleanly() -> None:
    event = Event(id="e1", name="Study Jam", date="2024-03-09", link="https://example.com")

    for template in DEFAULT_TEMPLATES:
        assert "{{" not in render_template(template.body, RECORDS[0], event)


def test_build_campaign_is_queued_with_unique_recipients() -> None:
    created_at = datetime(2024, 6, 1, tzinfo=UTC)
    request = CampaignRequest(name="Push", subject="Go", body="Body", min_progress=50)

    campaign = build_campaign(
        request, RECORDS + [RECORDS[0]], created_by="root", created_at=created_at
    )

    assert campaign.status == "queued"
    assert campaign.recipients == ("a@example.com", "c@example.com")
    assert campaign.community_filter == "all"
    assert campaign.to_document()["createdAt"] == created_at.isoformat()


def test_split_events_orders_upcoming_and_past() -> None:
    events = [
        Event(id="1", name="Later", date="2024-05-01"),
        Event(id="2", name="Old", date="2023-01-01", type="past"),
        Event(id="3", name="Soon", date="2024-04-01"),
        Event(id="4", name="Recent", date="2023-12-01", type="past"),
    ]

    upcoming, past = split_events(events)

    assert [event.name for event in upcoming] == ["Soon", "Later"]
    assert [event.name for event in past] == ["Recent", "Old"]
