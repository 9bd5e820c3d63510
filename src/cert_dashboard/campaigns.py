from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from cert_dashboard.models import Campaign, DeveloperRecord, Event

ALL_FILTER = "all"
TEMPLATE_TAG_RE = re.compile(r"\{\{\s*([a-z_]+)\s*\}\}")


@dataclass(frozen=True)
class EmailTemplate:
    name: str
    subject: str
    body: str


DEFAULT_TEMPLATES = (
    EmailTemplate(
        name="Progress nudge",
        subject="Great Progress, {{first_name}}!",
        body=(
            "Hi {{first_name}} {{last_name}},\n\n"
            "Just a quick note to say great work on reaching {{completion_percentage}}% "
            "in the certification program. Keep up the momentum!\n\n"
            "Best,\nCommunity Manager"
        ),
    ),
    EmailTemplate(
        name="Almost there",
        subject="You're so close, {{first_name}}!",
        body=(
            "Hi {{first_name}},\n\n"
            "Wow, you are at {{completion_percentage}}% completion. You are so close to the "
            "finish line! Let us know if you need any help with the final modules.\n\n"
            "Best,\nCommunity Manager"
        ),
    ),
    EmailTemplate(
        name="Event invitation",
        subject="Join us for {{event_name}}!",
        body=(
            "Hi {{first_name}},\n\n"
            "We are excited to invite you to our upcoming event: {{event_name}}.\n\n"
            "It will take place on {{event_date}}.\n\n"
            "Join here: {{event_link}}\n\n"
            "See you there,\nCommunity Manager"
        ),
    ),
)


@dataclass(frozen=True)
class CampaignRequest:
    name: str
    subject: str
    body: str
    community_filter: str = ALL_FILTER
    min_progress: int = 0
    max_progress: int = 100


def select_audience(
    records: Sequence[DeveloperRecord],
    community_filter: str = ALL_FILTER,
    min_progress: int = 0,
    max_progress: int = 100,
) -> list[DeveloperRecord]:
    """Subscribed developers in the community filter with progress in ``[min, max]``."""
    return [
        record
        for record in records
        if record.subscribed
        and (community_filter == ALL_FILTER or record.community_code == community_filter)
        and min_progress <= record.certification_progress <= max_progress
    ]


def _event_date(value: str) -> str:
    try:
        return datetime.fromisoformat(value).strftime("%m/%d/%Y")
    except ValueError:
        return value


def template_values(developer: DeveloperRecord, event: Event | None = None) -> dict[str, str]:
    values = {
        "first_name": developer.first_name,
        "last_name": developer.last_name,
        "email": developer.developer_id,
        "community_code": developer.community_code,
        "completion_percentage": str(developer.certification_progress),
    }
    if event is not None:
        values.update(
            {
                "event_name": event.name,
                "event_date": _event_date(event.date),
                "event_link": event.link or "#",
            }
        )
    return values


def render_template(template: str, developer: DeveloperRecord, event: Event | None = None) -> str:
    """Substitute ``{{tag}}`` placeholders; tags without a value are left untouched."""
    values = template_values(developer, event)

    def _replace(match: re.Match[str]) -> str:
        return values.get(match.group(1), match.group(0))

    return TEMPLATE_TAG_RE.sub(_replace, template)


def build_campaign(
    request: CampaignRequest,
    records: Sequence[DeveloperRecord],
    *,
    created_by: str | None,
    created_at: datetime,
) -> Campaign:
    audience = select_audience(
        records,
        community_filter=request.community_filter,
        min_progress=request.min_progress,
        max_progress=request.max_progress,
    )
    return Campaign(
        id="",
        name=request.name,
        subject=request.subject,
        body=request.body,
        recipients=tuple(dict.fromkeys(record.developer_id for record in audience)),
        community_filter=request.community_filter,
        status="queued",
        created_by=created_by,
        created_at=created_at,
    )


def split_events(events: Sequence[Event]) -> tuple[list[Event], list[Event]]:
    """Upcoming events soonest first, past events most recent first."""
    upcoming = sorted((event for event in events if event.type == "upcoming"), key=lambda e: e.date)
    past = sorted(
        (event for event in events if event.type == "past"), key=lambda e: e.date, reverse=True
    )
    return upcoming, past
