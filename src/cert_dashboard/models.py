from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar, Literal, Mapping

EventType = Literal["upcoming", "past"]
CampaignStatus = Literal["queued", "processing", "sent", "failed"]
ALL_COMMUNITIES = "All"


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    COMMUNITY_ADMIN = "community_admin"
    VIEWER = "viewer"


@dataclass(frozen=True)
class DeveloperRecord:
    """
    One enrollment of one person in one community.

    ``developer_id`` is the email address and acts as the natural key: a later
    upload with the same id replaces the stored document wholesale.
    """

    developer_id: str
    first_name: str
    last_name: str
    community_code: str
    country: str
    certification_progress: int
    enrollment_date: datetime
    completed_at: datetime | None = None
    subscribed: bool = False
    accepted_membership: bool = False

    @property
    def certified(self) -> bool:
        return self.certification_progress == 100

    def to_document(self) -> dict[str, Any]:
        return {
            "developerId": self.developer_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "communityCode": self.community_code,
            "country": self.country,
            "certificationProgress": self.certification_progress,
            "enrollmentDate": _to_iso(self.enrollment_date),
            "completedAt": _to_iso(self.completed_at),
            "subscribed": self.subscribed,
            "acceptedMembership": self.accepted_membership,
            "certified": self.certified,
        }

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "DeveloperRecord":
        enrollment_date = _from_iso(data.get("enrollmentDate"))
        if enrollment_date is None:
            raise ValueError(
                f"Developer document without enrollmentDate: {data.get('developerId')}"
            )
        return cls(
            developer_id=str(data.get("developerId") or ""),
            first_name=str(data.get("firstName") or ""),
            last_name=str(data.get("lastName") or ""),
            community_code=str(data.get("communityCode") or ""),
            country=str(data.get("country") or "Unknown"),
            certification_progress=int(data.get("certificationProgress") or 0),
            enrollment_date=enrollment_date,
            completed_at=_from_iso(data.get("completedAt")),
            subscribed=bool(data.get("subscribed", False)),
            accepted_membership=bool(data.get("acceptedMembership", False)),
        )


@dataclass(frozen=True)
class DateRange:
    """Inclusive enrollment-date window; ``None`` leaves that side unbounded."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        # Ingested timestamps are always tz-aware; naive bounds are read as UTC.
        for name in ("start", "end"):
            value = getattr(self, name)
            if value is not None and value.tzinfo is None:
                object.__setattr__(self, name, value.replace(tzinfo=timezone.utc))

    @property
    def duration(self) -> timedelta | None:
        if self.start is None or self.end is None:
            return None
        return self.end - self.start

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None

    def contains(self, value: datetime) -> bool:
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True


@dataclass(frozen=True)
class CommunityMetaData:
    is_important: bool = False
    follow_up_date: str | None = None

    def to_document(self) -> dict[str, Any]:
        return {"isImportant": self.is_important, "followUpDate": self.follow_up_date}

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "CommunityMetaData":
        follow_up = data.get("followUpDate")
        return cls(
            is_important=bool(data.get("isImportant", False)),
            follow_up_date=str(follow_up) if follow_up else None,
        )


@dataclass(frozen=True)
class CommunityWithMetadata:
    code: str
    developer_count: int
    subscribed_count: int
    certified_count: int
    average_progress: float
    average_completion_days: float | None
    has_rapid_completions: bool
    meta: CommunityMetaData
    developers: tuple[DeveloperRecord, ...] = field(default_factory=tuple, repr=False)

    @property
    def performance_score(self) -> float:
        return self.average_progress * (self.certified_count + 1)

    def as_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "developerCount": self.developer_count,
            "subscribedCount": self.subscribed_count,
            "certifiedCount": self.certified_count,
            "averageProgress": self.average_progress,
            "averageCompletionDays": self.average_completion_days,
            "hasRapidCompletions": self.has_rapid_completions,
            "meta": self.meta.to_document(),
        }


@dataclass(frozen=True)
class ManualCommunity:
    """Community code registered by a super admin; persisted."""

    source: ClassVar[str] = "manual"

    code: str
    name: str
    description: str | None = None
    created_at: datetime | None = None
    created_by: str | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "source": self.source,
            "createdAt": _to_iso(self.created_at),
            "createdBy": self.created_by,
        }

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "ManualCommunity":
        code = str(data.get("code") or "")
        return cls(
            code=code,
            name=str(data.get("name") or code),
            description=data.get("description"),
            created_at=_from_iso(data.get("createdAt")),
            created_by=data.get("createdBy"),
        )


@dataclass(frozen=True)
class DerivedCommunity:
    """Community code observed only in developer records; never persisted."""

    source: ClassVar[str] = "csv"

    code: str

    @property
    def name(self) -> str:
        return self.code

    @property
    def description(self) -> None:
        return None


ManagedCommunity = ManualCommunity | DerivedCommunity


@dataclass(frozen=True)
class UserProfile:
    uid: str
    email: str
    display_name: str
    role: Role = Role.VIEWER
    allowed_communities: tuple[str, ...] = ()
    photo_url: str | None = None
    created_at: datetime | None = None
    last_login: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "photoURL": self.photo_url,
            "role": self.role.value,
            "allowedCommunities": list(self.allowed_communities),
            "createdAt": _to_iso(self.created_at),
            "lastLogin": _to_iso(self.last_login),
        }

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "UserProfile":
        return cls(
            uid=str(data.get("uid") or ""),
            email=str(data.get("email") or ""),
            display_name=str(data.get("displayName") or "User"),
            photo_url=data.get("photoURL"),
            role=Role(data.get("role") or Role.VIEWER.value),
            allowed_communities=tuple(data.get("allowedCommunities") or ()),
            created_at=_from_iso(data.get("createdAt")),
            last_login=_from_iso(data.get("lastLogin")),
        )


@dataclass(frozen=True)
class Principal:
    """Identity handed over by the external authentication provider."""

    uid: str
    email: str = ""
    display_name: str | None = None
    photo_url: str | None = None


@dataclass(frozen=True)
class Event:
    id: str
    name: str
    date: str
    description: str = ""
    type: EventType = "upcoming"
    category: str = ""
    community_code: str = ALL_COMMUNITIES
    link: str = ""

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "date": self.date,
            "description": self.description,
            "type": self.type,
            "category": self.category,
            "communityCode": self.community_code,
            "link": self.link,
        }

    @classmethod
    def from_document(cls, event_id: str, data: Mapping[str, Any]) -> "Event":
        return cls(
            id=event_id,
            name=str(data.get("name") or ""),
            date=str(data.get("date") or ""),
            description=str(data.get("description") or ""),
            type="past" if data.get("type") == "past" else "upcoming",
            category=str(data.get("category") or ""),
            community_code=str(data.get("communityCode") or ALL_COMMUNITIES),
            link=str(data.get("link") or ""),
        )


@dataclass(frozen=True)
class Campaign:
    """
    Email campaign request.

    This system only ever writes ``queued``; an external worker moves the
    status through ``processing`` to ``sent`` or ``failed``.
    """

    id: str
    name: str
    subject: str
    body: str
    recipients: tuple[str, ...]
    community_filter: str = "all"
    status: CampaignStatus = "queued"
    created_by: str | None = None
    created_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "subject": self.subject,
            "body": self.body,
            "recipients": list(self.recipients),
            "communityFilter": self.community_filter,
            "status": self.status,
            "createdBy": self.created_by,
            "createdAt": _to_iso(self.created_at),
        }

    @classmethod
    def from_document(cls, campaign_id: str, data: Mapping[str, Any]) -> "Campaign":
        status = data.get("status")
        return cls(
            id=campaign_id,
            name=str(data.get("name") or ""),
            subject=str(data.get("subject") or ""),
            body=str(data.get("body") or ""),
            recipients=tuple(data.get("recipients") or ()),
            community_filter=str(data.get("communityFilter") or "all"),
            status=status if status in ("queued", "processing", "sent", "failed") else "queued",
            created_by=data.get("createdBy"),
            created_at=_from_iso(data.get("createdAt")),
        )
