from __future__ import annotations

from enum import Enum
from typing import Iterable, Sequence

from cert_dashboard.errors import AuthorizationDenied
from cert_dashboard.models import (
    ALL_COMMUNITIES,
    DerivedCommunity,
    DeveloperRecord,
    Event,
    ManagedCommunity,
    ManualCommunity,
    Role,
    UserProfile,
)


class AccessState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    VIEWER = "authenticated_viewer"
    COMMUNITY_ADMIN = "authenticated_community_admin"
    SUPER_ADMIN = "authenticated_super_admin"


_STATE_BY_ROLE = {
    Role.VIEWER: AccessState.VIEWER,
    Role.COMMUNITY_ADMIN: AccessState.COMMUNITY_ADMIN,
    Role.SUPER_ADMIN: AccessState.SUPER_ADMIN,
}


def access_state(profile: UserProfile | None) -> AccessState:
    if profile is None:
        return AccessState.UNAUTHENTICATED
    return _STATE_BY_ROLE[profile.role]


def is_super_admin(profile: UserProfile | None) -> bool:
    return profile is not None and profile.role == Role.SUPER_ADMIN


def can_upload(profile: UserProfile | None) -> bool:
    return profile is not None and profile.role in (Role.SUPER_ADMIN, Role.COMMUNITY_ADMIN)


def require_super_admin(profile: UserProfile | None) -> UserProfile:
    if profile is None or profile.role != Role.SUPER_ADMIN:
        raise AuthorizationDenied("Only a super admin may perform this action")
    return profile


def visible_developers(
    profile: UserProfile | None,
    records: Sequence[DeveloperRecord],
) -> list[DeveloperRecord]:
    """
    Developer records the principal may see.

    Super admins see everything, community admins see their allowed codes, and
    viewers (or no profile) see nothing.
    """
    if profile is None:
        return []
    if profile.role == Role.SUPER_ADMIN:
        return list(records)
    if profile.role == Role.COMMUNITY_ADMIN:
        allowed = set(profile.allowed_communities)
        return [record for record in records if record.community_code in allowed]
    return []


def visible_events(profile: UserProfile | None, events: Sequence[Event]) -> list[Event]:
    if profile is None:
        return []
    if profile.role == Role.SUPER_ADMIN:
        return list(events)
    if profile.role == Role.COMMUNITY_ADMIN:
        allowed = set(profile.allowed_communities)
        return [
            event
            for event in events
            if event.community_code == ALL_COMMUNITIES or event.community_code in allowed
        ]
    return []


def scope_upload(
    profile: UserProfile | None,
    records: Sequence[DeveloperRecord],
) -> tuple[list[DeveloperRecord], int]:
    """Split an upload into rows the principal may write and a skipped count."""
    if not can_upload(profile):
        return [], len(records)
    if profile.role == Role.SUPER_ADMIN:
        return list(records), 0
    allowed = set(profile.allowed_communities)
    kept = [record for record in records if record.community_code in allowed]
    return kept, len(records) - len(kept)


def merge_community_list(
    manual: Iterable[ManualCommunity],
    records: Iterable[DeveloperRecord],
) -> list[ManagedCommunity]:
    """
    Union of registered communities and codes seen in developer records.

    Registered entries are applied first and are never replaced by a derived
    one; the result is ordered by code.
    """
    merged: dict[str, ManagedCommunity] = {}
    for community in manual:
        merged[community.code] = community
    for record in records:
        code = record.community_code
        if code and code not in merged:
            merged[code] = DerivedCommunity(code=code)
    return [merged[code] for code in sorted(merged)]


def admins_for_community(users: Iterable[UserProfile], code: str) -> list[UserProfile]:
    return [user for user in users if code in user.allowed_communities]


def with_community(codes: Sequence[str], code: str) -> list[str]:
    return list(codes) if code in codes else [*codes, code]


def without_community(codes: Sequence[str], code: str) -> list[str]:
    return [value for value in codes if value != code]
