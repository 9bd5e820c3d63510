from __future__ import annotations

from datetime import datetime, timezone

import pytest

from cert_dashboard.access.scoping import (
    AccessState,
    access_state,
    admins_for_community,
    can_upload,
    merge_community_list,
    require_super_admin,
    scope_upload,
    visible_developers,
    visible_events,
    with_community,
    without_community,
)
from cert_dashboard.errors import AuthorizationDenied
from cert_dashboard.models import (
    DerivedCommunity,
    DeveloperRecord,
    Event,
    ManualCommunity,
    Role,
    UserProfile,
)

UTC = timezone.utc


def _record(developer_id: str, code: str) -> DeveloperRecord:
    return DeveloperRecord(
        developer_id=developer_id,
        first_name="",
        last_name="",
        community_code=code,
        country="US",
        certification_progress=0,
        enrollment_date=datetime(2024, 1, 1, tzinfo=UTC),
    )


def _profile(role: Role, allowed: tuple[str, ...] = ()) -> UserProfile:
    return UserProfile(
        uid="u1",
        email="u1@example.com",
        display_name="U",
        role=role,
        allowed_communities=allowed,
    )


RECORDS = [
    _record("ny@example.com", "NY"),
    _record("sf@example.com", "SF"),
    _record("la@example.com", "LA"),
]


def test_community_admin_sees_only_allowed_codes() -> None:
    admin = _profile(Role.COMMUNITY_ADMIN, ("NY", "SF"))

    visible = visible_developers(admin, RECORDS)

    assert [record.community_code for record in visible] == ["NY", "SF"]


def test_viewer_and_anonymous_see_nothing() -> None:
    viewer = _profile(Role.VIEWER, ("NY", "SF", "LA"))

    assert visible_developers(viewer, RECORDS) == []
    assert visible_developers(None, RECORDS) == []
    assert visible_events(viewer, [Event(id="e", name="x", date="2024-01-01")]) == []


def test_super_admin_sees_everything() -> None:
    root = _profile(Role.SUPER_ADMIN)

    assert visible_developers(root, RECORDS) == RECORDS


def test_events_include_global_entries_for_community_admin() -> None:
    events = [
        Event(id="1", name="Global", date="2024-01-01"),
        Event(id="2", name="NY", date="2024-01-01", community_code="NY"),
        Event(id="3", name="LA", date="2024-01-01", community_code="LA"),
    ]

    visible = visible_events(_profile(Role.COMMUNITY_ADMIN, ("NY",)), events)

    assert [event.name for event in visible] == ["Global", "NY"]


def test_access_state_and_upload_permission() -> None:
    assert access_state(None) == AccessState.UNAUTHENTICATED
    assert access_state(_profile(Role.VIEWER)) == AccessState.VIEWER
    assert access_state(_profile(Role.SUPER_ADMIN)) == AccessState.SUPER_ADMIN
    assert can_upload(_profile(Role.COMMUNITY_ADMIN)) is True
    assert can_upload(_profile(Role.VIEWER)) is False
    assert can_upload(None) is False


def test_require_super_admin() -> None:
    root = _profile(Role.SUPER_ADMIN)

    assert require_super_admin(root) is root
    with pytest.raises(AuthorizationDenied):
        require_super_admin(_profile(Role.COMMUNITY_ADMIN, ("NY",)))
    with pytest.raises(AuthorizationDenied):
        require_super_admin(None)


def test_scope_upload_skips_rows_outside_allow_list() -> None:
    kept, skipped = scope_upload(_profile(Role.COMMUNITY_ADMIN, ("NY",)), RECORDS)

    assert [record.community_code for record in kept] == ["NY"]
    assert skipped == 2
    assert scope_upload(_profile(Role.SUPER_ADMIN), RECORDS) == (RECORDS, 0)
    assert scope_upload(_profile(Role.VIEWER), RECORDS) == ([], 3)


def test_merge_prefers_manual_entries_and_sorts_by_code() -> None:
    manual = [
        ManualCommunity(code="SF", name="San Francisco", description="Bay Area"),
        ManualCommunity(code="BOS", name="Boston"),
    ]

    merged = merge_community_list(manual, RECORDS)

    assert [community.code for community in merged] == ["BOS", "LA", "NY", "SF"]
    by_code = {community.code: community for community in merged}
    assert by_code["SF"].source == "manual"
    assert by_code["SF"].name == "San Francisco"
    assert by_code["SF"].description == "Bay Area"
    assert by_code["BOS"].source == "manual"
    assert by_code["LA"] == DerivedCommunity(code="LA")
    assert by_code["LA"].source == "csv"
    assert by_code["LA"].name == "LA"


def test_allow_list_helpers() -> None:
    assert with_community(["NY"], "SF") == ["NY", "SF"]
    assert with_community(["NY"], "NY") == ["NY"]
    assert without_community(["NY", "SF"], "NY") == ["SF"]

    users = [_profile(Role.COMMUNITY_ADMIN, ("NY",)), _profile(Role.COMMUNITY_ADMIN, ("SF",))]
    assert len(admins_for_community(users, "NY")) == 1
