from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

import pandas as pd

from cert_dashboard.access.scoping import (
    AccessState,
    access_state,
    admins_for_community,
    can_upload,
    is_super_admin,
    merge_community_list,
    scope_upload,
    visible_developers,
    visible_events,
    with_community,
    without_community,
)
from cert_dashboard.campaigns import CampaignRequest, build_campaign
from cert_dashboard.config import AppConfig
from cert_dashboard.features.aggregates import filter_by_date_range
from cert_dashboard.features.comparison import CommunityComparison, compare_community
from cert_dashboard.features.distributions import (
    ManagementStats,
    management_stats,
    membership_evolution,
)
from cert_dashboard.io.write import export_developers_csv
from cert_dashboard.models import (
    ALL_COMMUNITIES,
    Campaign,
    CommunityMetaData,
    DateRange,
    DeveloperRecord,
    Event,
    ManagedCommunity,
    ManualCommunity,
    Principal,
    Role,
    UserProfile,
)
from cert_dashboard.pipeline.dashboard import DashboardPipeline, DashboardSnapshot, PipelineKey
from cert_dashboard.store.base import (
    CAMPAIGNS,
    COMMUNITIES_SETTINGS_DOC,
    COMMUNITY_METADATA,
    DEVELOPERS,
    EVENTS,
    MANAGED_COMMUNITIES,
    SETTINGS,
    USERS,
    DocumentStore,
    Snapshot,
    Unsubscribe,
)

LOGGER = logging.getLogger(__name__)

RECENT_CAMPAIGNS = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UploadResult:
    uploaded: int
    skipped: int
    batches: int


class DashboardSession:
    """
    One signed-in principal's view of the shared document store.

    Collections are mirrored through store subscriptions; every read goes
    through the access-scoping resolver and every mutation re-checks the
    principal's role. Mutations the role does not allow return ``False``
    without touching the store.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: AppConfig | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.config = config or AppConfig()
        self.clock = clock
        self.pipeline = DashboardPipeline(self.config)
        self.date_range = DateRange()
        self.profile: UserProfile | None = None
        self._reset_state()

    def _reset_state(self) -> None:
        self._developers: tuple[DeveloperRecord, ...] = ()
        self._events: tuple[Event, ...] = ()
        self._metadata: dict[str, CommunityMetaData] = {}
        self._manual: tuple[ManualCommunity, ...] = ()
        self._registered_codes: tuple[str, ...] = ()
        self._campaigns: tuple[Campaign, ...] = ()
        self._users: tuple[UserProfile, ...] = ()
        self._versions = {DEVELOPERS: 0, COMMUNITY_METADATA: 0}
        self._unsubscribers: list[Unsubscribe] = []

    # Authentication

    def sign_in(self, principal: Principal) -> UserProfile:
        """Load or create the principal's profile and start mirroring collections."""
        if self.profile is not None:
            self.sign_out()

        now = self.clock()
        document = self.store.get(USERS, principal.uid)
        if document is None:
            profile = UserProfile(
                uid=principal.uid,
                email=principal.email,
                display_name=principal.display_name or "User",
                photo_url=principal.photo_url,
                role=Role.VIEWER,
                allowed_communities=(),
                created_at=now,
                last_login=now,
            )
            self.store.set(USERS, principal.uid, profile.to_document())
            LOGGER.info("Created viewer profile for %s", principal.uid)
        else:
            self.store.update(USERS, principal.uid, {"lastLogin": now.isoformat()})
            profile = replace(UserProfile.from_document(document), last_login=now)

        self.profile = profile
        self._subscribe_all()
        return profile

    def sign_out(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self.profile = None
        self._reset_state()

    @property
    def state(self) -> AccessState:
        return access_state(self.profile)

    # Subscriptions

    def _subscribe_all(self) -> None:
        handlers = {
            DEVELOPERS: self._on_developers,
            EVENTS: self._on_events,
            COMMUNITY_METADATA: self._on_metadata,
            MANAGED_COMMUNITIES: self._on_managed_communities,
            SETTINGS: self._on_settings,
            CAMPAIGNS: self._on_campaigns,
            USERS: self._on_users,
        }
        for collection, handler in handlers.items():
            self._unsubscribers.append(self.store.subscribe(collection, handler))

    def _on_developers(self, snapshot: Snapshot) -> None:
        self._developers = tuple(DeveloperRecord.from_document(data) for _, data in snapshot)
        self._versions[DEVELOPERS] += 1

    def _on_events(self, snapshot: Snapshot) -> None:
        self._events = tuple(Event.from_document(doc_id, data) for doc_id, data in snapshot)

    def _on_metadata(self, snapshot: Snapshot) -> None:
        self._metadata = {
            doc_id: CommunityMetaData.from_document(data) for doc_id, data in snapshot
        }
        self._versions[COMMUNITY_METADATA] += 1

    def _on_managed_communities(self, snapshot: Snapshot) -> None:
        self._manual = tuple(ManualCommunity.from_document(data) for _, data in snapshot)

    def _on_settings(self, snapshot: Snapshot) -> None:
        documents = dict(snapshot)
        codes = documents.get(COMMUNITIES_SETTINGS_DOC, {}).get("codes") or ()
        self._registered_codes = tuple(str(code) for code in codes)

    def _on_campaigns(self, snapshot: Snapshot) -> None:
        campaigns = [Campaign.from_document(doc_id, data) for doc_id, data in snapshot]
        campaigns.sort(
            key=lambda campaign: campaign.created_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        self._campaigns = tuple(campaigns[:RECENT_CAMPAIGNS])

    def _on_users(self, snapshot: Snapshot) -> None:
        if self.profile is None:
            return
        profiles = [UserProfile.from_document(data) for _, data in snapshot]
        own = next((profile for profile in profiles if profile.uid == self.profile.uid), None)
        if own is not None:
            self.profile = own
        # Only a super admin keeps the full user list.
        self._users = tuple(profiles) if is_super_admin(self.profile) else ()

    # Scoped reads

    def developers(self) -> list[DeveloperRecord]:
        return visible_developers(self.profile, self._developers)

    def events(self) -> list[Event]:
        return visible_events(self.profile, self._events)

    def users(self) -> list[UserProfile]:
        return list(self._users)

    def campaigns(self) -> list[Campaign]:
        return list(self._campaigns) if can_upload(self.profile) else []

    def community_metadata(self) -> dict[str, CommunityMetaData]:
        return dict(self._metadata)

    def registered_codes(self) -> list[str]:
        return list(self._registered_codes)

    def community_list(self) -> list[ManagedCommunity]:
        if self.profile is None:
            return []
        return merge_community_list(self._manual, self._developers)

    def set_date_range(self, date_range: DateRange) -> None:
        self.date_range = date_range

    def dashboard(self) -> DashboardSnapshot:
        key = PipelineKey(
            developers_version=self._versions[DEVELOPERS],
            date_range=self.date_range,
            metadata_version=self._versions[COMMUNITY_METADATA],
            scope=(
                self.profile.role,
                self.profile.allowed_communities,
            )
            if self.profile is not None
            else None,
        )
        return self.pipeline.refresh(key, self.developers(), self._metadata)

    def compare(self, community_code: str | None) -> CommunityComparison | None:
        snapshot = self.dashboard()
        return compare_community(
            self.developers(), snapshot.communities, self.date_range, community_code
        )

    def management(self) -> ManagementStats | None:
        return management_stats(self._registered_codes, self.dashboard().communities)

    def community_evolution(self, community_code: str) -> pd.DataFrame | None:
        community = next(
            (c for c in self.dashboard().communities if c.code == community_code), None
        )
        if community is None:
            return None
        return membership_evolution(community, timezone=self.config.ingest.timezone)

    def community_admins(self, community_code: str) -> list[UserProfile]:
        return admins_for_community(self._users, community_code)

    def export_developers(self, path: Path) -> Path:
        """Write the visible developers inside the current date range to ``path``."""
        return export_developers_csv(filter_by_date_range(self.developers(), self.date_range), path)

    # Super-admin actions

    def _deny(self, action: str) -> bool:
        LOGGER.warning(
            "Denied %s for %s (%s)",
            action,
            self.profile.uid if self.profile else "anonymous",
            self.state.value,
        )
        return False

    def update_user_role(self, uid: str, role: Role) -> bool:
        if not is_super_admin(self.profile):
            return self._deny("update_user_role")
        self.store.update(USERS, uid, {"role": Role(role).value})
        return True

    def update_user_communities(self, uid: str, codes: Sequence[str]) -> bool:
        if not is_super_admin(self.profile):
            return self._deny("update_user_communities")
        self.store.update(USERS, uid, {"allowedCommunities": list(dict.fromkeys(codes))})
        return True

    def grant_community(self, uid: str, code: str) -> bool:
        current = next((user for user in self._users if user.uid == uid), None)
        existing = current.allowed_communities if current is not None else ()
        return self.update_user_communities(uid, with_community(existing, code))

    def revoke_community(self, uid: str, code: str) -> bool:
        current = next((user for user in self._users if user.uid == uid), None)
        existing = current.allowed_communities if current is not None else ()
        return self.update_user_communities(uid, without_community(existing, code))

    def create_manual_community(
        self, code: str, name: str | None = None, description: str | None = None
    ) -> bool:
        if not is_super_admin(self.profile):
            return self._deny("create_manual_community")
        code = code.strip()
        if not code:
            raise ValueError("Community code must not be blank")
        community = ManualCommunity(
            code=code,
            name=(name or "").strip() or code,
            description=description,
            created_at=self.clock(),
            created_by=self.profile.uid,
        )
        self.store.set(MANAGED_COMMUNITIES, code, community.to_document())
        return True

    def delete_manual_community(self, code: str) -> bool:
        if not is_super_admin(self.profile):
            return self._deny("delete_manual_community")
        self.store.delete(MANAGED_COMMUNITIES, code)
        return True

    def save_registered_communities(self, codes: Sequence[str]) -> bool:
        if not is_super_admin(self.profile):
            return self._deny("save_registered_communities")
        cleaned = list(dict.fromkeys(code.strip() for code in codes if code.strip()))
        self.store.set(SETTINGS, COMMUNITIES_SETTINGS_DOC, {"codes": cleaned})
        return True

    # Data actions

    def _may_touch_community(self, code: str) -> bool:
        if not can_upload(self.profile):
            return False
        if self.profile.role == Role.SUPER_ADMIN:
            return True
        return code in self.profile.allowed_communities

    def upload_batch(self, records: Sequence[DeveloperRecord]) -> UploadResult:
        """
        Write developer records in sequential batches of ``store.batch_size``.

        A failing batch raises and leaves earlier batches committed.
        """
        if not can_upload(self.profile):
            self._deny("upload_batch")
            return UploadResult(uploaded=0, skipped=len(records), batches=0)

        kept, skipped = scope_upload(self.profile, records)
        if skipped:
            LOGGER.info("Skipped %d rows outside the allowed communities", skipped)

        batch_size = self.config.store.batch_size
        batches = 0
        for start in range(0, len(kept), batch_size):
            chunk = kept[start : start + batch_size]
            self.store.commit_batch(
                DEVELOPERS, [(record.developer_id, record.to_document()) for record in chunk]
            )
            batches += 1
            LOGGER.info("Committed batch %d (%d records)", batches, len(chunk))
        return UploadResult(uploaded=len(kept), skipped=skipped, batches=batches)

    def save_event(self, event: Event, event_id: str | None = None) -> str | None:
        if not self._may_touch_community(event.community_code):
            self._deny("save_event")
            return None
        if event_id:
            self.store.set(EVENTS, event_id, event.to_document())
            return event_id
        return self.store.add(EVENTS, event.to_document())

    def delete_event(self, event_id: str) -> bool:
        existing = next((event for event in self._events if event.id == event_id), None)
        code = existing.community_code if existing is not None else ALL_COMMUNITIES
        if not self._may_touch_community(code):
            return self._deny("delete_event")
        self.store.delete(EVENTS, event_id)
        return True

    def toggle_important(self, code: str) -> bool:
        if not self._may_touch_community(code):
            return self._deny("toggle_important")
        current = self._metadata.get(code, CommunityMetaData())
        self.store.set(
            COMMUNITY_METADATA, code, {"isImportant": not current.is_important}, merge=True
        )
        return True

    def set_follow_up(self, code: str, follow_up_date: str | None) -> bool:
        if not self._may_touch_community(code):
            return self._deny("set_follow_up")
        self.store.set(COMMUNITY_METADATA, code, {"followUpDate": follow_up_date}, merge=True)
        return True

    def create_campaign(self, request: CampaignRequest) -> str | None:
        """Record a queued campaign addressed to the matching visible subscribers."""
        if not can_upload(self.profile):
            self._deny("create_campaign")
            return None
        campaign = build_campaign(
            request,
            self.developers(),
            created_by=self.profile.uid,
            created_at=self.clock(),
        )
        campaign_id = self.store.add(CAMPAIGNS, campaign.to_document())
        LOGGER.info(
            "Queued campaign %s for %d recipients", campaign_id, len(campaign.recipients)
        )
        return campaign_id
