from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping, Sequence

LOGGER = logging.getLogger(__name__)

DEVELOPERS = "developers"
EVENTS = "events"
COMMUNITY_METADATA = "community_metadata"
MANAGED_COMMUNITIES = "managed_communities"
USERS = "users"
SETTINGS = "settings"
CAMPAIGNS = "campaigns"
COMMUNITIES_SETTINGS_DOC = "communities"

Snapshot = tuple[tuple[str, Mapping[str, Any]], ...]
SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


def freeze_snapshot(items: Sequence[tuple[str, Mapping[str, Any]]]) -> Snapshot:
    return tuple((doc_id, MappingProxyType(copy.deepcopy(dict(data)))) for doc_id, data in items)


@dataclass
class _Listener:
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback | None
    active: bool = True


class DocumentStore:
    """
    Collection/document store the dashboard delegates persistence to.

    Writes are last-write-wins. Subscribers receive the whole collection as an
    immutable snapshot right after subscribing and after every write made
    through this store; a failing listener is logged and keeps its
    registration.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[_Listener]] = {}

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def set(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        raise NotImplementedError

    def list(self, collection: str) -> Snapshot:
        raise NotImplementedError

    def commit_batch(
        self,
        collection: str,
        documents: Sequence[tuple[str, Mapping[str, Any]]],
    ) -> int:
        raise NotImplementedError

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        listener = _Listener(on_snapshot=on_snapshot, on_error=on_error)
        self._listeners.setdefault(collection, []).append(listener)
        self._deliver(collection, [listener])

        def unsubscribe() -> None:
            listener.active = False
            listeners = self._listeners.get(collection, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def _notify(self, collection: str) -> None:
        listeners = list(self._listeners.get(collection, []))
        if listeners:
            self._deliver(collection, listeners)

    def _deliver(self, collection: str, listeners: Sequence[_Listener]) -> None:
        try:
            snapshot = self.list(collection)
        except Exception as exc:
            LOGGER.exception("Snapshot read failed for collection %s", collection)
            for listener in listeners:
                if listener.on_error is not None:
                    listener.on_error(exc)
            return

        for listener in listeners:
            if not listener.active:
                continue
            try:
                listener.on_snapshot(snapshot)
            except Exception as exc:
                LOGGER.exception("Subscription callback failed for collection %s", collection)
                if listener.on_error is not None:
                    listener.on_error(exc)
