from __future__ import annotations

import pytest

from cert_dashboard.errors import ExternalServiceError
from cert_dashboard.store.memory import InMemoryDocumentStore


def test_set_get_and_merge() -> None:
    store = InMemoryDocumentStore()
    store.set("community_metadata", "NY", {"isImportant": True, "followUpDate": None})
    store.set("community_metadata", "NY", {"followUpDate": "2024-02-01"}, merge=True)

    assert store.get("community_metadata", "NY") == {
        "isImportant": True,
        "followUpDate": "2024-02-01",
    }

    store.set("community_metadata", "NY", {"followUpDate": None})
    assert store.get("community_metadata", "NY") == {"followUpDate": None}
    assert store.get("community_metadata", "SF") is None


def test_get_returns_a_copy() -> None:
    store = InMemoryDocumentStore()
    store.set("users", "u1", {"allowedCommunities": ["NY"]})

    document = store.get("users", "u1")
    document["allowedCommunities"].append("SF")

    assert store.get("users", "u1") == {"allowedCommunities": ["NY"]}


def test_update_requires_existing_document() -> None:
    store = InMemoryDocumentStore()
    store.set("users", "u1", {"role": "viewer", "email": "a@example.com"})
    store.update("users", "u1", {"role": "super_admin"})

    assert store.get("users", "u1") == {"role": "super_admin", "email": "a@example.com"}
    with pytest.raises(ExternalServiceError):
        store.update("users", "missing", {"role": "viewer"})


def test_add_generates_ids_and_delete_removes() -> None:
    store = InMemoryDocumentStore()
    first = store.add("events", {"name": "Meetup"})
    second = store.add("events", {"name": "Workshop"})

    assert first != second
    assert [doc_id for doc_id, _ in store.list("events")] == [first, second]

    store.delete("events", first)
    store.delete("events", "never-existed")
    assert [data["name"] for _, data in store.list("events")] == ["Workshop"]


def test_commit_batch_writes_all_documents() -> None:
    store = InMemoryDocumentStore()

    written = store.commit_batch("developers", [("a", {"x": 1}), ("b", {"x": 2})])

    assert written == 2
    assert store.commit_batch("developers", []) == 0
    assert dict(store.list("developers")) == {"a": {"x": 1}, "b": {"x": 2}}


def test_subscribe_delivers_current_snapshot_then_updates() -> None:
    store = InMemoryDocumentStore()
    store.set("events", "e1", {"name": "Meetup"})
    snapshots: list[tuple] = []

    unsubscribe = store.subscribe("events", snapshots.append)
    store.set("events", "e2", {"name": "Workshop"})
    store.set("users", "u1", {"role": "viewer"})
    unsubscribe()
    store.delete("events", "e1")

    assert [[doc_id for doc_id, _ in snapshot] for snapshot in snapshots] == [
        ["e1"],
        ["e1", "e2"],
    ]


def test_snapshots_are_immutable() -> None:
    store = InMemoryDocumentStore()
    store.set("events", "e1", {"name": "Meetup"})

    snapshot = store.list("events")

    with pytest.raises(TypeError):
        snapshot[0][1]["name"] = "Changed"  # type: ignore[index]
    assert store.get("events", "e1") == {"name": "Meetup"}


def test_failing_listener_is_reported_and_stays_registered() -> None:
    store = InMemoryDocumentStore()
    calls: list[int] = []
    errors: list[Exception] = []

    def _broken(snapshot) -> None:
        calls.append(len(snapshot))
        raise RuntimeError("render failed")

    store.subscribe("developers", _broken, errors.append)
    store.set("developers", "a", {"x": 1})

    assert calls == [0, 1]
    assert len(errors) == 2
    assert all(isinstance(error, RuntimeError) for error in errors)
