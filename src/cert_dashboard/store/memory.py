from __future__ import annotations

import copy
import uuid
from typing import Any, Mapping, Sequence

from cert_dashboard.errors import ExternalServiceError
from cert_dashboard.store.base import DocumentStore, Snapshot, freeze_snapshot


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store; subscribers are notified synchronously after writes."""

    def __init__(self) -> None:
        super().__init__()
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        document = self._collection(collection).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    def set(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        documents = self._collection(collection)
        if merge and doc_id in documents:
            documents[doc_id].update(copy.deepcopy(dict(data)))
        else:
            documents[doc_id] = copy.deepcopy(dict(data))
        self._notify(collection)

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        documents = self._collection(collection)
        if doc_id not in documents:
            raise ExternalServiceError(f"No document to update: {collection}/{doc_id}")
        documents[doc_id].update(copy.deepcopy(dict(fields)))
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        self._collection(collection).pop(doc_id, None)
        self._notify(collection)

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._collection(collection)[doc_id] = copy.deepcopy(dict(data))
        self._notify(collection)
        return doc_id

    def list(self, collection: str) -> Snapshot:
        return freeze_snapshot(list(self._collection(collection).items()))

    def commit_batch(
        self,
        collection: str,
        documents: Sequence[tuple[str, Mapping[str, Any]]],
    ) -> int:
        if not documents:
            return 0
        target = self._collection(collection)
        for doc_id, data in documents:
            target[doc_id] = copy.deepcopy(dict(data))
        self._notify(collection)
        return len(documents)
