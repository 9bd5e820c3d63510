from __future__ import annotations

import json
import uuid
from typing import Any, Mapping, Sequence

from cert_dashboard.errors import ExternalServiceError
from cert_dashboard.store.base import DocumentStore, Snapshot, freeze_snapshot


def _load_psycopg():
    try:
        import psycopg
        from psycopg import sql
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError(
            "psycopg is required for the PostgreSQL document store. "
            "Install with: pip install 'psycopg[binary]'"
        ) from exc
    return psycopg, sql


def _decode(value: Any) -> dict[str, Any]:
    if isinstance(value, (bytes, str)):
        return dict(json.loads(value))
    return dict(value or {})


def ensure_document_schema(conn, table_name: str) -> None:
    _psycopg, sql = _load_psycopg()
    statement = sql.SQL(
        """
        CREATE TABLE IF NOT EXISTS {table_name} (
          collection TEXT NOT NULL,
          doc_id TEXT NOT NULL,
          data JSONB NOT NULL DEFAULT '{{}}'::jsonb,
          created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
          PRIMARY KEY (collection, doc_id)
        );
        CREATE INDEX IF NOT EXISTS {idx_collection_created}
          ON {table_name} (collection, created_at);
        """
    ).format(
        table_name=sql.Identifier(table_name),
        idx_collection_created=sql.Identifier(f"{table_name}_collection_created_idx"),
    )
    with conn.cursor() as cursor:
        cursor.execute(statement)


class PostgresDocumentStore(DocumentStore):
    """
    Documents kept as JSONB rows keyed by ``(collection, doc_id)``.

    Each call opens its own connection. Only writes made through this instance
    trigger subscriber notifications.
    """

    def __init__(self, db_url: str, table_name: str = "dashboard_documents") -> None:
        super().__init__()
        self.db_url = db_url
        self.table_name = table_name
        self._schema_ready = False

    def _connect(self):
        psycopg, _sql = _load_psycopg()
        try:
            conn = psycopg.connect(self.db_url)
        except psycopg.Error as exc:
            raise ExternalServiceError(f"Document store unavailable: {exc}") from exc
        if not self._schema_ready:
            try:
                ensure_document_schema(conn=conn, table_name=self.table_name)
                conn.commit()
            except BaseException:
                conn.close()
                raise
            self._schema_ready = True
        return conn

    def _execute(self, query, params: Sequence[Any]) -> int:
        psycopg, _sql = _load_psycopg()
        try:
            with self._connect() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, params)
                    rowcount = cursor.rowcount
                conn.commit()
        except psycopg.Error as exc:
            raise ExternalServiceError(f"Document store write failed: {exc}") from exc
        return rowcount

    def _upsert_query(self, merge: bool):
        _psycopg, sql = _load_psycopg()
        update_sql = (
            sql.SQL("data = {table_name}.data || EXCLUDED.data")
            if merge
            else sql.SQL("data = EXCLUDED.data")
        ).format(table_name=sql.Identifier(self.table_name))
        return sql.SQL(
            """
            INSERT INTO {table_name} (collection, doc_id, data)
            VALUES (%s, %s, %s::jsonb)
            ON CONFLICT (collection, doc_id)
            DO UPDATE SET {update_sql}, updated_at = NOW()
            """
        ).format(table_name=sql.Identifier(self.table_name), update_sql=update_sql)

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        psycopg, sql = _load_psycopg()
        query = sql.SQL(
            "SELECT data FROM {table_name} WHERE collection = %s AND doc_id = %s"
        ).format(table_name=sql.Identifier(self.table_name))
        try:
            with self._connect() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (collection, doc_id))
                    row = cursor.fetchone()
        except psycopg.Error as exc:
            raise ExternalServiceError(f"Document store read failed: {exc}") from exc
        return _decode(row[0]) if row else None

    def set(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        self._execute(
            self._upsert_query(merge),
            (collection, doc_id, json.dumps(dict(data), default=str)),
        )
        self._notify(collection)

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        _psycopg, sql = _load_psycopg()
        query = sql.SQL(
            """
            UPDATE {table_name}
            SET data = data || %s::jsonb, updated_at = NOW()
            WHERE collection = %s AND doc_id = %s
            """
        ).format(table_name=sql.Identifier(self.table_name))
        updated = self._execute(
            query, (json.dumps(dict(fields), default=str), collection, doc_id)
        )
        if updated == 0:
            raise ExternalServiceError(f"No document to update: {collection}/{doc_id}")
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        _psycopg, sql = _load_psycopg()
        query = sql.SQL(
            "DELETE FROM {table_name} WHERE collection = %s AND doc_id = %s"
        ).format(table_name=sql.Identifier(self.table_name))
        self._execute(query, (collection, doc_id))
        self._notify(collection)

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def list(self, collection: str) -> Snapshot:
        psycopg, sql = _load_psycopg()
        query = sql.SQL(
            """
            SELECT doc_id, data
            FROM {table_name}
            WHERE collection = %s
            ORDER BY created_at, doc_id
            """
        ).format(table_name=sql.Identifier(self.table_name))
        try:
            with self._connect() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (collection,))
                    rows = cursor.fetchall()
        except psycopg.Error as exc:
            raise ExternalServiceError(f"Document store read failed: {exc}") from exc
        return freeze_snapshot([(str(row[0]), _decode(row[1])) for row in rows])

    def commit_batch(
        self,
        collection: str,
        documents: Sequence[tuple[str, Mapping[str, Any]]],
    ) -> int:
        if not documents:
            return 0
        psycopg, _sql = _load_psycopg()
        payload = [
            (collection, doc_id, json.dumps(dict(data), default=str))
            for doc_id, data in documents
        ]
        try:
            with self._connect() as conn:
                with conn.cursor() as cursor:
                    cursor.executemany(self._upsert_query(merge=False), payload)
                conn.commit()
        except psycopg.Error as exc:
            raise ExternalServiceError(f"Batch commit failed: {exc}") from exc
        self._notify(collection)
        return len(payload)
