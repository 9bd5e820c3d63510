from __future__ import annotations

from cert_dashboard.config import StoreConfig
from cert_dashboard.errors import ConfigurationError
from cert_dashboard.store.base import DocumentStore
from cert_dashboard.store.memory import InMemoryDocumentStore
from cert_dashboard.store.postgres import PostgresDocumentStore


def build_store(config: StoreConfig) -> DocumentStore:
    if config.mode == "postgres":
        if not config.db_url:
            raise ConfigurationError("store.db_url must be set when store.mode is 'postgres'")
        return PostgresDocumentStore(db_url=config.db_url, table_name=config.table_name)
    return InMemoryDocumentStore()
