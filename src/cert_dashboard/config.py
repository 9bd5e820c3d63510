from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_DISPOSABLE_DOMAINS = [
    "mailinator.com",
    "temp-mail.org",
    "10minutemail.com",
    "guerrillamail.com",
    "yopmail.com",
    "sharklasers.com",
    "getnada.com",
    "throwawaymail.com",
    "tempmailo.com",
    "incognitomail.org",
    "tempr.email",
    "moakt.com",
    "maildrop.cc",
]


class ColumnsConfig(BaseModel):
    email: str = "Email"
    code: str = "Code"
    country: str = "Country"
    percentage_completed: str = "Percentage Completed"
    created_at: str = "Created At"
    accepted_marketing: str = "Accepted Marketing"
    accepted_membership: str = "Accepted Membership"
    completed_at: str = "Completed At"
    first_name: str = "First Name"
    last_name: str = "Last Name"
    community_list_headers: list[str] = Field(
        default_factory=lambda: ["Code", "Community Code", "Community"]
    )


class IngestConfig(BaseModel):
    truthy_values: list[str] = Field(default_factory=lambda: ["true", "yes", "1"])
    timezone: str = "UTC"
    ampm_correction: bool = True
    reject_inverted_completion: bool = False


class MetricsConfig(BaseModel):
    rapid_completion_hours: float = Field(default=5.0, gt=0.0)
    top_performers: int = Field(default=5, ge=1)


class FraudConfig(BaseModel):
    disposable_domains: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DISPOSABLE_DOMAINS)
    )


class StoreConfig(BaseModel):
    mode: Literal["memory", "postgres"] = "memory"
    db_url: str | None = None
    table_name: str = "dashboard_documents"
    batch_size: int = Field(default=500, ge=1)


class OutputsConfig(BaseModel):
    tables_format: Literal["csv", "parquet"] = "csv"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    columns: ColumnsConfig = Field(default_factory=ColumnsConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    fraud: FraudConfig = Field(default_factory=FraudConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    outputs: OutputsConfig = Field(default_factory=OutputsConfig)


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def load_config(path: Path) -> AppConfig:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    config = AppConfig.model_validate(data)
    config.store.db_url = (
        config.store.db_url or os.getenv("CERT_DASHBOARD_DB_URL") or os.getenv("DATABASE_URL")
    )
    return config
