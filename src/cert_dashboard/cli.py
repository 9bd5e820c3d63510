from __future__ import annotations

import json
from datetime import date, datetime, timezone
from pathlib import Path

import typer

from cert_dashboard.access.scoping import can_upload
from cert_dashboard.config import DEFAULT_CONFIG_PATH, AppConfig, load_config
from cert_dashboard.errors import AuthorizationDenied, CertDashboardError, ConfigurationError
from cert_dashboard.features.aggregates import day_range, default_date_range
from cert_dashboard.features.comparison import compare_community
from cert_dashboard.io.read import load_community_codes
from cert_dashboard.logging import configure_logging
from cert_dashboard.models import Principal, Role, UserProfile
from cert_dashboard.pipeline.dashboard import build_dashboard, write_dashboard_outputs
from cert_dashboard.pipeline.ingest import load_developer_records
from cert_dashboard.session import DashboardSession
from cert_dashboard.store.base import USERS, DocumentStore
from cert_dashboard.store.factory import build_store

app = typer.Typer(no_args_is_help=True, add_completion=False)


def _load_app_config(config_path: Path) -> AppConfig:
    return load_config(config_path)


def _build_store(cfg: AppConfig) -> DocumentStore:
    return build_store(cfg.store)


def _build_shared_store(cfg: AppConfig) -> DocumentStore:
    # A memory store lives only as long as one command.
    if cfg.store.mode == "memory":
        raise ConfigurationError(
            "This command needs a persistent store; set store.mode to 'postgres' "
            "and store.db_url (or CERT_DASHBOARD_DB_URL)"
        )
    return _build_store(cfg)


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


def _parse_day(value: str | None, option: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"{option} must be a YYYY-MM-DD date, got {value!r}") from exc


def _resolve_range(records, from_day: str | None, to_day: str | None, cfg: AppConfig):
    start = _parse_day(from_day, "--from")
    end = _parse_day(to_day, "--to")
    if start is None and end is None:
        return default_date_range(records, timezone=cfg.ingest.timezone)
    return day_range(start, end, timezone=cfg.ingest.timezone)


@app.command()
def validate(
    csv: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Parse a developer CSV and report whether it would be accepted."""
    configure_logging()
    cfg = _load_app_config(config)
    try:
        records = load_developer_records(csv, cfg)
    except CertDashboardError as exc:
        raise _fail(exc) from exc
    communities = {record.community_code for record in records}
    typer.echo("CSV is valid")
    typer.echo(f"- rows: {len(records)}")
    typer.echo(f"- communities: {len(communities)}")


@app.command()
def report(
    csv: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    out: Path = typer.Option(Path("out"), resolve_path=True),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
    from_day: str | None = typer.Option(
        None, "--from", help="First enrollment day (YYYY-MM-DD)."
    ),
    to_day: str | None = typer.Option(None, "--to", help="Last enrollment day (YYYY-MM-DD)."),
) -> None:
    """Compute dashboard rollups and fraud flags from a CSV and write them to out/."""
    configure_logging()
    cfg = _load_app_config(config)
    try:
        records = load_developer_records(csv, cfg)
    except CertDashboardError as exc:
        raise _fail(exc) from exc

    date_range = _resolve_range(records, from_day, to_day, cfg)
    snapshot = build_dashboard(records, date_range, metadata={}, config=cfg)
    results = write_dashboard_outputs(snapshot, records, out_dir=out, config=cfg)
    typer.echo(f"Report complete. Communities: {len(snapshot.communities)}")
    typer.echo(f"- detectors: {', '.join(sorted(results))}")
    typer.echo(f"- summary: {out / 'summary' / 'dashboard.json'}")


@app.command()
def compare(
    csv: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    community: str = typer.Option(..., help="Community code to benchmark."),
    from_day: str = typer.Option(..., "--from", help="First enrollment day (YYYY-MM-DD)."),
    to_day: str = typer.Option(..., "--to", help="Last enrollment day (YYYY-MM-DD)."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Print previous-period and peer-average benchmarks for one community as JSON."""
    configure_logging()
    cfg = _load_app_config(config)
    try:
        records = load_developer_records(csv, cfg)
    except CertDashboardError as exc:
        raise _fail(exc) from exc

    date_range = _resolve_range(records, from_day, to_day, cfg)
    snapshot = build_dashboard(records, date_range, metadata={}, config=cfg)
    comparison = compare_community(records, snapshot.communities, date_range, community)
    if comparison is None:
        raise _fail(ValueError("Comparison needs a bounded date range and a community code"))
    typer.echo(json.dumps(comparison.as_dict(), indent=2, sort_keys=True))


@app.command()
def upload(
    csv: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    uid: str = typer.Option(..., help="Principal id the upload is performed as."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Upload developer records to the configured store as the given principal."""
    configure_logging()
    cfg = _load_app_config(config)
    try:
        records = load_developer_records(csv, cfg)
        session = DashboardSession(_build_shared_store(cfg), cfg)
        profile = session.sign_in(Principal(uid=uid))
        if not can_upload(profile):
            raise AuthorizationDenied(f"Principal {uid} is not allowed to upload")
        result = session.upload_batch(records)
    except CertDashboardError as exc:
        raise _fail(exc) from exc

    typer.echo("Upload complete")
    typer.echo(f"- uploaded: {result.uploaded}")
    typer.echo(f"- skipped: {result.skipped}")
    typer.echo(f"- batches: {result.batches}")


@app.command("import-communities")
def import_communities(
    csv: Path = typer.Option(..., exists=True, readable=True, resolve_path=True),
    uid: str = typer.Option(..., help="Super admin principal id."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Register the reference community-code list from a CSV."""
    configure_logging()
    cfg = _load_app_config(config)
    try:
        codes = load_community_codes(csv, cfg)
        session = DashboardSession(_build_shared_store(cfg), cfg)
        session.sign_in(Principal(uid=uid))
        saved = session.save_registered_communities(codes)
    except CertDashboardError as exc:
        raise _fail(exc) from exc

    if not saved:
        raise _fail(ValueError(f"Principal {uid} is not a super admin"))
    typer.echo(f"Registered {len(codes)} community codes")


@app.command("bootstrap-admin")
def bootstrap_admin(
    uid: str = typer.Option(..., help="Principal id to promote."),
    email: str = typer.Option("", help="Email stored on a newly created profile."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, exists=True, readable=True, resolve_path=True),
) -> None:
    """Create or promote a super admin directly in the store (operator use only)."""
    configure_logging()
    cfg = _load_app_config(config)
    try:
        store = _build_shared_store(cfg)
        existing = store.get(USERS, uid)
        if existing is None:
            now = datetime.now(timezone.utc)
            profile = UserProfile(
                uid=uid,
                email=email,
                display_name=email or "Admin",
                role=Role.SUPER_ADMIN,
                created_at=now,
                last_login=now,
            )
            store.set(USERS, uid, profile.to_document())
        else:
            store.update(USERS, uid, {"role": Role.SUPER_ADMIN.value})
    except CertDashboardError as exc:
        raise _fail(exc) from exc
    typer.echo(f"{uid} is now a super admin")
