"""callsign_directory.cli

Command-line entrypoint.

Usage (import):
    callsign-directory import \\
        --db-dsn "$CALLSIGN_DB_DSN" \\
        --csv-path "exports/roster.csv" \\
        --writers 20

Usage (schema):
    callsign-directory init-db --db-dsn "$CALLSIGN_DB_DSN"

Usage (web):
    callsign-directory serve --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import logging
import sys
import uuid
from datetime import datetime
from pathlib import Path

import click

from callsign_directory.config import AppConfig
from callsign_directory.import_members import (
    EVENT_ADDED,
    EVENT_DELETED,
    EVENT_DUPLICATE,
    MemberImporter,
)
from callsign_directory.shared import (
    ConfigError,
    ImportAbortedError,
    RejectWriter,
    write_run_report,
)
from callsign_directory.store import MIGRATIONS_DIR, PostgresMemberStore, apply_migrations

# Per-member events are only echoed with --verbose.
_QUIET_EVENTS = {EVENT_ADDED, EVENT_DELETED, EVENT_DUPLICATE}


def _load_config() -> AppConfig:
    try:
        return AppConfig.from_env()
    except ConfigError as exc:
        click.echo(f"FATAL: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    show_default=True,
)
def main(log_level: str) -> None:
    """Callsign directory tools."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command("import")
@click.option("--db-dsn", envvar="CALLSIGN_DB_DSN", required=True, help="PostgreSQL DSN")
@click.option("--csv-path", required=True, type=click.Path(exists=True, dir_okay=False), help="Roster CSV export")
@click.option("--writers", default=None, type=click.IntRange(min=1), help="Concurrent writers [default: CALLSIGN_WRITERS or 50]")
@click.option("--queue-size", default=None, type=click.IntRange(min=1), help="Bounded write-queue size [default: CALLSIGN_QUEUE_SIZE or 500]")
@click.option("--dry-run", is_flag=True, default=False, help="Classify rows and report; write and delete nothing")
@click.option(
    "--rejects-path",
    default="./artifacts/rejects/member_rejects.csv",
    show_default=True,
    type=click.Path(dir_okay=False),
)
@click.option("--report-dir", default="./artifacts/reports", show_default=True, type=click.Path(file_okay=False))
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option("--verbose", is_flag=True, default=False, help="Echo every added/deleted/duplicate member")
def import_cmd(
    db_dsn: str,
    csv_path: str,
    writers: int | None,
    queue_size: int | None,
    dry_run: bool,
    rejects_path: str,
    report_dir: str,
    run_id: str | None,
    verbose: bool,
) -> None:
    """Replace the whole member roster with the contents of a CSV file."""
    config = _load_config()
    writers = writers or config.writers
    queue_size = queue_size or config.queue_size
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.utcnow().isoformat()

    click.echo(f"[{run_id}] Starting member import (dry_run={dry_run}, writers={writers})")

    store = PostgresMemberStore.connect(db_dsn, max_size=writers)
    rejects = RejectWriter(Path(rejects_path))
    importer = MemberImporter(
        store, writers=writers, queue_size=queue_size, dry_run=dry_run, rejects=rejects,
    )
    try:
        with Path(csv_path).open(encoding="utf-8-sig", newline="") as fh:
            run = importer.prepare(fh)
            click.echo(f"[{run_id}] {len(run.index)} existing members before import")
            for event in run.events():
                if event.kind in _QUIET_EVENTS and not verbose:
                    continue
                click.echo(f"[{run_id}] {event.message}")
    except ImportAbortedError as exc:
        click.echo(f"[{run_id}] FATAL: {exc}", err=True)
        sys.exit(1)
    finally:
        rejects.close()
        store.close()

    result = run.result
    if result.duplicates:
        click.echo(f"[{run_id}] Found {len(result.duplicates)} duplicates: {', '.join(result.duplicates)}")
    if result.rejected:
        click.echo(f"[{run_id}] {result.rejected} rejected row(s) written to {rejects_path}")
    if dry_run:
        click.echo(f"[{run_id}] [dry-run] No changes written.")

    report_path = write_run_report(
        run_id, started_at, dry_run, csv_path, result.counters, result.duplicates,
        report_dir=Path(report_dir),
    )
    click.echo(f"[{run_id}] Run report: {report_path}")

    if result.write_failures:
        click.echo(f"[{run_id}] {len(result.write_failures)} write(s) failed", err=True)
        sys.exit(1)


@main.command("init-db")
@click.option("--db-dsn", envvar="CALLSIGN_DB_DSN", required=True, help="PostgreSQL DSN")
@click.option(
    "--migrations-dir",
    default=str(MIGRATIONS_DIR),
    show_default=True,
    type=click.Path(exists=True, file_okay=False),
)
def init_db(db_dsn: str, migrations_dir: str) -> None:
    """Apply the SQL migrations."""
    for name in apply_migrations(db_dsn, Path(migrations_dir)):
        click.echo(f"Applied {name}")


@main.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8080, type=int, show_default=True)
def serve(host: str, port: int) -> None:
    """Run the lookup/upload web service."""
    import uvicorn

    from callsign_directory.web import create_app

    app = create_app(config=_load_config())
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
