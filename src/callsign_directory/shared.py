"""callsign_directory.shared

Shared pieces used by both the web upload and the CLI import: exception
types, the RejectWriter for rejected CSV rows, run counters and run-report
writing.
"""

from __future__ import annotations

import csv
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ParseError(Exception):
    """Raised when a single CSV row cannot be turned into a Member.

    Row-level: the row is rejected, the batch continues.
    """


class StoreError(Exception):
    """Raised by a MemberStore when the backing store rejects an operation."""


class ImportAbortedError(Exception):
    """Raised when an import cannot continue (unreadable CSV, scan or delete failure).

    Writes already applied before the abort are not rolled back.
    """


class ConfigError(Exception):
    """Raised when an environment setting cannot be parsed."""


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

class RejectWriter:
    """Lazy-open CSV writer for rejected rows.

    The file is only created once the first reject arrives, so clean runs
    leave nothing behind.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh = None
        self._writer = None

    def write(self, row: dict[str, str], reason: str) -> None:
        if self._fh is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self._path, "w", newline="", encoding="utf-8")
            fieldnames = list(row.keys()) + ["_reject_reason"]
            self._writer = csv.DictWriter(
                self._fh, fieldnames=fieldnames, extrasaction="ignore"
            )
            self._writer.writeheader()
        out = dict(row)
        out["_reject_reason"] = reason
        self._writer.writerow(out)
        self._fh.flush()

    def close(self) -> None:
        if self._fh:
            self._fh.close()
            self._fh = None


def row_as_dict(header: list[str], row: list[str]) -> dict[str, str]:
    """Pair a ragged CSV row with its header for reject output.

    Short rows are padded with ""; cells past the header are kept under
    positional names so nothing from the source row is lost.
    """
    out: dict[str, str] = {}
    for idx, name in enumerate(header):
        key = name.strip() or f"_col{idx}"
        if key in out:
            key = f"{key}_{idx}"
        out[key] = row[idx] if idx < len(row) else ""
    for idx in range(len(header), len(row)):
        out[f"_col{idx}"] = row[idx]
    return out


# ---------------------------------------------------------------------------
# ImportCounters
# ---------------------------------------------------------------------------

@dataclass
class ImportCounters:
    rows_read: int = 0
    rows_rejected: int = 0
    members_added: int = 0
    members_updated: int = 0
    members_deleted: int = 0
    duplicates: int = 0
    parse_warnings: int = 0
    writes_attempted: int = 0
    write_failures: int = 0
    existing_keys: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in self.__dict__.items() if k != "warnings"}
        d["warnings"] = self.warnings[:50]
        return d


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    dry_run: bool,
    source_path: str,
    counters: ImportCounters,
    duplicates: list[str],
    report_dir: Path = Path("./artifacts/reports"),
) -> Path:
    report = {
        "run_id": run_id,
        "mode": "member_import",
        "started_at": started_at,
        "finished_at": datetime.utcnow().isoformat(),
        "dry_run": dry_run,
        "csv_path": source_path,
        "duplicates": duplicates,
        "counters": counters.to_dict(),
    }
    report_path = report_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
