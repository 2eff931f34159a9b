"""callsign_directory.import_members

Full-replace reconciliation import of the member roster from a CSV file.

Processing order per upload:
  1.  Key-only scan of the store            → ReconciliationIndex
  2.  Read header row                       → column map
  3.  Start the write pool
  4.  For each data row:
      a.  parse_member_row                  → reject on ParseError
      b.  duplicate check against this upload (first occurrence wins)
      c.  submit to the write pool
      d.  claim the key in the index        → "updated", else "added"
  5.  Close the queue, join all writers     → aggregate write failures
  6.  delete_many(keys left in the index)   → "deleted"

Row-level problems (bad expiration numbers, rejected rows, duplicates,
failed writes) never abort the batch.  Read errors, scan failures and a
failed bulk delete raise ImportAbortedError; writes already applied stay.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from callsign_directory.members import CALL_HEADER, build_column_map, missing_columns, parse_member_row
from callsign_directory.shared import (
    ImportAbortedError,
    ImportCounters,
    ParseError,
    RejectWriter,
    StoreError,
    row_as_dict,
)
from callsign_directory.store import MemberStore
from callsign_directory.write_pool import WriteFailure, WritePool

log = logging.getLogger(__name__)

DEFAULT_WRITERS = 50
DEFAULT_QUEUE_SIZE = 500

# ImportEvent kinds
EVENT_WARNING = "warning"
EVENT_REJECTED = "rejected"
EVENT_DUPLICATE = "duplicate"
EVENT_ADDED = "added"
EVENT_WRITE_FAILED = "write_failed"
EVENT_DELETED = "deleted"
EVENT_SUMMARY = "summary"


@dataclass
class ImportEvent:
    kind: str
    message: str
    callsign: str | None = None


@dataclass
class ImportResult:
    added: int = 0
    updated: int = 0
    deleted: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    rejected: int = 0
    write_failures: list[WriteFailure] = field(default_factory=list)
    counters: ImportCounters = field(default_factory=ImportCounters)

    def summary(self) -> str:
        return f"Added {self.added}, updated {self.updated}, deleted {len(self.deleted)}."


# ---------------------------------------------------------------------------
# Reconciliation index
# ---------------------------------------------------------------------------

class ReconciliationIndex:
    """Callsigns stored before the upload started.

    Keys are claimed as the upload mentions them; whatever is left at the
    end is stale and gets deleted.  Holds one entry per existing member, so
    memory grows with the size of the roster.
    """

    def __init__(self, keys: Iterable[str] = ()) -> None:
        self._keys: set[str] = set(keys)

    @classmethod
    def from_store(cls, store: MemberStore) -> "ReconciliationIndex":
        try:
            index = cls(store.scan_keys())
        except StoreError as exc:
            raise ImportAbortedError(f"could not read existing members: {exc}") from exc
        log.debug("reconciliation index holds %d existing keys", len(index))
        return index

    def claim(self, callsign: str) -> bool:
        """Remove callsign from the index.  Returns True if it was present."""
        if callsign in self._keys:
            self._keys.discard(callsign)
            return True
        return False

    def remaining(self) -> list[str]:
        return sorted(self._keys)

    def __contains__(self, callsign: object) -> bool:
        return callsign in self._keys

    def __len__(self) -> int:
        return len(self._keys)


# ---------------------------------------------------------------------------
# Importer
# ---------------------------------------------------------------------------

def _discard(member) -> None:
    """Writer used by dry runs."""


class MemberImporter:
    """Reconcile the store against one roster CSV.

    writers and queue_size bound the concurrent load on the store.  In a
    dry run rows are parsed and classified but nothing is written or
    deleted.
    """

    def __init__(
        self,
        store: MemberStore,
        writers: int = DEFAULT_WRITERS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        dry_run: bool = False,
        rejects: RejectWriter | None = None,
    ) -> None:
        if writers < 1:
            raise ValueError(f"writers must be >= 1, got {writers}")
        self.store = store
        self.writers = writers
        self.queue_size = queue_size
        self.dry_run = dry_run
        self.rejects = rejects

    def prepare(self, lines: Iterable[str]) -> "ImportRun":
        """Snapshot existing keys and read the header.

        Raises ImportAbortedError before anything is written, so callers can
        still answer with a plain error.
        """
        log.debug("reading all keys")
        index = ReconciliationIndex.from_store(self.store)

        reader = csv.reader(lines)
        try:
            header = next(reader)
        except StopIteration:
            raise ImportAbortedError("CSV file is empty; expected a header row") from None
        except (csv.Error, UnicodeDecodeError) as exc:
            raise ImportAbortedError(f"could not read CSV header: {exc}") from exc

        columns = build_column_map(header)
        absent = missing_columns(columns)
        if absent:
            log.info("header is missing recognized columns: %s", ", ".join(absent))
        return ImportRun(self, reader, header, columns, index)

    def run(self, lines: Iterable[str]) -> ImportResult:
        return self.prepare(lines).run()


class ImportRun:
    """One prepared upload.  Iterate events() to drive it."""

    def __init__(
        self,
        importer: MemberImporter,
        reader,
        header: list[str],
        columns: dict[str, int],
        index: ReconciliationIndex,
    ) -> None:
        self._importer = importer
        self._reader = reader
        self.header = header
        self.columns = columns
        self.index = index
        self.result = ImportResult()
        self.result.counters.existing_keys = len(index)
        self._started = False

    def run(self) -> ImportResult:
        for _ in self.events():
            pass
        return self.result

    def events(self) -> Iterator[ImportEvent]:
        """Run the import, yielding progress as it goes.

        The final event is the summary.  Abandoning the iterator part-way
        cancels the outstanding writes.
        """
        if self._started:
            raise RuntimeError("import run already started")
        self._started = True

        importer = self._importer
        result = self.result
        counters = result.counters
        processed: set[str] = set()
        duplicates: set[str] = set()

        if CALL_HEADER not in self.columns:
            yield ImportEvent(EVENT_WARNING, "Header has no CALL column; every row will be rejected.")

        write = _discard if importer.dry_run else importer.store.put
        pool = WritePool(write, workers=importer.writers, queue_size=importer.queue_size)
        log.debug("begin writing")
        with pool:
            for row in self._rows():
                counters.rows_read += 1
                try:
                    parsed = parse_member_row(row, self.columns)
                except ParseError as exc:
                    counters.rows_rejected += 1
                    result.rejected += 1
                    if importer.rejects is not None:
                        importer.rejects.write(row_as_dict(self.header, row), str(exc))
                    yield ImportEvent(EVENT_REJECTED, f"Rejected line {self._reader.line_num}: {exc}")
                    continue

                member = parsed.member
                callsign = member.callsign
                for warning in parsed.warnings:
                    counters.parse_warnings += 1
                    counters.warnings.append(warning)
                    yield ImportEvent(EVENT_WARNING, warning, callsign)

                if callsign in processed:
                    duplicates.add(callsign)
                    counters.duplicates += 1
                    yield ImportEvent(EVENT_DUPLICATE, f"Skipping duplicate {callsign}", callsign)
                    continue
                processed.add(callsign)

                pool.submit(member)
                if self.index.claim(callsign):
                    result.updated += 1
                else:
                    result.added += 1
                    yield ImportEvent(EVENT_ADDED, f"Adding {callsign}", callsign)
            log.debug("closing write queue")

        # Leaving the block joined every writer; no write is still in flight.
        result.write_failures = pool.failures
        counters.writes_attempted = pool.attempted
        counters.write_failures = len(pool.failures)
        for failure in pool.failures:
            yield ImportEvent(EVENT_WRITE_FAILED, f"Error: {failure}", failure.callsign)

        stale = self.index.remaining()
        if stale and not importer.dry_run:
            log.debug("deleting %d stale keys", len(stale))
            try:
                importer.store.delete_many(stale)
            except StoreError as exc:
                raise ImportAbortedError(f"could not delete stale members: {exc}") from exc
        for callsign in stale:
            yield ImportEvent(EVENT_DELETED, f"Deleting {callsign}", callsign)

        result.deleted = stale
        result.duplicates = sorted(duplicates)
        counters.members_added = result.added
        counters.members_updated = result.updated
        counters.members_deleted = len(stale)
        log.info(
            "import finished: added=%d updated=%d deleted=%d duplicates=%d rejected=%d write_failures=%d",
            result.added, result.updated, len(stale), len(duplicates),
            result.rejected, len(result.write_failures),
        )
        yield ImportEvent(EVENT_SUMMARY, result.summary())

    def _rows(self) -> Iterator[list[str]]:
        rows = iter(self._reader)
        while True:
            try:
                row = next(rows)
            except StopIteration:
                return
            except (csv.Error, UnicodeDecodeError, OSError) as exc:
                raise ImportAbortedError(
                    f"CSV read failed near line {self._reader.line_num}: {exc}"
                ) from exc
            if not row:
                continue
            yield row
