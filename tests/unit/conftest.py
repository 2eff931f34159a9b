"""Unit test fixtures.

RecordingStore is an in-memory MemberStore that records every write, can be
told to fail specific operations, and tracks how many writes overlap.
"""

from __future__ import annotations

import csv
import io
import threading
import time

import pytest

from callsign_directory.members import Member
from callsign_directory.shared import StoreError
from callsign_directory.store import InMemoryMemberStore


class RecordingStore(InMemoryMemberStore):
    def __init__(
        self,
        members=(),
        fail_on=(),
        put_delay: float = 0.0,
        slot_limit: int | None = None,
        fail_scan: bool = False,
        fail_delete: bool = False,
    ) -> None:
        super().__init__(members)
        self.fail_on = set(fail_on)
        self.put_delay = put_delay
        self.fail_scan = fail_scan
        self.fail_delete = fail_delete
        self.puts: list[str] = []
        self.deletes: list[list[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.overruns = 0
        self._stats = threading.Lock()
        self._slots = threading.BoundedSemaphore(slot_limit) if slot_limit else None

    def put(self, member: Member) -> None:
        acquired = True
        if self._slots is not None:
            acquired = self._slots.acquire(blocking=False)
        with self._stats:
            if not acquired:
                self.overruns += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self.puts.append(member.callsign)
        try:
            if self.put_delay:
                time.sleep(self.put_delay)
            if member.callsign in self.fail_on:
                raise StoreError(f"put {member.callsign!r} rejected")
            super().put(member)
        finally:
            with self._stats:
                self.in_flight -= 1
            if self._slots is not None and acquired:
                self._slots.release()

    def scan_keys(self):
        if self.fail_scan:
            raise StoreError("scan unavailable")
        return super().scan_keys()

    def delete_many(self, callsigns) -> None:
        keys = list(callsigns)
        if self.fail_delete:
            raise StoreError("delete unavailable")
        self.deletes.append(keys)
        super().delete_many(keys)

    def callsigns(self) -> set[str]:
        return set(self.scan_keys())


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def recording_store():
    """Factory for RecordingStore with custom behaviour."""
    return RecordingStore


@pytest.fixture
def make_csv():
    """Return a factory building an in-memory CSV file from a header and rows."""

    def _make(header: list[str], rows: list[list[str]]) -> io.StringIO:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(header)
        writer.writerows(rows)
        return io.StringIO(buf.getvalue(), newline="")

    return _make
