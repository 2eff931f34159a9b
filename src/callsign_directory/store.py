"""callsign_directory.store

Member persistence.  The importer and the lookup path only depend on the
MemberStore protocol: point get, point upsert, key-only scan, multi-key
delete.  PostgresMemberStore is the production implementation;
InMemoryMemberStore backs local runs and tests.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, Iterator, Protocol

import psycopg
from psycopg_pool import ConnectionPool

from callsign_directory.members import MEMBER_COLUMNS, Member
from callsign_directory.shared import StoreError

log = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent.parent / "migrations"


class MemberStore(Protocol):
    def get(self, callsign: str) -> Member | None:
        """Return the member stored under callsign, or None."""
        ...

    def put(self, member: Member) -> None:
        """Insert or replace the member keyed by member.callsign."""
        ...

    def scan_keys(self) -> Iterator[str]:
        """Yield every stored callsign without loading the records."""
        ...

    def delete_many(self, callsigns: Iterable[str]) -> None:
        """Delete all listed callsigns in one call."""
        ...


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------

_SELECT_SQL = (
    f"SELECT {', '.join(MEMBER_COLUMNS)} FROM member WHERE callsign = %s"
)

_UPSERT_SQL = f"""
    INSERT INTO member ({', '.join(MEMBER_COLUMNS)})
    VALUES ({', '.join(['%s'] * len(MEMBER_COLUMNS))})
    ON CONFLICT (callsign) DO UPDATE SET
      {', '.join(f'{c} = EXCLUDED.{c}' for c in MEMBER_COLUMNS if c != 'callsign')},
      updated_at = now()
"""


class PostgresMemberStore:
    """MemberStore backed by the `member` table.

    Every operation borrows its own connection from the pool, so write-pool
    workers run their upserts concurrently.  Each statement commits when the
    connection is returned.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @classmethod
    def connect(cls, dsn: str, max_size: int = 10) -> "PostgresMemberStore":
        pool = ConnectionPool(dsn, min_size=1, max_size=max(1, max_size), open=True)
        return cls(pool)

    def close(self) -> None:
        self._pool.close()

    def get(self, callsign: str) -> Member | None:
        try:
            with self._pool.connection() as conn:
                row = conn.execute(_SELECT_SQL, (callsign,)).fetchone()
        except psycopg.Error as exc:
            raise StoreError(f"get {callsign!r} failed: {exc}") from exc
        return Member(*row) if row else None

    def put(self, member: Member) -> None:
        values = tuple(getattr(member, c) for c in MEMBER_COLUMNS)
        try:
            with self._pool.connection() as conn:
                conn.execute(_UPSERT_SQL, values)
        except psycopg.Error as exc:
            raise StoreError(f"put {member.callsign!r} failed: {exc}") from exc

    def scan_keys(self) -> Iterator[str]:
        try:
            with self._pool.connection() as conn:
                cur = conn.cursor()
                for (callsign,) in cur.stream("SELECT callsign FROM member"):
                    yield callsign
        except psycopg.Error as exc:
            raise StoreError(f"key scan failed: {exc}") from exc

    def delete_many(self, callsigns: Iterable[str]) -> None:
        keys = list(callsigns)
        if not keys:
            return
        try:
            with self._pool.connection() as conn:
                conn.execute("DELETE FROM member WHERE callsign = ANY(%s)", (keys,))
        except psycopg.Error as exc:
            raise StoreError(f"delete of {len(keys)} members failed: {exc}") from exc


def apply_migrations(dsn: str, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Apply every migrations/*.sql file in name order.  Returns the file names."""
    applied: list[str] = []
    with psycopg.connect(dsn, autocommit=True) as conn:
        for migration in sorted(migrations_dir.glob("*.sql")):
            log.info("applying %s", migration.name)
            conn.execute(migration.read_text(encoding="utf-8"))
            applied.append(migration.name)
    return applied


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemoryMemberStore:
    """Dict-backed MemberStore for local runs without a database."""

    def __init__(self, members: Iterable[Member] = ()) -> None:
        self._lock = threading.Lock()
        self._members: dict[str, Member] = {m.callsign: m for m in members}

    def get(self, callsign: str) -> Member | None:
        with self._lock:
            return self._members.get(callsign)

    def put(self, member: Member) -> None:
        with self._lock:
            self._members[member.callsign] = member

    def scan_keys(self) -> Iterator[str]:
        with self._lock:
            keys = list(self._members)
        yield from keys

    def delete_many(self, callsigns: Iterable[str]) -> None:
        with self._lock:
            for callsign in callsigns:
                self._members.pop(callsign, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._members)
