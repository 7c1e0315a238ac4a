"""
auth/store.py -- Persistence for the console session record.

The CredentialStore does not know where the session lives. It is handed a
storage object with three operations, all keyed by one record name:

  load()   -> dict | None   read the persisted blob on process start
  save(d)                   write the blob on login
  clear()                   delete the blob on logout / invalidation

Two implementations:
  MemorySessionStorage  -- dict-backed; tests and PERSIST_SESSION=false.
  SqlSessionStorage     -- SQLAlchemy Core, one row per record name in the
                           persisted_state table. Default DB is a SQLite file
                           next to this module.

The blob format is opaque to callers of the store: a JSON object. The session
layer writes {"token": ...} into it.

Security:
  All queries use bound parameters. No f-strings in SQL.
  The blob holds a bearer token -- never log its contents.

Layer rule: no imports from api/, web/, or services/.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

logger = logging.getLogger("cmsadmin.auth.store")

# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class SessionStorage(Protocol):
    def load(self) -> Optional[dict]: ...

    def save(self, record: dict) -> None: ...

    def clear(self) -> None: ...


# ---------------------------------------------------------------------------
# In-memory storage
# ---------------------------------------------------------------------------


class MemorySessionStorage:
    """Process-local storage. Nothing survives a restart.

    Usage:
        storage = MemorySessionStorage()
        storage.save({"token": "abc"})
        storage.load()   # {"token": "abc"}
    """

    def __init__(self, record: Optional[dict] = None) -> None:
        self._record: Optional[dict] = dict(record) if record is not None else None

    def load(self) -> Optional[dict]:
        return dict(self._record) if self._record is not None else None

    def save(self, record: dict) -> None:
        self._record = dict(record)

    def clear(self) -> None:
        self._record = None


# ---------------------------------------------------------------------------
# SQL storage
# ---------------------------------------------------------------------------

_metadata = MetaData()

_persisted_state = Table(
    "persisted_state",
    _metadata,
    Column("key", String(64), primary_key=True),
    Column("value", Text, nullable=False),  # JSON blob
    Column("updated_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so a reader never blocks on a concurrent write.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqlSessionStorage:
    """One named persisted record in a SQL database.

    save() replaces the record in a single transaction (delete + insert), so a
    reader sees either the previous blob or the new one.

    Usage:
        storage = SqlSessionStorage("sqlite:///session.db", key="admin")
        storage.save({"token": "abc"})
        storage.close()
    """

    def __init__(self, db_url: str, key: str = "admin") -> None:
        self.key = key
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def load(self) -> Optional[dict]:
        """Return the stored blob, or None if absent or unreadable.

        A blob that is not a JSON object is logged and treated as absent --
        rehydration then starts unauthenticated instead of failing startup.
        """
        with self.engine.connect() as conn:
            row = conn.execute(_persisted_state.select().where(_persisted_state.c.key == self.key)).fetchone()
        if row is None:
            return None
        try:
            record = json.loads(row.value)
        except ValueError:
            logger.warning("Persisted record %r is not valid JSON -- ignoring it", self.key)
            return None
        if not isinstance(record, dict):
            logger.warning("Persisted record %r is not a JSON object -- ignoring it", self.key)
            return None
        return record

    def save(self, record: dict) -> None:
        with self.engine.begin() as conn:
            conn.execute(_persisted_state.delete().where(_persisted_state.c.key == self.key))
            conn.execute(
                _persisted_state.insert().values(
                    key=self.key,
                    value=json.dumps(record),
                    updated_at=_now_iso(),
                )
            )

    def clear(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(_persisted_state.delete().where(_persisted_state.c.key == self.key))

    def close(self) -> None:
        self.engine.dispose()


def build_session_storage(settings) -> SessionStorage:
    """Return the storage selected by PERSIST_SESSION / SESSION_DB_URL."""
    if not settings.persist_session:
        return MemorySessionStorage()
    return SqlSessionStorage(settings.session_db_url, key=settings.session_key)
