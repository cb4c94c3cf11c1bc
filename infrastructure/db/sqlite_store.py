from __future__ import annotations

import sqlite3

from infrastructure.db.sql_store import SqlStore


class SqliteStore(SqlStore):
    """
    SQLite-backed implementation of `Controller` and `Store`.

    Every transaction gets its own connection to `db_path`, so the store
    needs a file database; an in-memory `:memory:` database would be a
    different, empty database for each connection. Call `migrate_up()`
    once before use.
    """

    placeholder = "?"
    integrity_errors = (sqlite3.IntegrityError,)

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path, timeout=self._timeout, check_same_thread=False)
