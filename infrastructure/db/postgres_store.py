from __future__ import annotations

import psycopg2

from infrastructure.db.sql_store import SqlStore


class PostgresStore(SqlStore):
    """
    Postgres-backed implementation of `Controller` and `Store`.

    `db_params` is passed as-is to `psycopg2.connect`, e.g.
    ``{"host": "localhost", "dbname": "backer", "user": "backer"}``.
    """

    placeholder = "%s"
    integrity_errors = (psycopg2.IntegrityError,)

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params

    def _get_connection(self):
        return psycopg2.connect(**self._db_params)
