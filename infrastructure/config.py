from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from infrastructure.db.memory_store import MemoryStore
from infrastructure.db.postgres_store import PostgresStore
from infrastructure.db.sqlite_store import SqliteStore

STORE_KINDS = ("memory", "sqlite", "postgres")


@dataclass(frozen=True)
class Settings:
    """Process settings, read from the environment (and `.env`)."""

    store: str = "memory"
    db_path: str = "backer.db"
    postgres: Mapping[str, object] = field(default_factory=dict)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        if environ is None:
            load_dotenv()
            environ = os.environ

        store = environ.get("BACKER_STORE", "memory").strip().lower()
        if store not in STORE_KINDS:
            raise ValueError(
                f"BACKER_STORE must be one of {', '.join(STORE_KINDS)}, got {store!r}"
            )

        return cls(
            store=store,
            db_path=environ.get("DB_PATH", "backer.db"),
            postgres={
                "host": environ.get("POSTGRES_HOST", "localhost"),
                "port": int(environ.get("POSTGRES_PORT", "5432")),
                "dbname": environ.get("POSTGRES_DB", "backer"),
                "user": environ.get("POSTGRES_USER", "backer"),
                "password": environ.get("POSTGRES_PASSWORD", ""),
            },
            log_level=environ.get("LOG_LEVEL", "INFO").upper(),
        )


def build_store(settings: Settings):
    """Return the store selected by `settings.store`."""

    if settings.store == "memory":
        return MemoryStore()
    if settings.store == "sqlite":
        return SqliteStore(settings.db_path)
    if settings.store == "postgres":
        return PostgresStore(dict(settings.postgres))
    raise ValueError(f"Unknown store: {settings.store!r}")
