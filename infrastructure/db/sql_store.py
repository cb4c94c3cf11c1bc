from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from domain.errors import AlreadyExists, NotFound, TransactionClosed
from domain.models import Bidder, Player, Tournament
from domain.repositories import Controller, Store, Transaction

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        balance DOUBLE PRECISION NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tournaments (
        id BIGINT PRIMARY KEY,
        deposit DOUBLE PRECISION NOT NULL DEFAULT 0,
        is_finished INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS bidders (
        tournament_id BIGINT NOT NULL,
        position INTEGER NOT NULL,
        player_id TEXT NOT NULL,
        winner INTEGER NOT NULL DEFAULT 0,
        prize DOUBLE PRECISION NOT NULL DEFAULT 0,
        PRIMARY KEY (tournament_id, position)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS backers (
        tournament_id BIGINT NOT NULL,
        bidder_position INTEGER NOT NULL,
        position INTEGER NOT NULL,
        player_id TEXT NOT NULL,
        PRIMARY KEY (tournament_id, bidder_position, position)
    )
    """,
)

TABLES = ("backers", "bidders", "tournaments", "players")


class SqlTransaction(Transaction):
    """A transaction bound to one open DB-API connection."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn
        self._closed = False

    @property
    def connection(self) -> Any:
        if self._closed:
            raise TransactionClosed()
        return self._conn

    def commit(self) -> None:
        if self._closed:
            raise TransactionClosed()
        # If this raises the connection stays open for `rollback`.
        self._conn.commit()
        self._close()

    def rollback(self) -> None:
        if self._closed:
            raise TransactionClosed()
        try:
            self._conn.rollback()
        finally:
            self._close()

    def _close(self) -> None:
        self._closed = True
        self._conn.close()


class SqlStore(Controller, Store):
    """
    Shared implementation of `Controller` and `Store` over a DB-API 2.0
    driver.

    Subclasses provide the connection and the driver specifics:
    - `_get_connection()` returns a new connection.
    - `placeholder` is the driver's parameter marker.
    - `integrity_errors` are the exceptions raised on duplicate keys.

    Each transaction owns one connection. Calls made with `tx=None` open
    their own connection and commit straight away.
    """

    placeholder = "?"
    integrity_errors: Tuple[type, ...] = ()

    def _get_connection(self) -> Any:
        raise NotImplementedError

    def _sql(self, query: str) -> str:
        if self.placeholder == "?":
            return query
        return query.replace("?", self.placeholder)

    @contextmanager
    def _session(self, tx: Optional[Transaction]) -> Iterator[Any]:
        if tx is not None:
            if not isinstance(tx, SqlTransaction):
                raise TypeError(f"Unsupported transaction type: {type(tx).__name__}")
            yield tx.connection
            return

        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _execute(self, conn: Any, query: str, params: Sequence[Any] = ()) -> None:
        cur = conn.cursor()
        try:
            cur.execute(self._sql(query), tuple(params))
        finally:
            cur.close()

    def _fetchone(self, conn: Any, query: str, params: Sequence[Any] = ()) -> Optional[tuple]:
        cur = conn.cursor()
        try:
            cur.execute(self._sql(query), tuple(params))
            return cur.fetchone()
        finally:
            cur.close()

    def _fetchall(self, conn: Any, query: str, params: Sequence[Any] = ()) -> List[tuple]:
        cur = conn.cursor()
        try:
            cur.execute(self._sql(query), tuple(params))
            return list(cur.fetchall())
        finally:
            cur.close()

    # ------------------------------------------------------------------
    # Store lifecycle
    # ------------------------------------------------------------------

    def ready(self) -> bool:
        try:
            conn = self._get_connection()
        except Exception as e:
            logger.warning(f"Store is not ready: {e}")
            return False
        try:
            return self._fetchone(conn, "SELECT 1") is not None
        except Exception as e:
            logger.warning(f"Store is not ready: {e}")
            return False
        finally:
            conn.close()

    def migrate_up(self) -> None:
        with self._session(None) as conn:
            for statement in SCHEMA:
                self._execute(conn, statement)
        logger.info("Schema created")

    def migrate_down(self) -> None:
        with self._session(None) as conn:
            for table in TABLES:
                self._execute(conn, f"DROP TABLE IF EXISTS {table}")
        logger.info("Schema dropped")

    def reset(self) -> None:
        with self._session(None) as conn:
            for table in TABLES:
                self._execute(conn, f"DELETE FROM {table}")

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def begin_transaction(self) -> SqlTransaction:
        return SqlTransaction(self._get_connection())

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    @staticmethod
    def _to_player(row: tuple) -> Player:
        return Player(id=str(row[0]), balance=float(row[1]))

    def create_player(self, player_id: str, tx: Optional[Transaction] = None) -> None:
        with self._session(tx) as conn:
            if self._fetchone(conn, "SELECT id FROM players WHERE id = ?", (player_id,)):
                raise AlreadyExists("player", player_id)
            try:
                self._execute(
                    conn,
                    "INSERT INTO players (id, balance) VALUES (?, ?)",
                    (player_id, 0.0),
                )
            except self.integrity_errors as e:
                raise AlreadyExists("player", player_id) from e

    def find_player(self, player_id: str, tx: Optional[Transaction] = None) -> Player:
        with self._session(tx) as conn:
            row = self._fetchone(conn, "SELECT id, balance FROM players WHERE id = ?", (player_id,))
        if not row:
            raise NotFound("player", player_id)
        return self._to_player(row)

    def save_player(self, player: Player, tx: Optional[Transaction] = None) -> None:
        with self._session(tx) as conn:
            self._execute(
                conn,
                """
                INSERT INTO players (id, balance) VALUES (?, ?)
                ON CONFLICT (id) DO UPDATE SET balance = excluded.balance
                """,
                (player.id, player.balance),
            )

    def delete_player(self, player_id: str, tx: Optional[Transaction] = None) -> None:
        with self._session(tx) as conn:
            self._execute(conn, "DELETE FROM players WHERE id = ?", (player_id,))

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    def create_tournament(self, tournament_id: int, tx: Optional[Transaction] = None) -> None:
        with self._session(tx) as conn:
            if self._fetchone(conn, "SELECT id FROM tournaments WHERE id = ?", (tournament_id,)):
                raise AlreadyExists("tournament", tournament_id)
            try:
                self._execute(
                    conn,
                    "INSERT INTO tournaments (id, deposit, is_finished) VALUES (?, ?, ?)",
                    (tournament_id, 0.0, 0),
                )
            except self.integrity_errors as e:
                raise AlreadyExists("tournament", tournament_id) from e

    def find_tournament(self, tournament_id: int, tx: Optional[Transaction] = None) -> Tournament:
        with self._session(tx) as conn:
            row = self._fetchone(
                conn,
                "SELECT id, deposit, is_finished FROM tournaments WHERE id = ?",
                (tournament_id,),
            )
            if not row:
                raise NotFound("tournament", tournament_id)
            bidder_rows = self._fetchall(
                conn,
                """
                SELECT position, player_id, winner, prize FROM bidders
                WHERE tournament_id = ? ORDER BY position
                """,
                (tournament_id,),
            )
            backer_rows = self._fetchall(
                conn,
                """
                SELECT bidder_position, player_id FROM backers
                WHERE tournament_id = ? ORDER BY bidder_position, position
                """,
                (tournament_id,),
            )

        backers = {}
        for bidder_position, player_id in backer_rows:
            backers.setdefault(bidder_position, []).append(str(player_id))

        return Tournament(
            id=int(row[0]),
            deposit=float(row[1]),
            is_finished=bool(row[2]),
            bidders=[
                Bidder(
                    id=str(player_id),
                    winner=bool(winner),
                    prize=float(prize),
                    backers=backers.get(position, []),
                )
                for position, player_id, winner, prize in bidder_rows
            ],
        )

    def save_tournament(self, tournament: Tournament, tx: Optional[Transaction] = None) -> None:
        with self._session(tx) as conn:
            self._execute(
                conn,
                """
                INSERT INTO tournaments (id, deposit, is_finished) VALUES (?, ?, ?)
                ON CONFLICT (id) DO UPDATE
                SET deposit = excluded.deposit, is_finished = excluded.is_finished
                """,
                (tournament.id, tournament.deposit, int(tournament.is_finished)),
            )
            self._delete_bidders(conn, tournament.id)
            for position, bidder in enumerate(tournament.bidders):
                self._execute(
                    conn,
                    """
                    INSERT INTO bidders (tournament_id, position, player_id, winner, prize)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (tournament.id, position, bidder.id, int(bidder.winner), bidder.prize),
                )
                for backer_position, backer_id in enumerate(bidder.backers):
                    self._execute(
                        conn,
                        """
                        INSERT INTO backers (tournament_id, bidder_position, position, player_id)
                        VALUES (?, ?, ?, ?)
                        """,
                        (tournament.id, position, backer_position, backer_id),
                    )

    def delete_tournament(self, tournament_id: int, tx: Optional[Transaction] = None) -> None:
        with self._session(tx) as conn:
            self._delete_bidders(conn, tournament_id)
            self._execute(conn, "DELETE FROM tournaments WHERE id = ?", (tournament_id,))

    def _delete_bidders(self, conn: Any, tournament_id: int) -> None:
        self._execute(conn, "DELETE FROM backers WHERE tournament_id = ?", (tournament_id,))
        self._execute(conn, "DELETE FROM bidders WHERE tournament_id = ?", (tournament_id,))
