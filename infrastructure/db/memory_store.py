from __future__ import annotations

import copy
import logging
import threading
from typing import Dict, Optional

from domain.errors import AlreadyExists, NotFound, TransactionClosed
from domain.models import Player, Tournament
from domain.repositories import Controller, Store, Transaction
from infrastructure.db.faults import FaultPolicy, NoFaults, Operation

logger = logging.getLogger(__name__)


class MemoryTransaction(Transaction):
    """
    Copy-on-begin, restore-on-abort transaction of a `MemoryStore`.

    Writes made while the transaction is open go straight to the live
    collections; the snapshot taken at begin is only used by `rollback`.
    """

    def __init__(
        self,
        store: "MemoryStore",
        players: Dict[str, Player],
        tournaments: Dict[int, Tournament],
    ) -> None:
        self._store = store
        self._players = players
        self._tournaments = tournaments
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def commit(self) -> None:
        if self._closed:
            raise TransactionClosed()
        # A failed commit keeps the snapshot so the owner can still roll back.
        self._store._raise_fault(Operation.COMMIT)
        self._players = {}
        self._tournaments = {}
        self._closed = True

    def rollback(self) -> None:
        if self._closed:
            raise TransactionClosed()
        self._store._restore(self._players, self._tournaments)
        self._players = {}
        self._tournaments = {}
        self._closed = True
        self._store._raise_fault(Operation.ROLLBACK)


class MemoryStore(Controller, Store):
    """
    In-memory reference implementation of `Controller` and `Store`.

    The store owns the canonical records: `find_*` hands out deep copies
    and `save_*` keeps deep copies of what it is given. A single lock keeps
    the two collections consistent per call; it does not isolate concurrent
    transactions from each other's writes.

    A `FaultPolicy` can be supplied to make individual calls fail after
    their normal effect; see `infrastructure.db.faults`.
    """

    def __init__(self, faults: Optional[FaultPolicy] = None) -> None:
        self._faults = faults or NoFaults()
        self._lock = threading.RLock()
        self._players: Dict[str, Player] = {}
        self._tournaments: Dict[int, Tournament] = {}

    def _raise_fault(self, operation: Operation) -> None:
        error = self._faults.next_fault(operation)
        if error is not None:
            logger.debug("Injected %s fault: %r", operation.value, error)
            raise error

    def _restore(
        self,
        players: Dict[str, Player],
        tournaments: Dict[int, Tournament],
    ) -> None:
        with self._lock:
            self._players = players
            self._tournaments = tournaments

    # ------------------------------------------------------------------
    # Store lifecycle
    # ------------------------------------------------------------------

    def ready(self) -> bool:
        return True

    def reset(self) -> None:
        with self._lock:
            self._players = {}
            self._tournaments = {}
        self._raise_fault(Operation.RESET)

    def migrate_up(self) -> None:
        # No schema to create: migrating means starting from empty.
        self.reset()
        self._raise_fault(Operation.MIGRATE_UP)

    def migrate_down(self) -> None:
        self.reset()
        self._raise_fault(Operation.MIGRATE_DOWN)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def begin_transaction(self) -> MemoryTransaction:
        with self._lock:
            tx = MemoryTransaction(
                self,
                copy.deepcopy(self._players),
                copy.deepcopy(self._tournaments),
            )
        self._raise_fault(Operation.BEGIN)
        return tx

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    def create_player(self, player_id: str, tx: Optional[Transaction] = None) -> None:
        with self._lock:
            if player_id in self._players:
                raise AlreadyExists("player", player_id)
            self._players[player_id] = Player(id=player_id)
        self._raise_fault(Operation.CREATE)

    def find_player(self, player_id: str, tx: Optional[Transaction] = None) -> Player:
        with self._lock:
            player = self._players.get(player_id)
            if player is None:
                raise NotFound("player", player_id)
            player = copy.deepcopy(player)
        self._raise_fault(Operation.FIND)
        return player

    def save_player(self, player: Player, tx: Optional[Transaction] = None) -> None:
        with self._lock:
            self._players[player.id] = copy.deepcopy(player)
        self._raise_fault(Operation.SAVE)

    def delete_player(self, player_id: str, tx: Optional[Transaction] = None) -> None:
        with self._lock:
            self._players.pop(player_id, None)
        self._raise_fault(Operation.DELETE)

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    def create_tournament(self, tournament_id: int, tx: Optional[Transaction] = None) -> None:
        with self._lock:
            if tournament_id in self._tournaments:
                raise AlreadyExists("tournament", tournament_id)
            self._tournaments[tournament_id] = Tournament(id=tournament_id)
        self._raise_fault(Operation.CREATE)

    def find_tournament(self, tournament_id: int, tx: Optional[Transaction] = None) -> Tournament:
        with self._lock:
            tournament = self._tournaments.get(tournament_id)
            if tournament is None:
                raise NotFound("tournament", tournament_id)
            tournament = copy.deepcopy(tournament)
        self._raise_fault(Operation.FIND)
        return tournament

    def save_tournament(self, tournament: Tournament, tx: Optional[Transaction] = None) -> None:
        with self._lock:
            self._tournaments[tournament.id] = copy.deepcopy(tournament)
        self._raise_fault(Operation.SAVE)

    def delete_tournament(self, tournament_id: int, tx: Optional[Transaction] = None) -> None:
        with self._lock:
            self._tournaments.pop(tournament_id, None)
        self._raise_fault(Operation.DELETE)
