from __future__ import annotations

from typing import Optional, Protocol

from .models import Player, Tournament


class Transaction(Protocol):
    """
    A unit of work spanning player and tournament reads and writes.

    Exactly one of `commit` / `rollback` ends the transaction; any later
    call raises `TransactionClosed`. A `commit` that raises leaves the
    transaction open so its owner can still roll it back.
    """

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


class Controller(Protocol):
    """
    Abstraction over player and tournament persistence.

    Implementations are responsible for:
    - Mapping between storage rows and the `Player` / `Tournament` models.
    - Scoping every call to the transaction it is given. `tx=None` is
      allowed for standalone calls, such as a balance check that does not
      take part in a bigger mutation.
    - Returning copies from `find_*` so that callers never hold on to
      canonical records.
    """

    def begin_transaction(self) -> Transaction:
        """Open a new transaction."""

        ...

    def create_player(self, player_id: str, tx: Optional[Transaction] = None) -> None:
        """
        Persist a new zero-balance player.

        Raises `AlreadyExists` if the id is taken.
        """

        ...

    def find_player(self, player_id: str, tx: Optional[Transaction] = None) -> Player:
        """Return the player with the given id or raise `NotFound`."""

        ...

    def save_player(self, player: Player, tx: Optional[Transaction] = None) -> None:
        """Overwrite the full player record keyed by its id."""

        ...

    def delete_player(self, player_id: str, tx: Optional[Transaction] = None) -> None:
        ...

    def create_tournament(self, tournament_id: int, tx: Optional[Transaction] = None) -> None:
        """
        Persist a new, unannounced tournament.

        Raises `AlreadyExists` if the id is taken.
        """

        ...

    def find_tournament(self, tournament_id: int, tx: Optional[Transaction] = None) -> Tournament:
        """Return the tournament with the given id or raise `NotFound`."""

        ...

    def save_tournament(self, tournament: Tournament, tx: Optional[Transaction] = None) -> None:
        """Overwrite the full tournament record, bidders included."""

        ...

    def delete_tournament(self, tournament_id: int, tx: Optional[Transaction] = None) -> None:
        ...


class Store(Protocol):
    """
    Store lifecycle used by deployment and test wiring, never by the
    ledger or settlement logic.
    """

    def ready(self) -> bool:
        """Return True when the store can serve requests."""

        ...

    def reset(self) -> None:
        """Remove every player and tournament."""

        ...

    def migrate_up(self) -> None:
        ...

    def migrate_down(self) -> None:
        ...
