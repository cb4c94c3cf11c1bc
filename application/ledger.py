from __future__ import annotations

import logging
import threading

from application.transactions import unit_of_work
from domain.errors import InsufficientPoints, NotFound
from domain.models import Player
from domain.repositories import Controller, Transaction
from domain.rounding import round_price, truncate_price

logger = logging.getLogger(__name__)


def manage_points(
    controller: Controller,
    tx: Transaction,
    player_id: str,
    amount: float,
) -> float:
    """
    Apply `amount` (positive to fund, negative to take) to a player's
    balance inside an existing transaction and return the new balance.

    - Raises `InsufficientPoints` before writing anything if the balance
      does not cover a negative amount.
    - The amount is truncated to two decimals, the result rounded half-up.

    Settlement calls this with the tournament's own transaction so that
    point moves and the tournament write commit or roll back together.
    """

    player = controller.find_player(player_id, tx)
    if amount < 0 and player.balance < abs(amount):
        raise InsufficientPoints(player_id, player.balance, abs(amount))

    player.balance = round_price(player.balance + truncate_price(amount))
    controller.save_player(player, tx)
    return player.balance


class PlayerEntry:
    """
    Handle on one player's points account.

    The handle caches the player's id and last known balance. The cache is
    only refreshed after a successful commit (or by `balance()`), so a
    failed `fund` / `take` leaves it at the last persisted value.
    """

    def __init__(self, player: Player, controller: Controller) -> None:
        self._controller = controller
        self._lock = threading.Lock()
        self._player = player

    def __repr__(self) -> str:
        return f"PlayerEntry(id={self._player.id!r}, balance={self._player.balance})"

    @classmethod
    def create_or_find(cls, player_id: str, controller: Controller) -> "PlayerEntry":
        """Return the existing player, creating a zero-balance one if needed."""

        with unit_of_work(controller, "create player") as tx:
            try:
                player = controller.find_player(player_id, tx)
            except NotFound:
                controller.create_player(player_id, tx)
                player = Player(id=player_id)
                logger.info(f"Created player {player_id}")
        return cls(player, controller)

    @classmethod
    def find(cls, player_id: str, controller: Controller) -> "PlayerEntry":
        """Return the existing player or raise `NotFound`."""

        with unit_of_work(controller, "find player") as tx:
            player = controller.find_player(player_id, tx)
        return cls(player, controller)

    @property
    def id(self) -> str:
        with self._lock:
            return self._player.id

    @property
    def cached_balance(self) -> float:
        """Last balance seen by this handle, without touching the store."""

        with self._lock:
            return self._player.balance

    def update_cached_balance(self, balance: float) -> None:
        with self._lock:
            self._player.balance = balance

    def fund(self, amount: float) -> None:
        """Add `amount` points to the player's balance."""

        with unit_of_work(self._controller, "fund") as tx:
            balance = manage_points(self._controller, tx, self.id, amount)
        self.update_cached_balance(balance)
        logger.info(f"Funded {amount} to player {self.id}, balance {balance}")

    def take(self, amount: float) -> None:
        """Take `amount` points; raises `InsufficientPoints` if not covered."""

        with unit_of_work(self._controller, "take") as tx:
            balance = manage_points(self._controller, tx, self.id, -amount)
        self.update_cached_balance(balance)
        logger.info(f"Took {amount} from player {self.id}, balance {balance}")

    def balance(self) -> float:
        """Read the persisted balance outside of any transaction."""

        player = self._controller.find_player(self.id, None)
        self.update_cached_balance(player.balance)
        return player.balance
