from __future__ import annotations

import copy
import logging
import threading
from typing import Dict, List, Mapping, Optional, Union

from application.ledger import PlayerEntry, manage_points
from application.transactions import unit_of_work
from domain.errors import (
    AlreadyFinished,
    CouldNotJoinTwice,
    NoParticipants,
    NotFound,
    PlayersAlreadyJoined,
    WinnerIsNotMember,
)
from domain.models import Bidder, Tournament
from domain.repositories import Controller
from domain.rounding import truncate_price

logger = logging.getLogger(__name__)

PlayerRef = Union[PlayerEntry, str]


def _player_id(player: PlayerRef) -> str:
    if isinstance(player, PlayerEntry):
        return player.id
    return player


class TournamentEntry:
    """
    Handle on one tournament and its settlement lifecycle.

    Lifecycle:
    - announce: set the deposit, only before anyone joined.
    - join: a bidder group (primary player plus backers) pays the deposit,
      split evenly between its members.
    - result: winners are paid, each prize split evenly between the
      winning bidder and its backers; the tournament is then finished and
      accepts no further changes.

    Every step runs in a single transaction, so point moves and the
    tournament record are written together or not at all.
    """

    def __init__(self, tournament: Tournament, controller: Controller) -> None:
        self._controller = controller
        self._lock = threading.Lock()
        self._tournament = tournament

    def __repr__(self) -> str:
        return (
            f"TournamentEntry(id={self._tournament.id}, deposit={self._tournament.deposit}, "
            f"is_finished={self._tournament.is_finished})"
        )

    @staticmethod
    def _check_id(tournament_id: int) -> None:
        if tournament_id < 0:
            raise ValueError(f"Tournament id must be non-negative, got {tournament_id}")

    @classmethod
    def create_or_find(cls, tournament_id: int, controller: Controller) -> "TournamentEntry":
        """Return the existing tournament, creating an unannounced one if needed."""

        cls._check_id(tournament_id)
        with unit_of_work(controller, "create tournament") as tx:
            try:
                tournament = controller.find_tournament(tournament_id, tx)
            except NotFound:
                controller.create_tournament(tournament_id, tx)
                tournament = Tournament(id=tournament_id)
                logger.info(f"Created tournament {tournament_id}")
        return cls(tournament, controller)

    @classmethod
    def find(cls, tournament_id: int, controller: Controller) -> "TournamentEntry":
        """Return the existing tournament or raise `NotFound`."""

        cls._check_id(tournament_id)
        with unit_of_work(controller, "find tournament") as tx:
            tournament = controller.find_tournament(tournament_id, tx)
        return cls(tournament, controller)

    # ------------------------------------------------------------------
    # Cached state
    # ------------------------------------------------------------------

    @property
    def id(self) -> int:
        with self._lock:
            return self._tournament.id

    @property
    def deposit(self) -> float:
        with self._lock:
            return self._tournament.deposit

    @property
    def is_finished(self) -> bool:
        with self._lock:
            return self._tournament.is_finished

    @property
    def bidders(self) -> List[Bidder]:
        with self._lock:
            return copy.deepcopy(self._tournament.bidders)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def announce(self, deposit: float) -> None:
        """
        Set the deposit every bidder group pays to join.

        Raises:
            AlreadyFinished: the tournament was already settled.
            PlayersAlreadyJoined: a bidder already joined.
        """

        with unit_of_work(self._controller, "announce") as tx:
            tournament = self._controller.find_tournament(self.id, tx)
            if tournament.is_finished:
                raise AlreadyFinished(tournament.id)
            if tournament.bidders:
                raise PlayersAlreadyJoined(tournament.id)

            tournament.deposit = truncate_price(deposit)
            self._controller.save_tournament(tournament, tx)

        with self._lock:
            self._tournament.deposit = tournament.deposit
        logger.info(f"Announced tournament {tournament.id} with deposit {tournament.deposit}")

    def join(self, *participants: PlayerRef) -> None:
        """
        Join a bidder group: the first participant is the bidder, the rest
        are its backers. Each pays `deposit / len(participants)`.
        Participants are `PlayerEntry` handles or player ids; handles get
        their cached balance refreshed.

        No remainder is redistributed; any fraction left over by the even
        split is absorbed by the ledger's truncation and rounding.

        Raises:
            AlreadyFinished: the tournament was already settled.
            NoParticipants: called without participants.
            CouldNotJoinTwice: the first participant is already a bidder.
            InsufficientPoints: a participant can not cover the contribution.
        """

        with unit_of_work(self._controller, "join") as tx:
            tournament = self._controller.find_tournament(self.id, tx)
            if tournament.is_finished:
                raise AlreadyFinished(tournament.id)
            if not participants:
                raise NoParticipants(tournament.id)

            member_ids = [_player_id(p) for p in participants]
            primary, backers = member_ids[0], member_ids[1:]
            if tournament.find_bidder(primary) is not None:
                raise CouldNotJoinTwice(tournament.id, primary)

            contribute = tournament.deposit / len(member_ids)
            balances: Dict[str, float] = {}
            for member in member_ids:
                balances[member] = manage_points(self._controller, tx, member, -contribute)

            tournament.bidders.append(Bidder(id=primary, backers=backers))
            self._controller.save_tournament(tournament, tx)

        for participant in participants:
            if isinstance(participant, PlayerEntry):
                participant.update_cached_balance(balances[participant.id])
        with self._lock:
            self._tournament.bidders = tournament.bidders
        logger.info(
            f"Player {primary} joined tournament {tournament.id} "
            f"with {len(backers)} backer(s), {contribute} each"
        )

    def result(self, winners: Optional[Mapping[PlayerRef, float]] = None) -> None:
        """
        Settle the tournament.

        `winners` maps a bidder (a `PlayerEntry` or player id) to its prize.
        Each prize is split evenly between the bidder and its backers and
        credited to all of them. The tournament is then finished.

        Raises:
            AlreadyFinished: the tournament was already settled.
            WinnerIsNotMember: a winner never joined as a bidder.
            NotFound: a bidder's backer no longer exists.
        """

        prizes = {_player_id(player): points for player, points in (winners or {}).items()}

        with unit_of_work(self._controller, "result") as tx:
            tournament = self._controller.find_tournament(self.id, tx)
            if tournament.is_finished:
                raise AlreadyFinished(tournament.id)

            balances: Dict[str, float] = {}
            unmatched = dict(prizes)
            for bidder in tournament.bidders:
                if bidder.id not in unmatched:
                    continue
                points = unmatched.pop(bidder.id)
                bidder.winner = True
                bidder.prize = points

                share = points / (len(bidder.backers) + 1)
                for member in [bidder.id] + bidder.backers:
                    balances[member] = manage_points(self._controller, tx, member, share)

            if unmatched:
                raise WinnerIsNotMember(tournament.id, unmatched)

            tournament.is_finished = True
            self._controller.save_tournament(tournament, tx)

        for player in (winners or {}):
            if isinstance(player, PlayerEntry) and player.id in balances:
                player.update_cached_balance(balances[player.id])
        with self._lock:
            self._tournament.is_finished = tournament.is_finished
            self._tournament.bidders = tournament.bidders
        logger.info(f"Tournament {tournament.id} finished, {len(prizes)} winner(s) paid")
