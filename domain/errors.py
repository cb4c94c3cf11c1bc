"""
Error kinds raised by the ledger, the settlement logic and the stores.

Everything derives from `BackerError` so callers can handle the whole
family in one place.
"""


class BackerError(Exception):
    """Base class for all ledger and tournament errors."""

    pass


# ============ Store errors ============

class AlreadyExists(BackerError):
    """A record with the given key already exists."""

    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key!r} already exists")


class NotFound(BackerError):
    """No record with the given key."""

    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key!r} not found")


class TransactionClosed(BackerError):
    """The transaction was already committed or rolled back."""

    def __init__(self):
        super().__init__("Transaction is already closed")


# ============ Player errors ============

class InsufficientPoints(BackerError):
    """The player does not have enough points for the requested take."""

    def __init__(self, player_id: str, balance: float, amount: float):
        self.player_id = player_id
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient points: player {player_id!r} has {balance}, needs {amount}"
        )


# ============ Tournament errors ============

class AlreadyFinished(BackerError):
    """The tournament has already been settled."""

    def __init__(self, tournament_id: int):
        self.tournament_id = tournament_id
        super().__init__(f"Tournament {tournament_id} already finished")


class PlayersAlreadyJoined(BackerError):
    """Could not re-announce the tournament, players already joined."""

    def __init__(self, tournament_id: int):
        self.tournament_id = tournament_id
        super().__init__(
            f"Could not re-announce tournament {tournament_id}, players already joined"
        )


class CouldNotJoinTwice(BackerError):
    """The same player tried to join the tournament twice as a bidder."""

    def __init__(self, tournament_id: int, player_id: str):
        self.tournament_id = tournament_id
        self.player_id = player_id
        super().__init__(
            f"Player {player_id!r} could not join tournament {tournament_id} twice"
        )


class WinnerIsNotMember(BackerError):
    """A winner named in the results never joined the tournament as a bidder."""

    def __init__(self, tournament_id: int, player_ids):
        self.tournament_id = tournament_id
        self.player_ids = list(player_ids)
        super().__init__(
            f"Not a member of tournament {tournament_id} can not be a winner: "
            f"{', '.join(self.player_ids)}"
        )


class NoParticipants(BackerError):
    """Join was called without any participant."""

    def __init__(self, tournament_id: int):
        self.tournament_id = tournament_id
        super().__init__(f"Join to tournament {tournament_id} needs at least one player")
