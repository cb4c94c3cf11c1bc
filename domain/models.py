from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Player:
    """
    Domain representation of a player's points account.

    Balances behave like two-decimal currency even though they are stored
    as floats; see `domain.rounding` for how amounts are normalised.
    """

    id: str
    balance: float = 0.0


@dataclass
class Bidder:
    """
    One joined tournament entry: a primary player plus the players who
    co-funded the entry (backers), in join order.
    """

    id: str
    winner: bool = False
    prize: float = 0.0
    backers: List[str] = field(default_factory=list)


@dataclass
class Tournament:
    """
    A pooled-stake tournament.

    `deposit` is what every bidder group pays to join. `is_finished` is set
    once by settlement and never cleared.
    """

    id: int
    deposit: float = 0.0
    is_finished: bool = False
    bidders: List[Bidder] = field(default_factory=list)

    def find_bidder(self, player_id: str) -> Optional[Bidder]:
        for bidder in self.bidders:
            if bidder.id == player_id:
                return bidder
        return None
