import unittest

from application.ledger import PlayerEntry
from application.settlement import TournamentEntry
from domain.errors import (
    AlreadyFinished,
    CouldNotJoinTwice,
    InsufficientPoints,
    NoParticipants,
    NotFound,
    PlayersAlreadyJoined,
    WinnerIsNotMember,
)
from infrastructure.db.faults import FaultQueue, Operation
from infrastructure.db.memory_store import MemoryStore


class TournamentLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.faults = FaultQueue()
        self.store = MemoryStore(faults=self.faults)
        self.tournament = TournamentEntry.create_or_find(1, self.store)

    def _player(self, player_id: str, points: float = 0) -> PlayerEntry:
        player = PlayerEntry.create_or_find(player_id, self.store)
        if points:
            player.fund(points)
        return player

    def test_create_or_find_and_find(self):
        self.assertEqual(self.tournament.id, 1)
        self.assertEqual(self.tournament.deposit, 0)
        self.assertFalse(self.tournament.is_finished)

        self.tournament.announce(1000)
        again = TournamentEntry.create_or_find(1, self.store)
        self.assertEqual(again.deposit, 1000)
        self.assertEqual(TournamentEntry.find(1, self.store).deposit, 1000)

        with self.assertRaises(NotFound):
            TournamentEntry.find(2, self.store)
        with self.assertRaises(ValueError):
            TournamentEntry.create_or_find(-1, self.store)

    def test_announce_truncates_deposit(self):
        self.tournament.announce(1000.999)
        self.assertEqual(self.tournament.deposit, 1000.99)
        # Re-announce is allowed until someone joins.
        self.tournament.announce(500)
        self.assertEqual(TournamentEntry.find(1, self.store).deposit, 500)

    def test_solo_join_needs_enough_points(self):
        player = self._player("p1", 300)
        self.tournament.announce(1000)

        with self.assertRaises(InsufficientPoints):
            self.tournament.join(player)
        self.assertEqual(player.balance(), 300)
        self.assertEqual(self.tournament.bidders, [])

        player.fund(700)
        self.tournament.join(player)
        self.assertEqual(player.cached_balance, 0)
        self.assertEqual(player.balance(), 0)
        self.assertEqual([b.id for b in self.tournament.bidders], ["p1"])

    def test_announce_after_join_is_rejected(self):
        self.tournament.announce(100)
        self.tournament.join(self._player("p1", 100))
        with self.assertRaises(PlayersAlreadyJoined):
            self.tournament.announce(200)
        self.assertEqual(TournamentEntry.find(1, self.store).deposit, 100)

    def test_join_twice_is_rejected(self):
        self.tournament.announce(100)
        p1 = self._player("p1", 300)
        backer = self._player("b1", 300)
        self.tournament.join(p1)

        with self.assertRaises(CouldNotJoinTwice):
            self.tournament.join(p1, backer)
        self.assertEqual(p1.balance(), 200)
        self.assertEqual(backer.balance(), 300)

        # Being a backer elsewhere does not count as joining.
        p2 = self._player("p2", 300)
        self.tournament.join(p2, p1)
        self.assertEqual([b.id for b in self.tournament.bidders], ["p1", "p2"])
        self.assertEqual(self.tournament.bidders[1].backers, ["p1"])

    def test_join_by_player_id(self):
        self.tournament.announce(100)
        p1 = self._player("p1", 100)
        self._player("b1", 100)

        self.tournament.join(p1, "b1")
        self.assertEqual(p1.cached_balance, 50)
        self.assertEqual(PlayerEntry.find("b1", self.store).balance(), 50)
        self.assertEqual(self.tournament.bidders[0].backers, ["b1"])

        with self.assertRaises(CouldNotJoinTwice):
            self.tournament.join("p1")
        with self.assertRaises(NotFound):
            self.tournament.join("nobody")

    def test_announce_keeps_exact_cents(self):
        self.tournament.announce(19.99)
        self.assertEqual(TournamentEntry.find(1, self.store).deposit, 19.99)

    def test_join_without_participants(self):
        with self.assertRaises(NoParticipants):
            self.tournament.join()

    def test_failed_backer_take_rolls_back_whole_join(self):
        self.tournament.announce(1000)
        primary = self._player("p1", 500)
        b1 = self._player("b1", 400)
        b2 = self._player("b2", 100)

        # 1000 / 3 = 333.33 each; b2 can not pay, b1 has already been debited.
        with self.assertRaises(InsufficientPoints):
            self.tournament.join(primary, b1, b2)

        self.assertEqual(primary.balance(), 500)
        self.assertEqual(b1.balance(), 400)
        self.assertEqual(b2.balance(), 100)
        self.assertEqual(TournamentEntry.find(1, self.store).bidders, [])

    def test_backers_share_deposit_and_prize(self):
        self.tournament.announce(1000)
        primary = self._player("p2", 300)
        backers = [self._player(f"b{i}", 300) for i in range(1, 4)]

        self.tournament.join(primary, *backers)
        for player in [primary] + backers:
            self.assertEqual(player.balance(), 50)
        bidder = self.tournament.bidders[0]
        self.assertEqual(bidder.id, "p2")
        self.assertEqual(bidder.backers, ["b1", "b2", "b3"])

        self.tournament.result({primary: 2000})

        for player in [primary] + backers:
            self.assertEqual(player.balance(), 550)
        self.assertEqual(primary.cached_balance, 550)
        self.assertTrue(self.tournament.is_finished)
        stored = TournamentEntry.find(1, self.store)
        self.assertTrue(stored.is_finished)
        self.assertTrue(stored.bidders[0].winner)
        self.assertEqual(stored.bidders[0].prize, 2000)

    def test_uneven_split_is_not_redistributed(self):
        self.tournament.announce(1000)
        players = [self._player(p, 400) for p in ("p1", "b1", "b2")]
        self.tournament.join(*players)
        for player in players:
            self.assertEqual(player.balance(), 66.67)

        other = self._player("p2", 1000)
        self.tournament.join(other)

        self.tournament.result({"p1": 2000})
        for player in players:
            self.assertEqual(player.balance(), 733.33)
        self.assertEqual(other.balance(), 0)
        winners = [b.id for b in TournamentEntry.find(1, self.store).bidders if b.winner]
        self.assertEqual(winners, ["p1"])

    def test_several_winners(self):
        self.tournament.announce(100)
        p1 = self._player("p1", 100)
        p2 = self._player("p2", 50)
        b1 = self._player("b1", 50)
        self.tournament.join(p1)
        self.tournament.join(p2, b1)

        self.tournament.result({p1: 60, "p2": 40})
        self.assertEqual(p1.balance(), 60)
        self.assertEqual(p2.balance(), 20)
        self.assertEqual(b1.balance(), 20)

    def test_winner_must_be_a_bidder(self):
        self.tournament.announce(100)
        p1 = self._player("p1", 100)
        b1 = self._player("b1", 100)
        self.tournament.join(p1)

        # b1 never joined; p1 must not be paid either.
        with self.assertRaises(WinnerIsNotMember):
            self.tournament.result({p1: 500, b1: 500})
        self.assertEqual(p1.balance(), 0)
        self.assertEqual(b1.balance(), 100)
        self.assertFalse(TournamentEntry.find(1, self.store).is_finished)

        self.tournament.result({p1: 500})
        self.assertEqual(p1.balance(), 500)

    def test_missing_backer_rolls_back_result(self):
        self.tournament.announce(1000)
        primary = self._player("p1", 250)
        backers = [self._player(f"b{i}", 250) for i in range(1, 4)]
        self.tournament.join(primary, *backers)
        self.store.delete_player("b3")

        with self.assertRaises(NotFound):
            self.tournament.result({primary: 1000})
        for player in [primary] + backers[:2]:
            self.assertEqual(player.balance(), 0)
        self.assertFalse(TournamentEntry.find(1, self.store).is_finished)

    def test_finished_tournament_is_locked(self):
        self.tournament.announce(100)
        p1 = self._player("p1", 200)
        self.tournament.join(p1)
        self.tournament.result(None)
        self.assertTrue(self.tournament.is_finished)

        with self.assertRaises(AlreadyFinished):
            self.tournament.announce(100)
        with self.assertRaises(AlreadyFinished):
            self.tournament.join(self._player("p2", 200))
        with self.assertRaises(AlreadyFinished):
            self.tournament.result({p1: 100})
        self.assertEqual(p1.balance(), 100)

    def test_stale_handle_sees_persisted_state(self):
        other = TournamentEntry.create_or_find(1, self.store)
        self.tournament.announce(100)
        self.tournament.join(self._player("p1", 100))

        with self.assertRaises(PlayersAlreadyJoined):
            other.announce(50)
        other.result({})
        with self.assertRaises(AlreadyFinished):
            self.tournament.result({})


class TournamentFaultTests(unittest.TestCase):
    def setUp(self) -> None:
        self.faults = FaultQueue()
        self.store = MemoryStore(faults=self.faults)
        self.tournament = TournamentEntry.create_or_find(1, self.store)
        self.tournament.announce(1000)
        self.primary = PlayerEntry.create_or_find("p1", self.store)
        self.backers = [PlayerEntry.create_or_find(f"b{i}", self.store) for i in range(1, 4)]
        for player in [self.primary] + self.backers:
            player.fund(300)

    def _balances(self):
        return [p.balance() for p in [self.primary] + self.backers]

    def test_commit_fault_during_join_rolls_back_every_take(self):
        self.faults.inject(Operation.COMMIT, RuntimeError("commit failed"))

        with self.assertRaises(RuntimeError):
            self.tournament.join(self.primary, *self.backers)

        self.assertEqual(self._balances(), [300, 300, 300, 300])
        self.assertEqual(self.primary.cached_balance, 300)
        self.assertEqual(self.tournament.bidders, [])
        self.assertEqual(TournamentEntry.find(1, self.store).bidders, [])

    def test_save_fault_during_join(self):
        # The first save of a join is the primary's debit.
        self.faults.inject(Operation.SAVE, RuntimeError("save failed"))
        with self.assertRaises(RuntimeError):
            self.tournament.join(self.primary, *self.backers)
        self.assertEqual(self._balances(), [300, 300, 300, 300])

    def test_transaction_fault_during_announce(self):
        self.faults.inject(Operation.BEGIN, RuntimeError("no transaction"))
        with self.assertRaises(RuntimeError):
            self.tournament.announce(2000)
        self.assertEqual(self.tournament.deposit, 1000)

    def test_find_fault_during_announce(self):
        self.faults.inject(Operation.FIND, RuntimeError("find failed"))
        with self.assertRaises(RuntimeError):
            self.tournament.announce(2000)
        self.assertEqual(TournamentEntry.find(1, self.store).deposit, 1000)

    def test_commit_fault_during_result(self):
        self.tournament.join(self.primary, *self.backers)
        self.faults.inject(Operation.COMMIT, RuntimeError("commit failed"))

        with self.assertRaises(RuntimeError):
            self.tournament.result({self.primary: 2000})
        self.assertEqual(self._balances(), [50, 50, 50, 50])
        self.assertFalse(self.tournament.is_finished)
        self.assertFalse(TournamentEntry.find(1, self.store).is_finished)

        self.tournament.result({self.primary: 2000})
        self.assertEqual(self._balances(), [550, 550, 550, 550])


if __name__ == "__main__":
    unittest.main()
