"""
RoundLottery (The Fountain) rule engine tests.

Run: python -m pytest tests/test_lottery.py
"""

import unittest

from support import ENTRY_FEE, ROUND_DURATION, T0, make_settings

from config import ZERO_ADDRESS
from core.entities import LotteryRound, RoundStatus
from core.event_log import InMemoryEventSink
from core.exceptions import (
    AlreadyParticipated,
    InvalidConfiguration,
    InvalidEntryFee,
    InvalidFeeAmount,
    InvalidStateTransition,
    RoundAlreadyComplete,
    RoundNotEnded,
    RoundNotFound,
)
from core.lottery_manager import RoundLottery
from core.state_machine import RoundStateMachine

USERS = ["0x" + c * 40 for c in "123456789"]
END = T0 + ROUND_DURATION


class LotteryTestCase(unittest.TestCase):

    def setUp(self):
        self.sink = InMemoryEventSink()
        self.lottery = RoundLottery(make_settings(), event_sink=self.sink, start_time=T0)

    def toss(self, who, now=T0 + 10):
        return self.lottery.toss_coin(who, ENTRY_FEE, now)


class TestGenesis(LotteryTestCase):

    def test_genesis_round(self):
        current = self.lottery.get_current_round()
        self.assertEqual(current.round_id, 1)
        self.assertEqual(current.prize_pool, 0)
        self.assertEqual(current.end_time, END)
        self.assertFalse(current.is_complete)
        started = self.sink.of_type("RoundStarted")
        self.assertEqual(len(started), 1)
        self.assertEqual((started[0].start_time, started[0].end_time), (T0, END))

    def test_configuration_checked(self):
        for overrides in (
            {"project_wallet": ZERO_ADDRESS},
            {"round_duration": 0},
            {"entry_fee": 0},
            {"platform_fee_percent": 100},
            {"winner_percent": 0},
        ):
            with self.assertRaises(InvalidConfiguration, msg=str(overrides)):
                RoundLottery(make_settings(**overrides), start_time=T0)


class TestTossCoin(LotteryTestCase):

    def test_exact_entry_fee_required(self):
        for amount in (ENTRY_FEE - 1, ENTRY_FEE + 1, 0):
            with self.assertRaises(InvalidEntryFee):
                self.lottery.toss_coin(USERS[0], amount, T0)
        self.assertEqual(self.lottery.get_current_round().total_participants, 0)

    def test_one_entry_per_round(self):
        self.toss(USERS[0])
        with self.assertRaises(AlreadyParticipated):
            self.toss(USERS[0], T0 + 20)
        self.assertEqual(self.lottery.get_round_participants(1), [USERS[0]])

    def test_pool_accumulates_net_of_fee(self):
        receipts = [self.toss(u) for u in USERS[:3]]
        self.assertEqual(receipts[0].platform_fee, ENTRY_FEE * 5 // 100)
        self.assertEqual(receipts[-1].new_prize_pool, 2_850_000_000_000_000)
        current = self.lottery.get_current_round()
        self.assertEqual(current.prize_pool, 2_850_000_000_000_000)
        self.assertEqual(current.total_participants, 3)

        tossed = self.sink.of_type("CoinTossed")
        self.assertEqual([e.participant for e in tossed], USERS[:3])
        self.assertEqual(tossed[0].entry_fee, ENTRY_FEE)

    def test_toss_after_end_rolls_round_lazily(self):
        self.toss(USERS[0])
        receipt = self.toss(USERS[0], END + 5)
        self.assertEqual(receipt.round_id, 2)
        self.assertEqual(len(self.sink.of_type("WinnerSelected")), 1)
        self.assertTrue(self.lottery.get_round(1).is_complete)
        self.assertEqual(self.lottery.get_round(1).winner, USERS[0])
        self.assertEqual(self.lottery.get_current_round().start_time, END + 5)


class TestResolution(LotteryTestCase):

    def test_example_split(self):
        for u in USERS[:3]:
            self.toss(u)
        resolution = self.lottery.end_round(END)

        self.assertIn(resolution.winner, USERS[:3])
        self.assertEqual(resolution.platform_fee, 142_500_000_000_000)
        self.assertEqual(resolution.winner_amount, 2_301_375_000_000_000)
        self.assertEqual(resolution.rollover_amount, 406_125_000_000_000)
        self.assertTrue(resolution.round.is_complete)
        self.assertEqual(resolution.next_round_id, 2)

        nxt = self.lottery.get_current_round()
        self.assertEqual(nxt.round_id, 2)
        self.assertEqual(nxt.prize_pool, 406_125_000_000_000)
        self.assertEqual(self.lottery.get_accumulated_rollover(), 0)

        winner_event = self.sink.of_type("WinnerSelected")[0]
        self.assertEqual(winner_event.prize_amount, 2_301_375_000_000_000)
        carried = self.sink.of_type("RolloverCarried")[0]
        self.assertEqual((carried.from_round_id, carried.to_round_id), (1, 2))

    def test_not_ended(self):
        with self.assertRaises(RoundNotEnded):
            self.lottery.end_round(END - 1)

    def test_empty_round(self):
        before = self.lottery.get_accumulated_rollover()
        resolution = self.lottery.end_round(END + 1)
        self.assertIsNone(resolution.winner)
        self.assertEqual(resolution.winner_amount, 0)
        self.assertEqual(self.lottery.get_accumulated_rollover(), before)
        self.assertEqual(self.lottery.current_round_id, 2)
        self.assertEqual(self.lottery.get_current_round().prize_pool, before)
        self.assertEqual(self.sink.of_type("WinnerSelected"), [])

    def test_empty_round_after_rollover(self):
        """The inherited pool stays with the empty round; the next round starts from zero."""
        self.toss(USERS[0])
        first = self.lottery.end_round(END)
        carried = first.rollover_amount
        self.assertGreater(carried, 0)
        self.assertEqual(self.lottery.get_round(2).prize_pool, carried)

        second = self.lottery.end_round(END + ROUND_DURATION)
        self.assertIsNone(second.winner)
        self.assertEqual(second.rollover_amount, 0)
        self.assertEqual(self.lottery.get_round(2).prize_pool, carried)
        self.assertTrue(self.lottery.get_round(2).is_complete)
        self.assertEqual(self.lottery.get_round(3).prize_pool, 0)
        self.assertEqual(self.lottery.get_accumulated_rollover(), 0)
        self.assertEqual(len(self.sink.of_type("RolloverCarried")), 1)

    def test_failing_listener_does_not_abort_toss(self):
        calls = []

        def listener(resolution):
            calls.append(resolution.round.round_id)
            raise RuntimeError("downstream unavailable")

        self.lottery.add_resolution_listener(listener)
        self.toss(USERS[0])
        receipt = self.toss(USERS[1], END + 1)
        self.assertEqual(calls, [1])
        self.assertEqual(receipt.round_id, 2)
        self.assertEqual(self.lottery.get_round_participants(2), [USERS[1]])

    def test_fee_excludes_inherited_rollover(self):
        self.toss(USERS[0])
        first = self.lottery.end_round(END)
        inherited = first.rollover_amount

        self.toss(USERS[1], END + 10)
        own = ENTRY_FEE * 95 // 100
        second = self.lottery.end_round(END + ROUND_DURATION)
        self.assertEqual(second.platform_fee, own * 5 // 100)
        self.assertEqual(
            second.winner_amount + second.rollover_amount,
            inherited + own - second.platform_fee,
        )
        self.assertEqual(second.winner, USERS[1])

    def test_winner_drawn_from_participants(self):
        for u in USERS:
            self.toss(u)
        resolution = self.lottery.end_round(END + 12345, caller=USERS[4])
        self.assertIn(resolution.winner, self.lottery.get_round_participants(1))

    def test_custom_winner_selector(self):
        lottery = RoundLottery(
            make_settings(), start_time=T0,
            winner_selector=lambda now, round_id, caller, participants: len(participants) - 1,
        )
        for u in USERS[:4]:
            lottery.toss_coin(u, ENTRY_FEE, T0)
        self.assertEqual(lottery.end_round(END).winner, USERS[3])

    def test_bad_selector_index_does_not_resolve(self):
        lottery = RoundLottery(make_settings(), start_time=T0, winner_selector=lambda *args: 99)
        lottery.toss_coin(USERS[0], ENTRY_FEE, T0)
        with self.assertRaises(ValueError):
            lottery.end_round(END)
        self.assertFalse(lottery.get_round(1).is_complete)

    def test_ensure_round_fresh_is_idempotent(self):
        self.assertIsNone(self.lottery.ensure_round_fresh(END - 1))
        self.assertIsNotNone(self.lottery.ensure_round_fresh(END))
        self.assertIsNone(self.lottery.ensure_round_fresh(END))
        self.assertEqual(self.lottery.current_round_id, 2)


class TestStateMachine(unittest.TestCase):

    def test_resolved_round_cannot_resolve_again(self):
        round_obj = LotteryRound(round_id=1, start_time=0, end_time=10)
        RoundStateMachine.transition(round_obj, RoundStatus.RESOLVED)
        with self.assertRaises(RoundAlreadyComplete):
            RoundStateMachine.check_resolvable(round_obj, 20)
        with self.assertRaises(InvalidStateTransition):
            RoundStateMachine.transition(round_obj, RoundStatus.ACTIVE)

    def test_active_round_before_end(self):
        round_obj = LotteryRound(round_id=1, start_time=0, end_time=10)
        with self.assertRaises(RoundNotEnded):
            RoundStateMachine.check_resolvable(round_obj, 9)
        RoundStateMachine.check_resolvable(round_obj, 10)


class TestExternalFees(LotteryTestCase):

    def test_fees_added_to_current_pool(self):
        amount = 500_000_000_000_000
        receipt = self.lottery.receive_external_fees(amount, T0 + 1)
        self.assertEqual(receipt.new_prize_pool, amount)
        self.toss(USERS[0])
        current = self.lottery.get_current_round()
        self.assertEqual(current.prize_pool, amount + ENTRY_FEE * 95 // 100)
        self.assertEqual(current.chroma_fees_received, amount)
        self.assertEqual(self.lottery.get_round_fees(1), [amount])
        self.assertEqual(self.sink.of_type("ChromaFeesReceived")[0].amount, amount)

    def test_fees_after_end_go_to_new_round(self):
        self.toss(USERS[0])
        receipt = self.lottery.receive_external_fees(7, END)
        self.assertEqual(receipt.round_id, 2)
        self.assertEqual(self.lottery.get_round_fees(1), [])
        self.assertEqual(self.lottery.get_round_fees(2), [7])

    def test_invalid_amount(self):
        for amount in (0, -1, 1.5):
            with self.assertRaises(InvalidFeeAmount):
                self.lottery.receive_external_fees(amount, T0)


class TestQueries(LotteryTestCase):

    def test_time_remaining(self):
        self.assertEqual(self.lottery.get_time_remaining(T0), ROUND_DURATION)
        self.assertEqual(self.lottery.get_time_remaining(END + 100), 0)

    def test_prize_breakdown_uses_live_pool(self):
        self.toss(USERS[0])
        breakdown = self.lottery.get_current_prize_breakdown()
        self.assertEqual(breakdown.total_pool, ENTRY_FEE * 95 // 100)
        self.assertGreater(breakdown.winner_amount, 0)
        self.assertGreater(breakdown.rollover_amount, 0)
        self.assertGreater(breakdown.platform_fee, 0)
        self.assertEqual(
            breakdown.winner_amount + breakdown.rollover_amount,
            breakdown.total_pool - breakdown.platform_fee,
        )

        self.toss(USERS[1])
        self.assertEqual(self.lottery.get_current_prize_breakdown().total_pool, 2 * ENTRY_FEE * 95 // 100)

    def test_game_stats(self):
        self.toss(USERS[0])
        self.toss(USERS[1])
        resolution = self.lottery.end_round(END)
        stats = self.lottery.get_game_stats()
        self.assertEqual(stats.total_rounds, 2)
        self.assertEqual(stats.total_participants, 2)
        self.assertEqual(stats.total_prizes_paid, resolution.winner_amount)

    def test_unknown_round(self):
        with self.assertRaises(RoundNotFound):
            self.lottery.get_round(42)
        with self.assertRaises(RoundNotFound):
            self.lottery.get_round_participants(42)


if __name__ == "__main__":
    unittest.main()
