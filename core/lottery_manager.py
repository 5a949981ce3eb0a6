"""
Lottery Manager：The Fountain 樂透的規則引擎

職責：
1. 投幣參加（每回合每人一次，入場費必須完全相等）
2. 回合結束與結算（抽獎、平台費、rollover）
3. 接收 Chroma 轉入的費用
4. 查詢回合資訊

回合生命週期：
    ACTIVE --(now >= end_time，由下一個操作或 end_round 觸發)--> RESOLVED
    RESOLVED 的同時建立下一個 ACTIVE 回合，繼承 rollover

並發設計：
- 每個回合一把鎖（LockTable，以 round_id 為 key）
- 結算是 single-flight：拿到鎖之後再檢查一次，已結算就直接用新回合
- 投幣 / 收費在回合鎖內「檢查 + 修改」，一人一次的規則不會被並發打破
"""
import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from config import Settings, get_settings
from core.entities import LotteryRound, RoundStatus
from core.event_log import EventSink, InMemoryEventSink
from core.exceptions import AlreadyParticipated, InvalidEntryFee, InvalidFeeAmount, NoParticipants, RoundNotFound
from core.locks import LockTable
from core.settings_check import check_lottery_settings
from core.state_machine import RoundStateMachine
from schemas import (
    ChromaFeesReceived,
    CoinTossed,
    FeeReceipt,
    GameStatsView,
    PrizeBreakdown,
    RolloverCarried,
    RoundResolution,
    RoundStarted,
    RoundView,
    TossReceipt,
    WinnerSelected,
)
from services.ledger_service import compute_round_settlement, split_entry_fee
from services.winner_service import WinnerSelector, default_winner_selector

logger = logging.getLogger(__name__)

ResolutionListener = Callable[[RoundResolution], None]


class RoundLottery:
    """The Fountain 樂透引擎"""

    def __init__(self, settings: Optional[Settings] = None, event_sink: Optional[EventSink] = None,
                 winner_selector: Optional[WinnerSelector] = None, start_time: Optional[int] = None):
        """
        建構時會建立第一個回合（genesis）並發出 RoundStarted

        參數：
            settings: 遊戲設定
            event_sink: 事件接收者
            winner_selector: 抽獎策略（預設為弱亂數 hash，見 services.winner_service）
            start_time: 第一個回合的開始時間（預設為現在）

        異常：
            InvalidConfiguration: 設定不合法
        """
        self.settings = settings or get_settings()
        check_lottery_settings(self.settings)
        self.event_sink = event_sink or InMemoryEventSink()
        self.winner_selector = winner_selector or default_winner_selector

        self._rounds: Dict[int, LotteryRound] = {}
        self._fee_ledger: Dict[int, List[int]] = {}
        self._accumulated_rollover = 0
        self._round_locks = LockTable()
        self._stats_lock = threading.Lock()
        self._total_participants = 0
        self._total_prizes_paid = 0
        self._listeners: List[ResolutionListener] = []

        now = int(time.time()) if start_time is None else start_time
        genesis, event = self._new_round(self.settings.genesis_round_id, now, prize_pool=0)
        self.event_sink.publish([event])
        self._rounds[genesis.round_id] = genesis
        self._current_round_id = genesis.round_id
        logger.info(f"Genesis round {genesis.round_id} started, ends at {genesis.end_time}")

    def add_resolution_listener(self, listener: ResolutionListener) -> None:
        """
        註冊結算通知（例如 PaymentRouter 付款給贏家）

        不論結算是由 end_round、toss_coin 還是 receive_external_fees 觸發，都會通知
        """
        self._listeners.append(listener)

    # ============ 內部工具 ============

    def _new_round(self, round_id: int, now: int, prize_pool: int):
        round_obj = LotteryRound(
            round_id=round_id,
            start_time=now,
            end_time=now + self.settings.round_duration,
            prize_pool=prize_pool,
            rollover_in=prize_pool,
        )
        event = RoundStarted(
            round_id=round_id, start_time=round_obj.start_time,
            end_time=round_obj.end_time, prize_pool=prize_pool,
        )
        return round_obj, event

    def _current(self) -> LotteryRound:
        return self._rounds[self._current_round_id]

    def _get_round(self, round_id: int) -> LotteryRound:
        round_obj = self._rounds.get(round_id)
        if round_obj is None:
            raise RoundNotFound(round_id)
        return round_obj

    def _pick_winner(self, round_obj: LotteryRound, now: int, caller: Optional[str]) -> str:
        if not round_obj.participants:
            raise NoParticipants(f"Round {round_obj.round_id} has no participants")
        participants = tuple(round_obj.participants)
        index = self.winner_selector(now, round_obj.round_id, caller or round_obj.last_caller, participants)
        if not 0 <= index < len(participants):
            raise ValueError(f"Winner selector returned index {index} for {len(participants)} participants")
        return participants[index]

    def _resolve(self, round_obj: LotteryRound, now: int, caller: Optional[str]) -> RoundResolution:
        """
        結算回合並開始下一個回合

        呼叫端必須已經持有 round_obj 的鎖

        規則：
        - 沒人參加：不抽獎，rollover 不變，下一回合獎池 = 累積 rollover
        - 有人參加：
            total_pool = prize_pool + 累積 rollover
            platform_fee = 本回合自己的收入 × PlatformFeePercent%（不含繼承的 rollover）
            winner_amount = (total_pool - platform_fee) × WinnerPercent%
            rollover_amount = 剩下的部分（吸收整除零頭）

        異常：
            RoundAlreadyComplete, RoundNotEnded
        """
        RoundStateMachine.check_resolvable(round_obj, now)
        s = self.settings
        next_id = round_obj.round_id + 1
        events = []

        try:
            winner = self._pick_winner(round_obj, now, caller)
        except NoParticipants:
            winner = None

        if winner is None:
            settlement = None
            rollover = self._accumulated_rollover
            if round_obj.prize_pool:
                logger.warning(
                    f"Round {round_obj.round_id} closed with no participants; "
                    f"{round_obj.prize_pool} wei stays in its pool"
                )
        else:
            settlement = compute_round_settlement(
                prize_pool=round_obj.prize_pool,
                accumulated_rollover=self._accumulated_rollover,
                fee_base=round_obj.prize_pool - round_obj.rollover_in,
                platform_fee_percent=s.platform_fee_percent,
                winner_percent=s.winner_percent,
            )
            rollover = settlement.rollover_amount
            events.append(WinnerSelected(
                round_id=round_obj.round_id, winner=winner,
                prize_amount=settlement.winner_amount, timestamp=now,
            ))
            events.append(RolloverCarried(
                from_round_id=round_obj.round_id, to_round_id=next_id,
                rollover_amount=rollover, timestamp=now,
            ))

        next_round, started = self._new_round(next_id, now, prize_pool=rollover)
        events.append(started)
        self.event_sink.publish(events)

        # 修改狀態（事件已發布）
        RoundStateMachine.transition(round_obj, RoundStatus.RESOLVED)
        round_obj.winner = winner
        if settlement is not None:
            round_obj.winner_amount = settlement.winner_amount
            round_obj.rollover_amount = settlement.rollover_amount
            with self._stats_lock:
                self._total_prizes_paid += settlement.winner_amount
        # 新回合建立時吸收累積 rollover
        self._accumulated_rollover = 0
        self._rounds[next_id] = next_round
        self._current_round_id = next_id

        logger.info(
            f"Round {round_obj.round_id} resolved: winner={winner}, "
            f"prize={round_obj.winner_amount} wei, rollover={rollover} wei; round {next_id} started"
        )

        return RoundResolution(
            round=round_obj.to_view(),
            winner=winner,
            winner_amount=round_obj.winner_amount,
            platform_fee=settlement.platform_fee if settlement else 0,
            rollover_amount=settlement.rollover_amount if settlement else 0,
            next_round_id=next_id,
            events=events,
        )

    def _notify(self, resolution: RoundResolution) -> None:
        # 結算已完成，listener 失敗不能讓觸發結算的操作（投幣 / 收費）跟著失敗
        for listener in self._listeners:
            try:
                listener(resolution)
            except Exception as e:
                logger.error(
                    f"Resolution listener {listener!r} failed for round {resolution.round.round_id}: {e}",
                    exc_info=True,
                )

    def _run_on_fresh_round(self, now: int, caller: Optional[str], action):
        """
        兩階段操作：先 ensure_round_fresh，再在當前回合的鎖內執行 action

        如果拿到鎖時回合已經被別人結算（或剛好到期），重新來過
        """
        while True:
            self.ensure_round_fresh(now, caller)
            round_obj = self._current()
            with self._round_locks.hold(round_obj.round_id):
                if round_obj.is_complete or round_obj.has_ended(now):
                    continue
                return action(round_obj)

    # ============ 操作 ============

    def ensure_round_fresh(self, now: int, caller: Optional[str] = None) -> Optional[RoundResolution]:
        """
        如果當前回合已到期，結算它並開始新回合（冪等、single-flight）

        參數：
            now: 現在時間
            caller: 觸發結算的帳號（會進入抽獎 hash）

        返回：
            這次呼叫做的結算；沒有結算則為 None
        """
        while True:
            round_obj = self._current()
            if not round_obj.has_ended(now):
                return None
            with self._round_locks.hold(round_obj.round_id):
                if round_obj.is_complete:
                    # 別人已經結算，改看新回合
                    continue
                resolution = self._resolve(round_obj, now, caller)
            self._notify(resolution)
            return resolution

    def toss_coin(self, caller: str, paid_amount: int, now: int) -> TossReceipt:
        """
        投幣參加當前回合

        流程：
        1. 入場費必須完全相等
        2. 到期的回合先結算（ensure_round_fresh）
        3. 檢查是否已參加
        4. 加入參加者；淨額進獎池，平台費交給呼叫端轉給專案錢包

        返回：
            TossReceipt（round_id、new_prize_pool、platform_fee）

        異常：
            InvalidEntryFee: 金額不等於 EntryFee
            AlreadyParticipated: 本回合已參加
        """
        s = self.settings
        if paid_amount != s.entry_fee:
            raise InvalidEntryFee(s.entry_fee, paid_amount)

        def _toss(round_obj: LotteryRound) -> TossReceipt:
            if round_obj.has_participant(caller):
                raise AlreadyParticipated(caller, round_obj.round_id)

            split = split_entry_fee(paid_amount, s.platform_fee_percent)
            new_pool = round_obj.prize_pool + split.net_amount
            event = CoinTossed(
                round_id=round_obj.round_id, participant=caller,
                entry_fee=paid_amount, new_prize_pool=new_pool, timestamp=now,
            )
            self.event_sink.publish([event])

            round_obj.add_participant(caller)
            round_obj.prize_pool = new_pool
            round_obj.last_caller = caller
            with self._stats_lock:
                self._total_participants += 1

            logger.info(f"{caller} tossed a coin in round {round_obj.round_id}, pool={new_pool} wei")
            return TossReceipt(
                round_id=round_obj.round_id, participant=caller, entry_fee=paid_amount,
                platform_fee=split.platform_fee, new_prize_pool=new_pool, events=[event],
            )

        return self._run_on_fresh_round(now, caller, _toss)

    def end_round(self, now: int, caller: Optional[str] = None) -> RoundResolution:
        """
        手動結束當前回合（任何人都可以呼叫）

        異常：
            RoundNotEnded: 還沒到 end_time
            RoundAlreadyComplete: 已被結算（例如並發的另一個呼叫搶先）
        """
        round_obj = self._current()
        with self._round_locks.hold(round_obj.round_id):
            resolution = self._resolve(round_obj, now, caller)
        self._notify(resolution)
        return resolution

    def receive_external_fees(self, amount: int, now: int) -> FeeReceipt:
        """
        接收 Chroma 轉入的費用，直接加進當前回合的獎池

        到期的回合會先結算，費用進新回合

        異常：
            InvalidFeeAmount: amount 不是正整數
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidFeeAmount(amount)

        def _receive(round_obj: LotteryRound) -> FeeReceipt:
            new_pool = round_obj.prize_pool + amount
            event = ChromaFeesReceived(
                round_id=round_obj.round_id, amount=amount, new_prize_pool=new_pool, timestamp=now,
            )
            self.event_sink.publish([event])

            round_obj.prize_pool = new_pool
            round_obj.chroma_fees_received += amount
            self._fee_ledger.setdefault(round_obj.round_id, []).append(amount)

            logger.info(f"Received {amount} wei of external fees into round {round_obj.round_id}")
            return FeeReceipt(round_id=round_obj.round_id, amount=amount, new_prize_pool=new_pool, events=[event])

        return self._run_on_fresh_round(now, None, _receive)

    # ============ 查詢 ============

    @property
    def current_round_id(self) -> int:
        return self._current_round_id

    def get_current_round(self) -> RoundView:
        """當前回合（不觸發結算；可能已到期但尚未結算）"""
        round_obj = self._current()
        with self._round_locks.hold(round_obj.round_id):
            return round_obj.to_view()

    def get_round(self, round_id: int) -> RoundView:
        round_obj = self._get_round(round_id)
        with self._round_locks.hold(round_id):
            return round_obj.to_view()

    def get_time_remaining(self, now: int) -> int:
        return max(0, self._current().end_time - now)

    def get_round_participants(self, round_id: int) -> List[str]:
        round_obj = self._get_round(round_id)
        with self._round_locks.hold(round_id):
            return list(round_obj.participants)

    def get_accumulated_rollover(self) -> int:
        return self._accumulated_rollover

    def get_round_fees(self, round_id: int) -> List[int]:
        """某回合收到的外部費用明細（審計用）"""
        self._get_round(round_id)
        with self._round_locks.hold(round_id):
            return list(self._fee_ledger.get(round_id, []))

    def get_current_prize_breakdown(self) -> PrizeBreakdown:
        """
        如果現在結算，當前回合會怎麼分（給 UI 顯示）

        使用「即時」的獎池，不是已結算的回合
        """
        s = self.settings
        round_obj = self._current()
        with self._round_locks.hold(round_obj.round_id):
            settlement = compute_round_settlement(
                prize_pool=round_obj.prize_pool,
                accumulated_rollover=self._accumulated_rollover,
                fee_base=round_obj.prize_pool - round_obj.rollover_in,
                platform_fee_percent=s.platform_fee_percent,
                winner_percent=s.winner_percent,
            )
        return PrizeBreakdown(
            total_pool=settlement.total_pool,
            winner_amount=settlement.winner_amount,
            rollover_amount=settlement.rollover_amount,
            platform_fee=settlement.platform_fee,
        )

    def get_game_stats(self) -> GameStatsView:
        with self._stats_lock:
            return GameStatsView(
                total_rounds=len(self._rounds),
                total_participants=self._total_participants,
                total_prizes_paid=self._total_prizes_paid,
            )
