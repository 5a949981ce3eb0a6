"""
In-memory 狀態物件

只由擁有它的引擎修改：
- PixelState / UserRecord -> CanvasEconomy
- LotteryRound -> RoundLottery
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

from schemas import PixelView, RoundView


@dataclass
class PixelState:
    """
    單一像素的狀態（第一次放置時建立，永不刪除）

    注意：heat_level 可能是過期的值，讀取前要用 current_heat() 重算
    衰減的起算點是 heat_anchor_time（放置時 = last_placed_time，decay_heat 會往後移）
    """
    x: int
    y: int
    coordinate: int
    owner: Optional[str] = None
    color: int = 0
    heat_level: int = 0
    last_placed_time: int = 0
    heat_anchor_time: int = 0
    is_locked: bool = False
    locked_until: Optional[int] = None
    lock_price: int = 0

    def lock_active(self, now: int) -> bool:
        return self.is_locked and self.locked_until is not None and now < self.locked_until

    def to_view(self, heat_level: int, clear_expired_lock: bool, now: int) -> PixelView:
        is_locked = self.is_locked
        locked_until = self.locked_until
        if clear_expired_lock and not self.lock_active(now):
            is_locked, locked_until = False, None
        return PixelView(
            x=self.x,
            y=self.y,
            coordinate=self.coordinate,
            owner=self.owner,
            color=self.color,
            heat_level=heat_level,
            last_placed_time=self.last_placed_time,
            is_locked=is_locked,
            locked_until=locked_until,
        )


@dataclass
class UserRecord:
    """使用者冷卻與統計"""
    account: str
    last_action_time: int
    pixels_placed: int = 0
    total_spent: int = 0


class RoundStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


@dataclass
class LotteryRound:
    """
    一個回合

    participants 只能 append，去重靠 _members
    rollover_in 是建立時繼承的獎池（不算平台費）
    """
    round_id: int
    start_time: int
    end_time: int
    prize_pool: int = 0
    rollover_in: int = 0
    status: RoundStatus = RoundStatus.ACTIVE
    winner: Optional[str] = None
    winner_amount: int = 0
    rollover_amount: int = 0
    chroma_fees_received: int = 0
    participants: List[str] = field(default_factory=list)
    last_caller: Optional[str] = None
    _members: Set[str] = field(default_factory=set, repr=False)

    @property
    def is_complete(self) -> bool:
        return self.status == RoundStatus.RESOLVED

    def has_ended(self, now: int) -> bool:
        return now >= self.end_time

    def has_participant(self, account: str) -> bool:
        return account in self._members

    def add_participant(self, account: str) -> None:
        self._members.add(account)
        self.participants.append(account)

    def to_view(self) -> RoundView:
        return RoundView(
            round_id=self.round_id,
            prize_pool=self.prize_pool,
            start_time=self.start_time,
            end_time=self.end_time,
            winner=self.winner,
            winner_amount=self.winner_amount,
            is_complete=self.is_complete,
            total_participants=len(self.participants),
            rollover_amount=self.rollover_amount,
            chroma_fees_received=self.chroma_fees_received,
        )
