"""
Result / Event schemas

規則引擎對外的型別：每個操作回傳一個 receipt，裡面帶著這次操作產生的事件，
交給外層（持久化 / 廣播）處理
"""
from typing import ClassVar, List, Literal, Optional

from pydantic import BaseModel, Field, SerializeAsAny


# ============ Events ============

class GameEvent(BaseModel):
    """所有事件的基類"""
    game: ClassVar[str] = ""
    event_type: str

    def payload(self) -> dict:
        """事件內容（不含 event_type），給 EventLog.data 使用"""
        return self.model_dump(exclude={"event_type"})


class PixelChanged(GameEvent):
    event_type: Literal["PixelChanged"] = "PixelChanged"
    game: ClassVar[str] = "chroma"
    coordinate: int
    x: int
    y: int
    placer: str
    color: int
    heat_level: int
    price_paid: int
    locked: bool
    timestamp: int


class PixelLocked(GameEvent):
    event_type: Literal["PixelLocked"] = "PixelLocked"
    game: ClassVar[str] = "chroma"
    coordinate: int
    x: int
    y: int
    locker: str
    color: int
    lock_price: int
    locked_until: int


class HeatDecayed(GameEvent):
    event_type: Literal["HeatDecayed"] = "HeatDecayed"
    game: ClassVar[str] = "chroma"
    coordinate: int
    old_heat_level: int
    new_heat_level: int


class CoinTossed(GameEvent):
    event_type: Literal["CoinTossed"] = "CoinTossed"
    game: ClassVar[str] = "fountain"
    round_id: int
    participant: str
    entry_fee: int
    new_prize_pool: int
    timestamp: int


class RoundStarted(GameEvent):
    event_type: Literal["RoundStarted"] = "RoundStarted"
    game: ClassVar[str] = "fountain"
    round_id: int
    start_time: int
    end_time: int
    prize_pool: int = 0


class WinnerSelected(GameEvent):
    event_type: Literal["WinnerSelected"] = "WinnerSelected"
    game: ClassVar[str] = "fountain"
    round_id: int
    winner: str
    prize_amount: int
    timestamp: int


class RolloverCarried(GameEvent):
    event_type: Literal["RolloverCarried"] = "RolloverCarried"
    game: ClassVar[str] = "fountain"
    from_round_id: int
    to_round_id: int
    rollover_amount: int
    timestamp: int


class ChromaFeesReceived(GameEvent):
    event_type: Literal["ChromaFeesReceived"] = "ChromaFeesReceived"
    game: ClassVar[str] = "fountain"
    round_id: int
    amount: int
    new_prize_pool: int
    timestamp: int


# ============ Chroma views / receipts ============

class PixelView(BaseModel):
    x: int
    y: int
    coordinate: int
    owner: Optional[str] = None
    color: int = 0
    heat_level: int = 0
    last_placed_time: int = 0
    is_locked: bool = False
    locked_until: Optional[int] = None


class PlacementReceipt(BaseModel):
    coordinate: int
    x: int
    y: int
    owner: str
    color: int
    new_heat: int
    price_paid: int
    amount_charged: int
    project_share: int
    pool_share: int
    locked: bool = False
    locked_until: Optional[int] = None
    events: List[SerializeAsAny[GameEvent]] = Field(default_factory=list)


class CanvasStatsView(BaseModel):
    total_pixels_placed: int
    unique_users: int
    total_heat: int


class UserStatsView(BaseModel):
    account: str
    pixels_placed: int = 0
    total_spent: int = 0
    last_action_time: Optional[int] = None


# ============ Fountain views / receipts ============

class RoundView(BaseModel):
    round_id: int
    prize_pool: int
    start_time: int
    end_time: int
    winner: Optional[str] = None
    winner_amount: int = 0
    is_complete: bool = False
    total_participants: int = 0
    rollover_amount: int = 0
    chroma_fees_received: int = 0


class TossReceipt(BaseModel):
    round_id: int
    participant: str
    entry_fee: int
    platform_fee: int
    new_prize_pool: int
    events: List[SerializeAsAny[GameEvent]] = Field(default_factory=list)


class RoundResolution(BaseModel):
    """一個回合的結算結果（呼叫端依此轉帳）"""
    round: RoundView
    winner: Optional[str] = None
    winner_amount: int = 0
    platform_fee: int = 0
    rollover_amount: int = 0
    next_round_id: int
    events: List[SerializeAsAny[GameEvent]] = Field(default_factory=list)


class FeeReceipt(BaseModel):
    round_id: int
    amount: int
    new_prize_pool: int
    events: List[SerializeAsAny[GameEvent]] = Field(default_factory=list)


class PrizeBreakdown(BaseModel):
    total_pool: int
    winner_amount: int
    rollover_amount: int
    platform_fee: int


class GameStatsView(BaseModel):
    total_rounds: int
    total_participants: int
    total_prizes_paid: int


class PendingPayout(BaseModel):
    """結算後轉帳失敗、等待重試的一筆付款"""
    round_id: int
    to: str
    amount: int
    reason: str = ""
