"""
帳本服務：金額拆分

純計算邏輯。所有拆分都保證「各部分加總 == 原金額」，
整除產生的零頭一律歸給後一個部分（pool / rollover），不會憑空消失
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class CanvasSplit:
    """Chroma 付款拆分：一半給專案錢包，其餘進 Fountain 獎池"""
    amount: int
    project_share: int
    pool_share: int


@dataclass(frozen=True)
class EntryFeeSplit:
    """Fountain 入場費拆分：平台費 + 進獎池的淨額"""
    amount: int
    platform_fee: int
    net_amount: int


@dataclass(frozen=True)
class RoundSettlement:
    """
    回合結算結果

    total_pool = prize_pool + accumulated_rollover
    distributable = total_pool - platform_fee
    winner_amount + rollover_amount == distributable
    """
    total_pool: int
    platform_fee: int
    distributable: int
    winner_amount: int
    rollover_amount: int


def percent_of(amount: int, percent: int) -> int:
    """amount × percent / 100（向下取整）"""
    return amount * percent // 100


def split_canvas_payment(amount: int) -> CanvasSplit:
    """
    拆分 Chroma 的付款

    範例：
        split_canvas_payment(101) -> project_share=50, pool_share=51
    """
    project_share = amount // 2
    return CanvasSplit(amount=amount, project_share=project_share, pool_share=amount - project_share)


def split_entry_fee(amount: int, platform_fee_percent: int) -> EntryFeeSplit:
    """
    拆分入場費

    範例（5%）：
        split_entry_fee(1000000000000000, 5) -> platform_fee=50000000000000
    """
    fee = percent_of(amount, platform_fee_percent)
    return EntryFeeSplit(amount=amount, platform_fee=fee, net_amount=amount - fee)


def compute_round_settlement(prize_pool: int, accumulated_rollover: int, fee_base: int,
                             platform_fee_percent: int, winner_percent: int) -> RoundSettlement:
    """
    計算回合結算（誰拿多少）

    參數：
        prize_pool: 本回合獎池
        accumulated_rollover: 尚未被新回合吸收的累積 rollover
        fee_base: 平台費的計算基礎（只算本回合自己的收入，不含繼承來的 rollover）
        platform_fee_percent: 平台費百分比
        winner_percent: 贏家拿 distributable 的百分比

    範例（三人各 0.001 ETH，5% / 85%）：
        compute_round_settlement(2850000000000000, 0, 2850000000000000, 5, 85)
        -> platform_fee=142500000000000, distributable=2707500000000000,
           winner_amount=2301375000000000, rollover_amount=406125000000000
    """
    total_pool = prize_pool + accumulated_rollover
    platform_fee = percent_of(fee_base, platform_fee_percent)
    distributable = total_pool - platform_fee
    winner_amount = percent_of(distributable, winner_percent)
    return RoundSettlement(
        total_pool=total_pool,
        platform_fee=platform_fee,
        distributable=distributable,
        winner_amount=winner_amount,
        rollover_amount=distributable - winner_amount,
    )
