"""
定價服務：熱度衰減與像素價格

純計算邏輯，全部使用整數運算（不用 float）
查價和實際收費用的是同一個函式，兩者不會有誤差
"""

UINT256_MAX = 2 ** 256 - 1


def current_heat(heat_level: int, last_placed_time: int, now: int, decay_period: int) -> int:
    """
    計算「現在」的熱度（已衰減）

    規則：
    - 每經過一個 decay_period，熱度 -1
    - 最低為 0

    參數：
        heat_level: 儲存的熱度（可能已過期）
        last_placed_time: 上次放置時間
        now: 現在時間
        decay_period: 衰減週期（秒）

    範例（decay_period=3600）：
        current_heat(5, 0, 7200, 3600) -> 3
        current_heat(2, 0, 99999, 3600) -> 0
    """
    if heat_level <= 0:
        return 0
    elapsed = max(0, now - last_placed_time)
    return max(0, heat_level - elapsed // decay_period)


def pixel_price(base_price: int, heat: int, numerator: int, denominator: int) -> int:
    """
    價格 = base_price × (numerator/denominator) ^ heat

    每一級熱度都做一次定點縮放（先乘再整除），和鏈上的算法一致

    範例（base=1e14, 3/2）：
        heat 0 -> 100000000000000
        heat 1 -> 150000000000000
        heat 2 -> 225000000000000
    """
    price = base_price
    for _ in range(heat):
        price = price * numerator // denominator
    return price


def lock_price(base_price: int, heat: int, numerator: int, denominator: int, lock_multiplier: int) -> int:
    """鎖定價格 = 像素價格 × lock_multiplier"""
    return pixel_price(base_price, heat, numerator, denominator) * lock_multiplier


def max_lock_price(base_price: int, max_heat: int, numerator: int, denominator: int,
                   lock_multiplier: int) -> int:
    """
    最高熱度下的鎖定價格（最貴的一筆交易）

    用途：
        建構時檢查設定，確保不會超過 uint256
    """
    return lock_price(base_price, max_heat, numerator, denominator, lock_multiplier)
