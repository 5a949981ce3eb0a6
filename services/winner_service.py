"""
抽獎服務：選出回合贏家

注意：這不是密碼學安全的亂數！
index = sha256(now, round_id, last_caller) mod 參加人數
觸發結算的人可以預測甚至操控結果。這是原本遊戲經濟設計接受的取捨，
保留原樣；需要抗操控的環境請透過 RoundLottery(winner_selector=...) 換掉
"""
import hashlib
from typing import Callable, Optional, Sequence

# (now, round_id, last_caller, participants) -> index
WinnerSelector = Callable[[int, int, Optional[str], Sequence[str]], int]


def pseudo_random_index(now: int, round_id: int, last_caller: Optional[str], count: int) -> int:
    """
    用時間 + 回合 + 最後呼叫者算出 [0, count) 的 index

    參數：
        now: 結算時間
        round_id: 回合 ID
        last_caller: 最後一個和本回合互動的帳號（可能為 None）
        count: 參加人數（必須 > 0）
    """
    if count <= 0:
        raise ValueError("count must be positive")
    seed = f"{now}:{round_id}:{last_caller or ''}"
    digest = hashlib.sha256(seed.encode()).digest()
    return int.from_bytes(digest, "big") % count


def default_winner_selector(now: int, round_id: int, last_caller: Optional[str],
                            participants: Sequence[str]) -> int:
    """預設的抽獎策略（弱亂數，和原本的遊戲一致）"""
    return pseudo_random_index(now, round_id, last_caller, len(participants))
