"""
並發控制工具

提供 in-process 的細粒度鎖，防止競態條件（Race Condition）

狀態全部放在記憶體裡，所以不用資料庫的 SELECT ... FOR UPDATE，
改用「分片鎖表」（sharded lock table）：同一個 key 永遠對應同一把鎖，
不同 key 大多落在不同分片，不會互相阻塞（不是一把全域大鎖）
"""
from contextlib import contextmanager
import threading
from typing import Hashable, Iterator


class LockTable:
    """
    Key -> Lock 的分片表

    範例：
        pixel_locks = LockTable()
        with pixel_locks.hold(coordinate):
            # 驗證 + 修改，不會和同一個像素的其他請求交錯
            ...

    注意：
        - 同一個 thread 重複進入同一把鎖是允許的（RLock）
        - 多張表一起使用時，呼叫端必須固定取鎖順序（避免 deadlock）
    """

    def __init__(self, shards: int = 256):
        if shards <= 0:
            raise ValueError("shards must be positive")
        self._locks = [threading.RLock() for _ in range(shards)]

    def _lock_for(self, key: Hashable) -> threading.RLock:
        return self._locks[hash(key) % len(self._locks)]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """鎖定一個 key，離開 with 區塊時自動釋放"""
        lock = self._lock_for(key)
        with lock:
            yield


def with_user_and_pixel_lock(user_locks: LockTable, pixel_locks: LockTable,
                             account: Hashable, coordinate: Hashable):
    """
    同時鎖定使用者（冷卻）與像素

    取鎖順序固定為：使用者 -> 像素
    所有畫布操作都走這個函式，所以不會出現 A 等 B、B 等 A 的情況

    返回：
        context manager
    """
    @contextmanager
    def _both():
        with user_locks.hold(account):
            with pixel_locks.hold(coordinate):
                yield
    return _both()
