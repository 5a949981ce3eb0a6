"""
Canvas Manager：Chroma 畫布的規則引擎

職責：
1. 放置像素（動態價格 + 熱度）
2. 鎖定像素（高價 + 時間鎖）
3. 使用者冷卻（全域，不分像素）
4. 查詢價格 / 像素 / 區域 / 統計

原則：
- 只計算付款拆分，不轉帳（轉帳交給 PaymentRouter）
- 先驗證再修改：任何異常都保證沒有狀態被改
- 同一個使用者、同一個像素的「檢查 + 修改」在同一個臨界區內
"""
import logging
import threading
from typing import Dict, List, Optional

from config import Settings, get_settings
from core.entities import PixelState, UserRecord
from core.event_log import EventSink, InMemoryEventSink
from core.exceptions import InsufficientPayment, PixelIsLocked, UserOnCooldown
from core.locks import LockTable, with_user_and_pixel_lock
from core.settings_check import check_canvas_settings
from schemas import (
    CanvasStatsView,
    HeatDecayed,
    PixelChanged,
    PixelLocked,
    PixelView,
    PlacementReceipt,
    UserStatsView,
)
from services.coordinate_service import (
    to_coordinate,
    validate_color,
    validate_coordinates,
    validate_region,
)
from services.ledger_service import split_canvas_payment
from services.pricing_service import current_heat, lock_price, pixel_price

logger = logging.getLogger(__name__)


class CanvasEconomy:
    """Chroma 畫布引擎"""

    def __init__(self, settings: Optional[Settings] = None, event_sink: Optional[EventSink] = None):
        """
        參數：
            settings: 遊戲設定（預設讀環境變數）
            event_sink: 事件接收者（預設 InMemoryEventSink）

        異常：
            InvalidConfiguration: 設定不合法
        """
        self.settings = settings or get_settings()
        check_canvas_settings(self.settings)
        self.event_sink = event_sink or InMemoryEventSink()

        self._pixels: Dict[int, PixelState] = {}
        self._users: Dict[str, UserRecord] = {}
        self._pixel_locks = LockTable()
        self._user_locks = LockTable()
        self._stats_lock = threading.Lock()
        self._total_pixels_placed = 0

    # ============ 內部工具 ============

    def _coordinate(self, x: int, y: int) -> int:
        s = self.settings
        validate_coordinates(x, y, s.canvas_width, s.canvas_height)
        return to_coordinate(x, y, s.canvas_width)

    def _heat(self, pixel: Optional[PixelState], now: int) -> int:
        if pixel is None:
            return 0
        return current_heat(pixel.heat_level, pixel.heat_anchor_time, now, self.settings.heat_decay_period)

    def _price_for_heat(self, heat: int) -> int:
        s = self.settings
        return pixel_price(s.base_pixel_price, heat, s.heat_multiplier_numerator, s.heat_multiplier_denominator)

    def _lock_price_for_heat(self, heat: int) -> int:
        s = self.settings
        return lock_price(
            s.base_pixel_price, heat,
            s.heat_multiplier_numerator, s.heat_multiplier_denominator,
            s.lock_price_multiplier,
        )

    # ============ 操作 ============

    def place_pixel(self, caller: str, x: int, y: int, color: int, paid_amount: int, now: int) -> PlacementReceipt:
        """
        放置像素

        流程：
        1. 驗證座標、顏色
        2. 檢查冷卻、鎖定、付款
        3. 發布 PixelChanged 事件
        4. 更新像素、冷卻、統計

        參數：
            caller: 已驗證的付款帳號
            x, y: 座標
            color: 24-bit RGB
            paid_amount: 付款金額（wei）
            now: 現在時間

        返回：
            PlacementReceipt（含 project_share / pool_share）

        異常：
            InvalidCoordinates, InvalidColor, UserOnCooldown,
            PixelIsLocked, InsufficientPayment
        """
        return self._submit(caller, x, y, color, paid_amount, now, lock=False)

    def lock_pixel(self, caller: str, x: int, y: int, color: int, paid_amount: int, now: int) -> PlacementReceipt:
        """
        鎖定像素（放置 + 鎖定 LockDuration 秒）

        規則和 place_pixel 相同，只是價格是 get_lock_price()，
        並額外發出 PixelLocked 事件
        """
        return self._submit(caller, x, y, color, paid_amount, now, lock=True)

    def _submit(self, caller, x, y, color, paid_amount, now, lock):
        s = self.settings
        coordinate = self._coordinate(x, y)
        validate_color(color)

        with with_user_and_pixel_lock(self._user_locks, self._pixel_locks, caller, coordinate):
            # 1. 冷卻
            user = self._users.get(caller)
            if user is not None and now < user.last_action_time + s.user_cooldown_period:
                raise UserOnCooldown(caller, user.last_action_time + s.user_cooldown_period)

            # 2. 鎖定
            pixel = self._pixels.get(coordinate)
            heat = self._heat(pixel, now)
            if pixel is not None and pixel.lock_active(now):
                logger.warning(f"{caller} tried to overwrite locked pixel {coordinate} until {pixel.locked_until}")
                raise PixelIsLocked(coordinate, pixel.locked_until)

            # 3. 付款
            required = self._lock_price_for_heat(heat) if lock else self._price_for_heat(heat)
            if paid_amount < required:
                raise InsufficientPayment(required, paid_amount)

            charged = required if s.clamp_overpayment else paid_amount
            split = split_canvas_payment(charged)
            new_heat = min(heat + 1, s.max_heat_level)
            locked_until = now + s.lock_duration if lock else None

            # 4. 事件（先發布：發布失敗時狀態完全沒動）
            events = [PixelChanged(
                coordinate=coordinate, x=x, y=y, placer=caller, color=color,
                heat_level=new_heat, price_paid=charged, locked=lock, timestamp=now,
            )]
            if lock:
                events.append(PixelLocked(
                    coordinate=coordinate, x=x, y=y, locker=caller, color=color,
                    lock_price=charged, locked_until=locked_until,
                ))
            self.event_sink.publish(events)

            # 5. 修改狀態
            if pixel is None:
                pixel = PixelState(x=x, y=y, coordinate=coordinate)
                self._pixels[coordinate] = pixel
            pixel.owner = caller
            pixel.color = color
            pixel.heat_level = new_heat
            pixel.last_placed_time = now
            pixel.heat_anchor_time = now
            pixel.is_locked = lock
            pixel.locked_until = locked_until
            if lock:
                pixel.lock_price = charged

            if user is None:
                user = UserRecord(account=caller, last_action_time=now)
                self._users[caller] = user
            user.last_action_time = now
            user.pixels_placed += 1
            user.total_spent += charged

            if heat == 0:
                with self._stats_lock:
                    self._total_pixels_placed += 1

        logger.info(
            f"{'Locked' if lock else 'Placed'} pixel ({x}, {y}) by {caller}: "
            f"heat {heat} -> {new_heat}, charged {charged} wei"
        )

        return PlacementReceipt(
            coordinate=coordinate, x=x, y=y, owner=caller, color=color,
            new_heat=new_heat, price_paid=required, amount_charged=charged,
            project_share=split.project_share, pool_share=split.pool_share,
            locked=lock, locked_until=locked_until, events=events,
        )

    def decay_heat(self, x: int, y: int, now: int) -> int:
        """
        把衰減後的熱度寫回像素（維護用，非必要）

        讀取本來就會重算熱度，這個操作只是把結果存起來並發出 HeatDecayed

        返回：
            衰減後的熱度
        """
        coordinate = self._coordinate(x, y)
        with self._pixel_locks.hold(coordinate):
            pixel = self._pixels.get(coordinate)
            if pixel is None:
                return 0
            old = pixel.heat_level
            new = self._heat(pixel, now)
            if new == old:
                return new

            self.event_sink.publish([HeatDecayed(coordinate=coordinate, old_heat_level=old, new_heat_level=new)])
            # 已經扣掉的週期要從起算點移除，之後讀取才不會重複衰減
            if new > 0:
                pixel.heat_anchor_time += (old - new) * self.settings.heat_decay_period
            else:
                pixel.heat_anchor_time = now
            pixel.heat_level = new

        logger.info(f"Heat decayed for pixel {coordinate}: {old} -> {new}")
        return new

    # ============ 查詢 ============

    def get_pixel_price(self, x: int, y: int, now: int) -> int:
        """現在放置 (x, y) 的價格"""
        coordinate = self._coordinate(x, y)
        with self._pixel_locks.hold(coordinate):
            return self._price_for_heat(self._heat(self._pixels.get(coordinate), now))

    def get_lock_price(self, x: int, y: int, now: int) -> int:
        """現在鎖定 (x, y) 的價格（= get_pixel_price × LockMultiplier）"""
        coordinate = self._coordinate(x, y)
        with self._pixel_locks.hold(coordinate):
            return self._lock_price_for_heat(self._heat(self._pixels.get(coordinate), now))

    def get_pixel(self, x: int, y: int, now: int) -> PixelView:
        """
        讀取單一像素

        熱度會重算；過期的鎖會在返回值裡清掉（不修改儲存的狀態）
        """
        coordinate = self._coordinate(x, y)
        with self._pixel_locks.hold(coordinate):
            pixel = self._pixels.get(coordinate)
            if pixel is None:
                return PixelView(x=x, y=y, coordinate=coordinate)
            return pixel.to_view(self._heat(pixel, now), clear_expired_lock=True, now=now)

    def get_canvas_region(self, x0: int, y0: int, w: int, h: int, now: int) -> List[PixelView]:
        """
        讀取矩形區域（逐列，由上到下、由左到右）

        注意：
            熱度會重算，但鎖定欄位「不會」清掉，
            is_locked 可能已經過期，呼叫端要自己拿 locked_until 和 now 比較
            （和 get_pixel 的行為不同，保留原樣）
        """
        s = self.settings
        validate_region(x0, y0, w, h, s.canvas_width, s.canvas_height)

        region = []
        for y in range(y0, y0 + h):
            for x in range(x0, x0 + w):
                coordinate = to_coordinate(x, y, s.canvas_width)
                with self._pixel_locks.hold(coordinate):
                    pixel = self._pixels.get(coordinate)
                    if pixel is None:
                        region.append(PixelView(x=x, y=y, coordinate=coordinate))
                    else:
                        region.append(pixel.to_view(self._heat(pixel, now), clear_expired_lock=False, now=now))
        return region

    def get_canvas_stats(self, now: int) -> CanvasStatsView:
        pixels = list(self._pixels.values())
        with self._stats_lock:
            total = self._total_pixels_placed
        return CanvasStatsView(
            total_pixels_placed=total,
            unique_users=len(self._users),
            total_heat=sum(self._heat(p, now) for p in pixels),
        )

    def get_user_stats(self, account: str) -> UserStatsView:
        with self._user_locks.hold(account):
            user = self._users.get(account)
            if user is None:
                return UserStatsView(account=account)
            return UserStatsView(
                account=account,
                pixels_placed=user.pixels_placed,
                total_spent=user.total_spent,
                last_action_time=user.last_action_time,
            )

    def get_user_cooldown_time(self, account: str, now: int) -> int:
        """剩餘冷卻秒數（0 表示可以行動）"""
        with self._user_locks.hold(account):
            user = self._users.get(account)
            if user is None:
                return 0
            return max(0, user.last_action_time + self.settings.user_cooldown_period - now)

    def is_user_on_cooldown(self, account: str, now: int) -> bool:
        return self.get_user_cooldown_time(account, now) > 0
