"""
Payment Router：執行引擎算出的付款義務

引擎只計算「誰該拿多少」，真正的轉帳由注入的 Transferer 執行
（鏈上錢包、銀行、測試用的 InMemoryTransferer 都可以）

路由規則：
- Chroma 放置 / 鎖定：project_share -> 專案錢包；pool_share -> Fountain，並記入當前回合獎池
- Fountain 投幣：platform_fee -> 專案錢包；淨額 -> Fountain
- Fountain 結算：winner_amount -> 贏家；platform_fee -> 專案錢包（rollover 留在 Fountain）
  轉帳失敗時記成 PendingPayout，不會讓觸發結算的操作失敗
"""
import logging
import threading
from typing import Dict, List, Optional, Tuple

from config import Settings, get_settings
from core.exceptions import TransferFailed
from core.lottery_manager import RoundLottery
from core.settings_check import require_address
from schemas import FeeReceipt, PendingPayout, PlacementReceipt, RoundResolution, TossReceipt

logger = logging.getLogger(__name__)


class Transferer:
    """轉帳能力的介面"""

    def transfer(self, to: str, amount: int) -> None:
        """
        轉帳 amount wei 給 to

        異常：
            TransferFailed: 轉帳失敗
        """
        raise NotImplementedError


class InMemoryTransferer(Transferer):
    """記錄每一筆轉帳與各帳號累計收到的金額"""

    def __init__(self):
        self.balances: Dict[str, int] = {}
        self.transfers: List[Tuple[str, int]] = []
        self._lock = threading.Lock()

    def transfer(self, to: str, amount: int) -> None:
        if not to:
            raise TransferFailed(to, amount, "empty recipient")
        if amount < 0:
            raise TransferFailed(to, amount, "negative amount")
        with self._lock:
            self.balances[to] = self.balances.get(to, 0) + amount
            self.transfers.append((to, amount))

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self.balances.get(account, 0)


class PaymentRouter:
    """把 receipt 轉成實際的轉帳"""

    def __init__(self, transferer: Transferer, lottery: RoundLottery, settings: Optional[Settings] = None):
        """
        建構時會向 lottery 註冊結算通知，所有回合結算都會自動付款給贏家

        異常：
            InvalidConfiguration: 錢包地址是零地址
        """
        self.settings = settings or get_settings()
        require_address("project_wallet", self.settings.project_wallet)
        require_address("fountain_address", self.settings.fountain_address)
        self.transferer = transferer
        self.lottery = lottery
        self._pending: List[PendingPayout] = []
        self._pending_lock = threading.Lock()
        lottery.add_resolution_listener(self.route_resolution)

    def _pay(self, to: str, amount: int) -> None:
        if amount <= 0:
            return
        try:
            self.transferer.transfer(to, amount)
        except TransferFailed as e:
            logger.error(f"Transfer of {amount} wei to {to} failed: {e}", exc_info=True)
            raise

    def route_placement(self, receipt: PlacementReceipt, now: int) -> Optional[FeeReceipt]:
        """
        Chroma 付款：一半給專案，一半進 Fountain 獎池

        流程：
        1. 先把 pool_share 記入當前回合（到期的回合會先結算）
        2. 再轉帳：project_share -> 專案錢包；pool_share -> Fountain

        返回：
            Fountain 的 FeeReceipt（pool_share 為 0 時為 None）

        異常：
            TransferFailed: 轉帳失敗（獎池已記帳，呼叫端負責補轉）
        """
        fee_receipt = None
        if receipt.pool_share > 0:
            fee_receipt = self.lottery.receive_external_fees(receipt.pool_share, now)
        self._pay(self.settings.project_wallet, receipt.project_share)
        if fee_receipt is not None:
            self._pay(self.settings.fountain_address, receipt.pool_share)
        return fee_receipt

    def route_toss(self, receipt: TossReceipt) -> None:
        """Fountain 投幣：平台費給專案，淨額留在 Fountain"""
        self._pay(self.settings.project_wallet, receipt.platform_fee)
        self._pay(self.settings.fountain_address, receipt.entry_fee - receipt.platform_fee)

    def _pay_or_defer(self, round_id: int, to: str, amount: int) -> bool:
        try:
            self._pay(to, amount)
        except TransferFailed as e:
            with self._pending_lock:
                self._pending.append(PendingPayout(round_id=round_id, to=to, amount=amount, reason=str(e)))
            logger.warning(f"Deferred round {round_id} payout of {amount} wei to {to}")
            return False
        return True

    def route_resolution(self, resolution: RoundResolution) -> None:
        """
        回合結算：付獎金給贏家、平台費給專案（空回合不付款）

        結算可能由別人的投幣 / 收費觸發，所以轉帳失敗不往上拋，
        改記成 PendingPayout，之後用 retry_pending_payouts() 重試
        """
        if resolution.winner is None:
            return
        round_id = resolution.round.round_id
        if self._pay_or_defer(round_id, resolution.winner, resolution.winner_amount):
            logger.info(f"Paid round {round_id} winner {resolution.winner} {resolution.winner_amount} wei")
        self._pay_or_defer(round_id, self.settings.project_wallet, resolution.platform_fee)

    def pending_payouts(self) -> List[PendingPayout]:
        with self._pending_lock:
            return list(self._pending)

    def retry_pending_payouts(self) -> int:
        """
        重試所有失敗的結算付款

        返回：
            這次成功付出的筆數（仍然失敗的會留在待付清單）
        """
        with self._pending_lock:
            pending, self._pending = self._pending, []
        paid = 0
        for payout in pending:
            if self._pay_or_defer(payout.round_id, payout.to, payout.amount):
                paid += 1
        return paid
