"""
狀態機：集中管理回合的狀態轉換

回合只有一條路：ACTIVE -> RESOLVED
所有轉換都經過這裡，避免各處自己改 status
"""
import logging

from core.entities import LotteryRound, RoundStatus
from core.exceptions import InvalidStateTransition, RoundAlreadyComplete, RoundNotEnded

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    RoundStatus.ACTIVE: {RoundStatus.RESOLVED},
    RoundStatus.RESOLVED: set(),
}


class RoundStateMachine:
    """回合狀態轉換"""

    @staticmethod
    def can_transition(current: RoundStatus, target: RoundStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[current]

    @staticmethod
    def check_resolvable(round_obj: LotteryRound, now: int) -> None:
        """
        檢查回合現在是否可以結算

        異常：
            RoundAlreadyComplete: 已經結算過
            RoundNotEnded: 還沒到 end_time
        """
        if round_obj.is_complete:
            raise RoundAlreadyComplete(round_obj.round_id)
        if not round_obj.has_ended(now):
            raise RoundNotEnded(round_obj.round_id, round_obj.end_time)

    @staticmethod
    def transition(round_obj: LotteryRound, target: RoundStatus) -> LotteryRound:
        """
        轉換回合狀態

        呼叫端必須已經持有這個回合的鎖

        異常：
            InvalidStateTransition: 不允許的轉換
        """
        current = round_obj.status
        if not RoundStateMachine.can_transition(current, target):
            raise InvalidStateTransition(
                f"Round {round_obj.round_id}: {current.value} -> {target.value} is not allowed"
            )
        round_obj.status = target
        logger.info(f"Round {round_obj.round_id} state changed: {current.value} -> {target.value}")
        return round_obj
