"""
自定義異常類別

集中管理所有規則引擎的異常，方便呼叫端（API / relay）統一處理

所有異常都是「驗證失敗」：拋出時保證沒有任何狀態被修改
"""


class ArcadeGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ Chroma（畫布）相關異常 ============

class InvalidCoordinates(ArcadeGameException):
    """座標超出畫布範圍（0 <= x, y < 3000）"""
    def __init__(self, x, y, detail=None):
        self.x = x
        self.y = y
        super().__init__(detail or f"Coordinates ({x}, {y}) are outside the canvas")


class InvalidColor(ArcadeGameException):
    """顏色不是 24-bit RGB"""
    def __init__(self, color):
        self.color = color
        super().__init__(f"Color {color!r} is not a 24-bit RGB value")


class InsufficientPayment(ArcadeGameException):
    """付款金額低於目前價格"""
    def __init__(self, required, paid):
        self.required = required
        self.paid = paid
        super().__init__(f"Insufficient payment: required {required} wei, got {paid} wei")


class UserOnCooldown(ArcadeGameException):
    """使用者還在冷卻中（全域冷卻，不分像素）"""
    def __init__(self, account, available_at):
        self.account = account
        self.available_at = available_at
        super().__init__(f"User {account} is on cooldown until {available_at}")


class PixelIsLocked(ArcadeGameException):
    """像素已被鎖定，尚未到期"""
    def __init__(self, coordinate, locked_until):
        self.coordinate = coordinate
        self.locked_until = locked_until
        super().__init__(f"Pixel {coordinate} is locked until {locked_until}")


# ============ The Fountain（樂透）相關異常 ============

class InvalidEntryFee(ArcadeGameException):
    """入場費必須完全相等，不是最低金額"""
    def __init__(self, expected, paid):
        self.expected = expected
        self.paid = paid
        super().__init__(f"Entry fee must be exactly {expected} wei, got {paid} wei")


class AlreadyParticipated(ArcadeGameException):
    """同一回合只能參加一次"""
    def __init__(self, account, round_id):
        self.account = account
        self.round_id = round_id
        super().__init__(f"{account} already participated in round {round_id}")


class RoundNotFound(ArcadeGameException):
    """回合不存在"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} not found")


class RoundNotEnded(ArcadeGameException):
    """回合還沒結束"""
    def __init__(self, round_id, end_time):
        self.round_id = round_id
        self.end_time = end_time
        super().__init__(f"Round {round_id} ends at {end_time}")


class RoundAlreadyComplete(ArcadeGameException):
    """回合已經結算過了"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} is already complete")


class InvalidFeeAmount(ArcadeGameException):
    """外部轉入的費用必須是正整數（wei）"""
    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"External fee amount must be a positive integer, got {amount!r}")


class NoParticipants(ArcadeGameException):
    """
    回合沒有參加者（內部使用）

    結算時不會拋給呼叫端：空回合直接跳過抽獎
    """
    pass


# ============ 狀態轉換異常 ============

class InvalidStateTransition(ArcadeGameException):
    """非法的狀態轉換"""
    pass


# ============ 設定 / 轉帳異常 ============

class InvalidConfiguration(ArcadeGameException):
    """設定錯誤（零地址、非法常數等），在建構時拋出"""
    pass


class TransferFailed(ArcadeGameException):
    """
    轉帳失敗（由注入的 Transferer 拋出）

    注意：這是唯一的例外，拋出時引擎的帳可能已經記好（由 PaymentRouter 負責補轉）
    """
    def __init__(self, to, amount, reason=""):
        self.to = to
        self.amount = amount
        super().__init__(f"Transfer of {amount} wei to {to} failed{': ' + reason if reason else ''}")
