"""
建構時的設定檢查

任何一項不合法都拋出 InvalidConfiguration，引擎不會以錯誤的常數啟動
"""
from config import Settings, ZERO_ADDRESS
from core.exceptions import InvalidConfiguration
from services.pricing_service import UINT256_MAX, max_lock_price


def require_address(name: str, value: str) -> None:
    if not value or value.lower() == ZERO_ADDRESS:
        raise InvalidConfiguration(f"{name} must be a non-zero address")


def _require_positive(settings: Settings, *names: str) -> None:
    for name in names:
        if getattr(settings, name) <= 0:
            raise InvalidConfiguration(f"{name} must be positive, got {getattr(settings, name)}")


def check_canvas_settings(settings: Settings) -> None:
    """Chroma 的設定檢查（含最高價格不超過 uint256）"""
    require_address("project_wallet", settings.project_wallet)
    require_address("fountain_address", settings.fountain_address)
    _require_positive(
        settings,
        "canvas_width", "canvas_height", "base_pixel_price",
        "heat_multiplier_denominator", "heat_decay_period",
        "lock_price_multiplier", "lock_duration",
    )
    if settings.heat_multiplier_numerator < settings.heat_multiplier_denominator:
        raise InvalidConfiguration("heat multiplier must be >= 1")
    if settings.max_heat_level < 0:
        raise InvalidConfiguration("max_heat_level must not be negative")
    if settings.user_cooldown_period < 0:
        raise InvalidConfiguration("user_cooldown_period must not be negative")

    highest = max_lock_price(
        settings.base_pixel_price,
        settings.max_heat_level,
        settings.heat_multiplier_numerator,
        settings.heat_multiplier_denominator,
        settings.lock_price_multiplier,
    )
    if highest > UINT256_MAX:
        raise InvalidConfiguration(f"lock price at max heat overflows uint256: {highest}")


def check_lottery_settings(settings: Settings) -> None:
    """The Fountain 的設定檢查"""
    require_address("project_wallet", settings.project_wallet)
    _require_positive(settings, "round_duration", "entry_fee")
    if not 0 <= settings.platform_fee_percent < 100:
        raise InvalidConfiguration("platform_fee_percent must be in [0, 100)")
    if not 0 < settings.winner_percent <= 100:
        raise InvalidConfiguration("winner_percent must be in (0, 100]")
    if settings.genesis_round_id < 0:
        raise InvalidConfiguration("genesis_round_id must not be negative")
