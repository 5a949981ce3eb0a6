"""
遊戲設定

所有常數都集中在這裡，透過環境變數或 .env 覆寫（pydantic-settings）

金額單位一律是 wei（Python int，不會溢位）
時間單位一律是秒（Unix timestamp）
"""
from functools import lru_cache

from pydantic_settings import BaseSettings

ZERO_ADDRESS = "0x" + "0" * 40


class Settings(BaseSettings):
    database_url: str = "sqlite:///./arcade_events.db"

    # 收款地址
    project_wallet: str = ZERO_ADDRESS
    fountain_address: str = ZERO_ADDRESS

    # ============ Chroma（畫布） ============
    canvas_width: int = 3000
    canvas_height: int = 3000
    base_pixel_price: int = 100_000_000_000_000  # 0.0001 ETH
    heat_multiplier_numerator: int = 3
    heat_multiplier_denominator: int = 2
    max_heat_level: int = 10
    heat_decay_period: int = 3600
    user_cooldown_period: int = 60
    lock_price_multiplier: int = 50
    lock_duration: int = 3600
    # True：只收 required price，多付的部分由呼叫端自行處理
    clamp_overpayment: bool = False

    # ============ The Fountain（樂透） ============
    round_duration: int = 24 * 60 * 60
    entry_fee: int = 1_000_000_000_000_000  # 0.001 ETH
    platform_fee_percent: int = 5
    winner_percent: int = 85
    genesis_round_id: int = 1

    class Config:
        env_file = ".env"
        env_prefix = "ARCADE_"


@lru_cache()
def get_settings():
    return Settings()
