"""Shared fixtures for the engine tests."""

import sys
from pathlib import Path

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402

PROJECT_WALLET = "0x" + "a" * 40
FOUNTAIN_ADDRESS = "0x" + "f" * 40

BASE_PIXEL_PRICE = 100_000_000_000_000
ENTRY_FEE = 1_000_000_000_000_000
USER_COOLDOWN = 60
LOCK_DURATION = 3600
HEAT_DECAY_PERIOD = 3600
ROUND_DURATION = 24 * 60 * 60

T0 = 1_700_000_000


def make_settings(**overrides) -> Settings:
    values = dict(
        project_wallet=PROJECT_WALLET,
        fountain_address=FOUNTAIN_ADDRESS,
        database_url="sqlite://",
    )
    values.update(overrides)
    return Settings(**values)
