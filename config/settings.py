"""
Runtime settings read from the environment (.env supported).

Values are resolved once per process by get_settings(); tests build their own
Settings(...) and pass it explicitly where a function accepts `settings=`.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_TAXONOMY_PATH = Path(__file__).resolve().parent / "taxonomy.json"


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_list(name: str, default: tuple[str, ...]) -> frozenset[str]:
    raw = os.getenv(name)
    if not raw:
        return frozenset(default)
    return frozenset(p.strip().lower() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class InflationGuardSettings:
    """
    Thresholds for distrusting an externally reported account total.

    The guard only fires for accounts with no backing positions:
      |reported| > min_reported  and
      |reported - computed| > max(relative_band * |computed|, absolute_band)
    """
    min_reported: float = 1000.0
    relative_band: float = 0.5
    absolute_band: float = 1000.0
    # categories whose value is expected to come from positions
    position_backed_categories: frozenset[str] = frozenset({"brokerage", "offline"})


@dataclass(frozen=True)
class Settings:
    taxonomy_path: Path = DEFAULT_TAXONOMY_PATH
    reconcile_update_batch_size: int = 10
    safe_withdrawal_rate: float = 0.04
    inflation_guard: InflationGuardSettings = field(default_factory=InflationGuardSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    guard = InflationGuardSettings(
        min_reported=_env_float("INFLATION_GUARD_MIN_REPORTED", 1000.0),
        relative_band=_env_float("INFLATION_GUARD_RELATIVE_BAND", 0.5),
        absolute_band=_env_float("INFLATION_GUARD_ABSOLUTE_BAND", 1000.0),
        position_backed_categories=_env_list(
            "INFLATION_GUARD_POSITION_CATEGORIES", ("brokerage", "offline")
        ),
    )
    return Settings(
        taxonomy_path=Path(os.getenv("TAXONOMY_PATH") or DEFAULT_TAXONOMY_PATH),
        reconcile_update_batch_size=max(1, _env_int("RECONCILE_UPDATE_BATCH_SIZE", 10)),
        safe_withdrawal_rate=_env_float("SAFE_WITHDRAWAL_RATE", 0.04),
        inflation_guard=guard,
    )
