"""Central configuration for the NAV ledger package."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from datetime import timezone, tzinfo
from pathlib import Path
from typing import Any

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"

CONFIG_ENV_VAR = "NAV_LEDGER_CONFIG"


@dataclass(slots=True, frozen=True)
class Settings:
    share_scale: int
    price_scale: int
    bps_denominator: int
    seconds_per_year: int
    par_share_nav: int
    exchange_rate_divisor: int
    timezone: tzinfo
    data_dir: Path
    log_level: str

    @property
    def nav_scale(self) -> int:
        # shares (scale 100) x price (scale 100) -> currency units
        return self.share_scale * self.price_scale


SETTINGS = Settings(
    share_scale=100,
    price_scale=100,
    bps_denominator=10_000,
    seconds_per_year=31_536_000,
    par_share_nav=10_000,
    exchange_rate_divisor=10**20,
    timezone=timezone.utc,
    data_dir=DATA_DIR,
    log_level="INFO",
)

_INT_KEYS = {
    "share_scale",
    "price_scale",
    "bps_denominator",
    "seconds_per_year",
    "par_share_nav",
    "exchange_rate_divisor",
}


def _normalize_overrides(raw: dict[str, Any] | None) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    if not isinstance(raw, dict):
        return normalized
    known = {f.name for f in fields(Settings)} - {"timezone"}
    for key, value in raw.items():
        if key is None:
            continue
        key_str = str(key).strip().lower()
        if key_str not in known or value is None:
            continue
        if key_str in _INT_KEYS:
            normalized[key_str] = int(value)
        elif key_str == "data_dir":
            normalized[key_str] = Path(value)
        else:
            normalized[key_str] = str(value).strip().upper()
    return normalized


def load_settings(path: Path | None = None) -> Settings:
    """Return SETTINGS merged with a JSON override file, if one exists."""
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            return SETTINGS
        path = Path(env_path)
    if not path.exists():
        return SETTINGS
    data = json.loads(path.read_text(encoding="utf-8"))
    return replace(SETTINGS, **_normalize_overrides(data))
