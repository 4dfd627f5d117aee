import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0

_RELAY_SETTINGS = {
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_MODEL",
    "OPENAI_TEMPERATURE",
    "FALLBACK_TEMPERATURE",
}


def clamp_temperature(value: float) -> float:
    return min(max(value, MIN_TEMPERATURE), MAX_TEMPERATURE)


def coerce_temperature(value, fallback: float) -> float:
    """Clamp a caller-supplied temperature, or return ``fallback`` when it is not a usable number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    if isinstance(value, int):
        # JSON integers are unbounded; clamp before converting to float
        return float(min(max(value, 0), 2))
    if not math.isfinite(value):
        return fallback
    return clamp_temperature(value)


@dataclass(frozen=True)
class RelayConfig:
    """Provider settings the relay endpoint runs with."""

    api_key: str
    default_model: str
    default_temperature: float
    base_url: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


def _parse_default_temperature(raw, fallback: float) -> float:
    try:
        parsed = float(raw)
    except (TypeError, ValueError):
        return fallback
    return coerce_temperature(parsed, fallback)


@lru_cache(maxsize=1)
def get_relay_config() -> RelayConfig:
    fallback = clamp_temperature(float(getattr(settings, "FALLBACK_TEMPERATURE", 0.6)))
    return RelayConfig(
        api_key=getattr(settings, "OPENAI_API_KEY", "") or "",
        default_model=getattr(settings, "OPENAI_MODEL", "") or "gpt-4o-mini",
        default_temperature=_parse_default_temperature(
            getattr(settings, "OPENAI_TEMPERATURE", None), fallback
        ),
        base_url=getattr(settings, "OPENAI_BASE_URL", None) or None,
    )


@receiver(setting_changed)
def _reset_relay_config(sender, setting, **kwargs):
    if setting in _RELAY_SETTINGS:
        get_relay_config.cache_clear()
