"""Configuration management for churros."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .core.coupons import CouponRules
from .core.recurrence import TIME_WINDOW_MINUTES

logger = logging.getLogger(__name__)

CHURROS_HOME = Path(os.environ.get("CHURROS_HOME", Path.home() / "churros"))
CONFIG_FILE = CHURROS_HOME / "config" / "churros.conf"

DEFAULT_AI_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1"
DEFAULT_AI_MODEL = "google/gemini-2.5-flash"

# Slower polling lets a time-of-day target fall between two polls
MAX_POLL_MINUTES = 2 * TIME_WINDOW_MINUTES

# Secrets may come from the environment instead of the config file
ENV_OVERRIDES = {
    "SUPABASE_URL": "supabase_url",
    "SUPABASE_SERVICE_ROLE_KEY": "supabase_key",
    "AI_GATEWAY_URL": "ai_gateway_url",
    "AI_API_KEY": "ai_api_key",
}


class ConfigError(Exception):
    """Raised when a required setting is missing or malformed."""

    pass


@dataclass
class Config:
    """churros configuration."""

    supabase_url: str = ""
    supabase_key: str = ""
    ai_gateway_url: str = DEFAULT_AI_GATEWAY_URL
    ai_api_key: str = ""
    ai_model: str = DEFAULT_AI_MODEL
    ai_timeout: int = 60
    # Notification polling runs in UTC; this only affects display
    timezone: str = "America/Sao_Paulo"
    poll_minutes: int = 1
    coupon_rules: CouponRules = field(default_factory=CouponRules)
    # Per-tier message templates; empty means the built-in default
    coupon_template_low: str = ""
    coupon_template_high: str = ""

    def require_backend(self) -> None:
        if not self.supabase_url or not self.supabase_key:
            raise ConfigError(
                "Missing backend credentials. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY "
                "or add supabase_url / supabase_key to churros.conf"
            )

    def require_ai(self) -> None:
        if not self.ai_api_key:
            raise ConfigError("Missing AI_API_KEY. Add ai_api_key to churros.conf")


def _unquote(value: str) -> str:
    """Strip quotes, or an inline comment from an unquoted value."""
    if value[:1] in ('"', "'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        return value[1:end_quote] if end_quote != -1 else value[1:]
    if "#" in value:
        value = value.split("#")[0].strip()
    return value


def _to_float(key: str, value: str) -> float | None:
    try:
        return float(value.replace(",", "."))
    except ValueError:
        logger.warning(f"Ignoring non-numeric value for {key}: {value!r}")
        return None


def _to_int(key: str, value: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {key}: {value!r}")
        return None


def load_config(path: Path | None = None, environ: dict | None = None) -> Config:
    """Load configuration from churros.conf, then apply environment overrides."""
    config = Config()
    path = path or CONFIG_FILE
    environ = os.environ if environ is None else environ

    lines = path.read_text().splitlines() if path.exists() else []

    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = _unquote(value.strip())

        match key:
            case "supabase_url":
                config.supabase_url = value.rstrip("/")
            case "supabase_key":
                config.supabase_key = value
            case "ai_gateway_url":
                config.ai_gateway_url = value.rstrip("/")
            case "ai_api_key":
                config.ai_api_key = value
            case "ai_model":
                config.ai_model = value
            case "ai_timeout":
                if (n := _to_int(key, value)) is not None:
                    config.ai_timeout = n
            case "timezone":
                config.timezone = value
            case "poll_minutes":
                if (n := _to_int(key, value)) is not None:
                    if 1 <= n <= MAX_POLL_MINUTES:
                        config.poll_minutes = n
                    else:
                        logger.warning(f"Ignoring poll_minutes={n}: must be between 1 and {MAX_POLL_MINUTES}")
            case "coupon_template_low" | "coupon_template_high":
                # Literal \n in the file stands for a line break
                setattr(config, key, value.replace("\\n", "\n"))
            case "coupon_threshold" | "coupon_low_value" | "coupon_high_value" | "coupon_min_purchase_low" | "coupon_min_purchase_high":
                if (amount := _to_float(key, value)) is not None:
                    setattr(config.coupon_rules, key.removeprefix("coupon_"), amount)
            case "coupon_valid_days":
                if (n := _to_int(key, value)) is not None:
                    config.coupon_rules.valid_days = n
            case _:
                logger.debug(f"Unknown config key: {key}")

    for env_key, attr in ENV_OVERRIDES.items():
        value = environ.get(env_key)
        if value:
            setattr(config, attr, value.rstrip("/") if attr.endswith("_url") else value)

    return config
