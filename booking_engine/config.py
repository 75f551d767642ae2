"""
Centralized configuration with environment variable overrides.

Shop identity, booking rule constants, model settings, store timeouts and
notification credentials all live here. Nothing is hardcoded in the rules,
extraction, or commit logic.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag ("true"/"false", "1"/"0", "yes"/"no")."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("true", "1", "yes", "on"):
        return True
    if raw in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class BusinessConfig:
    """Shop identity and locale."""

    name: str = os.getenv("BUSINESS_NAME", "Fresh Fade Barbershop")
    timezone: str = os.getenv("SHOP_TIMEZONE", "America/Toronto")


@dataclass(frozen=True)
class BookingRulesConfig:
    """Scheduling constants applied by the rules engine and commit engine."""

    buffer_minutes: int = _safe_int("BUFFER_MINUTES", "5")
    same_day_min_lead_minutes: int = _safe_int("SAME_DAY_MIN_LEAD_MINUTES", "60")
    slot_step_minutes: int = _safe_int("SLOT_STEP_MINUTES", "30")
    max_suggestions: int = _safe_int("MAX_SUGGESTIONS", "5")
    require_email: bool = _safe_bool("REQUIRE_EMAIL", "false")
    max_message_length: int = _safe_int("MAX_MESSAGE_LENGTH", "1000")


@dataclass(frozen=True)
class ModelConfig:
    """NLU collaborator settings."""

    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.2")
    nlu_timeout_sec: float = _safe_float("NLU_TIMEOUT_SEC", "8.0")


@dataclass(frozen=True)
class PersistenceConfig:
    """Bounds on calls into the reservation store."""

    timeout_sec: float = _safe_float("STORE_TIMEOUT_SEC", "5.0")


@dataclass(frozen=True)
class NotificationConfig:
    """SMTP and Twilio credentials for confirmation messages."""

    smtp_host: str = os.getenv("SMTP_HOST", "smtp.hostinger.com")
    smtp_port: int = _safe_int("SMTP_PORT", "465")
    smtp_user: Optional[str] = os.getenv("SMTP_USER")
    smtp_password: Optional[str] = os.getenv("SMTP_PASS")
    smtp_from: Optional[str] = os.getenv("SMTP_FROM") or os.getenv("SMTP_USER")
    smtp_secure: bool = _safe_bool(
        "SMTP_SECURE", "true" if os.getenv("SMTP_PORT", "465") == "465" else "false"
    )
    twilio_account_sid: Optional[str] = os.getenv("TWILIO_ACCOUNT_SID")
    twilio_auth_token: Optional[str] = os.getenv("TWILIO_AUTH_TOKEN")
    twilio_from_number: Optional[str] = os.getenv("TWILIO_FROM_NUMBER")
    twilio_messaging_service_sid: Optional[str] = os.getenv("TWILIO_MESSAGING_SERVICE_SID")
    # Prefixed to numbers given without one, for Twilio's E.164 format.
    sms_default_country_code: str = os.getenv("SMS_DEFAULT_COUNTRY_CODE", "1")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    rules: BookingRulesConfig = field(default_factory=BookingRulesConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if config.model.nlu_timeout_sec <= 0:
        raise ValueError(
            f"NLU_TIMEOUT_SEC must be > 0, got {config.model.nlu_timeout_sec}"
        )
    if config.persistence.timeout_sec <= 0:
        raise ValueError(
            f"STORE_TIMEOUT_SEC must be > 0, got {config.persistence.timeout_sec}"
        )
    if config.rules.buffer_minutes < 0:
        raise ValueError(
            f"BUFFER_MINUTES must be >= 0, got {config.rules.buffer_minutes}"
        )
    if config.rules.same_day_min_lead_minutes < 0:
        raise ValueError(
            "SAME_DAY_MIN_LEAD_MINUTES must be >= 0, "
            f"got {config.rules.same_day_min_lead_minutes}"
        )
    if config.rules.slot_step_minutes < 1:
        raise ValueError(
            f"SLOT_STEP_MINUTES must be >= 1, got {config.rules.slot_step_minutes}"
        )
    if config.rules.max_suggestions < 0:
        raise ValueError(
            f"MAX_SUGGESTIONS must be >= 0, got {config.rules.max_suggestions}"
        )
    if not config.notifications.sms_default_country_code.isdigit():
        raise ValueError(
            "SMS_DEFAULT_COUNTRY_CODE must be digits only, "
            f"got {config.notifications.sms_default_country_code!r}"
        )
    if config.rules.max_message_length < 1:
        raise ValueError(
            f"MAX_MESSAGE_LENGTH must be >= 1, got {config.rules.max_message_length}"
        )
    if not 0 < config.notifications.smtp_port < 65536:
        raise ValueError(
            f"SMTP_PORT must be a valid port, got {config.notifications.smtp_port}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
