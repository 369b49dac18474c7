"""
Configuration management for the Qoyod bridge.

Loads settings from environment variables (and a local .env file) with
sensible defaults.
"""
from __future__ import annotations
import os
import sys
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv
from loguru import logger

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


@dataclass
class BridgeConfig:
    """Configuration settings for the Qoyod bridge."""

    # Ledger API connection
    ledger_base_url: str = field(
        default_factory=lambda: os.getenv("QOYOD_BASE_URL", "https://api.qoyod.com/2.0")
    )
    api_key: str = field(default_factory=lambda: os.getenv("QOYOD_API_KEY", ""))
    request_timeout: int = field(
        default_factory=lambda: int(os.getenv("LEDGER_REQUEST_TIMEOUT", "30"))
    )

    # Ledger conventions
    utc_offset_hours: int = field(
        default_factory=lambda: int(os.getenv("LEDGER_UTC_OFFSET_HOURS", "3"))
    )
    paid_status: str = field(default_factory=lambda: os.getenv("LEDGER_PAID_STATUS", "Paid"))

    # Return policy
    # Unset means a return on an invoice without any inventory fails fast.
    # Setting it attributes such returns to this warehouse.
    default_inventory_id: Optional[str] = field(
        default_factory=lambda: _env_optional("DEFAULT_INVENTORY_ID")
    )
    link_parent_invoice: bool = field(
        default_factory=lambda: _env_bool("CREDIT_NOTE_LINK_PARENT")
    )

    # HTTP surface
    app_password: Optional[str] = field(default_factory=lambda: _env_optional("APP_PASSWORD"))
    static_dir: str = field(default_factory=lambda: os.getenv("STATIC_DIR", "public"))
    cors_origins: list[str] = field(default_factory=_parse_origins)
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3000")))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: _env_optional("BRIDGE_LOG_FILE"))

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        """Create config from environment variables."""
        return cls()

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []
        if not self.ledger_base_url:
            errors.append("QOYOD_BASE_URL is required")
        if not self.api_key:
            errors.append("QOYOD_API_KEY is required")
        if self.request_timeout <= 0:
            errors.append("LEDGER_REQUEST_TIMEOUT must be positive")
        if not -12 <= self.utc_offset_hours <= 14:
            errors.append("LEDGER_UTC_OFFSET_HOURS must be between -12 and 14")
        return errors


def configure_logging(config: BridgeConfig) -> None:
    """Replace loguru's default sink with the configured level and optional file."""
    logger.remove()
    logger.add(sys.stderr, level=config.log_level.upper())
    if config.log_file:
        logger.add(config.log_file, level=config.log_level.upper(), rotation="10 MB", retention=5)
