"""
Configuration management (SSOT).

This module defines ALL configuration for the sync application.
All config keys are defined here; no other module should invent config keys.

Precedence: environment variables > YAML file > defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

KNOWN_SOURCES = ("fintoc", "gmail")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid configuration: " + "; ".join(errors))


@dataclass
class LunchMoneyConfig:
    """Lunch Money (target system) configuration."""

    token: str = ""
    base_url: str = "https://dev.lunchmoney.app/v1"
    # Restrict duplicate checks and inserts to one asset (account)
    asset_id: int | None = None


@dataclass
class FintocConfig:
    """Fintoc bank-aggregator configuration."""

    api_key: str = ""
    link_id: str = ""
    base_url: str = "https://api.fintoc.com/v1"


@dataclass
class GmailConfig:
    """Gmail OAuth configuration for notification-email parsing."""

    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""
    user: str = "me"


@dataclass
class HTTPConfig:
    """Transport settings shared by all API clients."""

    timeout: int = 30
    max_retries: int = 3
    backoff_factor: float = 0.5


@dataclass
class SyncConfig:
    """Sync run settings."""

    # Where movements come from: fintoc or gmail
    source: str = "fintoc"
    # Days of history to sync (and to check for duplicates)
    days_to_sync: int = 7
    currency: str = "CLP"
    # Manual rules: payee substring → category name (first match wins)
    category_rules: dict[str, str] = field(default_factory=dict)
    # Lunch Money accepts at most 50 transactions per insert
    batch_size: int = 50
    # Start of history used by rebuild-memory
    history_start_date: str = "2023-01-01"


@dataclass
class Config:
    """Application configuration (SSOT)."""

    lunchmoney: LunchMoneyConfig = field(default_factory=LunchMoneyConfig)
    fintoc: FintocConfig = field(default_factory=FintocConfig)
    gmail: GmailConfig = field(default_factory=GmailConfig)
    http: HTTPConfig = field(default_factory=HTTPConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    memory_path: Path = field(default_factory=lambda: Path("data/categorization_memory.json"))

    def validate(self, require_source: bool = True) -> list[str]:
        """Validate configuration completeness and consistency.

        Args:
            require_source: Also check credentials of the selected source

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.lunchmoney.token:
            errors.append("lunchmoney.token is required (LUNCHMONEY_TOKEN)")

        if self.sync.source not in KNOWN_SOURCES:
            errors.append(
                f"sync.source must be one of {', '.join(KNOWN_SOURCES)}, got '{self.sync.source}'"
            )
        elif require_source:
            if self.sync.source == "fintoc":
                if not self.fintoc.api_key or not self.fintoc.link_id:
                    errors.append(
                        "fintoc.api_key and fintoc.link_id are required "
                        "(FINTOC_API_KEY, FINTOC_LINK_ID)"
                    )
            elif not (
                self.gmail.client_id and self.gmail.client_secret and self.gmail.refresh_token
            ):
                errors.append(
                    "gmail.client_id, gmail.client_secret and gmail.refresh_token are required "
                    "(GMAIL_CLIENT_ID, GMAIL_CLIENT_SECRET, GMAIL_REFRESH_TOKEN)"
                )

        if self.sync.days_to_sync < 1:
            errors.append("sync.days_to_sync must be >= 1")
        if not 1 <= self.sync.batch_size <= 50:
            errors.append("sync.batch_size must be between 1 and 50")

        return errors


def _int_or_none(value) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - LUNCHMONEY_TOKEN
    - LUNCHMONEY_ASSET_ID (or LM_ASSET_ID)
    - FINTOC_API_KEY
    - FINTOC_LINK_ID
    - GMAIL_CLIENT_ID, GMAIL_CLIENT_SECRET, GMAIL_REFRESH_TOKEN
    - SYNC_SOURCE (fintoc/gmail)
    - DAYS_TO_SYNC
    - CURRENCY_CODE
    - MEMORY_PATH
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Lunch Money config
    lm_data = data.get("lunchmoney", {})
    asset_env = os.environ.get("LUNCHMONEY_ASSET_ID") or os.environ.get("LM_ASSET_ID")
    lunchmoney = LunchMoneyConfig(
        token=os.environ.get("LUNCHMONEY_TOKEN", lm_data.get("token", "")),
        base_url=lm_data.get("base_url", "https://dev.lunchmoney.app/v1"),
        asset_id=_int_or_none(asset_env or lm_data.get("asset_id")),
    )

    # Fintoc config
    fintoc_data = data.get("fintoc", {})
    fintoc = FintocConfig(
        api_key=os.environ.get("FINTOC_API_KEY", fintoc_data.get("api_key", "")),
        link_id=os.environ.get("FINTOC_LINK_ID", fintoc_data.get("link_id", "")),
        base_url=fintoc_data.get("base_url", "https://api.fintoc.com/v1"),
    )

    # Gmail config
    gmail_data = data.get("gmail", {})
    gmail = GmailConfig(
        client_id=os.environ.get("GMAIL_CLIENT_ID", gmail_data.get("client_id", "")),
        client_secret=os.environ.get("GMAIL_CLIENT_SECRET", gmail_data.get("client_secret", "")),
        refresh_token=os.environ.get("GMAIL_REFRESH_TOKEN", gmail_data.get("refresh_token", "")),
        user=gmail_data.get("user", "me"),
    )

    # HTTP config
    http_data = data.get("http", {})
    http = HTTPConfig(
        timeout=http_data.get("timeout", 30),
        max_retries=http_data.get("max_retries", 3),
        backoff_factor=http_data.get("backoff_factor", 0.5),
    )

    # Sync config
    sync_data = data.get("sync", {})
    days_to_sync = sync_data.get("days_to_sync", 7)
    days_env = os.environ.get("DAYS_TO_SYNC", "")
    if days_env:
        try:
            days_to_sync = int(days_env)
        except ValueError:
            pass  # Keep file/default value

    sync = SyncConfig(
        source=os.environ.get("SYNC_SOURCE", sync_data.get("source", "fintoc")).lower(),
        days_to_sync=days_to_sync,
        currency=os.environ.get("CURRENCY_CODE", sync_data.get("currency", "CLP")),
        category_rules=dict(sync_data.get("category_rules") or {}),
        batch_size=sync_data.get("batch_size", 50),
        history_start_date=str(sync_data.get("history_start_date", "2023-01-01")),
    )

    memory_path = os.environ.get(
        "MEMORY_PATH", data.get("memory_path", "data/categorization_memory.json")
    )

    return Config(
        lunchmoney=lunchmoney,
        fintoc=fintoc,
        gmail=gmail,
        http=http,
        sync=sync,
        memory_path=Path(memory_path),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Bank → Lunch Money Sync Configuration
#
# Secrets can be set here or through environment variables
# (LUNCHMONEY_TOKEN, FINTOC_API_KEY, FINTOC_LINK_ID, GMAIL_* ...).

lunchmoney:
  token: "YOUR_LUNCHMONEY_TOKEN"
  asset_id: null                           # Optional: restrict to one account

fintoc:
  api_key: "YOUR_FINTOC_SECRET_KEY"
  link_id: "YOUR_FINTOC_ACCOUNT_ID"

gmail:
  client_id: ""
  client_secret: ""
  refresh_token: ""
  user: "me"

sync:
  source: "fintoc"                         # fintoc or gmail
  days_to_sync: 7
  currency: "CLP"
  batch_size: 50                           # Lunch Money limit
  history_start_date: "2023-01-01"         # Used by rebuild-memory
  category_rules:                          # Payee substring → category (first match wins)
    "uber": "Transport"
    "lider": "Groceries"

http:
  timeout: 30
  max_retries: 3
  backoff_factor: 0.5

# Learned payee → category associations
memory_path: "data/categorization_memory.json"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
