"""Configuration management for statement-ingest."""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Default config filename
CONFIG_FILENAME = "config.json"
APP_DIRNAME = "statement-ingest"

ENV_API_URL = "STATEMENT_INGEST_API_URL"
ENV_API_KEY = "STATEMENT_INGEST_API_KEY"
ENV_DATABASE_URL = "STATEMENT_INGEST_DATABASE_URL"
ENV_TIMEOUT = "STATEMENT_INGEST_TIMEOUT"

DEFAULT_TIMEOUT = 60.0
DEFAULT_CURRENCY = "INR"


@dataclass(frozen=True)
class ExtractionSettings:
    """Settings for the remote provider and the coordinator."""

    api_url: str | None
    api_key: str | None
    timeout: float
    provider_timeout: float | None


@dataclass(frozen=True)
class OcrSettings:
    """Settings for the on-device fallback."""

    min_words_per_page: int = 25
    dpi: int = 250
    language: str = "eng"


@dataclass(frozen=True)
class CardMapping:
    """Maps the last four digits printed on statements to a card identifier."""

    last_four_digits: str
    card_id: str
    issuer: str | None = None

    def matches(self, last_four_digits: str | None, issuer: str | None = None) -> bool:
        """Check if statement card details belong to this card."""
        if not last_four_digits or last_four_digits.strip() != self.last_four_digits:
            return False
        if self.issuer and issuer:
            return self.issuer.casefold() == issuer.casefold()
        return True


def get_config_dir() -> Path:
    """Get the config directory path (XDG compliant)."""
    xdg_config_home = os.getenv("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(xdg_config_home) / APP_DIRNAME


def get_data_dir() -> Path:
    """Get the data directory path (XDG compliant)."""
    xdg_data_home = os.getenv("XDG_DATA_HOME", str(Path.home() / ".local" / "share"))
    return Path(xdg_data_home) / APP_DIRNAME


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_config_dir() / CONFIG_FILENAME


def find_config_file() -> Path | None:
    """Find the config file in standard locations.

    Searches for config in the following order:
    1. config.json in current directory
    2. XDG config: ~/.config/statement-ingest/config.json
    """
    config_paths = [
        Path(CONFIG_FILENAME),
        get_config_path(),
    ]

    for path in config_paths:
        if path.exists():
            return path

    return None


def load_json_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(config_path) as f:
        return json.load(f)  # type: ignore[no-any-return]


def save_json_config(config: dict[str, Any], config_path: Path | None = None) -> Path:
    """Save configuration to a JSON file.

    Args:
        config: Configuration dictionary to save
        config_path: Path to save to (defaults to XDG config location)

    Returns:
        Path where config was saved
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        json.dump(config, f, indent=2)
        f.write("\n")

    return config_path


def load_config(config_path: Path | None = None) -> dict[str, Any] | None:
    """Load configuration from config file.

    Args:
        config_path: Explicit path to config.json file

    Returns:
        Loaded config dict or None if not found
    """
    if config_path:
        return load_json_config(config_path)

    config_file = find_config_file()
    if config_file:
        return load_json_config(config_file)

    return None


def config_exists() -> bool:
    """Check if any config file exists."""
    return find_config_file() is not None


def get_extraction_settings(config: dict[str, Any] | None = None) -> ExtractionSettings:
    """Get remote extraction settings, environment variables taking precedence.

    Args:
        config: Loaded JSON config

    Returns:
        ExtractionSettings; api_url is None when no remote provider is set up
    """
    section = (config or {}).get("extraction", {})

    timeout = os.getenv(ENV_TIMEOUT) or section.get("timeout") or DEFAULT_TIMEOUT
    provider_timeout = section.get("provider_timeout")

    return ExtractionSettings(
        api_url=os.getenv(ENV_API_URL) or section.get("api_url"),
        api_key=os.getenv(ENV_API_KEY) or section.get("api_key"),
        timeout=float(timeout),
        provider_timeout=float(provider_timeout) if provider_timeout is not None else None,
    )


def get_ocr_settings(config: dict[str, Any] | None = None) -> OcrSettings:
    """Get fallback OCR settings."""
    section = (config or {}).get("ocr", {})
    defaults = OcrSettings()
    return OcrSettings(
        min_words_per_page=int(section.get("min_words_per_page", defaults.min_words_per_page)),
        dpi=int(section.get("dpi", defaults.dpi)),
        language=section.get("language", defaults.language),
    )


def get_database_url(
    config: dict[str, Any] | None = None,
    override: str | None = None,
) -> str:
    """Get the database URL.

    Args:
        config: Loaded JSON config
        override: Optional URL to use instead of environment and config

    Returns:
        SQLAlchemy URL; a SQLite file in the XDG data directory by default
    """
    if override:
        return override

    if url := os.getenv(ENV_DATABASE_URL):
        return url

    if config:
        if url := config.get("database", {}).get("url"):
            return url  # type: ignore[no-any-return]

    db_file = get_data_dir() / "statements.db"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+pysqlite:///{db_file}"


def get_default_currency(config: dict[str, Any] | None = None) -> str:
    """Settlement currency assumed when a statement does not print one."""
    if config and (currency := config.get("default_currency")):
        return str(currency).upper()
    return DEFAULT_CURRENCY


def get_card_mappings(config: dict[str, Any] | None = None) -> list[CardMapping]:
    """Get card mappings from config.

    Args:
        config: Loaded JSON config

    Returns:
        List of CardMapping objects
    """
    if not config or "cards" not in config:
        return []

    mappings = []
    for card in config["cards"]:
        mappings.append(
            CardMapping(
                last_four_digits=str(card["last4"]),
                card_id=card["id"],
                issuer=card.get("issuer"),
            )
        )
    return mappings


def resolve_card_id(
    last_four_digits: str | None,
    issuer: str | None = None,
    config: dict[str, Any] | None = None,
) -> str | None:
    """Find the configured card a statement belongs to.

    Returns:
        Card identifier, or None if no configured card matches
    """
    for mapping in get_card_mappings(config):
        if mapping.matches(last_four_digits, issuer):
            return mapping.card_id
    return None


def create_default_config() -> dict[str, Any]:
    """Create a default empty configuration."""
    return {
        "extraction": {
            "api_url": None,
            "api_key": None,
            "timeout": DEFAULT_TIMEOUT,
            "provider_timeout": None,
        },
        "ocr": {
            "min_words_per_page": 25,
            "dpi": 250,
            "language": "eng",
        },
        "database": {
            "url": None,
        },
        "default_currency": DEFAULT_CURRENCY,
        "cards": [],
    }
