from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import yaml
from dotenv import load_dotenv

from utils.colors import parse_hex_color
from utils.constants import MAX_LEADERBOARD_SIZE

DEFAULT_EMBED_COLOR = 0x5865F2
DEFAULT_EXTENSIONS = ("cogs.tickets",)

T = TypeVar("T")


class ConfigError(RuntimeError):
    pass


@dataclass(slots=True)
class DiscordConfig:
    token: str
    prefix: str = "!"
    application_id: int | None = None
    sync_commands_on_start: bool = True
    status_text: str = "Support tickets"
    activity_type: str = "watching"


@dataclass(slots=True)
class DatabaseConfig:
    url: str = "sqlite:///./data/tickets.db"
    pool_min_size: int = 2
    pool_max_size: int = 10
    timeout_seconds: int = 30


@dataclass(slots=True)
class RedisConfig:
    enabled: bool = False
    url: str = "redis://localhost:6379/0"
    default_ttl: int = 120


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    directory: str = "logs"
    file_name: str = "bot.log"
    max_bytes: int = 10_000_000
    backup_count: int = 10
    json_console: bool = False


@dataclass(slots=True)
class DashboardConfig:
    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 3000
    api_key: str = ""
    origin: str = ""


@dataclass(slots=True)
class I18NConfig:
    default_locale: str = "en-US"
    supported_locales: list[str] = field(default_factory=lambda: ["en-US", "ar"])


@dataclass(slots=True)
class TicketsConfig:
    close_delay_seconds: float = 3.0
    default_embed_color: int = DEFAULT_EMBED_COLOR
    default_select_placeholder: str = "Choose a ticket type"
    leaderboard_max: int = MAX_LEADERBOARD_SIZE


@dataclass(slots=True)
class AppConfig:
    discord: DiscordConfig
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    i18n: I18NConfig = field(default_factory=I18NConfig)
    tickets: TicketsConfig = field(default_factory=TicketsConfig)
    enabled_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class _Settings:
    """Resolves a setting from the environment first, then the YAML mapping."""

    def __init__(self, raw: dict[str, Any]) -> None:
        self.raw = raw

    def _from_yaml(self, section: str, key: str) -> Any:
        node = self.raw.get(section)
        if not isinstance(node, dict):
            return None
        return node.get(key)

    def get(
        self,
        section: str,
        key: str,
        default: T,
        cast: Callable[[Any], T],
        env: str | None = None,
    ) -> T:
        value: Any = None
        if env is not None:
            env_value = (os.getenv(env) or "").strip()
            value = env_value or None
        if value is None:
            value = self._from_yaml(section, key)
        if value is None:
            return default
        try:
            return cast(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value for {section}.{key}: {value!r}") from exc


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def _discord_section(settings: _Settings) -> DiscordConfig:
    token = settings.get("discord", "token", "", str, env="DISCORD_TOKEN")
    if not token or "${" in token:
        raise ConfigError("DISCORD_TOKEN is required")
    return DiscordConfig(
        token=token,
        prefix=settings.get("discord", "prefix", "!", str, env="BOT_PREFIX"),
        application_id=settings.get("discord", "application_id", None, int, env="DISCORD_APPLICATION_ID"),
        sync_commands_on_start=settings.get("discord", "sync_commands_on_start", True, parse_bool, env="SYNC_COMMANDS"),
        status_text=settings.get("discord", "status_text", "Support tickets", str),
        activity_type=settings.get("discord", "activity_type", "watching", str).lower(),
    )


def _database_section(settings: _Settings) -> DatabaseConfig:
    database = DatabaseConfig(
        url=settings.get("database", "url", "sqlite:///./data/tickets.db", str, env="DATABASE_URL"),
        pool_min_size=settings.get("database", "pool_min_size", 2, int, env="DB_POOL_MIN"),
        pool_max_size=settings.get("database", "pool_max_size", 10, int, env="DB_POOL_MAX"),
        timeout_seconds=settings.get("database", "timeout_seconds", 30, int, env="DB_TIMEOUT_SECONDS"),
    )
    if database.pool_min_size > database.pool_max_size:
        raise ConfigError("database.pool_min_size cannot exceed database.pool_max_size")
    return database


def _redis_section(settings: _Settings) -> RedisConfig:
    return RedisConfig(
        enabled=settings.get("redis", "enabled", False, parse_bool, env="REDIS_ENABLED"),
        url=settings.get("redis", "url", "redis://localhost:6379/0", str, env="REDIS_URL"),
        default_ttl=settings.get("redis", "default_ttl", 120, int, env="REDIS_DEFAULT_TTL"),
    )


def _logging_section(settings: _Settings) -> LoggingConfig:
    return LoggingConfig(
        level=settings.get("logging", "level", "INFO", str, env="LOG_LEVEL"),
        directory=settings.get("logging", "directory", "logs", str),
        file_name=settings.get("logging", "file_name", "bot.log", str),
        max_bytes=settings.get("logging", "max_bytes", 10_000_000, int),
        backup_count=settings.get("logging", "backup_count", 10, int),
        json_console=settings.get("logging", "json_console", False, parse_bool),
    )


def _dashboard_section(settings: _Settings) -> DashboardConfig:
    dashboard = DashboardConfig(
        enabled=settings.get("dashboard", "enabled", False, parse_bool, env="DASHBOARD_ENABLED"),
        host=settings.get("dashboard", "host", "0.0.0.0", str, env="HOST"),
        port=settings.get("dashboard", "port", 3000, int, env="PORT"),
        api_key=settings.get("dashboard", "api_key", "", str, env="DASHBOARD_API_KEY"),
        origin=settings.get("dashboard", "origin", "", str, env="DASHBOARD_ORIGIN"),
    )
    if not 0 < dashboard.port < 65536:
        raise ConfigError(f"dashboard.port must be between 1 and 65535, got {dashboard.port}")
    return dashboard


def _i18n_section(settings: _Settings) -> I18NConfig:
    default_locale = settings.get("i18n", "default_locale", "en-US", str)
    supported = settings.get("i18n", "supported_locales", ["en-US", "ar"], lambda rows: [str(row) for row in rows])
    if default_locale not in supported:
        supported.insert(0, default_locale)
    return I18NConfig(default_locale=default_locale, supported_locales=supported)


def _tickets_section(settings: _Settings) -> TicketsConfig:
    tickets = TicketsConfig(
        close_delay_seconds=settings.get("tickets", "close_delay_seconds", 3.0, float),
        default_embed_color=settings.get("tickets", "default_embed_color", DEFAULT_EMBED_COLOR, parse_hex_color),
        default_select_placeholder=settings.get(
            "tickets", "default_select_placeholder", "Choose a ticket type", str
        ),
        leaderboard_max=settings.get("tickets", "leaderboard_max", MAX_LEADERBOARD_SIZE, int),
    )
    if tickets.close_delay_seconds < 0:
        raise ConfigError("tickets.close_delay_seconds cannot be negative")
    if not 1 <= tickets.leaderboard_max <= MAX_LEADERBOARD_SIZE:
        raise ConfigError(f"tickets.leaderboard_max must be between 1 and {MAX_LEADERBOARD_SIZE}")
    return tickets


def load_config(config_path: Path) -> AppConfig:
    load_dotenv(config_path.parent.parent / ".env")
    raw = _load_yaml(config_path)
    settings = _Settings(raw)

    extensions = raw.get("enabled_extensions")
    if extensions is None:
        extensions = list(DEFAULT_EXTENSIONS)
    elif not isinstance(extensions, list):
        raise ConfigError("enabled_extensions must be a list of module paths")

    return AppConfig(
        discord=_discord_section(settings),
        database=_database_section(settings),
        redis=_redis_section(settings),
        logging=_logging_section(settings),
        dashboard=_dashboard_section(settings),
        i18n=_i18n_section(settings),
        tickets=_tickets_section(settings),
        enabled_extensions=[str(ext) for ext in extensions],
    )
