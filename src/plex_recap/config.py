from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import tomllib

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    tautulli_url: str
    tautulli_api_key: str
    plex_url: str | None
    plex_token: str | None
    plex_server_name: str
    overseerr_url: str | None
    overseerr_api_key: str | None
    timezone: str
    source_timeout_seconds: float
    http_timeout_seconds: float
    top_content_limit: int
    leaderboard_title_limit: int
    log_level: str
    running_in_docker: bool
    config_path: str

    @property
    def plex_enabled(self) -> bool:
        return bool(self.plex_url and self.plex_token)

    @property
    def overseerr_enabled(self) -> bool:
        return bool(self.overseerr_url and self.overseerr_api_key)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_settings() -> Settings:
    running_in_docker = _env_bool("RUNNING_IN_DOCKER", False)

    # Local development convenience: auto-load .env only outside Docker.
    if not running_in_docker:
        load_dotenv(override=False)

    config_path = os.getenv("CONFIG_PATH") or _default_config_path(running_in_docker)
    config_values = _load_config(Path(config_path))

    tautulli_url = _pick_str("TAUTULLI_URL", "tautulli.url", config_values)
    tautulli_api_key = _pick_str("TAUTULLI_API_KEY", "tautulli.api_key", config_values)

    if not tautulli_url:
        raise RuntimeError("Missing required configuration value: TAUTULLI_URL")
    if not tautulli_api_key:
        raise RuntimeError("Missing required configuration value: TAUTULLI_API_KEY")

    timezone = _pick_str("TIMEZONE", "recap.timezone", config_values, default="UTC")
    ZoneInfo(timezone)

    source_timeout_seconds = _pick_float(
        "SOURCE_TIMEOUT_SECONDS",
        "recap.source_timeout_seconds",
        config_values,
        default=300.0,
    )
    if source_timeout_seconds <= 0:
        raise RuntimeError("SOURCE_TIMEOUT_SECONDS must be positive")

    return Settings(
        tautulli_url=tautulli_url.rstrip("/"),
        tautulli_api_key=tautulli_api_key,
        plex_url=_strip_url(_pick_optional("PLEX_URL", "plex.url", config_values)),
        plex_token=_pick_optional("PLEX_TOKEN", "plex.token", config_values),
        plex_server_name=_pick_str("PLEX_SERVER_NAME", "plex.server_name", config_values, default="Plex"),
        overseerr_url=_strip_url(_pick_optional("OVERSEERR_URL", "overseerr.url", config_values)),
        overseerr_api_key=_pick_optional("OVERSEERR_API_KEY", "overseerr.api_key", config_values),
        timezone=timezone,
        source_timeout_seconds=source_timeout_seconds,
        http_timeout_seconds=_pick_float(
            "HTTP_TIMEOUT_SECONDS",
            "runtime.http_timeout_seconds",
            config_values,
            default=30.0,
        ),
        top_content_limit=_pick_int("TOP_CONTENT_LIMIT", "recap.top_content_limit", config_values, default=10),
        leaderboard_title_limit=_pick_int(
            "LEADERBOARD_TITLE_LIMIT",
            "recap.leaderboard_title_limit",
            config_values,
            default=5,
        ),
        log_level=_pick_str("LOG_LEVEL", "runtime.log_level", config_values, default="INFO"),
        running_in_docker=running_in_docker,
        config_path=config_path,
    )


def _default_config_path(running_in_docker: bool) -> str:
    if running_in_docker:
        return "/config/config.toml"
    return str(Path.cwd() / "config.toml")


def _strip_url(value: str | None) -> str | None:
    return value.rstrip("/") if value else value


def _load_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        parsed = tomllib.load(handle)
    return _flatten(parsed)


def _flatten(payload: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in payload.items():
        dotted = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            out.update(_flatten(value, dotted))
        else:
            out[dotted] = value
    return out


def _pick_optional(env_key: str, cfg_key: str, cfg: dict[str, Any]) -> str | None:
    env_val = os.getenv(env_key)
    if env_val not in {None, ""}:
        return env_val
    cfg_val = cfg.get(cfg_key)
    if cfg_val in {None, ""}:
        return None
    return str(cfg_val)


def _pick_str(env_key: str, cfg_key: str, cfg: dict[str, Any], default: str | None = None) -> str:
    picked = _pick_optional(env_key, cfg_key, cfg)
    if picked is None:
        return "" if default is None else default
    return picked


def _pick_int(env_key: str, cfg_key: str, cfg: dict[str, Any], default: int) -> int:
    env_val = os.getenv(env_key)
    if env_val not in {None, ""}:
        return int(env_val)
    cfg_val = cfg.get(cfg_key)
    if cfg_val is None:
        return default
    return int(cfg_val)


def _pick_float(env_key: str, cfg_key: str, cfg: dict[str, Any], default: float) -> float:
    env_val = os.getenv(env_key)
    if env_val not in {None, ""}:
        return float(env_val)
    cfg_val = cfg.get(cfg_key)
    if cfg_val is None:
        return default
    return float(cfg_val)


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value in {None, ""}:
        return default
    return _to_bool(value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    return lowered in {"1", "true", "yes", "on"}
