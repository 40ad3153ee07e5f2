from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from .errors import ConfigError

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_SESSION_URL = "http://localhost:3000"
DEFAULT_EVENTS_URL = "ws://localhost:3001"


@dataclass(frozen=True)
class BridgeSettings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    # None blocks until a consumer shows up.
    accept_timeout_s: Optional[float] = None
    session_url: str = DEFAULT_SESSION_URL
    events_url: str = DEFAULT_EVENTS_URL

    @property
    def address(self) -> tuple[str, int]:
        return self.host, self.port

    def with_overrides(self, **overrides: object) -> "BridgeSettings":
        """Return a copy with every non-None override applied."""

        changes = {key: value for key, value in overrides.items() if value is not None}
        settings = replace(self, **changes)
        _validate(settings)
        return settings


def _parse_port(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer") from exc
    return parsed


def _parse_optional_seconds(name: str) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number of seconds") from exc
    if parsed <= 0:
        raise ConfigError(f"{name} must be positive")
    return parsed


def _parse_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _validate(settings: BridgeSettings) -> None:
    if not 0 <= settings.port <= 65535:
        raise ConfigError(f"port must be in 0..65535, got {settings.port}")
    if not settings.host:
        raise ConfigError("host must not be empty")
    if settings.accept_timeout_s is not None and settings.accept_timeout_s <= 0:
        raise ConfigError("accept timeout must be positive")


def load_settings_from_env() -> BridgeSettings:
    settings = BridgeSettings(
        host=_parse_str("WA_BRIDGE_HOST", DEFAULT_HOST),
        port=_parse_port("WA_BRIDGE_PORT", DEFAULT_PORT),
        accept_timeout_s=_parse_optional_seconds("WA_BRIDGE_ACCEPT_TIMEOUT_S"),
        session_url=_parse_str("WA_BRIDGE_SESSION_URL", DEFAULT_SESSION_URL),
        events_url=_parse_str("WA_BRIDGE_EVENTS_URL", DEFAULT_EVENTS_URL),
    )
    _validate(settings)
    return settings
