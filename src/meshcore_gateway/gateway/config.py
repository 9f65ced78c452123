from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_AI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_AI_MODEL = "gpt-4o-mini"


@dataclass(slots=True)
class AiGateConfig:
    endpoint: str = DEFAULT_AI_ENDPOINT
    api_key: str | None = None
    model: str = DEFAULT_AI_MODEL
    system_prompt: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    timeout: float = 30.0
    # set when AI_API or AI_API_KEY is present in the environment
    enabled: bool = False


@dataclass(slots=True)
class GatewayConfig:
    device: str | None = None
    baudrate: int = 115_200
    reconnect_delay_ms: int = 0
    http_host: str = "localhost"
    http_port: int = 8080
    http_api: str = "/api"
    bot_channels: frozenset[int] = frozenset()
    translate_from_channels: frozenset[int] = frozenset()
    translate_to_channel: int | None = None
    translate_language: str = "English"
    sqlite_db: str | None = None
    sqlite_journal_mode: str = "wal"
    mock: bool = False
    ai: AiGateConfig = field(default_factory=AiGateConfig)

    @property
    def reconnect_delay(self) -> float:
        """Reconnect delay in seconds; 0 disables reconnection."""
        return max(self.reconnect_delay_ms, 0) / 1000

    def to_log_string(self) -> str:
        return (
            f"device={self.device} baudrate={self.baudrate} "
            f"reconnect_delay_ms={self.reconnect_delay_ms} "
            f"http={self.http_host}:{self.http_port}{self.http_api} "
            f"bot_channels={sorted(self.bot_channels)} "
            f"translate_from={sorted(self.translate_from_channels)} "
            f"translate_to={self.translate_to_channel} "
            f"ai_model={self.ai.model} ai_enabled={self.ai.enabled} "
            f"sqlite_db={self.sqlite_db or '<default>'} mock={self.mock}"
        )


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, value)
        return default


def _env_optional_int(name: str) -> int | None:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, value)
        return None


def _env_float(name: str) -> float | None:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, value)
        return None


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int_set(name: str) -> frozenset[int]:
    """Parse a comma-separated list of channel indices."""
    value = os.environ.get(name, "")
    indices: set[int] = set()
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            indices.add(int(part))
        except ValueError:
            logger.warning("Ignoring %s entry %r: not a channel index", name, part)
    return frozenset(indices)


def load_ai_config() -> AiGateConfig:
    return AiGateConfig(
        endpoint=_env_str("AI_API", DEFAULT_AI_ENDPOINT) or DEFAULT_AI_ENDPOINT,
        api_key=_env_str("AI_API_KEY"),
        model=_env_str("AI_MODEL", DEFAULT_AI_MODEL) or DEFAULT_AI_MODEL,
        system_prompt=_env_str("AI_SYSTEM_PROMPT", "") or "",
        temperature=_env_float("AI_TEMPERATURE"),
        max_tokens=_env_optional_int("AI_MAX_TOKENS"),
        timeout=_env_float("AI_TIMEOUT") or 30.0,
        enabled=bool(_env_str("AI_API") or _env_str("AI_API_KEY")),
    )


def load_config() -> GatewayConfig:
    return GatewayConfig(
        device=_env_str("MESHCORE_DEVICE"),
        baudrate=_env_int("MESHCORE_BAUDRATE", 115_200),
        reconnect_delay_ms=_env_int("RECONNECT_DELAY", 0),
        http_host=_env_str("HTTP_HOST", "localhost") or "localhost",
        http_port=_env_int("HTTP_PORT", 8080),
        http_api=_env_str("HTTP_API", "/api") or "/api",
        bot_channels=_env_int_set("BOT_CHANNELS"),
        translate_from_channels=_env_int_set("TRANSLATE_FROM_CHANNELS"),
        translate_to_channel=_env_optional_int("TRANSLATE_TO_CHANNEL"),
        translate_language=_env_str("TRANSLATE_LANGUAGE", "English") or "English",
        sqlite_db=_env_str("SQLITE_DB"),
        sqlite_journal_mode=_env_str("SQLITE_JOURNAL_MODE", "wal") or "wal",
        mock=_env_bool("MESHCORE_MOCK", False),
        ai=load_ai_config(),
    )
