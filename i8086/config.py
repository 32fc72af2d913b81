from __future__ import annotations

from dataclasses import dataclass
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_LOG_LEVEL = "WARNING"


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().casefold()
    return normalized not in {"0", "false", "off", ""}


def _env_log_level(name: str) -> str:
    level = (os.getenv(name) or DEFAULT_LOG_LEVEL).strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        logger.warning(
            "Ignoring %s=%r: not a logging level, using %s",
            name,
            level,
            DEFAULT_LOG_LEVEL,
        )
        return DEFAULT_LOG_LEVEL
    return level


@dataclass(frozen=True)
class DecoderConfig:
    trace: bool = False
    record_layout: bool = False
    log_level: str = DEFAULT_LOG_LEVEL


def load_decoder_config() -> DecoderConfig:
    return DecoderConfig(
        trace=_env_flag("I8086_DECODE_TRACE", default=False),
        record_layout=_env_flag("I8086_RECORD_LAYOUT", default=False),
        log_level=_env_log_level("I8086_LOG_LEVEL"),
    )


__all__ = ["DecoderConfig", "load_decoder_config"]
