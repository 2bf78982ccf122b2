from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "SYMBOLSYNC_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_LEVEL_ALIASES: dict[str, int] = {
    "CRITICAL": logging.CRITICAL,
    "FATAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "TRACE": logging.DEBUG,
    "QUIET": logging.ERROR,
}


def parse_log_level(value: str | None, default: int) -> int:
    """Parse a level name or number; unknown or empty values give `default`."""
    if not value:
        return default
    raw = value.strip()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    return _LEVEL_ALIASES.get(raw.upper().replace("-", "_"), default)


def resolve_log_level(verbose: bool = False, configured: str | None = None) -> int:
    """Pick the effective level: --verbose, then env, then config, then INFO."""
    if verbose:
        return logging.DEBUG
    env_value = os.environ.get(LOG_LEVEL_ENV)
    if env_value:
        return parse_log_level(env_value, logging.INFO)
    return parse_log_level(configured, logging.INFO)


def configure_logging(level: int) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("symbolsync").setLevel(level)
