"""
Central logging configuration for recurbot.

Configures console logging for the engine modules, quiets noisy third-party
loggers, and provides structured JSON monitoring events for the generation
queue and scheduler.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
import time
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Any, Optional

from colorlog import ColoredFormatter

MONITORING_LOGGER_NAME = "recurbot.monitoring"

SCHEMA_VERSION = "1.0"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

ENGINE_MODULES = [
    "recurbot",
    "recurbot.engine",
    "recurbot.generation_queue",
    "recurbot.scheduler",
    "recurbot.domain.pattern_engine",
    "recurbot.domain.instance_store",
    "recurbot.storage",
    MONITORING_LOGGER_NAME,
]

_LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

_rate_limiters: dict[str, deque] = defaultdict(lambda: deque(maxlen=100))
_rate_limit_lock = threading.Lock()


def _env_debug() -> bool:
    return os.getenv("RECURBOT_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def configure_engine_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for recurbot.

    Args:
        debug_mode: Whether to enable debug logging for recurbot modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        RECURBOT_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        RECURBOT_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_log_level = os.getenv("RECURBOT_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif _env_debug():
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none exist so host applications keep their setup.
    if not root_logger.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setLevel(root_level)
        handler.setFormatter(
            ColoredFormatter(
                "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s",
                datefmt="%H:%M:%S",
                log_colors=_LOG_COLORS,
            )
        )
        root_logger.addHandler(handler)

    logger_config: dict[str, int] = {
        "asyncio": logging.WARNING,
    }
    engine_level = logging.DEBUG if final_debug else logging.INFO
    for module in ENGINE_MODULES:
        logger_config[module] = engine_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for recurbot modules")
    else:
        root_logger.debug("Production logging configuration applied")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("recurbot", MONITORING_LOGGER_NAME, "asyncio"):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status


class MonitoringEntry:
    """Structured monitoring record with a stable schema."""

    def __init__(
        self,
        component: str,
        level: str,
        event: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize monitoring entry.

        Args:
            component: Component name (queue|scheduler|engine)
            level: Log level (DEBUG|INFO|WARN|ERROR|CRITICAL)
            event: Short event code (e.g., "queue.drain.complete")
            message: Human readable description
            details: Additional context data
        """
        self.timestamp = datetime.now(timezone.utc)
        self.component = component
        self.level = level.upper()
        self.event = event
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "component": self.component,
            "level": self.level,
            "event": self.event,
            "message": self.message,
            "details": self.details,
            "schema_version": SCHEMA_VERSION,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)


class RateLimiter:
    """Rate limiting for repeated monitoring events."""

    @staticmethod
    def should_log(event_key: str, max_per_minute: int = 5) -> bool:
        """Return True if the event is under its per-minute budget."""
        with _rate_limit_lock:
            now = time.time()
            events = _rate_limiters[event_key]
            while events and now - events[0] > 60:
                events.popleft()
            if len(events) < max_per_minute:
                events.append(now)
                return True
            return False

    @staticmethod
    def reset() -> None:
        with _rate_limit_lock:
            _rate_limiters.clear()


def log_monitoring_event(
    event: str,
    message: str,
    level: str = "INFO",
    details: Optional[dict[str, Any]] = None,
    component: str = "engine",
    rate_limit_key: Optional[str] = None,
) -> Optional[MonitoringEntry]:
    """Emit a structured JSON monitoring event.

    Args:
        event: Short event code
        message: Human readable description
        level: Log level name
        details: Additional context data
        component: Emitting component
        rate_limit_key: When set, at most five events per minute share this key

    Returns:
        The entry that was logged, or None if it was rate limited
    """
    if rate_limit_key is not None and not RateLimiter.should_log(rate_limit_key):
        return None
    entry = MonitoringEntry(component, level, event, message, details)
    logging.getLogger(MONITORING_LOGGER_NAME).log(
        LOG_LEVELS.get(entry.level, logging.INFO), entry.to_json()
    )
    return entry
