"""
tidelog - leveled logging with console and daily rotating file sinks

Provides:
- Syslog levels (emergency ... debug) with chainable runtime level changes
- Colorized console output with timestamps and fixed-width labels
- Daily rotating file sinks with size limits, gzip and retention
- ASGI access log middleware writing to its own rotating file

Usage:
    import tidelog

    logger = tidelog.create()
    logger.info("Operation completed", {"duration": 1.5})
    logger.less().less()

Configuration:
    # Via environment variables
    export TIDELOG_ENV=production
    export TIDELOG_LEVEL=info

    # Via configuration file
    logger = tidelog.create("tidelog.yml")
"""

import sys
from typing import Optional

from tidelog.config import LoggingConfig, RotationConfig, build_rotation_config
from tidelog.dispatcher import SinkDispatcher
from tidelog.exceptions import InvalidDestinationError, InvalidLevelError, LoggerError, SinkRegistrationError
from tidelog.formatters import (
    BannerStyle,
    LogEntry,
    colorize_formatter,
    label_formatter,
    render_banner,
    timestamp_formatter,
)
from tidelog.levels import LEVELS, LevelDescriptor, find_level
from tidelog.logger import Logger
from tidelog.middleware import AccessLogMiddleware, LogStream
from tidelog.sinks import CONSOLE_SINK, ConsoleSink, RotatingFileSink, Sink

__version__ = "1.0.0"

__all__ = [
    "AccessLogMiddleware",
    "BannerStyle",
    "CONSOLE_SINK",
    "ConsoleSink",
    "InvalidDestinationError",
    "InvalidLevelError",
    "LEVELS",
    "LevelDescriptor",
    "LogEntry",
    "LogStream",
    "Logger",
    "LoggerError",
    "LoggingConfig",
    "RotatingFileSink",
    "RotationConfig",
    "Sink",
    "SinkDispatcher",
    "SinkRegistrationError",
    "build_rotation_config",
    "colorize_formatter",
    "create",
    "find_level",
    "label_formatter",
    "render_banner",
    "timestamp_formatter",
]


def create(config_path: Optional[str] = None, stream=None, **overrides) -> Logger:
    """
    Create a new logger instance.

    Each call returns an independent logger; callers own its lifetime and
    should call close() when done.

    Args:
        config_path: Path to YAML configuration file
        stream: Console stream overriding console_stream
        **overrides: Configuration overrides (e.g. level="info")

    Returns:
        Logger instance

    Raises:
        InvalidLevelError: the resolved level name is unknown

    Example:
        logger = tidelog.create(level="info", console=False)
    """
    config = LoggingConfig.load(config_path, overrides)

    is_valid, error = LoggingConfig.validate(config)
    if not is_valid:
        if find_level(config.get("level")) is None:
            raise InvalidLevelError(config.get("level"))
        raise LoggerError(error)

    if stream is None:
        stream = sys.stdout if config["console_stream"] == "stdout" else None

    return Logger(
        level=config["level"],
        environment=config["environment"],
        console=config["console"],
        stream=stream,
        handle_exceptions=config["handle_exceptions"],
    )
