"""
Sinks - named output destinations fed by the dispatcher

Every sink carries the default metadata transformers (timestamp, label,
colorize) and the flags the logger toggles at runtime: level, silent and
handle_exceptions.
"""

import sys
from typing import Callable, Optional, TextIO

import click

from tidelog.config import RotationConfig
from tidelog.file_handler import DailyRotatingFileHandler
from tidelog.formatters import (
    LogEntry,
    colorize_formatter,
    format_entry,
    format_raw,
    label_formatter,
    timestamp_formatter,
)

CONSOLE_SINK = "console"


class Sink:
    """
    Base sink.

    Attributes:
        name: registration name, unique per dispatcher
        level: minimum level name, None follows the dispatcher level
        silent: drop every entry when True
        handle_exceptions: receive uncaught exceptions
        can_change_level: follow broadcast level changes
    """

    def __init__(
        self,
        name: str,
        level: Optional[str] = None,
        silent: bool = False,
        handle_exceptions: bool = True,
        can_change_level: bool = True,
        timestamp: Optional[Callable[[], str]] = timestamp_formatter,
        label: Optional[Callable[[str], str]] = label_formatter,
        colorize: Optional[Callable[[str], str]] = None,
    ):
        self.name = name
        self.level = level
        self.silent = silent
        self.handle_exceptions = handle_exceptions
        self.can_change_level = can_change_level
        self.timestamp = timestamp
        self.label = label
        self.colorize = colorize

    def format(self, entry: LogEntry) -> str:
        return format_entry(entry, timestamp=self.timestamp, label=self.label, colorize=self.colorize)

    def write(self, line: str):
        raise NotImplementedError

    def close(self):
        pass

    def __repr__(self):
        return f"<{type(self).__name__} name={self.name!r} level={self.level!r} silent={self.silent}>"


class ConsoleSink(Sink):
    """Console output with colorized labels; click strips colors off non-TTY streams"""

    def __init__(self, stream: Optional[TextIO] = None, name: str = CONSOLE_SINK, **kwargs):
        kwargs.setdefault("colorize", colorize_formatter)
        super().__init__(name, **kwargs)
        self.stream = stream

    def write(self, line: str):
        click.echo(line, file=self.stream or sys.stderr)


class RotatingFileSink(Sink):
    """
    Daily rotating file output.

    Example:
        sink = RotatingFileSink(build_rotation_config("/var/log/app"))
        sink.filepath  # /var/log/app/20240120-combined.log
    """

    def __init__(self, config: RotationConfig, raw: bool = False, handle_exceptions: Optional[bool] = None):
        super().__init__(
            config.sink_name,
            level=config.level,
            handle_exceptions=not raw if handle_exceptions is None else handle_exceptions,
            can_change_level=config.can_change_level,
        )
        self.config = config
        self.raw = raw
        self.handler = DailyRotatingFileHandler(
            config.destination,
            filename_template=config.filename_template,
            date_pattern=config.date_pattern,
            max_bytes=config.max_bytes,
            retention=config.retention,
            zipped=config.zipped,
            audit_file=config.audit_file,
        )

    @property
    def filepath(self):
        return self.handler.filepath

    def format(self, entry: LogEntry) -> str:
        if self.raw:
            return format_raw(entry)
        return super().format(entry)

    def open(self):
        self.handler.open()

    def write(self, line: str):
        self.handler.write(line + "\n")

    def close(self):
        self.handler.close()
