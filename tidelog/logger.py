"""
Logger - syslog style leveled logging over a sink dispatcher

Translates public level names into dispatch keys, keeps the current
verbosity rank of one logger instance and manages its sinks: console,
daily rotating files and the access log stream used by the HTTP
middleware.

Usage:
    import tidelog

    logger = tidelog.create()
    logger.info("Service started", {"port": 8080})
    logger.set_level("warning").more()

    await logger.add_rotating_sink("/var/log/myapp")
    middleware = await logger.enable_request_rotation({"destination": "/var/log/myapp"})
"""

import asyncio
import contextlib
import functools
import json
import os
import stat
import sys
from typing import Any, Dict, Mapping, Optional

import click

from tidelog.config import RotationConfig, build_rotation_config
from tidelog.dispatcher import SinkDispatcher
from tidelog.exceptions import InvalidDestinationError, LoggerError, SinkRegistrationError
from tidelog.formatters import render_banner
from tidelog.levels import default_level_name, find_level, level_for_rank
from tidelog.middleware import AccessLogMiddleware, LogStream
from tidelog.sinks import CONSOLE_SINK, ConsoleSink, RotatingFileSink

_PACKAGE = __name__.split(".")[0]


def _caller_origin() -> Optional[str]:
    """Location of the first frame outside this package, as module:function:line"""
    frame = sys._getframe(1)
    while frame is not None and frame.f_globals.get("__name__", "").split(".")[0] == _PACKAGE:
        frame = frame.f_back
    if frame is None:
        return None
    return f"{frame.f_globals.get('__name__', '?')}:{frame.f_code.co_name}:{frame.f_lineno}"


def _to_text(message) -> str:
    if isinstance(message, str):
        return message
    if message is None:
        return ""
    if isinstance(message, (dict, list, tuple)):
        return json.dumps(message, default=str)
    return str(message)


class Logger:
    """
    Leveled logger owning a dispatcher and its sinks.

    Levels follow syslog severities, rank 0 (emergency) is the most severe
    and rank 7 (debug) the most verbose. more() raises the rank, less()
    lowers it; both clamp at the table bounds and return the logger so
    calls can be chained.

    Example:
        logger = Logger(level="info")
        logger.warning("Cache miss ratio high", {"ratio": 0.4})
        logger.more().more()  # now at debug
    """

    def __init__(
        self,
        dispatcher: Optional[SinkDispatcher] = None,
        level: Optional[str] = None,
        environment: Optional[str] = None,
        console: bool = True,
        stream=None,
        handle_exceptions: bool = True,
    ):
        """
        Initialize logger.

        Args:
            dispatcher: Dispatch engine to use, a new one is built when None
            level: Starting level name, derived from environment when None
            environment: Runtime environment, defaults to $TIDELOG_ENV
            console: Register a console sink on a new dispatcher
            stream: Console stream (default: sys.stderr)
            handle_exceptions: Log uncaught exceptions through the sinks
        """
        if environment is None:
            environment = os.environ.get("TIDELOG_ENV")
        descriptor = find_level(level) or find_level(default_level_name(environment))
        self._rank = descriptor.rank

        if dispatcher is None:
            dispatcher = SinkDispatcher(level=descriptor.name)
            if console:
                dispatcher.add(ConsoleSink(stream=stream, handle_exceptions=handle_exceptions))
        self.dispatcher = dispatcher
        self.web = SinkDispatcher(level="info")
        self._registering: Dict[str, list] = {}

        if handle_exceptions:
            self.dispatcher.install_exception_hook()

        if level is not None and find_level(level) is None:
            self.warning(f"Invalid level name '{level}', using {descriptor.name}.")

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def level(self) -> str:
        return level_for_rank(self._rank).name

    def _engine(self) -> Optional[SinkDispatcher]:
        if self.dispatcher is None:
            click.secho("tidelog: dispatch engine is unavailable, log entry dropped", fg="red", err=True)
        return self.dispatcher

    def log(self, level: str, message: Any, metadata: Optional[Mapping[str, Any]] = None, sink: Optional[str] = None) -> bool:
        """
        Forward a message to the dispatcher at the given level.

        Args:
            level: Level name (emergency, alert, critical, error, warning, notice, info, debug)
            message: Text, or a dict/list serialized to JSON
            metadata: Additional structured fields
            sink: Only write to this sink when given

        Returns:
            True when the entry was forwarded, False for an unknown level or
            a missing dispatcher

        Example:
            logger.log("notice", "Configuration reloaded", {"source": "sighup"})
        """
        dispatcher = self._engine()
        if dispatcher is None:
            return False

        descriptor = find_level(level)
        if descriptor is None:
            self.error(f"Invalid level name '{level}', message dropped: {_to_text(message)}")
            return False

        if metadata is not None and not isinstance(metadata, Mapping):
            metadata = {"metadata": metadata}

        dispatcher.log(
            descriptor.dispatch_key,
            _to_text(message),
            dict(metadata) if metadata else None,
            sink_name=sink,
            origin=_caller_origin(),
        )
        return True

    def emergency(self, message, metadata=None, sink=None) -> bool:
        """Log a message at emergency level, the system is unusable"""
        return self.log("emergency", message, metadata, sink)

    def alert(self, message, metadata=None, sink=None) -> bool:
        """Log a message at alert level, action must be taken immediately"""
        return self.log("alert", message, metadata, sink)

    def critical(self, message, metadata=None, sink=None) -> bool:
        return self.log("critical", message, metadata, sink)

    def error(self, message, metadata=None, sink=None) -> bool:
        return self.log("error", message, metadata, sink)

    def warning(self, message, metadata=None, sink=None) -> bool:
        return self.log("warning", message, metadata, sink)

    def notice(self, message, metadata=None, sink=None) -> bool:
        return self.log("notice", message, metadata, sink)

    def info(self, message, metadata=None, sink=None) -> bool:
        return self.log("info", message, metadata, sink)

    def debug(self, message, metadata=None, sink=None) -> bool:
        return self.log("debug", message, metadata, sink)

    def _apply_rank(self, rank: int, sink: Optional[str] = None):
        """
        Move the current rank, or one sink's level, to rank (clamped).

        Without a sink name every sink allowing level changes follows the
        logger; with a name only that sink moves.
        """
        new = level_for_rank(rank)
        dispatcher = self.dispatcher

        if sink is not None:
            target = dispatcher.get(sink)
            previous = level_for_rank(dispatcher.threshold(target))
            target.level = new.name
            changed = [target.name]
        else:
            previous = level_for_rank(self._rank)
            self._rank = new.rank
            dispatcher.level = new.name
            changed = []
            for item in dispatcher.sinks.values():
                if item.can_change_level:
                    item.level = new.name
                    changed.append(item.name)

        if new.rank == previous.rank:
            return
        direction = "more" if new.rank > previous.rank else "less"
        self.notice(
            f"Level changed from {previous.name} to {new.name} ({direction} verbose)",
            {"sinks": changed},
        )

    def shift_level(self, less: bool, sink: Optional[str] = None) -> "Logger":
        """
        Move one step toward fewer (less=True) or more logs.

        Args:
            less: True lowers the rank (fewer logs), False raises it
            sink: Only shift this sink's level when given

        Returns:
            The logger, for chaining
        """
        dispatcher = self._engine()
        if dispatcher is None:
            return self

        if sink is not None:
            target = dispatcher.get(sink)
            if target is None:
                self.warning(f"Unknown sink '{sink}', level unchanged.")
                return self
            current = dispatcher.threshold(target)
        else:
            current = self._rank

        self._apply_rank(current - 1 if less else current + 1, sink)
        return self

    def more(self, sink: Optional[str] = None) -> "Logger":
        """Log one level more verbosely"""
        return self.shift_level(False, sink)

    def less(self, sink: Optional[str] = None) -> "Logger":
        """Log one level less verbosely"""
        return self.shift_level(True, sink)

    def set_level(self, level: str, sink: Optional[str] = None):
        """
        Jump straight to a named level.

        Args:
            level: Level name
            sink: Only change this sink's level when given

        Returns:
            The logger on success, False for an unknown level or sink

        Example:
            logger.set_level("warning").more()  # now at notice
        """
        descriptor = find_level(level)
        if descriptor is None:
            self.warning(f"Invalid level name '{level}', level unchanged.")
            return False

        dispatcher = self._engine()
        if dispatcher is None:
            return False

        if sink is not None and dispatcher.get(sink) is None:
            self.warning(f"Unknown sink '{sink}', level unchanged.")
            return False

        self._apply_rank(descriptor.rank, sink)
        return self

    def enable_console(self, status: bool = True) -> bool:
        """
        Enable or silence the console sink.

        Returns:
            True when a console sink was found and updated
        """
        status = status if isinstance(status, bool) else True

        dispatcher = self._engine()
        if dispatcher is None:
            return False

        console = dispatcher.get(CONSOLE_SINK)
        if console is None:
            return False

        console.silent = not status
        if status:
            self.info("Console sink enabled")
        return True

    def disable_console(self) -> bool:
        self.notice("Disabling console sink")
        return self.enable_console(False)

    def enable_exceptions(self, status: bool = True, sink: Optional[str] = None) -> bool:
        """
        Toggle uncaught exception logging for all sinks, or one named sink.

        Returns:
            False when the dispatcher or the named sink is missing
        """
        dispatcher = self._engine()
        if dispatcher is None:
            return False

        if sink is not None:
            target = dispatcher.get(sink)
            if target is None:
                self.warning(f"Unknown sink '{sink}', exception handling unchanged.")
                return False
            targets = [target]
        else:
            targets = list(dispatcher.sinks.values())

        for target in targets:
            target.handle_exceptions = status
            self.info(f"Exception handling {'enabled' if status else 'disabled'} for sink {target.name}")

        if status:
            dispatcher.install_exception_hook()
        return True

    def disable_exceptions(self, sink: Optional[str] = None) -> bool:
        return self.enable_exceptions(False, sink)

    def _invalid_destination(self, destination: str, reason: str) -> InvalidDestinationError:
        error = InvalidDestinationError(destination, reason)
        self.error(f"Cannot add daily rotating sink. {error}")
        return error

    async def _check_destination(self, destination: str):
        try:
            stats = await asyncio.to_thread(os.stat, destination)
        except OSError:
            raise self._invalid_destination(destination, "Directory does not exist.") from None

        if not stat.S_ISDIR(stats.st_mode):
            raise self._invalid_destination(destination, "Path is not a directory.")

        if not await asyncio.to_thread(os.access, destination, os.R_OK | os.W_OK):
            raise self._invalid_destination(destination, "Directory is not readable and writable.")

    @contextlib.asynccontextmanager
    async def _registration_lock(self, name: str):
        """Serialize registrations per sink name, dropping the lock once unused"""
        entry = self._registering.setdefault(name, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if not entry[1]:
                del self._registering[name]

    async def _register(self, config: RotationConfig, dispatcher: Optional[SinkDispatcher], raw: bool = False):
        if dispatcher is None:
            self._engine()
            raise SinkRegistrationError("Dispatch engine is unavailable")

        async with self._registration_lock(config.sink_name):
            await self._check_destination(config.destination)

            try:
                sink = RotatingFileSink(config, raw=raw)
                sink.open()
            except (OSError, ValueError) as e:
                message = f"Cannot add daily rotating sink {config.sink_name}: {e}"
                self.error(message)
                raise SinkRegistrationError(message) from e

            if dispatcher.get(sink.name) is not None:
                self.warning(f"Sink {sink.name} already exists, replacing it.")
                dispatcher.remove(sink.name)
            dispatcher.add(sink)

        self.info(f"Daily rotating sink {sink.name} added, entries are logged to {sink.filepath}")
        return sink

    async def add_rotating_sink(
        self, destination=None, filename=None, options: Optional[Mapping[str, Any]] = None
    ) -> RotatingFileSink:
        """
        Add a daily rotating file sink, replacing any sink with the same name.

        Args:
            destination: Directory receiving the files (default: current directory)
            filename: Custom file name segment
            options: RotationConfig field overrides

        Returns:
            The registered RotatingFileSink

        Raises:
            InvalidDestinationError: destination is missing, not a directory,
                                     or not readable and writable
            SinkRegistrationError: the sink could not be created or registered

        Example:
            sink = await logger.add_rotating_sink("/var/log/app", "api", {"level": "info"})
        """
        config = build_rotation_config(destination, filename, options, warn=self.warning)
        return await self._register(config, self.dispatcher)

    async def enable_error_rotation(self, options: Optional[Mapping[str, Any]] = None) -> RotatingFileSink:
        """Add a rotating sink receiving warning and more severe entries only"""
        options = dict(options) if isinstance(options, Mapping) else {}
        options.update(extname="error", level="warning", can_change_level=False)
        return await self.add_rotating_sink(options=options)

    async def enable_request_rotation(self, options: Optional[Mapping[str, Any]] = None):
        """
        Add a rotating access log and return the matching ASGI middleware.

        Args:
            options: RotationConfig field overrides, plus "xheaders", a list
                     of request header names appended to each line

        Returns:
            Callable wrapping an ASGI app in AccessLogMiddleware, or False
            when the sink could not be created

        Example:
            middleware = await logger.enable_request_rotation({"destination": "/var/log/app"})
            app = middleware(app)
        """
        options = dict(options) if isinstance(options, Mapping) else {}
        xheaders = options.pop("xheaders", None) or []
        options.update(extname="access", level="info", can_change_level=False)
        config = build_rotation_config(options=options, warn=self.warning)

        try:
            await self._register(config, self.web, raw=True)
        except LoggerError:
            return False

        return functools.partial(AccessLogMiddleware, stream=LogStream(self.web), xheaders=xheaders)

    def banner(self, message, style=None) -> bool:
        """
        Log a three line banner at info level.

        Args:
            message: Banner text
            style: BannerStyle or mapping with foreground, background, top,
                   bottom, left and right
        """
        lines = render_banner(message, style, warn=self.warning)
        return all([self.info(line) for line in lines])

    def deprecated(self, source: str, replacement: str, extra: str = "") -> bool:
        """Log a notice about a deprecated method and its replacement"""
        tag = click.style("[DEPRECATED]", fg="yellow")
        return self.notice(f"{tag} Method {source} is deprecated. Prefer {replacement}. {extra}".rstrip())

    def close(self):
        """Close every sink and restore sys.excepthook"""
        if self.dispatcher is not None:
            self.dispatcher.close()
        self.web.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
