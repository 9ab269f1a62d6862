"""
Sink Dispatcher - multi-sink dispatch engine for tidelog

Accepts a dispatch key plus message and metadata, builds a LogEntry and
fans it out to every registered sink whose threshold admits the entry.

Features:
- Named sinks, at most one per name
- Per-sink level threshold, falling back to the dispatcher level
- Silent sinks
- Uncaught exception capture through sys.excepthook
- Fallback to stderr when a sink fails to write

Usage:
    from tidelog.dispatcher import SinkDispatcher
    from tidelog.sinks import ConsoleSink

    dispatcher = SinkDispatcher(level="info")
    dispatcher.add(ConsoleSink())
    dispatcher.log("warning", "Disk almost full", {"free": "2%"})
"""

import sys
import traceback
from typing import Any, Dict, Optional

from tidelog.formatters import LogEntry
from tidelog.levels import find_by_key, find_level
from tidelog.sinks import Sink


class SinkDispatcher:
    """
    Fan-out engine between the logger and its sinks.

    Example:
        dispatcher = SinkDispatcher(level="debug")
        dispatcher.add(ConsoleSink(stream=sys.stdout))
        dispatcher.log("info", "Request completed", {"status_code": 200})
    """

    def __init__(self, level: str = "debug"):
        """
        Initialize dispatcher.

        Args:
            level: Default level name for sinks without their own level
        """
        self.level = level
        self.sinks: Dict[str, Sink] = {}
        self._previous_hook = None

    def add(self, sink: Sink) -> Sink:
        """
        Register a sink.

        Raises:
            ValueError: a sink with the same name is already registered
        """
        if sink.name in self.sinks:
            raise ValueError(f"Sink '{sink.name}' is already registered")
        self.sinks[sink.name] = sink
        return sink

    def remove(self, name: str) -> Optional[Sink]:
        """Close and unregister a sink, returning it (or None when unknown)"""
        sink = self.sinks.pop(name, None)
        if sink is not None:
            sink.close()
        return sink

    def get(self, name: str) -> Optional[Sink]:
        return self.sinks.get(name)

    def threshold(self, sink: Sink) -> int:
        """Rank limit of a sink: its own level, or the dispatcher level"""
        level = find_level(sink.level) or find_level(self.level)
        return level.rank if level else -1

    def _admits(self, sink: Sink, rank: int) -> bool:
        return not sink.silent and rank <= self.threshold(sink)

    def _write(self, sink: Sink, entry: LogEntry) -> bool:
        line = sink.format(entry)
        try:
            sink.write(line)
        except Exception:
            # Fallback to stderr if the sink fails
            sys.stderr.write(f"Logging error: failed to write to sink {sink.name}\n")
            sys.stderr.write(line + "\n")
            return False
        return True

    def log(
        self,
        dispatch_key: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        sink_name: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> int:
        """
        Write an entry to matching sinks.

        Args:
            dispatch_key: Level key ("warning", "crit", ...)
            message: Log message
            metadata: Additional structured fields
            sink_name: Only write to this sink when given
            origin: Caller location shown by formatters

        Returns:
            Number of sinks written

        Raises:
            KeyError: dispatch_key is not part of the level table
        """
        level = find_by_key(dispatch_key)
        if level is None:
            raise KeyError(dispatch_key)

        entry = LogEntry(level=dispatch_key, message=message, metadata=metadata or None, origin=origin)

        if sink_name is not None:
            targets = [self.sinks[sink_name]] if sink_name in self.sinks else []
        else:
            targets = list(self.sinks.values())

        written = 0
        for sink in targets:
            if self._admits(sink, level.rank) and self._write(sink, entry):
                written += 1
        return written

    def handle_exception(self, exc_type, exc_value, exc_tb) -> int:
        """
        Log an uncaught exception to sinks handling exceptions.

        Returns:
            Number of sinks written
        """
        if issubclass(exc_type, KeyboardInterrupt):
            return 0

        entry = LogEntry(
            level="error",
            message=f"Uncaught exception: {exc_value}",
            metadata={
                "exception": {
                    "type": exc_type.__name__,
                    "message": str(exc_value),
                    "traceback": "".join(traceback.format_tb(exc_tb)),
                }
            },
        )

        written = 0
        for sink in list(self.sinks.values()):
            if sink.handle_exceptions and not sink.silent and self._write(sink, entry):
                written += 1
        return written

    def _excepthook(self, exc_type, exc_value, exc_tb):
        self.handle_exception(exc_type, exc_value, exc_tb)
        previous = self._previous_hook or sys.__excepthook__
        previous(exc_type, exc_value, exc_tb)

    def install_exception_hook(self):
        """Chain sys.excepthook so uncaught exceptions reach the sinks"""
        if self._previous_hook is None:
            self._previous_hook = sys.excepthook
            sys.excepthook = self._excepthook

    def uninstall_exception_hook(self):
        if self._previous_hook is not None:
            if sys.excepthook == self._excepthook:
                sys.excepthook = self._previous_hook
            self._previous_hook = None

    @property
    def hook_installed(self) -> bool:
        return self._previous_hook is not None

    def close(self):
        """Close every sink and restore sys.excepthook"""
        self.uninstall_exception_hook()
        for name in list(self.sinks):
            self.remove(name)
