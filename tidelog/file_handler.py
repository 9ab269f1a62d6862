"""
File Handler - Daily rotating file handler for tidelog

Provides file output with date based file names, size based rollover
within a day, gzip compression of rotated files and retention driven by
an audit manifest.

Features:
- One file per date pattern value (e.g. 20240120-combined.log)
- Extra numbered files when a day's file reaches max size
- Optional gzip compression of rotated-out files
- Retention by file count or by age ("14d")
- Thread-safe write operations

Usage:
    from tidelog.file_handler import DailyRotatingFileHandler

    handler = DailyRotatingFileHandler(
        dirname="/var/log/myapp",
        filename_template="{date}-combined.log",
        max_bytes=20 * 1024 * 1024,
        retention="14d",
    )

    handler.write("Log message\n")
    handler.close()
"""

import gzip
import json
import os
import shutil
import time
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import List, Union

from humanfriendly import parse_timespan

DEFAULT_MAX_BYTES = 20 * 1024 * 1024


def parse_retention(retention: Union[int, str, None]) -> tuple:
    """
    Split a retention value into (max_files, max_age_seconds).

    Args:
        retention: number of files to keep, or a timespan such as "14d"

    Returns:
        Tuple where exactly one item is set, or (None, None) for no retention
    """
    if retention is None or retention == "":
        return None, None
    if isinstance(retention, int):
        return retention, None
    if str(retention).isdigit():
        return int(retention), None
    return None, parse_timespan(str(retention))


class DailyRotatingFileHandler:
    """
    Date based rotating file handler.

    The active file name is filename_template with "{date}" replaced by the
    current date formatted with date_pattern. Files rotated out are
    tracked in an audit manifest stored next to them.

    Example:
        handler = DailyRotatingFileHandler("/var/log/app", "{date}-error.log", max_bytes=1024)
        handler.write("boom\n")
        handler.close()
    """

    def __init__(
        self,
        dirname: str,
        filename_template: str = "{date}.log",
        date_pattern: str = "%Y%m%d",
        max_bytes: int = DEFAULT_MAX_BYTES,
        retention: Union[int, str, None] = "14d",
        zipped: bool = True,
        audit_file: str = ".audit.json",
        encoding: str = "utf-8",
    ):
        """
        Initialize daily rotating file handler.

        Args:
            dirname: Directory holding log files
            filename_template: File name containing a "{date}" placeholder
            date_pattern: strftime pattern used for the date part
            max_bytes: Maximum file size before a numbered file is started
            retention: Number of files to keep, or a timespan like "14d"
            zipped: Compress rotated-out files with gzip
            audit_file: Name of the manifest file inside dirname
            encoding: File encoding (default: utf-8)
        """
        self.dirname = Path(dirname)
        self.filename_template = filename_template
        self.date_pattern = date_pattern
        self.max_bytes = max_bytes
        self.retention = retention
        self.zipped = zipped
        self.audit_path = self.dirname / audit_file
        self.encoding = encoding
        self._max_files, self._max_age = parse_retention(retention)
        self._file = None
        self._lock = Lock()
        self._date = self._current_date()
        self._index = self._resume_index(self._date)
        self.filepath = self._build_path(self._date, self._index)

    def _current_date(self) -> str:
        return datetime.now().strftime(self.date_pattern)

    def _resume_index(self, date: str) -> int:
        """
        Find the file to continue with after a restart.

        Returns the index of the last uncompressed file of the date, or the
        first unused index when the last file was already compressed.
        """
        index = 0
        while True:
            path = self._build_path(date, index)
            if not path.exists() and not self._archive_path(path).exists():
                break
            index += 1
        if index and self._build_path(date, index - 1).exists():
            return index - 1
        return index

    @staticmethod
    def _archive_path(path: Path) -> Path:
        return path.with_name(path.name + ".gz")

    def _build_path(self, date: str, index: int) -> Path:
        name = self.filename_template.format(date=date)
        if index:
            stem, ext = os.path.splitext(name)
            name = f"{stem}.{index}{ext}"
        return self.dirname / name

    def write(self, content: str):
        """
        Write content to the active file, rotating first when needed.

        Args:
            content: Content to write (should include newline if needed)
        """
        with self._lock:
            if self._should_rotate():
                self._rotate()

            if self._file is None or self._file.closed:
                self._open()

            self._file.write(content)
            self._file.flush()
            os.fsync(self._file.fileno())

    def open(self):
        """Create the active file and register it without writing"""
        with self._lock:
            if self._file is None or self._file.closed:
                self._open()

    def _open(self):
        self.dirname.mkdir(parents=True, exist_ok=True)
        self._file = open(self.filepath, "a", encoding=self.encoding)
        self._register(self.filepath)

    def _should_rotate(self) -> bool:
        """
        Check if the active file must change.

        Returns:
            True when the date changed or the active file reached max_bytes
        """
        if self._current_date() != self._date:
            return True

        if not self.filepath.exists():
            return False

        try:
            return self.filepath.stat().st_size >= self.max_bytes
        except OSError:
            return False

    def _rotate(self):
        """
        Switch to the next file and apply compression and retention.

        Rotation pattern within one date:
            20240120-combined.log   -> 20240120-combined.log.gz
            next file               -> 20240120-combined.1.log
        On date change the counter restarts at the new date's base name.
        """
        if self._file and not self._file.closed:
            self._file.close()
            self._file = None

        previous = self.filepath
        today = self._current_date()
        if today != self._date:
            self._date = today
            self._index = self._resume_index(today)
        else:
            self._index += 1
        self.filepath = self._build_path(self._date, self._index)

        if self.zipped and previous.exists() and previous != self.filepath:
            self._compress(previous)

        self._prune()

    def _compress(self, path: Path):
        target = self._archive_path(path)
        counter = 1
        while target.exists():
            # Never overwrite an archive left by an earlier run
            target = path.with_name(f"{path.name}.{counter}.gz")
            counter += 1
        try:
            with open(path, "rb") as src, gzip.open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
            path.unlink()
        except OSError:
            return  # Keep the uncompressed file

        manifest = self._load_manifest()
        for item in manifest["files"]:
            if item["name"] == str(path):
                item["name"] = str(target)
        self._save_manifest(manifest)

    def _prune(self):
        """Delete files beyond the retention window, never the active one"""
        if self._max_files is None and self._max_age is None:
            return

        manifest = self._load_manifest()
        active = str(self.filepath)
        candidates = [item for item in manifest["files"] if item["name"] != active]
        expired: List[dict] = []

        if self._max_files is not None:
            # The active file counts toward the limit
            keep = max(self._max_files - 1, 0)
            candidates.sort(key=lambda item: item["date"])
            expired = candidates[: max(len(candidates) - keep, 0)]
        else:
            limit = time.time() - self._max_age
            expired = [item for item in candidates if item["date"] < limit]

        for item in expired:
            try:
                Path(item["name"]).unlink()
            except FileNotFoundError:
                pass
            except OSError:
                continue  # Retry on the next rotation
            manifest["files"].remove(item)

        self._save_manifest(manifest)

    def _register(self, path: Path):
        manifest = self._load_manifest()
        if not any(item["name"] == str(path) for item in manifest["files"]):
            manifest["files"].append({"name": str(path), "date": time.time()})
            self._save_manifest(manifest)

    def _load_manifest(self) -> dict:
        try:
            with open(self.audit_path, encoding="utf-8") as f:
                manifest = json.load(f)
        except (OSError, ValueError):
            manifest = {}
        manifest.setdefault("files", [])
        manifest["keep"] = self.retention
        return manifest

    def _save_manifest(self, manifest: dict):
        try:
            with open(self.audit_path, "w", encoding="utf-8") as f:
                json.dump(manifest, f, indent=2)
        except OSError:
            pass  # Ignore errors writing the manifest

    @property
    def files(self) -> List[str]:
        """Files currently tracked by the audit manifest"""
        with self._lock:
            return [item["name"] for item in self._load_manifest()["files"]]

    def flush(self):
        """
        Flush file buffer.

        Ensures all buffered data is written to disk.
        """
        with self._lock:
            if self._file and not self._file.closed:
                self._file.flush()
                os.fsync(self._file.fileno())

    def close(self):
        """
        Close file handle.

        Should be called when done writing to ensure data is flushed.
        """
        with self._lock:
            if self._file and not self._file.closed:
                self._file.flush()
                self._file.close()
                self._file = None

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.close()

    def __del__(self):
        """Destructor - ensure file is closed"""
        try:
            self.close()
        except Exception:
            pass  # Ignore errors in destructor
