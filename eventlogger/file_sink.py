"""A sink that appends formatted events to a rotating log file."""

from __future__ import annotations

import glob
import os
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import BinaryIO

from eventlogger.event import Event, NodeType

JSON_FORMAT = "json"
DEFAULT_MODE = 0o600
DIR_MODE = 0o700
_UNCHMODABLE = frozenset({"/dev/null", "/dev/stderr", "/dev/stdout"})


def _extension(file_name: str) -> str:
    base = os.path.basename(file_name)
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


@dataclass
class FileSink:
    """Writes an event's formatted bytes to a file under ``path``.

    Rotation happens when ``max_bytes`` or ``max_duration`` is exceeded;
    ``max_files`` bounds how many timestamped files are kept.
    """

    path: str
    file_name: str
    mode: int = 0
    last_created: datetime | None = None
    max_bytes: int = 0
    bytes_written: int = 0
    max_files: int = 0
    max_duration: timedelta = timedelta(0)
    format: str = ""
    timestamp_only_on_rotate: bool = False
    _file: BinaryIO | None = field(default=None, init=False, repr=False, compare=False)
    _file_path: str | None = field(default=None, init=False, repr=False, compare=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def node_type(self) -> NodeType:
        return NodeType.SINK

    def name(self) -> str:
        return f"sink:{self.path}"

    def process(self, event: Event) -> None:
        """Append the event's formatted bytes; sinks pass nothing downstream."""
        data = event.format(self.format or JSON_FORMAT)
        if data is None:
            raise ValueError("event was not marshaled")

        with self._lock:
            if self._file is None:
                self._open()
            self._rotate()
            try:
                self._write(data)
                self.bytes_written += len(data)
                return None
            except OSError:
                pass

            # Try once to reopen the file and write again.
            self._close_quietly()
            self._open()
            self._write(data)
        return None

    def reopen(self) -> None:
        """Close and reopen the file, recreating it if it was removed."""
        if self.path == "discard":
            return
        with self._lock:
            if self._file is not None and not os.path.exists(self._file_path or ""):
                self._close_quietly()
            if self._file is None:
                self._open()
                return
            handle, self._file = self._file, None
            handle.close()
            self._open()

    def open(self) -> None:
        """Open a new log file, creating the directory when needed."""
        with self._lock:
            self._open()

    def close(self) -> None:
        """Close the current log file, if one is open."""
        with self._lock:
            if self._file is not None:
                handle, self._file = self._file, None
                handle.close()

    def _write(self, data: bytes) -> None:
        assert self._file is not None
        self._file.write(data)
        self._file.flush()

    def _close_quietly(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                pass
        self._file = None

    def _open(self) -> None:
        mode = self.mode or DEFAULT_MODE
        directory = os.fspath(self.path)
        os.makedirs(directory, DIR_MODE, exist_ok=True)

        create_ns = time.time_ns()
        file_path = os.path.join(directory, self._new_file_name(create_ns))
        fd = os.open(file_path, os.O_APPEND | os.O_WRONLY | os.O_CREAT, mode)
        self._file = os.fdopen(fd, "ab")
        self._file_path = file_path

        # The file may have existed with other permissions.
        if file_path not in _UNCHMODABLE and self.mode != 0:
            os.chmod(file_path, self.mode)

        self.last_created = datetime.fromtimestamp(create_ns / 1e9)
        self.bytes_written = 0

    def _rotate(self) -> None:
        elapsed = datetime.now() - (self.last_created or datetime.now())
        over_bytes = self.max_bytes > 0 and self.bytes_written >= self.max_bytes
        over_time = self.max_duration > timedelta(0) and elapsed > self.max_duration
        if not (over_bytes or over_time):
            return

        self._close_quietly()
        directory = os.fspath(self.path)
        if self.timestamp_only_on_rotate:
            old_path = os.path.join(directory, self.file_name)
            new_path = os.path.join(directory, self._stamped_name(str(time.time_ns())))
            try:
                os.rename(old_path, new_path)
            except OSError as exc:
                raise OSError(f"failed to rotate log file: {exc}") from exc
        try:
            self._prune_files()
        except OSError as exc:
            raise OSError(f"failed to prune log files: {exc}") from exc
        self._open()

    def _prune_files(self) -> None:
        if self.max_files == 0:
            return
        stem, ext = self._name_parts()
        expression = os.path.join(
            glob.escape(os.fspath(self.path)),
            glob.escape(f"{stem}-") + "*" + glob.escape(ext),
        )
        matches = sorted(glob.glob(expression))
        for stale in matches[: max(len(matches) - self.max_files, 0)]:
            os.remove(stale)

    def _name_parts(self) -> tuple[str, str]:
        ext = _extension(self.file_name) or ".log"
        stem = self.file_name
        if stem.endswith(ext):
            stem = stem[: -len(ext)]
        return stem, ext

    def _stamped_name(self, stamp: str) -> str:
        stem, ext = self._name_parts()
        return f"{stem}-{stamp}{ext}"

    def _new_file_name(self, create_ns: int) -> str:
        if self.timestamp_only_on_rotate or not self._rotate_enabled():
            return self.file_name
        return self._stamped_name(str(create_ns))

    def _rotate_enabled(self) -> bool:
        return self.max_bytes > 0 or self.max_duration != timedelta(0)