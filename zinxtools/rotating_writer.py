"""A log file writer that rotates by day and by size and zips old files."""

from __future__ import annotations

import os
import sys
import threading
import zipfile
from collections.abc import Iterator
from datetime import datetime, timedelta
from typing import BinaryIO

SIZE_MIB = 1024 * 1024
DEFAULT_MAX_AGE = 31
DEFAULT_MAX_SIZE = 64 * SIZE_MIB
FLUSH_INTERVAL = 5.0

_NAME_TIME_FORMAT = ".%Y-%m-%d-%H%M%S.%f"


class RotatingWriter:
    """Append bytes to a log file, rotating it daily or when it grows too large.

    A rotated file is renamed to ``<name>.<timestamp><suffix>``, compressed
    into ``<name>.<timestamp>.zip`` and removed. Archives older than
    ``max_age`` days are deleted once a day. Buffered data is flushed every
    few seconds in the background.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)
        self._dir = os.path.dirname(self.path) or "."
        base = os.path.basename(self.path)
        suffix = os.path.splitext(base)[1]
        self._name = base[: len(base) - len(suffix)] if suffix else base
        self._suffix = suffix or ".log"
        self._zip_suffix = ".zip"

        self._max_age = DEFAULT_MAX_AGE
        self._max_size = DEFAULT_MAX_SIZE
        self._console = False

        self._size = 0
        self._created = datetime.now()
        self._file: BinaryIO | None = None
        self._lock = threading.Lock()

        self._stop = threading.Event()
        self._daemon: threading.Thread | None = None

        os.makedirs(self._dir, mode=0o755, exist_ok=True)
        self._start_daemon()

    # -- settings -----------------------------------------------------------

    @property
    def max_age(self) -> int:
        """Days an archive is kept; zero or less keeps them forever."""
        return self._max_age

    @max_age.setter
    def max_age(self, days: int) -> None:
        with self._lock:
            self._max_age = days

    @property
    def max_size(self) -> int:
        """Size in bytes at which the file is rotated; values below 1 are ignored."""
        return self._max_size

    @max_size.setter
    def max_size(self, size: int) -> None:
        if size < 1:
            return
        with self._lock:
            self._max_size = size

    @property
    def console(self) -> bool:
        """Whether everything written is echoed to standard error too."""
        return self._console

    @console.setter
    def console(self, enabled: bool) -> None:
        with self._lock:
            self._console = enabled

    # -- background flushing -----------------------------------------------

    def _start_daemon(self) -> None:
        if self._daemon is not None and self._daemon.is_alive():
            return
        self._stop.clear()
        self._daemon = threading.Thread(target=self._flush_periodically, daemon=True)
        self._daemon.start()

    def _flush_periodically(self) -> None:
        while not self._stop.wait(FLUSH_INTERVAL):
            self.flush()

    # -- writing -------------------------------------------------------------

    def write(self, data: bytes | str) -> int:
        """Write ``data`` and return the number of bytes written."""
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        with self._lock:
            if self._console:
                _echo(payload)
            if self._file is None:
                try:
                    self._rotate()
                except OSError:
                    _echo(payload)
                    raise
                self._start_daemon()

            if self._created.date() != datetime.now().date():
                threading.Thread(target=self._delete_expired, daemon=True).start()
                self._rotate()

            if self._size + len(payload) >= self._max_size:
                self._rotate()

            assert self._file is not None
            written = self._file.write(payload)
            self._size += written
            return written

    def _rotate(self) -> None:
        now = datetime.now()
        if self._file is not None:
            self._file.flush()
            os.fsync(self._file.fileno())
            self._file.close()
            self._file = None

            stem = self._name + _time_to_name(self._created)
            backup = os.path.join(self._dir, stem + self._suffix)
            try:
                os.replace(self.path, backup)
            except OSError:
                pass
            else:
                try:
                    zip_to_file(os.path.join(self._dir, stem + self._zip_suffix), backup)
                except OSError as err:
                    print(err, file=sys.stderr)
                else:
                    os.remove(backup)
            self._size = 0

        try:
            info = os.stat(self.path)
        except OSError:
            self._created = now
        else:
            self._size = info.st_size
            self._created = datetime.fromtimestamp(info.st_mtime)

        self._file = open(self.path, "ab")

    def _delete_expired(self) -> None:
        max_age = self._max_age
        if max_age <= 0:
            return
        cutoff = datetime.now() - timedelta(days=max_age)
        try:
            entries = list(os.scandir(self._dir))
        except OSError:
            return
        for entry in entries:
            if entry.is_dir():
                continue
            stamp = self._name_to_time(entry.name)
            if stamp is not None and stamp < cutoff:
                try:
                    os.remove(entry.path)
                except OSError:
                    pass

    def _name_to_time(self, name: str) -> datetime | None:
        name = name.removeprefix(self._name).removesuffix(self._zip_suffix)
        try:
            return datetime.strptime(name, _NAME_TIME_FORMAT)
        except ValueError:
            return None

    # -- flushing and closing ----------------------------------------------

    def flush(self) -> None:
        """Push buffered data to the file."""
        with self._lock:
            if self._file is not None:
                self._file.flush()

    def close(self) -> None:
        """Flush and close the file; a later write opens it again."""
        self.flush()
        self._stop.set()
        with self._lock:
            if self._file is None:
                return
            try:
                os.fsync(self._file.fileno())
            finally:
                self._file.close()
                self._file = None

    def __enter__(self) -> RotatingWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _echo(payload: bytes) -> None:
    sys.stderr.write(payload.decode("utf-8", errors="replace"))


def _time_to_name(moment: datetime) -> str:
    return moment.strftime(_NAME_TIME_FORMAT)


def zip_to_file(dst: str | os.PathLike[str], src: str | os.PathLike[str]) -> None:
    """Compress the file or directory ``src`` into a new zip archive at ``dst``."""
    with open(os.path.normpath(os.fspath(dst)), "wb") as out:
        zip_path(out, src)


def _walk(path: str) -> Iterator[str]:
    yield path
    if os.path.isdir(path) and not os.path.islink(path):
        for name in sorted(os.listdir(path)):
            yield from _walk(os.path.join(path, name))


def zip_path(dst: BinaryIO, src: str | os.PathLike[str]) -> None:
    """Write a deflated zip archive of the file or directory ``src`` to ``dst``.

    Entries are named relative to the parent of ``src``, with ``/`` separators;
    directory entries end in ``/``.
    """
    root = os.path.normpath(os.fspath(src))
    os.stat(root)
    parent = os.path.dirname(root)

    with zipfile.ZipFile(dst, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in _walk(root):
            arcname = os.path.relpath(path, parent) if parent else path
            arcname = arcname.strip(os.sep).replace("\\", "/")
            archive.write(path, arcname, compress_type=zipfile.ZIP_DEFLATED)