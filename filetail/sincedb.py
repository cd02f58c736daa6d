"""SinceDB: persists per-file read offsets, keyed by physical file identity.

On-disk format is one plain-text record per identity::

    <inode> <dev_major> <dev_minor> <offset>

Writes go to a temp file in the same directory followed by os.replace, so a
crash mid-flush leaves the previous file in place.
"""

import logging
import os
import tempfile
import time

from filetail.models import FileIdentity

logger = logging.getLogger(__name__)


class SinceDB:
    def __init__(self, path: str, write_interval: float = 10.0, time_func=time.time,
                 log: logging.Logger | None = None):
        self._path = path
        self._write_interval = write_interval
        self._time = time_func
        self._data: dict[FileIdentity, int] = {}
        self._last_write = 0.0
        self.logger = log or logger

    @property
    def path(self) -> str:
        return self._path

    @property
    def last_write(self) -> float:
        return self._last_write

    def load(self):
        """Populate the in-memory map from disk. A missing file is a fresh start."""
        try:
            f = open(self._path, "r", encoding="utf-8")
        except OSError as e:
            self.logger.debug("sincedb %s not loaded: %s", self._path, e)
            return

        loaded = 0
        with f:
            for lineno, line in enumerate(f, 1):
                if not line.strip():
                    continue
                record = self._parse_record(line)
                if record is None:
                    self.logger.warning("sincedb %s:%d: skipping malformed record %r",
                                        self._path, lineno, line.rstrip("\n"))
                    continue
                identity, offset = record
                self._data[identity] = offset
                loaded += 1
        self.logger.debug("Loaded sincedb from %s (%d entries)", self._path, loaded)

    @staticmethod
    def _parse_record(line: str) -> tuple[FileIdentity, int] | None:
        fields = line.split()
        if len(fields) != 4:
            return None
        try:
            ino, major, minor, offset = (int(x) for x in fields)
        except ValueError:
            return None
        if min(ino, major, minor, offset) < 0:
            return None
        return FileIdentity(ino, major, minor), offset

    def get(self, identity: FileIdentity) -> int | None:
        return self._data.get(identity)

    def set(self, identity: FileIdentity, offset: int):
        self._data[identity] = offset

    def items(self):
        return self._data.items()

    def __contains__(self, identity) -> bool:
        return identity in self._data

    def __len__(self) -> int:
        return len(self._data)

    def flush(self, reason: str | None = None) -> bool:
        """Rewrite the whole file from memory. Returns False if the write failed."""
        if reason:
            self.logger.debug("Writing sincedb %s (%s)", self._path, reason)
        directory = os.path.dirname(self._path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=directory, prefix=".sincedb.")
        except OSError as e:
            self.logger.warning("Failed to write sincedb %s: %s", self._path, e)
            return False

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for identity, offset in self._data.items():
                    f.write(f"{identity.inode} {identity.dev_major} {identity.dev_minor} {offset}\n")
            os.replace(tmp, self._path)
        except OSError as e:
            self.logger.warning("Failed to write sincedb %s: %s", self._path, e)
            if os.path.exists(tmp):
                os.unlink(tmp)
            return False
        return True

    def maybe_flush(self) -> bool:
        """Flush if write_interval has elapsed since the last attempt.

        The timestamp advances even when the write fails, so a broken store is
        retried once per interval rather than after every read.
        """
        now = self._time()
        delta = now - self._last_write
        if delta < self._write_interval:
            return False
        self.logger.debug("Writing sincedb (delta since last write = %.1fs)", delta)
        self._last_write = now
        return self.flush()
