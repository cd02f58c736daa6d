"""Tail: routes discovery events to the open protocol, stream reader and teardown."""

import logging
import threading
import time

from filetail.config import TailConfig
from filetail.models import CREATE, CREATE_INITIAL, DELETE, MODIFY, ActiveFile
from filetail.opener import open_file
from filetail.reader import drain
from filetail.registry import FileRegistry
from filetail.sincedb import SinceDB
from filetail.watch import Watch

logger = logging.getLogger(__name__)


class Tail:
    """Emits every complete line of the watched files exactly once across restarts.

    Per path: unwatched -> open -> closed, where a closed path re-opens if it
    is discovered again. All state is mutated on the thread that drives
    subscribe() / handle_event().
    """

    def __init__(self, config: TailConfig | None = None, log: logging.Logger | None = None,
                 watch: Watch | None = None, time_func=time.time):
        self._config = (config or TailConfig()).validate()
        self._delimiter = self._config.delimiter_bytes
        self._logger = log or logger
        self._time = time_func
        self._registry = FileRegistry()
        self._sincedb = SinceDB(self._config.sincedb_path,
                                self._config.sincedb_write_interval,
                                time_func=time_func, log=self._logger)
        self._watch = watch or Watch(notify=self._config.notify, time_func=time_func)
        self._watch.logger = self._logger
        self._watch.exclude(list(self._config.exclude))

        self._sincedb.load()

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @logger.setter
    def logger(self, log: logging.Logger):
        self._logger = log
        self._watch.logger = log
        self._sincedb.logger = log

    @property
    def config(self) -> TailConfig:
        return self._config

    @property
    def sincedb(self) -> SinceDB:
        return self._sincedb

    @property
    def registry(self) -> FileRegistry:
        return self._registry

    @property
    def watch(self) -> Watch:
        return self._watch

    def tail(self, path: str):
        """Register a path or glob for tailing."""
        self._watch.watch(path)

    def subscribe(self, consumer, shutdown_event: threading.Event | None = None):
        """Blocking event pump; calls ``consumer(path, line)`` for every line."""
        events = self._watch.subscribe(self._config.stat_interval,
                                       self._config.discover_interval,
                                       shutdown_event)
        for event, path in events:
            self.handle_event(event, path, consumer)

    def handle_event(self, event: str, path: str, consumer):
        if event in (CREATE, CREATE_INITIAL):
            if path in self._registry:
                self._logger.debug("%s for %s: already exists in registry", event, path)
                return
            if self._open(path, event):
                self._read(path, consumer)
        elif event == MODIFY:
            if path not in self._registry:
                self._logger.debug("modify for %s, does not exist in registry", path)
                if self._open(path, event):
                    self._read(path, consumer)
            else:
                self._read(path, consumer)
        elif event == DELETE:
            if path not in self._registry:
                self._logger.debug("delete for %s, not open", path)
                return
            self._logger.debug("delete for %s, removing from registry", path)
            self._read(path, consumer)
            active = self._registry.remove(path)
            try:
                active.handle.close()
            except OSError as e:
                self._logger.debug("Error closing %s: %s", path, e)
        else:
            self._logger.warning("unknown event type %s for %s", event, path)

    def _open(self, path: str, event: str) -> bool:
        result = open_file(path, event, self._sincedb, self._registry, self._time(),
                           self._config.open_warn_interval, self._logger)
        if not result.ok:
            return False
        self._registry.add(ActiveFile(path=path, handle=result.handle, identity=result.identity))
        return True

    def _read(self, path: str, consumer):
        active = self._registry.get(path)
        chunks = drain(active, self._sincedb, consumer,
                       chunk_size=self._config.read_chunk_size,
                       encoding=self._config.encoding,
                       delimiter=self._delimiter,
                       max_line_bytes=self._config.max_line_bytes,
                       log=self._logger)
        if chunks:
            self._sincedb.maybe_flush()

    def sincedb_write(self, reason: str | None = None) -> bool:
        """Flush checkpoints now, regardless of the write interval."""
        self._logger.debug("caller requested sincedb write (%s)", reason)
        return self._sincedb.flush(reason)

    def close(self):
        """Close every open file and persist checkpoints (host shutdown)."""
        self._registry.close_all()
        self.sincedb_write("shutdown")
