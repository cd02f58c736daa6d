"""Watch: discovers files by glob and emits (event, path) notifications.

Files are found by globbing every ``discover_interval`` seconds and stat'ed every
``stat_interval`` seconds. With ``notify`` on, a watchdog Observer on the
watched directories wakes the stat loop as soon as something changes; the
observer thread only sets an Event, all bookkeeping stays on the caller's thread.
"""

import fnmatch
import glob
import logging
import os
import threading
import time
from dataclasses import dataclass

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from filetail.models import CREATE, CREATE_INITIAL, DELETE, MODIFY, FileIdentity

logger = logging.getLogger(__name__)

_GLOB_CHARS = ("*", "?", "[")


@dataclass
class WatchedFile:
    identity: FileIdentity
    size: int = 0
    initial: bool = False
    create_sent: bool = False


class _WakeHandler(FileSystemEventHandler):
    def __init__(self, wake: threading.Event):
        super().__init__()
        self._wake = wake

    def on_any_event(self, event):
        self._wake.set()


def _static_root(pattern: str) -> tuple[str, bool]:
    """Longest directory prefix of *pattern* without glob characters.

    Returns (directory, recursive); recursive is True when the pattern reaches
    below that directory through a glob.
    """
    directory = os.path.dirname(pattern) or "."
    recursive = False
    while any(c in directory for c in _GLOB_CHARS):
        directory = os.path.dirname(directory) or "."
        recursive = True
    return directory, recursive


class Watch:
    def __init__(self, notify: bool = False, time_func=time.time,
                 log: logging.Logger | None = None):
        self.logger = log or logger
        self._notify = notify
        self._time = time_func
        self._watching: list[str] = []
        self._excludes: list[str] = []
        self._files: dict[str, WatchedFile] = {}
        self._wake = threading.Event()
        self._observer = None
        self._scheduled: set[str] = set()

    @property
    def files(self) -> dict[str, WatchedFile]:
        return self._files

    def watch(self, pattern: str):
        """Start watching a path or glob; matches found now count as initial."""
        if pattern in self._watching:
            return
        self._watching.append(pattern)
        self._discover_file(pattern, initial=True)
        if self._observer is not None:
            self._schedule(pattern)

    def exclude(self, patterns: list[str]):
        self._excludes.extend(patterns)

    def is_excluded(self, path: str) -> bool:
        name = os.path.basename(path)
        return any(fnmatch.fnmatch(name, rule) for rule in self._excludes)

    def discover(self):
        """Re-glob every watched pattern; new matches are not initial."""
        for pattern in self._watching:
            self._discover_file(pattern, initial=False)

    def _discover_file(self, pattern: str, initial: bool):
        for path in glob.glob(pattern, recursive=True):
            if path in self._files or os.path.isdir(path):
                continue
            if self.is_excluded(path):
                self.logger.debug("_discover_file: %s: skipping because it matches an exclude rule", path)
                continue
            try:
                st = os.stat(path)
            except OSError as e:
                self.logger.debug("_discover_file: %s: stat failed: %s", path, e)
                continue
            self.logger.debug("_discover_file: %s: new (initial=%s)", path, initial)
            self._files[path] = WatchedFile(identity=FileIdentity.from_stat(st), initial=initial)

    def each(self):
        """Stat every known file once, yielding the resulting events."""
        for path, wf in list(self._files.items()):
            if not wf.create_sent:
                wf.create_sent = True
                try:
                    st = os.stat(path)
                    wf.identity = FileIdentity.from_stat(st)
                    wf.size = st.st_size
                except OSError:
                    pass
                yield (CREATE_INITIAL if wf.initial else CREATE), path
                continue

            try:
                st = os.stat(path)
            except OSError:
                self.logger.debug("each: %s: gone, sending delete", path)
                del self._files[path]
                yield DELETE, path
                continue

            identity = FileIdentity.from_stat(st)
            if identity != wf.identity:
                self.logger.debug("each: %s: identity changed %s -> %s", path, wf.identity, identity)
                wf.identity = identity
                wf.size = st.st_size
                yield DELETE, path
                yield CREATE, path
            elif st.st_size < wf.size:
                self.logger.debug("each: %s: file rolled, new size %d, old size %d",
                                  path, st.st_size, wf.size)
                wf.size = st.st_size
                yield DELETE, path
                yield CREATE, path
            elif st.st_size > wf.size:
                self.logger.debug("each: %s: file grew, old size %d, new size %d",
                                  path, wf.size, st.st_size)
                wf.size = st.st_size
                yield MODIFY, path

    def subscribe(self, stat_interval: float = 1, discover_interval: float = 5,
                  shutdown_event: threading.Event | None = None):
        """Yield (event, path) pairs until *shutdown_event* is set."""
        if self._notify:
            self._start_observer()
        last_discover = self._time()
        try:
            while shutdown_event is None or not shutdown_event.is_set():
                yield from self.each()

                now = self._time()
                if now - last_discover >= discover_interval:
                    self.discover()
                    last_discover = now

                self._wake.wait(stat_interval)
                self._wake.clear()
        finally:
            self._stop_observer()

    def wake(self):
        """End the current stat_interval wait early."""
        self._wake.set()

    def _start_observer(self):
        self._observer = Observer()
        for pattern in self._watching:
            self._schedule(pattern)
        self._observer.start()

    def _schedule(self, pattern: str):
        directory, recursive = _static_root(pattern)
        if directory in self._scheduled or not os.path.isdir(directory):
            return
        self._observer.schedule(_WakeHandler(self._wake), directory, recursive=recursive)
        self._scheduled.add(directory)
        self.logger.info("Watching directory: %s", directory)

    def _stop_observer(self):
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        self._scheduled.clear()
