"""Open protocol: open a path and decide where the fresh handle should start."""

import logging
import os

from filetail.models import CREATE_INITIAL, FileIdentity, OpenResult
from filetail.registry import FileRegistry
from filetail.sincedb import SinceDB

logger = logging.getLogger(__name__)


def _open_nonblocking(path: str):
    fh = open(path, "rb", buffering=0)
    try:
        os.set_blocking(fh.fileno(), False)
        st = os.fstat(fh.fileno())
    except OSError:
        fh.close()
        raise
    return fh, st


def warn_open_failure(path: str, error: OSError, registry: FileRegistry, now: float,
                      warn_interval: float, log: logging.Logger = logger):
    """Warn about a failed open at most once per *warn_interval* per path.

    A file we can't read that keeps changing gets retried on every discovery
    cycle, so repeats inside the interval drop to DEBUG.
    """
    if now - registry.last_warn(path) > warn_interval:
        log.warning("failed to open %s: %s", path, error)
        registry.mark_warned(path, now)
    else:
        log.debug("(warn suppressed) failed to open %s: %s", path, error)


def open_file(path: str, event: str, sincedb: SinceDB, registry: FileRegistry, now: float,
              warn_interval: float, log: logging.Logger = logger) -> OpenResult:
    """Open *path* and seek according to its checkpoint and the discovery *event*.

    Seek policy:
      - checkpoint <= size: resume at the checkpoint
      - checkpoint > size: file shrank, reset checkpoint to 0 and read from the start
      - no checkpoint and create_initial: seek to end, checkpoint = size
      - otherwise: read from the start
    """
    log.debug("%s: opening (%s)", path, event)
    try:
        fh, st = _open_nonblocking(path)
    except OSError as e:
        warn_open_failure(path, e, registry, now, warn_interval, log)
        return OpenResult(ok=False, path=path, error=e)

    identity = FileIdentity.from_stat(st)
    size = st.st_size
    position = 0

    last_offset = sincedb.get(identity)
    if last_offset is not None:
        log.debug("%s: sincedb last value %d, cur size %d", path, last_offset, size)
        if last_offset <= size:
            log.debug("%s: sincedb: seeking to %d", path, last_offset)
            position = fh.seek(last_offset, os.SEEK_SET)
        else:
            log.debug("%s: last value size is greater than current value, starting over", path)
            sincedb.set(identity, 0)
    elif event == CREATE_INITIAL:
        log.debug("%s: initial create, no sincedb, seeking to end %d", path, size)
        position = fh.seek(size, os.SEEK_SET)
        sincedb.set(identity, size)
    else:
        log.debug("%s: staying at position 0, no sincedb", path)

    return OpenResult(ok=True, path=path, handle=fh, identity=identity,
                      size=size, position=position)
