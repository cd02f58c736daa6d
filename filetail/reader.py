"""Stream reader: bounded non-blocking reads feeding the tokenizer."""

import logging

from filetail.models import ActiveFile, ReadResult, ReadStatus
from filetail.sincedb import SinceDB
from filetail.tokenizer import BufferedTokenizer, TokenizerError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4096


def read_chunk(handle, size: int = DEFAULT_CHUNK_SIZE) -> ReadResult:
    """One non-blocking read of at most *size* bytes."""
    try:
        data = handle.read(size)
    except (BlockingIOError, InterruptedError):
        return ReadResult(ReadStatus.WOULD_BLOCK)
    except OSError as e:
        return ReadResult(ReadStatus.ERROR, error=e)
    if data is None:
        # raw non-blocking read with nothing available
        return ReadResult(ReadStatus.WOULD_BLOCK)
    if not data:
        return ReadResult(ReadStatus.END_OF_STREAM)
    return ReadResult(ReadStatus.DATA, data=data)


def drain(active: ActiveFile, sincedb: SinceDB, consumer, chunk_size: int = DEFAULT_CHUNK_SIZE,
          encoding: str = "utf-8", delimiter: bytes = b"\n", max_line_bytes: int | None = None,
          log: logging.Logger = logger) -> int:
    """Read everything currently available from *active*. Returns chunks read.

    Each complete line goes to ``consumer(path, line)`` in file order; after
    every chunk the checkpoint for the file's identity moves to the handle's
    current position.
    """
    if active.tokenizer is None:
        active.tokenizer = BufferedTokenizer(delimiter, max_line_bytes)

    chunks = 0
    while True:
        result = read_chunk(active.handle, chunk_size)
        if result.status is ReadStatus.ERROR:
            log.warning("read error on %s: %s", active.path, result.error)
            break
        if result.status is not ReadStatus.DATA:
            break

        chunks += 1
        try:
            lines = active.tokenizer.extract(result.data)
        except TokenizerError as e:
            log.warning("%s: %s, dropping buffered data", active.path, e)
            lines = e.lines

        for line in lines:
            consumer(active.path, line.decode(encoding, errors="replace"))

        sincedb.set(active.identity, active.handle.tell())

    return chunks
