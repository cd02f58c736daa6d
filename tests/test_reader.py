"""Tests for the non-blocking read primitive and the drain loop."""

import errno
import logging

from filetail.models import ActiveFile, FileIdentity, ReadStatus
from filetail.reader import drain, read_chunk
from filetail.sincedb import SinceDB

IDENTITY = FileIdentity(42, 8, 1)


class ScriptedHandle:
    """File-like object replaying a fixed sequence of read outcomes."""

    def __init__(self, script):
        self._script = list(script)
        self._pos = 0
        self.closed = False

    def read(self, size):
        step = self._script.pop(0) if self._script else b""
        if isinstance(step, BaseException):
            raise step
        if step:
            self._pos += len(step)
        return step

    def tell(self):
        return self._pos

    def close(self):
        self.closed = True


class TestReadChunk:
    def test_data(self):
        result = read_chunk(ScriptedHandle([b"abc"]))
        assert result.status is ReadStatus.DATA
        assert result.data == b"abc"

    def test_end_of_stream(self):
        assert read_chunk(ScriptedHandle([b""])).status is ReadStatus.END_OF_STREAM

    def test_none_is_would_block(self):
        assert read_chunk(ScriptedHandle([None])).status is ReadStatus.WOULD_BLOCK

    def test_blocking_io_error_is_would_block(self):
        handle = ScriptedHandle([BlockingIOError(errno.EAGAIN, "again")])
        assert read_chunk(handle).status is ReadStatus.WOULD_BLOCK

    def test_interrupted_is_would_block(self):
        handle = ScriptedHandle([InterruptedError(errno.EINTR, "interrupted")])
        assert read_chunk(handle).status is ReadStatus.WOULD_BLOCK

    def test_other_os_error(self):
        err = OSError(errno.EIO, "io error")
        result = read_chunk(ScriptedHandle([err]))
        assert result.status is ReadStatus.ERROR
        assert result.error is err

    def test_real_file_chunks(self, tmp_path):
        f = tmp_path / "a.log"
        f.write_bytes(b"x" * 10)
        with open(f, "rb", buffering=0) as fh:
            assert read_chunk(fh, 4).data == b"xxxx"
            assert read_chunk(fh, 4).data == b"xxxx"
            assert read_chunk(fh, 4).data == b"xx"
            assert read_chunk(fh, 4).status is ReadStatus.END_OF_STREAM


class TestDrain:
    def _active(self, handle, path="/var/log/a.log"):
        return ActiveFile(path=path, handle=handle, identity=IDENTITY)

    def test_emits_lines_and_checkpoints(self, sincedb_path, collector):
        db = SinceDB(sincedb_path)
        active = self._active(ScriptedHandle([b"foo\nba", b"r\n", b""]))
        chunks = drain(active, db, collector)
        assert chunks == 2
        assert collector.calls == [("/var/log/a.log", "foo"), ("/var/log/a.log", "bar")]
        assert db.get(IDENTITY) == 8

    def test_partial_line_held_between_calls(self, sincedb_path, collector):
        db = SinceDB(sincedb_path)
        active = self._active(ScriptedHandle([b"foo\nba", None, b"r\n", b""]))
        drain(active, db, collector)
        assert collector.lines == ["foo"]
        # checkpoint counts bytes read, including the buffered fragment
        assert db.get(IDENTITY) == 6
        drain(active, db, collector)
        assert collector.lines == ["foo", "bar"]
        assert db.get(IDENTITY) == 8

    def test_nothing_available(self, sincedb_path, collector):
        db = SinceDB(sincedb_path)
        chunks = drain(self._active(ScriptedHandle([None])), db, collector)
        assert chunks == 0
        assert collector.calls == []
        assert IDENTITY not in db

    def test_read_error_stops_loop(self, sincedb_path, collector, caplog):
        db = SinceDB(sincedb_path)
        active = self._active(ScriptedHandle([b"one\n", OSError(errno.EIO, "io"), b"two\n"]))
        with caplog.at_level(logging.WARNING, logger="filetail.reader"):
            chunks = drain(active, db, collector)
        assert chunks == 1
        assert collector.lines == ["one"]
        assert any("read error" in r.getMessage() for r in caplog.records)

    def test_small_chunks_from_real_file(self, tmp_path, sincedb_path, collector):
        f = tmp_path / "a.log"
        content = b"first line\nsecond\nthird line here\n"
        f.write_bytes(content)
        db = SinceDB(sincedb_path)
        with open(f, "rb", buffering=0) as fh:
            chunks = drain(self._active(fh, str(f)), db, collector, chunk_size=5)
        assert collector.lines == ["first line", "second", "third line here"]
        assert chunks == (len(content) + 4) // 5
        assert db.get(IDENTITY) == len(content)

    def test_invalid_utf8_replaced(self, sincedb_path, collector):
        db = SinceDB(sincedb_path)
        drain(self._active(ScriptedHandle([b"caf\xe9\n", b""])), db, collector)
        assert collector.lines == ["caf\ufffd"]

    def test_oversized_line_dropped(self, sincedb_path, collector, caplog):
        db = SinceDB(sincedb_path)
        active = self._active(ScriptedHandle([b"ok\n" + b"x" * 20, b"\nnext\n", b""]))
        with caplog.at_level(logging.WARNING, logger="filetail.reader"):
            drain(active, db, collector, max_line_bytes=8)
        # the oversized line is skipped through its terminator
        assert collector.lines == ["ok", "next"]
        assert db.get(IDENTITY) == 29
