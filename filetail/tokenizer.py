"""BufferedTokenizer: splits a byte stream into delimiter-terminated lines."""


class TokenizerError(ValueError):
    """Raised when the buffered fragment grows past the configured limit.

    ``lines`` holds any lines the same extract() call completed before the
    overflow, so callers can still deliver them.
    """

    def __init__(self, message: str, lines: list[bytes] | None = None):
        super().__init__(message)
        self.lines = lines or []


class BufferedTokenizer:
    """Carries an incomplete trailing fragment between extract() calls.

    Only complete lines are returned; the delimiter is stripped. A fragment
    without a terminator is held until more data (or flush()) arrives. After
    an overflow the rest of the oversized line is skipped up to its delimiter.
    """

    def __init__(self, delimiter: bytes = b"\n", size_limit: int | None = None):
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self._delimiter = delimiter
        self._size_limit = size_limit
        self._buffer = b""
        self._discarding = False

    def extract(self, data: bytes) -> list[bytes]:
        """Feed *data*, return every line it completes."""
        # Split the held fragment together with the new data so a multi-byte
        # delimiter cut across two reads is still found
        parts = (self._buffer + data).split(self._delimiter)
        self._buffer = b""
        tail = parts.pop()

        if self._discarding:
            if not parts:
                self._buffer = self._carry(tail)
                return []
            # first part is the remainder of the overflowed line
            parts.pop(0)
            self._discarding = False

        if self._size_limit is not None and len(tail) > self._size_limit:
            self._buffer = self._carry(tail)
            self._discarding = True
            raise TokenizerError(f"input buffer full (limit {self._size_limit} bytes)", parts)

        self._buffer = tail
        return parts

    def _carry(self, tail: bytes) -> bytes:
        """Bytes of a discarded fragment that could start a split delimiter."""
        keep = len(self._delimiter) - 1
        return tail[max(0, len(tail) - keep):] if keep else b""

    def flush(self) -> bytes:
        """Return and clear the buffered fragment."""
        data = b"" if self._discarding else self._buffer
        self._buffer = b""
        self._discarding = False
        return data

    def empty(self) -> bool:
        return self._discarding or not self._buffer
