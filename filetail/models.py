"""Core data types shared by the tailer components."""

import os
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

CREATE = "create"
CREATE_INITIAL = "create_initial"
MODIFY = "modify"
DELETE = "delete"


class FileIdentity(NamedTuple):
    """Physical file identity, stable across renames."""

    inode: int
    dev_major: int
    dev_minor: int

    @classmethod
    def from_stat(cls, st: os.stat_result) -> "FileIdentity":
        return cls(st.st_ino, os.major(st.st_dev), os.minor(st.st_dev))


class ReadStatus(Enum):
    DATA = "data"
    WOULD_BLOCK = "would_block"
    END_OF_STREAM = "end_of_stream"
    ERROR = "error"


@dataclass(frozen=True)
class ReadResult:
    status: ReadStatus
    data: bytes = b""
    error: OSError | None = None


@dataclass
class OpenResult:
    ok: bool
    path: str
    handle: object = None
    identity: FileIdentity | None = None
    size: int = 0
    position: int = 0
    error: OSError | None = None


@dataclass
class ActiveFile:
    path: str
    handle: object          # unbuffered binary file object (io.FileIO)
    identity: FileIdentity
    tokenizer: object = None  # BufferedTokenizer, created on first read
