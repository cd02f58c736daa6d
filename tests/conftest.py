"""Shared pytest fixtures for the file-tail-service test suite."""

import os

import pytest

from filetail.config import TailConfig
from filetail.models import FileIdentity


class LineCollector:
    """Consumer callback that records (path, line) pairs."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    def __call__(self, path: str, line: str):
        self.calls.append((path, line))

    @property
    def lines(self) -> list[str]:
        return [line for _, line in self.calls]


def identity_of(path) -> FileIdentity:
    return FileIdentity.from_stat(os.stat(path))


@pytest.fixture()
def collector() -> LineCollector:
    return LineCollector()


@pytest.fixture()
def sincedb_path(tmp_path) -> str:
    return str(tmp_path / "state" / ".sincedb")


@pytest.fixture()
def config(sincedb_path) -> TailConfig:
    """Config pointing at a temp sincedb, notifications off."""
    return TailConfig(sincedb_path=sincedb_path, notify=False, stat_interval=0.05,
                      discover_interval=0.05)


@pytest.fixture()
def fake_time():
    """Mutable clock: set fake_time[0] to move time."""
    return [1000.0]
