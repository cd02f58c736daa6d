"""FileRegistry: active file handles plus per-path bookkeeping."""

import logging

from filetail.models import ActiveFile, FileIdentity

logger = logging.getLogger(__name__)


class FileRegistry:
    """path -> ActiveFile, path -> identity cache and per-path warn timestamps.

    The identity cache lives and dies with the active entry; warn timestamps
    outlive it so open-failure suppression survives repeated failures.
    """

    NEVER_WARNED = 0.0

    def __init__(self):
        self._files: dict[str, ActiveFile] = {}
        self._identities: dict[str, FileIdentity] = {}
        self._last_warn: dict[str, float] = {}

    def add(self, active: ActiveFile):
        self._files[active.path] = active
        self._identities[active.path] = active.identity

    def get(self, path: str) -> ActiveFile | None:
        return self._files.get(path)

    def remove(self, path: str) -> ActiveFile | None:
        self._identities.pop(path, None)
        return self._files.pop(path, None)

    def identity_for(self, path: str) -> FileIdentity | None:
        return self._identities.get(path)

    def paths(self) -> list[str]:
        return list(self._files)

    def __contains__(self, path: str) -> bool:
        return path in self._files

    def __len__(self) -> int:
        return len(self._files)

    def last_warn(self, path: str) -> float:
        return self._last_warn.get(path, self.NEVER_WARNED)

    def mark_warned(self, path: str, now: float):
        self._last_warn[path] = now

    def close_all(self):
        """Close every open handle and forget all active entries."""
        for active in self._files.values():
            try:
                active.handle.close()
            except OSError as e:
                logger.debug("Error closing %s: %s", active.path, e)
        self._files.clear()
        self._identities.clear()
