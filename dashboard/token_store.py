"""File-backed bearer token storage, the dashboard's local storage."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class TokenStore:
    """Keeps a single bearer token in a file readable only by its owner."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load(self) -> str | None:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Created owner-only; chmod covers a file left by an older run
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(token)
        os.chmod(self.path, 0o600)
        logger.debug("Token saved to %s", self.path)

    def clear(self) -> None:
        try:
            self.path.unlink()
            logger.debug("Token removed from %s", self.path)
        except FileNotFoundError:
            pass


class MemoryTokenStore:
    """In-process store for scripts and tests that must not touch the disk."""

    def __init__(self, token: str | None = None):
        self._token = token

    def load(self) -> str | None:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None
