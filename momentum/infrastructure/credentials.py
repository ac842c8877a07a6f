"""Bearer-token persistence.

The API client reads the token on every call and clears it when the server
answers 401. The session slice writes it on sign-in and removes it on
sign-out. Both go through a :class:`TokenStore`, so tests can run against an
in-memory store while the CLI keeps the token in a file under the user's home
directory.
"""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Protocol


class TokenStore(Protocol):
    """Contract for durable credential storage."""

    def load(self) -> str | None:
        """Return the stored token, if any."""

    def save(self, token: str) -> None:
        """Persist ``token``, replacing any previous value."""

    def clear(self) -> None:
        """Forget the stored token."""


class MemoryTokenStore:
    """Process-local store used in tests and one-shot scripts."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def load(self) -> str | None:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore:
    """Keep the token in a single file readable only by its owner."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> str | None:
        try:
            token = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None

    def save(self, token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".token-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                fp.write(token)
            try:
                os.chmod(tmp_name, 0o600)
            except OSError:  # pragma: no cover - platform without POSIX modes
                pass
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
