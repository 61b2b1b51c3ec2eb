from __future__ import annotations

import logging
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken


logger = logging.getLogger(__name__)


def ensure_session_key(key_path: Path) -> bytes:
    """Return the Fernet key used to seal the cached provider session.

    - If the key file is missing, generates a fresh key and writes it.
    - Otherwise returns the stored key unchanged.
    """

    if key_path.exists():
        return key_path.read_bytes().strip()

    key = Fernet.generate_key()
    key_path.parent.mkdir(parents=True, exist_ok=True)
    key_path.write_bytes(key)
    key_path.chmod(0o600)
    return key


class SessionCache:
    """Encrypted single-slot cache for the last verified provider ID token."""

    def __init__(self, cache_path: Path, key: bytes) -> None:
        self._path = cache_path
        self._fernet = Fernet(key)

    @classmethod
    def from_paths(cls, cache_path: Path, key_path: Path) -> "SessionCache":
        return cls(cache_path, ensure_session_key(key_path))

    def save(self, id_token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_bytes(self._fernet.encrypt(id_token.encode("utf-8")))
        self._path.chmod(0o600)

    def load(self) -> str | None:
        if not self._path.exists():
            return None
        try:
            return self._fernet.decrypt(self._path.read_bytes()).decode("utf-8")
        except InvalidToken:
            # Written under a different key; treat as no session.
            logger.warning("Discarding unreadable session cache at %s", self._path)
            self.clear()
            return None

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
