"""Durable storage for the session token pair."""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

logger = logging.getLogger("lms_platform.client")

ACCESS_TOKEN_KEY = "lms_access_token"
REFRESH_TOKEN_KEY = "lms_refresh_token"


class TokenStore(ABC):
    """Key/value store holding the two session tokens."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    def load(self) -> Tuple[Optional[str], Optional[str]]:
        return self.get(ACCESS_TOKEN_KEY), self.get(REFRESH_TOKEN_KEY)

    def save(self, access_token: str, refresh_token: str) -> None:
        self.set(ACCESS_TOKEN_KEY, access_token)
        self.set(REFRESH_TOKEN_KEY, refresh_token)

    def clear(self) -> None:
        self.delete(ACCESS_TOKEN_KEY)
        self.delete(REFRESH_TOKEN_KEY)


class MemoryTokenStore(TokenStore):
    """Process-local store; nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileTokenStore(TokenStore):
    """Tokens kept in a small JSON file, readable only by the owner."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable token file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        if not data:
            if self.path.exists():
                self.path.unlink()
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")
        os.chmod(self.path, 0o600)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)
