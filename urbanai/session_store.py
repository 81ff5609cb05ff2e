import os
import json
import logging
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional

from urbanai import config

logger = logging.getLogger(__name__)

TOKEN_KEY = 'decotwo_token'
USER_KEY = 'decotwo_user'
EXPIRES_KEY = 'decotwo_token_expires'
MAP_EXTENT_KEY = 'mapExtent'

AUTH_KEYS = (TOKEN_KEY, USER_KEY, EXPIRES_KEY)


def _sanitize_filename(s: str) -> str:
    return ''.join(c for c in s if c.isalnum() or c in ('-', '_')).rstrip() or 'default'


class SessionStore:
    """String key/value store persisted as one JSON file per profile.

    Mirrors browser local storage: values are strings, missing keys read as None.
    """

    def __init__(self, directory: Optional[Path] = None, profile: str = 'default'):
        self.directory = Path(directory or config.SESSION_DIR)
        self.path = self.directory / f"{_sanitize_filename(profile)}.json"
        # the Flask app shares one store across request threads
        self._lock = threading.RLock()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]):
        os.makedirs(self.directory, exist_ok=True)
        with tempfile.NamedTemporaryFile('w', encoding='utf-8', dir=self.directory,
                                         prefix=f"{self.path.stem}.", suffix='.tmp', delete=False) as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            tmp_path = f.name
        try:
            os.replace(tmp_path, self.path)
        except OSError:
            os.unlink(tmp_path)
            raise

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str):
        with self._lock:
            data = self._load()
            data[key] = str(value)
            self._save(data)

    def remove_item(self, key: str):
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)

    def clear(self, keys: Iterable[str] = AUTH_KEYS):
        with self._lock:
            data = self._load()
            for key in keys:
                data.pop(key, None)
            self._save(data)

    def items(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._load())
