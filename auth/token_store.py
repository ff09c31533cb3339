"""
Small key-value store for OAuth tokens and pending authorization states.
Backed by a JSON file so the dashboard and the token worker can share it,
or by a dict when no path is given.
"""

import fcntl
import json
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path

MEMORY = ":memory:"


class TokenStore:
    def __init__(self, path=None):
        self.path = Path(path).expanduser() if path else None
        self._data = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: dict) -> "TokenStore":
        location = config["worker"].get("token_store") or MEMORY
        return cls(None if location == MEMORY else location)

    @contextmanager
    def _locked(self):
        """Thread lock, plus an flock on a sidecar file shared by every process using the path."""
        with self._lock:
            if self.path is None:
                yield
                return
            self.path.parent.mkdir(parents=True, exist_ok=True)
            lock_path = self.path.with_name(self.path.name + ".lock")
            with open(lock_path, "a") as lock_file:
                fcntl.flock(lock_file, fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_file, fcntl.LOCK_UN)

    def _load(self) -> dict:
        if self.path is None:
            return self._data
        if not self.path.exists():
            return {}
        text = self.path.read_text()
        return json.loads(text) if text.strip() else {}

    def _save(self, data: dict):
        if self.path is None:
            self._data = data
            return
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    @staticmethod
    def _live(entry: dict, now: float) -> bool:
        return entry.get("expires_at") is None or entry["expires_at"] > now

    def get(self, key: str):
        with self._locked():
            entry = self._load().get(key)
        if entry is None or not self._live(entry, time.time()):
            return None
        return entry["value"]

    def put(self, key: str, value: str, ttl: int = None):
        """Store value under key. With ttl (seconds) the entry expires; ttl <= 0 is already expired."""
        now = time.time()
        with self._locked():
            data = {k: v for k, v in self._load().items() if self._live(v, now)}
            data[key] = {"value": value, "expires_at": now + ttl if ttl is not None else None}
            self._save(data)

    def pop(self, key: str):
        """Remove key and return its value, or None if missing or expired. Atomic across threads and processes."""
        with self._locked():
            data = self._load()
            entry = data.pop(key, None)
            if entry is None:
                return None
            self._save(data)
        return entry["value"] if self._live(entry, time.time()) else None

    def delete(self, key: str):
        with self._locked():
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)

    def keys(self, prefix: str = "") -> list[str]:
        now = time.time()
        with self._locked():
            data = self._load()
        return sorted(k for k, v in data.items() if k.startswith(prefix) and self._live(v, now))
