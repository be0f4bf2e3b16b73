"""Key store backed by owner-only files in the data directory."""

import base64
import hashlib
import os
from dataclasses import dataclass
from pathlib import Path

from yogaageproof.services.crypto import KeyStore


@dataclass
class FileKeyStore(KeyStore):
    """One base64 key file per user, readable only by the owner.

    Files are named by a digest of the user id so distinct ids never share a
    file and no id can escape the directory. Losing a key file makes that
    user's backups unreadable.
    """

    directory: Path

    def get_key(self, user_id: str) -> bytes | None:
        path = self._path(user_id)
        if not path.exists():
            return None
        return base64.b64decode(path.read_text(encoding="utf-8").strip())

    def set_key(self, user_id: str, key: bytes) -> None:
        """Write the key atomically with mode 0600."""
        self.directory.mkdir(parents=True, exist_ok=True, mode=0o700)
        path = self._path(user_id)
        tmp_path = path.with_suffix(".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(base64.b64encode(key).decode("ascii"))
        os.replace(tmp_path, path)

    def _path(self, user_id: str) -> Path:
        digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()
        return self.directory / f"encryption_key_{digest}.key"
