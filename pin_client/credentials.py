"""Local credential store for the client's API secret.

Secrets live in ``<data dir>/credentials.json``, readable only by the owner.
A missing entry is "not configured", never an error; only a store that cannot
be read or written raises.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .config import get_data_dir
from .errors import ConfigError
from .session import Identity

logger = logging.getLogger(__name__)


class CredentialStore:
    """Store/get/delete an API secret keyed by client id."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path or get_data_dir() / "credentials.json"

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigError(f"Failed to read credential store {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Credential store {self.path} is corrupt")
        return data

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        # O_CREAT mode is ignored for files that already exist
        os.chmod(self.path, 0o600)

    def store(self, client_id: str, secret: str) -> None:
        if not client_id or not secret:
            raise ConfigError("Client ID and API secret are required")
        data = self._read()
        data[client_id] = secret
        self._write(data)
        logger.info("Credentials stored securely for client: %s", client_id)

    def get(self, client_id: str) -> Optional[str]:
        secret = self._read().get(client_id)
        return secret if isinstance(secret, str) and secret else None

    def delete(self, client_id: str) -> bool:
        data = self._read()
        if client_id not in data:
            return False
        del data[client_id]
        self._write(data)
        logger.info("Credentials deleted for client: %s", client_id)
        return True


def resolve_identity(client_id: Optional[str], store: CredentialStore) -> Identity:
    """Build the session identity for ``client_id`` from the store.

    Raises:
        ConfigError: no client id configured, no secret stored, or the store
            could not be read
    """
    if not client_id:
        raise ConfigError("No client ID configured")
    secret = store.get(client_id)
    if secret is None:
        raise ConfigError(f"No API secret stored for client {client_id}")
    return Identity(client_id=client_id, secret=secret)
