"""Configuration for the PIN client.

Simple configuration loader from environment variables.
Also supports persistent file-based configuration for the CLI and monitor.
"""

import json
import os
import platform
from dataclasses import dataclass, asdict
from functools import lru_cache
from pathlib import Path
from typing import Optional

DEFAULT_SERVER_URL = "wss://aiassist-secure.replit.app/api/v1/pin/ws"
DEFAULT_BACKEND_URL = "http://localhost:11434"
PIN_WS_PATH = "/api/v1/pin/ws"


# =============================================================================
# Persistent Configuration (File-based)
# =============================================================================

def get_data_dir() -> Path:
    """Get the data directory for pin-client."""
    override = os.environ.get("PIN_CLIENT_HOME")
    if override:
        data_dir = Path(override)
    else:
        if platform.system() == "Windows":
            base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        elif platform.system() == "Darwin":
            base = Path.home() / "Library" / "Application Support"
        else:
            base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
        data_dir = base / "pin-client"

    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_config_path() -> Path:
    """Get the path to the config file."""
    return get_data_dir() / "config.json"


@dataclass
class PinConfig:
    """PIN client persistent configuration. The secret is not stored here."""
    client_id: str = ""
    server_url: str = ""
    backend_url: str = ""
    concurrent_requests: bool = False

    def save(self) -> None:
        """Save configuration to disk."""
        config_path = get_config_path()
        with open(config_path, "w") as f:
            json.dump(asdict(self), f, indent=2)

    @classmethod
    def load(cls) -> "PinConfig":
        """Load configuration from disk, falling back to the environment."""
        env = load_config()
        config_path = get_config_path()
        data: dict = {}
        if config_path.exists():
            try:
                with open(config_path, "r") as f:
                    data = json.load(f)
            except (json.JSONDecodeError, OSError):
                data = {}
            if not isinstance(data, dict):
                data = {}
        return cls(
            client_id=data.get("client_id") or env["CLIENT_ID"],
            server_url=data.get("server_url") or env["SERVER_URL"],
            backend_url=data.get("backend_url") or env["BACKEND_URL"],
            concurrent_requests=bool(data.get("concurrent_requests") or env["CONCURRENT_REQUESTS"]),
        )

    def resolved_server_url(self) -> str:
        return normalize_server_url(self.server_url)

    def resolved_backend_url(self) -> str:
        return self.backend_url or DEFAULT_BACKEND_URL


def normalize_server_url(server_url: str) -> str:
    """Turn a configured server address into the session WebSocket URL.

    http(s) base URLs get the ws scheme and the PIN endpoint path; ws(s) URLs
    are taken as-is; empty means the default service.
    """
    server_url = server_url.strip()
    if not server_url:
        return DEFAULT_SERVER_URL
    if server_url.startswith(("ws://", "wss://")):
        return server_url
    if server_url.startswith("https://"):
        server_url = "wss://" + server_url[len("https://"):]
    elif server_url.startswith("http://"):
        server_url = "ws://" + server_url[len("http://"):]
    return server_url.rstrip("/") + PIN_WS_PATH


# =============================================================================
# Environment Variable Configuration
# =============================================================================


@lru_cache(maxsize=1)
def load_config() -> dict:
    """
    Load application configuration from environment variables.

    Returns:
        dict with configuration values
    """
    return {
        # Connection defaults (the persisted config file wins when set)
        "SERVER_URL": os.getenv("PIN_SERVER_URL", ""),
        "BACKEND_URL": os.getenv("PIN_BACKEND_URL", ""),
        "CLIENT_ID": os.getenv("PIN_CLIENT_ID", ""),

        # Timeouts in seconds
        "LIST_MODELS_TIMEOUT": float(os.getenv("LIST_MODELS_TIMEOUT", "10.0")),
        "CHAT_TIMEOUT": float(os.getenv("CHAT_TIMEOUT", "120.0")),
        "AUTH_TIMEOUT": float(os.getenv("AUTH_TIMEOUT", "10.0")),
        "SEND_TIMEOUT": float(os.getenv("SEND_TIMEOUT", "5.0")),

        # Serve inference requests concurrently instead of one at a time
        "CONCURRENT_REQUESTS": os.getenv("PIN_CONCURRENT_REQUESTS", "false").lower() == "true",
    }


def get_config_value(key: str, default: Optional[str] = None):
    """Get a single configuration value."""
    config = load_config()
    return config.get(key, default)
