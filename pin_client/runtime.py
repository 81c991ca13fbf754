"""Runtime info for `pin-client status`.

A running client writes runtime.json next to its config every second so that
another process can see the session status without talking to it.

Location (platform-specific):
  - macOS: ~/Library/Application Support/pin-client/runtime.json
  - Linux: ~/.local/share/pin-client/runtime.json
  - Windows: %APPDATA%/pin-client/runtime.json
"""

import json
import os
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Optional

from .config import get_data_dir
from .state import StateSnapshot


@lru_cache(maxsize=1)
def get_version() -> str:
    """Get the installed package version."""
    from importlib.metadata import PackageNotFoundError, version
    try:
        return version("pin-client")
    except PackageNotFoundError:
        return "0.1.0"


def get_runtime_path() -> Path:
    """Get path to runtime.json."""
    return get_data_dir() / "runtime.json"


@dataclass
class RuntimeInfo:
    """Runtime info written while a client runs.

    Attributes:
        pid: Process ID of the client
        started_at: ISO timestamp when the client started
        version: Version of pin-client
        status: Last StateSnapshot.to_dict() of the session
    """

    pid: int
    started_at: str
    version: str
    status: dict = field(default_factory=dict)

    def save(self) -> None:
        """Write runtime info to disk."""
        path = get_runtime_path()
        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)

    def update_status(self, snapshot: StateSnapshot) -> None:
        """Record the latest status snapshot and save."""
        self.status = snapshot.to_dict()
        self.save()

    @classmethod
    def load(cls) -> Optional["RuntimeInfo"]:
        """Load runtime info from disk.

        Returns:
            RuntimeInfo if file exists and is valid, None otherwise.
        """
        path = get_runtime_path()
        if not path.exists():
            return None
        try:
            with open(path) as f:
                data = json.load(f)
            return cls(
                pid=data["pid"],
                started_at=data["started_at"],
                version=data["version"],
                status=data.get("status") or {},
            )
        except (json.JSONDecodeError, KeyError, TypeError):
            return None

    @classmethod
    def clear(cls) -> None:
        """Remove runtime file on shutdown."""
        path = get_runtime_path()
        path.unlink(missing_ok=True)

    def to_status_dict(self) -> dict:
        """Convert to status dict for CLI output."""
        return {
            "running": True,
            "pid": self.pid,
            "started_at": self.started_at,
            "version": self.version,
            **self.status,
        }


def write_runtime_info(snapshot: Optional[StateSnapshot] = None) -> RuntimeInfo:
    """Create and save runtime info for this process."""
    info = RuntimeInfo(
        pid=os.getpid(),
        started_at=datetime.now(timezone.utc).isoformat(),
        version=get_version(),
        status=snapshot.to_dict() if snapshot else {},
    )
    info.save()
    return info


def _process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)  # Signal 0 just checks if process exists
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def get_status() -> dict:
    """Get current status for CLI output.

    Returns:
        Status dict with running=True and the session status, or running=False
    """
    info = RuntimeInfo.load()
    if not info:
        return {"running": False}

    if not _process_alive(info.pid):
        # Process not running, clean up stale file
        RuntimeInfo.clear()
        return {"running": False}

    return info.to_status_dict()
