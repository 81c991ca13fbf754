"""AUTH frame signature.

The dispatch service verifies::

    SHA-256(client_id + timestamp + hex(SHA-256(secret)))

hex-encoded. This is hash chaining, not a keyed MAC: it gives no protection
against replay beyond the timestamp and should not be treated as one. The
construction is kept as-is because the server checks exactly this string.
"""

import hashlib
import time
from typing import Optional


def compute_signature(client_id: str, timestamp: str, secret: str) -> str:
    """Return the 64-character hex signature for an AUTH frame."""
    secret_hash = hashlib.sha256(secret.encode("utf-8")).hexdigest()
    payload = f"{client_id}{timestamp}{secret_hash}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def current_timestamp(now: Optional[float] = None) -> str:
    """Wall-clock UNIX seconds as a decimal string."""
    if now is None:
        now = time.time()
    return str(int(now))
