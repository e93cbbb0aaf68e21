"""Idempotency keys for booking submissions."""

import hashlib
import json
from datetime import UTC, datetime, timedelta
from typing import Any


class IdempotencyStore:
    """In-memory idempotency key store.

    Maps a key to the id of the booking it produced. The SQL booking store
    keeps the key on the row instead, so this is only used in memory.
    """

    def __init__(self, ttl: timedelta = timedelta(hours=24)):
        self._keys: dict[str, dict] = {}
        self._ttl = ttl

    def _cleanup_expired(self) -> None:
        """Remove expired keys."""
        now = datetime.now(UTC)
        expired = [k for k, v in self._keys.items() if v["expires_at"] < now]
        for k in expired:
            del self._keys[k]

    def get(self, key: str) -> str | None:
        """Get the booking id stored for an idempotency key."""
        self._cleanup_expired()
        entry = self._keys.get(key)
        if entry and entry["expires_at"] > datetime.now(UTC):
            return entry["result"]
        return None

    def set(self, key: str, result: str) -> None:
        """Store the booking id produced for an idempotency key."""
        self._keys[key] = {
            "result": result,
            "expires_at": datetime.now(UTC) + self._ttl,
        }

    def delete(self, key: str) -> None:
        """Forget a key so the next submission with it creates a new booking."""
        self._keys.pop(key, None)


def generate_idempotency_key(
    operation: str,
    entity_id: str,
    params: dict[str, Any] | None = None,
) -> str:
    """Generate a deterministic idempotency key.

    Args:
        operation: Operation name (e.g., "booking_create")
        entity_id: Primary entity ID (the guest for a new booking)
        params: Additional parameters to include in key

    Returns:
        SHA256 hash of operation + entity + params
    """
    key_data = {
        "operation": operation,
        "entity_id": str(entity_id),
        "params": params or {},
    }
    key_str = json.dumps(key_data, sort_keys=True, default=str)
    return hashlib.sha256(key_str.encode()).hexdigest()
