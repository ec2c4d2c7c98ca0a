"""
Session collaborators for Fastpress.

The request only needs ``get`` and ``set``; session lifecycle (loading,
persisting, expiring) belongs to the host framework.
"""

from typing import Any, Dict, Optional, Protocol


class SessionStore(Protocol):
    """Minimal key/value session interface consumed by the request."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class MemorySession:
    """
    In-memory session store.

    Useful for tests and for hosts that keep session state in a plain dict
    which they persist themselves after the request.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._store: Dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a value from the session."""
        return self._store.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store a value in the session."""
        self._store[key] = value

    def to_dict(self) -> Dict[str, Any]:
        """Return a copy of the session contents for persistence."""
        return dict(self._store)
