"""
Exception classes for the Fastpress request layer.

Absent keys and failed validation rules are not errors: accessors return
defaults and ``validate`` returns a mapping. Only the conditions below
abort a request.
"""


class RequestError(Exception):
    """Base exception for the request layer."""


class CsrfError(RequestError):
    """Raised when a state-changing request fails CSRF verification."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"CSRF token validation failed: {reason}")


class ImmutableRequestError(RequestError, AttributeError):
    """Raised on any attempt to modify a request after construction."""

    def __init__(self, name: str = ""):
        self.name = name
        detail = f" (attribute '{name}')" if name else ""
        super().__init__(f"Cannot modify immutable Request object{detail}.")


class SessionUnavailableError(RequestError):
    """Raised when CSRF helpers are used on a request without a session store."""

    def __init__(self):
        super().__init__("No session store is attached to this request.")
