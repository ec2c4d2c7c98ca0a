"""
Security utilities for the Fastpress request layer.

Contains the input sanitizer used by the ``sanitize=`` accessor flag, the
CSRF token issuer/verifier and the client address classifier used by
``Request.get_ip``.
"""

import hmac
import html
import ipaddress
import logging
import secrets
from typing import Any, Optional, Union

from fastpress.exceptions import CsrfError, SessionUnavailableError
from fastpress.session import SessionStore

logger = logging.getLogger(__name__)

CSRF_TOKEN_BYTES = 32


class Sanitizer:
    """Input sanitization utilities."""

    @staticmethod
    def escape(value: Any) -> Any:
        """
        HTML-escape a value, including quotes and ampersands.

        Lists, tuples and dicts are escaped recursively (dict values only).
        Anything that is not a string or a container is returned unchanged.
        """
        if isinstance(value, str):
            return html.escape(value, quote=True)
        if isinstance(value, list):
            return [Sanitizer.escape(item) for item in value]
        if isinstance(value, tuple):
            return tuple(Sanitizer.escape(item) for item in value)
        if isinstance(value, dict):
            return {key: Sanitizer.escape(item) for key, item in value.items()}
        return value


class CsrfTokens:
    """Issues and verifies CSRF tokens kept in a session store."""

    def __init__(self, session: Optional[SessionStore], session_key: str = "_csrf_token"):
        self._session = session
        self._session_key = session_key

    def generate(self) -> str:
        """Create a new 256-bit token, store it in the session and return it."""
        session = self._require_session()
        token = secrets.token_hex(CSRF_TOKEN_BYTES)
        session.set(self._session_key, token)
        return token

    def verify(self, supplied: Optional[str]) -> None:
        """
        Compare ``supplied`` with the stored token in constant time.

        Raises CsrfError when either token is missing or they differ.
        """
        session = self._require_session()
        expected = session.get(self._session_key)
        if not expected:
            self._reject("no token in session")
        if not supplied or not isinstance(supplied, str):
            self._reject("no token supplied")
        if not hmac.compare_digest(str(expected).encode("utf-8"), supplied.encode("utf-8")):
            self._reject("token mismatch")

    def _require_session(self) -> SessionStore:
        if self._session is None:
            raise SessionUnavailableError()
        return self._session

    @staticmethod
    def _reject(reason: str) -> None:
        logger.warning("CSRF verification failed", extra={"reason": reason})
        raise CsrfError(reason)


def parse_ip(candidate: Any) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    """Return the parsed address, or None when ``candidate`` is not an IP."""
    if not isinstance(candidate, str):
        return None
    try:
        return ipaddress.ip_address(candidate.strip())
    except ValueError:
        return None


def is_public_ip(candidate: Any) -> bool:
    """True when ``candidate`` is a valid address outside private and reserved ranges."""
    address = parse_ip(candidate)
    if address is None:
        return False
    return not (
        address.is_private
        or address.is_reserved
        or address.is_loopback
        or address.is_link_local
        or address.is_multicast
        or address.is_unspecified
    )
