"""
Fastpress - request layer of a small Python web framework.

Provides an immutable, per-request facade over query, form, header, cookie,
upload and body data, with method detection, content negotiation, minimal
validation and CSRF protection.
"""

import logging

from fastpress.config import RequestSettings, configure_logging, get_settings
from fastpress.exceptions import (
    CsrfError,
    ImmutableRequestError,
    RequestError,
    SessionUnavailableError,
)
from fastpress.files import UPLOAD_ERR_OK, UploadedFile
from fastpress.request import Request
from fastpress.security import CsrfTokens, Sanitizer, is_public_ip
from fastpress.session import MemorySession, SessionStore
from fastpress.validation import Validator

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "1.0.0"
__all__ = [
    "Request",
    "RequestSettings",
    "get_settings",
    "configure_logging",
    "RequestError",
    "CsrfError",
    "ImmutableRequestError",
    "SessionUnavailableError",
    "UploadedFile",
    "UPLOAD_ERR_OK",
    "CsrfTokens",
    "Sanitizer",
    "is_public_ip",
    "SessionStore",
    "MemorySession",
    "Validator",
]
