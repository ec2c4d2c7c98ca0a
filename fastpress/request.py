"""
Request handling for the Fastpress framework.

A :class:`Request` is built once per inbound request from explicit maps
(query, form, server/environment, cookies, uploaded files, headers) and a
body source. It never reads process-wide state: the framework bootstrap
collects the maps, usually through :meth:`Request.from_environ`.

Everything returned by the accessors comes from the client and must be
treated as untrusted unless ``sanitize=True`` is requested.
"""

import json
import logging
from functools import cached_property
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl, urlsplit

from fastpress.config import RequestSettings, get_settings
from fastpress.exceptions import ImmutableRequestError
from fastpress.files import FileEntry, UploadedFile, normalize_file_entry
from fastpress.security import CsrfTokens, Sanitizer, is_public_ip
from fastpress.session import SessionStore
from fastpress.validation import Validator

logger = logging.getLogger(__name__)

HEADER_PREFIX = "HTTP_"
# CGI/WSGI keep these two outside the HTTP_ namespace.
UNPREFIXED_HEADERS = ("CONTENT_TYPE", "CONTENT_LENGTH")

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"


def _normalize_header_name(name: str) -> str:
    return name.strip().upper().replace("-", "_")


def _canonical_header_name(name: str) -> str:
    return "-".join(part.capitalize() for part in name.replace("_", "-").split("-"))


def _content_length(server: Mapping[str, Any]) -> int:
    try:
        length = int(server.get("CONTENT_LENGTH") or -1)
    except (TypeError, ValueError):
        return -1
    return length if length >= 0 else -1


def _read_stream(stream: Any, length: int) -> bytes:
    data = stream.read(length) if length >= 0 else stream.read()
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data or b"")


class Request:
    """
    Represents an incoming HTTP request.

    The request is immutable once built: assigning or deleting attributes
    raises :class:`ImmutableRequestError`. The only later input is the map
    of URL parameters, which a router may set exactly once.
    """

    def __init__(
        self,
        query: Optional[Mapping[str, Any]] = None,
        form: Optional[Mapping[str, Any]] = None,
        server: Optional[Mapping[str, Any]] = None,
        cookies: Optional[Mapping[str, Any]] = None,
        files: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, Any]] = None,
        body: Union[bytes, str, Any, None] = None,
        session: Optional[SessionStore] = None,
        settings: Optional[RequestSettings] = None,
    ):
        self._init("_query", dict(query or {}))
        self._init("_form", dict(form or {}))
        self._init("_server", dict(server or {}))
        self._init("_cookies", dict(cookies or {}))
        self._init("_files", dict(files or {}))
        self._init("_explicit_headers", None if headers is None else dict(headers))
        self._init("_body_source", body)
        self._init("_session", session)
        self._init("_settings", settings or get_settings())
        self._init("_url_params", None)

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, Any],
        session: Optional[SessionStore] = None,
        settings: Optional[RequestSettings] = None,
        files: Optional[Mapping[str, Any]] = None,
    ) -> "Request":
        """
        Build a request from a WSGI environ.

        URL-encoded form bodies are read here (once) and kept as the raw
        body; any other body stream is handed over unread. A missing
        CONTENT_LENGTH means an empty body. Multipart parsing
        is left to the host, which passes the resulting descriptors in
        ``files``.
        """
        query = dict(parse_qsl(environ.get("QUERY_STRING", ""), keep_blank_values=True))

        cookies: Dict[str, str] = {}
        raw_cookie = environ.get("HTTP_COOKIE")
        if raw_cookie:
            jar: SimpleCookie = SimpleCookie()
            try:
                jar.load(raw_cookie)
            except CookieError:
                logger.warning("Ignoring malformed Cookie header")
            cookies = {name: morsel.value for name, morsel in jar.items()}

        body = environ.get("wsgi.input")
        length = _content_length(environ)
        # Without CONTENT_LENGTH a WSGI input may block on read(); the body is empty.
        if body is None or length < 0:
            body = b""
        form: Dict[str, str] = {}
        content_type = str(environ.get("CONTENT_TYPE", "")).lower()
        if FORM_CONTENT_TYPE in content_type:
            if not isinstance(body, bytes):
                body = _read_stream(body, length)
            form = dict(parse_qsl(body.decode("utf-8", "replace"), keep_blank_values=True))

        return cls(
            query=query,
            form=form,
            server=environ,
            cookies=cookies,
            files=files,
            body=body,
            session=session,
            settings=settings,
        )

    # ── Immutability ─────────────────────────────────────────────────

    def _init(self, name: str, value: Any) -> None:
        object.__setattr__(self, name, value)

    def __setattr__(self, name: str, value: Any) -> None:
        raise ImmutableRequestError(name)

    def __delattr__(self, name: str) -> None:
        raise ImmutableRequestError(name)

    def __repr__(self) -> str:
        return f"<Request {self.get_method()} {self.get_uri()}>"

    # ── Lazily computed views ────────────────────────────────────────

    @cached_property
    def _headers(self) -> Dict[str, tuple]:
        """Normalized name -> (canonical name, value)."""
        headers: Dict[str, tuple] = {}
        if self._explicit_headers is not None:
            for name, value in self._explicit_headers.items():
                headers[_normalize_header_name(name)] = (_canonical_header_name(name), value)
            return headers
        for key, value in self._server.items():
            if not isinstance(key, str):
                continue
            if key.startswith(HEADER_PREFIX):
                name = key[len(HEADER_PREFIX):]
            elif key in UNPREFIXED_HEADERS:
                name = key
            else:
                continue
            headers[_normalize_header_name(name)] = (_canonical_header_name(name), value)
        return headers

    @cached_property
    def _raw_body(self) -> bytes:
        source = self._body_source
        if source is None:
            return b""
        if isinstance(source, (bytes, bytearray)):
            return bytes(source)
        if isinstance(source, str):
            return source.encode("utf-8")
        data = _read_stream(source, _content_length(self._server))
        logger.debug("Read request body", extra={"bytes": len(data)})
        return data

    @cached_property
    def _parsed_json(self) -> Any:
        if not self.is_json():
            return {}
        raw = self._raw_body
        if not raw.strip():
            return {}
        try:
            return json.loads(raw)
        except (ValueError, RecursionError) as exc:
            logger.warning(
                "Malformed JSON request body",
                extra={"error": str(exc), "snippet": raw[:100].decode("utf-8", "replace")},
            )
            return {}

    @cached_property
    def _json_data(self) -> Dict[str, Any]:
        data = self._parsed_json
        return data if isinstance(data, dict) else {}

    @cached_property
    def _accepted_types(self) -> List[str]:
        accept = self.header("Accept") or ""
        types = []
        for token in str(accept).split(","):
            media_type = token.split(";", 1)[0].strip()
            if media_type:
                types.append(media_type)
        return types

    # ── Sources of user-controlled data ──────────────────────────────

    def get(self, key: str, default: Any = None, sanitize: bool = False) -> Any:
        """Return a query-string parameter."""
        return self._lookup(self._query, key, default, sanitize)

    def post(self, key: str, default: Any = None, sanitize: bool = False) -> Any:
        """Return a form-body parameter."""
        return self._lookup(self._form, key, default, sanitize)

    def cookie(self, key: str, default: Any = None, sanitize: bool = False) -> Any:
        """Return a cookie value."""
        return self._lookup(self._cookies, key, default, sanitize)

    def server(self, key: str, default: Any = None) -> Any:
        """Return a server/environment value."""
        return self._server.get(key, default)

    def header(self, name: str, default: Any = None) -> Any:
        """Return a header value. Lookup ignores case and treats ``-`` and ``_`` alike."""
        entry = self._headers.get(_normalize_header_name(name))
        return default if entry is None else entry[1]

    def get_headers(self) -> Dict[str, Any]:
        """Return all headers keyed by their canonical ``Dash-Case`` names."""
        return {canonical: value for canonical, value in self._headers.values()}

    def get_body(self) -> bytes:
        """Return the raw request body, reading the stream on first call only."""
        return self._raw_body

    def get_json(self) -> Any:
        """Return the parsed JSON document, or ``{}`` for non-JSON or malformed bodies."""
        return self._parsed_json

    def json(self, key: str, default: Any = None) -> Any:
        """
        Return a top-level key of the JSON body; ``default`` for non-JSON requests.

        A key present with a JSON ``null`` value returns ``None``, not ``default``.
        """
        if not self.is_json():
            return default
        return self._json_data.get(key, default)

    def input(self, key: str, default: Any = None, sanitize: bool = False) -> Any:
        """
        Return ``key`` from the form body, then the JSON body (JSON requests)
        or the query string (all other requests).
        """
        if key in self._form:
            return self._lookup(self._form, key, default, sanitize)
        fallback = self._json_data if self.is_json() else self._query
        return self._lookup(fallback, key, default, sanitize)

    def all(self) -> Dict[str, Any]:
        """Merge query, form and JSON input; later sources win on collisions."""
        merged = dict(self._query)
        merged.update(self._form)
        if self.is_json():
            merged.update(self._json_data)
        return merged

    def file(self, key: str) -> Optional[FileEntry]:
        """Return the upload for ``key``; multi-file fields yield a list."""
        return normalize_file_entry(self._files.get(key))

    def has_file(self, key: str) -> bool:
        """True when ``key`` holds at least one upload and none of them failed."""
        entry = self.file(key)
        if entry is None:
            return False
        if isinstance(entry, UploadedFile):
            return entry.ok
        return bool(entry) and all(isinstance(item, UploadedFile) and item.ok for item in entry)

    def param(self, key: str, default: Any = None) -> Any:
        """Return a URL parameter resolved by the router."""
        return (self._url_params or {}).get(key, default)

    def set_url_params(self, params: Mapping[str, Any]) -> None:
        """Attach router-resolved URL parameters. Allowed once per request."""
        if self._url_params is not None:
            raise ImmutableRequestError("_url_params")
        self._init("_url_params", dict(params))

    @staticmethod
    def _lookup(source: Mapping[str, Any], key: str, default: Any, sanitize: bool) -> Any:
        if key not in source:
            return default
        value = source[key]
        return Sanitizer.escape(value) if sanitize else value

    # ── Method ───────────────────────────────────────────────────────

    def get_method(self) -> str:
        """
        Return the request method.

        A POST may be tunnelled as another verb through the override
        header or the override form field, checked in that order.
        """
        method = str(self.server("REQUEST_METHOD") or "GET").upper()
        if method != "POST":
            return method
        override = self.header(self._settings.METHOD_OVERRIDE_HEADER) or self.post(
            self._settings.METHOD_OVERRIDE_FIELD
        )
        if override:
            logger.debug("Method override", extra={"method": str(override).upper()})
            return str(override).upper()
        return method

    def _is_method(self, method: str) -> bool:
        return self.get_method() == method

    def is_get(self) -> bool:
        return self._is_method("GET")

    def is_post(self) -> bool:
        return self._is_method("POST")

    def is_put(self) -> bool:
        return self._is_method("PUT")

    def is_delete(self) -> bool:
        return self._is_method("DELETE")

    def is_patch(self) -> bool:
        return self._is_method("PATCH")

    def is_head(self) -> bool:
        return self._is_method("HEAD")

    def is_options(self) -> bool:
        return self._is_method("OPTIONS")

    # ── Content negotiation and connection info ──────────────────────

    def get_content_type(self) -> Optional[str]:
        return self.header("Content-Type", self.server("CONTENT_TYPE"))

    def is_json(self) -> bool:
        """True when the content type mentions ``application/json``."""
        content_type = self.get_content_type() or ""
        return JSON_CONTENT_TYPE in str(content_type).lower()

    def accepts(self, content_type: str) -> bool:
        """True when the Accept header lists ``content_type`` or ``*/*``."""
        return any(item == content_type or item == "*/*" for item in self._accepted_types)

    def is_secure(self) -> bool:
        https = str(self.server("HTTPS") or "")
        if https and https.lower() != "off":
            return True
        if str(self.server("SERVER_PORT", "")) == "443":
            return True
        scheme = self.server("REQUEST_SCHEME") or self.server("wsgi.url_scheme") or ""
        return str(scheme).lower() == "https"

    def is_xhr(self) -> bool:
        return str(self.header("X-Requested-With", "")).lower() == "xmlhttprequest"

    def get_referer(self) -> Optional[str]:
        return self.header("Referer")

    def get_ip(self) -> Optional[str]:
        """
        Return the first public client address.

        Candidates are the Client-IP header, every X-Forwarded-For entry and
        REMOTE_ADDR, in that order. Private, loopback and reserved addresses
        are skipped. Both headers are client-controlled, so without a
        trusted proxy in front the result can be spoofed.
        """
        candidates = [self.header("Client-IP")]
        forwarded = self.header("X-Forwarded-For")
        if forwarded:
            candidates.extend(part.strip() for part in str(forwarded).split(","))
        candidates.append(self.server("REMOTE_ADDR"))
        for candidate in candidates:
            if is_public_ip(candidate):
                return candidate.strip()
        return None

    def get_uri(self) -> str:
        uri = self.server("REQUEST_URI")
        if uri:
            return str(uri)
        path = str(self.server("SCRIPT_NAME", "")) + str(self.server("PATH_INFO", ""))
        if not path:
            return "/"
        query = self.server("QUERY_STRING")
        return f"{path}?{query}" if query else path

    def get_url(self) -> str:
        """Reconstruct the full URL: scheme, host, path and query."""
        scheme = "https" if self.is_secure() else "http"
        host = self.header("Host") or self.server("SERVER_NAME", "")
        return f"{scheme}://{host}{self.get_uri()}"

    def get_query_params(self) -> Dict[str, str]:
        """Parse the query string of the request URL."""
        query = urlsplit(self.get_url()).query
        return dict(parse_qsl(query, keep_blank_values=True))

    # ── Security ─────────────────────────────────────────────────────

    def _csrf(self) -> CsrfTokens:
        return CsrfTokens(self._session, self._settings.CSRF_SESSION_KEY)

    def generate_csrf_token(self) -> str:
        """Issue a fresh CSRF token and store it in the session."""
        return self._csrf().generate()

    def validate_csrf(self) -> None:
        """
        Verify the CSRF token of a state-changing request.

        Safe transport methods are exempt. The token is read from the CSRF
        header, then the CSRF form field. Raises CsrfError on failure.
        """
        transport_method = str(self.server("REQUEST_METHOD") or "GET").upper()
        if transport_method in self._settings.CSRF_SAFE_METHODS:
            return
        supplied = self.header(self._settings.CSRF_HEADER) or self.post(
            self._settings.CSRF_FORM_FIELD
        )
        self._csrf().verify(supplied)

    # ── Validation ───────────────────────────────────────────────────

    def validate(self, rules: Mapping[str, str]) -> Dict[str, str]:
        """Validate raw input against ``rules``; returns field -> first error message."""
        return Validator(lambda field: self.input(field)).validate(rules)
