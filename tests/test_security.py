from unittest.mock import Mock

import pytest

from fastpress.exceptions import CsrfError, SessionUnavailableError
from fastpress.security import CsrfTokens, Sanitizer, is_public_ip
from fastpress.session import MemorySession


# ── Sanitizer ────────────────────────────────────────────────────────


def test_escape_nested_containers():
    value = {"a": ["<x>", ("&", 1)], "b": None}
    assert Sanitizer.escape(value) == {"a": ["&lt;x&gt;", ("&amp;", 1)], "b": None}


def test_escape_leaves_non_strings_untouched():
    marker = object()
    assert Sanitizer.escape(marker) is marker
    assert Sanitizer.escape(3.5) == 3.5


# ── IP classification ────────────────────────────────────────────────


@pytest.mark.parametrize(
    "address, public",
    [
        ("8.8.8.8", True),
        ("2606:4700:4700::1111", True),
        (" 1.1.1.1 ", True),
        ("10.0.0.5", False),
        ("172.16.3.4", False),
        ("192.168.0.1", False),
        ("127.0.0.1", False),
        ("169.254.1.1", False),
        ("0.0.0.0", False),
        ("::1", False),
        ("fd00::1", False),
        ("240.0.0.1", False),
        ("example.com", False),
        ("", False),
        (None, False),
    ],
)
def test_is_public_ip(address, public):
    assert is_public_ip(address) is public


# ── CsrfTokens ───────────────────────────────────────────────────────


def test_generate_stores_hex_token_in_session():
    session = MemorySession()
    token = CsrfTokens(session).generate()
    assert len(token) == 64
    int(token, 16)
    assert session.get("_csrf_token") == token


def test_generate_returns_fresh_tokens():
    tokens = CsrfTokens(MemorySession())
    assert tokens.generate() != tokens.generate()


def test_verify_accepts_matching_token():
    session = MemorySession({"_csrf_token": "abc123"})
    CsrfTokens(session).verify("abc123")


@pytest.mark.parametrize(
    "stored, supplied, reason",
    [
        ("abc123", "abc124", "token mismatch"),
        ("abc123", None, "no token supplied"),
        ("abc123", "", "no token supplied"),
        (None, "abc123", "no token in session"),
    ],
)
def test_verify_rejects(stored, supplied, reason):
    session = MemorySession({"_csrf_token": stored} if stored else {})
    with pytest.raises(CsrfError) as excinfo:
        CsrfTokens(session).verify(supplied)
    assert excinfo.value.reason == reason


def test_custom_session_key_and_collaborator():
    session = Mock()
    session.get.return_value = "tok"
    CsrfTokens(session, session_key="csrf").verify("tok")
    session.get.assert_called_once_with("csrf")


def test_missing_session_raises():
    with pytest.raises(SessionUnavailableError):
        CsrfTokens(None).generate()
    with pytest.raises(SessionUnavailableError):
        CsrfTokens(None).verify("x")


# ── Request CSRF integration ─────────────────────────────────────────


def test_request_generates_and_validates_form_token(make_request):
    session = MemorySession()
    token = make_request(session=session).generate_csrf_token()

    req = make_request(server={"REQUEST_METHOD": "POST"}, form={"_token": token}, session=session)
    req.validate_csrf()


def test_request_validates_header_token(make_request):
    session = MemorySession({"_csrf_token": "secret"})
    req = make_request(
        server={"REQUEST_METHOD": "DELETE"}, headers={"X-CSRF-Token": "secret"}, session=session
    )
    req.validate_csrf()


def test_request_rejects_missing_token(make_request, caplog):
    session = MemorySession({"_csrf_token": "secret"})
    req = make_request(server={"REQUEST_METHOD": "POST"}, session=session)
    with pytest.raises(CsrfError):
        req.validate_csrf()
    assert "CSRF verification failed" in caplog.text
    assert "secret" not in caplog.text


def test_request_rejects_wrong_token(make_request):
    session = MemorySession({"_csrf_token": "secret"})
    req = make_request(server={"REQUEST_METHOD": "PUT"}, form={"_token": "guess"}, session=session)
    with pytest.raises(CsrfError):
        req.validate_csrf()


@pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
def test_safe_methods_skip_csrf(make_request, method):
    req = make_request(server={"REQUEST_METHOD": method})
    assert req.validate_csrf() is None


def test_override_to_get_does_not_skip_csrf(make_request):
    session = MemorySession({"_csrf_token": "secret"})
    req = make_request(server={"REQUEST_METHOD": "POST"}, form={"_method": "GET"}, session=session)
    assert req.is_get()
    with pytest.raises(CsrfError):
        req.validate_csrf()


def test_request_without_session(make_request):
    req = make_request(server={"REQUEST_METHOD": "POST"}, form={"_token": "x"})
    with pytest.raises(SessionUnavailableError):
        req.generate_csrf_token()
    with pytest.raises(SessionUnavailableError):
        req.validate_csrf()
