"""
Unit tests for target URL canonicalization and the private-network guard.
"""

import pytest

from service_proxy.app.validation import canonicalize_url, is_private_host, validate_target_url
from shared.errors import ForbiddenTargetError, ValidationError


@pytest.mark.parametrize("raw,expected", [
    ("example.com", "https://example.com/"),
    ("HTTP://Example.COM:80/a/b?q=1", "http://example.com/a/b?q=1"),
    ("https://example.com:443/path#frag", "https://example.com/path"),
    ("https://example.com:8443/", "https://example.com:8443/"),
    ("  https://example.com/x  ", "https://example.com/x"),
    ("https://user:pw@example.com/", "https://user:pw@example.com/"),
    ("http://[2001:db8::1]:8080/a", "http://[2001:db8::1]:8080/a"),
])
def test_canonicalize_url(raw, expected):
    assert canonicalize_url(raw) == expected


@pytest.mark.parametrize("raw,message", [
    ("", "URL is required"),
    ("   ", "URL is required"),
    ("ftp://example.com/file", "Only HTTP(S) protocols allowed"),
    ("https://example.com:99999/", "Invalid URL format"),
    ("https:///path-only", "Invalid URL format"),
])
def test_canonicalize_rejects_invalid(raw, message):
    with pytest.raises(ValidationError) as exc_info:
        canonicalize_url(raw)

    assert exc_info.value.message == message
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize("host", [
    "localhost",
    "api.localhost",
    "127.0.0.1",
    "10.1.2.3",
    "172.16.0.5",
    "192.168.1.1",
    "169.254.169.254",
    "0.0.0.0",
    "::1",
    "[::1]",
    "fe80::1",
    "::ffff:127.0.0.1",
])
def test_private_hosts_are_detected(host):
    assert is_private_host(host) is True


@pytest.mark.parametrize("host", ["example.com", "93.184.216.34", "2606:4700::1111"])
def test_public_hosts_are_allowed(host):
    assert is_private_host(host) is False


def test_validate_target_url_blocks_private_targets():
    with pytest.raises(ForbiddenTargetError) as exc_info:
        validate_target_url("http://127.0.0.1:8080/admin")

    assert exc_info.value.status_code == 403
    assert exc_info.value.details["host"] == "127.0.0.1"


def test_validate_target_url_returns_canonical_form():
    assert validate_target_url("Example.com/a") == "https://example.com/a"


def test_validate_target_url_requires_value():
    with pytest.raises(ValidationError):
        validate_target_url(None)
