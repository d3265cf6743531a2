"""
Target URL canonicalization and private-network guard.
"""

import ipaddress
import re
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

from shared.errors import ForbiddenTargetError, ValidationError

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_DEFAULT_PORTS = {"http": 80, "https": 443}
_BLOCKED_HOSTNAMES = {"localhost", "localhost.localdomain"}


def canonicalize_url(raw_url: str) -> str:
    """Normalize a target so identical resources share one cache key.

    Adds ``https://`` when no scheme is given, lowercases scheme and host,
    drops the default port and any fragment, and uses ``/`` for an empty
    path. Raises :class:`ValidationError` for anything that is not an
    absolute HTTP(S) URL.
    """
    if raw_url is None or not raw_url.strip():
        raise ValidationError("URL is required")

    candidate = raw_url.strip()
    if not _SCHEME_RE.match(candidate):
        candidate = f"https://{candidate}"

    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as exc:
        raise ValidationError("Invalid URL format", details={"url": raw_url, "error": str(exc)})

    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise ValidationError("Only HTTP(S) protocols allowed", details={"url": raw_url})

    host = parts.hostname
    if not host:
        raise ValidationError("Invalid URL format", details={"url": raw_url})

    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"
    if parts.username or parts.password:
        userinfo = parts.username or ""
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


def _ip_literal(host: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    try:
        return ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return None


def is_private_host(host: str) -> bool:
    """Whether ``host`` names a loopback, private, link-local or reserved address.

    Only literal addresses and well-known local names are checked; no DNS
    resolution is performed.
    """
    host = host.lower().rstrip(".")
    if host in _BLOCKED_HOSTNAMES or host.endswith(".localhost"):
        return True

    address = _ip_literal(host)
    if address is None:
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
        or address.is_multicast
    )


def validate_target_url(raw_url: Optional[str]) -> str:
    """Canonicalize ``raw_url`` and reject private-network targets."""
    canonical = canonicalize_url(raw_url or "")
    host = urlsplit(canonical).hostname or ""
    if is_private_host(host):
        raise ForbiddenTargetError(details={"host": host})
    return canonical
