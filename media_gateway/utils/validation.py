"""Validation of caller-supplied storage keys and purge URLs."""

from typing import Any
from urllib.parse import urlsplit, urlunsplit

from media_gateway.exceptions import InvalidURLError

# Schemes whose URLs must name a host; mirrors the WHATWG "special" schemes.
_HOST_SCHEMES = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


def is_valid_path(value: Any) -> bool:
    """Return True if ``value`` is safe to use as an object-store key.

    Keys must be non-empty relative strings: no leading ``/`` or ``.``,
    no ``..`` segment, no empty segment (``//``) and no control characters.
    """
    if not isinstance(value, str) or not value:
        return False
    if value.startswith(("/", ".")):
        return False
    if ".." in value or "//" in value:
        return False
    return not any(ord(ch) < 0x20 for ch in value)


def normalize_absolute_url(value: str) -> str:
    """Parse ``value`` as an absolute URL and serialize it back.

    Scheme and host are lower-cased, default ports dropped and an empty path
    on a host-based scheme becomes ``/``. Raises ``InvalidURLError`` when the
    value is not an absolute URL.
    """
    if not isinstance(value, str) or value != value.strip():
        raise InvalidURLError("Invalid `url` field", {"url": value})

    try:
        parts = urlsplit(value)
        port = parts.port
    except ValueError as e:
        raise InvalidURLError("Invalid `url` field", {"url": value, "reason": str(e)}) from e

    scheme = parts.scheme.lower()
    if not scheme:
        raise InvalidURLError("Invalid `url` field", {"url": value})

    if scheme not in _HOST_SCHEMES:
        if not (parts.netloc or parts.path):
            raise InvalidURLError("Invalid `url` field", {"url": value})
        return urlunsplit((scheme, parts.netloc, parts.path, parts.query, parts.fragment))

    host = parts.hostname
    if not host:
        raise InvalidURLError("Invalid `url` field", {"url": value})
    if ":" in host:
        host = f"[{host}]"

    netloc = host
    if port is not None and port != _HOST_SCHEMES[scheme]:
        netloc = f"{netloc}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))
