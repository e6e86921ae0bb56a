"""URL validation for callback URLs handed to the verification provider."""

from __future__ import annotations

import ipaddress
from urllib.parse import urlsplit, urlunsplit

_LOCAL_HOSTNAMES = {"localhost", "localhost.localdomain"}
_LOCAL_SUFFIXES = (".localhost", ".local", ".internal")


def validate_public_callback_url(url: str) -> str:
    """
    Validate a callback URL the provider must be able to reach.

    Rules:
    - Only https:// URLs.
    - No credentials or fragments.
    - Host must not be localhost, a local-only name, or a non-global IP literal.

    Hostnames are not resolved: these URLs come from our own configuration
    and must be reachable from the provider's network, not ours.

    Returns a normalized URL (lowercased scheme, no fragment) or raises ValueError.
    """
    candidate = (url or "").strip()
    if not candidate:
        raise ValueError("Callback URL is required")

    parts = urlsplit(candidate)
    scheme = (parts.scheme or "").lower()
    if scheme != "https":
        raise ValueError("Callback URL must start with https://")

    if parts.username or parts.password:
        raise ValueError("Callback URL must not include credentials")

    host = (parts.hostname or "").strip().lower().rstrip(".")
    if not host:
        raise ValueError("Callback URL must include a host")

    if parts.fragment:
        raise ValueError("Callback URL must not include a fragment")

    if host in _LOCAL_HOSTNAMES or host.endswith(_LOCAL_SUFFIXES):
        raise ValueError(f"Callback URL host '{host}' is not publicly reachable")

    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        ip = None
    if ip is not None and not ip.is_global:
        raise ValueError(f"Callback URL host '{host}' is not publicly reachable")

    return urlunsplit((scheme, parts.netloc, parts.path, parts.query, ""))
