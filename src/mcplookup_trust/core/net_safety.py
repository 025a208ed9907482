# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Outbound target validation (SSRF defense).

Every DNS resolver and HTTP target the engine contacts is checked here
first. Private, loopback, link-local, multicast, reserved and unspecified
addresses are rejected, as are hostnames that only make sense on an
internal network.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import re
import socket
from urllib.parse import urlparse

from .exceptions import UnsafeTargetError, ValidationException

logger = logging.getLogger(__name__)

# Hostname suffixes that never denote a public service
INTERNAL_SUFFIXES = (".local", ".internal", ".lan", ".localhost")

MAX_DOMAIN_LENGTH = 253

_LABEL = r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
DOMAIN_PATTERN = re.compile(rf"^{_LABEL}(?:\.{_LABEL})+$")

CAPABILITY_PATTERN = re.compile(r"^[a-z0-9_]+$")
MAX_CAPABILITY_LENGTH = 100


def is_private_ip(address: str) -> bool:
    """Return True if ``address`` is an IP literal outside public unicast space.

    Non-IP strings return False; hostnames are handled by
    :func:`ensure_public_host`.
    """
    try:
        ip = ipaddress.ip_address(address.strip("[]"))
    except ValueError:
        return False

    # IPv4-mapped IPv6 (::ffff:10.0.0.1) is judged by the embedded IPv4
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


def normalize_domain(domain: str) -> str:
    """Lowercase, strip a trailing dot, and validate a public domain name.

    Raises:
        ValidationException: If the domain is malformed, an IP literal,
            or an internal-only name.
    """
    if not isinstance(domain, str) or not domain.strip():
        raise ValidationException("Domain cannot be empty", field="domain", value=domain)

    normalized = domain.strip().lower().rstrip(".")

    if len(normalized) > MAX_DOMAIN_LENGTH:
        raise ValidationException("Domain too long", field="domain", value=domain)

    try:
        ipaddress.ip_address(normalized)
    except ValueError:
        pass
    else:
        raise ValidationException("Domain must be a name, not an IP address", field="domain", value=domain)

    if not DOMAIN_PATTERN.match(normalized):
        raise ValidationException("Domain must be a valid public domain name", field="domain", value=domain)

    if normalized == "localhost" or normalized.endswith(INTERNAL_SUFFIXES):
        raise UnsafeTargetError("Domain is not publicly routable", field="domain", value=domain)

    return normalized


def validate_public_url(url: str, require_https: bool = True) -> str:
    """Validate that ``url`` points at a public host.

    Only the literal host is checked here; call :func:`ensure_public_host`
    before connecting to catch names that resolve to private space.

    Returns:
        The URL unchanged.
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ValidationException(f"Invalid URL: {e}", field="url", value=url) from e

    if parsed.scheme not in ("https", "http") or not parsed.hostname:
        raise ValidationException("URL must be absolute http(s)", field="url", value=url)
    if require_https and parsed.scheme != "https":
        raise ValidationException("URL must use HTTPS", field="url", value=url)

    host = parsed.hostname.lower()
    if host == "localhost" or host.endswith(INTERNAL_SUFFIXES):
        raise UnsafeTargetError("URL host is not publicly routable", field="url", value=url)
    if is_private_ip(host):
        raise UnsafeTargetError("URL host is a private address", field="url", value=url)

    return url


def validate_capability(tag: str) -> str:
    """Validate a capability tag (lowercase letters, digits, underscores)."""
    if not isinstance(tag, str) or not tag:
        raise ValidationException("Capability name cannot be empty", field="capabilities", value=tag)
    if len(tag) > MAX_CAPABILITY_LENGTH:
        raise ValidationException("Capability name too long", field="capabilities", value=tag)
    if not CAPABILITY_PATTERN.match(tag):
        raise ValidationException(
            "Capability name must contain only lowercase letters, numbers, and underscores",
            field="capabilities",
            value=tag,
        )
    return tag


async def ensure_public_host(host: str, port: int = 443) -> None:
    """Resolve ``host`` and reject it if any address is non-public.

    Raises:
        UnsafeTargetError: If the host is internal or resolves to a
            private/loopback/link-local/reserved address.
        OSError: If the host cannot be resolved at all.
    """
    host = host.strip("[]").lower()
    if host == "localhost" or host.endswith(INTERNAL_SUFFIXES):
        raise UnsafeTargetError("Host is not publicly routable", field="host", value=host)

    if is_private_ip(host):
        raise UnsafeTargetError("Host is a private address", field="host", value=host)

    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    for info in infos:
        address = info[4][0]
        if is_private_ip(address):
            logger.warning(f"Blocked outbound request: {host} resolves to private address {address}")
            raise UnsafeTargetError("Host resolves to a private address", field="host", value=host)
