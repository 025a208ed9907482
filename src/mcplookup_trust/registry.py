# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Registry collaborator interface.

The server registry owns registration records and their storage format;
the trust engine only reads records and applies verified patches through
this interface. :class:`InMemoryRegistry` backs the CLI and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from .health.models import HealthMetrics

logger = logging.getLogger(__name__)


@dataclass
class RegistrationRecord:
    """The verification-relevant slice of a registered MCP server."""

    domain: str
    endpoint: str | None = None
    capabilities: frozenset[str] = field(default_factory=frozenset)
    dns_verified: bool = False
    health: HealthMetrics | None = None
    contact_email: str | None = None
    description: str | None = None
    verification_failures: int = 0
    last_verification_check: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "endpoint": self.endpoint,
            "capabilities": sorted(self.capabilities),
            "dns_verified": self.dns_verified,
            "health": self.health.to_dict() if self.health else None,
            "contact_email": self.contact_email,
            "description": self.description,
            "verification_failures": self.verification_failures,
            "last_verification_check": (self.last_verification_check.isoformat() if self.last_verification_check else None),
        }


@runtime_checkable
class Registry(Protocol):
    """Protocol for the external server registry."""

    async def get_servers_by_domain(self, domain: str) -> list[RegistrationRecord]:
        """All registrations for ``domain`` (normally zero or one)."""
        ...

    async def unregister_server(self, domain: str) -> None:
        """Remove every registration for ``domain``."""
        ...

    async def update_server(self, domain: str, patch: dict[str, Any]) -> None:
        """Apply ``patch`` to the registration for ``domain``."""
        ...


class InMemoryRegistry:
    """Dict-backed registry keyed by domain."""

    def __init__(self, records: list[RegistrationRecord] | None = None) -> None:
        self._records: dict[str, list[RegistrationRecord]] = {}
        for record in records or []:
            self.add(record)

    def add(self, record: RegistrationRecord) -> None:
        """Add a record. Several records per domain are allowed here so
        that anomalies can be reproduced."""
        self._records.setdefault(record.domain.lower(), []).append(record)

    async def get_servers_by_domain(self, domain: str) -> list[RegistrationRecord]:
        return list(self._records.get(domain.lower(), []))

    async def unregister_server(self, domain: str) -> None:
        removed = self._records.pop(domain.lower(), [])
        logger.info(f"Unregistered {len(removed)} record(s) for {domain}")

    async def update_server(self, domain: str, patch: dict[str, Any]) -> None:
        records = self._records.get(domain.lower())
        if not records:
            raise KeyError(domain)
        self._records[domain.lower()] = [replace(r, **patch) for r in records]
