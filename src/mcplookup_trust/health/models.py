# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Health data shared by the probes, the scorer and the registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class HealthStatus(StrEnum):
    """Liveness classification of an MCP server."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class HealthMetrics:
    """Observed health of a server endpoint.

    Every field is optional: monitoring data may be partial, and the
    scorer degrades gracefully on whatever is missing.
    """

    status: HealthStatus | None = None
    response_time_ms: float | None = None
    uptime_percentage: float | None = None
    error_rate: float | None = None
    last_check: datetime | None = None
    consecutive_failures: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value if self.status else None,
            "response_time_ms": self.response_time_ms,
            "uptime_percentage": self.uptime_percentage,
            "error_rate": self.error_rate,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "consecutive_failures": self.consecutive_failures,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthMetrics:
        status = data.get("status")
        return cls(
            status=HealthStatus(status) if status in {s.value for s in HealthStatus} else None,
            response_time_ms=data.get("response_time_ms"),
            uptime_percentage=data.get("uptime_percentage"),
            error_rate=data.get("error_rate"),
            last_check=(datetime.fromisoformat(data["last_check"]) if data.get("last_check") else None),
            consecutive_failures=data.get("consecutive_failures", 0),
        )


@dataclass
class HealthReport:
    """Health and trust summary for one registered domain."""

    domain: str
    endpoint: str
    health: HealthMetrics | None
    capabilities_working: bool
    ssl_valid: bool
    trust_score: int
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "endpoint": self.endpoint,
            "health": self.health.to_dict() if self.health else None,
            "capabilities_working": self.capabilities_working,
            "ssl_valid": self.ssl_valid,
            "trust_score": self.trust_score,
            "generated_at": self.generated_at.isoformat(),
        }
