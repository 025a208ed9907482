# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Data model for domain ownership verification.

Covers ownership challenges, verification results, update requests and
the caller-facing result shapes of the challenge and update flows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

# =============================================================================
# CONSTANTS
# =============================================================================

# DNS names and values published by claimants
CHALLENGE_SUBDOMAIN = "_mcp-challenge"
CHALLENGE_VALUE_PREFIX = "mcp_challenge_"
VERIFY_SUBDOMAIN = "_mcp-verify"
VERIFY_MARKER = "mcplookup-verify="
SERVICE_SUBDOMAIN = "_mcp"
SERVICE_MARKER = "v=mcp1"
WELL_KNOWN_PATH = "/.well-known/mcp"


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


# =============================================================================
# ENUMS
# =============================================================================


class VerificationMethod(StrEnum):
    """How current ownership of a domain was proven."""

    DNS_TXT = "dns_txt"  # _mcp-verify TXT record
    WELL_KNOWN = "well_known"  # https://<domain>/.well-known/mcp
    SERVICE_RECORD = "service_record"  # _mcp TXT service-discovery record
    NONE = "none"  # No proof found


class ChallengeReason(StrEnum):
    """Why an ownership challenge was issued."""

    OWNERSHIP_TRANSFER = "ownership_transfer"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    USER_REQUEST = "user_request"


class ChallengeState(StrEnum):
    """Lifecycle of an ownership challenge.

    created -> pending -> verified | expired. Verified and expired are
    terminal; a challenge never returns to pending.
    """

    CREATED = "created"
    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class VerificationResult:
    """Outcome of a single ownership check."""

    verified: bool
    method: VerificationMethod
    details: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "verified": self.verified,
            "method": self.method.value,
            "details": self.details,
        }


@dataclass
class OwnershipChallenge:
    """A time-bounded, single-use request to publish a TXT record.

    The claimant proves control of ``domain`` by publishing
    ``txt_record_value`` at ``txt_record_name`` before ``expires_at``.
    """

    challenge_id: str
    domain: str
    challenger_ip: str
    txt_record_name: str
    txt_record_value: str
    created_at: datetime
    expires_at: datetime
    reason: ChallengeReason = ChallengeReason.OWNERSHIP_TRANSFER
    state: ChallengeState = ChallengeState.CREATED

    def is_expired(self, now: datetime | None = None) -> bool:
        """A challenge is usable only while now < expires_at."""
        now = _as_utc(now) if now else datetime.now(UTC)
        return now >= _as_utc(self.expires_at)

    @property
    def instructions(self) -> str:
        """Human-readable instructions for completing the challenge."""
        return (
            f"To prove ownership of {self.domain}, add a DNS TXT record:\n"
            f"  Name: {self.txt_record_name}\n"
            f"  Value: {self.txt_record_value}\n\n"
            f"Challenge expires: {self.expires_at.isoformat()}\n"
            f"Challenge ID: {self.challenge_id}"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage and JSON responses."""
        return {
            "challenge_id": self.challenge_id,
            "domain": self.domain,
            "challenger_ip": self.challenger_ip,
            "txt_record_name": self.txt_record_name,
            "txt_record_value": self.txt_record_value,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "reason": self.reason.value,
            "state": self.state.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OwnershipChallenge:
        """Create from a stored dictionary."""
        return cls(
            challenge_id=data["challenge_id"],
            domain=data["domain"],
            challenger_ip=data.get("challenger_ip", "unknown"),
            txt_record_name=data["txt_record_name"],
            txt_record_value=data["txt_record_value"],
            created_at=_as_utc(datetime.fromisoformat(data["created_at"])),
            expires_at=_as_utc(datetime.fromisoformat(data["expires_at"])),
            reason=ChallengeReason(data.get("reason", ChallengeReason.OWNERSHIP_TRANSFER)),
            state=ChallengeState(data.get("state", ChallengeState.PENDING)),
        )


@dataclass
class UpdateRequest:
    """Proposed change to a registration. None means "no change requested"."""

    endpoint: str | None = None
    capabilities: list[str] | None = None
    contact_email: str | None = None
    description: str | None = None

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (self.endpoint, self.capabilities, self.contact_email, self.description))

    def to_patch(self) -> dict[str, Any]:
        """Only the fields present in the request."""
        patch: dict[str, Any] = {}
        if self.endpoint is not None:
            patch["endpoint"] = self.endpoint
        if self.capabilities is not None:
            patch["capabilities"] = frozenset(self.capabilities)
        if self.contact_email is not None:
            patch["contact_email"] = self.contact_email
        if self.description is not None:
            patch["description"] = self.description
        return patch


@dataclass
class ChallengeResolution:
    """Result of trying to complete an ownership challenge."""

    success: bool
    message: str
    ownership_transferred: bool | None = None
    state: ChallengeState | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.ownership_transferred is not None:
            result["ownership_transferred"] = self.ownership_transferred
        return result


@dataclass
class UpdateResult:
    """Response of the update-with-verification flow."""

    success: bool
    message: str
    verification_required: bool | None = None
    challenge: OwnershipChallenge | None = None
    verification: VerificationResult | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.verification_required is not None:
            result["verification_required"] = self.verification_required
        if self.challenge is not None:
            result["challenge"] = self.challenge.to_dict()
        return result


@dataclass
class VerificationSweepResult:
    """Tally of a re-verification pass over registered domains."""

    checked_at: datetime
    verified_domains: list[str] = field(default_factory=list)
    unverified_domains: list[str] = field(default_factory=list)
    error_domains: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def total_checked(self) -> int:
        return len(self.verified_domains) + len(self.unverified_domains) + len(self.error_domains)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_checked": self.total_checked,
            "verified_count": len(self.verified_domains),
            "unverified_count": len(self.unverified_domains),
            "errors": len(self.error_domains),
            "duration_ms": round(self.duration_ms, 1),
            "checked_at": self.checked_at.isoformat(),
            "details": {
                "verified_domains": self.verified_domains,
                "unverified_domains": self.unverified_domains,
                "error_domains": self.error_domains,
            },
        }
