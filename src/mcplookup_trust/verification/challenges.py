# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Ownership challenges: persistence and the transfer state machine.

A claimant asks for a challenge, publishes the returned TXT record, then
asks for verification. A verified challenge transfers the domain: any
existing registration is removed and the new owner re-registers.

States::

    created -> pending -> verified
                       -> expired

Verified and expired challenges are deleted; ids are never reused.
"""

from __future__ import annotations

import logging
import secrets
import string
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from ..core.config import get_config
from ..core.exceptions import StorageException, ValidationException
from ..core.net_safety import normalize_domain
from ..registry import Registry
from ..storage import Storage, get_storage
from .models import (
    CHALLENGE_SUBDOMAIN,
    CHALLENGE_VALUE_PREFIX,
    ChallengeReason,
    ChallengeResolution,
    ChallengeState,
    OwnershipChallenge,
)
from .resolver_pool import ResolverPool

logger = logging.getLogger(__name__)

CHALLENGE_COLLECTION = "ownership_challenges"
CHALLENGE_TOKEN_LENGTH = 32
_TOKEN_ALPHABET = string.ascii_letters + string.digits

NOT_FOUND_MESSAGE = "Challenge not found or expired"


def generate_challenge_token(length: int = CHALLENGE_TOKEN_LENGTH) -> str:
    """Cryptographically random alphanumeric token."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


class ChallengeStore:
    """Challenge persistence over a :class:`Storage` backend.

    Expired challenges are removed lazily the first time they are read,
    and a missing challenge is indistinguishable from an expired one.
    """

    def __init__(self, storage: Storage | None = None):
        self.storage = storage or get_storage()

    async def save(self, challenge: OwnershipChallenge) -> None:
        """Persist a challenge.

        Raises:
            StorageException: If the backend rejects the write.
        """
        result = await self.storage.set(CHALLENGE_COLLECTION, challenge.challenge_id, challenge.to_dict())
        if not result.success:
            logger.error(f"Failed to store challenge {challenge.challenge_id}: {result.error}")
            raise StorageException(
                f"Failed to store challenge: {result.error}",
                collection=CHALLENGE_COLLECTION,
                key=challenge.challenge_id,
            )

    async def get(self, challenge_id: str, now: datetime | None = None) -> OwnershipChallenge | None:
        """Load a live challenge, or None if it is absent or expired."""
        result = await self.storage.get(CHALLENGE_COLLECTION, challenge_id)
        if not result.success:
            logger.error(f"Failed to load challenge {challenge_id}: {result.error}")
            return None
        if result.data is None:
            return None

        try:
            challenge = OwnershipChallenge.from_dict(result.data)
            expired = challenge.is_expired(now)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Discarding malformed challenge {challenge_id}: {e}")
            return None

        if expired:
            logger.info(f"Challenge {challenge_id} for {challenge.domain} expired")
            deleted = await self.storage.delete(CHALLENGE_COLLECTION, challenge_id)
            if not deleted.success:
                logger.error(f"Failed to delete expired challenge {challenge_id}: {deleted.error}")
            return None

        return challenge

    async def delete(self, challenge_id: str) -> None:
        """Remove a challenge. Deleting an absent challenge is a no-op.

        Raises:
            StorageException: If the backend rejects the delete.
        """
        result = await self.storage.delete(CHALLENGE_COLLECTION, challenge_id)
        if not result.success:
            logger.error(f"Failed to delete challenge {challenge_id}: {result.error}")
            raise StorageException(
                f"Failed to delete challenge: {result.error}",
                collection=CHALLENGE_COLLECTION,
                key=challenge_id,
            )

    async def cleanup_expired(self, now: datetime | None = None) -> int:
        """Remove expired and unreadable challenges.

        Returns:
            Number of challenges removed.
        """
        result = await self.storage.get_all(CHALLENGE_COLLECTION)
        if not result.success:
            raise StorageException(f"Failed to list challenges: {result.error}", collection=CHALLENGE_COLLECTION)

        removed = 0
        for challenge_id, data in (result.data or {}).items():
            try:
                expired = OwnershipChallenge.from_dict(data).is_expired(now)
            except (KeyError, ValueError, TypeError):
                expired = True
            if expired:
                await self.delete(challenge_id)
                removed += 1

        if removed:
            logger.info(f"Cleaned up {removed} expired challenge(s)")
        return removed


class ChallengeService:
    """Creates challenges and resolves them into ownership transfers."""

    def __init__(
        self,
        registry: Registry,
        store: ChallengeStore | None = None,
        resolver_pool: ResolverPool | None = None,
        ttl: timedelta | None = None,
    ):
        self.registry = registry
        self.store = store or ChallengeStore()
        self.resolver_pool = resolver_pool or ResolverPool()
        self.ttl = ttl or timedelta(hours=get_config().challenge_ttl_hours)

    async def create_ownership_challenge(
        self,
        domain: str,
        challenger_ip: str = "unknown",
        reason: ChallengeReason | str = ChallengeReason.OWNERSHIP_TRANSFER,
    ) -> OwnershipChallenge:
        """Create and persist a challenge for ``domain``.

        Raises:
            ValidationException: If the domain or reason is invalid.
            StorageException: If the challenge cannot be stored; an
                unstored challenge could never be verified.

        Example:
            >>> challenge = await service.create_ownership_challenge("example.com", "203.0.113.7")
            >>> print(challenge.instructions)
            To prove ownership of example.com, add a DNS TXT record:
              Name: _mcp-challenge.example.com
              Value: mcp_challenge_...
        """
        domain = normalize_domain(domain)
        try:
            reason = ChallengeReason(reason)
        except ValueError as e:
            raise ValidationException(f"Unknown challenge reason: {reason}", field="reason", value=reason) from e

        created_at = datetime.now(UTC)
        challenge = OwnershipChallenge(
            challenge_id=str(uuid.uuid4()),
            domain=domain,
            challenger_ip=challenger_ip,
            txt_record_name=f"{CHALLENGE_SUBDOMAIN}.{domain}",
            txt_record_value=f"{CHALLENGE_VALUE_PREFIX}{generate_challenge_token()}",
            created_at=created_at,
            expires_at=created_at + self.ttl,
            reason=reason,
            state=ChallengeState.PENDING,
        )

        await self.store.save(challenge)

        logger.info(
            f"Created ownership challenge {challenge.challenge_id} for {domain} (reason={reason}, from={challenger_ip}, expires={challenge.expires_at.isoformat()})",
            extra={"domain": domain, "challenge_id": challenge.challenge_id},
        )
        return challenge

    async def verify_ownership_challenge(self, challenge_id: str) -> ChallengeResolution:
        """Check the challenge's TXT record by resolver majority.

        On success the existing registration (if any) is removed and the
        challenge is deleted. On failure the challenge is kept so the
        claimant can retry until it expires.
        """
        challenge = await self.store.get(challenge_id)
        if challenge is None:
            return ChallengeResolution(success=False, message=NOT_FOUND_MESSAGE)

        verified = await self.resolver_pool.verify_txt_record(challenge.txt_record_name, challenge.txt_record_value)
        if not verified:
            logger.info(f"Challenge {challenge_id} for {challenge.domain} not yet verifiable")
            return ChallengeResolution(
                success=False,
                message="DNS verification failed",
                state=ChallengeState.PENDING,
            )

        existing = await self.registry.get_servers_by_domain(challenge.domain)
        if len(existing) > 1:
            logger.warning(f"Registry anomaly: {len(existing)} registrations for {challenge.domain}, removing all on transfer")
        transferred = bool(existing)
        if transferred:
            await self.registry.unregister_server(challenge.domain)

        await self.store.delete(challenge_id)

        logger.info(
            f"Challenge {challenge_id} verified for {challenge.domain} (transferred={transferred})",
            extra={"domain": challenge.domain, "challenge_id": challenge_id},
        )
        return ChallengeResolution(
            success=True,
            message=("Domain ownership transferred successfully" if transferred else "Domain ownership verified successfully"),
            ownership_transferred=transferred,
            state=ChallengeState.VERIFIED,
        )

    async def get_challenge(self, challenge_id: str) -> dict[str, Any] | None:
        """Serialized live challenge, for status lookups."""
        challenge = await self.store.get(challenge_id)
        return challenge.to_dict() if challenge else None
