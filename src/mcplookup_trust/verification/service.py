# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Domain security facade.

Ties together the resolver pool, ownership verifier, update gate and
challenge state machine behind one object. Implements the
update-with-verification flow used when a registrant edits a record, and
on-demand re-verification of existing registrations.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from datetime import UTC, datetime

from ..core.exceptions import NotFoundError, RegistryAnomalyError
from ..core.net_safety import normalize_domain, validate_capability, validate_public_url
from ..registry import Registry, RegistrationRecord
from .challenges import ChallengeService, ChallengeStore
from .models import (
    ChallengeReason,
    ChallengeResolution,
    OwnershipChallenge,
    UpdateRequest,
    UpdateResult,
    VerificationResult,
    VerificationSweepResult,
)
from .ownership import OwnershipVerifier
from .resolver_pool import ResolverPool, TxtLookup
from .update_gate import requires_ownership_verification

logger = logging.getLogger(__name__)

# Domains re-verified at once during a sweep
SWEEP_CONCURRENCY = 5


class DomainSecurityService:
    """Entry point for ownership verification and guarded updates."""

    def __init__(
        self,
        registry: Registry,
        store: ChallengeStore | None = None,
        resolver_pool: ResolverPool | None = None,
        verifier: OwnershipVerifier | None = None,
        lookup: TxtLookup | None = None,
    ):
        self.registry = registry
        self.resolver_pool = resolver_pool or ResolverPool(lookup=lookup)
        self.verifier = verifier or OwnershipVerifier(lookup=lookup)
        self.challenges = ChallengeService(registry, store=store, resolver_pool=self.resolver_pool)

    async def verify_txt_record(self, name: str, expected_value: str) -> bool:
        return await self.resolver_pool.verify_txt_record(name, expected_value)

    async def verify_current_ownership(self, domain: str) -> VerificationResult:
        return await self.verifier.verify_current_ownership(normalize_domain(domain))

    async def create_ownership_challenge(
        self,
        domain: str,
        challenger_ip: str = "unknown",
        reason: ChallengeReason | str = ChallengeReason.OWNERSHIP_TRANSFER,
    ) -> OwnershipChallenge:
        return await self.challenges.create_ownership_challenge(domain, challenger_ip, reason)

    async def verify_ownership_challenge(self, challenge_id: str) -> ChallengeResolution:
        return await self.challenges.verify_ownership_challenge(challenge_id)

    async def get_registration(self, domain: str) -> RegistrationRecord | None:
        """The single registration for ``domain``, if any.

        Raises:
            RegistryAnomalyError: If the registry holds more than one.
        """
        records = await self.registry.get_servers_by_domain(domain)
        if len(records) > 1:
            logger.warning(f"Registry anomaly: {len(records)} registrations for {domain}")
            raise RegistryAnomalyError(domain, len(records))
        return records[0] if records else None

    async def reverify_registration(self, domain: str) -> VerificationResult:
        """Re-check ownership of a registered domain and record the outcome.

        A pass marks the record verified and resets its failure count. A
        failure clears ``dns_verified`` and bumps the count; the
        registration itself is kept.

        Raises:
            ValidationException: If the domain is malformed.
            NotFoundError: If the domain is not registered.
            RegistryAnomalyError: If the registry holds more than one record.
        """
        domain = normalize_domain(domain)
        current = await self.get_registration(domain)
        if current is None:
            raise NotFoundError("Registration", domain)

        verification = await self.verifier.verify_current_ownership(domain)
        checked_at = datetime.now(UTC)
        if verification.verified:
            failures = 0
            logger.info(f"{domain} still verified via {verification.method}", extra={"domain": domain})
        else:
            failures = current.verification_failures + 1
            logger.warning(
                f"{domain} failed re-verification ({failures} in a row): {verification.details}",
                extra={"domain": domain},
            )

        await self.registry.update_server(
            domain,
            {
                "dns_verified": verification.verified,
                "verification_failures": failures,
                "last_verification_check": checked_at,
            },
        )
        return verification

    async def run_verification_sweep(self, domains: Iterable[str]) -> VerificationSweepResult:
        """Re-verify each of ``domains`` and tally the outcomes.

        A domain that cannot be checked (unregistered, duplicated,
        malformed) is counted as an error and does not stop the sweep.
        """
        start = time.monotonic()
        result = VerificationSweepResult(checked_at=datetime.now(UTC))
        semaphore = asyncio.Semaphore(SWEEP_CONCURRENCY)

        async def check(domain: str) -> VerificationResult | Exception:
            async with semaphore:
                try:
                    return await self.reverify_registration(domain)
                except Exception as e:  # Intentionally broad: one bad record must not abort the sweep
                    logger.warning(f"Re-verification of {domain} failed: {type(e).__name__}: {e}")
                    return e

        domains = list(dict.fromkeys(domains))
        outcomes = await asyncio.gather(*(check(domain) for domain in domains))
        for domain, outcome in zip(domains, outcomes, strict=True):
            if isinstance(outcome, Exception):
                result.error_domains.append(domain)
            elif outcome.verified:
                result.verified_domains.append(domain)
            else:
                result.unverified_domains.append(domain)

        result.duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            f"Verification sweep: {len(result.verified_domains)} verified, {len(result.unverified_domains)} unverified, {len(result.error_domains)} errors"
        )
        return result

    @staticmethod
    def validate_update(update: UpdateRequest) -> None:
        """Reject malformed updates before any network work.

        Raises:
            ValidationException: On a non-public or non-https endpoint, or
                a malformed capability tag.
        """
        if update.endpoint is not None:
            validate_public_url(update.endpoint)
        for tag in update.capabilities or []:
            validate_capability(tag)

    async def update_with_verification(
        self,
        domain: str,
        update: UpdateRequest,
        challenger_ip: str | None = None,
    ) -> UpdateResult:
        """Apply ``update`` to ``domain``'s registration, demanding proof when needed.

        High-risk changes (endpoint, core or majority capability shifts)
        require the current DNS/HTTP state to prove ownership. Without it,
        a challenge is issued and nothing is written.

        Raises:
            ValidationException: If the domain or update is malformed.
            StorageException: If a required challenge cannot be stored.
        """
        domain = normalize_domain(domain)
        self.validate_update(update)

        try:
            current = await self.get_registration(domain)
        except RegistryAnomalyError:
            return UpdateResult(success=False, message="Multiple registrations found for domain")

        if current is None:
            return UpdateResult(success=False, message="Domain not registered")

        if requires_ownership_verification(current, update):
            verification = await self.verifier.verify_current_ownership(domain)
            if not verification.verified:
                challenge = await self.challenges.create_ownership_challenge(
                    domain,
                    challenger_ip or "unknown",
                    ChallengeReason.USER_REQUEST,
                )
                logger.info(f"Update to {domain} blocked pending ownership challenge {challenge.challenge_id}")
                return UpdateResult(
                    success=False,
                    message="Domain ownership verification required for this change",
                    verification_required=True,
                    challenge=challenge,
                    verification=verification,
                )
            logger.info(f"Update to {domain} authorised via {verification.method}")

        patch = update.to_patch()
        if patch:
            await self.registry.update_server(domain, patch)
        logger.info(f"Updated registration for {domain}: {sorted(patch)}")
        return UpdateResult(success=True, message="Registration updated successfully")
