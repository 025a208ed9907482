# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Current-state ownership checks for a domain.

Answers "does the live DNS/HTTP state of this domain prove someone controls
it?" without reference to any particular challenge. Three proofs are tried
in a fixed order and the first success wins:

1. ``_mcp-verify.<domain>`` TXT record containing ``mcplookup-verify=``
2. ``https://<domain>/.well-known/mcp`` returning 200 with an ``endpoint``
3. ``_mcp.<domain>`` TXT service record containing ``v=mcp1``

Every check folds its own errors into a negative result, so callers always
get a :class:`VerificationResult` and never an exception.
"""

from __future__ import annotations

import logging

import aiohttp

from ..core.config import get_config
from ..core.exceptions import UnsafeTargetError
from ..core.net_safety import ensure_public_host
from .models import (
    SERVICE_MARKER,
    SERVICE_SUBDOMAIN,
    VERIFY_MARKER,
    VERIFY_SUBDOMAIN,
    WELL_KNOWN_PATH,
    VerificationMethod,
    VerificationResult,
)
from .resolver_pool import DnsPythonTxtLookup, TxtLookup

logger = logging.getLogger(__name__)


class OwnershipVerifier:
    """Runs the ordered ownership checks against live DNS and HTTP."""

    def __init__(
        self,
        lookup: TxtLookup | None = None,
        http_timeout: float | None = None,
        dns_timeout: float | None = None,
        user_agent: str | None = None,
    ):
        config = get_config()
        self.lookup: TxtLookup = lookup or DnsPythonTxtLookup()
        self.http_timeout = http_timeout if http_timeout is not None else config.http_timeout_seconds
        self.dns_timeout = dns_timeout if dns_timeout is not None else config.dns_timeout_seconds
        self.user_agent = user_agent or config.user_agent

    async def verify_current_ownership(self, domain: str) -> VerificationResult:
        """Return the first ownership proof found for ``domain``.

        Order matters: the reported method is the first check that
        succeeds, and downstream consumers rely on it.
        """
        domain = domain.lower().rstrip(".")

        checks = (
            self.check_verification_record,
            self.check_well_known,
            self.check_service_record,
        )
        for check in checks:
            result = await check(domain)
            if result.verified:
                logger.info(f"Ownership of {domain} proven via {result.method}")
                return result
            logger.debug(f"Ownership check {check.__name__} failed for {domain}: {result.details}")

        logger.info(f"No ownership proof found for {domain}")
        return VerificationResult(
            verified=False,
            method=VerificationMethod.NONE,
            details="No valid ownership proof found",
        )

    async def _txt_records(self, name: str) -> list[str]:
        return await self.lookup.resolve_txt(name, timeout=self.dns_timeout)

    async def check_verification_record(self, domain: str) -> VerificationResult:
        """``_mcp-verify.<domain>`` TXT containing ``mcplookup-verify=``."""
        name = f"{VERIFY_SUBDOMAIN}.{domain}"
        try:
            records = await self._txt_records(name)
        except Exception as e:  # Intentionally broad: any lookup failure means "no proof"
            logger.debug(f"TXT lookup for {name} failed: {e}")
            return VerificationResult(False, VerificationMethod.DNS_TXT, "DNS TXT record not found")

        if any(VERIFY_MARKER in record for record in records):
            return VerificationResult(True, VerificationMethod.DNS_TXT, "Valid DNS TXT verification record found")
        return VerificationResult(False, VerificationMethod.DNS_TXT, "No valid DNS TXT record")

    async def check_well_known(self, domain: str) -> VerificationResult:
        """``GET https://<domain>/.well-known/mcp`` with a non-empty ``endpoint``."""
        failed = VerificationResult(False, VerificationMethod.WELL_KNOWN, ".well-known/mcp endpoint not accessible")
        url = f"https://{domain}{WELL_KNOWN_PATH}"

        try:
            await ensure_public_host(domain)
        except UnsafeTargetError:
            return failed
        except OSError as e:
            logger.debug(f"Could not resolve {domain}: {e}")
            return failed

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url,
                    headers={"Accept": "application/json", "User-Agent": self.user_agent},
                    timeout=aiohttp.ClientTimeout(total=self.http_timeout),
                    allow_redirects=False,
                ) as response:
                    if response.status != 200:
                        logger.debug(f"{url} returned HTTP {response.status}")
                        return failed
                    data = await response.json(content_type=None)
        except TimeoutError:
            logger.debug(f"{url} timed out")
            return failed
        except aiohttp.ClientError as e:
            logger.debug(f"{url} request failed: {e}")
            return failed
        except ValueError as e:
            logger.debug(f"{url} returned invalid JSON: {e}")
            return failed

        if isinstance(data, dict) and data.get("endpoint"):
            return VerificationResult(True, VerificationMethod.WELL_KNOWN, "Valid .well-known/mcp endpoint found")
        return failed

    async def check_service_record(self, domain: str) -> VerificationResult:
        """``_mcp.<domain>`` TXT containing ``v=mcp1``."""
        name = f"{SERVICE_SUBDOMAIN}.{domain}"
        try:
            records = await self._txt_records(name)
        except Exception as e:  # Intentionally broad: any lookup failure means "no proof"
            logger.debug(f"TXT lookup for {name} failed: {e}")
            return VerificationResult(False, VerificationMethod.SERVICE_RECORD, "MCP service record not found")

        if any(SERVICE_MARKER in record for record in records):
            return VerificationResult(True, VerificationMethod.SERVICE_RECORD, "Valid MCP service record found")
        return VerificationResult(False, VerificationMethod.SERVICE_RECORD, "No MCP service record")
