# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Live probes against a registered MCP endpoint.

Three independent checks feed the trust score:

- liveness: a JSON-RPC ``initialize`` round trip, timed
- capabilities: ``tools/list`` returns a tool list
- SSL: the endpoint is https and answers a HEAD request

Probes never raise. Every endpoint is checked against the SSRF guard
before a connection is opened.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

import aiohttp

from ..core.config import get_config
from ..core.net_safety import ensure_public_host, validate_public_url
from .models import HealthMetrics, HealthStatus

logger = logging.getLogger(__name__)

MCP_PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "mcplookup-health-checker", "version": "1.0.0"}

# Above this the server answers but is considered degraded
DEGRADED_RESPONSE_TIME_MS = 1000

MAX_CONCURRENT_CHECKS = 10

# Estimated long-run figures for a single observation
HEALTHY_UPTIME, HEALTHY_ERROR_RATE = 99.5, 0.005
DEGRADED_UPTIME, DEGRADED_ERROR_RATE = 97.0, 0.03
REJECTED_UPTIME, REJECTED_ERROR_RATE = 85.0, 0.15
UNREACHABLE_UPTIME, UNREACHABLE_ERROR_RATE = 80.0, 0.2


class ProbeFailure(Exception):
    """The endpoint answered, but not like an MCP server."""


def _is_jsonrpc_result(data: Any) -> bool:
    return isinstance(data, dict) and data.get("jsonrpc") == "2.0" and bool(data.get("result"))


class HealthProbe:
    """Runs live checks against MCP server endpoints."""

    def __init__(self, timeout: float | None = None, user_agent: str | None = None):
        config = get_config()
        self.timeout = timeout if timeout is not None else config.http_timeout_seconds
        self.user_agent = user_agent or config.user_agent

    async def _guard(self, endpoint: str) -> None:
        """Raise if ``endpoint`` is malformed or points at private space."""
        validate_public_url(endpoint, require_https=False)
        parsed = urlparse(endpoint)
        await ensure_public_host(parsed.hostname, parsed.port or (443 if parsed.scheme == "https" else 80))

    async def _post_jsonrpc(self, endpoint: str, method: str, params: dict[str, Any], request_id: str) -> Any:
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        async with aiohttp.ClientSession() as session:
            async with session.post(
                endpoint,
                json=payload,
                headers={"Content-Type": "application/json", "User-Agent": self.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                allow_redirects=False,
            ) as response:
                if response.status != 200:
                    raise ProbeFailure(f"HTTP {response.status}")
                return await response.json(content_type=None)

    async def check_server_health(self, endpoint: str) -> HealthMetrics:
        """Time an MCP ``initialize`` call and classify the result.

        A clean answer is healthy, or degraded when slower than a second.
        A non-MCP answer or any failure is unhealthy.
        """
        start = time.monotonic()
        now = datetime.now(UTC)

        def elapsed_ms() -> float:
            return (time.monotonic() - start) * 1000

        try:
            await self._guard(endpoint)
            data = await self._post_jsonrpc(
                endpoint,
                "initialize",
                {"protocolVersion": MCP_PROTOCOL_VERSION, "capabilities": {}, "clientInfo": CLIENT_INFO},
                request_id=f"health-check-{int(time.time() * 1000)}",
            )
            if not _is_jsonrpc_result(data):
                raise ProbeFailure("Not a JSON-RPC result")
        except ProbeFailure as e:
            logger.info(f"Health check for {endpoint} rejected: {e}")
            return HealthMetrics(
                status=HealthStatus.UNHEALTHY,
                response_time_ms=elapsed_ms(),
                uptime_percentage=REJECTED_UPTIME,
                error_rate=REJECTED_ERROR_RATE,
                last_check=now,
                consecutive_failures=1,
            )
        except Exception as e:  # Intentionally broad: unreachable, unsafe, timed out, bad JSON
            logger.info(f"Health check for {endpoint} failed: {type(e).__name__}: {e}")
            return HealthMetrics(
                status=HealthStatus.UNHEALTHY,
                response_time_ms=elapsed_ms(),
                uptime_percentage=UNREACHABLE_UPTIME,
                error_rate=UNREACHABLE_ERROR_RATE,
                last_check=now,
                consecutive_failures=1,
            )

        response_time = elapsed_ms()
        if response_time > DEGRADED_RESPONSE_TIME_MS:
            status, uptime, error_rate = HealthStatus.DEGRADED, DEGRADED_UPTIME, DEGRADED_ERROR_RATE
        else:
            status, uptime, error_rate = HealthStatus.HEALTHY, HEALTHY_UPTIME, HEALTHY_ERROR_RATE

        logger.debug(f"Health check for {endpoint}: {status} in {response_time:.0f}ms")
        return HealthMetrics(
            status=status,
            response_time_ms=response_time,
            uptime_percentage=uptime,
            error_rate=error_rate,
            last_check=now,
        )

    async def check_capabilities(self, endpoint: str) -> bool:
        """True if ``tools/list`` returns a JSON-RPC result with a tool list."""
        try:
            await self._guard(endpoint)
            data = await self._post_jsonrpc(endpoint, "tools/list", {}, request_id="capability-check")
        except Exception as e:  # Intentionally broad: any failure means capabilities unverified
            logger.debug(f"Capability check for {endpoint} failed: {e}")
            return False
        if not _is_jsonrpc_result(data) or not isinstance(data["result"], dict):
            return False
        return isinstance(data["result"].get("tools"), list)

    async def check_ssl(self, endpoint: str) -> bool:
        """True if the endpoint is https and answers a HEAD with TLS verified."""
        try:
            if urlparse(endpoint).scheme != "https":
                return False
            await self._guard(endpoint)
            async with aiohttp.ClientSession() as session:
                async with session.head(
                    endpoint,
                    headers={"User-Agent": self.user_agent},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                    allow_redirects=False,
                ) as response:
                    return response.status < 500
        except Exception as e:  # Intentionally broad: TLS, DNS and timeout errors all mean "not valid"
            logger.debug(f"SSL check for {endpoint} failed: {e}")
            return False

    async def check_multiple_servers(self, endpoints: list[str]) -> dict[str, HealthMetrics]:
        """Health-check many endpoints, at most ``MAX_CONCURRENT_CHECKS`` at a time."""
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_CHECKS)

        async def bounded(endpoint: str) -> HealthMetrics:
            async with semaphore:
                return await self.check_server_health(endpoint)

        results = await asyncio.gather(*(bounded(endpoint) for endpoint in endpoints))
        return dict(zip(endpoints, results, strict=True))
