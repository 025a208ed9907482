# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Health and trust report for a registered domain."""

from __future__ import annotations

import logging

from ..core.exceptions import NotFoundError, RegistryAnomalyError
from ..core.net_safety import normalize_domain
from ..registry import Registry
from .models import HealthReport
from .probes import HealthProbe
from .scoring import calculate_trust_score

logger = logging.getLogger(__name__)


async def build_health_report(
    registry: Registry,
    domain: str,
    probe: HealthProbe | None = None,
    realtime: bool = False,
) -> HealthReport:
    """Probe a registered server and score it.

    Cached health from the registry is used unless ``realtime`` is set,
    in which case a fresh liveness probe replaces it. Capability and SSL
    probes always run live.

    Raises:
        NotFoundError: If the domain is not registered or has no endpoint.
        RegistryAnomalyError: If the domain has several registrations.
    """
    domain = normalize_domain(domain)
    probe = probe or HealthProbe()

    records = await registry.get_servers_by_domain(domain)
    if not records:
        raise NotFoundError("Server", domain)
    if len(records) > 1:
        logger.warning(f"Registry anomaly: {len(records)} registrations for {domain}")
        raise RegistryAnomalyError(domain, len(records))

    server = records[0]
    if not server.endpoint:
        raise NotFoundError("Server endpoint", domain)

    health = server.health
    if realtime:
        try:
            health = await probe.check_server_health(server.endpoint)
        except Exception as e:  # Intentionally broad: fall back to cached health
            logger.warning(f"Real-time health check failed for {domain}, using cached data: {e}")

    capabilities_working = await probe.check_capabilities(server.endpoint)
    ssl_valid = await probe.check_ssl(server.endpoint)

    score = calculate_trust_score(health, capabilities_working, ssl_valid, server.dns_verified)
    logger.info(f"Trust score for {domain}: {score}", extra={"domain": domain, "endpoint": server.endpoint})

    return HealthReport(
        domain=server.domain,
        endpoint=server.endpoint,
        health=health,
        capabilities_working=capabilities_working,
        ssl_valid=ssl_valid,
        trust_score=score,
    )
