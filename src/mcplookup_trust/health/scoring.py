# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Trust score for a registered MCP server.

A pure, total function: identical inputs give identical scores, and
missing health data lowers the score instead of raising. DNS ownership
dominates; a domain that has not proven ownership cannot score well no
matter how healthy it looks.
"""

from __future__ import annotations

from .models import HealthMetrics, HealthStatus

MIN_SCORE = 0
MAX_SCORE = 100

DNS_VERIFIED_CREDIT = 40
SSL_CREDIT = 20
CAPABILITIES_CREDIT = 10
STATUS_CREDITS = {
    HealthStatus.HEALTHY: 25,
    HealthStatus.DEGRADED: 15,
    HealthStatus.UNHEALTHY: 5,
}

# (upper bound in ms, credit); first bound the response time is under wins
RESPONSE_TIME_CREDITS = ((100, 5), (500, 3), (1000, 1))
DEFAULT_RESPONSE_TIME_MS = 1000

STATUS_PENALTIES = {
    HealthStatus.UNHEALTHY: 20,
    HealthStatus.DEGRADED: 10,
}
DNS_UNVERIFIED_PENALTY = 30
HIGH_ERROR_RATE = 0.10
HIGH_ERROR_RATE_PENALTY = 10
LOW_UPTIME_PERCENTAGE = 90
LOW_UPTIME_PENALTY = 15
MISSING_HEALTH_PENALTY = 40


def _response_time_credit(response_time_ms: float | None) -> int:
    if response_time_ms is None:
        response_time_ms = DEFAULT_RESPONSE_TIME_MS
    for bound, credit in RESPONSE_TIME_CREDITS:
        if response_time_ms < bound:
            return credit
    return 0


def calculate_trust_score(
    health: HealthMetrics | None,
    capabilities_working: bool,
    ssl_valid: bool,
    dns_verified: bool,
) -> int:
    """Score a server from 0 to 100.

    Credits:
        DNS verified +40, status healthy/degraded/unhealthy +25/+15/+5,
        SSL +20, working capabilities +10, response time under
        100/500/1000 ms +5/+3/+1 (1000 ms assumed when unknown).

    Penalties:
        unhealthy -20, degraded -10, DNS not verified -30,
        error rate over 10% -10, uptime under 90% -15,
        no health data at all -40.

    Example:
        >>> calculate_trust_score(None, True, True, True)
        30
    """
    status = health.status if health else None

    score = 0
    if dns_verified:
        score += DNS_VERIFIED_CREDIT
    score += STATUS_CREDITS.get(status, 0) if status else 0
    if ssl_valid:
        score += SSL_CREDIT
    if capabilities_working:
        score += CAPABILITIES_CREDIT
    score += _response_time_credit(health.response_time_ms if health else None)

    if status:
        score -= STATUS_PENALTIES.get(status, 0)
    if not dns_verified:
        score -= DNS_UNVERIFIED_PENALTY
    if health is None:
        score -= MISSING_HEALTH_PENALTY
    else:
        if health.error_rate is not None and health.error_rate > HIGH_ERROR_RATE:
            score -= HIGH_ERROR_RATE_PENALTY
        if health.uptime_percentage is not None and health.uptime_percentage < LOW_UPTIME_PERCENTAGE:
            score -= LOW_UPTIME_PENALTY

    return max(min(score, MAX_SCORE), MIN_SCORE)
