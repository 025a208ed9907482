"""Tests for the per-domain health report."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from mcplookup_trust.core.exceptions import NotFoundError, RegistryAnomalyError
from mcplookup_trust.health.models import HealthMetrics, HealthStatus
from mcplookup_trust.health.probes import HealthProbe
from mcplookup_trust.health.report import build_health_report
from mcplookup_trust.registry import RegistrationRecord


def _probe(health=None, capabilities=True, ssl=True, health_error=None):
    probe = MagicMock(spec=HealthProbe)
    probe.check_server_health = AsyncMock(return_value=health, side_effect=health_error)
    probe.check_capabilities = AsyncMock(return_value=capabilities)
    probe.check_ssl = AsyncMock(return_value=ssl)
    return probe


class TestBuildHealthReport:
    @pytest.mark.asyncio
    async def test_uses_cached_health(self, registry, registered_server):
        registry.add(registered_server)
        probe = _probe()

        report = await build_health_report(registry, "example.com", probe=probe)

        assert report.trust_score == 100
        assert report.health is registered_server.health
        assert report.endpoint == "https://mcp.example.com/mcp"
        probe.check_server_health.assert_not_awaited()
        probe.check_capabilities.assert_awaited_once_with("https://mcp.example.com/mcp")
        probe.check_ssl.assert_awaited_once_with("https://mcp.example.com/mcp")

    @pytest.mark.asyncio
    async def test_realtime_replaces_cached_health(self, registry, registered_server):
        registry.add(registered_server)
        live = HealthMetrics(status=HealthStatus.DEGRADED, response_time_ms=1500, uptime_percentage=97.0, error_rate=0.03)
        probe = _probe(health=live)

        report = await build_health_report(registry, "example.com", probe=probe, realtime=True)

        assert report.health is live
        # 40 + 15 + 20 + 10 + 0 - 10
        assert report.trust_score == 75

    @pytest.mark.asyncio
    async def test_realtime_failure_falls_back_to_cache(self, registry, registered_server):
        registry.add(registered_server)
        probe = _probe(health_error=RuntimeError("boom"))

        report = await build_health_report(registry, "example.com", probe=probe, realtime=True)

        assert report.health is registered_server.health
        assert report.trust_score == 100

    @pytest.mark.asyncio
    async def test_no_cached_health(self, registry):
        registry.add(RegistrationRecord(domain="example.com", endpoint="https://mcp.example.com/mcp", dns_verified=True))

        report = await build_health_report(registry, "example.com", probe=_probe())

        assert report.health is None
        assert report.trust_score == 30

    @pytest.mark.asyncio
    async def test_failed_probes_lower_score(self, registry, registered_server):
        registry.add(registered_server)

        report = await build_health_report(registry, "example.com", probe=_probe(capabilities=False, ssl=False))

        assert report.capabilities_working is False
        assert report.ssl_valid is False
        assert report.trust_score == 70

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", [["forecast"], "ok"])
    async def test_non_object_tools_result(self, registry, registered_server, result):
        registry.add(registered_server)
        probe = HealthProbe(timeout=5.0)
        probe._guard = AsyncMock()
        probe._post_jsonrpc = AsyncMock(return_value={"jsonrpc": "2.0", "id": "capability-check", "result": result})
        probe.check_ssl = AsyncMock(return_value=True)

        report = await build_health_report(registry, "example.com", probe=probe)

        assert report.capabilities_working is False
        assert report.trust_score < 100

    @pytest.mark.asyncio
    async def test_domain_is_normalized(self, registry, registered_server):
        registry.add(registered_server)

        report = await build_health_report(registry, "Example.COM.", probe=_probe())

        assert report.domain == "example.com"

    @pytest.mark.asyncio
    async def test_unregistered(self, registry):
        with pytest.raises(NotFoundError):
            await build_health_report(registry, "example.com", probe=_probe())

    @pytest.mark.asyncio
    async def test_missing_endpoint(self, registry):
        registry.add(RegistrationRecord(domain="example.com"))
        probe = _probe()

        with pytest.raises(NotFoundError):
            await build_health_report(registry, "example.com", probe=probe)

        probe.check_capabilities.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_multiple_registrations(self, registry):
        registry.add(RegistrationRecord(domain="example.com", endpoint="https://a.example.com"))
        registry.add(RegistrationRecord(domain="example.com", endpoint="https://b.example.com"))

        with pytest.raises(RegistryAnomalyError):
            await build_health_report(registry, "example.com", probe=_probe())

    @pytest.mark.asyncio
    async def test_to_dict(self, registry, registered_server):
        registry.add(registered_server)

        data = (await build_health_report(registry, "example.com", probe=_probe())).to_dict()

        assert data["trust_score"] == 100
        assert data["health"]["status"] == "healthy"
        assert "generated_at" in data
