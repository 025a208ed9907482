"""Global test fixtures for the MCPLookup trust engine test suite."""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime, timedelta

import dns.resolver
import pytest

from mcplookup_trust.core.config import clear_config_cache
from mcplookup_trust.health.models import HealthMetrics, HealthStatus
from mcplookup_trust.registry import InMemoryRegistry, RegistrationRecord
from mcplookup_trust.storage import MemoryStorage, reset_storage
from mcplookup_trust.verification.models import OwnershipChallenge

# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_globals():
    """Reset cached config and storage between tests."""
    clear_config_cache()
    reset_storage()
    yield
    clear_config_cache()
    reset_storage()


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """configure_logging() replaces root handlers; put pytest's back."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all MCPLOOKUP_ environment variables."""
    for key in list(os.environ.keys()):
        if key.startswith("MCPLOOKUP_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(os.path.dirname(__file__))


# ============================================================================
# Fakes
# ============================================================================


class FakeTxtLookup:
    """In-memory TXT lookup.

    ``records`` answers for every resolver; ``per_resolver`` overrides a
    single (nameserver, name) pair. Values may be exceptions to raise.
    Unknown names raise NXDOMAIN.
    """

    def __init__(self, records=None, per_resolver=None):
        self.records = records or {}
        self.per_resolver = per_resolver or {}
        self.calls: list[tuple[str, str | None]] = []

    async def resolve_txt(self, name, nameserver=None, timeout=5.0):
        self.calls.append((name, nameserver))
        if (nameserver, name) in self.per_resolver:
            value = self.per_resolver[(nameserver, name)]
        else:
            value = self.records.get(name)
        if value is None:
            raise dns.resolver.NXDOMAIN()
        if isinstance(value, BaseException):
            raise value
        return list(value)


@pytest.fixture
def fake_lookup():
    return FakeTxtLookup()


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def registry():
    return InMemoryRegistry()


# ============================================================================
# Sample data
# ============================================================================


@pytest.fixture
def registered_server():
    """A healthy, DNS-verified registration for example.com."""
    return RegistrationRecord(
        domain="example.com",
        endpoint="https://mcp.example.com/mcp",
        capabilities=frozenset({"file_system", "search", "weather"}),
        dns_verified=True,
        health=HealthMetrics(
            status=HealthStatus.HEALTHY,
            response_time_ms=80,
            uptime_percentage=99.9,
            error_rate=0.001,
        ),
    )


def make_challenge(
    domain: str = "example.com",
    challenge_id: str = "challenge-1",
    token: str = "a" * 32,
    expires_in: timedelta = timedelta(hours=24),
) -> OwnershipChallenge:
    """Build a challenge without going through the service."""
    expires_at = datetime.now(UTC) + expires_in
    return OwnershipChallenge(
        challenge_id=challenge_id,
        domain=domain,
        challenger_ip="203.0.113.7",
        txt_record_name=f"_mcp-challenge.{domain}",
        txt_record_value=f"mcp_challenge_{token}",
        created_at=expires_at - timedelta(hours=24),
        expires_at=expires_at,
    )


@pytest.fixture
def challenge_factory():
    return make_challenge
