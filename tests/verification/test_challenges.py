"""Tests for ownership challenges and the transfer state machine."""

from __future__ import annotations

import string
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from mcplookup_trust.core.exceptions import StorageException, ValidationException
from mcplookup_trust.registry import RegistrationRecord
from mcplookup_trust.storage import MemoryStorage, StorageResult
from mcplookup_trust.verification.challenges import (
    CHALLENGE_COLLECTION,
    ChallengeService,
    ChallengeStore,
    generate_challenge_token,
)
from mcplookup_trust.verification.models import ChallengeReason, ChallengeState, OwnershipChallenge
from mcplookup_trust.verification.resolver_pool import ResolverPool

RESOLVERS = ["1.1.1.1", "8.8.8.8", "9.9.9.9"]


@pytest.fixture
def store(memory_storage):
    return ChallengeStore(memory_storage)


@pytest.fixture
def service(registry, store, fake_lookup):
    pool = ResolverPool(resolvers=RESOLVERS, lookup=fake_lookup, timeout=1.0)
    return ChallengeService(registry, store=store, resolver_pool=pool, ttl=timedelta(hours=24))


def _failing_storage(**failures):
    storage = MemoryStorage()
    for method in failures:
        setattr(storage, method, AsyncMock(return_value=StorageResult.fail("backend down")))
    return storage


# =============================================================================
# TOKEN
# =============================================================================


class TestGenerateChallengeToken:
    def test_length_and_alphabet(self):
        token = generate_challenge_token()
        assert len(token) == 32
        assert set(token) <= set(string.ascii_letters + string.digits)

    def test_unique(self):
        assert len({generate_challenge_token() for _ in range(100)}) == 100


# =============================================================================
# STORE
# =============================================================================


class TestChallengeStore:
    @pytest.mark.asyncio
    async def test_save_and_get(self, store, challenge_factory):
        challenge = challenge_factory()
        await store.save(challenge)

        loaded = await store.get(challenge.challenge_id)

        assert loaded is not None
        assert loaded.txt_record_value == challenge.txt_record_value
        assert loaded.expires_at == challenge.expires_at

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get("does-not-exist") is None

    @pytest.mark.asyncio
    async def test_expired_is_deleted_lazily(self, store, memory_storage, challenge_factory):
        challenge = challenge_factory(expires_in=timedelta(seconds=-1))
        await store.save(challenge)

        assert await store.get(challenge.challenge_id) is None
        assert (await memory_storage.get(CHALLENGE_COLLECTION, challenge.challenge_id)).data is None

    @pytest.mark.asyncio
    async def test_expiry_boundary(self, store, challenge_factory):
        challenge = challenge_factory()
        await store.save(challenge)

        assert await store.get(challenge.challenge_id, now=challenge.expires_at - timedelta(microseconds=1))
        assert await store.get(challenge.challenge_id, now=challenge.expires_at) is None

    @pytest.mark.asyncio
    async def test_malformed_record_is_not_found(self, store, memory_storage):
        await memory_storage.set(CHALLENGE_COLLECTION, "broken", {"domain": "example.com"})
        assert await store.get("broken") is None

    @pytest.mark.asyncio
    async def test_naive_timestamps_read_as_utc(self, store, memory_storage, challenge_factory):
        data = challenge_factory(challenge_id="legacy").to_dict()
        live_until = datetime.now(UTC).replace(tzinfo=None) + timedelta(hours=1)
        data["created_at"] = (live_until - timedelta(hours=24)).isoformat()
        data["expires_at"] = live_until.isoformat()
        await memory_storage.set(CHALLENGE_COLLECTION, "legacy", data)

        challenge = await store.get("legacy")

        assert challenge is not None
        assert challenge.expires_at.tzinfo is UTC

    @pytest.mark.asyncio
    async def test_naive_expired_record_is_deleted(self, store, memory_storage, challenge_factory):
        data = challenge_factory(challenge_id="legacy").to_dict()
        data["expires_at"] = (datetime.now(UTC).replace(tzinfo=None) - timedelta(minutes=1)).isoformat()
        await memory_storage.set(CHALLENGE_COLLECTION, "legacy", data)

        assert await store.get("legacy") is None
        assert (await memory_storage.get(CHALLENGE_COLLECTION, "legacy")).data is None

    @pytest.mark.asyncio
    async def test_save_failure_raises(self, challenge_factory):
        store = ChallengeStore(_failing_storage(set=True))

        with pytest.raises(StorageException) as exc_info:
            await store.save(challenge_factory())

        assert exc_info.value.collection == CHALLENGE_COLLECTION

    @pytest.mark.asyncio
    async def test_delete_failure_raises(self):
        store = ChallengeStore(_failing_storage(delete=True))

        with pytest.raises(StorageException):
            await store.delete("challenge-1")

    @pytest.mark.asyncio
    async def test_get_failure_reads_as_missing(self):
        store = ChallengeStore(_failing_storage(get=True))
        assert await store.get("challenge-1") is None

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, store, memory_storage, challenge_factory):
        await store.save(challenge_factory(challenge_id="live"))
        await store.save(challenge_factory(challenge_id="old-1", expires_in=timedelta(hours=-1)))
        await store.save(challenge_factory(challenge_id="old-2", expires_in=timedelta(days=-3)))
        await memory_storage.set(CHALLENGE_COLLECTION, "junk", {"nope": True})

        removed = await store.cleanup_expired()

        assert removed == 3
        remaining = (await memory_storage.get_all(CHALLENGE_COLLECTION)).data
        assert set(remaining) == {"live"}

    @pytest.mark.asyncio
    async def test_cleanup_listing_failure_raises(self):
        store = ChallengeStore(_failing_storage(get_all=True))
        with pytest.raises(StorageException):
            await store.cleanup_expired()


# =============================================================================
# CREATE
# =============================================================================


class TestCreateOwnershipChallenge:
    @pytest.mark.asyncio
    async def test_builds_record(self, service):
        before = datetime.now(UTC)
        challenge = await service.create_ownership_challenge("Example.com", "203.0.113.7", "suspicious_activity")

        assert challenge.domain == "example.com"
        assert challenge.challenger_ip == "203.0.113.7"
        assert challenge.reason == ChallengeReason.SUSPICIOUS_ACTIVITY
        assert challenge.state == ChallengeState.PENDING
        assert challenge.txt_record_name == "_mcp-challenge.example.com"
        assert challenge.txt_record_value.startswith("mcp_challenge_")
        assert len(challenge.txt_record_value) == len("mcp_challenge_") + 32
        assert challenge.created_at >= before
        assert challenge.expires_at - challenge.created_at == timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_persisted(self, service, store):
        challenge = await service.create_ownership_challenge("example.com")

        stored = await store.get(challenge.challenge_id)

        assert stored is not None
        assert stored.state == ChallengeState.PENDING
        assert stored.reason == ChallengeReason.OWNERSHIP_TRANSFER

    @pytest.mark.asyncio
    async def test_fresh_id_and_token_each_time(self, service):
        first = await service.create_ownership_challenge("example.com")
        second = await service.create_ownership_challenge("example.com")

        assert first.challenge_id != second.challenge_id
        assert first.txt_record_value != second.txt_record_value

    @pytest.mark.asyncio
    async def test_invalid_reason(self, service):
        with pytest.raises(ValidationException, match="Unknown challenge reason"):
            await service.create_ownership_challenge("example.com", reason="because")

    @pytest.mark.asyncio
    async def test_invalid_domain(self, service):
        with pytest.raises(ValidationException):
            await service.create_ownership_challenge("not a domain")

    @pytest.mark.asyncio
    async def test_storage_failure_is_fatal(self, registry, fake_lookup):
        pool = ResolverPool(resolvers=RESOLVERS, lookup=fake_lookup)
        service = ChallengeService(registry, store=ChallengeStore(_failing_storage(set=True)), resolver_pool=pool)

        with pytest.raises(StorageException):
            await service.create_ownership_challenge("example.com")

    @pytest.mark.asyncio
    async def test_instructions(self, service):
        challenge = await service.create_ownership_challenge("example.com")

        assert "_mcp-challenge.example.com" in challenge.instructions
        assert challenge.txt_record_value in challenge.instructions
        assert challenge.challenge_id in challenge.instructions


# =============================================================================
# VERIFY
# =============================================================================


class TestVerifyOwnershipChallenge:
    @pytest.mark.asyncio
    async def test_unknown_id(self, service):
        resolution = await service.verify_ownership_challenge("nope")

        assert resolution.success is False
        assert resolution.message == "Challenge not found or expired"

    @pytest.mark.asyncio
    async def test_expired_fails_even_with_dns_in_place(self, service, store, fake_lookup, challenge_factory):
        challenge = challenge_factory(expires_in=timedelta(minutes=-5))
        await store.save(challenge)
        fake_lookup.records[challenge.txt_record_name] = [challenge.txt_record_value]

        resolution = await service.verify_ownership_challenge(challenge.challenge_id)

        assert resolution.success is False
        assert resolution.message == "Challenge not found or expired"
        assert fake_lookup.calls == []

    @pytest.mark.asyncio
    async def test_dns_missing_keeps_challenge(self, service, store):
        challenge = await service.create_ownership_challenge("example.com")

        resolution = await service.verify_ownership_challenge(challenge.challenge_id)

        assert resolution.success is False
        assert resolution.message == "DNS verification failed"
        assert await store.get(challenge.challenge_id) is not None

    @pytest.mark.asyncio
    async def test_retry_after_publishing(self, service, fake_lookup):
        challenge = await service.create_ownership_challenge("example.com")
        assert not (await service.verify_ownership_challenge(challenge.challenge_id)).success

        fake_lookup.records[challenge.txt_record_name] = [challenge.txt_record_value]
        resolution = await service.verify_ownership_challenge(challenge.challenge_id)

        assert resolution.success is True

    @pytest.mark.asyncio
    async def test_success_without_registration(self, service, fake_lookup):
        challenge = await service.create_ownership_challenge("example.com")
        fake_lookup.records[challenge.txt_record_name] = [challenge.txt_record_value]

        resolution = await service.verify_ownership_challenge(challenge.challenge_id)

        assert resolution.success is True
        assert resolution.ownership_transferred is False
        assert resolution.message == "Domain ownership verified successfully"
        assert resolution.state == ChallengeState.VERIFIED

    @pytest.mark.asyncio
    async def test_success_transfers_existing_registration(self, service, registry, fake_lookup, registered_server):
        registry.add(registered_server)
        challenge = await service.create_ownership_challenge("example.com")
        fake_lookup.records[challenge.txt_record_name] = [challenge.txt_record_value]

        resolution = await service.verify_ownership_challenge(challenge.challenge_id)

        assert resolution.ownership_transferred is True
        assert resolution.message == "Domain ownership transferred successfully"
        assert await registry.get_servers_by_domain("example.com") == []

    @pytest.mark.asyncio
    async def test_single_use(self, service, fake_lookup):
        challenge = await service.create_ownership_challenge("example.com")
        fake_lookup.records[challenge.txt_record_name] = [challenge.txt_record_value]

        assert (await service.verify_ownership_challenge(challenge.challenge_id)).success
        second = await service.verify_ownership_challenge(challenge.challenge_id)

        assert second.success is False
        assert second.message == "Challenge not found or expired"

    @pytest.mark.asyncio
    async def test_minority_of_resolvers_is_not_enough(self, service, fake_lookup):
        challenge = await service.create_ownership_challenge("example.com")
        fake_lookup.per_resolver[("1.1.1.1", challenge.txt_record_name)] = [challenge.txt_record_value]

        assert not (await service.verify_ownership_challenge(challenge.challenge_id)).success

    @pytest.mark.asyncio
    async def test_multiple_registrations_all_removed(self, service, registry, fake_lookup):
        registry.add(RegistrationRecord(domain="example.com", endpoint="https://a.example.com"))
        registry.add(RegistrationRecord(domain="example.com", endpoint="https://b.example.com"))
        challenge = await service.create_ownership_challenge("example.com")
        fake_lookup.records[challenge.txt_record_name] = [challenge.txt_record_value]

        resolution = await service.verify_ownership_challenge(challenge.challenge_id)

        assert resolution.ownership_transferred is True
        assert await registry.get_servers_by_domain("example.com") == []

    @pytest.mark.asyncio
    async def test_get_challenge(self, service):
        challenge = await service.create_ownership_challenge("example.com")

        data = await service.get_challenge(challenge.challenge_id)

        assert data["challenge_id"] == challenge.challenge_id
        assert await service.get_challenge("missing") is None


# =============================================================================
# SERIALIZATION
# =============================================================================


class TestOwnershipChallengeSerialization:
    def test_to_dict_uses_iso_timestamps(self, challenge_factory):
        data = challenge_factory().to_dict()

        assert datetime.fromisoformat(data["created_at"]).tzinfo is not None
        assert data["reason"] == "ownership_transfer"

    def test_from_dict_defaults(self, challenge_factory):
        data = challenge_factory().to_dict()
        del data["state"]
        del data["challenger_ip"]

        challenge = OwnershipChallenge.from_dict(data)

        assert challenge.state == ChallengeState.PENDING
        assert challenge.challenger_ip == "unknown"

    def test_naive_now_is_compared_as_utc(self, challenge_factory):
        challenge = challenge_factory(expires_in=timedelta(minutes=5))
        naive_now = datetime.now(UTC).replace(tzinfo=None)

        assert challenge.is_expired(naive_now) is False
        assert challenge.is_expired(naive_now + timedelta(minutes=10)) is True
