# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Multi-resolver DNS TXT consensus.

A single resolver can be spoofed, poisoned or simply wrong. The pool asks
every configured public resolver the same question concurrently, waits for
all of them (or their timeouts), and trusts the answer only when a strict
majority agrees.

Example:
    >>> pool = ResolverPool()
    >>> await pool.verify_txt_record("_mcp-challenge.example.com", "mcp_challenge_abc...")
    True
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from typing import Protocol, runtime_checkable

import dns.asyncresolver
import dns.exception

from ..core.config import get_config
from ..core.exceptions import ConfigException
from ..core.net_safety import is_private_ip

logger = logging.getLogger(__name__)

# Slack on top of the resolver's own lifetime before the pool gives up
QUERY_GRACE_SECONDS = 0.5


@runtime_checkable
class TxtLookup(Protocol):
    """Protocol for TXT record lookups."""

    async def resolve_txt(
        self,
        name: str,
        nameserver: str | None = None,
        timeout: float = 5.0,
    ) -> list[str]:
        """Return the TXT records at ``name``.

        Each record's character-strings are concatenated into one value.
        ``nameserver=None`` uses the system resolver configuration.

        Raises:
            Any DNS or network error; callers decide how to fold it.
        """
        ...


class DnsPythonTxtLookup:
    """TXT lookups via dnspython's asyncio resolver."""

    async def resolve_txt(
        self,
        name: str,
        nameserver: str | None = None,
        timeout: float = 5.0,
    ) -> list[str]:
        if nameserver is None:
            resolver = dns.asyncresolver.Resolver()
        else:
            resolver = dns.asyncresolver.Resolver(configure=False)
            resolver.nameservers = [nameserver]
        resolver.timeout = timeout
        resolver.lifetime = timeout

        answer = await resolver.resolve(name, "TXT", search=False)
        return [b"".join(rdata.strings).decode("utf-8", errors="replace") for rdata in answer]


def has_majority(yes_votes: int, total: int) -> bool:
    """Strict majority: ties and pluralities do not count."""
    return total > 0 and yes_votes > total / 2


def _is_ip_literal(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


class ResolverPool:
    """Answers "does TXT ``name`` contain exactly ``value``?" by majority vote."""

    def __init__(
        self,
        resolvers: list[str] | None = None,
        lookup: TxtLookup | None = None,
        timeout: float | None = None,
    ):
        config = get_config()
        self.resolvers = list(resolvers) if resolvers is not None else config.resolver_list
        if not self.resolvers:
            raise ConfigException("At least one DNS resolver is required", missing_vars=["MCPLOOKUP_DNS_RESOLVERS"])
        self.timeout = timeout if timeout is not None else config.dns_timeout_seconds
        self.lookup: TxtLookup = lookup or DnsPythonTxtLookup()

    async def _vote(self, resolver: str, name: str, expected_value: str) -> bool:
        """One resolver's opinion. Every failure is a "no"."""
        if not _is_ip_literal(resolver) or is_private_ip(resolver):
            logger.warning(f"Blocked non-public DNS resolver: {resolver}")
            return False

        try:
            records = await asyncio.wait_for(
                self.lookup.resolve_txt(name, nameserver=resolver, timeout=self.timeout),
                timeout=self.timeout + QUERY_GRACE_SECONDS,
            )
        except TimeoutError:
            logger.debug(f"Resolver {resolver} timed out for {name}")
            return False
        except dns.exception.DNSException as e:
            logger.debug(f"Resolver {resolver} failed for {name}: {type(e).__name__}")
            return False
        except Exception as e:  # Intentionally broad: a broken resolver must not break the vote
            logger.debug(f"Resolver {resolver} errored for {name}: {e}")
            return False

        matched = any(record == expected_value for record in records)
        logger.debug(f"Resolver {resolver} voted {'yes' if matched else 'no'} for {name}", extra={"resolver": resolver})
        return matched

    async def collect_votes(self, name: str, expected_value: str) -> dict[str, bool]:
        """Query every resolver concurrently and wait for all of them."""
        votes = await asyncio.gather(*(self._vote(resolver, name, expected_value) for resolver in self.resolvers))
        return dict(zip(self.resolvers, votes, strict=True))

    async def verify_txt_record(self, name: str, expected_value: str) -> bool:
        """True only if a strict majority of resolvers saw the exact value.

        Never raises: total failure is reported as False.
        """
        votes = await self.collect_votes(name, expected_value)
        yes_votes = sum(votes.values())
        verified = has_majority(yes_votes, len(self.resolvers))

        logger.info(f"TXT consensus for {name}: {yes_votes}/{len(self.resolvers)} resolvers agree -> {'verified' if verified else 'not verified'}")
        return verified
