# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""
MCPLookup trust engine CLI - operator tooling for domain verification.

Commands:
  mcplookup-trust verify <domain>               Check current ownership proofs
  mcplookup-trust challenge create <domain>     Issue an ownership challenge
  mcplookup-trust challenge verify <id>         Complete an ownership challenge
  mcplookup-trust challenge cleanup             Remove expired challenges
  mcplookup-trust probe <endpoint>              Live health, capability and SSL probes
  mcplookup-trust score --status healthy ...    Compute a trust score offline
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from .core.exceptions import TrustEngineException
from .core.logging import configure_logging, correlation_context
from .health.models import HealthMetrics, HealthStatus
from .health.probes import HealthProbe
from .health.scoring import calculate_trust_score
from .registry import InMemoryRegistry
from .verification.models import ChallengeReason
from .verification.service import DomainSecurityService

logger = logging.getLogger(__name__)


def _print(data: dict[str, Any], as_json: bool, lines: list[str]) -> None:
    if as_json:
        print(json.dumps(data, indent=2, default=str))
    else:
        print("\n".join(lines))


def _service() -> DomainSecurityService:
    # Transfers only touch the registry on success; the CLI has none of its own
    return DomainSecurityService(InMemoryRegistry())


def cmd_verify(args: argparse.Namespace) -> int:
    """Run the ordered ownership checks for a domain."""
    result = asyncio.run(_service().verify_current_ownership(args.domain))
    mark = "✅" if result.verified else "❌"
    _print(result.to_dict(), args.json, [f"{mark} {args.domain}: {result.details} (method: {result.method})"])
    return 0 if result.verified else 1


def cmd_challenge_create(args: argparse.Namespace) -> int:
    """Issue a challenge and print the record to publish."""
    challenge = asyncio.run(_service().create_ownership_challenge(args.domain, args.ip, args.reason))
    _print(challenge.to_dict(), args.json, [challenge.instructions])
    return 0


def cmd_challenge_verify(args: argparse.Namespace) -> int:
    """Check a challenge's TXT record by resolver majority."""
    resolution = asyncio.run(_service().verify_ownership_challenge(args.challenge_id))
    mark = "✅" if resolution.success else "❌"
    _print(resolution.to_dict(), args.json, [f"{mark} {resolution.message}"])
    return 0 if resolution.success else 1


def cmd_challenge_cleanup(args: argparse.Namespace) -> int:
    """Remove expired challenges from storage."""
    removed = asyncio.run(_service().challenges.store.cleanup_expired())
    _print({"removed": removed}, args.json, [f"Removed {removed} expired challenge(s)"])
    return 0


def cmd_challenge(args: argparse.Namespace) -> int:
    handlers = {
        "create": cmd_challenge_create,
        "verify": cmd_challenge_verify,
        "cleanup": cmd_challenge_cleanup,
    }
    return handlers[args.challenge_command](args)


async def _probe(endpoint: str) -> dict[str, Any]:
    probe = HealthProbe()
    health, capabilities_working, ssl_valid = await asyncio.gather(
        probe.check_server_health(endpoint),
        probe.check_capabilities(endpoint),
        probe.check_ssl(endpoint),
    )
    return {
        "endpoint": endpoint,
        "health": health.to_dict(),
        "capabilities_working": capabilities_working,
        "ssl_valid": ssl_valid,
    }


def cmd_probe(args: argparse.Namespace) -> int:
    """Probe a live MCP endpoint."""
    report = asyncio.run(_probe(args.endpoint))
    health = report["health"]
    lines = [
        f"Endpoint:      {args.endpoint}",
        f"Status:        {health['status']} ({health['response_time_ms']:.0f}ms)",
        f"Capabilities:  {'working' if report['capabilities_working'] else 'not working'}",
        f"SSL:           {'valid' if report['ssl_valid'] else 'invalid'}",
    ]
    _print(report, args.json, lines)
    return 0 if health["status"] == HealthStatus.HEALTHY else 1


def cmd_score(args: argparse.Namespace) -> int:
    """Compute a trust score from supplied signals."""
    health = None
    if args.status or args.response_time is not None or args.error_rate is not None or args.uptime is not None:
        health = HealthMetrics(
            status=HealthStatus(args.status) if args.status else None,
            response_time_ms=args.response_time,
            uptime_percentage=args.uptime,
            error_rate=args.error_rate,
        )
    score = calculate_trust_score(health, args.capabilities_working, args.ssl_valid, args.dns_verified)
    _print({"trust_score": score}, args.json, [f"Trust score: {score}"])
    return 0


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="mcplookup-trust",
        description="Domain ownership verification and trust scoring for MCP servers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mcplookup-trust verify example.com
  mcplookup-trust challenge create example.com --ip 203.0.113.7
  mcplookup-trust challenge verify 6f1c...
  mcplookup-trust probe https://mcp.example.com/mcp
  mcplookup-trust score --status healthy --response-time 80 --dns-verified --ssl-valid
        """,
    )
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    verify_parser = subparsers.add_parser("verify", help="Check current ownership proofs for a domain")
    verify_parser.add_argument("domain")

    challenge_parser = subparsers.add_parser("challenge", help="Ownership challenges")
    challenge_subparsers = challenge_parser.add_subparsers(dest="challenge_command", required=True)

    create_parser = challenge_subparsers.add_parser("create", help="Issue an ownership challenge")
    create_parser.add_argument("domain")
    create_parser.add_argument("--ip", default="unknown", help="Requester IP, recorded for abuse tracking")
    create_parser.add_argument(
        "--reason",
        choices=[r.value for r in ChallengeReason],
        default=ChallengeReason.OWNERSHIP_TRANSFER.value,
    )

    challenge_verify_parser = challenge_subparsers.add_parser("verify", help="Complete an ownership challenge")
    challenge_verify_parser.add_argument("challenge_id")

    challenge_subparsers.add_parser("cleanup", help="Remove expired challenges")

    probe_parser = subparsers.add_parser("probe", help="Probe a live MCP endpoint")
    probe_parser.add_argument("endpoint")

    score_parser = subparsers.add_parser("score", help="Compute a trust score")
    score_parser.add_argument("--status", choices=[s.value for s in HealthStatus])
    score_parser.add_argument("--response-time", type=float, help="Response time in ms")
    score_parser.add_argument("--error-rate", type=float, help="Error rate as a fraction (0-1)")
    score_parser.add_argument("--uptime", type=float, help="Uptime percentage")
    score_parser.add_argument("--dns-verified", action="store_true")
    score_parser.add_argument("--ssl-valid", action="store_true")
    score_parser.add_argument("--capabilities-working", action="store_true")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = app()
    args = parser.parse_args(argv)

    commands = {
        "verify": cmd_verify,
        "challenge": cmd_challenge,
        "probe": cmd_probe,
        "score": cmd_score,
    }

    try:
        configure_logging(level="DEBUG" if args.verbose else None)
        with correlation_context():
            return commands[args.command](args)
    except TrustEngineException as e:
        if args.json:
            print(json.dumps(e.to_dict(), indent=2, default=str))
        else:
            print(f"❌ {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
