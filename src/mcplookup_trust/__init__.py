# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""MCPLookup trust engine - domain ownership verification for MCP servers.

Decides whether a claimant really controls a domain before it may register,
transfer or materially change an MCP server listing, and scores how much
a listed server should be trusted.

Components:
  verification.resolver_pool   Multi-resolver DNS TXT consensus
  verification.challenges      Ownership challenges and transfers
  verification.ownership       Ordered live ownership checks
  verification.update_gate     Which updates need fresh proof
  verification.service         Update-with-verification flow
  health.scoring               0-100 trust score
  health.probes                Live endpoint probes

CLI entry point: ``mcplookup-trust``
"""

__version__ = "1.0.0"

from .core.exceptions import (
    ConfigException,
    NotFoundError,
    RegistryAnomalyError,
    StorageException,
    TrustEngineException,
    UnsafeTargetError,
    ValidationException,
)
from .health.models import HealthMetrics, HealthReport, HealthStatus
from .health.scoring import calculate_trust_score
from .registry import InMemoryRegistry, RegistrationRecord, Registry
from .verification.models import (
    ChallengeReason,
    OwnershipChallenge,
    UpdateRequest,
    UpdateResult,
    VerificationMethod,
    VerificationResult,
)
from .verification.service import DomainSecurityService

__all__ = [
    "__version__",
    # Exceptions
    "TrustEngineException",
    "StorageException",
    "ValidationException",
    "UnsafeTargetError",
    "ConfigException",
    "NotFoundError",
    "RegistryAnomalyError",
    # Health
    "HealthMetrics",
    "HealthReport",
    "HealthStatus",
    "calculate_trust_score",
    # Registry
    "Registry",
    "RegistrationRecord",
    "InMemoryRegistry",
    # Verification
    "ChallengeReason",
    "OwnershipChallenge",
    "UpdateRequest",
    "UpdateResult",
    "VerificationMethod",
    "VerificationResult",
    "DomainSecurityService",
]
