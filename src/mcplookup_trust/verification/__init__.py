"""Domain ownership verification.

- resolver_pool: TXT record consensus across independent public resolvers
- ownership: live ownership proofs (_mcp-verify, .well-known/mcp, _mcp)
- update_gate: which registration changes need fresh proof
- challenges: challenge persistence and the transfer state machine
- service: facade, the update-with-verification flow and re-verification sweeps
"""

from .challenges import ChallengeService, ChallengeStore, generate_challenge_token
from .models import (
    ChallengeReason,
    ChallengeResolution,
    ChallengeState,
    OwnershipChallenge,
    UpdateRequest,
    UpdateResult,
    VerificationMethod,
    VerificationResult,
    VerificationSweepResult,
)
from .ownership import OwnershipVerifier
from .resolver_pool import DnsPythonTxtLookup, ResolverPool, TxtLookup
from .service import DomainSecurityService
from .update_gate import CORE_CAPABILITIES, requires_ownership_verification

__all__ = [
    "ChallengeService",
    "ChallengeStore",
    "generate_challenge_token",
    "ChallengeReason",
    "ChallengeResolution",
    "ChallengeState",
    "OwnershipChallenge",
    "UpdateRequest",
    "UpdateResult",
    "VerificationMethod",
    "VerificationResult",
    "VerificationSweepResult",
    "OwnershipVerifier",
    "DnsPythonTxtLookup",
    "ResolverPool",
    "TxtLookup",
    "DomainSecurityService",
    "CORE_CAPABILITIES",
    "requires_ownership_verification",
]
