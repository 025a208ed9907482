# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Decide whether a registration update needs a fresh ownership proof.

Endpoint changes redirect all of a domain's traffic, and core capability
changes alter what a server may touch, so both are gated. Description and
contact changes are cosmetic and pass straight through.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..registry import RegistrationRecord
from .models import UpdateRequest

CORE_CAPABILITIES = frozenset({"file_system", "database", "network", "authentication", "system"})

# Fraction of the capability union that must differ to require verification
CAPABILITY_CHANGE_THRESHOLD = 0.5


def capability_change_ratio(current: Iterable[str], proposed: Iterable[str]) -> float:
    """``1 - |A ∩ B| / |A ∪ B|``; two empty sets count as unchanged."""
    before, after = set(current), set(proposed)
    union = before | after
    if not union:
        return 0.0
    return 1 - len(before & after) / len(union)


def requires_ownership_verification(current: RegistrationRecord, update: UpdateRequest) -> bool:
    """Rules are evaluated in order; the first match wins."""
    if update.endpoint is not None and update.endpoint != current.endpoint:
        return True

    if update.capabilities is not None:
        before, after = set(current.capabilities), set(update.capabilities)

        if (before ^ after) & CORE_CAPABILITIES:
            return True

        if capability_change_ratio(before, after) > CAPABILITY_CHANGE_THRESHOLD:
            return True

    return False
