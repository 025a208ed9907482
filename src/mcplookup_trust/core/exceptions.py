# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Custom exception hierarchy for the MCPLookup trust engine.

Network failures are never raised through these types: the resolver pool,
ownership verifier and health probes fold them into negative results.
These exceptions cover the failures callers must act on. Each carries a
stable ``code`` so API layers can map it without matching class names.
"""

from __future__ import annotations

from typing import Any


def _present(**fields: Any) -> dict[str, Any]:
    return {name: value for name, value in fields.items() if value not in (None, "", [])}


class TrustEngineException(Exception):  # noqa: N818
    """Base exception for all trust engine errors."""

    code = "trust_engine_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details) if details else {}

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form used by the CLI and API responses."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class StorageException(TrustEngineException):
    """The storage collaborator refused a write or delete.

    Fatal for challenge creation and deletion; reads that fail are
    treated as "not found" instead.
    """

    code = "storage_error"

    def __init__(self, message: str, collection: str | None = None, key: str | None = None):
        super().__init__(message, _present(collection=collection, key=key))
        self.collection = collection
        self.key = key


class ValidationException(TrustEngineException):
    """Caller input rejected before any network I/O.

    Raised for malformed or non-public domains, bad capability tags or
    endpoint URLs, and unknown challenge reasons.
    """

    code = "invalid_input"

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message, _present(field=field, value=None if value is None else str(value)))
        self.field = field
        self.value = value


class UnsafeTargetError(ValidationException):
    """Outbound target is, or resolves to, a non-public address."""

    code = "unsafe_target"


class ConfigException(TrustEngineException):
    code = "config_error"

    def __init__(self, message: str, missing_vars: list[str] | None = None):
        self.missing_vars = list(missing_vars or [])
        super().__init__(message, _present(missing_vars=self.missing_vars))


class NotFoundError(TrustEngineException):
    """A registry lookup came back empty."""

    code = "not_found"

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            {"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class RegistryAnomalyError(TrustEngineException):
    """More than one registration exists for a single domain.

    At most one registration per domain is expected; when the registry
    returns several, no record is picked on the caller's behalf.
    """

    code = "registry_anomaly"

    def __init__(self, domain: str, count: int):
        super().__init__(f"Multiple registrations found for domain {domain} ({count})", {"domain": domain, "count": count})
        self.domain = domain
        self.count = count
