"""Credential schemas: data model and the backend registry client.

Quick start
-----------
::

    from credential_issuance.schemas import SchemaRegistryClient

    registry = SchemaRegistryClient(backend)
    registry.create("Event Ticket", "EventTicket", {"seat": {"type": "string"}}, ["seat"])
    latest = registry.resolve_latest("EventTicket")
"""
from __future__ import annotations

from credential_issuance.schemas.models import (
    VALIDATOR_CREDENTIAL_TYPE,
    VALIDATOR_TEMPLATE,
    Schema,
    SchemaProperty,
    SchemaTemplate,
)
from credential_issuance.schemas.registry import (
    SchemaRegistryClient,
    latest_version,
    missing_required,
)

__all__ = [
    "Schema",
    "SchemaProperty",
    "SchemaRegistryClient",
    "SchemaTemplate",
    "VALIDATOR_CREDENTIAL_TYPE",
    "VALIDATOR_TEMPLATE",
    "latest_version",
    "missing_required",
]
