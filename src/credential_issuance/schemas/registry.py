"""SchemaRegistryClient — schema CRUD and latest-version resolution.

The backend offers no filtering on its schema listing, so type lookups and
version resolution happen client-side over :meth:`SchemaRegistryClient.get_all`.
Type matching is exact and case-sensitive.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from credential_issuance.errors import FlowStep, RemoteError, ValidationError
from credential_issuance.schemas.models import (
    Schema,
    SchemaProperty,
    SchemaTemplate,
    coerce_properties,
)
from credential_issuance.transport.client import BackendClient, path_segment

logger = logging.getLogger(__name__)

_STEP = FlowStep.SCHEMA_MANAGEMENT


class SchemaRegistryClient:
    """Create, list, fetch, and delete schemas on the issuance backend.

    Parameters
    ----------
    client:
        The shared backend transport.
    """

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(
        self,
        name: str,
        type: str,
        properties: Mapping[str, SchemaProperty | Mapping[str, Any]],
        required_fields: Sequence[str],
    ) -> Schema:
        """Register a new schema (or a new version of an existing type).

        Parameters
        ----------
        name:
            Display name of the schema.
        type:
            Credential type the schema describes.
        properties:
            Property name -> descriptor (a :class:`SchemaProperty` or a dict).
        required_fields:
            Names of properties every credential subject must carry.

        Returns
        -------
        Schema
            The schema as stored by the backend, including its assigned id
            and version.

        Raises
        ------
        ValidationError
            If *name* or *type* is empty, a property descriptor is malformed,
            or *required_fields* names an undeclared property. Raised before
            any network call.
        """
        if not name or not type:
            raise ValidationError("Schema name and type are required.", step=_STEP)
        if isinstance(required_fields, str):
            raise ValidationError(
                "required_fields must be a sequence of property names, not a string.",
                step=_STEP,
            )
        try:
            descriptors = coerce_properties(properties)
        except PydanticValidationError as exc:
            raise ValidationError(f"Malformed property descriptor: {exc}", step=_STEP) from exc

        undeclared = [f for f in required_fields if f not in descriptors]
        if undeclared:
            raise ValidationError(
                f"Required fields {undeclared} are not declared in properties "
                f"{sorted(descriptors)}.",
                step=_STEP,
            )

        body = {
            "name": name,
            "type": type,
            "credentialSubject": {
                "type": "object",
                "properties": {k: v.to_wire() for k, v in descriptors.items()},
                "required": list(required_fields),
            },
        }
        data = self._client.request("POST", "schema", step=_STEP, json=body)
        schema = _parse_schema(data)
        logger.info("Created schema %s (type=%s, version=%d)", schema.id, schema.type, schema.version)
        return schema

    def get_all(self) -> list[Schema]:
        """Return every schema known to the backend."""
        data = self._client.request("GET", "schema", step=_STEP, authenticated=False)
        if not isinstance(data, list):
            raise RemoteError("Schema listing is not a JSON array.", step=_STEP)
        return [_parse_schema(item) for item in data]

    def get_by_id(self, schema_id: str) -> Schema:
        """Fetch one schema by id.

        Raises
        ------
        NotFound
            If the backend has no schema with that id.
        """
        if not schema_id:
            raise ValidationError("Schema id is required.", step=_STEP)
        data = self._client.request(
            "GET",
            f"schema/{path_segment(schema_id, step=_STEP)}",
            step=_STEP,
            authenticated=False,
        )
        return _parse_schema(data)

    def delete(self, schema_id: str) -> None:
        """Delete one schema by id.

        Credentials already issued under the schema are not affected. A
        repeated delete surfaces whatever the backend answers, usually
        :class:`~credential_issuance.errors.NotFound`.
        """
        if not schema_id:
            raise ValidationError("Schema id is required.", step=_STEP)
        self._client.request(
            "DELETE", f"schema/{path_segment(schema_id, step=_STEP)}", step=_STEP
        )
        logger.info("Deleted schema %s", schema_id)

    # ------------------------------------------------------------------
    # Type queries
    # ------------------------------------------------------------------

    def exists_by_type(self, type: str) -> bool:
        """Return True if at least one schema has exactly this type."""
        if not type:
            raise ValidationError("Schema type is required.", step=_STEP)
        return any(schema.type == type for schema in self.get_all())

    def resolve_latest(self, type: str) -> Schema | None:
        """Return the highest-version schema of *type*, or None if there is none.

        Absence is an expected outcome and is reported as ``None``.
        """
        if not type:
            raise ValidationError("Schema type is required.", step=_STEP)
        return latest_version(self.get_all(), type)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def register_template(self, template: SchemaTemplate) -> Schema:
        """Create a schema from a configured template."""
        return self.create(
            name=template.name,
            type=template.type,
            properties=template.properties,
            required_fields=template.required_fields,
        )

    def ensure_template(self, template: SchemaTemplate) -> Schema:
        """Return the latest schema for the template's type, registering it if absent."""
        existing = self.resolve_latest(template.type)
        if existing is not None:
            return existing
        logger.info("No schema of type %s found; registering template", template.type)
        return self.register_template(template)


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def latest_version(schemas: Iterable[Schema], type: str) -> Schema | None:
    """Pick the schema of *type* with the greatest integer version.

    When several schemas share the greatest version, the one with the
    greatest id wins, so the result does not depend on listing order.
    """
    candidates = [schema for schema in schemas if schema.type == type]
    if not candidates:
        return None

    top = max(schema.version for schema in candidates)
    tied = [schema for schema in candidates if schema.version == top]
    if len(tied) > 1:
        logger.warning(
            "%d schemas of type %s share version %d; choosing by greatest id",
            len(tied),
            type,
            top,
        )
    return max(tied, key=lambda schema: schema.id)


def missing_required(schema: Schema, subject: Mapping[str, Any]) -> list[str]:
    """Return the schema's required fields that are absent from *subject*.

    A ``None`` value counts as absent unless the property is nullable.
    """
    missing: list[str] = []
    for name in schema.required_fields:
        descriptor = schema.properties.get(name)
        nullable = descriptor is not None and descriptor.nullable
        if name not in subject or (subject[name] is None and not nullable):
            missing.append(name)
    return missing


def _parse_schema(data: Any) -> Schema:
    if not isinstance(data, dict):
        raise RemoteError("Schema response is not a JSON object.", step=_STEP)
    try:
        return Schema.from_wire(data)
    except ValueError as exc:
        raise RemoteError(f"Malformed schema document: {exc}", step=_STEP) from exc


__all__ = ["SchemaRegistryClient", "latest_version", "missing_required"]
