"""Schema data model — credential schemas, their properties, and templates.

A :class:`Schema` is the backend's versioned structural definition of a
credential's subject. Several schemas may share one ``type``; each carries
an integer ``version`` that increases monotonically per type.

On the wire a schema looks like::

    {
        "id": "...",
        "name": "Event Ticket",
        "type": "EventTicket",
        "version": 2,
        "credentialSubject": {
            "type": "object",
            "properties": {"seat": {"type": "string", "title": "Seat"}},
            "required": ["seat"]
        }
    }
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class SchemaProperty(BaseModel):
    """Descriptor of a single credential-subject property.

    Parameters
    ----------
    type:
        JSON type of the property. Defaults to ``"string"``.
    title:
        Display title.
    description:
        Optional longer description.
    format:
        Optional format hint (e.g. ``"text"``, ``"date"``).
    nullable:
        Whether ``null`` is an accepted value.
    """

    model_config = {"extra": "allow"}

    type: str = "string"
    title: Optional[str] = None
    description: Optional[str] = None
    format: Optional[str] = None
    nullable: bool = False

    def to_wire(self) -> dict[str, Any]:
        """Return the backend representation; ``nullable`` only when true."""
        wire = self.model_dump(exclude_none=True)
        if not self.nullable:
            wire.pop("nullable", None)
        return wire


def coerce_properties(
    properties: Mapping[str, SchemaProperty | Mapping[str, Any]],
) -> dict[str, SchemaProperty]:
    """Normalise a mapping of plain dicts or descriptors to descriptors."""
    return {
        name: value if isinstance(value, SchemaProperty) else SchemaProperty.model_validate(value)
        for name, value in properties.items()
    }


class Schema(BaseModel):
    """A schema record as stored by the issuance backend.

    Schemas are immutable once created. ``raw`` keeps the full backend
    document so that fields this package does not model are not lost.
    """

    id: str
    name: str = ""
    type: str
    version: int
    properties: dict[str, SchemaProperty] = Field(default_factory=dict)
    required_fields: list[str] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        # Some backends return numeric ids.
        if isinstance(value, int):
            return str(value)
        return value

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "Schema":
        """Build a Schema from a backend document.

        Raises
        ------
        ValueError
            If ``credentialSubject`` is not an object, or (as a
            ``pydantic.ValidationError``) if fields are missing or malformed.
        """
        subject = data.get("credentialSubject") or {}
        if not isinstance(subject, Mapping):
            raise ValueError("credentialSubject is not a JSON object.")
        return cls.model_validate(
            {
                "id": data.get("id"),
                "name": data.get("name", ""),
                "type": data.get("type"),
                "version": data.get("version"),
                "properties": subject.get("properties") or {},
                "required_fields": subject.get("required") or [],
                "raw": dict(data),
            }
        )

    def to_wire(self) -> dict[str, Any]:
        """Serialize back to the backend document shape."""
        wire = dict(self.raw)
        wire.update(
            {
                "id": self.id,
                "name": self.name,
                "type": self.type,
                "version": self.version,
                "credentialSubject": {
                    "type": "object",
                    "properties": {k: v.to_wire() for k, v in self.properties.items()},
                    "required": list(self.required_fields),
                },
            }
        )
        return wire


class SchemaTemplate(BaseModel):
    """A named, configurable schema definition that can be registered on demand.

    Templates are loaded from configuration (see
    :class:`~credential_issuance.config.IssuerApiConfig`) and registered via
    :meth:`SchemaRegistryClient.ensure_template`.
    """

    name: str
    type: str
    properties: dict[str, SchemaProperty] = Field(default_factory=dict)
    required_fields: list[str] = Field(default_factory=list, alias="requiredFields")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _required_fields_are_declared(self) -> "SchemaTemplate":
        undeclared = [f for f in self.required_fields if f not in self.properties]
        if undeclared:
            raise ValueError(
                f"Template {self.type!r} requires undeclared properties: {undeclared}"
            )
        return self


VALIDATOR_CREDENTIAL_TYPE = "ValidatorCredential"

#: The template shipped by default for validator credentials.
VALIDATOR_TEMPLATE = SchemaTemplate(
    name="Validator Credential",
    type=VALIDATOR_CREDENTIAL_TYPE,
    properties={
        "validatorAddress": SchemaProperty(
            title="Validator Address",
            description="The blockchain address of the validator",
            format="text",
        ),
        "validatorName": SchemaProperty(
            title="Validator Name",
            description="The name of the validator node",
            format="text",
        ),
        "networkId": SchemaProperty(
            title="Network ID",
            description="The ID of the blockchain network",
            format="text",
        ),
    },
    required_fields=["validatorAddress", "networkId"],
)


__all__ = [
    "Schema",
    "SchemaProperty",
    "SchemaTemplate",
    "VALIDATOR_CREDENTIAL_TYPE",
    "VALIDATOR_TEMPLATE",
    "coerce_properties",
]
