"""OfferingBuilder — package a credential offering request.

An offering is either *targeted* (only the holder proven to control
``recipient_did`` may claim it) or *open* (any authenticated party may
claim it). The builder performs no schema validation: matching the subject
keys to the schema's properties is the caller's responsibility, and
mismatches surface when the backend rejects the offering.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from credential_issuance.errors import FlowStep, ValidationError

_STEP = FlowStep.OFFERING_CREATION


class OfferingRequest(BaseModel):
    """The body of an offering-creation call.

    Parameters
    ----------
    credential_type:
        Must name an existing schema type (case-sensitive).
    credential_subject:
        Property name -> value for the credential being offered.
    recipient_did:
        DID of the only party allowed to claim the offering; ``None`` for an
        open offering.
    """

    model_config = {"frozen": True}

    credential_type: str
    credential_subject: dict[str, Any] = Field(default_factory=dict)
    recipient_did: Optional[str] = None

    @field_validator("credential_type")
    @classmethod
    def validate_type_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("credential_type must not be empty.")
        return value

    @property
    def is_targeted(self) -> bool:
        return self.recipient_did is not None

    def to_wire(self) -> dict[str, Any]:
        """Return the backend body; ``recipient`` is omitted for open offerings."""
        body: dict[str, Any] = {
            "credential_type": self.credential_type,
            "credential_subject": dict(self.credential_subject),
        }
        if self.recipient_did is not None:
            body["recipient"] = self.recipient_did
        return body


class Offering(BaseModel):
    """An offering as created by the backend.

    ``url`` is the offering reference a wallet consumes, which is what a
    QR front end would encode. ``raw`` keeps the backend document.
    """

    id: str
    credential_type: str
    credential_subject: dict[str, Any] = Field(default_factory=dict)
    recipient_did: Optional[str] = None
    url: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @property
    def is_targeted(self) -> bool:
        return self.recipient_did is not None

    @classmethod
    def from_wire(cls, data: Mapping[str, Any], request: OfferingRequest) -> "Offering":
        """Build an Offering from the backend response, falling back to *request*."""
        offering_id = data.get("id")
        return cls(
            id=str(offering_id) if offering_id is not None else "",
            credential_type=data.get("credential_type") or request.credential_type,
            credential_subject=data.get("credential_subject") or dict(request.credential_subject),
            recipient_did=data.get("recipient") or request.recipient_did,
            url=data.get("url"),
            raw=dict(data),
        )


class OfferingBuilder:
    """Build :class:`OfferingRequest` values.

    :meth:`targeted` and :meth:`open` are conveniences with exactly the
    semantics of :meth:`build` with and without a recipient.

    Example
    -------
    ::

        builder = OfferingBuilder()
        ticket = builder.targeted("EventTicket", {"seat": "A12"}, "did:example:1")
        coupon = builder.open("PromotionalCoupon", {"discount": "10%"})
    """

    def build(
        self,
        type: str,
        credential_subject: Mapping[str, Any],
        recipient_did: str | None = None,
    ) -> OfferingRequest:
        """Package an offering request.

        Raises
        ------
        ValidationError
            If *type* is empty or *credential_subject* is not a mapping.
        """
        if not type:
            raise ValidationError("Credential type is required.", step=_STEP)
        if not isinstance(credential_subject, Mapping):
            raise ValidationError("credentialSubject must be a mapping.", step=_STEP)
        return OfferingRequest(
            credential_type=type,
            credential_subject=dict(credential_subject),
            recipient_did=recipient_did or None,
        )

    def targeted(
        self,
        type: str,
        credential_subject: Mapping[str, Any],
        recipient_did: str,
    ) -> OfferingRequest:
        """Package an offering claimable only by *recipient_did*."""
        if not recipient_did:
            raise ValidationError(
                "Recipient DID is required for targeted offerings.", step=_STEP
            )
        return self.build(type, credential_subject, recipient_did)

    def open(self, type: str, credential_subject: Mapping[str, Any]) -> OfferingRequest:
        """Package an offering claimable by any authenticated party."""
        return self.build(type, credential_subject, None)


__all__ = ["Offering", "OfferingBuilder", "OfferingRequest"]
