"""OfferingClient — submit offering requests to the issuance backend."""
from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError

from credential_issuance.errors import FlowStep, RemoteError
from credential_issuance.offerings.builder import Offering, OfferingRequest
from credential_issuance.transport.client import BackendClient

logger = logging.getLogger(__name__)

_STEP = FlowStep.OFFERING_CREATION


class OfferingClient:
    """Create offerings on the backend.

    Offerings are immutable once created; their claim state belongs to the
    backend.
    """

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    def create(self, request: OfferingRequest) -> Offering:
        """Create an offering and return it with its backend-assigned id.

        Raises
        ------
        ValidationError
            If the backend rejects the subject or type (HTTP 400/422).
        RemoteError
            On transport failure or a malformed response (no ``id``, or a
            field of the wrong shape).
        """
        data = self._client.request("POST", "offering", step=_STEP, json=request.to_wire())
        if not isinstance(data, dict) or data.get("id") in (None, ""):
            raise RemoteError("Offering response carries no id.", step=_STEP)
        try:
            offering = Offering.from_wire(data, request)
        except PydanticValidationError as exc:
            raise RemoteError(f"Malformed offering response: {exc}", step=_STEP) from exc
        logger.info(
            "Created %s offering %s for type %s",
            "targeted" if offering.is_targeted else "open",
            offering.id,
            offering.credential_type,
        )
        return offering


__all__ = ["OfferingClient"]
