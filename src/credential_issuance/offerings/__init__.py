"""Credential offerings: request building and backend creation."""
from __future__ import annotations

from credential_issuance.offerings.builder import Offering, OfferingBuilder, OfferingRequest
from credential_issuance.offerings.client import OfferingClient

__all__ = ["Offering", "OfferingBuilder", "OfferingClient", "OfferingRequest"]
