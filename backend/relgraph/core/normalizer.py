"""
Attribute normalizer.

Turns identity-bearing raw fields into canonical strings and hashed,
confidence-scored attribute fingerprints. Pure functions only: identical
input always yields byte-identical attribute lists.

  EMAIL           trim + lowercase                                   1.0
  PHONE           digits only, "00" prefix dropped, leading "+"      1.0
  ADDRESS         lower/trim each component, joined with "|"         0.9
  PAYMENT_METHOD  fingerprint (fallback id), de-duplicated per user  0.95
  IP / DEVICE     trimmed                                            0.85 / 0.9
  PAYMENT_METHOD  transaction's payment method id                    0.9
  TX_DAY_BUCKET   UTC calendar day of the transaction                0.5
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Iterable, List

from relgraph.models.domain import Attribute, AttributeType
from relgraph.models.inputs import AttributeInput, TransactionInput, UserInput
from relgraph.utils.records import as_utc

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_DIGIT = re.compile(r"\D+")

ADDRESS_DELIMITER = "|"
DEFAULT_CONFIDENCE = 1.0

# Confidence per attribute type
CONFIDENCE_EMAIL = DEFAULT_CONFIDENCE
CONFIDENCE_PHONE = DEFAULT_CONFIDENCE
CONFIDENCE_ADDRESS = 0.9
CONFIDENCE_USER_PAYMENT = 0.95
CONFIDENCE_IP = 0.85
CONFIDENCE_DEVICE = 0.9
CONFIDENCE_TX_PAYMENT = 0.9
CONFIDENCE_DAY_BUCKET = 0.5


# ── canonical forms ──────────────────────────────────────────

def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_phone(phone: str) -> str:
    digits = _NON_DIGIT.sub("", phone or "")
    if not digits:
        return ""
    if digits.startswith("00"):
        digits = digits[2:]
    return "+" + digits


def normalize_address(address) -> str:
    """Join the six address components; empty components keep their slot."""
    components = (
        address.line1,
        address.line2,
        address.city,
        address.state,
        address.postal_code,
        address.country,
    )
    return ADDRESS_DELIMITER.join((c or "").strip().lower() for c in components)


def sanitize_string(value: str) -> str:
    return _WHITESPACE.sub(" ", value or "").strip()


def hash_value(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _attribute(attr_type: AttributeType, canonical: str, confidence: float) -> Attribute:
    return Attribute(
        type=attr_type.value,
        value=hash_value(canonical),
        raw_value=canonical,
        confidence_score=confidence,
    )


# ── normalizer ───────────────────────────────────────────────

class AttributeNormalizer:
    """Derives attribute fingerprints for users and transactions."""

    def attributes_for_user(self, user: UserInput) -> List[Attribute]:
        attrs: List[Attribute] = []

        email = normalize_email(user.email)
        if email:
            attrs.append(_attribute(AttributeType.EMAIL, email, CONFIDENCE_EMAIL))

        phone = normalize_phone(user.phone)
        if phone:
            attrs.append(_attribute(AttributeType.PHONE, phone, CONFIDENCE_PHONE))

        address = normalize_address(user.address)
        if address.strip(ADDRESS_DELIMITER):
            attrs.append(_attribute(AttributeType.ADDRESS, address, CONFIDENCE_ADDRESS))

        seen = set()
        for pm in user.payment_methods:
            identifier = pm.fingerprint.strip() or pm.id.strip()
            if not identifier or identifier in seen:
                continue
            seen.add(identifier)
            attrs.append(
                _attribute(AttributeType.PAYMENT_METHOD, identifier, CONFIDENCE_USER_PAYMENT)
            )

        return attrs

    def attributes_for_transaction(self, tx: TransactionInput) -> List[Attribute]:
        attrs: List[Attribute] = []

        ip = tx.ip_address.strip()
        if ip:
            attrs.append(_attribute(AttributeType.IP, ip, CONFIDENCE_IP))

        device = tx.device_id.strip()
        if device:
            attrs.append(_attribute(AttributeType.DEVICE, device, CONFIDENCE_DEVICE))

        payment = tx.payment_method_id.strip()
        if payment:
            attrs.append(_attribute(AttributeType.PAYMENT_METHOD, payment, CONFIDENCE_TX_PAYMENT))

        # coarse temporal clustering
        day = as_utc(tx.timestamp).date().isoformat()
        attrs.append(_attribute(AttributeType.TX_DAY_BUCKET, day, CONFIDENCE_DAY_BUCKET))

        return attrs

    def custom_attributes(self, inputs: Iterable[AttributeInput]) -> List[Attribute]:
        """Caller-supplied attributes; taken verbatim, no hashing."""
        attrs: List[Attribute] = []
        for item in inputs:
            if not item.type or not item.value:
                logger.debug("Skipping custom attribute without type/value: %r", item)
                continue
            attrs.append(
                Attribute(
                    type=item.type,
                    value=item.value,
                    raw_value=item.raw_value,
                    confidence_score=item.confidence_score or DEFAULT_CONFIDENCE,
                )
            )
        return attrs
