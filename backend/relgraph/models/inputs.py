"""
Inbound payloads accepted by the relationship engine.
Shared by the HTTP layer, the ingest script and the dataset generator.

JSON uses camelCase keys (``fullName``, ``senderUserId`` …); Python code
may populate either the alias or the field name.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _InputModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ══════════════════════════════════════════════════════════════
# Nested Sub-Models
# ══════════════════════════════════════════════════════════════

class AddressInput(_InputModel):
    """Structured postal address; every component is optional."""
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class PaymentMethodInput(_InputModel):
    """Payment instrument owned by a user."""
    id: str = ""
    method_type: str = ""
    provider: str = ""
    masked: str = ""
    fingerprint: str = ""
    first_used_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None


class AttributeInput(_InputModel):
    """Caller-supplied attribute that bypasses normalization."""
    type: str = ""
    value: str = ""
    raw_value: str = ""
    confidence_score: float = Field(0.0, ge=0, le=1)


# ══════════════════════════════════════════════════════════════
# Top-level Inputs
# ══════════════════════════════════════════════════════════════

class UserInput(_InputModel):
    """A user record as delivered by a caller.

    ``id`` defaults to empty so that a missing key surfaces as a
    RecordValidationError from the engine rather than a parse failure.
    """
    id: str = ""
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: AddressInput = Field(default_factory=AddressInput)
    date_of_birth: Optional[datetime] = None
    kyc_status: str = ""
    risk_score: float = Field(0.0, ge=0, le=1)
    payment_methods: List[PaymentMethodInput] = Field(default_factory=list)
    attributes: List[AttributeInput] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TransactionInput(_InputModel):
    """A transaction between two existing users."""
    id: str = ""
    sender_user_id: str = ""
    receiver_user_id: str = ""
    amount: float = Field(0.0, ge=0)
    currency: str = ""
    type: str = ""
    status: str = ""
    channel: str = ""
    ip_address: str = ""
    device_id: str = ""
    payment_method_id: str = ""
    timestamp: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
