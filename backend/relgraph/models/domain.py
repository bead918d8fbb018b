"""
Normalized graph entities handed to the GraphMutationBuilder.

Unlike the inbound DTOs these carry canonical values (normalized email and
phone, UTC timestamps) and the derived attribute fingerprints.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════
# Enums
# ══════════════════════════════════════════════════════════════

class AttributeType(str, Enum):
    """Attribute kinds emitted by the normalizer."""
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    ADDRESS = "ADDRESS"
    IP = "IP"
    DEVICE = "DEVICE"
    PAYMENT_METHOD = "PAYMENT_METHOD"
    TX_DAY_BUCKET = "TX_DAY_BUCKET"


class ParticipantRole(str, Enum):
    SENDER = "SENDER"
    RECEIVER = "RECEIVER"


class LinkDirection(str, Enum):
    OUTBOUND = "OUTBOUND"
    INBOUND = "INBOUND"


# ══════════════════════════════════════════════════════════════
# Graph Node Models
# ══════════════════════════════════════════════════════════════

class Address(BaseModel):
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class Attribute(BaseModel):
    """Shared identity signal; identity is (type, value)."""
    type: str
    value: str                      # sha256 hex of the canonical raw value
    raw_value: str = ""             # display / export only
    confidence_score: float = Field(1.0, ge=0, le=1)


class PaymentMethod(BaseModel):
    id: str
    method_type: str = ""
    provider: str = ""
    masked: str = ""
    fingerprint: str = ""
    first_used_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None


class User(BaseModel):
    id: str
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: Address = Field(default_factory=Address)
    date_of_birth: Optional[datetime] = None
    kyc_status: str = ""
    risk_score: float = Field(0.0, ge=0, le=1)
    attributes: List[Attribute] = Field(default_factory=list)
    payment_methods: List[PaymentMethod] = Field(default_factory=list)
    created_at: Optional[datetime] = None   # None → keep stored value
    updated_at: datetime


class Transaction(BaseModel):
    id: str
    sender_user_id: str
    receiver_user_id: str
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
    updated_at: datetime
