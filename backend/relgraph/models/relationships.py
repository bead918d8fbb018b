"""
Typed result rows for the relationship read path.

Each row model knows how to decode one record of its query via
``from_record``; decoding goes through the total helpers in
``relgraph.utils.records`` so unexpected store values degrade to defaults.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from relgraph.utils.records import to_datetime, to_float, to_int, to_str, to_str_list

Record = Dict[str, Any]


class _RowModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ══════════════════════════════════════════════════════════════
# User neighbourhood
# ══════════════════════════════════════════════════════════════

class DirectUserLink(_RowModel):
    """User→User transfer edge seen from one side."""
    user_id: str
    link_type: str
    direction: str
    transaction_id: str
    amount: float = 0.0
    currency: str = ""
    timestamp: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Record) -> "DirectUserLink":
        return cls(
            user_id=to_str(record.get("peerId")),
            link_type=to_str(record.get("linkType")),
            direction=to_str(record.get("direction")),
            transaction_id=to_str(record.get("transactionId")),
            amount=to_float(record.get("amount")),
            currency=to_str(record.get("currency")),
            timestamp=to_datetime(record.get("timestamp")),
        )


class UserTransactionLink(_RowModel):
    transaction_id: str
    role: str
    amount: float = 0.0
    currency: str = ""
    timestamp: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Record) -> "UserTransactionLink":
        return cls(
            transaction_id=to_str(record.get("transactionId")),
            role=to_str(record.get("role")),
            amount=to_float(record.get("amount")),
            currency=to_str(record.get("currency")),
            timestamp=to_datetime(record.get("timestamp")),
        )


class SharedAttributeLink(_RowModel):
    """Every *other* user holding the same (type, hash) attribute."""
    attribute_type: str
    attribute_hash: str
    user_ids: List[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: Record) -> "SharedAttributeLink":
        return cls(
            attribute_type=to_str(record.get("attributeType")),
            attribute_hash=to_str(record.get("attributeHash")),
            user_ids=sorted(to_str_list(record.get("userIds"))),
        )


class UserRelationships(_RowModel):
    user_id: str
    direct_links: List[DirectUserLink] = Field(default_factory=list)
    transactions: List[UserTransactionLink] = Field(default_factory=list)
    shared_attributes: List[SharedAttributeLink] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════
# Transaction neighbourhood
# ══════════════════════════════════════════════════════════════

class TransactionUserLink(_RowModel):
    user_id: str
    role: str
    amount: float = 0.0
    currency: str = ""
    direction: str = ""

    @classmethod
    def from_record(cls, record: Record) -> "TransactionUserLink":
        return cls(
            user_id=to_str(record.get("userId")),
            role=to_str(record.get("role")),
            amount=to_float(record.get("amount")),
            currency=to_str(record.get("currency")),
            direction=to_str(record.get("direction")),
        )


class LinkedTransaction(_RowModel):
    """Transaction→Transaction edge derived from a shared attribute."""
    transaction_id: str
    link_type: str
    attribute_hash: str = ""
    score: float = 0.0
    last_updated: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Record) -> "LinkedTransaction":
        return cls(
            transaction_id=to_str(record.get("otherTransactionId")),
            link_type=to_str(record.get("linkType")),
            attribute_hash=to_str(record.get("attributeHash")),
            score=to_float(record.get("score")),
            last_updated=to_datetime(record.get("updatedAt")),
        )


class TransactionRelationships(_RowModel):
    transaction_id: str
    participants: List[TransactionUserLink] = Field(default_factory=list)
    linked_transactions: List[LinkedTransaction] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════
# Paths
# ══════════════════════════════════════════════════════════════

class PathNode(_RowModel):
    id: str
    type: str = ""
    label: str = ""
    weight: float = 1.0

    @classmethod
    def from_record(cls, record: Any) -> Optional["PathNode"]:
        if not isinstance(record, dict):
            return None
        return cls(
            id=to_str(record.get("id")),
            type=to_str(record.get("type")),
            label=to_str(record.get("label")),
            weight=to_float(record.get("weight"), 1.0),
        )


class PathEdge(_RowModel):
    type: str
    source: str
    target: str
    label: str = ""
    weight: float = 1.0

    @classmethod
    def from_record(cls, record: Any) -> Optional["PathEdge"]:
        if not isinstance(record, dict):
            return None
        return cls(
            type=to_str(record.get("type")),
            source=to_str(record.get("sourceId")),
            target=to_str(record.get("targetId")),
            label=to_str(record.get("label")),
            weight=to_float(record.get("weight"), 1.0),
        )


class ShortestPath(_RowModel):
    """Minimal-hop path; ``hops`` is None when no path exists within bound."""
    source_user_id: str
    target_user_id: str
    nodes: List[PathNode] = Field(default_factory=list)
    edges: List[PathEdge] = Field(default_factory=list)
    hops: Optional[int] = None

    @property
    def found(self) -> bool:
        return self.hops is not None

    @classmethod
    def from_record(cls, source_id: str, target_id: str, record: Record) -> "ShortestPath":
        raw_nodes = record.get("nodes")
        raw_edges = record.get("edges")
        nodes = [n for n in map(PathNode.from_record, raw_nodes if isinstance(raw_nodes, list) else []) if n]
        edges = [e for e in map(PathEdge.from_record, raw_edges if isinstance(raw_edges, list) else []) if e]
        return cls(
            source_user_id=source_id,
            target_user_id=target_id,
            nodes=nodes,
            edges=edges,
            hops=to_int(record.get("hops"), len(edges)),
        )


# ══════════════════════════════════════════════════════════════
# Export / list views
# ══════════════════════════════════════════════════════════════

class UserSummary(_RowModel):
    id: str
    full_name: str = ""
    email: str = ""
    phone: str = ""
    kyc_status: str = ""
    risk_score: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Record) -> "UserSummary":
        return cls(
            id=to_str(record.get("userId")),
            full_name=to_str(record.get("fullName")),
            email=to_str(record.get("email")),
            phone=to_str(record.get("phone")),
            kyc_status=to_str(record.get("kycStatus")),
            risk_score=to_float(record.get("riskScore")),
            created_at=to_datetime(record.get("createdAt")),
            updated_at=to_datetime(record.get("updatedAt")),
        )


class TransactionSummary(_RowModel):
    id: str
    sender_user_id: str = ""
    receiver_user_id: str = ""
    amount: float = 0.0
    currency: str = ""
    type: str = ""
    status: str = ""
    channel: str = ""
    timestamp: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Record) -> "TransactionSummary":
        return cls(
            id=to_str(record.get("transactionId")),
            sender_user_id=to_str(record.get("senderId")),
            receiver_user_id=to_str(record.get("receiverId")),
            amount=to_float(record.get("amount")),
            currency=to_str(record.get("currency")),
            type=to_str(record.get("type")),
            status=to_str(record.get("status")),
            channel=to_str(record.get("channel")),
            timestamp=to_datetime(record.get("timestamp")),
            created_at=to_datetime(record.get("createdAt")),
            updated_at=to_datetime(record.get("updatedAt")),
        )


class PaginationMeta(_RowModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int


class UserPage(_RowModel):
    items: List[UserSummary] = Field(default_factory=list)
    pagination: PaginationMeta


class TransactionPage(_RowModel):
    items: List[TransactionSummary] = Field(default_factory=list)
    pagination: PaginationMeta
