"""
Typed list-query builder.

Composes the paginated user / transaction list statements from filter
models. Only predicates for supplied filters are emitted, every
user-supplied value travels as a query parameter, and ORDER BY is looked
up from an enum of sortable fields, so no caller text is ever formatted
into Cypher.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from relgraph.utils.cypher_queries import TRANSACTION_SUMMARY_RETURN, USER_SUMMARY_RETURN
from relgraph.utils.records import format_time

E = TypeVar("E", bound=Enum)


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class UserSortField(str, Enum):
    USER_ID = "userId"
    FULL_NAME = "fullName"
    RISK_SCORE = "riskScore"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"


class TransactionSortField(str, Enum):
    TIMESTAMP = "timestamp"
    TRANSACTION_ID = "transactionId"
    AMOUNT = "amount"
    STATUS = "status"
    TYPE = "type"
    CHANNEL = "channel"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"


_USER_ORDER_EXPR = {
    UserSortField.USER_ID: "u.userId",
    UserSortField.FULL_NAME: "toLower(coalesce(u.fullName, \"\"))",
    UserSortField.RISK_SCORE: "coalesce(u.riskScore, 0.0)",
    UserSortField.CREATED_AT: "datetime(u.createdAt)",
    UserSortField.UPDATED_AT: "datetime(u.updatedAt)",
}

_TRANSACTION_ORDER_EXPR = {
    TransactionSortField.TIMESTAMP: "datetime(t.timestamp)",
    TransactionSortField.TRANSACTION_ID: "t.transactionId",
    TransactionSortField.AMOUNT: "coalesce(t.amount, 0.0)",
    TransactionSortField.STATUS: "toUpper(t.status)",
    TransactionSortField.TYPE: "toUpper(t.type)",
    TransactionSortField.CHANNEL: "toUpper(t.channel)",
    TransactionSortField.CREATED_AT: "datetime(t.createdAt)",
    TransactionSortField.UPDATED_AT: "datetime(t.updatedAt)",
}


def parse_enum(enum_cls: Type[E], raw: Optional[str], default: E) -> E:
    """Case-insensitive lookup by value or name; unknown input → ``default``."""
    if not raw:
        return default
    wanted = raw.strip().lower()
    for member in enum_cls:
        if member.value.lower() == wanted or member.name.lower() == wanted:
            return member
    return default


# ── filters ──────────────────────────────────────────────────

class UserListFilter(BaseModel):
    kyc_status: str = ""
    risk_min: Optional[float] = None
    risk_max: Optional[float] = None
    search: str = ""
    country: str = ""
    city: str = ""
    email_domain: str = ""
    sort_field: UserSortField = UserSortField.USER_ID
    sort_order: SortOrder = SortOrder.ASC


class TransactionListFilter(BaseModel):
    user_id: str = ""
    status: str = ""
    type: str = ""
    channel: str = ""
    search: str = ""
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    sort_field: TransactionSortField = TransactionSortField.TIMESTAMP
    sort_order: SortOrder = SortOrder.DESC


@dataclass(frozen=True)
class ListQuery:
    cypher: str
    count_cypher: str
    params: Dict[str, Any] = field(default_factory=dict)


def _where(predicates: List[str]) -> str:
    if not predicates:
        return ""
    return "WHERE " + "\n  AND ".join(predicates) + "\n"


# ── users ────────────────────────────────────────────────────

def build_user_list_query(flt: UserListFilter, skip: int, limit: int) -> ListQuery:
    predicates: List[str] = []
    params: Dict[str, Any] = {"skip": skip, "limit": limit}

    kyc = flt.kyc_status.strip().upper()
    if kyc:
        predicates.append("toUpper(coalesce(u.kycStatus, \"\")) = $kycStatus")
        params["kycStatus"] = kyc
    if flt.risk_min is not None:
        predicates.append("coalesce(u.riskScore, 0.0) >= $riskMin")
        params["riskMin"] = flt.risk_min
    if flt.risk_max is not None:
        predicates.append("coalesce(u.riskScore, 0.0) <= $riskMax")
        params["riskMax"] = flt.risk_max

    search = flt.search.strip().lower()
    if search:
        predicates.append(
            "(toLower(coalesce(u.fullName, \"\")) CONTAINS $search"
            " OR toLower(coalesce(u.email, \"\")) CONTAINS $search"
            " OR toLower(u.userId) CONTAINS $search)"
        )
        params["search"] = search

    country = flt.country.strip().lower()
    if country:
        predicates.append("toLower(coalesce(u.addressCountry, \"\")) = $country")
        params["country"] = country
    city = flt.city.strip().lower()
    if city:
        predicates.append("toLower(coalesce(u.addressCity, \"\")) = $city")
        params["city"] = city

    domain = flt.email_domain.strip().lower().lstrip("@")
    if domain:
        predicates.append("toLower(coalesce(u.email, \"\")) ENDS WITH $emailDomain")
        params["emailDomain"] = "@" + domain

    order = f"{_USER_ORDER_EXPR[flt.sort_field]} {flt.sort_order.value}"
    if flt.sort_field is not UserSortField.USER_ID:
        order += ", u.userId ASC"

    where = _where(predicates)
    cypher = (
        "\n// relgraph:list_users\nMATCH (u:User)\n"
        + where
        + USER_SUMMARY_RETURN
        + f"ORDER BY {order}\nSKIP $skip LIMIT $limit\n"
    )
    count_cypher = "\n// relgraph:count_users\nMATCH (u:User)\n" + where + "RETURN count(u) AS total\n"
    return ListQuery(cypher=cypher, count_cypher=count_cypher, params=params)


# ── transactions ─────────────────────────────────────────────

def build_transaction_list_query(flt: TransactionListFilter, skip: int, limit: int) -> ListQuery:
    predicates: List[str] = []
    params: Dict[str, Any] = {"skip": skip, "limit": limit}

    for attr, param in (("status", "status"), ("type", "type"), ("channel", "channel")):
        value = getattr(flt, attr).strip().upper()
        if value:
            predicates.append(f"toUpper(coalesce(t.{attr}, \"\")) = ${param}")
            params[param] = value

    search = flt.search.strip().lower()
    if search:
        predicates.append(
            "(toLower(t.transactionId) CONTAINS $search\n"
            "    OR EXISTS {\n"
            "      MATCH (participant:User)-[:PARTICIPATED_IN]->(t)\n"
            "      WHERE toLower(participant.userId) CONTAINS $search\n"
            "        OR toLower(coalesce(participant.fullName, \"\")) CONTAINS $search\n"
            "        OR toLower(coalesce(participant.email, \"\")) CONTAINS $search\n"
            "    })"
        )
        params["search"] = search

    if flt.min_amount is not None:
        predicates.append("coalesce(t.amount, 0.0) >= $minAmount")
        params["minAmount"] = flt.min_amount
    if flt.max_amount is not None:
        predicates.append("coalesce(t.amount, 0.0) <= $maxAmount")
        params["maxAmount"] = flt.max_amount

    user_id = flt.user_id.strip()
    if user_id:
        predicates.append("EXISTS { MATCH (:User {userId: $userId})-[:PARTICIPATED_IN]->(t) }")
        params["userId"] = user_id

    if flt.start_time is not None:
        predicates.append("datetime(t.timestamp) >= datetime($startTs)")
        params["startTs"] = format_time(flt.start_time)
    if flt.end_time is not None:
        predicates.append("datetime(t.timestamp) <= datetime($endTs)")
        params["endTs"] = format_time(flt.end_time)

    order = f"{_TRANSACTION_ORDER_EXPR[flt.sort_field]} {flt.sort_order.value}"
    if flt.sort_field is not TransactionSortField.TRANSACTION_ID:
        order += ", t.transactionId ASC"

    where = _where(predicates)
    cypher = (
        "\n// relgraph:list_transactions\nMATCH (t:Transaction)\n"
        + where
        + TRANSACTION_SUMMARY_RETURN
        + f"ORDER BY {order}\nSKIP $skip LIMIT $limit\n"
    )
    count_cypher = (
        "\n// relgraph:count_transactions\nMATCH (t:Transaction)\n" + where + "RETURN count(t) AS total\n"
    )
    return ListQuery(cypher=cypher, count_cypher=count_cypher, params=params)
