"""
REST API routes.

Thin HTTP surface over the GraphRepository:
  RecordValidationError → 400
  GraphStoreError       → 502
"""

from __future__ import annotations

import csv
import io
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from fastapi import APIRouter, HTTPException, Query, Response

from relgraph.core.repository import GraphRepository
from relgraph.errors import GraphStoreError, RecordValidationError
from relgraph.models.inputs import TransactionInput, UserInput
from relgraph.models.relationships import (
    ShortestPath,
    TransactionPage,
    TransactionRelationships,
    UserPage,
    UserRelationships,
)
from relgraph.utils.query_builder import (
    SortOrder,
    TransactionListFilter,
    TransactionSortField,
    UserListFilter,
    UserSortField,
    parse_enum,
)
from relgraph.utils.records import format_time

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")

# These will be injected by main.py at startup
_repository: Optional[GraphRepository] = None
_health_check: Optional[Callable[[], Awaitable[Dict]]] = None


def init_routes(repository: GraphRepository, health_check: Optional[Callable[[], Awaitable[Dict]]] = None):
    """Called once at startup to inject shared dependencies."""
    global _repository, _health_check
    _repository = repository
    _health_check = health_check


def _repo() -> GraphRepository:
    if _repository is None:
        raise HTTPException(503, "Engine not ready")
    return _repository


async def _guard(action: str, awaitable: Awaitable[T]) -> T:
    try:
        return await awaitable
    except RecordValidationError as exc:
        raise HTTPException(400, str(exc))
    except GraphStoreError as exc:
        logger.error("Failed to %s: %s", action, exc)
        raise HTTPException(502, f"failed to {action}: {exc}")


# ── health ───────────────────────────────────────────────────

@router.get("/health")
async def health(response: Response):
    repo = _repo()
    if _health_check is not None:
        store = await _health_check()
    else:
        try:
            await repo.verify_connectivity()
            store = {"status": "healthy"}
        except GraphStoreError as exc:
            store = {"status": "unhealthy", "error": str(exc)}

    healthy = store.get("status") == "healthy"
    if not healthy:
        response.status_code = 503
    return {"status": "ok" if healthy else "degraded", "store": store}


# ── ingestion ────────────────────────────────────────────────

@router.post("/users", status_code=201)
async def upsert_user(user: UserInput):
    await _guard("persist user", _repo().upsert_user(user))
    return {"status": "ok", "id": user.id}


@router.post("/transactions", status_code=201)
async def upsert_transaction(tx: TransactionInput):
    await _guard("persist transaction", _repo().upsert_transaction(tx))
    return {"status": "ok", "id": tx.id}


# ── list views ───────────────────────────────────────────────

@router.get("/users", response_model=UserPage)
async def list_users(
    page: int = Query(1),
    page_size: int = Query(0, alias="pageSize"),
    search: str = Query(""),
    kyc_status: str = Query("", alias="kycStatus"),
    risk_min: Optional[float] = Query(None, alias="riskMin"),
    risk_max: Optional[float] = Query(None, alias="riskMax"),
    country: str = Query(""),
    city: str = Query(""),
    email_domain: str = Query("", alias="emailDomain"),
    sort_field: str = Query("", alias="sortField"),
    sort_order: str = Query("", alias="sortOrder"),
):
    flt = UserListFilter(
        search=search,
        kyc_status=kyc_status,
        risk_min=risk_min,
        risk_max=risk_max,
        country=country,
        city=city,
        email_domain=email_domain,
        sort_field=parse_enum(UserSortField, sort_field, UserSortField.USER_ID),
        sort_order=parse_enum(SortOrder, sort_order, SortOrder.ASC),
    )
    return await _guard("list users", _repo().list_users(flt, page=page, page_size=page_size))


@router.get("/transactions", response_model=TransactionPage)
async def list_transactions(
    page: int = Query(1),
    page_size: int = Query(0, alias="pageSize"),
    search: str = Query(""),
    user_id: str = Query("", alias="userId"),
    status: str = Query(""),
    type: str = Query(""),
    channel: str = Query(""),
    min_amount: Optional[float] = Query(None, alias="minAmount"),
    max_amount: Optional[float] = Query(None, alias="maxAmount"),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    sort_field: str = Query("", alias="sortField"),
    sort_order: str = Query("", alias="sortOrder"),
):
    flt = TransactionListFilter(
        search=search,
        user_id=user_id,
        status=status,
        type=type,
        channel=channel,
        min_amount=min_amount,
        max_amount=max_amount,
        start_time=start,
        end_time=end,
        sort_field=parse_enum(TransactionSortField, sort_field, TransactionSortField.TIMESTAMP),
        sort_order=parse_enum(SortOrder, sort_order, SortOrder.DESC),
    )
    return await _guard("list transactions", _repo().list_transactions(flt, page=page, page_size=page_size))


# ── relationships ────────────────────────────────────────────

@router.get("/users/{user_id}/relationships", response_model=UserRelationships)
async def user_relationships(user_id: str):
    return await _guard("fetch user relationships", _repo().user_relationships(user_id))


@router.get("/transactions/{transaction_id}/relationships", response_model=TransactionRelationships)
async def transaction_relationships(transaction_id: str):
    return await _guard(
        "fetch transaction relationships", _repo().transaction_relationships(transaction_id)
    )


@router.get("/paths/shortest", response_model=ShortestPath)
async def shortest_path(source: str = Query(""), target: str = Query("")):
    return await _guard("compute shortest path", _repo().shortest_path(source, target))


# ── export ───────────────────────────────────────────────────

def _csv_response(name: str, header: List[str], rows: List[List[str]]) -> Response:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(header)
    writer.writerows(rows)
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={name}-{int(time.time())}.csv"},
    )


@router.get("/export/users")
async def export_users(format: str = Query("json")):
    users = await _guard("export users", _repo().export_users())
    if format.strip().lower() == "csv":
        return _csv_response(
            "users",
            ["userId", "fullName", "email", "phone", "kycStatus", "riskScore", "createdAt", "updatedAt"],
            [
                [u.id, u.full_name, u.email, u.phone, u.kyc_status, f"{u.risk_score:.4f}",
                 format_time(u.created_at), format_time(u.updated_at)]
                for u in users
            ],
        )
    return {"items": [u.model_dump(mode="json", by_alias=True) for u in users]}


@router.get("/export/transactions")
async def export_transactions(format: str = Query("json")):
    txs = await _guard("export transactions", _repo().export_transactions())
    if format.strip().lower() == "csv":
        return _csv_response(
            "transactions",
            ["transactionId", "senderUserId", "receiverUserId", "amount", "currency", "type",
             "status", "channel", "timestamp", "createdAt", "updatedAt"],
            [
                [t.id, t.sender_user_id, t.receiver_user_id, f"{t.amount:.2f}", t.currency, t.type,
                 t.status, t.channel, format_time(t.timestamp), format_time(t.created_at),
                 format_time(t.updated_at)]
                for t in txs
            ],
        )
    return {"items": [t.model_dump(mode="json", by_alias=True) for t in txs]}
