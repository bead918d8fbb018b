"""
GraphRepository – the engine's public capability.

Orchestrates one ingest (validate → normalize → derive attributes →
mutate) and delegates reads to the RelationshipQueryService. The HTTP
layer, the ingest script and the tests all go through this class.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from relgraph.config import settings
from relgraph.core.mutations import GraphMutationBuilder
from relgraph.core.normalizer import (
    AttributeNormalizer,
    normalize_email,
    normalize_phone,
    sanitize_string,
)
from relgraph.core.queries import RelationshipQueryService
from relgraph.errors import GraphStoreError, RecordValidationError
from relgraph.graph_store import GraphStore
from relgraph.models.domain import Address, Attribute, PaymentMethod, Transaction, User
from relgraph.models.inputs import TransactionInput, UserInput
from relgraph.models.relationships import (
    PaginationMeta,
    ShortestPath,
    TransactionPage,
    TransactionRelationships,
    TransactionSummary,
    UserPage,
    UserRelationships,
    UserSummary,
)
from relgraph.utils.query_builder import (
    ListQuery,
    TransactionListFilter,
    UserListFilter,
    build_transaction_list_query,
    build_user_list_query,
)
from relgraph.utils.records import as_utc, to_int

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── pagination helpers ───────────────────────────────────────

def normalize_pagination(page: Optional[int], page_size: Optional[int]) -> Tuple[int, int]:
    page = page if page and page > 0 else 1
    if not page_size or page_size <= 0:
        page_size = settings.LIST_DEFAULT_PAGE_SIZE
    return page, min(page_size, settings.LIST_MAX_PAGE_SIZE)


def build_pagination_meta(page: int, page_size: int, total: int) -> PaginationMeta:
    return PaginationMeta(
        page=page,
        page_size=page_size,
        total_items=total,
        total_pages=math.ceil(total / page_size) if page_size > 0 else 0,
    )


def _clamp(value: Optional[float], low: float, high: float) -> Optional[float]:
    if value is None:
        return None
    return max(low, min(high, value))


class GraphRepository:
    """Validates, normalizes and persists records; answers relationship queries."""

    def __init__(
        self,
        store: GraphStore,
        normalizer: Optional[AttributeNormalizer] = None,
        clock: Optional[Clock] = None,
        mutations: Optional[GraphMutationBuilder] = None,
        queries: Optional[RelationshipQueryService] = None,
    ) -> None:
        self.store = store
        self.normalizer = normalizer or AttributeNormalizer()
        self.clock = clock or _utcnow
        self.mutations = mutations or GraphMutationBuilder(store)
        self.queries = queries or RelationshipQueryService(store)

    # ══════════════════════════════════════════════════════════
    # Ingestion
    # ══════════════════════════════════════════════════════════

    def build_user(self, data: UserInput) -> User:
        user_id = data.id.strip()
        if not user_id:
            raise RecordValidationError("user id is required")

        now = as_utc(self.clock())
        attrs: List[Attribute] = self.normalizer.attributes_for_user(data)
        attrs.extend(self.normalizer.custom_attributes(data.attributes))

        return User(
            id=user_id,
            full_name=sanitize_string(data.full_name),
            email=normalize_email(data.email),
            phone=normalize_phone(data.phone),
            address=Address(**data.address.model_dump()),
            date_of_birth=as_utc(data.date_of_birth) if data.date_of_birth else None,
            kyc_status=data.kyc_status,
            risk_score=data.risk_score,
            attributes=attrs,
            payment_methods=[PaymentMethod(**pm.model_dump()) for pm in data.payment_methods],
            created_at=as_utc(data.created_at) if data.created_at else None,
            updated_at=as_utc(data.updated_at) if data.updated_at else now,
        )

    def build_transaction(self, data: TransactionInput) -> Tuple[Transaction, List[Attribute]]:
        tx_id = data.id.strip()
        sender = data.sender_user_id.strip()
        receiver = data.receiver_user_id.strip()
        if not tx_id:
            raise RecordValidationError("transaction id is required")
        if not sender or not receiver:
            raise RecordValidationError("sender and receiver user IDs are required", key=tx_id)
        if sender == receiver:
            raise RecordValidationError(f"sender and receiver are the same user ({sender})", key=tx_id)

        now = as_utc(self.clock())
        tx = Transaction(
            id=tx_id,
            sender_user_id=sender,
            receiver_user_id=receiver,
            amount=data.amount,
            currency=data.currency,
            type=data.type,
            status=data.status,
            channel=data.channel,
            ip_address=data.ip_address,
            device_id=data.device_id,
            payment_method_id=data.payment_method_id,
            timestamp=as_utc(data.timestamp),
            metadata=data.metadata,
            created_at=as_utc(data.created_at) if data.created_at else None,
            updated_at=as_utc(data.updated_at) if data.updated_at else now,
        )
        return tx, self.normalizer.attributes_for_transaction(data)

    async def upsert_user(self, data: UserInput) -> None:
        await self.mutations.upsert_user(self.build_user(data))

    async def upsert_transaction(self, data: TransactionInput) -> None:
        tx, attrs = self.build_transaction(data)
        await self.mutations.upsert_transaction(tx, attrs)

    # ══════════════════════════════════════════════════════════
    # Relationship reads
    # ══════════════════════════════════════════════════════════

    async def user_relationships(self, user_id: str) -> UserRelationships:
        return await self.queries.user_relationships(user_id)

    async def transaction_relationships(self, transaction_id: str) -> TransactionRelationships:
        return await self.queries.transaction_relationships(transaction_id)

    async def shortest_path(self, source_id: str, target_id: str) -> ShortestPath:
        return await self.queries.shortest_path(
            sanitize_string(source_id), sanitize_string(target_id)
        )

    async def export_users(self) -> List[UserSummary]:
        return await self.queries.export_users()

    async def export_transactions(self) -> List[TransactionSummary]:
        return await self.queries.export_transactions()

    # ══════════════════════════════════════════════════════════
    # List views
    # ══════════════════════════════════════════════════════════

    async def _run_list(self, query: ListQuery) -> Tuple[List[dict], int]:
        rows = await self.store.execute_read(query.cypher, query.params)
        count_rows = await self.store.execute_read(query.count_cypher, query.params)
        total = to_int(count_rows[0].get("total")) if count_rows else 0
        return rows, total

    async def list_users(
        self,
        flt: Optional[UserListFilter] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> UserPage:
        flt = (flt or UserListFilter()).model_copy()
        page, page_size = normalize_pagination(page, page_size)

        flt.risk_min = _clamp(flt.risk_min, 0.0, 1.0)
        flt.risk_max = _clamp(flt.risk_max, 0.0, 1.0)
        if flt.risk_min is not None and flt.risk_max is not None and flt.risk_max < flt.risk_min:
            flt.risk_max = flt.risk_min

        rows, total = await self._run_list(
            build_user_list_query(flt, skip=(page - 1) * page_size, limit=page_size)
        )
        return UserPage(
            items=[UserSummary.from_record(r) for r in rows],
            pagination=build_pagination_meta(page, page_size, total),
        )

    async def list_transactions(
        self,
        flt: Optional[TransactionListFilter] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> TransactionPage:
        flt = (flt or TransactionListFilter()).model_copy()
        page, page_size = normalize_pagination(page, page_size)

        if flt.min_amount is not None and flt.min_amount <= 0:
            flt.min_amount = None
        if flt.max_amount is not None and flt.max_amount <= 0:
            flt.max_amount = None
        if flt.min_amount is not None and flt.max_amount is not None and flt.max_amount < flt.min_amount:
            flt.max_amount = flt.min_amount

        rows, total = await self._run_list(
            build_transaction_list_query(flt, skip=(page - 1) * page_size, limit=page_size)
        )
        return TransactionPage(
            items=[TransactionSummary.from_record(r) for r in rows],
            pagination=build_pagination_meta(page, page_size, total),
        )

    # ══════════════════════════════════════════════════════════
    # Lifecycle
    # ══════════════════════════════════════════════════════════

    async def verify_connectivity(self) -> None:
        await self.store.verify_connectivity()

    async def close(self) -> None:
        try:
            await self.store.close()
        except GraphStoreError as exc:
            logger.warning("Error while closing graph store: %s", exc)
