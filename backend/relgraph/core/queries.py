"""
Relationship query service.

Read-only reconstruction of a user's or a transaction's neighbourhood,
bounded shortest paths between users, and the export enumerations.
Every statement runs in a read transaction.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from relgraph.config import settings
from relgraph.errors import GraphStoreError, RecordValidationError
from relgraph.graph_store import GraphStore
from relgraph.models.relationships import (
    DirectUserLink,
    LinkedTransaction,
    PathNode,
    SharedAttributeLink,
    ShortestPath,
    TransactionRelationships,
    TransactionSummary,
    TransactionUserLink,
    UserRelationships,
    UserSummary,
    UserTransactionLink,
)
from relgraph.utils import cypher_queries as Q

logger = logging.getLogger(__name__)


class RelationshipQueryService:
    """Reads relationship neighbourhoods and paths from the graph store."""

    def __init__(self, store: GraphStore, max_hops: Optional[int] = None) -> None:
        self.store = store
        self.max_hops = max_hops or settings.SHORTEST_PATH_MAX_HOPS
        self._path_query = Q.shortest_path_query(self.max_hops)

    async def _read(self, key: str, query: str, params: dict) -> List[dict]:
        try:
            return await self.store.execute_read(query, params)
        except GraphStoreError as exc:
            raise exc.with_key(key) from exc

    # ── user neighbourhood ───────────────────────────────────

    async def user_relationships(self, user_id: str) -> UserRelationships:
        if not user_id.strip():
            raise RecordValidationError("user id is required")

        params = {"userId": user_id}
        links, txs, shared = await asyncio.gather(
            self._read(user_id, Q.QUERY_USER_DIRECT_LINKS, params),
            self._read(user_id, Q.QUERY_USER_TRANSACTIONS, params),
            self._read(user_id, Q.QUERY_USER_SHARED_ATTRIBUTES, params),
        )
        return UserRelationships(
            user_id=user_id,
            direct_links=[DirectUserLink.from_record(r) for r in links],
            transactions=[UserTransactionLink.from_record(r) for r in txs],
            shared_attributes=[SharedAttributeLink.from_record(r) for r in shared],
        )

    # ── transaction neighbourhood ────────────────────────────

    async def transaction_relationships(self, transaction_id: str) -> TransactionRelationships:
        if not transaction_id.strip():
            raise RecordValidationError("transaction id is required")

        params = {"transactionId": transaction_id}
        participants, linked = await asyncio.gather(
            self._read(transaction_id, Q.QUERY_TRANSACTION_USERS, params),
            self._read(transaction_id, Q.QUERY_TRANSACTION_LINKED, params),
        )
        return TransactionRelationships(
            transaction_id=transaction_id,
            participants=[TransactionUserLink.from_record(r) for r in participants],
            linked_transactions=[LinkedTransaction.from_record(r) for r in linked],
        )

    # ── shortest path ────────────────────────────────────────

    async def shortest_path(self, source_id: str, target_id: str) -> ShortestPath:
        """Minimal-hop path over the undirected projection.

        ``source == target`` is answered without touching the store. No path
        within ``max_hops`` (or an unknown endpoint) yields an empty result
        with ``hops=None``; which of several equal-length paths is returned
        is left to the store.
        """
        if not source_id.strip() or not target_id.strip():
            raise RecordValidationError("source and target user ids are required")

        if source_id == target_id:
            return ShortestPath(
                source_user_id=source_id,
                target_user_id=target_id,
                nodes=[PathNode(id=source_id, type="User", label=source_id)],
                edges=[],
                hops=0,
            )

        rows = await self._read(
            f"{source_id}->{target_id}",
            self._path_query,
            {"sourceId": source_id, "targetId": target_id},
        )
        if not rows:
            logger.debug("No path within %d hops: %s → %s", self.max_hops, source_id, target_id)
            return ShortestPath(source_user_id=source_id, target_user_id=target_id)
        return ShortestPath.from_record(source_id, target_id, rows[0])

    # ── export ───────────────────────────────────────────────

    async def export_users(self) -> List[UserSummary]:
        rows = await self.store.execute_read(Q.EXPORT_USERS)
        return [UserSummary.from_record(r) for r in rows]

    async def export_transactions(self) -> List[TransactionSummary]:
        rows = await self.store.execute_read(Q.EXPORT_TRANSACTIONS)
        return [TransactionSummary.from_record(r) for r in rows]
