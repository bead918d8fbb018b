"""
Graph mutation builder.

Turns a normalized User or Transaction (plus its attributes) into one
idempotent merge-on-key write. Every statement is a MERGE keyed by a
business key, so replaying the same upsert never duplicates nodes or edges.

Retry policy:
  - GraphStoreError(transient=True) → exponential backoff with jitter
  - anything else                    → surfaced immediately, tagged with the key
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Any, Dict, List, Optional

from relgraph.config import settings
from relgraph.errors import GraphStoreError, RecordValidationError
from relgraph.graph_store import GraphStore
from relgraph.models.domain import Attribute, PaymentMethod, Transaction, User
from relgraph.utils.cypher_queries import INGEST_TRANSACTION, INGEST_USER
from relgraph.utils.records import format_time

logger = logging.getLogger(__name__)


# ── parameter shaping ────────────────────────────────────────

def _optional_time(value) -> Optional[str]:
    return format_time(value) if value is not None else None


def attribute_params(attributes: List[Attribute]) -> List[Dict[str, Any]]:
    return [
        {
            "type": attr.type,
            "value": attr.value,
            "rawValue": attr.raw_value,
            "confidence": attr.confidence_score,
        }
        for attr in attributes
    ]


def payment_method_params(methods: List[PaymentMethod]) -> List[Dict[str, Any]]:
    return [
        {
            "id": pm.id,
            "props": {
                "methodType": pm.method_type,
                "provider": pm.provider,
                "masked": pm.masked,
                "fingerprint": pm.fingerprint,
            },
            "firstUsedAt": _optional_time(pm.first_used_at),
            "lastUsedAt": _optional_time(pm.last_used_at),
        }
        for pm in methods
        if pm.id
    ]


def user_properties(user: User) -> Dict[str, Any]:
    """Scalar properties; written in full on every ingest (None removes)."""
    return {
        "fullName": user.full_name,
        "email": user.email,
        "phone": user.phone,
        "kycStatus": user.kyc_status,
        "riskScore": user.risk_score,
        "dateOfBirth": _optional_time(user.date_of_birth),
        "addressLine1": user.address.line1,
        "addressLine2": user.address.line2,
        "addressCity": user.address.city,
        "addressState": user.address.state,
        "addressPostalCode": user.address.postal_code,
        "addressCountry": user.address.country,
    }


def transaction_properties(tx: Transaction) -> Dict[str, Any]:
    return {
        "amount": tx.amount,
        "currency": tx.currency,
        "type": tx.type,
        "status": tx.status,
        "channel": tx.channel,
        "ipAddress": tx.ip_address,
        "deviceId": tx.device_id,
        "paymentMethodId": tx.payment_method_id,
        "timestamp": format_time(tx.timestamp),
        "metadataJson": json.dumps(tx.metadata, sort_keys=True, default=str) if tx.metadata else None,
    }


def user_params(user: User) -> Dict[str, Any]:
    return {
        "userId": user.id,
        "props": user_properties(user),
        "createdAt": _optional_time(user.created_at),
        "updatedAt": format_time(user.updated_at),
        "attributes": attribute_params(user.attributes),
        "paymentMethods": payment_method_params(user.payment_methods),
    }


def transaction_params(tx: Transaction, attributes: List[Attribute]) -> Dict[str, Any]:
    return {
        "transactionId": tx.id,
        "senderId": tx.sender_user_id,
        "receiverId": tx.receiver_user_id,
        "amount": tx.amount,
        "currency": tx.currency,
        "timestamp": format_time(tx.timestamp),
        "props": transaction_properties(tx),
        "createdAt": _optional_time(tx.created_at),
        "updatedAt": format_time(tx.updated_at),
        "attributes": attribute_params(attributes),
        "paymentMethodId": tx.payment_method_id,
        "linkedAt": format_time(tx.updated_at),
    }


# ── builder ──────────────────────────────────────────────────

class GraphMutationBuilder:
    """Executes user / transaction upserts against a GraphStore."""

    def __init__(
        self,
        store: GraphStore,
        max_retries: Optional[int] = None,
        backoff_sec: Optional[float] = None,
    ) -> None:
        self.store = store
        self.max_retries = settings.WRITE_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_sec = settings.WRITE_BACKOFF_SEC if backoff_sec is None else backoff_sec
        self.retry_count = 0

    async def upsert_user(self, user: User) -> None:
        if not user.id.strip():
            raise RecordValidationError("user id is required")

        await self._write(user.id, INGEST_USER, user_params(user))

    async def upsert_transaction(self, tx: Transaction, attributes: List[Attribute]) -> None:
        if not tx.id.strip():
            raise RecordValidationError("transaction id is required")
        if not tx.sender_user_id.strip() or not tx.receiver_user_id.strip():
            raise RecordValidationError(
                "both sender and receiver user IDs are required", key=tx.id
            )

        rows = await self._write(tx.id, INGEST_TRANSACTION, transaction_params(tx, attributes))
        # MATCH on sender/receiver produced no row: nothing was written
        if not rows:
            raise GraphStoreError(
                f"sender {tx.sender_user_id!r} or receiver {tx.receiver_user_id!r} "
                "does not exist; users must be ingested before their transactions",
                key=tx.id,
            )

    # ── deadlock-safe write ──────────────────────────────────

    async def _write(self, key: str, query: str, params: Dict[str, Any]) -> List[Dict]:
        """Execute write with exponential backoff on transient store errors."""
        attempt = 0
        while True:
            try:
                return await self.store.execute_write(query, params)
            except GraphStoreError as exc:
                if not exc.transient or attempt >= self.max_retries:
                    raise exc.with_key(key) from exc
                backoff = self.backoff_sec * (2 ** attempt) + random.uniform(0, self.backoff_sec)
                attempt += 1
                self.retry_count += 1
                logger.debug("Transient failure for %s, retry %d (backoff=%.3fs): %s",
                             key, attempt, backoff, exc)
                await asyncio.sleep(backoff)
