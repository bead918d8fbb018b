import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from relgraph.core.mutations import GraphMutationBuilder, transaction_params, user_params
from relgraph.errors import GraphStoreError, RecordValidationError
from relgraph.models.domain import Attribute, PaymentMethod, Transaction, User
from relgraph.utils.cypher_queries import INGEST_TRANSACTION, INGEST_USER, statement_name

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _user(**kw):
    base = dict(
        id="U1",
        full_name="Jane Doe",
        email="jane@example.com",
        attributes=[Attribute(type="EMAIL", value="h1", raw_value="jane@example.com")],
        payment_methods=[PaymentMethod(id="PM-1", provider="VISA"), PaymentMethod(id="")],
        updated_at=NOW,
    )
    base.update(kw)
    return User(**base)


def _tx(**kw):
    base = dict(
        id="T1",
        sender_user_id="U1",
        receiver_user_id="U2",
        amount=10.0,
        currency="USD",
        timestamp=NOW,
        updated_at=NOW,
    )
    base.update(kw)
    return Transaction(**base)


def _store(*results):
    store = AsyncMock()
    store.execute_write = AsyncMock(side_effect=list(results))
    return store


# ── parameter shaping ────────────────────────────────────────

def test_user_params_shape():
    params = user_params(_user())

    assert params["userId"] == "U1"
    assert params["props"]["fullName"] == "Jane Doe"
    assert params["props"]["dateOfBirth"] is None
    assert params["createdAt"] is None
    assert params["updatedAt"] == "2024-03-01T12:00:00Z"
    assert params["attributes"] == [
        {"type": "EMAIL", "value": "h1", "rawValue": "jane@example.com", "confidence": 1.0}
    ]
    # payment methods without an id are not written
    assert [pm["id"] for pm in params["paymentMethods"]] == ["PM-1"]


def test_transaction_params_shape():
    tx = _tx(metadata={"b": 1, "a": "x"}, payment_method_id="PM-1")
    params = transaction_params(tx, [Attribute(type="IP", value="h", confidence_score=0.85)])

    assert params["senderId"] == "U1"
    assert params["receiverId"] == "U2"
    assert params["paymentMethodId"] == "PM-1"
    assert params["linkedAt"] == params["updatedAt"]
    assert json.loads(params["props"]["metadataJson"]) == {"a": "x", "b": 1}
    assert params["attributes"][0]["confidence"] == 0.85


def test_empty_metadata_is_not_stored():
    assert transaction_params(_tx(), [])["props"]["metadataJson"] is None


# ── upserts ──────────────────────────────────────────────────

def test_upsert_user_issues_single_merge():
    store = _store([{"userId": "U1"}])
    asyncio.run(GraphMutationBuilder(store).upsert_user(_user()))

    store.execute_write.assert_awaited_once()
    query, params = store.execute_write.call_args.args
    assert query is INGEST_USER
    assert statement_name(query) == "ingest_user"
    assert params["userId"] == "U1"


def test_upsert_user_without_id_never_reaches_store():
    store = _store()
    with pytest.raises(RecordValidationError):
        asyncio.run(GraphMutationBuilder(store).upsert_user(_user(id="  ")))
    store.execute_write.assert_not_awaited()


def test_upsert_transaction_requires_both_users():
    store = _store()
    with pytest.raises(RecordValidationError) as exc:
        asyncio.run(GraphMutationBuilder(store).upsert_transaction(_tx(receiver_user_id=""), []))
    assert exc.value.key == "T1"
    store.execute_write.assert_not_awaited()


def test_upsert_transaction_uses_ingest_statement():
    store = _store([{"transactionId": "T1"}])
    asyncio.run(GraphMutationBuilder(store).upsert_transaction(_tx(), []))

    query, params = store.execute_write.call_args.args
    assert query is INGEST_TRANSACTION
    assert params["transactionId"] == "T1"


def test_upsert_transaction_with_missing_user_fails_with_key():
    store = _store([])
    with pytest.raises(GraphStoreError) as exc:
        asyncio.run(GraphMutationBuilder(store).upsert_transaction(_tx(), []))
    assert exc.value.key == "T1"
    assert "does not exist" in exc.value.message


# ── retries ──────────────────────────────────────────────────

def test_transient_error_is_retried():
    store = _store(GraphStoreError("deadlock", transient=True), [{"userId": "U1"}])
    builder = GraphMutationBuilder(store, max_retries=3, backoff_sec=0)

    asyncio.run(builder.upsert_user(_user()))

    assert store.execute_write.await_count == 2
    assert builder.retry_count == 1


def test_permanent_error_is_not_retried_and_carries_key():
    store = _store(GraphStoreError("syntax error"))
    builder = GraphMutationBuilder(store, max_retries=3, backoff_sec=0)

    with pytest.raises(GraphStoreError) as exc:
        asyncio.run(builder.upsert_user(_user()))

    assert store.execute_write.await_count == 1
    assert exc.value.key == "U1"
    assert builder.retry_count == 0


def test_retries_are_bounded():
    failures = [GraphStoreError("deadlock", transient=True) for _ in range(3)]
    store = _store(*failures)
    builder = GraphMutationBuilder(store, max_retries=2, backoff_sec=0)

    with pytest.raises(GraphStoreError) as exc:
        asyncio.run(builder.upsert_user(_user()))

    assert store.execute_write.await_count == 3
    assert exc.value.transient
    assert exc.value.key == "U1"
