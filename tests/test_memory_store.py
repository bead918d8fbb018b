import asyncio

import pytest

from relgraph.errors import GraphStoreError
from relgraph.memory_store import MemoryGraphStore
from relgraph.models.domain import LinkDirection, ParticipantRole
from relgraph.utils import cypher_queries as Q


def test_unknown_statement_is_rejected():
    with pytest.raises(GraphStoreError):
        asyncio.run(MemoryGraphStore().execute_read("MATCH (n) RETURN n"))


def test_write_statement_in_read_transaction_is_rejected():
    with pytest.raises(GraphStoreError):
        asyncio.run(MemoryGraphStore().execute_read(Q.MAINT_CLEAR_ALL))


def test_counts_and_clear(repository, store, make_user, make_tx):
    async def _go():
        await repository.upsert_user(make_user("U1"))
        await repository.upsert_user(make_user("U2"))
        await repository.upsert_transaction(make_tx("T1", "U1", "U2"))
        nodes = await store.execute_read(Q.MAINT_COUNT_NODES)
        rels = await store.execute_read(Q.MAINT_COUNT_RELS)
        await store.execute_write(Q.MAINT_CLEAR_ALL)
        return nodes, rels

    nodes, rels = asyncio.run(_go())

    counts = {r["label"]: r["count"] for r in nodes}
    assert counts["User"] == 2 and counts["Transaction"] == 1 and counts["PaymentMethod"] == 2
    types = {r["type"]: r["count"] for r in rels}
    assert types["PARTICIPATED_IN"] == 2
    assert types["SENT_TO"] == 1 and types["RECEIVED_FROM"] == 1
    assert store.node_count() == 0


def test_calls_are_recorded(store):
    asyncio.run(store.execute_read(Q.MAINT_PING))
    assert store.calls == [("ping", {})]


def test_participant_rows_carry_role_and_direction(repository, store, make_user, make_tx):
    async def _go():
        await repository.upsert_user(make_user("U1"))
        await repository.upsert_user(make_user("U2"))
        await repository.upsert_transaction(make_tx("T1", "U1", "U2"))
        users = await store.execute_read(Q.QUERY_TRANSACTION_USERS, {"transactionId": "T1"})
        links = await store.execute_read(Q.QUERY_USER_DIRECT_LINKS, {"userId": "U2"})
        return users, links

    users, links = asyncio.run(_go())

    assert [(r["userId"], r["role"], r["direction"]) for r in users] == [
        ("U1", ParticipantRole.SENDER, LinkDirection.OUTBOUND),
        ("U2", ParticipantRole.RECEIVER, LinkDirection.INBOUND),
    ]
    assert [(r["peerId"], r["linkType"], r["direction"]) for r in links] == [
        ("U1", "RECEIVED_FROM", LinkDirection.INBOUND.value),
    ]
