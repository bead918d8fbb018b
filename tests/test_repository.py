import asyncio
from datetime import datetime, timezone

import pytest

from relgraph.core.queries import RelationshipQueryService
from relgraph.core.repository import GraphRepository
from relgraph.errors import GraphStoreError, RecordValidationError
from relgraph.models.inputs import AddressInput


def run(coro):
    return asyncio.run(coro)


def ingest(repository, users=(), transactions=()):
    async def _go():
        for user in users:
            await repository.upsert_user(user)
        for tx in transactions:
            await repository.upsert_transaction(tx)
    run(_go())


def graph_size(store):
    return store.node_count(), store.edge_count()


# ══════════════════════════════════════════════════════════════
# Idempotence
# ══════════════════════════════════════════════════════════════

def test_reingesting_same_records_leaves_graph_unchanged(repository, store, make_user, make_tx):
    users = [make_user("U1"), make_user("U2")]
    txs = [make_tx("T1", "U1", "U2", ip_address="10.0.0.1"),
           make_tx("T2", "U2", "U1", ip_address="10.0.0.1")]

    ingest(repository, users, txs)
    before = graph_size(store)
    ingest(repository, users, txs)

    assert graph_size(store) == before
    assert store.node_count("User") == 2
    assert store.node_count("Transaction") == 2
    assert store.edge_count("SENT_TO") == 2


def test_user_reingest_overwrites_scalar_properties(repository, store, make_user):
    ingest(repository, [make_user("U1", full_name="Jane", date_of_birth=datetime(1990, 5, 1))])
    ingest(repository, [make_user("U1", full_name="  Jane   Smith ")])

    props = store.props("User", "U1")
    assert props["fullName"] == "Jane Smith"
    assert "dateOfBirth" not in props


def test_created_at_is_kept_when_not_supplied(store, make_user):
    clock = iter([datetime(2024, 1, 1, tzinfo=timezone.utc), datetime(2024, 2, 1, tzinfo=timezone.utc)])
    repository = GraphRepository(store, clock=lambda: next(clock))

    ingest(repository, [make_user("U1")])
    ingest(repository, [make_user("U1")])

    props = store.props("User", "U1")
    assert props["createdAt"] == "2024-01-01T00:00:00Z"
    assert props["updatedAt"] == "2024-02-01T00:00:00Z"


def test_shared_attribute_is_single_node(repository, store, make_user):
    ingest(repository, [make_user("U1", email="same@example.com"),
                        make_user("U2", email="SAME@example.com ")])

    emails = [n for n, label in store.graph.nodes(data="label")
              if label == "Attribute" and n[1] == "EMAIL"]
    assert len(emails) == 1


# ══════════════════════════════════════════════════════════════
# Dependency ordering and validation
# ══════════════════════════════════════════════════════════════

def test_transaction_with_missing_user_writes_nothing(repository, store, make_user, make_tx):
    ingest(repository, [make_user("U1")])

    with pytest.raises(GraphStoreError) as exc:
        ingest(repository, transactions=[make_tx("T1", "U1", "GHOST")])

    assert exc.value.key == "T1"
    assert store.node_count("Transaction") == 0
    assert store.edge_count("PARTICIPATED_IN") == 0


def test_self_transaction_is_rejected(repository, store, make_user, make_tx):
    ingest(repository, [make_user("U1")])

    with pytest.raises(RecordValidationError) as exc:
        ingest(repository, transactions=[make_tx("T1", "U1", "U1")])

    assert exc.value.key == "T1"
    assert store.node_count("Transaction") == 0


def test_user_without_id_is_rejected(repository, store, make_user):
    with pytest.raises(RecordValidationError):
        ingest(repository, [make_user("U1", id="")])
    assert store.calls == []


def test_padded_self_transaction_is_rejected_before_store(repository, store, make_user, make_tx):
    ingest(repository, [make_user("U1")])
    writes = len(store.calls)

    with pytest.raises(RecordValidationError) as exc:
        ingest(repository, transactions=[make_tx(" T2", "U1 ", "U1")])

    assert exc.value.key == "T2"
    assert len(store.calls) == writes


def test_ids_are_stored_trimmed(repository, store, make_user, make_tx):
    ingest(repository,
           [make_user("U1", id=" U1 "), make_user("U2")],
           [make_tx(" T1 ", "U1\t", " U2")])

    assert store.props("User", "U1")["userId"] == "U1"
    assert store.props("User", " U1 ") is None
    rels = run(repository.transaction_relationships("T1"))
    assert [p.user_id for p in rels.participants] == ["U1", "U2"]


# ══════════════════════════════════════════════════════════════
# Transaction linkage
# ══════════════════════════════════════════════════════════════

def test_shared_ip_links_transactions_in_both_directions(repository, make_user, make_tx):
    ingest(repository,
           [make_user("U1", bare=True), make_user("U2", bare=True), make_user("U3", bare=True)],
           [make_tx("T1", "U1", "U2", day=1, ip_address="10.0.0.9"),
            make_tx("T2", "U3", "U2", day=2, ip_address="10.0.0.9")])

    first = run(repository.transaction_relationships("T1"))
    second = run(repository.transaction_relationships("T2"))

    assert [(l.transaction_id, l.link_type) for l in first.linked_transactions] == [("T2", "IP")]
    assert [(l.transaction_id, l.link_type) for l in second.linked_transactions] == [("T1", "IP")]
    assert first.linked_transactions[0].score == pytest.approx(0.85)
    assert first.linked_transactions[0].attribute_hash == second.linked_transactions[0].attribute_hash


def test_same_day_transactions_link_by_day_bucket(repository, make_user, make_tx):
    ingest(repository,
           [make_user("U1", bare=True), make_user("U2", bare=True)],
           [make_tx("T1", "U1", "U2"), make_tx("T2", "U2", "U1")])

    linked = run(repository.transaction_relationships("T1")).linked_transactions
    assert [(l.transaction_id, l.link_type) for l in linked] == [("T2", "TX_DAY_BUCKET")]


def test_transactions_without_shared_attributes_are_not_linked(repository, make_user, make_tx):
    ingest(repository,
           [make_user("U1", bare=True), make_user("U2", bare=True)],
           [make_tx("T1", "U1", "U2", day=1, ip_address="10.0.0.1"),
            make_tx("T2", "U2", "U1", day=2, ip_address="10.0.0.2")])

    assert run(repository.transaction_relationships("T1")).linked_transactions == []


def test_transaction_participants_have_roles(repository, make_user, make_tx):
    ingest(repository, [make_user("U1"), make_user("U2")], [make_tx("T1", "U1", "U2")])

    rels = run(repository.transaction_relationships("T1"))

    assert [(p.user_id, p.role, p.direction) for p in rels.participants] == [
        ("U1", "SENDER", "OUTBOUND"),
        ("U2", "RECEIVER", "INBOUND"),
    ]
    assert rels.participants[0].amount == 125.5


def test_transaction_payment_method_attaches_when_known(repository, store, make_user, make_tx):
    ingest(repository, [make_user("U1"), make_user("U2")],
           [make_tx("T1", "U1", "U2", payment_method_id="PM-U1"),
            make_tx("T2", "U1", "U2", payment_method_id="PM-UNKNOWN")])

    assert store.edge_count("PAYMENT_METHOD_RELATES") == 1
    assert store.node_count("PaymentMethod") == 2


# ══════════════════════════════════════════════════════════════
# User neighbourhood
# ══════════════════════════════════════════════════════════════

def test_user_relationships_cover_links_transactions_and_attributes(repository, make_user, make_tx):
    shared = AddressInput(line1="9 Elm St", city="Austin")
    ingest(repository,
           [make_user("U1", address=shared), make_user("U2"), make_user("U3", address=shared)],
           [make_tx("T1", "U1", "U2")])

    rels = run(repository.user_relationships("U1"))

    assert rels.user_id == "U1"
    assert [(l.user_id, l.link_type, l.direction) for l in rels.direct_links] == [
        ("U2", "SENT_TO", "OUTBOUND")
    ]
    assert [(t.transaction_id, t.role) for t in rels.transactions] == [("T1", "SENDER")]
    assert [(s.attribute_type, s.user_ids) for s in rels.shared_attributes] == [("ADDRESS", ["U3"])]


def test_receiver_sees_inbound_link(repository, make_user, make_tx):
    ingest(repository, [make_user("U1"), make_user("U2")], [make_tx("T1", "U1", "U2")])

    rels = run(repository.user_relationships("U2"))

    assert [(l.user_id, l.link_type, l.direction) for l in rels.direct_links] == [
        ("U1", "RECEIVED_FROM", "INBOUND")
    ]


def test_unknown_user_has_empty_neighbourhood(repository):
    rels = run(repository.user_relationships("NOBODY"))
    assert rels.direct_links == [] and rels.transactions == [] and rels.shared_attributes == []


def test_reads_do_not_mutate_graph(repository, store, make_user, make_tx):
    ingest(repository, [make_user("U1"), make_user("U2")], [make_tx("T1", "U1", "U2")])
    before = graph_size(store)

    run(repository.user_relationships("U1"))
    run(repository.transaction_relationships("T1"))
    run(repository.shortest_path("U1", "U2"))
    run(repository.export_users())

    assert graph_size(store) == before


def test_blank_ids_are_rejected(repository):
    with pytest.raises(RecordValidationError):
        run(repository.user_relationships(" "))
    with pytest.raises(RecordValidationError):
        run(repository.transaction_relationships(""))
    with pytest.raises(RecordValidationError):
        run(repository.shortest_path("U1", ""))


# ══════════════════════════════════════════════════════════════
# Shortest path
# ══════════════════════════════════════════════════════════════

def _chain(repository, make_user, make_tx, length):
    """U1 → U2 → … → U<length>, one transaction per hop on distinct days."""
    users = [make_user(f"U{i}", bare=True) for i in range(1, length + 1)]
    txs = [make_tx(f"T{i}", f"U{i}", f"U{i + 1}", day=i) for i in range(1, length)]
    ingest(repository, users, txs)


def test_shortest_path_to_self_skips_store(repository, store):
    path = run(repository.shortest_path("U1", "U1"))

    assert path.hops == 0
    assert [n.id for n in path.nodes] == ["U1"]
    assert path.edges == []
    assert store.calls == []


def test_shortest_path_over_direct_transfer(repository, make_user, make_tx):
    _chain(repository, make_user, make_tx, 3)

    path = run(repository.shortest_path("U1", "U3"))

    assert path.found
    assert path.hops == 2
    assert [n.id for n in path.nodes] == ["U1", "U2", "U3"]
    assert {e.type for e in path.edges} <= {"SENT_TO", "RECEIVED_FROM"}
    assert len(path.edges) == path.hops


def test_shortest_path_ignores_edge_direction(repository, make_user, make_tx):
    _chain(repository, make_user, make_tx, 3)

    path = run(repository.shortest_path("U3", "U1"))

    assert path.hops == 2
    assert [n.id for n in path.nodes] == ["U3", "U2", "U1"]


def test_shortest_path_through_shared_attribute(repository, make_user):
    ingest(repository, [make_user("U1", bare=True, phone="555-0100"),
                        make_user("U2", bare=True, phone="(555) 0100")])

    path = run(repository.shortest_path("U1", "U2"))

    assert path.hops == 2
    assert [n.type for n in path.nodes] == ["User", "Attribute", "User"]
    assert {e.type for e in path.edges} == {"HAS_ATTRIBUTE"}


def test_path_beyond_hop_bound_is_not_found(repository, make_user, make_tx):
    _chain(repository, make_user, make_tx, 8)

    assert run(repository.shortest_path("U1", "U7")).hops == 6
    missing = run(repository.shortest_path("U1", "U8"))
    assert not missing.found
    assert missing.nodes == [] and missing.edges == []


def test_hop_bound_is_configurable(store, make_user, make_tx):
    repository = GraphRepository(store, queries=RelationshipQueryService(store, max_hops=2))
    _chain(repository, make_user, make_tx, 4)

    assert run(repository.shortest_path("U1", "U3")).found
    assert not run(repository.shortest_path("U1", "U4")).found


def test_shortest_path_with_unknown_user(repository, make_user):
    ingest(repository, [make_user("U1")])
    assert run(repository.shortest_path("U1", "NOBODY")).hops is None


# ══════════════════════════════════════════════════════════════
# Export
# ══════════════════════════════════════════════════════════════

def test_export_users_sorted_by_id(repository, make_user):
    ingest(repository, [make_user("U2"), make_user("U1", kyc_status="PENDING")])

    users = run(repository.export_users())

    assert [u.id for u in users] == ["U1", "U2"]
    assert users[0].kyc_status == "PENDING"
    assert users[0].email == "u1@example.com"
    assert users[0].created_at is not None


def test_export_transactions_newest_first_with_participants(repository, make_user, make_tx):
    ingest(repository, [make_user("U1"), make_user("U2")],
           [make_tx("T-OLD", "U1", "U2", day=3), make_tx("T-NEW", "U2", "U1", day=0)])

    txs = run(repository.export_transactions())

    assert [t.id for t in txs] == ["T-NEW", "T-OLD"]
    assert (txs[0].sender_user_id, txs[0].receiver_user_id) == ("U2", "U1")


def test_closed_store_rejects_calls(repository):
    run(repository.close())
    with pytest.raises(GraphStoreError):
        run(repository.verify_connectivity())
