import asyncio

from ingest_dataset import EXIT_CANCELLED, EXIT_FAILED, ingest
from relgraph.memory_store import MemoryGraphStore


class _SlowStore(MemoryGraphStore):
    def __init__(self, delay):
        super().__init__()
        self.delay = delay

    async def execute_write(self, query, params=None):
        await asyncio.sleep(self.delay)
        return await super().execute_write(query, params)


def _statements(store):
    return [name for name, _ in store.calls]


def test_loads_users_then_transactions(make_user, make_tx):
    store = MemoryGraphStore()

    code = asyncio.run(ingest(store, [make_user("U1"), make_user("U2")],
                              [make_tx("T1", "U1", "U2")], workers=2))

    assert code == 0
    assert store.node_count("User") == 2
    assert store.node_count("Transaction") == 1
    assert _statements(store).index("ingest_transaction") > _statements(store).index("ingest_user")


def test_unreachable_store_fails_before_any_write(make_user, make_tx):
    store = MemoryGraphStore()
    asyncio.run(store.close())

    code = asyncio.run(ingest(store, [make_user("U1"), make_user("U2")],
                              [make_tx("T1", "U1", "U2")], workers=2))

    assert code == EXIT_FAILED
    assert store.calls == []


def test_failed_user_stops_before_transactions(make_user, make_tx):
    store = MemoryGraphStore()

    code = asyncio.run(ingest(store, [make_user("U1"), make_user("U2", id="")],
                              [make_tx("T1", "U1", "U2")], workers=1))

    assert code == EXIT_FAILED
    assert "ingest_user" in _statements(store)
    assert "ingest_transaction" not in _statements(store)


def test_deadline_cancels_with_distinct_exit_code(make_user, make_tx):
    store = _SlowStore(delay=0.2)

    code = asyncio.run(ingest(store, [make_user("U1"), make_user("U2")],
                              [make_tx("T1", "U1", "U2")], workers=1, timeout=0.01))

    assert code == EXIT_CANCELLED
    assert code != EXIT_FAILED
    assert "ingest_transaction" not in _statements(store)
