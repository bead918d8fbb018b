import asyncio
import json
import re
from datetime import datetime, timezone

import pytest

from relgraph.core.bulk_ingestor import BulkIngestor
from relgraph.datagen.generator import (
    DatasetGenerator,
    GeneratorConfig,
    load_transactions,
    load_users,
    write_dataset,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _generate(users=60, transactions=300, seed=7):
    config = GeneratorConfig(num_users=users, num_transactions=transactions, seed=seed)
    return DatasetGenerator(config, now=NOW).generate()


def test_same_seed_same_dataset():
    a, b = _generate(), _generate()
    assert [u.model_dump() for u in a.users] == [u.model_dump() for u in b.users]
    assert [t.model_dump() for t in a.transactions] == [t.model_dump() for t in b.transactions]


def test_different_seed_changes_dataset():
    assert _generate(seed=1).users != _generate(seed=2).users


def test_identifiers_are_sequential():
    dataset = _generate(users=3, transactions=2)
    assert [u.id for u in dataset.users] == ["USR-000001", "USR-000002", "USR-000003"]
    assert [t.id for t in dataset.transactions] == ["TX-0000001", "TX-0000002"]


def test_transactions_reference_distinct_known_users():
    dataset = _generate()
    user_ids = {u.id for u in dataset.users}
    owned = {u.id: {pm.id for pm in u.payment_methods} for u in dataset.users}

    for tx in dataset.transactions:
        assert tx.sender_user_id != tx.receiver_user_id
        assert tx.sender_user_id in user_ids and tx.receiver_user_id in user_ids
        assert tx.payment_method_id in owned[tx.sender_user_id]
        assert tx.timestamp <= NOW
        assert re.fullmatch(r"\d+\.\d+\.\d+\.\d+", tx.ip_address)


def test_attributes_are_shared_between_users():
    dataset = _generate(users=200, transactions=0)
    emails = [u.email for u in dataset.users]
    assert len(set(emails)) < len(emails)


def test_transactions_need_two_users():
    with pytest.raises(ValueError):
        DatasetGenerator(GeneratorConfig(num_users=1, num_transactions=5))


def test_from_settings_applies_only_given_overrides():
    config = GeneratorConfig.from_settings(num_users=5, seed=None)
    assert config.num_users == 5
    assert config.seed == GeneratorConfig.from_settings().seed


def test_dataset_files_load_back(tmp_path):
    dataset = _generate(users=10, transactions=20)
    paths = write_dataset(dataset, tmp_path / "ds")

    raw = json.loads(paths["users"].read_text())
    assert "fullName" in raw[0] and "paymentMethods" in raw[0]

    assert load_users(paths["users"]) == dataset.users
    assert load_transactions(paths["transactions"]) == dataset.transactions


def test_generated_dataset_ingests_cleanly(repository, store):
    dataset = _generate(users=30, transactions=80)
    ingestor = BulkIngestor(repository, workers=4)

    assert asyncio.run(ingestor.ingest_users(dataset.users)) is None
    assert asyncio.run(ingestor.ingest_transactions(dataset.transactions)) is None

    assert store.node_count("User") == 30
    assert store.node_count("Transaction") == 80
    assert store.edge_count("LINKED_TO") > 0
