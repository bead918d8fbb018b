from datetime import datetime, timedelta, timezone

import pytest

from relgraph.core.mutations import GraphMutationBuilder
from relgraph.core.repository import GraphRepository
from relgraph.memory_store import MemoryGraphStore
from relgraph.models.inputs import AddressInput, PaymentMethodInput, TransactionInput, UserInput

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def store():
    return MemoryGraphStore()


@pytest.fixture
def repository(store):
    return GraphRepository(
        store,
        clock=lambda: FIXED_NOW,
        mutations=GraphMutationBuilder(store, backoff_sec=0),
    )


@pytest.fixture
def make_user():
    """Factory for users; pass ``bare=True`` for a user without identity attributes."""

    def _make(user_id, bare=False, **overrides):
        fields = dict(id=user_id, full_name=f"User {user_id}", kyc_status="VERIFIED", risk_score=0.1)
        if not bare:
            fields.update(
                email=f"{user_id.lower()}@example.com",
                phone="+1 (555) 010-" + user_id[-4:].rjust(4, "0"),
                address=AddressInput(line1=f"{user_id} Main St", city="Austin", state="TX",
                                     postal_code="73301", country="US"),
                payment_methods=[PaymentMethodInput(id=f"PM-{user_id}", method_type="CARD",
                                                    provider="VISA", fingerprint=f"fp-{user_id}")],
            )
        fields.update(overrides)
        return UserInput(**fields)

    return _make


@pytest.fixture
def make_tx():
    """Factory for transactions; each ``day`` offset lands in its own UTC day bucket."""

    def _make(tx_id, sender, receiver, day=0, **overrides):
        fields = dict(
            id=tx_id,
            sender_user_id=sender,
            receiver_user_id=receiver,
            amount=125.5,
            currency="USD",
            type="TRANSFER",
            status="COMPLETED",
            channel="WEB",
            timestamp=FIXED_NOW - timedelta(days=day),
        )
        fields.update(overrides)
        return TransactionInput(**fields)

    return _make
