"""
Synthetic dataset generator.

Produces users and transactions shaped like the ingestion payloads, with
tunable probabilities of re-using an already generated email, phone,
address, payment method, IP or device, so the resulting graph has a
realistic amount of shared-attribute linkage. A fixed seed and a fixed
``now`` make the output fully reproducible.
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from relgraph.config import settings
from relgraph.models.inputs import AddressInput, PaymentMethodInput, TransactionInput, UserInput

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════
#  Vocabularies
# ═══════════════════════════════════════════════════════════════

FIRST_NAMES = ["Jane", "John", "Alex", "Priya", "Liu", "Maria", "Omar", "Sofia",
               "Noah", "Emma", "Lucas", "Mia", "Ava", "Ethan", "Zara"]
LAST_NAMES = ["Doe", "Smith", "Chen", "Patel", "Garcia", "Khan", "Kim", "Ivanov",
              "Nguyen", "Silva", "Brown", "Lee"]
EMAIL_DOMAINS = ["example.com", "mail.com", "relgraph.io", "payments.net", "securepay.org"]
STREET_NAMES = ["Market", "Mission", "Broadway", "Fifth", "Sunset", "Park", "Cedar", "Oak", "Pine", "Ash"]
STREET_SUFFIXES = ["St", "Ave", "Blvd", "Ln", "Rd", "Way"]
CITIES = ["San Francisco", "New York", "Seattle", "Austin", "Chicago", "Miami",
          "Denver", "Boston", "Los Angeles"]
STATES = ["CA", "NY", "WA", "TX", "IL", "FL", "CO", "MA"]

KYC_STATUSES = ["PENDING", "VERIFIED", "REVIEW"]
METHOD_TYPES = ["CARD", "BANK_ACCOUNT", "WALLET"]
PROVIDERS = ["VISA", "MASTERCARD", "AMEX", "DISCOVER", "PAYPAL", "STRIPE"]
TRANSACTION_TYPES = ["TRANSFER", "PAYMENT", "WITHDRAWAL", "DEPOSIT"]
CHANNELS = ["WEB", "MOBILE", "POS", "API"]
MERCHANT_CATEGORIES = ["REMITTANCE", "PAYROLL", "E_COMMERCE", "CRYPTO", "GAMBLING", "DONATION"]
NOTES = ["Invoice settlement", "Freelance payout", "Peer transfer", "Market purchase", "Crypto off-ramp"]


@dataclass
class GeneratorConfig:
    num_users: int = 10000
    num_transactions: int = 100000
    shared_attribute_chance: float = 0.35
    payment_share_chance: float = 0.25
    ip_share_chance: float = 0.25
    device_share_chance: float = 0.30
    seed: int = 42

    @classmethod
    def from_settings(cls, **overrides) -> "GeneratorConfig":
        cfg = cls(
            num_users=settings.DATAGEN_USERS,
            num_transactions=settings.DATAGEN_TRANSACTIONS,
            shared_attribute_chance=settings.DATAGEN_SHARED_ATTRIBUTE_CHANCE,
            payment_share_chance=settings.DATAGEN_PAYMENT_SHARE_CHANCE,
            ip_share_chance=settings.DATAGEN_IP_SHARE_CHANCE,
            device_share_chance=settings.DATAGEN_DEVICE_SHARE_CHANCE,
            seed=settings.DATAGEN_SEED,
        )
        for key, value in overrides.items():
            if value is not None:
                setattr(cfg, key, value)
        return cfg


@dataclass
class Dataset:
    users: List[UserInput] = field(default_factory=list)
    transactions: List[TransactionInput] = field(default_factory=list)


class DatasetGenerator:
    """Seeded generator of users and the transactions between them."""

    def __init__(self, config: Optional[GeneratorConfig] = None, now: Optional[datetime] = None) -> None:
        self.config = config or GeneratorConfig()
        if self.config.num_users < 2 and self.config.num_transactions > 0:
            raise ValueError("at least two users are needed to generate transactions")
        self.now = now or datetime.now(timezone.utc).replace(microsecond=0)
        self.rng = random.Random(self.config.seed)

        # pools of previously generated values that later records may re-use
        self._emails: List[str] = []
        self._phones: List[str] = []
        self._addresses: List[AddressInput] = []
        self._payments: List[PaymentMethodInput] = []
        self._ips: List[str] = []
        self._devices: List[str] = []

    # ── sharing ──────────────────────────────────────────────

    def _maybe_shared(self, pool: list, chance: float, make: Callable):
        if pool and self.rng.random() < chance:
            return self.rng.choice(pool)
        value = make()
        pool.append(value)
        return value

    # ── random fields ────────────────────────────────────────

    def _full_name(self) -> str:
        return f"{self.rng.choice(FIRST_NAMES)} {self.rng.choice(LAST_NAMES)}"

    def _email(self) -> str:
        first = self.rng.choice(FIRST_NAMES).lower()
        last = self.rng.choice(LAST_NAMES).lower()
        return f"{first}.{last}{self.rng.randint(1, 9999)}@{self.rng.choice(EMAIL_DOMAINS)}"

    def _phone(self) -> str:
        return "+1{:03d}{:03d}{:04d}".format(
            self.rng.randint(100, 999), self.rng.randint(100, 999), self.rng.randint(0, 9999)
        )

    def _address(self) -> AddressInput:
        return AddressInput(
            line1=f"{self.rng.randint(1, 9999)} {self.rng.choice(STREET_NAMES)} {self.rng.choice(STREET_SUFFIXES)}",
            city=self.rng.choice(CITIES),
            state=self.rng.choice(STATES),
            postal_code=f"{self.rng.randint(0, 99998):05d}",
            country="US",
        )

    def _ip(self) -> str:
        return "{}.{}.{}.{}".format(
            self.rng.randint(1, 223), self.rng.randint(0, 255),
            self.rng.randint(0, 255), self.rng.randint(0, 255),
        )

    def _device(self) -> str:
        return f"device-{self.rng.randint(0, 999998):06d}"

    def _masked(self) -> str:
        return f"{self.rng.randint(0, 9999):04d}********{self.rng.randint(0, 9999):04d}"

    def _payment_methods(self, user_id: str) -> List[PaymentMethodInput]:
        methods: List[PaymentMethodInput] = []
        for i in range(self.rng.randint(1, 2)):
            if self._payments and self.rng.random() < self.config.payment_share_chance:
                methods.append(self.rng.choice(self._payments))
                continue
            pm = PaymentMethodInput(
                id=f"PM-{user_id}-{i + 1}",
                method_type=self.rng.choice(METHOD_TYPES),
                provider=self.rng.choice(PROVIDERS),
                masked=self._masked(),
                fingerprint=f"fp-{user_id}-{self.rng.randint(0, 999)}",
            )
            # only half of the new instruments become shareable
            if self.rng.random() < 0.5:
                self._payments.append(pm)
            methods.append(pm)
        return methods

    # ── generation ───────────────────────────────────────────

    def generate_users(self) -> List[UserInput]:
        cfg = self.config
        users: List[UserInput] = []
        for i in range(cfg.num_users):
            user_id = f"USR-{i + 1:06d}"
            created_at = self.now - timedelta(hours=self.rng.randint(0, 365 * 24 - 1))
            updated_at = created_at + timedelta(hours=self.rng.randint(0, 71))
            users.append(UserInput(
                id=user_id,
                full_name=self._full_name(),
                email=self._maybe_shared(self._emails, cfg.shared_attribute_chance, self._email),
                phone=self._maybe_shared(self._phones, cfg.shared_attribute_chance, self._phone),
                address=self._maybe_shared(self._addresses, cfg.shared_attribute_chance, self._address),
                date_of_birth=datetime(
                    1960 + self.rng.randint(0, 29), self.rng.randint(1, 12), self.rng.randint(1, 28),
                    tzinfo=timezone.utc,
                ),
                kyc_status=self.rng.choice(KYC_STATUSES),
                risk_score=round(self.rng.random(), 4),
                payment_methods=self._payment_methods(user_id),
                created_at=created_at,
                updated_at=updated_at,
            ))
        return users

    def generate_transactions(self, users: List[UserInput]) -> List[TransactionInput]:
        cfg = self.config
        payment_ids: Dict[str, List[str]] = {u.id: [pm.id for pm in u.payment_methods] for u in users}
        transactions: List[TransactionInput] = []
        for i in range(cfg.num_transactions):
            sender_idx = self.rng.randrange(len(users))
            receiver_idx = self.rng.randrange(len(users))
            if receiver_idx == sender_idx:
                receiver_idx = (receiver_idx + 1) % len(users)
            sender, receiver = users[sender_idx], users[receiver_idx]

            owned = payment_ids.get(sender.id) or []
            timestamp = self.now - timedelta(minutes=self.rng.randint(0, 60 * 24 - 1))
            transactions.append(TransactionInput(
                id=f"TX-{i + 1:07d}",
                sender_user_id=sender.id,
                receiver_user_id=receiver.id,
                amount=round(self.rng.uniform(100, 5000), 2),
                currency="USD",
                type=self.rng.choice(TRANSACTION_TYPES),
                status="COMPLETED",
                channel=self.rng.choice(CHANNELS),
                ip_address=self._maybe_shared(self._ips, cfg.ip_share_chance, self._ip),
                device_id=self._maybe_shared(self._devices, cfg.device_share_chance, self._device),
                payment_method_id=self.rng.choice(owned) if owned else "",
                timestamp=timestamp,
                metadata={
                    "merchantCategory": self.rng.choice(MERCHANT_CATEGORIES),
                    "note": self.rng.choice(NOTES),
                },
                created_at=timestamp - timedelta(minutes=self.rng.randint(0, 119)),
                updated_at=timestamp + timedelta(minutes=self.rng.randint(0, 119)),
            ))
        return transactions

    def generate(self) -> Dataset:
        users = self.generate_users()
        transactions = self.generate_transactions(users)
        logger.info("Generated %d users and %d transactions (seed=%d)",
                    len(users), len(transactions), self.config.seed)
        return Dataset(users=users, transactions=transactions)


# ═══════════════════════════════════════════════════════════════
#  JSON files
# ═══════════════════════════════════════════════════════════════

USERS_FILE = "users.json"
TRANSACTIONS_FILE = "transactions.json"


def _dump(path: Path, records) -> None:
    payload = [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in records]
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")


def write_dataset(dataset: Dataset, directory) -> Dict[str, Path]:
    """Write ``users.json`` and ``transactions.json`` under ``directory``."""
    out = Path(directory)
    out.mkdir(parents=True, exist_ok=True)
    paths = {"users": out / USERS_FILE, "transactions": out / TRANSACTIONS_FILE}
    _dump(paths["users"], dataset.users)
    _dump(paths["transactions"], dataset.transactions)
    logger.info("Dataset written to %s", out)
    return paths


def load_users(path) -> List[UserInput]:
    with Path(path).open(encoding="utf-8") as fh:
        return [UserInput.model_validate(item) for item in json.load(fh)]


def load_transactions(path) -> List[TransactionInput]:
    with Path(path).open(encoding="utf-8") as fh:
        return [TransactionInput.model_validate(item) for item in json.load(fh)]
