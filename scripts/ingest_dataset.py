#!/usr/bin/env python3
"""
ingest_dataset.py – Bulk-load users.json and transactions.json into the
relationship graph.

All users are ingested to completion before any transaction, since a
transaction upsert requires both of its users to exist. A connectivity
failure aborts before any work starts; item failures are listed by
business key; Ctrl-C or --timeout cancels the run.

Usage:
    python scripts/ingest_dataset.py                                # ./data, 4 workers
    python scripts/ingest_dataset.py --dataset-dir /tmp/ds --workers 8 --timeout 600
    python scripts/ingest_dataset.py --memory                       # dry run, no Neo4j
"""

import argparse
import asyncio
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional, Sequence, Tuple

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from pydantic import ValidationError

from relgraph.config import settings
from relgraph.core.bulk_ingestor import BulkIngestor
from relgraph.core.repository import GraphRepository
from relgraph.datagen.generator import TRANSACTIONS_FILE, USERS_FILE, load_transactions, load_users
from relgraph.errors import BulkIngestError, GraphStoreError
from relgraph.memory_store import MemoryGraphStore
from relgraph.models.inputs import TransactionInput, UserInput
from relgraph.neo4j_manager import Neo4jManager
from relgraph.utils.logging_setup import configure_logging

logger = logging.getLogger("ingest")

EXIT_FAILED = 1
EXIT_BAD_INPUT = 2
EXIT_CANCELLED = 130

# Upper bound on how many individual failures are echoed to the log
_MAX_LISTED_FAILURES = 50


def _resolve(base: str, explicit: Optional[str], fallback: str) -> Path:
    path = Path(explicit) if explicit else Path(base) / fallback
    if not path.is_file():
        raise FileNotFoundError(f"dataset file not found: {path}")
    return path


def _report(phase: str, err: BulkIngestError) -> None:
    logger.error("❌ %s ingestion: %d item(s) failed", phase, len(err))
    for failure in err.failures[:_MAX_LISTED_FAILURES]:
        logger.error("   %s", failure)
    if len(err) > _MAX_LISTED_FAILURES:
        logger.error("   … %d more", len(err) - _MAX_LISTED_FAILURES)


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.0)


async def _connect(store, apply_schema: bool) -> None:
    if isinstance(store, Neo4jManager):
        await store.connect()
        if apply_schema:
            store.connect_sync()
            store.setup_schema()
    else:
        await store.verify_connectivity()


async def ingest(
    store,
    users: Sequence[UserInput],
    transactions: Sequence[TransactionInput],
    workers: int,
    timeout: Optional[float] = None,
    apply_schema: bool = True,
) -> int:
    """Load ``users`` then ``transactions`` into ``store``; returns the exit code."""
    repository = GraphRepository(store)
    try:
        try:
            await _connect(store, apply_schema)
        except GraphStoreError as exc:
            logger.error("❌ Graph store unavailable: %s", exc)
            return EXIT_FAILED

        ingestor = BulkIngestor(repository, workers=workers)
        deadline = time.monotonic() + timeout if timeout else None
        started = time.perf_counter()

        try:
            err = await ingestor.ingest_users(users, timeout=_remaining(deadline))
            if err is not None:
                _report("user", err)
                return EXIT_FAILED

            err = await ingestor.ingest_transactions(transactions, timeout=_remaining(deadline))
            if err is not None:
                _report("transaction", err)
                return EXIT_FAILED
        except asyncio.TimeoutError:
            logger.error("⏱  Deadline of %.0fs exceeded, ingestion cancelled", timeout)
            return EXIT_CANCELLED

        logger.info("✅ Ingestion complete in %.1fs (%d users, %d transactions)",
                    time.perf_counter() - started, len(users), len(transactions))
        if isinstance(store, MemoryGraphStore):
            logger.info("   graph: %d nodes, %d relationships",
                        store.node_count(), store.edge_count())
        return 0
    finally:
        await repository.close()


async def run(args, paths: Tuple[Path, Path]) -> int:
    users = load_users(paths[0])
    transactions = load_transactions(paths[1])
    if not users:
        logger.error("❌ users dataset is empty: %s", paths[0])
        return EXIT_BAD_INPUT
    logger.info("📂 Loaded %d users and %d transactions", len(users), len(transactions))

    if args.memory:
        store = MemoryGraphStore()
        logger.info("🧪 Dry run against the in-memory graph store")
    else:
        store = Neo4jManager.get_instance()
        if settings.NEO4J_MAX_POOL_SIZE < args.workers:
            logger.warning("⚠️  NEO4J_MAX_POOL_SIZE=%d is below --workers=%d",
                           settings.NEO4J_MAX_POOL_SIZE, args.workers)

    return await ingest(store, users, transactions, args.workers,
                        timeout=args.timeout, apply_schema=not args.skip_schema)


def main() -> int:
    parser = argparse.ArgumentParser(description="Bulk-ingest a relationship dataset")
    parser.add_argument("--dataset-dir", default="data",
                        help="directory containing users.json and transactions.json")
    parser.add_argument("--users", default=None, help="path to users.json (overrides --dataset-dir)")
    parser.add_argument("--transactions", default=None,
                        help="path to transactions.json (overrides --dataset-dir)")
    parser.add_argument("--workers", type=int, default=settings.INGEST_WORKER_COUNT)
    parser.add_argument("--timeout", type=float, default=None, help="overall deadline in seconds")
    parser.add_argument("--memory", action="store_true", help="ingest into an in-memory graph")
    parser.add_argument("--skip-schema", action="store_true", help="do not apply constraints/indexes")
    args = parser.parse_args()

    configure_logging()
    if args.workers < 1:
        logger.error("❌ --workers must be >= 1")
        return EXIT_BAD_INPUT

    try:
        paths = (
            _resolve(args.dataset_dir, args.users, USERS_FILE),
            _resolve(args.dataset_dir, args.transactions, TRANSACTIONS_FILE),
        )
    except FileNotFoundError as exc:
        logger.error("❌ %s", exc)
        return EXIT_BAD_INPUT

    try:
        return asyncio.run(run(args, paths))
    except (ValidationError, ValueError) as exc:
        logger.error("❌ Invalid dataset: %s", exc)
        return EXIT_BAD_INPUT
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.warning("Interrupted, ingestion cancelled")
        return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
