#!/usr/bin/env python3
"""
generate_dataset.py – Write a reproducible synthetic users / transactions
dataset for bulk ingestion.

Usage:
    python scripts/generate_dataset.py                         # 10k users, 100k tx → ./data
    python scripts/generate_dataset.py --users 500 --transactions 5000 --seed 7 --out /tmp/ds
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from relgraph.datagen.generator import DatasetGenerator, GeneratorConfig, write_dataset
from relgraph.utils.logging_setup import configure_logging

logger = logging.getLogger("generate_dataset")


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a synthetic relationship dataset")
    parser.add_argument("--out", default="data", help="output directory")
    parser.add_argument("--users", type=int, default=None)
    parser.add_argument("--transactions", type=int, default=None)
    parser.add_argument("--shared-attribute-chance", type=float, default=None)
    parser.add_argument("--payment-share-chance", type=float, default=None)
    parser.add_argument("--ip-share-chance", type=float, default=None)
    parser.add_argument("--device-share-chance", type=float, default=None)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    configure_logging()
    config = GeneratorConfig.from_settings(
        num_users=args.users,
        num_transactions=args.transactions,
        shared_attribute_chance=args.shared_attribute_chance,
        payment_share_chance=args.payment_share_chance,
        ip_share_chance=args.ip_share_chance,
        device_share_chance=args.device_share_chance,
        seed=args.seed,
    )
    logger.info("Generating %d users / %d transactions (seed=%d)",
                config.num_users, config.num_transactions, config.seed)

    try:
        dataset = DatasetGenerator(config).generate()
    except ValueError as exc:
        logger.error("❌ %s", exc)
        return 2

    paths = write_dataset(dataset, args.out)
    for name, path in paths.items():
        logger.info("  ✔ %s → %s", name, path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
