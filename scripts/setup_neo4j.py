#!/usr/bin/env python3
"""
setup_neo4j.py – Create constraints, indexes, and verify Neo4j connectivity.

Usage:
    python scripts/setup_neo4j.py            # from project root
    python scripts/setup_neo4j.py --clear    # wipe all data first
"""

import argparse
import os
import sys

# Ensure backend/relgraph is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from relgraph.config import settings
from relgraph.errors import GraphStoreError
from relgraph.neo4j_manager import Neo4jManager
from relgraph.utils.logging_setup import configure_logging


def main() -> int:
    parser = argparse.ArgumentParser(description="Apply the relationship graph schema")
    parser.add_argument("--clear", action="store_true", help="delete every node before setup")
    args = parser.parse_args()

    configure_logging()
    print(f"🔗 Connecting to Neo4j at {settings.NEO4J_URI} …")
    neo4j = Neo4jManager.get_instance()
    try:
        neo4j.connect_sync()
    except GraphStoreError as exc:
        print(f"❌ {exc}")
        return 1
    print("✅ Connected")

    try:
        if args.clear:
            neo4j.clear_database()

        print("\n📋 Setting up schema …")
        neo4j.setup_schema()

        print("\n📊 Current node counts:")
        counts = neo4j.counts_sync()
        if counts["nodes"]:
            for label, count in counts["nodes"].items():
                print(f"   {label}: {count}")
        else:
            print("   (no nodes yet)")
    finally:
        neo4j.close_sync()

    print("\n✅ Neo4j setup complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
