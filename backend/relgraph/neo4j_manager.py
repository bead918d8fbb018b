"""
Neo4j database manager.

Provides both sync (schema setup / maintenance scripts) and async
(ingestion + query hot-path) execution with connection pooling and
health-check support. Driver failures surface as GraphStoreError.
"""

import logging
from typing import Any, Dict, List, Optional

from neo4j import AsyncGraphDatabase, GraphDatabase
from neo4j.exceptions import (
    AuthError,
    ConstraintError,
    DriverError,
    Neo4jError,
    ServiceUnavailable,
    SessionExpired,
    TransientError,
)

from relgraph.config import settings
from relgraph.errors import GraphStoreError
from relgraph.utils import cypher_queries as Q

logger = logging.getLogger(__name__)

# Retryable by the mutation builder; everything else fails the item for good
_TRANSIENT = (TransientError, ConstraintError, ServiceUnavailable, SessionExpired)


def _store_error(exc: Exception) -> GraphStoreError:
    err = GraphStoreError(str(exc) or type(exc).__name__, transient=isinstance(exc, _TRANSIENT))
    err.__cause__ = exc
    return err


class Neo4jManager:
    """Singleton wrapper around the Neo4j Python driver."""

    _instance: Optional["Neo4jManager"] = None

    def __init__(
        self,
        uri: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        database: Optional[str] = None,
    ) -> None:
        self.uri = uri or settings.NEO4J_URI
        self.user = user or settings.NEO4J_USER
        self.password = password or settings.NEO4J_PASSWORD
        self.database = database or settings.NEO4J_DATABASE
        self._driver = None
        self._async_driver = None

    # ── singleton ────────────────────────────────────────────

    @classmethod
    def get_instance(cls) -> "Neo4jManager":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    # ── lifecycle ────────────────────────────────────────────

    def connect_sync(self) -> None:
        """Open the synchronous pool only (maintenance scripts)."""
        if self._driver is not None:
            return
        try:
            self._driver = GraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
                max_connection_pool_size=settings.NEO4J_MAX_POOL_SIZE,
            )
            self._driver.verify_connectivity()
            logger.info("✅ Neo4j connected at %s", self.uri)
        except (ServiceUnavailable, AuthError) as exc:
            logger.error("❌ Neo4j connection failed: %s", exc)
            raise _store_error(exc) from exc

    async def connect(self) -> None:
        """Open the asynchronous pool used on the hot path."""
        if self._async_driver is not None:
            return
        self._async_driver = AsyncGraphDatabase.driver(
            self.uri,
            auth=(self.user, self.password),
            max_connection_pool_size=settings.NEO4J_MAX_POOL_SIZE,
        )
        await self.verify_connectivity()
        logger.info("✅ Neo4j connected at %s", self.uri)

    async def verify_connectivity(self) -> None:
        if self._async_driver is None:
            raise GraphStoreError("Neo4j driver is not connected")
        try:
            await self._async_driver.verify_connectivity()
        except (ServiceUnavailable, AuthError, DriverError) as exc:
            logger.error("❌ Neo4j connection failed: %s", exc)
            raise _store_error(exc) from exc

    async def close(self) -> None:
        if self._driver:
            self._driver.close()
            self._driver = None
        if self._async_driver:
            await self._async_driver.close()
            self._async_driver = None
        logger.info("Neo4j drivers closed")

    def close_sync(self) -> None:
        if self._driver:
            self._driver.close()
            self._driver = None
        logger.info("Neo4j sync driver closed")

    # ── synchronous helpers (setup / maintenance) ────────────

    def run_sync(self, query: str, params: Dict[str, Any] | None = None) -> List[Dict]:
        with self._driver.session(database=self.database) as session:
            result = session.run(query, params or {})
            return [record.data() for record in result]

    def write_sync(self, query: str, params: Dict[str, Any] | None = None) -> List[Dict]:
        with self._driver.session(database=self.database) as session:
            return session.execute_write(
                lambda tx: [r.data() for r in tx.run(query, params or {})]
            )

    # ── asynchronous helpers (runtime hot-path) ──────────────

    async def execute_write(self, query: str, params: Dict[str, Any] | None = None) -> List[Dict]:
        if self._async_driver is None:
            raise GraphStoreError("Neo4j driver is not connected")

        # execute_write expects a coroutine that takes an AsyncManagedTransaction
        async def _work(tx):
            res = await tx.run(query, params or {})
            return [record.data() async for record in res]

        try:
            async with self._async_driver.session(database=self.database) as session:
                return await session.execute_write(_work)
        except (Neo4jError, DriverError) as exc:
            raise _store_error(exc) from exc

    async def execute_read(self, query: str, params: Dict[str, Any] | None = None) -> List[Dict]:
        if self._async_driver is None:
            raise GraphStoreError("Neo4j driver is not connected")

        async def _work(tx):
            res = await tx.run(query, params or {})
            return [record.data() async for record in res]

        try:
            async with self._async_driver.session(database=self.database) as session:
                return await session.execute_read(_work)
        except (Neo4jError, DriverError) as exc:
            raise _store_error(exc) from exc

    # ── schema management ────────────────────────────────────

    def setup_schema(
        self,
        constraints: List[str] = Q.SCHEMA_CONSTRAINTS,
        indexes: List[str] = Q.SCHEMA_INDEXES,
    ) -> None:
        with self._driver.session(database=self.database) as session:
            for stmt in constraints + indexes:
                try:
                    session.run(stmt).consume()
                    logger.info("  ✔ %s", stmt[:70])
                except Neo4jError as exc:
                    logger.warning("  ⚠ %s – %s", stmt[:50], exc)
        logger.info("✅ Schema setup complete")

    def clear_database(self) -> None:
        self.write_sync(Q.MAINT_CLEAR_ALL)
        logger.warning("⚠️  All data deleted from Neo4j")

    def counts_sync(self) -> Dict[str, Dict[str, int]]:
        nodes = self.run_sync(Q.MAINT_COUNT_NODES)
        rels = self.run_sync(Q.MAINT_COUNT_RELS)
        return {
            "nodes": {r["label"]: r["count"] for r in nodes if r["label"]},
            "relationships": {r["type"]: r["count"] for r in rels},
        }

    # ── health check ─────────────────────────────────────────

    async def health_check(self) -> Dict:
        try:
            await self.execute_read(Q.MAINT_PING)
            counts = await self.execute_read(Q.MAINT_COUNT_NODES)
            return {
                "status": "healthy",
                "nodes": {r["label"]: r["count"] for r in counts if r["label"]},
            }
        except GraphStoreError as exc:
            return {"status": "unhealthy", "error": str(exc)}
