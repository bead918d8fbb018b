"""
FastAPI application entry-point.

Lifespan:
  startup  → connect Neo4j; setup schema; wire the repository into routes
  shutdown → close connections
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relgraph.api.routes import init_routes, router as api_router
from relgraph.config import settings
from relgraph.core.repository import GraphRepository
from relgraph.neo4j_manager import Neo4jManager
from relgraph.utils.logging_setup import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("🚀 Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)

    # ── Neo4j ────────────────────────────────────────────────
    neo4j = Neo4jManager.get_instance()
    neo4j.connect_sync()
    neo4j.setup_schema()
    await neo4j.connect()

    # ── Relationship engine ──────────────────────────────────
    repository = GraphRepository(neo4j)

    # ── Inject deps into routes ──────────────────────────────
    init_routes(repository, health_check=neo4j.health_check)

    # store on app.state for ad-hoc access
    app.state.neo4j = neo4j
    app.state.repository = repository

    logger.info("✅ All systems online")
    yield

    # ── shutdown ─────────────────────────────────────────────
    logger.info("Shutting down …")
    await neo4j.close()
    logger.info("👋 Shutdown complete")


# ── App ──────────────────────────────────────────────────────

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# REST routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("relgraph.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
