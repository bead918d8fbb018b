"""
Application configuration.
Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration for the Relationship Graph Engine."""

    # ── Application ─────────────────────────────────────────
    APP_NAME: str = "Relationship Graph Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # ── Neo4j ───────────────────────────────────────────────
    NEO4J_URI: str = "bolt://localhost:7687"
    NEO4J_USER: str = "neo4j"
    NEO4J_PASSWORD: str = "password123"
    NEO4J_DATABASE: str = "neo4j"
    # should stay >= INGEST_WORKER_COUNT
    NEO4J_MAX_POOL_SIZE: int = 10

    # ── Bulk ingestion ──────────────────────────────────────
    INGEST_WORKER_COUNT: int = 4
    INGEST_PROGRESS_EVERY: int = 1000
    WRITE_MAX_RETRIES: int = 3
    WRITE_BACKOFF_SEC: float = 0.02  # 20ms

    # ── Relationship queries ────────────────────────────────
    SHORTEST_PATH_MAX_HOPS: int = 6
    LIST_DEFAULT_PAGE_SIZE: int = 50
    LIST_MAX_PAGE_SIZE: int = 200

    # ── Logging ─────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s │ %(levelname)-7s │ %(name)s │ %(message)s"

    # ── Synthetic dataset generator ─────────────────────────
    DATAGEN_USERS: int = 10000
    DATAGEN_TRANSACTIONS: int = 100000
    DATAGEN_SHARED_ATTRIBUTE_CHANCE: float = 0.35
    DATAGEN_PAYMENT_SHARE_CHANCE: float = 0.25
    DATAGEN_IP_SHARE_CHANCE: float = 0.25
    DATAGEN_DEVICE_SHARE_CHANCE: float = 0.30
    DATAGEN_SEED: int = 42

    model_config = {"env_file": ".env", "case_sensitive": True}


settings = Settings()
