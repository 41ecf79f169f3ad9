"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values are read from two sources, in priority order:
#
#   1. **Environment variables** -- e.g. GUIDEBASE_MAX_CHUNK_TOKENS=800
#   2. **.env file** -- key=value lines in the project root .env file
#
# Field ``max_chunk_tokens`` maps to ``GUIDEBASE_MAX_CHUNK_TOKENS``.
# Defaults apply when neither source sets a value.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """guidebase settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="GUIDEBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Storage ===
    # Created on startup; the store paths below normally live inside it.
    data_dir: str = "data"
    sqlite_path: str = "data/guides.db"
    object_store_dir: str = "data/objects"
    chromadb_persist_dir: str = "data/chromadb"
    chromadb_collection: str = "guides"

    # === Embedding ===
    embedding_model: str = "BAAI/bge-small-en-v1.5"

    # === Chunking ===
    # Soft ceiling -- a single paragraph larger than this still becomes one chunk.
    max_chunk_tokens: int = Field(default=1000, ge=1)
    frameworks: list[str] = ["qwik", "react", "vue", "angular", "svelte"]
    languages: list[str] = ["typescript", "javascript", "python", "go", "sql"]

    # === Search ===
    # Multiplier applied to normalised keyword scores before merging.
    keyword_boost: float = Field(default=1.1, gt=0.0)
    default_search_limit: int = Field(default=5, ge=1)

    # === Ingestion ===
    ingest_concurrency: int = Field(default=1, ge=1)

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
