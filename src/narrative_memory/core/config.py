"""Configuration management."""

from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Marker wrapped around archived summaries in retrieved context, per locale.
SUMMARY_MARKERS: dict[str, str] = {
    "en": "Past summary",
    "fa": "خلاصه از گذشته",
}


class Settings(BaseSettings):
    # Chunking
    chunk_size: int = Field(default=250, gt=0, description="Words per active-tier chunk")
    chunk_overlap: int = Field(default=50, ge=0, description="Words shared by consecutive chunks")

    # Maintenance
    active_unit_ceiling: int = Field(default=20, ge=1, description="Distinct units kept in the active tier")
    archive_batch_size: int = Field(default=1, ge=1, description="Units requested for archival per pass")
    summarization_timeout_seconds: float = Field(
        default=300.0, gt=0, description="Seconds before a pending summarization is requested again"
    )

    # Retrieval
    k_active: int = Field(default=5, ge=0)
    k_archive: int = Field(default=2, ge=0)
    context_separator: str = "\n---\n"
    locale: str = "en"
    summary_marker: str | None = Field(default=None, description="Overrides the locale marker table")

    # Embeddings
    embedding_backend: Literal["voyage", "sentence-transformers", "hash"] = "sentence-transformers"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    voyage_api_key: SecretStr = SecretStr("")
    voyage_model: str = "voyage-3"

    # Neo4j
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: SecretStr = SecretStr("password")

    # App config
    log_level: str = "INFO"
    log_json: bool = False
    event_queue_size: int = Field(default=1000, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="MEMORY_",
        env_file=".env",
        extra="ignore",  # Ignore extra fields in .env file
    )

    @model_validator(mode="after")
    def check_chunk_window(self) -> Self:
        # A window that does not advance would never terminate.
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        return self

    @property
    def marker(self) -> str:
        """Marker used when wrapping archive summaries into context."""
        if self.summary_marker:
            return self.summary_marker
        return SUMMARY_MARKERS.get(self.locale, SUMMARY_MARKERS["en"])


settings = Settings()
