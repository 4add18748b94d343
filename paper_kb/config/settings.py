from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
        env_prefix="PAPERKB_"
    )


    # ------------------------------------------------------------------
    # Core paths / services
    # ------------------------------------------------------------------
    DATA_DIR: Path = Field(
        default=Path("data"),
        description="Base data directory for the database, raw blobs and indexes.",
    )

    DATABASE_PATH: Optional[Path] = Field(
        default=None,
        description="SQLite database file. Defaults to DATA_DIR/paper_kb.sqlite3.",
    )

    VECTOR_INDEX_PATH: Optional[Path] = Field(
        default=None,
        description="Pickled vector index snapshot. Defaults to DATA_DIR/vectors.pkl.",
    )

    # ------------------------------------------------------------------
    # External catalog (arXiv)
    # ------------------------------------------------------------------
    ARXIV_API_URL: str = Field(
        default="https://export.arxiv.org/api/query",
        description="arXiv Atom API endpoint used for metadata and search.",
    )

    ARXIV_HTML_URL: str = Field(
        default="https://ar5iv.labs.arxiv.org/html",
        description="Base URL for the structured HTML rendering of a paper.",
    )

    ARXIV_PDF_URL: str = Field(
        default="https://arxiv.org/pdf",
        description="Base URL for the raw PDF of a paper.",
    )

    ARXIV_OAI_URL: str = Field(
        default="https://export.arxiv.org/oai2",
        description="arXiv OAI-PMH endpoint used by the discovery sweep.",
    )

    HTTP_TIMEOUT: int = Field(
        default=30,
        description="Timeout in seconds for catalog / content requests.",
    )

    OAI_REQUEST_DELAY: float = Field(
        default=3.0,
        description="Seconds to wait between OAI-PMH requests (arXiv politeness).",
    )

    ARXIV_CATEGORIES: str = Field(
        default="",
        description="Comma-separated arXiv categories swept by the scheduled job.",
    )

    # ------------------------------------------------------------------
    # LLM
    # ------------------------------------------------------------------
    LLM_BASE_URL: str = Field(
        default="http://localhost:11434/v1",
        description="OpenAI-compatible base URL (Ollama, LM Studio, vLLM, ...).",
    )

    LLM_MODEL: str = Field(
        default="llama3.1:8b",
        description="Chat model used for knowledge extraction.",
    )

    LLM_API_KEY: Optional[SecretStr] = Field(
        default=None,
        description="Bearer token for the LLM endpoint, if it needs one.",
    )

    LLM_TEMPERATURE: float = Field(default=0.1)

    LLM_TIMEOUT: int = Field(
        default=120,
        description="Timeout in seconds for a single LLM call.",
    )

    # ------------------------------------------------------------------
    # NLP / models
    # ------------------------------------------------------------------
    SENTENCE_MODEL_NAME: str = Field(
        default="all-MiniLM-L6-v2",
        description="SentenceTransformer model name for embeddings.",
    )

    EMBEDDING_DEVICE: str = Field(
        default="auto",
        description="Device for embedding model: 'auto', 'cpu', or 'cuda'.",
    )

    EMBEDDING_BATCH_SIZE: int = Field(
        default=32,
        description="Batch size for embedding computation.",
    )

    # ------------------------------------------------------------------
    # Pipeline knobs
    # ------------------------------------------------------------------
    EXTRACTION_MAX_SECTIONS: int = Field(
        default=10,
        description="Only the first N sections of a paper are sent to the LLM.",
    )

    EXTRACTION_MAX_CHARS: int = Field(
        default=4000,
        description="Maximum number of characters of a section put into the prompt.",
    )

    EMBEDDING_MAX_SECTIONS: int = Field(
        default=100,
        description="Maximum number of sections embedded per paper.",
    )

    EMBEDDING_MAX_CHARS: int = Field(
        default=8000,
        description="Section bodies are truncated to this many characters before embedding.",
    )

    BATCH_MAX_PAPERS: int = Field(
        default=50,
        description="Upper bound on the number of IDs handled by one batch submit.",
    )

    QUEUE_MAX_ATTEMPTS: int = Field(
        default=3,
        description="Deliveries of a failing message before it is dead-lettered.",
    )

    RRF_K: int = Field(
        default=60,
        description="Reciprocal Rank Fusion constant.",
    )

    LOG_LEVEL: str = Field(default="INFO")

    # ------------------------------------------------------------------
    # Convenience derived paths
    # ------------------------------------------------------------------
    @property
    def raw_dir(self) -> Path:
        return self.DATA_DIR / "raw"

    @property
    def graph_dir(self) -> Path:
        return self.DATA_DIR / "graph"

    @property
    def database_path(self) -> Path:
        return self.DATABASE_PATH or self.DATA_DIR / "paper_kb.sqlite3"

    @property
    def vector_index_path(self) -> Path:
        return self.VECTOR_INDEX_PATH or self.DATA_DIR / "vectors.pkl"

    @property
    def arxiv_categories(self) -> List[str]:
        return [c.strip() for c in self.ARXIV_CATEGORIES.split(",") if c.strip()]


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Singleton-style accessor so we only construct Settings once and
    ensure directories exist on first access.
    """
    global _settings
    if _settings is None:
        _settings = Settings()

        _settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
        _settings.raw_dir.mkdir(parents=True, exist_ok=True)
        _settings.graph_dir.mkdir(parents=True, exist_ok=True)

    return _settings


def reset_settings() -> None:
    """Drop the cached Settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None


settings = get_settings()
