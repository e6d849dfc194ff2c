"""
Core configuration settings for the RAG knowledge base.
"""
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from pathlib import Path


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database
    database_url: str = "sqlite:///./data/metadata.db"

    # OpenAI
    openai_api_key: str
    # LLM configuration
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 1000

    # Vector Database
    chroma_persist_directory: str = "./chroma_db"
    chroma_collection_name: str = "documents"
    embedding_model: str = "text-embedding-3-small"

    # File Storage
    upload_dir: str = "./uploads"
    max_file_size: int = 10485760  # 10MB (10 * 1024 * 1024)
    allowed_extensions: List[str] = [".pdf", ".md", ".markdown", ".txt"]

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # Query cache
    cache_ttl: float = 3600  # seconds
    cache_max_size: int = 100

    # Status tracking
    status_max_events: int = 100
    status_subscriber_queue_size: int = 100

    # Background ingestion
    ingestion_workers: int = 2

    # CORS
    allowed_origins: List[str] = ["*"]

    # Development
    debug: bool = True
    log_level: str = "INFO"

    # Error Logging
    error_logging: int = 1  # 1 = local file, 2 = Sentry
    error_log_dir: str = "./logs"
    sentry_dsn: str = ""

    # API
    api_v1_str: str = "/api"
    project_name: str = "RAG Knowledge Base"
    port: int = 3000

    @field_validator("allowed_origins", "allowed_extensions", mode="before")
    def assemble_list(cls, v):
        if isinstance(v, str):
            # Handle both comma-separated and JSON array formats
            if v.startswith('[') and v.endswith(']'):
                import json
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    @field_validator("allowed_extensions")
    def normalize_extensions(cls, v):
        """Store extensions lower-cased with a leading dot."""
        return [e.lower() if e.startswith(".") else f".{e.lower()}" for e in v]

    @field_validator("upload_dir")
    def create_upload_dir(cls, v):
        """Create upload directory if it doesn't exist."""
        Path(v).mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("chroma_persist_directory")
    def create_chroma_dir(cls, v):
        """Create Chroma directory if it doesn't exist."""
        Path(v).mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("error_log_dir")
    def create_error_log_dir(cls, v):
        """Create error log directory if it doesn't exist."""
        Path(v).mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def check_chunking(self):
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be non-negative and smaller than chunk_size")
        return self

    # Pydantic v2 settings config
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


# Global settings instance
settings = Settings()
