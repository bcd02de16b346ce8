"""Configuration management using pydantic-settings."""

import warnings
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EmbeddingProvider(str, Enum):
    """Embedding provider selection."""

    OPENAI = "openai"
    AZURE = "azure"


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_", case_sensitive=False)

    url: str = Field(
        default="http://localhost:6333", description="Qdrant connection URL"
    )
    api_key: Optional[str] = Field(
        default=None, description="Qdrant API key (for Qdrant Cloud). Env var: QDRANT_API_KEY"
    )
    timeout: int = Field(default=30, description="Request timeout in seconds")
    collection_name: str = Field(
        default="FINAL_RAG_COLLECTIONS",
        description="Name of the single collection backing the corpus. Env var: QDRANT_COLLECTION_NAME",
    )
    collection_create_delay_seconds: float = Field(
        default=1.0,
        description="Wait after creating a collection before it is used. "
        "Env var: QDRANT_COLLECTION_CREATE_DELAY_SECONDS",
    )


class EmbeddingSettings(BaseSettings):
    """Embedding configuration (provider-agnostic)."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    embedding_provider: EmbeddingProvider = Field(
        default=EmbeddingProvider.OPENAI,
        description="Embedding provider: openai or azure. Env var: EMBEDDING_PROVIDER",
    )

    # OpenAI (direct) embeddings
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key (direct) for embeddings. Env var: OPENAI_API_KEY",
    )
    openai_base_url: Optional[str] = Field(
        default=None,
        description="Optional OpenAI base URL (advanced). Env var: OPENAI_BASE_URL",
    )

    # Azure OpenAI embeddings (optional)
    azure_openai_endpoint: Optional[str] = Field(
        default=None, description="Azure OpenAI endpoint URL. Env var: AZURE_OPENAI_ENDPOINT"
    )
    azure_openai_api_key: Optional[str] = Field(
        default=None, description="Azure OpenAI API key. Env var: AZURE_OPENAI_API_KEY"
    )
    azure_openai_api_version: str = Field(
        default="2024-02-15-preview",
        description="Azure OpenAI API version. Env var: AZURE_OPENAI_API_VERSION",
    )

    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model name (OpenAI direct). Env var: EMBEDDING_MODEL",
    )
    embedding_deployment_name: Optional[str] = Field(
        default=None,
        description="Embedding deployment name (Azure OpenAI). Env var: EMBEDDING_DEPLOYMENT_NAME",
    )
    embedding_batch_size: int = Field(
        default=100,
        description="Batch size for embedding generation. Env var: EMBEDDING_BATCH_SIZE",
    )
    embedding_timeout: float = Field(
        default=30.0,
        description="Embedding request timeout in seconds. Env var: EMBEDDING_TIMEOUT",
    )
    embedding_max_retries: int = Field(
        default=3,
        description="Max attempts for embedding requests. Env var: EMBEDDING_MAX_RETRIES",
    )

    @property
    def provider(self) -> EmbeddingProvider:
        return self.embedding_provider

    @property
    def is_configured(self) -> bool:
        """Check if the selected embedding provider is configured."""
        if self.embedding_provider == EmbeddingProvider.OPENAI:
            return bool(self.openai_api_key)
        if self.embedding_provider == EmbeddingProvider.AZURE:
            return bool(
                self.azure_openai_endpoint
                and self.azure_openai_api_key
                and self.embedding_deployment_name
            )
        return False

    @property
    def resolved_model_name(self) -> str:
        """Get the effective model/deployment name to use for embeddings."""
        if self.embedding_provider == EmbeddingProvider.AZURE:
            return self.embedding_deployment_name or ""
        return self.embedding_model


class LLMSettings(BaseSettings):
    """LLM configuration for answer generation (LiteLLM model names)."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    default_model_name: str = Field(
        default="gpt-4o-mini",
        description="Default LLM model name (LiteLLM format). Env var: DEFAULT_MODEL_NAME",
    )
    fallback_model_name: Optional[str] = Field(
        default=None,
        description="Fallback LLM model name (LiteLLM format). Env var: FALLBACK_MODEL_NAME",
    )
    enable_fallbacks: bool = Field(
        default=True,
        description="Enable automatic fallback to secondary model on failure. Env var: ENABLE_FALLBACKS",
    )
    llm_temperature: float = Field(
        default=0.3, ge=0.0, le=2.0, description="Sampling temperature. Env var: LLM_TEMPERATURE"
    )
    llm_max_tokens: int = Field(
        default=8192, description="Maximum output tokens. Env var: LLM_MAX_TOKENS"
    )
    llm_max_retries: int = Field(
        default=3, description="Max attempts for non-streaming LLM calls. Env var: LLM_MAX_RETRIES"
    )

    # Provider keys, exported to the environment for LiteLLM
    openai_api_key: Optional[str] = Field(default=None, description="Env var: OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(default=None, description="Env var: ANTHROPIC_API_KEY")
    gemini_api_key: Optional[str] = Field(default=None, description="Env var: GEMINI_API_KEY")
    azure_api_key: Optional[str] = Field(default=None, description="Env var: AZURE_API_KEY")
    azure_api_base: Optional[str] = Field(default=None, description="Env var: AZURE_API_BASE")
    azure_api_version: Optional[str] = Field(default=None, description="Env var: AZURE_API_VERSION")

    @property
    def temperature(self) -> float:
        return self.llm_temperature

    @property
    def max_tokens(self) -> int:
        return self.llm_max_tokens


class ChunkingSettings(BaseSettings):
    """Text chunking configuration (sizes in characters)."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    chunk_size: int = Field(
        default=1000, description="Chunk size in characters. Env var: CHUNK_SIZE"
    )
    chunk_overlap: int = Field(
        default=200, description="Overlap between chunks in characters. Env var: CHUNK_OVERLAP"
    )

    @model_validator(mode="after")
    def validate_overlap(self) -> "ChunkingSettings":
        """Reject configurations that cannot make progress."""
        if self.chunk_size <= 0:
            raise ValueError("CHUNK_SIZE must be > 0")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("CHUNK_OVERLAP must be >= 0 and less than CHUNK_SIZE")
        return self


class RetrievalSettings(BaseSettings):
    """Retrieval, ingestion settling and streaming configuration."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    top_k: int = Field(default=5, ge=1, description="Chunks retrieved per question. Env var: TOP_K")
    ingest_settle_delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Fixed wait after upsert before the corpus is considered queryable. "
        "Env var: INGEST_SETTLE_DELAY_SECONDS",
    )
    stream_buffer_size: int = Field(
        default=32,
        ge=1,
        description="Fragments buffered between generation and the HTTP stream. Env var: STREAM_BUFFER_SIZE",
    )


class ServerSettings(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    host: str = Field(default="0.0.0.0", description="Server host. Env var: HOST")
    port: int = Field(default=8000, description="HTTP server port. Env var: PORT")
    reload: bool = Field(
        default=False, description="Enable auto-reload (development only). Env var: RELOAD"
    )


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="rag-service", description="Application name. Env var: APP_NAME")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment. Env var: ENVIRONMENT",
    )
    debug: bool = Field(default=False, description="Enable debug mode. Env var: DEBUG")
    log_level: str = Field(default="INFO", description="Logging level. Env var: LOG_LEVEL")

    # Sub-settings
    qdrant: Optional[QdrantSettings] = None
    embedding: Optional[EmbeddingSettings] = None
    llm: Optional[LLMSettings] = None
    chunking: Optional[ChunkingSettings] = None
    retrieval: Optional[RetrievalSettings] = None
    server: Optional[ServerSettings] = None

    @model_validator(mode="after")
    def initialize_nested_settings(self) -> "Settings":
        """Initialize nested settings to ensure they read from environment."""
        if self.qdrant is None:
            self.qdrant = QdrantSettings()
        if self.embedding is None:
            self.embedding = EmbeddingSettings()
        if self.llm is None:
            self.llm = LLMSettings()
        if self.chunking is None:
            self.chunking = ChunkingSettings()
        if self.retrieval is None:
            self.retrieval = RetrievalSettings()
        if self.server is None:
            self.server = ServerSettings()
        return self

    @field_validator("environment", mode="before")
    @classmethod
    def parse_environment(cls, v):
        """Parse environment from string."""
        if isinstance(v, str):
            try:
                return Environment(v.lower())
            except ValueError:
                return Environment.DEVELOPMENT
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    def validate_configuration(self) -> None:
        """Warn about capabilities that are not configured."""
        if not self.embedding.is_configured:
            warnings.warn(
                "Embeddings are not configured. For OpenAI direct set EMBEDDING_PROVIDER=openai and OPENAI_API_KEY. "
                "For Azure set EMBEDDING_PROVIDER=azure and AZURE_OPENAI_ENDPOINT/AZURE_OPENAI_API_KEY/"
                "EMBEDDING_DEPLOYMENT_NAME.",
                UserWarning,
            )

    def validate_production_settings(self) -> None:
        """Validate that production settings are secure."""
        if self.is_production:
            if self.debug:
                raise ValueError("DEBUG must be False in production")
            if not self.embedding.is_configured:
                raise ValueError("Embeddings must be configured in production.")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.validate_configuration()
        try:
            _settings.validate_production_settings()
        except ValueError as e:
            import logging

            logging.error(f"Configuration validation failed: {e}")
            if _settings.is_production:
                raise
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
