"""Application settings loaded from environment variables via pydantic-settings.

Values come from (highest priority first) environment variables, then a
``.env`` file in the working directory, then the defaults below.  Field
``openai_api_key`` maps to ``OPENAI_API_KEY`` and so on.

The ``*_config()`` helpers turn the flat settings into the explicit,
frozen domain config objects the services take, so no service reads
environment variables on its own.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from ragline.models.chunk import ChunkingConfig, ChunkStrategy
from ragline.models.embedding import EmbeddingConfig
from ragline.models.retrieval import ComposerConfig
from ragline.utils.retry import RetryPolicy

# Default model per embedding provider key, used when EMBEDDING_MODEL is unset.
DEFAULT_EMBEDDING_MODELS: dict[str, str] = {
    "openai": "text-embedding-3-small",
    "cohere": "embed-english-v3.0",
    "huggingface": "sentence-transformers/all-MiniLM-L6-v2",
}


class Settings(BaseSettings):
    """ragline settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Provider credentials ===
    # Empty string = "not configured".
    openai_api_key: str = ""
    openai_base_url: str = ""
    cohere_api_key: str = ""
    huggingface_api_key: str = ""

    # === Embedding ===
    embedding_provider: str = "openai"
    embedding_model: str = ""
    embedding_batch_size: int = 10
    embedding_batch_delay: float = 0.1
    embedding_timeout: float = 15.0
    similarity_threshold: float = 0.7

    # === Chat completion ===
    chat_model: str = "gpt-4o-mini"
    chat_temperature: float = 0.7
    chat_max_tokens: int = 2000
    chat_timeout: float = 15.0
    chat_system_prompt: str = "You are a helpful assistant."

    # === Chunking ===
    chunk_strategy: str = "fixed_size"
    chunk_size: int = 1000
    chunk_overlap: int = 200
    chunk_min_size: int = 50
    chunk_preserve_sentences: bool = True

    # === Extraction / network ===
    extraction_timeout: float = 25.0
    fetch_timeout: float = 30.0
    retry_max_attempts: int = 3
    retry_base_delay: float = 0.75
    retry_max_delay: float = 3.0

    # === Storage ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "ragline_embeddings"
    document_db_path: str = "data/documents.db"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def embedding_api_key(self, provider: str | None = None) -> str:
        """Return the credential configured for *provider* (default: the active one)."""
        provider = provider or self.embedding_provider
        return {
            "openai": self.openai_api_key,
            "cohere": self.cohere_api_key,
            "huggingface": self.huggingface_api_key,
        }.get(provider, "")

    def embedding_config(self) -> EmbeddingConfig:
        provider = self.embedding_provider
        return EmbeddingConfig(
            provider=provider,
            model=self.embedding_model or DEFAULT_EMBEDDING_MODELS.get(provider, ""),
            api_key=self.embedding_api_key(provider),
            base_url=self.openai_base_url if provider == "openai" else "",
            batch_size=self.embedding_batch_size,
            batch_delay=self.embedding_batch_delay,
            similarity_threshold=self.similarity_threshold,
            request_timeout=self.embedding_timeout,
        )

    def chunking_config(self) -> ChunkingConfig:
        return ChunkingConfig(
            strategy=ChunkStrategy(self.chunk_strategy),
            chunk_size=self.chunk_size,
            overlap=self.chunk_overlap,
            preserve_sentence_boundaries=self.chunk_preserve_sentences,
            min_chunk_size=self.chunk_min_size,
        )

    def composer_config(self) -> ComposerConfig:
        return ComposerConfig(
            system_prompt=self.chat_system_prompt,
            temperature=self.chat_temperature,
            max_tokens=self.chat_max_tokens,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
        )

    def get_available_embedding_providers(self) -> list[str]:
        """Return embedding provider keys that have credentials configured."""
        return [key for key in DEFAULT_EMBEDDING_MODELS if self.embedding_api_key(key)]
