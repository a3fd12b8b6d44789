"""
Configuration management with validation.

Centralized embedding service settings loaded from environment variables.
Uses Pydantic for validation and type safety.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Embedding service settings with validation.

    All settings can be overridden via environment variables or a `.env` file.
    Nothing is created on disk here; the embedding manager touches storage
    only when a model is actually loaded.
    """

    # =========================================================================
    # PATHS
    # =========================================================================
    MODELS_DIR: Path = Field(
        default=Path("~/.edge_rag/models"),
        description="Directory containing GGUF embedding model files",
    )
    EMBEDDING_META_PATH: Path = Field(
        default=Path("~/.edge_rag/state/embedding-meta.json"),
        description="Location of the embedding dimension metadata record",
    )

    # =========================================================================
    # EMBEDDING MODEL
    # =========================================================================
    EMBEDDING_MODEL: str = Field(
        default="nomic-embed-text-v1.5.Q5_K_M.gguf",
        description="GGUF embedding model file name inside MODELS_DIR",
    )
    EMBEDDING_DIM: int = Field(
        default=768, gt=0,
        description="Embedding vector dimension",
    )
    EMBEDDING_GPU_LAYERS: Optional[Union[int, Literal["auto"]]] = Field(
        default=None,
        description="Layers offloaded to the GPU ('auto', 0 for CPU-only, "
                    "unset for the platform default)",
    )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    EMBEDDING_IDLE_TIMEOUT_MS: int = Field(
        default=30 * 60 * 1000, ge=0,
        description="Unload the model after this much inactivity (0 disables)",
    )
    EMBEDDING_IDLE_CHECK_INTERVAL_MS: int = Field(
        default=60 * 1000, gt=0,
        description="How often the idle check runs",
    )

    # =========================================================================
    # MONITORING
    # =========================================================================
    ENABLE_METRICS: bool = Field(
        default=True,
        description="Enable Prometheus metrics server",
    )
    METRICS_PORT: int = Field(
        default=8001, ge=1024, le=65535,
        description="Port for metrics endpoint",
    )
    LOG_FORMAT: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @validator("MODELS_DIR", "EMBEDDING_META_PATH")
    def expand_user(cls, v: Path) -> Path:
        """Expand a leading ``~`` in path settings."""
        return Path(v).expanduser()

    @validator("EMBEDDING_GPU_LAYERS")
    def validate_gpu_layers(cls, v):
        """Reject negative layer counts; 'auto' is the only sentinel."""
        if isinstance(v, int) and v < 0:
            raise ValueError("EMBEDDING_GPU_LAYERS must be >= 0 or 'auto'")
        return v


# Global settings instance (singleton)
settings = Settings()
