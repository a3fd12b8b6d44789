"""
Embedding manager configuration.

Holds the immutable per-process configuration of the embedding manager and
the platform default for GPU layer offloading.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Optional, Union

from pydantic import BaseModel, Field, validator

if TYPE_CHECKING:
    from config.settings import Settings

DEFAULT_MODEL = "nomic-embed-text-v1.5.Q5_K_M.gguf"
DEFAULT_DIMENSIONS = 768
DEFAULT_IDLE_TIMEOUT_MS = 30 * 60 * 1000
DEFAULT_IDLE_CHECK_INTERVAL_MS = 60 * 1000
DEFAULT_METADATA_PATH = Path.home() / ".edge_rag" / "state" / "embedding-meta.json"

# Let llama.cpp decide how many layers to offload.
GPU_LAYERS_AUTO = "auto"

GpuLayers = Union[int, Literal["auto"]]


def default_gpu_layers() -> GpuLayers:
    """
    Default GPU layer count for the host platform.

    Apple Silicon hosts get Metal offloading through the 'auto' sentinel;
    every other platform runs CPU-only unless configured otherwise.

    Returns:
        'auto' on macOS, 0 elsewhere.
    """
    if sys.platform == "darwin":
        return GPU_LAYERS_AUTO
    return 0


class ManagerConfig(BaseModel):
    """
    Immutable embedding manager configuration.

    Attributes:
        model: Model file name inside ``models_dir``.
        models_dir: Directory holding the model files.
        dimensions: Expected embedding vector length.
        gpu_layers: Layers offloaded to the GPU, or 'auto'. Left unset, it
            resolves to the platform default at construction.
        idle_timeout_ms: Inactivity before the model is unloaded (0 disables).
        idle_check_interval_ms: Polling interval of the idle check.
        metadata_path: Location of the dimension metadata record.
    """

    model: str = Field(default=DEFAULT_MODEL, min_length=1)
    models_dir: Path
    dimensions: int = Field(default=DEFAULT_DIMENSIONS, gt=0)
    gpu_layers: Optional[GpuLayers] = Field(default=None, validate_default=True)
    idle_timeout_ms: int = Field(default=DEFAULT_IDLE_TIMEOUT_MS, ge=0)
    idle_check_interval_ms: int = Field(default=DEFAULT_IDLE_CHECK_INTERVAL_MS, gt=0)
    metadata_path: Path = DEFAULT_METADATA_PATH

    class Config:
        """Pydantic configuration."""
        frozen = True

    @validator("gpu_layers", pre=True, always=True)
    def resolve_gpu_layers(cls, v):
        """Fill in the platform default when unset."""
        if v is None:
            return default_gpu_layers()
        return v

    @validator("gpu_layers")
    def check_gpu_layers(cls, v):
        """Reject negative counts once strings like '-1' have been coerced."""
        if isinstance(v, int) and v < 0:
            raise ValueError("gpu_layers must be >= 0 or 'auto'")
        return v

    @property
    def model_path(self) -> Path:
        """Full path of the model file."""
        return Path(self.models_dir) / self.model

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ManagerConfig":
        """
        Build a configuration from application settings.

        Args:
            settings: Loaded application settings.

        Returns:
            The matching ManagerConfig.
        """
        return cls(
            model=settings.EMBEDDING_MODEL,
            models_dir=settings.MODELS_DIR,
            dimensions=settings.EMBEDDING_DIM,
            gpu_layers=settings.EMBEDDING_GPU_LAYERS,
            idle_timeout_ms=settings.EMBEDDING_IDLE_TIMEOUT_MS,
            idle_check_interval_ms=settings.EMBEDDING_IDLE_CHECK_INTERVAL_MS,
            metadata_path=settings.EMBEDDING_META_PATH,
        )
