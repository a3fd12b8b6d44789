"""
Core embedding components.

This module provides the building blocks of the local embedding service:
- Manager configuration and platform defaults
- The native inference binding (llama.cpp)
- The embedding manager with lazy loading and idle eviction
- The embedding error taxonomy
"""

from core.binding import InferenceBinding, LlamaCppBinding
from core.config import ManagerConfig, default_gpu_layers
from core.embeddings import (
    EmbeddingManager,
    EmbeddingStats,
    ManagerState,
    dispose_embedding_manager,
    get_embedding_manager,
)
from core.exceptions import (
    EmbeddingDisposedError,
    EmbeddingError,
    EmbeddingInferenceError,
    EmbeddingLoadError,
)

__all__ = [
    # Configuration
    "ManagerConfig",
    "default_gpu_layers",
    # Binding
    "InferenceBinding",
    "LlamaCppBinding",
    # Manager
    "EmbeddingManager",
    "EmbeddingStats",
    "ManagerState",
    "get_embedding_manager",
    "dispose_embedding_manager",
    # Errors
    "EmbeddingError",
    "EmbeddingDisposedError",
    "EmbeddingLoadError",
    "EmbeddingInferenceError",
]
