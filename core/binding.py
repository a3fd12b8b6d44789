"""
Native inference binding.

Defines the handle interfaces the embedding manager drives (load a model,
create an embedding context, embed text, release) and the llama.cpp
implementation used in production. Handles are released explicitly: the
context first, then the model that owns it.

llama-cpp-python keeps the weights and the inference context inside one
``Llama`` object, so the llama.cpp handles share it: releasing the context
only clears its evaluation state, and ``Llama.close()`` on model release
frees both the context and the weights.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence, Union

from llama_cpp import Llama

logger = logging.getLogger(__name__)


class ContextHandle(ABC):
    """An embedding context created from a loaded model."""

    @abstractmethod
    def embed(self, text: str) -> Sequence[float]:
        """
        Compute the embedding vector for a piece of text.

        Args:
            text: Input text.

        Returns:
            Raw embedding vector.
        """
        pass

    @abstractmethod
    def release(self) -> None:
        """Release the native context. Must run before the model's release."""
        pass


class ModelHandle(ABC):
    """A model loaded into memory by the native runtime."""

    @abstractmethod
    def create_embedding_context(self) -> ContextHandle:
        """
        Create an embedding context bound to this model.

        Returns:
            A context handle owned by the caller.
        """
        pass

    @abstractmethod
    def release(self) -> None:
        """Release the native model."""
        pass


class InferenceBinding(ABC):
    """Entry point to a native inference runtime."""

    @abstractmethod
    def load_model(self, path: Path, gpu_layers: Union[int, str]) -> ModelHandle:
        """
        Load a model file.

        Args:
            path: Path of the model file.
            gpu_layers: Layers to offload to the GPU, or 'auto'.

        Returns:
            A model handle owned by the caller.
        """
        pass


def to_n_gpu_layers(gpu_layers: Union[int, str]) -> int:
    """Translate a configured layer count into llama.cpp's ``n_gpu_layers``."""
    if gpu_layers == "auto":
        return -1  # offload every layer the backend supports
    return int(gpu_layers)


class LlamaCppContext(ContextHandle):
    """
    Embedding context over a ``llama_cpp.Llama`` instance.

    The native context belongs to the shared ``Llama`` object and is freed
    by LlamaCppModel.release(); release() here only resets token state.
    """

    def __init__(self, llama: Llama):
        self._llama = llama

    def embed(self, text: str) -> List[float]:
        vector = self._llama.embed(text)
        if vector and isinstance(vector[0], list):
            raise ValueError(
                "Model returned per-token embeddings; a pooled model is required"
            )
        return vector

    def release(self) -> None:
        # Nothing to free yet; the owning model closes the native context
        self._llama.reset()


class LlamaCppModel(ModelHandle):
    """A GGUF model loaded in embedding mode."""

    def __init__(self, llama: Llama):
        self._llama = llama

    def create_embedding_context(self) -> LlamaCppContext:
        logger.debug(f"Creating embedding context (n_embd={self._llama.n_embd()})")
        return LlamaCppContext(self._llama)

    def release(self) -> None:
        """Free the native context and the model weights."""
        self._llama.close()


class LlamaCppBinding(InferenceBinding):
    """
    llama-cpp-python backed inference binding.

    Attributes:
        n_threads: CPU threads used for inference (None lets llama.cpp decide).
        n_ctx: Context window in tokens (0 uses the model's trained size).
    """

    def __init__(self, n_threads: int = None, n_ctx: int = 0):
        self.n_threads = n_threads
        self.n_ctx = n_ctx

    def load_model(self, path: Path, gpu_layers: Union[int, str]) -> LlamaCppModel:
        llama = Llama(
            model_path=str(path),
            embedding=True,
            n_gpu_layers=to_n_gpu_layers(gpu_layers),
            n_threads=self.n_threads,
            n_ctx=self.n_ctx,
            use_mmap=True,  # Map weights instead of copying them into RAM
            verbose=False,
        )
        return LlamaCppModel(llama)
