"""Exception classes raised by the embedding manager"""

from typing import Optional, Union


class EmbeddingError(Exception):
    """Base exception for all embedding errors"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class EmbeddingDisposedError(EmbeddingError):
    """Raised when the manager has been shut down; not retryable"""

    def __init__(self, model: Optional[str] = None):
        message = "Embedding manager has been disposed"
        if model:
            message += f" (model '{model}')"
        super().__init__(message)
        self.model = model


class EmbeddingLoadError(EmbeddingError):
    """Raised when the model cannot be loaded or its context created"""

    def __init__(self, model: str, gpu_layers: Union[int, str], reason: str = ""):
        message = f"Embedding model unavailable: '{model}' (gpu_layers={gpu_layers})"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.model = model
        self.gpu_layers = gpu_layers
        self.reason = reason


class EmbeddingInferenceError(EmbeddingError):
    """Raised when computing a single embedding fails"""

    def __init__(self, model: str, reason: str):
        super().__init__(f"Embedding inference failed for '{model}': {reason}")
        self.model = model
        self.reason = reason
