"""
Embedding model management.

Loads a local GGUF embedding model on first use, serves embedding requests
against it, and unloads it again after a period of inactivity to give the
memory back on resource-constrained devices.

Lifecycle:
    UNLOADED -> LOADING -> LOADED -> (idle) UNLOADED -> ...
    any state -> DISPOSED (terminal)

A single lock serializes every state transition and every use of the native
handles. Loading itself runs outside the lock; concurrent callers wait on
the same future so only one load is ever in flight.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import Future
from enum import Enum
from typing import Callable, List, NamedTuple, Optional, Union

from config import settings
from core.binding import ContextHandle, InferenceBinding, LlamaCppBinding, ModelHandle
from core.config import ManagerConfig
from core.exceptions import (
    EmbeddingDisposedError,
    EmbeddingInferenceError,
    EmbeddingLoadError,
)
from monitoring.metrics import (
    record_model_load,
    record_model_unload,
    track_embedding_metrics,
    update_memory_usage,
)
from storage.metadata_store import EmbeddingMetadata, MetadataStore
from utils.memory_manager import describe_memory_usage, reclaim_memory

logger = logging.getLogger(__name__)


class ManagerState(str, Enum):
    """Runtime state of the embedding manager."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    DISPOSED = "disposed"


class EmbeddingStats(NamedTuple):
    """Read-only snapshot of the manager."""

    model: str
    dimensions: int
    gpu_layers: Union[int, str]
    is_loaded: bool
    last_used_at: Optional[float]  # epoch milliseconds


class EmbeddingManager:
    """
    Manages the embedding model lifecycle with lazy loading and idle eviction.

    The model is loaded on the first embedding request and kept in memory
    while it is being used. A background thread unloads it once it has been
    idle for ``idle_timeout_ms``; the next request loads it again.

    Attributes:
        config: Immutable manager configuration.
    """

    def __init__(
        self,
        config: ManagerConfig,
        binding: Optional[InferenceBinding] = None,
        metadata_store: Optional[MetadataStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Set up the manager in the unloaded state.

        Nothing is loaded and nothing is read from disk here.

        Args:
            config: Manager configuration.
            binding: Native inference binding (llama.cpp by default).
            metadata_store: Store for the dimension metadata record.
            clock: Returns the current time in seconds since the epoch.
        """
        self.config = config
        self._binding = binding or LlamaCppBinding()
        self._metadata_store = metadata_store or MetadataStore(config.metadata_path)
        self._clock = clock

        self._lock = threading.Lock()
        self._state = ManagerState.UNLOADED
        self._loading: Optional[Future] = None
        self._model: Optional[ModelHandle] = None
        self._context: Optional[ContextHandle] = None
        self._last_used_at: Optional[float] = None
        self._metadata_checked = False

        self._stop_idle = threading.Event()
        self._idle_thread: Optional[threading.Thread] = None
        if config.idle_timeout_ms > 0:
            self._start_idle_thread()

    def __enter__(self) -> "EmbeddingManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @track_embedding_metrics
    def generate_embedding(self, text: str) -> List[float]:
        """
        Embed a piece of text, loading the model first if needed.

        Empty text is passed to the model unchanged.

        Args:
            text: Input text.

        Returns:
            Embedding vector with exactly ``config.dimensions`` values.

        Raises:
            EmbeddingDisposedError: If the manager has been disposed.
            EmbeddingLoadError: If the model could not be loaded.
            EmbeddingInferenceError: If embedding this input failed.
        """
        while True:
            with self._lock:
                if self._state is ManagerState.DISPOSED:
                    raise EmbeddingDisposedError(self.config.model)
                if self._state is ManagerState.LOADED:
                    return self._embed_locked(text)

                if self._state is ManagerState.LOADING:
                    pending = self._loading
                    owner = False
                else:
                    pending = Future()
                    self._loading = pending
                    self._state = ManagerState.LOADING
                    owner = True

            if owner:
                self._load(pending)
            else:
                logger.debug("Waiting for in-flight embedding model load")

            # Re-raises the load error for every waiter
            pending.result()

    async def agenerate_embedding(self, text: str) -> List[float]:
        """
        Async variant of generate_embedding for event-loop callers.

        The blocking work runs in a worker thread.
        """
        return await asyncio.to_thread(self.generate_embedding, text)

    def stats(self) -> EmbeddingStats:
        """
        Snapshot of the manager. Never blocks and never loads.

        Returns:
            EmbeddingStats for the current state.
        """
        return EmbeddingStats(
            model=self.config.model,
            dimensions=self.config.dimensions,
            gpu_layers=self.config.gpu_layers,
            is_loaded=self._state is ManagerState.LOADED,
            last_used_at=self._last_used_at,
        )

    def is_loaded(self) -> bool:
        """Whether the model is currently loaded."""
        return self._state is ManagerState.LOADED

    @property
    def state(self) -> ManagerState:
        return self._state

    def check_idle(self) -> bool:
        """
        Unload the model if it has been idle longer than the timeout.

        Runs under the same lock as inference, so a request that is still
        using the model can never be evicted.

        Returns:
            True if the model was unloaded.
        """
        timeout_ms = self.config.idle_timeout_ms
        if timeout_ms <= 0:
            return False

        with self._lock:
            if self._state is not ManagerState.LOADED or self._last_used_at is None:
                return False

            idle_ms = self._now_ms() - self._last_used_at
            if idle_ms <= timeout_ms:
                return False

            logger.info(
                f"Embedding model idle for {idle_ms / 1000:.0f}s "
                f"(timeout {timeout_ms / 1000:.0f}s), unloading"
            )
            self._release_locked(reason="idle")
            self._state = ManagerState.UNLOADED

        self._after_release()
        return True

    def dispose(self) -> None:
        """
        Release the model and shut the manager down for good.

        Idempotent. Any later generate_embedding call fails with
        EmbeddingDisposedError.
        """
        self._stop_idle.set()
        thread = self._idle_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

        with self._lock:
            if self._state is ManagerState.DISPOSED:
                return
            was_loaded = self._state is ManagerState.LOADED
            if was_loaded:
                self._release_locked(reason="dispose")
            self._state = ManagerState.DISPOSED

        if was_loaded:
            self._after_release()
        logger.info(f"Embedding manager disposed (model={self.config.model})")

    # =========================================================================
    # LOADING
    # =========================================================================

    def _load(self, pending: Future) -> None:
        """Load the model and its context, then resolve ``pending``."""
        model_name = self.config.model
        gpu_layers = self.config.gpu_layers
        model_path = self.config.model_path

        logger.info(f"Loading embedding model: {model_name} (gpu_layers={gpu_layers})")
        start_time = time.time()

        model: Optional[ModelHandle] = None
        context: Optional[ContextHandle] = None
        try:
            if not model_path.is_file():
                raise FileNotFoundError(f"model file not found at {model_path}")
            model = self._binding.load_model(model_path, gpu_layers)
            context = model.create_embedding_context()
        except Exception as e:
            self._release_handles(context, model)
            error = EmbeddingLoadError(model_name, gpu_layers, str(e))
            error.__cause__ = e
            logger.error(f"Failed to load embedding model: {error}")

            with self._lock:
                self._loading = None
                if self._state is ManagerState.DISPOSED:
                    error = EmbeddingDisposedError(model_name)
                else:
                    self._state = ManagerState.UNLOADED
            pending.set_exception(error)
            return
        except BaseException as e:
            # Interrupted load: unblock waiters, then let the interrupt through
            self._release_handles(context, model)
            logger.error(f"Embedding model load aborted: {type(e).__name__}")
            with self._lock:
                self._loading = None
                if self._state is ManagerState.DISPOSED:
                    error = EmbeddingDisposedError(model_name)
                else:
                    self._state = ManagerState.UNLOADED
                    error = EmbeddingLoadError(
                        model_name, gpu_layers, f"load aborted ({type(e).__name__})"
                    )
            pending.set_exception(error)
            raise

        with self._lock:
            self._loading = None
            disposed = self._state is ManagerState.DISPOSED
            if not disposed:
                self._model = model
                self._context = context
                self._state = ManagerState.LOADED
                self._touch()

        if disposed:
            logger.info("Manager disposed during model load, releasing fresh model")
            self._release_handles(context, model)
            pending.set_exception(EmbeddingDisposedError(model_name))
            return

        elapsed = time.time() - start_time
        record_model_load(elapsed)
        logger.info(
            f"Embedding model loaded in {elapsed:.1f}s "
            f"(dim={self.config.dimensions}, {describe_memory_usage()})"
        )

        self._check_dimension_migration()
        pending.set_result(None)

    def _check_dimension_migration(self) -> None:
        """
        Compare the configured dimension with the stored metadata record.

        Logs a warning and rewrites the record when the dimension changed or
        no record exists. Runs once per manager; never raises.
        """
        if self._metadata_checked:
            return
        self._metadata_checked = True

        model_name = self.config.model
        dimensions = self.config.dimensions

        try:
            stored = self._metadata_store.read()

            if stored is None or stored.dimensions != dimensions:
                old_dimensions = stored.dimensions if stored else "none"
                old_model = stored.model if stored else "none"
                logger.warning(
                    f"Embedding dimensions changed ({old_dimensions} → {dimensions}), "
                    f"model {old_model} → {model_name}. Vectors stored with the "
                    f"previous model are incompatible and should be re-indexed."
                )
            elif stored.model != model_name:
                logger.info(
                    f"Embedding model changed ({stored.model} → {model_name}) "
                    f"with unchanged dimensions ({dimensions})"
                )
            else:
                return

            self._metadata_store.write(EmbeddingMetadata.now(model_name, dimensions))
        except Exception as e:
            logger.warning(f"Embedding metadata check failed (non-critical): {e}")

    # =========================================================================
    # INFERENCE
    # =========================================================================

    def _embed_locked(self, text: str) -> List[float]:
        """Run inference on the loaded context. Caller holds the lock."""
        try:
            raw = self._context.embed(text)
        except Exception as e:
            logger.error(f"Embedding inference failed: {e}")
            raise EmbeddingInferenceError(self.config.model, str(e)) from e

        vector = [float(x) for x in raw]
        if len(vector) != self.config.dimensions:
            raise EmbeddingInferenceError(
                self.config.model,
                f"expected {self.config.dimensions} dimensions, got {len(vector)}",
            )

        self._touch()
        return vector

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def _touch(self) -> None:
        """Advance last_used_at, never moving it backwards."""
        now = self._now_ms()
        if self._last_used_at is None or now > self._last_used_at:
            self._last_used_at = now

    # =========================================================================
    # RELEASE
    # =========================================================================

    def _release_locked(self, reason: str) -> None:
        """Release the loaded handles. Caller holds the lock."""
        context, model = self._context, self._model
        self._context = None
        self._model = None
        self._release_handles(context, model)
        record_model_unload(reason)
        logger.info(f"Embedding model released ({reason})")

    def _release_handles(
        self,
        context: Optional[ContextHandle],
        model: Optional[ModelHandle],
    ) -> None:
        """Release a context and then its model, logging release failures."""
        if context is not None:
            try:
                context.release()
            except Exception as e:
                logger.error(f"Failed to release embedding context: {e}")
        if model is not None:
            try:
                model.release()
            except Exception as e:
                logger.error(f"Failed to release embedding model: {e}")

    def _after_release(self) -> None:
        result = reclaim_memory()
        update_memory_usage(result.rss_after_mb)
        if result.freed_mb is not None:
            logger.info(f"Memory after unload: rss={result.rss_after_mb:.0f}MB "
                        f"(gc freed {result.freed_mb:.0f}MB)")

    # =========================================================================
    # IDLE CHECK
    # =========================================================================

    def _start_idle_thread(self) -> None:
        self._idle_thread = threading.Thread(
            target=self._idle_loop,
            name="embedding-idle-check",
            daemon=True,
        )
        self._idle_thread.start()
        logger.debug(
            f"Idle check armed: timeout={self.config.idle_timeout_ms}ms, "
            f"interval={self.config.idle_check_interval_ms}ms"
        )

    def _idle_loop(self) -> None:
        interval = self.config.idle_check_interval_ms / 1000
        while not self._stop_idle.wait(interval):
            try:
                self.check_idle()
            except Exception:
                logger.exception("Idle check failed")


# =============================================================================
# PROCESS-WIDE INSTANCE
# =============================================================================

_manager: Optional[EmbeddingManager] = None
_manager_lock = threading.Lock()


def get_embedding_manager() -> EmbeddingManager:
    """
    Get or create the process-wide embedding manager.

    Returns:
        The singleton EmbeddingManager configured from settings.
    """
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = EmbeddingManager(ManagerConfig.from_settings(settings))
        return _manager


def dispose_embedding_manager() -> None:
    """Dispose the process-wide embedding manager, if one was created."""
    global _manager
    with _manager_lock:
        manager, _manager = _manager, None
    if manager is not None:
        manager.dispose()
