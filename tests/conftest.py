"""
Shared fixtures for embedding manager tests.

Provides an in-memory inference binding that records every native call,
so the tests can assert on load and release counts without a real model.
"""

import threading

import pytest

from core.binding import ContextHandle, InferenceBinding, ModelHandle
from core.config import ManagerConfig
from core.embeddings import EmbeddingManager

MODEL_NAME = "m.gguf"


class FakeContext(ContextHandle):
    """Embedding context returning constant vectors."""

    def __init__(self, binding):
        self.binding = binding

    def embed(self, text):
        with self.binding.lock:
            self.binding.embed_calls += 1
        if self.binding.embed_error is not None:
            raise self.binding.embed_error
        return [0.1] * self.binding.vector_size

    def release(self):
        with self.binding.lock:
            self.binding.release_order.append("context")
            self.binding.context_releases += 1


class FakeModel(ModelHandle):
    """Loaded model creating FakeContext instances."""

    def __init__(self, binding):
        self.binding = binding

    def create_embedding_context(self):
        with self.binding.lock:
            self.binding.context_creates += 1
        if self.binding.context_error is not None:
            raise self.binding.context_error
        return FakeContext(self.binding)

    def release(self):
        with self.binding.lock:
            self.binding.release_order.append("model")
            self.binding.model_releases += 1


class FakeBinding(InferenceBinding):
    """
    Recording inference binding.

    Attributes:
        load_started: Set as soon as load_model is entered.
        load_gate: load_model blocks until this is set.
    """

    def __init__(self, vector_size=768):
        self.lock = threading.Lock()
        self.vector_size = vector_size
        self.load_calls = []
        self.context_creates = 0
        self.embed_calls = 0
        self.context_releases = 0
        self.model_releases = 0
        self.release_order = []
        self.load_error = None
        self.context_error = None
        self.embed_error = None
        self.load_started = threading.Event()
        self.load_gate = threading.Event()
        self.load_gate.set()

    def load_model(self, path, gpu_layers):
        with self.lock:
            self.load_calls.append((path, gpu_layers))
        self.load_started.set()
        self.load_gate.wait(timeout=10)
        if self.load_error is not None:
            raise self.load_error
        return FakeModel(self)


class FakeClock:
    """Manually advanced clock (seconds since the epoch)."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def models_dir(tmp_path):
    """Create a models dir with a fake model file."""
    directory = tmp_path / "models"
    directory.mkdir()
    (directory / MODEL_NAME).write_bytes(b"fake-gguf-data")
    return directory


@pytest.fixture
def meta_path(tmp_path):
    """Metadata record location inside the test's temp dir."""
    return tmp_path / "state" / "embedding-meta.json"


@pytest.fixture
def binding():
    return FakeBinding()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_config(models_dir, meta_path):
    """Factory for configs pointing at the temp model and metadata paths."""

    def _make(**overrides):
        values = {
            "model": MODEL_NAME,
            "models_dir": models_dir,
            "dimensions": 768,
            "gpu_layers": 0,
            "idle_timeout_ms": 0,
            "metadata_path": meta_path,
        }
        values.update(overrides)
        return ManagerConfig(**values)

    return _make


@pytest.fixture
def make_manager(make_config, binding, clock):
    """Factory for managers wired to the fake binding; disposes them after the test."""
    managers = []

    def _make(real_clock=False, **overrides):
        config = make_config(**overrides)
        kwargs = {} if real_clock else {"clock": clock}
        manager = EmbeddingManager(config, binding=binding, **kwargs)
        managers.append(manager)
        return manager

    yield _make

    for manager in managers:
        manager.dispose()
