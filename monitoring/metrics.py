"""Prometheus metrics collection."""

import logging
from prometheus_client import Counter, Histogram, Gauge, start_http_server
from functools import wraps
import time
from config import settings
from utils.memory_manager import process_rss_mb

logger = logging.getLogger(__name__)

# ============================================================================
# Embedding Request Metrics
# ============================================================================

embedding_counter = Counter(
    'embedding_requests_total',
    'Total number of embedding requests'
)

embedding_latency = Histogram(
    'embedding_latency_seconds',
    'Time taken to produce an embedding (including any model load)',
    buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0)
)

# ============================================================================
# Model Lifecycle Metrics
# ============================================================================

model_load_counter = Counter(
    'embedding_model_loads_total',
    'Total number of embedding model loads'
)

model_load_latency = Histogram(
    'embedding_model_load_latency_seconds',
    'Time taken to load the model and create its context',
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0)
)

model_unload_counter = Counter(
    'embedding_model_unloads_total',
    'Total number of embedding model unloads',
    ['reason']
)

model_loaded = Gauge(
    'embedding_model_loaded',
    'Whether the embedding model is currently loaded (1) or not (0)'
)

# ============================================================================
# System-Level Metrics
# ============================================================================

error_counter = Counter(
    'embedding_errors_total',
    'Total number of embedding errors',
    ['type']
)

memory_usage_mb = Gauge(
    'embedding_memory_usage_mb',
    'Memory usage in MB'
)


def track_embedding_metrics(func):
    """Decorator to track embedding request metrics."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        embedding_counter.inc()
        start_time = time.time()

        try:
            result = func(*args, **kwargs)
            embedding_latency.observe(time.time() - start_time)
            return result
        except Exception as e:
            error_counter.labels(type=type(e).__name__).inc()
            raise

    return wrapper


def record_model_load(elapsed: float):
    """Record a successful model load.

    Args:
        elapsed: Load duration in seconds
    """
    model_load_counter.inc()
    model_load_latency.observe(elapsed)
    model_loaded.set(1)


def record_model_unload(reason: str):
    """Record a model unload.

    Args:
        reason: Why the model was released ('idle' or 'dispose')
    """
    model_unload_counter.labels(reason=reason).inc()
    model_loaded.set(0)


def start_metrics_server(port: int = None):
    """Start Prometheus metrics server."""
    port = port or settings.METRICS_PORT

    try:
        start_http_server(port)
        logger.info(f"Metrics server started on port {port}")
    except Exception as e:
        logger.warning(f"Failed to start metrics server: {e}")


def update_memory_usage(rss_mb: float = None):
    """Update memory usage metric.

    Args:
        rss_mb: Already-measured RSS in MB; sampled now if omitted
    """
    if rss_mb is None:
        rss_mb = process_rss_mb()
    if rss_mb is not None:
        memory_usage_mb.set(rss_mb)
