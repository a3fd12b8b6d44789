"""
Monitoring package.

Provides observability tools:
- Prometheus metrics for embedding requests and model lifecycle
- Structured JSON logging
"""

from monitoring.logger import setup_logging
from monitoring.metrics import (
    embedding_counter,
    embedding_latency,
    error_counter,
    model_load_counter,
    model_loaded,
    model_unload_counter,
    record_model_load,
    record_model_unload,
    start_metrics_server,
    track_embedding_metrics,
    update_memory_usage,
)

__all__ = [
    # Metrics
    "track_embedding_metrics",
    "record_model_load",
    "record_model_unload",
    "start_metrics_server",
    "update_memory_usage",
    "embedding_counter",
    "embedding_latency",
    "model_load_counter",
    "model_unload_counter",
    "model_loaded",
    "error_counter",
    # Logging
    "setup_logging",
]
