"""
Storage package.

Provides persistence for the embedding dimension metadata record.
"""

from storage.metadata_store import EmbeddingMetadata, MetadataStore

__all__ = [
    "EmbeddingMetadata",
    "MetadataStore",
]
