"""
Vector store: HNSW index, stable ID layer and paired on-disk persistence.
"""

# Package initialization for vector module
from .types import VectorRecord, SearchResult
from .id_map import IdentifierMap
from .hnsw_index import HnswIndex
from .persistence import PersistenceManager
from .store import VectorStore, get_vector_store, reset_vector_store

__all__ = [
    'VectorRecord',
    'SearchResult',
    'IdentifierMap',
    'HnswIndex',
    'PersistenceManager',
    'VectorStore',
    'get_vector_store',
    'reset_vector_store'
]
