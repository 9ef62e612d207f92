"""
Vector store facade: the single shared access point for adding, searching and
saving embeddings keyed by opaque string IDs.
"""

import threading
from typing import Any, Dict, Iterable, List, Optional

from ..core import config
from ..core.errors import (
    CapacityExceededError,
    IndexStateError,
    PersistenceCorruptError,
)
from ..util.logging import logger
from .hnsw_index import HnswIndex, as_float32_vector
from .id_map import IdentifierMap
from .persistence import PersistenceManager
from .types import SearchResult, VectorRecord


class VectorStore:
    """HNSW-backed store with a stable ID layer and on-disk persistence.

    Every public method holds one re-entrant lock, so inserts, searches and
    saves never interleave and save() always sees a consistent snapshot.
    """

    def __init__(
        self,
        dimension: int = 384,
        max_elements: int = 10000,
        persistence: Optional[PersistenceManager] = None,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 64,
    ):
        """
        Args:
            dimension: Store-wide vector dimension
            max_elements: Capacity of a freshly initialized index
            persistence: Where the index and map live; None keeps the store in memory only
            m, ef_construction, ef_search: HNSW parameters
        """
        self.dimension = dimension
        self.max_elements = max_elements
        self.persistence = persistence
        self._hnsw_params = {"m": m, "ef_construction": ef_construction, "ef_search": ef_search}

        self._lock = threading.RLock()
        self._index: Optional[HnswIndex] = None
        self._id_map = IdentifierMap()

    @property
    def is_open(self) -> bool:
        return self._index is not None

    def open(self) -> "VectorStore":
        """Load persisted state, or start an empty index when there is none.

        Corrupt or mismatched artifacts are discarded as a pair. Calling open()
        on an already open store does nothing.
        """
        with self._lock:
            if self._index is not None:
                return self

            loaded = None
            if self.persistence is not None:
                try:
                    loaded = self.persistence.load(self.dimension, self.max_elements, **self._hnsw_params)
                except PersistenceCorruptError as e:
                    logger.log_persistence("load", "fallback", {"reason": str(e)})
                    loaded = None

            if loaded is not None:
                self._index, self._id_map = loaded
                logger.info(f"Vector store initialized from existing files ({self._index.count} vectors).")
            else:
                index = HnswIndex(dimension=self.dimension, **self._hnsw_params)
                index.initialize(self.max_elements)
                self._index = index
                self._id_map = IdentifierMap()
                logger.info("No existing vector store found. Initialized a new one.")

            return self

    def _require_open(self) -> HnswIndex:
        if self._index is None:
            raise IndexStateError("Vector store is not open; call open() first")
        return self._index

    def add_vector(self, vector, record_id: str) -> bool:
        """
        Add a vector under record_id.

        Returns:
            True if added, False if record_id was already present (state unchanged)

        Raises:
            DimensionMismatchError: vector does not have `dimension` components
            CapacityExceededError: the index is full
        """
        array = as_float32_vector(vector, self.dimension)

        with self._lock:
            index = self._require_open()

            if record_id in self._id_map:
                logger.log_vector_operation(
                    "add", record_id, {"reason": "duplicate", "label": self._id_map.label_of(record_id)}, status="skipped"
                )
                return False

            if index.count >= index.capacity:
                raise CapacityExceededError(index.capacity)

            label = self._id_map.assign_label(record_id)
            try:
                index.insert(array, label)
            except Exception:
                self._id_map.release(label)
                logger.log_vector_operation("add", record_id, {"label": label, "reason": "insert failed"}, status="rolled_back")
                raise

            logger.debug(f"Added vector {record_id!r} with label {label}")
            return True

    def add_vectors(self, records: Iterable[VectorRecord]) -> int:
        """Add multiple records and return how many were new.

        Stops at the first record that raises; records before it stay added.
        """
        added = 0
        with self._lock:
            for record in records:
                if self.add_vector(record.vector, record.id):
                    added += 1
        return added

    def search(self, query_vector, k: int = 5) -> List[SearchResult]:
        """Return up to k nearest IDs by ascending distance.

        Labels that do not resolve to an ID are dropped rather than raised.
        """
        array = as_float32_vector(query_vector, self.dimension)

        with self._lock:
            index = self._require_open()
            results = []
            for label, distance in index.query(array, k):
                record_id = self._id_map.resolve(label)
                if record_id is None:
                    continue
                results.append(SearchResult(id=record_id, distance=distance))
            return results

    def save(self) -> None:
        """Persist the index and map.

        Raises:
            PersistenceWriteError: the write failed; the last good save is intact
        """
        with self._lock:
            index = self._require_open()
            if self.persistence is None:
                raise IndexStateError("Vector store has no persistence configured")
            self.persistence.save(index, self._id_map)

    def resize(self, capacity: int) -> None:
        """Raise (or lower, down to the current count) the index capacity."""
        with self._lock:
            self._require_open().resize(capacity)

    def contains(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._id_map

    def label_of(self, record_id: str) -> Optional[int]:
        with self._lock:
            return self._id_map.label_of(record_id)

    @property
    def next_label(self) -> int:
        with self._lock:
            return self._id_map.next_label

    @property
    def capacity(self) -> int:
        with self._lock:
            return self._require_open().capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._id_map)

    def get_stats(self) -> Dict[str, Any]:
        """Get counts and configuration for health reporting."""
        with self._lock:
            index = self._index
            stats = {
                "open": index is not None,
                "count": len(self._id_map),
                "next_label": self._id_map.next_label,
                "dimension": self.dimension,
                "capacity": index.capacity if index is not None else self.max_elements,
                "metric": "l2",
            }
            if self.persistence is not None:
                stats["index_path"] = str(self.persistence.index_path)
                stats["map_path"] = str(self.persistence.map_path)
            return stats


_instance: Optional[VectorStore] = None
_instance_lock = threading.Lock()


def create_vector_store_from_config() -> VectorStore:
    """Build an unopened store from the current configuration."""
    persistence = PersistenceManager(config.get_index_path(), config.get_map_path())
    return VectorStore(
        dimension=config.get_vector_dimensions(),
        max_elements=config.get_max_elements(),
        persistence=persistence,
        **config.get_hnsw_params(),
    )


def get_vector_store() -> VectorStore:
    """Get the process-wide vector store, loading or initializing it exactly once."""
    global _instance
    store = _instance
    if store is not None:
        return store

    with _instance_lock:
        if _instance is None:
            _instance = create_vector_store_from_config().open()
        return _instance


def reset_vector_store() -> None:
    """Drop the process-wide handle so the next get_vector_store() starts over."""
    global _instance
    with _instance_lock:
        _instance = None
