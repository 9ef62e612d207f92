"""
Capacity-bounded HNSW index over caller-assigned integer labels.

The engine never assigns labels itself; the IdentifierMap does. Distances are
squared L2 as reported by FAISS.
"""

from pathlib import Path
from typing import List, Tuple, Union

import numpy as np

from ..core.errors import (
    CapacityExceededError,
    DimensionMismatchError,
    IndexStateError,
    PersistenceCorruptError,
)


def as_float32_vector(vector, dimension: int) -> np.ndarray:
    """Convert vector to a contiguous float32 array of shape (dimension,).

    Raises:
        DimensionMismatchError: vector is not one-dimensional with `dimension` components
        ValueError: vector is not numeric or contains NaN/inf
    """
    try:
        array = np.asarray(vector, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Vector must be numeric: {e}") from e

    # A single row such as shape (1, d) is accepted as a vector
    if array.ndim == 2 and array.shape[0] == 1:
        array = array[0]

    if array.ndim != 1:
        raise DimensionMismatchError(dimension, tuple(array.shape))
    if array.shape[0] != dimension:
        raise DimensionMismatchError(dimension, int(array.shape[0]))
    if not np.all(np.isfinite(array)):
        raise ValueError("Vector contains NaN or infinite values")

    return np.ascontiguousarray(array)


class HnswIndex:
    """FAISS HNSW graph wrapped in an IndexIDMap so points carry our labels."""

    def __init__(self, dimension: int = 384, m: int = 16, ef_construction: int = 200, ef_search: int = 64):
        """
        Create an unallocated index. Call initialize() or deserialize_from() before use.

        Args:
            dimension: Dimension of the vectors (default: 384 for all-MiniLM-L6-v2)
            m: Number of graph neighbors per node
            ef_construction: Beam width while inserting
            ef_search: Beam width while querying, raised to k for larger queries
        """
        try:
            import faiss
            self.faiss = faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        self.dimension = dimension
        self.m = m
        self.ef_construction = ef_construction
        self.ef_search = ef_search

        self.index = None
        self._hnsw = None
        self._capacity = 0

    @property
    def is_initialized(self) -> bool:
        return self.index is not None

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def count(self) -> int:
        return int(self.index.ntotal) if self.index is not None else 0

    def _require_initialized(self):
        if self.index is None:
            raise IndexStateError("Index is not initialized")

    def initialize(self, capacity: int) -> None:
        """Allocate a fresh empty index. Valid once per instance."""
        if self.index is not None:
            raise IndexStateError("Index is already initialized")
        if capacity < 1:
            raise ValueError(f"Capacity must be positive, got {capacity}")

        hnsw = self.faiss.IndexHNSWFlat(self.dimension, self.m)
        hnsw.hnsw.efConstruction = self.ef_construction
        hnsw.hnsw.efSearch = self.ef_search

        self._hnsw = hnsw
        self.index = self.faiss.IndexIDMap(hnsw)
        self._capacity = int(capacity)

    def resize(self, capacity: int) -> None:
        """Change the capacity limit. Resizing to the current value is a no-op.

        Raises:
            CapacityExceededError: the new capacity is below the number of stored points
        """
        self._require_initialized()
        capacity = int(capacity)
        if capacity == self._capacity:
            return
        if capacity < self.count:
            raise CapacityExceededError(
                capacity, f"Cannot resize to {capacity}: index already holds {self.count} elements"
            )
        self._capacity = capacity

    def insert(self, vector, label: int) -> None:
        """Insert vector under a caller-assigned, already-unique label."""
        self._require_initialized()
        if self.count >= self._capacity:
            raise CapacityExceededError(self._capacity)

        array = as_float32_vector(vector, self.dimension).reshape(1, -1)
        ids = np.array([label], dtype=np.int64)
        self.index.add_with_ids(array, ids)

    def query(self, vector, k: int) -> List[Tuple[int, float]]:
        """Return up to k (label, distance) pairs ordered by distance, then label."""
        self._require_initialized()
        query_array = as_float32_vector(vector, self.dimension).reshape(1, -1)

        n = min(int(k), self.count)
        if n <= 0:
            return []

        # Fetch past n so equal distances at the cut are decided by label,
        # widening while the farthest fetched point still ties the n-th one
        fetch = min(self.count, max(2 * n, n + self.m))
        while True:
            neighbors = self._search(query_array, fetch)
            if fetch >= self.count or len(neighbors) <= n or neighbors[n - 1][1] < neighbors[-1][1]:
                break
            fetch = min(self.count, 2 * fetch)

        return neighbors[:n]

    def _search(self, query_array: np.ndarray, fetch: int) -> List[Tuple[int, float]]:
        self._hnsw.hnsw.efSearch = max(self.ef_search, fetch)
        distances, labels = self.index.search(query_array, fetch)

        # FAISS pads with -1 when the graph walk finds fewer than fetch points
        neighbors = [
            (int(label), float(distance))
            for distance, label in zip(distances[0], labels[0])
            if label >= 0
        ]
        neighbors.sort(key=lambda pair: (pair[1], pair[0]))
        return neighbors

    def labels(self) -> List[int]:
        """All labels currently stored in the index."""
        if self.index is None:
            return []
        return [int(label) for label in self.faiss.vector_to_array(self.index.id_map)]

    def serialize_to(self, path: Union[str, Path]) -> None:
        """Write the FAISS native binary to path."""
        self._require_initialized()
        self.faiss.write_index(self.index, str(path))

    def deserialize_from(self, path: Union[str, Path], capacity: int) -> None:
        """Load a FAISS native binary written by serialize_to().

        Raises:
            PersistenceCorruptError: the file is unreadable, not an ID-mapped HNSW
                index, has a different dimension, or holds more points than capacity
        """
        if self.index is not None:
            raise IndexStateError("Index is already initialized")

        try:
            loaded = self.faiss.read_index(str(path))
        except Exception as e:
            raise PersistenceCorruptError(f"Failed to read index {path}: {e}") from e

        if not isinstance(loaded, self.faiss.IndexIDMap):
            raise PersistenceCorruptError(f"Index {path} is not an ID-mapped index")
        hnsw = self.faiss.downcast_index(loaded.index)
        if not isinstance(hnsw, self.faiss.IndexHNSWFlat):
            raise PersistenceCorruptError(f"Index {path} is not an HNSW index")
        if loaded.d != self.dimension:
            raise PersistenceCorruptError(
                f"Index {path} has dimension {loaded.d}, expected {self.dimension}"
            )

        capacity = max(int(capacity), 1)
        if loaded.ntotal > capacity:
            raise PersistenceCorruptError(
                f"Index {path} holds {loaded.ntotal} elements, more than capacity {capacity}"
            )

        hnsw.hnsw.efSearch = self.ef_search
        self._hnsw = hnsw
        self.index = loaded
        self._capacity = capacity
