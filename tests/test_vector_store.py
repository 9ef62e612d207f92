"""
Test cases for the VectorStore facade and the process-wide store handle.
"""

import json
import logging
import threading
import time
from unittest.mock import patch

import pytest

from organism_memory.core.errors import (
    CapacityExceededError,
    DimensionMismatchError,
    IndexStateError,
)
from organism_memory.vector import store as store_module
from organism_memory.vector import VectorRecord, VectorStore, PersistenceManager


def _persistence(tmp_path):
    return PersistenceManager(tmp_path / "vector_index.bin", tmp_path / "vector_index_map.json")


@pytest.fixture
def store(tmp_path):
    """Open 4-dimensional store persisting under tmp_path."""
    return VectorStore(dimension=4, max_elements=10, persistence=_persistence(tmp_path)).open()


def test_open_is_idempotent(store):
    index = store._index

    assert store.open() is store
    assert store._index is index


def test_operations_require_open(tmp_path):
    unopened = VectorStore(dimension=4, persistence=_persistence(tmp_path))

    assert not unopened.is_open
    with pytest.raises(IndexStateError):
        unopened.add_vector([1.0, 0.0, 0.0, 0.0], "a")
    with pytest.raises(IndexStateError):
        unopened.search([1.0, 0.0, 0.0, 0.0])


def test_add_assigns_monotonic_labels(store):
    for i in range(3):
        assert store.add_vector([float(i), 0.0, 0.0, 0.0], f"uuid-{i}") is True

    assert len(store) == 3
    assert store.next_label == 3
    assert [store.label_of(f"uuid-{i}") for i in range(3)] == [0, 1, 2]


def test_duplicate_add_is_noop(store):
    """Re-adding an ID leaves the index, map and next label as they were."""
    store.add_vector([1.0, 0.0, 0.0, 0.0], "uuid-1")

    assert store.add_vector([0.0, 1.0, 0.0, 0.0], "uuid-1") is False

    assert len(store) == 1
    assert store.next_label == 1
    results = store.search([1.0, 0.0, 0.0, 0.0], 1)
    assert results[0].id == "uuid-1"
    assert results[0].distance == pytest.approx(0.0)


def test_add_vectors_counts_new_records(store):
    records = [
        VectorRecord(id="a", vector=[1.0, 0.0, 0.0, 0.0]),
        VectorRecord(id="b", vector=[0.0, 1.0, 0.0, 0.0]),
        VectorRecord(id="a", vector=[0.0, 0.0, 1.0, 0.0]),
    ]

    assert store.add_vectors(records) == 2
    assert len(store) == 2


def test_search_orders_and_truncates(store):
    store.add_vector([1.0, 0.0, 0.0, 0.0], "near")
    store.add_vector([3.0, 0.0, 0.0, 0.0], "far")
    store.add_vector([2.0, 0.0, 0.0, 0.0], "middle")

    results = store.search([0.0, 0.0, 0.0, 0.0], k=2)

    assert [r.id for r in results] == ["near", "middle"]
    assert [r.distance for r in results] == pytest.approx([1.0, 4.0])

    assert len(store.search([0.0, 0.0, 0.0, 0.0], k=10)) == 3


def test_search_tie_break_follows_insertion_order(store):
    """Equal distances come back in label order, i.e. the order IDs were added."""
    store.add_vector([0.0, 1.0, 0.0, 0.0], "second-axis")
    store.add_vector([1.0, 0.0, 0.0, 0.0], "first-axis")

    results = store.search([0.0, 0.0, 0.0, 0.0], k=2)

    assert [r.id for r in results] == ["second-axis", "first-axis"]


def test_search_truncation_prefers_earlier_ids_on_ties(tmp_path):
    store = VectorStore(dimension=4, max_elements=40, persistence=_persistence(tmp_path)).open()
    for i in range(40):
        store.add_vector([0.5, 0.5, 0.5, 0.5], f"id-{i}")

    results = store.search([0.5, 0.5, 0.5, 0.5], k=3)

    assert [r.id for r in results] == ["id-0", "id-1", "id-2"]


def test_search_empty_store(store):
    assert store.search([1.0, 0.0, 0.0, 0.0], k=3) == []


def test_dimension_mismatch_rejected(store):
    with pytest.raises(DimensionMismatchError):
        store.add_vector([1.0, 0.0, 0.0], "short")
    with pytest.raises(DimensionMismatchError):
        store.search([1.0, 0.0, 0.0, 0.0, 0.0])

    assert len(store) == 0
    assert store.next_label == 0


def test_capacity_exceeded_and_resize(tmp_path):
    store = VectorStore(dimension=4, max_elements=2, persistence=_persistence(tmp_path)).open()
    store.add_vector([1.0, 0.0, 0.0, 0.0], "a")
    store.add_vector([0.0, 1.0, 0.0, 0.0], "b")

    with pytest.raises(CapacityExceededError):
        store.add_vector([0.0, 0.0, 1.0, 0.0], "c")

    assert "c" not in [r.id for r in store.search([0.0, 0.0, 1.0, 0.0], k=5)]
    assert store.next_label == 2

    store.resize(4)
    assert store.capacity == 4
    assert store.add_vector([0.0, 0.0, 1.0, 0.0], "c") is True
    assert store.label_of("c") == 2


def test_failed_insert_rolls_back_label(store, caplog):
    """An insert that fails inside the index leaves no half-assigned label."""
    store.add_vector([1.0, 0.0, 0.0, 0.0], "a")

    with patch.object(store._index, "insert", side_effect=RuntimeError("index failure")):
        with caplog.at_level(logging.WARNING, logger="organism_memory"):
            with pytest.raises(RuntimeError):
                store.add_vector([0.0, 1.0, 0.0, 0.0], "b")

    assert not store.contains("b")
    assert store.next_label == 1
    assert "rolled_back" in caplog.text

    assert store.add_vector([0.0, 1.0, 0.0, 0.0], "b") is True
    assert store.label_of("b") == 1


def test_save_and_reload_preserves_state(tmp_path):
    """A new store over the same files sees the same IDs, labels and results."""
    first = VectorStore(dimension=4, max_elements=10, persistence=_persistence(tmp_path)).open()
    first.add_vector([1.0, 0.0, 0.0, 0.0], "uuid-1")
    first.add_vector([0.0, 1.0, 0.0, 0.0], "uuid-2")
    first.save()

    second = VectorStore(dimension=4, max_elements=10, persistence=_persistence(tmp_path)).open()

    assert len(second) == 2
    assert second.next_label == 2
    assert second.label_of("uuid-2") == 1
    results = second.search([0.0, 1.0, 0.0, 0.0], k=1)
    assert results[0].id == "uuid-2"

    # Duplicate IDs stay no-ops across restarts
    assert second.add_vector([0.0, 0.0, 1.0, 0.0], "uuid-1") is False
    assert second.add_vector([0.0, 0.0, 1.0, 0.0], "uuid-3") is True
    assert second.label_of("uuid-3") == 2


def test_corrupt_files_fall_back_to_empty_index(tmp_path, caplog):
    """Unreadable artifacts are discarded as a pair and logged."""
    first = VectorStore(dimension=4, max_elements=10, persistence=_persistence(tmp_path)).open()
    first.add_vector([1.0, 0.0, 0.0, 0.0], "uuid-1")
    first.save()

    (tmp_path / "vector_index_map.json").write_text("{broken", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="organism_memory"):
        second = VectorStore(dimension=4, max_elements=10, persistence=_persistence(tmp_path)).open()

    assert len(second) == 0
    assert second.next_label == 0
    assert second.search([1.0, 0.0, 0.0, 0.0], k=1) == []
    assert "fallback" in caplog.text


@pytest.mark.parametrize("key,value", [
    ("labelToId", None),
    ("idToLabel", 7),
])
def test_malformed_sidecar_lists_fall_back_to_empty_index(tmp_path, key, value):
    """Sidecar fields of the wrong JSON type are treated like any other corruption."""
    first = VectorStore(dimension=4, max_elements=10, persistence=_persistence(tmp_path)).open()
    first.add_vector([1.0, 0.0, 0.0, 0.0], "uuid-1")
    first.save()

    map_path = tmp_path / "vector_index_map.json"
    data = json.loads(map_path.read_text(encoding="utf-8"))
    data[key] = value
    map_path.write_text(json.dumps(data), encoding="utf-8")

    second = VectorStore(dimension=4, max_elements=10, persistence=_persistence(tmp_path)).open()

    assert second.is_open
    assert len(second) == 0
    assert second.add_vector([1.0, 0.0, 0.0, 0.0], "uuid-1") is True


def test_save_without_persistence_raises():
    memory_only = VectorStore(dimension=4).open()

    with pytest.raises(IndexStateError):
        memory_only.save()


def test_get_stats(store):
    store.add_vector([1.0, 0.0, 0.0, 0.0], "a")

    stats = store.get_stats()

    assert stats["open"] is True
    assert stats["count"] == 1
    assert stats["next_label"] == 1
    assert stats["dimension"] == 4
    assert stats["capacity"] == 10
    assert stats["metric"] == "l2"
    assert stats["index_path"].endswith("vector_index.bin")


@pytest.fixture
def clean_singleton(tmp_path, monkeypatch):
    monkeypatch.setenv("SANDBOX_PATH", str(tmp_path))
    monkeypatch.setenv("VECTOR_DIMENSIONS", "4")
    monkeypatch.setenv("VECTOR_MAX_ELEMENTS", "10")
    store_module.reset_vector_store()
    yield
    store_module.reset_vector_store()


def test_get_vector_store_uses_config(clean_singleton, tmp_path):
    store = store_module.get_vector_store()

    assert store.is_open
    assert store.dimension == 4
    assert store.capacity == 10
    assert store.persistence.index_path == tmp_path / "vector_index.bin"
    assert store_module.get_vector_store() is store


def test_get_vector_store_initializes_once_under_concurrency(clean_singleton, monkeypatch):
    """Concurrent first calls build exactly one store and all see it."""
    created = []
    original = store_module.create_vector_store_from_config

    def slow_create():
        time.sleep(0.05)
        instance = original()
        created.append(instance)
        return instance

    monkeypatch.setattr(store_module, "create_vector_store_from_config", slow_create)

    seen = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        seen.append(store_module.get_vector_store())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(created) == 1
    assert len(seen) == 8
    assert all(s is created[0] for s in seen)


def test_reset_vector_store(clean_singleton):
    first = store_module.get_vector_store()

    store_module.reset_vector_store()

    assert store_module.get_vector_store() is not first
