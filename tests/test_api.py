"""
Test cases for the HTTP API over the vector store and memory compression.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch

from organism_memory.api.main import app, vector_store_dependency
from organism_memory.core.compression import NO_COMPRESSION_SUMMARY, measure_size
from organism_memory.core.errors import PersistenceWriteError
from organism_memory.vector import PersistenceManager, VectorStore


@pytest.fixture
def store(tmp_path):
    return VectorStore(
        dimension=4,
        max_elements=3,
        persistence=PersistenceManager(tmp_path / "vector_index.bin", tmp_path / "vector_index_map.json"),
    ).open()


@pytest.fixture
def client(store, monkeypatch, tmp_path):
    monkeypatch.setenv("SANDBOX_PATH", str(tmp_path))
    monkeypatch.setenv("VECTOR_DIMENSIONS", "4")
    app.dependency_overrides[vector_store_dependency] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["vector_count"] == 0
    assert data["capacity"] == 3
    assert "version" in data


def test_add_and_search(client):
    assert client.post("/vectors", json={"id": "a", "vector": [1.0, 0.0, 0.0, 0.0]}).json() == {"id": "a", "added": True}
    client.post("/vectors", json={"id": "b", "vector": [3.0, 0.0, 0.0, 0.0]})

    response = client.post("/vectors/search", json={"vector": [0.0, 0.0, 0.0, 0.0], "k": 2})

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["id"] for r in results] == ["a", "b"]
    assert results[0]["distance"] == pytest.approx(1.0)
    assert results[1]["distance"] == pytest.approx(9.0)


def test_add_duplicate_reports_not_added(client):
    client.post("/vectors", json={"id": "a", "vector": [1.0, 0.0, 0.0, 0.0]})

    response = client.post("/vectors", json={"id": "a", "vector": [0.0, 1.0, 0.0, 0.0]})

    assert response.status_code == 200
    assert response.json()["added"] is False


def test_add_dimension_mismatch(client):
    response = client.post("/vectors", json={"id": "a", "vector": [1.0, 0.0]})

    assert response.status_code == 422


def test_add_empty_id_rejected(client):
    response = client.post("/vectors", json={"id": "  ", "vector": [1.0, 0.0, 0.0, 0.0]})

    assert response.status_code == 422


def test_add_past_capacity(client):
    for i in range(3):
        client.post("/vectors", json={"id": f"id-{i}", "vector": [float(i), 0.0, 0.0, 0.0]})

    response = client.post("/vectors", json={"id": "overflow", "vector": [9.0, 0.0, 0.0, 0.0]})

    assert response.status_code == 507


def test_search_rejects_non_positive_k(client):
    response = client.post("/vectors/search", json={"vector": [0.0, 0.0, 0.0, 0.0], "k": 0})

    assert response.status_code == 422


def test_save_and_stats(client, tmp_path):
    client.post("/vectors", json={"id": "a", "vector": [1.0, 0.0, 0.0, 0.0]})

    response = client.post("/vectors/save")

    assert response.status_code == 200
    assert response.json() == {"saved": True, "count": 1}
    assert (tmp_path / "vector_index.bin").exists()
    assert (tmp_path / "vector_index_map.json").exists()

    stats = client.get("/vectors/stats").json()
    assert stats["count"] == 1
    assert stats["next_label"] == 1


def test_save_failure_returns_500(client, store):
    with patch.object(store, "save", side_effect=PersistenceWriteError("disk full")):
        response = client.post("/vectors/save")

    assert response.status_code == 500
    assert "disk full" in response.json()["detail"]


def test_compress_endpoint(client):
    memory = {
        "events": [
            {"id": "old", "timestamp": "2024-01-01T00:00:00Z"},
            {"id": "new", "timestamp": "2024-06-01T00:00:00Z"},
        ]
    }
    budget = measure_size({"events": [memory["events"][1]]})

    response = client.post("/memory/compress", json={
        "memory": memory,
        "compression_strategy": "temporal",
        "max_memory_size": budget,
    })

    assert response.status_code == 200
    data = response.json()
    assert data["compressed_memory"] == {"events": [memory["events"][1]]}
    assert data["compressed_memories"] == 1
    assert data["preserved_critical_memories"] == 1
    assert data["budget_met"] is True


def test_compress_endpoint_noop(client):
    response = client.post("/memory/compress", json={"memory": {"a": [1]}, "max_memory_size": 1000})

    assert response.status_code == 200
    assert response.json()["compression_summary"] == NO_COMPRESSION_SUMMARY


def test_compress_endpoint_validation(client):
    assert client.post("/memory/compress", json={"memory": {}, "compression_strategy": "random"}).status_code == 422
    assert client.post("/memory/compress", json={"memory": {}, "max_memory_size": -1}).status_code == 422


def test_analyze_endpoint(client):
    response = client.post("/memory/analyze", json={"memory": {"core_learnings": [1, 2], "other": "x"}})

    assert response.status_code == 200
    data = response.json()
    assert data["total_keys"] == 2
    assert data["array_lengths"] == {"core_learnings": 2}
    assert data["critical_keys"] == ["core_learnings"]
