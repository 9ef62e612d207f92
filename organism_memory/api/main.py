"""
HTTP surface over the vector store and the memory compression engine.
"""

from fastapi import FastAPI, HTTPException, Depends

from .schemas import (
    HealthResponse,
    VectorAddRequest,
    VectorAddResponse,
    VectorSearchRequest,
    VectorSearchResponse,
    VectorHit,
    VectorSaveResponse,
    MemoryCompressionRequest,
    MemoryCompressionResponse,
    MemoryAnalysisRequest,
    MemoryAnalysisResponse,
)
from ..core.analysis import extract_critical_memories, memory_metrics
from ..core.compression import compress
from ..core.config import VERSION, debug_enabled, validate_vector_config
from ..core.errors import (
    CapacityExceededError,
    CompressionError,
    DimensionMismatchError,
    PersistenceWriteError,
)
from ..util.logging import logger
from ..vector.store import VectorStore, get_vector_store

app = FastAPI(
    title="Organism Memory API",
    version=VERSION,
    description="Vector store and memory compression for organism knowledge",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None
)


def vector_store_dependency() -> VectorStore:
    """Resolve the process-wide vector store. Overridden in tests."""
    return get_vector_store()


@app.get("/health", response_model=HealthResponse)
def health(store: VectorStore = Depends(vector_store_dependency)):
    """Report store size and configuration problems."""
    issues = validate_vector_config()
    stats = store.get_stats()
    return HealthResponse(
        status="ok" if not issues else "degraded",
        version=VERSION,
        vector_count=stats["count"],
        capacity=stats["capacity"],
        config_issues=issues,
    )


@app.post("/vectors", response_model=VectorAddResponse)
def add_vector(req: VectorAddRequest, store: VectorStore = Depends(vector_store_dependency)):
    """Index an embedding under an ID. Re-adding an existing ID is a no-op."""
    try:
        added = store.add_vector(req.vector, req.id)
    except DimensionMismatchError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except CapacityExceededError as e:
        raise HTTPException(status_code=507, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return VectorAddResponse(id=req.id, added=added)


@app.post("/vectors/search", response_model=VectorSearchResponse)
def search_vectors(req: VectorSearchRequest, store: VectorStore = Depends(vector_store_dependency)):
    """Return the k nearest IDs by ascending distance."""
    try:
        results = store.search(req.vector, req.k)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return VectorSearchResponse(results=[VectorHit(id=r.id, distance=r.distance) for r in results])


@app.post("/vectors/save", response_model=VectorSaveResponse)
def save_vectors(store: VectorStore = Depends(vector_store_dependency)):
    """Persist the index and ID map."""
    try:
        store.save()
    except PersistenceWriteError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return VectorSaveResponse(saved=True, count=len(store))


@app.get("/vectors/stats")
def vector_stats(store: VectorStore = Depends(vector_store_dependency)):
    return store.get_stats()


@app.post("/memory/compress", response_model=MemoryCompressionResponse)
def compress_memory(req: MemoryCompressionRequest):
    """Compress a memory structure to a byte budget."""
    try:
        result = compress(
            req.memory,
            strategy=req.compression_strategy,
            retention_threshold=req.retention_threshold,
            max_memory_size=req.max_memory_size,
        )
    except CompressionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MemoryCompressionResponse(
        compressed_memory=result.memory,
        compressed_memories=result.removed_count,
        memory_reduction_percentage=result.reduction_percentage,
        preserved_critical_memories=result.preserved_count,
        compression_summary=result.summary,
        budget_met=result.budget_met,
    )


@app.post("/memory/analyze", response_model=MemoryAnalysisResponse)
def analyze_memory(req: MemoryAnalysisRequest):
    """Size and shape metrics for a memory structure."""
    try:
        metrics = memory_metrics(req.memory)
    except CompressionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    metrics["critical_keys"] = sorted(extract_critical_memories(req.memory))
    logger.log_operation("memory.analyze", "success", {"total_keys": metrics["total_keys"]})
    return MemoryAnalysisResponse(**metrics)
