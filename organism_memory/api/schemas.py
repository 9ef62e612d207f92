"""
Request and response models for the organism memory API.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any


class HealthResponse(BaseModel):
    status: str
    version: str
    vector_count: int
    capacity: int
    config_issues: List[str] = []


class VectorAddRequest(BaseModel):
    """Request to index one embedding under an opaque ID."""
    id: str
    vector: List[float]

    @field_validator('id')
    @classmethod
    def id_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('id cannot be empty')
        return v


class VectorAddResponse(BaseModel):
    id: str
    added: bool


class VectorSearchRequest(BaseModel):
    vector: List[float]
    k: int = 5

    @field_validator('k')
    @classmethod
    def k_must_be_positive(cls, v):
        if v < 1:
            raise ValueError('k must be >= 1')
        return v


class VectorHit(BaseModel):
    id: str
    distance: float


class VectorSearchResponse(BaseModel):
    results: List[VectorHit]


class VectorSaveResponse(BaseModel):
    saved: bool
    count: int


class MemoryCompressionRequest(BaseModel):
    """Request to compress a memory structure to a byte budget."""
    memory: Dict[str, Any]
    compression_strategy: str = "hybrid"
    retention_threshold: Optional[float] = None
    max_memory_size: Optional[int] = None

    @field_validator('compression_strategy')
    @classmethod
    def strategy_must_be_valid(cls, v):
        # frequency is accepted for compatibility and ordered like hybrid
        valid_strategies = ['temporal', 'importance', 'frequency', 'hybrid']
        if v not in valid_strategies:
            raise ValueError(f'compression_strategy must be one of: {valid_strategies}')
        return v

    @field_validator('max_memory_size')
    @classmethod
    def budget_must_not_be_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError('max_memory_size cannot be negative')
        return v


class MemoryCompressionResponse(BaseModel):
    compressed_memory: Dict[str, Any]
    compressed_memories: int
    memory_reduction_percentage: float
    preserved_critical_memories: int
    compression_summary: str
    budget_met: bool


class MemoryAnalysisRequest(BaseModel):
    memory: Dict[str, Any]


class MemoryAnalysisResponse(BaseModel):
    total_keys: int
    total_size_bytes: int
    total_size_mb: float
    key_distribution: Dict[str, int]
    array_lengths: Dict[str, int]
    critical_keys: List[str]
