"""
Runtime configuration for the organism memory core.

Everything is read from environment variables. Module constants hold the
values seen at import; the accessor functions re-read the environment so
tests and long-running processes can change settings without re-importing.
"""

import os
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv

load_dotenv()

# Persisted artifact locations
SANDBOX_PATH = os.getenv("SANDBOX_PATH", "./organism_sandbox")
VECTOR_INDEX_PATH = os.getenv("VECTOR_INDEX_PATH", "vector_index.bin")
VECTOR_MAP_PATH = os.getenv("VECTOR_MAP_PATH", "vector_index_map.json")

# Index shape. 384 matches sentence-transformers/all-minilm-l6-v2
VECTOR_DIMENSIONS = int(os.getenv("VECTOR_DIMENSIONS", "384"))
VECTOR_MAX_ELEMENTS = int(os.getenv("VECTOR_MAX_ELEMENTS", "10000"))

# HNSW graph parameters
HNSW_M = int(os.getenv("HNSW_M", "16"))
HNSW_EF_CONSTRUCTION = int(os.getenv("HNSW_EF_CONSTRUCTION", "200"))
HNSW_EF_SEARCH = int(os.getenv("HNSW_EF_SEARCH", "64"))

# Memory compression defaults
COMPRESSION_STRATEGY = os.getenv("COMPRESSION_STRATEGY", "hybrid")  # temporal|importance|hybrid
COMPRESSION_MAX_MEMORY_SIZE = int(os.getenv("COMPRESSION_MAX_MEMORY_SIZE", "10000"))

DEBUG = os.getenv("DEBUG", "true").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

VERSION = "1.0.0"

VALID_STRATEGIES = ["temporal", "importance", "hybrid"]


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", LOG_LEVEL).upper()


def get_sandbox_path() -> Path:
    """Directory holding the persisted index binary and map sidecar."""
    return Path(os.getenv("SANDBOX_PATH", SANDBOX_PATH))


def _resolve_in_sandbox(value: str) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return get_sandbox_path() / path


def get_index_path() -> Path:
    """Get the index binary path. Relative values live under the sandbox."""
    return _resolve_in_sandbox(os.getenv("VECTOR_INDEX_PATH", VECTOR_INDEX_PATH))


def get_map_path() -> Path:
    """Get the map sidecar path. Relative values live under the sandbox."""
    return _resolve_in_sandbox(os.getenv("VECTOR_MAP_PATH", VECTOR_MAP_PATH))


def get_vector_dimensions() -> int:
    return int(os.getenv("VECTOR_DIMENSIONS", str(VECTOR_DIMENSIONS)))


def get_max_elements() -> int:
    return int(os.getenv("VECTOR_MAX_ELEMENTS", str(VECTOR_MAX_ELEMENTS)))


def get_hnsw_params() -> Dict[str, int]:
    """Get HNSW build/search parameters as keyword arguments for HnswIndex."""
    return {
        "m": int(os.getenv("HNSW_M", str(HNSW_M))),
        "ef_construction": int(os.getenv("HNSW_EF_CONSTRUCTION", str(HNSW_EF_CONSTRUCTION))),
        "ef_search": int(os.getenv("HNSW_EF_SEARCH", str(HNSW_EF_SEARCH))),
    }


def get_default_strategy() -> str:
    return os.getenv("COMPRESSION_STRATEGY", COMPRESSION_STRATEGY)


def get_default_max_memory_size() -> int:
    return int(os.getenv("COMPRESSION_MAX_MEMORY_SIZE", str(COMPRESSION_MAX_MEMORY_SIZE)))


def ensure_sandbox_directory():
    """Ensure the sandbox directory exists."""
    get_sandbox_path().mkdir(parents=True, exist_ok=True)


def validate_vector_config() -> List[str]:
    """Validate vector store and compression configuration and return any issues."""
    issues = []

    if get_vector_dimensions() < 1:
        issues.append("VECTOR_DIMENSIONS must be >= 1")

    if get_max_elements() < 1:
        issues.append("VECTOR_MAX_ELEMENTS must be >= 1")

    params = get_hnsw_params()
    if params["m"] < 2:
        issues.append("HNSW_M must be >= 2")
    if params["ef_construction"] < 1:
        issues.append("HNSW_EF_CONSTRUCTION must be >= 1")
    if params["ef_search"] < 1:
        issues.append("HNSW_EF_SEARCH must be >= 1")

    if get_default_strategy() not in VALID_STRATEGIES:
        issues.append(f"Invalid COMPRESSION_STRATEGY: {get_default_strategy()}")

    if get_default_max_memory_size() < 0:
        issues.append("COMPRESSION_MAX_MEMORY_SIZE must be >= 0")

    if get_index_path() == get_map_path():
        issues.append("VECTOR_INDEX_PATH and VECTOR_MAP_PATH must differ")

    return issues
