"""
Memory metrics and critical-memory extraction for organism memory structures.
"""

from typing import Any, Dict, Iterable, Mapping

from .compression import measure_size

CRITICAL_KEYS = [
    'core_learnings',
    'error_solutions',
    'optimization_patterns',
    'successful_strategies',
    'evolution_history',
    'critical_knowledge',
]


def memory_metrics(memory: Mapping[str, Any]) -> Dict[str, Any]:
    """Size and shape metrics for a memory structure."""
    total_size = measure_size(memory)
    return {
        "total_keys": len(memory),
        "total_size_bytes": total_size,
        "total_size_mb": round(total_size / (1024 * 1024), 4),
        "key_distribution": {key: measure_size(value) for key, value in memory.items()},
        "array_lengths": {key: len(value) for key, value in memory.items() if isinstance(value, list)},
    }


def extract_critical_memories(memory: Mapping[str, Any], keys: Iterable[str] = None) -> Dict[str, Any]:
    """Keep only the critical categories that are present and non-empty."""
    if keys is None:
        keys = CRITICAL_KEYS
    return {key: memory[key] for key in keys if memory.get(key)}
