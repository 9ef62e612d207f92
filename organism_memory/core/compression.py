"""
Memory compression: evicts list items from a memory structure, in strategy
order, until its serialized size fits a byte budget.

Size is the UTF-8 byte length of compact JSON. Items are removed by their
original (category, index) position, never by comparing field values, so
duplicates and look-alike items cannot cause the wrong item to go.
"""

import copy
import json
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from . import config
from .errors import CompressionError
from .eviction import EvictionCandidate, item_importance, order_candidates, parse_strategy
from ..util.logging import logger

NO_COMPRESSION_SUMMARY = "No compression needed - memory within limits."


@dataclass
class CompressionResult:
    """Outcome of one compress() call."""
    memory: Dict[str, Any]
    strategy: str
    removed_count: int = 0
    reduction_percentage: float = 0.0
    preserved_count: int = 0
    protected_count: int = 0
    initial_size: int = 0
    final_size: int = 0
    budget_met: bool = True
    removed: List[Tuple[str, int]] = field(default_factory=list)
    summary: str = NO_COMPRESSION_SUMMARY

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for serialization."""
        return {
            "memory": self.memory,
            "strategy": self.strategy,
            "removed_count": self.removed_count,
            "reduction_percentage": self.reduction_percentage,
            "preserved_count": self.preserved_count,
            "protected_count": self.protected_count,
            "initial_size": self.initial_size,
            "final_size": self.final_size,
            "budget_met": self.budget_met,
            "removed": [list(identity) for identity in self.removed],
            "summary": self.summary,
        }


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _encode(value) -> bytes:
    try:
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_json_default)
    except (TypeError, ValueError) as e:
        raise CompressionError(f"Memory is not JSON serializable: {e}") from e
    return text.encode("utf-8")


def measure_size(memory) -> int:
    """Serialized byte length of memory as compact JSON."""
    return len(_encode(memory))


def count_preserved(memory: Mapping[str, Any]) -> int:
    """List items count individually; every other key counts once."""
    return sum(len(value) if isinstance(value, list) else 1 for value in memory.values())


def flatten_candidates(memory: Mapping[str, Any]) -> List[EvictionCandidate]:
    """Collect every item of every list-valued category with its original position."""
    candidates = []
    for position, (category, value) in enumerate(memory.items()):
        if not isinstance(value, list):
            continue
        for index, item in enumerate(value):
            candidates.append(EvictionCandidate(category, index, item, position))
    return candidates


def compress(
    memory: Mapping[str, Any],
    strategy=None,
    retention_threshold: Optional[float] = None,
    max_memory_size: Optional[int] = None,
) -> CompressionResult:
    """
    Remove items from memory until it fits max_memory_size bytes.

    Args:
        memory: Mapping from category name to values; list values are compressible
        strategy: "temporal", "importance" or "hybrid" (default from config)
        retention_threshold: Items whose importance is at or above this are never removed;
            None protects nothing
        max_memory_size: Byte budget (default from config)

    Returns:
        CompressionResult holding a compressed deep copy; the input is not modified.
        If every removable item is gone and memory is still too large, the result has
        budget_met=False and a summary noting partial success.

    Raises:
        CompressionError: memory is not a mapping, is not JSON serializable, or the budget is negative
    """
    if not isinstance(memory, Mapping):
        raise CompressionError(f"Memory must be a mapping, got {type(memory).__name__}")

    resolved = parse_strategy(strategy if strategy is not None else config.get_default_strategy())
    if max_memory_size is None:
        max_memory_size = config.get_default_max_memory_size()
    if max_memory_size < 0:
        raise CompressionError(f"max_memory_size must be >= 0, got {max_memory_size}")

    working = copy.deepcopy(dict(memory))
    initial_size = measure_size(working)

    if initial_size <= max_memory_size:
        return CompressionResult(
            memory=working,
            strategy=resolved.value,
            preserved_count=count_preserved(working),
            initial_size=initial_size,
            final_size=initial_size,
        )

    candidates = flatten_candidates(working)
    protected_count = 0
    if retention_threshold is not None:
        pool = [c for c in candidates if item_importance(c.item) < retention_threshold]
        protected_count = len(candidates) - len(pool)
    else:
        pool = candidates

    remaining = {category: len(value) for category, value in working.items() if isinstance(value, list)}
    removed: List[Tuple[str, int]] = []
    size = initial_size

    for candidate in order_candidates(pool, resolved):
        if size <= max_memory_size:
            break
        # "[a,b]" -> "[b]" drops the item and one comma; "[a]" -> "[]" drops only the item
        size -= len(_encode(candidate.item))
        if remaining[candidate.category] > 1:
            size -= 1
        remaining[candidate.category] -= 1
        removed.append(candidate.identity)

    removed_set = set(removed)
    for category in {category for category, _ in removed}:
        working[category] = [
            item for index, item in enumerate(working[category])
            if (category, index) not in removed_set
        ]

    final_size = measure_size(working)
    if final_size != size:
        logger.warning(f"Tracked memory size {size} differs from measured size {final_size}")

    budget_met = final_size <= max_memory_size
    reduction = round((initial_size - final_size) / initial_size * 100, 2)

    summary = (
        f"Compressed {len(removed)} memories using '{resolved.value}' strategy, "
        f"reducing memory by {reduction:.2f}%."
    )
    if not budget_met:
        summary += (
            f" Partial compression: {final_size} bytes remain over the {max_memory_size} byte budget"
            f" with no removable items left."
        )

    logger.log_compression(resolved.value, len(removed), reduction, budget_met, {
        "initial_size": initial_size,
        "final_size": final_size,
        "protected_count": protected_count,
    })

    return CompressionResult(
        memory=working,
        strategy=resolved.value,
        removed_count=len(removed),
        reduction_percentage=reduction,
        preserved_count=count_preserved(working),
        protected_count=protected_count,
        initial_size=initial_size,
        final_size=final_size,
        budget_met=budget_met,
        removed=removed,
        summary=summary,
    )
