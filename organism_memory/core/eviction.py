"""Eviction ordering for memory items under a size budget."""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Sequence, Tuple

from ..util.logging import logger


class EvictionStrategy(str, Enum):
    """Which items leave first when memory is over budget."""
    TEMPORAL = "temporal"
    IMPORTANCE = "importance"
    HYBRID = "hybrid"


def parse_strategy(name) -> EvictionStrategy:
    """Map a strategy name to EvictionStrategy. Unknown names fall back to HYBRID."""
    if isinstance(name, EvictionStrategy):
        return name
    try:
        return EvictionStrategy(str(name).lower())
    except ValueError:
        logger.debug(f"Unknown compression strategy {name!r}, using hybrid")
        return EvictionStrategy.HYBRID


@dataclass(frozen=True)
class EvictionCandidate:
    """One list item, identified by where it sat before any removal."""
    category: str
    index: int
    item: Any
    category_position: int = 0

    @property
    def identity(self) -> Tuple[str, int]:
        return (self.category, self.index)


def _parse_time(value) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, (int, float)):
        # Numeric timestamps are epoch milliseconds
        seconds = float(value) / 1000.0
        return seconds if math.isfinite(seconds) else 0.0
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return 0.0
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()
    return 0.0


def item_timestamp(item) -> float:
    """Epoch seconds from `timestamp`, else `created_at`. Missing or unparseable is 0.

    Numbers are read as epoch milliseconds, strings as ISO-8601.
    """
    if not isinstance(item, dict):
        return 0.0
    value = item.get("timestamp")
    if value is None:
        value = item.get("created_at")
    return _parse_time(value)


def item_importance(item) -> float:
    """Importance from `confidence_score`, else `importance`. Missing is 0."""
    if not isinstance(item, dict):
        return 0.0
    value = item.get("confidence_score")
    if value is None:
        value = item.get("importance")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def eviction_key(candidate: EvictionCandidate, strategy: EvictionStrategy) -> Tuple[float, int, int]:
    """Sort key where smaller means removed sooner.

    HYBRID currently orders like TEMPORAL. Ties fall back to the original
    (category, index) position.
    """
    if strategy == EvictionStrategy.IMPORTANCE:
        primary = item_importance(candidate.item)
    else:
        primary = item_timestamp(candidate.item)
    return (primary, candidate.category_position, candidate.index)


def order_candidates(candidates: Sequence[EvictionCandidate], strategy) -> List[EvictionCandidate]:
    """Return candidates in remove-first order."""
    strategy = parse_strategy(strategy)
    return sorted(candidates, key=lambda c: eviction_key(c, strategy))
