"""
Record and result types exchanged with vector store callers.
"""

from dataclasses import dataclass
from typing import Any, Dict

import numpy as np


@dataclass
class VectorRecord:
    """An embedding associated with exactly one opaque string ID."""

    id: str
    """Caller-supplied identifier, inserted at most once per store lifetime"""

    vector: np.ndarray
    """Fixed-dimension embedding"""


@dataclass
class SearchResult:
    """Represents a search result from the vector store."""

    id: str
    """Identifier for the matching record"""

    distance: float
    """Squared L2 distance to the query (lower is closer)"""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "distance": self.distance}
