"""
Bidirectional mapping between opaque string IDs and the dense integer labels
used by the ANN engine.
"""

from typing import Any, Dict, Iterator, List, Optional

from ..core.errors import DuplicateIdError, PersistenceCorruptError


class IdentifierMap:
    """Keeps label_to_id and id_to_label as exact inverses, plus next_label.

    Labels start at 0 and only grow. next_label is persisted with the map so a
    reloaded store never hands out a label that is already in the index.
    """

    def __init__(self):
        self.label_to_id: Dict[int, str] = {}
        self.id_to_label: Dict[str, int] = {}
        self.next_label = 0

    def assign_label(self, record_id: str) -> int:
        """Assign the next label to record_id.

        Raises:
            DuplicateIdError: record_id already has a label
        """
        if record_id in self.id_to_label:
            raise DuplicateIdError(record_id, self.id_to_label[record_id])

        label = self.next_label
        self.label_to_id[label] = record_id
        self.id_to_label[record_id] = label
        self.next_label += 1
        return label

    def release(self, label: int) -> None:
        """Undo the assignment of label after its index insert failed.

        next_label only moves back when label was the most recent assignment,
        so a label that is already in the index is never handed out twice.
        """
        record_id = self.label_to_id.pop(label, None)
        if record_id is None:
            return
        self.id_to_label.pop(record_id, None)
        if label == self.next_label - 1:
            self.next_label = label

    def resolve(self, label: int) -> Optional[str]:
        return self.label_to_id.get(int(label))

    def label_of(self, record_id: str) -> Optional[int]:
        return self.id_to_label.get(record_id)

    def labels(self) -> List[int]:
        return sorted(self.label_to_id)

    def __contains__(self, record_id: str) -> bool:
        return record_id in self.id_to_label

    def __len__(self) -> int:
        return len(self.label_to_id)

    def __iter__(self) -> Iterator[str]:
        return iter(self.id_to_label)

    def serialize(self) -> Dict[str, Any]:
        """Convert to the sidecar shape {labelToId, idToLabel, nextLabel}."""
        return {
            "labelToId": [[label, record_id] for label, record_id in self.label_to_id.items()],
            "idToLabel": [[record_id, label] for record_id, label in self.id_to_label.items()],
            "nextLabel": self.next_label,
        }

    @classmethod
    def deserialize(cls, data: Dict[str, Any]) -> "IdentifierMap":
        """Rebuild a map from its sidecar form.

        Raises:
            PersistenceCorruptError: missing keys, malformed pairs, mappings that
                are not inverses of each other, or a nextLabel that would collide
        """
        if not isinstance(data, dict):
            raise PersistenceCorruptError("Map sidecar must be a JSON object")

        try:
            label_pairs = data["labelToId"]
            id_pairs = data["idToLabel"]
            next_label = data["nextLabel"]
        except KeyError as e:
            raise PersistenceCorruptError(f"Map sidecar is missing key {e}") from e
        if not isinstance(label_pairs, list) or not isinstance(id_pairs, list):
            raise PersistenceCorruptError("labelToId and idToLabel must be lists of pairs")

        id_map = cls()
        for pair in label_pairs:
            label, record_id = _unpack_pair(pair, int, str)
            if label < 0 or label in id_map.label_to_id:
                raise PersistenceCorruptError(f"Invalid or repeated label {label} in labelToId")
            id_map.label_to_id[label] = record_id

        for pair in id_pairs:
            record_id, label = _unpack_pair(pair, str, int)
            if record_id in id_map.id_to_label:
                raise PersistenceCorruptError(f"Repeated ID {record_id!r} in idToLabel")
            id_map.id_to_label[record_id] = label

        if len(id_map.label_to_id) != len(id_map.id_to_label):
            raise PersistenceCorruptError("labelToId and idToLabel have different sizes")
        for label, record_id in id_map.label_to_id.items():
            if id_map.id_to_label.get(record_id) != label:
                raise PersistenceCorruptError(f"Label {label} and ID {record_id!r} are not mutually mapped")

        if isinstance(next_label, bool) or not isinstance(next_label, int) or next_label < 0:
            raise PersistenceCorruptError(f"Invalid nextLabel {next_label!r}")
        if id_map.label_to_id and next_label <= max(id_map.label_to_id):
            raise PersistenceCorruptError(f"nextLabel {next_label} would reuse an assigned label")
        id_map.next_label = next_label

        return id_map


def _unpack_pair(pair, first_type, second_type):
    if not isinstance(pair, (list, tuple)) or len(pair) != 2:
        raise PersistenceCorruptError(f"Malformed map entry {pair!r}")
    first, second = pair
    for value, expected in ((first, first_type), (second, second_type)):
        if isinstance(value, bool) or not isinstance(value, expected):
            raise PersistenceCorruptError(f"Malformed map entry {pair!r}")
    return first, second
