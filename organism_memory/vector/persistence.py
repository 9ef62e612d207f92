"""
Saves and loads the index binary and the identifier map sidecar as one unit.

Either both artifacts load and agree with each other, or the pair is treated
as absent. Saves go to temporary files that are renamed into place, so a
failed save leaves the previous pair untouched.
"""

import hashlib
import json
import os
import shutil
from pathlib import Path
from typing import Optional, Tuple, Union

from ..core.errors import PersistenceCorruptError, PersistenceWriteError
from ..util.logging import logger
from .hnsw_index import HnswIndex
from .id_map import IdentifierMap


def _file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _temp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def _backup_path(path: Path) -> Path:
    return path.with_name(path.name + ".bak")


class PersistenceManager:
    """Coordinates the index binary and the JSON map sidecar."""

    def __init__(self, index_path: Union[str, Path], map_path: Union[str, Path]):
        self.index_path = Path(index_path)
        self.map_path = Path(map_path)

    def exists(self) -> bool:
        """Check whether both artifacts are present on disk."""
        return self.index_path.exists() and self.map_path.exists()

    def load(
        self,
        dimension: int,
        default_capacity: int,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 64,
    ) -> Optional[Tuple[HnswIndex, IdentifierMap]]:
        """
        Load the index and map from disk.

        Args:
            dimension: Expected vector dimension
            default_capacity: Capacity used when the sidecar does not record one
            m, ef_construction, ef_search: HNSW parameters for the loaded index

        Returns:
            (index, id_map), or None when either file is missing

        Raises:
            PersistenceCorruptError: either artifact is unreadable or they disagree
        """
        if not self.exists():
            return None

        try:
            with open(self.map_path, "r", encoding="utf-8") as f:
                map_data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceCorruptError(f"Failed to read map sidecar {self.map_path}: {e}") from e

        id_map = IdentifierMap.deserialize(map_data)

        expected_hash = map_data.get("indexSha256")
        if expected_hash is not None:
            try:
                actual_hash = _file_sha256(self.index_path)
            except OSError as e:
                raise PersistenceCorruptError(f"Failed to read index {self.index_path}: {e}") from e
            if actual_hash != expected_hash:
                self._recover_index_backup(expected_hash)

        capacity = map_data.get("maxElements", default_capacity)
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise PersistenceCorruptError(f"Invalid maxElements {capacity!r} in {self.map_path}")
        capacity = max(capacity, len(id_map))

        index = HnswIndex(dimension=dimension, m=m, ef_construction=ef_construction, ef_search=ef_search)
        index.deserialize_from(self.index_path, capacity)

        # Every label in the index must resolve and vice versa
        if sorted(index.labels()) != id_map.labels():
            raise PersistenceCorruptError(
                f"Index holds {index.count} labels that do not match the {len(id_map)} mapped IDs"
            )

        logger.log_persistence("load", "success", {
            "index_path": str(self.index_path),
            "count": index.count,
            "next_label": id_map.next_label,
        })
        return index, id_map

    def _recover_index_backup(self, expected_hash: str) -> None:
        """Put back the previous index when a save stopped between its two renames."""
        backup = _backup_path(self.index_path)
        try:
            if not backup.exists() or _file_sha256(backup) != expected_hash:
                raise PersistenceCorruptError(
                    f"Index {self.index_path} does not match the checksum recorded in {self.map_path}"
                )
            os.replace(backup, self.index_path)
        except OSError as e:
            raise PersistenceCorruptError(f"Failed to restore index from {backup}: {e}") from e

        logger.log_persistence("load", "recovered", {"index_path": str(self.index_path), "backup": str(backup)})

    def save(self, index: HnswIndex, id_map: IdentifierMap) -> None:
        """
        Write the index binary, then the sidecar, through temporary files.

        Raises:
            PersistenceWriteError: any step failed; files from the last good save remain
        """
        index_tmp = _temp_path(self.index_path)
        map_tmp = _temp_path(self.map_path)
        index_backup = _backup_path(self.index_path)
        index_replaced = False

        try:
            self.index_path.parent.mkdir(parents=True, exist_ok=True)
            self.map_path.parent.mkdir(parents=True, exist_ok=True)

            index.serialize_to(index_tmp)

            payload = id_map.serialize()
            payload["maxElements"] = index.capacity
            payload["indexSha256"] = _file_sha256(index_tmp)

            with open(map_tmp, "w", encoding="utf-8") as f:
                json.dump(payload, f)
                f.flush()
                os.fsync(f.fileno())

            # The previous index must survive until the new sidecar is in place
            if self.index_path.exists():
                shutil.copy2(self.index_path, index_backup)

            os.replace(index_tmp, self.index_path)
            index_replaced = True
            os.replace(map_tmp, self.map_path)
        except Exception as e:
            if index_replaced and index_backup.exists():
                try:
                    os.replace(index_backup, self.index_path)
                except OSError:
                    logger.error(f"Failed to restore previous index from {index_backup}")
            elif index_replaced:
                # No earlier save existed; an index without its sidecar is not a valid pair
                try:
                    self.index_path.unlink()
                except OSError:
                    logger.warning(f"Failed to remove unpaired index {self.index_path}")
            stale = [index_tmp, map_tmp]
            if not index_replaced:
                stale.append(index_backup)
            for tmp in stale:
                try:
                    if tmp.exists():
                        tmp.unlink()
                except OSError:
                    logger.warning(f"Failed to remove temporary file {tmp}")
            logger.log_persistence("save", "failed", {"index_path": str(self.index_path), "error": str(e)})
            raise PersistenceWriteError(f"Failed to save vector store: {e}") from e

        try:
            if index_backup.exists():
                index_backup.unlink()
        except OSError:
            logger.warning(f"Failed to remove index backup {index_backup}")

        logger.log_persistence("save", "success", {
            "index_path": str(self.index_path),
            "map_path": str(self.map_path),
            "count": index.count,
            "next_label": id_map.next_label,
        })
