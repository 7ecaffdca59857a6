"""
Record Index - the durable list of entry ids that currently exist

The index is a small JSON document ``{"ids": [...]}`` kept in insertion
order. Every write replaces the whole file through a temporary sibling and
``os.replace`` so readers never observe a partially written index.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Iterable, List, Union

from voicediary.errors import CorruptIndex, WriteError

logger = logging.getLogger(__name__)


def atomic_write_json(path: Path, payload) -> None:
    """Serialize payload and swap it into place; raises WriteError"""
    try:
        data = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise WriteError(f"Cannot serialize {path.name}: {e}") from e

    temp_name = None
    try:
        fd, temp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.stem}-", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, path)
        temp_name = None
    except OSError as e:
        raise WriteError(f"Cannot write {path}: {e}") from e
    finally:
        if temp_name is not None:
            try:
                os.unlink(temp_name)
            except OSError:
                pass


class RecordIndex:
    def __init__(self, index_file: Union[str, Path], lock=None):
        self.index_file = Path(index_file)
        # Guards the read-modify-write cycle of upsert/remove
        self._lock = lock if lock is not None else threading.RLock()

    def exists(self) -> bool:
        return self.index_file.exists()

    def ensure_exists(self) -> bool:
        """Create an empty index on first run; returns True if one was created"""
        with self._lock:
            if self.index_file.exists():
                return False
            self.index_file.parent.mkdir(parents=True, exist_ok=True)
            self.write([])
            logger.info(f"Created empty index at {self.index_file}")
            return True

    def read(self) -> List[str]:
        """Ids in insertion order; raises CorruptIndex if unreadable"""
        try:
            raw = self.index_file.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise CorruptIndex(f"Index file missing: {self.index_file}") from e
        except OSError as e:
            raise CorruptIndex(f"Cannot read index {self.index_file}: {e}") from e

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise CorruptIndex(f"Index is not valid JSON: {e}") from e

        ids = data.get("ids") if isinstance(data, dict) else None
        if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
            raise CorruptIndex("Index has no list of string ids")

        # Duplicates from older writers collapse to the first position
        return list(dict.fromkeys(ids))

    def write(self, ids: Iterable[str]) -> None:
        with self._lock:
            atomic_write_json(self.index_file, {"ids": list(dict.fromkeys(ids))})

    def upsert(self, entry_id: str) -> bool:
        """Append id if absent; returns True when the index changed"""
        with self._lock:
            ids = self.read()
            if entry_id in ids:
                return False
            ids.append(entry_id)
            self.write(ids)
            return True

    def remove(self, entry_id: str) -> bool:
        """Drop id if present; returns True when the index changed"""
        with self._lock:
            ids = self.read()
            if entry_id not in ids:
                return False
            self.write([i for i in ids if i != entry_id])
            return True
