"""
Entry Store - durable storage of diary entries and their audio blobs

Layout of the store directory:
    index.json        ids of living entries, insertion order
    <ID>.json         one record per entry
    <ID>.m4a          audio blob owned by the entry

All mutations (save, delete, audio import, index repair) run under one
re-entrant lock shared with the RecordIndex, so the index read-modify-write
cycle can never lose an update. Reads take no lock; atomic file replacement
keeps them from seeing half-written files.
"""

import glob
import json
import logging
import os
import shutil
import threading
from datetime import date as date_type
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Set, Union

from config.config import (
    AUDIO_EXTENSION,
    DIARY_DIRECTORY,
    FIRST_WEEKDAY,
    INDEX_FILE_NAME,
    INDEX_RECOVERY,
    SUPPORTED_AUDIO_FORMATS,
)
from voicediary.audio_service import AudioService
from voicediary.errors import AudioImportError, CorruptIndex, WriteError
from voicediary.models import Entry, WeeklyProgress, to_local_naive
from voicediary.record_index import RecordIndex, atomic_write_json
from voicediary.utils import sanitize_json_for_logging

logger = logging.getLogger(__name__)

RECOVERY_POLICIES = ("rebuild", "fail")


def week_start_for(reference: datetime, first_weekday: int = FIRST_WEEKDAY) -> datetime:
    """Local midnight of the first day of the week containing reference"""
    offset = (reference.weekday() - first_weekday) % 7
    start_day = reference.date() - timedelta(days=offset)
    return datetime(start_day.year, start_day.month, start_day.day)


def _as_day(value: Union[datetime, date_type]) -> date_type:
    return value.date() if isinstance(value, datetime) else value


class EntryStore:
    def __init__(self, directory: Union[str, Path, None] = None,
                 audio_service: Optional[AudioService] = None,
                 index_recovery: str = INDEX_RECOVERY,
                 first_weekday: int = FIRST_WEEKDAY):
        if index_recovery not in RECOVERY_POLICIES:
            raise ValueError(f"index_recovery must be one of {RECOVERY_POLICIES}, got {index_recovery!r}")

        self.directory = Path(directory or DIARY_DIRECTORY).expanduser()
        self.audio_service = audio_service or AudioService()
        self.index_recovery = index_recovery
        self.first_weekday = first_weekday

        self._lock = threading.RLock()
        self.index = RecordIndex(self.directory / INDEX_FILE_NAME, lock=self._lock)

        self.directory.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if not self.index.exists():
                if self._scan_entry_files():
                    # Entry files without an index: the index was lost
                    logger.warning(f"Index missing in {self.directory} but entry files exist")
                    self._recover_index()
                else:
                    self.index.ensure_exists()

    # Paths

    def record_path(self, entry_id: str) -> Path:
        if not entry_id or os.sep in entry_id or (os.altsep and os.altsep in entry_id) or entry_id.startswith("."):
            raise ValueError(f"Invalid entry id: {entry_id!r}")
        return self.directory / f"{entry_id}.json"

    def audio_path(self, file_name: str) -> Path:
        # Only bare file names are allowed inside the store
        return self.directory / Path(file_name).name

    def audio_path_for_entry(self, entry_id: str) -> Path:
        return self.directory / f"{entry_id}{AUDIO_EXTENSION}"

    def resolve_audio(self, entry: Entry) -> Optional[Path]:
        """Blob path if it exists on disk; a dangling reference counts as absent"""
        if not entry.audio_file_name:
            return None
        path = self.audio_path(entry.audio_file_name)
        return path if path.is_file() else None

    # Index access

    def read_ids(self) -> List[str]:
        try:
            return self.index.read()
        except CorruptIndex as e:
            if self.index_recovery == "fail":
                logger.error(f"Index is corrupt and recovery is disabled: {e}")
                raise
            logger.warning(f"Index is corrupt ({e}); rebuilding from entry files")
            with self._lock:
                return self._recover_index()

    def _scan_entry_files(self) -> List[Path]:
        return sorted(
            p for p in self.directory.glob("*.json")
            if p.name != INDEX_FILE_NAME and not p.name.startswith(".")
        )

    def _recover_index(self) -> List[str]:
        entries = []
        for path in self._scan_entry_files():
            entry = self._read_record(path)
            if entry is not None and path.stem == entry.id:
                entries.append(entry)
        entries.sort(key=lambda e: e.date)
        ids = [e.id for e in entries]
        self.index.write(ids)
        logger.info(f"Rebuilt index with {len(ids)} entries")
        return ids

    def rebuild_index(self) -> List[str]:
        """Re-derive the index from the well-formed entry files on disk"""
        with self._lock:
            return self._recover_index()

    # Writes

    def save(self, entry: Entry) -> Entry:
        """Write the record, then upsert its id into the index"""
        try:
            path = self.record_path(entry.id)
            payload = entry.to_dict()
        except (TypeError, ValueError, AttributeError) as e:
            raise WriteError(f"Cannot serialize entry {entry.id}: {e}") from e

        with self._lock:
            atomic_write_json(path, payload)
            try:
                self.index.upsert(entry.id)
            except CorruptIndex:
                if self.index_recovery == "fail":
                    raise
                logger.warning("Index corrupt during save; rebuilding")
                # The rebuilt index already includes the record just written
                self._recover_index()
        logger.debug(f"Saved entry {entry.id}: {sanitize_json_for_logging(payload)}")
        return entry

    def update(self, entry_id: str, change: Callable[[Entry], Optional[bool]]) -> Optional[Entry]:
        """
        Read-modify-write of one stored entry under the store lock, so no
        other save can land between the read and the write. `change` edits
        the entry in place and returns False to skip saving. Returns the
        stored entry, or None if there is none.
        """
        with self._lock:
            current = self.get(entry_id)
            if current is None:
                return None
            if change(current) is False:
                return current
            return self.save(current)

    def import_audio(self, entry: Entry, source_path: Union[str, Path], move: bool = True) -> Entry:
        """
        Copy a finished recording into the entry's blob location and record
        its duration. The source is removed only after a successful copy.
        """
        source = Path(source_path)
        destination = self.audio_path_for_entry(entry.id)
        if not source.is_file():
            raise AudioImportError(f"Recording not found: {source}")
        already_in_place = source.resolve() == destination.resolve()

        with self._lock:
            if not already_in_place:
                try:
                    if destination.exists():
                        destination.unlink()
                    shutil.copy2(str(source), str(destination))
                except OSError as e:
                    self._remove_quietly(destination)
                    raise AudioImportError(f"Cannot import audio {source}: {e}") from e

            duration = self.audio_service.probe_duration(destination)
            entry.audio_file_name = destination.name
            entry.audio_duration_seconds = duration if duration > 0 else None

            if move and not already_in_place:
                try:
                    source.unlink()
                except OSError as e:
                    logger.warning(f"Imported audio but could not remove {source}: {e}")
        logger.info(f"Imported audio for entry {entry.id} ({destination.name})")
        return entry

    def delete(self, entry_id: str) -> bool:
        """
        Remove an entry, its id in the index, and its audio blob. Missing
        files are not errors; returns True if anything was removed.
        """
        try:
            path = self.record_path(entry_id)
        except ValueError:
            logger.warning(f"Ignoring delete of invalid entry id {entry_id!r}")
            return False
        with self._lock:
            existing = self._read_record(path, quiet=True)

            try:
                removed_from_index = self.index.remove(entry_id)
            except CorruptIndex:
                if self.index_recovery == "fail":
                    raise
                self._recover_index()
                removed_from_index = self.index.remove(entry_id)

            removed_record = self._remove_quietly(path)

            blobs = {self.audio_path_for_entry(entry_id)}
            if existing is not None and existing.audio_file_name:
                blobs.add(self.audio_path(existing.audio_file_name))
            elif existing is None:
                # Record unreadable: sweep any audio named after the id
                blobs.update(self._audio_blobs_named_for(entry_id))
            removed_blob = False
            for blob in blobs:
                removed_blob = self._remove_quietly(blob) or removed_blob

        if removed_record or removed_from_index:
            logger.info(f"Deleted entry {entry_id}")
        return removed_record or removed_from_index or removed_blob

    def _audio_blobs_named_for(self, entry_id: str) -> List[Path]:
        pattern = f"{glob.escape(entry_id)}.*"
        return [p for p in self.directory.glob(pattern)
                if p.suffix.lower() in SUPPORTED_AUDIO_FORMATS]

    def _remove_quietly(self, path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")
            return False

    # Reads

    def _read_record(self, path: Path, quiet: bool = False) -> Optional[Entry]:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                return Entry.from_dict(json.load(handle))
        except FileNotFoundError:
            if not quiet:
                logger.warning(f"Skipping missing entry file {path.name}")
        except (OSError, ValueError, TypeError) as e:
            if not quiet:
                logger.warning(f"Skipping unreadable entry file {path.name}: {e}")
        return None

    def get(self, entry_id: str) -> Optional[Entry]:
        try:
            path = self.record_path(entry_id)
        except ValueError:
            return None
        return self._read_record(path, quiet=True)

    def load_all(self) -> List[Entry]:
        """All readable entries, most recent first"""
        entries = []
        for entry_id in self.read_ids():
            try:
                path = self.record_path(entry_id)
            except ValueError:
                logger.warning(f"Skipping invalid id in index: {entry_id!r}")
                continue
            entry = self._read_record(path)
            if entry is not None:
                entries.append(entry)
        return sorted(entries, key=lambda e: e.date, reverse=True)

    def load(self, on_date: Union[datetime, date_type]) -> Optional[Entry]:
        """First entry on the given day in load_all() order"""
        day = _as_day(on_date)
        for entry in self.load_all():
            if entry.day == day:
                return entry
        return None

    def load_all_on(self, on_date: Union[datetime, date_type]) -> List[Entry]:
        """Entries on the given day, in chronological order"""
        day = _as_day(on_date)
        return sorted((e for e in self.load_all() if e.day == day), key=lambda e: e.date)

    def weekly_count(self, reference_date: Optional[datetime] = None) -> int:
        return self.weekly_progress(reference_date).entries_count

    def weekly_progress(self, reference_date: Optional[datetime] = None) -> WeeklyProgress:
        reference = reference_date or datetime.now()
        if isinstance(reference, datetime):
            reference = to_local_naive(reference)
        else:
            reference = datetime(reference.year, reference.month, reference.day)
        start = week_start_for(reference, self.first_weekday)
        end = start + timedelta(days=7)
        count = sum(1 for e in self.load_all() if start <= e.date < end)
        return WeeklyProgress(week_start=start, entries_count=count)

    def days_with_entries(self, year: int, month: int) -> Set[date_type]:
        """Calendar days in the month that have at least one entry"""
        return {e.day for e in self.load_all() if e.day.year == year and e.day.month == month}
