"""
Aggregation Service - statistics derived from the entry store

Everything here is recomputed from EntryStore reads. The only write is the
duration backfill repair pass, which re-saves entries whose audio length
was never recorded; it can be switched off to get pure reads.
"""

import logging
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from datetime import date as date_type
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from voicediary.audio_service import AudioService
from voicediary.entry_store import EntryStore
from voicediary.models import Entry, Mood

logger = logging.getLogger(__name__)


def group_entries_by_day(entries: Iterable[Entry]) -> "OrderedDict[date_type, List[Entry]]":
    """Days newest first; entries within a day in chronological order"""
    grouped: Dict[date_type, List[Entry]] = {}
    for entry in entries:
        grouped.setdefault(entry.day, []).append(entry)
    return OrderedDict(
        (day, sorted(grouped[day], key=lambda e: e.date))
        for day in sorted(grouped, reverse=True)
    )


@dataclass
class DiaryStats:
    entry_count: int = 0
    total_word_count: int = 0
    total_audio_seconds: float = 0.0
    weekly_count: int = 0
    entries_by_day: "OrderedDict[date_type, List[Entry]]" = field(default_factory=OrderedDict)
    mood_counts: Dict[Mood, int] = field(default_factory=dict)
    tag_counts: Dict[str, int] = field(default_factory=dict)
    repaired: int = 0


def _fill_duration(entry: Entry, duration: float) -> bool:
    if entry.audio_duration_seconds is not None:
        return False
    entry.audio_duration_seconds = duration
    return True


class DurationBackfill:
    """Repair pass: record audio durations that are missing from entries"""

    def __init__(self, store: EntryStore, audio_service: Optional[AudioService] = None):
        self.store = store
        self.audio_service = audio_service or store.audio_service

    def needs_repair(self, entry: Entry) -> bool:
        return bool(entry.audio_file_name) and entry.audio_duration_seconds is None

    def run(self, entries: List[Entry]) -> List[Entry]:
        """
        Returns the entries with durations filled in where a probe succeeded.
        Only the duration field is changed. The stored copy is re-read and
        re-saved under the store lock, so concurrent edits are kept.
        """
        repaired = []
        for index, entry in enumerate(entries):
            if not self.needs_repair(entry):
                continue
            try:
                audio = self.store.resolve_audio(entry)
                if audio is None:
                    continue
                duration = self.audio_service.probe_duration(audio)
                if duration <= 0:
                    continue

                current = self.store.update(entry.id, lambda stored: _fill_duration(stored, duration))
                if current is None:
                    continue
                entries[index] = current
                repaired.append(current)
            except Exception as e:
                logger.warning(f"Duration backfill failed for entry {entry.id}: {e}")
        if repaired:
            logger.info(f"Backfilled audio duration for {len(repaired)} entries")
        return repaired


class EntryAggregationService:
    def __init__(self, store: EntryStore, audio_service: Optional[AudioService] = None,
                 repair: bool = True):
        self.store = store
        self.repair = repair
        self.backfill = DurationBackfill(store, audio_service)

    def refresh(self, reference_date: Optional[datetime] = None) -> DiaryStats:
        entries = self.store.load_all()

        repaired = 0
        if self.repair:
            repaired = len(self.backfill.run(entries))

        stats = self.compute(entries, reference_date)
        stats.repaired = repaired
        return stats

    def compute(self, entries: List[Entry], reference_date: Optional[datetime] = None) -> DiaryStats:
        """Statistics over an already loaded entry list"""
        mood_counts = Counter(e.mood for e in entries)
        tag_counts = Counter(tag for e in entries for tag in e.tags)

        return DiaryStats(
            entry_count=len(entries),
            total_word_count=sum(e.word_count for e in entries),
            total_audio_seconds=sum(max(0.0, e.audio_duration_seconds or 0.0) for e in entries),
            weekly_count=self.store.weekly_count(reference_date),
            entries_by_day=group_entries_by_day(entries),
            mood_counts=dict(mood_counts),
            tag_counts=dict(tag_counts.most_common()),
        )
