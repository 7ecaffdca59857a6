"""
Diary data model: entries, moods and tag normalization.

Entries are persisted as JSON documents with camelCase keys so that files
written by the mobile app and by this package are interchangeable.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import date as date_type
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from voicediary.utils import format_iso_timestamp, parse_iso_timestamp

_LETTER_RUN = re.compile(r"[^\W\d_]+")


class Mood(str, Enum):
    COOL = "cool"
    LOVE = "love"
    SAD = "sad"
    ANGRY = "angry"
    HAPPY = "happy"
    NEUTRAL = "neutral"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def sort_order(self) -> int:
        return _MOOD_ORDER.index(self)

    @classmethod
    def parse(cls, value: Any, default: Optional["Mood"] = None) -> "Mood":
        """Parse a raw mood value, falling back to the default mood"""
        if isinstance(value, Mood):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return default if default is not None else DEFAULT_MOOD


_MOOD_ORDER = [Mood.COOL, Mood.LOVE, Mood.SAD, Mood.ANGRY, Mood.HAPPY, Mood.NEUTRAL]
DEFAULT_MOOD = Mood.HAPPY


def normalize_tag(raw: str) -> str:
    """'#Family ' -> 'family'"""
    if not raw:
        return ""
    return raw.strip().replace("#", "").strip().lower()


def normalize_tags(tags: Iterable[str]) -> List[str]:
    """Normalize and deduplicate tags, keeping first-seen order"""
    seen = set()
    result = []
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        normalized = normalize_tag(tag)
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


def new_entry_id() -> str:
    return str(uuid.uuid4()).upper()


def to_local_naive(value: datetime) -> datetime:
    """Aware datetimes become naive local time; naive ones are already local"""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


@dataclass
class Entry:
    """One journal record anchored to a timestamp"""

    id: str = field(default_factory=new_entry_id)
    title: str = ""
    date: datetime = field(default_factory=datetime.now)
    text: str = ""
    audio_file_name: Optional[str] = None
    mood: Mood = DEFAULT_MOOD
    tags: List[str] = field(default_factory=list)
    audio_duration_seconds: Optional[float] = None

    def __post_init__(self):
        # Whole seconds: the app decodes plain ISO-8601 without fractions
        self.date = to_local_naive(self.date).replace(microsecond=0)
        self.mood = Mood.parse(self.mood)
        self.tags = normalize_tags(self.tags)
        if self.audio_duration_seconds is not None:
            duration = float(self.audio_duration_seconds)
            self.audio_duration_seconds = duration if duration > 0 else None

    @property
    def word_count(self) -> int:
        return len(_LETTER_RUN.findall(self.text or ""))

    @property
    def day(self) -> date_type:
        return self.date.date()

    def add_tag(self, raw: str) -> bool:
        """Add a tag; returns False when it normalizes to empty or a duplicate"""
        normalized = normalize_tag(raw)
        if not normalized or normalized in self.tags:
            return False
        self.tags.append(normalized)
        return True

    def remove_tag(self, tag: str) -> bool:
        normalized = normalize_tag(tag)
        if normalized in self.tags:
            self.tags.remove(normalized)
            return True
        return False

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "date": format_iso_timestamp(self.date),
            "text": self.text,
            "mood": self.mood.value,
            "tags": list(self.tags),
        }
        if self.audio_file_name is not None:
            data["audioFileName"] = self.audio_file_name
        if self.audio_duration_seconds is not None:
            data["audioDurationSeconds"] = self.audio_duration_seconds
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        """Build an entry from a stored record; raises ValueError if malformed"""
        if not isinstance(data, dict):
            raise ValueError("entry record must be an object")
        entry_id = data.get("id")
        if not entry_id or not isinstance(entry_id, str):
            raise ValueError("entry record has no id")
        when = parse_iso_timestamp(data.get("date"))
        if when is None:
            raise ValueError(f"entry {entry_id} has no valid date")

        duration = data.get("audioDurationSeconds")
        if duration is not None and not isinstance(duration, (int, float)):
            duration = None

        return cls(
            id=entry_id,
            title=data.get("title") or "",
            date=when,
            text=data.get("text") or "",
            audio_file_name=data.get("audioFileName") or None,
            mood=Mood.parse(data.get("mood")),
            tags=data.get("tags") or [],
            audio_duration_seconds=duration,
        )


@dataclass(frozen=True)
class WeeklyProgress:
    week_start: datetime
    entries_count: int


def sort_entries(entries: Iterable[Entry], by: str = "date", descending: bool = True) -> List[Entry]:
    """Sort by date, or by mood rank with date as tie-breaker"""
    if by == "mood":
        ordered = sorted(entries, key=lambda e: e.date, reverse=descending)
        return sorted(ordered, key=lambda e: e.mood.sort_order)
    if by != "date":
        raise ValueError(f"Unknown sort key: {by}")
    return sorted(entries, key=lambda e: e.date, reverse=descending)
