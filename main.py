#!/usr/bin/env python3
"""
Voice Diary

Keeps a personal journal of voice and text entries:
1. Records typed text or imports a finished voice recording
2. Transcribes recordings with OpenAI Whisper (on-device Whisper fallback)
3. Stores entries with mood and tags, organized by day
4. Reports word counts, audio totals and weekly progress

Usage:
    python main.py add --text "..." [--audio FILE] [--mood happy] [--tag work]
    python main.py list | day 2024-03-04 | show ID | delete ID | stats
    python main.py transcribe FILE
    python main.py rebuild-index
"""

import sys
import json
import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from config.config import DIARY_DIRECTORY, LOG_FILE, get_settings_summary
from voicediary.aggregation_service import EntryAggregationService
from voicediary.audio_service import AudioService
from voicediary.entry_store import EntryStore
from voicediary.errors import StorageError, TranscriptionError, TranscriptionFailed
from voicediary.models import Entry, Mood, sort_entries
from voicediary.transcription_service import TranscriptionPipeline
from voicediary.utils import calculate_percentage, format_duration_human, parse_comma_separated_tags

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_file: Optional[str] = LOG_FILE):
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def parse_date_argument(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date: {value} (expected YYYY-MM-DD or ISO timestamp)")


class VoiceDiaryApp:
    def __init__(self, directory: Optional[str] = None,
                 store: Optional[EntryStore] = None,
                 pipeline: Optional[TranscriptionPipeline] = None,
                 audio_service: Optional[AudioService] = None):
        self.audio_service = audio_service or AudioService()
        self.store = store or EntryStore(directory, audio_service=self.audio_service)
        self._pipeline = pipeline
        self.aggregation = EntryAggregationService(self.store, self.audio_service)

    @property
    def pipeline(self) -> TranscriptionPipeline:
        if self._pipeline is None:
            self._pipeline = TranscriptionPipeline.default(self.audio_service)
        return self._pipeline

    def transcribe(self, audio_path: Path) -> Optional[str]:
        """Text from the first provider that succeeds, None if all failed"""
        try:
            result = self.pipeline.transcribe(audio_path)
        except TranscriptionFailed as e:
            for attempt in e.attempts:
                logger.warning(f"  {attempt.provider}: {attempt.kind.value} - {attempt}")
            logger.error(f"Transcription failed ({e.kind.value}); the recording is kept")
            return None
        if result.used_fallback:
            logger.info(f"Transcribed with fallback provider {result.provider}")
        return result.text

    def add_entry(self, text: str = "", audio: Optional[Path] = None, mood: Mood = Mood.HAPPY,
                  tags: Optional[List[str]] = None, title: str = "",
                  when: Optional[datetime] = None, keep_source: bool = False,
                  transcribe: bool = True) -> Entry:
        entry = Entry(title=title, date=when or datetime.now(), text=text, mood=mood)
        for tag in tags or []:
            entry.add_tag(tag)

        if audio is not None:
            validation = self.audio_service.validate(audio)
            if not validation["valid"]:
                raise StorageError(f"Cannot use {audio}: {validation['reason']}")
            self.store.import_audio(entry, audio, move=not keep_source)
            if transcribe and not entry.text:
                stored_audio = self.store.resolve_audio(entry)
                if stored_audio is not None:
                    entry.text = self.transcribe(stored_audio) or ""

        self.store.save(entry)
        logger.info(f"Saved entry {entry.id} for {entry.day.isoformat()}")
        return entry


def format_entry_line(entry: Entry) -> str:
    tags = " ".join(f"#{t}" for t in entry.tags)
    audio = f" [{format_duration_human(entry.audio_duration_seconds)} audio]" if entry.audio_file_name else ""
    preview = entry.text.replace("\n", " ")
    if len(preview) > 60:
        preview = preview[:57] + "..."
    title = f"{entry.title} - " if entry.title else ""
    return (f"{entry.date:%Y-%m-%d %H:%M}  {entry.mood.display_name:<8} {entry.id}  "
            f"{title}{preview}{audio} {tags}").rstrip()


def print_stats(app: VoiceDiaryApp):
    stats = app.aggregation.refresh()
    print("\n📊 DIARY STATS")
    print(f"Entries: {stats.entry_count}")
    print(f"This week: {stats.weekly_count}")
    print(f"Words: {stats.total_word_count}")
    print(f"Audio: {format_duration_human(stats.total_audio_seconds)}")
    print(f"Days with entries: {len(stats.entries_by_day)}")
    if stats.mood_counts:
        print("Moods:")
        for mood in sorted(stats.mood_counts, key=lambda m: m.sort_order):
            count = stats.mood_counts[mood]
            print(f"  {mood.display_name:<8} {count} ({calculate_percentage(count, stats.entry_count)}%)")
    if stats.tag_counts:
        top = list(stats.tag_counts.items())[:10]
        print("Top tags: " + ", ".join(f"#{tag} ({count})" for tag, count in top))
    if stats.repaired:
        print(f"Recorded missing audio durations for {stats.repaired} entries")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Keep a voice and text diary")
    parser.add_argument(
        "--directory",
        default=DIARY_DIRECTORY,
        help=f"Diary store directory (default: {DIARY_DIRECTORY})"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--show-config", action="store_true", help="Print effective settings and exit")

    subparsers = parser.add_subparsers(dest="command")

    add = subparsers.add_parser("add", help="Add a text or voice entry")
    add.add_argument("--text", default="", help="Entry text")
    add.add_argument("--audio", type=Path, help="Finished recording to attach and transcribe")
    add.add_argument("--keep-source", action="store_true", help="Copy the recording instead of moving it")
    add.add_argument("--no-transcribe", action="store_true", help="Attach audio without transcribing")
    add.add_argument("--mood", choices=[m.value for m in Mood], default=Mood.HAPPY.value)
    add.add_argument("--tag", action="append", default=[], help="Tag (repeatable)")
    add.add_argument("--tags", default="", help="Comma-separated tags")
    add.add_argument("--title", default="", help="Entry title")
    add.add_argument("--date", type=parse_date_argument, help="Entry timestamp (default: now)")

    list_cmd = subparsers.add_parser("list", help="List all entries")
    list_cmd.add_argument("--sort", choices=["date", "mood"], default="date")

    day = subparsers.add_parser("day", help="List entries of one day")
    day.add_argument("date", type=parse_date_argument)

    show = subparsers.add_parser("show", help="Show one entry as JSON")
    show.add_argument("id")

    delete = subparsers.add_parser("delete", help="Delete an entry and its audio")
    delete.add_argument("id")

    subparsers.add_parser("stats", help="Show diary statistics")

    transcribe = subparsers.add_parser("transcribe", help="Transcribe a recording without saving")
    transcribe.add_argument("audio", type=Path)

    subparsers.add_parser("rebuild-index", help="Rebuild the index from entry files")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.show_config:
        print(json.dumps(get_settings_summary(), indent=2))
        return 0
    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    try:
        app = VoiceDiaryApp(args.directory)

        if args.command == "add":
            if args.audio is not None and not args.audio.exists():
                logger.error(f"File does not exist: {args.audio}")
                return 1
            tags = args.tag + parse_comma_separated_tags(args.tags)
            entry = app.add_entry(
                text=args.text, audio=args.audio, mood=Mood(args.mood), tags=tags,
                title=args.title, when=args.date, keep_source=args.keep_source,
                transcribe=not args.no_transcribe,
            )
            print(format_entry_line(entry))

        elif args.command == "list":
            for entry in sort_entries(app.store.load_all(), by=args.sort):
                print(format_entry_line(entry))

        elif args.command == "day":
            entries = app.store.load_all_on(args.date)
            if not entries:
                print(f"No entries on {args.date:%Y-%m-%d}")
            for entry in entries:
                print(format_entry_line(entry))

        elif args.command == "show":
            entry = app.store.get(args.id)
            if entry is None:
                logger.error(f"No entry with id {args.id}")
                return 1
            print(json.dumps(entry.to_dict(), indent=2, ensure_ascii=False))

        elif args.command == "delete":
            if app.store.delete(args.id):
                print(f"Deleted {args.id}")
            else:
                print(f"No entry with id {args.id}")

        elif args.command == "stats":
            print_stats(app)

        elif args.command == "transcribe":
            if not args.audio.exists():
                logger.error(f"File does not exist: {args.audio}")
                return 1
            text = app.transcribe(args.audio)
            if text is None:
                return 1
            print(text)

        elif args.command == "rebuild-index":
            ids = app.store.rebuild_index()
            print(f"Index rebuilt with {len(ids)} entries")

    except StorageError as e:
        logger.error(f"Storage error: {e}")
        return 1
    except TranscriptionError as e:
        logger.error(f"Transcription error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
