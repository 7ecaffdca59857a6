"""
Voice Diary - A personal journal of spoken and typed entries

This package provides:
- A file-backed entry store with a crash-tolerant id index
- Audio blob management and duration probing
- Transcription through OpenAI Whisper with an on-device Whisper fallback
- Derived statistics (word counts, audio totals, weekly progress)
"""

__version__ = "1.0.0"
__author__ = "Voice Diary"
__description__ = "Record voice or text journal entries and keep them organized by day"
