"""
Test suite for Voice Diary

This package contains tests for all components:
- Entry model, mood ordering and tag normalization
- Record index and entry store consistency under concurrent writers
- Transcription provider fallback, timeouts and error kinds
- Aggregated statistics and the duration backfill repair pass
"""
