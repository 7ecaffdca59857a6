"""
Pytest configuration and fixtures for Voice Diary testing
"""
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional
from unittest.mock import Mock

import pytest

# Import our modules
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from voicediary.entry_store import EntryStore
from voicediary.errors import TranscriptionError, TranscriptionErrorKind
from voicediary.models import Entry, Mood
from voicediary.transcription_service import TranscriptionProvider


class StubProvider(TranscriptionProvider):
    """Provider with a scripted outcome that records its calls"""

    def __init__(self, name: str, text: Optional[str] = None,
                 error: Optional[Exception] = None, delay: float = 0.0,
                 authorized: bool = True, requires_authorization: bool = False):
        self.name = name
        self.text = text
        self.error = error
        self.delay = delay
        self.authorized = authorized
        self.requires_authorization = requires_authorization
        self.calls = []
        self.authorization_requests = 0

    def request_authorization(self) -> bool:
        self.authorization_requests += 1
        return self.authorized

    def transcribe(self, audio_path: Path) -> str:
        self.calls.append(Path(audio_path))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.text


def failing_provider(name: str, kind: TranscriptionErrorKind = TranscriptionErrorKind.HTTP_FAILURE,
                     **kwargs) -> StubProvider:
    error = TranscriptionError(kind, status=500 if kind == TranscriptionErrorKind.HTTP_FAILURE else None,
                               body="server error" if kind == TranscriptionErrorKind.HTTP_FAILURE else None)
    return StubProvider(name, error=error, **kwargs)


@pytest.fixture
def mock_audio_service():
    """Audio service whose duration probe returns a fixed length"""
    service = Mock()
    service.probe_duration.return_value = 42.5
    service.validate.return_value = {"valid": True}
    return service


@pytest.fixture
def diary_dir(tmp_path):
    return tmp_path / "DiaryEntries"


@pytest.fixture
def store(diary_dir, mock_audio_service):
    """Fresh store in a temporary directory"""
    return EntryStore(diary_dir, audio_service=mock_audio_service, index_recovery="rebuild", first_weekday=0)


@pytest.fixture
def temp_audio_file(tmp_path):
    """Create a temporary audio file for testing"""
    path = tmp_path / "recording.m4a"
    path.write_bytes(b'fake audio data for testing' * 1000)
    return path


@pytest.fixture
def make_entry():
    """Factory for entries with sensible defaults"""
    def _make(text: str = "hello", when: Optional[datetime] = None, **kwargs) -> Entry:
        return Entry(date=when or datetime(2024, 3, 4, 10, 0), text=text,
                     mood=kwargs.pop("mood", Mood.NEUTRAL), **kwargs)
    return _make
