"""
OpenAI Whisper API provider - cloud transcription over HTTPS
"""

import logging
import mimetypes
from pathlib import Path
from typing import Optional

import requests

from config.config import (
    OPENAI_API_KEY,
    OPENAI_TRANSCRIPTION_MODEL,
    OPENAI_TRANSCRIPTION_URL,
    TRANSCRIPTION_TIMEOUT_SECONDS,
)
from voicediary.errors import TranscriptionError, TranscriptionErrorKind
from voicediary.transcription_service import TranscriptionProvider

logger = logging.getLogger(__name__)


class OpenAIWhisperProvider(TranscriptionProvider):
    name = "openai-whisper"

    def __init__(self, api_key: Optional[str] = None, url: str = OPENAI_TRANSCRIPTION_URL,
                 model: str = OPENAI_TRANSCRIPTION_MODEL,
                 timeout_seconds: float = TRANSCRIPTION_TIMEOUT_SECONDS):
        self.api_key = OPENAI_API_KEY if api_key is None else api_key
        self.url = url
        self.model = model
        self.timeout_seconds = timeout_seconds

    def _error(self, kind: TranscriptionErrorKind, message: Optional[str] = None, **kwargs) -> TranscriptionError:
        return TranscriptionError(kind, message, provider=self.name, **kwargs)

    def transcribe(self, audio_path: Path) -> str:
        # No credential: skip without any network I/O
        if not self.api_key:
            raise self._error(TranscriptionErrorKind.MISSING_CREDENTIAL)

        audio_path = Path(audio_path)
        try:
            audio_bytes = audio_path.read_bytes()
        except OSError as e:
            raise self._error(TranscriptionErrorKind.FAILED, f"Cannot read {audio_path.name}: {e}")

        content_type = mimetypes.guess_type(audio_path.name)[0] or "audio/m4a"
        try:
            response = requests.post(
                self.url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                data={"model": self.model, "response_format": "json"},
                files={"file": (audio_path.name, audio_bytes, content_type)},
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as e:
            raise self._error(TranscriptionErrorKind.TIMEOUT, f"Whisper API timed out: {e}")
        except requests.RequestException as e:
            raise self._error(TranscriptionErrorKind.HTTP_FAILURE, status=-1, body=str(e))

        if response.status_code != 200:
            body = response.text or "<no body>"
            raise self._error(TranscriptionErrorKind.HTTP_FAILURE, status=response.status_code, body=body)

        try:
            text = response.json()["text"]
        except (ValueError, KeyError, TypeError):
            raise self._error(TranscriptionErrorKind.DECODING)
        if not isinstance(text, str):
            raise self._error(TranscriptionErrorKind.DECODING)

        logger.debug(f"Whisper API returned {len(text)} characters for {audio_path.name}")
        return text
