"""
Errors raised by the diary store and the transcription pipeline.

Storage mutations surface typed errors to the caller. Transcription errors
carry a `kind` so callers can decide what to tell the user without parsing
message strings.
"""

from enum import Enum
from typing import List, Optional


class DiaryError(Exception):
    """Base class for all voice diary errors"""


class StorageError(DiaryError):
    pass


class WriteError(StorageError):
    """An entry or the index could not be serialized or written"""


class CorruptIndex(StorageError):
    """The index file exists but cannot be read or parsed"""


class AudioImportError(StorageError):
    """A recording could not be copied into the store"""


class TranscriptionErrorKind(Enum):
    MISSING_CREDENTIAL = "missing_credential"
    HTTP_FAILURE = "http_failure"
    DECODING = "decoding"
    NOT_AUTHORIZED = "not_authorized"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    FAILED = "failed"


_DEFAULT_MESSAGES = {
    TranscriptionErrorKind.MISSING_CREDENTIAL: "Missing OPENAI_API_KEY. Set it in the environment to enable cloud transcription.",
    TranscriptionErrorKind.DECODING: "Failed to decode transcription response.",
    TranscriptionErrorKind.NOT_AUTHORIZED: "Speech recognition not authorized.",
    TranscriptionErrorKind.UNAVAILABLE: "Speech recognizer unavailable for current locale.",
    TranscriptionErrorKind.TIMEOUT: "Transcription provider timed out.",
}


class TranscriptionError(DiaryError):
    """A single provider failure"""

    def __init__(self, kind: TranscriptionErrorKind, message: Optional[str] = None,
                 status: Optional[int] = None, body: Optional[str] = None,
                 provider: Optional[str] = None):
        self.kind = kind
        self.status = status
        self.body = body
        self.provider = provider
        if message is None:
            if kind == TranscriptionErrorKind.HTTP_FAILURE:
                message = f"Whisper API failed ({status}): {body}"
            else:
                message = _DEFAULT_MESSAGES.get(kind, "Transcription failed.")
        super().__init__(message)


class TranscriptionFailed(TranscriptionError):
    """Every provider in the pipeline failed"""

    def __init__(self, attempts: List[TranscriptionError]):
        self.attempts = list(attempts)
        if self.attempts:
            last = self.attempts[-1]
            summary = "; ".join(f"{e.provider or 'provider'}: {e}" for e in self.attempts)
            super().__init__(last.kind, f"All transcription providers failed ({summary})",
                             status=last.status, body=last.body, provider=last.provider)
        else:
            super().__init__(TranscriptionErrorKind.UNAVAILABLE,
                             "No transcription providers configured")

    def kinds(self) -> List[TranscriptionErrorKind]:
        return [e.kind for e in self.attempts]
