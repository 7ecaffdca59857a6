"""
Transcription Service - ordered provider fallback for diary recordings

Providers are tried in order, each exactly once per call. Every attempt
runs under a deadline; an attempt that exceeds it counts as an ordinary
provider failure and the pipeline moves on (the abandoned call is left to
finish in its worker thread). If every provider fails, a single
TranscriptionFailed carrying each attempt's error is raised.
"""

import concurrent.futures
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from config.config import TRANSCRIPTION_TIMEOUT_SECONDS
from voicediary.errors import TranscriptionError, TranscriptionErrorKind, TranscriptionFailed

logger = logging.getLogger(__name__)


class TranscriptionProvider(ABC):
    """
    Base interface for transcription providers.

    Providers raise TranscriptionError with the matching kind; any other
    exception is reported by the pipeline as a generic failure.
    """

    name = "provider"
    requires_authorization = False

    def request_authorization(self) -> bool:
        return True

    @abstractmethod
    def transcribe(self, audio_path: Path) -> str:
        raise NotImplementedError


@dataclass
class TranscriptionResult:
    text: str
    provider: str
    # Failures of the providers tried before the successful one
    attempts: List[TranscriptionError] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return bool(self.attempts)


class TranscriptionPipeline:
    def __init__(self, providers: Sequence[TranscriptionProvider],
                 timeout_seconds: Optional[float] = TRANSCRIPTION_TIMEOUT_SECONDS):
        self.providers = list(providers)
        self.timeout_seconds = timeout_seconds

    @classmethod
    def default(cls, audio_service=None) -> "TranscriptionPipeline":
        """Cloud Whisper first, on-device Whisper as fallback"""
        from voicediary.local_speech_provider import LocalWhisperProvider
        from voicediary.whisper_api_provider import OpenAIWhisperProvider

        return cls([
            OpenAIWhisperProvider(),
            LocalWhisperProvider(audio_service=audio_service),
        ])

    def transcribe(self, audio_path: Union[str, Path]) -> TranscriptionResult:
        audio_path = Path(audio_path)
        logger.info(f"Transcribing: {audio_path.name}")

        attempts: List[TranscriptionError] = []
        for provider in self.providers:
            try:
                text = self._attempt(provider, audio_path)
            except TranscriptionError as e:
                if e.provider is None:
                    e.provider = provider.name
                logger.warning(f"Provider {provider.name} failed ({e.kind.value}): {e}")
                attempts.append(e)
                continue

            logger.info(f"Successfully transcribed with {provider.name}")
            return TranscriptionResult(text=text, provider=provider.name, attempts=attempts)

        logger.error("All transcription methods failed")
        raise TranscriptionFailed(attempts)

    def _attempt(self, provider: TranscriptionProvider, audio_path: Path) -> str:
        if provider.requires_authorization and not provider.request_authorization():
            raise TranscriptionError(TranscriptionErrorKind.NOT_AUTHORIZED, provider=provider.name)

        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"transcribe-{provider.name}"
        )
        try:
            future = executor.submit(provider.transcribe, audio_path)
            try:
                return future.result(timeout=self.timeout_seconds)
            except concurrent.futures.TimeoutError:
                raise TranscriptionError(
                    TranscriptionErrorKind.TIMEOUT,
                    f"{provider.name} did not finish within {self.timeout_seconds}s",
                    provider=provider.name,
                )
            except TranscriptionError:
                raise
            except Exception as e:
                raise TranscriptionError(TranscriptionErrorKind.FAILED, str(e) or type(e).__name__,
                                         provider=provider.name) from e
        finally:
            executor.shutdown(wait=False)
