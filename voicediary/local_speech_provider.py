"""
On-device transcription with a local Whisper model

Requires: pip install openai-whisper (and ffmpeg on PATH). The model is
loaded on first use and cached for the life of the provider.

Language resolution order: the user's preferred language, then the
machine's current locale, then automatic detection. A candidate the model
does not support is skipped.
"""

import locale
import logging
import os
import threading
from pathlib import Path
from typing import List, Optional

from config.config import LOCAL_WHISPER_MODEL, ON_DEVICE_TRANSCRIPTION_ENABLED, PREFERRED_LANGUAGE
from voicediary.audio_service import AudioService
from voicediary.errors import TranscriptionError, TranscriptionErrorKind
from voicediary.transcription_service import TranscriptionProvider

logger = logging.getLogger(__name__)


def current_locale_language() -> Optional[str]:
    """Language part of the process locale, e.g. 'en_US.UTF-8' -> 'en'"""
    try:
        code = locale.getlocale()[0]
    except ValueError:
        code = None
    if not code:
        code = os.getenv("LC_ALL") or os.getenv("LANG")
    if not code or code in ("C", "POSIX") or code.startswith("C."):
        return None
    return code


class LocalWhisperProvider(TranscriptionProvider):
    name = "on-device-whisper"
    requires_authorization = True

    def __init__(self, model_name: str = LOCAL_WHISPER_MODEL,
                 preferred_language: Optional[str] = PREFERRED_LANGUAGE,
                 enabled: bool = ON_DEVICE_TRANSCRIPTION_ENABLED,
                 audio_service: Optional[AudioService] = None,
                 whisper_module=None):
        self.model_name = model_name
        self.preferred_language = preferred_language
        self.enabled = enabled
        self.audio_service = audio_service or AudioService()
        self._whisper = whisper_module
        self._model = None
        self._model_lock = threading.Lock()

    def request_authorization(self) -> bool:
        if not self.enabled:
            logger.info("On-device transcription is disabled (ON_DEVICE_TRANSCRIPTION_ENABLED)")
        return self.enabled

    def _error(self, kind: TranscriptionErrorKind, message: Optional[str] = None) -> TranscriptionError:
        return TranscriptionError(kind, message, provider=self.name)

    def _whisper_module(self):
        if self._whisper is None:
            try:
                import whisper
            except ImportError:
                logger.info("Whisper not installed. Use: pip install openai-whisper")
                raise self._error(TranscriptionErrorKind.UNAVAILABLE,
                                  "On-device recognizer unavailable: openai-whisper is not installed.")
            self._whisper = whisper
        return self._whisper

    def _load_model(self):
        with self._model_lock:
            if self._model is None:
                whisper = self._whisper_module()
                try:
                    # Downloads on first use (about 140MB for the base model)
                    self._model = whisper.load_model(self.model_name)
                except Exception as e:
                    raise self._error(TranscriptionErrorKind.UNAVAILABLE,
                                      f"Could not load Whisper model '{self.model_name}': {e}")
            return self._model

    def candidate_languages(self) -> List[str]:
        candidates = []
        for raw in (self.preferred_language, current_locale_language()):
            if raw and raw not in candidates:
                candidates.append(raw)
        return candidates

    def normalize_language(self, raw: str) -> Optional[str]:
        """Map 'en-US', 'en_US.UTF-8', 'English' to a Whisper code, None if unsupported"""
        tokenizer = getattr(self._whisper_module(), "tokenizer", None)
        languages = getattr(tokenizer, "LANGUAGES", {}) or {}
        names = getattr(tokenizer, "TO_LANGUAGE_CODE", {}) or {}

        value = raw.strip().split(".")[0].replace("-", "_").lower()
        if value in names:
            return names[value]
        code = value.split("_")[0]
        if code in languages:
            return code
        return None

    def resolve_language(self) -> Optional[str]:
        """First supported candidate; None means let the model detect it"""
        for raw in self.candidate_languages():
            code = self.normalize_language(raw)
            if code:
                return code
            logger.debug(f"Language {raw!r} not supported by on-device recognizer")
        return None

    def transcribe(self, audio_path: Path) -> str:
        model = self._load_model()
        language = self.resolve_language()
        logger.info(f"On-device transcription of {Path(audio_path).name} "
                    f"(language: {language or 'auto-detect'})")

        try:
            wav_path = self.audio_service.convert_to_wav(audio_path)
        except Exception as e:
            raise self._error(TranscriptionErrorKind.FAILED, f"Could not prepare audio: {e}")

        try:
            result = model.transcribe(wav_path, language=language, fp16=False)
        except Exception as e:
            # If Whisper fails, it might be due to audio format
            if "ffmpeg" in str(e).lower():
                logger.error("Whisper needs ffmpeg for this audio format. Install ffmpeg and retry.")
            raise self._error(TranscriptionErrorKind.FAILED, str(e))
        finally:
            if os.path.exists(wav_path):
                os.unlink(wav_path)

        text = result.get("text") if isinstance(result, dict) else None
        if not isinstance(text, str):
            raise self._error(TranscriptionErrorKind.DECODING)
        return text.strip()
