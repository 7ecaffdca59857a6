"""
Voice Diary Configuration
All settings are read from environment variables so the diary can run
without a config file. A missing OpenAI key is a normal condition: the
transcription pipeline simply falls back to the on-device recognizer.
"""

import os
from pathlib import Path
from typing import Dict, Any


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    try:
        return float(value) if value else default
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    try:
        return int(value) if value else default
    except ValueError:
        return default


# Storage
DIARY_DIRECTORY = os.getenv(
    'DIARY_DIRECTORY',
    str(Path.home() / '.voice-diary' / 'DiaryEntries')
)
INDEX_FILE_NAME = 'index.json'
AUDIO_EXTENSION = '.m4a'
SUPPORTED_AUDIO_FORMATS = ['.m4a', '.mp3', '.wav', '.aiff', '.mp4', '.caf']

# What to do when index.json cannot be parsed: 'rebuild' scans the
# directory for entry files, 'fail' raises CorruptIndex
INDEX_RECOVERY = os.getenv('INDEX_RECOVERY', 'rebuild').strip().lower()

# Calendar week start (0 = Monday ... 6 = Sunday)
FIRST_WEEKDAY = _env_int('FIRST_WEEKDAY', 0) % 7

# Cloud transcription (OpenAI Whisper API)
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_TRANSCRIPTION_URL = os.getenv(
    'OPENAI_TRANSCRIPTION_URL',
    'https://api.openai.com/v1/audio/transcriptions'
)
OPENAI_TRANSCRIPTION_MODEL = os.getenv('OPENAI_TRANSCRIPTION_MODEL', 'whisper-1')

# On-device transcription (local Whisper model)
ON_DEVICE_TRANSCRIPTION_ENABLED = _env_bool('ON_DEVICE_TRANSCRIPTION_ENABLED', True)
LOCAL_WHISPER_MODEL = os.getenv('LOCAL_WHISPER_MODEL', 'base')
PREFERRED_LANGUAGE = os.getenv('PREFERRED_LANGUAGE', '').strip() or None

# Deadline applied to every provider attempt
TRANSCRIPTION_TIMEOUT_SECONDS = _env_float('TRANSCRIPTION_TIMEOUT_SECONDS', 30.0)

LOG_FILE = os.getenv('VOICE_DIARY_LOG_FILE', 'voice_diary.log')


def get_settings_summary() -> Dict[str, Any]:
    """Effective settings with the credential redacted"""
    return {
        'diary_directory': DIARY_DIRECTORY,
        'index_recovery': INDEX_RECOVERY,
        'first_weekday': FIRST_WEEKDAY,
        'openai_api_key': 'set' if OPENAI_API_KEY else 'missing',
        'openai_transcription_url': OPENAI_TRANSCRIPTION_URL,
        'openai_transcription_model': OPENAI_TRANSCRIPTION_MODEL,
        'on_device_transcription_enabled': ON_DEVICE_TRANSCRIPTION_ENABLED,
        'local_whisper_model': LOCAL_WHISPER_MODEL,
        'preferred_language': PREFERRED_LANGUAGE,
        'transcription_timeout_seconds': TRANSCRIPTION_TIMEOUT_SECONDS,
        'log_file': LOG_FILE,
    }
