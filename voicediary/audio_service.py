"""
Audio Service - Audio file operations used by the diary
Handles validation, duration probing and WAV conversion
"""

import logging
import tempfile
from pathlib import Path
from typing import Union

from mutagen import File
from pydub import AudioSegment
from pydub.utils import which

from config.config import SUPPORTED_AUDIO_FORMATS
from voicediary.utils import validate_audio_file

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

class AudioService:
    def __init__(self, supported_formats=None):
        self.supported_formats = supported_formats or SUPPORTED_AUDIO_FORMATS
        # Check if ffmpeg is available for audio conversion
        AudioSegment.converter = which("ffmpeg")
        AudioSegment.ffmpeg = which("ffmpeg")
        AudioSegment.ffprobe = which("ffprobe")

    def validate(self, audio_file_path: PathLike) -> dict:
        return validate_audio_file(str(audio_file_path), self.supported_formats)

    def probe_duration(self, audio_file_path: PathLike) -> float:
        """
        Length of the recording in seconds, 0.0 when it cannot be determined
        """
        path = Path(audio_file_path)
        if not path.exists():
            logger.debug(f"No audio file at {path}")
            return 0.0

        duration = 0.0
        # Try to get audio duration using mutagen
        try:
            audio_file = File(str(path))
            if audio_file is not None and audio_file.info:
                duration = float(audio_file.info.length)
        except Exception as e:
            logger.warning(f"Error reading audio metadata for {path.name}: {e}")

        if duration <= 0:
            # Fallback to pydub for duration
            try:
                audio_segment = AudioSegment.from_file(str(path))
                duration = len(audio_segment) / 1000.0  # Convert ms to seconds
            except Exception as e:
                logger.warning(f"Could not determine duration for {path.name}: {e}")
                return 0.0

        # NaN and negative lengths are treated as unknown
        if not duration or duration != duration or duration < 0:
            return 0.0
        return duration

    def convert_to_wav(self, audio_file_path: PathLike) -> str:
        """
        Convert audio file to a temporary 16kHz mono WAV; caller removes it
        """
        temp_name = None
        try:
            audio = AudioSegment.from_file(str(audio_file_path))
            audio = audio.set_channels(1).set_frame_rate(16000)

            temp_file = tempfile.NamedTemporaryFile(delete=False, suffix='.wav')
            temp_file.close()
            temp_name = temp_file.name

            audio.export(temp_name, format="wav")
            return temp_name

        except Exception as e:
            logger.error(f"Error converting audio to WAV: {e}")
            if temp_name is not None:
                Path(temp_name).unlink(missing_ok=True)
            raise
