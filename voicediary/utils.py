"""
Utils - Pure utility functions
Contains helper functions for timestamps, formatting, and validation
"""

import os
import json
from datetime import datetime
from typing import Dict, List, Optional, Any
from pathlib import Path

def validate_audio_file(file_path: str, supported_formats: Optional[List[str]] = None) -> Dict[str, Any]:
    """Validate if file is a supported audio file"""
    if supported_formats is None:
        supported_formats = ['.m4a', '.mp3', '.wav', '.aiff', '.mp4', '.caf']

    if not os.path.exists(file_path):
        return {"valid": False, "reason": "file_not_found"}

    file_size = os.path.getsize(file_path)
    file_extension = Path(file_path).suffix.lower()

    if file_size == 0:
        return {"valid": False, "reason": "empty_file"}

    if file_extension not in supported_formats:
        return {"valid": False, "reason": "unsupported_format"}

    return {
        "valid": True,
        "file_size": file_size,
        "file_extension": file_extension,
        "filename": os.path.basename(file_path)
    }

def format_duration_human(seconds: Optional[float]) -> str:
    """Format duration in human-readable format"""
    if not seconds or seconds <= 0:
        return "0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    remaining_seconds = int(seconds % 60)

    if hours > 0:
        return f"{hours}h {minutes}m {remaining_seconds}s"
    elif minutes > 0:
        return f"{minutes}m {remaining_seconds}s"
    else:
        return f"{remaining_seconds}s"

def parse_comma_separated_tags(tag_string: str) -> List[str]:
    """Parse comma-separated tags into a raw list (normalization happens on the entry)"""
    if not tag_string:
        return []

    # Remove brackets if present
    cleaned = tag_string.replace('[', '').replace(']', '')

    return [tag.strip() for tag in cleaned.split(',') if tag.strip()]

def calculate_percentage(part: int, total: int) -> float:
    """Calculate percentage with division by zero protection"""
    if total == 0:
        return 0.0
    return round((part / total) * 100, 2)

def format_iso_timestamp(dt: datetime) -> str:
    """Encode a datetime as ISO-8601 with the local UTC offset"""
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt.isoformat()

def parse_iso_timestamp(timestamp_string: Any) -> Optional[datetime]:
    """Parse ISO timestamp string to datetime object"""
    if not timestamp_string or not isinstance(timestamp_string, str):
        return None

    try:
        # Handle different ISO formats
        if timestamp_string.endswith('Z'):
            timestamp_string = timestamp_string[:-1] + '+00:00'

        return datetime.fromisoformat(timestamp_string)
    except ValueError:
        return None

def sanitize_json_for_logging(data: Any, max_length: int = 500) -> str:
    """Safely convert data to JSON string for logging"""
    try:
        json_str = json.dumps(data, default=str, ensure_ascii=False)
        if len(json_str) > max_length:
            return json_str[:max_length] + "..."
        return json_str
    except (TypeError, ValueError):
        return str(data)[:max_length]
