"""Export preset tables.

Maps the user-facing export options onto concrete encoder parameters.
"""

RESOLUTION_SIZES: dict[str, tuple[int, int]] = {
    "480p": (854, 480),
    "720p": (1280, 720),
    "1080p": (1920, 1080),
    "2K": (2048, 1080),
    "4K": (3840, 2160),
}
DEFAULT_RESOLUTION = "1080p"

# Constant-rate-factor for the software H.264 encoder
QUALITY_CRF: dict[str, int] = {
    "low": 28,
    "medium": 23,
    "high": 18,
    "ultra": 14,
}

# (video bitrate, audio bitrate)
QUALITY_BITRATES: dict[str, tuple[str, str]] = {
    "low": ("2M", "128k"),
    "medium": ("4M", "192k"),
    "high": ("8M", "256k"),
    "ultra": ("16M", "320k"),
}

SPEED_PRESETS: dict[str, str] = {
    "fastest": "ultrafast",
    "fast": "veryfast",
    "balanced": "medium",
    "slow": "slow",
    "slowest": "veryslow",
}

FORMAT_MIME_TYPES: dict[str, str] = {
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "webm": "video/webm",
    "gif": "image/gif",
}

# Staged source file extensions by MIME type
MIME_TO_EXT: dict[str, str] = {
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/ogg": "ogg",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

DEFAULT_EXT_BY_KIND: dict[str, str] = {
    "video": "mp4",
    "audio": "mp3",
    "image": "png",
}
