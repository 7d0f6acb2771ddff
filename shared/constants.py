"""
Shared constants used across the platform.
"""

# Audio formats
SUPPORTED_AUDIO_FORMATS = [".mp3", ".wav", ".ogg", ".m4a", ".flac", ".aac"]

# Cover art formats (first match in a folder wins)
SUPPORTED_IMAGE_FORMATS = [".jpg", ".jpeg", ".png", ".gif", ".webp"]

MIME_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".flac": "audio/flac",
    ".aac": "audio/aac",
}
DEFAULT_MIME_TYPE = "audio/mpeg"

LYRICS_EXTENSION = ".lrc"

# GitHub endpoints
GITHUB_API_BASE = "https://api.github.com"
GITHUB_RAW_BASE = "https://raw.githubusercontent.com"
GITHUB_ACCEPT_HEADER = "application/vnd.github.v3+json"
GITHUB_CONTENTS_PAGE_LIMIT = 1000  # Contents API hard cap per directory
DEFAULT_USER_AGENT = "GitHub-Music-Player"

# Catalog
DEFAULT_BRANCH = "main"
DEFAULT_ROOT_ALBUM_NAME = "Root"
CATALOG_FILENAME = "music-data.json"
DEFAULT_OUTPUT_DIR = "public"

# Player
DEFAULT_VOLUME = 0.7
SELECTION_STORAGE_KEY = "lastPlayed"
PLAYER_LAYOUTS = ("albums", "list")
DEFAULT_PLAYER_LAYOUT = "albums"
TIME_UPDATE_INTERVAL = 0.25  # seconds between progress/lyric ticks

# Configuration paths
DEFAULT_CONFIG_DIR = "~/.config/github-music-player"

# Network Settings
DEFAULT_NETWORK_TIMEOUT = 30  # seconds
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5005
