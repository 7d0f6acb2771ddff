"""
Data models for directory entries, tracks, albums and the catalog.

This module defines the core data structures shared by the catalog builder,
the HTTP API and the player. The wire format produced by ``to_dict`` uses the
camelCase keys consumed by the browser player (``music-data.json``).
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any
from datetime import datetime, timezone
import hashlib
import json
import posixpath
import re

from shared.constants import MIME_TYPES, DEFAULT_MIME_TYPE


class CatalogFormatError(ValueError):
    """Raised when a catalog document does not match the expected schema."""

    def __init__(self, where: str, problem: str):
        super().__init__(f"{where}: {problem}")
        self.where = where
        self.problem = problem


def file_extension(file_name: str) -> str:
    """Return the final extension of a file name, lower-cased ('' if none)."""
    return posixpath.splitext(file_name)[1].lower()


def file_stem(file_name: str) -> str:
    """Return the base name with only its final extension removed."""
    return posixpath.splitext(posixpath.basename(file_name))[0]


def display_name(file_name: str) -> str:
    """Human readable title: extension stripped once, '_' and '-' become spaces."""
    return re.sub(r"[_-]", " ", file_stem(file_name))


def mime_type_for(file_name: str) -> str:
    return MIME_TYPES.get(file_extension(file_name), DEFAULT_MIME_TYPE)


def stable_track_id(album_path: str, file_name: str) -> str:
    """Deterministic track id: the same folder and file always give the same id."""
    key = f"{album_path or ''}\x00{file_name}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# --- Decode helpers -------------------------------------------------------

def _field(data: Dict[str, Any], key: str, kinds, where: str, optional: bool = False):
    if key not in data or data[key] is None:
        if optional:
            return None
        raise CatalogFormatError(f"{where}.{key}", "missing required field")
    value = data[key]
    # bool is an int subclass; never accept it for numeric fields
    if isinstance(value, bool) and bool not in (kinds if isinstance(kinds, tuple) else (kinds,)):
        raise CatalogFormatError(f"{where}.{key}", f"expected {_kind_names(kinds)}, got bool")
    if not isinstance(value, kinds):
        raise CatalogFormatError(
            f"{where}.{key}", f"expected {_kind_names(kinds)}, got {type(value).__name__}"
        )
    return value


def _kind_names(kinds) -> str:
    if isinstance(kinds, tuple):
        return " or ".join(k.__name__ for k in kinds)
    return kinds.__name__


def _object(data: Any, where: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise CatalogFormatError(where, f"expected object, got {type(data).__name__}")
    return data


@dataclass(frozen=True)
class DirectoryEntry:
    """
    One item returned by the GitHub Contents API for a directory listing.

    Attributes:
        type: 'file' or 'dir' (other upstream types such as 'symlink' are kept
              verbatim and ignored by the builder)
        name: Entry name (last path segment)
        path: Path relative to the repository root
        size: Size in bytes (0 for directories)
    """
    type: str
    name: str
    path: str
    size: int = 0

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"

    @property
    def extension(self) -> str:
        return file_extension(self.name)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'DirectoryEntry':
        """Create an entry from one element of the Contents API response."""
        data = _object(data, "entry")
        return cls(
            type=_field(data, "type", str, "entry"),
            name=_field(data, "name", str, "entry"),
            path=_field(data, "path", str, "entry"),
            size=int(data.get("size") or 0),
        )


@dataclass
class Track:
    """
    Represents a single playable audio file.

    Attributes:
        id: Stable identifier derived from (album path, file name)
        name: File name including extension
        url: Raw content URL of the audio file
        lrc_url: Raw content URL of the sibling lyrics file (may not exist)
        size: Size in bytes
        mime_type: MIME type inferred from the extension
        display_name: Title shown in the player
        file_name: File name without its extension
    """
    id: str
    name: str
    url: str
    lrc_url: str
    size: int
    mime_type: str
    display_name: str
    file_name: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert track to its wire dictionary."""
        return {
            "name": self.name,
            "url": self.url,
            "lrcUrl": self.lrc_url,
            "size": self.size,
            "type": self.mime_type,
            "displayName": self.display_name,
            "fileName": self.file_name,
            "id": self.id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], where: str = "track") -> 'Track':
        """Create Track from its wire dictionary, validating every field."""
        data = _object(data, where)
        name = _field(data, "name", str, where)
        return cls(
            id=_field(data, "id", str, where),
            name=name,
            url=_field(data, "url", str, where),
            lrc_url=_field(data, "lrcUrl", str, where),
            size=_field(data, "size", int, where, optional=True) or 0,
            mime_type=_field(data, "type", str, where, optional=True) or mime_type_for(name),
            display_name=_field(data, "displayName", str, where, optional=True) or display_name(name),
            file_name=_field(data, "fileName", str, where, optional=True) or file_stem(name),
        )


@dataclass
class Album:
    """A group of tracks from one source folder (or the synthetic root)."""
    name: str
    path: str
    cover: Optional[str] = None
    tracks: List[Track] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "cover": self.cover,
            "tracks": [t.to_dict() for t in self.tracks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], where: str = "album") -> 'Album':
        data = _object(data, where)
        raw_tracks = _field(data, "tracks", list, where)
        return cls(
            name=_field(data, "name", str, where),
            path=_field(data, "path", str, where, optional=True) or "",
            cover=_field(data, "cover", str, where, optional=True),
            tracks=[Track.from_dict(t, f"{where}.tracks[{i}]") for i, t in enumerate(raw_tracks)],
        )


@dataclass
class Catalog:
    """
    The complete album collection for one repository/path/branch snapshot.

    ``success`` and ``error`` make upstream failures explicit: a failed build
    is an empty catalog with ``success=False`` and the error message, never
    just "zero albums".
    """
    albums: List[Album]
    repo: str
    path: str
    branch: str = ""
    last_updated: str = field(default_factory=utc_timestamp)
    success: bool = True
    error: Optional[str] = None

    @property
    def total_songs(self) -> int:
        return sum(len(a.tracks) for a in self.albums)

    @property
    def total_albums(self) -> int:
        return len(self.albums)

    @classmethod
    def failed(cls, repo: str, path: str, branch: str, error: str) -> 'Catalog':
        """Empty catalog flagged as an upstream failure."""
        return cls(albums=[], repo=repo, path=path, branch=branch, success=False, error=error)

    def iter_tracks(self):
        """Yield (album_index, track_index, track) for every track."""
        for album_index, album in enumerate(self.albums):
            for track_index, track in enumerate(album.tracks):
                yield album_index, track_index, track

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "albums": [a.to_dict() for a in self.albums],
            "totalSongs": self.total_songs,
            "totalAlbums": self.total_albums,
            "lastUpdated": self.last_updated,
            "repo": self.repo,
            "path": self.path,
            "branch": self.branch,
        }

    def to_json(self, indent: int = 2) -> str:
        """
        Serialize the catalog to the music-data.json document.

        Args:
            indent: JSON indentation level

        Returns:
            JSON string representation
        """
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Catalog':
        """
        Decode and validate a catalog document.

        Raises:
            CatalogFormatError: naming the first field that does not match
        """
        data = _object(data, "catalog")
        raw_albums = _field(data, "albums", list, "catalog")
        albums = [Album.from_dict(a, f"catalog.albums[{i}]") for i, a in enumerate(raw_albums)]
        success = data.get("success", True)
        if not isinstance(success, bool):
            raise CatalogFormatError("catalog.success", "expected bool")
        return cls(
            albums=albums,
            repo=_field(data, "repo", str, "catalog", optional=True) or "",
            path=_field(data, "path", str, "catalog", optional=True) or "",
            branch=_field(data, "branch", str, "catalog", optional=True) or "",
            last_updated=_field(data, "lastUpdated", str, "catalog", optional=True) or utc_timestamp(),
            success=success,
            error=_field(data, "error", str, "catalog", optional=True),
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'Catalog':
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise CatalogFormatError("catalog", f"invalid JSON: {e}") from e
        return cls.from_dict(data)


@dataclass(frozen=True)
class LyricCue:
    """A single timestamped lyric line."""
    time: float
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"time": self.time, "text": self.text}
