"""
Player controller: the playlist/shuffle/repeat/lyrics state machine.

All playback state lives in one PlayerState owned by a PlayerController.
The controller talks to an AudioOutput (mpv in the terminal player, a fake
in tests) and is driven by user actions plus the output's callbacks
(metadata loaded, time update, track ended, error).
"""

import logging
import random
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from shared.constants import DEFAULT_VOLUME
from shared.models import Album, Catalog, LyricCue, Track
from player.lyrics import current_cue_index
from player.playback_state import SelectionStore, MemorySelectionStore

logger = logging.getLogger(__name__)

Position = Tuple[int, int]


class AudioOutput(ABC):
    """Minimal audio element: one source at a time, volume in [0, 1]."""

    @abstractmethod
    def load(self, url: str, mime_type: str) -> None:
        """Replace the current source. Playback does not start by itself."""
        pass

    @abstractmethod
    def play(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def seek(self, position: float) -> None:
        """Seek to an absolute position in seconds."""
        pass

    @abstractmethod
    def set_volume(self, level: float) -> None:
        pass

    @property
    @abstractmethod
    def duration(self) -> Optional[float]:
        """Duration in seconds, None until metadata is known."""
        pass

    @property
    @abstractmethod
    def position(self) -> float:
        pass


@dataclass
class PlayerState:
    """
    Everything the player knows about the current session.

    current_track_index is an index into the tracks of the album at
    current_album_index; the two are only meaningful together. -1 means
    nothing has been loaded yet.
    """
    current_album_index: int = -1
    current_track_index: int = -1
    is_playing: bool = False
    is_shuffle: bool = False
    is_repeat: bool = False
    volume: float = DEFAULT_VOLUME
    is_muted: bool = False
    lyrics: List[LyricCue] = field(default_factory=list)
    current_lyric_index: int = 0
    error: Optional[str] = None

    @property
    def effective_volume(self) -> float:
        return 0.0 if self.is_muted else self.volume

    @property
    def has_track(self) -> bool:
        return self.current_album_index >= 0 and self.current_track_index >= 0


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _run_in_thread(job: Callable[[], None]) -> None:
    threading.Thread(target=job, name="lyrics-fetch", daemon=True).start()


class PlayerController:
    """Owns PlayerState and implements every transport action."""

    def __init__(self, catalog: Catalog, output: AudioOutput,
                 store: Optional[SelectionStore] = None,
                 lyrics_loader: Optional[Callable[[str], List[LyricCue]]] = None,
                 rng: Optional[random.Random] = None,
                 volume: float = DEFAULT_VOLUME,
                 lyrics_runner: Optional[Callable[[Callable[[], None]], None]] = None):
        self.albums: List[Album] = list(catalog.albums)
        self.output = output
        self.store = store or MemorySelectionStore()
        self.lyrics_loader = lyrics_loader
        self.rng = rng or random.Random()
        self.state = PlayerState(volume=_clamp(volume))
        self._autoplay_pending = False
        self._lock = threading.RLock()
        # Lyrics are fetched off the caller's thread; results of an older load are dropped
        self._lyrics_runner = lyrics_runner or _run_in_thread
        self._lyrics_request = 0

        # Callbacks
        self._on_track_load: Optional[Callable[[Album, Track], None]] = None
        self._on_state_change: Optional[Callable[[PlayerState], None]] = None
        self._on_lyrics_load: Optional[Callable[[List[LyricCue]], None]] = None
        self._on_lyric_change: Optional[Callable[[int], None]] = None
        self._on_error: Optional[Callable[[str], None]] = None

        self._call_output("set volume", self.output.set_volume, self.state.effective_volume)

    # --- Queries ---

    @property
    def total_tracks(self) -> int:
        return sum(len(a.tracks) for a in self.albums)

    def is_valid(self, album_index: int, track_index: int) -> bool:
        return (0 <= album_index < len(self.albums)
                and 0 <= track_index < len(self.albums[album_index].tracks))

    def current_album(self) -> Optional[Album]:
        if not self.state.has_track:
            return None
        return self.albums[self.state.current_album_index]

    def current_track(self) -> Optional[Track]:
        if not self.state.has_track:
            return None
        return self.albums[self.state.current_album_index].tracks[self.state.current_track_index]

    def current_position(self) -> Optional[Position]:
        if not self.state.has_track:
            return None
        return self.state.current_album_index, self.state.current_track_index

    def find_track(self, track_id: str) -> Optional[Position]:
        """Resolve a stable track id back to its (album, track) position."""
        for album_index, album in enumerate(self.albums):
            for track_index, track in enumerate(album.tracks):
                if track.id == track_id:
                    return album_index, track_index
        return None

    # --- Loading ---

    def load(self, album_index: int, track_index: int, autoplay: bool = True) -> bool:
        """
        Make (album_index, track_index) the current track.

        Out of range indices are logged and ignored. Playback starts once the
        output reports metadata, and only if autoplay is set.
        """
        with self._lock:
            if not self.is_valid(album_index, track_index):
                logger.warning(f"Ignoring load of invalid position ({album_index}, {track_index})")
                return False

            state = self.state
            state.current_album_index = album_index
            state.current_track_index = track_index
            state.is_playing = False
            state.error = None
            self._autoplay_pending = autoplay
            self.store.save(album_index, track_index)

            album = self.albums[album_index]
            track = album.tracks[track_index]
            logger.info(f"Loading '{track.display_name}' from '{album.name}'")

            if self._on_track_load:
                self._on_track_load(album, track)

            if not self._call_output("load", self.output.load, track.url, track.mime_type):
                self._lyrics_request += 1
                self.state.current_lyric_index = 0
                self.state.lyrics = []
                return True

            self._load_lyrics(track)
            self._notify_state()
            return True

    def on_metadata_loaded(self) -> None:
        """Output callback: duration is known, start playback if requested."""
        with self._lock:
            if self._autoplay_pending:
                self._autoplay_pending = False
                self.play()

    def restore(self, autoplay: bool = False) -> bool:
        """Reload the persisted selection. Playback resumes only if autoplay is set."""
        with self._lock:
            selection = self.store.load()
            if not selection:
                return False
            album_index, track_index = selection
            if not self.is_valid(album_index, track_index):
                logger.info(f"Stored selection {selection} no longer exists in the catalog")
                return False
            return self.load(album_index, track_index, autoplay=autoplay)

    def play_track_id(self, track_id: str, autoplay: bool = True) -> bool:
        position = self.find_track(track_id)
        if position is None:
            logger.warning(f"Unknown track id {track_id}")
            return False
        return self.load(*position, autoplay=autoplay)

    # --- Transport ---

    def play(self) -> None:
        """Start playback; with nothing loaded, load the first track of the first non-empty album."""
        with self._lock:
            if not self.state.has_track:
                first = self._first_position()
                if first:
                    self.load(*first, autoplay=True)
                return

            if self._call_output("play", self.output.play):
                self.state.is_playing = True
                self.state.error = None
                self._notify_state()

    def pause(self) -> None:
        with self._lock:
            self._autoplay_pending = False
            self._call_output("pause", self.output.pause)
            self.state.is_playing = False
            self._notify_state()

    def toggle_play(self) -> None:
        with self._lock:
            if self.state.is_playing:
                self.pause()
            else:
                self.play()

    def next(self) -> Optional[Position]:
        """Advance (random pick in shuffle mode) and autoplay the new track."""
        with self._lock:
            target = self._pick_random() if self.state.is_shuffle else self._step(+1)
            if target:
                self.load(*target, autoplay=True)
            return target

    def previous(self) -> Optional[Position]:
        with self._lock:
            target = self._pick_random() if self.state.is_shuffle else self._step(-1)
            if target:
                self.load(*target, autoplay=True)
            return target

    def play_random(self) -> Optional[Position]:
        with self._lock:
            positions = self._all_positions()
            if not positions:
                return None
            target = self.rng.choice(positions)
            self.load(*target, autoplay=True)
            return target

    def on_track_ended(self) -> None:
        """Output callback: repeat the current track or move on."""
        with self._lock:
            if self.state.is_repeat and self.state.has_track:
                self._call_output("seek", self.output.seek, 0.0)
                self.state.current_lyric_index = 0
                self.play()
            else:
                self.next()

    def seek(self, fraction: float) -> Optional[float]:
        """Seek to fraction (clamped to [0, 1]) of the duration. Returns the new position."""
        with self._lock:
            duration = self.output.duration
            if not duration or duration <= 0:
                return None
            position = _clamp(fraction) * duration
            if self._call_output("seek", self.output.seek, position):
                self.sync_lyrics(position)
                return position
            return None

    # --- Modes & volume ---

    def toggle_shuffle(self) -> bool:
        with self._lock:
            self.state.is_shuffle = not self.state.is_shuffle
            self._notify_state()
            return self.state.is_shuffle

    def toggle_repeat(self) -> bool:
        with self._lock:
            self.state.is_repeat = not self.state.is_repeat
            self._notify_state()
            return self.state.is_repeat

    def set_volume(self, fraction: float) -> float:
        """Set the volume (clamped to [0, 1]); changing the volume unmutes."""
        with self._lock:
            self.state.volume = _clamp(fraction)
            self.state.is_muted = False
            self._call_output("set volume", self.output.set_volume, self.state.effective_volume)
            self._notify_state()
            return self.state.volume

    def toggle_mute(self) -> bool:
        """Mute keeps state.volume untouched, so unmuting restores it exactly."""
        with self._lock:
            self.state.is_muted = not self.state.is_muted
            self._call_output("set volume", self.output.set_volume, self.state.effective_volume)
            self._notify_state()
            return self.state.is_muted

    # --- Lyrics ---

    def sync_lyrics(self, position: float) -> bool:
        """
        Move current_lyric_index to the cue active at position.

        Returns True (and fires the lyric callback) only when the index changed.
        """
        with self._lock:
            lyrics = self.state.lyrics
            if not lyrics:
                return False
            index = current_cue_index(lyrics, position, self.state.current_lyric_index)
            if index == self.state.current_lyric_index:
                return False
            self.state.current_lyric_index = index
            if self._on_lyric_change:
                self._on_lyric_change(index)
            return True

    def current_lyric(self) -> Optional[LyricCue]:
        """The active cue, or None when there are no lyrics."""
        with self._lock:
            lyrics = self.state.lyrics
            index = self.state.current_lyric_index
            if 0 <= index < len(lyrics):
                return lyrics[index]
            return None

    def on_time_update(self, position: float) -> None:
        """Output callback for playback progress."""
        self.sync_lyrics(position)

    def on_playback_error(self, message: str) -> None:
        """Output callback: record and report, never raise. Other controls keep working."""
        with self._lock:
            track = self.current_track()
            title = track.display_name if track else "track"
            self.state.error = f"Failed to load: {title} ({message})"
            self.state.is_playing = False
            self._autoplay_pending = False
            logger.error(self.state.error)
            if self._on_error:
                self._on_error(self.state.error)
            self._notify_state()

    # --- Callback setters ---

    def set_track_load_callback(self, callback: Callable[[Album, Track], None]):
        self._on_track_load = callback

    def set_state_change_callback(self, callback: Callable[[PlayerState], None]):
        self._on_state_change = callback

    def set_lyrics_load_callback(self, callback: Callable[[List[LyricCue]], None]):
        self._on_lyrics_load = callback

    def set_lyric_change_callback(self, callback: Callable[[int], None]):
        self._on_lyric_change = callback

    def set_error_callback(self, callback: Callable[[str], None]):
        self._on_error = callback

    # --- Internals ---

    def _all_positions(self) -> List[Position]:
        return [(a, t) for a, album in enumerate(self.albums) for t in range(len(album.tracks))]

    def _first_position(self) -> Optional[Position]:
        for album_index, album in enumerate(self.albums):
            if album.tracks:
                return album_index, 0
        return None

    def _pick_random(self) -> Optional[Position]:
        positions = self._all_positions()
        if not positions:
            return None
        current = self.current_position()
        # Uniform over every other track; with a single track there is no other choice
        candidates = [p for p in positions if p != current] or positions
        return self.rng.choice(candidates)

    def _step(self, direction: int) -> Optional[Position]:
        """Sequential neighbour, wrapping across albums (empty albums are skipped)."""
        if self.total_tracks == 0:
            return None
        if not self.state.has_track:
            if direction > 0:
                return self._first_position()
            last_album = max(i for i, a in enumerate(self.albums) if a.tracks)
            return last_album, len(self.albums[last_album].tracks) - 1

        album_index = self.state.current_album_index
        track_index = self.state.current_track_index + direction
        if 0 <= track_index < len(self.albums[album_index].tracks):
            return album_index, track_index

        count = len(self.albums)
        for _ in range(count):
            album_index = (album_index + direction) % count
            tracks = self.albums[album_index].tracks
            if tracks:
                return album_index, (0 if direction > 0 else len(tracks) - 1)
        return None

    def _load_lyrics(self, track: Track) -> None:
        """Clear the current cues and start fetching the new ones in the background."""
        self._lyrics_request += 1
        request = self._lyrics_request
        # Index first: readers never see an index past the end of the list
        self.state.current_lyric_index = 0
        self.state.lyrics = []
        if self._on_lyrics_load:
            self._on_lyrics_load([])
        if self.lyrics_loader:
            self._lyrics_runner(lambda: self._fetch_lyrics(request, track))

    def _fetch_lyrics(self, request: int, track: Track) -> None:
        try:
            cues = list(self.lyrics_loader(track.lrc_url))
        except Exception as e:
            logger.debug(f"Lyrics failed for {track.lrc_url}: {e}")
            cues = []

        with self._lock:
            if request != self._lyrics_request:
                logger.debug(f"Dropping stale lyrics for {track.lrc_url}")
                return
            self.state.current_lyric_index = 0
            self.state.lyrics = cues
            if self._on_lyrics_load:
                self._on_lyrics_load(cues)
            if cues and self._on_lyric_change:
                self._on_lyric_change(0)

    def _call_output(self, action: str, func, *args) -> bool:
        try:
            func(*args)
            return True
        except Exception as e:
            logger.error(f"Audio output failed to {action}: {e}")
            self.on_playback_error(str(e))
            return False

    def _notify_state(self) -> None:
        if self._on_state_change:
            self._on_state_change(self.state)
