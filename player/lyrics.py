"""
LRC lyrics: decoding, parsing and playback-time lookup.
"""

import logging
import re
from typing import List, Optional, Sequence

import requests

from shared.constants import DEFAULT_NETWORK_TIMEOUT
from shared.models import LyricCue

logger = logging.getLogger(__name__)

# Exactly [MM:SS.ss]; other timestamp shapes are left in the text
TIME_TAG = re.compile(r"\[(\d{2}):(\d{2}\.\d{2})\]")

REPLACEMENT_CHAR = "\ufffd"


def parse_lrc(text: str) -> List[LyricCue]:
    """
    Parse LRC text into cues sorted by time.

    A line carrying several time tags yields one cue per tag, all with the
    line's text. Tagged lines whose text is empty are dropped.
    """
    cues: List[LyricCue] = []
    for line in text.split("\n"):
        tags = TIME_TAG.findall(line)
        if not tags:
            continue
        lyric = TIME_TAG.sub("", line).strip()
        if not lyric:
            continue
        for minutes, seconds in tags:
            cues.append(LyricCue(time=int(minutes) * 60 + float(seconds), text=lyric))

    cues.sort(key=lambda c: c.time)
    return cues


def decode_lyrics(data: bytes) -> str:
    """
    Decode lyric file bytes.

    Strict UTF-8 first; if that fails or the text contains replacement
    characters, GB18030 (superset of GBK) is tried, and lossy UTF-8 is the
    last resort.
    """
    try:
        text = data.decode("utf-8-sig")
        if REPLACEMENT_CHAR not in text:
            return text
    except UnicodeDecodeError:
        pass

    try:
        return data.decode("gb18030")
    except UnicodeDecodeError:
        return data.decode("utf-8", errors="replace")


def current_cue_index(cues: Sequence[LyricCue], position: float, start_index: int = 0) -> int:
    """
    Index of the latest cue whose time <= position, walking from start_index.

    The walk goes backward while position is before the current cue and
    forward while it has reached the next one, so steady playback only ever
    moves the index forward one step at a time. Before the first cue the
    index stays at 0.
    """
    if not cues:
        return 0
    index = min(max(start_index, 0), len(cues) - 1)
    if position < cues[index].time:
        while index > 0 and position < cues[index].time:
            index -= 1
    else:
        while index < len(cues) - 1 and position >= cues[index + 1].time:
            index += 1
    return index


def format_timestamp(seconds: Optional[float]) -> str:
    """Seconds -> M:SS ('0:00' for unknown durations)."""
    if seconds is None or seconds != seconds or seconds in (float("inf"), float("-inf")):
        return "0:00"
    seconds = max(0.0, seconds)
    return f"{int(seconds // 60)}:{int(seconds % 60):02d}"


class LyricsLoader:
    """Fetches and parses the lyrics file next to a track. A missing file is not an error."""

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_NETWORK_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def __call__(self, lrc_url: str) -> List[LyricCue]:
        return self.load(lrc_url)

    def load(self, lrc_url: str) -> List[LyricCue]:
        if not lrc_url:
            return []
        try:
            response = self.session.get(lrc_url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug(f"Lyrics unavailable for {lrc_url}: {e}")
            return []
        if not response.ok:
            logger.debug(f"No lyrics at {lrc_url} ({response.status_code})")
            return []
        cues = parse_lrc(decode_lyrics(response.content))
        logger.debug(f"Loaded {len(cues)} lyric cues from {lrc_url}")
        return cues
