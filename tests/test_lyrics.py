import unittest
from unittest.mock import MagicMock

import requests

from shared.models import LyricCue
from player.lyrics import (
    LyricsLoader,
    current_cue_index,
    decode_lyrics,
    format_timestamp,
    parse_lrc,
)


class TestParseLrc(unittest.TestCase):
    def test_multiple_tags_share_text(self):
        cues = parse_lrc("[00:01.00]Hello\n[00:02.00][00:03.00]World")
        self.assertEqual(cues, [
            LyricCue(1.0, "Hello"),
            LyricCue(2.0, "World"),
            LyricCue(3.0, "World"),
        ])

    def test_empty_text_dropped(self):
        self.assertEqual(parse_lrc("[00:05.00]   "), [])

    def test_sorted_by_time(self):
        cues = parse_lrc("[01:10.50]Late\n[00:02.25]Early")
        self.assertEqual([c.time for c in cues], [2.25, 70.5])
        self.assertEqual(cues[0].text, "Early")

    def test_metadata_and_untagged_lines_ignored(self):
        text = "[ar:Someone]\n[ti:Title]\nplain line\n[00:01.00]Sung"
        self.assertEqual(parse_lrc(text), [LyricCue(1.0, "Sung")])

    def test_other_timestamp_shapes_not_recognised(self):
        self.assertEqual(parse_lrc("[0:01.00]a\n[00:01]b\n[00:01.000]c"), [])

    def test_windows_line_endings(self):
        self.assertEqual(parse_lrc("[00:01.00]Hello\r\n"), [LyricCue(1.0, "Hello")])


class TestDecodeLyrics(unittest.TestCase):
    def test_utf8(self):
        self.assertEqual(decode_lyrics("[00:01.00]你好".encode("utf-8")), "[00:01.00]你好")

    def test_utf8_bom_removed(self):
        self.assertEqual(decode_lyrics("\ufeffhi".encode("utf-8")), "hi")

    def test_gbk_fallback(self):
        data = "[00:01.00]月亮代表我的心".encode("gbk")
        self.assertEqual(decode_lyrics(data), "[00:01.00]月亮代表我的心")

    def test_replacement_char_triggers_fallback(self):
        # Valid UTF-8 containing U+FFFD is treated as mojibake
        data = "a\ufffdb".encode("utf-8")
        self.assertEqual(decode_lyrics(data), data.decode("gb18030"))

    def test_lossy_last_resort(self):
        data = b"\x81\x30"  # truncated GB18030 four-byte sequence
        self.assertEqual(decode_lyrics(data), data.decode("utf-8", errors="replace"))


class TestCueIndex(unittest.TestCase):
    def setUp(self):
        self.cues = [LyricCue(0.0, "a"), LyricCue(5.0, "b"), LyricCue(10.0, "c")]

    def test_monotonic_sweep_visits_each_cue_in_order(self):
        index = 0
        visited = [index]
        t = 0.0
        while t <= 12.0:
            new_index = current_cue_index(self.cues, t, index)
            self.assertGreaterEqual(new_index, index)
            if new_index != index:
                visited.append(new_index)
            index = new_index
            t += 0.25
        self.assertEqual(visited, [0, 1, 2])

    def test_seek_backwards(self):
        self.assertEqual(current_cue_index(self.cues, 6.0, 2), 1)

    def test_jump_forward(self):
        self.assertEqual(current_cue_index(self.cues, 11.0, 0), 2)

    def test_before_first_cue(self):
        cues = [LyricCue(3.0, "a")]
        self.assertEqual(current_cue_index(cues, 1.0, 0), 0)

    def test_no_cues(self):
        self.assertEqual(current_cue_index([], 5.0, 3), 0)


class TestFormatTimestamp(unittest.TestCase):
    def test_values(self):
        self.assertEqual(format_timestamp(0), "0:00")
        self.assertEqual(format_timestamp(65.9), "1:05")
        self.assertEqual(format_timestamp(None), "0:00")
        self.assertEqual(format_timestamp(float("nan")), "0:00")
        self.assertEqual(format_timestamp(float("inf")), "0:00")


class TestLyricsLoader(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.loader = LyricsLoader(session=self.session, timeout=5)

    def test_loads_and_parses(self):
        response = MagicMock(ok=True, status_code=200, content="[00:01.00]Hi".encode("utf-8"))
        self.session.get.return_value = response

        cues = self.loader("https://raw/x/Song.lrc")

        self.session.get.assert_called_with("https://raw/x/Song.lrc", timeout=5)
        self.assertEqual(cues, [LyricCue(1.0, "Hi")])

    def test_missing_file_is_empty(self):
        self.session.get.return_value = MagicMock(ok=False, status_code=404)
        self.assertEqual(self.loader.load("https://raw/x/Song.lrc"), [])

    def test_network_error_is_empty(self):
        self.session.get.side_effect = requests.ConnectionError("down")
        self.assertEqual(self.loader.load("https://raw/x/Song.lrc"), [])

    def test_no_url(self):
        self.assertEqual(self.loader.load(""), [])
        self.session.get.assert_not_called()


if __name__ == '__main__':
    unittest.main()
