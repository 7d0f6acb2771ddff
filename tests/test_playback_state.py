import json
import tempfile
import unittest
from pathlib import Path

from player.playback_state import JsonSelectionStore, MemorySelectionStore, default_state_path


class TestJsonSelectionStore(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "state" / "lastPlayed.json"
        self.store = JsonSelectionStore(self.path)

    def tearDown(self):
        self.tmp.cleanup()

    def test_round_trip(self):
        self.store.save(2, 5)
        self.assertEqual(json.loads(self.path.read_text()), {"albumIndex": 2, "trackIndex": 5})
        self.assertEqual(JsonSelectionStore(self.path).load(), (2, 5))

    def test_missing_file(self):
        self.assertIsNone(self.store.load())

    def test_corrupt_file(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{oops")
        self.assertIsNone(self.store.load())

    def test_malformed_values(self):
        self.path.parent.mkdir(parents=True)
        for payload in ({"albumIndex": "1", "trackIndex": 0}, {"albumIndex": -1, "trackIndex": 0},
                        {"albumIndex": True, "trackIndex": 0}, [1, 2], {"trackIndex": 0}):
            self.path.write_text(json.dumps(payload))
            self.assertIsNone(self.store.load(), payload)

    def test_default_path_is_under_config_dir(self):
        self.assertEqual(default_state_path().name, "lastPlayed.json")
        self.assertIn("github-music-player", str(default_state_path()))


class TestMemorySelectionStore(unittest.TestCase):
    def test_save_and_load(self):
        store = MemorySelectionStore()
        self.assertIsNone(store.load())
        store.save(1, 0)
        self.assertEqual(store.load(), (1, 0))


if __name__ == '__main__':
    unittest.main()
