import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from shared.config import Config
from shared.models import Catalog
from catalog.writer import build_site, render_player_page, write_catalog, write_player_page


class TestWriter(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.out = Path(self.tmp.name) / "public"

    def tearDown(self):
        self.tmp.cleanup()

    def test_write_catalog(self):
        catalog = Catalog(albums=[], repo="owner/repo", path="music", branch="main")
        target = write_catalog(catalog, self.out)
        self.assertEqual(target.name, "music-data.json")
        data = json.loads(target.read_text(encoding="utf-8"))
        self.assertEqual(data["repo"], "owner/repo")
        self.assertEqual(data["totalSongs"], 0)

    def test_player_page_and_assets(self):
        self.assertTrue(write_player_page(self.out, layout="list", auto_resume=False))
        html = (self.out / "index.html").read_text(encoding="utf-8")
        self.assertIn('data-catalog-url="music-data.json"', html)
        self.assertIn('data-layout="list"', html)
        self.assertIn('src="player.js"', html)
        self.assertTrue((self.out / "player.js").exists())
        self.assertTrue((self.out / "player.css").exists())

    def test_existing_page_is_kept(self):
        self.out.mkdir(parents=True)
        (self.out / "index.html").write_text("custom")
        self.assertFalse(write_player_page(self.out, layout="albums", auto_resume=False))
        self.assertEqual((self.out / "index.html").read_text(), "custom")

        self.assertTrue(write_player_page(self.out, layout="albums", auto_resume=False, overwrite=True))
        self.assertNotEqual((self.out / "index.html").read_text(), "custom")

    def test_title_is_escaped(self):
        html = render_player_page("albums", False, title="<b>Mine</b>")
        self.assertIn("&lt;b&gt;Mine&lt;/b&gt;", html)

    def test_build_site_writes_failed_catalog(self):
        config = Config(github_repo="owner/repo", output_dir=str(self.out))
        failed = Catalog.failed(repo="owner/repo", path="Root", branch="main", error="GitHub API error: 404")
        with patch("catalog.writer.build_catalog", return_value=failed):
            catalog = build_site(config)
        self.assertFalse(catalog.success)
        data = json.loads((self.out / "music-data.json").read_text(encoding="utf-8"))
        self.assertFalse(data["success"])
        self.assertTrue((self.out / "index.html").exists())


if __name__ == '__main__':
    unittest.main()
