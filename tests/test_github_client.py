import unittest
from unittest.mock import MagicMock, patch

import requests

from catalog.github_client import GitHubAPIError, GitHubClient, quote_component, quote_path


def api_response(payload=None, status=200, reason="OK", json_error=False):
    response = MagicMock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.reason = reason
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


class TestQuoting(unittest.TestCase):
    def test_component_matches_encode_uri_component(self):
        self.assertEqual(quote_component("My Song (Live)!.mp3"), "My%20Song%20(Live)!.mp3")
        self.assertEqual(quote_component("a/b"), "a%2Fb")
        self.assertEqual(quote_component("周杰伦"), "%E5%91%A8%E6%9D%B0%E4%BC%A6")

    def test_path_keeps_separators(self):
        self.assertEqual(quote_path("/Music/Best Of/"), "Music/Best%20Of")
        self.assertEqual(quote_path(""), "")


class TestGitHubClient(unittest.TestCase):
    def setUp(self):
        self.session = requests.Session()
        self.client = GitHubClient("owner/repo", branch="dev", session=self.session, timeout=7)

    def test_headers_without_token(self):
        self.assertEqual(self.session.headers["Accept"], "application/vnd.github.v3+json")
        self.assertEqual(self.session.headers["User-Agent"], "GitHub-Music-Player")
        self.assertNotIn("Authorization", self.session.headers)

    def test_token_header(self):
        session = requests.Session()
        GitHubClient("owner/repo", token="secret", session=session)
        self.assertEqual(session.headers["Authorization"], "token secret")

    def test_urls(self):
        self.assertEqual(self.client.contents_url(""), "https://api.github.com/repos/owner/repo/contents")
        self.assertEqual(self.client.contents_url("My Music"),
                         "https://api.github.com/repos/owner/repo/contents/My%20Music")
        self.assertEqual(self.client.raw_url("My Music/a b.mp3"),
                         "https://raw.githubusercontent.com/owner/repo/dev/My%20Music/a%20b.mp3")

    def test_default_branch(self):
        client = GitHubClient("owner/repo", branch="", session=requests.Session())
        self.assertEqual(client.branch, "main")

    def test_list_directory(self):
        payload = [
            {"type": "dir", "name": "Album", "path": "music/Album", "size": 0},
            {"type": "file", "name": "a.mp3", "path": "music/a.mp3", "size": 42},
        ]
        with patch.object(self.session, "get", return_value=api_response(payload)) as get:
            entries = self.client.list_directory("music")

        get.assert_called_once_with(
            "https://api.github.com/repos/owner/repo/contents/music",
            params={"ref": "dev"},
            timeout=7,
        )
        self.assertEqual([e.name for e in entries], ["Album", "a.mp3"])
        self.assertTrue(entries[0].is_dir)
        self.assertEqual(entries[1].size, 42)

    def test_upstream_error_status_is_kept(self):
        response = api_response({"message": "Not Found"}, status=404, reason="Not Found")
        with patch.object(self.session, "get", return_value=response):
            with self.assertRaises(GitHubAPIError) as ctx:
                self.client.list_directory("missing")
        self.assertEqual(ctx.exception.status, 404)
        self.assertIn("Not Found", str(ctx.exception))
        self.assertTrue(ctx.exception.url.endswith("/contents/missing"))

    def test_rate_limit_status(self):
        response = api_response({"message": "API rate limit exceeded"}, status=403, reason="Forbidden")
        with patch.object(self.session, "get", return_value=response):
            with self.assertRaises(GitHubAPIError) as ctx:
                self.client.list_directory()
        self.assertEqual(ctx.exception.status, 403)
        self.assertIn("rate limit", ctx.exception.message)

    def test_file_path_is_not_a_directory(self):
        payload = {"type": "file", "name": "a.mp3", "path": "a.mp3"}
        with patch.object(self.session, "get", return_value=api_response(payload)):
            with self.assertRaises(GitHubAPIError) as ctx:
                self.client.list_directory("a.mp3")
        self.assertEqual(ctx.exception.status, 404)

    def test_non_json_body(self):
        with patch.object(self.session, "get", return_value=api_response(json_error=True)):
            with self.assertRaises(GitHubAPIError) as ctx:
                self.client.list_directory()
        self.assertEqual(ctx.exception.status, 502)

    def test_network_error_propagates(self):
        with patch.object(self.session, "get", side_effect=requests.ConnectionError("down")):
            with self.assertRaises(requests.RequestException):
                self.client.list_directory()

    def test_large_listing_warns(self):
        payload = [{"type": "file", "name": f"{i}.mp3", "path": f"{i}.mp3"} for i in range(1000)]
        with patch.object(self.session, "get", return_value=api_response(payload)):
            with self.assertLogs("catalog.github_client", level="WARNING"):
                entries = self.client.list_directory()
        self.assertEqual(len(entries), 1000)

    def test_close_leaves_borrowed_session_open(self):
        with patch.object(self.session, "close") as close:
            with self.client:
                pass
        close.assert_not_called()


if __name__ == '__main__':
    unittest.main()
