"""GitHub Contents API client: directory listings and raw content URLs."""

import logging
from typing import List, Optional
from urllib.parse import quote

import requests

from shared.constants import (
    GITHUB_API_BASE,
    GITHUB_RAW_BASE,
    GITHUB_ACCEPT_HEADER,
    GITHUB_CONTENTS_PAGE_LIMIT,
    DEFAULT_BRANCH,
    DEFAULT_NETWORK_TIMEOUT,
    DEFAULT_USER_AGENT,
)
from shared.models import DirectoryEntry

logger = logging.getLogger(__name__)

# Characters encodeURIComponent leaves untouched besides A-Z a-z 0-9 - _ . ~
_COMPONENT_SAFE = "!*'()"


def quote_component(value: str) -> str:
    """URL-encode one path segment the way the browser's encodeURIComponent does."""
    return quote(value, safe=_COMPONENT_SAFE)


def quote_path(path: str) -> str:
    """Encode every segment of a slash separated path, keeping the slashes."""
    return "/".join(quote_component(part) for part in path.strip("/").split("/") if part)


class GitHubAPIError(Exception):
    """Non-2xx (or unusable) response from the GitHub API."""

    def __init__(self, status: int, message: str, url: str):
        super().__init__(f"GitHub API error: {status} {message}")
        self.status = status
        self.message = message
        self.url = url


class GitHubClient:
    """Lists repository directories at a given branch. Optionally authenticated."""

    def __init__(self, repo: str, branch: str = DEFAULT_BRANCH, token: str = "",
                 timeout: float = DEFAULT_NETWORK_TIMEOUT,
                 session: Optional[requests.Session] = None,
                 user_agent: str = DEFAULT_USER_AGENT):
        self.repo = repo
        self.branch = branch or DEFAULT_BRANCH
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": GITHUB_ACCEPT_HEADER,
            "User-Agent": user_agent,
        })
        if token:
            self.session.headers["Authorization"] = f"token {token}"

    def __enter__(self) -> 'GitHubClient':
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        if self._owns_session:
            self.session.close()

    def contents_url(self, path: str = "") -> str:
        base = f"{GITHUB_API_BASE}/repos/{self.repo}/contents"
        encoded = quote_path(path)
        return f"{base}/{encoded}" if encoded else base

    def raw_url(self, path: str) -> str:
        """Direct download URL for a file path at the configured branch."""
        return f"{GITHUB_RAW_BASE}/{self.repo}/{self.branch}/{quote_path(path)}"

    def list_directory(self, path: str = "") -> List[DirectoryEntry]:
        """
        List one directory.

        Raises:
            GitHubAPIError: on a non-2xx status or when the path is not a directory
            requests.RequestException: on network failure
        """
        url = self.contents_url(path)
        logger.debug(f"GET {url} ref={self.branch}")
        response = self.session.get(url, params={"ref": self.branch}, timeout=self.timeout)

        if not response.ok:
            raise GitHubAPIError(response.status_code, self._error_message(response), url)

        try:
            payload = response.json()
        except ValueError:
            raise GitHubAPIError(502, "Response is not JSON", url)

        if not isinstance(payload, list):
            # Contents API answers with an object when the path is a file
            raise GitHubAPIError(404, f"'{path or '/'}' is not a directory", url)

        if len(payload) >= GITHUB_CONTENTS_PAGE_LIMIT:
            logger.warning(
                f"Listing of '{path or '/'}' hit the {GITHUB_CONTENTS_PAGE_LIMIT} entry limit; "
                "entries beyond it are not visible through the Contents API"
            )

        return [DirectoryEntry.from_api(item) for item in payload]

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("message"):
                return f"{response.reason or ''} ({body['message']})".strip()
        except ValueError:
            pass
        return response.reason or "Request failed"
