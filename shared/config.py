"""
Environment-driven configuration.

Values are read from the process environment after loading an optional
``.env`` file from the working directory. Only GITHUB_REPO is required, and
only by operations that actually talk to GitHub.
"""

import os
from dataclasses import dataclass, replace, fields
from typing import Mapping, Optional

from dotenv import load_dotenv

from shared.constants import (
    DEFAULT_BRANCH,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_NETWORK_TIMEOUT,
    DEFAULT_ROOT_ALBUM_NAME,
    DEFAULT_PLAYER_LAYOUT,
    PLAYER_LAYOUTS,
    DEFAULT_USER_AGENT,
    DEFAULT_HOST,
    DEFAULT_PORT,
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class ConfigError(ValueError):
    """Invalid or missing configuration."""


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean (got {raw!r})")


def _parse_int(name: str, raw: str, minimum: int = 1) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer (got {raw!r})")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Config:
    """
    Runtime configuration.

    Attributes:
        github_repo: Repository in owner/name form (GITHUB_REPO)
        music_path: Folder inside the repository holding the music, '' for root (MUSIC_PATH)
        branch: Branch or ref to list (BRANCH)
        github_token: Optional token sent as 'Authorization: token ...' (GITHUB_TOKEN)
        output_dir: Where the static build writes music-data.json and the page (OUTPUT_DIR)
        request_timeout: Seconds before an upstream request is abandoned (REQUEST_TIMEOUT)
        root_album_name: Label of the synthetic album for files directly under music_path
        player_layout: 'albums' (sidebar) or 'list' (single list) page layout
        auto_resume: Resume playback, not just the selection, after a reload
        user_agent: User-Agent sent to the GitHub API
        host/port: Bind address of the HTTP server
        log_level: Root logging level name
    """
    github_repo: str = ""
    music_path: str = ""
    branch: str = DEFAULT_BRANCH
    github_token: str = ""
    output_dir: str = DEFAULT_OUTPUT_DIR
    request_timeout: int = DEFAULT_NETWORK_TIMEOUT
    root_album_name: str = DEFAULT_ROOT_ALBUM_NAME
    player_layout: str = DEFAULT_PLAYER_LAYOUT
    auto_resume: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    def __post_init__(self):
        if self.player_layout not in PLAYER_LAYOUTS:
            raise ConfigError(
                f"PLAYER_LAYOUT must be one of {', '.join(PLAYER_LAYOUTS)} (got {self.player_layout!r})"
            )
        # Normalise the music path once so URL building never sees stray slashes
        object.__setattr__(self, "music_path", (self.music_path or "").strip().strip("/"))
        object.__setattr__(self, "github_repo", (self.github_repo or "").strip())
        object.__setattr__(self, "branch", (self.branch or "").strip() or DEFAULT_BRANCH)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Config':
        """Build config from a mapping (defaults to os.environ)."""
        env = os.environ if environ is None else environ
        return cls(
            github_repo=env.get("GITHUB_REPO", ""),
            music_path=env.get("MUSIC_PATH", ""),
            branch=env.get("BRANCH", DEFAULT_BRANCH),
            github_token=env.get("GITHUB_TOKEN", ""),
            output_dir=env.get("OUTPUT_DIR", DEFAULT_OUTPUT_DIR) or DEFAULT_OUTPUT_DIR,
            request_timeout=_parse_int("REQUEST_TIMEOUT", env.get("REQUEST_TIMEOUT", str(DEFAULT_NETWORK_TIMEOUT))),
            root_album_name=env.get("ROOT_ALBUM_NAME", DEFAULT_ROOT_ALBUM_NAME) or DEFAULT_ROOT_ALBUM_NAME,
            player_layout=(env.get("PLAYER_LAYOUT", DEFAULT_PLAYER_LAYOUT) or DEFAULT_PLAYER_LAYOUT).lower(),
            auto_resume=_parse_bool("AUTO_RESUME", env.get("AUTO_RESUME", "")),
            user_agent=env.get("USER_AGENT", DEFAULT_USER_AGENT) or DEFAULT_USER_AGENT,
            host=env.get("HOST", DEFAULT_HOST) or DEFAULT_HOST,
            port=_parse_int("PORT", env.get("PORT", str(DEFAULT_PORT))),
            log_level=(env.get("LOG_LEVEL", "INFO") or "INFO").upper(),
        )

    def with_overrides(self, **overrides) -> 'Config':
        """Return a copy where every non-empty override replaces the current value."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown config option(s): {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in overrides.items() if v is not None and v != ""}
        return replace(self, **changes) if changes else self

    def require_repo(self) -> str:
        if not self.github_repo:
            raise ConfigError("GITHUB_REPO is not set (expected owner/repo)")
        if self.github_repo.count("/") != 1 or self.github_repo.startswith("/") or self.github_repo.endswith("/"):
            raise ConfigError(f"GITHUB_REPO must look like owner/repo (got {self.github_repo!r})")
        return self.github_repo


def load_config(dotenv_path: Optional[str] = None) -> Config:
    """Load .env (without overriding real environment variables) and read the config."""
    load_dotenv(dotenv_path, override=False)
    return Config.from_env()
