"""
Catalog builder.
Walks one level of folders under the configured music path and turns the
audio files it finds into albums of tracks with derived raw/lyrics/cover URLs.
"""

import logging
import posixpath
from typing import List, Optional

import requests

from shared.config import Config
from shared.constants import (
    SUPPORTED_AUDIO_FORMATS,
    SUPPORTED_IMAGE_FORMATS,
    LYRICS_EXTENSION,
    DEFAULT_ROOT_ALBUM_NAME,
)
from shared.models import (
    Album,
    Catalog,
    DirectoryEntry,
    Track,
    display_name,
    file_stem,
    mime_type_for,
    stable_track_id,
)
from catalog.github_client import GitHubClient, GitHubAPIError

logger = logging.getLogger(__name__)


def is_audio(entry: DirectoryEntry) -> bool:
    return entry.is_file and entry.extension in SUPPORTED_AUDIO_FORMATS


def is_image(entry: DirectoryEntry) -> bool:
    return entry.is_file and entry.extension in SUPPORTED_IMAGE_FORMATS


def lyrics_file_name(file_name: str) -> str:
    """Swap only the final extension for .lrc ('a.mp3.mp3' -> 'a.mp3.lrc')."""
    return file_stem(file_name) + LYRICS_EXTENSION


class CatalogBuilder:
    """Builds a Catalog for one repository/path/branch."""

    def __init__(self, client: GitHubClient, root_path: str = "",
                 root_album_name: str = DEFAULT_ROOT_ALBUM_NAME):
        self.client = client
        self.root_path = (root_path or "").strip("/")
        self.root_album_name = root_album_name

    @classmethod
    def from_config(cls, config: Config, session: Optional[requests.Session] = None) -> 'CatalogBuilder':
        client = GitHubClient(
            repo=config.require_repo(),
            branch=config.branch,
            token=config.github_token,
            timeout=config.request_timeout,
            session=session,
            user_agent=config.user_agent,
        )
        return cls(client, root_path=config.music_path, root_album_name=config.root_album_name)

    @property
    def catalog_path_label(self) -> str:
        return self.root_path or self.root_album_name

    def build(self) -> Catalog:
        """
        Build the catalog.

        Subfolder failures are logged and the folder is left out. A failure of
        the root listing propagates to the caller.

        Raises:
            GitHubAPIError / requests.RequestException: root listing failed
        """
        client = self.client
        logger.info(f"Building catalog for {client.repo} "
                    f"(path: {self.catalog_path_label}, branch: {client.branch})")

        entries = client.list_directory(self.root_path)
        folders = [e for e in entries if e.is_dir]
        files = [e for e in entries if e.is_file]
        logger.info(f"Found {len(folders)} folders and {len(files)} files")

        albums: List[Album] = []

        root_tracks = self._tracks_for(files, self.root_path)
        if root_tracks:
            albums.append(Album(
                name=self.root_album_name,
                path=self.root_path,
                cover=None,
                tracks=root_tracks,
            ))

        # Folders are listed one at a time; a slow folder delays the ones after it
        for folder in folders:
            album = self._build_folder_album(folder)
            if album:
                albums.append(album)

        catalog = Catalog(
            albums=albums,
            repo=client.repo,
            path=self.catalog_path_label,
            branch=client.branch,
        )
        logger.info(f"Catalog built: {catalog.total_albums} albums, {catalog.total_songs} songs")
        return catalog

    def build_or_empty(self) -> Catalog:
        """Like build(), but a root failure yields an empty catalog with success=False."""
        try:
            return self.build()
        except GitHubAPIError as e:
            logger.error(f"Listing {e.url} failed: {e}")
            error = str(e)
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to build catalog for {self.client.repo}: {e}")
            error = str(e) or e.__class__.__name__
        return Catalog.failed(
            repo=self.client.repo,
            path=self.catalog_path_label,
            branch=self.client.branch,
            error=error,
        )

    def _build_folder_album(self, folder: DirectoryEntry) -> Optional[Album]:
        try:
            files = [e for e in self.client.list_directory(folder.path) if e.is_file]
        except (GitHubAPIError, requests.RequestException, ValueError) as e:
            logger.warning(f"Skipping folder '{folder.name}': {e}")
            return None

        tracks = self._tracks_for(files, folder.path)
        if not tracks:
            logger.debug(f"Folder '{folder.name}' has no audio files")
            return None

        cover_entry = next((f for f in files if is_image(f)), None)
        cover = self.client.raw_url(posixpath.join(folder.path, cover_entry.name)) if cover_entry else None

        logger.info(f"Album '{folder.name}': {len(tracks)} songs")
        return Album(name=folder.name, path=folder.path, cover=cover, tracks=tracks)

    def _tracks_for(self, files: List[DirectoryEntry], folder_path: str) -> List[Track]:
        return [self.make_track(f, folder_path) for f in files if is_audio(f)]

    def make_track(self, entry: DirectoryEntry, folder_path: str) -> Track:
        """Derive the track record (URLs, display metadata, stable id) for one file."""
        file_path = posixpath.join(folder_path, entry.name) if folder_path else entry.name
        lrc_path = posixpath.join(folder_path, lyrics_file_name(entry.name)) if folder_path \
            else lyrics_file_name(entry.name)
        return Track(
            id=stable_track_id(folder_path, entry.name),
            name=entry.name,
            url=self.client.raw_url(file_path),
            lrc_url=self.client.raw_url(lrc_path),
            size=entry.size,
            mime_type=mime_type_for(entry.name),
            display_name=display_name(entry.name),
            file_name=file_stem(entry.name),
        )


def build_catalog(config: Config, session: Optional[requests.Session] = None) -> Catalog:
    """Build with the empty-catalog fallback, closing the client afterwards."""
    builder = CatalogBuilder.from_config(config, session=session)
    with builder.client:
        return builder.build_or_empty()
