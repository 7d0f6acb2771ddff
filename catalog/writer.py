"""
Static build output: music-data.json plus the player page.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

import requests
from jinja2 import Environment, FileSystemLoader, select_autoescape

from shared.config import Config
from shared.constants import CATALOG_FILENAME
from shared.models import Catalog
from catalog.builder import build_catalog

logger = logging.getLogger(__name__)

# Player page sources (template + static assets)
WEB_UI_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'player', 'web')
PLAYER_ASSETS = ("player.js", "player.css")

_env = Environment(
    loader=FileSystemLoader(os.path.join(WEB_UI_PATH, "templates")),
    autoescape=select_autoescape(["html"]),
)


def render_player_page(layout: str, auto_resume: bool, catalog_url: str = CATALOG_FILENAME,
                       asset_prefix: str = "", title: str = "Music Player") -> str:
    """Render the single player page for the requested layout."""
    template = _env.get_template("index.html")
    return template.render(
        layout=layout,
        auto_resume=auto_resume,
        catalog_url=catalog_url,
        asset_prefix=asset_prefix,
        title=title,
    )


def write_catalog(catalog: Catalog, output_dir) -> Path:
    """Write music-data.json into output_dir (created if missing)."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    target = out / CATALOG_FILENAME
    target.write_text(catalog.to_json(indent=2), encoding="utf-8")
    logger.info(f"Wrote {target} ({catalog.total_albums} albums, {catalog.total_songs} songs)")
    return target


def write_player_page(output_dir, layout: str, auto_resume: bool, overwrite: bool = False,
                      title: str = "Music Player") -> bool:
    """
    Render index.html and copy the player assets into output_dir.

    An existing index.html is left alone unless overwrite is set, so a
    hand-edited page survives rebuilds.

    Returns:
        True if the page was (re)written
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    index = out / "index.html"
    if index.exists() and not overwrite:
        logger.info(f"Keeping existing {index}")
        return False

    index.write_text(render_player_page(layout, auto_resume, title=title), encoding="utf-8")
    for asset in PLAYER_ASSETS:
        shutil.copyfile(os.path.join(WEB_UI_PATH, asset), out / asset)
    logger.info(f"Wrote player page to {index} (layout: {layout})")
    return True


def build_site(config: Config, overwrite_page: bool = False,
               session: Optional[requests.Session] = None) -> Catalog:
    """Build the catalog (falling back to an empty one) and write all artifacts."""
    catalog = build_catalog(config, session=session)
    write_catalog(catalog, config.output_dir)
    write_player_page(config.output_dir, config.player_layout, config.auto_resume,
                      overwrite=overwrite_page)
    return catalog
