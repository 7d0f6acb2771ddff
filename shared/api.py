"""
HTTP API for the music player.
Lists a GitHub repository as a catalog on request and serves the player page.
"""

import logging
import os
from dataclasses import replace

from flask import Flask, request, jsonify, Response, send_from_directory
from flask_cors import CORS

from shared.config import Config, ConfigError, load_config
from shared.constants import CATALOG_FILENAME, PLAYER_LAYOUTS
from shared.models import Catalog
from catalog.builder import CatalogBuilder, build_catalog
from catalog.github_client import GitHubAPIError
from catalog.writer import WEB_UI_PATH, PLAYER_ASSETS, render_player_page

logger = logging.getLogger(__name__)


def _json_catalog(catalog) -> Response:
    # to_json keeps non-ASCII album and track names readable
    return Response(catalog.to_json(indent=2), mimetype="application/json")


def create_app(config: Config = None) -> Flask:
    """Application factory. Without a config, the environment (and .env) is used."""
    app = Flask(__name__)
    app.config["MUSIC_CONFIG"] = config or load_config()
    CORS(app, resources={r"/*": {"origins": "*"}}, methods=["GET", "OPTIONS"])

    def current_config() -> Config:
        return app.config["MUSIC_CONFIG"]

    @app.route('/api/health')
    def health_check():
        return jsonify({"status": "healthy"})

    @app.route('/api/list-music', methods=['GET', 'OPTIONS'])
    def list_music():
        if request.method == 'OPTIONS':
            return Response(status=200)

        try:
            cfg = current_config().with_overrides(
                github_repo=request.args.get('repo'),
                music_path=request.args.get('path'),
                branch=request.args.get('branch'),
                github_token=request.args.get('token'),
            )
        except ConfigError as e:
            return jsonify({"error": str(e)}), 400
        if 'path' in request.args:
            # An explicit empty path lists the repository root
            cfg = replace(cfg, music_path=request.args['path'])

        if not cfg.github_repo:
            return jsonify({"error": "Missing GitHub repository parameter 'repo'"}), 400

        try:
            builder = CatalogBuilder.from_config(cfg)
            with builder.client:
                catalog = builder.build()
        except ConfigError as e:
            return jsonify({"error": str(e)}), 400
        except GitHubAPIError as e:
            logger.error(f"Upstream failure for {cfg.github_repo}: {e}")
            return jsonify({"error": str(e), "url": e.url}), e.status
        except Exception as e:
            logger.exception(f"Listing {cfg.github_repo} failed")
            return jsonify({"error": "Internal server error", "message": str(e)}), 500

        return _json_catalog(catalog)

    @app.route(f'/{CATALOG_FILENAME}')
    def catalog_document():
        """Catalog for the configured repository; failures come back as success=false."""
        cfg = current_config()
        try:
            catalog = build_catalog(cfg)
        except ConfigError as e:
            catalog = Catalog.failed(repo=cfg.github_repo, path=cfg.music_path or cfg.root_album_name,
                                     branch=cfg.branch, error=str(e))
        return _json_catalog(catalog)

    @app.route('/')
    @app.route('/player/')
    def serve_web_player():
        cfg = current_config()
        view = request.args.get("view")
        html = render_player_page(
            layout=view if view in PLAYER_LAYOUTS else cfg.player_layout,
            auto_resume=cfg.auto_resume,
            catalog_url=f"/{CATALOG_FILENAME}",
            asset_prefix="/player/",
        )
        return Response(html, mimetype="text/html")

    @app.route('/player/<path:path>')
    def serve_web_player_assets(path):
        if path not in PLAYER_ASSETS:
            return jsonify({"error": "Not found"}), 404
        return send_from_directory(WEB_UI_PATH, path)

    return app


def start_api(config: Config = None, host: str = None, port: int = None, debug: bool = False):
    config = config or load_config()
    host = host or config.host
    port = port or config.port
    app = create_app(config)
    logger.info(f"Player:  http://localhost:{port}/")
    logger.info(f"Catalog: http://localhost:{port}/api/list-music?repo={config.github_repo or '<owner/repo>'}")
    app.run(host=host, port=port, debug=debug)


if __name__ == '__main__':
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    start_api()
