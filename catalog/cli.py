"""
Command-line interface for the catalog side: build the static site,
inspect a repository, serve the HTTP API and check lyric files.
"""

import logging
import sys
from pathlib import Path

import click
import requests
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from shared.config import Config, ConfigError, load_config
from shared.constants import PLAYER_LAYOUTS
from shared.models import Catalog
from catalog.builder import CatalogBuilder
from catalog.github_client import GitHubAPIError
from catalog.writer import build_site
from player.lyrics import LyricsLoader, decode_lyrics, format_timestamp, parse_lrc

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", verbose: bool = False):
    """Configure the root logger once, rendering through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # urllib3 debug lines would drown the catalog output
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def repo_options(func):
    """Options shared by every command that lists a repository."""
    func = click.option('--token', help='GitHub token (default: GITHUB_TOKEN)')(func)
    func = click.option('--branch', help='Branch to list (default: BRANCH or main)')(func)
    func = click.option('--path', 'music_path', help='Music folder inside the repository (default: MUSIC_PATH)')(func)
    func = click.option('--repo', help='Repository as owner/name (default: GITHUB_REPO)')(func)
    return func


def _resolve_config(ctx, **overrides) -> Config:
    try:
        return ctx.obj["config"].with_overrides(**overrides)
    except ConfigError as e:
        raise click.ClickException(str(e))


def _fail(message: str):
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


@click.group()
@click.version_option(version="1.0.0")
@click.option('--env-file', type=click.Path(dir_okay=False), help='Load variables from this .env file')
@click.option('-v', '--verbose', is_flag=True, help='Debug logging')
@click.pass_context
def cli(ctx, env_file, verbose):
    """
    🎵 GitHub Music Catalog

    Turns a folder of audio files in a GitHub repository into a
    music-data.json catalog and a static player page.
    """
    try:
        config = load_config(env_file)
    except ConfigError as e:
        raise click.ClickException(str(e))
    setup_logging(config.log_level, verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@repo_options
@click.option('--output', 'output_dir', type=click.Path(file_okay=False), help='Output directory (default: OUTPUT_DIR or public)')
@click.option('--layout', 'player_layout', type=click.Choice(PLAYER_LAYOUTS), help='Player page layout')
@click.option('--overwrite-page', is_flag=True, help='Replace an existing index.html')
@click.pass_context
def build(ctx, repo, music_path, branch, token, output_dir, player_layout, overwrite_page):
    """Write music-data.json and the player page."""
    config = _resolve_config(ctx, github_repo=repo, music_path=music_path, branch=branch,
                             github_token=token, output_dir=output_dir, player_layout=player_layout)
    try:
        config.require_repo()
    except ConfigError as e:
        _fail(str(e))

    with console.status(f"Listing {config.github_repo}..."):
        catalog = build_site(config, overwrite_page=overwrite_page)

    if not catalog.success:
        console.print(Panel.fit(
            f"[red bold]Catalog build failed[/red bold]\n\n{catalog.error}\n\n"
            f"An empty catalog was written to [cyan]{config.output_dir}[/cyan].",
            border_style="red"
        ))
        sys.exit(1)

    console.print(Panel.fit(
        f"[bold green]✓ Catalog written[/bold green]\n\n"
        f"Repository: [cyan]{catalog.repo}[/cyan] ({catalog.branch})\n"
        f"Albums: {catalog.total_albums}   Songs: {catalog.total_songs}\n"
        f"Output: {Path(config.output_dir).resolve()}",
        border_style="green"
    ))


@cli.command(name='list')
@repo_options
@click.option('--json', 'as_json', is_flag=True, help='Print the catalog JSON instead of a table')
@click.pass_context
def list_catalog(ctx, repo, music_path, branch, token, as_json):
    """List the albums and tracks of a repository."""
    config = _resolve_config(ctx, github_repo=repo, music_path=music_path,
                             branch=branch, github_token=token)
    try:
        builder = CatalogBuilder.from_config(config)
        with builder.client:
            catalog = builder.build()
    except ConfigError as e:
        _fail(str(e))
    except GitHubAPIError as e:
        _fail(f"{e} ({e.url})")
    except requests.RequestException as e:
        _fail(f"Network error: {e}")

    if as_json:
        click.echo(catalog.to_json(indent=2))
        return
    print_catalog(catalog)


def print_catalog(catalog: Catalog):
    if not catalog.albums:
        console.print("[yellow]No audio files found.[/yellow]")
        return

    table = Table(title=f"{catalog.repo} ({catalog.total_albums} albums, {catalog.total_songs} songs)")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Album", style="yellow")
    table.add_column("Title", style="bold white")
    table.add_column("Type", style="magenta")
    table.add_column("Size", style="cyan", justify="right")
    table.add_column("ID", style="dim", no_wrap=True)

    for album_index, _, track in catalog.iter_tracks():
        table.add_row(str(album_index), catalog.albums[album_index].name, track.display_name,
                      track.mime_type, f"{track.size / 1024**2:.1f} MB", track.id)
    console.print(table)


@cli.command()
@click.option('--host', help='Bind address (default: HOST or 0.0.0.0)')
@click.option('--port', type=int, help='Port (default: PORT or 5005)')
@click.option('--debug', is_flag=True, help='Flask debug mode')
@click.pass_context
def serve(ctx, host, port, debug):
    """Run the HTTP API and the player page."""
    from shared.api import start_api

    config = _resolve_config(ctx, host=host, port=port)
    start_api(config, debug=debug)


@cli.command()
@click.argument('source')
def lyrics(source):
    """Print the cues of an .lrc file (local path or URL)."""
    if source.startswith(("http://", "https://")):
        cues = LyricsLoader().load(source)
    else:
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            _fail(f"Cannot read {source}: {e}")
        cues = parse_lrc(decode_lyrics(data))

    if not cues:
        console.print("[yellow]No timed lyrics found.[/yellow]")
        return

    table = Table(title=f"{len(cues)} cues")
    table.add_column("Time", style="cyan", justify="right")
    table.add_column("Text")
    for cue in cues:
        table.add_row(f"{format_timestamp(cue.time)}.{int(round((cue.time % 1) * 100)) % 100:02d}", cue.text)
    console.print(table)


if __name__ == '__main__':
    cli()
