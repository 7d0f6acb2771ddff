import click
import requests
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text
from pathlib import Path
import time
import sys

# Try to import engine, handle missing libmpv
try:
    from .engine import PlaybackEngine
    MPV_AVAILABLE = True
except OSError:
    MPV_AVAILABLE = False

from shared.config import ConfigError, load_config
from shared.models import Catalog, CatalogFormatError
from catalog.builder import build_catalog
from catalog.cli import print_catalog, setup_logging
from .controller import PlayerController
from .lyrics import LyricsLoader, format_timestamp
from .playback_state import JsonSelectionStore

console = Console()


def load_catalog(source, config) -> Catalog:
    """
    Catalog from a music-data.json URL or file, or built live from the
    configured repository when no source is given.
    """
    if not source:
        config.require_repo()
        return build_catalog(config)

    if source.startswith(("http://", "https://")):
        response = requests.get(source, timeout=config.request_timeout)
        response.raise_for_status()
        return Catalog.from_json(response.text)
    return Catalog.from_json(Path(source).read_text(encoding="utf-8"))


def _load_or_exit(source) -> Catalog:
    config = load_config()
    setup_logging(config.log_level)
    try:
        catalog = load_catalog(source, config)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        console.print("Set GITHUB_REPO or pass --source pointing at a music-data.json.")
        sys.exit(1)
    except CatalogFormatError as e:
        console.print(f"[red]Invalid catalog: {e}[/red]")
        sys.exit(1)
    except (requests.RequestException, OSError) as e:
        console.print(f"[red]Could not load catalog: {e}[/red]")
        sys.exit(1)

    if not catalog.success:
        console.print(f"[red]Failed to load music data: {catalog.error}[/red]")
        sys.exit(1)
    return catalog


@click.group()
def cli():
    """🎵 GitHub Music Player"""
    pass


@cli.command(name='list')
@click.option('--source', help='music-data.json URL or file (default: list GITHUB_REPO live)')
def list_tracks(source):
    """List albums and tracks."""
    print_catalog(_load_or_exit(source))


def render_now_playing(controller, engine) -> Panel:
    state = controller.state
    track = controller.current_track()
    album = controller.current_album()

    header = Text()
    if track:
        header.append(f"{'▶' if state.is_playing else '⏸'} {track.display_name}\n", style="bold green")
        header.append(album.name, style="yellow")
    else:
        header.append("Nothing playing", style="dim")

    curr = engine.position
    total = engine.duration or 0
    percent = min(100, (curr / total) * 100) if total else 0
    status = Text()
    status.append(f"{format_timestamp(curr)} ", style="cyan")
    status.append("━" * int(percent / 2), style="blue")
    status.append(" " * (50 - int(percent / 2)), style="gray")
    status.append(f" {format_timestamp(total)}", style="cyan")

    modes = Text()
    modes.append("shuffle ", style="bold magenta" if state.is_shuffle else "dim")
    modes.append("repeat ", style="bold magenta" if state.is_repeat else "dim")
    modes.append(f"vol {int(state.effective_volume * 100)}%", style="dim")

    lyric = Text()
    cue = controller.current_lyric()
    if cue:
        lyric.append(cue.text, style="bold white")
    else:
        lyric.append("No lyrics", style="dim")

    parts = [header, status, modes, lyric]
    if state.error:
        parts.append(Text(state.error, style="red"))
    return Panel(Group(*parts), title="Now Playing")


@cli.command()
@click.option('--source', help='music-data.json URL or file (default: list GITHUB_REPO live)')
@click.option('--shuffle', is_flag=True, help='Start in shuffle mode')
@click.option('--repeat', is_flag=True, help='Repeat the current track')
@click.option('--album', type=int, help='Start with the first track of this album index')
@click.option('--track', 'track_id', help='Start with the track with this id (see `list`)')
@click.option('--random', 'start_random', is_flag=True, help='Start with a random track')
def play(source, shuffle, repeat, album, track_id, start_random):
    """Play the catalog in the terminal."""
    if not MPV_AVAILABLE:
        console.print(Panel.fit(
            "[red bold]Missing System Dependency: libmpv[/red bold]\n\n"
            "The music player requires the [cyan]libmpv[/cyan] library to work.\n\n"
            "Please install it:\n"
            "• Ubuntu/Debian: [green]sudo apt install libmpv1[/green]\n"
            "• Fedora: [green]sudo dnf install mpv-libs[/green]\n"
            "• Arch: [green]sudo pacman -S mpv[/green]",
            border_style="red"
        ))
        return

    catalog = _load_or_exit(source)
    if catalog.total_songs == 0:
        console.print("[yellow]No music found.[/yellow]")
        return

    # Initialize Engine
    try:
        engine = PlaybackEngine()
    except Exception as e:
        console.print(f"[red]Error initializing player: {e}[/red]")
        return

    controller = PlayerController(catalog, engine, store=JsonSelectionStore(), lyrics_loader=LyricsLoader())
    engine.add_track_end_callback(controller.on_track_ended)
    engine.set_time_update_callback(controller.on_time_update)
    engine.set_metadata_callback(controller.on_metadata_loaded)
    engine.set_error_callback(controller.on_playback_error)

    if shuffle:
        controller.toggle_shuffle()
    if repeat:
        controller.toggle_repeat()

    if track_id:
        if not controller.play_track_id(track_id):
            console.print(f"[red]No track with id {track_id}.[/red]")
            engine.terminate()
            return
    elif start_random:
        controller.play_random()
    elif album is not None:
        if not controller.load(album, 0, autoplay=True):
            console.print(f"[red]Album {album} does not exist or is empty.[/red]")
            engine.terminate()
            return
    elif not controller.restore(autoplay=True):
        controller.play()

    try:
        with Live(render_now_playing(controller, engine), refresh_per_second=4, console=console) as live:
            while True:
                live.update(render_now_playing(controller, engine))
                time.sleep(0.25)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")
    finally:
        engine.terminate()


if __name__ == '__main__':
    cli()
