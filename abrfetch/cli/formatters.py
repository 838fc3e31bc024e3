"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from abrfetch.models.config import FetchConfig
from abrfetch.models.manifest import Manifest
from abrfetch.models.stats import SessionStats
from abrfetch.utils.formatting import format_bitrate, format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "SessionStartError": [
            "• Check that the stream name matches a directory on the media server.",
            "• Verify `base_url` with `abrfetch --show-config`.",
            "• Run `abrfetch probe <stream>` to inspect the manifest.",
        ],
        "ManifestParseError": [
            "• The manifest.txt served for this stream is malformed.",
            "• Every track must list the same number of segments.",
        ],
        "SegmentFetchError": [
            "• The media server stopped answering mid-stream.",
            "• Raise `max_attempts` or `fetch_timeout` in the config file.",
        ],
        "CircuitOpenError": [
            "• Too many consecutive requests failed, requests are paused.",
            "• Check that the media server is running.",
        ],
        "TransportError": [
            "• A network connection issue occurred.",
            "• The media server might be unavailable. Please try again.",
        ],
        "ConfigurationError": [
            "• Fix the reported value in the config file.",
            "• Run `abrfetch init --force` to write a fresh configuration.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the raw contents of the configuration file."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: FetchConfig):
    """Displays a summary of the effective settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Media Server:", f"[green]{config.base_url}[/green]")
    table.add_row("Throughput Window:", f"{config.window_size} segments")
    table.add_row("Queue Capacity:", f"{config.queue_capacity} items")
    table.add_row(
        "Retries:",
        f"{config.max_attempts} attempts, backoff from {config.base_delay:g}s",
    )
    table.add_row(
        "Timeouts:",
        f"{config.fetch_timeout:g}s per request, {config.connect_timeout:g}s connect",
    )

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_manifest_table(manifest: Manifest):
    """Lists the tracks of a manifest in manifest order."""
    console = Console()
    table = Table(
        title=f"[bold]{manifest.name}[/bold] ({manifest.num_segments} segments)",
        box=box.ROUNDED,
    )
    table.add_column("#", style="dim", justify="right")
    table.add_column("Track", style="cyan")
    table.add_column("Content Type")
    table.add_column("Bandwidth", justify="right", style="magenta")
    table.add_column("Size", justify="right", style="green")

    for i, track in enumerate(manifest.tracks, 1):
        size = sum(segment.length for segment in track.segments)
        table.add_row(
            str(i),
            track.filename,
            track.content_type,
            format_bitrate(track.avg_bandwidth_kbps),
            format_size(size),
        )
    console.print(table)


def print_summary_panel(stats: SessionStats, output_path: Path | None = None):
    """Displays the final summary of a playback session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    complete = stats.segments_fetched == stats.total_segments
    color = "green" if complete else "red"
    stats_table.add_row(
        "✓ Segments:",
        f"[bold {color}]{stats.segments_fetched}/{stats.total_segments}[/bold {color}]",
    )
    if stats.track_switches > 0:
        stats_table.add_row(
            "⇄ Track Switches:",
            f"[yellow]{stats.track_switches}[/yellow] "
            f"({stats.prebuffer_fetches} prebuffer fetches)",
        )
    if stats.samples_skipped > 0:
        stats_table.add_row(
            "○ Unmeasured:", f"[yellow]{stats.samples_skipped} transfers[/yellow]"
        )

    stats_table.add_row("", "")  # Spacer

    stats_table.add_row("Total Size:", f"[cyan]{format_size(stats.bytes_fetched)}[/cyan]")
    stats_table.add_row(
        "Last Estimate:", f"[magenta]{format_bitrate(stats.last_estimate_kbps)}[/magenta]"
    )
    stats_table.add_row(
        "Peak Estimate:", f"[magenta]{format_bitrate(stats.peak_estimate_kbps)}[/magenta]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(stats.duration)}[/blue]")
    if output_path is not None:
        stats_table.add_row("Written To:", f"[dim]{output_path}[/dim]")

    if stats.segments_per_track:
        stats_table.add_row("", "")  # Spacer
        for track, count in stats.segments_per_track.items():
            stats_table.add_row(f"{track}:", f"{count} segments")

    if complete:
        title = f"🎬 [bold]{stats.stream_name} complete![/bold]"
        border_color = "green"
    else:
        title = f"⚠ [bold]{stats.stream_name} incomplete[/bold]"
        border_color = "yellow"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
