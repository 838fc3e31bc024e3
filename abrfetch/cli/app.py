"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import aiofiles
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from abrfetch import __version__
from abrfetch.core.output import create_output_queue, iter_segments
from abrfetch.core.session import StreamSession, start_session
from abrfetch.exceptions import AbrFetchError
from abrfetch.manifest.parser import parse_manifest
from abrfetch.models.config import FetchConfig
from abrfetch.storage.config_manager import ConfigManager
from abrfetch.transport.client import SegmentTransport

from .formatters import (
    print_config,
    print_manifest_table,
    print_summary_panel,
    print_validation_table,
)

console = Console(stderr=True)

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("abrfetch")

app = typer.Typer(
    name="abrfetch",
    help=(
        "Adaptive-bitrate segment fetcher for DASH-style streams. Use 'abrfetch"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "abrfetch"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict) -> FetchConfig:
    """Loads the config file and applies the options that were actually given."""
    overrides = {key: value for key, value in cli_options.items() if value is not None}
    return ConfigManager(CONFIG_FILE).load_config(overrides)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration file."
    ),
):
    """ABR Segment Fetcher CLI"""
    if version:
        console.print(f"[bold]abrfetch[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("abrfetch").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]abrfetch init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        print_config(CONFIG_FILE, config_manager.get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    base_url: str | None = typer.Option(
        None, "--base-url", "-u", help="Root URL of the media server."
    ),
    window: int | None = typer.Option(
        None, "--window", help="Number of recent segments the throughput estimate averages."
    ),
    capacity: int | None = typer.Option(
        None, "--capacity", help="Number of segments buffered ahead of the player."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Write a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        key: value
        for key, value in {
            "base_url": base_url,
            "window_size": window,
            "queue_capacity": capacity,
        }.items()
        if value is not None
    }
    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to stream! Try: [cyan]abrfetch play <STREAM>[/cyan]")


@app.command()
def probe(
    stream: str = typer.Argument(..., help="Name of the stream on the media server."),
    base_url: str | None = typer.Option(
        None, "--base-url", "-u", help="Root URL of the media server."
    ),
):
    """Fetch a stream's manifest and list its tracks."""
    config = _load_config({"base_url": base_url})

    async def _probe_async():
        async with SegmentTransport.from_config(config) as transport:
            data = await transport.fetch_manifest(config.base_url, stream)
        return parse_manifest(data, stream)

    print_manifest_table(asyncio.run(_probe_async()))


async def _consume(
    session: StreamSession,
    queue: asyncio.Queue,
    output: Path | None,
    progress: Progress,
) -> None:
    """Plays the consumer role: drains the queue in order, optionally to a file."""
    task_id = progress.add_task(
        session.manifest.name, total=session.manifest.num_segments
    )
    out = await aiofiles.open(output, "wb") if output else None
    try:
        async for item in iter_segments(queue):
            if out is not None:
                await out.write(item.data)
            if not item.prebuffer:
                progress.update(
                    task_id,
                    advance=1,
                    description=f"{session.manifest.name} [dim]{item.track}[/dim]",
                )
    finally:
        if out is not None:
            await out.close()


@app.command()
def play(
    stream: str = typer.Argument(..., help="Name of the stream on the media server."),
    output: Path | None = typer.Option(
        None,
        "-o",
        "--output",
        help="Write the received segments, in playback order, to this file.",
    ),
    base_url: str | None = typer.Option(
        None, "--base-url", "-u", help="Root URL of the media server."
    ),
    window: int | None = typer.Option(
        None, "--window", help="Number of recent segments the throughput estimate averages."
    ),
    capacity: int | None = typer.Option(
        None, "--capacity", help="Number of segments buffered ahead of the consumer."
    ),
):
    """Stream a media stream, adapting the track to the measured throughput."""
    config = _load_config(
        {"base_url": base_url, "window_size": window, "queue_capacity": capacity}
    )

    async def _play_async():
        queue = create_output_queue(config.queue_capacity)
        async with SegmentTransport.from_config(config) as transport:
            session = await start_session(stream, queue, transport, config)
            try:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(bar_width=30),
                    "[progress.percentage]{task.percentage:>3.0f}%",
                    "•",
                    TimeElapsedColumn(),
                    console=console,
                ) as progress:
                    await _consume(session, queue, output, progress)
            except AbrFetchError:
                # The loop's own error carries more detail than the marker
                await session.wait()
                raise
            finally:
                await session.cancel()
            return await session.wait()

    stats = asyncio.run(_play_async())
    print_summary_panel(stats, output)


@app.command()
def validate(
    base_url: str | None = typer.Option(
        None, "--base-url", "-u", help="Root URL of the media server."
    ),
):
    """Validate the current configuration."""
    try:
        config = _load_config({"base_url": base_url})
    except AbrFetchError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_validation_table(config)
