"""
Main entry point for the abrfetch application.
This module handles top-level setup, exception handling, and CLI invocation.
"""

import asyncio
import logging
import sys

import typer
from rich.console import Console

from abrfetch.cli.app import app
from abrfetch.cli.formatters import format_error_with_suggestions
from abrfetch.exceptions import AbrFetchError


def main() -> None:
    """Main entry point function."""
    log = logging.getLogger("abrfetch")
    console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Playback cancelled by user.[/yellow]")
        sys.exit(0)
    except AbrFetchError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
