"""
CLI for the avatar cache.

Commands:
    avc avatar USER_ID - Print (or save) a user's avatar
    avc delete-avatar USER_ID - Delete a user's cached avatar
    avc create-user USER_ID - Create a user record
    avc user USER_ID - Show the local user record
    avc profile USER_ID - Show the remote profile
    avc config - Show current configuration
    avc version - Print version
"""

from __future__ import annotations

import asyncio
import base64
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, Optional, TypeVar

import typer
from pydantic import ValidationError as SettingsValidationError
from rich.console import Console
from rich.table import Table

from avc import __version__
from avc.config import Settings, clear_settings_cache, get_settings
from avc.exceptions import (
    AvatarCacheError,
    ConflictError,
    InconsistentStateError,
    NotFoundError,
    RemoteNotFoundError,
    RemoteUnavailableError,
)
from avc.logging import setup_logging
from avc.service import AvatarCacheService, open_service

T = TypeVar("T")

app = typer.Typer(
    name="avc",
    help="Avatar cache - fetch, cache and serve user avatars",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

EXIT_NOT_FOUND = 1
EXIT_SOURCE_UNAVAILABLE = 2
EXIT_REMOTE_UNAVAILABLE = 3
EXIT_INCONSISTENT = 4
EXIT_CONFIG = 5


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except SettingsValidationError:
        return None


def _load_settings() -> Settings:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'avc config' to see what's wrong."
        )
        raise typer.Exit(EXIT_CONFIG)
    setup_logging(settings.LOG_LEVEL, log_file=settings.LOG_FILE)
    return settings


def _run(action: Callable[[AvatarCacheService], Awaitable[T]]) -> T:
    """Run an action against a freshly opened service, mapping errors to exit codes."""
    settings = _load_settings()

    async def runner() -> T:
        async with open_service(settings) as service:
            return await action(service)

    try:
        return asyncio.run(runner())
    except RemoteNotFoundError as e:
        error_console.print(f"[red]Avatar source unavailable:[/red] {e.message}")
        raise typer.Exit(EXIT_SOURCE_UNAVAILABLE)
    except RemoteUnavailableError as e:
        error_console.print(f"[red]Profile provider error:[/red] {e}")
        raise typer.Exit(EXIT_REMOTE_UNAVAILABLE)
    except InconsistentStateError as e:
        error_console.print(f"[red]Inconsistent state:[/red] {e}")
        raise typer.Exit(EXIT_INCONSISTENT)
    except (NotFoundError, ConflictError) as e:
        error_console.print(f"[yellow]{e.message}[/yellow]")
        raise typer.Exit(EXIT_NOT_FOUND)
    except AvatarCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _print_mapping(title: str, values: dict[str, Any]) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    for key, value in values.items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)


@app.command()
def avatar(
    user_id: Annotated[str, typer.Argument(help="User identifier")],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the decoded image to this file"),
    ] = None,
) -> None:
    """Print a user's avatar as base64, fetching and caching it on a miss."""
    encoded = _run(lambda service: service.get_avatar_base64(user_id))

    if output is None:
        console.print(encoded, soft_wrap=True, highlight=False)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(base64.b64decode(encoded))
    console.print(f"[green]Avatar written to[/green] {output}")


@app.command("delete-avatar")
def delete_avatar(
    user_id: Annotated[str, typer.Argument(help="User identifier")],
) -> None:
    """Delete a user's cached avatar."""
    _run(lambda service: service.delete_avatar(user_id))
    console.print("[green]Avatar deleted successfully[/green]")


@app.command("create-user")
def create_user(
    user_id: Annotated[str, typer.Argument(help="User identifier")],
    email: Annotated[Optional[str], typer.Option("--email", help="Email address")] = None,
    first_name: Annotated[Optional[str], typer.Option("--first-name")] = None,
    last_name: Annotated[Optional[str], typer.Option("--last-name")] = None,
) -> None:
    """Create a user record without an avatar."""
    record = _run(
        lambda service: service.create_user(
            user_id, email=email, first_name=first_name, last_name=last_name
        )
    )
    _print_mapping("User", record.to_dict())


@app.command()
def user(
    user_id: Annotated[str, typer.Argument(help="User identifier")],
) -> None:
    """Show the local record for a user."""
    record = _run(lambda service: service.get_user(user_id))
    if record is None:
        error_console.print(f"[yellow]No local record for user {user_id}[/yellow]")
        raise typer.Exit(EXIT_NOT_FOUND)
    _print_mapping("User", record.to_dict())


@app.command()
def profile(
    user_id: Annotated[str, typer.Argument(help="User identifier")],
) -> None:
    """Show a user's profile as reported by the remote provider."""
    remote = _run(lambda service: service.get_remote_profile(user_id))
    _print_mapping(
        "Remote Profile",
        {
            "user_id": remote.user_id,
            "email": remote.email,
            "first_name": remote.first_name,
            "last_name": remote.last_name,
            "avatar_url": remote.avatar_url,
        },
    )


@app.command()
def config() -> None:
    """Show current configuration with API keys redacted."""
    console.print()
    console.print("[bold]Avatar Cache Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Check these environment variables:")
        error_console.print("  - PROFILE_API_BASE_URL (http:// or https://)")
        error_console.print("  - HTTP_TIMEOUT_SECONDS (0 < t <= 120)")
        error_console.print("  - AVATAR_EXTENSION (alphanumeric)")
        raise typer.Exit(EXIT_CONFIG)

    _print_mapping("Settings", settings.redacted_display())
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"avatar-cache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
