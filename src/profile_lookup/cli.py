"""CLI for profile lookup.

Commands:
- lookup: Fetch one or more profiles through the rotating token pool
- verify: Mark a username as verified (or clear it with --unverify)
- status: Show the locally recorded verification status of a username
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Protocol

import typer
from rich import print as rprint
from rich.markup import escape

from . import __version__
from .application.lookup import ProfileLookupService, validate_username
from .config import LookupConfig, PositiveIntegerEnvVarError, PositiveNumberEnvVarError
from .config_file import load_lookup_config_file
from .exceptions import (
    AllCredentialsThrottled,
    ProfileLookupError,
    RateLimitExceeded,
    UpstreamRejected,
)
from .infrastructure.filesystem import LocalFileSystem
from .protocols import FlagStore
from .types import ProfileLookup

ServiceOpener = Callable[[], AbstractAsyncContextManager[ProfileLookupService]]


class DependenciesBuilder(Protocol):
    """Protocol for constructing CLI dependencies."""

    def __call__(self, *, config: LookupConfig) -> CliDependencies:
        """Build dependencies for CLI commands."""
        ...


@dataclass(frozen=True)
class CliDependencies:
    """Concrete dependencies required by the CLI."""

    flags: FlagStore
    open_service: ServiceOpener


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: LookupConfig
    deps_builder: DependenciesBuilder

    def build_dependencies(self) -> CliDependencies:
        """Return dependencies using the configured builder."""
        try:
            return self.deps_builder(config=self.config)
        except ProfileLookupError as exc:
            _report_error(exc)
            raise typer.Exit(code=1) from exc


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the profile-lookup entry point.")


class ConfigLoadError(typer.BadParameter):
    """Raised when environment or file configuration is invalid."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid configuration: {detail}")


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _version_callback(value: bool) -> None:
    if value:
        rprint(f"profile-lookup {__version__}")
        raise typer.Exit()


def _format_timestamp(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=UTC).isoformat()


def _report_error(exc: Exception, username: str | None = None) -> None:
    prefix = f"{escape(username)}: " if username else ""
    if isinstance(exc, RateLimitExceeded):
        rprint(
            f"[red]✗ {prefix}Rate limit exceeded.[/red] "
            f"Try again in {exc.retry_after_seconds} seconds "
            f"(resets at {_format_timestamp(exc.reset_timestamp)})."
        )
    elif isinstance(exc, AllCredentialsThrottled):
        rprint(
            f"[red]✗ {prefix}All API tokens are rate limited.[/red] "
            f"Next reset in {exc.retry_after_seconds} seconds."
        )
    elif isinstance(exc, UpstreamRejected):
        rprint(
            f"[red]✗ {prefix}API request failed ({exc.status_code}):[/red] "
            f"{escape(exc.message)}"
        )
    else:
        rprint(f"[red]✗ {prefix}{escape(str(exc))}[/red]")


def _print_profile(profile: ProfileLookup) -> None:
    data = profile.payload.get("data")
    source = "cache" if profile.cached else "api"
    if not isinstance(data, dict):
        rprint(f"[yellow]No profile data for {profile.username}[/yellow] (source: {source})")
        errors = profile.payload.get("errors")
        if isinstance(errors, list):
            for item in errors:
                if isinstance(item, dict):
                    rprint(f"  {escape(str(item.get('detail') or item.get('title') or item))}")
        return

    badge = "[green]✓ verified[/green]" if profile.verified else "[dim]not verified[/dim]"
    name = escape(str(data.get("name", profile.username)))
    handle = escape(str(data.get("username", profile.username)))
    rprint(f"[bold]{name}[/bold] @{handle} {badge}")
    rprint(f"  ID: {data.get('id', '')}")
    if data.get("description"):
        rprint(f"  Bio: {escape(str(data['description']))}")
    metrics = data.get("public_metrics")
    if isinstance(metrics, dict):
        rprint(
            f"  Followers: {metrics.get('followers_count', 0):,}  "
            f"Following: {metrics.get('following_count', 0):,}"
        )
    if data.get("created_at"):
        rprint(f"  Joined: {data['created_at']}")
    rprint(f"  Source: {source} ({_format_timestamp(profile.fetched_at)})")


def create_app(deps_builder: DependenciesBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided dependencies builder."""
    app = typer.Typer(
        add_completion=False,
        help="Profile lookup through a rotating pool of API bearer tokens.",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        config_path: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="TOML config file overriding environment settings",
            ),
        ] = None,
        version: Annotated[
            bool,
            typer.Option(
                "--version",
                callback=_version_callback,
                is_eager=True,
                help="Show the package version and exit",
            ),
        ] = False,
    ) -> None:
        """Initialise CLI context."""
        _ = version
        try:
            config = LookupConfig.from_env()
            if config_path is not None:
                file_config = load_lookup_config_file(path=config_path, fs=LocalFileSystem())
                config = config.with_file_overrides(file_config)
        except (
            ProfileLookupError,
            PositiveIntegerEnvVarError,
            PositiveNumberEnvVarError,
        ) as exc:
            raise ConfigLoadError(str(exc)) from exc
        ctx.obj = CliContext(config=config, deps_builder=deps_builder)

    @app.command()
    def lookup(
        ctx: typer.Context,
        usernames: Annotated[
            list[str],
            typer.Argument(help="One or more usernames to look up concurrently"),
        ],
        as_json: Annotated[
            bool,
            typer.Option(
                "--json",
                help="Print the enriched payloads as JSON",
            ),
        ] = False,
    ) -> None:
        """Look up profiles, enriched with the local verification status."""
        state = _get_context(ctx)
        deps = state.build_dependencies()

        async def run_lookups() -> list[ProfileLookup | BaseException]:
            async with deps.open_service() as service:
                return await asyncio.gather(
                    *(service.lookup_profile(name) for name in usernames),
                    return_exceptions=True,
                )

        try:
            results = asyncio.run(run_lookups())
        except ProfileLookupError as exc:
            _report_error(exc)
            raise typer.Exit(code=1) from exc

        failed = False
        for name, result in zip(usernames, results, strict=True):
            if isinstance(result, ProfileLookupError):
                failed = True
                _report_error(result, name)
            elif isinstance(result, BaseException):
                raise result
            elif as_json:
                typer.echo(json.dumps(result.payload, indent=2, ensure_ascii=False))
            else:
                _print_profile(result)
        if failed:
            raise typer.Exit(code=1)

    @app.command()
    def verify(
        ctx: typer.Context,
        username: Annotated[str, typer.Argument(help="Username to update")],
        unverify: Annotated[
            bool,
            typer.Option(
                "--unverify",
                help="Clear the verification flag instead of setting it",
            ),
        ] = False,
    ) -> None:
        """Record the verification status of a username."""
        state = _get_context(ctx)
        deps = state.build_dependencies()
        try:
            name = validate_username(username)
            deps.flags.set_flag(name, not unverify)
        except ProfileLookupError as exc:
            _report_error(exc)
            raise typer.Exit(code=1) from exc
        if unverify:
            rprint(f"[yellow]✓ {name} marked as not verified[/yellow]")
        else:
            rprint(f"[green]✓ {name} marked as verified[/green]")

    @app.command()
    def status(
        ctx: typer.Context,
        username: Annotated[str, typer.Argument(help="Username to check")],
    ) -> None:
        """Show the locally recorded verification status of a username."""
        state = _get_context(ctx)
        deps = state.build_dependencies()
        try:
            name = validate_username(username)
        except ProfileLookupError as exc:
            _report_error(exc)
            raise typer.Exit(code=1) from exc
        verified = deps.flags.is_flagged(name)
        rprint(f"{name}: {'verified' if verified else 'not verified'}")

    _ = (main, lookup, verify, status)

    return app
