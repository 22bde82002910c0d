"""Typer CLI for qualisync: collect, projects, push and cron commands."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from result import Err

from qualisync.config import Config, ConfigError
from qualisync.models.collectors import CollectorKind

app = typer.Typer(
    name="qualisync",
    help="Sync analysis-server project inventories and quality snapshots into a local store.",
    no_args_is_help=True,
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to a TOML config file with a [sonar] table"),
]
KindOption = Annotated[
    str,
    typer.Option("--kind", "-k", help="Collector kind: quality, security or all"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """qualisync command line."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load_config(path: Path | None) -> Config:
    if path is None:
        return Config()
    try:
        return Config.from_toml(path)
    except ConfigError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2) from exc


def _kinds(option: str) -> list[CollectorKind]:
    if option.strip().lower() == "all":
        return list(CollectorKind)
    try:
        return [CollectorKind.from_option(option)]
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--kind") from exc


@app.command()
def collect(config_path: ConfigOption = None, kind: KindOption = "all") -> None:
    """Run one collection cycle per selected collector kind."""
    config = _load_config(config_path)
    failed = asyncio.run(_do_collect(config, _kinds(kind)))
    if failed:
        raise typer.Exit(code=1)


async def _do_collect(config: Config, kinds: list[CollectorKind]) -> int:
    """Run the collection cycles and return the number of failed kinds."""
    from qualisync.services.container import ServiceContainer

    container = await ServiceContainer.create(config)
    failed = 0
    try:
        for kind in kinds:
            typer.echo(f"Collecting {kind.collector_name} from {len(config.servers)} server(s)...")

            def progress(current: int, total: int, message: str) -> None:
                typer.echo(f"  [{current}/{total}] {message}")

            result = await container.tasks[kind].run_once(progress_callback=progress)
            if isinstance(result, Err):
                typer.echo(result.err_value, err=True)
                failed += 1
            else:
                typer.echo(f"Done! {result.ok_value}")
    finally:
        await container.close()
    return failed


@app.command()
def projects(
    config_path: ConfigOption = None,
    enabled: Annotated[bool, typer.Option("--enabled", help="Only enabled projects")] = False,
) -> None:
    """List persisted projects."""
    config = _load_config(config_path)
    asyncio.run(_do_list_projects(config, enabled))


async def _do_list_projects(config: Config, enabled_only: bool) -> None:
    from qualisync.services.container import ServiceContainer

    container = await ServiceContainer.create(config)
    try:
        result = await container.project_service.list_projects(enabled_only=enabled_only)
    finally:
        await container.close()
    for summary in result.unwrap():
        flags = "enabled" if summary.enabled else "disabled"
        if summary.pushed:
            flags += " pushed"
        typer.echo(f"{summary.id}  {summary.instance_url}  {summary.project_key}  [{flags}]")


@app.command()
def push(
    instance_url: Annotated[str, typer.Argument(help="Server URL the project lives on")],
    project_key: Annotated[str, typer.Argument(help="Remote project key")],
    config_path: ConfigOption = None,
    kind: KindOption = "quality",
    name: Annotated[str, typer.Option("--name", help="Project display name")] = "",
) -> None:
    """Register a pushed project that collection never deletes."""
    kinds = _kinds(kind)
    if len(kinds) != 1:
        raise typer.BadParameter("push needs a single kind", param_hint="--kind")
    config = _load_config(config_path)
    asyncio.run(_do_push(config, kinds[0], instance_url, project_key, name))


async def _do_push(
    config: Config, kind: CollectorKind, instance_url: str, project_key: str, name: str
) -> None:
    from qualisync.services.container import ServiceContainer

    container = await ServiceContainer.create(config)
    try:
        collector = await container.tasks[kind].get_collector()
        result = await container.project_service.push_project(
            collector.id, instance_url, project_key, name
        )
    finally:
        await container.close()
    if isinstance(result, Err):
        typer.echo(result.err_value, err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Pushed {result.ok_value.project_key} as {result.ok_value.id}")


@app.command()
def cron(config_path: ConfigOption = None) -> None:
    """Print the configured cron expression."""
    typer.echo(_load_config(config_path).cron)
