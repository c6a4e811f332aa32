"""CLI entrypoint for bioscfg."""

from pathlib import Path

import rich_click as click

from bioscfg import __version__
from bioscfg.controllers import BiosCfgCliController, RunCommand
from bioscfg.errors import BiosCfgError

click.rich_click.USE_MARKDOWN = True


@click.group()
@click.version_option(version=__version__, prog_name="bioscfg")
def bioscfg() -> None:
    """BIOS configuration worker."""


@bioscfg.command("run")
@click.option(
    "--task-file",
    "task_files",
    type=click.Path(path_type=Path, dir_okay=False),
    multiple=True,
    required=True,
    help="Task envelope JSON file. Can be repeated.",
)
@click.option(
    "--inventory-file",
    type=click.Path(path_type=Path, dir_okay=False, exists=True),
    default=None,
    help="Static asset inventory JSON file; overrides FleetDB.",
)
@click.option(
    "--dry-run/--no-dry-run",
    default=None,
    help="Run against simulated BMCs instead of real hardware.",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum number of tasks run in parallel.",
)
@click.option(
    "--log-level",
    type=click.Choice(["trace", "debug", "info", "warn", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log verbosity.",
)
def run(
    task_files: tuple[Path, ...],
    inventory_file: Path | None,
    dry_run: bool | None,
    concurrency: int | None,
    log_level: str | None,
) -> None:
    """Run BIOS control tasks and stream their status updates as JSON lines."""

    controller = BiosCfgCliController()
    try:
        lines = controller.run(
            RunCommand(
                task_files=task_files,
                inventory_file=inventory_file,
                dry_run=dry_run,
                concurrency=concurrency,
                log_level=log_level,
            ),
        )
    except BiosCfgError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    bioscfg()
