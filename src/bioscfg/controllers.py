"""Controllers for bioscfg CLI commands."""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TextIO

from bioscfg.config import Settings
from bioscfg.contracts import read_envelope
from bioscfg.errors import InvalidParametersError
from bioscfg.handler import TaskHandler
from bioscfg.inventory import AssetStore, FleetDbStore, new_asset_store
from bioscfg.logs import configure_logging
from bioscfg.models import GenericTask
from bioscfg.publisher import JsonLinesPublisher
from bioscfg.worker import BiosCfgWorker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunCommand:
    """CLI input for one worker run over task files."""

    task_files: tuple[Path, ...]
    inventory_file: Path | None = None
    dry_run: bool | None = None
    concurrency: int | None = None
    log_level: str | None = None


class BiosCfgCliController:
    """Translate CLI commands into worker runs and report lines."""

    def __init__(self, *, status_stream: TextIO | None = None) -> None:
        self._status_stream = status_stream

    def run(self, command: RunCommand) -> list[str]:
        settings = _settings_for(command)
        configure_logging(settings.log_level)
        settings.validate()

        lines: list[str] = []
        envelopes: list[GenericTask] = []
        for path in command.task_files:
            try:
                envelopes.append(read_envelope(path))
            except (OSError, InvalidParametersError) as error:
                logger.error("Cannot load task file %s: %s", path, error)
                lines.append(f"Skipped task file {path}: {error}")

        stop_event = threading.Event()
        publisher = JsonLinesPublisher(self._status_stream or sys.stdout)
        with _asset_store(settings) as store:
            handler = TaskHandler(
                settings=settings,
                publisher=publisher,
                store=store,
                cancel_requested=stop_event.is_set,
                worker_id=f"bioscfg-{settings.facility_code or 'local'}",
            )
            worker = BiosCfgWorker(
                handler=handler,
                concurrency=settings.concurrency,
                stop_event=stop_event,
            )
            summary = worker.run(envelopes)

        invalid = summary.invalid + len(command.task_files) - len(envelopes)
        lines.append(
            "Worker summary: "
            f"processed={summary.processed} succeeded={summary.succeeded} "
            f"failed={summary.failed} retry_requested={summary.retry_requested} "
            f"invalid={invalid} skipped={summary.skipped} "
            f"ack_uncertain={summary.ack_uncertain}",
        )
        return lines


def _settings_for(command: RunCommand) -> Settings:
    settings = Settings.from_env()
    if command.dry_run is not None:
        settings.dry_run = command.dry_run
    if command.concurrency is not None:
        settings.concurrency = command.concurrency
    if command.log_level:
        settings.log_level = command.log_level.strip().lower()
    if command.inventory_file is not None:
        settings.inventory = replace(settings.inventory, inventory_file=command.inventory_file)
    return settings


@contextmanager
def _asset_store(settings: Settings) -> Iterator[AssetStore | None]:
    store = new_asset_store(settings.inventory)
    try:
        yield store
    finally:
        if isinstance(store, FleetDbStore):
            store.close()
