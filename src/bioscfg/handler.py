"""Per-task handler: resolve the asset, pick a plan, and run it."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from bioscfg.bmc.factory import new_bmc_session
from bioscfg.bmc.simulated import SimulatedServerRegistry
from bioscfg.config import Settings
from bioscfg.errors import AssetLookupError, BiosCfgError, UnsupportedActionError
from bioscfg.http.fetcher import HttpFetcher
from bioscfg.inventory.base import AssetStore
from bioscfg.models import Asset, BiosControlTask, GenericTask, TaskState, utc_now
from bioscfg.publisher import StatusPublisher
from bioscfg.tasks.converter import from_envelope, to_envelope
from bioscfg.tasks.plans import build_plan
from bioscfg.tasks.runner import TaskRunner
from bioscfg.tasks.status import TaskStatus
from bioscfg.tasks.steps import FetcherFactory

logger = logging.getLogger(__name__)

UNSUPPORTED_ACTION_TASK = "BiosControl"
ALREADY_TERMINAL = "task already in terminal state"


@dataclass(slots=True)
class HandleResult:
    """Outcome of handling one envelope."""

    task_id: UUID
    state: TaskState
    details: str
    error: BiosCfgError | None = None
    ack_uncertain: bool = False
    skipped: bool = False
    envelope: GenericTask | None = None

    @property
    def ok(self) -> bool:
        return self.state == TaskState.SUCCEEDED


class TaskHandler:
    """Handle BIOS control envelopes one at a time.

    ``InvalidParametersError`` and ``AssetLookupError`` propagate to the
    caller: the first is never worth redelivering, the second usually is.
    Everything after the asset is known ends in a terminal status update.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        publisher: StatusPublisher,
        store: AssetStore | None = None,
        registry: SimulatedServerRegistry | None = None,
        fetcher_factory: FetcherFactory | None = None,
        cancel_requested: Callable[[], bool] | None = None,
        worker_id: str = "",
    ) -> None:
        self.settings = settings
        self.publisher = publisher
        self.store = store
        self.registry = registry
        self.fetcher_factory = fetcher_factory or functools.partial(
            HttpFetcher,
            timeout_seconds=settings.http.timeout_seconds,
            max_retries=settings.http.max_retries,
        )
        self.cancel_requested = cancel_requested
        self.worker_id = worker_id

    def handle(self, envelope: GenericTask) -> HandleResult:
        task = from_envelope(envelope)
        if task.state.is_terminal:
            logger.warning(
                "Skipping task %s: %s (%s)",
                task.id,
                ALREADY_TERMINAL,
                task.state.value,
            )
            return HandleResult(
                task_id=task.id,
                state=task.state,
                details=ALREADY_TERMINAL,
                skipped=True,
                envelope=to_envelope(task),
            )

        asset = self._resolve_asset(task)
        task.server = asset
        if self.worker_id:
            task.worker_id = self.worker_id

        try:
            plan = build_plan(task.parameters, asset, fetcher_factory=self.fetcher_factory)
        except UnsupportedActionError as error:
            return self._reject(task, asset, error)

        session = new_bmc_session(
            asset,
            dry_run=self.settings.dry_run,
            settings=self.settings.bmc,
            registry=self.registry,
        )
        runner = TaskRunner(
            publisher=self.publisher,
            task=task,
            plan=plan,
            cancel_requested=self.cancel_requested,
        )
        result = runner.run(session)
        if result.ack_uncertain:
            logger.error(
                "Terminal status for task %s was not published; acknowledgement uncertain",
                task.id,
                extra=asset.log_fields(),
            )

        return HandleResult(
            task_id=task.id,
            state=result.state,
            details=result.details,
            error=result.error,
            ack_uncertain=result.ack_uncertain,
            envelope=to_envelope(task),
        )

    def _resolve_asset(self, task: BiosControlTask) -> Asset:
        asset_id = task.parameters.asset_id
        if self.store is not None:
            return self.store.asset_by_id(asset_id)
        if task.server is not None and task.server.id == asset_id:
            return task.server
        raise AssetLookupError(f"asset {asset_id} unknown: no inventory configured")

    def _reject(
        self,
        task: BiosControlTask,
        asset: Asset,
        error: UnsupportedActionError,
    ) -> HandleResult:
        details = str(error)
        logger.error("Rejecting task %s: %s", task.id, details, extra=asset.log_fields())

        now = utc_now()
        task.state = TaskState.FAILED
        task.updated_at = now
        task.completed_at = now
        task.append_status(details)
        status = TaskStatus(
            task=UNSUPPORTED_ACTION_TASK,
            task_id=str(task.id),
            status=TaskState.FAILED,
            details=details,
            error=details,
        )

        ack_uncertain = False
        try:
            self.publisher.publish(str(asset.id), TaskState.FAILED, status.marshal())
        except Exception as publish_error:  # noqa: BLE001
            ack_uncertain = True
            logger.error(
                "Failed to publish rejection for task %s: %s",
                task.id,
                publish_error,
                extra=asset.log_fields(),
            )

        return HandleResult(
            task_id=task.id,
            state=TaskState.FAILED,
            details=details,
            error=error,
            ack_uncertain=ack_uncertain,
            envelope=to_envelope(task),
        )
