"""Step-based task runner with fault containment and status publication."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from bioscfg.bmc.base import BmcSession
from bioscfg.errors import (
    BiosCfgError,
    SessionCloseError,
    SessionOpenError,
    StepExecutionError,
    TaskCancelledError,
    TaskFatalError,
)
from bioscfg.models import BiosControlTask, TaskState, utc_now
from bioscfg.publisher import StatusPublisher
from bioscfg.tasks.plans import TaskPlan
from bioscfg.tasks.status import StepStatus, TaskStatus
from bioscfg.tasks.steps import StepContext

logger = logging.getLogger(__name__)

OPENING_SESSION = "opening session"
OPEN_SESSION_FAILED = "failed to open session"
RUNNING_STEP = "running step"
TASK_COMPLETED = "task completed successfully"
TASK_PANICKED = "panic occurred while running task"


@dataclass(slots=True)
class TaskRunResult:
    """Terminal outcome of one task run."""

    state: TaskState
    details: str
    error: BiosCfgError | None = None
    ack_uncertain: bool = False
    publish_failures: int = 0

    @property
    def ok(self) -> bool:
        return self.state == TaskState.SUCCEEDED


class TaskRunner:
    """Run the steps of one task, in order, against an open BMC session.

    The first failing step stops the run. Any unexpected exception raised
    while steps run is contained here and reported as a fatal task error.
    Status publication is best-effort: failures are logged and counted, and
    a failed terminal publish marks the result as ``ack_uncertain``.
    """

    def __init__(
        self,
        *,
        publisher: StatusPublisher,
        task: BiosControlTask,
        plan: TaskPlan,
        cancel_requested: Callable[[], bool] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.publisher = publisher
        self.task = task
        self.plan = plan
        self.cancel_requested = cancel_requested
        self.clock = clock
        self.task_status = TaskStatus(task=plan.name, task_id=str(task.id))
        self._log_extra = plan.asset.log_fields()
        self._active_step: int | None = None
        self._publish_failures = 0
        self._ack_uncertain = False

    def run(self, session: BmcSession) -> TaskRunResult:
        logger.info("Running task %s", self.plan.name, extra=self._log_extra)
        self.task_status.steps = [StepStatus(step=step.name) for step in self.plan.steps]
        try:
            return self._run(session)
        except Exception:  # noqa: BLE001
            return self._handle_fault()

    def _run(self, session: BmcSession) -> TaskRunResult:
        self._publish_task_update(TaskState.ACTIVE, OPENING_SESSION)

        try:
            session.open()
        except BiosCfgError as error:
            open_error = _wrap(error, SessionOpenError)
            logger.error("BMC session open failed: %s", error, extra=self._log_extra)
            self._publish_task_update(TaskState.FAILED, OPEN_SESSION_FAILED, open_error)
            return self._result(TaskState.FAILED, OPEN_SESSION_FAILED, open_error)

        try:
            return self._run_steps(session, StepContext())
        finally:
            self._close(session)

    def _run_steps(self, session: BmcSession, context: StepContext) -> TaskRunResult:
        for index, step in enumerate(self.plan.steps):
            if self.cancel_requested is not None and self.cancel_requested():
                details = f"task cancelled before step {step.name}"
                error = TaskCancelledError(details)
                logger.warning(details, extra=self._log_extra)
                self._publish_task_update(TaskState.FAILED, details, error)
                return self._result(TaskState.FAILED, details, error)

            self._active_step = index
            self._publish_step_update(index, TaskState.ACTIVE, RUNNING_STEP)
            try:
                step_details = step.run(session, context)
            except BiosCfgError as error:
                step_error = _wrap(error, StepExecutionError)
                step_error.step = step.name
                return self._fail_step(index, step_error)

            self._publish_step_update(index, TaskState.SUCCEEDED, step_details)

        self._active_step = None
        logger.info("Task %s completed successfully", self.plan.name, extra=self._log_extra)
        self._publish_task_update(TaskState.SUCCEEDED, TASK_COMPLETED)
        return self._result(TaskState.SUCCEEDED, TASK_COMPLETED)

    def _fail_step(self, index: int, error: StepExecutionError) -> TaskRunResult:
        step_name = self.plan.steps[index].name
        details = f"failed at step {step_name}"
        logger.error("Task %s %s: %s", self.plan.name, details, error, extra=self._log_extra)
        self.task_status.steps[index] = StepStatus.create(
            step_name,
            TaskState.FAILED,
            str(error),
            error,
        )
        self._publish_task_update(TaskState.FAILED, details, error)
        return self._result(TaskState.FAILED, details, error)

    def _handle_fault(self) -> TaskRunResult:
        logger.exception(
            "Panic occurred while running task %s",
            self.plan.name,
            extra=self._log_extra,
        )
        error = TaskFatalError()
        if self._active_step is not None:
            step_name = self.plan.steps[self._active_step].name
            self.task_status.steps[self._active_step] = StepStatus.create(
                step_name,
                TaskState.FAILED,
                TASK_PANICKED,
                error,
            )
        self._publish_task_update(TaskState.FAILED, TASK_PANICKED, error)
        return self._result(TaskState.FAILED, TASK_PANICKED, error)

    def _close(self, session: BmcSession) -> None:
        try:
            session.close()
        except SessionCloseError as error:
            logger.error("BMC session close error: %s", error, extra=self._log_extra)
        except Exception:  # noqa: BLE001
            logger.exception("BMC session close error", extra=self._log_extra)

    def _publish_step_update(self, index: int, state: TaskState, details: str) -> None:
        step_name = self.plan.steps[index].name
        step_status = StepStatus.create(step_name, state, details)
        self.task_status.steps[index] = step_status
        self.task_status.active_step = step_name if state == TaskState.ACTIVE else ""
        logger.info(details, extra={**self._log_extra, **step_status.log_fields()})
        self._publish_task_update(TaskState.ACTIVE, f"{step_name}: {details}")

    def _publish_task_update(
        self,
        state: TaskState,
        details: str,
        error: BaseException | None = None,
    ) -> None:
        if self.task_status.status.is_terminal and state != self.task_status.status:
            logger.warning(
                "Ignoring %s update after terminal state %s",
                state.value,
                self.task_status.status.value,
                extra=self._log_extra,
            )
            return

        now = self.clock()
        self.task.state = state
        self.task.updated_at = now
        if state.is_terminal:
            self.task.completed_at = now
            self.task_status.active_step = ""
        self.task.append_status(f"{details}: {error}" if error is not None else details)

        self.task_status.status = state
        self.task_status.details = details
        if error is not None:
            self.task_status.error = str(error)
        logger.info("Task update", extra={**self._log_extra, **self.task_status.log_fields()})

        try:
            self.publisher.publish(str(self.plan.asset.id), state, self.task_status.marshal())
        except Exception as publish_error:  # noqa: BLE001
            self._publish_failures += 1
            if state.is_terminal:
                self._ack_uncertain = True
            logger.warning(
                "Failed to publish task status %s: %s",
                state.value,
                publish_error,
                extra=self._log_extra,
            )

    def _result(
        self,
        state: TaskState,
        details: str,
        error: BiosCfgError | None = None,
    ) -> TaskRunResult:
        return TaskRunResult(
            state=state,
            details=details,
            error=error,
            ack_uncertain=self._ack_uncertain,
            publish_failures=self._publish_failures,
        )


def _wrap(error: BiosCfgError, kind: type[BiosCfgError]) -> Any:
    if isinstance(error, kind):
        return error
    wrapped = kind(str(error))
    wrapped.__cause__ = error
    return wrapped
