from __future__ import annotations

import allure
import pytest

from bioscfg.bmc import BmcError, SimulatedBmcSession
from bioscfg.errors import (
    TASK_FATAL_ERROR_MESSAGE,
    SessionOpenError,
    StepExecutionError,
    TaskCancelledError,
    TaskFatalError,
)
from bioscfg.models import BiosControlTask, BiosControlTaskParameters, TaskState
from bioscfg.tasks.plans import TaskPlan
from bioscfg.tasks.runner import TaskRunner
from bioscfg.tasks.steps import BiosResetStep, GetServerPowerStateStep, ServerRebootStep
from conftest import ASSET_ID, TASK_ID, RecordingPublisher

pytestmark = [
    allure.epic("BIOS Control"),
    allure.feature("Task Runner"),
]


class CountingSession(SimulatedBmcSession):
    """Simulated session that records open/close calls."""

    def __init__(self, *args, open_error: Exception | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.open_error = open_error
        self.opened = 0
        self.closed = 0

    def open(self) -> None:
        self.opened += 1
        if self.open_error is not None:
            raise self.open_error

    def close(self) -> None:
        self.closed += 1


class RaisingStep:
    def __init__(self, name: str, error: Exception) -> None:
        self.name = name
        self.error = error
        self.calls = 0

    def run(self, session, context) -> str:
        self.calls += 1
        raise self.error


class RecordingStep:
    def __init__(self, name: str) -> None:
        self.name = name
        self.calls = 0

    def run(self, session, context) -> str:
        self.calls += 1
        return f"{self.name} done"


def _task() -> BiosControlTask:
    return BiosControlTask(
        id=TASK_ID,
        kind="biosControl",
        parameters=BiosControlTaskParameters(action="reset-config", asset_id=ASSET_ID),
    )


def _runner(asset, publisher, steps, *, clock, cancel_requested=None) -> TaskRunner:
    return TaskRunner(
        publisher=publisher,
        task=_task(),
        plan=TaskPlan(name="BiosResetSettings", asset=asset, steps=steps),
        cancel_requested=cancel_requested,
        clock=clock,
    )


def test_successful_run_publishes_every_step(asset, registry, publisher, clock) -> None:
    session = CountingSession(asset, registry=registry)
    runner = _runner(
        asset,
        publisher,
        [GetServerPowerStateStep(), BiosResetStep(), ServerRebootStep()],
        clock=clock,
    )

    result = runner.run(session)

    assert result.ok
    assert result.error is None
    assert publisher.states[-1] == TaskState.SUCCEEDED
    assert publisher.states[:-1] == [TaskState.ACTIVE] * 7
    assert {identity for identity, _, _ in publisher.records} == {str(ASSET_ID)}
    assert [step["details"] for step in publisher.last["steps"]] == [
        "Current power state: on",
        "BIOS settings reset",
        "Rebooting server",
    ]
    assert runner.task.status[0] == "opening session"
    assert runner.task.status[-1] == "task completed successfully"
    assert runner.task.completed_at == clock.current
    assert (session.opened, session.closed) == (1, 1)


def test_first_failing_step_stops_the_run(asset, registry, publisher, clock) -> None:
    session = CountingSession(asset, registry=registry)
    later = RecordingStep("ServerReboot")
    runner = _runner(
        asset,
        publisher,
        [
            RecordingStep("GetServerPowerState"),
            RaisingStep("BiosReset", BmcError("bmc busy")),
            later,
        ],
        clock=clock,
    )

    result = runner.run(session)

    assert result.state == TaskState.FAILED
    assert result.details == "failed at step BiosReset"
    assert isinstance(result.error, StepExecutionError)
    assert result.error.step == "BiosReset"
    assert isinstance(result.error.__cause__, BmcError)
    assert later.calls == 0
    assert [step["status"] for step in publisher.last["steps"]] == [
        "succeeded",
        "failed",
        "pending",
    ]
    assert publisher.last["steps"][1]["error"] == "bmc busy"
    assert runner.task.status[-1] == "failed at step BiosReset: bmc busy"
    assert session.closed == 1


def test_open_failure_runs_no_steps_and_skips_close(asset, registry, publisher, clock) -> None:
    session = CountingSession(asset, registry=registry, open_error=BmcError("no route to host"))
    step = RecordingStep("GetServerPowerState")
    runner = _runner(asset, publisher, [step], clock=clock)

    result = runner.run(session)

    assert result.state == TaskState.FAILED
    assert result.details == "failed to open session"
    assert isinstance(result.error, SessionOpenError)
    assert step.calls == 0
    assert session.closed == 0
    assert publisher.last["steps"] == [
        {"step": "GetServerPowerState", "status": "pending", "details": "", "error": ""},
    ]


def test_unexpected_exception_is_contained_as_fatal(asset, registry, publisher, clock) -> None:
    session = CountingSession(asset, registry=registry)
    runner = _runner(
        asset,
        publisher,
        [RecordingStep("GetServerPowerState"), RaisingStep("BiosReset", KeyError("boom"))],
        clock=clock,
    )

    result = runner.run(session)

    assert result.state == TaskState.FAILED
    assert isinstance(result.error, TaskFatalError)
    assert str(result.error) == TASK_FATAL_ERROR_MESSAGE
    assert publisher.last["error"] == "Task fatal error, check logs for details"
    assert publisher.last["steps"][1]["status"] == "failed"
    assert session.closed == 1


def test_fault_while_opening_is_fatal_without_close(asset, registry, publisher, clock) -> None:
    session = CountingSession(asset, registry=registry, open_error=RuntimeError("driver crash"))
    runner = _runner(asset, publisher, [RecordingStep("GetServerPowerState")], clock=clock)

    result = runner.run(session)

    assert isinstance(result.error, TaskFatalError)
    assert session.closed == 0


def test_close_errors_do_not_change_the_outcome(asset, registry, publisher, clock) -> None:
    class BrokenClose(CountingSession):
        def close(self) -> None:
            super().close()
            raise BmcError("logout failed")

    session = BrokenClose(asset, registry=registry)
    runner = _runner(asset, publisher, [RecordingStep("GetServerPowerState")], clock=clock)

    assert runner.run(session).ok
    assert session.closed == 1


def test_cancellation_is_honoured_between_steps(asset, registry, publisher, clock) -> None:
    session = CountingSession(asset, registry=registry)
    first = RecordingStep("GetServerPowerState")
    second = RecordingStep("BiosReset")
    runner = _runner(
        asset,
        publisher,
        [first, second],
        clock=clock,
        cancel_requested=lambda: first.calls > 0,
    )

    result = runner.run(session)

    assert result.state == TaskState.FAILED
    assert isinstance(result.error, TaskCancelledError)
    assert result.details == "task cancelled before step BiosReset"
    assert (first.calls, second.calls) == (1, 0)
    assert session.closed == 1


def test_failed_terminal_publish_marks_ack_uncertain(asset, registry, clock) -> None:
    publisher = RecordingPublisher(fail_states=(TaskState.SUCCEEDED,))
    runner = _runner(asset, publisher, [RecordingStep("GetServerPowerState")], clock=clock)

    result = runner.run(CountingSession(asset, registry=registry))

    assert result.ok
    assert result.ack_uncertain is True
    assert result.publish_failures == 1
    assert runner.task.state == TaskState.SUCCEEDED


def test_failed_progress_publish_does_not_stop_the_run(asset, registry, clock) -> None:
    publisher = RecordingPublisher(fail_states=(TaskState.ACTIVE,))
    runner = _runner(asset, publisher, [RecordingStep("GetServerPowerState")], clock=clock)

    result = runner.run(CountingSession(asset, registry=registry))

    assert result.ok
    assert result.ack_uncertain is False
    assert result.publish_failures == 3
    assert publisher.states == [TaskState.SUCCEEDED]


@pytest.mark.parametrize("failing", [False, True])
def test_published_states_never_leave_terminal(asset, registry, publisher, clock, failing) -> None:
    steps = [RecordingStep("GetServerPowerState")]
    if failing:
        steps.append(RaisingStep("BiosReset", BmcError("nope")))
    runner = _runner(asset, publisher, steps, clock=clock)

    runner.run(CountingSession(asset, registry=registry))

    terminal = [index for index, state in enumerate(publisher.states) if state.is_terminal]
    assert terminal == [len(publisher.states) - 1]
