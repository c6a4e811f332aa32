"""Shared test fixtures."""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime, timedelta
from uuid import UUID

import pytest

from bioscfg.bmc.simulated import SimulatedServerRegistry
from bioscfg.models import Asset, GenericTask, TaskState

ASSET_ID = UUID("0f7d2c61-6f0e-4a35-9d4b-0d5b1fd8c3a1")
TASK_ID = UUID("7b1d6f4e-2c1a-4a5b-9e34-5cf1a7e0b9d2")


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class RecordingPublisher:
    """Collects published status updates; optionally fails on selected states."""

    def __init__(self, *, fail_states: tuple[TaskState, ...] = ()) -> None:
        self.fail_states = fail_states
        self.records: list[tuple[str, TaskState, dict]] = []
        self._lock = threading.Lock()

    def publish(self, identity: str, state: TaskState, status: bytes) -> None:
        if state in self.fail_states:
            raise ConnectionError(f"publish of {state.value} refused")
        with self._lock:
            self.records.append((identity, state, json.loads(status)))

    @property
    def states(self) -> list[TaskState]:
        return [state for _, state, _ in self.records]

    @property
    def last(self) -> dict:
        return self.records[-1][2]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def registry(clock: FakeClock) -> SimulatedServerRegistry:
    return SimulatedServerRegistry(clock=clock)


@pytest.fixture()
def asset() -> Asset:
    return Asset(
        id=ASSET_ID,
        bmc_address="10.0.0.5",
        bmc_username="root",
        bmc_password="calvin",
        vendor="dell",
        model="r6515",
        serial="SRV123",
        facility_code="sandbox",
    )


@pytest.fixture()
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


def make_envelope(
    *,
    action: str = "reset-config",
    asset_id: UUID = ASSET_ID,
    bios_config_url: str | None = None,
    state: TaskState = TaskState.PENDING,
    server: Asset | None = None,
) -> GenericTask:
    parameters: dict[str, str] = {"action": action, "assetId": str(asset_id)}
    if bios_config_url is not None:
        parameters["biosConfigUrl"] = bios_config_url
    return GenericTask(
        id=TASK_ID,
        kind="biosControl",
        state=state,
        parameters=json.dumps(parameters).encode("utf-8"),
        server=server,
        facility_code="sandbox",
    )
