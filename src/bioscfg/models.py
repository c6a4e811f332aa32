"""Domain models for BIOS control tasks and their target assets."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

APP_NAME = "bioscfg"
TASK_KIND = "biosControl"


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


class TaskState(str, Enum):
    """Task lifecycle states reported back to the work queue."""

    PENDING = "pending"
    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED)


class BiosControlAction(str, Enum):
    """Actions understood by the task plans."""

    RESET_CONFIG = "reset-config"
    SET_CONFIG = "set-config"


class PowerState(str, Enum):
    """Power states accepted and reported by BMC sessions."""

    ON = "on"
    OFF = "off"
    RESET = "reset"
    CYCLE = "cycle"
    RESETTING = "resetting"
    CYCLING = "cycling"


class BootDevice(str, Enum):
    """Boot devices known to the simulator."""

    DISK = "disk"
    PXE = "pxe"
    CDROM = "cdrom"
    BIOS = "bios"


@dataclass(slots=True)
class Asset:
    """Target server snapshot resolved from inventory."""

    id: UUID
    bmc_address: str = ""
    bmc_username: str = ""
    bmc_password: str = field(default="", repr=False)
    vendor: str = ""
    model: str = ""
    serial: str = ""
    facility_code: str = ""

    def log_fields(self) -> dict[str, str]:
        """Identity fields attached to task-scoped log records."""

        return {
            "asset_id": str(self.id),
            "bmc": self.bmc_address,
            "vendor": self.vendor,
            "model": self.model,
            "serial": self.serial,
            "facility": self.facility_code,
        }


@dataclass(slots=True)
class BiosControlTaskParameters:
    """Validated parameters of a BIOS control task."""

    action: str
    asset_id: UUID
    bios_config_url: str | None = None

    def marshal(self) -> bytes:
        """Serialize to the wire representation stored in the envelope."""

        payload: dict[str, Any] = {
            "action": str(self.action.value if isinstance(self.action, Enum) else self.action),
            "assetId": str(self.asset_id),
        }
        if self.bios_config_url is not None:
            payload["biosConfigUrl"] = self.bios_config_url
        return json.dumps(payload, sort_keys=True).encode("utf-8")


@dataclass(slots=True)
class GenericTask:
    """Transport-level task envelope with loosely-typed parameters."""

    id: UUID
    kind: str
    state: TaskState = TaskState.PENDING
    status: list[str] = field(default_factory=list)
    parameters: Any = None
    server: Asset | None = None
    # fault-injection payload, carried verbatim
    fault: dict[str, Any] | None = None
    facility_code: str = ""
    worker_id: str = ""
    trace_id: str = ""
    span_id: str = ""
    struct_version: str = "1"
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(slots=True)
class BiosControlTask:
    """Strongly-typed BIOS control task owned by one runner."""

    id: UUID
    kind: str
    parameters: BiosControlTaskParameters
    state: TaskState = TaskState.PENDING
    status: list[str] = field(default_factory=list)
    server: Asset | None = None
    fault: dict[str, Any] | None = None
    facility_code: str = ""
    worker_id: str = ""
    trace_id: str = ""
    span_id: str = ""
    struct_version: str = "1"
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    def append_status(self, message: str) -> None:
        """Append a human-readable status line; the log never shrinks."""

        if message:
            self.status.append(message)
