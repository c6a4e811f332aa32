"""Progress records for a task and its steps."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field

from bioscfg.models import TaskState


@dataclass(slots=True)
class StepStatus:
    """Status of one step, reported as part of the overall task."""

    step: str
    status: TaskState = TaskState.PENDING
    details: str = ""
    error: str = ""

    @classmethod
    def create(
        cls,
        step: str,
        state: TaskState,
        details: str = "",
        error: BaseException | None = None,
    ) -> StepStatus:
        return cls(
            step=step,
            status=state,
            details=details,
            error=str(error) if error is not None else "",
        )

    def log_fields(self) -> dict[str, str]:
        return {
            "step": self.step,
            "step_status": self.status.value,
            "step_details": self.details,
            "step_error": self.error,
        }


@dataclass(slots=True)
class TaskStatus:
    """Aggregate status of a task: overall state plus ordered step statuses."""

    task: str
    task_id: str = ""
    status: TaskState = TaskState.PENDING
    details: str = ""
    error: str = ""
    active_step: str = ""
    steps: list[StepStatus] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        payload = asdict(self)
        payload["status"] = self.status.value
        payload["steps"] = [
            {**asdict(step), "status": step.status.value} for step in self.steps
        ]
        for key in ("task_id", "details", "error", "active_step"):
            if not payload[key]:
                del payload[key]
        return payload

    def marshal(self) -> bytes:
        """Serialize for status publication."""

        return json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")

    def log_fields(self) -> dict[str, str]:
        return {
            "task": self.task,
            "task_status": self.status.value,
            "task_details": self.details,
            "task_error": self.error,
        }
