"""Status publication to the originating work queue."""

from __future__ import annotations

import json
import threading
from typing import Protocol, TextIO

from bioscfg.models import TaskState


class StatusPublisher(Protocol):
    """Transport that records task progress; delivery is at-least-once."""

    def publish(self, identity: str, state: TaskState, status: bytes) -> None:
        """Publish a serialized status update; raise on failure."""


class JsonLinesPublisher:
    """Write each status update as one JSON line to a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    def publish(self, identity: str, state: TaskState, status: bytes) -> None:
        record = {
            "identity": identity,
            "state": state.value,
            "status": json.loads(status),
        }
        line = json.dumps(record, sort_keys=True)
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()
