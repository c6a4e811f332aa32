"""JSON contracts for task envelopes and asset records."""

from __future__ import annotations

import copy
import json
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import UUID

from bioscfg.errors import InvalidParametersError
from bioscfg.models import Asset, GenericTask, TaskState

_ASSET_FIELDS = {
    "bmcAddress": "bmc_address",
    "bmcUsername": "bmc_username",
    "bmcPassword": "bmc_password",
    "vendor": "vendor",
    "model": "model",
    "serial": "serial",
    "facilityCode": "facility_code",
}
_ENVELOPE_STR_FIELDS = {
    "facilityCode": "facility_code",
    "workerId": "worker_id",
    "traceId": "trace_id",
    "spanId": "span_id",
    "structVersion": "struct_version",
}
_ENVELOPE_TIME_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "completedAt": "completed_at",
}


def load_json(path: Path) -> Any:
    return json.loads(path.read_text("utf-8"))


def asset_from_dict(raw: dict[str, Any]) -> Asset:
    """Validate and build an asset record."""

    if not isinstance(raw, dict):
        raise TypeError("asset must be an object")
    asset_id = _parse_uuid(raw.get("id"), "asset.id")
    values: dict[str, str] = {}
    for key, attr in _ASSET_FIELDS.items():
        value = raw.get(key, "")
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise TypeError(f"asset.{key} must be a string")
        values[attr] = value
    return Asset(id=asset_id, **values)


def asset_to_dict(asset: Asset) -> dict[str, Any]:
    payload: dict[str, Any] = {"id": str(asset.id)}
    for key, attr in _ASSET_FIELDS.items():
        payload[key] = getattr(asset, attr)
    return payload


def envelope_from_dict(raw: dict[str, Any]) -> GenericTask:
    """Build a generic envelope from its JSON document.

    Parameters stay serialized: an embedded object is re-encoded to JSON
    bytes, a string is kept as-is for the converter to validate.
    """

    if not isinstance(raw, dict):
        raise InvalidParametersError("task envelope must be a JSON object")
    try:
        task_id = _parse_uuid(raw.get("id"), "task.id")
        kind = raw.get("kind")
        if not isinstance(kind, str) or not kind.strip():
            raise ValueError("task.kind must be a non-empty string")
        state = TaskState(raw.get("state", TaskState.PENDING.value))
        status = raw.get("status", [])
        if not isinstance(status, list) or not all(isinstance(item, str) for item in status):
            raise TypeError("task.status must be an array of strings")

        parameters = raw.get("parameters")
        if isinstance(parameters, dict):
            parameters = json.dumps(parameters, sort_keys=True).encode("utf-8")

        server = raw.get("server")
        fault = raw.get("fault")
        if fault is not None and not isinstance(fault, dict):
            raise TypeError("task.fault must be an object")
        extra: dict[str, Any] = {}
        for key, attr in _ENVELOPE_STR_FIELDS.items():
            if key in raw:
                if not isinstance(raw[key], str):
                    raise TypeError(f"task.{key} must be a string")
                extra[attr] = raw[key]
        for key, attr in _ENVELOPE_TIME_FIELDS.items():
            extra[attr] = _parse_time(raw.get(key), f"task.{key}")

        return GenericTask(
            id=task_id,
            kind=kind,
            state=state,
            status=list(status),
            parameters=parameters,
            server=asset_from_dict(server) if server is not None else None,
            fault=copy.deepcopy(fault),
            **extra,
        )
    except (TypeError, ValueError) as error:
        raise InvalidParametersError(f"invalid task envelope: {error}") from error


def envelope_to_dict(task: GenericTask) -> dict[str, Any]:
    """Render an envelope as a JSON-ready document."""

    parameters: Any = task.parameters
    if isinstance(parameters, bytes | bytearray):
        parameters = parameters.decode("utf-8")
    if isinstance(parameters, str):
        try:
            parameters = json.loads(parameters)
        except json.JSONDecodeError:
            # malformed payloads are echoed back verbatim
            parameters = str(parameters)

    payload: dict[str, Any] = {
        "id": str(task.id),
        "kind": task.kind,
        "state": task.state.value,
        "status": list(task.status),
        "parameters": parameters,
        "server": asset_to_dict(task.server) if task.server is not None else None,
        "fault": copy.deepcopy(task.fault),
    }
    for key, attr in _ENVELOPE_STR_FIELDS.items():
        payload[key] = getattr(task, attr)
    for key, attr in _ENVELOPE_TIME_FIELDS.items():
        value = getattr(task, attr)
        payload[key] = value.isoformat() if value is not None else None
    return payload


def read_envelope(path: Path) -> GenericTask:
    """Load a task envelope from a JSON file."""

    try:
        raw = load_json(path)
    except json.JSONDecodeError as error:
        raise InvalidParametersError(f"task file {path} is not valid JSON: {error}") from error
    return envelope_from_dict(raw)


def _parse_uuid(value: Any, label: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        raise TypeError(f"{label} must be a UUID string")
    try:
        return UUID(value)
    except ValueError as error:
        raise ValueError(f"{label} is not a valid UUID: {value!r}") from error


def _parse_time(value: Any, label: str) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise TypeError(f"{label} must be an ISO 8601 string")
    return datetime.fromisoformat(value)
