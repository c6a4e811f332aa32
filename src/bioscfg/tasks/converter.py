"""Conversion between the generic task envelope and a typed BIOS control task."""

from __future__ import annotations

import copy
import json
from typing import Any
from urllib.parse import urlparse
from uuid import UUID

from bioscfg.errors import InvalidParametersError, TaskConversionError
from bioscfg.models import (
    BiosControlAction,
    BiosControlTask,
    BiosControlTaskParameters,
    GenericTask,
)

_KNOWN_ACTIONS = {action.value: action for action in BiosControlAction}


def from_envelope(task: GenericTask) -> BiosControlTask:
    """Build a typed task from a generic envelope.

    Raises ``InvalidParametersError`` when the parameter payload is not
    serialized JSON matching the BIOS control schema. The asset and fault
    records are deep-copied so the typed task never shares them with the
    envelope.
    """

    params = parse_parameters(task.parameters)
    return BiosControlTask(
        id=task.id,
        kind=task.kind,
        parameters=params,
        state=task.state,
        status=list(task.status),
        server=_deep_copy(task.server, "Task.server"),
        fault=_deep_copy(task.fault, "Task.fault"),
        facility_code=task.facility_code,
        worker_id=task.worker_id,
        trace_id=task.trace_id,
        span_id=task.span_id,
        struct_version=task.struct_version,
        created_at=task.created_at,
        updated_at=task.updated_at,
        completed_at=task.completed_at,
    )


def to_envelope(task: BiosControlTask) -> GenericTask:
    """Build a generic envelope from a typed task; inverse of ``from_envelope``."""

    try:
        params_json = task.parameters.marshal()
    except (TypeError, ValueError) as error:
        raise TaskConversionError(f"{error}: Task.parameters") from error

    return GenericTask(
        id=task.id,
        kind=task.kind,
        state=task.state,
        status=list(task.status),
        parameters=params_json,
        server=_deep_copy(task.server, "Task.server"),
        fault=_deep_copy(task.fault, "Task.fault"),
        facility_code=task.facility_code,
        worker_id=task.worker_id,
        trace_id=task.trace_id,
        span_id=task.span_id,
        struct_version=task.struct_version,
        created_at=task.created_at,
        updated_at=task.updated_at,
        completed_at=task.completed_at,
    )


def parse_parameters(raw: Any) -> BiosControlTaskParameters:
    """Decode and validate the serialized parameter payload; unknown fields are ignored."""

    if isinstance(raw, bytes | bytearray):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as error:
            raise InvalidParametersError("parameters are not valid UTF-8") from error
    if not isinstance(raw, str):
        raise InvalidParametersError(
            f"parameters must be serialized JSON, got {type(raw).__name__}",
        )
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as error:
        raise InvalidParametersError(f"parameters are not valid JSON: {error}") from error
    if not isinstance(payload, dict):
        raise InvalidParametersError("parameters must be a JSON object")

    action = payload.get("action")
    if not isinstance(action, str) or not action.strip():
        raise InvalidParametersError("parameters.action must be a non-empty string")

    asset_id_raw = payload.get("assetId")
    if not isinstance(asset_id_raw, str):
        raise InvalidParametersError("parameters.assetId must be a UUID string")
    try:
        asset_id = UUID(asset_id_raw)
    except ValueError as error:
        raise InvalidParametersError(
            f"parameters.assetId is not a valid UUID: {asset_id_raw!r}",
        ) from error

    config_url = payload.get("biosConfigUrl")
    if config_url == "":
        config_url = None
    if config_url is not None:
        _validate_config_url(config_url)

    return BiosControlTaskParameters(
        action=_KNOWN_ACTIONS.get(action, action),
        asset_id=asset_id,
        bios_config_url=config_url,
    )


def _deep_copy(value: Any, label: str) -> Any:
    if value is None:
        return None
    try:
        return copy.deepcopy(value)
    except (TypeError, copy.Error) as error:
        raise TaskConversionError(f"{error}: {label}") from error


def _validate_config_url(value: Any) -> None:
    if not isinstance(value, str):
        raise InvalidParametersError("parameters.biosConfigUrl must be a string when provided")
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidParametersError(
            f"parameters.biosConfigUrl is not an absolute http(s) URL: {value!r}",
        )
