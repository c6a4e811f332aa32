from __future__ import annotations

import json
from datetime import UTC, datetime

import allure
import pytest

from bioscfg.errors import InvalidParametersError
from bioscfg.models import (
    BiosControlAction,
    BiosControlTask,
    BiosControlTaskParameters,
    GenericTask,
    TaskState,
)
from bioscfg.tasks.converter import from_envelope, parse_parameters, to_envelope
from conftest import ASSET_ID, TASK_ID, make_envelope

pytestmark = [
    allure.epic("BIOS Control"),
    allure.feature("Task Conversion"),
]


def test_from_envelope_builds_typed_task(asset) -> None:
    envelope = make_envelope(server=asset)
    envelope.status = ["queued"]

    task = from_envelope(envelope)

    assert task.id == TASK_ID
    assert task.kind == "biosControl"
    assert task.state == TaskState.PENDING
    assert task.status == ["queued"]
    assert task.parameters.action == BiosControlAction.RESET_CONFIG
    assert task.parameters.asset_id == ASSET_ID
    assert task.parameters.bios_config_url is None
    assert task.server == asset
    assert task.facility_code == "sandbox"


def test_envelope_round_trip_preserves_fields(asset) -> None:
    envelope = make_envelope(
        action="set-config",
        bios_config_url="https://configs.example.com/r6515.json",
        server=asset,
    )
    envelope.fault = {"failAt": "SetBiosConfig"}
    envelope.trace_id = "trace-1"

    back = to_envelope(from_envelope(envelope))

    assert back.id == envelope.id
    assert back.server == envelope.server
    assert back.fault == envelope.fault
    assert back.trace_id == "trace-1"
    assert json.loads(back.parameters) == json.loads(envelope.parameters)


def test_conversion_deep_copies_server_and_fault(asset) -> None:
    envelope = make_envelope(server=asset)
    envelope.fault = {"panic": True, "delayDuringRun": 1.5}

    task = from_envelope(envelope)
    task.server.bmc_address = "10.9.9.9"
    task.fault["panic"] = False
    task.status.append("mutated")

    assert envelope.server.bmc_address == "10.0.0.5"
    assert envelope.fault == {"panic": True, "delayDuringRun": 1.5}
    assert envelope.status == []

    back = to_envelope(task)
    back.server.serial = "changed"
    assert task.server.serial == "SRV123"


def test_unknown_action_is_kept_for_the_handler_to_reject() -> None:
    params = parse_parameters(json.dumps({"action": "flash-firmware", "assetId": str(ASSET_ID)}))

    assert params.action == "flash-firmware"
    assert params.marshal() == json.dumps(
        {"action": "flash-firmware", "assetId": str(ASSET_ID)},
        sort_keys=True,
    ).encode("utf-8")


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"action": "reset-config"}, "must be serialized JSON"),
        (b"\xff\xfe", "not valid UTF-8"),
        ("{not json", "not valid JSON"),
        ("[1, 2]", "must be a JSON object"),
        (json.dumps({"action": "", "assetId": str(ASSET_ID)}), "action"),
        (json.dumps({"action": "reset-config", "assetId": "nope"}), "not a valid UUID"),
        (json.dumps({"action": "reset-config", "assetId": 7}), "assetId"),
        (
            json.dumps({"action": "reset-config", "assetId": str(ASSET_ID), "biosConfigUrl": 1}),
            "biosConfigUrl",
        ),
        (
            json.dumps(
                {
                    "action": "set-config",
                    "assetId": str(ASSET_ID),
                    "biosConfigUrl": "configs/r6515",
                },
            ),
            r"not an absolute http\(s\) URL",
        ),
        (
            json.dumps(
                {
                    "action": "set-config",
                    "assetId": str(ASSET_ID),
                    "biosConfigUrl": "ftp://configs.example.com/r6515.json",
                },
            ),
            r"not an absolute http\(s\) URL",
        ),
    ],
)
def test_parse_parameters_rejects_malformed_payloads(raw, message: str) -> None:
    with pytest.raises(InvalidParametersError, match=message):
        parse_parameters(raw)


def test_from_envelope_rejects_missing_parameters() -> None:
    envelope = GenericTask(id=TASK_ID, kind="biosControl")

    with pytest.raises(InvalidParametersError):
        from_envelope(envelope)


def test_typed_task_round_trips_through_envelope(asset) -> None:
    created = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    task = BiosControlTask(
        id=TASK_ID,
        kind="biosControl",
        parameters=BiosControlTaskParameters(
            action="flash-firmware",
            asset_id=ASSET_ID,
            bios_config_url="https://configs.example.com/r6515.json",
        ),
        state=TaskState.ACTIVE,
        status=["opening session", "GetServerPowerState: running step"],
        server=asset,
        fault={"panic": False, "delayDuringRun": 1500000000.0, "note": {"owner": "qa"}},
        facility_code="sandbox",
        worker_id="bioscfg-sandbox",
        trace_id="trace-1",
        span_id="span-1",
        created_at=created,
        updated_at=created,
    )

    back = from_envelope(to_envelope(task))

    assert back == task
    assert back.server is not task.server
    assert back.fault is not task.fault
    assert back.fault["note"] is not task.fault["note"]


def test_parse_parameters_ignores_unknown_fields() -> None:
    params = parse_parameters(
        json.dumps({"action": "reset-config", "assetId": str(ASSET_ID), "traceHint": "x"}),
    )

    assert params.action == BiosControlAction.RESET_CONFIG
    assert params.asset_id == ASSET_ID


def test_parse_parameters_treats_empty_config_url_as_absent() -> None:
    params = parse_parameters(
        json.dumps({"action": "reset-config", "assetId": str(ASSET_ID), "biosConfigUrl": ""}),
    )

    assert params.bios_config_url is None
