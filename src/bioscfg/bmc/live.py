"""Live BMC session delegating to a Redfish client (``sushy``)."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import sushy
from sushy import auth as sushy_auth
from sushy import exceptions as sushy_exceptions

from bioscfg.bmc.base import BmcError
from bioscfg.errors import SessionCloseError, SessionOpenError
from bioscfg.models import Asset, PowerState

logger = logging.getLogger(__name__)

_POWER_STATE_IN = {
    sushy.PowerState.ON: PowerState.ON.value,
    sushy.PowerState.POWERING_ON: PowerState.ON.value,
    sushy.PowerState.OFF: PowerState.OFF.value,
    sushy.PowerState.POWERING_OFF: PowerState.OFF.value,
}
_POWER_STATE_OUT = {
    PowerState.ON.value: sushy.ResetType.ON,
    PowerState.OFF.value: sushy.ResetType.FORCE_OFF,
    PowerState.RESET.value: sushy.ResetType.GRACEFUL_RESTART,
    PowerState.CYCLE.value: sushy.ResetType.FORCE_RESTART,
}
_BOOT_DEVICE_OUT = {
    "disk": sushy.BootSource.HDD,
    "pxe": sushy.BootSource.PXE,
    "cdrom": sushy.BootSource.CD,
    "bios": sushy.BootSource.BIOS_SETUP,
}
_BOOT_DEVICE_IN = {value: key for key, value in _BOOT_DEVICE_OUT.items()}


@dataclass(slots=True)
class RedfishConnection:
    """Connected Redfish client plus the auth object that owns its session."""

    client: Any
    auth: Any = None

    def close(self) -> None:
        if self.auth is not None:
            self.auth.close()


ClientFactory = Callable[[Asset], RedfishConnection]


def redfish_client_factory(*, verify_tls: bool = False) -> ClientFactory:
    """Build a factory that connects a ``sushy.Sushy`` client to the asset BMC."""

    def _connect(asset: Asset) -> RedfishConnection:
        address = asset.bmc_address
        if "://" not in address:
            address = f"https://{address}"
        auth = sushy_auth.SessionOrBasicAuth(
            username=asset.bmc_username,
            password=asset.bmc_password,
        )
        client = sushy.Sushy(f"{address}/redfish/v1", auth=auth, verify=verify_tls)
        return RedfishConnection(client=client, auth=auth)

    return _connect


class LiveBmcSession:
    """One Redfish session per task; not reusable after ``close``."""

    def __init__(self, asset: Asset, *, client_factory: ClientFactory | None = None) -> None:
        self.asset = asset
        self._client_factory = client_factory or redfish_client_factory()
        self._connection: RedfishConnection | None = None
        self._system: Any = None
        self._closed = False

    def open(self) -> None:
        if self._closed or self._connection is not None:
            raise SessionOpenError("BMC session cannot be reopened")
        try:
            connection = self._client_factory(self.asset)
            self._system = connection.client.get_system()
        except sushy_exceptions.SushyError as error:
            raise SessionOpenError(f"failed to open BMC session: {error}") from error
        self._connection = connection
        logger.debug("BMC session opened", extra=self.asset.log_fields())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        connection, self._connection, self._system = self._connection, None, None
        if connection is None:
            return
        try:
            connection.close()
        except sushy_exceptions.SushyError as error:
            raise SessionCloseError(f"failed to close BMC session: {error}") from error
        logger.debug("BMC session closed", extra=self.asset.log_fields())

    def get_power_state(self) -> str:
        system = self._require_system()
        self._call(system.refresh)
        state = system.power_state
        if state in _POWER_STATE_IN:
            return _POWER_STATE_IN[state]
        return _value(state).lower()

    def set_power_state(self, state: str) -> None:
        reset_type = _POWER_STATE_OUT.get(_value(state))
        if reset_type is None:
            raise BmcError(f"unsupported power state {_value(state)!r}")
        self._call(self._require_system().reset_system, reset_type)

    def get_boot_device(self) -> tuple[str, bool, bool]:
        system = self._require_system()
        self._call(system.refresh)
        boot = system.boot
        device = _BOOT_DEVICE_IN.get(boot.target, _value(boot.target).lower())
        persistent = boot.enabled == sushy.BootSourceOverrideEnabled.CONTINUOUS
        efi_boot = boot.mode == sushy.BootSourceOverrideMode.UEFI
        return device, persistent, efi_boot

    def set_boot_device(self, device: str, *, persistent: bool, efi_boot: bool) -> None:
        target = _BOOT_DEVICE_OUT.get(_value(device))
        if target is None:
            raise BmcError(f"unsupported boot device {_value(device)!r}")
        enabled = (
            sushy.BootSourceOverrideEnabled.CONTINUOUS
            if persistent
            else sushy.BootSourceOverrideEnabled.ONCE
        )
        mode = sushy.BootSourceOverrideMode.UEFI if efi_boot else sushy.BootSourceOverrideMode.LEGACY
        self._call(
            self._require_system().set_system_boot_options,
            target,
            enabled=enabled,
            mode=mode,
        )

    def power_cycle_bmc(self) -> None:
        connection = self._require_connection()
        manager = self._call(connection.client.get_manager)
        self._call(manager.reset_manager, sushy.ResetType.GRACEFUL_RESTART)

    def host_booted(self) -> bool:
        return self.get_power_state() == PowerState.ON.value

    def reset_bios_config(self) -> None:
        self._call(self._require_system().bios.reset_bios)

    def set_bios_config_from_file(self, content: str) -> None:
        attributes = parse_bios_config(content)
        self._call(self._require_system().bios.set_attributes, attributes)

    def _require_connection(self) -> RedfishConnection:
        if self._connection is None:
            raise BmcError("BMC session is not open")
        return self._connection

    def _require_system(self) -> Any:
        self._require_connection()
        return self._system

    @staticmethod
    def _call(method: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return method(*args, **kwargs)
        except sushy_exceptions.SushyError as error:
            raise BmcError(str(error)) from error


def _value(member: object) -> str:
    return str(member.value) if isinstance(member, Enum) else str(member)


def parse_bios_config(content: str) -> dict[str, Any]:
    """Extract BIOS attributes from a JSON config document.

    Accepts either a flat attribute object or a Redfish-style document with
    an ``Attributes`` object.
    """

    try:
        payload = json.loads(content)
    except json.JSONDecodeError as error:
        raise BmcError(f"BIOS config is not valid JSON: {error}") from error
    if not isinstance(payload, dict):
        raise BmcError("BIOS config must be a JSON object")
    attributes = payload.get("Attributes", payload)
    if not isinstance(attributes, dict) or not attributes:
        raise BmcError("BIOS config has no attributes")
    return attributes
