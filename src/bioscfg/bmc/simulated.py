"""Deterministic in-memory BMC used for dry runs and tests.

Server state lives in a process-wide registry keyed by asset ID. Each key
has its own lock, so every operation resolves pending transitions and
applies its change atomically even when several tasks target the same
asset.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from bioscfg.bmc.base import BmcError, OfflineError, UnknownAssetError
from bioscfg.models import Asset, BootDevice, PowerState, utc_now

logger = logging.getLogger(__name__)

RESET_DELAY = timedelta(seconds=30)
CYCLE_DELAY = timedelta(seconds=20)

_TRANSITIONS = {
    PowerState.RESET.value: (PowerState.RESETTING.value, RESET_DELAY),
    PowerState.CYCLE.value: (PowerState.CYCLING.value, CYCLE_DELAY),
}
_SETTLED = {PowerState.ON.value, PowerState.OFF.value}
_IN_TRANSITION = {PowerState.RESETTING.value, PowerState.CYCLING.value}


@dataclass(slots=True)
class SimulatedServer:
    """Power and boot state of one simulated server."""

    power_status: str
    boot_device: str
    previous_boot_device: str
    persistent: bool
    efi_boot: bool
    transition_due: datetime
    bios_config: str | None = None


def default_server(now: datetime) -> SimulatedServer:
    return SimulatedServer(
        power_status=PowerState.ON.value,
        boot_device=BootDevice.DISK.value,
        previous_boot_device=BootDevice.DISK.value,
        persistent=True,
        efi_boot=False,
        transition_due=now,
    )


class SimulatedServerRegistry:
    """Process-wide simulated server states with per-asset locking."""

    def __init__(self, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._servers: dict[str, SimulatedServer] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def now(self) -> datetime:
        return self._clock()

    def ensure(self, asset_id: str) -> None:
        """Create default state for an asset on first reference."""

        with self._guard:
            if asset_id not in self._servers:
                self._servers[asset_id] = default_server(self._clock())
                self._locks[asset_id] = threading.Lock()

    def snapshot(self, asset_id: str) -> SimulatedServer:
        """Return a resolved copy of the asset state."""

        with self.locked(asset_id) as server:
            return replace(server)

    @contextmanager
    def locked(self, asset_id: str) -> Iterator[SimulatedServer]:
        """Hold the asset lock and yield its state with due transitions resolved."""

        with self._guard:
            lock = self._locks.get(asset_id)
        if lock is None:
            raise UnknownAssetError(f"dry-run BMC could not find server {asset_id}")
        with lock:
            server = self._servers[asset_id]
            _resolve(server, self._clock())
            yield server


def _value(member: object) -> str:
    return str(member.value) if isinstance(member, Enum) else str(member)


def _resolve(server: SimulatedServer, now: datetime) -> None:
    if server.power_status not in _IN_TRANSITION:
        return
    if now <= server.transition_due:
        return
    server.power_status = PowerState.ON.value
    if not server.persistent:
        server.boot_device = server.previous_boot_device


DEFAULT_REGISTRY = SimulatedServerRegistry()


class SimulatedBmcSession:
    """BMC session backed by the simulated server registry."""

    def __init__(self, asset: Asset, *, registry: SimulatedServerRegistry | None = None) -> None:
        self.asset_id = str(asset.id)
        self._registry = registry or DEFAULT_REGISTRY
        self._registry.ensure(self.asset_id)

    def open(self) -> None:
        logger.debug("Dry-run BMC session opened for %s", self.asset_id)

    def close(self) -> None:
        logger.debug("Dry-run BMC session closed for %s", self.asset_id)

    def get_power_state(self) -> str:
        with self._registry.locked(self.asset_id) as server:
            return server.power_status

    def set_power_state(self, state: str) -> None:
        state = _value(state)
        now = self._registry.now()
        with self._registry.locked(self.asset_id) as server:
            if state in _TRANSITIONS:
                status, delay = _TRANSITIONS[state]
                server.power_status = status
                server.transition_due = now + delay
            elif state in _SETTLED:
                server.power_status = state
                server.transition_due = now
            else:
                raise BmcError(f"dry-run BMC does not support power state {state!r}")

    def get_boot_device(self) -> tuple[str, bool, bool]:
        with self._registry.locked(self.asset_id) as server:
            if server.power_status != PowerState.ON.value:
                raise OfflineError("dry-run BMC could not get boot device, server is not on")
            return server.boot_device, server.persistent, server.efi_boot

    def set_boot_device(self, device: str, *, persistent: bool, efi_boot: bool) -> None:
        with self._registry.locked(self.asset_id) as server:
            if server.power_status != PowerState.ON.value:
                raise OfflineError("dry-run BMC could not set boot device, server is not on")
            server.previous_boot_device = server.boot_device
            server.boot_device = _value(device)
            server.persistent = persistent
            server.efi_boot = efi_boot

    def power_cycle_bmc(self) -> None:
        logger.info("Dry-run BMC power cycle requested for %s", self.asset_id)

    def host_booted(self) -> bool:
        with self._registry.locked(self.asset_id) as server:
            return server.power_status == PowerState.ON.value

    def reset_bios_config(self) -> None:
        now = self._registry.now()
        with self._registry.locked(self.asset_id) as server:
            defaults = default_server(now)
            server.power_status = PowerState.CYCLING.value
            server.boot_device = defaults.boot_device
            server.previous_boot_device = defaults.previous_boot_device
            server.persistent = defaults.persistent
            server.efi_boot = defaults.efi_boot
            server.bios_config = None
            server.transition_due = now + CYCLE_DELAY

    def set_bios_config_from_file(self, content: str) -> None:
        if not content.strip():
            raise BmcError("dry-run BMC received an empty BIOS config")
        with self._registry.locked(self.asset_id) as server:
            server.bios_config = content
