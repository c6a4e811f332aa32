"""Units of work that make up a BIOS control task."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from bioscfg.bmc.base import BmcSession
from bioscfg.errors import ConfigFetchError, StepExecutionError
from bioscfg.http.fetcher import HttpFetcher
from bioscfg.models import PowerState

logger = logging.getLogger(__name__)

FetcherFactory = Callable[[], HttpFetcher]


@dataclass(slots=True)
class StepContext:
    """Values passed from earlier steps to later ones within one task run."""

    current_power_state: str | None = None
    bios_config: str | None = None

    def require_power_state(self) -> str:
        if self.current_power_state is None:
            raise StepExecutionError("missing power state")
        return self.current_power_state

    def require_bios_config(self) -> str:
        if self.bios_config is None:
            raise StepExecutionError("missing BIOS config")
        return self.bios_config


class Step(Protocol):
    """One ordered unit of work; returns a human-readable detail."""

    name: str

    def run(self, session: BmcSession, context: StepContext) -> str: ...


class GetServerPowerStateStep:
    """Capture the current power state for later steps."""

    name = "GetServerPowerState"

    def run(self, session: BmcSession, context: StepContext) -> str:
        state = session.get_power_state()
        context.current_power_state = state
        return f"Current power state: {state}"


class BiosResetStep:
    name = "BiosReset"

    def run(self, session: BmcSession, context: StepContext) -> str:  # noqa: ARG002
        session.reset_bios_config()
        return "BIOS settings reset"


class ServerRebootStep:
    """Reboot the server only if it was on when the task started."""

    name = "ServerReboot"

    def run(self, session: BmcSession, context: StepContext) -> str:
        power_state = context.require_power_state()
        if power_state != PowerState.ON.value:
            logger.info("Skipping server reboot, power state %s", power_state)
            return "Reboot not required"

        logger.info("Rebooting server, power state %s", power_state)
        session.set_power_state(PowerState.RESET.value)
        return "Rebooting server"


class FetchBiosConfigStep:
    """Download the BIOS config document before any BMC mutation."""

    name = "FetchBiosConfig"

    def __init__(self, url: str | None, *, fetcher_factory: FetcherFactory = HttpFetcher) -> None:
        self.url = url
        self._fetcher_factory = fetcher_factory

    def run(self, session: BmcSession, context: StepContext) -> str:  # noqa: ARG002
        if not self.url:
            raise ConfigFetchError("no BIOS config URL")

        with self._fetcher_factory() as fetcher:
            result = fetcher.fetch(self.url)
        if not result.is_success:
            raise ConfigFetchError(result.error or "failed to get BIOS config from url")

        context.bios_config = result.content
        return "Got BIOS config from url"


class SetBiosConfigStep:
    name = "SetBiosConfig"

    def run(self, session: BmcSession, context: StepContext) -> str:
        session.set_bios_config_from_file(context.require_bios_config())
        return "BIOS config set"
