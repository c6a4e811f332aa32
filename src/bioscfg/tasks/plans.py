"""Ordered step plans for each BIOS control action."""

from __future__ import annotations

from dataclasses import dataclass

from bioscfg.errors import UnsupportedActionError
from bioscfg.http.fetcher import HttpFetcher
from bioscfg.models import Asset, BiosControlAction, BiosControlTaskParameters
from bioscfg.tasks.steps import (
    BiosResetStep,
    FetchBiosConfigStep,
    FetcherFactory,
    GetServerPowerStateStep,
    ServerRebootStep,
    SetBiosConfigStep,
    Step,
)


@dataclass(slots=True)
class TaskPlan:
    """Named, ordered list of steps to run against one asset."""

    name: str
    asset: Asset
    steps: list[Step]


def build_plan(
    parameters: BiosControlTaskParameters,
    asset: Asset,
    *,
    fetcher_factory: FetcherFactory = HttpFetcher,
) -> TaskPlan:
    """Resolve the step plan for ``parameters.action``."""

    if parameters.action == BiosControlAction.RESET_CONFIG:
        return TaskPlan(
            name="BiosResetSettings",
            asset=asset,
            steps=[GetServerPowerStateStep(), BiosResetStep(), ServerRebootStep()],
        )
    if parameters.action == BiosControlAction.SET_CONFIG:
        return TaskPlan(
            name="BiosSetSettings",
            asset=asset,
            steps=[
                FetchBiosConfigStep(parameters.bios_config_url, fetcher_factory=fetcher_factory),
                SetBiosConfigStep(),
            ],
        )
    raise UnsupportedActionError(f"unsupported action: {parameters.action}")
