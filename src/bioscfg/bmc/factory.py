"""Select the BMC session variant for an asset."""

from __future__ import annotations

import logging

from bioscfg.bmc.base import BmcSession
from bioscfg.bmc.live import LiveBmcSession, redfish_client_factory
from bioscfg.bmc.simulated import SimulatedBmcSession, SimulatedServerRegistry
from bioscfg.config import BmcSettings
from bioscfg.models import Asset

logger = logging.getLogger(__name__)


def new_bmc_session(
    asset: Asset,
    *,
    dry_run: bool,
    settings: BmcSettings | None = None,
    registry: SimulatedServerRegistry | None = None,
) -> BmcSession:
    """Create a fresh session; each task gets its own instance."""

    if dry_run:
        logger.warning("Running BMC in dry-run mode", extra=asset.log_fields())
        return SimulatedBmcSession(asset, registry=registry)

    bmc_settings = settings or BmcSettings()
    return LiveBmcSession(
        asset,
        client_factory=redfish_client_factory(verify_tls=bmc_settings.verify_tls),
    )
