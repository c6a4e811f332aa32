"""Select the asset store backing a worker."""

from __future__ import annotations

import logging

from bioscfg.config import InventorySettings
from bioscfg.inventory.base import AssetStore
from bioscfg.inventory.fleetdb import FleetDbStore
from bioscfg.inventory.static import StaticAssetStore

logger = logging.getLogger(__name__)


def new_asset_store(settings: InventorySettings) -> AssetStore | None:
    """Return the configured store, or ``None`` when tasks carry their own server record.

    An inventory file takes precedence over FleetDB.
    """

    if settings.inventory_file is not None:
        logger.info("Using static inventory from %s", settings.inventory_file)
        return StaticAssetStore.from_file(settings.inventory_file)
    if settings.fleetdb_url:
        logger.info("Using FleetDB inventory at %s", settings.fleetdb_url)
        return FleetDbStore(settings)
    return None
