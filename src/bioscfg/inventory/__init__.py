"""Asset inventory lookup."""

from bioscfg.inventory.base import AssetStore
from bioscfg.inventory.factory import new_asset_store
from bioscfg.inventory.fleetdb import FleetDbStore
from bioscfg.inventory.static import StaticAssetStore

__all__ = ["AssetStore", "FleetDbStore", "StaticAssetStore", "new_asset_store"]
