"""File-backed asset store for dry runs and local testing."""

from __future__ import annotations

import copy
import json
from collections.abc import Iterable
from pathlib import Path
from uuid import UUID

from bioscfg.contracts import asset_from_dict, load_json
from bioscfg.errors import AssetLookupError, ConfigurationError
from bioscfg.models import Asset


class StaticAssetStore:
    """Serve asset snapshots from an in-memory table."""

    def __init__(self, assets: Iterable[Asset] = ()) -> None:
        self._assets = {asset.id: asset for asset in assets}

    @classmethod
    def from_file(cls, path: Path) -> StaticAssetStore:
        """Load ``{"assets": [...]}`` or a bare list of asset objects."""

        try:
            raw = load_json(path)
        except (OSError, json.JSONDecodeError) as error:
            raise ConfigurationError(f"cannot read inventory file {path}: {error}") from error
        items = raw.get("assets") if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            raise ConfigurationError(f"inventory file {path} must contain a list of assets")
        try:
            return cls(asset_from_dict(item) for item in items)
        except (TypeError, ValueError) as error:
            raise ConfigurationError(f"invalid asset in {path}: {error}") from error

    def asset_by_id(self, asset_id: UUID) -> Asset:
        asset = self._assets.get(asset_id)
        if asset is None:
            raise AssetLookupError(f"asset {asset_id} not found in inventory")
        return copy.deepcopy(asset)
