"""Asset lookup interface."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from bioscfg.models import Asset


class AssetStore(Protocol):
    """Resolve a server record by ID; raise ``AssetLookupError`` on failure."""

    def asset_by_id(self, asset_id: UUID) -> Asset:
        """Return a fresh asset snapshot for ``asset_id``, owned by the caller."""
