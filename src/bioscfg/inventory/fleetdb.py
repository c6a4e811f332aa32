"""FleetDB inventory client."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import httpx

from bioscfg.config import InventorySettings
from bioscfg.errors import AssetLookupError
from bioscfg.models import Asset

logger = logging.getLogger(__name__)

BMC_ATTRIBUTE_NS = "sh.hollow.bmc_info"
BMC_ADDRESS_ATTRIBUTE_KEY = "address"
SERVER_VENDOR_ATTRIBUTE_NS = "sh.hollow.bioscfg.server_vendor_attributes"
SERVER_VENDOR_ATTRIBUTE_KEY = "vendor"
SERVER_MODEL_ATTRIBUTE_KEY = "model"
SERVER_SERIAL_ATTRIBUTE_KEY = "serial"


class FleetDbStore:
    """Resolve assets and their BMC credentials from FleetDB."""

    def __init__(
        self,
        settings: InventorySettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if settings.fleetdb_token:
            headers["Authorization"] = f"Bearer {settings.fleetdb_token}"
        self._client = httpx.Client(
            base_url=settings.fleetdb_url,
            headers=headers,
            timeout=httpx.Timeout(settings.timeout_seconds, connect=10.0),
            transport=transport,
        )

    def asset_by_id(self, asset_id: UUID) -> Asset:
        server = self._get_record(f"/api/v1/servers/{asset_id}", asset_id)
        credentials = self._get_record(f"/api/v1/servers/{asset_id}/credentials/bmc", asset_id)

        attributes = _attributes_by_namespace(server.get("attributes") or [])
        bmc_info = attributes.get(BMC_ATTRIBUTE_NS, {})
        vendor_info = attributes.get(SERVER_VENDOR_ATTRIBUTE_NS, {})

        address = bmc_info.get(BMC_ADDRESS_ATTRIBUTE_KEY, "")
        if not address:
            raise AssetLookupError(f"asset {asset_id} has no BMC address")

        return Asset(
            id=asset_id,
            bmc_address=str(address),
            bmc_username=str(credentials.get("username", "")),
            bmc_password=str(credentials.get("password", "")),
            vendor=str(vendor_info.get(SERVER_VENDOR_ATTRIBUTE_KEY, "")),
            model=str(vendor_info.get(SERVER_MODEL_ATTRIBUTE_KEY, "")),
            serial=str(vendor_info.get(SERVER_SERIAL_ATTRIBUTE_KEY, "")),
            facility_code=str(server.get("facility", "")),
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> FleetDbStore:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _get_record(self, path: str, asset_id: UUID) -> dict[str, Any]:
        try:
            response = self._client.get(path)
        except httpx.HTTPError as error:
            logger.warning("FleetDB request %s failed: %s", path, error)
            raise AssetLookupError(f"fleetdb query for {asset_id} failed: {error}") from error

        if response.status_code == httpx.codes.NOT_FOUND:
            raise AssetLookupError(f"asset {asset_id} not found in fleetdb")
        if not response.is_success:
            raise AssetLookupError(
                f"fleetdb query for {asset_id} returned {response.status_code}",
            )
        try:
            payload = response.json()
        except ValueError as error:
            raise AssetLookupError(f"fleetdb returned invalid JSON for {asset_id}") from error
        record = payload.get("record") if isinstance(payload, dict) else None
        if not isinstance(record, dict):
            raise AssetLookupError(f"fleetdb response for {asset_id} has no record")
        return record


def _attributes_by_namespace(items: list[Any]) -> dict[str, dict[str, Any]]:
    attributes: dict[str, dict[str, Any]] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        namespace = item.get("namespace")
        data = item.get("data")
        if isinstance(namespace, str) and isinstance(data, dict):
            attributes[namespace] = data
    return attributes
