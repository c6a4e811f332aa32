"""Runtime configuration for the BIOS configuration worker."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from bioscfg.errors import ConfigurationError


@dataclass(slots=True)
class InventorySettings:
    """Asset inventory settings."""

    fleetdb_url: str = ""
    fleetdb_token: str = ""
    timeout_seconds: float = 30.0
    inventory_file: Path | None = None


@dataclass(slots=True)
class BmcSettings:
    """BMC connection settings."""

    verify_tls: bool = False


@dataclass(slots=True)
class HttpSettings:
    """Outbound HTTP settings for BIOS config downloads."""

    timeout_seconds: float = 30.0
    max_retries: int = 3


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    facility_code: str = ""
    log_level: str = "info"
    dry_run: bool = False
    concurrency: int = 1
    inventory: InventorySettings = field(default_factory=InventorySettings)
    bmc: BmcSettings = field(default_factory=BmcSettings)
    http: HttpSettings = field(default_factory=HttpSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults for local development."""

        inventory_file = os.getenv("BIOSCFG_INVENTORY_FILE", "").strip()
        return cls(
            facility_code=os.getenv("BIOSCFG_FACILITY_CODE", "").strip(),
            log_level=os.getenv("BIOSCFG_LOG_LEVEL", "info").strip().lower() or "info",
            dry_run=_env_bool("BIOSCFG_DRY_RUN", default=False),
            concurrency=_env_int("BIOSCFG_CONCURRENCY", default=1),
            inventory=InventorySettings(
                fleetdb_url=os.getenv("BIOSCFG_FLEETDB_URL", "").strip(),
                fleetdb_token=os.getenv("BIOSCFG_FLEETDB_TOKEN", ""),
                timeout_seconds=_env_float("BIOSCFG_FLEETDB_TIMEOUT_SECONDS", default=30.0),
                inventory_file=Path(inventory_file) if inventory_file else None,
            ),
            bmc=BmcSettings(
                verify_tls=_env_bool("BIOSCFG_BMC_VERIFY_TLS", default=False),
            ),
            http=HttpSettings(
                timeout_seconds=_env_float("BIOSCFG_HTTP_TIMEOUT_SECONDS", default=30.0),
                max_retries=_env_int("BIOSCFG_HTTP_MAX_RETRIES", default=3),
            ),
        )

    def validate(self) -> None:
        """Raise ``ConfigurationError`` when settings cannot drive a worker."""

        if not self.facility_code and not self.dry_run:
            raise ConfigurationError("BIOSCFG_FACILITY_CODE is required outside dry-run mode.")
        if self.concurrency <= 0:
            raise ConfigurationError("BIOSCFG_CONCURRENCY must be > 0.")
        if self.inventory.timeout_seconds <= 0:
            raise ConfigurationError("BIOSCFG_FLEETDB_TIMEOUT_SECONDS must be > 0.")
        if self.http.max_retries < 0:
            raise ConfigurationError("BIOSCFG_HTTP_MAX_RETRIES must be >= 0.")
        if self.inventory.fleetdb_url:
            parsed = urlparse(self.inventory.fleetdb_url)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                raise ConfigurationError(
                    "Invalid BIOSCFG_FLEETDB_URL: "
                    f"{self.inventory.fleetdb_url!r}. Expected an absolute http(s) URL.",
                )


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"Invalid boolean value for {name}: {value!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ConfigurationError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ConfigurationError(f"Invalid number value for {name}: {value!r}") from error
