"""BMC session capability shared by the live and simulated backends."""

from __future__ import annotations

from typing import Protocol

from bioscfg.errors import BiosCfgError


class BmcError(BiosCfgError):
    """BMC call failed."""


class OfflineError(BmcError):
    """Operation requires the server to be powered on."""


class UnknownAssetError(BmcError):
    """No BMC state exists for the requested asset."""


class BmcSession(Protocol):
    """Scoped session with one server's management controller.

    ``open`` must succeed before any other call and ``close`` must be called
    exactly once afterwards. A session belongs to a single task and is not
    reused after ``close``.
    """

    def open(self) -> None:
        """Acquire the BMC session."""

    def close(self) -> None:
        """Release the BMC session."""

    def get_power_state(self) -> str:
        """Return the current power state, for example ``on`` or ``off``."""

    def set_power_state(self, state: str) -> None:
        """Request a power state change (``on``, ``off``, ``reset``, ``cycle``)."""

    def get_boot_device(self) -> tuple[str, bool, bool]:
        """Return ``(device, persistent, efi_boot)``."""

    def set_boot_device(self, device: str, *, persistent: bool, efi_boot: bool) -> None:
        """Set the next boot device."""

    def power_cycle_bmc(self) -> None:
        """Restart the management controller itself."""

    def host_booted(self) -> bool:
        """Report whether the host has booted."""

    def reset_bios_config(self) -> None:
        """Reset BIOS settings to vendor defaults."""

    def set_bios_config_from_file(self, content: str) -> None:
        """Apply a BIOS configuration document verbatim."""
