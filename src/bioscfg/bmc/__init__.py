"""BMC session implementations."""

from bioscfg.bmc.base import BmcError, BmcSession, OfflineError, UnknownAssetError
from bioscfg.bmc.factory import new_bmc_session
from bioscfg.bmc.live import LiveBmcSession
from bioscfg.bmc.simulated import SimulatedBmcSession, SimulatedServerRegistry

__all__ = [
    "BmcError",
    "BmcSession",
    "LiveBmcSession",
    "OfflineError",
    "SimulatedBmcSession",
    "SimulatedServerRegistry",
    "UnknownAssetError",
    "new_bmc_session",
]
