"""Client for the zkey identity service used by the hosted login pages."""

from .client import (
    ActionResult,
    ZkeyActionError,
    ZkeyConfigurationError,
    ZkeyError,
    ZkeyServiceClient,
    ZkeyServiceUnavailableError,
)

__all__ = [
    "ActionResult",
    "ZkeyActionError",
    "ZkeyConfigurationError",
    "ZkeyError",
    "ZkeyServiceClient",
    "ZkeyServiceUnavailableError",
]
