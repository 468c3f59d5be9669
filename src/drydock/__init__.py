"""
Drydock: disposable PostgreSQL containers for tests

Starts a PostgreSQL container on a free port, waits until it accepts
connections and hands out freshly created databases.
"""

__version__ = "0.2.0"
__author__ = "Drydock Contributors"

from .config import DrydockSettings, InstanceConfig, load_config
from .errors import (
    ContainerEngineError,
    DatabaseProvisioningError,
    DrydockError,
    ReadinessTimeoutError,
    ResourceAllocationError,
)
from .instance import Drydock
from .logging_config import setup_logging

__all__ = [
    "Drydock",
    "DrydockSettings",
    "InstanceConfig",
    "load_config",
    "setup_logging",
    "DrydockError",
    "ContainerEngineError",
    "DatabaseProvisioningError",
    "ReadinessTimeoutError",
    "ResourceAllocationError",
]
