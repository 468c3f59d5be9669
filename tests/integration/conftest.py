"""
Integration test configuration for Drydock.

These tests start real PostgreSQL containers and are skipped when no
container runtime is available.
"""

import logging
from typing import Generator

import pytest

from drydock.config import DrydockSettings
from drydock.container_engine import create_engine
from drydock.instance import Drydock
from drydock.logging_config import setup_logging

logger = logging.getLogger(__name__)


@pytest.fixture(scope="session")
def integration_settings() -> DrydockSettings:
    """Settings from the environment with a generous readiness deadline."""
    settings = DrydockSettings()
    if settings.readiness_timeout < 60:
        settings = settings.model_copy(update={"readiness_timeout": 60.0})
    setup_logging(verbose=settings.verbose, log_level=settings.log_level)
    return settings


@pytest.fixture(scope="session")
def require_runtime(integration_settings: DrydockSettings) -> None:
    """Skip when docker (or podman) isn't usable."""
    engine = create_engine(integration_settings)
    if not engine.is_available():
        pytest.skip(f"{integration_settings.container_runtime} is not available")


@pytest.fixture(scope="module")
def running_instance(
    require_runtime, integration_settings: DrydockSettings
) -> Generator[Drydock, None, None]:
    """One started instance shared by a test module."""
    dd = Drydock.new(integration_settings.default_image, settings=integration_settings)
    try:
        dd.start()
        logger.info(f"Integration instance ready: {dd!r}")
        yield dd
    finally:
        dd.terminate()
