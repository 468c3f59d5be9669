"""
pytest fixtures for Drydock

Registered through the pytest11 entry point. One PostgreSQL container is
started per test session; every test that asks for drydock_db gets its own
freshly created database.
"""

import logging
from typing import Generator

import pytest

from .config import DrydockSettings
from .container_engine import create_engine
from .instance import Drydock

logger = logging.getLogger(__name__)


def pytest_addoption(parser):
    group = parser.getgroup("drydock")
    group.addoption(
        "--drydock-image",
        action="store",
        default=None,
        help="PostgreSQL image for the drydock fixtures (default: DRYDOCK_DEFAULT_IMAGE or postgres:13)",
    )


@pytest.fixture(scope="session")
def drydock_settings() -> DrydockSettings:
    """Drydock settings loaded from the environment."""
    return DrydockSettings()


@pytest.fixture(scope="session")
def drydock_instance(request, drydock_settings: DrydockSettings) -> Generator[Drydock, None, None]:
    """A started PostgreSQL instance shared by the whole session."""
    engine = create_engine(drydock_settings)
    if not engine.is_available():
        pytest.skip(f"{drydock_settings.container_runtime} is not available")

    image = request.config.getoption("--drydock-image") or drydock_settings.default_image
    dd = Drydock.new(image, settings=drydock_settings, engine=engine)
    try:
        dd.start()
        yield dd
    finally:
        dd.terminate()


@pytest.fixture
def drydock_db(drydock_instance: Drydock):
    """A connection to a database created just for this test."""
    conn = drydock_instance.new_connection()
    try:
        yield conn
    finally:
        conn.close()
