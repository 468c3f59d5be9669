"""
Pytest configuration and fixtures for Drydock tests.

Provides common fixtures and test utilities across all test modules.
"""

import logging
import os
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from drydock.config import DrydockSettings
from drydock.identifiers import IdentifierGenerator
from drydock.port_allocator import PortAllocator

from .mock_containers import MockContainerEngine


@pytest.fixture(autouse=True)
def restore_root_log_level() -> Generator[None, None, None]:
    """Undo root logger level changes made by setup_logging during a test."""
    root = logging.getLogger()
    level = root.level

    yield

    root.setLevel(level)


@pytest.fixture
def isolated_test_env() -> Generator[dict[str, str], None, None]:
    """
    Create isolated test environment with clean environment variables.

    Yields:
        Dictionary of original environment variables
    """
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("DRYDOCK_"):
            del os.environ[key]

    yield original_env

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def test_config(isolated_test_env: dict[str, str]) -> DrydockSettings:
    """
    Create test configuration with safe defaults.

    Readiness polling is made fast so tests never wait on real deadlines.
    """
    return DrydockSettings(
        log_level="DEBUG",
        verbose=True,
        readiness_timeout=1.0,
        readiness_interval=0.0,
    )


@pytest.fixture
def temp_workspace() -> Generator[Path, None, None]:
    """
    Create temporary workspace directory for test files.

    Yields:
        Path to temporary workspace
    """
    temp_dir = tempfile.mkdtemp(prefix="drydock_workspace_")
    workspace = Path(temp_dir)

    yield workspace

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def mock_engine() -> MockContainerEngine:
    """In-memory container engine with the default image already present."""
    return MockContainerEngine(images=["postgres:13"])


@pytest.fixture
def identifiers() -> IdentifierGenerator:
    """Deterministic identifier generator."""
    return IdentifierGenerator(seed=1234)


@pytest.fixture
def port_allocator() -> Generator[PortAllocator, None, None]:
    """Port allocator whose reservations are released after the test."""
    allocator = PortAllocator()
    before = PortAllocator.reserved_ports()

    yield allocator

    for port in PortAllocator.reserved_ports() - before:
        allocator.release(port)


@pytest.fixture
def ready_probe():
    """Probe that always succeeds."""
    calls = []

    def probe() -> None:
        calls.append(1)

    probe.calls = calls
    return probe


# Pytest configuration
def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.container)
            item.add_marker(pytest.mark.database)
