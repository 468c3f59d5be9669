"""
Tests for image provisioning, container orchestration and teardown.

Uses the in-memory MockContainerEngine.
"""

import pytest

from drydock.container_management import (
    ContainerOrchestrator,
    ImageProvisioner,
    TeardownController,
)
from drydock.errors import (
    ContainerCreateError,
    ContainerEngineError,
    ContainerStartError,
    ImagePullError,
    InstanceStateError,
)
from drydock.identifiers import IdentifierGenerator

from .mock_containers import MockContainerEngine


class TestImageProvisioner:
    """Test ImageProvisioner."""

    def test_present_image_is_not_pulled(self):
        """Test an image already present locally is never pulled again."""
        engine = MockContainerEngine(images=["postgres:13"])
        provisioner = ImageProvisioner(engine)

        pulled = provisioner.ensure_image("postgres:13")

        assert pulled is False
        assert engine.pull_count == 0

    def test_missing_image_is_pulled(self):
        """Test a missing image is pulled once."""
        engine = MockContainerEngine(images=["postgres:12"])
        provisioner = ImageProvisioner(engine)

        pulled = provisioner.ensure_image("postgres:13")

        assert pulled is True
        assert engine.pull_count == 1
        assert provisioner.has_image("postgres:13")

    def test_second_ensure_does_not_pull(self):
        """Test a pulled image is found on the next check."""
        engine = MockContainerEngine()
        provisioner = ImageProvisioner(engine)

        provisioner.ensure_image("postgres:13")
        provisioner.ensure_image("postgres:13")

        assert engine.pull_count == 1

    def test_match_is_exact(self):
        """Test only an exact repository:tag match counts."""
        engine = MockContainerEngine(images=["docker.io/library/postgres:13", "postgres:13.4"])
        provisioner = ImageProvisioner(engine)

        assert provisioner.has_image("postgres:13") is False

    def test_list_failure_propagates(self):
        """Test listing errors are not swallowed."""
        engine = MockContainerEngine()
        engine.fail_list = True

        with pytest.raises(ContainerEngineError):
            ImageProvisioner(engine).ensure_image("postgres:13")

    def test_pull_failure_propagates(self):
        """Test pull errors are not swallowed."""
        engine = MockContainerEngine()
        engine.fail_pull = True

        with pytest.raises(ImagePullError):
            ImageProvisioner(engine).ensure_image("postgres:13")


class TestContainerOrchestrator:
    """Test ContainerOrchestrator."""

    @pytest.fixture
    def orchestrator(self, mock_engine, test_config):
        return ContainerOrchestrator(mock_engine, test_config, IdentifierGenerator(seed=1))

    def test_build_spec(self, orchestrator):
        """Test the spec carries password, data dir, port binding and a prefixed name."""
        spec = orchestrator.build_spec("postgres:13", 40100, "s3cret", "/tmp/dock42")

        assert spec.name.startswith("drydock-")
        assert len(spec.name) > len("drydock-")
        assert spec.image == "postgres:13"
        assert spec.environment == {"POSTGRES_PASSWORD": "s3cret", "PGDATA": "/tmp/dock42"}
        assert spec.port_bindings == {"5432/tcp": ("0.0.0.0", 40100)}
        assert spec.auto_remove is True
        assert spec.masked_environment()["POSTGRES_PASSWORD"] == "***"

    def test_container_names_are_unique(self, orchestrator):
        """Test each spec gets a fresh name."""
        names = {
            orchestrator.build_spec("postgres:13", 40100, "pw", "/tmp/x").name
            for _ in range(50)
        }
        assert len(names) == 50

    def test_create_starts_container(self, orchestrator, mock_engine):
        """Test create issues create followed by start and records the id."""
        container_id = orchestrator.create("postgres:13", 40100, "pw", "/tmp/dock1")

        assert container_id == orchestrator.container_id
        assert mock_engine.calls[-2:] == ["create_container", "start_container"]
        assert mock_engine.containers[container_id]["status"] == "running"

    def test_create_failure_leaves_no_id(self, orchestrator, mock_engine):
        """Test a failed create leaves the handle empty."""
        mock_engine.fail_create = True

        with pytest.raises(ContainerCreateError):
            orchestrator.create("postgres:13", 40100, "pw", "/tmp/dock1")

        assert orchestrator.container_id == ""

    def test_start_failure_keeps_id_for_teardown(self, orchestrator, mock_engine):
        """Test a failed start keeps the created container's id and removes nothing."""
        mock_engine.fail_start = True

        with pytest.raises(ContainerStartError):
            orchestrator.create("postgres:13", 40100, "pw", "/tmp/dock1")

        assert orchestrator.container_id in mock_engine.containers
        assert "remove_container" not in mock_engine.calls

    def test_create_twice_rejected(self, orchestrator):
        """Test the handle is only ever set once."""
        orchestrator.create("postgres:13", 40100, "pw", "/tmp/dock1")

        with pytest.raises(InstanceStateError):
            orchestrator.create("postgres:13", 40100, "pw", "/tmp/dock1")


class TestTeardownController:
    """Test TeardownController."""

    def test_terminate_removes_container_and_directory(self, mock_engine, test_config, temp_workspace):
        """Test both the container and the directory are removed."""
        data_dir = temp_workspace / "dock1"
        (data_dir / "nested").mkdir(parents=True)
        (data_dir / "nested" / "file").write_text("x")
        container_id = ContainerOrchestrator(mock_engine, test_config).create(
            "postgres:13", 40100, "pw", str(data_dir)
        )

        result = TeardownController(mock_engine).terminate(container_id, str(data_dir))

        assert result.clean
        assert result.container_removed
        assert result.directory_removed
        assert not data_dir.exists()
        assert container_id not in mock_engine.containers

    def test_empty_handle_skips_removal(self, mock_engine, temp_workspace):
        """Test an instance that never started only loses its directory."""
        data_dir = temp_workspace / "dock2"
        data_dir.mkdir()

        result = TeardownController(mock_engine).terminate("", str(data_dir))

        assert result.clean
        assert not result.container_removed
        assert "remove_container" not in mock_engine.calls
        assert not data_dir.exists()

    def test_removal_error_is_logged_not_raised(self, mock_engine, temp_workspace, caplog):
        """Test removal failures don't stop directory deletion."""
        mock_engine.fail_remove = True
        data_dir = temp_workspace / "dock3"
        data_dir.mkdir()

        result = TeardownController(mock_engine).terminate("deadbeef", str(data_dir))

        assert not result.clean
        assert not result.container_removed
        assert not data_dir.exists()
        assert "Error stopping container" in caplog.text

    def test_terminate_twice(self, mock_engine, test_config, temp_workspace):
        """Test a second teardown of the same container doesn't raise."""
        data_dir = temp_workspace / "dock4"
        data_dir.mkdir()
        container_id = ContainerOrchestrator(mock_engine, test_config).create(
            "postgres:13", 40100, "pw", str(data_dir)
        )
        controller = TeardownController(mock_engine)

        controller.terminate(container_id, str(data_dir))
        second = controller.terminate(container_id, str(data_dir))

        assert not second.container_removed
        assert not second.directory_removed

    def test_cleanup_orphans(self, mock_engine, test_config):
        """Test prefixed containers are removed and others left alone."""
        orchestrator = ContainerOrchestrator(mock_engine, test_config)
        orchestrator.create("postgres:13", 40100, "pw", "/tmp/a")
        other = ContainerOrchestrator(
            mock_engine, test_config.model_copy(update={"container_name_prefix": "other"})
        )
        other_id = other.create("postgres:13", 40101, "pw", "/tmp/b")

        removed = TeardownController(mock_engine).cleanup_orphans("drydock")

        assert removed == [orchestrator.container_name]
        assert list(mock_engine.containers) == [other_id]

    def test_cleanup_orphans_dry_run(self, mock_engine, test_config):
        """Test dry run lists without removing."""
        orchestrator = ContainerOrchestrator(mock_engine, test_config)
        container_id = orchestrator.create("postgres:13", 40100, "pw", "/tmp/a")

        removed = TeardownController(mock_engine).cleanup_orphans("drydock", dry_run=True)

        assert removed == [orchestrator.container_name]
        assert container_id in mock_engine.containers
