"""
Disposable PostgreSQL instances for tests.

A Drydock instance allocates a working directory, a host port and a
password when constructed, starts a PostgreSQL container on start(), hands
out freshly created databases, and removes everything on terminate().

    dd = Drydock.new("postgres:13")
    try:
        dd.start()
        conn = dd.new_connection()
        ...
    finally:
        dd.terminate()
"""

import logging
import tempfile
from typing import List, Optional

from .config import DrydockSettings, InstanceConfig
from .container_engine import ContainerEngine, create_engine
from .container_management import (
    ContainerOrchestrator,
    ImageProvisioner,
    TeardownController,
)
from .container_runtime import Probe, ReadinessProber, postgres_probe
from .database_operations import DatabaseEndpoint, DatabaseProvisioner
from .errors import (
    DatabaseProvisioningError,
    InstanceStateError,
    ReadinessTimeoutError,
    ResourceAllocationError,
)
from .identifiers import IdentifierGenerator, default_generator
from .models import InstanceState, ReadinessResult, TeardownResult
from .port_allocator import PortAllocator

logger = logging.getLogger(__name__)


class Drydock:
    """One isolated PostgreSQL container and its local working state."""

    def __init__(
        self,
        config: InstanceConfig,
        settings: Optional[DrydockSettings] = None,
        engine: Optional[ContainerEngine] = None,
        identifiers: Optional[IdentifierGenerator] = None,
        port_allocator: Optional[PortAllocator] = None,
        probe: Optional[Probe] = None,
        prober: Optional[ReadinessProber] = None,
    ):
        """
        Allocate the working directory, port and password for an instance.

        Args:
            config: Image plus optional fixed port and password
            settings: Drydock settings (loaded from the environment when None)
            engine: Container engine (CLI engine from settings when None)
            identifiers: Token generator (process-wide generator when None)
            port_allocator: Port allocator (loopback allocator when None)
            probe: Readiness probe (libpq connection probe when None)
            prober: Fully configured readiness prober, overrides probe

        Raises:
            ResourceAllocationError: If the directory or port can't be allocated
        """
        self.settings = settings or DrydockSettings()
        self.config = config
        self.image = config.image
        self.identifiers = identifiers or default_generator()
        self.port_allocator = port_allocator or PortAllocator()
        self.engine = engine or create_engine(self.settings)

        try:
            self.data_dir = tempfile.mkdtemp(prefix=self.settings.work_dir_prefix)
        except OSError as e:
            raise ResourceAllocationError(f"Failed to create working directory: {e}") from e

        try:
            if config.port is None:
                self.port = self.port_allocator.allocate()
            else:
                self.port_allocator.reserve(config.port)
                self.port = config.port
                if not self.port_allocator.is_port_available(self.port):
                    logger.warning(f"Port {self.port} may be in use")
        except ResourceAllocationError:
            TeardownController.remove_directory(self.data_dir)
            raise

        self.password = config.password or self.identifiers.generate()
        self.endpoint = DatabaseEndpoint(
            host=self.settings.host,
            port=self.port,
            user=self.settings.superuser,
            password=self.password,
            sslmode=self.settings.sslmode,
        )

        self.state = InstanceState.CONSTRUCTED
        self.databases: List[str] = []
        self.readiness: Optional[ReadinessResult] = None
        self.teardown_result: Optional[TeardownResult] = None

        self._images = ImageProvisioner(self.engine)
        self._orchestrator = ContainerOrchestrator(self.engine, self.settings, self.identifiers)
        self._teardown = TeardownController(self.engine)
        self._databases = DatabaseProvisioner(
            self.endpoint,
            strict_names=self.settings.strict_database_names,
            connect_timeout=self.settings.connect_timeout,
        )
        self._prober = prober or ReadinessProber(
            probe or postgres_probe(self.endpoint.dsn(), self.settings.connect_timeout),
            timeout=self.settings.readiness_timeout,
            interval=self.settings.readiness_interval,
        )

        logger.debug(f"Constructed instance for {self.image} on port {self.port} in {self.data_dir}")

    @classmethod
    def new(cls, image: str, **kwargs) -> "Drydock":
        """Create an instance with a random password and a free port."""
        return cls(InstanceConfig.from_image(image), **kwargs)

    @classmethod
    def from_config(cls, config: InstanceConfig, **kwargs) -> "Drydock":
        """Create an instance from an explicit configuration."""
        return cls(config, **kwargs)

    @property
    def container_id(self) -> str:
        """Engine identifier of the container, empty until it is created."""
        return self._orchestrator.container_id

    @property
    def container_name(self) -> str:
        return self._orchestrator.container_name

    def start(self) -> "Drydock":
        """
        Start the instance.

        Pulls the image if it isn't available locally, creates and starts
        the container, then waits for PostgreSQL to accept connections.
        On failure the caller is expected to call terminate().

        Raises:
            ContainerEngineError: If listing, pulling, creating or starting fails
            ReadinessTimeoutError: If PostgreSQL isn't reachable before the deadline
            InstanceStateError: If the instance was already started or terminated
        """
        if self.state != InstanceState.CONSTRUCTED:
            raise InstanceStateError(f"Can't start an instance that is {self.state.value}")

        self._images.ensure_image(self.image)

        logger.info("Starting container for PostgreSQL")
        self._orchestrator.create(self.image, self.port, self.password, self.data_dir)

        endpoint = f"{self.settings.host}:{self.port}"
        self.readiness = self._prober.wait_ready(endpoint)
        if not self.readiness.passed:
            raise ReadinessTimeoutError(
                endpoint=endpoint,
                timeout=self._prober.timeout,
                attempts=self.readiness.attempts,
                last_error=self.readiness.last_error,
            )

        self.state = InstanceState.STARTED
        return self

    def new_database(self, name: Optional[str] = None) -> str:
        """
        Create a new database and return its name.

        Args:
            name: Database name (generated as db_<token> when None)
        """
        name = self._claim_database_name(name)
        self._databases.create(name)
        self.databases.append(name)
        return name

    def new_connection(self, name: Optional[str] = None):
        """
        Create a new database and return a psycopg2 connection to it.

        Args:
            name: Database name (generated as db_<token> when None)
        """
        name = self._claim_database_name(name)
        conn = self._databases.create_database(name)
        self.databases.append(name)
        return conn

    def connect(self, dbname: Optional[str] = None):
        """Connect to an existing database (the default database when None)."""
        return self._databases.connect(dbname)

    def _claim_database_name(self, name: Optional[str]) -> str:
        if self.state == InstanceState.TERMINATED:
            raise InstanceStateError("Can't create databases on a terminated instance")
        if name is None:
            name = f"db_{self.identifiers.generate()}"
        if name in self.databases:
            raise DatabaseProvisioningError(f"Database {name} was already provisioned")
        return name

    def dsn(self, dbname: Optional[str] = None) -> str:
        """libpq connection string for a database on this instance."""
        return self.endpoint.dsn(dbname)

    def database_url(self, dbname: Optional[str] = None) -> str:
        """postgresql:// URL for a database on this instance."""
        return self.endpoint.url(dbname)

    def jdbc_url(self, dbname: str) -> str:
        """JDBC connection string for a database on this instance."""
        return self.endpoint.jdbc_url(dbname)

    def terminate(self) -> TeardownResult:
        """
        Remove the container and the working directory.

        Safe to call more than once and before start(). Failures are logged,
        never raised.
        """
        if self.state == InstanceState.TERMINATED and self.teardown_result is not None:
            logger.debug("Instance already terminated")
            return self.teardown_result

        result = self._teardown.terminate(self.container_id, self.data_dir)
        self.port_allocator.release(self.port)
        self.engine.close()

        self.state = InstanceState.TERMINATED
        self.teardown_result = result
        logger.info(f"Shut down container for PostgreSQL: {result.get_summary()}")
        return result

    def __enter__(self) -> "Drydock":
        try:
            return self.start()
        except BaseException:
            self.terminate()
            raise

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.terminate()

    def __repr__(self) -> str:
        return (
            f"Drydock(image={self.image!r}, port={self.port}, "
            f"state={self.state.value}, container={self.container_id[:12] or None})"
        )
