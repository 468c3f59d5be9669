"""
Database operations for Drydock

Builds connection strings for a running instance and provisions fresh,
uniquely named databases inside it.
"""

import logging
import re
from typing import Optional
from urllib.parse import quote, quote_plus

import psycopg2
from psycopg2.extensions import make_dsn

from .errors import DatabaseProvisioningError, InvalidDatabaseNameError

logger = logging.getLogger(__name__)

# Unquoted PostgreSQL identifier, at most NAMEDATALEN - 1 bytes
DATABASE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


class DatabaseEndpoint:
    """Connection parameters for the PostgreSQL server of an instance."""

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        sslmode: str = "disable",
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sslmode = sslmode

    def dsn(self, dbname: Optional[str] = None) -> str:
        """
        libpq keyword/value connection string.

        Without a database name the connection goes to the server's
        default database, which is what administrative connections use.
        Values containing spaces or quotes are quoted for libpq.
        """
        return make_dsn(
            host=self.host,
            user=self.user,
            dbname=dbname or None,
            port=self.port,
            password=self.password,
            sslmode=self.sslmode,
        )

    def url(self, dbname: Optional[str] = None) -> str:
        """postgresql:// URL form of the connection parameters."""
        path = quote(dbname, safe="") if dbname else ""
        return (
            f"postgresql://{quote(self.user, safe='')}:{quote(self.password, safe='')}"
            f"@{self.host}:{self.port}/{path}?sslmode={self.sslmode}"
        )

    def jdbc_url(self, dbname: str) -> str:
        """JDBC connection string for Java clients."""
        return (
            f"jdbc:postgresql://{self.host}:{self.port}/{quote_plus(dbname)}"
            f"?user={self.user}&password={quote_plus(self.password)}"
        )

    def get_masked_url(self, dbname: Optional[str] = None) -> str:
        """Get URL with masked password."""
        return self.url(dbname).replace(f":{quote(self.password, safe='')}@", ":***@")

    def __repr__(self) -> str:
        return f"DatabaseEndpoint(host={self.host!r}, port={self.port}, user={self.user!r})"


class DatabaseProvisioner:
    """Creates databases inside a running instance and connects to them."""

    def __init__(
        self,
        endpoint: DatabaseEndpoint,
        strict_names: bool = True,
        connect_timeout: Optional[int] = None,
    ):
        self.endpoint = endpoint
        self.strict_names = strict_names
        self.connect_timeout = connect_timeout

    def validate_name(self, name: str) -> str:
        """
        Check a database name before it is interpolated into SQL.

        CREATE DATABASE takes the name as a bare identifier. With
        strict_names disabled any string is passed through unchanged.
        """
        if not name:
            raise InvalidDatabaseNameError("Database name can't be empty")
        if self.strict_names and not DATABASE_NAME_PATTERN.match(name):
            raise InvalidDatabaseNameError(
                f"Invalid database name {name!r}: must match {DATABASE_NAME_PATTERN.pattern}"
            )
        return name

    def connect(self, dbname: Optional[str] = None):
        """Open a connection to a database (the default database when None)."""
        kwargs = {}
        if self.connect_timeout:
            kwargs["connect_timeout"] = self.connect_timeout
        return psycopg2.connect(self.endpoint.dsn(dbname), **kwargs)

    def create(self, name: str) -> None:
        """
        Create a database over a short-lived administrative connection.

        The administrative connection is closed whether or not creation
        succeeds. An error while closing it is raised only when creation
        succeeded; otherwise it is logged and the creation error is raised.
        """
        self.validate_name(name)
        logger.debug(f"Creating database {name} on port {self.endpoint.port}")

        try:
            admin = self.connect()
        except psycopg2.Error as e:
            raise DatabaseProvisioningError(
                f"Failed to connect to PostgreSQL on port {self.endpoint.port}: {e}"
            ) from e

        try:
            admin.autocommit = True  # CREATE DATABASE can't run inside a transaction
            with admin.cursor() as cursor:
                cursor.execute("CREATE DATABASE " + name)
        except psycopg2.Error as e:
            try:
                admin.close()
            except psycopg2.Error as close_error:
                logger.warning(f"Error closing administrative connection: {close_error}")
            raise DatabaseProvisioningError(f"Failed to create database {name}: {e}") from e

        admin.close()
        logger.info(f"Created database {name}")

    def create_database(self, name: str):
        """
        Create a database and return a connection scoped to it.

        Args:
            name: Name of the new database

        Returns:
            psycopg2 connection to the new database

        Raises:
            InvalidDatabaseNameError: If the name is rejected
            DatabaseProvisioningError: If any step fails
        """
        self.create(name)

        try:
            return self.connect(name)
        except psycopg2.Error as e:
            raise DatabaseProvisioningError(f"Failed to connect to database {name}: {e}") from e
