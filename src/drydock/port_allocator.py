"""
Port allocation for database containers.

Asks the operating system for a free loopback port and keeps a process-wide
record of ports handed out, so two instances in the same process never get
the same port while both are alive.
"""

import logging
import socket
import threading
from typing import Set

from .errors import ResourceAllocationError

logger = logging.getLogger(__name__)


class PortAllocator:
    """Hands out currently unused local TCP ports."""

    MAX_ATTEMPTS = 20

    _reserved: Set[int] = set()
    _lock = threading.Lock()

    def __init__(self, host: str = "127.0.0.1"):
        self.host = host

    def allocate(self) -> int:
        """
        Allocate a free port.

        The port was free when this returns; nothing stops another process
        from binding it before the container does.

        Raises:
            ResourceAllocationError: If no port could be obtained
        """
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            port = self._find_free_port()
            with self._lock:
                if port not in self._reserved:
                    self._reserved.add(port)
                    logger.debug(f"Allocated port {port} (attempt {attempt})")
                    return port
            logger.debug(f"Port {port} already reserved in this process, retrying")

        raise ResourceAllocationError(
            f"Could not allocate an unreserved port after {self.MAX_ATTEMPTS} attempts"
        )

    def reserve(self, port: int) -> None:
        """
        Record an explicitly chosen port as in use.

        Raises:
            ResourceAllocationError: If a live instance in this process holds the port
        """
        with self._lock:
            if port in self._reserved:
                raise ResourceAllocationError(
                    f"Port {port} is already reserved by another instance"
                )
            self._reserved.add(port)

    def release(self, port: int) -> None:
        """Return a port to the pool once its instance is gone."""
        with self._lock:
            self._reserved.discard(port)

    @classmethod
    def reserved_ports(cls) -> Set[int]:
        """Snapshot of the ports currently held by live instances."""
        with cls._lock:
            return set(cls._reserved)

    def _find_free_port(self) -> int:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.bind((self.host, 0))
                return sock.getsockname()[1]
        except OSError as e:
            raise ResourceAllocationError(f"Failed to allocate local port: {e}") from e

    def is_port_available(self, port: int) -> bool:
        """Check if nothing is listening on a port on this host."""
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.settimeout(1)
                result = sock.connect_ex((self.host, port))
                return result != 0  # Port is available if connection fails
        except OSError:
            return False
