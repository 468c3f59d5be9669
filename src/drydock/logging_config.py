"""
Logging configuration for Drydock

Provides console logging and optional file logging.
Container engine commands are recorded by a dedicated subprocess logger
with secrets masked.
"""

import logging
import logging.handlers
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional


def setup_logging(
    log_dir: Optional[str] = None,
    verbose: bool = False,
    log_level: Optional[str] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Set up logging for Drydock operations.

    Args:
        log_dir: Directory for log files (no file logging when None)
        verbose: Enable verbose console output
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        enable_file_logging: Whether to write logs to files

    Returns:
        Configured logger instance
    """
    if log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_path = Path(log_dir) if log_dir else None
    if enable_file_logging and log_path is not None:
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"drydock_{timestamp}.log"

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,  # 10MB files, 5 backups
        )
        file_handler.setLevel(logging.DEBUG)  # Always debug level for files
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger = logging.getLogger("drydock")
    logger.debug(f"Logging initialized - Level: {logging.getLevelName(level)}")
    if enable_file_logging and log_path is not None:
        logger.debug(f"Log directory: {log_path.absolute()}")

    return logger


def mask_sensitive_data(message: str) -> str:
    """
    Mask sensitive information in log messages.

    Args:
        message: Log message that may contain sensitive data

    Returns:
        Message with sensitive information masked
    """
    # Mask database URLs
    message = re.sub(
        r"(postgres(?:ql)?://[^:/@\s]+):([^@\s]+)@",
        r"\1:***@",
        message,
    )

    # Mask environment variables
    message = re.sub(r"POSTGRES_PASSWORD=[^\s]+", "POSTGRES_PASSWORD=***", message)

    # Mask password parameters (libpq keyword form, quoted or bare, and JDBC query form)
    message = re.sub(
        r"(?<![A-Z_])password=(?:'(?:[^'\\]|\\.)*'|[^\s&]+)",
        "password=***",
        message,
        flags=re.IGNORECASE,
    )

    return message


class SubprocessLogHandler:
    """
    Handler for container engine commands with dedicated logging.
    """

    def __init__(self, operation: str, log_dir: Optional[str] = None):
        """
        Initialize subprocess log handler.

        Args:
            operation: Name of the operation being logged
            log_dir: Directory for a per-operation log file (none when unset)
        """
        self.operation = operation
        self.log_file: Optional[str] = None
        self.logger = logging.getLogger(f"drydock.subprocess.{operation}")

        if log_dir:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file = Path(log_dir) / "containers" / f"{operation}_{timestamp}.log"
            log_file.parent.mkdir(parents=True, exist_ok=True)
            self.log_file = str(log_file)

            if not any(
                isinstance(h, logging.FileHandler) and h.baseFilename == str(log_file.absolute())
                for h in self.logger.handlers
            ):
                handler = logging.FileHandler(self.log_file)
                handler.setFormatter(
                    logging.Formatter(
                        "%(asctime)s - %(levelname)s - %(message)s",
                        datefmt="%Y-%m-%d %H:%M:%S",
                    )
                )
                self.logger.addHandler(handler)
            self.logger.setLevel(logging.DEBUG)

    def log_command(self, command: List[str]) -> None:
        """Log the command being executed."""
        masked_command = [mask_sensitive_data(arg) for arg in command]
        self.logger.debug(f"Executing command: {' '.join(masked_command)}")

    def log_output(self, output: str, level: int = logging.DEBUG) -> None:
        """Log subprocess output."""
        if output.strip():
            masked_output = mask_sensitive_data(output.strip())
            self.logger.log(level, masked_output)

    def log_completion(self, return_code: int, elapsed_time: float) -> None:
        """Log subprocess completion."""
        if return_code == 0:
            self.logger.debug(
                f"{self.operation} completed successfully in {elapsed_time:.2f}s"
            )
        else:
            self.logger.error(
                f"{self.operation} failed with return code {return_code} after {elapsed_time:.2f}s"
            )

    def get_log_file_path(self) -> Optional[str]:
        """Get the path to the log file for this operation."""
        return self.log_file


def configure_third_party_loggers() -> None:
    """Configure third-party library loggers to reduce noise."""
    logging.getLogger("psycopg2").setLevel(logging.WARNING)


configure_third_party_loggers()
