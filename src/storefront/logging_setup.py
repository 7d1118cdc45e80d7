"""
Logging configuration for the checkout service

JSON lines in deployed environments, plain text for local development.
"""
import logging
import sys
from typing import IO, Optional

from pythonjsonlogger.json import JsonFormatter

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that are chatty at INFO
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "opentelemetry")


def build_formatter(service_name: str, environment: str, log_format: str) -> logging.Formatter:
    if log_format.lower() != "json":
        return logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    formatter = JsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        rename_fields={
            "asctime": "timestamp",
            "name": "logger",
            "levelname": "level"
        },
        static_fields={"service": service_name, "environment": environment}
    )
    formatter.default_time_format = "%Y-%m-%dT%H:%M:%S"
    formatter.default_msec_format = "%s.%03dZ"
    return formatter


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    environment: str = "dev",
    stream: Optional[IO[str]] = None
) -> logging.Logger:
    """
    Configure the root logger with a single handler

    Args:
        service_name: Stamped on every JSON record
        log_level: DEBUG, INFO, WARNING or ERROR
        log_format: json or text
        environment: Stamped on every JSON record
        stream: Output stream, stdout by default
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(build_formatter(service_name, environment, log_format))
    root.addHandler(handler)

    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root.info(f"Logging initialized for {service_name} at level {log_level.upper()}")
    return root
