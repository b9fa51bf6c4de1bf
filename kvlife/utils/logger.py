"""
Logging configuration for kvlife.

Provides a centralized logger that can be configured via environment variables.
Lines carry the thread name, so output from each background loop is tagged with
the loop it came from (session-reaper, row-cache-scheduler, ...).
"""
import logging
import os
import sys

# Get log level from environment variable (default: INFO)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logger = logging.getLogger("kvlife")
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s [%(threadName)s] - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

# Loop threads log here only, never through the root logger; each loop thread
# is named after its loop (see BackgroundLoop.start)
logger.propagate = False


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Optional name for the logger (will be appended to 'kvlife')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"kvlife.{name}")
    return logger
