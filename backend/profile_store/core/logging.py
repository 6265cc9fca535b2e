"""
Logging setup shared by the CLI and library entry points.
"""
import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging with the bootstrap format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )
    # pymongo is chatty at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)
