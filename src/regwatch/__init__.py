"""
RegWatch - polite regulatory document crawling and ingestion.

Crawls regulator websites under robots.txt and rate-limit constraints,
turns each fetched page into a structured regulation record plus
embedded content chunks, and serves hybrid semantic/keyword search
over the result.
"""

from regwatch.config import Settings, load_config
from regwatch.utils.logging import setup_logging, get_logger
from regwatch.core.exceptions import RegWatchError

__version__ = "0.1.0"
__author__ = "RegWatch Team"

__all__ = [
    "Settings",
    "load_config",
    "setup_logging",
    "get_logger",
    "RegWatchError",
]
