"""
Observability — logging configuration for the importer process.
"""

from .logs import LOG_FILENAME, configure_logging

__all__ = ["LOG_FILENAME", "configure_logging"]
