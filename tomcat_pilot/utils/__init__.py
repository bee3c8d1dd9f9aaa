"""Utility functions for tomcat-pilot."""

from tomcat_pilot.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
