"""
Logging module for the cluster manager.
This module provides the console logging setup shared by the supervisor and the command console.
"""

from .setup import setup_logging, VerbosityFilter, MainFormatter

__all__ = ["setup_logging", "VerbosityFilter", "MainFormatter"]
