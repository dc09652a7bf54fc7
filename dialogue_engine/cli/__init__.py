"""
Command line tools: validate, inspect, play and export dialogue files
"""

from .commands import cli

__all__ = ["cli"]
