"""
Interface layer package.

Contains the command-line interface.
"""

from autodbinstall.interface.cli import main

__all__ = ["main"]
