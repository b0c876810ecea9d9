"""
Command line interface for sol-flow
"""

from .main import main, run

__all__ = ["main", "run"]
