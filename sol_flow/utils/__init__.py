"""
Utility modules for sol-flow
"""

from .logger import setup_logger
from .path_normalizer import normalize, resolve_relative
from .project_loader import AsyncProjectLoader
from .solidity_parser import SolidityParser
from .tokenizer import tokenize

__all__ = [
    "AsyncProjectLoader",
    "SolidityParser",
    "normalize",
    "resolve_relative",
    "setup_logger",
    "tokenize",
]
