"""
sol-flow - Solidity contract graph extraction

Parses Solidity sources, pulls in the library contracts they import and
assembles a categorized call/inheritance graph.
"""

__version__ = "1.0.0"

from .exceptions import (
    ConfigurationError,
    InputLimitError,
    NoContractsFoundError,
    NoFilesProvidedError,
    SolFlowError,
)
from .models import AnalysisResult, CallGraph, Contract, SourceFile
from .pipeline import AnalysisPipeline, CallGraphBuilder, LibraryDependencyResolver, LibraryIndex

__all__ = [
    "__version__",
    "AnalysisPipeline",
    "AnalysisResult",
    "CallGraph",
    "CallGraphBuilder",
    "ConfigurationError",
    "Contract",
    "InputLimitError",
    "LibraryDependencyResolver",
    "LibraryIndex",
    "NoContractsFoundError",
    "NoFilesProvidedError",
    "SolFlowError",
    "SourceFile",
]
