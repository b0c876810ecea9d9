"""
Pipeline components for sol-flow
"""

from .call_graph_builder import CallGraphBuilder, categorize, inherited_functions
from .core import AnalysisPipeline
from .library_index import LibraryIndex
from .library_resolver import LibraryDependencyResolver

__all__ = [
    "AnalysisPipeline",
    "CallGraphBuilder",
    "LibraryDependencyResolver",
    "LibraryIndex",
    "categorize",
    "inherited_functions",
]
