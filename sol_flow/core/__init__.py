"""
Core runtime objects shared by the pipeline stages
"""

from .context import AnalysisContext

__all__ = ["AnalysisContext"]
