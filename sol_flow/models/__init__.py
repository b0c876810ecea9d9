"""
Models for sol-flow
"""

from .contract import (
    CallType,
    Contract,
    ContractKind,
    ErrorDefinition,
    EventDefinition,
    ExternalFunction,
    FunctionCall,
    ImportInfo,
    InternalFunction,
    Parameter,
    StateMutability,
    StateVariable,
    StructDefinition,
    Visibility,
)
from .call_graph import (
    CallGraph,
    DanglingReference,
    Dependency,
    DependencyType,
    DirectoryNode,
    ProxyGroup,
    ProxyMember,
    ProxyPatternType,
    ProxyRole,
    ReferenceType,
    Stats,
)
from .pipeline_data import AnalysisResult, PipelineWarning, SourceFile

__all__ = [
    "CallType",
    "Contract",
    "ContractKind",
    "ErrorDefinition",
    "EventDefinition",
    "ExternalFunction",
    "FunctionCall",
    "ImportInfo",
    "InternalFunction",
    "Parameter",
    "StateMutability",
    "StateVariable",
    "StructDefinition",
    "Visibility",
    "CallGraph",
    "DanglingReference",
    "Dependency",
    "DependencyType",
    "DirectoryNode",
    "ProxyGroup",
    "ProxyMember",
    "ProxyPatternType",
    "ProxyRole",
    "ReferenceType",
    "Stats",
    "AnalysisResult",
    "PipelineWarning",
    "SourceFile",
]
