"""
Models for the assembled call graph.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from .contract import Contract, SolFlowModel


class DependencyType(str, Enum):
    """Types of edges between contracts"""
    USES = "uses"
    INHERITS = "inherits"
    IMPLEMENTS = "implements"
    IMPORTS = "imports"
    DELEGATECALL = "delegatecall"
    REGISTERS = "registers"  # Dictionary registers implementation


class ReferenceType(str, Enum):
    """What kind of reference could not be resolved"""
    INHERITS = "inherits"
    IMPORTS = "imports"


class ProxyPatternType(str, Enum):
    EIP7546 = "eip7546"          # Meta Contract / Borderless
    UUPS = "uups"
    TRANSPARENT = "transparent"
    DIAMOND = "diamond"          # EIP-2535
    BEACON = "beacon"


class ProxyRole(str, Enum):
    PROXY = "proxy"
    DICTIONARY = "dictionary"
    IMPLEMENTATION = "implementation"
    BEACON = "beacon"
    FACET = "facet"


class Dependency(SolFlowModel):
    """A resolved edge between two contracts of the graph"""
    from_id: str = Field(..., alias="from", description="contract_id of the dependent contract")
    to_id: str = Field(..., alias="to", description="contract_id of the dependency")
    type: DependencyType
    functions: Optional[List[str]] = Field(None, description="Library functions called, for 'uses' edges")


class DanglingReference(SolFlowModel):
    """A reference to something that is not part of the graph"""
    source: str = Field(..., description="contract_id of the referring contract")
    name: str = Field(..., description="Base name or import path that did not resolve")
    reference_type: ReferenceType
    import_path: Optional[str] = Field(None, description="Import path the name came through, if known")
    url: Optional[str] = Field(None, description="Library source URL, if the path maps to a known library")


class ProxyMember(SolFlowModel):
    """Proxy pattern annotation for one contract"""
    contract_id: str
    pattern: ProxyPatternType
    role: ProxyRole


class ProxyGroup(SolFlowModel):
    """Contracts that together form one proxy deployment"""
    id: str
    name: str
    pattern_type: ProxyPatternType
    proxy: Optional[str] = None
    dictionary: Optional[str] = None
    beacon: Optional[str] = None
    implementations: List[str] = Field(default_factory=list)
    members: List[ProxyMember] = Field(default_factory=list)


class DirectoryNode(SolFlowModel):
    """Directory tree of the analysed sources"""
    name: str
    type: str = Field(..., description="'directory' or 'file'")
    path: str
    children: Optional[List["DirectoryNode"]] = None
    contract_name: Optional[str] = None


class Stats(SolFlowModel):
    total_contracts: int = 0
    total_libraries: int = 0
    total_interfaces: int = 0
    total_functions: int = 0


class CallGraph(SolFlowModel):
    """The immutable output of one pipeline invocation"""
    project_name: str
    version: str
    generated_at: datetime
    contracts: List[Contract] = Field(default_factory=list)
    dependencies: List[Dependency] = Field(default_factory=list)
    dangling_references: List[DanglingReference] = Field(default_factory=list)
    proxy_groups: List[ProxyGroup] = Field(default_factory=list)
    structure: Optional[DirectoryNode] = None
    stats: Stats = Field(default_factory=Stats)

    def get_contract(self, contract_id: str) -> Optional[Contract]:
        for contract in self.contracts:
            if contract.contract_id == contract_id:
                return contract
        return None

    def contracts_named(self, name: str) -> List[Contract]:
        return [c for c in self.contracts if c.name == name]

    def dangling_for(self, contract_id: str) -> List[DanglingReference]:
        return [ref for ref in self.dangling_references if ref.source == contract_id]

    def by_category(self) -> Dict[str, List[Contract]]:
        groups: Dict[str, List[Contract]] = {}
        for contract in self.contracts:
            groups.setdefault(contract.category or "other", []).append(contract)
        return groups


DirectoryNode.model_rebuild()
