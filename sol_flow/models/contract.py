"""
Contract definition models for Solidity source units.

These models describe what the structural parser extracts from a Solidity
declaration: the contract itself, its functions, events, errors, structs,
state variables and imports. All models are frozen; a contract is created once
by the parser (or loaded from a library store) and only ever replaced by a
categorized copy during graph building.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SolFlowModel(BaseModel):
    """Base model: immutable, camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_json_dict(self) -> dict:
        """Dump with wire (camelCase) names, JSON-compatible values"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ContractKind(str, Enum):
    """Kinds of top-level Solidity declarations"""
    CONTRACT = "contract"
    LIBRARY = "library"
    INTERFACE = "interface"
    ABSTRACT = "abstract"


class Visibility(str, Enum):
    """Declared (or defaulted) function visibility"""
    PUBLIC = "public"
    EXTERNAL = "external"
    INTERNAL = "internal"
    PRIVATE = "private"

    @property
    def is_external(self) -> bool:
        return self in (Visibility.PUBLIC, Visibility.EXTERNAL)


class StateMutability(str, Enum):
    """Function state mutability"""
    PURE = "pure"
    VIEW = "view"
    NONPAYABLE = "nonpayable"
    PAYABLE = "payable"


class CallType(str, Enum):
    """How a call site inside a function body reaches its target"""
    INTERNAL = "internal"
    LIBRARY = "library"
    EXTERNAL = "external"
    SUPER = "super"
    DELEGATECALL = "delegatecall"


class Parameter(SolFlowModel):
    """A parameter of a function, event or error, or a struct member"""
    name: str = Field("", description="Parameter name, empty when unnamed")
    type: str = Field(..., description="Type as written, whitespace-normalised")
    indexed: Optional[bool] = Field(None, description="Event parameters only: declared indexed")


class FunctionCall(SolFlowModel):
    """A call site found in a function body"""
    target: str = Field(..., description="Called name, 'Object.member' for member calls")
    type: CallType = Field(..., description="Kind of call")
    arg_count: int = Field(0, description="Number of arguments at the call site")


class FunctionBase(SolFlowModel):
    """Fields shared by both function variants"""
    name: str
    visibility: Visibility
    state_mutability: StateMutability = StateMutability.NONPAYABLE
    parameters: List[Parameter] = Field(default_factory=list)
    return_values: List[Parameter] = Field(default_factory=list)
    modifiers: List[str] = Field(default_factory=list)
    overrides: List[str] = Field(default_factory=list)
    is_virtual: bool = False
    calls: List[FunctionCall] = Field(default_factory=list)
    emits: List[str] = Field(default_factory=list)
    source_code: str = Field("", description="Declaration text from the function keyword to the closing brace")
    start_line: Optional[int] = None

    @property
    def param_types(self) -> List[str]:
        return [p.type for p in self.parameters]


class ExternalFunction(FunctionBase):
    """
    A function callable from outside the contract (public or external)

    Only the canonical signature is kept; no 4-byte selector is computed.
    """
    signature: str = Field("", description="Canonical 'name(type,...)' signature")

    @field_validator("visibility")
    @classmethod
    def _externally_visible(cls, value: Visibility) -> Visibility:
        if not value.is_external:
            raise ValueError(f"external function cannot have visibility {value.value}")
        return value


class InternalFunction(FunctionBase):
    """A function only callable from inside the contract tree (internal or private)"""

    @field_validator("visibility")
    @classmethod
    def _internally_visible(cls, value: Visibility) -> Visibility:
        if value.is_external:
            raise ValueError(f"internal function cannot have visibility {value.value}")
        return value


class EventDefinition(SolFlowModel):
    """An event declaration"""
    name: str
    parameters: List[Parameter] = Field(default_factory=list)
    start_line: Optional[int] = None


class ErrorDefinition(SolFlowModel):
    """A custom error declaration"""
    name: str
    parameters: List[Parameter] = Field(default_factory=list)
    start_line: Optional[int] = None


class StructDefinition(SolFlowModel):
    """A struct declaration"""
    name: str
    members: List[Parameter] = Field(default_factory=list)
    start_line: Optional[int] = None


class StateVariable(SolFlowModel):
    """A state variable declaration"""
    name: str
    type: str
    visibility: Visibility = Visibility.INTERNAL
    is_constant: bool = False
    is_immutable: bool = False
    start_line: Optional[int] = None


class ImportInfo(SolFlowModel):
    """One imported symbol; a single import statement can yield several"""
    name: str = Field(..., description="Imported name, or the file stem for bare imports")
    alias: Optional[str] = Field(None, description="Local alias when imported 'as'")
    path: str = Field(..., description="Import path exactly as written")
    is_external: bool = Field(False, description="Path is not relative to the importing file")

    @property
    def local_name(self) -> str:
        return self.alias or self.name


class Contract(SolFlowModel):
    """One parsed Solidity declaration (contract, library, interface or abstract contract)"""
    name: str
    kind: ContractKind
    file_path: str = Field(..., description="Path of the declaring source unit")
    category: Optional[str] = Field(None, description="Assigned once during graph building")
    inherits: List[str] = Field(default_factory=list, description="Base names as written")
    uses_libraries: List[str] = Field(default_factory=list)
    imports: List[str] = Field(default_factory=list, description="Raw import paths as written")
    import_symbols: List[ImportInfo] = Field(default_factory=list)
    external_functions: List[ExternalFunction] = Field(default_factory=list)
    internal_functions: List[InternalFunction] = Field(default_factory=list)
    events: List[EventDefinition] = Field(default_factory=list)
    errors: List[ErrorDefinition] = Field(default_factory=list)
    structs: List[StructDefinition] = Field(default_factory=list)
    state_variables: List[StateVariable] = Field(default_factory=list)
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    is_external_library: bool = False
    library_source: Optional[str] = None

    @property
    def contract_id(self) -> str:
        """Identity inside a graph: the source unit path plus the declared name"""
        return f"{self.file_path}:{self.name}"

    @property
    def functions(self) -> List[FunctionBase]:
        return [*self.external_functions, *self.internal_functions]

    def import_for(self, local_name: str) -> Optional[ImportInfo]:
        """Find the import that brings *local_name* into scope"""
        for info in self.import_symbols:
            if info.local_name == local_name:
                return info
        return None
