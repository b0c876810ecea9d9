"""
Read-only index of library source units

Maps a library target path (``openzeppelin-contracts/contracts/access/Ownable.sol``)
to the contracts declared in that file. The index is built completely before
it is handed to the pipeline and is never mutated afterwards, so one instance
can be shared by every invocation.
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from loguru import logger
from pydantic import ValidationError

from ..config.libraries import LibraryEntry, LibraryFormat, LibraryRegistry
from ..config.remappings import RemappingResolver
from ..core.context import AnalysisContext
from ..exceptions import ConfigurationError
from ..models.call_graph import CallGraph
from ..models.contract import Contract
from ..utils.path_normalizer import normalize
from ..utils.solidity_parser import SolidityParser

STAGE = "library"


class LibraryIndex:
    """
    Immutable target path -> contracts mapping
    """

    def __init__(self, units: Optional[Mapping[str, Sequence[Contract]]] = None):
        merged: Dict[str, Tuple[Contract, ...]] = {}
        for path, contracts in (units or {}).items():
            key = normalize(path)
            merged[key] = merged.get(key, ()) + tuple(contracts)
        self._units = MappingProxyType(merged)

    def get(self, target_path: str) -> Optional[Tuple[Contract, ...]]:
        """Contracts of the source unit at *target_path*, or None"""
        return self._units.get(normalize(target_path))

    def __contains__(self, target_path: str) -> bool:
        return normalize(target_path) in self._units

    def __len__(self) -> int:
        return len(self._units)

    def __iter__(self) -> Iterator[str]:
        return iter(self._units)

    @property
    def units(self) -> Mapping[str, Tuple[Contract, ...]]:
        return self._units

    @property
    def contract_count(self) -> int:
        return sum(len(contracts) for contracts in self._units.values())

    @classmethod
    def from_sources(
        cls,
        files: Iterable[Tuple[str, str]],
        parser: Optional[SolidityParser] = None,
        context: Optional[AnalysisContext] = None,
    ) -> 'LibraryIndex':
        """
        Build an index by parsing library sources

        Args:
            files: (target_path, content) pairs
            parser: Parser to use; mocks are excluded by default
            context: Receives parse warnings, if given
        """
        parser = parser or SolidityParser()
        units: Dict[str, List[Contract]] = {}
        for path, content in files:
            parsed = parser.parse_file(path, content)
            if context is not None:
                context.extend(parsed.warnings)
            if parsed.contracts:
                units.setdefault(path, []).extend(parsed.contracts)
        return cls(units)

    @classmethod
    def from_call_graph(
        cls,
        call_graph: CallGraph,
        target_root: str,
        resolver: Optional[RemappingResolver] = None,
    ) -> 'LibraryIndex':
        """
        Build an index from a pre-parsed CallGraph

        Contract paths may already be target paths, alias-form import paths,
        or paths relative to the library's target root.
        """
        units: Dict[str, List[Contract]] = {}
        for contract in call_graph.contracts:
            target = _target_path(contract.file_path, target_root, resolver)
            units.setdefault(target, []).append(contract.model_copy(update={"file_path": target}))
        return cls(units)

    @classmethod
    def build(
        cls,
        registry: LibraryRegistry,
        resolver: Optional[RemappingResolver] = None,
        parser: Optional[SolidityParser] = None,
        context: Optional[AnalysisContext] = None,
    ) -> 'LibraryIndex':
        """
        Build the index for every library in the registry

        Libraries without data on disk are skipped with a warning.

        Args:
            registry: Validated library registry
            resolver: Remapping resolver, used to place pre-parsed contracts
            parser: Parser for source-tree libraries
            context: Receives warnings, if given

        Returns:
            LibraryIndex over all libraries
        """
        parser = parser or SolidityParser()
        units: Dict[str, List[Contract]] = {}

        for entry in registry:
            location = registry.location_of(entry)
            if not location.exists():
                message = f"No data for library '{entry.id}' at {location}"
                if context is not None:
                    context.add_warning(STAGE, message)
                else:
                    logger.warning(message)
                continue

            if entry.format is LibraryFormat.CALL_GRAPH:
                index = cls.from_call_graph(load_call_graph(location), entry.target_root, resolver)
            else:
                index = cls.from_sources(read_source_tree(location, entry), parser, context)

            for path, contracts in index.units.items():
                units.setdefault(path, []).extend(contracts)
            logger.info(f"Indexed library {entry.id} ({entry.version}): {len(index)} files, {index.contract_count} contracts")

        return cls(units)


def read_source_tree(location: Path, entry: LibraryEntry) -> List[Tuple[str, str]]:
    """
    Read every .sol file under a library source directory

    Args:
        location: Directory on disk
        entry: Library entry; its target root prefixes the returned paths

    Returns:
        (target_path, content) pairs sorted by path
    """
    root = entry.target_root.rstrip('/')
    files = []
    for file_path in sorted(location.rglob('*.sol')):
        relative = file_path.relative_to(location).as_posix()
        try:
            content = file_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read library file {file_path}: {e}")
            continue
        files.append((f"{root}/{relative}", content))
    return files


def load_call_graph(path: Union[str, Path]) -> CallGraph:
    """
    Load a pre-parsed CallGraph JSON cache

    Both a bare CallGraph and the ``{"callGraph": {...}}`` cache wrapper are
    accepted.

    Raises:
        ConfigurationError: the file cannot be read or does not hold a CallGraph
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read library cache {path}: {e}") from e

    if isinstance(raw, dict) and "callGraph" in raw:
        raw = raw["callGraph"]
    try:
        return CallGraph.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid library cache {path}: {e}") from e


def _target_path(file_path: str, target_root: str, resolver: Optional[RemappingResolver]) -> str:
    path = normalize(file_path)
    root = target_root.rstrip('/')
    if path.startswith(root + '/'):
        return path
    if resolver is not None:
        resolved = resolver.resolve_import_to_target(path)
        if resolved is not None:
            return resolved.target_path
    return f"{root}/{path.lstrip('/')}"
