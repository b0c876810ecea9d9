"""
Library dependency resolution

Starting from the user's contracts, follows import statements into the
library index and pulls in every library source unit that is needed,
transitively. Pulled contracts are re-keyed to the alias-form import path
(``@openzeppelin/contracts/access/Ownable.sol``) so they match what user code
imports, and flagged as external library contracts.
"""

from collections import deque
from typing import Deque, Iterable, List, Optional, Set

from loguru import logger

from ..config.remappings import RemappingResolver, ResolvedImport
from ..core.context import AnalysisContext
from ..models.contract import Contract, ContractKind
from ..utils.path_normalizer import file_stem, is_relative, normalize, paths_correspond, resolve_relative
from .library_index import LibraryIndex

STAGE = "resolve"


class LibraryDependencyResolver:
    """
    Worklist resolver over an injected, read-only library index

    The visited set is keyed by normalized source unit path, which makes
    import cycles (A imports B imports A) terminate without special casing.
    """

    def __init__(
        self,
        remapping_resolver: RemappingResolver,
        library_index: LibraryIndex,
        resolve_interface_implementations: bool = True,
    ):
        """
        Initialize the resolver

        Args:
            remapping_resolver: Alias -> target rules
            library_index: Target path -> contracts
            resolve_interface_implementations: Pull in ``Foo.sol`` whenever
                the interface unit ``IFoo.sol`` is pulled in
        """
        self.remappings = remapping_resolver
        self.library_index = library_index
        self.resolve_interface_implementations = resolve_interface_implementations

    def resolve(
        self,
        user_contracts: Iterable[Contract],
        context: Optional[AnalysisContext] = None,
        source_paths: Iterable[str] = (),
    ) -> List[Contract]:
        """
        Add every transitively required library contract

        Args:
            user_contracts: Contracts parsed from the user's files
            context: Receives unresolved-import warnings, if given
            source_paths: Paths of every uploaded file, including files that
                declare no contract (shared structs, errors, constants)

        Returns:
            The user contracts followed by library contracts in resolution
            order, without duplicates
        """
        working: List[Contract] = list(user_contracts)
        local_paths: Set[str] = {normalize(c.file_path) for c in working}
        local_paths.update(normalize(path) for path in source_paths)
        visited: Set[str] = set(local_paths)
        pending: Deque[Contract] = deque(working)
        library_count = 0

        while pending:
            contract = pending.popleft()
            for raw_path in contract.imports:
                import_path = self._import_path(contract, raw_path)
                if import_path in visited:
                    continue
                visited.add(import_path)

                if self._satisfied_locally(import_path, local_paths):
                    continue

                resolved = self.remappings.resolve_import_to_target(import_path)
                if resolved is None:
                    self._warn(context, f"Unresolved import '{raw_path}': no remapping matches", contract.file_path)
                    continue

                added = self._pull(import_path, resolved)
                if added is None:
                    self._warn(
                        context,
                        f"Unresolved import '{raw_path}': {resolved.target_path} is not in the library index",
                        contract.file_path,
                    )
                    continue

                added.extend(self._implementation_for(import_path, added, visited))
                for library_contract in added:
                    local_paths.add(library_contract.file_path)
                working.extend(added)
                pending.extend(added)
                library_count += len(added)

        if context is not None:
            context.metrics["library_contract_count"] = library_count
        logger.info(f"Resolved {library_count} library contracts for {len(working) - library_count} user contracts")
        return working

    def _import_path(self, contract: Contract, raw_path: str) -> str:
        if is_relative(raw_path):
            return resolve_relative(contract.file_path, raw_path)
        return normalize(raw_path)

    @staticmethod
    def _satisfied_locally(import_path: str, local_paths: Set[str]) -> bool:
        if import_path in local_paths:
            return True
        return any(paths_correspond(import_path, path) for path in local_paths)

    def _pull(self, alias_path: str, resolved: ResolvedImport) -> Optional[List[Contract]]:
        unit = self.library_index.get(resolved.target_path)
        if unit is None:
            return None
        logger.debug(f"Pulled {len(unit)} contracts from {resolved.target_path}")
        return [
            contract.model_copy(update={
                "file_path": alias_path,
                "is_external_library": True,
                "library_source": resolved.remapping.library_source,
            })
            for contract in unit
        ]

    def _implementation_for(self, interface_path: str, unit: List[Contract], visited: Set[str]) -> List[Contract]:
        """``.../IFoo.sol`` declaring an interface -> contracts of ``.../Foo.sol``, if indexed"""
        if not self.resolve_interface_implementations:
            return []
        if not any(c.kind is ContractKind.INTERFACE for c in unit):
            return []

        stem = file_stem(interface_path)
        if not interface_path.endswith('.sol') or len(stem) < 2 or stem[0] != 'I' or not stem[1].isupper():
            return []

        implementation_path = interface_path[:-len(stem) - 4] + stem[1:] + '.sol'
        if implementation_path in visited:
            return []
        resolved = self.remappings.resolve_import_to_target(implementation_path)
        if resolved is None:
            return []
        added = self._pull(implementation_path, resolved)
        if added is None:
            return []
        visited.add(implementation_path)
        logger.debug(f"Auto-imported implementation {implementation_path} for {interface_path}")
        return added

    @staticmethod
    def _warn(context: Optional[AnalysisContext], message: str, file_path: str) -> None:
        if context is not None:
            context.add_warning(STAGE, message, file_path=file_path)
        else:
            logger.warning(f"[{STAGE}] {file_path}: {message}")
