"""
Call graph assembly

Merges user and library contracts into one CallGraph: assigns each contract a
category, resolves inheritance and library references into dependency edges,
keeps unresolvable references as dangling references, detects proxy
deployments and builds the directory tree and statistics.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple

from loguru import logger

from ..config.remappings import RemappingResolver
from ..core.context import AnalysisContext
from ..models.call_graph import (
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
from ..models.contract import CallType, Contract, ContractKind, FunctionBase, ImportInfo
from ..utils.path_normalizer import common_prefix_length, is_relative, normalize, paths_correspond, resolve_relative

STAGE = "build"

# Path segments that name a category, checked in this order
CATEGORY_DIRECTORIES = ('access', 'account', 'finance', 'governance', 'metatx', 'proxy', 'token', 'utils')

# Name fragments that imply a category, checked in this order
NAME_CUES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('token', ('erc20', 'erc721', 'erc1155')),
    ('access', ('ownable', 'access', 'role')),
    ('proxy', ('proxy', 'upgradeable')),
    ('governance', ('governor', 'timelock', 'votes')),
    ('utils', ('pausable', 'reentrancy', 'context')),
)


def categorize(contract: Contract) -> str:
    """
    Classify a contract

    Priority: declaration kind, then the first category directory in its
    path, then name cues, else "other".

    Args:
        contract: Contract to classify

    Returns:
        Category name
    """
    if contract.kind is ContractKind.INTERFACE:
        return 'interface'
    if contract.kind is ContractKind.LIBRARY:
        return 'library'

    segments = {segment.lower() for segment in contract.file_path.split('/')[:-1]}
    for directory in CATEGORY_DIRECTORIES:
        if directory in segments:
            return directory

    lower_name = contract.name.lower()
    for category, cues in NAME_CUES:
        if any(cue in lower_name for cue in cues):
            return category
    return 'other'


def detect_proxy_pattern(contract: Contract) -> Optional[Tuple[ProxyPatternType, ProxyRole]]:
    """
    Guess the proxy pattern and role of a contract from names alone

    Returns:
        (pattern, role), or None for contracts that take no part in a proxy
    """
    function_names = {f.name for f in contract.functions}
    event_names = {e.name for e in contract.events}
    lower_name = contract.name.lower()
    lower_path = contract.file_path.lower().replace('\\', '/')
    inherit_names = [name.lower() for name in contract.inherits]

    # EIP-7546 dictionary before proxy: Dictionary.sol lives under /functions/
    if (
        'dictionary' in lower_name
        or '/dictionary/' in lower_path
        or event_names & {'DictionaryUpgraded', 'ImplementationSet'}
        or function_names & {'setImplementation', 'bulkSetImplementation'}
    ):
        return ProxyPatternType.EIP7546, ProxyRole.DICTIONARY

    if (
        'getDictionary' in function_names
        or 'borderlessproxy' in lower_name
        or any('borderlessproxy' in name or name == 'proxy' for name in inherit_names)
        or ('/proxy/' in lower_path and '/functions/' in lower_path)
    ):
        return ProxyPatternType.EIP7546, ProxyRole.PROXY

    if '/functions/' in lower_path and 'lib' not in lower_name:
        return ProxyPatternType.EIP7546, ProxyRole.IMPLEMENTATION

    if function_names & {'upgradeTo', 'upgradeToAndCall'} or any('uups' in name for name in inherit_names):
        if function_names & {'proxiableUUID', '_authorizeUpgrade'}:
            return ProxyPatternType.UUPS, ProxyRole.IMPLEMENTATION
        return ProxyPatternType.UUPS, ProxyRole.PROXY

    if function_names & {'diamondCut', 'facets', 'facetAddress'} or 'DiamondCut' in event_names:
        return ProxyPatternType.DIAMOND, ProxyRole.PROXY

    if 'implementation' in function_names and (
        'beacon' in lower_name or any('beacon' in name for name in inherit_names)
    ):
        return ProxyPatternType.BEACON, ProxyRole.BEACON

    if any('beaconproxy' in name for name in inherit_names):
        return ProxyPatternType.BEACON, ProxyRole.PROXY

    if any('transparentupgradeableproxy' in name for name in inherit_names) or (
        'proxy' in lower_name and 'admin' in function_names
    ):
        return ProxyPatternType.TRANSPARENT, ProxyRole.PROXY

    return None


class _ContractLookup:
    """Name and path lookups over the contracts of one graph"""

    def __init__(self, contracts: Sequence[Contract], source_paths: Sequence[str] = ()):
        self.contracts = contracts
        self.source_paths = [normalize(path) for path in source_paths]
        self.by_name: Dict[str, List[Contract]] = {}
        for contract in contracts:
            self.by_name.setdefault(contract.name, []).append(contract)

    def import_target(self, source: Contract, path: str) -> str:
        if is_relative(path):
            return resolve_relative(source.file_path, path)
        return normalize(path)

    def at_path(self, path: str) -> List[Contract]:
        return [c for c in self.contracts if paths_correspond(normalize(c.file_path), path)]

    def is_known_file(self, path: str) -> bool:
        return bool(self.at_path(path)) or any(paths_correspond(source, path) for source in self.source_paths)

    def resolve(self, source: Contract, reference: str) -> Tuple[Optional[Contract], Optional[ImportInfo]]:
        """
        Find the contract a base or library name refers to

        ``Alias`` and ``Namespace.Name`` forms are resolved through the
        source's imports. Among several contracts with the same name, the one
        in the imported file wins, then the one whose path shares the most
        directories with the source, then the first in build order.

        Returns:
            (contract or None, import the name came through or None)
        """
        name = reference
        info: Optional[ImportInfo] = None
        if '.' in reference:
            namespace, _, name = reference.rpartition('.')
            info = source.import_for(namespace.split('.')[0])
        if info is None:
            info = source.import_for(name)
            if info is not None and info.alias == name:
                name = info.name

        candidates = [c for c in self.by_name.get(name, []) if c is not source]
        if not candidates:
            return None, info
        if len(candidates) == 1:
            return candidates[0], info

        import_paths = [self.import_target(source, info.path)] if info else []
        import_paths.extend(self.import_target(source, path) for path in source.imports)
        for path in import_paths:
            for candidate in candidates:
                if paths_correspond(normalize(candidate.file_path), path):
                    return candidate, info

        best = max(candidates, key=lambda c: common_prefix_length(source.file_path, c.file_path))
        return best, info


class CallGraphBuilder:
    """
    Builds the immutable CallGraph from a flat contract list
    """

    def __init__(self, remapping_resolver: Optional[RemappingResolver] = None, version: str = "1.0.0"):
        """
        Initialize the builder

        Args:
            remapping_resolver: Used to attach library source URLs to
                dangling references; optional
            version: Version stamped on generated graphs
        """
        self.remappings = remapping_resolver
        self.version = version

    def build(
        self,
        project_name: str,
        contracts: Sequence[Contract],
        context: Optional[AnalysisContext] = None,
        source_paths: Sequence[str] = (),
    ) -> CallGraph:
        """
        Build a CallGraph

        Args:
            project_name: Name recorded in the graph
            contracts: User contracts followed by library contracts
            context: Receives metrics, if given
            source_paths: Uploaded file paths; imports of these files are
                never dangling, even when they declare no contract

        Returns:
            The CallGraph, contracts in first-seen order
        """
        categorized = self._categorize(contracts)
        lookup = _ContractLookup(categorized, source_paths)

        dependencies: List[Dependency] = []
        seen_edges: Set[Tuple[str, str, DependencyType]] = set()

        def add_edge(source: Contract, target: Contract, dep_type: DependencyType,
                     functions: Optional[List[str]] = None) -> None:
            key = (source.contract_id, target.contract_id, dep_type)
            if source.contract_id == target.contract_id or key in seen_edges:
                return
            seen_edges.add(key)
            dependencies.append(Dependency(
                from_id=source.contract_id, to_id=target.contract_id, type=dep_type, functions=functions,
            ))

        dangling: List[DanglingReference] = []
        for contract in categorized:
            dangling.extend(self._inheritance_edges(contract, lookup, add_edge))
            self._library_edges(contract, lookup, add_edge)
            self._delegatecall_edges(contract, lookup, add_edge)
            dangling.extend(self._unresolved_imports(contract, lookup))

        proxy_groups = detect_proxy_groups(categorized)
        by_id = {c.contract_id: c for c in categorized}
        for group in proxy_groups:
            for source_id, target_id, dep_type in _proxy_edges(group):
                add_edge(by_id[source_id], by_id[target_id], dep_type)

        graph = CallGraph(
            project_name=project_name,
            version=self.version,
            generated_at=datetime.now(),
            contracts=categorized,
            dependencies=dependencies,
            dangling_references=dangling,
            proxy_groups=proxy_groups,
            structure=build_directory_structure(categorized),
            stats=calculate_stats(categorized),
        )

        if context is not None:
            context.metrics["contract_count"] = len(categorized)
        logger.info(
            f"Built call graph '{project_name}': {len(categorized)} contracts, "
            f"{len(dependencies)} dependencies, {len(dangling)} dangling references"
        )
        return graph

    def _categorize(self, contracts: Sequence[Contract]) -> List[Contract]:
        categorized: List[Contract] = []
        seen: Set[str] = set()
        for contract in contracts:
            if contract.contract_id in seen:
                logger.debug(f"Dropping duplicate contract {contract.contract_id}")
                continue
            seen.add(contract.contract_id)
            categorized.append(contract.model_copy(update={"category": categorize(contract)}))
        return categorized

    def _url_for(self, info: Optional[ImportInfo]) -> Optional[str]:
        if self.remappings is None or info is None or is_relative(info.path):
            return None
        return self.remappings.url_for(info.path)

    def _inheritance_edges(self, contract: Contract, lookup: _ContractLookup, add_edge) -> List[DanglingReference]:
        dangling = []
        for base in contract.inherits:
            parent, info = lookup.resolve(contract, base)
            if parent is None:
                dangling.append(DanglingReference(
                    source=contract.contract_id,
                    name=base,
                    reference_type=ReferenceType.INHERITS,
                    import_path=info.path if info else None,
                    url=self._url_for(info),
                ))
                continue
            dep_type = DependencyType.IMPLEMENTS if parent.kind is ContractKind.INTERFACE else DependencyType.INHERITS
            add_edge(contract, parent, dep_type)
        return dangling

    def _library_edges(self, contract: Contract, lookup: _ContractLookup, add_edge) -> None:
        # library local name -> functions called on it
        used: Dict[str, List[str]] = {name: [] for name in contract.uses_libraries}
        for function in contract.functions:
            for call in function.calls:
                if call.type is not CallType.LIBRARY or '.' not in call.target:
                    continue
                library_name, _, function_name = call.target.rpartition('.')
                functions = used.setdefault(library_name, [])
                if function_name not in functions:
                    functions.append(function_name)

        for library_name, functions in used.items():
            library, _ = lookup.resolve(contract, library_name)
            if library is None:
                continue
            # call-only references count when they hit an actual library
            if library_name not in contract.uses_libraries and library.kind is not ContractKind.LIBRARY:
                continue
            add_edge(contract, library, DependencyType.USES, functions or None)

    def _delegatecall_edges(self, contract: Contract, lookup: _ContractLookup, add_edge) -> None:
        for function in contract.functions:
            for call in function.calls:
                if call.type is not CallType.DELEGATECALL or call.target in ('unknown', 'encoded_call'):
                    continue
                target, _ = lookup.resolve(contract, call.target)
                if target is not None:
                    add_edge(contract, target, DependencyType.DELEGATECALL)

    def _unresolved_imports(self, contract: Contract, lookup: _ContractLookup) -> List[DanglingReference]:
        dangling = []
        for path in contract.imports:
            if lookup.is_known_file(lookup.import_target(contract, path)):
                continue
            dangling.append(DanglingReference(
                source=contract.contract_id,
                name=path,
                reference_type=ReferenceType.IMPORTS,
                import_path=path,
                url=None if is_relative(path) or self.remappings is None else self.remappings.url_for(path),
            ))
        return dangling


def _module_base_dir(file_path: str) -> Optional[str]:
    """``sc/ERC721/functions/ERC721.sol`` -> ``sc/ERC721``"""
    parts = file_path.split('/')
    for special in ('functions', 'libs', 'interfaces', 'storages', 'tests'):
        for index, part in enumerate(parts):
            if index > 0 and part.lower() == special:
                return '/'.join(parts[:index])
    return None


def detect_proxy_groups(contracts: Sequence[Contract]) -> List[ProxyGroup]:
    """
    Group contracts that form proxy deployments

    EIP-7546 dictionaries and proxies share one core group; their
    implementations are grouped per module directory. Every other proxy
    gets a group with all implementations of the same pattern.
    """
    patterns: Dict[str, Tuple[ProxyPatternType, ProxyRole]] = {}
    for contract in contracts:
        detected = detect_proxy_pattern(contract)
        if detected is not None:
            patterns[contract.contract_id] = detected

    def with_role(pattern: ProxyPatternType, role: ProxyRole) -> List[Contract]:
        return [c for c in contracts if patterns.get(c.contract_id) == (pattern, role)]

    groups: List[ProxyGroup] = []
    grouped: Set[str] = set()

    dictionaries = with_role(ProxyPatternType.EIP7546, ProxyRole.DICTIONARY)
    proxies = with_role(ProxyPatternType.EIP7546, ProxyRole.PROXY)
    dictionary_id = dictionaries[0].contract_id if dictionaries else None
    proxy_id = proxies[0].contract_id if proxies else None

    if dictionaries or proxies:
        core_members = [
            ProxyMember(contract_id=c.contract_id, pattern=ProxyPatternType.EIP7546, role=role)
            for role, members in ((ProxyRole.DICTIONARY, dictionaries), (ProxyRole.PROXY, proxies))
            for c in members
        ]
        groups.append(ProxyGroup(
            id='proxy-group-core',
            name='ERC7546 Core',
            pattern_type=ProxyPatternType.EIP7546,
            proxy=proxy_id,
            dictionary=dictionary_id,
            members=core_members,
        ))
        grouped.update(m.contract_id for m in core_members)

    modules: Dict[str, List[Contract]] = {}
    for contract in with_role(ProxyPatternType.EIP7546, ProxyRole.IMPLEMENTATION):
        base_dir = _module_base_dir(contract.file_path)
        if base_dir:
            modules.setdefault(base_dir, []).append(contract)

    counter = 0
    for base_dir, implementations in modules.items():
        libs = [
            c for c in contracts
            if c.kind is ContractKind.LIBRARY
            and '/libs/' in c.file_path.lower()
            and _module_base_dir(c.file_path) == base_dir
        ]
        members = implementations + libs
        groups.append(ProxyGroup(
            id=f'proxy-group-{counter}',
            name=base_dir.rstrip('/').split('/')[-1],
            pattern_type=ProxyPatternType.EIP7546,
            proxy=proxy_id,
            dictionary=dictionary_id,
            implementations=[c.contract_id for c in members],
            members=[
                ProxyMember(contract_id=c.contract_id, pattern=ProxyPatternType.EIP7546, role=ProxyRole.IMPLEMENTATION)
                for c in members
            ],
        ))
        grouped.update(c.contract_id for c in members)
        counter += 1

    for contract in contracts:
        detected = patterns.get(contract.contract_id)
        if detected is None or detected[0] is ProxyPatternType.EIP7546 or detected[1] is not ProxyRole.PROXY:
            continue
        if contract.contract_id in grouped:
            continue
        pattern = detected[0]
        implementations = with_role(pattern, ProxyRole.IMPLEMENTATION)
        groups.append(ProxyGroup(
            id=f'proxy-group-{counter}',
            name=contract.name,
            pattern_type=pattern,
            proxy=contract.contract_id,
            implementations=[c.contract_id for c in implementations],
            members=[ProxyMember(contract_id=contract.contract_id, pattern=pattern, role=ProxyRole.PROXY)] + [
                ProxyMember(contract_id=c.contract_id, pattern=pattern, role=ProxyRole.IMPLEMENTATION)
                for c in implementations
            ],
        ))
        grouped.add(contract.contract_id)
        counter += 1

    if groups:
        logger.debug(f"Detected {len(groups)} proxy groups")
    return groups


def _proxy_edges(group: ProxyGroup) -> List[Tuple[str, str, DependencyType]]:
    edges = []
    for implementation in group.implementations:
        if group.pattern_type is ProxyPatternType.EIP7546:
            if group.dictionary:
                edges.append((group.dictionary, implementation, DependencyType.REGISTERS))
        elif group.proxy:
            edges.append((group.proxy, implementation, DependencyType.DELEGATECALL))
    if group.pattern_type is ProxyPatternType.EIP7546 and group.proxy and group.dictionary:
        edges.append((group.proxy, group.dictionary, DependencyType.USES))
    return edges


def _common_directory(paths: Sequence[str]) -> List[str]:
    split = [[part for part in path.split('/') if part] for path in paths]
    if not split:
        return []
    if len(split) == 1:
        return split[0][:-1]
    common: List[str] = []
    for index in range(min(len(parts) for parts in split) - 1):
        part = split[0][index]
        if any(parts[index] != part for parts in split):
            break
        common.append(part)
    return common


def build_directory_structure(contracts: Sequence[Contract]) -> DirectoryNode:
    """
    Build the directory tree of the contracts' files

    The directory prefix shared by all files is stripped; its last segment
    names the root (``contracts`` when nothing is shared).
    """
    prefix = _common_directory([c.file_path for c in contracts])
    root_name = prefix[-1] if prefix else 'contracts'
    root = {'name': root_name, 'type': 'directory', 'path': root_name, 'children': []}

    for contract in contracts:
        parts = [part for part in contract.file_path.split('/') if part][len(prefix):]
        current = root
        for index, part in enumerate(parts):
            is_file = index == len(parts) - 1
            child = next((c for c in current['children'] if c['name'] == part), None)
            if child is None:
                child = {
                    'name': part,
                    'type': 'file' if is_file else 'directory',
                    'path': '/'.join([root_name, *parts[:index + 1]]),
                }
                if is_file:
                    child['contract_name'] = contract.name
                else:
                    child['children'] = []
                current['children'].append(child)
            if is_file:
                break
            if 'children' not in child:
                # a file and a directory with the same name; keep the file
                break
            current = child

    return DirectoryNode.model_validate(root)


def calculate_stats(contracts: Sequence[Contract]) -> Stats:
    return Stats(
        total_contracts=sum(1 for c in contracts if c.kind in (ContractKind.CONTRACT, ContractKind.ABSTRACT)),
        total_libraries=sum(1 for c in contracts if c.kind is ContractKind.LIBRARY),
        total_interfaces=sum(1 for c in contracts if c.kind is ContractKind.INTERFACE),
        total_functions=sum(len(c.external_functions) + len(c.internal_functions) for c in contracts),
    )


def inherited_functions(call_graph: CallGraph, contract_id: str) -> List[Tuple[str, FunctionBase]]:
    """
    Functions a contract inherits but does not itself declare

    Walks resolved inherits/implements edges depth-first in declaration
    order. A function name already seen (declared by the contract or by a
    more derived base) is not repeated.

    Args:
        call_graph: Graph to query
        contract_id: Contract to start from

    Returns:
        (declaring contract_id, function) pairs
    """
    contract = call_graph.get_contract(contract_id)
    if contract is None:
        return []

    bases: Dict[str, List[str]] = {}
    for dependency in call_graph.dependencies:
        if dependency.type in (DependencyType.INHERITS, DependencyType.IMPLEMENTS):
            bases.setdefault(dependency.from_id, []).append(dependency.to_id)

    names = {f.name for f in contract.functions}
    result: List[Tuple[str, FunctionBase]] = []
    visited = {contract_id}

    def visit(current_id: str) -> None:
        for base_id in bases.get(current_id, []):
            if base_id in visited:
                continue
            visited.add(base_id)
            base = call_graph.get_contract(base_id)
            if base is None:
                continue
            for function in base.functions:
                if function.name not in names:
                    names.add(function.name)
                    result.append((base_id, function))
            visit(base_id)

    visit(contract_id)
    return result
