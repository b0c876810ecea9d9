"""
Structural parser for Solidity code

This module turns raw Solidity source files into :class:`Contract` records
without a full compiler front end. It works on the token stream produced by
:mod:`sol_flow.utils.tokenizer` and uses bracket matching over that stream
to find declaration boundaries, so braces inside strings and comments never
end a contract early.

Every file is parsed independently. A file or declaration that cannot be
parsed structurally is skipped with a warning; the batch never aborts.
"""

import asyncio
import concurrent.futures
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from loguru import logger

from ..core.context import AnalysisContext
from ..exceptions import SolidityTokenizeError
from ..models.contract import (
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
from ..models.pipeline_data import PipelineWarning, SourceFile
from .path_normalizer import file_stem, is_relative
from .tokenizer import Token, TokenType, match_brackets, tokenize

STAGE = "parse"

DECLARATION_KEYWORDS = {
    'contract': ContractKind.CONTRACT,
    'interface': ContractKind.INTERFACE,
    'library': ContractKind.LIBRARY,
}

# Top-level constructs that are recognised but not recorded
SKIPPED_TOP_LEVEL = {'function', 'struct', 'enum', 'error', 'event', 'type'}

VISIBILITY_KEYWORDS = {v.value: v for v in Visibility}

MUTABILITY_KEYWORDS = {
    'pure': StateMutability.PURE,
    'view': StateMutability.VIEW,
    'payable': StateMutability.PAYABLE,
    'nonpayable': StateMutability.NONPAYABLE,
    'constant': StateMutability.VIEW,  # pre-0.5 spelling of view
}

DEFAULT_VISIBILITY = {
    ContractKind.INTERFACE: Visibility.EXTERNAL,
    ContractKind.LIBRARY: Visibility.INTERNAL,
    ContractKind.CONTRACT: Visibility.PUBLIC,
    ContractKind.ABSTRACT: Visibility.PUBLIC,
}

DATA_LOCATIONS = {'memory', 'storage', 'calldata'}

STATE_VARIABLE_KEYWORDS = {'constant', 'immutable', 'transient', 'override'}

# Names that look like calls but are builtins or control flow
NON_CALL_NAMES = {
    'if', 'for', 'while', 'do', 'return', 'returns', 'emit', 'new', 'delete',
    'require', 'assert', 'revert', 'keccak256', 'sha256', 'ripemd160', 'ecrecover',
    'addmod', 'mulmod', 'abi', 'block', 'msg', 'tx', 'type', 'gasleft', 'blockhash',
    'selfdestruct', 'payable', 'catch', 'try', 'unchecked', 'assembly', 'mapping',
    'function', 'event', 'error', 'modifier',
}

ELEMENTARY_TYPE = re.compile(r'^(?:u?int\d*|bytes\d*|address|bool|string|byte|u?fixed[\dx]*)$')


@dataclass
class ParsedFile:
    """Result of parsing one source file"""
    path: str
    contracts: List[Contract] = field(default_factory=list)
    warnings: List[PipelineWarning] = field(default_factory=list)


FileInput = Union[SourceFile, Tuple[str, str]]


class SolidityParser:
    """
    Structural Solidity parser

    Converts (path, content) pairs into Contract records. Optional filters drop
    mocks, interfaces, libraries or storage/schema contracts from the result.
    """

    def __init__(
        self,
        exclude_interfaces: bool = False,
        exclude_libraries: bool = False,
        exclude_mocks: bool = True,
        exclude_storages: bool = False,
        max_workers: Optional[int] = None,
    ):
        """
        Initialize the parser with filter options

        Args:
            exclude_interfaces: Drop interface declarations
            exclude_libraries: Drop library declarations
            exclude_mocks: Drop contracts whose name contains 'mock'
            exclude_storages: Drop storage/schema contracts
            max_workers: Thread pool size for :meth:`parse_files_async`
        """
        self.exclude_interfaces = exclude_interfaces
        self.exclude_libraries = exclude_libraries
        self.exclude_mocks = exclude_mocks
        self.exclude_storages = exclude_storages
        self.max_workers = max_workers

    @classmethod
    def from_settings(cls, settings: Any) -> 'SolidityParser':
        return cls(
            exclude_interfaces=settings.EXCLUDE_INTERFACES,
            exclude_libraries=settings.EXCLUDE_LIBRARIES,
            exclude_mocks=settings.EXCLUDE_MOCKS,
            exclude_storages=settings.EXCLUDE_STORAGES,
            max_workers=settings.MAX_PARSE_WORKERS,
        )

    def parse_file(self, path: str, content: str) -> ParsedFile:
        """
        Parse a single Solidity file

        Args:
            path: Path of the file, used as the contracts' file_path
            content: Solidity code content

        Returns:
            ParsedFile with the contracts kept by the filters and any warnings
        """
        result = ParsedFile(path=path)
        try:
            tokens = tokenize(content)
        except SolidityTokenizeError as e:
            result.warnings.append(PipelineWarning(
                stage=STAGE, message=f"{e}; file skipped", file_path=path, line=e.line,
            ))
            return result

        unit = _SourceUnitParser(path, tokens, content)
        for contract in unit.run():
            if self._should_exclude(contract):
                logger.debug(f"Excluding {contract.kind.value} {contract.name} ({path})")
                continue
            result.contracts.append(contract)
        result.warnings.extend(unit.warnings)

        if not result.contracts:
            logger.debug(f"No declarations found in {path}")
        return result

    def parse(
        self,
        files: Iterable[FileInput],
        context: Optional[AnalysisContext] = None,
    ) -> List[Contract]:
        """
        Parse multiple files, in order

        Args:
            files: SourceFile objects or (path, content) pairs
            context: Receives the warnings, if given

        Returns:
            Contracts of all files, in file order then declaration order
        """
        results = [self.parse_file(*_as_pair(f)) for f in files]
        return self._collect(results, context)

    async def parse_files_async(
        self,
        files: Iterable[FileInput],
        context: Optional[AnalysisContext] = None,
    ) -> List[Contract]:
        """
        Parse multiple files concurrently in a thread pool

        Results are reassembled in input order, so the output is identical to
        :meth:`parse`.
        """
        pairs = [_as_pair(f) for f in files]
        loop = asyncio.get_running_loop()
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            results = await asyncio.gather(*[
                loop.run_in_executor(pool, self.parse_file, path, content)
                for path, content in pairs
            ])
        return self._collect(results, context)

    def _collect(self, results: Sequence[ParsedFile], context: Optional[AnalysisContext]) -> List[Contract]:
        contracts: List[Contract] = []
        for parsed in results:
            contracts.extend(parsed.contracts)
            if context is not None:
                context.extend(parsed.warnings)
            else:
                for warning in parsed.warnings:
                    logger.warning(str(warning))
        logger.info(f"Parsed {len(results)} files into {len(contracts)} contracts")
        return contracts

    def _should_exclude(self, contract: Contract) -> bool:
        lower_name = contract.name.lower()
        lower_path = contract.file_path.lower()

        if self.exclude_interfaces and contract.kind is ContractKind.INTERFACE:
            return True
        if self.exclude_libraries and contract.kind is ContractKind.LIBRARY:
            return True
        if self.exclude_mocks and 'mock' in lower_name:
            return True
        if self.exclude_storages and (
            '/storages/' in lower_path
            or '/storage/' in lower_path
            or lower_name in ('storage', 'schema')
            or lower_name.endswith('storage')
            or lower_name.endswith('schema')
        ):
            return True
        return False


def _as_pair(item: FileInput) -> Tuple[str, str]:
    if isinstance(item, SourceFile):
        return item.path, item.content
    path, content = item
    return path, content


class _SourceUnitParser:
    """Parses the token stream of one file"""

    def __init__(self, path: str, tokens: List[Token], content: str = ""):
        self.path = path
        self.tokens = tokens
        self.content = content
        self.brackets = match_brackets(tokens)
        self.warnings: List[PipelineWarning] = []

    # -- helpers ---------------------------------------------------------

    def _warn(self, message: str, line: Optional[int] = None) -> None:
        self.warnings.append(PipelineWarning(stage=STAGE, message=message, file_path=self.path, line=line))

    def _value(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.tokens):
            return self.tokens[index].value
        return None

    def _is_identifier(self, index: int) -> bool:
        return 0 <= index < len(self.tokens) and self.tokens[index].is_identifier

    def _closing(self, index: int, limit: Optional[int] = None) -> Optional[int]:
        """Matching closer of the bracket at *index*, if it lies before *limit*"""
        close = self.brackets.get(index)
        if close is None or (limit is not None and close >= limit):
            return None
        return close

    def _declaration_at(self, index: int) -> Optional[Tuple[ContractKind, int]]:
        value = self._value(index)
        if value == 'abstract' and self._value(index + 1) == 'contract' and self._is_identifier(index + 2):
            return ContractKind.ABSTRACT, index + 2
        if value in DECLARATION_KEYWORDS and self._is_identifier(index + 1):
            return DECLARATION_KEYWORDS[value], index + 1
        return None

    def _resync(self, index: int) -> int:
        """Index of the next declaration keyword at or after *index*"""
        for position in range(index, len(self.tokens)):
            if self._declaration_at(position) is not None:
                return position
        return len(self.tokens)

    def _statement_end(self, index: int, limit: int) -> int:
        """
        Index of the token that ends the statement starting at *index*

        That is the first ';' outside brackets, or the closing brace of the
        first block. Returns ``limit - 1`` when neither exists.
        """
        position = index
        while position < limit:
            value = self.tokens[position].value
            if value == ';':
                return position
            if value == '{':
                close = self._closing(position, limit)
                return close if close is not None else limit - 1
            if value in ('(', '['):
                close = self._closing(position, limit)
                if close is not None:
                    position = close + 1
                    continue
            position += 1
        return limit - 1

    def _source(self, first: int, last: int) -> str:
        """Source text from token *first* through token *last*, inclusive"""
        if not self.content or last < first:
            return ""
        end_token = self.tokens[last]
        return self.content[self.tokens[first].pos:end_token.pos + len(end_token.value)]

    def _semicolon(self, index: int, limit: int) -> int:
        """Index of the next ';' before *limit*, or ``limit - 1``"""
        for position in range(index, limit):
            if self.tokens[position].value == ';':
                return position
        return limit - 1

    def _skip_top_level(self, index: int) -> int:
        """Skip one top-level unit without swallowing a following declaration"""
        count = len(self.tokens)
        position = index
        while position < count:
            if position > index and self._declaration_at(position) is not None:
                return position
            value = self.tokens[position].value
            if value == ';':
                return position + 1
            if value == '{':
                close = self._closing(position)
                return close + 1 if close is not None else self._resync(position + 1)
            if value in ('(', '['):
                close = self._closing(position)
                if close is not None:
                    position = close + 1
                    continue
            position += 1
        return count

    def _split(self, start: int, end: int, separator: str) -> List[List[Token]]:
        """Split tokens[start:end] on *separator* outside nested brackets"""
        groups: List[List[Token]] = []
        current: List[Token] = []
        position = start
        while position < end:
            token = self.tokens[position]
            if token.value == separator:
                groups.append(current)
                current = []
                position += 1
                continue
            if token.value in ('(', '[', '{'):
                close = self._closing(position, end)
                if close is not None:
                    current.extend(self.tokens[position:close + 1])
                    position = close + 1
                    continue
            current.append(token)
            position += 1
        if current:
            groups.append(current)
        return groups

    # -- top level -------------------------------------------------------

    def run(self) -> List[Contract]:
        imports: List[str] = []
        symbols: List[ImportInfo] = []
        declarations: List[Dict[str, Any]] = []

        index = 0
        count = len(self.tokens)
        while index < count:
            token = self.tokens[index]
            value = token.value

            if token.is_identifier:
                if value in ('pragma', 'using'):
                    index = self._semicolon(index, len(self.tokens)) + 1
                    continue
                if value == 'import':
                    index = self._parse_import(index, imports, symbols)
                    continue
                declaration = self._declaration_at(index)
                if declaration is not None:
                    parsed, index = self._parse_declaration(index, *declaration)
                    if parsed is not None:
                        declarations.append(parsed)
                    continue
                if value in SKIPPED_TOP_LEVEL or self._is_file_constant(index):
                    index = self._skip_top_level(index)
                    continue

            self._warn(f"Unrecognized top-level syntax near '{value}'", token.line)
            index = self._skip_top_level(index)

        return [
            Contract(**declaration, imports=list(imports), import_symbols=list(symbols))
            for declaration in declarations
        ]

    def _is_file_constant(self, index: int) -> bool:
        end = self._statement_end(index, len(self.tokens))
        return any(t.value == 'constant' for t in self.tokens[index:end])

    def _parse_import(self, index: int, imports: List[str], symbols: List[ImportInfo]) -> int:
        end = self._semicolon(index, len(self.tokens))
        terminated = self.tokens[end].value == ';'
        # an import cut off at end of file still owns its last token
        body = self.tokens[index + 1:end if terminated else end + 1]
        path_token = next((t for t in body if t.type is TokenType.STRING), None)
        if path_token is None:
            self._warn("Import statement without a path", self.tokens[index].line)
            return end + 1

        path = path_token.value[1:-1]
        if not terminated:
            self._warn(f"Unterminated import of '{path}'", self.tokens[index].line)
        external = not is_relative(path)
        first = body[0]

        if first.value == '{':
            close = self._closing(index + 1, end)
            if close is None:
                self._warn(f"Malformed import of '{path}'", first.line)
                return end + 1
            for group in self._split(index + 2, close, ','):
                if not group:
                    continue
                alias = group[2].value if len(group) >= 3 and group[1].value == 'as' else None
                symbols.append(ImportInfo(name=group[0].value, alias=alias, path=path, is_external=external))
        elif first.value == '*':
            alias = body[2].value if len(body) >= 3 and body[1].value == 'as' else file_stem(path)
            symbols.append(ImportInfo(name=alias, path=path, is_external=external))
        elif first.type is TokenType.STRING and len(body) >= 3 and body[1].value == 'as':
            symbols.append(ImportInfo(name=body[2].value, path=path, is_external=external))
        elif first.is_identifier and first.value != 'from':
            symbols.append(ImportInfo(name=first.value, path=path, is_external=external))
        else:
            symbols.append(ImportInfo(name=file_stem(path), path=path, is_external=external))

        imports.append(path)
        return end + 1

    def _parse_declaration(
        self,
        index: int,
        kind: ContractKind,
        name_index: int,
    ) -> Tuple[Optional[Dict[str, Any]], int]:
        keyword = self.tokens[index]
        name = self.tokens[name_index].value
        position = name_index + 1
        inherits: List[str] = []

        if self._value(position) == 'is':
            inherits, position = self._parse_bases(position + 1)

        if self._value(position) != '{':
            self._warn(f"Declaration of {kind.value} '{name}' has no body; skipped", keyword.line)
            return None, self._skip_top_level(position)

        close = self._closing(position)
        if close is None:
            self._warn(f"Unbalanced braces in {kind.value} '{name}'; declaration skipped", keyword.line)
            return None, self._resync(position + 1)

        declaration = self._parse_body(position, close, kind)
        declaration.update(
            name=name,
            kind=kind,
            file_path=self.path,
            inherits=inherits,
            start_line=keyword.line,
            end_line=self.tokens[close].line,
        )
        return declaration, close + 1

    def _parse_bases(self, index: int) -> Tuple[List[str], int]:
        bases: List[str] = []
        current: List[str] = []
        position = index
        while position < len(self.tokens):
            value = self.tokens[position].value
            if value in ('{', ';'):
                break
            if value == '(':
                # constructor arguments: Base(1, 2)
                close = self._closing(position)
                if close is None:
                    break
                position = close + 1
                continue
            if value == ',':
                if current:
                    bases.append(''.join(current))
                current = []
            else:
                current.append(value)
            position += 1
        if current:
            bases.append(''.join(current))
        return bases, position

    # -- contract body ---------------------------------------------------

    def _parse_body(self, open_index: int, close_index: int, kind: ContractKind) -> Dict[str, Any]:
        external_functions: List[ExternalFunction] = []
        internal_functions: List[InternalFunction] = []
        events: List[EventDefinition] = []
        errors: List[ErrorDefinition] = []
        structs: List[StructDefinition] = []
        state_variables: List[StateVariable] = []
        uses_libraries: List[str] = []

        position = open_index + 1
        while position < close_index:
            token = self.tokens[position]
            value = token.value

            if value == ';':
                position += 1
                continue

            if value == 'function':
                function, position = self._parse_function(position, close_index, kind)
                if isinstance(function, ExternalFunction):
                    external_functions.append(function)
                elif isinstance(function, InternalFunction):
                    internal_functions.append(function)
                continue

            if value in ('constructor', 'modifier') or (
                value in ('fallback', 'receive') and self._value(position + 1) == '('
            ):
                position = self._statement_end(position, close_index) + 1
                continue

            if value in ('event', 'error') and self._is_identifier(position + 1) and self._value(position + 2) == '(':
                end = self._statement_end(position, close_index)
                paren_close = self._closing(position + 2, close_index)
                if paren_close is not None:
                    name = self.tokens[position + 1].value
                    if value == 'event':
                        params = self._parameters(position + 2, paren_close, is_event=True)
                        events.append(EventDefinition(name=name, parameters=params, start_line=token.line))
                    else:
                        params = self._parameters(position + 2, paren_close)
                        errors.append(ErrorDefinition(name=name, parameters=params, start_line=token.line))
                else:
                    self._warn(f"Malformed {value} declaration", token.line)
                position = end + 1
                continue

            if value == 'using':
                end = self._semicolon(position, close_index)
                library = self._using_library(position + 1, end)
                if library and library not in uses_libraries:
                    uses_libraries.append(library)
                position = end + 1
                continue

            if value == 'struct' and self._is_identifier(position + 1) and self._value(position + 2) == '{':
                brace_close = self._closing(position + 2, close_index + 1)
                if brace_close is not None:
                    members = [
                        member for member in (
                            self._parameter(group) for group in self._split(position + 3, brace_close, ';')
                        ) if member is not None
                    ]
                    structs.append(StructDefinition(
                        name=self.tokens[position + 1].value, members=members, start_line=token.line,
                    ))
                    position = brace_close + 1
                    continue

            end = self._statement_end(position, close_index)
            if value != 'enum' and self.tokens[end].value == ';':
                variable = self._state_variable(position, end)
                if variable is not None:
                    state_variables.append(variable)
            position = end + 1

        return dict(
            external_functions=external_functions,
            internal_functions=internal_functions,
            events=events,
            errors=errors,
            structs=structs,
            state_variables=state_variables,
            uses_libraries=uses_libraries,
        )

    def _using_library(self, start: int, end: int) -> Optional[str]:
        if self._value(start) == '{':
            return None
        parts: List[str] = []
        for token in self.tokens[start:end]:
            if token.value == 'for':
                break
            parts.append(token.value)
        return ''.join(parts) or None

    def _parse_function(
        self,
        index: int,
        limit: int,
        kind: ContractKind,
    ) -> Tuple[Optional[Union[ExternalFunction, InternalFunction]], int]:
        keyword = self.tokens[index]
        if not (self._is_identifier(index + 1) and self._value(index + 2) == '('):
            # unnamed pre-0.6 fallback function
            return None, self._statement_end(index, limit) + 1

        name = self.tokens[index + 1].value
        paren_close = self._closing(index + 2, limit)
        if paren_close is None:
            self._warn(f"Malformed parameter list of function '{name}'", keyword.line)
            return None, self._statement_end(index, limit) + 1

        parameters = self._parameters(index + 2, paren_close)
        return_values: List[Parameter] = []
        visibility: Optional[Visibility] = None
        mutability: Optional[StateMutability] = None
        modifiers: List[str] = []
        overrides: List[str] = []
        is_virtual = False
        body: Optional[Tuple[int, int]] = None

        position = paren_close + 1
        end = limit - 1
        while position < limit:
            token = self.tokens[position]
            value = token.value
            if value == ';':
                end = position
                break
            if value == '{':
                body_close = self._closing(position, limit)
                if body_close is None:
                    self._warn(f"Unbalanced body of function '{name}'", token.line)
                    return None, limit
                body = (position, body_close)
                end = body_close
                break
            if value == 'returns' and self._value(position + 1) == '(':
                close = self._closing(position + 1, limit)
                if close is not None:
                    return_values = self._parameters(position + 1, close)
                    position = close + 1
                    continue
            if value in VISIBILITY_KEYWORDS:
                visibility = VISIBILITY_KEYWORDS[value]
            elif value in MUTABILITY_KEYWORDS:
                mutability = MUTABILITY_KEYWORDS[value]
            elif value == 'virtual':
                is_virtual = True
            elif value == 'override':
                if self._value(position + 1) == '(':
                    close = self._closing(position + 1, limit)
                    if close is not None:
                        overrides = [
                            ''.join(t.value for t in group)
                            for group in self._split(position + 2, close, ',') if group
                        ]
                        position = close + 1
                        continue
            elif token.is_identifier:
                # modifier invocation, possibly qualified and with arguments
                parts = [value]
                while self._value(position + 1) == '.' and self._is_identifier(position + 2):
                    parts.append(self.tokens[position + 2].value)
                    position += 2
                modifiers.append('.'.join(parts))
                if self._value(position + 1) == '(':
                    close = self._closing(position + 1, limit)
                    if close is not None:
                        position = close + 1
                        continue
            position += 1

        calls: List[FunctionCall] = []
        emits: List[str] = []
        if body is not None:
            calls, emits = self._calls_and_emits(body[0] + 1, body[1])

        common = dict(
            name=name,
            visibility=visibility or DEFAULT_VISIBILITY[kind],
            state_mutability=mutability or StateMutability.NONPAYABLE,
            parameters=parameters,
            return_values=return_values,
            modifiers=modifiers,
            overrides=overrides,
            is_virtual=is_virtual,
            calls=calls,
            emits=emits,
            source_code=self._source(index, end),
            start_line=keyword.line,
        )
        if common['visibility'].is_external:
            signature = f"{name}({','.join(p.type for p in parameters)})"
            return ExternalFunction(**common, signature=signature), end + 1
        return InternalFunction(**common), end + 1

    # -- parameters and types --------------------------------------------

    def _parameters(self, open_index: int, close_index: int, is_event: bool = False) -> List[Parameter]:
        params: List[Parameter] = []
        for group in self._split(open_index + 1, close_index, ','):
            param = self._parameter(group, is_event=is_event)
            if param is not None:
                params.append(param)
        return params

    @staticmethod
    def _parameter(tokens: List[Token], is_event: bool = False) -> Optional[Parameter]:
        if not tokens:
            return None
        indexed = any(t.value == 'indexed' for t in tokens)
        kept = [t for t in tokens if t.value not in DATA_LOCATIONS and t.value != 'indexed']
        name = ''
        if (
            len(kept) >= 2
            and kept[-1].is_identifier
            and kept[-1].value != 'payable'
            and kept[-2].value != '.'
        ):
            name = kept[-1].value
            kept = kept[:-1]
        if not kept:
            return None
        return Parameter(name=name, type=render_type(kept), indexed=indexed if is_event else None)

    def _state_variable(self, start: int, end: int) -> Optional[StateVariable]:
        tokens = self.tokens[start:end]
        for position, token in enumerate(tokens):
            if token.value == '=':
                tokens = tokens[:position]
                break

        visibility = Visibility.INTERNAL
        is_constant = False
        is_immutable = False
        kept: List[Token] = []
        position = 0
        while position < len(tokens):
            token = tokens[position]
            value = token.value
            if value in VISIBILITY_KEYWORDS:
                visibility = VISIBILITY_KEYWORDS[value]
            elif value == 'constant':
                is_constant = True
            elif value == 'immutable':
                is_immutable = True
            elif value in STATE_VARIABLE_KEYWORDS:
                if value == 'override' and position + 1 < len(tokens) and tokens[position + 1].value == '(':
                    depth = 0
                    while position < len(tokens):
                        if tokens[position].value == '(':
                            depth += 1
                        elif tokens[position].value == ')':
                            depth -= 1
                            if depth == 0:
                                break
                        position += 1
            else:
                kept.append(token)
            position += 1

        if len(kept) < 2 or not kept[-1].is_identifier or kept[-2].value == '.':
            return None
        type_tokens = kept[:-1]
        if any(t.value == 'is' or t.type is TokenType.STRING for t in type_tokens):
            return None
        if visibility is Visibility.EXTERNAL:
            return None
        return StateVariable(
            name=kept[-1].value,
            type=render_type(type_tokens),
            visibility=visibility,
            is_constant=is_constant,
            is_immutable=is_immutable,
            start_line=tokens[0].line,
        )

    # -- function bodies -------------------------------------------------

    def _calls_and_emits(self, start: int, end: int) -> Tuple[List[FunctionCall], List[str]]:
        calls: List[FunctionCall] = []
        emits: List[str] = []
        seen = set()

        def add(target: str, call_type: CallType, open_paren: int) -> None:
            key = (call_type, target)
            if key in seen:
                return
            seen.add(key)
            calls.append(FunctionCall(target=target, type=call_type, arg_count=self._arg_count(open_paren, end)))

        position = start
        while position < end:
            token = self.tokens[position]
            value = token.value

            if value == 'emit':
                parts: List[str] = []
                cursor = position + 1
                while cursor < end and (self.tokens[cursor].is_identifier or self.tokens[cursor].value == '.'):
                    parts.append(self.tokens[cursor].value)
                    cursor += 1
                event_name = ''.join(parts)
                if event_name and self._value(cursor) == '(' and event_name not in emits:
                    emits.append(event_name)
                position = cursor
                continue

            if value == 'assembly':
                # inline assembly: calls in there are opcodes, not functions
                cursor = position + 1
                while cursor < end and self.tokens[cursor].value != '{':
                    cursor += 1
                close = self._closing(cursor, end + 1) if cursor < end else None
                position = close + 1 if close is not None else cursor
                continue

            if token.is_identifier and self._value(position + 1) == '(':
                previous = self._value(position - 1) if position > start else None
                if previous == '.':
                    self._member_call(position, start, end, add)
                elif previous not in ('new', 'function', 'emit') and not self._is_non_call(value):
                    if value.startswith('_') or value[0].islower():
                        add(value, CallType.INTERNAL, position + 1)
            position += 1

        return calls, emits

    def _member_call(self, position: int, start: int, end: int, add) -> None:
        member = self.tokens[position].value
        object_index = position - 2
        if object_index < start:
            return
        object_token = self.tokens[object_index]

        if member == 'delegatecall':
            target = 'unknown'
            close = self._closing(position + 1, end + 1)
            if close is not None and any(t.value == '(' for t in self.tokens[position + 2:close]):
                target = 'encoded_call'
            add(target, CallType.DELEGATECALL, position + 1)
            return

        if not object_token.is_identifier or (object_index > start and self._value(object_index - 1) == '.'):
            return
        object_name = object_token.value

        if member == 'functionDelegateCall' and object_name == 'Address':
            target = 'unknown'
            if self._is_identifier(position + 2) and self._value(position + 3) in (',', ')'):
                target = self.tokens[position + 2].value
            add(target, CallType.DELEGATECALL, position + 1)
        elif object_name == 'super':
            add(member, CallType.SUPER, position + 1)
        elif object_name[0].isupper():
            add(f"{object_name}.{member}", CallType.LIBRARY, position + 1)
        elif object_name not in ('abi', 'msg', 'block', 'tx'):
            add(f"{object_name}.{member}", CallType.EXTERNAL, position + 1)

    @staticmethod
    def _is_non_call(name: str) -> bool:
        return name in NON_CALL_NAMES or bool(ELEMENTARY_TYPE.match(name))

    def _arg_count(self, open_paren: int, limit: int) -> int:
        close = self._closing(open_paren, limit + 1)
        if close is None or close == open_paren + 1:
            return 0
        return len(self._split(open_paren + 1, close, ','))


def render_type(tokens: Sequence[Token]) -> str:
    """
    Render type tokens back to source form

    Adjacent words are separated by one space and ``=>`` gets a space on
    either side; everything else is joined directly, e.g.
    ``mapping(address => uint256[])`` or ``address payable``.
    """
    out: List[str] = []
    previous: Optional[Token] = None
    for token in tokens:
        if token.value == '=>':
            out.append(' => ')
        else:
            if previous is not None and previous.is_word and token.is_word:
                out.append(' ')
            out.append(token.value)
        previous = token
    return ''.join(out).strip()
