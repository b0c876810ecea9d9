"""
Analysis pipeline for sol-flow

Runs the stages for one upload: validate input -> parse -> resolve library
dependencies -> build the call graph. Each invocation gets its own
AnalysisContext; the remapping resolver and library index are injected and
shared read-only between invocations.
"""

import time
from typing import Any, Iterable, List, Optional

from loguru import logger

from ..config.libraries import load_registry
from ..config.remappings import RemappingResolver, load_resolver
from ..core.context import AnalysisContext
from ..exceptions import InputLimitError, NoContractsFoundError, NoFilesProvidedError
from ..models.contract import Contract
from ..models.pipeline_data import AnalysisResult, SourceFile
from ..nodes_config import config
from ..utils.solidity_parser import FileInput, SolidityParser
from .call_graph_builder import CallGraphBuilder
from .library_index import LibraryIndex
from .library_resolver import LibraryDependencyResolver


class AnalysisPipeline:
    """
    One parse -> resolve -> build pipeline

    A run either returns an AnalysisResult (possibly carrying warnings) or
    raises a SolFlowError; there are no partial results.
    """

    def __init__(
        self,
        settings: Optional[Any] = None,
        remapping_resolver: Optional[RemappingResolver] = None,
        library_index: Optional[LibraryIndex] = None,
    ):
        """
        Initialize the pipeline

        Args:
            settings: Settings object or Box; defaults to the global config
            remapping_resolver: Rules; loaded from settings.REMAPPINGS_FILE if omitted
            library_index: Library contracts; empty if omitted
        """
        self.settings = settings if settings is not None else config
        self.remapping_resolver = remapping_resolver or load_resolver(self.settings.REMAPPINGS_FILE)
        self.library_index = library_index if library_index is not None else LibraryIndex()
        self.parser = SolidityParser.from_settings(self.settings)
        self.resolver = LibraryDependencyResolver(
            self.remapping_resolver,
            self.library_index,
            resolve_interface_implementations=self.settings.RESOLVE_INTERFACE_IMPLEMENTATIONS,
        )
        self.builder = CallGraphBuilder(self.remapping_resolver, version=self.settings.PROJECT_VERSION)

    @classmethod
    def from_settings(cls, settings: Optional[Any] = None) -> 'AnalysisPipeline':
        """
        Load remappings and the library registry, build the library index

        Raises:
            ConfigurationError: the remapping table or registry is invalid
        """
        settings = settings if settings is not None else config
        remapping_resolver = load_resolver(settings.REMAPPINGS_FILE)
        registry = load_registry(
            settings.LIBRARY_REGISTRY_FILE, settings.LIBRARY_DIR, remapping_resolver.remappings,
        )
        library_index = LibraryIndex.build(registry, remapping_resolver, SolidityParser())
        return cls(settings, remapping_resolver, library_index)

    def run(self, files: Iterable[FileInput], project_name: Optional[str] = None) -> AnalysisResult:
        """
        Analyse one upload

        Args:
            files: SourceFile objects or (path, content) pairs
            project_name: Name recorded in the graph

        Returns:
            AnalysisResult with the CallGraph and the warnings of all stages

        Raises:
            NoFilesProvidedError: no files were given
            InputLimitError: too many files, or a file is too large
            NoContractsFoundError: no file yielded a contract
        """
        sources = self._validate(files)
        context = AnalysisContext(project_name or self.settings.DEFAULT_PROJECT_NAME)
        context.metrics["file_count"] = len(sources)

        start = time.time()
        contracts = self.parser.parse(sources, context)
        context.record_timing("parse", time.time() - start)

        return self._finish(sources, contracts, context)

    async def run_async(self, files: Iterable[FileInput], project_name: Optional[str] = None) -> AnalysisResult:
        """Same as :meth:`run`, parsing files concurrently"""
        sources = self._validate(files)
        context = AnalysisContext(project_name or self.settings.DEFAULT_PROJECT_NAME)
        context.metrics["file_count"] = len(sources)

        start = time.time()
        contracts = await self.parser.parse_files_async(sources, context)
        context.record_timing("parse", time.time() - start)

        return self._finish(sources, contracts, context)

    def _validate(self, files: Iterable[FileInput]) -> List[SourceFile]:
        sources = [
            f if isinstance(f, SourceFile) else SourceFile(path=f[0], content=f[1])
            for f in files
        ]
        if not sources:
            raise NoFilesProvidedError("No files provided")

        if len(sources) > self.settings.MAX_FILES:
            raise InputLimitError(f"Too many files: {len(sources)} (limit {self.settings.MAX_FILES})")
        for source in sources:
            if source.size > self.settings.MAX_FILE_SIZE:
                raise InputLimitError(
                    f"File {source.path} is too large: {source.size} bytes (limit {self.settings.MAX_FILE_SIZE})"
                )
        return sources

    def _finish(self, sources: List[SourceFile], contracts: List[Contract], context: AnalysisContext) -> AnalysisResult:
        if not contracts:
            logger.error(f"No contracts found in {len(sources)} files")
            raise NoContractsFoundError(len(sources), context.warnings)

        start = time.time()
        source_paths = [source.path for source in sources]
        resolved = self.resolver.resolve(contracts, context, source_paths)
        context.record_timing("resolve", time.time() - start)

        start = time.time()
        call_graph = self.builder.build(context.project_name, resolved, context, source_paths)
        context.record_timing("build", time.time() - start)

        logger.info(
            f"Analysis of {context.project_name} complete: {len(call_graph.contracts)} contracts, "
            f"{len(context.warnings)} warnings"
        )
        return AnalysisResult(call_graph=call_graph, warnings=list(context.warnings))
