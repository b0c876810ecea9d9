"""
Main CLI entry point for sol-flow
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from ..config.libraries import load_registry
from ..config.remappings import load_resolver
from ..exceptions import SolFlowError
from ..models.call_graph import CallGraph
from ..models.pipeline_data import AnalysisResult
from ..nodes_config import config
from ..pipeline.call_graph_builder import CallGraphBuilder
from ..pipeline.core import AnalysisPipeline
from ..pipeline.library_index import read_source_tree
from ..utils.logger import setup_logger
from ..utils.project_loader import AsyncProjectLoader
from ..utils.solidity_parser import SolidityParser

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="sol-flow - Solidity contract graph extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze a project directory
  python -m sol_flow analyze -d my-project -o graph.json

  # Analyze some files
  python -m sol_flow analyze --files src/Token.sol src/Vault.sol

  # Pre-parse a library source tree into a cache
  python -m sol_flow cache-library openzeppelin -s lib/openzeppelin-contracts/contracts -o oz.json
        """
    )
    parser.add_argument("--version", "-v", action="store_true", help="Show version information")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    analyze_parser = subparsers.add_parser("analyze", help="Build the call graph of a Solidity project")
    file_group = analyze_parser.add_mutually_exclusive_group(required=True)
    file_group.add_argument("-d", "--directory", help="Project directory to analyze")
    file_group.add_argument("--files", nargs="+", help="Solidity files to analyze (space-separated)")
    analyze_parser.add_argument("-n", "--name", help="Project name (defaults to the directory name)")
    analyze_parser.add_argument("-o", "--output", help="Write the CallGraph JSON to this file")
    analyze_parser.add_argument("--library-dir", help="Directory holding library sources and caches")

    cache_parser = subparsers.add_parser("cache-library", help="Pre-parse a library into a CallGraph JSON cache")
    cache_parser.add_argument("library_id", help="Library id from the library registry")
    cache_parser.add_argument("-s", "--source", required=True, help="Library source directory")
    cache_parser.add_argument("-o", "--output", required=True, help="Output JSON file")

    return parser


def print_summary(result: AnalysisResult) -> None:
    graph = result.call_graph
    table = Table(title=f"Call graph: {graph.project_name}")
    table.add_column("Category", style="cyan")
    table.add_column("Contracts", justify="right")
    table.add_column("Library", justify="right", style="magenta")
    for category, contracts in sorted(graph.by_category().items()):
        library_count = sum(1 for c in contracts if c.is_external_library)
        table.add_row(category, str(len(contracts)), str(library_count))
    console.print(table)

    stats = graph.stats
    console.print(
        f"[bold]{stats.total_contracts}[/] contracts, [bold]{stats.total_libraries}[/] libraries, "
        f"[bold]{stats.total_interfaces}[/] interfaces, [bold]{stats.total_functions}[/] functions, "
        f"[bold]{len(graph.dependencies)}[/] dependencies, "
        f"[bold]{len(graph.dangling_references)}[/] dangling references"
    )
    if result.has_warnings:
        console.print(f"\n[bold yellow]{len(result.warnings)} warnings:[/]")
        for warning in result.warnings:
            console.print(f"  {warning}", style="yellow", markup=False)


def write_json(path: str, data: dict) -> None:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
    logger.info(f"Wrote {output}")


async def analyze(args: argparse.Namespace) -> int:
    settings = config
    if args.library_dir:
        settings = config.copy()
        settings.LIBRARY_DIR = args.library_dir

    loader = AsyncProjectLoader(
        ignore_patterns=[p.strip() for p in settings.IGNORE_FOLDERS.split(',') if p.strip()],
        max_concurrency=settings.MAX_LOAD_CONCURRENCY,
    )
    if args.directory:
        files = await loader.load_project(args.directory)
        project_name = args.name or Path(args.directory).resolve().name
    else:
        files = await loader.load_files(args.files)
        project_name = args.name or settings.DEFAULT_PROJECT_NAME

    pipeline = AnalysisPipeline.from_settings(settings)
    result = await pipeline.run_async(files, project_name)

    print_summary(result)
    if args.output:
        write_json(args.output, result.call_graph.to_json_dict())
    return 0


def cache_library(args: argparse.Namespace) -> int:
    resolver = load_resolver(config.REMAPPINGS_FILE)
    registry = load_registry(config.LIBRARY_REGISTRY_FILE, config.LIBRARY_DIR, resolver.remappings)
    entry = registry.get(args.library_id)
    if entry is None:
        console.print(f"[red]Unknown library '{args.library_id}'[/]")
        return 1

    files = read_source_tree(Path(args.source), entry)
    contracts = SolidityParser().parse(files)
    graph: CallGraph = CallGraphBuilder(resolver, version=config.PROJECT_VERSION).build(entry.name, contracts)

    write_json(args.output, {
        "id": entry.id,
        "name": entry.name,
        "version": entry.version,
        "generatedAt": datetime.now().isoformat(),
        "callGraph": graph.to_json_dict(),
    })
    console.print(f"Cached {len(graph.contracts)} contracts of {entry.name} from {len(files)} files")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = "DEBUG" if args.debug else config.LOG_LEVEL
    setup_logger(level=log_level, log_file=config.LOG_FILE or None, rich_console=config.RICH_LOGGING)

    if args.version:
        from .. import __version__
        print(f"sol-flow v{__version__}")
        return 0

    if args.command == "analyze":
        return asyncio.run(analyze(args))
    if args.command == "cache-library":
        return cache_library(args)

    parser.print_help()
    return 0


def run():
    """Entry point for the CLI script"""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        sys.exit(1)
    except SolFlowError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    run()
