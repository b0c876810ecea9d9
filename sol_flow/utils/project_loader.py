"""
Project loader utility for reading Solidity projects from disk
"""

import asyncio
import os
from pathlib import Path
from typing import List, Optional, Tuple

import aiofiles
from loguru import logger

from ..models.pipeline_data import SourceFile

# Foundry tests and scripts are not part of the deployed system
SKIPPED_SUFFIXES = ('.t.sol', '.s.sol')


class AsyncProjectLoader:
    """Asynchronous loader for smart contract projects"""

    def __init__(
        self,
        ignore_patterns: Optional[List[str]] = None,
        max_concurrency: int = 10
    ):
        """Initialize project loader"""
        self.ignore_patterns = ignore_patterns or ['node_modules', '.git', 'artifacts', 'cache']
        self.max_concurrency = max_concurrency

    def find_solidity_files(self, project_path: str) -> List[str]:
        """
        Find Solidity files below a directory

        Args:
            project_path: Path to the project directory

        Returns:
            Absolute file paths, sorted
        """
        solidity_files = []
        for root, dirs, files in os.walk(project_path):
            # Skip ignored directories
            dirs[:] = [d for d in dirs if d not in self.ignore_patterns]

            for file in files:
                if file.endswith(".sol") and not file.endswith(SKIPPED_SUFFIXES):
                    solidity_files.append(os.path.join(root, file))
        return sorted(solidity_files)

    async def load_project(self, project_path: str) -> List[SourceFile]:
        """
        Load a project directory

        File paths are made relative to the parent of *project_path*, so they
        start with the project directory name (``my-project/src/Token.sol``),
        matching what a directory upload produces.

        Args:
            project_path: Path to the project directory

        Returns:
            SourceFile list in path order
        """
        root = Path(project_path).resolve()
        solidity_files = self.find_solidity_files(str(root))
        logger.info(f"Found {len(solidity_files)} Solidity files in {project_path}")

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def load_file(file_path: str) -> Optional[SourceFile]:
            async with semaphore:
                try:
                    async with aiofiles.open(file_path, 'r', encoding='utf-8') as f:
                        content = await f.read()
                except (OSError, UnicodeDecodeError) as e:
                    logger.error(f"Error loading file {file_path}: {e}")
                    return None
                relative = Path(file_path).relative_to(root.parent).as_posix()
                return SourceFile(path=relative, content=content)

        results = await asyncio.gather(*[load_file(path) for path in solidity_files])
        sources = [source for source in results if source is not None]

        logger.info(f"Successfully loaded {len(sources)} files")
        return sources

    async def load_files(self, file_paths: List[str]) -> List[SourceFile]:
        """
        Load individual files, keyed by their paths as given

        Args:
            file_paths: Paths of .sol files

        Returns:
            SourceFile list in input order, unreadable files omitted
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def load_file(file_path: str) -> Tuple[str, Optional[str]]:
            async with semaphore:
                try:
                    async with aiofiles.open(file_path, 'r', encoding='utf-8') as f:
                        return file_path, await f.read()
                except (OSError, UnicodeDecodeError) as e:
                    logger.error(f"Error loading file {file_path}: {e}")
                    return file_path, None

        results = await asyncio.gather(*[load_file(path) for path in file_paths])
        return [
            SourceFile(path=Path(path).as_posix(), content=content)
            for path, content in results
            if content is not None
        ]
