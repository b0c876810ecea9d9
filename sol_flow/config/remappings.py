"""
Import remappings for Solidity libraries

Maps foundry-style import aliases to paths relative to the library root, and
back. Example: ``@openzeppelin/contracts/X.sol`` ->
``openzeppelin-contracts/contracts/X.sol``.

The rule table is declarative configuration (``remappings.json``). Order is
significant: rules are tried top to bottom and the first alias that prefixes
the normalized import path wins, so more specific aliases must come first.
"""

import json
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..exceptions import ConfigurationError
from ..utils.path_normalizer import normalize


class GitHubInfo(BaseModel):
    """Where a library's sources can be browsed"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    repo: str = Field(..., description="owner/name of the repository")
    branch: str = Field(..., description="Branch used for links")
    base_path: str = Field(..., description="Directory in the repository the alias maps to")
    host: str = Field("github.com", description="Code host")


class Remapping(BaseModel):
    """One alias -> target rule"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    alias: str = Field(..., description="Import alias used in Solidity, e.g. '@openzeppelin/contracts'")
    target: str = Field(..., description="Path relative to the library root, e.g. 'openzeppelin-contracts/contracts'")
    library_source: str = Field(..., description="Library identifier")
    github: Optional[GitHubInfo] = Field(None, description="Source links, if available")


class ResolvedImport(BaseModel):
    """Result of mapping an import path onto a library target path"""
    model_config = ConfigDict(frozen=True)

    target_path: str
    remapping: Remapping


class RemappingResolver:
    """
    Pure lookups over an ordered, immutable remapping table
    """

    def __init__(self, remappings: Iterable[Remapping]):
        """
        Initialize the resolver

        Args:
            remappings: Rules in priority order (most specific alias first)
        """
        self._remappings: Tuple[Remapping, ...] = tuple(remappings)
        self._warn_shadowed()

    @property
    def remappings(self) -> Tuple[Remapping, ...]:
        return self._remappings

    def _warn_shadowed(self) -> None:
        for index, rule in enumerate(self._remappings):
            for earlier in self._remappings[:index]:
                if rule.alias.startswith(earlier.alias):
                    logger.warning(
                        f"Remapping '{rule.alias}' is shadowed by earlier rule '{earlier.alias}'; "
                        f"list more specific aliases first"
                    )

    def find_remapping(self, path: str) -> Optional[Remapping]:
        """Return the first rule whose alias prefixes the normalized path"""
        normalized = normalize(path)
        for remapping in self._remappings:
            if normalized.startswith(remapping.alias):
                return remapping
        return None

    def resolve_import_to_target(self, path: str) -> Optional[ResolvedImport]:
        """
        Resolve an import path to a path relative to the library root

        e.g. "@openzeppelin/contracts/token/ERC20/ERC20.sol" ->
        "openzeppelin-contracts/contracts/token/ERC20/ERC20.sol"

        Args:
            path: Import path as written (versioned or not)

        Returns:
            The target path and the rule used, or None if no rule matches
        """
        normalized = normalize(path)
        remapping = self.find_remapping(normalized)
        if remapping is None:
            return None
        remainder = normalized[len(remapping.alias):]
        return ResolvedImport(target_path=remapping.target + remainder, remapping=remapping)

    def target_to_alias(self, target_path: str) -> Optional[str]:
        """
        Convert a library-root-relative path back to its import alias form

        e.g. "openzeppelin-contracts/contracts/token/ERC20/ERC20.sol" ->
        "@openzeppelin/contracts/token/ERC20/ERC20.sol"
        """
        for remapping in self._remappings:
            if target_path.startswith(remapping.target):
                return remapping.alias + target_path[len(remapping.target):]
        return None

    def url_for(self, path: str, line: Optional[int] = None) -> Optional[str]:
        """
        Get the source URL for an import-form path

        Args:
            path: Import path (versioned or not)
            line: Optional line to anchor

        Returns:
            URL string, or None when no rule with github metadata matches
        """
        normalized = normalize(path)
        remapping = self.find_remapping(normalized)
        if remapping is None or remapping.github is None:
            return None
        remainder = normalized[len(remapping.alias):].lstrip('/')
        return self._build_url(remapping.github, remainder, line)

    def url_for_library(self, library_id: str, path: str, line: Optional[int] = None) -> Optional[str]:
        """Get the source URL of a file when a library is viewed directly"""
        for remapping in self._remappings:
            if remapping.library_source == library_id and remapping.github is not None:
                return self._build_url(remapping.github, path.lstrip('/'), line)
        return None

    def is_external(self, path: str) -> bool:
        """Check if path belongs to a configured library"""
        return self.find_remapping(path) is not None

    @staticmethod
    def _build_url(github: GitHubInfo, remainder: str, line: Optional[int]) -> str:
        base_path = github.base_path.strip('/')
        url = f"https://{github.host}/{github.repo}/blob/{github.branch}/{base_path}/{remainder}"
        return f"{url}#L{line}" if line else url


def load_remappings(path: Union[str, Path]) -> Tuple[Remapping, ...]:
    """
    Load an ordered remapping table from a JSON file

    Args:
        path: JSON file holding a list of rules

    Returns:
        Tuple of rules, in file order

    Raises:
        ConfigurationError: the file is missing or malformed
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read remappings from {path}: {e}") from e

    if not isinstance(raw, list):
        raise ConfigurationError(f"Remappings file {path} must contain a JSON list")

    try:
        rules = tuple(Remapping.model_validate(entry) for entry in raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid remapping in {path}: {e}") from e

    logger.debug(f"Loaded {len(rules)} remappings from {path}")
    return rules


def load_resolver(path: Union[str, Path]) -> RemappingResolver:
    return RemappingResolver(load_remappings(path))
