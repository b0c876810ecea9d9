"""
Library registry

Fixed mapping from library id to where its data lives. A library is either a
Solidity source tree ("sources") or a pre-parsed CallGraph JSON cache
("call_graph"). Every ``librarySource`` named by the remapping table must have
an entry here; this is checked once when the registry is loaded so a missing
library fails at startup instead of silently resolving nothing.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..exceptions import ConfigurationError
from .remappings import Remapping


class LibraryFormat(str, Enum):
    SOURCES = "sources"
    CALL_GRAPH = "call_graph"


class LibraryEntry(BaseModel):
    """Registry entry for one library"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: str = Field(..., description="Library identifier, referenced by remappings")
    name: str = Field(..., description="Display name")
    version: str = Field("latest", description="Library version")
    format: LibraryFormat = Field(LibraryFormat.SOURCES, description="How the library data is stored")
    location: str = Field(..., description="Source directory or JSON file, relative to the library dir")
    target_root: str = Field(..., description="Target path prefix the library's files live under")


class LibraryRegistry:
    """
    Immutable id -> LibraryEntry mapping
    """

    def __init__(self, entries: Iterable[LibraryEntry], library_dir: Union[str, Path]):
        """
        Initialize the registry

        Args:
            entries: Registry entries
            library_dir: Root directory that entry locations are relative to

        Raises:
            ConfigurationError: two entries share an id
        """
        self.library_dir = Path(library_dir)
        self._entries: Dict[str, LibraryEntry] = {}
        for entry in entries:
            if entry.id in self._entries:
                raise ConfigurationError(f"Duplicate library id '{entry.id}' in registry")
            self._entries[entry.id] = entry

    def __contains__(self, library_id: str) -> bool:
        return library_id in self._entries

    def __iter__(self) -> Iterator[LibraryEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, library_id: str) -> Optional[LibraryEntry]:
        return self._entries.get(library_id)

    def location_of(self, entry: LibraryEntry) -> Path:
        return self.library_dir / entry.location

    def validate(self, remappings: Iterable[Remapping]) -> None:
        """
        Check the registry against the remapping table

        Args:
            remappings: Rules whose ``library_source`` must be registered

        Raises:
            ConfigurationError: a rule names an unknown library, or its target
                lies outside the library's target root
        """
        for remapping in remappings:
            entry = self.get(remapping.library_source)
            if entry is None:
                raise ConfigurationError(
                    f"Remapping '{remapping.alias}' refers to library '{remapping.library_source}' "
                    f"which is not in the library registry"
                )
            root = entry.target_root.rstrip('/')
            if remapping.target != root and not remapping.target.startswith(root + '/'):
                raise ConfigurationError(
                    f"Remapping target '{remapping.target}' is outside the target root "
                    f"'{entry.target_root}' of library '{entry.id}'"
                )

        for entry in self:
            if not self.location_of(entry).exists():
                logger.warning(f"Library '{entry.id}' has no data at {self.location_of(entry)}; it will resolve nothing")


def load_registry(
    path: Union[str, Path],
    library_dir: Union[str, Path],
    remappings: Optional[Iterable[Remapping]] = None,
) -> LibraryRegistry:
    """
    Load the library registry from a JSON file

    Args:
        path: JSON file holding a list of entries
        library_dir: Root directory for entry locations
        remappings: When given, the registry is validated against them

    Returns:
        LibraryRegistry instance

    Raises:
        ConfigurationError: the file is missing, malformed, or incomplete
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read library registry from {path}: {e}") from e

    if not isinstance(raw, list):
        raise ConfigurationError(f"Library registry {path} must contain a JSON list")

    try:
        entries = [LibraryEntry.model_validate(item) for item in raw]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid library entry in {path}: {e}") from e

    registry = LibraryRegistry(entries, library_dir)
    if remappings is not None:
        registry.validate(remappings)
    logger.debug(f"Loaded {len(registry)} library entries from {path}")
    return registry
