from typing import Tuple, Type
from box import Box
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, PyprojectTomlConfigSettingsSource, SettingsConfigDict
from pathlib import Path

CONFIG_DIR = Path(__file__).parent / "config"


class Settings(BaseSettings):
    model_config: SettingsConfigDict = SettingsConfigDict(
        env_prefix='SOL_FLOW_',
        pyproject_toml_depth=1,
        pyproject_toml_table_header=('tool', 'sol-flow'),
        toml_file='pyproject.toml',
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8',
        env_ignore_empty=True,
        strict=False
    )

    # Output metadata
    PROJECT_VERSION: str = "1.0.0"
    DEFAULT_PROJECT_NAME: str = "project"

    # Declarative rule tables
    REMAPPINGS_FILE: str = str(CONFIG_DIR / "remappings.json")
    LIBRARY_REGISTRY_FILE: str = str(CONFIG_DIR / "libraries.json")

    # Root directory holding library source trees and pre-parsed caches
    LIBRARY_DIR: str = str(Path.cwd() / "library")

    # Input limits
    MAX_FILES: int = 500
    MAX_FILE_SIZE: int = 1 * 1024 * 1024  # 1MB per file

    # Parser filter options
    EXCLUDE_INTERFACES: bool = False
    EXCLUDE_LIBRARIES: bool = False
    EXCLUDE_MOCKS: bool = True
    EXCLUDE_STORAGES: bool = False

    # Dependency resolution
    RESOLVE_INTERFACE_IMPLEMENTATIONS: bool = True

    # Performance settings
    MAX_PARSE_WORKERS: int = 8
    MAX_LOAD_CONCURRENCY: int = 10

    # Project loading
    IGNORE_FOLDERS: str = "node_modules,.git,artifacts,cache,out,lib"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""
    RICH_LOGGING: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            PyprojectTomlConfigSettingsSource(settings_cls),
        )

# Global settings instance
config = Box(Settings().model_dump(), frozen_box=False)
