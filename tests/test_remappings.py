"""
Tests for import remappings and the library registry
"""

import json
import unittest

import pytest

from sol_flow.config.libraries import LibraryEntry, LibraryRegistry, load_registry
from sol_flow.config.remappings import Remapping, RemappingResolver, load_remappings, load_resolver
from sol_flow.exceptions import ConfigurationError
from sol_flow.nodes_config import CONFIG_DIR
from sol_flow.utils.path_normalizer import normalize

REMAPPINGS_FILE = CONFIG_DIR / "remappings.json"
REGISTRY_FILE = CONFIG_DIR / "libraries.json"


class TestRemappingResolver(unittest.TestCase):
    """Test cases for RemappingResolver with the packaged rule table"""

    def setUp(self):
        """Setup for tests"""
        self.resolver = load_resolver(REMAPPINGS_FILE)

    def test_more_specific_alias_listed_first(self):
        remapping = self.resolver.find_remapping(
            "@openzeppelin/contracts-upgradeable/access/OwnableUpgradeable.sol"
        )
        self.assertEqual(remapping.library_source, "openzeppelin-upgradeable")

        remapping = self.resolver.find_remapping("@openzeppelin/contracts/access/Ownable.sol")
        self.assertEqual(remapping.library_source, "openzeppelin")

    def test_resolve_versioned_import(self):
        resolved = self.resolver.resolve_import_to_target("@openzeppelin/contracts@5.0.0/token/ERC20/ERC20.sol")
        self.assertEqual(resolved.target_path, "openzeppelin-contracts/contracts/token/ERC20/ERC20.sol")
        self.assertEqual(resolved.remapping.alias, "@openzeppelin/contracts")

    def test_unknown_import(self):
        self.assertIsNone(self.resolver.resolve_import_to_target("forge-std/Test.sol"))
        self.assertFalse(self.resolver.is_external("forge-std/Test.sol"))
        self.assertTrue(self.resolver.is_external("solady/tokens/ERC20.sol"))

    def test_alias_target_round_trip(self):
        """target_to_alias inverts resolve_import_to_target"""
        paths = [
            "@openzeppelin/contracts/access/Ownable.sol",
            "@openzeppelin/contracts-upgradeable/proxy/utils/UUPSUpgradeable.sol",
            "solady/tokens/ERC721.sol",
            "@teleporter/TeleporterMessenger.sol",
        ]
        for path in paths:
            target = self.resolver.resolve_import_to_target(path).target_path
            self.assertEqual(self.resolver.target_to_alias(target), path)

    def test_versioned_round_trip_yields_normalized_path(self):
        paths = [
            "@openzeppelin/contracts-upgradeable@5.0.2/proxy/utils/UUPSUpgradeable.sol",
            "@openzeppelin/contracts@4.9.3/token/ERC20/ERC20.sol",
        ]
        for path in paths:
            target = self.resolver.resolve_import_to_target(path).target_path
            self.assertEqual(self.resolver.target_to_alias(target), normalize(path))
        self.assertEqual(
            self.resolver.target_to_alias(
                self.resolver.resolve_import_to_target(paths[0]).target_path
            ),
            "@openzeppelin/contracts-upgradeable/proxy/utils/UUPSUpgradeable.sol",
        )

    def test_url_for(self):
        self.assertEqual(
            self.resolver.url_for("@openzeppelin/contracts@5.0.0/access/Ownable.sol", 42),
            "https://github.com/OpenZeppelin/openzeppelin-contracts/blob/master/contracts/access/Ownable.sol#L42",
        )
        self.assertEqual(
            self.resolver.url_for("solady/utils/LibString.sol"),
            "https://github.com/Vectorized/solady/blob/main/src/utils/LibString.sol",
        )

    def test_url_for_without_github_metadata(self):
        self.assertIsNone(self.resolver.url_for("@teleporter/TeleporterMessenger.sol"))
        self.assertIsNone(self.resolver.url_for("forge-std/Test.sol"))

    def test_url_for_library(self):
        self.assertEqual(
            self.resolver.url_for_library("solady", "tokens/ERC20.sol", 7),
            "https://github.com/Vectorized/solady/blob/main/src/tokens/ERC20.sol#L7",
        )
        self.assertIsNone(self.resolver.url_for_library("avalanche-icm", "Teleporter.sol"))


class TestRuleOrdering(unittest.TestCase):
    """First matching rule wins, even when a later rule is more specific"""

    def test_first_match_wins(self):
        resolver = RemappingResolver([
            Remapping(alias="@lib", target="generic", library_source="generic"),
            Remapping(alias="@lib/special", target="special", library_source="special"),
        ])
        resolved = resolver.resolve_import_to_target("@lib/special/A.sol")
        self.assertEqual(resolved.target_path, "generic/special/A.sol")
        self.assertEqual(resolved.remapping.library_source, "generic")


class TestLibraryRegistry(unittest.TestCase):
    """Test cases for registry validation"""

    def setUp(self):
        """Setup for tests"""
        self.remappings = load_remappings(REMAPPINGS_FILE)

    def test_packaged_registry_covers_remappings(self):
        registry = load_registry(REGISTRY_FILE, "/nonexistent/library", self.remappings)
        for remapping in self.remappings:
            self.assertIn(remapping.library_source, registry)

    def test_missing_library_fails(self):
        registry = LibraryRegistry(
            [LibraryEntry(id="openzeppelin", name="OZ", location="oz", target_root="openzeppelin-contracts/contracts")],
            "/nonexistent/library",
        )
        with self.assertRaises(ConfigurationError):
            registry.validate(self.remappings)

    def test_target_outside_root_fails(self):
        registry = LibraryRegistry(
            [LibraryEntry(id="generic", name="Generic", location="g", target_root="somewhere/else")],
            "/nonexistent/library",
        )
        with self.assertRaises(ConfigurationError):
            registry.validate([Remapping(alias="@g", target="generic/src", library_source="generic")])

    def test_duplicate_id_fails(self):
        entry = LibraryEntry(id="solady", name="Solady", location="solady/src", target_root="solady/src")
        with self.assertRaises(ConfigurationError):
            LibraryRegistry([entry, entry], "/nonexistent/library")


def test_load_remappings_rejects_bad_json(tmp_path):
    path = tmp_path / "remappings.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_remappings(path)


def test_load_remappings_rejects_invalid_rule(tmp_path):
    path = tmp_path / "remappings.json"
    path.write_text(json.dumps([{"alias": "@x"}]), encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_remappings(path)


def test_load_remappings_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_remappings(tmp_path / "missing.json")


if __name__ == "__main__":
    unittest.main()
