"""
Tests for the library index and library dependency resolution
"""

import unittest

import pytest

from sol_flow.config.libraries import LibraryEntry, LibraryFormat, LibraryRegistry
from sol_flow.config.remappings import load_resolver
from sol_flow.core.context import AnalysisContext
from sol_flow.nodes_config import CONFIG_DIR, Settings
from sol_flow.pipeline.call_graph_builder import CallGraphBuilder
from sol_flow.pipeline.core import AnalysisPipeline
from sol_flow.pipeline.library_index import LibraryIndex
from sol_flow.pipeline.library_resolver import LibraryDependencyResolver
from sol_flow.utils.solidity_parser import SolidityParser

OZ = "openzeppelin-contracts/contracts"

OWNABLE = """
pragma solidity ^0.8.20;
import {Context} from "../utils/Context.sol";
abstract contract Ownable is Context {
    function owner() public view virtual returns (address) {}
}
"""

CONTEXT = """
abstract contract Context {
    function _msgSender() internal view virtual returns (address) {
        return msg.sender;
    }
}
"""

IERC20 = """
interface IERC20 {
    function totalSupply() external view returns (uint256);
}
"""

ERC20 = """
import {IERC20} from "./IERC20.sol";
import {Context} from "../../utils/Context.sol";
abstract contract ERC20 is Context, IERC20 {
    function totalSupply() public view returns (uint256) {}
}
"""

LIBRARY_FILES = [
    (f"{OZ}/access/Ownable.sol", OWNABLE),
    (f"{OZ}/utils/Context.sol", CONTEXT),
    (f"{OZ}/token/ERC20/IERC20.sol", IERC20),
    (f"{OZ}/token/ERC20/ERC20.sol", ERC20),
    ("solady/src/A.sol", 'import "./B.sol"; library A {}'),
    ("solady/src/B.sol", 'import "./A.sol"; library B {}'),
]


def user_contracts(files):
    return SolidityParser().parse(files)


class TestLibraryIndex(unittest.TestCase):
    """Test cases for LibraryIndex"""

    def setUp(self):
        """Setup for tests"""
        self.index = LibraryIndex.from_sources(LIBRARY_FILES)

    def test_lookup_by_target_path(self):
        unit = self.index.get(f"{OZ}/access/Ownable.sol")
        self.assertEqual([c.name for c in unit], ["Ownable"])
        self.assertIn(f"{OZ}/utils/Context.sol", self.index)
        self.assertIsNone(self.index.get(f"{OZ}/missing/Nope.sol"))
        self.assertEqual(len(self.index), 6)

    def test_read_only(self):
        with self.assertRaises(TypeError):
            self.index.units["x.sol"] = ()

    def test_from_call_graph(self):
        resolver = load_resolver(CONFIG_DIR / "remappings.json")
        contracts = SolidityParser().parse([
            (f"{OZ}/access/Ownable.sol", OWNABLE),
            ("@openzeppelin/contracts/utils/Context.sol", CONTEXT),
            ("token/ERC20/IERC20.sol", IERC20),
        ])
        graph = CallGraphBuilder(resolver).build("openzeppelin", contracts)
        index = LibraryIndex.from_call_graph(graph, OZ, resolver)
        self.assertEqual(sorted(index), [
            f"{OZ}/access/Ownable.sol",
            f"{OZ}/token/ERC20/IERC20.sol",
            f"{OZ}/utils/Context.sol",
        ])


class TestLibraryDependencyResolver(unittest.TestCase):
    """Test cases for LibraryDependencyResolver"""

    def setUp(self):
        """Setup for tests"""
        self.remappings = load_resolver(CONFIG_DIR / "remappings.json")
        self.index = LibraryIndex.from_sources(LIBRARY_FILES)
        self.resolver = LibraryDependencyResolver(self.remappings, self.index)
        self.context = AnalysisContext("test")

    def test_transitive_resolution(self):
        user = user_contracts([(
            "proj/src/MyToken.sol",
            'import "@openzeppelin/contracts@5.0.0/access/Ownable.sol";\ncontract MyToken is Ownable {}',
        )])
        resolved = self.resolver.resolve(user, self.context)

        self.assertEqual([c.name for c in resolved], ["MyToken", "Ownable", "Context"])
        ownable, context = resolved[1], resolved[2]
        self.assertEqual(ownable.file_path, "@openzeppelin/contracts/access/Ownable.sol")
        self.assertEqual(context.file_path, "@openzeppelin/contracts/utils/Context.sol")
        self.assertTrue(ownable.is_external_library)
        self.assertEqual(ownable.library_source, "openzeppelin")
        self.assertFalse(resolved[0].is_external_library)
        self.assertEqual(self.context.warnings, [])
        self.assertEqual(self.context.metrics["library_contract_count"], 2)

    def test_cycle_terminates_without_warning(self):
        user = user_contracts([("proj/User.sol", 'import "solady/A.sol"; contract User {}')])
        resolved = self.resolver.resolve(user, self.context)
        self.assertEqual([c.name for c in resolved], ["User", "A", "B"])
        self.assertEqual(self.context.warnings, [])

    def test_no_duplicates(self):
        user = user_contracts([
            ("proj/A.sol", 'import "@openzeppelin/contracts/access/Ownable.sol"; contract A is Ownable {}'),
            ("proj/B.sol", 'import "@openzeppelin/contracts@5.0.2/access/Ownable.sol"; contract B is Ownable {}'),
        ])
        resolved = self.resolver.resolve(user, self.context)
        self.assertEqual([c.name for c in resolved], ["A", "B", "Ownable", "Context"])

    def test_unresolved_imports_warn(self):
        user = user_contracts([(
            "proj/T.sol",
            'import "forge-std/Test.sol";\nimport "@openzeppelin/contracts/missing/X.sol";\ncontract T {}',
        )])
        resolved = self.resolver.resolve(user, self.context)
        self.assertEqual([c.name for c in resolved], ["T"])
        warnings = self.context.warnings_for("resolve")
        self.assertEqual(len(warnings), 2)
        self.assertTrue(all(w.file_path == "proj/T.sol" for w in warnings))

    def test_local_imports_satisfied(self):
        user = user_contracts([
            ("proj/src/Base.sol", "contract Base {}"),
            ("proj/src/Child.sol", 'import "./Base.sol"; contract Child is Base {}'),
        ])
        resolved = self.resolver.resolve(user, self.context)
        self.assertEqual([c.name for c in resolved], ["Base", "Child"])
        self.assertEqual(self.context.warnings, [])

    def test_uploaded_file_without_contracts_is_local(self):
        files = [
            ("proj/src/Types.sol", "struct Position { uint256 size; }\nerror Unauthorized();"),
            ("proj/src/Vault.sol", 'import {Position} from "./Types.sol";\ncontract Vault {}'),
        ]
        user = user_contracts(files)
        resolved = self.resolver.resolve(user, self.context, [path for path, _ in files])
        self.assertEqual([c.name for c in resolved], ["Vault"])
        self.assertEqual(self.context.warnings, [])

    def test_interface_pulls_implementation(self):
        user = user_contracts([
            ("proj/V.sol", 'import "@openzeppelin/contracts/token/ERC20/IERC20.sol"; contract V {}'),
        ])
        resolved = self.resolver.resolve(user, self.context)
        self.assertEqual([c.name for c in resolved], ["V", "IERC20", "ERC20", "Context"])

        plain = LibraryDependencyResolver(self.remappings, self.index, resolve_interface_implementations=False)
        self.assertEqual([c.name for c in plain.resolve(user)], ["V", "IERC20"])

    def test_empty_index(self):
        resolver = LibraryDependencyResolver(self.remappings, LibraryIndex())
        user = user_contracts([("proj/A.sol", 'import "solady/A.sol"; contract A {}')])
        self.assertEqual([c.name for c in resolver.resolve(user, self.context)], ["A"])
        self.assertEqual(len(self.context.warnings), 1)


def test_build_index_from_registry(tmp_path):
    source_dir = tmp_path / "openzeppelin-contracts" / "contracts" / "access"
    source_dir.mkdir(parents=True)
    (source_dir / "Ownable.sol").write_text(OWNABLE, encoding="utf-8")

    registry = LibraryRegistry(
        [
            LibraryEntry(id="openzeppelin", name="OpenZeppelin", location=OZ, target_root=OZ),
            LibraryEntry(id="solady", name="Solady", format=LibraryFormat.SOURCES,
                         location="solady/src", target_root="solady/src"),
        ],
        tmp_path,
    )
    context = AnalysisContext("library")
    index = LibraryIndex.build(registry, context=context)

    assert list(index) == [f"{OZ}/access/Ownable.sol"]
    assert index.contract_count == 1
    assert len(context.warnings_for("library")) == 1


def test_index_lookup_normalizes_paths():
    index = LibraryIndex({"solady/src//tokens/ERC20.sol": []})
    assert "solady/src/tokens/ERC20.sol" in index
    with pytest.raises(TypeError):
        index.units["other"] = ()


def test_shared_type_files_are_neither_warned_nor_dangling():
    pipeline = AnalysisPipeline(Settings(), library_index=LibraryIndex.from_sources(LIBRARY_FILES))
    result = pipeline.run([
        ("proj/src/Types.sol", "struct Position { uint256 size; }\nerror Unauthorized();"),
        ("proj/src/Errors.sol", "uint256 constant MAX_FEE = 100;"),
        ("proj/src/Vault.sol", 'import {Position} from "./Types.sol";\nimport "./Errors.sol";\ncontract Vault {}'),
    ])

    assert result.warnings == []
    assert result.call_graph.dangling_references == []
