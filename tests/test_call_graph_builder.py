"""
Tests for call graph assembly
"""

import unittest

from sol_flow.config.remappings import load_resolver
from sol_flow.core.context import AnalysisContext
from sol_flow.models.call_graph import DependencyType, ProxyPatternType, ReferenceType
from sol_flow.models.contract import Contract, ContractKind
from sol_flow.nodes_config import CONFIG_DIR
from sol_flow.pipeline.call_graph_builder import CallGraphBuilder, categorize, inherited_functions
from sol_flow.utils.solidity_parser import SolidityParser

VAULT_PROJECT = [
    ("proj/src/interfaces/IVault.sol", """
interface IVault {
    function deposit(uint256 amount) external;
}
"""),
    ("proj/src/libraries/MathLib.sol", """
library MathLib {
    function mulDiv(uint256 a, uint256 b, uint256 c) internal pure returns (uint256) {
        return a * b / c;
    }
}
"""),
    ("proj/src/Base.sol", """
abstract contract Base {
    function pause() public virtual {}
    function _check() internal view {}
}
"""),
    ("proj/src/Vault.sol", """
import "./interfaces/IVault.sol";
import "./libraries/MathLib.sol";
import "./Base.sol";
import {Ownable} from "@openzeppelin/contracts/access/Ownable.sol";

contract Vault is Base, IVault, Ownable {
    using MathLib for uint256;

    function deposit(uint256 amount) external {
        uint256 shares = MathLib.mulDiv(amount, 1, 2);
        _check();
    }
}
"""),
]


def build(files, resolver=None):
    contracts = SolidityParser().parse(files)
    return CallGraphBuilder(resolver).build("test", contracts)


def edges(graph, dep_type=None):
    return [
        (d.from_id, d.to_id) for d in graph.dependencies
        if dep_type is None or d.type is dep_type
    ]


def contract(name, kind=ContractKind.CONTRACT, file_path=None):
    return Contract(name=name, kind=kind, file_path=file_path or f"src/{name}.sol")


class TestCategorize(unittest.TestCase):
    """Test cases for categorize"""

    def test_kind_first(self):
        self.assertEqual(categorize(contract("IERC20", ContractKind.INTERFACE, "src/token/IERC20.sol")), "interface")
        self.assertEqual(categorize(contract("SafeERC20", ContractKind.LIBRARY, "src/token/SafeERC20.sol")), "library")

    def test_directory_before_name(self):
        self.assertEqual(categorize(contract("ERC20Wrapper", file_path="contracts/utils/ERC20Wrapper.sol")), "utils")
        self.assertEqual(categorize(contract("Thing", file_path="contracts/Access/Thing.sol")), "access")

    def test_directory_order(self):
        # both directories present: "access" is checked before "token"
        self.assertEqual(categorize(contract("X", file_path="token/access/X.sol")), "access")

    def test_name_cues_in_order(self):
        self.assertEqual(categorize(contract("MyERC721")), "token")
        self.assertEqual(categorize(contract("OwnableProxy")), "access")
        self.assertEqual(categorize(contract("TimelockController")), "governance")
        self.assertEqual(categorize(contract("ReentrancyGuard")), "utils")
        self.assertEqual(categorize(contract("Vault")), "other")


class TestCallGraphBuilder(unittest.TestCase):
    """Test cases for CallGraphBuilder"""

    def setUp(self):
        """Setup for tests"""
        self.resolver = load_resolver(CONFIG_DIR / "remappings.json")
        self.graph = build(VAULT_PROJECT, self.resolver)

    def test_contracts_categorized_in_order(self):
        self.assertEqual([c.name for c in self.graph.contracts], ["IVault", "MathLib", "Base", "Vault"])
        self.assertEqual(
            [c.category for c in self.graph.contracts],
            ["interface", "library", "other", "other"],
        )
        self.assertEqual(self.graph.project_name, "test")

    def test_inheritance_and_implementation(self):
        self.assertEqual(edges(self.graph, DependencyType.INHERITS), [("proj/src/Vault.sol:Vault", "proj/src/Base.sol:Base")])
        self.assertEqual(
            edges(self.graph, DependencyType.IMPLEMENTS),
            [("proj/src/Vault.sol:Vault", "proj/src/interfaces/IVault.sol:IVault")],
        )

    def test_library_usage(self):
        uses = [d for d in self.graph.dependencies if d.type is DependencyType.USES]
        self.assertEqual(len(uses), 1)
        self.assertEqual(uses[0].to_id, "proj/src/libraries/MathLib.sol:MathLib")
        self.assertEqual(uses[0].functions, ["mulDiv"])

    def test_dangling_references(self):
        dangling = self.graph.dangling_for("proj/src/Vault.sol:Vault")
        by_type = {ref.reference_type: ref for ref in dangling}
        self.assertEqual(len(dangling), 2)

        inherits = by_type[ReferenceType.INHERITS]
        self.assertEqual(inherits.name, "Ownable")
        self.assertEqual(inherits.import_path, "@openzeppelin/contracts/access/Ownable.sol")
        self.assertEqual(
            inherits.url,
            "https://github.com/OpenZeppelin/openzeppelin-contracts/blob/master/contracts/access/Ownable.sol",
        )
        self.assertEqual(by_type[ReferenceType.IMPORTS].name, "@openzeppelin/contracts/access/Ownable.sol")

    def test_structure_and_stats(self):
        structure = self.graph.structure
        self.assertEqual(structure.name, "src")
        self.assertEqual(
            sorted(child.name for child in structure.children),
            ["Base.sol", "Vault.sol", "interfaces", "libraries"],
        )
        stats = self.graph.stats
        self.assertEqual(
            (stats.total_contracts, stats.total_libraries, stats.total_interfaces, stats.total_functions),
            (2, 1, 1, 5),
        )

    def test_context_metrics(self):
        context = AnalysisContext("test")
        CallGraphBuilder().build("test", self.graph.contracts, context)
        self.assertEqual(context.metrics["contract_count"], 4)

    def test_dangling_without_resolver_has_no_url(self):
        graph = build(VAULT_PROJECT)
        self.assertTrue(all(ref.url is None for ref in graph.dangling_references))


class TestNameResolution(unittest.TestCase):
    """How base names find their contracts"""

    def test_same_name_different_paths_kept(self):
        graph = build([("a/Token.sol", "contract Token {}"), ("b/Token.sol", "contract Token {}")])
        self.assertEqual([c.contract_id for c in graph.contracts], ["a/Token.sol:Token", "b/Token.sol:Token"])

    def test_duplicate_identity_dropped(self):
        contracts = SolidityParser().parse([("a/Token.sol", "contract Token {}")])
        graph = CallGraphBuilder().build("dup", contracts + contracts)
        self.assertEqual(len(graph.contracts), 1)

    def test_alias_import(self):
        graph = build([
            ("src/Ownable.sol", "contract Ownable {}"),
            ("src/A.sol", 'import {Ownable as Own} from "./Ownable.sol";\ncontract A is Own {}'),
        ])
        self.assertEqual(edges(graph), [("src/A.sol:A", "src/Ownable.sol:Ownable")])
        self.assertEqual(graph.dangling_references, [])

    def test_namespace_import(self):
        graph = build([
            ("src/Bases.sol", "contract Base {}"),
            ("src/A.sol", 'import "./Bases.sol" as B;\ncontract A is B.Base {}'),
        ])
        self.assertEqual(edges(graph), [("src/A.sol:A", "src/Bases.sol:Base")])

    def test_duplicate_name_prefers_imported_file(self):
        graph = build([
            ("a/Token.sol", "contract Token {}"),
            ("b/Token.sol", "contract Token {}"),
            ("c/User.sol", 'import "../b/Token.sol";\ncontract User is Token {}'),
        ])
        self.assertEqual(edges(graph), [("c/User.sol:User", "b/Token.sol:Token")])

    def test_duplicate_name_prefers_nearest_directory(self):
        graph = build([
            ("y/Token.sol", "contract Token {}"),
            ("x/one/Token.sol", "contract Token {}"),
            ("x/one/User.sol", "contract User is Token {}"),
        ])
        self.assertEqual(edges(graph), [("x/one/User.sol:User", "x/one/Token.sol:Token")])


class TestProxyDetection(unittest.TestCase):
    """Test cases for proxy groups"""

    def test_uups_group(self):
        graph = build([
            ("src/MyProxy.sol", "contract MyProxy { function upgradeTo(address impl) external {} }"),
            ("src/Logic.sol", """
contract Logic {
    function upgradeTo(address impl) external {}
    function proxiableUUID() external view returns (bytes32) {}
}
"""),
        ])
        self.assertEqual(len(graph.proxy_groups), 1)
        group = graph.proxy_groups[0]
        self.assertEqual(group.pattern_type, ProxyPatternType.UUPS)
        self.assertEqual(group.proxy, "src/MyProxy.sol:MyProxy")
        self.assertEqual(group.implementations, ["src/Logic.sol:Logic"])
        self.assertEqual(edges(graph, DependencyType.DELEGATECALL), [("src/MyProxy.sol:MyProxy", "src/Logic.sol:Logic")])

    def test_eip7546_groups(self):
        graph = build([
            ("src/Dictionary.sol", "contract Dictionary { function setImplementation(bytes4 s, address i) external {} }"),
            ("src/Entry.sol", "contract Entry { function getDictionary() external view returns (address) {} }"),
            ("sc/ERC721/functions/Mint.sol", "contract Mint { function mint() external {} }"),
        ])
        ids = [g.id for g in graph.proxy_groups]
        self.assertEqual(ids, ["proxy-group-core", "proxy-group-0"])
        core, module = graph.proxy_groups
        self.assertEqual(core.dictionary, "src/Dictionary.sol:Dictionary")
        self.assertEqual(core.proxy, "src/Entry.sol:Entry")
        self.assertEqual(module.name, "ERC721")
        self.assertEqual(module.implementations, ["sc/ERC721/functions/Mint.sol:Mint"])

        self.assertIn(
            ("src/Dictionary.sol:Dictionary", "sc/ERC721/functions/Mint.sol:Mint"),
            edges(graph, DependencyType.REGISTERS),
        )
        self.assertIn(("src/Entry.sol:Entry", "src/Dictionary.sol:Dictionary"), edges(graph, DependencyType.USES))

    def test_no_proxies(self):
        self.assertEqual(build(VAULT_PROJECT).proxy_groups, [])


def test_inherited_functions():
    graph = build([
        ("src/A.sol", "contract A { function f() public {} function g() public virtual {} }"),
        ("src/B.sol", 'import "./A.sol";\ncontract B is A { function g() public override {} function h() public virtual {} }'),
        ("src/C.sol", 'import "./B.sol";\ncontract C is B { function h() public override {} }'),
    ])
    inherited = inherited_functions(graph, "src/C.sol:C")
    assert [(base_id, fn.name) for base_id, fn in inherited] == [("src/B.sol:B", "g"), ("src/A.sol:A", "f")]
    assert inherited_functions(graph, "src/Missing.sol:Missing") == []


def test_no_self_edges():
    graph = build([("src/Math.sol", "library Math { function f() internal pure { Math.g(); } function g() internal pure {} }")])
    assert graph.dependencies == []
