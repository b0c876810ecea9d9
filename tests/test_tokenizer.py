"""
Tests for the Solidity tokenizer
"""

import unittest

from sol_flow.exceptions import SolidityTokenizeError
from sol_flow.utils.tokenizer import TokenType, match_brackets, tokenize


class TestTokenizer(unittest.TestCase):
    """Test cases for tokenize"""

    def test_comments_are_dropped(self):
        tokens = tokenize("a // b { c\n/* d } e */ f")
        self.assertEqual([t.value for t in tokens], ["a", "f"])

    def test_string_is_single_token(self):
        tokens = tokenize('x = "a \\" } {";')
        strings = [t for t in tokens if t.type is TokenType.STRING]
        self.assertEqual(len(strings), 1)
        self.assertEqual(strings[0].value, '"a \\" } {"')
        self.assertNotIn("{", [t.value for t in tokens if t.type is TokenType.PUNCTUATION])

    def test_single_quoted_string(self):
        tokens = tokenize("s = 'it''s';")
        self.assertEqual([t.type for t in tokens][2:4], [TokenType.STRING, TokenType.STRING])

    def test_arrow_operator(self):
        tokens = tokenize("mapping(address => uint256)")
        self.assertIn("=>", [t.value for t in tokens])

    def test_line_numbers(self):
        tokens = tokenize("a\n/* x\n y */\nb\n\"s\"\nc")
        self.assertEqual([(t.value, t.line) for t in tokens], [("a", 1), ("b", 4), ('"s"', 5), ("c", 6)])

    def test_unterminated_string(self):
        with self.assertRaises(SolidityTokenizeError) as ctx:
            tokenize('a\nstring s = "oops;\n}')
        self.assertEqual(ctx.exception.line, 2)

    def test_unterminated_block_comment(self):
        with self.assertRaises(SolidityTokenizeError):
            tokenize("contract A { /* never closed }")


class TestMatchBrackets(unittest.TestCase):
    """Test cases for match_brackets"""

    def test_braces_inside_strings_and_comments_ignored(self):
        source = 'contract A { string s = "}{"; // }\n /* { */ function f() public {} }'
        tokens = tokenize(source)
        matches = match_brackets(tokens)
        first_open = next(i for i, t in enumerate(tokens) if t.value == "{")
        self.assertEqual(matches[first_open], len(tokens) - 1)

    def test_unmatched_opener_absent(self):
        tokens = tokenize("{ ( }")
        matches = match_brackets(tokens)
        self.assertEqual(matches, {0: 2})

    def test_kinds_matched_separately(self):
        tokens = tokenize("( [ ) ]")
        self.assertEqual(match_brackets(tokens), {0: 2, 1: 3})


if __name__ == "__main__":
    unittest.main()
