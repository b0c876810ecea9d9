"""
Solidity tokenizer

Splits Solidity source into identifier, number, string and punctuation
tokens. Comments are dropped and string literals become single tokens, so
braces, parentheses and quote characters inside either can never affect the
bracket matching done by the parser.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from ..exceptions import SolidityTokenizeError


class TokenType(str, Enum):
    IDENTIFIER = "identifier"
    NUMBER = "number"
    STRING = "string"
    PUNCTUATION = "punctuation"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    line: int
    pos: int

    @property
    def is_identifier(self) -> bool:
        return self.type is TokenType.IDENTIFIER

    @property
    def is_word(self) -> bool:
        return self.type in (TokenType.IDENTIFIER, TokenType.NUMBER)

    def __repr__(self) -> str:
        return f"Token({self.value!r}, line={self.line})"


_IDENTIFIER = re.compile(r'[A-Za-z_$][A-Za-z0-9_$]*')
_NUMBER = re.compile(r'0[xX][0-9a-fA-F_]*|\d[\d_]*(?:\.\d[\d_]*)?(?:[eE]-?\d+)?')
_WHITESPACE = re.compile(r'[ \t\r\f\v]+')

# Only multi-character operators the structural parser cares about
_MULTI_CHAR = ('=>',)

OPENERS = {'(': ')', '[': ']', '{': '}'}


def tokenize(source: str) -> List[Token]:
    """
    Tokenize Solidity source text

    Args:
        source: Solidity code content

    Returns:
        Tokens in source order

    Raises:
        SolidityTokenizeError: on an unterminated string literal or block comment
    """
    tokens: List[Token] = []
    length = len(source)
    pos = 0
    line = 1

    while pos < length:
        char = source[pos]

        if char == '\n':
            line += 1
            pos += 1
            continue

        match = _WHITESPACE.match(source, pos)
        if match:
            pos = match.end()
            continue

        if source.startswith('//', pos):
            end = source.find('\n', pos)
            pos = length if end == -1 else end
            continue

        if source.startswith('/*', pos):
            end = source.find('*/', pos + 2)
            if end == -1:
                raise SolidityTokenizeError("Unterminated block comment", line)
            line += source.count('\n', pos, end)
            pos = end + 2
            continue

        if char in ('"', "'"):
            end = _scan_string(source, pos, line)
            tokens.append(Token(TokenType.STRING, source[pos:end], line, pos))
            # escaped line continuations
            line += source.count('\n', pos, end)
            pos = end
            continue

        match = _IDENTIFIER.match(source, pos)
        if match:
            tokens.append(Token(TokenType.IDENTIFIER, match.group(), line, pos))
            pos = match.end()
            continue

        match = _NUMBER.match(source, pos)
        if match:
            tokens.append(Token(TokenType.NUMBER, match.group(), line, pos))
            pos = match.end()
            continue

        for operator in _MULTI_CHAR:
            if source.startswith(operator, pos):
                tokens.append(Token(TokenType.PUNCTUATION, operator, line, pos))
                pos += len(operator)
                break
        else:
            tokens.append(Token(TokenType.PUNCTUATION, char, line, pos))
            pos += 1

    return tokens


def _scan_string(source: str, start: int, line: int) -> int:
    """Return the index just past the string literal starting at *start*"""
    quote = source[start]
    pos = start + 1
    length = len(source)
    while pos < length:
        char = source[pos]
        if char == '\\':
            pos += 2
            continue
        if char == quote:
            return pos + 1
        if char == '\n':
            break
        pos += 1
    raise SolidityTokenizeError("Unterminated string literal", line)


def match_brackets(tokens: List[Token]) -> Dict[int, int]:
    """
    Pair every opening bracket with its closing bracket

    Each bracket kind is matched with its own stack, so a stray ``)`` cannot
    close a ``{``. Openers left without a partner are absent from the result.

    Args:
        tokens: Token list from :func:`tokenize`

    Returns:
        Mapping of opener index -> closer index
    """
    closers = {close: open_ for open_, close in OPENERS.items()}
    stacks: Dict[str, List[int]] = {open_: [] for open_ in OPENERS}
    matches: Dict[int, int] = {}

    for index, token in enumerate(tokens):
        if token.type is not TokenType.PUNCTUATION:
            continue
        if token.value in OPENERS:
            stacks[token.value].append(index)
        elif token.value in closers:
            stack = stacks[closers[token.value]]
            if stack:
                matches[stack.pop()] = index
    return matches
