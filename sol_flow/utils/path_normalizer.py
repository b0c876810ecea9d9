"""
Import path normalization

Versioned imports such as ``@openzeppelin/contracts@5.0.2/access/Ownable.sol``
refer to the same file as their unversioned form; every lookup goes through
:func:`normalize` first.
"""

import re
from typing import List

# "-upgradeable@5.0.2/" must be handled before the generic "@5.0.2/" form
_UPGRADEABLE_VERSION = re.compile(r'-upgradeable@\d+\.\d+\.\d+/')
_VERSION_SEGMENT = re.compile(r'@\d+\.\d+\.\d+/')
_DOUBLE_SLASH = re.compile(r'/{2,}')


def normalize(path: str) -> str:
    """
    Strip semantic-version segments from an import path

    Args:
        path: Import path as written in source

    Returns:
        The path without ``@x.y.z`` segments and without doubled separators
    """
    normalized = path
    while True:
        # stripping one segment can expose another ("a@1.0.0@2.0.0/")
        previous = normalized
        normalized = _UPGRADEABLE_VERSION.sub('-upgradeable/', normalized)
        normalized = _VERSION_SEGMENT.sub('/', normalized)
        normalized = _DOUBLE_SLASH.sub('/', normalized)
        if normalized == previous:
            return normalized


def is_relative(path: str) -> bool:
    return path.startswith('./') or path.startswith('../')


def resolve_relative(base_file: str, relative_path: str) -> str:
    """
    Join a relative import against the directory of the importing file

    ``..`` segments that would climb above the base directory are dropped.

    Args:
        base_file: Path of the importing file
        relative_path: Import path starting with ``./`` or ``../``

    Returns:
        The joined, normalized path
    """
    parts: List[str] = [p for p in base_file.split('/')[:-1] if p]
    for part in relative_path.split('/'):
        if part == '..':
            if parts:
                parts.pop()
        elif part not in ('.', ''):
            parts.append(part)
    joined = '/'.join(parts)
    if base_file.startswith('/'):
        joined = '/' + joined
    return normalize(joined)


def file_stem(path: str) -> str:
    """``@oz/contracts/token/ERC20/ERC20.sol`` -> ``ERC20``"""
    name = path.rstrip('/').split('/')[-1]
    return name[:-4] if name.endswith('.sol') else name


def paths_correspond(a: str, b: str) -> bool:
    """True when one path is the other, or one is a '/'-aligned suffix of the other"""
    if a == b:
        return True
    longer, shorter = (a, b) if len(a) > len(b) else (b, a)
    return bool(shorter) and longer.endswith('/' + shorter.lstrip('/'))


def common_prefix_length(a: str, b: str) -> int:
    """Number of leading directory segments two paths share"""
    count = 0
    for left, right in zip(a.split('/')[:-1], b.split('/')[:-1]):
        if left != right:
            break
        count += 1
    return count
