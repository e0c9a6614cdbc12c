"""
Semantic version helpers
"""

from typing import Iterable, List, Optional

import semver


def parse_version(value: str) -> Optional[semver.VersionInfo]:
    """Parse a semantic version string, returning None when it is malformed."""
    try:
        return semver.VersionInfo.parse(value)
    except (TypeError, ValueError):
        return None


def is_valid_version(value: str) -> bool:
    return parse_version(value) is not None


def highest(versions: Iterable[str]) -> Optional[str]:
    """Highest version by semver precedence; unparseable strings are ignored."""
    parsed = [(parse_version(v), v) for v in versions]
    valid = [(p, v) for p, v in parsed if p is not None]
    if not valid:
        return None
    return max(valid, key=lambda item: item[0])[1]


def sort_descending(versions: Iterable[str]) -> List[str]:
    parsed = [(parse_version(v), v) for v in versions]
    valid = [(p, v) for p, v in parsed if p is not None]
    return [v for _, v in sorted(valid, key=lambda item: item[0], reverse=True)]
