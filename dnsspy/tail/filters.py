"""
Include / exclude filtering of record bodies
"""

import re
from typing import Optional, Pattern

from dnsspy.errors import ValidationError

# Characters that make a pattern a regular expression rather than plain text
_REGEX_METACHARACTERS = set('.^$*+?{}[]\\|()')


def _compile(pattern: Optional[str], name: str) -> Optional[Pattern]:
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValidationError(f"Invalid {name} pattern {pattern!r}: {e}") from e


def is_plain_text(pattern: Optional[str]) -> bool:
    """True when ``pattern`` contains no regular expression metacharacters"""
    return bool(pattern) and not any(char in _REGEX_METACHARACTERS for char in pattern)


class MatchFilter:
    """
    Record body predicate built from an optional include and exclude pattern.

    Patterns use ``re.search`` semantics, so a plain substring such as
    ``NXDOMAIN`` matches anywhere in the body. Patterns are compiled once here;
    ``matches`` never raises.
    """

    def __init__(self, include: Optional[str] = None, exclude: Optional[str] = None):
        self.include = include or None
        self.exclude = exclude or None
        self._include = _compile(include, 'include')
        self._exclude = _compile(exclude, 'exclude')

    def matches(self, body: str) -> bool:
        if self._include is not None and not self._include.search(body):
            return False
        if self._exclude is not None and self._exclude.search(body):
            return False
        return True

    def push_down_pattern(self) -> Optional[str]:
        """
        CloudWatch filter pattern equivalent to the include pattern, if any

        Only plain-text include patterns are pushed down, as a quoted term.
        Regular expressions and the exclude pattern are applied locally only.
        """
        if not is_plain_text(self.include) or '"' in self.include:
            return None
        return f'"{self.include}"'


def matches(body: str, include: Optional[str] = None, exclude: Optional[str] = None) -> bool:
    """One-shot form of MatchFilter(include, exclude).matches(body)"""
    return MatchFilter(include, exclude).matches(body)
