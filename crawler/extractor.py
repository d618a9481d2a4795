"""
Regex extraction over fetched content
"""

import re
from typing import Any, Iterable, List, Optional, Union

from .exceptions import ExtractorError

Group = Union[int, str, None]

_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "a": re.ASCII,
}


def compile_flags(flags: Optional[str]) -> int:
    result = 0
    for flag in flags or "":
        try:
            result |= _FLAGS[flag.lower()]
        except KeyError:
            raise ValueError(f"Unknown regular expression flag: {flag!r}")
    return result


def _sieve(match: re.Match, group: Group) -> Any:
    """Pick the useful part of a match.

    With an explicit group, that group (None when it does not exist).
    Otherwise the whole match when there are no groups, the single group
    when there is one, and a tuple of all groups beyond that.
    """
    if group is not None:
        try:
            return match.group(group)
        except IndexError:
            return None
    groups = match.groups()
    if not groups:
        return match.group(0)
    if len(groups) == 1:
        return groups[0]
    return groups


class Extractor:
    """Pulls values out of response content with regular expressions."""

    def __init__(self, content: str = "", url: str = ""):
        self.content = content
        self.url = url
        self.last_expression: Optional[str] = None

    def set_content(self, content: str, url: Optional[str] = None):
        self.content = content
        if url is not None:
            self.url = url

    def _compile(self, expression: str, flags: Optional[str]):
        self.last_expression = expression
        return re.compile(expression, compile_flags(flags))

    def _failed(self):
        raise ExtractorError(None, self.last_expression or "", self.url, self.content)

    def extract(self, expression: str, group: Group = None, strict: bool = True, flags: Optional[str] = None):
        """Return the first match of ``expression``.

        On mismatch raises ExtractorError when ``strict``, otherwise returns None.
        """
        match = self._compile(expression, flags).search(self.content)
        if match is None:
            if strict:
                self._failed()
            return None
        return _sieve(match, group)

    def extract_all(self, expression: str, group: Group = None, strict: bool = False,
                    flags: Optional[str] = None) -> List[Any]:
        matches = list(self._compile(expression, flags).finditer(self.content))
        if not matches and strict:
            self._failed()
        return [_sieve(match, group) for match in matches]

    def check(self, expression: str, flags: Optional[str] = None) -> bool:
        return self._compile(expression, flags).search(self.content) is not None

    def equal(self, expression: str, expected: str, group: Group = None, case_sensitive: bool = False,
              strict: bool = True, flags: Optional[str] = None) -> bool:
        """Extract a value and compare it with ``expected``."""
        value = self.extract(expression, group, strict, flags)
        if not isinstance(value, str):
            return False
        if case_sensitive:
            return value == expected
        return value.casefold() == expected.casefold()

    def clean_out(self, expressions: Union[str, Iterable[str]], flags: Optional[str] = None) -> str:
        """Return the content with every match of the expression(s) removed."""
        if isinstance(expressions, str):
            expressions = [expressions]
        result = self.content
        for expression in expressions:
            result = self._compile(expression, flags).sub("", result)
        return result
