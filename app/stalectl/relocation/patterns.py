"""Gitignore-style exclude rules.

Each line of an exclude file compiles to an :class:`ExcludeRule` holding
a regular expression over the path relative to the scan root. Rules are
evaluated in file order and the last matching rule wins.

The walker never descends into a directory excluded by a non-negated
rule, so a negated rule targeting something below such a directory can
never re-include it. ``secrets/`` followed by ``!secrets/keep.txt``
still hides ``keep.txt``.
"""

import logging
import re
import string
from collections.abc import Iterable
from dataclasses import dataclass

from stalectl.relocation.errors import PatternError

logger = logging.getLogger(__name__)

# Regex fragments for the gitignore "**" forms
_ANY_LEADING_DIRS = "(?:.*/)?"
_ANY_MIDDLE_DIRS = "(?:/.*)?"
_EVERYTHING_BELOW = "/.*"
_SEGMENT_CHARS = "[^/]*"
_SEGMENT_CHAR = "[^/]"

# POSIX bracket expressions as character class bodies (C locale)
_POSIX_CLASSES = {
    "alnum": "a-zA-Z0-9",
    "alpha": "a-zA-Z",
    "blank": " \\t",
    "cntrl": "\\x00-\\x1f\\x7f",
    "digit": "0-9",
    "graph": "\\x21-\\x7e",
    "lower": "a-z",
    "print": "\\x20-\\x7e",
    "punct": re.escape(string.punctuation),
    "space": " \\t\\n\\r\\f\\v",
    "upper": "A-Z",
    "xdigit": "0-9A-Fa-f",
}


@dataclass(frozen=True, slots=True)
class ExcludeRule:
    """One compiled exclude line.

    Attributes:
        pattern: Original line with trailing whitespace removed.
        line_number: 1-based position in the exclude file.
        negated: Rule re-includes matching paths (leading ``!``).
        anchored: Rule is rooted at the scan root instead of any depth.
        directory_only: Rule only matches directories (trailing ``/``).
        regex: Compiled expression matched against the relative path.
    """

    pattern: str
    line_number: int
    negated: bool
    anchored: bool
    directory_only: bool
    regex: re.Pattern[str]

    def matches(self, relative_path: str, is_directory: bool) -> bool:
        """Check whether this rule applies to a path, ignoring polarity."""
        if self.directory_only and not is_directory:
            return False
        return self.regex.fullmatch(relative_path) is not None


class Matcher:
    """Ordered set of exclude rules with last-match-wins semantics."""

    def __init__(self, rules: Iterable[ExcludeRule] = ()) -> None:
        self._rules: tuple[ExcludeRule, ...] = tuple(rules)

    @property
    def rules(self) -> tuple[ExcludeRule, ...]:
        """Compiled rules in file order."""
        return self._rules

    def match(self, relative_path: str, is_directory: bool) -> ExcludeRule | None:
        """Return the rule deciding a path's fate, or None if no rule matches.

        Args:
            relative_path: Path relative to the scan root, ``/`` separated.
            is_directory: Whether the path names a directory.

        Returns:
            The last matching rule, or None.
        """
        path = _normalize(relative_path)
        for rule in reversed(self._rules):
            if rule.matches(path, is_directory):
                return rule
        return None

    def is_excluded(self, relative_path: str, is_directory: bool) -> bool:
        """Check whether a path is excluded.

        Args:
            relative_path: Path relative to the scan root, ``/`` separated.
            is_directory: Whether the path names a directory.

        Returns:
            True if the last matching rule is not negated.
        """
        rule = self.match(relative_path, is_directory)
        return rule is not None and not rule.negated


def compile_rules(lines: Iterable[str]) -> Matcher:
    """Compile exclude lines into a Matcher.

    Blank lines and ``#`` comments are skipped.

    Args:
        lines: Raw lines, in file order (trailing newlines allowed).

    Returns:
        Matcher over all non-empty rules.

    Raises:
        PatternError: If a line has malformed glob syntax.
    """
    rules: list[ExcludeRule] = []
    for line_number, line in enumerate(lines, start=1):
        rule = parse_rule(line, line_number)
        if rule is not None:
            rules.append(rule)
    logger.debug("Compiled %d exclude rule(s)", len(rules))
    return Matcher(rules)


def compile_rules_bytes(data: bytes) -> Matcher:
    """Compile the raw content of an exclude file.

    Bytes that are not valid UTF-8 are kept as surrogate escapes, so they
    match the same bytes in scanned file names.
    """
    return compile_rules(data.decode("utf-8", "surrogateescape").splitlines())


def parse_rule(line: str, line_number: int = 0) -> ExcludeRule | None:
    """Parse a single exclude line.

    Args:
        line: Raw line from the exclude file.
        line_number: 1-based line number for error reporting.

    Returns:
        Compiled rule, or None for blank lines and comments.

    Raises:
        PatternError: If the glob syntax is malformed.
    """
    text = _strip_trailing_spaces(line.rstrip("\r\n"))
    if not text or text.startswith("#"):
        return None

    negated = text.startswith("!")
    body = text[1:] if negated else text

    directory_only = body.endswith("/") and _trailing_backslashes(body[:-1]) % 2 == 0
    if directory_only:
        body = body.rstrip("/")

    anchored = "/" in body
    body = body.lstrip("/")
    if not body:
        return None

    expression = _translate(body, text, line_number)
    if not anchored:
        expression = _ANY_LEADING_DIRS + expression

    try:
        regex = re.compile(expression, re.DOTALL)
    except re.error as e:
        raise PatternError(f"invalid pattern {text!r}: {e}", pattern=text, line_number=line_number) from e

    return ExcludeRule(
        pattern=text,
        line_number=line_number,
        negated=negated,
        anchored=anchored,
        directory_only=directory_only,
        regex=regex,
    )


def _strip_trailing_spaces(text: str) -> str:
    """Drop trailing spaces unless the last one is backslash-escaped."""
    while text.endswith(" "):
        stripped = text[:-1]
        if _trailing_backslashes(stripped) % 2 == 1:
            break
        text = stripped
    return text


def _trailing_backslashes(text: str) -> int:
    return len(text) - len(text.rstrip("\\"))


def _translate(body: str, pattern: str, line_number: int) -> str:
    """Translate a glob body into a regular expression."""
    segments = body.split("/")
    last = len(segments) - 1
    out: list[str] = []
    need_separator = False

    for index, segment in enumerate(segments):
        if segment == "**":
            if index == 0 and index == last:
                out.append(".*")
            elif index == 0:
                out.append(_ANY_LEADING_DIRS)
                need_separator = False
            elif not need_separator:
                # Only leading "**" segments so far: they already cover any prefix
                if index == last:
                    out.append(".*")
            elif index == last:
                out.append(_EVERYTHING_BELOW)
            else:
                out.append(_ANY_MIDDLE_DIRS)
            continue

        if need_separator:
            out.append("/")
        out.append(_translate_segment(segment, pattern, line_number))
        need_separator = True

    return "".join(out)


def _translate_segment(segment: str, pattern: str, line_number: int) -> str:
    """Translate one path segment; ``*``, ``?`` and classes never match ``/``."""
    out: list[str] = []
    i = 0
    length = len(segment)

    while i < length:
        char = segment[i]
        if char == "*":
            while i < length and segment[i] == "*":
                i += 1
            out.append(_SEGMENT_CHARS)
            continue
        if char == "?":
            out.append(_SEGMENT_CHAR)
        elif char == "[":
            expression, i = _translate_class(segment, i, pattern, line_number)
            out.append(expression)
            continue
        elif char == "\\":
            if i + 1 >= length:
                raise PatternError(
                    f"trailing backslash in {pattern!r}", pattern=pattern, line_number=line_number
                )
            i += 1
            out.append(re.escape(segment[i]))
        else:
            out.append(re.escape(char))
        i += 1

    return "".join(out)


def _translate_class(segment: str, start: int, pattern: str, line_number: int) -> tuple[str, int]:
    """Translate a ``[...]`` character class starting at ``start``.

    Returns:
        Tuple of (regex fragment, index just past the closing bracket).
    """
    i = start + 1
    negate = i < len(segment) and segment[i] in "!^"
    if negate:
        i += 1

    items: list[str] = []
    first = True
    while i < len(segment):
        char = segment[i]
        if char == "]" and not first:
            body = "".join(items)
            if negate:
                return f"[^{body}/]", i + 1
            return f"(?!/)[{body}]", i + 1
        if char == "[" and segment.startswith(":", i + 1):
            end = segment.find(":]", i + 2)
            if end == -1:
                break
            name = segment[i + 2 : end]
            if name not in _POSIX_CLASSES:
                raise PatternError(
                    f"unknown character class [:{name}:] in {pattern!r}",
                    pattern=pattern,
                    line_number=line_number,
                )
            items.append(_POSIX_CLASSES[name])
            first = False
            i = end + 2
            continue
        if char == "\\":
            if i + 1 >= len(segment):
                break
            i += 1
            items.append(re.escape(segment[i]))
        elif char == "-" and not first and i + 1 < len(segment) and segment[i + 1] != "]":
            items.append("-")
        else:
            items.append(re.escape(char))
        first = False
        i += 1

    raise PatternError(
        f"unterminated character class in {pattern!r}", pattern=pattern, line_number=line_number
    )


def _normalize(relative_path: str) -> str:
    """Strip leading ``./`` and slashes and trailing slashes."""
    path = relative_path
    while path.startswith("./"):
        path = path[2:]
    return path.strip("/")
