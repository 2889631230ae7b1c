"""
Delimited Regex

Definitions may embed regex fragments between a start and a stop
delimiter, e.g. "foo.bar.<.*>" or "users/<[0-9]+>/profile". Everything
outside the delimiters is matched literally; everything inside is a regex
fragment inserted as a capture group. The compiled pattern is anchored at
both ends.

Delimiters nest: only depth-1 spans delimit a fragment, so "<a<b>c>" is a
single fragment "a<b>c".
"""

import re

from warden.errors import InvalidPatternError, UnbalancedDelimiterError

DEFAULT_START = "<"
DEFAULT_STOP = ">"


def delimiter_spans(definition: str, start: str = DEFAULT_START, stop: str = DEFAULT_STOP) -> list[tuple[int, int]]:
    """
    Find the outermost delimited spans.

    Returns:
        List of (begin, end) pairs, begin at the start delimiter and end one
        past the stop delimiter

    Raises:
        UnbalancedDelimiterError: If nesting does not return to zero
    """
    spans: list[tuple[int, int]] = []
    level = 0
    begin = 0

    for i, ch in enumerate(definition):
        if ch == start:
            level += 1
            if level == 1:
                begin = i
        elif ch == stop:
            level -= 1
            if level == 0:
                spans.append((begin, i + 1))
            elif level < 0:
                raise UnbalancedDelimiterError(definition)

    if level != 0:
        raise UnbalancedDelimiterError(definition)

    return spans


def extract_delimited(definition: str, start: str = DEFAULT_START, stop: str = DEFAULT_STOP) -> list[str]:
    """Return the regex fragments enclosed by the delimiters."""
    return [definition[b + 1:e - 1] for b, e in delimiter_spans(definition, start, stop)]


def delimited_pattern(definition: str, start: str = DEFAULT_START, stop: str = DEFAULT_STOP) -> str:
    """Build the anchored regex source for a delimited definition."""
    parts = ["^"]
    end = 0

    for b, e in delimiter_spans(definition, start, stop):
        parts.append(re.escape(definition[end:b]))
        parts.append(f"({definition[b + 1:e - 1]})")
        end = e

    parts.append(re.escape(definition[end:]))
    parts.append("$")
    return "".join(parts)


def compile_delimited_regex(definition: str, start: str = DEFAULT_START, stop: str = DEFAULT_STOP) -> re.Pattern:
    """
    Compile a delimited definition into an anchored regex.

    Raises:
        UnbalancedDelimiterError: If delimiters do not balance
        InvalidPatternError: If a fragment is not a valid regex
    """
    source = delimited_pattern(definition, start, stop)
    try:
        return re.compile(source)
    except re.error as e:
        raise InvalidPatternError(f"invalid regex in {definition!r}: {e}") from e
