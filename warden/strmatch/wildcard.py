"""
Wildcard Matching

Glob matching of a value against a pattern:
- literal characters match exactly
- '*' matches zero or more characters
- '?' matches exactly one character (strict) or zero-or-one (simple)

Identical strings and the pattern "*" always match.
"""


def match_wildcard(pattern: str, value: str) -> bool:
    """Strict wildcard match: '?' consumes exactly one character."""
    return _match(pattern, value, simple=False)


def match_simple_wildcard(pattern: str, value: str) -> bool:
    """Simple wildcard match: '?' consumes zero or one character."""
    return _match(pattern, value, simple=True)


def _match(pattern: str, value: str, simple: bool) -> bool:
    if value == pattern or pattern == "*":
        return True
    return _search(value, 0, pattern, 0, simple)


def _search(value: str, vi: int, pattern: str, pi: int, simple: bool) -> bool:
    while pi < len(pattern):
        ch = pattern[pi]

        if ch == "*":
            # Collapse runs of '*'
            while pi < len(pattern) and pattern[pi] == "*":
                pi += 1
            if pi == len(pattern):
                return True
            for start in range(vi, len(value) + 1):
                if _search(value, start, pattern, pi, simple):
                    return True
            return False

        if ch == "?":
            if simple:
                if vi < len(value) and _search(value, vi + 1, pattern, pi + 1, simple):
                    return True
                pi += 1
                continue
            if vi >= len(value):
                return False
        elif vi >= len(value) or value[vi] != ch:
            return False

        vi += 1
        pi += 1

    return vi == len(value)
