"""
Policy Matchers

A Matcher decides whether a request element (action, resource, scope, role)
matches the definitions declared by a policy.

Two strategies share the contract:
- WildcardMatcher: glob matching ('*', '?'), strict or simple '?'
- RegexMatcher: delimited regex ("foo.<[a-z]+>"), falling back to strict
  wildcard matching for definitions without a start delimiter

Matching direction:
- match_policy: the policy definitions are the patterns, the request value
  is the candidate
- match_role: the request value is the pattern, the ids of the policy
  role's effective set are the candidates. This lets callers query with
  "test*" against a stored role "test_role".

Compiled regexes live in a PatternCache shared process-wide by default.
"""

import logging
import re
import threading
from abc import ABC, abstractmethod
from typing import Callable, Sequence

from warden.errors import ConfigurationError
from warden.role import Role
from warden.strmatch import (
    DEFAULT_START,
    DEFAULT_STOP,
    compile_delimited_regex,
    match_simple_wildcard,
    match_wildcard,
)

logger = logging.getLogger(__name__)


class Matcher(ABC):
    """Matches policy definitions and roles against request values."""

    @abstractmethod
    def match_policy(self, definitions: Sequence[str] | None, value: str) -> bool:
        """
        True when definitions is None (open default) or value matches at
        least one definition. An empty sequence matches nothing.
        """
        ...

    @abstractmethod
    def match_role(self, role: Role, value: str) -> bool:
        """True when value, used as a pattern, matches an effective role id."""
        ...


class WildcardMatcher(Matcher):
    """
    Glob matcher.

    Args:
        simple: Treat '?' as zero-or-one character instead of exactly one
    """

    def __init__(self, simple: bool = False):
        self._simple = simple
        self._match = match_simple_wildcard if simple else match_wildcard

    @property
    def simple(self) -> bool:
        return self._simple

    def match_policy(self, definitions: Sequence[str] | None, value: str) -> bool:
        if definitions is None:
            return True
        return any(self._match(d, value) for d in definitions)

    def match_role(self, role: Role, value: str) -> bool:
        return any(self._match(value, rid) for rid in role.effective_ids())


# =============================================================================
# Pattern Cache
# =============================================================================

class PatternCache:
    """
    Insert-if-absent cache of compiled regexes keyed by raw definition.

    Entries are never evicted. Concurrent first use of the same definition
    may compile it twice; the first stored entry wins and readers only
    ever see fully compiled patterns.
    """

    def __init__(self, start: str = DEFAULT_START, stop: str = DEFAULT_STOP):
        self.start = start
        self.stop = stop
        self._patterns: dict[str, re.Pattern] = {}
        self._lock = threading.Lock()

    def get(self, definition: str) -> re.Pattern:
        """
        Return the compiled pattern for definition, compiling on first use.

        Raises:
            UnbalancedDelimiterError, InvalidPatternError: On bad syntax
        """
        with self._lock:
            cached = self._patterns.get(definition)
        if cached is not None:
            return cached

        compiled = compile_delimited_regex(definition, self.start, self.stop)

        with self._lock:
            return self._patterns.setdefault(definition, compiled)

    def __contains__(self, definition: str) -> bool:
        with self._lock:
            return definition in self._patterns

    def __len__(self) -> int:
        with self._lock:
            return len(self._patterns)


DEFAULT_PATTERN_CACHE = PatternCache()


class RegexMatcher(Matcher):
    """
    Delimited regex matcher.

    Args:
        start: Start delimiter for regex fragments
        stop: Stop delimiter for regex fragments
        cache: Pattern cache; defaults to the process-wide cache for the
            default delimiters, or a private cache for custom ones
    """

    def __init__(
        self,
        start: str = DEFAULT_START,
        stop: str = DEFAULT_STOP,
        cache: PatternCache | None = None,
    ):
        if cache is None:
            if (start, stop) == (DEFAULT_START, DEFAULT_STOP):
                cache = DEFAULT_PATTERN_CACHE
            else:
                cache = PatternCache(start, stop)
        elif (cache.start, cache.stop) != (start, stop):
            raise ConfigurationError(
                f"pattern cache delimiters {cache.start}{cache.stop} do not match {start}{stop}"
            )

        self._start = start
        self._cache = cache

    def match_policy(self, definitions: Sequence[str] | None, value: str) -> bool:
        if definitions is None:
            return True
        return any(self._match_one(d, value) for d in definitions)

    def match_role(self, role: Role, value: str) -> bool:
        return any(self._match_one(value, rid) for rid in role.effective_ids())

    def _match_one(self, definition: str, value: str) -> bool:
        if self._start not in definition:
            return match_wildcard(definition, value)
        return self._cache.get(definition).fullmatch(value) is not None


# =============================================================================
# Registry
# =============================================================================

MATCHERS: dict[str, Callable[[], Matcher]] = {
    "wildcard": WildcardMatcher,
    "simple": lambda: WildcardMatcher(simple=True),
    "regex": RegexMatcher,
}


def new_matcher(name: str = "wildcard") -> Matcher:
    """
    Build a matcher by registered strategy name.

    Raises:
        ConfigurationError: If the name is not registered
    """
    factory = MATCHERS.get(name)
    if factory is None:
        raise ConfigurationError(
            f"unknown matcher {name!r}, expected one of {sorted(MATCHERS)}"
        )
    logger.debug(f"Using {name} matcher")
    return factory()
