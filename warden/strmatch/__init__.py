# String Matching
# Wildcard globbing and delimited regex compilation used by the matchers

from warden.strmatch.wildcard import (
    match_wildcard,
    match_simple_wildcard,
)
from warden.strmatch.delimited import (
    DEFAULT_START,
    DEFAULT_STOP,
    delimiter_spans,
    extract_delimited,
    delimited_pattern,
    compile_delimited_regex,
)

__all__ = [
    "match_wildcard",
    "match_simple_wildcard",
    "DEFAULT_START",
    "DEFAULT_STOP",
    "delimiter_spans",
    "extract_delimited",
    "delimited_pattern",
    "compile_delimited_regex",
]
