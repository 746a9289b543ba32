# matcher.py
# File-name predicate for findFiles.
#
# A pattern containing "*" is a glob-lite: "*" matches zero or more
# characters, everything else is literal, and the match spans the whole
# name. A pattern without "*" matches by substring containment. An
# extension listed in extension_filters is a match on its own.

import os
import re
from functools import lru_cache
from typing import Iterable

WILDCARD = "*"


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern:
    literal_parts = (re.escape(part) for part in pattern.split(WILDCARD))
    return re.compile(".*".join(literal_parts), re.DOTALL)


def extension_of(filename: str) -> str:
    """Extension including the leading dot, "" when there is none."""
    return os.path.splitext(filename)[1]


def matches(filename: str, pattern: str, extension_filters: Iterable[str] = ()) -> bool:
    if WILDCARD in pattern:
        matched = _compile(pattern).fullmatch(filename) is not None
    else:
        matched = pattern in filename

    if matched:
        return True

    filters = set(extension_filters or ())
    return bool(filters) and extension_of(filename) in filters
