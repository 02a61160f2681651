from __future__ import annotations

import re
from collections.abc import Iterator
from typing import NoReturn


class _Impossible:
    pass


def bad_type(value: _Impossible) -> NoReturn:
    """
    Report a type error.

    If this function is called with a known type, the type checker will complain.
    In code that handles the different types in a type union separately, call
    this function in the default case to verify that no types were left out.
    """
    raise TypeError(type(value).__name__)


_RANGE_RE = re.compile(r"([A-Za-z()]+)(\d+)-(\d+)([A-Za-z()]*)")


def expand_name_range(name: str) -> Iterator[str]:
    """
    Iterate through the names described by a numbered range such as "r8-15",
    which expands to "r8" up to and including "r15". A suffix after the upper
    bound is appended to every name: "r8-15d" gives "r8d" to "r15d".
    A name that is not a range is yielded as-is.
    """
    match = _RANGE_RE.fullmatch(name)
    if match is None:
        yield name
    else:
        prefix, first, last, suffix = match.groups()
        for num in range(int(first), int(last) + 1):
            yield f"{prefix}{num:d}{suffix}"
