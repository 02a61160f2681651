from __future__ import annotations

from .errors import MalformedOperandList
from .input import InputLocation

_CLOSERS = {"[": "]", "{": "}", "(": ")", "<": ">"}


def _skip_group(text: str, start: int, end: int) -> int:
    """
    Return the index of the bracket that closes the group opened at `start`,
    or `end` if the group is not closed.
    Only brackets of the same kind as the opening one are counted.
    """
    opener = text[start]
    closer = _CLOSERS[opener]
    depth = 1
    idx = start
    while depth:
        idx += 1
        if idx >= end:
            return end
        char = text[idx]
        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
    return idx


def _opens_group(text: str, idx: int) -> bool:
    char = text[idx]
    if char not in _CLOSERS:
        return False
    # A "<=" comparison in a restriction is not an angle bracket.
    return not (char == "<" and text[idx + 1 : idx + 2] == "=")


def split_top_level(location: InputLocation) -> list[InputLocation]:
    """
    Split a comma-separated operand list into the locations of the individual
    operands, with surrounding whitespace excluded.
    Commas inside a bracketed group (`[]`, `{}`, `()` or `<>`) do not separate
    operands. An unbalanced group extends to the end of the text.
    An empty or blank list results in an empty list.
    Raise `MalformedOperandList` if an operand is empty.
    """
    if not location.text.strip():
        return []

    text = location.line
    start, end = location.span
    segments = []
    seg_start = start
    idx = start
    while True:
        if idx >= end or text[idx] == ",":
            segment = location.update_span((seg_start, min(idx, end))).strip()
            if not segment.text:
                raise MalformedOperandList(
                    f'empty operand in operand list "{location.text.strip()}"',
                    segment,
                )
            segments.append(segment)
            if idx >= end:
                return segments
            idx += 1
            seg_start = idx
        elif _opens_group(text, idx):
            idx = _skip_group(text, idx, end)
        else:
            idx += 1


def split_operands(text: str) -> list[str]:
    """
    Split a comma-separated operand list into trimmed operand strings.
    See `split_top_level()` for details.
    """
    return [
        segment.text for segment in split_top_level(InputLocation.from_string(text))
    ]
