"""
Parser for ARM opcode strings.

An opcode string describes a fixed-width instruction word as a sequence of
parts separated by `|`, from the most significant part to the least
significant one. A part is either a literal bit pattern or a named field,
for example "Cond|0000|0|0S|Rn|Rd|imm:12". Part of a field can be selected
with a bit range such as "imm[11:8]" and a field can be extended by one bit
on the low or high side with a quote: "'imm" or "imm'".
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field, replace

from ..declarations import Declarations
from ..errors import ConflictingFieldSpec, InvalidOpcodeWidth, UnrecognizedOpcodeToken
from ..input import InputLocation
from ..instruction import Instruction, OpcodeField
from .fields import FIELD_INFO

_PART_SEP_RE = re.compile(r"\|")
_COMPOUND_RE = re.compile(r"[01A-Z]{2,}")
_SUBPART_RE = re.compile(r"[01]+|[A-Z]")
_BITS_RE = re.compile(r"[01]+")
_RANGE_RE = re.compile(r"\[\s*(?P<hi>\d+)\s*:\s*(?P<lo>\d+)\s*\]$")
_BIT_RE = re.compile(r"\[\s*(?P<bit>\d+)\s*\]$")
_WIDTH_RE = re.compile(r":\s*(?P<width>\d+)$")

ENCODING_WORD_SIZES = {"T16": 16, "T32": 32, "A32": 32, "A64": 32}
"""Instruction word size in bits for each encoding."""


@dataclass(slots=True)
class _FieldParts:
    """The contributions of all parts that share a field name."""

    lsb: int
    location: InputLocation
    width: int = 0
    mask: int = 0
    low_bit: bool = False
    high_bit: bool = False

    def normalize(self, name: str) -> OpcodeField:
        if not self.width and not self.mask:
            raise ConflictingFieldSpec(
                f'opcode field "{name}" has neither a width nor a mask',
                self.location,
            )
        if self.width and self.mask:
            raise ConflictingFieldSpec(
                f'opcode field "{name}" has both a width and a mask', self.location
            )
        if self.width:
            width = self.width
            mask = (1 << width) - 1
        else:
            mask = self.mask
            width = mask.bit_length()
        if self.low_bit:
            mask = (mask << 1) | 1
            width += 1
        if self.high_bit:
            mask |= 1 << width
            width += 1
        return OpcodeField(width, mask, self.lsb)


@dataclass(slots=True)
class ParsedOpcode:
    """The result of parsing a bit-field opcode string."""

    fields: dict[str, OpcodeField] = field(default_factory=dict)
    word: int = 0
    fixed_mask: int = 0
    width: int = 0


def _iter_parts(location: InputLocation) -> Iterator[InputLocation]:
    """
    Iterate through the parts of an opcode string, splitting compound parts
    such as "0S01" into bit patterns and single-letter fields.
    Standard field names such as "SOP" and "J1" are not split.
    """
    for part in location.split(_PART_SEP_RE):
        part = part.strip()
        if part.text not in FIELD_INFO and part.fullmatch(_COMPOUND_RE) is not None:
            yield from part.find_locations(_SUBPART_RE)
        else:
            yield part


def parse_opcode(location: InputLocation) -> ParsedOpcode:
    """
    Parse a bit-field opcode string.

    Raise `UnrecognizedOpcodeToken` for parts of which the width cannot be
    determined and `ConflictingFieldSpec` for fields that are specified both
    by width and by bit range, or by neither.
    """
    result = ParsedOpcode()
    collected: dict[str, _FieldParts] = {}
    index = 0
    for part in reversed(list(_iter_parts(location))):
        text = part.text
        if _BITS_RE.fullmatch(text) is not None:
            width = len(text)
            result.word |= int(text, 2) << index
            result.fixed_mask |= ((1 << width) - 1) << index
            index += width
            continue

        low_bit = text.startswith("'")
        high_bit = text.endswith("'") and len(text) > 1
        name = text[1 if low_bit else 0 : -1 if high_bit else len(text)]

        mask = 0
        width = 0
        if (match := _RANGE_RE.search(name)) is not None:
            hi = int(match["hi"])
            lo = int(match["lo"])
            if hi < lo:
                raise UnrecognizedOpcodeToken.with_text("invalid bit range", part)
            size = hi - lo + 1
            mask = ((1 << size) - 1) << lo
            name = name[: match.start()].strip()
        elif (match := _BIT_RE.search(name)) is not None:
            size = 1
            mask = 1 << int(match["bit"])
            name = name[: match.start()].strip()
        elif (match := _WIDTH_RE.search(name)) is not None:
            size = width = int(match["width"])
            name = name[: match.start()].strip()
        elif (info := FIELD_INFO.get(name)) is not None:
            size = width = info.width
        else:
            raise UnrecognizedOpcodeToken.with_text(
                "cannot determine width of opcode field", part
            )

        if not name:
            raise UnrecognizedOpcodeToken.with_text("opcode field without name", part)
        parts = collected.get(name)
        if parts is None:
            parts = collected[name] = _FieldParts(index, part)
        parts.mask |= mask
        parts.width += width
        parts.low_bit |= low_bit
        parts.high_bit |= high_bit
        index += size

    for name, parts in collected.items():
        result.fields[name] = parts.normalize(name)
    result.width = index
    return result


def check_word_size(
    encoding: str, width: int, location: InputLocation, declarations: Declarations
) -> None:
    """
    Check that an opcode fills exactly one instruction word.
    Raise `InvalidOpcodeWidth` if it does not.
    """
    required = ENCODING_WORD_SIZES.get(encoding)
    allowed = declarations.word_sizes if required is None else (required,)
    if width not in allowed:
        expected = " or ".join(str(size) for size in allowed)
        raise InvalidOpcodeWidth(
            f"opcode is {width:d} bits wide instead of {expected} bits", location
        )


def assign_opcode(
    instr: Instruction, location: InputLocation, declarations: Declarations
) -> None:
    instr.opcode_string = location.text
    parsed = parse_opcode(location)
    check_word_size(instr.encoding, parsed.width, location, declarations)
    instr.opcode_fields = parsed.fields
    instr.opcode_word = parsed.word
    instr.opcode_fixed_mask = parsed.fixed_mask

    # Immediates take their width from the opcode field with the same name.
    instr.operands = tuple(
        replace(operand, imm_size=parsed.fields[operand.imm].width)
        if operand.is_imm and operand.imm in parsed.fields
        else operand
        for operand in instr.operands
    )
