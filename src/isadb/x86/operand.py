from __future__ import annotations

import re

from ..declarations import Declarations
from ..errors import UnrecognizedOperand
from ..input import InputLocation
from ..operand import Access, Operand, OperandKind, VectorIndex, strip_decoration
from ..tokens import TokenEnum


class OperandShape(TokenEnum):
    """Operand forms that are recognized by their shape instead of by name."""

    memory = r"mem|mib|m(?:off)?\d+(?:dec|bcd|fp|int)?|vm\d+[xyz]"
    immediate = r"1|i4|ib|iw|id|iq"
    relative = r"rel\d+"


IMMEDIATE_SIZES = {
    "1": 8,
    "i4": 4,
    "is4": 4,
    "ib": 8,
    "iw": 16,
    "id": 32,
    "iq": 64,
}
"""Size in bits of the immediate placeholders."""

_FORM_SEP_RE = re.compile(r"/")
_SEGMENT_RE = re.compile(r"(?P<segment>ds|es):")
_MEM_SIZE_RE = re.compile(r"m(?:off)?(\d+)")
_VSIB_RE = re.compile(r"vm(\d+)([xyz])")
_FLAG_RE = re.compile(r"\{(?P<flag>[^{}]*)\}")

_KINDS = {
    ("reg",): OperandKind.REGISTER,
    ("mem",): OperandKind.MEMORY,
    ("mem", "reg"): OperandKind.REGISTER_OR_MEMORY,
    ("imm",): OperandKind.IMMEDIATE,
    ("rel",): OperandKind.RELATIVE,
}


def default_access(index: int) -> Access:
    """The first operand is read and written by default, others are only read."""
    return Access.READ_WRITE if index == 0 else Access.READ


def parse_operand(
    location: InputLocation, default: Access | None, declarations: Declarations
) -> Operand:
    """
    Parse an x86 operand definition, such as "W:r32/m32" or "<eax>".

    The definition can consist of several forms separated by slashes; a
    register form combined with a memory form makes a register-or-memory
    operand. The default access is only applied to register and memory
    operands.

    Raise `UnrecognizedOperand` if the definition is not understood.
    """
    body, decoration = strip_decoration(location, commutative=True, broadcast=True)

    fields: dict[str, object] = {}
    forms = []
    for form in body.split(_FORM_SEP_RE):
        form = form.strip()
        segment_match = form.match(_SEGMENT_RE)
        if segment_match is not None:
            fields["segment"] = segment_match.group("segment").text
            form = form.update_span((segment_match.group(0).span[1], form.span[1]))
        text = form.text

        reg = declarations.registers.get(text)
        if reg is not None:
            forms.append("reg")
            fields["reg"] = text
            fields["reg_type"] = reg.reg_type
            continue

        match OperandShape.classify(form):
            case OperandShape.memory:
                forms.append("mem")
                fields["mem"] = text
                size_match = _MEM_SIZE_RE.match(text)
                fields["mem_size"] = 0 if size_match is None else int(size_match[1])
                fields["mem_offset"] = text.startswith("moff")
                vsib_match = _VSIB_RE.fullmatch(text)
                if vsib_match is not None:
                    fields["vsib"] = VectorIndex(
                        f"{vsib_match[2]}mm", int(vsib_match[1])
                    )
            case OperandShape.immediate:
                forms.append("imm")
                fields["imm"] = text
                fields["imm_size"] = IMMEDIATE_SIZES[text]
                if text == "1":
                    fields["implicit"] = True
                    fields["imm_value"] = 1
            case OperandShape.relative:
                forms.append("rel")
                fields["rel"] = text
                fields["rel_size"] = int(text[3:])
            case None:
                raise UnrecognizedOperand.with_text("unrecognized operand", form)

    kind = _KINDS.get(tuple(sorted(forms)))
    if kind is None:
        raise UnrecognizedOperand.with_text(
            f"cannot combine operand forms {'/'.join(forms)}", body
        )

    operand = Operand(kind=kind, text=body.text, **fields)  # type: ignore[arg-type]
    is_accessed = operand.is_reg or operand.is_mem
    return decoration.apply(operand, default if is_accessed else None)


def extract_flags(location: InputLocation) -> tuple[InputLocation, list[InputLocation]]:
    """
    Remove instruction-level flags such as "{k}" and "{sae}" from an operand
    list. The flags are replaced by whitespace, so the locations of the
    operands remain valid for error reporting.
    """
    flags = []
    line = location.line
    for match in location.find_matches(_FLAG_RE):
        flag = match.group("flag")
        flags.append(flag)
        start, end = match.group(0).span
        line = line[:start] + " " * (end - start) + line[end:]
    if not flags:
        return location, flags
    return InputLocation(location.path, location.lineno, line, location.span), flags
