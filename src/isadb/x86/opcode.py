"""
Parser for x86 opcode strings.

Legacy opcodes are written as a sequence of bytes and placeholders, for
example "66 0F 38 00 /r" or "REX.W C7 /0 id". Opcodes that use a vector
extension prefix start with a descriptor of the prefix fields, for example
"VEX.NDS.128.66.0F38.W0 00 /r".
"""

from __future__ import annotations

import re

from ..declarations import Declarations
from ..errors import (
    ConflictingFieldSpec,
    DuplicateOpcodeByte,
    MissingOpcodeByte,
    UnrecognizedOpcodeToken,
)
from ..input import InputLocation
from ..instruction import Instruction, X86Opcode
from ..tokens import TokenEnum, Tokenizer
from ..utils import bad_type
from .operand import IMMEDIATE_SIZES


class OpcodeToken(TokenEnum):
    vector_prefix = r"(?:EVEX|VEX|XOP)\.\S*"
    rex_w = r"REX\.W(?!\S)"
    modrm = r"/[r0-7](?!\S)"
    imm4 = r"/is4(?!\S)"
    immediate = r"i[bwdq](?!\S)"
    displacement = r"c[bwd](?!\S)"
    byte = r"[0-9A-Fa-f]{2}(?:\+[ri])?(?!\S)"
    other = r"\S+"


class OpcodeTokenizer(Tokenizer[OpcodeToken]):
    pass


class PrefixField(TokenEnum):
    """Fields in the descriptor of a vector extension prefix."""

    family = r"EVEX|VEX|XOP"
    vvvv = r"NDS|NDD|DDS"
    length = r"LIG|128|256|512|L0|L1|LZ"
    pp = r"66|F2|F3|P0"
    mm = r"0F|0F38|0F3A|M8|M9|MAP[0-9]"
    w = r"WIG|W0|W1"


_VECTOR_LENGTHS = {
    "LIG": "LIG",
    "128": "128",
    "L0": "128",
    "LZ": "128",
    "256": "256",
    "L1": "256",
    "512": "512",
}

_DISPLACEMENT_SIZES = {"cb": 1, "cw": 2, "cd": 4}

_FPU_ESCAPES = frozenset(f"D{digit}" for digit in "89ABCDEF")

_DOT_RE = re.compile(r"\.")


class _OpcodeState:
    """The opcode fields collected so far."""

    def __init__(self) -> None:
        self.fields: dict[str, str] = {}
        self.opcode = ""
        self.opcode_location: InputLocation | None = None
        self.reg_in_opcode = False
        self.imm_bits = 0
        self.disp_size = 0
        self.addr_override = False

    def get(self, name: str) -> str:
        return self.fields.get(name, "")

    def set_once(self, name: str, value: str, location: InputLocation) -> None:
        """Set a field, which must not have been set to a different value."""
        old = self.fields.get(name)
        if old is not None and old != value:
            raise ConflictingFieldSpec(
                f'{name} field set to "{value}" after it was set to "{old}"',
                location,
            )
        self.fields[name] = value

    def set_opcode(self, location: InputLocation) -> None:
        text = location.text.upper()
        if text.endswith(("+R", "+I")):
            self.reg_in_opcode = True
            text = text[:2]
        self.opcode = text
        self.opcode_location = location

    def build(self) -> X86Opcode:
        return X86Opcode(
            opcode=self.opcode,
            prefix=self.get("prefix"),
            l=self.get("l"),
            w=self.get("w"),
            pp=self.get("pp"),
            mm=self.get("mm"),
            vvvv=self.get("vvvv"),
            rm=self.get("rm"),
            reg_in_opcode=self.reg_in_opcode,
            imm_bits=self.imm_bits,
            disp_size=self.disp_size,
            addr_override=self.addr_override,
        )


def _parse_prefix_descriptor(state: _OpcodeState, location: InputLocation) -> None:
    for comp in location.split(_DOT_RE):
        text = comp.text
        match PrefixField.classify(comp):
            case PrefixField.family:
                state.set_once("prefix", text, comp)
            case PrefixField.vvvv:
                state.set_once("vvvv", text, comp)
            case PrefixField.length:
                state.set_once("l", _VECTOR_LENGTHS[text], comp)
            case PrefixField.pp:
                if text != "P0":
                    state.set_once("pp", text, comp)
            case PrefixField.mm:
                state.set_once("mm", text, comp)
            case PrefixField.w:
                state.set_once("w", text, comp)
            case None:
                raise UnrecognizedOpcodeToken.with_text(
                    "unrecognized prefix field", comp
                )
            case prefix_field:
                bad_type(prefix_field)


def _parse_vector_opcode(state: _OpcodeState, tokens: OpcodeTokenizer) -> None:
    for kind, location in tokens:
        match kind:
            case OpcodeToken.byte if len(location) == 2:
                if state.opcode:
                    raise DuplicateOpcodeByte(
                        f"second opcode byte {location.text} after "
                        f"opcode byte {state.opcode}",
                        location,
                        state.opcode_location,
                    )
                state.set_opcode(location)
            case OpcodeToken.modrm:
                state.set_once("rm", location.text[1], location)
            case OpcodeToken.immediate | OpcodeToken.imm4:
                state.imm_bits += IMMEDIATE_SIZES[location.text.lstrip("/")]
            case _:
                raise UnrecognizedOpcodeToken.with_text(
                    "unrecognized opcode token", location
                )


def _parse_legacy_opcode(state: _OpcodeState, tokens: OpcodeTokenizer) -> None:
    for kind, location in tokens:
        text = location.text
        match kind:
            case OpcodeToken.rex_w:
                state.set_once("w", "W1", location)
            case OpcodeToken.byte:
                _parse_legacy_byte(state, location)
            case OpcodeToken.modrm:
                state.set_once("rm", text[1], location)
            case OpcodeToken.immediate:
                state.imm_bits += IMMEDIATE_SIZES[text]
            case OpcodeToken.displacement:
                if state.disp_size:
                    raise ConflictingFieldSpec(
                        "second relative displacement in opcode", location
                    )
                state.disp_size = _DISPLACEMENT_SIZES[text]
            case _:
                raise UnrecognizedOpcodeToken.with_text(
                    "unrecognized opcode token", location
                )

    # A "0F 01" escape without a following byte is opcode 01 in the 0F map.
    mm = state.get("mm")
    if not state.opcode and mm.endswith("0F01"):
        state.opcode = "01"
        state.fields["mm"] = mm[:-2]


def _parse_legacy_byte(state: _OpcodeState, location: InputLocation) -> None:
    text = location.text.upper()
    pp = state.get("pp")
    mm = state.get("mm")

    # Mandatory prefixes come before any escape bytes.
    if not mm and not state.opcode and (
        (not pp and text in ("66", "F2", "F3")) or (pp == "66" and text in ("F2", "F3"))
    ):
        state.fields["pp"] = pp + text
        return

    # Escape bytes.
    if not state.opcode and ((not mm and text == "0F") or (
        mm == "0F" and text in ("01", "38", "3A")
    )):
        state.fields["mm"] = mm + text
        return
    if mm == "0F" and text == "0F" and not state.opcode:
        state.set_once("prefix", "3DNOW", location)
        return

    if state.opcode:
        opcode = state.opcode
        # Some instructions are written as "0F AE XX"; the last byte is the opcode.
        if mm == "0F" and opcode == "AE":
            state.fields["mm"] = mm + opcode
        # FPU instructions that wait for pending exceptions start with 9B.
        elif not pp and opcode == "9B":
            state.fields["pp"] = opcode
        # FPU escape bytes act as an opcode map.
        elif not mm and opcode in _FPU_ESCAPES:
            state.fields["mm"] = opcode
        elif opcode == "67":
            state.addr_override = True
        else:
            raise DuplicateOpcodeByte(
                f"second opcode byte {text} after opcode byte {opcode}",
                location,
                state.opcode_location,
            )

    state.set_opcode(location)


def parse_opcode(location: InputLocation) -> X86Opcode:
    """
    Parse an x86 opcode string into its symbolic fields.

    Raise `UnrecognizedOpcodeToken` for unknown parts, `ConflictingFieldSpec`
    when a field is set twice to different values, `DuplicateOpcodeByte`
    when more than one opcode byte is given and `MissingOpcodeByte` when
    there is no opcode byte.
    """
    state = _OpcodeState()
    tokens = OpcodeTokenizer.scan(location)
    prefix_location = tokens.eat(OpcodeToken.vector_prefix)
    if prefix_location is None:
        _parse_legacy_opcode(state, tokens)
    else:
        _parse_prefix_descriptor(state, prefix_location)
        _parse_vector_opcode(state, tokens)

    if not state.opcode:
        raise MissingOpcodeByte.with_text("no opcode byte in opcode", location)
    return state.build()


def assign_opcode(
    instr: Instruction, location: InputLocation, declarations: Declarations
) -> None:
    instr.opcode_string = location.text
    opcode = parse_opcode(location)
    instr.opcode_symbolic = opcode
    instr.opcode_word = opcode.opcode_value
