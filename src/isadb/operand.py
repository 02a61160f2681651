from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import override

from .input import InputLocation


class OperandKind(Enum):
    REGISTER = "reg"
    MEMORY = "mem"
    REGISTER_OR_MEMORY = "reg/mem"
    IMMEDIATE = "imm"
    RELATIVE = "rel"
    REGISTER_LIST = "reg-list"


class Access(Enum):
    """How an instruction accesses an operand or special register."""

    READ = "R"
    WRITE = "W"
    READ_WRITE = "X"

    @property
    def read(self) -> bool:
        return self is not Access.WRITE

    @property
    def write(self) -> bool:
        return self is not Access.READ

    @classmethod
    def from_flags(cls, read: bool, write: bool) -> Access | None:
        if read:
            return cls.READ_WRITE if write else cls.READ
        else:
            return cls.WRITE if write else None


@dataclass(frozen=True, slots=True)
class VectorIndex:
    """Vector register used as the index of a VSIB memory operand."""

    reg: str
    """Register class of the index: "xmm", "ymm" or "zmm"."""

    size: int
    """Size of each index element in bits."""


@dataclass(frozen=True, slots=True, kw_only=True)
class Operand:
    """One argument slot of an instruction."""

    kind: OperandKind

    text: str
    """The operand's definition text, with access, implicit, optional and
    broadcast decorators removed."""

    read: bool = False
    write: bool = False
    explicit_access: bool = False
    """True iff access was specified by an `R:`, `W:` or `X:` prefix."""

    rw_subrange: tuple[int, int] | None = None
    """Index of the lowest bit and width of a partial write or read."""

    implicit: bool = False
    optional: bool = False
    commutative: bool = False

    reg: str = ""
    reg_type: str = ""

    mem: str = ""
    mem_size: int = 0
    """Size of a memory operand in bits, or 0 if the size is not fixed."""
    mem_offset: bool = False
    """True iff the memory operand is an absolute offset (`moffN`)."""
    segment: str = ""
    vsib: VectorIndex | None = None
    writeback: bool = False
    broadcast: int = 0
    """Size of a broadcast element in bits, or 0 if broadcast is unsupported."""

    imm: str = ""
    imm_size: int = 0
    imm_value: int | None = None
    """The value of an immediate that is always the same, such as the
    shift count of `shl r/m8, 1`."""

    rel: str = ""
    rel_size: int = 0

    restriction: str = ""
    """Condition on the register or immediate, such as `!=PC` or `*4`."""
    shift: str = ""

    @property
    def is_reg(self) -> bool:
        return self.kind in (OperandKind.REGISTER, OperandKind.REGISTER_OR_MEMORY)

    @property
    def is_mem(self) -> bool:
        return self.kind in (OperandKind.MEMORY, OperandKind.REGISTER_OR_MEMORY)

    @property
    def is_reg_mem(self) -> bool:
        return self.kind is OperandKind.REGISTER_OR_MEMORY

    @property
    def is_imm(self) -> bool:
        return self.kind is OperandKind.IMMEDIATE

    @property
    def is_rel(self) -> bool:
        return self.kind is OperandKind.RELATIVE

    @property
    def is_reg_list(self) -> bool:
        return self.kind is OperandKind.REGISTER_LIST

    @property
    def is_partial(self) -> bool:
        """True iff only part of the operand is accessed."""
        return self.rw_subrange is not None

    @property
    def access(self) -> Access | None:
        return Access.from_flags(self.read, self.write)

    @property
    def name(self) -> str:
        """The name under which opcode fields refer to this operand."""
        match self.kind:
            case OperandKind.REGISTER | OperandKind.REGISTER_LIST:
                return self.reg
            case OperandKind.REGISTER_OR_MEMORY:
                return self.reg
            case OperandKind.MEMORY:
                return self.mem
            case OperandKind.IMMEDIATE:
                return self.imm
            case OperandKind.RELATIVE:
                return self.rel

    @property
    def scale(self) -> int:
        """The scale factor of an immediate restricted as `*N`, or 0."""
        if self.restriction.startswith("*"):
            return int(self.restriction[1:])
        else:
            return 0

    def to_reg_mem(self) -> str:
        """
        Return a short form of this operand that only tells registers and
        memory apart, for use in instruction signatures.
        """
        if self.reg and self.mem:
            return f"{self.reg}/m"
        elif self.mem and (self.vsib is not None or self.mem.endswith(("fp", "int"))):
            return self.mem
        elif self.mem:
            return "m"
        else:
            return self.text

    @override
    def __str__(self) -> str:
        parts = []
        if self.explicit_access:
            access = self.access
            assert access is not None, self
            parts.append(access.value)
            subrange = self.rw_subrange
            if subrange is not None:
                index, width = subrange
                parts.append(f"[{index + width - 1:d}:{index:d}]")
            parts.append(":")
        if self.commutative:
            parts.append("~")
        if self.implicit and self.imm_value is None:
            parts.append(f"<{self.text}>")
        elif self.optional:
            parts.append(f"{{{self.text}}}")
        else:
            parts.append(self.text)
        if self.broadcast:
            parts.append(f"/b{self.broadcast:d}")
        return "".join(parts)


@dataclass(frozen=True, slots=True)
class Decoration:
    """Operand properties that are written around the operand's definition."""

    access: Access | None = None
    rw_subrange: tuple[int, int] | None = None
    commutative: bool = False
    broadcast: int = 0
    implicit: bool = False
    optional: bool = False

    def apply(self, operand: Operand, default_access: Access | None) -> Operand:
        """
        Return a copy of the given operand with this decoration applied.
        The default access is used if no access prefix was present.
        """
        access = default_access if self.access is None else self.access
        if access is None:
            read, write = operand.read, operand.write
        else:
            read, write = access.read, access.write
        return replace(
            operand,
            read=read,
            write=write,
            explicit_access=self.access is not None,
            rw_subrange=self.rw_subrange,
            commutative=self.commutative,
            broadcast=self.broadcast,
            implicit=self.implicit or operand.implicit,
            optional=self.optional,
        )


_ACCESS_RE = re.compile(r"(?P<access>[RWX])(?:\[(?P<hi>\d+):(?P<lo>\d+)\])?:")
_BROADCAST_RE = re.compile(r"/b(?P<size>\d+)$")


def strip_decoration(
    location: InputLocation, *, commutative: bool, broadcast: bool
) -> tuple[InputLocation, Decoration]:
    """
    Remove the decorations from an operand definition.

    The decorations are recognized in this order: access prefix (`R:`, `W:`,
    `X:`, optionally with a bit range such as `W[7:0]:`), commutative marker
    (`~`), broadcast suffix (`/bN`), implicit wrapper (`<...>`) and optional
    wrapper (`{...}`). Commutative markers and broadcast suffixes are only
    recognized if the corresponding flag is set.

    Return the location of the remaining definition and the decoration.
    """
    location = location.strip()

    access = None
    rw_subrange = None
    match = location.match(_ACCESS_RE)
    if match is not None:
        access = Access(match.group("access").text)
        if match.has_group("hi"):
            hi = int(match.group("hi").text)
            lo = int(match.group("lo").text)
            rw_subrange = (min(hi, lo), abs(hi - lo) + 1)
        location = location.update_span((match.group(0).span[1], location.span[1]))

    is_commutative = False
    if commutative and location.text.startswith("~"):
        is_commutative = True
        location = location[1:]

    broadcast_size = 0
    if broadcast:
        bcst_match = location.search(_BROADCAST_RE)
        if bcst_match is not None:
            broadcast_size = int(bcst_match.group("size").text)
            location = location.update_span(
                (location.span[0], bcst_match.group(0).span[0])
            )

    implicit = False
    text = location.text
    if len(text) >= 2 and text.startswith("<") and text.endswith(">"):
        implicit = True
        location = location[1:-1].strip()

    optional = False
    text = location.text
    if len(text) >= 2 and text.startswith("{") and text.endswith("}"):
        optional = True
        location = location[1:-1].strip()

    return location, Decoration(
        access, rw_subrange, is_commutative, broadcast_size, implicit, optional
    )
