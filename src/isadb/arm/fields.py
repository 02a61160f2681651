from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from ..operand import Access


@dataclass(frozen=True, slots=True)
class FieldInfo:
    """Properties of an opcode field that has a standard name."""

    width: int
    access: Access | None = None
    """Default access of a register operand with the field's name."""
    is_list: bool = False


def _build_field_info() -> Mapping[str, FieldInfo]:
    info = {
        name: FieldInfo(1) for name in ("P", "U", "W", "S", "R", "J1", "J2")
    }
    info["SOP"] = FieldInfo(2)
    for name in ("Cond", "Cn", "Cm"):
        info[name] = FieldInfo(4)

    write = Access.WRITE
    read = Access.READ
    read_write = Access.READ_WRITE
    registers: dict[str, Access | None] = {
        "Rd": write,
        "Rd2": write,
        "RdLo": write,
        "RdHi": write,
        "Rx": read_write,
        "RxLo": read_write,
        "RxHi": read_write,
        "Rn": read,
        "Rm": read,
        "Ra": read,
        "Rs": read,
        "Rs2": read,
        "Dd": write,
        "Dx": write,
        "Dn": write,
        "Dm": write,
        "Sd": write,
        "Sx": write,
        "Sn": write,
        "Sm": write,
        "Vd": write,
        "Vx": read_write,
        "Vn": None,
        "Vm": None,
        "Vs": read,
    }
    for name, access in registers.items():
        info[name] = FieldInfo(4, access)
    lists = {"RdList": write, "RsList": read, "VdList": write, "VsList": read}
    for name, access in lists.items():
        info[name] = FieldInfo(4, access, is_list=True)
    return MappingProxyType(info)


FIELD_INFO = _build_field_info()
"""
Widths of opcode fields with standard names, and the default access of
register operands that are encoded in those fields.
"""
