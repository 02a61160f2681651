"""
Resolution of the metadata field of instruction rows.

The metadata field is a whitespace-separated list of `key` or `key=value`
items. A key that names a declared shortcut is replaced by the shortcut's
expansion; this happens once, an expansion is never looked up as a shortcut
again. A key containing `|` then stands for several keys that all receive
the same value: `base.a|b` means `base.a` and `base.b`.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping

from .declarations import Declarations, ShortcutDef
from .errors import InvalidSpecialRegisterAccess, ProblemKind
from .grammar import AttributeHandler
from .input import InputLocation
from .instruction import Instruction

_SEPARATOR_RE = re.compile(r"\s+")
_SPECIAL_REG_ACCESS_RE = re.compile(r"[RWXU01]")

DEFAULT_VALUE = "TRUE"
"""The value of a metadata key that is given without a value."""


def expand_key(key: str, shortcuts: Mapping[str, ShortcutDef]) -> list[str]:
    """
    Return the keys that the given metadata key stands for.
    """
    shortcut = shortcuts.get(key)
    if shortcut is not None:
        key = shortcut.expand
    bar = key.find("|")
    if bar == -1:
        return [key]
    dot = key.find(".", 0, bar)
    base, alternatives = key[: dot + 1], key[dot + 1 :]
    return [base + alt for alt in alternatives.split("|")]


def iter_items(location: InputLocation) -> Iterator[tuple[str, str, InputLocation]]:
    """
    Iterate through the items in a metadata field.
    Yield the key, the value and the location of each item.
    """
    for item in location.split(_SEPARATOR_RE):
        text = item.text
        if not text:
            continue
        key, eq, value = text.partition("=")
        yield key, value if eq else DEFAULT_VALUE, item


def assign_metadata(
    instr: Instruction,
    location: InputLocation,
    declarations: Declarations,
    fallback: AttributeHandler,
) -> None:
    """Assign the properties described by a metadata field to an instruction."""
    shortcuts = declarations.shortcuts
    for key, value, item in iter_items(location):
        for resolved in expand_key(key, shortcuts):
            assign_attribute(instr, resolved, value, item, declarations, fallback)


def assign_attribute(
    instr: Instruction,
    key: str,
    value: str,
    location: InputLocation,
    declarations: Declarations,
    fallback: AttributeHandler,
) -> None:
    """
    Assign one metadata key to an instruction.

    The key is looked up in the declared extensions, attributes, special
    registers and CPU levels, in that order. A name can be declared both as
    an extension and as a special register, in which case both are assigned.
    Keys that are not declared are offered to the architecture's fallback
    handler; if that does not handle the key either, the problem is recorded
    on the instruction.

    Raise `InvalidSpecialRegisterAccess` if a special register is assigned
    an invalid access mode.
    """
    if key == "Op":
        instr.operations.update(op for op in value.split("|") if op)
        return

    handled = False

    if key in declarations.extensions:
        instr.extensions.add(key)
        handled = True
    else:
        attr_def = declarations.attributes.get(key)
        if attr_def is not None:
            instr.attributes[key] = attr_def.kind.coerce(value)
            return

    reg_def = declarations.special_regs.get(key)
    if reg_def is not None:
        if _SPECIAL_REG_ACCESS_RE.fullmatch(value) is None:
            raise InvalidSpecialRegisterAccess(
                f'special register "{key}" must have access R, W, X, U, 0 or 1, '
                f'not "{value}"',
                location,
            )
        instr.special_regs[reg_def.name] = value
        handled = True

    if handled:
        return

    if key in declarations.cpu_levels:
        instr.cpu_level = key
        return

    if fallback(instr, key, value, location, declarations):
        return

    instr.report(
        ProblemKind.UNHANDLED_ATTRIBUTE,
        f'unhandled metadata "{key}={value}"',
        location,
    )
