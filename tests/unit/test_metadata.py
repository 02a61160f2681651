from __future__ import annotations

import pytest
from pytest import raises

from isadb.arch import ArchMode
from isadb.declarations import ShortcutDef
from isadb.errors import InvalidSpecialRegisterAccess, ProblemKind
from isadb.isa import ISA
from isadb.metadata import expand_key


def test_expand_plain_key() -> None:
    assert expand_key("SSE2", {}) == ["SSE2"]


def test_expand_fan_out() -> None:
    """A key with alternatives after a dot shares the part before the dot."""
    assert expand_key("FLAGS.CF|ZF|OF", {}) == ["FLAGS.CF", "FLAGS.ZF", "FLAGS.OF"]
    assert expand_key("Lock|Rep", {}) == ["Lock", "Rep"]


def test_expand_shortcut_once() -> None:
    """The expansion of a shortcut is not looked up as a shortcut again."""
    shortcuts = {
        "_A": ShortcutDef("_A", "_B"),
        "_B": ShortcutDef("_B", "FLAGS.CF"),
        "NZ": ShortcutDef("NZ", "APSR.N|Z"),
    }
    assert expand_key("_A", shortcuts) == ["_B"]
    assert expand_key("NZ", shortcuts) == ["APSR.N", "APSR.Z"]


def test_attribute_kinds(x86_isa: ISA) -> None:
    """Attribute values are converted to the declared kind."""
    (instr,) = x86_isa.add_row(
        ["lock_add", "r32/m32, r32", "MR", "01 /r", "Lock Control=Jump Tags=a|b"]
    )
    assert instr.attributes == {"Lock": True, "Control": "Jump", "Tags": ("a", "b")}
    assert instr.has_attribute("Lock")


def test_extension_and_cpu_level(x86_isa: ISA) -> None:
    (instr,) = x86_isa.add_row(["lfence", "", "NONE", "0F AE E8", "X64 SSE2 I486"])
    assert instr.extensions == {"SSE2"}
    assert instr.cpu_level == "I486"
    assert instr.mode is ArchMode.X64


def test_shortcut_special_registers(x86_isa: ISA) -> None:
    (instr,) = x86_isa.add_row(["add", "al, ib", "I", "04 ib", "_Flags=W FLAGS.CF=X"])
    assert instr.special_regs == {"FLAGS.CF": "X", "FLAGS.ZF": "W", "FLAGS.OF": "W"}


def test_special_register_invalid_access(x86_isa: ISA) -> None:
    with raises(
        InvalidSpecialRegisterAccess,
        match=r'^special register "FLAGS.CF" must have access R, W, X, U, 0 or 1, '
        r'not "TRUE"$',
    ):
        x86_isa.add_row(["clc", "", "NONE", "F8", "FLAGS.CF"])
    assert "clc" not in x86_isa


def test_operations(x86_isa: ISA) -> None:
    (instr,) = x86_isa.add_row(
        ["movd", "W:xmm, r32", "RM", "66 0F 6E /r", "Op=ZeroExtend|Move"]
    )
    assert instr.operations == {"ZeroExtend", "Move"}


def test_unhandled_attribute(x86_isa: ISA, caplog: pytest.LogCaptureFixture) -> None:
    """Unknown metadata is recorded as a problem but does not reject the row."""
    (instr,) = x86_isa.add_row(["nop", "", "NONE", "90", "ANY Bogus=1"])
    assert [problem.kind for problem in instr.problems] == [
        ProblemKind.UNHANDLED_ATTRIBUTE
    ]
    assert str(instr.problems[0]) == 'unhandled metadata "Bogus=1"'
    assert instr.invalid_count == 1
    assert "nop" in x86_isa
    assert caplog.messages == ['nop: unhandled metadata "Bogus=1"']


def test_x86_fallback_flags(x86_isa: ISA) -> None:
    (instr,) = x86_isa.add_row(
        [
            "vaddps",
            "W:zmm {kz}, zmm, zmm/m512/b32 {er}",
            "RVM-FV",
            "EVEX.NDS.512.0F.W0 58 /r",
            "AVX512_F-VL",
        ]
    )
    assert instr.zmask and instr.kmask
    assert instr.rounding and instr.sae
    assert instr.broadcast
    assert instr.element_size == 32
    assert instr.extensions == {"AVX512_F", "AVX512_VL"}
    assert instr.encoding == "RVM"
    assert instr.tuple_type == "FV"
    assert instr.invalid_count == 0


def test_x86_fpu(x86_isa: ISA) -> None:
    (instr,) = x86_isa.add_row(["fstp", "W:m64fp", "M", "DD /3", "FPU FPU_POP=1"])
    assert instr.fpu
    assert instr.fpu_top == 1


def test_x86_privilege(x86_isa: ISA) -> None:
    (instr,) = x86_isa.add_row(["hlt", "", "NONE", "F4", "PRIVILEGE=L0"])
    assert instr.privilege == "L0"
    (instr,) = x86_isa.add_row(["cli", "", "NONE", "FA", "PRIVILEGE=L9"])
    assert [problem.kind for problem in instr.problems] == [
        ProblemKind.INVALID_PRIVILEGE
    ]
    (instr,) = x86_isa.add_row(["sti", "", "NONE", "FB", ""])
    assert instr.privilege == "L3"


def test_arm_special_registers(arm_isa: ISA) -> None:
    (instr,) = arm_isa.add_row(
        ["adds", "Rd, Rn, Rm", "T16", "0001100|Rm:3|Rn:3|Rd:3", "NZCV=W IT=OUT ARMv4"]
    )
    assert instr.special_regs == {
        "APSR.N": "W",
        "APSR.Z": "W",
        "APSR.C": "W",
        "APSR.V": "W",
    }
    assert instr.attributes == {"IT": "OUT"}
    assert instr.mode is ArchMode.THUMB


def test_name_in_two_tables(arm_isa: ISA) -> None:
    """A name declared as extension and special register sets both."""
    arm_isa.add_data(
        {"extensions": [{"name": "APSR.Q"}], "special_regs": [{"name": "APSR.Q"}]}
    )
    opcode = "Cond|00010000|Rn|Rd|00000101|Rm"
    (instr,) = arm_isa.add_row(["qadd", "Rd, Rm, Rn", "A32", opcode, "APSR.Q=W"])
    assert instr.extensions == {"APSR.Q"}
    assert instr.special_regs == {"APSR.Q": "W"}
