from __future__ import annotations

from isadb.isa import ISA
from isadb.x86.checks import check_vex_evex, signature


def test_signature_vex(x86_isa: ISA) -> None:
    (instr,) = x86_isa.add_row(
        ["vaddps", "W:ymm, ymm, ymm/m256", "RVM", "VEX.NDS.256.0F.WIG 58 /r", "AVX"]
    )
    assert signature(instr) == "ANY VEX.256 RVM:ymm,ymm,ymm/m"


def test_signature_rex_w(x86_isa: ISA) -> None:
    (instr,) = x86_isa.add_row(["add", "r64/m64, r64", "MR", "REX.W 01 /r", "X64"])
    assert signature(instr) == "X64 REX.W MR:r64/m,r64"


def test_signature_implicit(x86_isa: ISA) -> None:
    """Implicit operands are shown in brackets."""
    (instr,) = x86_isa.add_row(
        ["cpuid", "W:<eax>, W:<ebx>, X:<ecx>", "NONE", "0F A2", "ANY"]
    )
    assert signature(instr) == "ANY NONE:[eax],[ebx],[ecx]"


def test_check_vex_evex(x86_isa: ISA) -> None:
    operands = "W:ymm, ymm, ymm/m256"
    (vex,) = x86_isa.add_row(
        ["vaddps", operands, "RVM", "VEX.NDS.256.0F.WIG 58 /r", "AVX"]
    )
    (evex,) = x86_isa.add_row(
        ["vaddps", operands, "RVM", "EVEX.NDS.256.0F.W0 58 /r", "AVX512_F"]
    )
    assert list(check_vex_evex(x86_isa.iter_groups())) == [(vex, evex)]


def test_check_vex_evex_agree(x86_isa: ISA) -> None:
    """Forms that agree on W and L, or that differ in operands, pass."""
    x86_isa.add_row(
        ["vaddps", "W:ymm, ymm, ymm/m256", "RVM", "VEX.NDS.256.0F.W0 58 /r", "AVX"]
    )
    x86_isa.add_row(
        [
            "vaddps",
            "W:ymm, ymm, ymm/m256",
            "RVM",
            "EVEX.NDS.256.0F.W0 58 /r",
            "AVX512_F",
        ]
    )
    x86_isa.add_row(
        [
            "vaddps",
            "W:zmm, zmm, zmm/m512",
            "RVM",
            "EVEX.NDS.512.0F.W1 58 /r",
            "AVX512_F",
        ]
    )
    assert list(check_vex_evex(x86_isa.iter_groups())) == []
