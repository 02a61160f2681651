from __future__ import annotations

import json
from collections.abc import Iterator
from logging import ERROR, INFO, WARNING, getLogger
from pathlib import Path

import pytest

from isadb.arch import Arch
from isadb.tables import builtin_isas, load_isa, load_isa_by_name


@pytest.fixture
def empty_file(tmp_path: Path) -> Iterator[Path]:
    path = tmp_path / "empty.json"
    with path.open("w"):
        pass
    yield path


minimal_table = {
    "architecture": "x86",
    "instructions": [["nop", "", "NONE", "90", "ANY"]],
}


@pytest.fixture
def minimal_file(tmp_path: Path) -> Iterator[Path]:
    path = tmp_path / "minimal.json"
    with path.open("w") as out:
        json.dump(minimal_table, out)
    yield path


def test_load_table_nofile(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """
    Attempting to load a non-existing instruction table fails gracefully
    and logs the error.
    """
    path = tmp_path / "nosuchfile.json"
    logger = getLogger("test")
    isa = load_isa(path, logger)
    assert caplog.record_tuples == [
        (
            "test",
            ERROR,
            f"{path}: Failed to read instruction table: No such file or directory",
        ),
    ]
    assert isa is None


def test_load_table_empty(empty_file: Path, caplog: pytest.LogCaptureFixture) -> None:
    """
    Attempting to load an empty instruction table fails gracefully
    and logs the error.
    """
    logger = getLogger("test")
    isa = load_isa(empty_file, logger)
    assert caplog.record_tuples == [
        (
            "test",
            ERROR,
            f"{empty_file}:1: Failed to parse instruction table: Expecting value",
        ),
    ]
    assert isa is None


def test_load_table_not_object(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "list.json"
    path.write_text("[]")
    assert load_isa(path, getLogger("test")) is None
    assert caplog.record_tuples == [
        ("test", ERROR, f"{path}: Instruction table must contain a JSON object"),
    ]


def test_load_table_minimal(
    minimal_file: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """
    Loading a minimal instruction table succeeds and logs nothing at INFO level.
    """
    logger = getLogger("test")
    logger.setLevel(INFO)
    isa = load_isa(minimal_file, logger)
    assert caplog.record_tuples == []
    assert isa is not None
    assert isa.arch is Arch.X86
    assert isa.names == ("nop",)


def test_load_table_bad_row(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """
    A table with a row that cannot be parsed is rejected after all rows
    have been checked.
    """
    path = tmp_path / "bad.json"
    table = {
        "architecture": "x86",
        "instructions": [
            ["add", "r32, bogus", "RM", "03 /r", "ANY"],
            ["nop", "", "NONE", "90", "ANY Bogus"],
            ["sub", "r32, r32, r32", "RM", "2B 2B /r", "ANY"],
        ],
    }
    path.write_text(json.dumps(table))
    assert load_isa(path, getLogger("test")) is None
    assert caplog.record_tuples == [
        ("test.parser", ERROR, "unrecognized operand: bogus"),
        ("test.parser", WARNING, 'nop: unhandled metadata "Bogus=TRUE"'),
        ("test.parser", ERROR, "second opcode byte 2B after opcode byte 2B"),
        ("test.parser", ERROR, "2 errors and 1 warning"),
    ]


def test_load_table_conflict(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "conflict.json"
    table = {
        "architecture": "x86",
        "extensions": [{"name": "AVX"}],
        "attributes": [{"name": "AVX", "type": "flag"}],
    }
    path.write_text(json.dumps(table))
    assert load_isa(path, getLogger("test")) is None
    assert [message for _name, _level, message in caplog.record_tuples] == [
        'attribute "AVX" was earlier declared as an extension',
        "1 error and 0 warnings",
    ]


@pytest.mark.parametrize("name", ["x86", "arm"])
def test_builtin_tables(name: str, caplog: pytest.LogCaptureFixture) -> None:
    """The built-in instruction tables load without any problems."""
    caplog.set_level(WARNING)
    isa = load_isa_by_name(name, getLogger("test"))
    assert isa is not None
    assert isa.arch is Arch(name)
    assert caplog.record_tuples == []
    assert all(instr.invalid_count == 0 for instr in isa.instructions)


def test_builtin_provider() -> None:
    assert sorted(builtin_isas) == ["arm", "x86"]
    isa = builtin_isas["x86"]
    assert isa is not None
    assert builtin_isas["x86"] is isa
    assert isa.aliases["sal"] == "shl"
    assert builtin_isas["z80"] is None
