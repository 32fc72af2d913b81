import logging

import pytest

from i8086.config import DecoderConfig
from i8086.decoding import (
    DecodeError,
    TruncatedStream,
    UnsupportedOpcode,
    decode_all,
    iter_decode,
)
from i8086.decoding.decode_map import decode_opcode
from i8086.decoding.instr import Branch, Nullary, Op
from i8086.decoding.reader import StreamCtx

QUIET = DecoderConfig()

PROGRAM = bytes([0x04, 0x45, 0x90, 0x74, 0x01, 0x8B, 0x86, 0x00, 0x01])


def test_decode_all_boundaries() -> None:
    decoded = decode_all(PROGRAM, config=QUIET)
    assert [d.address for d in decoded] == [0, 2, 3, 5]
    assert [d.length for d in decoded] == [2, 1, 2, 4]
    assert decoded[1].instr == Nullary(Op.NOP)
    assert decoded[2].instr == Branch(Op.JE, 1)


def test_origin_shifts_addresses() -> None:
    decoded = decode_all(PROGRAM, 0x100, config=QUIET)
    assert [d.address for d in decoded] == [0x100, 0x102, 0x103, 0x105]
    assert decoded[2].branch_target() == 0x106


def test_empty_buffer_yields_nothing() -> None:
    assert decode_all(b"", config=QUIET) == []


def test_accepts_bytearray_and_memoryview() -> None:
    expected = decode_all(PROGRAM, config=QUIET)
    assert decode_all(bytearray(PROGRAM), config=QUIET) == expected
    assert decode_all(memoryview(PROGRAM), config=QUIET) == expected


def test_decoding_is_deterministic() -> None:
    assert decode_all(PROGRAM, config=QUIET) == decode_all(PROGRAM, config=QUIET)


def test_error_carries_instruction_offset() -> None:
    with pytest.raises(UnsupportedOpcode) as excinfo:
        decode_all(bytes([0x90, 0x90, 0x0F]), 0x100, config=QUIET)
    assert excinfo.value.offset == 0x102
    assert "0x0102" in str(excinfo.value)


def test_truncation_reports_start_of_instruction() -> None:
    with pytest.raises(TruncatedStream) as excinfo:
        decode_all(bytes([0x90, 0x05, 0x01]), config=QUIET)
    assert excinfo.value.offset == 1


def test_iteration_is_lazy() -> None:
    stream = iter_decode(bytes([0x90, 0x0F]), config=QUIET)
    first = next(stream)
    assert first.instr == Nullary(Op.NOP)
    with pytest.raises(DecodeError):
        next(stream)


def test_failure_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="i8086.decoding.stream"):
        with pytest.raises(DecodeError):
            decode_all(bytes([0xF1]), config=QUIET)
    assert any("Decoding stopped" in r.getMessage() for r in caplog.records)


def test_trace_logs_each_instruction(caplog: pytest.LogCaptureFixture) -> None:
    config = DecoderConfig(trace=True)
    with caplog.at_level(logging.DEBUG, logger="i8086.decoding.stream"):
        decode_all(PROGRAM, config=config)
    debug = [r for r in caplog.records if r.levelno == logging.DEBUG]
    assert len(debug) == 4
    assert "0445" in debug[0].getMessage()


def test_no_trace_by_default(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="i8086.decoding.stream"):
        decode_all(PROGRAM, config=QUIET)
    assert not caplog.records


def test_layout_recording() -> None:
    ctx = StreamCtx(pc=0, data=bytes([0x86, 0x00, 0x01]), record_layout=True)
    decode_opcode(0x8B, ctx)
    layout = ctx.snapshot_layout()
    assert [entry.key for entry in layout] == ["modrm", "rm"]
    assert layout[0].meta["offset"] == 0
    assert layout[0].meta["length_bytes"] == 1
    assert layout[1].kind == "disp16"
    assert layout[1].meta["offset"] == 1
    assert layout[1].meta["length_bytes"] == 2


def test_layout_off_by_default() -> None:
    ctx = StreamCtx(pc=0, data=bytes([0x86, 0x00, 0x01]))
    decode_opcode(0x8B, ctx)
    assert ctx.snapshot_layout() == ()
    assert ctx.remaining() == 0
