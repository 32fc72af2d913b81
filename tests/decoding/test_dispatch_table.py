from i8086.decoding.decode_map import (
    ALU_OPS,
    CONDITIONAL_JUMPS,
    DECODERS,
    UNSUPPORTED_OPCODES,
)
from i8086.decoding.instr import Op
from i8086.decoding.modrm import GROUP_TABLES
from i8086.decoding.reader import StreamCtx


def test_table_covers_every_byte() -> None:
    assert len(DECODERS) == 256
    assert all(callable(decoder) for decoder in DECODERS)


def test_reserved_slots() -> None:
    expected = {0x0F, 0xC0, 0xC1, 0xC8, 0xC9, 0xD6, 0xF1} | set(range(0x60, 0x70))
    assert set(UNSUPPORTED_OPCODES) == expected


def test_row_orders() -> None:
    assert ALU_OPS[0] is Op.ADD
    assert ALU_OPS[7] is Op.CMP
    assert len(CONDITIONAL_JUMPS) == 16
    assert CONDITIONAL_JUMPS[4] is Op.JE


def test_group_tables_have_eight_slots() -> None:
    assert set(GROUP_TABLES) == {
        0x80,
        0x81,
        0x82,
        0x83,
        0x8F,
        0xC6,
        0xC7,
        0xD0,
        0xD1,
        0xD2,
        0xD3,
        0xF6,
        0xF7,
        0xFE,
        0xFF,
    }
    assert all(len(table) == 8 for table in GROUP_TABLES.values())


def test_every_supported_opcode_decodes_with_zero_padding() -> None:
    # Zero operand bytes are valid for every supported encoding
    # except the memory-only forms, which mod=00 r/m=000 satisfies.
    padding = bytes(6)
    for opcode, decoder in enumerate(DECODERS):
        if opcode in UNSUPPORTED_OPCODES:
            continue
        decoded = decoder(opcode, StreamCtx(pc=0, data=padding))
        assert decoded.opcode == opcode
        assert 1 <= decoded.length <= 6
