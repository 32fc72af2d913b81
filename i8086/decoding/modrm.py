"""ModRM addressing-mode resolution.

A ModRM byte packs three fields::

    7 6   5 4 3   2 1 0
    mod   reg     r/m

`mod` selects register (11) or memory with no/8-bit/16-bit displacement,
`r/m` selects the register or base/index combination, and `reg` names either
the second register operand or, for group opcodes, the operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Optional, Tuple

from .bind import (
    DirectAddress,
    Disp16,
    Disp8,
    EffectiveAddress,
    Operand,
    Reg,
    SegReg,
)
from .errors import DecodeError, UnsupportedGroupOperation
from .instr import Op
from .reader import StreamCtx, record
from .registers import Register, register_of, segment_register_of


class Mode(IntEnum):
    MEMORY = 0b00
    MEMORY_DISP8 = 0b01
    MEMORY_DISP16 = 0b10
    REGISTER = 0b11


DIRECT_RM = 0b110

# (base, index) per r/m value. Mode 00 replaces r/m 110 with a direct address.
BASE_INDEX: Tuple[Tuple[Register, Optional[Register]], ...] = (
    (Register.BX, Register.SI),
    (Register.BX, Register.DI),
    (Register.BP, Register.SI),
    (Register.BP, Register.DI),
    (Register.SI, None),
    (Register.DI, None),
    (Register.BP, None),
    (Register.BX, None),
)


@dataclass(frozen=True, slots=True)
class ModRM:
    mode: Mode
    reg: int
    rm: int

    @classmethod
    def from_byte(cls, byte: int) -> "ModRM":
        return cls(Mode(byte >> 6), (byte >> 3) & 0x07, byte & 0x07)


def read_modrm(ctx: StreamCtx) -> ModRM:
    start = ctx.bytes_consumed()
    modrm = ModRM.from_byte(ctx.read_u8())
    record(ctx, "modrm", "modrm", start=start, mode=int(modrm.mode), reg=modrm.reg)
    return modrm


def resolve_rm(
    mode: Mode, rm: int, wide: bool, ctx: StreamCtx, key: str = "rm"
) -> Operand:
    """Resolve the r/m side of a ModRM byte, consuming any displacement."""

    if mode is Mode.REGISTER:
        return Reg(register_of(rm, wide))

    start = ctx.bytes_consumed()
    if mode is Mode.MEMORY and rm == DIRECT_RM:
        address = ctx.read_s16()
        record(ctx, key, "direct", start=start, width=16)
        return DirectAddress(address)

    base, index = BASE_INDEX[rm]
    if mode is Mode.MEMORY:
        return EffectiveAddress(base, index)
    if mode is Mode.MEMORY_DISP8:
        disp = Disp8(ctx.read_s8())
        record(ctx, key, "disp8", start=start, width=8)
        return EffectiveAddress(base, index, disp)
    disp16 = Disp16(ctx.read_s16())
    record(ctx, key, "disp16", start=start, width=16)
    return EffectiveAddress(base, index, disp16)


def decode_reg_rm(
    ctx: StreamCtx, wide: bool, reverse: bool
) -> Tuple[Operand, Operand]:
    """Decode the `reg <-> r/m` operand pair and return (dst, src).

    Without `reverse` the r/m operand is the destination; with it the
    reg-field register is.
    """

    modrm = read_modrm(ctx)
    rm_operand = resolve_rm(modrm.mode, modrm.rm, wide, ctx)
    reg_operand = Reg(register_of(modrm.reg, wide))
    if reverse:
        return reg_operand, rm_operand
    return rm_operand, reg_operand


def decode_seg_rm(ctx: StreamCtx, reverse: bool) -> Tuple[Operand, Operand]:
    """Decode `MOV r/m16, sreg` (reverse=False) or `MOV sreg, r/m16`."""

    modrm = read_modrm(ctx)
    segment = SegReg(segment_register_of(modrm.reg))
    rm_operand = resolve_rm(modrm.mode, modrm.rm, True, ctx)
    if reverse:
        return segment, rm_operand
    return rm_operand, segment


# Group tables: reg field -> operation, None where the encoding is undefined.
GroupTable = Tuple[Optional[Op], ...]

IMMEDIATE_GROUP: GroupTable = (
    Op.ADD,
    Op.OR,
    Op.ADC,
    Op.SBB,
    Op.AND,
    Op.SUB,
    Op.XOR,
    Op.CMP,
)

SHIFT_GROUP: GroupTable = (
    Op.ROL,
    Op.ROR,
    Op.RCL,
    Op.RCR,
    Op.SHL,
    Op.SHR,
    None,
    Op.SAR,
)

UNARY_GROUP: GroupTable = (
    Op.TEST,
    None,
    Op.NOT,
    Op.NEG,
    Op.MUL,
    Op.IMUL,
    Op.DIV,
    Op.IDIV,
)

INC_DEC_GROUP: GroupTable = (Op.INC, Op.DEC, None, None, None, None, None, None)

WORD_GROUP: GroupTable = (
    Op.INC,
    Op.DEC,
    Op.CALL,
    Op.CALLF,
    Op.JMP,
    Op.JMPF,
    Op.PUSH,
    None,
)

POP_GROUP: GroupTable = (Op.POP, None, None, None, None, None, None, None)

MOV_IMM_GROUP: GroupTable = (Op.MOV, None, None, None, None, None, None, None)

GROUP_TABLES: Dict[int, GroupTable] = {
    0x80: IMMEDIATE_GROUP,
    0x81: IMMEDIATE_GROUP,
    0x82: IMMEDIATE_GROUP,
    0x83: IMMEDIATE_GROUP,
    0x8F: POP_GROUP,
    0xC6: MOV_IMM_GROUP,
    0xC7: MOV_IMM_GROUP,
    0xD0: SHIFT_GROUP,
    0xD1: SHIFT_GROUP,
    0xD2: SHIFT_GROUP,
    0xD3: SHIFT_GROUP,
    0xF6: UNARY_GROUP,
    0xF7: UNARY_GROUP,
    0xFE: INC_DEC_GROUP,
    0xFF: WORD_GROUP,
}


def group_op(opcode: int, modrm: ModRM) -> Op:
    try:
        table = GROUP_TABLES[opcode]
    except KeyError as exc:
        raise DecodeError(f"Opcode {opcode:#04x} is not a group opcode") from exc
    op = table[modrm.reg]
    if op is None:
        raise UnsupportedGroupOperation(opcode, modrm.reg)
    return op


def decode_group(
    opcode: int, ctx: StreamCtx, wide: bool
) -> Tuple[Op, ModRM, Operand]:
    """Read the ModRM byte of a group opcode.

    Returns the selected operation, the ModRM fields and the r/m operand
    (the instruction's destination). The operation is resolved before any
    displacement is consumed so an undefined slot fails without reading
    further.
    """

    modrm = read_modrm(ctx)
    op = group_op(opcode, modrm)
    dst = resolve_rm(modrm.mode, modrm.rm, wide, ctx)
    return op, modrm, dst


__all__ = [
    "Mode",
    "ModRM",
    "DIRECT_RM",
    "BASE_INDEX",
    "GROUP_TABLES",
    "read_modrm",
    "resolve_rm",
    "decode_reg_rm",
    "decode_seg_rm",
    "decode_group",
    "group_op",
]
