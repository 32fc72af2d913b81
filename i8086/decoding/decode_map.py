from __future__ import annotations

from typing import Callable, Dict, Tuple

from .bind import DirectAddress, Imm, Operand, Port, Reg, is_memory
from .errors import InvalidFieldEncoding, TruncatedStream, UnsupportedOpcode
from .instr import (
    AsciiAdjust,
    Binary,
    Branch,
    DecodedInstr,
    Escape,
    FarTarget,
    Instruction,
    Interrupt,
    Nullary,
    Op,
    RegisterOp,
    Return,
    SegmentOp,
    StringOp,
    Unary,
)
from .modrm import decode_group, decode_reg_rm, decode_seg_rm, read_modrm, resolve_rm
from .reader import StreamCtx, record
from .registers import Register, SegmentRegister, accumulator, register_of

DecoderFunc = Callable[[int, StreamCtx], DecodedInstr]


def _emit(opcode: int, ctx: StreamCtx, instr: Instruction) -> DecodedInstr:
    return DecodedInstr(
        address=ctx.pc,
        opcode=opcode,
        length=ctx.total_length(),
        instr=instr,
    )


def _read_imm(ctx: StreamCtx, key: str, wide: bool) -> Imm:
    start = ctx.bytes_consumed()
    value = ctx.read_s16() if wide else ctx.read_s8()
    record(ctx, key, "imm16" if wide else "imm8", start=start)
    return Imm(value, wide)


def _read_rel(ctx: StreamCtx, wide: bool) -> int:
    start = ctx.bytes_consumed()
    disp = ctx.read_s16() if wide else ctx.read_s8()
    record(ctx, "disp", "rel16" if wide else "rel8", start=start)
    return disp


def _read_u8(ctx: StreamCtx, key: str) -> int:
    start = ctx.bytes_consumed()
    value = ctx.read_u8()
    record(ctx, key, "u8", start=start)
    return value


def _read_u16(ctx: StreamCtx, key: str) -> int:
    start = ctx.bytes_consumed()
    value = ctx.read_u16()
    record(ctx, key, "u16", start=start)
    return value


def _require_memory(opcode: int, operand: Operand) -> Operand:
    if not is_memory(operand):
        raise InvalidFieldEncoding(
            f"Opcode {opcode:#04x} requires a memory operand, got {operand}"
        )
    return operand


# --- factories ------------------------------------------------------------


def _simple(op: Op) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        return _emit(opcode, ctx, Nullary(op))

    return decode


def _alu_rm(op: Op, wide: bool, reverse: bool) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        dst, src = decode_reg_rm(ctx, wide, reverse)
        return _emit(opcode, ctx, Binary(op, dst, src))

    return decode


def _alu_acc_imm(op: Op, wide: bool) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        src = _read_imm(ctx, "imm", wide)
        return _emit(opcode, ctx, Binary(op, Reg(accumulator(wide)), src))

    return decode


def _load_pointer(op: Op) -> DecoderFunc:
    # LEA/LDS/LES: register destination, memory-only source.
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        dst, src = decode_reg_rm(ctx, True, True)
        return _emit(opcode, ctx, Binary(op, dst, _require_memory(opcode, src)))

    return decode


def _mov_seg(reverse: bool) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        dst, src = decode_seg_rm(ctx, reverse)
        return _emit(opcode, ctx, Binary(Op.MOV, dst, src))

    return decode


def _segment(op: Op, seg: SegmentRegister) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        return _emit(opcode, ctx, SegmentOp(op, seg))

    return decode


def _fixed_register(op: Op) -> DecoderFunc:
    # Register baked into the low three bits of the opcode.
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        return _emit(opcode, ctx, RegisterOp(op, register_of(opcode & 0x07, True)))

    return decode


def _branch(op: Op, wide: bool = False) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        return _emit(opcode, ctx, Branch(op, _read_rel(ctx, wide)))

    return decode


def _far_target(op: Op) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        offset = _read_u16(ctx, "offset")
        segment = _read_u16(ctx, "segment")
        return _emit(opcode, ctx, FarTarget(op, segment, offset))

    return decode


def _ret(op: Op, with_pop: bool) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        pop = _read_u16(ctx, "pop") if with_pop else None
        return _emit(opcode, ctx, Return(op, pop))

    return decode


def _string(op: Op, wide: bool) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        return _emit(opcode, ctx, StringOp(op, wide))

    return decode


def _xchg_acc(opcode: int, ctx: StreamCtx) -> DecodedInstr:
    src = Reg(register_of(opcode & 0x07, True))
    return _emit(opcode, ctx, Binary(Op.XCHG, Reg(Register.AX), src))


def _mov_reg_imm(wide: bool) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        dst = Reg(register_of(opcode & 0x07, wide))
        return _emit(opcode, ctx, Binary(Op.MOV, dst, _read_imm(ctx, "imm", wide)))

    return decode


def _mov_acc_mem(wide: bool, to_acc: bool) -> DecoderFunc:
    # A0-A3: the address is a 16-bit direct offset, no ModRM byte.
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        start = ctx.bytes_consumed()
        address = DirectAddress(ctx.read_s16())
        record(ctx, "addr", "direct", start=start, width=16)
        acc = Reg(accumulator(wide))
        if to_acc:
            instr = Binary(Op.MOV, acc, address)
        else:
            instr = Binary(Op.MOV, address, acc)
        return _emit(opcode, ctx, instr)

    return decode


def _port_io(op: Op, wide: bool, fixed_port: bool) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        port: Operand = (
            Port(_read_u8(ctx, "port")) if fixed_port else Reg(Register.DX)
        )
        acc = Reg(accumulator(wide))
        if op is Op.IN:
            instr = Binary(op, acc, port)
        else:
            instr = Binary(op, port, acc)
        return _emit(opcode, ctx, instr)

    return decode


def _int3(opcode: int, ctx: StreamCtx) -> DecodedInstr:
    return _emit(opcode, ctx, Interrupt(Op.INT, 3))


def _int_n(opcode: int, ctx: StreamCtx) -> DecodedInstr:
    return _emit(opcode, ctx, Interrupt(Op.INT, _read_u8(ctx, "vector")))


def _ascii_adjust(op: Op) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        return _emit(opcode, ctx, AsciiAdjust(op, _read_u8(ctx, "base")))

    return decode


def _escape(opcode: int, ctx: StreamCtx) -> DecodedInstr:
    modrm = read_modrm(ctx)
    operand = resolve_rm(modrm.mode, modrm.rm, True, ctx)
    code = ((opcode & 0x07) << 3) | modrm.reg
    return _emit(opcode, ctx, Escape(Op.ESC, code, operand))


def _unsupported(opcode: int, ctx: StreamCtx) -> DecodedInstr:
    raise UnsupportedOpcode(opcode)


# --- group opcodes ----------------------------------------------------------


def _group_immediate(wide: bool, imm_wide: bool) -> DecoderFunc:
    # 80/82: r/m8, imm8; 81: r/m16, imm16; 83: r/m16, imm8 sign-extended.
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        op, _, dst = decode_group(opcode, ctx, wide)
        imm = _read_imm(ctx, "imm", imm_wide)
        src = Imm(imm.value, wide)
        return _emit(opcode, ctx, Binary(op, dst, src))

    return decode


def _group_shift(wide: bool, by_cl: bool) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        op, _, dst = decode_group(opcode, ctx, wide)
        src: Operand = Reg(Register.CL) if by_cl else Imm(1)
        return _emit(opcode, ctx, Binary(op, dst, src))

    return decode


def _group_unary(wide: bool) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        op, _, dst = decode_group(opcode, ctx, wide)
        if op is Op.TEST:
            return _emit(opcode, ctx, Binary(op, dst, _read_imm(ctx, "imm", wide)))
        return _emit(opcode, ctx, Unary(op, dst))

    return decode


def _group_word(opcode: int, ctx: StreamCtx) -> DecodedInstr:
    op, _, dst = decode_group(opcode, ctx, True)
    if op in (Op.CALLF, Op.JMPF):
        _require_memory(opcode, dst)
    return _emit(opcode, ctx, Unary(op, dst))


def _group_single(wide: bool) -> DecoderFunc:
    # FE (INC/DEC r/m8) and 8F (POP r/m16).
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        op, _, dst = decode_group(opcode, ctx, wide)
        return _emit(opcode, ctx, Unary(op, dst))

    return decode


def _group_mov_imm(wide: bool) -> DecoderFunc:
    def decode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
        op, _, dst = decode_group(opcode, ctx, wide)
        return _emit(opcode, ctx, Binary(op, dst, _read_imm(ctx, "imm", wide)))

    return decode


# --- table ------------------------------------------------------------------

# Row order of the 00-3F block; each row occupies eight opcodes.
ALU_OPS: Tuple[Op, ...] = (
    Op.ADD,
    Op.OR,
    Op.ADC,
    Op.SBB,
    Op.AND,
    Op.SUB,
    Op.XOR,
    Op.CMP,
)

CONDITIONAL_JUMPS: Tuple[Op, ...] = (
    Op.JO,
    Op.JNO,
    Op.JB,
    Op.JNB,
    Op.JE,
    Op.JNE,
    Op.JBE,
    Op.JA,
    Op.JS,
    Op.JNS,
    Op.JP,
    Op.JNP,
    Op.JL,
    Op.JNL,
    Op.JLE,
    Op.JG,
)

# Column 6/7 of the 00-3F block: (segment push/pop | prefix | adjust).
_ALU_ROW_TAILS: Dict[int, DecoderFunc] = {
    0x06: _segment(Op.PUSH, SegmentRegister.ES),
    0x07: _segment(Op.POP, SegmentRegister.ES),
    0x0E: _segment(Op.PUSH, SegmentRegister.CS),
    0x16: _segment(Op.PUSH, SegmentRegister.SS),
    0x17: _segment(Op.POP, SegmentRegister.SS),
    0x1E: _segment(Op.PUSH, SegmentRegister.DS),
    0x1F: _segment(Op.POP, SegmentRegister.DS),
    0x26: _segment(Op.SEGMENT, SegmentRegister.ES),
    0x27: _simple(Op.DAA),
    0x2E: _segment(Op.SEGMENT, SegmentRegister.CS),
    0x2F: _simple(Op.DAS),
    0x36: _segment(Op.SEGMENT, SegmentRegister.SS),
    0x37: _simple(Op.AAA),
    0x3E: _segment(Op.SEGMENT, SegmentRegister.DS),
    0x3F: _simple(Op.AAS),
}


def _build_decoders() -> Tuple[DecoderFunc, ...]:
    table: Dict[int, DecoderFunc] = {}

    for row, op in enumerate(ALU_OPS):
        base = row << 3
        table[base + 0] = _alu_rm(op, wide=False, reverse=False)
        table[base + 1] = _alu_rm(op, wide=True, reverse=False)
        table[base + 2] = _alu_rm(op, wide=False, reverse=True)
        table[base + 3] = _alu_rm(op, wide=True, reverse=True)
        table[base + 4] = _alu_acc_imm(op, wide=False)
        table[base + 5] = _alu_acc_imm(op, wide=True)
    table.update(_ALU_ROW_TAILS)

    for reg in range(8):
        table[0x40 + reg] = _fixed_register(Op.INC)
        table[0x48 + reg] = _fixed_register(Op.DEC)
        table[0x50 + reg] = _fixed_register(Op.PUSH)
        table[0x58 + reg] = _fixed_register(Op.POP)
        table[0xB0 + reg] = _mov_reg_imm(wide=False)
        table[0xB8 + reg] = _mov_reg_imm(wide=True)
        table[0xD8 + reg] = _escape

    for cond, op in enumerate(CONDITIONAL_JUMPS):
        table[0x70 + cond] = _branch(op)

    table.update(
        {
            0x80: _group_immediate(wide=False, imm_wide=False),
            0x81: _group_immediate(wide=True, imm_wide=True),
            0x82: _group_immediate(wide=False, imm_wide=False),
            0x83: _group_immediate(wide=True, imm_wide=False),
            0x84: _alu_rm(Op.TEST, wide=False, reverse=False),
            0x85: _alu_rm(Op.TEST, wide=True, reverse=False),
            0x86: _alu_rm(Op.XCHG, wide=False, reverse=False),
            0x87: _alu_rm(Op.XCHG, wide=True, reverse=False),
            0x88: _alu_rm(Op.MOV, wide=False, reverse=False),
            0x89: _alu_rm(Op.MOV, wide=True, reverse=False),
            0x8A: _alu_rm(Op.MOV, wide=False, reverse=True),
            0x8B: _alu_rm(Op.MOV, wide=True, reverse=True),
            0x8C: _mov_seg(reverse=False),
            0x8D: _load_pointer(Op.LEA),
            0x8E: _mov_seg(reverse=True),
            0x8F: _group_single(wide=True),
            0x90: _simple(Op.NOP),
            0x91: _xchg_acc,
            0x92: _xchg_acc,
            0x93: _xchg_acc,
            0x94: _xchg_acc,
            0x95: _xchg_acc,
            0x96: _xchg_acc,
            0x97: _xchg_acc,
            0x98: _simple(Op.CBW),
            0x99: _simple(Op.CWD),
            0x9A: _far_target(Op.CALLF),
            0x9B: _simple(Op.WAIT),
            0x9C: _simple(Op.PUSHF),
            0x9D: _simple(Op.POPF),
            0x9E: _simple(Op.SAHF),
            0x9F: _simple(Op.LAHF),
            0xA0: _mov_acc_mem(wide=False, to_acc=True),
            0xA1: _mov_acc_mem(wide=True, to_acc=True),
            0xA2: _mov_acc_mem(wide=False, to_acc=False),
            0xA3: _mov_acc_mem(wide=True, to_acc=False),
            0xA4: _string(Op.MOVS, wide=False),
            0xA5: _string(Op.MOVS, wide=True),
            0xA6: _string(Op.CMPS, wide=False),
            0xA7: _string(Op.CMPS, wide=True),
            0xA8: _alu_acc_imm(Op.TEST, wide=False),
            0xA9: _alu_acc_imm(Op.TEST, wide=True),
            0xAA: _string(Op.STOS, wide=False),
            0xAB: _string(Op.STOS, wide=True),
            0xAC: _string(Op.LODS, wide=False),
            0xAD: _string(Op.LODS, wide=True),
            0xAE: _string(Op.SCAS, wide=False),
            0xAF: _string(Op.SCAS, wide=True),
            0xC2: _ret(Op.RET, with_pop=True),
            0xC3: _ret(Op.RET, with_pop=False),
            0xC4: _load_pointer(Op.LES),
            0xC5: _load_pointer(Op.LDS),
            0xC6: _group_mov_imm(wide=False),
            0xC7: _group_mov_imm(wide=True),
            0xCA: _ret(Op.RETF, with_pop=True),
            0xCB: _ret(Op.RETF, with_pop=False),
            0xCC: _int3,
            0xCD: _int_n,
            0xCE: _simple(Op.INTO),
            0xCF: _simple(Op.IRET),
            0xD0: _group_shift(wide=False, by_cl=False),
            0xD1: _group_shift(wide=True, by_cl=False),
            0xD2: _group_shift(wide=False, by_cl=True),
            0xD3: _group_shift(wide=True, by_cl=True),
            0xD4: _ascii_adjust(Op.AAM),
            0xD5: _ascii_adjust(Op.AAD),
            0xD7: _simple(Op.XLAT),
            0xE0: _branch(Op.LOOPNE),
            0xE1: _branch(Op.LOOPE),
            0xE2: _branch(Op.LOOP),
            0xE3: _branch(Op.JCXZ),
            0xE4: _port_io(Op.IN, wide=False, fixed_port=True),
            0xE5: _port_io(Op.IN, wide=True, fixed_port=True),
            0xE6: _port_io(Op.OUT, wide=False, fixed_port=True),
            0xE7: _port_io(Op.OUT, wide=True, fixed_port=True),
            0xE8: _branch(Op.CALL, wide=True),
            0xE9: _branch(Op.JMP, wide=True),
            0xEA: _far_target(Op.JMPF),
            0xEB: _branch(Op.JMP),
            0xEC: _port_io(Op.IN, wide=False, fixed_port=False),
            0xED: _port_io(Op.IN, wide=True, fixed_port=False),
            0xEE: _port_io(Op.OUT, wide=False, fixed_port=False),
            0xEF: _port_io(Op.OUT, wide=True, fixed_port=False),
            0xF0: _simple(Op.LOCK),
            0xF2: _simple(Op.REPNE),
            0xF3: _simple(Op.REP),
            0xF4: _simple(Op.HLT),
            0xF5: _simple(Op.CMC),
            0xF6: _group_unary(wide=False),
            0xF7: _group_unary(wide=True),
            0xF8: _simple(Op.CLC),
            0xF9: _simple(Op.STC),
            0xFA: _simple(Op.CLI),
            0xFB: _simple(Op.STI),
            0xFC: _simple(Op.CLD),
            0xFD: _simple(Op.STD),
            0xFE: _group_single(wide=False),
            0xFF: _group_word,
        }
    )

    # Reserved and undocumented slots (0F, 60-6F, C0, C1, C8, C9, D6, F1).
    return tuple(table.get(opcode, _unsupported) for opcode in range(0x100))


DECODERS: Tuple[DecoderFunc, ...] = _build_decoders()

UNSUPPORTED_OPCODES: Tuple[int, ...] = tuple(
    opcode for opcode, decoder in enumerate(DECODERS) if decoder is _unsupported
)


def decode_opcode(opcode: int, ctx: StreamCtx) -> DecodedInstr:
    if not 0 <= opcode <= 0xFF:
        raise ValueError(f"Opcode out of range: {opcode:#x}")
    return DECODERS[opcode](opcode, ctx)


def decode_bytes(data: bytes, pc: int = 0, *, record_layout: bool = False) -> DecodedInstr:
    """Decode exactly one instruction from the start of `data`."""

    if not data:
        raise TruncatedStream("Empty buffer: no opcode to decode")
    ctx = StreamCtx(pc=pc, data=memoryview(data)[1:], record_layout=record_layout)
    return decode_opcode(data[0], ctx)


__all__ = [
    "ALU_OPS",
    "CONDITIONAL_JUMPS",
    "DECODERS",
    "UNSUPPORTED_OPCODES",
    "DecoderFunc",
    "decode_opcode",
    "decode_bytes",
]
