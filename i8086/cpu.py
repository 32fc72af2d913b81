"""Minimal execution engine consuming decoded instructions.

Only register-to-register and immediate forms of a handful of instructions
are applied; anything else is logged and skipped. There is no memory model.
"""

from __future__ import annotations

import enum
import logging
from typing import Dict, Set, Tuple

from .decoding.bind import Imm, Operand, Reg, SegReg
from .decoding.instr import Binary, DecodedInstr, Nullary, Op
from .decoding.registers import Register, SegmentRegister

logger = logging.getLogger(__name__)


class Flag(enum.Enum):
    CF = "CF"  # Carry
    PF = "PF"  # Parity
    AF = "AF"  # Auxiliary carry
    ZF = "ZF"  # Zero
    SF = "SF"  # Sign
    TF = "TF"  # Trap
    IF = "IF"  # Interrupt enable
    DF = "DF"  # Direction
    OF = "OF"  # Overflow


class Registers:
    BASE: Tuple[Register, ...] = (
        Register.AX,
        Register.CX,
        Register.DX,
        Register.BX,
        Register.SP,
        Register.BP,
        Register.SI,
        Register.DI,
    )

    _SUBREG_INFO: Dict[Register, Tuple[Register, int]] = {
        Register.AL: (Register.AX, 0),
        Register.AH: (Register.AX, 8),
        Register.CL: (Register.CX, 0),
        Register.CH: (Register.CX, 8),
        Register.DL: (Register.DX, 0),
        Register.DH: (Register.DX, 8),
        Register.BL: (Register.BX, 0),
        Register.BH: (Register.BX, 8),
    }

    def __init__(self) -> None:
        self._values: Dict[Register, int] = {reg: 0 for reg in self.BASE}
        self._segments: Dict[SegmentRegister, int] = {seg: 0 for seg in SegmentRegister}
        self.ip: int = 0

    def get(self, reg: Register) -> int:
        if reg in self._values:
            return self._values[reg]

        info = self._SUBREG_INFO.get(reg)
        if info is not None:
            base, shift = info
            return (self._values[base] >> shift) & 0xFF

        raise ValueError(f"Attempted to get unknown register: {reg}")

    def set(self, reg: Register, value: int) -> None:
        if reg in self._values:
            self._values[reg] = value & 0xFFFF
            return

        info = self._SUBREG_INFO.get(reg)
        if info is not None:
            base, shift = info
            cur = self._values[base] & ~(0xFF << shift)
            cur |= (value & 0xFF) << shift
            self._values[base] = cur & 0xFFFF
            return

        raise ValueError(f"Attempted to set unknown register: {reg}")

    def get_segment(self, seg: SegmentRegister) -> int:
        return self._segments[seg]

    def set_segment(self, seg: SegmentRegister, value: int) -> None:
        self._segments[seg] = value & 0xFFFF

    def get_by_name(self, name: str) -> int:
        if name in SegmentRegister.__members__:
            return self.get_segment(SegmentRegister[name])
        return self.get(Register[name])

    def snapshot(self) -> Dict[str, int]:
        values = {reg.value: self._values[reg] for reg in self.BASE}
        values.update({seg.value: val for seg, val in self._segments.items()})
        values["IP"] = self.ip
        return values


def _parity(value: int) -> bool:
    return bin(value & 0xFF).count("1") % 2 == 0


class Cpu:
    _FLAG_OPS: Dict[Op, Tuple[Flag, bool]] = {
        Op.CLC: (Flag.CF, False),
        Op.STC: (Flag.CF, True),
        Op.CLD: (Flag.DF, False),
        Op.STD: (Flag.DF, True),
        Op.CLI: (Flag.IF, False),
        Op.STI: (Flag.IF, True),
    }

    _ARITH_OPS: Set[Op] = {Op.ADD, Op.SUB, Op.CMP}

    def __init__(self) -> None:
        self.registers = Registers()
        self.flags: Dict[Flag, bool] = {flag: False for flag in Flag}

    def execute(self, decoded: DecodedInstr) -> bool:
        """Apply `decoded` and advance IP. Returns False if it was skipped."""

        instr = decoded.instr
        handled = False
        if isinstance(instr, Nullary):
            handled = self._execute_nullary(instr.op)
        elif isinstance(instr, Binary):
            if instr.op is Op.MOV:
                handled = self._mov(instr.dst, instr.src)
            elif instr.op is Op.XCHG:
                handled = self._xchg(instr.dst, instr.src)
            elif instr.op in self._ARITH_OPS:
                handled = self._arith(instr.op, instr.dst, instr.src)

        if not handled:
            logger.debug("Skipping unsupported instruction %r", instr)
        self.registers.ip = (self.registers.ip + decoded.length) & 0xFFFF
        return handled

    def _execute_nullary(self, op: Op) -> bool:
        if op is Op.CMC:
            self.flags[Flag.CF] = not self.flags[Flag.CF]
            return True
        if op is Op.NOP:
            return True
        entry = self._FLAG_OPS.get(op)
        if entry is None:
            return False
        flag, value = entry
        self.flags[flag] = value
        return True

    def _read(self, operand: Operand) -> int | None:
        if isinstance(operand, Reg):
            return self.registers.get(operand.reg)
        if isinstance(operand, SegReg):
            return self.registers.get_segment(operand.seg)
        if isinstance(operand, Imm):
            return operand.value & (0xFFFF if operand.wide else 0xFF)
        return None

    def _write(self, operand: Operand, value: int) -> bool:
        if isinstance(operand, Reg):
            self.registers.set(operand.reg, value)
            return True
        if isinstance(operand, SegReg):
            self.registers.set_segment(operand.seg, value)
            return True
        return False

    def _mov(self, dst: Operand, src: Operand) -> bool:
        value = self._read(src)
        if value is None:
            return False
        return self._write(dst, value)

    def _xchg(self, dst: Operand, src: Operand) -> bool:
        if not (isinstance(dst, Reg) and isinstance(src, Reg)):
            return False
        a, b = self.registers.get(dst.reg), self.registers.get(src.reg)
        self.registers.set(dst.reg, b)
        self.registers.set(src.reg, a)
        return True

    def _arith(self, op: Op, dst: Operand, src: Operand) -> bool:
        if not isinstance(dst, Reg):
            return False
        rhs = self._read(src)
        if rhs is None:
            return False
        bits = 16 if dst.reg.wide else 8
        mask = (1 << bits) - 1
        sign = 1 << (bits - 1)
        lhs = self.registers.get(dst.reg)
        rhs &= mask

        if op is Op.ADD:
            full = lhs + rhs
            result = full & mask
            self.flags[Flag.CF] = full > mask
            self.flags[Flag.OF] = bool((lhs ^ result) & (rhs ^ result) & sign)
        else:
            result = (lhs - rhs) & mask
            self.flags[Flag.CF] = lhs < rhs
            self.flags[Flag.OF] = bool((lhs ^ rhs) & (lhs ^ result) & sign)
        self.flags[Flag.AF] = bool((lhs ^ rhs ^ result) & 0x10)
        self.flags[Flag.ZF] = result == 0
        self.flags[Flag.SF] = bool(result & sign)
        self.flags[Flag.PF] = _parity(result)

        if op is not Op.CMP:
            self.registers.set(dst.reg, result)
        return True

    def flag_string(self) -> str:
        return "".join(flag.value[0] for flag in Flag if self.flags[flag])


__all__ = ["Cpu", "Flag", "Registers"]
