"""Decoded instruction model.

Every variant is a frozen dataclass carrying an `Op` tag; the variant itself
describes the operand shape. `DecodedInstr` pairs a variant with the
position and length information the decode loop tracks.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .bind import Operand
from .registers import Register, SegmentRegister


class Op(str, Enum):
    # Arithmetic and logic
    ADD = "add"
    OR = "or"
    ADC = "adc"
    SBB = "sbb"
    AND = "and"
    SUB = "sub"
    XOR = "xor"
    CMP = "cmp"
    TEST = "test"
    NOT = "not"
    NEG = "neg"
    MUL = "mul"
    IMUL = "imul"
    DIV = "div"
    IDIV = "idiv"
    INC = "inc"
    DEC = "dec"
    # Shifts and rotates
    ROL = "rol"
    ROR = "ror"
    RCL = "rcl"
    RCR = "rcr"
    SHL = "shl"
    SHR = "shr"
    SAR = "sar"
    # Data transfer
    MOV = "mov"
    XCHG = "xchg"
    LEA = "lea"
    LDS = "lds"
    LES = "les"
    PUSH = "push"
    POP = "pop"
    PUSHF = "pushf"
    POPF = "popf"
    SAHF = "sahf"
    LAHF = "lahf"
    XLAT = "xlat"
    IN = "in"
    OUT = "out"
    CBW = "cbw"
    CWD = "cwd"
    # Decimal adjust
    DAA = "daa"
    DAS = "das"
    AAA = "aaa"
    AAS = "aas"
    AAM = "aam"
    AAD = "aad"
    # Strings
    MOVS = "movs"
    CMPS = "cmps"
    SCAS = "scas"
    LODS = "lods"
    STOS = "stos"
    # Control transfer
    JMP = "jmp"
    JMPF = "jmpf"
    CALL = "call"
    CALLF = "callf"
    RET = "ret"
    RETF = "retf"
    JO = "jo"
    JNO = "jno"
    JB = "jb"
    JNB = "jnb"
    JE = "je"
    JNE = "jne"
    JBE = "jbe"
    JA = "ja"
    JS = "js"
    JNS = "jns"
    JP = "jp"
    JNP = "jnp"
    JL = "jl"
    JNL = "jnl"
    JLE = "jle"
    JG = "jg"
    LOOP = "loop"
    LOOPE = "loope"
    LOOPNE = "loopne"
    JCXZ = "jcxz"
    INT = "int"
    INTO = "into"
    IRET = "iret"
    # Processor control
    CLC = "clc"
    STC = "stc"
    CMC = "cmc"
    CLD = "cld"
    STD = "std"
    CLI = "cli"
    STI = "sti"
    HLT = "hlt"
    WAIT = "wait"
    ESC = "esc"
    NOP = "nop"
    # Prefixes
    LOCK = "lock"
    REP = "rep"
    REPNE = "repne"
    SEGMENT = "segment"


@dataclass(frozen=True, slots=True)
class Instruction:
    op: Op


@dataclass(frozen=True, slots=True)
class Nullary(Instruction):
    pass


@dataclass(frozen=True, slots=True)
class Binary(Instruction):
    dst: Operand
    src: Operand


@dataclass(frozen=True, slots=True)
class Unary(Instruction):
    dst: Operand


@dataclass(frozen=True, slots=True)
class RegisterOp(Instruction):
    reg: Register


@dataclass(frozen=True, slots=True)
class SegmentOp(Instruction):
    seg: SegmentRegister


@dataclass(frozen=True, slots=True)
class Branch(Instruction):
    disp: int  # signed, relative to the following instruction


@dataclass(frozen=True, slots=True)
class FarTarget(Instruction):
    segment: int
    offset: int


@dataclass(frozen=True, slots=True)
class Return(Instruction):
    pop: Optional[int] = None  # bytes released from the stack


@dataclass(frozen=True, slots=True)
class StringOp(Instruction):
    wide: bool


@dataclass(frozen=True, slots=True)
class Interrupt(Instruction):
    vector: int


@dataclass(frozen=True, slots=True)
class AsciiAdjust(Instruction):
    base: int  # AAM/AAD radix byte, 10 for the documented forms


@dataclass(frozen=True, slots=True)
class Escape(Instruction):
    code: int  # 6-bit coprocessor opcode
    operand: Operand


@dataclass(frozen=True, slots=True)
class DecodedInstr:
    address: int
    opcode: int
    length: int
    instr: Instruction

    @property
    def op(self) -> Op:
        return self.instr.op

    def next_address(self) -> int:
        return self.address + self.length

    def branch_target(self) -> Optional[int]:
        """Absolute target of a relative branch, or None for other shapes."""
        if not isinstance(self.instr, Branch):
            return None
        return (self.next_address() + self.instr.disp) & 0xFFFF


__all__ = [
    "Op",
    "Instruction",
    "Nullary",
    "Binary",
    "Unary",
    "RegisterOp",
    "SegmentOp",
    "Branch",
    "FarTarget",
    "Return",
    "StringOp",
    "Interrupt",
    "AsciiAdjust",
    "Escape",
    "DecodedInstr",
]
