from __future__ import annotations

from enum import Enum
from typing import Tuple

from .errors import InvalidFieldEncoding


class Register(str, Enum):
    """General purpose registers, narrow names first."""

    # 8-bit
    AL = "AL"
    CL = "CL"
    DL = "DL"
    BL = "BL"
    AH = "AH"
    CH = "CH"
    DH = "DH"
    BH = "BH"
    # 16-bit
    AX = "AX"
    CX = "CX"
    DX = "DX"
    BX = "BX"
    SP = "SP"
    BP = "BP"
    SI = "SI"
    DI = "DI"

    @property
    def wide(self) -> bool:
        return self in WIDE_REGISTERS


class SegmentRegister(str, Enum):
    ES = "ES"
    CS = "CS"
    SS = "SS"
    DS = "DS"


# Indexed by the 3-bit reg / r/m field.
NARROW_REGISTERS: Tuple[Register, ...] = (
    Register.AL,
    Register.CL,
    Register.DL,
    Register.BL,
    Register.AH,
    Register.CH,
    Register.DH,
    Register.BH,
)

WIDE_REGISTERS: Tuple[Register, ...] = (
    Register.AX,
    Register.CX,
    Register.DX,
    Register.BX,
    Register.SP,
    Register.BP,
    Register.SI,
    Register.DI,
)

SEGMENT_REGISTERS: Tuple[SegmentRegister, ...] = (
    SegmentRegister.ES,
    SegmentRegister.CS,
    SegmentRegister.SS,
    SegmentRegister.DS,
)


def register_of(field: int, wide: bool) -> Register:
    if not 0 <= field <= 7:
        raise InvalidFieldEncoding(f"Invalid register encoding: {field}")
    return WIDE_REGISTERS[field] if wide else NARROW_REGISTERS[field]


def segment_register_of(field: int) -> SegmentRegister:
    if not 0 <= field <= 3:
        raise InvalidFieldEncoding(f"Invalid segment register encoding: {field}")
    return SEGMENT_REGISTERS[field]


def accumulator(wide: bool) -> Register:
    return Register.AX if wide else Register.AL


__all__ = [
    "Register",
    "SegmentRegister",
    "NARROW_REGISTERS",
    "WIDE_REGISTERS",
    "SEGMENT_REGISTERS",
    "register_of",
    "segment_register_of",
    "accumulator",
]
