from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .registers import Register, SegmentRegister


@dataclass(frozen=True, slots=True)
class Disp8:
    value: int  # signed

    def __post_init__(self) -> None:
        if not -0x80 <= self.value <= 0x7F:
            raise ValueError(f"Disp8 out of range: {self.value}")


@dataclass(frozen=True, slots=True)
class Disp16:
    value: int  # signed

    def __post_init__(self) -> None:
        if not -0x8000 <= self.value <= 0x7FFF:
            raise ValueError(f"Disp16 out of range: {self.value}")


Displacement = Union[Disp8, Disp16]


@dataclass(frozen=True, slots=True)
class Reg:
    reg: Register


@dataclass(frozen=True, slots=True)
class SegReg:
    seg: SegmentRegister


@dataclass(frozen=True, slots=True)
class DirectAddress:
    address: int  # signed, 16-bit

    def __post_init__(self) -> None:
        if not -0x8000 <= self.address <= 0x7FFF:
            raise ValueError(f"DirectAddress out of range: {self.address}")


@dataclass(frozen=True, slots=True)
class EffectiveAddress:
    """Memory operand formed from a base register, an optional index and an
    optional displacement, e.g. `[BP+DI-4]`."""

    base: Register
    index: Optional[Register] = None
    disp: Optional[Displacement] = None

    def __post_init__(self) -> None:
        if self.base not in (Register.BX, Register.BP, Register.SI, Register.DI):
            raise ValueError(f"{self.base.value} cannot be used as a base register")
        if self.index not in (None, Register.SI, Register.DI):
            raise ValueError(f"{self.index.value} cannot be used as an index register")


@dataclass(frozen=True, slots=True)
class Imm:
    value: int  # signed
    wide: bool = False

    def __post_init__(self) -> None:
        lo, hi = (-0x8000, 0x7FFF) if self.wide else (-0x80, 0x7F)
        if not lo <= self.value <= hi:
            raise ValueError(f"Imm{16 if self.wide else 8} out of range: {self.value}")


@dataclass(frozen=True, slots=True)
class Port:
    number: int

    def __post_init__(self) -> None:
        if not 0 <= self.number <= 0xFF:
            raise ValueError(f"Port out of range: {self.number:#x}")


Operand = Union[Reg, SegReg, DirectAddress, EffectiveAddress, Imm, Port]
Memory = Union[DirectAddress, EffectiveAddress]


def is_memory(operand: Operand) -> bool:
    return isinstance(operand, (DirectAddress, EffectiveAddress))


__all__ = [
    "Disp8",
    "Disp16",
    "Displacement",
    "Reg",
    "SegReg",
    "DirectAddress",
    "EffectiveAddress",
    "Imm",
    "Port",
    "Operand",
    "Memory",
    "is_memory",
]
