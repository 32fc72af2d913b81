from __future__ import annotations

from typing import Optional


class DecodeError(ValueError):
    """Base class for failures raised while decoding an instruction stream.

    `offset` is the absolute position of the instruction that failed. It is
    filled in by the decode loop; routines that only see a single cursor
    leave it unset.
    """

    def __init__(self, message: str, *, offset: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.offset = offset

    def __str__(self) -> str:
        if self.offset is None:
            return self.message
        return f"{self.message} (at offset {self.offset:#06x})"


class TruncatedStream(DecodeError):
    pass


class InvalidFieldEncoding(DecodeError):
    pass


class UnsupportedGroupOperation(DecodeError):
    def __init__(self, opcode: int, reg: int, *, offset: Optional[int] = None) -> None:
        super().__init__(
            f"Opcode {opcode:#04x} has no operation for reg field /{reg}",
            offset=offset,
        )
        self.opcode = opcode
        self.reg = reg


class UnsupportedOpcode(DecodeError):
    def __init__(self, opcode: int, *, offset: Optional[int] = None) -> None:
        super().__init__(f"No decoder for opcode {opcode:#04x}", offset=offset)
        self.opcode = opcode


__all__ = [
    "DecodeError",
    "TruncatedStream",
    "InvalidFieldEncoding",
    "UnsupportedGroupOperation",
    "UnsupportedOpcode",
]
