"""
Typed decoding of 8086 machine code.

`decode_map.decode_opcode` decodes a single instruction from a `StreamCtx`;
`iter_decode` walks a whole buffer and reports failures with the offset of
the instruction that could not be decoded.
"""

from .bind import (  # noqa: F401
    DirectAddress,
    Disp16,
    Disp8,
    EffectiveAddress,
    Imm,
    Port,
    Reg,
    SegReg,
)
from .errors import (  # noqa: F401
    DecodeError,
    InvalidFieldEncoding,
    TruncatedStream,
    UnsupportedGroupOperation,
    UnsupportedOpcode,
)
from .instr import DecodedInstr, Op  # noqa: F401
from .reader import StreamCtx  # noqa: F401
from .registers import Register, SegmentRegister  # noqa: F401
from .signed import to_signed  # noqa: F401
from .stream import decode_all, iter_decode  # noqa: F401
from . import decode_map  # noqa: F401

__all__ = [
    "DirectAddress",
    "Disp16",
    "Disp8",
    "EffectiveAddress",
    "Imm",
    "Port",
    "Reg",
    "SegReg",
    "DecodeError",
    "InvalidFieldEncoding",
    "TruncatedStream",
    "UnsupportedGroupOperation",
    "UnsupportedOpcode",
    "DecodedInstr",
    "Op",
    "StreamCtx",
    "Register",
    "SegmentRegister",
    "to_signed",
    "decode_all",
    "iter_decode",
    "decode_map",
]
