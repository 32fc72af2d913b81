from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .errors import TruncatedStream
from .signed import to_signed

Buffer = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class LayoutEntry:
    key: str
    kind: str
    meta: Dict[str, object]


@dataclass
class StreamCtx:
    """
    Sequential reader over the operand bytes of one instruction.

    `data` starts at the byte following the opcode. `base_len` captures the
    already-consumed opcode byte so the total length can be reported without
    duplicating consumers' knowledge. Reads never rewind and never peek.
    """

    pc: int
    data: Buffer
    base_len: int = 1
    idx: int = 0
    record_layout: bool = False
    _layout: List[LayoutEntry] = field(default_factory=list, init=False)

    def _require(self, count: int) -> None:
        if self.idx + count > len(self.data):
            raise TruncatedStream(
                f"Insufficient bytes: need {count}, "
                f"have {len(self.data) - self.idx} remaining"
            )

    def record_operand(self, key: str, kind: str, **meta) -> None:
        if not self.record_layout:
            return
        self._layout.append(LayoutEntry(key=key, kind=kind, meta=dict(meta)))

    def read_u8(self) -> int:
        self._require(1)
        value = self.data[self.idx]
        self.idx += 1
        return value

    def read_s8(self) -> int:
        return to_signed(self.read_u8(), wide=False)

    def read_u16(self) -> int:
        self._require(2)
        (value,) = struct.unpack_from("<H", self.data, self.idx)
        self.idx += 2
        return value

    def read_s16(self) -> int:
        return to_signed(self.read_u16(), wide=True)

    def bytes_consumed(self) -> int:
        return self.idx

    def total_length(self) -> int:
        return self.base_len + self.idx

    def remaining(self) -> int:
        return len(self.data) - self.idx

    def snapshot_layout(self) -> tuple[LayoutEntry, ...]:
        return tuple(self._layout)


def record(
    ctx: StreamCtx, key: str, kind: str, *, start: Optional[int] = None, **meta
) -> None:
    if start is not None:
        meta = dict(meta)
        meta.setdefault("offset", start)
        meta.setdefault("length_bytes", ctx.bytes_consumed() - start)
    ctx.record_operand(key, kind, **meta)
