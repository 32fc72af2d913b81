"""Two's-complement interpretation of fixed-width operand fields."""

from __future__ import annotations

NARROW_BITS = 8
WIDE_BITS = 16


def to_signed(value: int, wide: bool) -> int:
    """Interpret `value` as a signed 8-bit (narrow) or 16-bit (wide) quantity.

    Bits above the declared width are discarded first, so `0x1FF` read as
    narrow is `-1`.
    """

    bits = WIDE_BITS if wide else NARROW_BITS
    mask = (1 << bits) - 1
    value &= mask
    if value >> (bits - 1):
        return -((~value & mask) + 1)
    return value


__all__ = ["NARROW_BITS", "WIDE_BITS", "to_signed"]
