"""Drive the dispatch table over a whole buffer."""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional

from ..config import DecoderConfig, load_decoder_config
from .decode_map import decode_opcode
from .errors import DecodeError
from .instr import DecodedInstr
from .reader import Buffer, StreamCtx

logger = logging.getLogger(__name__)


def iter_decode(
    data: Buffer, origin: int = 0, *, config: Optional[DecoderConfig] = None
) -> Iterator[DecodedInstr]:
    """Lazily decode `data` one instruction at a time.

    `origin` is the address of `data[0]`; reported addresses and error
    offsets are `origin + position`. A `DecodeError` ends the stream: there
    is no way to resynchronise a variable-length encoding after a bad byte.
    """

    if config is None:
        config = load_decoder_config()
    view = memoryview(data)
    pos = 0
    while pos < len(view):
        address = origin + pos
        opcode = view[pos]
        ctx = StreamCtx(
            pc=address, data=view[pos + 1 :], record_layout=config.record_layout
        )
        try:
            decoded = decode_opcode(opcode, ctx)
        except DecodeError as exc:
            if exc.offset is None:
                exc.offset = address
            logger.warning("Decoding stopped at %#06x: %s", address, exc.message)
            raise
        if config.trace:
            logger.debug(
                "%#06x %s %r",
                address,
                bytes(view[pos : pos + decoded.length]).hex(),
                decoded.instr,
            )
        yield decoded
        pos += decoded.length


def decode_all(
    data: Buffer, origin: int = 0, *, config: Optional[DecoderConfig] = None
) -> List[DecodedInstr]:
    return list(iter_decode(data, origin, config=config))


__all__ = ["iter_decode", "decode_all"]
