#!/usr/bin/env python3
"""Decode an 8086 image and print the instruction stream."""

import logging
import sys
from pathlib import Path
from typing import List, Tuple

import bincopy  # type: ignore[import-untyped]
from plumbum import cli  # type: ignore[import-untyped]

from .config import load_decoder_config
from .cpu import Cpu
from .decoding import DecodeError, iter_decode

logger = logging.getLogger(__name__)


def _parse_int(raw: str) -> int:
    return int(raw, 0)


def load_image(path: Path, fmt: str = "auto") -> List[Tuple[int, bytes]]:
    """Return the (origin, bytes) segments of a raw binary or Intel HEX file.

    A raw binary is a single segment at 0. Intel HEX images keep one segment
    per contiguous run of records; the gaps between them are not code.
    """

    if fmt == "auto":
        fmt = "ihex" if path.suffix.lower() in {".hex", ".ihex", ".ihx"} else "raw"
    if fmt == "raw":
        return [(0, path.read_bytes())]

    binfile = bincopy.BinFile()
    binfile.add_ihex_file(str(path))
    return [
        (segment.minimum_address, bytes(segment.data)) for segment in binfile.segments
    ]


class I8086DecodeCLI(cli.Application):
    """Decode 8086 machine code into structured instructions."""

    PROGNAME = "i8086-decode"
    VERSION = "0.1.0"

    fmt = cli.SwitchAttr(
        ["-f", "--format"],
        cli.Set("auto", "raw", "ihex"),
        default="auto",
        help="Input format (default: by file extension)",
    )
    origin = cli.SwitchAttr(
        ["--origin"],
        _parse_int,
        default=None,
        help="Address of the first byte (default: 0, or the HEX file's start)",
    )
    execute = cli.Flag(["-x", "--execute"], help="Run decoded instructions on the CPU")
    verbose = cli.Flag(["-v", "--verbose"], help="Enable debug logging")

    def main(self, input_file: cli.ExistingFile) -> int:
        config = load_decoder_config()
        level = logging.DEBUG if self.verbose else config.log_level
        logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

        segments = load_image(Path(str(input_file)), self.fmt)
        shift = 0
        if segments and self.origin is not None:
            # Rebase the whole image so its first byte lands at --origin.
            shift = self.origin - segments[0][0]
        cpu = Cpu() if self.execute else None
        if cpu is not None and segments:
            cpu.registers.ip = (segments[0][0] + shift) & 0xFFFF

        try:
            for start_address, data in segments:
                origin = start_address + shift
                logger.debug("Decoding %d bytes at %#06x", len(data), origin)
                for decoded in iter_decode(data, origin, config=config):
                    start = decoded.address - origin
                    raw = data[start : start + decoded.length].hex(" ")
                    print(f"{decoded.address:04x}  {raw:<18} {decoded.instr!r}")
                    if cpu is not None:
                        cpu.execute(decoded)
        except DecodeError as e:
            print(f"\nDecode Error: {e}", file=sys.stderr)
            return 1

        if cpu is not None:
            print()
            for name, value in cpu.registers.snapshot().items():
                print(f"{name:>2}: {value:#06x} ({value})")
            print(f"flags: {cpu.flag_string()}")
        return 0


def main() -> None:
    I8086DecodeCLI.run()


if __name__ == "__main__":
    main()
