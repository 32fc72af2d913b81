from __future__ import annotations

from typing import List, Tuple

from hypothesis import strategies as st

# (encoded bytes, expected instruction length)
Encoding = Tuple[bytes, int]

SINGLE_BYTE_OPCODES: List[int] = (
    list(range(0x40, 0x60))
    + list(range(0x90, 0x9A))
    + list(range(0x9B, 0xA0))
    + list(range(0xA4, 0xA8))
    + list(range(0xAA, 0xB0))
    + [0x06, 0x07, 0x0E, 0x16, 0x17, 0x1E, 0x1F, 0x27, 0x2F, 0x37, 0x3F]
    + [0xC3, 0xCB, 0xCC, 0xCE, 0xCF, 0xD7, 0xEC, 0xED, 0xEE, 0xEF]
    + [0xF0, 0xF2, 0xF3, 0xF4, 0xF5, 0xF8, 0xF9, 0xFA, 0xFB, 0xFC, 0xFD]
)

SHORT_BRANCH_OPCODES: List[int] = list(range(0x70, 0x80)) + [0xE0, 0xE1, 0xE2, 0xE3, 0xEB]

# opcode -> immediate width in bytes for the 80-83 group
GROUP_IMMEDIATE_WIDTHS = {0x80: 1, 0x81: 2, 0x82: 1, 0x83: 1}

# opcode -> defined reg-field slots for the ModRM groups other than 80-83
GROUP_SLOTS = {
    0xD0: (0, 1, 2, 3, 4, 5, 7),
    0xD1: (0, 1, 2, 3, 4, 5, 7),
    0xD2: (0, 1, 2, 3, 4, 5, 7),
    0xD3: (0, 1, 2, 3, 4, 5, 7),
    0xF6: (0, 2, 3, 4, 5, 6, 7),
    0xF7: (0, 2, 3, 4, 5, 6, 7),
    0xFE: (0, 1),
    0xFF: (0, 1, 2, 3, 4, 5, 6),
    0x8F: (0,),
    0xC6: (0,),
    0xC7: (0,),
}

# Group slots that only accept a memory operand.
MEMORY_ONLY_SLOTS = {(0xFF, 3), (0xFF, 5)}

# Width of the immediate that follows the r/m operand, keyed by (opcode, reg).
GROUP_TRAILING_IMMEDIATES = {(0xF6, 0): 1, (0xF7, 0): 2, (0xC6, 0): 1, (0xC7, 0): 2}

# opcode -> operand bytes for encodings without a ModRM byte
FIXED_OPERAND_SIZES = {
    0xA0: 2,
    0xA1: 2,
    0xA2: 2,
    0xA3: 2,
    0x9A: 4,
    0xEA: 4,
    0xC2: 2,
    0xCA: 2,
    0xCD: 1,
    0xD4: 1,
    0xD5: 1,
    0xE4: 1,
    0xE5: 1,
    0xE6: 1,
    0xE7: 1,
    0xE8: 2,
    0xE9: 2,
}

LOAD_POINTER_OPCODES = [0x8D, 0xC4, 0xC5]


def displacement_length(mode: int, rm: int) -> int:
    if mode == 0:
        return 2 if rm == 0b110 else 0
    if mode == 1:
        return 1
    if mode == 2:
        return 2
    return 0


@st.composite
def modrm_bytes(draw, reg: int | None = None, memory_only: bool = False) -> bytes:
    """A ModRM byte followed by exactly the displacement it calls for."""

    mode = draw(st.integers(min_value=0, max_value=2 if memory_only else 3))
    if reg is None:
        reg = draw(st.integers(min_value=0, max_value=7))
    rm = draw(st.integers(min_value=0, max_value=7))
    extra = displacement_length(mode, rm)
    tail = draw(st.binary(min_size=extra, max_size=extra))
    return bytes([(mode << 6) | (reg << 3) | rm]) + tail


@st.composite
def reg_rm_instructions(draw) -> Encoding:
    row = draw(st.integers(min_value=0, max_value=7))
    form = draw(st.integers(min_value=0, max_value=3))
    opcode = draw(st.sampled_from([(row << 3) | form, 0x84 + form, 0x88 + form]))
    operands = draw(modrm_bytes())
    return bytes([opcode]) + operands, 1 + len(operands)


@st.composite
def accumulator_immediates(draw) -> Encoding:
    row = draw(st.integers(min_value=0, max_value=7))
    wide = draw(st.booleans())
    opcode = (row << 3) | (5 if wide else 4)
    size = 2 if wide else 1
    imm = draw(st.binary(min_size=size, max_size=size))
    return bytes([opcode]) + imm, 1 + size


@st.composite
def group_immediates(draw) -> Encoding:
    opcode = draw(st.sampled_from(sorted(GROUP_IMMEDIATE_WIDTHS)))
    operands = draw(modrm_bytes())
    size = GROUP_IMMEDIATE_WIDTHS[opcode]
    imm = draw(st.binary(min_size=size, max_size=size))
    return bytes([opcode]) + operands + imm, 1 + len(operands) + size


@st.composite
def mov_immediates(draw) -> Encoding:
    opcode = draw(st.integers(min_value=0xB0, max_value=0xBF))
    size = 2 if opcode >= 0xB8 else 1
    imm = draw(st.binary(min_size=size, max_size=size))
    return bytes([opcode]) + imm, 1 + size


@st.composite
def short_branches(draw) -> Encoding:
    opcode = draw(st.sampled_from(SHORT_BRANCH_OPCODES))
    disp = draw(st.integers(min_value=0, max_value=0xFF))
    return bytes([opcode, disp]), 2


@st.composite
def group_instructions(draw) -> Encoding:
    opcode = draw(st.sampled_from(sorted(GROUP_SLOTS)))
    reg = draw(st.sampled_from(GROUP_SLOTS[opcode]))
    operands = draw(
        modrm_bytes(reg=reg, memory_only=(opcode, reg) in MEMORY_ONLY_SLOTS)
    )
    size = GROUP_TRAILING_IMMEDIATES.get((opcode, reg), 0)
    imm = draw(st.binary(min_size=size, max_size=size))
    return bytes([opcode]) + operands + imm, 1 + len(operands) + size


@st.composite
def segment_moves(draw) -> Encoding:
    opcode = draw(st.sampled_from([0x8C, 0x8E]))
    operands = draw(modrm_bytes(reg=draw(st.integers(min_value=0, max_value=3))))
    return bytes([opcode]) + operands, 1 + len(operands)


@st.composite
def load_pointers(draw) -> Encoding:
    opcode = draw(st.sampled_from(LOAD_POINTER_OPCODES))
    operands = draw(modrm_bytes(memory_only=True))
    return bytes([opcode]) + operands, 1 + len(operands)


@st.composite
def escapes(draw) -> Encoding:
    opcode = draw(st.integers(min_value=0xD8, max_value=0xDF))
    operands = draw(modrm_bytes())
    return bytes([opcode]) + operands, 1 + len(operands)


@st.composite
def fixed_operand_instructions(draw) -> Encoding:
    opcode = draw(st.sampled_from(sorted(FIXED_OPERAND_SIZES)))
    size = FIXED_OPERAND_SIZES[opcode]
    operands = draw(st.binary(min_size=size, max_size=size))
    return bytes([opcode]) + operands, 1 + size


@st.composite
def single_bytes(draw) -> Encoding:
    return bytes([draw(st.sampled_from(SINGLE_BYTE_OPCODES))]), 1


def instructions() -> st.SearchStrategy[Encoding]:
    return st.one_of(
        reg_rm_instructions(),
        accumulator_immediates(),
        group_immediates(),
        mov_immediates(),
        short_branches(),
        group_instructions(),
        segment_moves(),
        load_pointers(),
        escapes(),
        fixed_operand_instructions(),
        single_bytes(),
    )


def programs(max_size: int = 12) -> st.SearchStrategy[List[Encoding]]:
    return st.lists(instructions(), min_size=1, max_size=max_size)
