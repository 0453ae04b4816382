"""
LC-3 Emulator - Bit-Field Extraction + Sign Extension

Every instruction is one 16-bit word:

  15 14 13 12 | 11 10  9 |  8  7  6 |  5 |  4  3  2  1  0
  ---opcode-- | DR / SR  | SR1/Base | im |  imm5 / SR2

Field helpers take the raw instruction word and return the field as an
unsigned int. Sign extension helpers take an N-bit field and return the
value widened to 16 bits as an *unsigned* word (two's complement), so
results can be added straight onto a register value and masked.
"""


# ══════════════════════════════════════════════
# Sign extension - input: N-bit field, output: 16-bit word
# ══════════════════════════════════════════════

def sign_extend(value: int, bits: int) -> int:
    """Widen the low `bits` bits of value to a 16-bit two's complement word.

    >>> hex(sign_extend(0b11111, 5))
    '0xffff'
    >>> sign_extend(0b01111, 5)
    15
    """
    value &= (1 << bits) - 1
    if value & (1 << (bits - 1)):
        value |= (0xFFFF << bits)
    return value & 0xFFFF


def sext5(value: int) -> int:
    return sign_extend(value, 5)


def sext6(value: int) -> int:
    return sign_extend(value, 6)


def sext9(value: int) -> int:
    return sign_extend(value, 9)


def sext11(value: int) -> int:
    return sign_extend(value, 11)


def to_signed16(word: int) -> int:
    """Interpret a 16-bit word as a signed Python int (-32768..32767)."""
    word &= 0xFFFF
    if word & 0x8000:
        return word - 0x10000
    return word


def add16(a: int, b: int) -> int:
    """Wrapping 16-bit add. The LC-3 has no carry or overflow flags."""
    return (a + b) & 0xFFFF


# ══════════════════════════════════════════════
# Field extraction
# ══════════════════════════════════════════════

def opcode(instruction: int) -> int:
    """Bits 15-12."""
    return (instruction >> 12) & 0xF


def dr(instruction: int) -> int:
    """Bits 11-9: destination register (also SR for stores, nzp for BR)."""
    return (instruction >> 9) & 0x7


def sr1(instruction: int) -> int:
    """Bits 8-6: first source register / base register."""
    return (instruction >> 6) & 0x7


base_r = sr1


def sr2(instruction: int) -> int:
    """Bits 2-0: second source register."""
    return instruction & 0x7


def imm_flag(instruction: int) -> bool:
    """Bit 5: immediate mode for ADD/AND."""
    return bool((instruction >> 5) & 0x1)


def jsr_flag(instruction: int) -> bool:
    """Bit 11: PC-relative JSR (set) versus register JSRR (clear)."""
    return bool((instruction >> 11) & 0x1)


def nzp(instruction: int) -> int:
    """Bits 11-9 of BR, laid out the same way as the COND register."""
    return (instruction >> 9) & 0x7


def imm5(instruction: int) -> int:
    return sext5(instruction & 0x1F)


def offset6(instruction: int) -> int:
    return sext6(instruction & 0x3F)


def pc_offset9(instruction: int) -> int:
    return sext9(instruction & 0x1FF)


def pc_offset11(instruction: int) -> int:
    return sext11(instruction & 0x7FF)


def trapvect8(instruction: int) -> int:
    return instruction & 0xFF
