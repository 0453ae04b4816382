"""
LC-3 Emulator - Instruction Disassembler

Formats single instruction words as assembler text for the trace log
and the CLI --disasm listing:

    from lc3_emulator.cpu.disasm import disassemble, disassemble_range

    disassemble(0x1261, 0x3000)        # "ADD R1, R1, #1"
    for line in disassemble_range(emu.mem, 0x3000, 4):
        print(line)                    # "x3000: 1261  ADD R1, R1, #1"

PC-relative operands are shown as resolved absolute addresses.
"""

from typing import Iterator

from . import alu
from .decoder import (
    OP_BR, OP_ADD, OP_LD, OP_ST, OP_JSR, OP_AND, OP_LDR, OP_STR,
    OP_NOT, OP_LDI, OP_STI, OP_JMP, OP_LEA, OP_TRAP, MNEMONICS,
)

TRAP_NAMES = {
    0x20: 'GETC',
    0x21: 'OUT',
    0x22: 'PUTS',
    0x23: 'IN',
    0x24: 'PUTSP',
    0x25: 'HALT',
}


def _signed(value: int) -> int:
    return alu.to_signed16(value)


def disassemble(word: int, addr: int) -> str:
    """Disassemble one instruction word located at addr."""
    word &= 0xFFFF
    op = alu.opcode(word)
    mnem = MNEMONICS[op]
    next_pc = (addr + 1) & 0xFFFF
    d = alu.dr(word)
    s1 = alu.sr1(word)

    if op in (OP_ADD, OP_AND):
        if alu.imm_flag(word):
            return f"{mnem} R{d}, R{s1}, #{_signed(alu.imm5(word))}"
        return f"{mnem} R{d}, R{s1}, R{alu.sr2(word)}"

    if op == OP_NOT:
        return f"NOT R{d}, R{s1}"

    if op == OP_BR:
        flags = alu.nzp(word)
        if flags == 0:
            return "NOP"
        cond = ''.join(c for c, bit in (('n', 4), ('z', 2), ('p', 1)) if flags & bit)
        target = alu.add16(next_pc, alu.pc_offset9(word))
        return f"BR{cond} x{target:04X}"

    if op == OP_JMP:
        if s1 == 7:
            return "RET"
        return f"JMP R{s1}"

    if op == OP_JSR:
        if alu.jsr_flag(word):
            return f"JSR x{alu.add16(next_pc, alu.pc_offset11(word)):04X}"
        return f"JSRR R{s1}"

    if op in (OP_LD, OP_LDI, OP_LEA, OP_ST, OP_STI):
        target = alu.add16(next_pc, alu.pc_offset9(word))
        return f"{mnem} R{d}, x{target:04X}"

    if op in (OP_LDR, OP_STR):
        return f"{mnem} R{d}, R{s1}, #{_signed(alu.offset6(word))}"

    if op == OP_TRAP:
        vector = alu.trapvect8(word)
        return TRAP_NAMES.get(vector, f"TRAP x{vector:02X}")

    # OP_RTI / OP_RES have no handler; show the raw word
    return f".FILL x{word:04X}  ; {mnem}"


def format_line(word: int, addr: int) -> str:
    return f"x{addr & 0xFFFF:04X}: {word & 0xFFFF:04X}  {disassemble(word, addr)}"


def disassemble_range(memory, start: int, count: int) -> Iterator[str]:
    """Yield formatted lines for count words starting at start.

    Uses Memory.peek() so listing device addresses never polls the keyboard.
    """
    for i in range(count):
        addr = (start + i) & 0xFFFF
        yield format_line(memory.peek(addr), addr)
