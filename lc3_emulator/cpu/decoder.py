"""
LC-3 Emulator - Opcode Decoder

The opcode is the top 4 bits of the instruction word. Fourteen of the
sixteen codes have handlers; RTI (1000) and the reserved code RES (1101)
are not implemented by this core and decode to IllegalOpcode.

Decoding happens *before* the PC increment, so an illegal instruction
leaves the machine state exactly as it was when the word was fetched.
"""

from typing import Tuple

# ──────────────────────────────────────────────
# Opcode constants
# ──────────────────────────────────────────────

OP_BR   = 0x0   # branch
OP_ADD  = 0x1   # add
OP_LD   = 0x2   # load PC-relative
OP_ST   = 0x3   # store PC-relative
OP_JSR  = 0x4   # jump to subroutine (JSR / JSRR)
OP_AND  = 0x5   # bitwise and
OP_LDR  = 0x6   # load base+offset
OP_STR  = 0x7   # store base+offset
OP_RTI  = 0x8   # return from interrupt (unimplemented)
OP_NOT  = 0x9   # bitwise complement
OP_LDI  = 0xA   # load indirect
OP_STI  = 0xB   # store indirect
OP_JMP  = 0xC   # jump (RET when base is R7)
OP_RES  = 0xD   # reserved
OP_LEA  = 0xE   # load effective address
OP_TRAP = 0xF   # system call

# opcode -> mnemonic
MNEMONICS = {
    OP_BR:   'BR',
    OP_ADD:  'ADD',
    OP_LD:   'LD',
    OP_ST:   'ST',
    OP_JSR:  'JSR',
    OP_AND:  'AND',
    OP_LDR:  'LDR',
    OP_STR:  'STR',
    OP_RTI:  'RTI',
    OP_NOT:  'NOT',
    OP_LDI:  'LDI',
    OP_STI:  'STI',
    OP_JMP:  'JMP',
    OP_RES:  'RES',
    OP_LEA:  'LEA',
    OP_TRAP: 'TRAP',
}

UNIMPLEMENTED = frozenset({OP_RTI, OP_RES})


class IllegalOpcode(Exception):
    """Raised when an instruction has no handler in this core.

    Carries the faulting instruction word, its opcode and the address it
    was fetched from, for diagnostics.
    """

    def __init__(self, instruction: int, pc: int, reason: str = ''):
        self.instruction = instruction & 0xFFFF
        self.opcode = (self.instruction >> 12) & 0xF
        self.pc = pc & 0xFFFF
        self.mnemonic = MNEMONICS[self.opcode]
        detail = reason or f"{self.mnemonic} is not implemented"
        super().__init__(
            f"Illegal instruction x{self.instruction:04X} at x{self.pc:04X}: {detail}")


IllegalOpcodeError = IllegalOpcode


def decode_opcode(instruction: int, pc: int) -> Tuple[int, str]:
    """Decode an instruction word fetched from pc.

    Returns: (opcode, mnemonic)
    Raises: IllegalOpcode for RTI and RES.
    """
    op = (instruction >> 12) & 0xF
    if op in UNIMPLEMENTED:
        raise IllegalOpcode(instruction, pc)
    return op, MNEMONICS[op]
