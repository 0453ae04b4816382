"""
LC-3 Emulator - Register File + Condition Flag Management

Register model for the LC-3:
  R0-R7 - eight 16-bit general purpose registers
          (R7 holds the return address for JSR/JSRR/TRAP by convention)
  PC    - 16-bit program counter
  COND  - condition register, exactly one of N, Z, P is set at any time
          bit 2: N (Negative - last written value had bit 15 set)
          bit 1: Z (Zero)
          bit 0: P (Positive)
"""

from typing import Tuple

from ..config import PC_START

# Condition flag masks
FL_POS = 0x1
FL_ZRO = 0x2
FL_NEG = 0x4

NUM_REGISTERS = 8
R7 = 7


class Registers:
    """LC-3 register file.

    General registers are stored as unsigned 16-bit ints. Any write is
    masked to 16 bits, so callers can hand in Python ints that
    overflowed or went negative.
    """

    __slots__ = ('R', 'PC', 'COND')

    def __init__(self):
        self.R = [0] * NUM_REGISTERS
        self.PC: int = PC_START
        self.COND: int = FL_ZRO  # exactly one flag must be set at power-on

    # --- General registers ---

    def get(self, index: int) -> int:
        if not 0 <= index < NUM_REGISTERS:
            raise IndexError(f"register index out of range: {index}")
        return self.R[index]

    def set(self, index: int, value: int):
        if not 0 <= index < NUM_REGISTERS:
            raise IndexError(f"register index out of range: {index}")
        self.R[index] = value & 0xFFFF

    def set_and_update(self, index: int, value: int):
        """Write a general register and derive the flags from it."""
        self.set(index, value)
        self.update_flags(self.R[index])

    # --- Program counter ---

    def get_pc(self) -> int:
        return self.PC

    def set_pc(self, value: int):
        self.PC = value & 0xFFFF

    def advance_pc(self):
        """Post-fetch increment, wraps 0xFFFF -> 0x0000."""
        self.PC = (self.PC + 1) & 0xFFFF

    # --- Condition flags ---

    def update_flags(self, value: int):
        """Set exactly one of N/Z/P from the signed 16-bit reading of value."""
        value &= 0xFFFF
        if value == 0:
            self.COND = FL_ZRO
        elif value & 0x8000:
            self.COND = FL_NEG
        else:
            self.COND = FL_POS

    @property
    def negative(self) -> bool:
        return bool(self.COND & FL_NEG)

    @property
    def zero(self) -> bool:
        return bool(self.COND & FL_ZRO)

    @property
    def positive(self) -> bool:
        return bool(self.COND & FL_POS)

    @property
    def flag_name(self) -> str:
        return {FL_NEG: 'N', FL_ZRO: 'Z', FL_POS: 'P'}.get(self.COND, '?')

    # --- Snapshot / display ---

    def snapshot(self) -> Tuple[int, ...]:
        """Immutable copy of the full register state (R0-R7, PC, COND)."""
        return tuple(self.R) + (self.PC, self.COND)

    def display(self) -> str:
        """Format register state for trace and dump output."""
        regs = ' '.join(f"R{i}={v:04X}" for i, v in enumerate(self.R))
        return f"PC={self.PC:04X} {regs} CC={self.flag_name}"

    def reset(self):
        """Reset to power-on state."""
        self.R = [0] * NUM_REGISTERS
        self.PC = PC_START
        self.COND = FL_ZRO
