"""
LC-3 Emulator - Trap Routines

TRAP x20-x25 are serviced natively in Python instead of by OS code in
memory, so no trap vector table needs to be loaded:

  x20  GETC   read one character into R0, no echo
  x21  OUT    write the low byte of R0
  x22  PUTS   write one character per word from [R0] up to a zero word
  x23  IN     prompt, read one character, echo it, store in R0
  x24  PUTSP  write two characters per word (low byte first) from [R0]
              up to the first zero byte
  x25  HALT   stop the machine

Every routine runs to completion before the next fetch. R7 receives the
return address (the PC after the TRAP) before the routine runs.
"""

import logging

from .cpu import alu
from .cpu.decoder import IllegalOpcode
from .cpu.regs import R7
from .config import DEFAULT_IN_PROMPT, DEFAULT_HALT_MESSAGE

log = logging.getLogger('lc3.traps')

TRAP_GETC  = 0x20
TRAP_OUT   = 0x21
TRAP_PUTS  = 0x22
TRAP_IN    = 0x23
TRAP_PUTSP = 0x24
TRAP_HALT  = 0x25


class Halt(Exception):
    """Raised by the HALT routine; the VM loop turns it into StopReason.HALT."""
    pass


class TrapUnit:
    """Trap dispatcher bound to one pair of console devices."""

    def __init__(self, input_device, output_device,
                 in_prompt: str = DEFAULT_IN_PROMPT,
                 halt_message: str = DEFAULT_HALT_MESSAGE,
                 update_flags: bool = True):
        self.input = input_device
        self.output = output_device
        self.in_prompt = in_prompt
        self.halt_message = halt_message
        self.update_flags = update_flags
        self._routines = {
            TRAP_GETC:  self._getc,
            TRAP_OUT:   self._out,
            TRAP_PUTS:  self._puts,
            TRAP_IN:    self._in,
            TRAP_PUTSP: self._putsp,
            TRAP_HALT:  self._halt,
        }

    def execute(self, instruction: int, regs, mem):
        """TRAP handler: handler(instruction, regs, mem)."""
        vector = alu.trapvect8(instruction)
        routine = self._routines.get(vector)
        if routine is None:
            # PC has already moved past the TRAP; report the TRAP's own address
            raise IllegalOpcode(instruction, regs.PC - 1,
                                f"unknown trap vector x{vector:02X}")
        regs.R[R7] = regs.PC
        log.debug(f"TRAP x{vector:02X} from x{(regs.PC - 1) & 0xFFFF:04X}")
        routine(regs, mem)

    # ── Input ──

    def _store_char(self, regs, char: int):
        if self.update_flags:
            regs.set_and_update(0, char)
        else:
            regs.set(0, char)

    def _getc(self, regs, mem):
        self._store_char(regs, self.input.read_char())

    def _in(self, regs, mem):
        self.output.write_text(self.in_prompt)
        self.output.flush()
        char = self.input.read_char()
        self.output.write_char(char)
        self.output.flush()
        self._store_char(regs, char)

    # ── Output ──

    def _out(self, regs, mem):
        self.output.write_char(regs.R[0] & 0xFF)
        self.output.flush()

    def _puts(self, regs, mem):
        addr = regs.R[0]
        word = mem.read(addr)
        while word != 0:
            self.output.write_char(word & 0xFF)
            addr = (addr + 1) & 0xFFFF
            word = mem.read(addr)
        self.output.flush()

    def _putsp(self, regs, mem):
        addr = regs.R[0]
        while True:
            word = mem.read(addr)
            low, high = word & 0xFF, (word >> 8) & 0xFF
            if not low:
                break
            self.output.write_char(low)
            if not high:
                break
            self.output.write_char(high)
            addr = (addr + 1) & 0xFFFF
        self.output.flush()

    # ── Control ──

    def _halt(self, regs, mem):
        if self.halt_message is not None:
            self.output.write_text(self.halt_message + '\n')
        self.output.flush()
        raise Halt()
