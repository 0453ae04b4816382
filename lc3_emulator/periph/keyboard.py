"""
LC-3 Emulator - Memory-Mapped Keyboard

Register map:
  $FE00  KBSR  - Keyboard status (bit 15 = a character is ready)
  $FE02  KBDR  - Keyboard data (last character taken from the device)

Reading KBSR polls the InputDevice. When a character is waiting it is
taken immediately and latched into KBDR, and KBSR reads back $8000;
otherwise KBSR reads $0000 and KBDR keeps its previous value. Both
values are also stored in raw memory so a debugger peek sees the same
thing the program does.

Writes to either register are ordinary stores.
"""

from ..config import KBSR, KBDR, KBSR_READY


class KeyboardPeripheral:
    """Keyboard status/data registers backed by an InputDevice."""

    def __init__(self, device):
        self.device = device
        self._memory = None

    def register(self, memory):
        """Wire KBSR/KBDR into the memory I/O system."""
        self._memory = memory
        memory.register_io_handler(KBSR, self._read_kbsr, None)
        memory.register_io_handler(KBDR, self._read_kbdr, None)

    # --- KBSR ($FE00) ---

    def _read_kbsr(self, addr: int) -> int:
        if self.device.poll_ready():
            self._memory.poke(KBDR, self.device.read_char())
            status = KBSR_READY
        else:
            status = 0x0000
        self._memory.poke(KBSR, status)
        return status

    # --- KBDR ($FE02) ---

    def _read_kbdr(self, addr: int) -> int:
        return self._memory.peek(KBDR)
