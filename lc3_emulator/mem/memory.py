"""
LC-3 Emulator - 64K Word Memory with I/O Register Routing

Memory map:
  $0000-$00FF  Trap vector table
  $0100-$01FF  Interrupt vector table
  $0200-$2FFF  Operating system / supervisor space
  $3000-$FDFF  User program space
  $FE00-$FFFF  Device register addresses

Only the keyboard registers (KBSR $FE00, KBDR $FE02) are routed to a
device model. Every other address, including the rest of the device
page, is plain read/write storage. No address is write-protected.
"""

from array import array
from typing import Callable, Dict, Iterable, List, Optional

from ..config import MEMORY_SIZE, ADDRESS_MASK, WORD_MASK


class Memory:
    """65536 x 16-bit word memory.

    Addresses and values are masked to 16 bits on every access, so a
    computed address past $FFFF wraps around to $0000.

    Device models hook addresses with register_io_handler(). A read
    handler replaces the stored value on read; a write handler is
    notified after the value has been stored.
    """

    def __init__(self):
        self._mem = array('H', bytes(2 * MEMORY_SIZE))

        # addr -> read_fn(addr) -> int / write_fn(addr, value) -> None
        self._io_read_handlers: Dict[int, Callable] = {}
        self._io_write_handlers: Dict[int, Callable] = {}

        # Watchpoints: addr -> [callback(addr, old_val, new_val, is_write)]
        self._watchpoints: Dict[int, List[Callable]] = {}

    # --- Core read/write ---

    def read(self, addr: int) -> int:
        """Read a word. I/O addresses with a handler are routed to the device."""
        addr &= ADDRESS_MASK
        handler = self._io_read_handlers.get(addr)
        if handler is not None:
            return handler(addr) & WORD_MASK
        return self._mem[addr]

    def write(self, addr: int, value: int):
        """Store a word unconditionally. Watchpoints fire before the store."""
        addr &= ADDRESS_MASK
        value &= WORD_MASK
        if addr in self._watchpoints:
            old = self._mem[addr]
            for cb in self._watchpoints[addr]:
                cb(addr, old, value, True)
        self._mem[addr] = value
        handler = self._io_write_handlers.get(addr)
        if handler is not None:
            handler(addr, value)

    def peek(self, addr: int) -> int:
        """Raw read with no device side effects (debugger / disassembler)."""
        return self._mem[addr & ADDRESS_MASK]

    def poke(self, addr: int, value: int):
        """Raw write that bypasses watchpoints and device handlers."""
        self._mem[addr & ADDRESS_MASK] = value & WORD_MASK

    def __len__(self) -> int:
        return MEMORY_SIZE

    # --- Bulk load ---

    def load_words(self, words: Iterable[int], origin: int):
        """Copy words into memory starting at origin, bypassing handlers."""
        addr = origin & ADDRESS_MASK
        for word in words:
            self._mem[addr] = word & WORD_MASK
            addr = (addr + 1) & ADDRESS_MASK

    def clear(self):
        self._mem[:] = array('H', bytes(2 * MEMORY_SIZE))

    # --- I/O handler registration ---

    def register_io_handler(self, addr: int,
                            read_fn: Optional[Callable] = None,
                            write_fn: Optional[Callable] = None):
        """Register read/write handlers for a device register address.

        Args:
            addr: device register address ($FE00-$FFFF by convention)
            read_fn: Callable(addr) -> int (16-bit value)
            write_fn: Callable(addr, value) -> None
        """
        addr &= ADDRESS_MASK
        if read_fn:
            self._io_read_handlers[addr] = read_fn
        if write_fn:
            self._io_write_handlers[addr] = write_fn

    # --- Watchpoints ---

    def add_watchpoint(self, addr: int, callback: Callable):
        """Call callback(addr, old_val, new_val, is_write) on every write to addr."""
        self._watchpoints.setdefault(addr & ADDRESS_MASK, []).append(callback)

    def remove_watchpoint(self, addr: int, callback: Optional[Callable] = None):
        """Remove a watchpoint. If callback is None, removes all on that addr."""
        addr &= ADDRESS_MASK
        if addr in self._watchpoints:
            if callback is None:
                del self._watchpoints[addr]
            else:
                self._watchpoints[addr] = [
                    cb for cb in self._watchpoints[addr] if cb != callback
                ]

    # --- Snapshots ---

    def snapshot(self, start: int = 0x0000, end: int = 0xFFFF) -> List[int]:
        """Copy of the raw words in [start, end] (inclusive)."""
        return list(self._mem[start & ADDRESS_MASK:(end & ADDRESS_MASK) + 1])

    @staticmethod
    def diff_snapshots(snap_a: List[int], snap_b: List[int],
                       base_addr: int = 0x0000) -> Dict[int, tuple]:
        """Compare two snapshots, return {addr: (old, new)} for changed words."""
        changes = {}
        for i in range(min(len(snap_a), len(snap_b))):
            if snap_a[i] != snap_b[i]:
                changes[base_addr + i] = (snap_a[i], snap_b[i])
        return changes

    # --- Hex dump ---

    def hexdump(self, start: int, length: int = 64) -> str:
        """Word-oriented dump, 8 words per line."""
        lines = []
        for offset in range(0, length, 8):
            addr = (start + offset) & ADDRESS_MASK
            words = [self._mem[(addr + i) & ADDRESS_MASK]
                     for i in range(min(8, length - offset))]
            text = ''.join(chr(w) if 0x20 <= w < 0x7F else '.' for w in words)
            hex_words = ' '.join(f'{w:04X}' for w in words)
            lines.append(f'x{addr:04X}  {hex_words:<39}  {text}')
        return '\n'.join(lines)
