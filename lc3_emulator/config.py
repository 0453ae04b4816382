"""
LC-3 Emulator - Machine Constants + Runtime Configuration
=========================================================

Fixed machine constants are plain module-level names. Options that vary
per run are collected in EmulatorConfig, which the CLI builds from its
arguments.
"""

from dataclasses import dataclass, field
from typing import Optional, Set


# =============================================================================
#  MEMORY MAP
# =============================================================================
MEMORY_SIZE = 0x10000     # 65536 16-bit words
ADDRESS_MASK = 0xFFFF
WORD_MASK = 0xFFFF

PC_START = 0x3000         # Default program origin (user space start)

# Memory-mapped keyboard registers
KBSR = 0xFE00             # Keyboard status - bit 15 set when a key is ready
KBDR = 0xFE02             # Keyboard data - last character read
KBSR_READY = 0x8000


# =============================================================================
#  CONSOLE
# =============================================================================
DEFAULT_IN_PROMPT = "Enter a character: "
DEFAULT_HALT_MESSAGE = "HALT"

SERIAL_BAUD = 9600
SERIAL_TIMEOUT = 0.1      # seconds, per read() call on the serial port


# =============================================================================
#  DEBUG
# =============================================================================
TRACE_HISTORY = 10000     # trace lines kept in memory (ring buffer)


@dataclass
class EmulatorConfig:
    """Per-run emulator options."""
    max_steps: Optional[int] = None
    trace: bool = False
    trace_history: int = TRACE_HISTORY
    in_prompt: str = DEFAULT_IN_PROMPT
    halt_message: Optional[str] = DEFAULT_HALT_MESSAGE
    breakpoints: Set[int] = field(default_factory=set)
    # GETC/IN write R0, so they set N/Z/P like any other register write
    update_flags_on_trap_input: bool = True

    @classmethod
    def from_args(cls, args) -> 'EmulatorConfig':
        """Build a config from an argparse namespace (see lc3vm.py)."""
        return cls(
            max_steps=getattr(args, 'max_steps', None),
            trace=getattr(args, 'trace', False),
            halt_message=None if getattr(args, 'no_halt_message', False)
            else DEFAULT_HALT_MESSAGE,
            breakpoints={addr & ADDRESS_MASK
                         for addr in (getattr(args, 'breakpoints', None) or [])},
        )
