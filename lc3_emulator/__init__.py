# LC-3 Emulator - Little Computer 3 virtual machine
#
# Core: fetch/decode/execute loop (emu.py), register file (cpu/regs.py),
# 64K word memory with keyboard MMIO (mem/, periph/keyboard.py) and the
# native trap routines GETC/OUT/PUTS/IN/PUTSP/HALT (traps.py).
#
# RTI and the reserved opcode are not implemented and raise IllegalOpcode.

__version__ = "1.0.0"

from .emu import LC3Emulator, StopReason, MachineState
from .cpu.decoder import IllegalOpcode, IllegalOpcodeError
from .loader import ImageLoadError, ProgramImage, read_image, parse_image
from .periph.console import (
    ConsoleIOError,
    InputDevice,
    OutputDevice,
    QueueInputDevice,
    BufferOutputDevice,
    TerminalInputDevice,
    StreamOutputDevice,
)
from .config import EmulatorConfig

__all__ = [
    "LC3Emulator", "StopReason", "MachineState",
    "IllegalOpcode", "IllegalOpcodeError",
    "ImageLoadError", "ProgramImage", "read_image", "parse_image",
    "ConsoleIOError", "InputDevice", "OutputDevice",
    "QueueInputDevice", "BufferOutputDevice",
    "TerminalInputDevice", "StreamOutputDevice",
    "EmulatorConfig",
]
