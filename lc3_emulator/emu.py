"""
LC-3 Emulator - Main Emulator Class

Integrates:
  - register file (cpu/regs.py)
  - 64K word memory (mem/memory.py) with the keyboard registers wired in
  - opcode decoder + handler table (cpu/decoder.py, cpu/ops.py)
  - trap routines (traps.py) bound to the console devices

Execution model, one step():
  1. Fetch the word at PC
  2. Decode the opcode (RTI/RES fault here, before anything changes)
  3. PC += 1
  4. Dispatch to the handler with (instruction, regs, mem)
  5. Count the instruction

Termination:
  HALT     - the HALT trap ran
  BREAK    - PC reached a breakpoint (run() only)
  TIMEOUT  - run() hit its step limit
Faults (IllegalOpcode, ConsoleIOError) are raised to the caller after
the machine is marked halted and the error is stored in emu.fault;
every later step() or run() raises it again until reset().
"""

import logging
from collections import deque
from enum import Enum
from pathlib import Path
from typing import Deque, Iterable, List, Optional, Set, Union

from .config import EmulatorConfig
from .cpu.regs import Registers
from .cpu.decoder import decode_opcode, IllegalOpcode
from .cpu.ops import build_dispatch
from .cpu.disasm import format_line
from .mem.memory import Memory
from .periph.console import (
    ConsoleIOError, BufferOutputDevice, QueueInputDevice,
)
from .periph.keyboard import KeyboardPeripheral
from .traps import TrapUnit, Halt
from .loader import ProgramImage, read_image

log = logging.getLogger('lc3.emu')


class StopReason(Enum):
    HALT = 'HALT'
    BREAK = 'BREAK'
    TIMEOUT = 'TIMEOUT'


class MachineState(Enum):
    RUNNING = 'RUNNING'
    HALTED = 'HALTED'


class LC3Emulator:
    """LC-3 virtual machine.

    Usage:
        out = BufferOutputDevice()
        emu = LC3Emulator(input_device=QueueInputDevice(b"a"), output_device=out)
        emu.load_image('hello.obj')      # PC = image origin
        reason = emu.run()
        print(out.text)

    Without explicit devices the machine gets an empty input queue and a
    buffered output device, which is what the tests want.
    """

    def __init__(self, input_device=None, output_device=None,
                 config: Optional[EmulatorConfig] = None):
        self.config = config or EmulatorConfig()

        self.regs = Registers()
        self.mem = Memory()

        self.input = input_device if input_device is not None else QueueInputDevice()
        self.output = output_device if output_device is not None else BufferOutputDevice()

        self.keyboard = KeyboardPeripheral(self.input)
        self.keyboard.register(self.mem)

        self.traps = TrapUnit(
            self.input, self.output,
            in_prompt=self.config.in_prompt,
            halt_message=self.config.halt_message,
            update_flags=self.config.update_flags_on_trap_input,
        )

        # opcode -> handler(instruction, regs, mem)
        self._dispatch = build_dispatch(self.traps.execute)

        self.state = MachineState.RUNNING
        self.fault: Optional[Exception] = None
        self.instructions = 0

        self._breakpoints: Set[int] = set(self.config.breakpoints)
        self._resume_pc: Optional[int] = None

        self._trace = self.config.trace
        self._trace_output: Deque[str] = deque(maxlen=self.config.trace_history)

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load_image(self, path_or_data: Union[str, Path, bytes, ProgramImage]) -> ProgramImage:
        """Copy an object image into memory and point PC at its origin."""
        image = self._place(path_or_data)
        self.regs.set_pc(image.origin)
        return image

    def load_images(self, sources: Iterable) -> List[ProgramImage]:
        """Load several images; PC starts at the first image's origin."""
        images = [self._place(src) for src in sources]
        if images:
            self.regs.set_pc(images[0].origin)
        return images

    def _place(self, source) -> ProgramImage:
        image = source if isinstance(source, ProgramImage) else read_image(source)
        self.mem.load_words(image.words, image.origin)
        log.info(f"Loaded {image.source}: x{image.origin:04X}-"
                 f"x{(image.end - 1) & 0xFFFF:04X} ({len(image)} words)")
        return image

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    @property
    def halted(self) -> bool:
        return self.state is MachineState.HALTED

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns StopReason.HALT once halted, else None.

        Raises IllegalOpcode or ConsoleIOError on a fatal fault. A machine
        stopped by a fault raises the same error again on every later call.
        """
        if self.fault is not None:
            raise self.fault
        if self.halted:
            return StopReason.HALT

        pc = self.regs.PC
        try:
            # fetching from KBSR polls the keyboard like any other read
            instruction = self.mem.read(pc)
        except ConsoleIOError as e:
            self._stop_on_fault(e)
            raise

        try:
            op, mnem = decode_opcode(instruction, pc)
        except IllegalOpcode as e:
            self._stop_on_fault(e)
            raise

        if self._trace:
            # register state as the instruction found it
            line = f"{format_line(instruction, pc)}  {self.regs.display()}"
            self._trace_output.append(line)
            log.debug(line)

        self.regs.advance_pc()

        try:
            self._dispatch[op](instruction, self.regs, self.mem)
        except Halt:
            self.instructions += 1
            self.state = MachineState.HALTED
            log.info(f"HALT at x{pc:04X} after {self.instructions} instructions")
            return StopReason.HALT
        except IllegalOpcode as e:
            # unknown trap vector: undo the fetch increment, nothing else changed
            self.regs.PC = pc
            self._stop_on_fault(e)
            raise
        except ConsoleIOError as e:
            self._stop_on_fault(e)
            raise

        self.instructions += 1
        return None

    def run(self, max_steps: Optional[int] = None) -> StopReason:
        """Run until HALT, a breakpoint, or the step limit.

        Args:
            max_steps: instructions to execute before TIMEOUT
                       (default: config.max_steps, None = no limit)

        Returns:
            StopReason indicating why execution stopped
        """
        if self.fault is not None:
            raise self.fault
        if max_steps is None:
            max_steps = self.config.max_steps

        steps = 0
        while not self.halted:
            pc = self.regs.PC
            if pc in self._breakpoints and pc != self._resume_pc:
                self._resume_pc = pc
                log.warning(f"Breakpoint at x{pc:04X}")
                return StopReason.BREAK
            if max_steps is not None and steps >= max_steps:
                log.warning(f"Step limit reached ({max_steps}) at x{pc:04X}")
                return StopReason.TIMEOUT

            self._resume_pc = None
            reason = self.step()
            steps += 1
            if reason is not None:
                return reason

        return StopReason.HALT

    def _stop_on_fault(self, error: Exception):
        self.fault = error
        self.state = MachineState.HALTED

    # ══════════════════════════════════════════════
    # Breakpoint API
    # ══════════════════════════════════════════════

    def add_breakpoint(self, addr: int):
        """Stop run() before the instruction at addr executes."""
        self._breakpoints.add(addr & 0xFFFF)

    def remove_breakpoint(self, addr: int):
        self._breakpoints.discard(addr & 0xFFFF)

    def clear_breakpoints(self):
        self._breakpoints.clear()

    @property
    def breakpoints(self) -> Set[int]:
        return set(self._breakpoints)

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Record one line per executed instruction.

        Only the most recent config.trace_history lines are kept; every
        line is also logged at DEBUG on lc3.emu.
        """
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output.clear()

    def dump_state(self) -> str:
        lines = [self.regs.display(),
                 f"state={self.state.value} instructions={self.instructions}"]
        if self.fault is not None:
            lines.append(f"fault: {self.fault}")
        return '\n'.join(lines)

    def reset(self):
        """Full emulator reset: registers, memory, state, breakpoints, trace."""
        self.regs.reset()
        self.mem.clear()
        self.state = MachineState.RUNNING
        self.fault = None
        self.instructions = 0
        self._breakpoints.clear()
        self._resume_pc = None
        self._trace_output.clear()
