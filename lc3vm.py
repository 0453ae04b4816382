#!/usr/bin/env python3
"""
lc3vm - LC-3 Virtual Machine CLI

Usage:
    python lc3vm.py <image.obj> [more.obj ...] [--max-steps N] [--trace]
                    [--break ADDR ...] [--serial PORT] [--baud N]
                    [--no-halt-message] [--dump] [--disasm] [-v]

The program's console I/O uses this terminal (or a serial port with
--serial). Log output goes to stderr.

Exit codes:
    0  program executed HALT
    1  image could not be loaded
    2  illegal instruction (RTI, reserved opcode, unknown trap vector)
    3  console I/O failure
    4  --max-steps exhausted
    5  stopped at a breakpoint

Examples:
    python lc3vm.py 2048.obj
    python lc3vm.py rogue.obj --trace -vv --log-file logs/rogue.log
    python lc3vm.py hello.obj --disasm
    python lc3vm.py hello.obj --break x3005 --dump
"""

import argparse
import logging
import sys
import os

# Allow running from project root without installing
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from lc3_emulator import __version__
from lc3_emulator.config import EmulatorConfig, SERIAL_BAUD
from lc3_emulator.cpu.decoder import IllegalOpcode
from lc3_emulator.cpu.disasm import disassemble_range
from lc3_emulator.emu import LC3Emulator, StopReason
from lc3_emulator.loader import ImageLoadError, read_image
from lc3_emulator.log_setup import setup_logging
from lc3_emulator.periph.console import (
    ConsoleIOError, TerminalInputDevice, StreamOutputDevice,
)

EXIT_OK = 0
EXIT_LOAD_ERROR = 1
EXIT_ILLEGAL_OPCODE = 2
EXIT_IO_ERROR = 3
EXIT_TIMEOUT = 4
EXIT_BREAK = 5

STOP_EXIT_CODES = {
    StopReason.HALT: EXIT_OK,
    StopReason.TIMEOUT: EXIT_TIMEOUT,
    StopReason.BREAK: EXIT_BREAK,
}

log = logging.getLogger('lc3.cli')


def parse_addr(value: str) -> int:
    """Parse an address: 0x3000, x3000 (LC-3 convention), or decimal."""
    value = value.strip()
    try:
        if value[:2].lower() == "0x":
            addr = int(value, 16)
        elif value[:1].lower() == "x":
            addr = int(value[1:], 16)
        else:
            addr = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid address: {value!r}")
    if not 0 <= addr <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"address out of range: {value!r}")
    return addr


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lc3vm",
        description="LC-3 virtual machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("images", nargs="+", metavar="IMAGE",
                        help="LC-3 object image(s); PC starts at the first image's origin")
    parser.add_argument("--max-steps", type=int, default=None,
                        help="Stop after N instructions (exit code 4)")
    parser.add_argument("--trace", action="store_true",
                        help="Log every executed instruction at DEBUG level")
    parser.add_argument("--break", dest="breakpoints", type=parse_addr,
                        action="append", default=[], metavar="ADDR",
                        help="Stop before executing ADDR (repeatable)")
    parser.add_argument("--serial", metavar="PORT", default=None,
                        help="Use a serial port as the console instead of the terminal")
    parser.add_argument("--baud", type=int, default=SERIAL_BAUD,
                        help=f"Serial baud rate (default: {SERIAL_BAUD})")
    parser.add_argument("--no-halt-message", action="store_true",
                        help="Do not print HALT when the program halts")
    parser.add_argument("--dump", action="store_true",
                        help="Print final register state to stderr")
    parser.add_argument("--disasm", action="store_true",
                        help="Disassemble the image(s) and exit without running")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Increase log verbosity (-v info, -vv debug)")
    parser.add_argument("--log-file", default=None,
                        help="Write a DEBUG log to this file")
    parser.add_argument("--version", action="version",
                        version=f"lc3vm {__version__}")
    return parser


def _console_level(verbose: int) -> int:
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def print_disassembly(images, out=None):
    out = out or sys.stdout
    emu = LC3Emulator()
    for image in emu.load_images(images):
        print(f"; {image.source}  .ORIG x{image.origin:04X}", file=out)
        for line in disassemble_range(emu.mem, image.origin, len(image)):
            print(line, file=out)


def run_machine(emu: LC3Emulator, args) -> int:
    """Run to completion and translate the outcome into an exit code."""
    try:
        reason = emu.run()
    except IllegalOpcode as e:
        log.error(str(e))
        return EXIT_ILLEGAL_OPCODE
    except ConsoleIOError as e:
        log.error(f"Console I/O error: {e}")
        return EXIT_IO_ERROR
    finally:
        if args.dump:
            print(emu.dump_state(), file=sys.stderr)
    return STOP_EXIT_CODES[reason]


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(console_level=_console_level(args.verbose), log_file=args.log_file)

    try:
        images = [read_image(path) for path in args.images]
    except ImageLoadError as e:
        log.error(f"Failed to load image: {e}")
        return EXIT_LOAD_ERROR

    if args.disasm:
        print_disassembly(images)
        return EXIT_OK

    config = EmulatorConfig.from_args(args)

    if args.serial:
        from lc3_emulator.periph.serial_console import SerialConsole
        console = SerialConsole(args.serial, args.baud)
        try:
            console.open()
        except ConsoleIOError as e:
            log.error(str(e))
            return EXIT_IO_ERROR
        try:
            emu = LC3Emulator(console, console, config)
            emu.load_images(images)
            return run_machine(emu, args)
        finally:
            console.close()

    with TerminalInputDevice(sys.stdin) as keyboard:
        emu = LC3Emulator(keyboard, StreamOutputDevice(sys.stdout), config)
        emu.load_images(images)
        return run_machine(emu, args)


if __name__ == "__main__":
    sys.exit(main())
