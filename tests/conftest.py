"""
Shared fixtures for the LC-3 emulator tests.

Programs are hand-assembled instruction words with the assembler text
in a trailing comment, so no external assembler is needed.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from lc3_emulator.emu import LC3Emulator
from lc3_emulator.periph.console import QueueInputDevice, BufferOutputDevice


@pytest.fixture
def kbd():
    """Scripted keyboard; tests inject() the characters they need."""
    return QueueInputDevice()


@pytest.fixture
def out():
    return BufferOutputDevice()


@pytest.fixture
def emu(kbd, out):
    return LC3Emulator(input_device=kbd, output_device=out)


@pytest.fixture
def program(emu):
    """Load words at origin (default x3000), point PC there, return the emulator."""
    def _load(words, origin=0x3000):
        emu.mem.load_words(words, origin)
        emu.regs.PC = origin
        return emu
    return _load
