"""
LC-3 Emulator - Core Integration Tests

Every test runs real LC-3 machine code. Words are hand-assembled, with
the assembler text alongside.

PC-relative offsets count from the *incremented* PC, i.e. the address
after the instruction.
"""

import pytest

from lc3_emulator.config import EmulatorConfig, TRACE_HISTORY
from lc3_emulator.cpu.decoder import IllegalOpcode, IllegalOpcodeError
from lc3_emulator.cpu.regs import FL_NEG, FL_ZRO, FL_POS
from lc3_emulator.emu import LC3Emulator, StopReason, MachineState
from lc3_emulator.periph.console import ConsoleIOError


# ═══════════════════════════════════════════════
# Test Group 1: Operate instructions
# ═══════════════════════════════════════════════

class TestOperate:

    def test_add_immediate(self, program):
        """R1=5; ADD R0, R1, #3 -> R0=8, P"""
        emu = program([0x1063])          # ADD R0, R1, #3
        emu.regs.R[1] = 5
        emu.step()
        assert emu.regs.R[0] == 8
        assert emu.regs.COND == FL_POS
        assert emu.regs.PC == 0x3001

    def test_add_register(self, program):
        emu = program([0x1401])          # ADD R2, R0, R1
        emu.regs.R[0] = 0x0010
        emu.regs.R[1] = 0x0020
        emu.step()
        assert emu.regs.R[2] == 0x0030

    def test_add_negative_immediate_to_zero(self, program):
        emu = program([0x103F])          # ADD R0, R0, #-1
        emu.regs.R[0] = 1
        emu.step()
        assert emu.regs.R[0] == 0
        assert emu.regs.COND == FL_ZRO

    def test_add_wraps_and_goes_negative(self, program):
        emu = program([0x1261])          # ADD R1, R1, #1
        emu.regs.R[1] = 0x7FFF
        emu.step()
        assert emu.regs.R[1] == 0x8000
        assert emu.regs.COND == FL_NEG

    def test_and_immediate_clears(self, program):
        emu = program([0x5020])          # AND R0, R0, #0
        emu.regs.R[0] = 0xBEEF
        emu.step()
        assert emu.regs.R[0] == 0
        assert emu.regs.zero

    def test_and_register(self, program):
        emu = program([0x5401])          # AND R2, R0, R1
        emu.regs.R[0] = 0xF0F0
        emu.regs.R[1] = 0xFF00
        emu.step()
        assert emu.regs.R[2] == 0xF000
        assert emu.regs.negative

    def test_and_negative_immediate_keeps_all_bits(self, program):
        emu = program([0x56FF])          # AND R3, R3, #-1
        emu.regs.R[3] = 0x1234
        emu.step()
        assert emu.regs.R[3] == 0x1234
        assert emu.regs.positive

    def test_not(self, program):
        emu = program([0x923F])          # NOT R1, R0
        emu.regs.R[0] = 0x0000
        emu.step()
        assert emu.regs.R[1] == 0xFFFF
        assert emu.regs.negative


# ═══════════════════════════════════════════════
# Test Group 2: Data movement
# ═══════════════════════════════════════════════

class TestLoadStore:

    def test_ld(self, program):
        emu = program([0x2004])          # LD R0, #4  -> x3005
        emu.mem.write(0x3005, 0x00FF)
        emu.step()
        assert emu.regs.R[0] == 0x00FF
        assert emu.regs.positive

    def test_ldi(self, program):
        """M[x3004]=x4000, M[x4000]=x002A; LDI R0, #4 with PC=x3000 -> R0=x002A

        The LDI sits at x2FFF so the PC is x3000 once it has been fetched.
        """
        emu = program([0xA004], origin=0x2FFF)   # LDI R0, #4
        emu.mem.write(0x3004, 0x4000)
        emu.mem.write(0x4000, 0x002A)
        emu.step()
        assert emu.regs.R[0] == 0x002A
        assert emu.regs.positive

    def test_ldr_negative_offset(self, program):
        emu = program([0x607E])          # LDR R0, R1, #-2
        emu.regs.R[1] = 0x4002
        emu.mem.write(0x4000, 0x8000)
        emu.step()
        assert emu.regs.R[0] == 0x8000
        assert emu.regs.negative

    def test_lea_no_memory_access(self, program):
        """LEA R0, #2 with PC=x3000 -> R0=x3002, memory untouched"""
        emu = program([0xE002], origin=0x2FFF)   # LEA R0, #2
        before = emu.mem.snapshot()
        emu.step()
        assert emu.regs.R[0] == 0x3002
        assert emu.regs.positive
        assert emu.mem.snapshot() == before

    def test_lea_sets_flags(self, program):
        """LEA is a register write, so it sets N/Z/P too."""
        emu = program([0xE1FE], origin=0x8000)   # LEA R0, #-2 -> x7FFF
        emu.regs.COND = FL_NEG
        emu.step()
        assert emu.regs.R[0] == 0x7FFF
        assert emu.regs.COND == FL_POS

    def test_st(self, program):
        emu = program([0x3003])          # ST R0, #3 -> x3004
        emu.regs.R[0] = 0xABCD
        emu.regs.COND = FL_POS
        emu.step()
        assert emu.mem.read(0x3004) == 0xABCD
        assert emu.regs.COND == FL_POS   # stores leave flags alone

    def test_sti(self, program):
        emu = program([0xB002])          # STI R0, #2 -> pointer at x3003
        emu.mem.write(0x3003, 0x5000)
        emu.regs.R[0] = 0x0042
        emu.step()
        assert emu.mem.read(0x5000) == 0x0042

    def test_str(self, program):
        emu = program([0x7041])          # STR R0, R1, #1
        emu.regs.R[0] = 0x7777
        emu.regs.R[1] = 0x4000
        emu.step()
        assert emu.mem.read(0x4001) == 0x7777

    def test_ld_address_wraps(self, program):
        emu = program([0x21FE], origin=0x0000)   # LD R0, #-2 -> xFFFF
        emu.mem.write(0xFFFF, 0x1234)
        emu.step()
        assert emu.regs.R[0] == 0x1234


# ═══════════════════════════════════════════════
# Test Group 3: Control flow
# ═══════════════════════════════════════════════

class TestControl:

    def test_br_taken(self, program):
        emu = program([0x0402])          # BRz #2
        emu.regs.COND = FL_ZRO
        emu.step()
        assert emu.regs.PC == 0x3003

    def test_br_not_taken(self, program):
        emu = program([0x0402])          # BRz #2
        emu.regs.COND = FL_POS
        emu.step()
        assert emu.regs.PC == 0x3001

    def test_br_backward(self, program):
        emu = program([0x0FFD], origin=0x3004)   # BRnzp #-3
        emu.step()
        assert emu.regs.PC == 0x3002

    def test_br_never_with_empty_mask(self, program):
        emu = program([0x0005])          # BR (nzp=000) -> NOP
        for flag in (FL_NEG, FL_ZRO, FL_POS):
            emu.regs.PC = 0x3000
            emu.regs.COND = flag
            emu.step()
            assert emu.regs.PC == 0x3001

    def test_jmp(self, program):
        emu = program([0xC080])          # JMP R2
        emu.regs.R[2] = 0x4000
        emu.step()
        assert emu.regs.PC == 0x4000

    def test_ret(self, program):
        emu = program([0xC1C0])          # RET
        emu.regs.R[7] = 0x3100
        emu.step()
        assert emu.regs.PC == 0x3100

    def test_jsr(self, program):
        emu = program([0x4805])          # JSR #5
        emu.regs.COND = FL_NEG
        emu.step()
        assert emu.regs.R[7] == 0x3001
        assert emu.regs.PC == 0x3006
        assert emu.regs.COND == FL_NEG   # R7 write does not touch flags

    def test_jsrr(self, program):
        emu = program([0x40C0])          # JSRR R3
        emu.regs.R[3] = 0x5000
        emu.step()
        assert emu.regs.R[7] == 0x3001
        assert emu.regs.PC == 0x5000

    def test_jsrr_r7_uses_old_value(self, program):
        emu = program([0x41C0])          # JSRR R7
        emu.regs.R[7] = 0x6000
        emu.step()
        assert emu.regs.PC == 0x6000
        assert emu.regs.R[7] == 0x3001

    def test_pc_wraps_after_fetch(self, program):
        emu = program([0x1261], origin=0xFFFF)   # ADD R1, R1, #1
        emu.step()
        assert emu.regs.PC == 0x0000


# ═══════════════════════════════════════════════
# Test Group 4: Illegal instructions
# ═══════════════════════════════════════════════

class TestIllegal:

    @pytest.mark.parametrize("word", [0x8000, 0xD000, 0xDFFF])
    def test_rti_and_res_fault_without_side_effects(self, program, word):
        emu = program([
            0x1265,                      # ADD R1, R1, #5
            0x3201,                      # ST R1, #1
            word,                        # RTI / RES
            0x0000,
        ])
        emu.step()
        emu.step()
        regs_before = emu.regs.snapshot()
        mem_before = emu.mem.snapshot()

        with pytest.raises(IllegalOpcodeError) as excinfo:
            emu.step()

        assert excinfo.value.pc == 0x3002
        assert excinfo.value.instruction == word
        assert excinfo.value.opcode == word >> 12
        assert emu.regs.snapshot() == regs_before
        assert emu.mem.snapshot() == mem_before
        assert emu.state is MachineState.HALTED
        assert emu.fault is excinfo.value

    def test_no_fetch_after_fault(self, program):
        emu = program([0x8000, 0x1261])  # RTI; ADD R1, R1, #1
        with pytest.raises(IllegalOpcode) as first:
            emu.run()
        with pytest.raises(IllegalOpcode) as again:
            emu.step()
        assert again.value is first.value
        assert emu.regs.R[1] == 0
        assert emu.regs.PC == 0x3000

    def test_run_after_res_fault_raises_again(self, program):
        emu = program([0xD000])          # RES
        with pytest.raises(IllegalOpcode) as first:
            emu.run()
        with pytest.raises(IllegalOpcode) as again:
            emu.run()
        assert again.value is first.value
        assert emu.fault is first.value
        assert emu.instructions == 0

    def test_console_fault_persists(self, program):
        emu = program([0xF020, 0xF025])  # GETC with no input queued; HALT
        with pytest.raises(ConsoleIOError):
            emu.run()
        emu.input.inject(b"a")
        with pytest.raises(ConsoleIOError):
            emu.run()
        assert emu.regs.R[0] == 0

    def test_reset_clears_fault(self, program):
        emu = program([0x8000])
        with pytest.raises(IllegalOpcode):
            emu.step()
        emu.reset()
        emu.mem.load_words([0xF025], 0x3000)
        assert emu.run() is StopReason.HALT

    def test_alias(self):
        assert IllegalOpcode is IllegalOpcodeError


# ═══════════════════════════════════════════════
# Test Group 5: Whole programs
# ═══════════════════════════════════════════════

class TestPrograms:

    def test_countdown_loop(self, program):
        emu = program([
            0x5020,                      # x3000  AND R0, R0, #0
            0x1025,                      # x3001  ADD R0, R0, #5
            0x1261,                      # x3002  ADD R1, R1, #1
            0x103F,                      # x3003  ADD R0, R0, #-1
            0x03FD,                      # x3004  BRp x3002
            0xF025,                      # x3005  HALT
        ])
        assert emu.run() is StopReason.HALT
        assert emu.regs.R[1] == 5
        assert emu.regs.R[0] == 0
        assert emu.regs.zero
        assert emu.instructions == 2 + 5 * 3 + 1

    def test_hello_puts(self, program, out):
        emu = program([
            0xE002,                      # x3000  LEA R0, x3003
            0xF022,                      # x3001  PUTS
            0xF025,                      # x3002  HALT
            0x0048, 0x0069, 0x0000,      # x3003  "Hi"
        ])
        assert emu.run() is StopReason.HALT
        assert out.output == b"Hi" + b"HALT\n"

    def test_subroutine_call(self, program):
        emu = program([
            0x4802,                      # x3000  JSR x3003
            0xF025,                      # x3001  HALT
            0x0000,                      # x3002
            0x14A7,                      # x3003  ADD R2, R2, #7
            0xC1C0,                      # x3004  RET
        ])
        assert emu.run() is StopReason.HALT
        assert emu.regs.R[2] == 7
        assert emu.regs.PC == 0x3002
        assert emu.regs.R[7] == 0x3002   # set by the HALT trap

    def test_keyboard_polling(self, program, kbd):
        kbd.inject(b"k")
        emu = program([
            0xA203,                      # x3000  LDI R1, KBSR_PTR
            0x07FE,                      # x3001  BRzp x3000
            0xA002,                      # x3002  LDI R0, KBDR_PTR
            0xF025,                      # x3003  HALT
            0xFE00,                      # x3004  KBSR_PTR
            0xFE02,                      # x3005  KBDR_PTR
        ])
        assert emu.run() is StopReason.HALT
        assert emu.regs.R[0] == ord("k")

    def test_keyboard_polling_without_input_spins(self, program):
        emu = program([0xA203, 0x07FE, 0xA002, 0xF025, 0xFE00, 0xFE02])
        assert emu.run(max_steps=50) is StopReason.TIMEOUT
        assert emu.regs.PC in (0x3000, 0x3001)


# ═══════════════════════════════════════════════
# Test Group 6: Loop control
# ═══════════════════════════════════════════════

class TestLoopControl:

    def test_halt_stops_fetching(self, program):
        emu = program([0xF025, 0x1261])  # HALT; ADD R1, R1, #1
        assert emu.run() is StopReason.HALT
        assert emu.halted
        assert emu.step() is StopReason.HALT
        assert emu.run() is StopReason.HALT
        assert emu.regs.R[1] == 0
        assert emu.instructions == 1

    def test_timeout(self, program):
        emu = program([0x0FFF])          # BRnzp x3000 (spin)
        assert emu.run(max_steps=100) is StopReason.TIMEOUT
        assert emu.instructions == 100
        assert emu.state is MachineState.RUNNING

    def test_breakpoint_and_resume(self, program):
        emu = program([0x5020, 0x1025, 0x1261, 0x103F, 0x03FD, 0xF025])
        emu.add_breakpoint(0x3003)
        assert emu.run() is StopReason.BREAK
        assert emu.regs.PC == 0x3003
        assert emu.regs.R[1] == 1
        assert emu.run() is StopReason.BREAK
        assert emu.regs.R[1] == 2
        emu.clear_breakpoints()
        assert emu.run() is StopReason.HALT
        assert emu.regs.R[1] == 5

    def test_breakpoint_at_start(self, program):
        emu = program([0xF025])
        emu.add_breakpoint(0x3000)
        assert emu.run() is StopReason.BREAK
        assert emu.instructions == 0
        assert emu.run() is StopReason.HALT

    def test_trace(self, program):
        emu = program([0xE002, 0xF022, 0xF025, 0x0048, 0x0000])
        emu.enable_trace()
        emu.run()
        lines = emu.get_trace().splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("x3000: E002  LEA R0, x3003")
        assert lines[2].startswith("x3002: F025  HALT")
        # register state is shown as each instruction found it
        assert "PC=3000 R0=0000" in lines[0]
        assert "PC=3001 R0=3003" in lines[1]
        assert "PC=3002 " in lines[2]
        emu.clear_trace()
        assert emu.get_trace() == ""

    def test_trace_keeps_only_recent_lines(self):
        emu = LC3Emulator(config=EmulatorConfig(trace=True, trace_history=50))
        emu.mem.load_words([0x0FFF], 0x3000)     # BRnzp x3000
        assert emu.run(max_steps=2000) is StopReason.TIMEOUT
        lines = emu.get_trace().splitlines()
        assert len(lines) == 50
        assert all(line.startswith("x3000: 0FFF  BRnzp x3000") for line in lines)

    def test_trace_history_default_is_bounded(self):
        emu = LC3Emulator(config=EmulatorConfig(trace=True))
        emu.mem.load_words([0x0FFF], 0x3000)
        emu.run(max_steps=TRACE_HISTORY + 500)
        assert len(emu.get_trace().splitlines()) == TRACE_HISTORY

    def test_console_error_is_fatal(self, program):
        emu = program([0xF020, 0xF025])  # GETC with no input queued
        with pytest.raises(ConsoleIOError):
            emu.run()
        assert emu.halted
        assert isinstance(emu.fault, ConsoleIOError)

    def test_reset(self, program):
        emu = program([0xF025])
        emu.add_breakpoint(0x3000)
        emu.run()
        emu.run()
        emu.reset()
        assert emu.state is MachineState.RUNNING
        assert emu.regs.PC == 0x3000
        assert emu.mem.peek(0x3000) == 0
        assert emu.instructions == 0
        assert emu.breakpoints == set()

    def test_dump_state(self, program):
        emu = program([0x8000])
        with pytest.raises(IllegalOpcode):
            emu.step()
        text = emu.dump_state()
        assert "state=HALTED" in text
        assert "fault: Illegal instruction x8000 at x3000" in text

    def test_default_devices(self):
        emu = LC3Emulator()
        emu.mem.load_words([0xF025], 0x3000)
        emu.run()
        assert emu.output.output == b"HALT\n"
