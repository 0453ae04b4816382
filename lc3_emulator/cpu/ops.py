"""
LC-3 Emulator - Instruction Handlers

Handler signature: handler(instruction, regs, mem)

Handlers run after the fetch increment, so regs.PC already points at the
next instruction and every PC-relative address is computed from it.
Handlers that write a general register set N/Z/P from the value written;
stores, branches and jumps leave the flags alone.
"""

from typing import Callable, Dict

from . import alu
from .decoder import (
    OP_BR, OP_ADD, OP_LD, OP_ST, OP_JSR, OP_AND, OP_LDR, OP_STR,
    OP_NOT, OP_LDI, OP_STI, OP_JMP, OP_LEA, OP_TRAP,
)
from .regs import R7


# ── Operate ──

def op_add(instruction: int, regs, mem):
    """ADD DR, SR1, SR2 | ADD DR, SR1, #imm5"""
    a = regs.R[alu.sr1(instruction)]
    if alu.imm_flag(instruction):
        b = alu.imm5(instruction)
    else:
        b = regs.R[alu.sr2(instruction)]
    regs.set_and_update(alu.dr(instruction), alu.add16(a, b))


def op_and(instruction: int, regs, mem):
    """AND DR, SR1, SR2 | AND DR, SR1, #imm5"""
    a = regs.R[alu.sr1(instruction)]
    if alu.imm_flag(instruction):
        b = alu.imm5(instruction)
    else:
        b = regs.R[alu.sr2(instruction)]
    regs.set_and_update(alu.dr(instruction), a & b)


def op_not(instruction: int, regs, mem):
    """NOT DR, SR"""
    regs.set_and_update(alu.dr(instruction), ~regs.R[alu.sr1(instruction)])


# ── Control ──

def op_br(instruction: int, regs, mem):
    """BRnzp label - taken when any selected flag is currently set.

    BR with nzp=000 never branches (it is a NOP); nzp=111 always does.
    """
    if alu.nzp(instruction) & regs.COND:
        regs.set_pc(regs.PC + alu.pc_offset9(instruction))


def op_jmp(instruction: int, regs, mem):
    """JMP BaseR (RET is JMP R7)"""
    regs.set_pc(regs.R[alu.base_r(instruction)])


def op_jsr(instruction: int, regs, mem):
    """JSR label | JSRR BaseR

    The base register is read before R7 is overwritten, so JSRR R7
    jumps to the old R7 value.
    """
    return_addr = regs.PC
    if alu.jsr_flag(instruction):
        target = regs.PC + alu.pc_offset11(instruction)
    else:
        target = regs.R[alu.base_r(instruction)]
    regs.R[R7] = return_addr
    regs.set_pc(target)


# ── Data movement ──

def op_ld(instruction: int, regs, mem):
    """LD DR, label"""
    addr = alu.add16(regs.PC, alu.pc_offset9(instruction))
    regs.set_and_update(alu.dr(instruction), mem.read(addr))


def op_ldi(instruction: int, regs, mem):
    """LDI DR, label - the word at PC+offset holds the address to load"""
    pointer = alu.add16(regs.PC, alu.pc_offset9(instruction))
    regs.set_and_update(alu.dr(instruction), mem.read(mem.read(pointer)))


def op_ldr(instruction: int, regs, mem):
    """LDR DR, BaseR, #offset6"""
    addr = alu.add16(regs.R[alu.base_r(instruction)], alu.offset6(instruction))
    regs.set_and_update(alu.dr(instruction), mem.read(addr))


def op_lea(instruction: int, regs, mem):
    """LEA DR, label - no memory access"""
    regs.set_and_update(alu.dr(instruction),
                        alu.add16(regs.PC, alu.pc_offset9(instruction)))


def op_st(instruction: int, regs, mem):
    """ST SR, label"""
    addr = alu.add16(regs.PC, alu.pc_offset9(instruction))
    mem.write(addr, regs.R[alu.dr(instruction)])


def op_sti(instruction: int, regs, mem):
    """STI SR, label"""
    pointer = alu.add16(regs.PC, alu.pc_offset9(instruction))
    mem.write(mem.read(pointer), regs.R[alu.dr(instruction)])


def op_str(instruction: int, regs, mem):
    """STR SR, BaseR, #offset6"""
    addr = alu.add16(regs.R[alu.base_r(instruction)], alu.offset6(instruction))
    mem.write(addr, regs.R[alu.dr(instruction)])


def build_dispatch(trap_handler: Callable) -> Dict[int, Callable]:
    """Build the opcode -> handler table.

    TRAP needs console devices, so its handler is supplied by the caller
    (see traps.TrapUnit.execute). RTI and RES are absent on purpose.
    """
    return {
        OP_BR:   op_br,
        OP_ADD:  op_add,
        OP_LD:   op_ld,
        OP_ST:   op_st,
        OP_JSR:  op_jsr,
        OP_AND:  op_and,
        OP_LDR:  op_ldr,
        OP_STR:  op_str,
        OP_NOT:  op_not,
        OP_LDI:  op_ldi,
        OP_STI:  op_sti,
        OP_JMP:  op_jmp,
        OP_LEA:  op_lea,
        OP_TRAP: trap_handler,
    }
