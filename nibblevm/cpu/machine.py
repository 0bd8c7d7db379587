"""NibbleVM machine.

Owns memory, registers, flags and the stack, and runs one fetch/decode/execute
cycle per step(). Nothing that happens inside a step raises: stack faults set
F[Error], unknown operations are logged and skipped. Either way the fault is
recorded in last_fault until the next step.
"""

import logging
from typing import Callable, Optional, Sequence

from nibblevm.cpu.cpu import CPU
from nibblevm.exceptions import CapacityExceededError
from nibblevm.isa.nv_isa import NIBBLE_MASK, Fault, Flag, Instruction, Opcode, SecondaryOp
from nibblevm.isa.nv_registers import NV_REG_A, NV_REG_B, NV_REG_C, NV_REG_PC, NV_REG_SP, get_nv_state_format
from nibblevm.isa.register import CondRegister, PointerRegister, Register
from nibblevm.isa.variant import DEFAULT_VARIANT, ArchVariant
from nibblevm.program import check_nibbles, parse_program
from nibblevm.state.snapshot import MachineSnapshot
from nibblevm.types import CpuRegisterMap, InstructionPair, Nibble

logger = logging.getLogger(__name__)

_REG_ATTRS = {
    NV_REG_A(): 'A',
    NV_REG_B(): 'B',
    NV_REG_C(): 'C',
    NV_REG_PC(): 'PC',
    NV_REG_SP(): 'SP',
}


class Machine(CPU):
    """A NibbleVM instance.

    Attributes:
        variant (ArchVariant): Constants for this machine.
        memory (list[int]): Nibble cells, index range [0, capacity).
        A, B, C (int): 4-bit registers.
        PC (int): Index of the next instruction pair.
        SP (int): Stack cursor, grows upward from 0.
        F (list[int]): Flags [Carry, Negative, Equal, Error], each 0 or 1.
        halt_requested (bool): Set by reset() and request_halt(), polled by the run driver.
        last_fault (Fault | None): Fault raised by the most recent step.
        cycles (int): Steps executed since the last reset.
    """

    def __init__(self, variant: ArchVariant = DEFAULT_VARIANT) -> None:
        self.variant = variant
        self.halt_requested = False
        self._init_state()

        self._primary: dict[int, Callable[[Nibble], None]] = {
            Opcode.SECONDARY: self._op_secondary,
            Opcode.LDA: self._op_lda,
            Opcode.STA: self._op_sta,
            Opcode.CMP: self._op_cmp,
            Opcode.ADD: lambda v: self._add(self.memory[v]),
            Opcode.SUB: self._sub,
            Opcode.AND: self._op_and,
            Opcode.XOR: self._op_xor,
            Opcode.OR: self._op_or,
            Opcode.NOT: self._op_not,
            Opcode.LDI: self._op_ldi,
            Opcode.JMP: self._op_jmp,
            Opcode.LSP: self._op_lsp,
            Opcode.ADDI: self._add,
            Opcode.SUBI: self._sub,
            # Same behavior as CMP
            Opcode.CMPI: self._op_cmp,
        }
        self._secondary: dict[int, Callable[[], None]] = {
            SecondaryOp.NOP: lambda: None,
            SecondaryOp.PUSH_A: self._op_push_a,
            SecondaryOp.POP_A: self._op_pop_a,
            SecondaryOp.PUSH_PC: self._op_push_pc,
            SecondaryOp.POP_PC: self._op_pop_pc,
            SecondaryOp.SWAP_AB: self._op_swap_ab,
            SecondaryOp.SWAP_BC: self._op_swap_bc,
            SecondaryOp.SKIP_CARRY: lambda: self._skip_if(Flag.CARRY),
            SecondaryOp.SKIP_NEGATIVE: lambda: self._skip_if(Flag.NEGATIVE),
            SecondaryOp.SKIP_EQUAL: lambda: self._skip_if(Flag.EQUAL),
        }
        if variant.register_adds:
            self._secondary[SecondaryOp.ADD_B] = lambda: self._add(self.B)
            self._secondary[SecondaryOp.ADD_C] = lambda: self._add(self.C)

    def _init_state(self) -> None:
        self.memory: list[Nibble] = [0] * self.variant.capacity
        self.A = 0
        self.B = 0
        self.C = 0
        self.PC = self.variant.program_origin
        self.SP = 0
        self.F = [0, 0, 0, 0]
        self.last_fault: Optional[Fault] = None
        self.cycles = 0

    @property
    def capacity(self) -> int:
        return self.variant.capacity

    @property
    def origin(self) -> int:
        return self.variant.program_origin

    # Lifecycle

    def reset(self) -> None:
        """Zero all state, put PC back at the origin and ask the run driver to stop."""
        self._init_state()
        self.halt_requested = True
        logger.debug('Machine reset')

    def request_halt(self) -> None:
        self.halt_requested = True

    def load(self, program: str | Sequence[int]) -> None:
        """Write a program into memory starting at the origin.

        Args:
            program: Program text (one literal per line) or a sequence of nibbles

        Raises:
            ProgramParseError: the program contains something that is not a nibble
            CapacityExceededError: the program does not fit between the origin and the end of memory
        """
        nibbles = parse_program(program) if isinstance(program, str) else check_nibbles(program)
        available = self.variant.program_space
        if len(nibbles) > available:
            raise CapacityExceededError(len(nibbles), available)
        self.memory[self.origin : self.origin + len(nibbles)] = nibbles
        logger.debug(f'Loaded {len(nibbles)} nibbles at 0x{self.origin:02x}')

    # Fetch / execute

    def fetch(self) -> InstructionPair:
        opcode = self.memory[self.PC]
        self.PC = (self.PC + 1) % self.capacity
        operand = self.memory[self.PC]
        self.PC = (self.PC + 1) % self.capacity
        return opcode, operand

    def step(self) -> None:
        self.last_fault = None
        self.PC %= self.capacity
        address = self.PC
        opcode, operand = self.fetch()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f'0x{address:02x}: {Instruction(opcode, operand).mnemonic}')
        self.execute(opcode, operand)
        self.cycles += 1

    def execute(self, opcode: Nibble, operand: Nibble) -> None:
        handler = self._primary.get(opcode)
        if handler is None:
            self._diagnostic(Fault.INVALID_OPCODE, f'Invalid opcode: {opcode!r}')
            return
        handler(operand & NIBBLE_MASK)

    def _op_secondary(self, operand: Nibble) -> None:
        handler = self._secondary.get(operand)
        if handler is None:
            self._diagnostic(Fault.INVALID_OPERAND, f'Invalid operand: 0x{operand:X}')
            return
        handler()

    def _diagnostic(self, fault: Fault, message: str) -> None:
        logger.warning(message)
        self.last_fault = fault

    def _stack_fault(self, fault: Fault) -> None:
        self.F[Flag.ERROR] = 1
        self._diagnostic(fault, f'{fault.value} at SP=0x{self.SP:02x}')

    # Arithmetic and logic

    def _add(self, value: Nibble) -> None:
        total = self.A + value
        self.F[Flag.CARRY] = int(total > NIBBLE_MASK)
        self.A = total % self.variant.arith_modulus

    def _sub(self, value: Nibble) -> None:
        difference = self.A - value
        borrow = int(difference < 0)
        self.F[Flag.CARRY] = borrow
        self.F[Flag.NEGATIVE] = borrow
        # Python's floored modulo keeps the result non-negative
        self.A = difference % self.variant.arith_modulus

    def _op_cmp(self, operand: Nibble) -> None:
        self.F[Flag.EQUAL] = int(self.A == operand)

    def _op_and(self, operand: Nibble) -> None:
        self.A &= operand

    def _op_xor(self, operand: Nibble) -> None:
        self.A ^= operand

    def _op_or(self, operand: Nibble) -> None:
        self.A |= operand

    def _op_not(self, _: Nibble) -> None:
        self.A ^= NIBBLE_MASK

    # Loads, stores and control

    def _op_lda(self, operand: Nibble) -> None:
        self.A = self.memory[operand]

    def _op_sta(self, operand: Nibble) -> None:
        self.memory[operand] = self.A

    def _op_ldi(self, operand: Nibble) -> None:
        self.A = operand

    def _op_jmp(self, operand: Nibble) -> None:
        self.PC = (operand + self.origin) % self.capacity

    def _op_lsp(self, operand: Nibble) -> None:
        self.SP = operand % self.capacity

    def _skip_if(self, flag: Flag) -> None:
        if self.F[flag] == 1:
            self.PC = (self.PC + self.variant.skip_distance) % self.capacity

    def _op_swap_ab(self) -> None:
        self.A, self.B = self.B, self.A

    def _op_swap_bc(self) -> None:
        self.B, self.C = self.C, self.B

    # Stack

    def _push(self, value: Nibble) -> bool:
        if self.SP >= self.variant.stack_boundary:
            self._stack_fault(Fault.STACK_OVERFLOW)
            return False
        self.memory[self.SP] = value & NIBBLE_MASK
        self.SP += 1
        return True

    def _pop(self) -> Optional[Nibble]:
        if self.SP == 0:
            self._stack_fault(Fault.STACK_UNDERFLOW)
            return None
        self.SP -= 1
        return self.memory[self.SP]

    def _op_push_a(self) -> None:
        self._push(self.A)

    def _op_pop_a(self) -> None:
        value = self._pop()
        if value is not None:
            self.A = value

    def _op_push_pc(self) -> None:
        # Stored relative to the origin, the same way JMP addresses code
        self._push((self.PC - self.origin) & NIBBLE_MASK)

    def _op_pop_pc(self) -> None:
        value = self._pop()
        if value is not None:
            self.PC = (value + self.origin) % self.capacity

    # Read accessors

    def flag(self, flag: Flag) -> int:
        return self.F[flag]

    def snapshot(self) -> MachineSnapshot:
        return MachineSnapshot(
            variant=self.variant.name,
            registers={name: getattr(self, name) for name in _REG_ATTRS.values()},
            flags=self.F,
            memory=self.memory,
            cycles=self.cycles,
            fault=self.last_fault.name if self.last_fault is not None else None,
        )

    # CPU interface

    def read_reg(self, reg: Register) -> int:
        if isinstance(reg, CondRegister):
            return sum(bit << i for i, bit in enumerate(self.F))
        return getattr(self, _REG_ATTRS[reg])

    def write_reg(self, reg: Register, value: int) -> None:
        if isinstance(reg, CondRegister):
            self.F = [(value >> i) & 1 for i in range(len(Flag))]
        elif isinstance(reg, PointerRegister):
            setattr(self, _REG_ATTRS[reg], value % self.capacity)
        else:
            setattr(self, _REG_ATTRS[reg], value & reg.mask)

    def get_cpu_state(self) -> CpuRegisterMap:
        return {reg: self.read_reg(reg) for reg in get_nv_state_format()}
