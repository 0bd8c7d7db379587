"""Tests for the NibbleVM machine: fetch cycle, ALU, control flow and the CPU interface."""

import logging

import pytest

from nibblevm.cpu.cpu import CPUFactory
from nibblevm.cpu.machine import Machine
from nibblevm.exceptions import CapacityExceededError, ProgramParseError, UnknownVariantException
from nibblevm.isa.nv_isa import Fault, Flag
from nibblevm.isa.nv_registers import NV_REG_A, NV_REG_F, NV_REG_PC, NV_REG_SP
from nibblevm.isa.variant import NV32, NV256

ORIGIN = 0xF


def run_program(program, steps, variant=NV256):
    machine = Machine(variant)
    machine.load(program)
    for _ in range(steps):
        machine.step()
    return machine


class TestScenarios:
    """End-to-end programs with known results."""

    def test_load_immediate_then_push(self):
        machine = run_program([0xA, 0x5, 0x0, 0x1], 2)
        assert machine.A == 5
        assert machine.memory[0] == 5
        assert machine.SP == 1

    def test_immediate_add_of_fifteen_truncates_to_zero(self):
        """0 + 15 is 15, which is not above 15, and 15 mod 15 is 0."""
        machine = run_program([0xD, 0xF], 1)
        assert machine.A == 0
        assert machine.flag(Flag.CARRY) == 0

    def test_jump_to_origin_loops_forever(self):
        machine = run_program([0xB, 0x0], 1)
        assert machine.PC == ORIGIN
        for _ in range(10):
            machine.step()
        assert machine.PC == ORIGIN
        assert (machine.A, machine.B, machine.C, machine.SP) == (0, 0, 0, 0)
        assert machine.F == [0, 0, 0, 0]

    def test_counter_program(self):
        """ADDI 1, PUSH A, JMP 0 pushes 1, 2, 3, ... onto the stack."""
        machine = run_program([0xD, 0x1, 0x0, 0x1, 0xB, 0x0], 9)
        assert machine.memory[:3] == [1, 2, 3]
        assert machine.SP == 3
        assert machine.A == 3


class TestFetchCycle:
    """PC movement and wrapping."""

    def test_new_machine_starts_at_origin(self):
        machine = Machine()
        assert machine.PC == ORIGIN
        assert machine.capacity == 256
        assert len(machine.memory) == 256

    @pytest.mark.parametrize('variant', [NV256, NV32])
    def test_pc_advances_two_cells_per_step(self, variant):
        machine = Machine(variant)
        for _ in range(200):
            machine.step()
        assert machine.PC == (ORIGIN + 2 * 200) % variant.capacity
        assert machine.cycles == 200

    def test_fetch_returns_pair_and_advances(self):
        machine = Machine()
        machine.load([0x3, 0x9])
        assert machine.fetch() == (0x3, 0x9)
        assert machine.PC == ORIGIN + 2

    def test_pair_straddling_end_of_memory_wraps(self):
        machine = Machine(NV32)
        machine.memory[31] = 0xA
        machine.memory[0] = 0x7
        machine.PC = 31
        machine.step()
        assert machine.A == 7
        assert machine.PC == 1

    def test_step_wraps_out_of_range_pc(self):
        machine = Machine()
        machine.load([0xA, 0x4])
        machine.PC = 256 + ORIGIN
        machine.step()
        assert machine.A == 4
        assert machine.PC == ORIGIN + 2


class TestArithmetic:
    """Add, subtract and the mod 15 truncation."""

    def test_add_memory(self):
        machine = run_program([0xA, 0x7, 0x2, 0x3, 0xA, 0x4, 0x4, 0x3], 4)
        assert machine.A == 11
        assert machine.flag(Flag.CARRY) == 0

    def test_add_immediate_with_carry(self):
        machine = run_program([0xA, 0x9, 0xD, 0x9], 2)
        assert machine.flag(Flag.CARRY) == 1
        assert machine.A == 3  # 18 mod 15

    def test_sum_of_fifteen_skips_to_zero(self):
        machine = run_program([0xA, 0xE, 0xD, 0x1], 2)
        assert machine.A == 0
        assert machine.flag(Flag.CARRY) == 0

    def test_subtract_with_borrow(self):
        machine = run_program([0xA, 0x3, 0x5, 0x5], 2)
        assert machine.flag(Flag.CARRY) == 1
        assert machine.flag(Flag.NEGATIVE) == 1
        assert machine.A == 13  # -2 mod 15

    def test_subtract_clears_borrow_flags(self):
        machine = run_program([0xA, 0x3, 0x5, 0x5, 0xE, 0x1], 3)
        assert machine.A == 12
        assert machine.flag(Flag.CARRY) == 0
        assert machine.flag(Flag.NEGATIVE) == 0

    def test_add_and_subtract_never_produce_fifteen(self):
        machine = Machine()
        for opcode in (0xD, 0x5, 0xE):
            for a in range(16):
                for value in range(16):
                    machine.A = a
                    machine.execute(opcode, value)
                    assert 0 <= machine.A <= 14

    def test_register_adds_on_nv256(self):
        # LDI 9; SWP A, B; LDI 8; ADD A, B
        machine = run_program([0xA, 0x9, 0x0, 0x5, 0xA, 0x8, 0x0, 0xA], 4)
        assert machine.B == 9
        assert machine.A == 2  # 17 mod 15
        assert machine.flag(Flag.CARRY) == 1

    def test_add_c(self):
        machine = Machine()
        machine.A, machine.C = 4, 6
        machine.execute(0x0, 0xB)
        assert machine.A == 10
        assert machine.last_fault is None


class TestLogic:
    """Bitwise operations on A."""

    def test_and(self):
        assert run_program([0xA, 0b1010, 0x6, 0b1100], 2).A == 0b1000

    def test_xor(self):
        assert run_program([0xA, 0xA, 0x7, 0xF], 2).A == 0x5

    def test_or(self):
        assert run_program([0xA, 0x8, 0x8, 0x3], 2).A == 0xB

    def test_not_is_four_bit_complement(self):
        assert run_program([0xA, 0b1010, 0x9, 0x0], 2).A == 0b0101
        assert run_program([0x9, 0x0], 1).A == 0xF


class TestLoadStoreCompare:
    """Memory access and comparisons."""

    def test_load_from_memory(self):
        machine = Machine()
        machine.load([0x1, 0x5])
        machine.memory[5] = 9
        machine.step()
        assert machine.A == 9

    def test_store_to_memory(self):
        machine = run_program([0xA, 0xC, 0x2, 0x4], 2)
        assert machine.memory[4] == 0xC

    def test_compare_sets_and_clears_equal(self):
        machine = run_program([0xA, 0x5, 0x3, 0x5], 2)
        assert machine.flag(Flag.EQUAL) == 1
        machine.execute(0x3, 0x4)
        assert machine.flag(Flag.EQUAL) == 0

    def test_opcode_f_duplicates_compare(self):
        """0xF behaves exactly like 0x3 and reports no diagnostic."""
        machine = run_program([0xA, 0x6, 0xF, 0x6], 2)
        assert machine.flag(Flag.EQUAL) == 1
        assert machine.last_fault is None
        machine.execute(0xF, 0x2)
        assert machine.flag(Flag.EQUAL) == 0


class TestControlFlow:
    """Jumps, SP loads, swaps and conditional skips."""

    def test_jump_is_relative_to_origin(self):
        machine = run_program([0xB, 0x4], 1)
        assert machine.PC == ORIGIN + 4

    def test_load_sp(self):
        assert run_program([0xC, 0x7], 1).SP == 7

    def test_swaps(self):
        machine = run_program([0xA, 0x3, 0x0, 0x5], 2)
        assert (machine.A, machine.B) == (0, 3)
        machine.step()  # SWP B, C from zeroed memory is a NOP
        machine.execute(0x0, 0x6)
        assert (machine.B, machine.C) == (0, 3)

    def test_skip_on_carry_taken(self):
        # LDI 9; ADDI 9; SKC; LDI 1; LDI 2
        machine = run_program([0xA, 0x9, 0xD, 0x9, 0x0, 0x7, 0xA, 0x1, 0xA, 0x2], 3)
        assert machine.PC == ORIGIN + 8
        machine.step()
        assert machine.A == 2

    def test_skip_on_carry_not_taken(self):
        # LDI 1; SKC; LDI 3
        machine = run_program([0xA, 0x1, 0x0, 0x7, 0xA, 0x3], 2)
        assert machine.PC == ORIGIN + 4
        machine.step()
        assert machine.A == 3

    def test_skip_on_negative(self):
        machine = run_program([0xA, 0x0, 0x5, 0x1, 0x0, 0x8], 3)
        assert machine.PC == ORIGIN + 8

    def test_skip_on_equal(self):
        machine = run_program([0xA, 0x4, 0x3, 0x4, 0x0, 0x9], 3)
        assert machine.PC == ORIGIN + 8

    def test_skip_wraps_pc(self):
        machine = Machine(NV32)
        machine.F[Flag.EQUAL] = 1
        machine.memory[29] = 0x0
        machine.memory[30] = 0x9
        machine.PC = 29
        machine.step()
        assert machine.PC == 1


class TestDiagnostics:
    """Unknown operations are logged no-ops."""

    def test_invalid_secondary_operand(self, caplog):
        machine = Machine()
        machine.load([0x0, 0xC])
        before = machine.snapshot()
        with caplog.at_level(logging.WARNING):
            machine.step()
        registers, cells = machine.snapshot().diff(before)
        assert registers == {'PC'}
        assert not cells
        assert machine.last_fault == Fault.INVALID_OPERAND
        assert machine.flag(Flag.ERROR) == 0
        assert 'Invalid operand: 0xC' in caplog.text

    def test_register_adds_are_invalid_on_nv32(self):
        machine = Machine(NV32)
        machine.A, machine.B = 1, 2
        machine.execute(0x0, 0xA)
        assert machine.A == 1
        assert machine.last_fault == Fault.INVALID_OPERAND

    def test_out_of_table_opcode(self, caplog):
        machine = Machine()
        with caplog.at_level(logging.WARNING):
            machine.execute(0x10, 0x0)
        assert machine.last_fault == Fault.INVALID_OPCODE
        assert 'Invalid opcode' in caplog.text

    def test_fault_cleared_by_next_step(self):
        machine = Machine()
        machine.load([0x0, 0xF, 0x0, 0x0])
        machine.step()
        assert machine.last_fault == Fault.INVALID_OPERAND
        machine.step()
        assert machine.last_fault is None


class TestLifecycle:
    """reset() and load()."""

    def test_reset_zeroes_state_and_requests_halt(self):
        machine = run_program([0xA, 0x5, 0x0, 0x1, 0x0, 0x5], 3)
        machine.reset()
        assert machine.memory == [0] * 256
        assert (machine.A, machine.B, machine.C, machine.SP) == (0, 0, 0, 0)
        assert machine.PC == ORIGIN
        assert machine.F == [0, 0, 0, 0]
        assert machine.cycles == 0
        assert machine.halt_requested

    def test_load_text(self):
        machine = Machine()
        machine.load('0xA\n0x5  # LDI A, 5\n\n0x0\n0x1\n')
        assert machine.memory[ORIGIN : ORIGIN + 4] == [0xA, 0x5, 0x0, 0x1]

    def test_load_overwrites_only_program_cells(self):
        machine = Machine()
        machine.memory[0] = 3
        machine.load([0x1, 0x2, 0x3])
        machine.load([0x9])
        assert machine.memory[0] == 3
        assert machine.memory[ORIGIN : ORIGIN + 3] == [0x9, 0x2, 0x3]

    def test_load_fills_exactly_to_end(self):
        machine = Machine(NV32)
        machine.load([0x7] * 17)
        assert machine.memory[31] == 0x7

    def test_load_too_long_raises_and_leaves_memory(self):
        machine = Machine(NV32)
        with pytest.raises(CapacityExceededError, match='18 nibbles but only 17'):
            machine.load([0x7] * 18)
        assert machine.memory == [0] * 32

    def test_load_rejects_wide_values(self):
        machine = Machine()
        with pytest.raises(ProgramParseError):
            machine.load([0xA, 16])


class TestCPUInterface:
    """Register access through Register objects."""

    def test_read_write_nibble_register(self):
        machine = Machine()
        machine.write_reg(NV_REG_A(), 0x1B)
        assert machine.read_reg(NV_REG_A()) == 0xB

    def test_pointer_registers_wrap_to_capacity(self):
        machine = Machine(NV32)
        machine.write_regs([NV_REG_PC(), NV_REG_SP()], [40, 3])
        assert machine.PC == 8
        assert machine.SP == 3

    def test_flag_register_is_packed(self):
        machine = Machine()
        machine.write_reg(NV_REG_F(), 0b1001)
        assert machine.F == [1, 0, 0, 1]
        assert machine.read_reg(NV_REG_F()) == 0b1001

    def test_get_and_set_cpu_state(self):
        machine = run_program([0xA, 0x5], 1)
        state = machine.get_cpu_state()
        assert {reg.name: value for reg, value in state.items()} == {
            'A': 5,
            'B': 0,
            'C': 0,
            'PC': ORIGIN + 2,
            'SP': 0,
            'F': 0,
        }
        other = Machine()
        other.set_cpu_state(state)
        assert other.get_cpu_state() == state

    def test_factory(self):
        cpu = CPUFactory.create_cpu('nv32')
        assert isinstance(cpu, Machine)
        assert cpu.capacity == 32
        with pytest.raises(UnknownVariantException):
            CPUFactory.create_cpu('z80')
