from abc import ABC, abstractmethod
from typing import Sequence

from nibblevm.isa.register import Register
from nibblevm.types import CpuRegisterMap, Nibble


class CPU(ABC):
    @abstractmethod
    def __init__(self):
        pass

    @abstractmethod
    def write_reg(self, reg: Register, value: int) -> None:
        """Write value to register.

        Args:
            reg: Register to write to
            value: Value to write, truncated to what the register can hold
        """

    def write_regs(self, regs: Sequence[Register], values: Sequence[int] | int) -> None:
        """Write values to multiple registers.

        Args:
            regs: List of registers to write to
            values: List of values to write, or single value to write to all registers
        """
        seq_values: Sequence[int]
        if isinstance(values, int):
            seq_values = tuple([values for _ in regs])
        else:
            seq_values = values
        for reg, val in zip(regs, seq_values, strict=True):
            self.write_reg(reg, val)

    @abstractmethod
    def read_reg(self, reg: Register) -> int:
        """Read value from register.

        Args:
            reg: Register to read from

        Returns:
            Value read from the register
        """

    @abstractmethod
    def get_cpu_state(self) -> CpuRegisterMap:
        """Get current CPU register state.

        Returns:
            Dictionary mapping registers to their current values
        """

    def set_cpu_state(self, cpu_state: CpuRegisterMap) -> None:
        for reg, value in cpu_state.items():
            self.write_reg(reg, value)

    @abstractmethod
    def execute(self, opcode: Nibble, operand: Nibble) -> None:
        """Execute one already fetched instruction pair.

        Args:
            opcode: Primary opcode nibble
            operand: Operand nibble
        """

    @abstractmethod
    def step(self) -> None:
        """Fetch and execute exactly one instruction pair."""


class CPUFactory:
    @staticmethod
    def create_cpu(arch: str) -> CPU:
        from nibblevm.cpu.machine import Machine  # noqa: PLC0415
        from nibblevm.isa.variant import get_variant  # noqa: PLC0415

        return Machine(get_variant(arch))
