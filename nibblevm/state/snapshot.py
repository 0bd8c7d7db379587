"""Read-only copies of machine state handed to presenters."""

from typing import Optional

from nibblevm.isa.nv_isa import Flag
from nibblevm.serialization import SerializableMixin
from nibblevm.types import Address, Nibble

_FLAG_LABELS = {Flag.CARRY: 'CAR', Flag.NEGATIVE: 'NEG', Flag.EQUAL: 'EQU', Flag.ERROR: 'ERR'}

REGISTER_FIELDS = ('A', 'B', 'C', 'PC', 'SP')


class MachineSnapshot(SerializableMixin):
    """Architectural state of a Machine between two steps.

    Attributes:
        variant (str): Name of the ArchVariant the machine runs.
        A, B, C (int): General purpose registers.
        PC, SP (int): Program counter and stack pointer.
        F (list[int]): Flag vector [Carry, Negative, Equal, Error].
        memory (list[int]): Copy of every memory cell.
        cycles (int): Steps executed since the last reset.
        fault (str | None): Name of the fault raised by the last step, if any.
    """

    variant: str
    A: int
    B: int
    C: int
    PC: int
    SP: int
    F: list[int]
    memory: list[Nibble]
    cycles: int
    fault: Optional[str]

    def __init__(
        self,
        variant: str,
        registers: dict[str, int],
        flags: list[int],
        memory: list[Nibble],
        cycles: int = 0,
        fault: Optional[str] = None,
    ) -> None:
        self.variant = variant
        for name in REGISTER_FIELDS:
            setattr(self, name, registers[name])
        self.F = list(flags)
        self.memory = list(memory)
        self.cycles = cycles
        self.fault = fault

    def flag(self, flag: Flag) -> int:
        return self.F[flag]

    def diff(self, other: 'MachineSnapshot') -> tuple[frozenset[str], frozenset[Address]]:
        """Obtains the difference between two snapshots.

        Args:
            other: The snapshot to compare against, usually the one taken before a step.

        Returns:
            Names of the registers that differ ('F' for any flag) and the
            addresses of the memory cells that differ.
        """
        if len(self.memory) != len(other.memory):
            raise ValueError('Cannot diff snapshots of machines with different capacities')
        registers = {name for name in REGISTER_FIELDS if getattr(self, name) != getattr(other, name)}
        if self.F != other.F:
            registers.add('F')
        cells = {i for i, (mine, theirs) in enumerate(zip(self.memory, other.memory)) if mine != theirs}
        return frozenset(registers), frozenset(cells)

    def format_memory(self, start: Address = 0, end: Optional[Address] = None) -> list[str]:
        """One line per cell: address, the four bits, and PC/SP markers."""
        if end is None:
            end = len(self.memory)
        lines = []
        for address in range(start, end):
            line = f'0x{address:02x} {self.memory[address]:04b}'
            if address == self.PC:
                line += ' <-- PC'
            if address == self.SP:
                line += ' <-- SP'
            lines.append(line)
        return lines

    def __str__(self) -> str:
        flags = ' '.join(f'{_FLAG_LABELS[flag]}={self.F[flag]}' for flag in Flag)
        return (
            f'A=0x{self.A:X} B=0x{self.B:X} C=0x{self.C:X} '
            f'PC=0x{self.PC:02x} SP=0x{self.SP:02x} {flags}'
        )

    def __repr__(self) -> str:
        return f'MachineSnapshot(variant={self.variant!r}, cycles={self.cycles}, {self})'

    def __eq__(self, value: object) -> bool:
        if not isinstance(value, MachineSnapshot):
            return NotImplemented
        return self.__dict__ == value.__dict__

    def __ne__(self, value: object) -> bool:
        if not isinstance(value, MachineSnapshot):
            return NotImplemented
        return not self.__eq__(value)

    def __hash__(self) -> int:
        registers = tuple(getattr(self, name) for name in REGISTER_FIELDS)
        return hash((self.variant, self.cycles, registers, tuple(self.F), tuple(self.memory)))
