"""NibbleVM register definitions.

Three 4-bit accumulator-style registers, two pointer registers and the flag
vector. Pointer registers are 8 bits wide so they can index a 256-cell memory.
"""

from nibblevm.isa.register import CondRegister, PointerRegister, Register


class NV_REG_A(Register):
    """A: accumulator, the only register the ALU reads and writes."""

    def __init__(self) -> None:
        self.name = 'A'
        self.reg_id = 0x0
        self.bits = 4
        self.structure = [4]


class NV_REG_B(Register):
    """B: swap/add target."""

    def __init__(self) -> None:
        self.name = 'B'
        self.reg_id = 0x1
        self.bits = 4
        self.structure = [4]


class NV_REG_C(Register):
    """C: swap/add target."""

    def __init__(self) -> None:
        self.name = 'C'
        self.reg_id = 0x2
        self.bits = 4
        self.structure = [4]


class NV_REG_PC(PointerRegister):
    """PC: index of the next instruction pair."""

    def __init__(self) -> None:
        self.name = 'PC'
        self.reg_id = 0x3
        self.bits = 8
        self.structure = [8]


class NV_REG_SP(PointerRegister):
    """SP: upward-growing stack cursor."""

    def __init__(self) -> None:
        self.name = 'SP'
        self.reg_id = 0x4
        self.bits = 8
        self.structure = [8]


class NV_REG_F(CondRegister):
    """F: flag vector packed into a nibble.

    - bit 0: Carry
    - bit 1: Negative
    - bit 2: Equal
    - bit 3: Error
    """

    def __init__(self) -> None:
        self.name = 'F'
        self.reg_id = 0x5
        self.bits = 4
        self.structure = [1, 1, 1, 1]


# Standard state format: [A, B, C, PC, SP, F]
def get_nv_state_format() -> list[Register]:
    """Get the standard NibbleVM register order."""
    return [NV_REG_A(), NV_REG_B(), NV_REG_C(), NV_REG_PC(), NV_REG_SP(), NV_REG_F()]


def name2reg(name: str) -> Register:
    """Convert register name to register object."""
    name = name.upper()
    for reg in get_nv_state_format():
        if reg.name == name:
            return reg
    raise ValueError(f'Unknown NibbleVM register: {name}')
