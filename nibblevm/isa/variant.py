"""Architecture variants.

The 32- and 256-cell machines differ only in their constants, so one engine is
configured by an ArchVariant instead of keeping a copy per memory size.
"""

from dataclasses import dataclass

from nibblevm.exceptions import UnknownVariantException

PROGRAM_ORIGIN = 0xF


@dataclass(frozen=True)
class ArchVariant:
    """Constants that parameterize a NibbleVM machine.

    Attributes:
        name: Variant key used by the CLI and CPUFactory.
        capacity: Number of memory cells.
        stack_boundary: SP value at which a push is refused.
        program_origin: Load address and base of absolute jumps.
        arith_modulus: Modulus used to truncate add/subtract results.
        skip_distance: Extra cells a taken conditional skip advances PC by.
        register_adds: Whether secondary 0xA/0xB (A += B, A += C) are decoded.
    """

    name: str
    capacity: int
    stack_boundary: int = 0xE
    program_origin: int = PROGRAM_ORIGIN
    arith_modulus: int = 0xF
    skip_distance: int = 2
    register_adds: bool = False

    def __post_init__(self) -> None:
        if self.capacity <= self.program_origin:
            raise ValueError(f'Capacity {self.capacity} leaves no room after origin {self.program_origin:#x}')
        if not 0 < self.stack_boundary <= self.capacity:
            raise ValueError(f'Stack boundary {self.stack_boundary:#x} outside memory')
        if self.arith_modulus < 1:
            raise ValueError('Arithmetic modulus must be positive')

    @property
    def program_space(self) -> int:
        """Number of cells available to a loaded program."""
        return self.capacity - self.program_origin


NV256 = ArchVariant(name='nv256', capacity=256, register_adds=True)
NV32 = ArchVariant(name='nv32', capacity=32)

VARIANTS: dict[str, ArchVariant] = {v.name: v for v in (NV256, NV32)}

DEFAULT_VARIANT = NV256


def get_variant(name: str) -> ArchVariant:
    try:
        return VARIANTS[name.lower()]
    except KeyError:
        raise UnknownVariantException(name) from None
