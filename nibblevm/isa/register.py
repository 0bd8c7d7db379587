from abc import ABC, abstractmethod

from nibblevm.serialization import SerializableMixin


class Register(ABC, SerializableMixin):
    """Abstract base class for NibbleVM registers. Only subclasses should be instantiated."""

    name: str
    reg_id: int
    bits: int
    structure: list[int]

    @abstractmethod
    def __init__(self) -> None:
        pass

    @property
    def mask(self) -> int:
        return (1 << self.bits) - 1

    def __hash__(self) -> int:
        return hash(self.reg_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Register):
            return NotImplemented
        return self.reg_id == other.reg_id

    def __ne__(self, other: object) -> bool:
        return not (self == other)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}()'


class CondRegister(Register):
    """Abstract base class for condition flag registers."""

    @abstractmethod
    def __init__(self) -> None:
        pass


class PointerRegister(Register):
    """Abstract base class for registers holding a memory index rather than a nibble."""

    @abstractmethod
    def __init__(self) -> None:
        pass
