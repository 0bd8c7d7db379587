"""Type aliases for NibbleVM.

This module contains the type aliases used throughout the codebase
to make register and memory signatures more readable.
"""

from typing import TypeAlias

from nibblevm.isa.register import Register

# A single 4-bit machine word (0-15)
Nibble: TypeAlias = int

# Index into machine memory
Address: TypeAlias = int

# CPU state representation as register-value mapping
CpuRegisterMap: TypeAlias = dict[Register, int]

# Fetched (opcode, operand) pair
InstructionPair: TypeAlias = tuple[Nibble, Nibble]
