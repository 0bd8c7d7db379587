"""NibbleVM Instruction Set.

Every instruction is a pair of nibbles stored in two consecutive memory cells:
an opcode followed by an operand V. When the opcode is 0x0 the operand selects
a secondary, operand-less operation instead.

Primary instructions:
0x0: (secondary)    - dispatch on V
0x1: LDA [V]        - A = memory[V]
0x2: STA [V]        - memory[V] = A
0x3: CMP A, V       - F[Equal] = A == V
0x4: ADD A, [V]     - A = (A + memory[V]) mod 15, carry in F[Carry]
0x5: SUB A, V       - A = (A - V) mod 15, borrow in F[Carry] and F[Negative]
0x6: AND A, V       - A = A & V
0x7: XOR A, V       - A = A ^ V
0x8: OR  A, V       - A = A | V
0x9: NOT A          - A = ~A (4 bits)
0xA: LDI A, V       - A = V
0xB: JMP V          - PC = origin + V
0xC: LSP V          - SP = V
0xD: ADDI A, V      - A = (A + V) mod 15, carry in F[Carry]
0xE: SUBI A, V      - same as SUB
0xF: CMPI A, V      - same as CMP

Secondary instructions (opcode 0x0):
0x0: NOP
0x1: PUSH A         0x2: POP A
0x3: PUSH PC        0x4: POP PC
0x5: SWP A, B       0x6: SWP B, C
0x7: SKC            0x8: SKN            0x9: SKE
0xA: ADD A, B       0xB: ADD A, C       (only on variants with register adds)
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator, Optional, Sequence

from nibblevm.types import Address, Nibble

NIBBLE_MASK = 0xF


class Opcode(IntEnum):
    """Primary opcodes."""

    SECONDARY = 0x0
    LDA = 0x1
    STA = 0x2
    CMP = 0x3
    ADD = 0x4
    SUB = 0x5
    AND = 0x6
    XOR = 0x7
    OR = 0x8
    NOT = 0x9
    LDI = 0xA
    JMP = 0xB
    LSP = 0xC
    ADDI = 0xD
    SUBI = 0xE
    CMPI = 0xF


class SecondaryOp(IntEnum):
    """Secondary opcodes, selected by the operand of opcode 0x0."""

    NOP = 0x0
    PUSH_A = 0x1
    POP_A = 0x2
    PUSH_PC = 0x3
    POP_PC = 0x4
    SWAP_AB = 0x5
    SWAP_BC = 0x6
    SKIP_CARRY = 0x7
    SKIP_NEGATIVE = 0x8
    SKIP_EQUAL = 0x9
    ADD_B = 0xA
    ADD_C = 0xB


class Flag(IntEnum):
    """Indices into the flag vector F."""

    CARRY = 0
    NEGATIVE = 1
    EQUAL = 2
    ERROR = 3


class Fault(Enum):
    """Architectural anomalies. None of them stops the machine."""

    STACK_OVERFLOW = 'stack overflow'
    STACK_UNDERFLOW = 'stack underflow'
    INVALID_OPERAND = 'invalid secondary operand'
    INVALID_OPCODE = 'invalid opcode'


_SECONDARY_MNEMONICS = {
    SecondaryOp.NOP: 'NOP',
    SecondaryOp.PUSH_A: 'PUSH A',
    SecondaryOp.POP_A: 'POP A',
    SecondaryOp.PUSH_PC: 'PUSH PC',
    SecondaryOp.POP_PC: 'POP PC',
    SecondaryOp.SWAP_AB: 'SWP A, B',
    SecondaryOp.SWAP_BC: 'SWP B, C',
    SecondaryOp.SKIP_CARRY: 'SKC',
    SecondaryOp.SKIP_NEGATIVE: 'SKN',
    SecondaryOp.SKIP_EQUAL: 'SKE',
    SecondaryOp.ADD_B: 'ADD A, B',
    SecondaryOp.ADD_C: 'ADD A, C',
}

# {} is replaced by the operand
_PRIMARY_MNEMONICS = {
    Opcode.LDA: 'LDA [{}]',
    Opcode.STA: 'STA [{}]',
    Opcode.CMP: 'CMP A, {}',
    Opcode.ADD: 'ADD A, [{}]',
    Opcode.SUB: 'SUB A, {}',
    Opcode.AND: 'AND A, {}',
    Opcode.XOR: 'XOR A, {}',
    Opcode.OR: 'OR A, {}',
    Opcode.NOT: 'NOT A',
    Opcode.LDI: 'LDI A, {}',
    Opcode.JMP: 'JMP {}',
    Opcode.LSP: 'LSP {}',
    Opcode.ADDI: 'ADDI A, {}',
    Opcode.SUBI: 'SUBI A, {}',
    Opcode.CMPI: 'CMPI A, {}',
}


@dataclass(frozen=True)
class Instruction:
    """Represents a decoded (opcode, operand) pair."""

    opcode: int
    operand: int = 0

    @property
    def is_secondary(self) -> bool:
        return self.opcode == Opcode.SECONDARY

    @property
    def secondary(self) -> Optional[SecondaryOp]:
        """The secondary operation, or None if this is not a known secondary instruction."""
        if not self.is_secondary:
            return None
        try:
            return SecondaryOp(self.operand)
        except ValueError:
            return None

    @property
    def mnemonic(self) -> str:
        """Get the instruction mnemonic."""
        if self.is_secondary:
            secondary = self.secondary
            if secondary is None:
                return f'.INVALID 0x0, 0x{self.operand:X}'
            return _SECONDARY_MNEMONICS[secondary]
        if not 0 <= self.opcode <= NIBBLE_MASK:
            return f'.INVALID 0x{self.opcode:X}, 0x{self.operand:X}'
        return _PRIMARY_MNEMONICS[Opcode(self.opcode)].format(f'0x{self.operand:X}')

    def to_bytes(self) -> bytes:
        """Encode as two separate nibbles/bytes: opcode, operand."""
        return bytes([self.opcode & NIBBLE_MASK, self.operand & NIBBLE_MASK])

    @classmethod
    def from_bytes(cls, data: bytes) -> 'Instruction':
        """Decode instruction from bytes."""
        if len(data) < 2:
            raise ValueError('Instruction needs an opcode and an operand nibble')
        return cls(data[0] & NIBBLE_MASK, data[1] & NIBBLE_MASK)


def decode_hex_string(hex_str: str) -> Instruction:
    """Decode a two character hex string to an instruction.

    Library helper for callers that hold instructions as text; the inverse of encode_instruction.

    Args:
        hex_str: Hex string where each character is a nibble, e.g. 'A5' for LDI A, 0x5.
                An optional 0x prefix and spaces are ignored.

    Returns:
        Decoded Instruction
    """
    hex_str = hex_str.replace(' ', '')
    if hex_str.lower().startswith('0x'):
        hex_str = hex_str[2:]
    if len(hex_str) != 2:
        raise ValueError(f'Expected two nibbles, got {hex_str!r}')

    data = bytes([int(c, 16) for c in hex_str])
    return Instruction.from_bytes(data)


def encode_instruction(opcode: int, operand: int = 0) -> str:
    """Encode an instruction to a hex string with one hex char per nibble."""
    instr = Instruction(opcode, operand)
    return ''.join(f'{b:X}' for b in instr.to_bytes())


def disassemble(
    memory: Sequence[Nibble],
    start: Address,
    end: Optional[Address] = None,
) -> Iterator[tuple[Address, Instruction]]:
    """Walk memory two cells at a time and decode each pair.

    Args:
        memory: Memory contents
        start: Address of the first opcode
        end: Address to stop before, defaults to the end of memory

    Yields:
        (address, Instruction) tuples
    """
    if end is None:
        end = len(memory)
    for address in range(start, end, 2):
        operand = memory[(address + 1) % len(memory)]
        yield address, Instruction(memory[address], operand)


def format_listing(memory: Sequence[Nibble], start: Address, end: Optional[Address] = None) -> list[str]:
    """Produce one line per instruction, e.g. '0x0f: A5  LDI A, 0x5'."""
    return [
        f'0x{address:02x}: {encode_instruction(instr.opcode, instr.operand)}  {instr.mnemonic}'
        for address, instr in disassemble(memory, start, end)
    ]
