#!/usr/bin/env python3

import argparse
import logging
import sys
from typing import Optional, Sequence

from nibblevm.cpu.machine import Machine
from nibblevm.exceptions import CapacityExceededError, ProgramParseError
from nibblevm.isa.nv_isa import Instruction, format_listing
from nibblevm.isa.nv_registers import name2reg
from nibblevm.isa.register import Register
from nibblevm.isa.variant import DEFAULT_VARIANT, VARIANTS
from nibblevm.program import parse_program
from nibblevm.runner import ClockConfig, RunDriver
from nibblevm.state.snapshot import MachineSnapshot


def parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Run a NibbleVM program.')
    parser.add_argument('program', type=str, help='Program file, one nibble per line (e.g. 0xA).')
    parser.add_argument(
        '--variant',
        type=str,
        choices=sorted(VARIANTS),
        default=DEFAULT_VARIANT.name,
        help='Machine variant.',
    )
    parser.add_argument('--steps', type=int, default=64, help='Maximum number of steps to run.')
    parser.add_argument('--hz', type=float, default=None, help='Clock rate, clamped to 0.5..128 Hz. Default: no delay.')
    parser.add_argument('--trace', default=False, action='store_true', help='Print registers after every step.')
    parser.add_argument('--listing', default=False, action='store_true', help='Print a disassembly before running.')
    parser.add_argument('--progress', default=False, action='store_true', help='Show a progress bar.')
    parser.add_argument('--output', type=str, default=None, help='Write the final snapshot as JSON to this file.')
    parser.add_argument('--debug', default=False, action='store_true', help='Log every instruction.')
    parser.add_argument(
        '--set',
        type=str,
        action='append',
        default=[],
        metavar='REG=VALUE',
        help='Set a register before running, e.g. B=0x3. May be repeated.',
    )
    args = parser.parse_args(argv)
    if args.steps < 0:
        parser.error('--steps must not be negative')
    if args.hz is not None and args.hz <= 0:
        parser.error('--hz must be positive')
    try:
        args.registers = [parse_assignment(assignment) for assignment in args.set]
    except ValueError as e:
        parser.error(str(e))
    return args


def parse_assignment(assignment: str) -> tuple[Register, int]:
    """Turn 'REG=VALUE' into a register and an integer (any Python int literal)."""
    name, sep, value = assignment.partition('=')
    if not sep:
        raise ValueError(f'Expected REG=VALUE, got {assignment!r}')
    return name2reg(name.strip()), int(value.strip(), 0)


def print_trace(snapshot: MachineSnapshot) -> None:
    pc = snapshot.PC
    upcoming = Instruction(snapshot.memory[pc], snapshot.memory[(pc + 1) % len(snapshot.memory)])
    fault = f'  !{snapshot.fault}' if snapshot.fault else ''
    print(f'[{snapshot.cycles:4d}] {snapshot}  next: {upcoming.mnemonic}{fault}')


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    machine = Machine(VARIANTS[args.variant])
    try:
        with open(args.program, 'r') as f:
            nibbles = parse_program(f.read())
        machine.load(nibbles)
    except (OSError, ProgramParseError, CapacityExceededError) as e:
        print(e, file=sys.stderr)
        return 1

    for reg, value in args.registers:
        machine.write_reg(reg, value)

    if args.listing:
        program_end = min(machine.origin + len(nibbles) + len(nibbles) % 2, machine.capacity)
        for line in format_listing(machine.memory, machine.origin, program_end):
            print(line)
        print('')

    clock = ClockConfig(interval=0.0) if args.hz is None else ClockConfig.from_hz(args.hz)
    driver = RunDriver(machine, clock=clock, on_step=print_trace if args.trace else None)
    steps = driver.run(max_steps=args.steps, progress=args.progress)

    snapshot = machine.snapshot()
    print(f'Ran {steps} steps')
    print(snapshot)
    for line in snapshot.format_memory(0, min(machine.origin + 0x10, machine.capacity)):
        print(line)

    if args.output:
        print('Writing snapshot to {}'.format(args.output))
        with open(args.output, 'w') as f:
            f.write(snapshot.serialize())
    return 0


if __name__ == '__main__':
    sys.exit(main())
