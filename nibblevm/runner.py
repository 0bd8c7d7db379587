"""Run driver.

Calls Machine.step() repeatedly with a delay between steps until the machine
asks to halt or a step budget runs out. The machine itself has no notion of
time; everything clock related lives here.
"""

import itertools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from tqdm import tqdm

from nibblevm.cpu.machine import Machine
from nibblevm.state.snapshot import MachineSnapshot

logger = logging.getLogger(__name__)


@dataclass
class ClockConfig:
    """Clock settings for the run driver.

    Attributes:
        interval: Seconds to wait before each step. 0 runs a tight loop.
        min_hz: Slowest rate slow_down() will go to.
        max_hz: Fastest rate speed_up() will go to.
    """

    interval: float = 0.5
    min_hz: float = 0.5
    max_hz: float = 128.0

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ValueError('Clock interval cannot be negative')
        if not 0 < self.min_hz <= self.max_hz:
            raise ValueError(f'Invalid clock range {self.min_hz}..{self.max_hz} Hz')

    @property
    def hz(self) -> float:
        return float('inf') if self.interval == 0 else 1 / self.interval

    @classmethod
    def from_hz(cls, hz: float, min_hz: float = 0.5, max_hz: float = 128.0) -> 'ClockConfig':
        """Build a clock running at hz, clamped to [min_hz, max_hz]."""
        if hz <= 0:
            raise ValueError('Clock frequency must be positive')
        clamped = max(min_hz, min(hz, max_hz))
        return cls(interval=1 / clamped, min_hz=min_hz, max_hz=max_hz)


class RunDriver:
    """Drives a Machine at the configured clock rate.

    Attributes:
        machine (Machine): The machine being driven. The driver is its only writer.
        clock (ClockConfig): Current clock settings.
        sleep (Callable[[float], None]): Called with the interval before every step.
        on_step (Callable[[MachineSnapshot], None] | None): Presenter hook, receives a snapshot after each step.
    """

    def __init__(
        self,
        machine: Machine,
        clock: Optional[ClockConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_step: Optional[Callable[[MachineSnapshot], None]] = None,
    ) -> None:
        self.machine = machine
        self.clock = clock if clock is not None else ClockConfig()
        self.sleep = sleep
        self.on_step = on_step

    @property
    def hz(self) -> float:
        return self.clock.hz

    def speed_up(self) -> bool:
        """Halve the interval unless already at the maximum rate."""
        if self.clock.interval == 0 or self.hz >= self.clock.max_hz:
            return False
        self.clock.interval /= 2
        logger.debug(f'Clock now {self.hz:.2f} Hz')
        return True

    def slow_down(self) -> bool:
        """Double the interval unless already at the minimum rate."""
        if self.clock.interval == 0 or self.hz <= self.clock.min_hz:
            return False
        self.clock.interval *= 2
        logger.debug(f'Clock now {self.hz:.2f} Hz')
        return True

    def stop(self) -> None:
        """Ask the run loop to stop before the next step."""
        self.machine.request_halt()

    def run(self, max_steps: Optional[int] = None, progress: bool = False) -> int:
        """Step the machine until it requests a halt or max_steps is reached.

        Args:
            max_steps: Step budget, None for no limit
            progress: Show a tqdm progress bar

        Returns:
            Number of steps executed
        """
        self.machine.halt_requested = False
        ticks: Iterable[int] = itertools.count() if max_steps is None else range(max_steps)
        if progress:
            ticks = tqdm(ticks, total=max_steps, unit='step')

        logger.info(f'Running at {self.hz:.2f} Hz' + (f' for up to {max_steps} steps' if max_steps is not None else ''))
        steps = 0
        for _ in ticks:
            if self.machine.halt_requested:
                break
            if self.clock.interval:
                self.sleep(self.clock.interval)
            self.machine.step()
            steps += 1
            if self.on_step is not None:
                self.on_step(self.machine.snapshot())
        logger.info(f'Stopped after {steps} steps')
        return steps
