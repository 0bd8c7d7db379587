"""Tests for the run driver."""

import pytest

from nibblevm.cpu.machine import Machine
from nibblevm.runner import ClockConfig, RunDriver

COUNTER = [0xD, 0x1, 0x0, 0x1, 0xB, 0x0]


class FakeSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def machine():
    m = Machine()
    m.load(COUNTER)
    return m


class TestRun:
    """Run loop termination."""

    def test_runs_max_steps(self, machine):
        sleep = FakeSleep()
        driver = RunDriver(machine, sleep=sleep)
        assert driver.run(max_steps=5) == 5
        assert machine.cycles == 5
        assert sleep.calls == [0.5] * 5

    def test_tight_loop_never_sleeps(self, machine):
        sleep = FakeSleep()
        driver = RunDriver(machine, clock=ClockConfig(interval=0.0), sleep=sleep)
        driver.run(max_steps=30)
        assert sleep.calls == []
        assert machine.SP == 10

    def test_stop_from_presenter(self, machine):
        seen = []

        def on_step(snapshot):
            seen.append(snapshot.cycles)
            if snapshot.cycles == 3:
                driver.stop()

        driver = RunDriver(machine, clock=ClockConfig(interval=0.0), on_step=on_step)
        assert driver.run() == 3
        assert seen == [1, 2, 3]
        assert machine.halt_requested

    def test_reset_halts_the_loop(self, machine):
        def on_step(snapshot):
            if snapshot.cycles == 2:
                machine.reset()

        driver = RunDriver(machine, clock=ClockConfig(interval=0.0), on_step=on_step)
        assert driver.run(max_steps=100) == 2
        assert machine.cycles == 0

    def test_run_clears_previous_halt_request(self, machine):
        machine.request_halt()
        driver = RunDriver(machine, clock=ClockConfig(interval=0.0))
        assert driver.run(max_steps=2) == 2

    def test_snapshots_are_taken_after_each_step(self, machine):
        snapshots = []
        driver = RunDriver(machine, clock=ClockConfig(interval=0.0), on_step=snapshots.append)
        driver.run(max_steps=3)
        assert [s.A for s in snapshots] == [1, 1, 1]
        assert [s.SP for s in snapshots] == [0, 1, 1]
        assert snapshots[-1].PC == 0xF

    def test_progress_bar(self, machine):
        driver = RunDriver(machine, clock=ClockConfig(interval=0.0))
        assert driver.run(max_steps=4, progress=True) == 4


class TestClock:
    """Clock speed controls."""

    def test_default_clock(self):
        clock = ClockConfig()
        assert clock.interval == 0.5
        assert clock.hz == 2.0

    def test_speed_up_stops_at_max(self, machine):
        driver = RunDriver(machine)
        results = [driver.speed_up() for _ in range(8)]
        assert results == [True] * 6 + [False] * 2
        assert driver.hz == 128.0

    def test_slow_down_stops_at_min(self, machine):
        driver = RunDriver(machine)
        results = [driver.slow_down() for _ in range(4)]
        assert results == [True, True, False, False]
        assert driver.hz == 0.5

    def test_tight_loop_has_no_speed_control(self, machine):
        driver = RunDriver(machine, clock=ClockConfig(interval=0.0))
        assert not driver.speed_up()
        assert not driver.slow_down()

    @pytest.mark.parametrize(('hz', 'expected'), [(1000, 128.0), (0.1, 0.5), (4, 4.0)])
    def test_from_hz_clamps(self, hz, expected):
        assert ClockConfig.from_hz(hz).hz == expected

    def test_invalid_clock(self):
        with pytest.raises(ValueError):
            ClockConfig.from_hz(0)
        with pytest.raises(ValueError):
            ClockConfig(interval=-1)
        with pytest.raises(ValueError):
            ClockConfig(min_hz=10, max_hz=1)
