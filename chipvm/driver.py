#!/usr/bin/env python3

"""
Cycle Driver

Runs the CPU at a fixed rate.  Each call to 'tick' checks the clock, and does
nothing at all if the next cycle isn't due yet.  When it is due, one of two
things happens, depending on the phase:

    * RUNNING        - fetch, decode and execute one instruction, then count
                       the delay and sound timers down by one
    * BLOCKED_ON_KEY - the CPU is sat on a key wait (Fx0A).  Nothing is
                       fetched and the timers are frozen; only the wait is
                       polled, until a keypress arrives

Any error that escapes an instruction halts the driver for good.  Further
ticks are refused until the driver is reset.

The main loop sleeps between cycles rather than spinning on the clock, and
checks a stop flag between cycles, so it can always be shut down cleanly.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from time import perf_counter, sleep
from .constants import CLOCK_SPEED
from .cpu import CPUError
from .decoder import DecoderError
from .stack import StackError

RUNNING = "running"
BLOCKED_ON_KEY = "blocked_on_key"

DISPLAY_FREQ = 60.0  # 60Hz host display refresh and input polling
DISPLAY_INTERVAL = 1.0 / DISPLAY_FREQ


class HaltedError(CPUError):
    pass


class IntervalClock:
    def __init__(self, clock_speed=CLOCK_SPEED, time_source=perf_counter, sleeper=sleep):
        # A clock speed of 0 (or less) means uncapped: every tick is due
        self.interval = None if not clock_speed or clock_speed <= 0 else 1.0 / clock_speed
        self.time_source = time_source
        self.sleeper = sleeper
        self.last_tick = None

    def now(self):
        return self.time_source()

    def due(self, now):
        # Accepts the tick (and remembers it) if a full interval has passed since the last one
        next_tick_time = self.next_tick_time()

        if next_tick_time is not None and now < next_tick_time:
            return False

        self.last_tick = now
        return True

    def next_tick_time(self):
        if self.interval is None or self.last_tick is None:
            return None

        return self.last_tick + self.interval

    def wait(self, limit=None):
        # Sleep until the next tick is due, or until 'limit' (an absolute time) if that comes first
        target = self.next_tick_time()

        if target is None:
            return

        if limit is not None:
            target = min(target, limit)

        remaining = target - self.time_source()

        if remaining > 0:
            self.sleeper(remaining)

    def reset(self):
        self.last_tick = None


class CycleDriver:
    def __init__(self, cpu, clock=None):
        self.cpu = cpu
        self.machine = cpu.machine
        self.clock = IntervalClock() if clock is None else clock
        self.running = False
        self.halted = False

        # Performance-related vars
        self.next_display_update_time = 0
        self.perf_counter_fps = 0
        self.perf_counter_ops = 0
        self.next_perf_report_time = 0

    @property
    def phase(self):
        return BLOCKED_ON_KEY if self.cpu.awaiting_keypress else RUNNING

    def tick(self, now=None):
        # Returns True if a cycle was run
        if self.halted:
            raise HaltedError("Emulation has halted and cannot continue until reset")

        if now is None:
            now = self.clock.now()

        if not self.clock.due(now):
            return False

        try:
            if self.cpu.awaiting_keypress:
                self.cpu.poll_keypress()
            else:
                self.cpu.step()
                self._tick_timers()
        except (CPUError, DecoderError, StackError):
            self.halted = True
            raise

        return True

    def _tick_timers(self):
        if self.machine.decrement_timers():
            # Sound timer just reached zero.  Stop the audio.
            self.cpu.audio.enable_buzzer(False)

    def stop(self):
        self.running = False

    def reset(self):
        self.cpu.reset()
        self.clock.reset()
        self.halted = False

    def run(self, inputs=None):
        # Main loop.  Returns when the inputs request a quit, or when stopped.  Errors propagate.
        framebuffer = self.machine.framebuffer
        self.running = True

        try:
            while self.running:
                this_time = self.clock.now()

                # Performance counters
                if this_time >= self.next_perf_report_time:
                    self.next_perf_report_time = int(this_time) + 1.0
                    framebuffer.report_perf(self.perf_counter_fps, self.perf_counter_ops)
                    self.perf_counter_ops = 0
                    self.perf_counter_fps = 0

                # Inputs are processed and the display presented at 60Hz, whatever the CPU speed.  Doing this here,
                # between cycles, keeps them from ever seeing a half-run instruction.
                if this_time >= self.next_display_update_time:
                    if inputs is not None and inputs.process_messages():
                        break

                    self.next_display_update_time = this_time + DISPLAY_INTERVAL

                    if framebuffer.refresh_display():
                        self.perf_counter_fps += 1

                if self.tick(this_time):
                    self.perf_counter_ops += 1

                self.clock.wait(self.next_display_update_time)
        finally:
            self.running = False
