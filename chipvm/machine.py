#!/usr/bin/env python3

"""
Machine State

Everything a running CHIP-8 program can see or change lives in one Machine:
RAM, the call stack, the sixteen V registers, the index register (I), the
program counter (PC), both countdown timers, the framebuffer and the keypad.

Nothing here is global, so any number of machines can exist side by side
(tests rely on this).  The Machine has no behaviour of its own beyond loading
programs, resetting, and counting the timers down.  The CPU does the rest.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import (
    FONT_LOC, FONT_SET, I_BITMASK, NUM_REGISTERS, PC_BITMASK, PROGRAM_LOC, PROGRAM_MAX_SIZE
)
from .framebuffer import Framebuffer
from .keypad import Keypad
from .ram import RAM, RAMError
from .stack import Stack


class ProgramTooLargeError(RAMError):
    pass


class Machine:
    def __init__(self, ram=None, stack=None, framebuffer=None, keypad=None):
        self.ram = RAM() if ram is None else ram
        self.stack = Stack() if stack is None else stack
        self.framebuffer = Framebuffer() if framebuffer is None else framebuffer
        self.keypad = Keypad() if keypad is None else keypad
        self.v = memoryview(bytearray(NUM_REGISTERS))  # Bytearrays are mutable, so register updates are fast
        self.reset()

    def reset(self):
        self.ram.clear()
        self.ram.write_block(FONT_LOC, FONT_SET)
        self.stack.clear()
        self.framebuffer.clear()
        self.keypad.clear()
        self.v[:] = bytes(NUM_REGISTERS)
        self.i = 0           # Index register
        self.pc = PROGRAM_LOC
        self.dt = 0          # Delay timer
        self.st = 0          # Sound timer

    def load_program(self, data):
        size = len(data)

        if size > PROGRAM_MAX_SIZE:
            raise ProgramTooLargeError(
                "Program is {} bytes, but only {} bytes are available from 0x{:03x}".format(
                    size, PROGRAM_MAX_SIZE, PROGRAM_LOC
                )
            )

        # A previous, longer program mustn't leave anything behind
        self.ram.zero_block(PROGRAM_LOC, PROGRAM_MAX_SIZE)
        self.ram.write_block(PROGRAM_LOC, data)

    def set_index(self, value):
        self.i = value & I_BITMASK

    def set_pc(self, value):
        self.pc = value & PC_BITMASK

    def advance_pc(self, steps=1):
        self.pc = (self.pc + 2 * steps) & PC_BITMASK

    def decrement_timers(self):
        # Returns True if the sound timer has just run out, so the buzzer can be stopped
        if self.dt > 0:
            self.dt -= 1

        if self.st > 0:
            self.st -= 1
            return self.st == 0

        return False
