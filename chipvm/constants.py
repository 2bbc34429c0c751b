#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

# App identification
APP_NAME = "ChipVM"
APP_VERSION = "1.0.0"
APP_COPYRIGHT = "Copyright (C) 2022 Gregory Maynard-Hoare, licensed under GNU Affero General Public License v3.0"
APP_INTRO = "{} V{} -- ".format(APP_NAME, APP_VERSION)

# Memory map
MEM_SIZE = 0x1000
FONT_LOC = 0x000
PROGRAM_LOC = 0x200
PROGRAM_MAX_SIZE = MEM_SIZE - PROGRAM_LOC  # 3584 bytes of program/data space

# Registers and stack
NUM_REGISTERS = 0x10
STACK_SIZE = 16
PC_BITMASK = 0xFFF
I_BITMASK = 0xFFFF  # Index register keeps its full 16-bit width, memory accesses wrap instead

# Display
VID_WIDTH = 64
VID_HEIGHT = 32

# Keypad
NUM_KEYS = 0x10

# Timing.  The CPU, and therefore the timers, tick at this rate.
CLOCK_SPEED = 60

# Default mappings for keys 0-F.  Note that the keyscans (on a UK QWERTY keyboard) and ASCII characters for these are
# the same code
DEFAULT_KEYMAP = "120,49,50,51,113,119,101,97,115,100,122,99,52,114,102,118"

# Built-in hexadecimal font, 5 rows per digit, 0-F
FONT_SPRITE_HEIGHT = 5
FONT_SET = bytes((
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80   # F
))
