#!/usr/bin/env python3

"""
Keypad Latch

Holds the state of the 16 hexadecimal keys.  Input plugins write to it as host
events arrive, and the CPU reads from it.

Besides the held/released state of each key, the latch remembers the most
recently pressed key, and whether a press has happened since the CPU last
started waiting for one (for the Fx0A instruction).  Starting a wait clears
that latch, so a key which was already held down doesn't count as a new press.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import NUM_KEYS


class KeypadError(Exception):
    pass


class Keypad:
    def __init__(self):
        self.key_down = [False] * NUM_KEYS
        self.last_keypress = None
        self.press_latched = False

    def set_key(self, key, pressed):
        if not 0 <= key < NUM_KEYS:
            raise KeypadError("Key 0x{:x} is out of range (0x0 - 0xf)".format(key))

        pressed = bool(pressed)

        if pressed and not self.key_down[key]:
            self.last_keypress = key
            self.press_latched = True

        self.key_down[key] = pressed

    def is_key_down(self, key):
        # Programs can ask for any register value, but only 0-F can ever be held
        if 0 <= key < NUM_KEYS:
            return self.key_down[key]

        return False

    def begin_wait(self):
        self.press_latched = False

    def take_keypress(self):
        # Returns the key pressed since the wait began (or None), consuming it
        if not self.press_latched:
            return None

        self.press_latched = False
        return self.last_keypress

    def release_all(self):
        for key in range(NUM_KEYS):
            self.key_down[key] = False

    def clear(self):
        self.release_all()
        self.last_keypress = None
        self.press_latched = False
