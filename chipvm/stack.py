#!/usr/bin/env python3

"""
Stack Emulator

The call stack lives outside emulated RAM, as there is no stack pointer
exposed to programs and no fixed location for it.  A list is all we need.

CHIP-8 has room for 16 return addresses.  Nesting deeper than that, or
returning with nothing on the stack, means the program has gone wrong, so both
are reported as errors instead of being wrapped or clamped.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import STACK_SIZE


class StackError(Exception):
    pass


class Stack:
    def __init__(self, size=STACK_SIZE):
        self.items = []
        self.size = size

    def __len__(self):
        return len(self.items)

    def push(self, item):
        if len(self.items) >= self.size:
            raise StackError(
                "Stack overflow pushing 0x{:03x}: more than {} nested calls".format(item, self.size)
            )

        self.items.append(item)

    def pop(self):
        try:
            return self.items.pop()
        except IndexError:
            raise StackError("Stack underflow: return without a matching call") from None

    def clear(self):
        self.items.clear()

    def get_items(self):
        # For debugging.  Oldest entry first.
        return list(self.items)
