#!/usr/bin/env python3

"""
RAM Emulator

A flat 4K byte space.  Single-byte reads and writes wrap around the top of
memory, so a runaway index register can never reach outside the bank.  Block
writes (used for fonts and program loading) are bounds-checked instead, and
rejected before anything is copied.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import MEM_SIZE


class RAMError(Exception):
    pass


class RAM:
    def __init__(self, mem_size=MEM_SIZE):
        if mem_size <= 0 or mem_size & (mem_size - 1):
            raise RAMError("Memory size must be a power of two")

        self.mem = memoryview(bytearray(mem_size))
        self.mem_mask = mem_size - 1  # Works as a modulo since the size is a power of two
        self.mem_size = mem_size

    def read(self, location):
        return self.mem[location & self.mem_mask]

    def read_block(self, location, size=1):
        # Copy out rather than slicing, so a read past the top wraps like single reads do
        mem = self.mem
        mem_mask = self.mem_mask
        return bytes(mem[(location + offset) & mem_mask] for offset in range(size))

    def write(self, location, byte):
        self.mem[location & self.mem_mask] = byte & 0xFF

    def write_block(self, location, block):
        block_top = location + len(block)

        if location < 0 or block_top > self.mem_size:
            raise RAMError("Memory overflow writing {} bytes at 0x{:03x}".format(len(block), location))

        self.mem[location:block_top] = block

    def zero_block(self, offset, size):
        self.write_block(offset, bytes(size))

    def clear(self):
        self.zero_block(0, self.mem_size)

    def dump(self, start=0, end=None):
        # For debugging.  End is exclusive.
        return bytes(self.mem[start:self.mem_size if end is None else end])
