#!/usr/bin/env python3

"""
CPU Debugger

If enabled, this will output information before each instruction executed:
    * All 16 of the [V] registers, starting with most significant (Vf) and
      reducing to least significant (V0)
    * I  - Index register
    * DT - Delay timer
    * ST - Sound timer
    * PC - Program counter
    * OP - OpCode number
    * IN - Decoded instruction

If a crash occurs, all of the above will be outputted, with the addition of:
    * Stack - Stack contents
    * The interpreter area of memory (0x000 - 0x1FF)
    * The program and work area of memory (0x200 - 0xFFF)
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import PROGRAM_LOC
from .decoder import disassemble

DUMP_BYTES_PER_LINE = 32


class Debugger:
    def __init__(self, live=False):
        self.live = live

    def debug(self, machine, instruction_text, pc=None, opcode=0, verbose=False):
        v = machine.v
        debug_str = (
            "V: 0x" + ("{:02x}" * 16) + " I: 0x{:04x} DT: 0x{:02x} ST: 0x{:02x} PC: 0x{:03x} OP: 0x{:04x} IN: {}"
        ).format(
            *[v[reg_num] for reg_num in range(15, -1, -1)] +
            [machine.i, machine.dt, machine.st, machine.pc if pc is None else pc, opcode, instruction_text]
        )

        if verbose:
            stack_items = machine.stack.get_items()
            stack_str = (" 0x{:03x}" * len(stack_items)).format(*stack_items)
            debug_str += "\nStack:{}".format(stack_str or " (Empty)")

        return debug_str

    def dump(self, machine, pc=None, opcode=0):
        # Full crash report: registers, stack, then both areas of memory
        ram = machine.ram
        return "\n".join((
            self.debug(machine, "???", pc=pc, opcode=opcode, verbose=True),
            "Interpreter memory:",
            hex_dump(ram.dump(0, PROGRAM_LOC), 0),
            "Program and work memory:",
            hex_dump(ram.dump(PROGRAM_LOC), PROGRAM_LOC)
        ))

    def set_live(self, enabled):
        self.live = enabled

    def is_live(self):
        return self.live

    def output(self, machine, instruction):
        print(self.debug(machine, disassemble(instruction), opcode=instruction.opcode))


def hex_dump(data, base_address):
    lines = []

    for offset in range(0, len(data), DUMP_BYTES_PER_LINE):
        chunk = data[offset:offset + DUMP_BYTES_PER_LINE]
        lines.append("0x{:03x}: {}".format(base_address + offset, chunk.hex(" ")))

    return "\n".join(lines)
