#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import io
import unittest
from contextlib import redirect_stdout
from chipvm.debugger import Debugger, hex_dump
from chipvm.decoder import decode
from chipvm.machine import Machine


class TestDebugger(unittest.TestCase):
    def setUp(self):
        self.machine = Machine()
        self.debugger = Debugger()

    def test_debugger_registers(self):
        self.machine.v[0xF] = 0x01
        self.machine.v[0x0] = 0xAB
        self.machine.i = 0x123
        self.machine.dt = 0x04
        self.machine.st = 0x05
        text = self.debugger.debug(self.machine, "CLS", opcode=0x00E0)
        self.assertEqual(
            "V: 0x01" + "00" * 14 + "ab I: 0x0123 DT: 0x04 ST: 0x05 PC: 0x200 OP: 0x00e0 IN: CLS",
            text
        )

    def test_debugger_verbose_stack(self):
        self.assertIn("Stack: (Empty)", self.debugger.debug(self.machine, "", verbose=True))
        self.machine.stack.push(0x202)
        self.machine.stack.push(0x404)
        self.assertIn("Stack: 0x202 0x404", self.debugger.debug(self.machine, "", verbose=True))

    def test_debugger_dump(self):
        self.machine.load_program(b"\x12\x00")
        text = self.debugger.dump(self.machine, pc=0x210, opcode=0x5123)
        self.assertIn("PC: 0x210 OP: 0x5123 IN: ???", text)
        self.assertIn("Interpreter memory:\n0x000: f0 90 90 90 f0", text)
        self.assertIn("Program and work memory:\n0x200: 12 00 00", text)

    def test_debugger_live(self):
        self.assertFalse(self.debugger.is_live())
        self.debugger.set_live(True)
        self.assertTrue(self.debugger.is_live())

    def test_debugger_output(self):
        out = io.StringIO()

        with redirect_stdout(out):
            self.debugger.output(self.machine, decode(0x6A05))

        self.assertIn("OP: 0x6a05 IN: LD Va, 0x05", out.getvalue())

    def test_hex_dump(self):
        data = bytes(range(40))
        lines = hex_dump(data, 0x200).split("\n")
        self.assertEqual(2, len(lines))
        self.assertTrue(lines[0].startswith("0x200: 00 01 02"))
        self.assertEqual("0x220: 20 21 22 23 24 25 26 27", lines[1])
