#!/usr/bin/env python3

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import unittest
from random import Random
from chipvm.audio.a_null import Audio
from chipvm.cpu import CPU
from chipvm.debugger import Debugger
from chipvm.decoder import UnknownOpcodeError, decode
from chipvm.machine import Machine
from chipvm.stack import StackError


class TestCPU(unittest.TestCase):
    def setUp(self):
        self.machine = Machine()
        self.ram = self.machine.ram
        self.stack = self.machine.stack
        self.framebuffer = self.machine.framebuffer
        self.keypad = self.machine.keypad
        self.audio = Audio()
        self.cpu = CPU(self.machine, audio=self.audio, debugger=Debugger(), rng=Random(1234))
        self.v = self.machine.v

    def _check_opcode(self, opcode, pc=0x200):
        self.machine.pc = pc
        self.cpu.execute(decode(opcode))

    def test_cpu_fetch(self):
        self.ram.write_block(0x200, bytearray(b"\xFF\xFE"))
        self.assertEqual(0xFFFE, self.cpu.fetch())

    def test_cpu_fetch_wraps(self):
        self.machine.pc = 0xFFF
        self.ram.write(0xFFF, 0x12)
        self.ram.write(0x000, 0x34)
        self.assertEqual(0x1234, self.cpu.fetch())

    def test_cpu_step(self):
        self.ram.write_block(0x200, b"\x61\x23")
        ins = self.cpu.step()
        self.assertEqual("6xkk", ins.form)
        self.assertEqual(0x23, self.v[1])
        self.assertEqual(0x202, self.machine.pc)

    def test_cpu_step_unknown_opcode(self):
        self.ram.write_block(0x200, b"\x51\x23")
        self.v[0xA] = 0xBC

        with self.assertRaises(UnknownOpcodeError) as context:
            self.cpu.step()

        message = str(context.exception)
        self.assertEqual(0x5123, context.exception.opcode)
        self.assertIn("Opcode 0x5123 at address 0x200", message)
        self.assertIn("Program and work memory:", message)
        self.assertIn("0x200: 51 23", message)
        self.assertEqual(0x200, self.machine.pc)  # Never advanced past the bad opcode

    def test_cpu_every_form_has_a_handler(self):
        self.assertEqual(34, len(self.cpu.instructions))

    # Flow control

    def test_cpu_00e0(self):  # CLS
        self.framebuffer.xor_pixel(5, 5)
        self._check_opcode(0x00E0)
        self.assertFalse(self.framebuffer.get_pixel(5, 5))
        self.assertEqual(0x202, self.machine.pc)

    def test_cpu_00ee(self):  # RET
        self.stack.push(0xFFC)
        self._check_opcode(0x00EE)
        self.assertEqual(0xFFE, self.machine.pc)

    def test_cpu_00ee_underflow(self):  # RET
        self.assertRaises(StackError, self._check_opcode, 0x00EE)

    def test_cpu_1nnn(self):  # JP addr
        self._check_opcode(0x1FFD)
        self.assertEqual(0xFFD, self.machine.pc)

    def test_cpu_2nnn(self):  # CALL addr
        self._check_opcode(0x2FFC, pc=0x204)
        self.assertEqual(0xFFC, self.machine.pc)
        self.assertEqual(0x204, self.stack.pop())  # The CALL's own address

    def test_cpu_2nnn_overflow(self):  # CALL addr
        for _ in range(16):
            self._check_opcode(0x2200)

        self.assertRaises(StackError, self._check_opcode, 0x2200)

    def test_cpu_call_then_ret(self):
        self._check_opcode(0x2400, pc=0x20A)
        self.cpu.execute(decode(0x00EE))
        self.assertEqual(0x20C, self.machine.pc)

    def test_cpu_3xkk(self):  # SE Vx, byte
        self.v[0x2] = 0x11
        self._check_opcode(0x3212)
        self.assertEqual(0x202, self.machine.pc)
        self.v[0x2] = 0x12
        self._check_opcode(0x3212)
        self.assertEqual(0x204, self.machine.pc)

    def test_cpu_4xkk(self):  # SNE Vx, byte
        self.v[0x2] = 0x11
        self._check_opcode(0x4212)
        self.assertEqual(0x204, self.machine.pc)
        self.v[0x2] = 0x12
        self._check_opcode(0x4212)
        self.assertEqual(0x202, self.machine.pc)

    def test_cpu_5xy0(self):  # SE Vx, Vy
        self.v[0x2] = 0x11
        self.v[0x3] = 0x12
        self._check_opcode(0x5230)
        self.assertEqual(0x202, self.machine.pc)
        self.v[0x3] = 0x11
        self._check_opcode(0x5230)
        self.assertEqual(0x204, self.machine.pc)

    def test_cpu_9xy0(self):  # SNE Vx, Vy
        self.v[0x2] = 0x15
        self.v[0x3] = 0x16
        self._check_opcode(0x9230)
        self.assertEqual(0x204, self.machine.pc)
        self.v[0x3] = 0x15
        self._check_opcode(0x9230)
        self.assertEqual(0x202, self.machine.pc)

    def test_cpu_bnnn(self):  # JP V0, addr
        self._check_opcode(0xB002)
        self.assertEqual(0x2, self.machine.pc)
        self.v[0x0] = 0x1
        self._check_opcode(0xB102)
        self.assertEqual(0x103, self.machine.pc)
        self.v[0x0] = 0xFD
        self._check_opcode(0xBF0E)
        self.assertEqual(0x00B, self.machine.pc)  # Wrapped to 12 bits

    # Loads and arithmetic

    def test_cpu_6xkk(self):  # LD Vx, byte
        self._check_opcode(0x62FE)
        self.assertEqual(0xFE, self.v[0x2])
        self.assertEqual(0x202, self.machine.pc)

    def test_cpu_7xkk(self):  # ADD Vx, byte
        self.v[0xF] = 0x7
        self._check_opcode(0x72FE)
        self.assertEqual(0xFE, self.v[0x2])
        self._check_opcode(0x7201)
        self.assertEqual(0xFF, self.v[0x2])
        self._check_opcode(0x7201)
        self.assertEqual(0x00, self.v[0x2])
        self.assertEqual(0x7, self.v[0xF])  # No carry flag

    def test_cpu_8xy0(self):  # LD Vx, Vy
        self.v[0x1] = 0x1
        self.v[0x2] = 0x2
        self._check_opcode(0x8120)
        self.assertEqual(0x2, self.v[0x1])

    def _prepare_alu(self):
        self.v[0x1] = 0b10111000
        self.v[0x2] = 0b10001110
        self.v[0xF] = 0x2

    def test_cpu_8xy1(self):  # OR Vx, Vy
        self._prepare_alu()
        self._check_opcode(0x8121)
        self.assertEqual(0b10111110, self.v[0x1])
        self.assertEqual(0x2, self.v[0xF])

    def test_cpu_8xy2(self):  # AND Vx, Vy
        self._prepare_alu()
        self._check_opcode(0x8122)
        self.assertEqual(0b10001000, self.v[0x1])
        self.assertEqual(0x2, self.v[0xF])

    def test_cpu_8xy3(self):  # XOR Vx, Vy
        self._prepare_alu()
        self._check_opcode(0x8123)
        self.assertEqual(0b00110110, self.v[0x1])
        self.assertEqual(0x2, self.v[0xF])

    def test_cpu_8xy4_carry(self):  # ADD Vx, Vy (carry)
        self._prepare_alu()
        self._check_opcode(0x8124)
        self.assertEqual(0b01000110, self.v[0x1])
        self.assertEqual(0x1, self.v[0xF])

    def test_cpu_8xy4_no_carry(self):  # ADD Vx, Vy (no carry)
        self.v[0x1] = 0x1
        self.v[0xF] = 0x2  # Use Vf as an input to check flag ordering too
        self._check_opcode(0x81F4)
        self.assertEqual(0x3, self.v[0x1])
        self.assertEqual(0x0, self.v[0xF])

    def test_cpu_8xy4_exhaustive_flag(self):
        for a in range(0, 0x100, 15):
            for b in range(0, 0x100, 17):
                self.v[0x1] = a
                self.v[0x2] = b
                self._check_opcode(0x8124)
                self.assertEqual((a + b) & 0xFF, self.v[0x1])
                self.assertEqual(int(a + b > 0xFF), self.v[0xF])

    def test_cpu_8xy4_into_vf(self):  # Flag wins over the sum when Vx is Vf
        self.v[0xF] = 0xFF
        self.v[0x1] = 0x02
        self._check_opcode(0x8F14)
        self.assertEqual(0x1, self.v[0xF])

    def test_cpu_8xy5_no_borrow(self):  # SUB Vx, Vy
        self.v[0x1] = 0x3
        self.v[0x2] = 0x1
        self._check_opcode(0x8125)
        self.assertEqual(0x2, self.v[0x1])
        self.assertEqual(0x1, self.v[0xF])

    def test_cpu_8xy5_equal(self):  # SUB Vx, Vy
        self.v[0x1] = 0xFF
        self.v[0xF] = 0xFF
        self._check_opcode(0x81F5)
        self.assertEqual(0x0, self.v[0x1])
        self.assertEqual(0x1, self.v[0xF])

    def test_cpu_8xy5_borrow(self):  # SUB Vx, Vy
        self.v[0x1] = 0x1
        self.v[0x2] = 0x2
        self._check_opcode(0x8125)
        self.assertEqual(0xFF, self.v[0x1])
        self.assertEqual(0x0, self.v[0xF])

    def test_cpu_8xy7(self):  # SUBN Vx, Vy
        self.v[0x1] = 0x4
        self.v[0x2] = 0x2
        self._check_opcode(0x8127)
        self.assertEqual(0xFE, self.v[0x1])
        self.assertEqual(0x2, self.v[0x2])
        self.assertEqual(0x0, self.v[0xF])
        self.v[0x1] = 0x2
        self.v[0x2] = 0x4
        self._check_opcode(0x8127)
        self.assertEqual(0x2, self.v[0x1])
        self.assertEqual(0x1, self.v[0xF])

    def test_cpu_8xy6(self):  # SHR Vx
        self.v[0x1] = 0x5
        self.v[0x2] = 0x8  # Vy plays no part
        self._check_opcode(0x8126)
        self.assertEqual(0x2, self.v[0x1])
        self.assertEqual(0x8, self.v[0x2])
        self.assertEqual(0x1, self.v[0xF])
        self._check_opcode(0x8126)
        self.assertEqual(0x1, self.v[0x1])
        self.assertEqual(0x0, self.v[0xF])

    def test_cpu_8xye(self):  # SHL Vx
        self.v[0x1] = 0x81
        self.v[0x4] = 0x1  # Vy plays no part
        self._check_opcode(0x814E)
        self.assertEqual(0x2, self.v[0x1])
        self.assertEqual(0x1, self.v[0x4])
        self.assertEqual(0x1, self.v[0xF])
        self._check_opcode(0x814E)
        self.assertEqual(0x4, self.v[0x1])
        self.assertEqual(0x0, self.v[0xF])

    def test_cpu_annn(self):  # LD I, addr
        self._check_opcode(0xAFF1)
        self.assertEqual(0xFF1, self.machine.i)
        self.assertEqual(0x202, self.machine.pc)

    def test_cpu_cxkk(self):  # RND Vx, byte
        seen = set()

        for _ in range(200):
            self._check_opcode(0xC10F)
            self.assertEqual(0, self.v[0x1] & 0xF0)
            seen.add(self.v[0x1])

        self.assertGreater(len(seen), 1)
        self._check_opcode(0xC100)
        self.assertEqual(0, self.v[0x1])

    def test_cpu_cxkk_seeded(self):
        results = []

        for _ in range(2):
            cpu = CPU(Machine(), rng=Random(99))
            cpu.execute(decode(0xC3FF))
            results.append(cpu.machine.v[0x3])

        self.assertEqual(results[0], results[1])

    # Display

    def test_cpu_dxyn(self):  # DRW Vx, Vy, nibble
        self.machine.i = 0x300
        self.ram.write_block(0x300, b"\xF0\x90")
        self.v[0x1] = 2
        self.v[0x2] = 3
        self._check_opcode(0xD122)
        self.assertTrue(self.framebuffer.get_pixel(2, 3))
        self.assertTrue(self.framebuffer.get_pixel(5, 3))
        self.assertFalse(self.framebuffer.get_pixel(6, 3))
        self.assertTrue(self.framebuffer.get_pixel(2, 4))
        self.assertFalse(self.framebuffer.get_pixel(3, 4))
        self.assertEqual(0x0, self.v[0xF])
        self.assertEqual(0x202, self.machine.pc)
        # Draw again, erasing it and colliding
        self._check_opcode(0xD122)
        self.assertTrue(all(not on for _, _, on in self.framebuffer.iter_pixels()))
        self.assertEqual(0x1, self.v[0xF])

    def test_cpu_dxyn_start_wraps(self):
        self.machine.i = 0x300
        self.ram.write(0x300, 0x80)
        self.v[0x1] = 64 + 3
        self.v[0x2] = 32 + 1
        self._check_opcode(0xD121)
        self.assertTrue(self.framebuffer.get_pixel(3, 1))

    def test_cpu_dxyn_edge_wraps(self):
        self.machine.i = 0x300
        self.ram.write(0x300, 0xFF)
        self.v[0x1] = 60
        self._check_opcode(0xD101)

        for x in 60, 61, 62, 63, 0, 1, 2, 3:
            self.assertTrue(self.framebuffer.get_pixel(x, 0))

        self.assertFalse(self.framebuffer.get_pixel(4, 0))

    def test_cpu_dxyn_zero_height(self):
        self.v[0xF] = 1
        self._check_opcode(0xD120)
        self.assertEqual(0x0, self.v[0xF])
        self.assertTrue(all(not on for _, _, on in self.framebuffer.iter_pixels()))

    def test_cpu_dxyn_font(self):
        self._check_opcode(0xF029)  # V0 = 0, so digit 0
        self._check_opcode(0xD005)
        self.assertEqual(
            "####\n#..#\n#..#\n#..#\n####",
            "\n".join(line[:4] for line in self.framebuffer.as_text().split("\n")[:5])
        )

    # Keys

    def test_cpu_ex9e(self):  # SKP Vx
        self.v[0x1] = 0xA
        self._check_opcode(0xE19E)
        self.assertEqual(0x202, self.machine.pc)
        self.keypad.set_key(0xA, True)
        self._check_opcode(0xE19E)
        self.assertEqual(0x204, self.machine.pc)

    def test_cpu_exa1(self):  # SKNP Vx
        self.v[0x1] = 0xA
        self._check_opcode(0xE1A1)
        self.assertEqual(0x204, self.machine.pc)
        self.keypad.set_key(0xA, True)
        self._check_opcode(0xE1A1)
        self.assertEqual(0x202, self.machine.pc)

    def test_cpu_ex9e_key_out_of_range(self):
        self.v[0x1] = 0x42
        self._check_opcode(0xE19E)
        self.assertEqual(0x202, self.machine.pc)

    def test_cpu_fx0a(self):  # LD Vx, K
        self._check_opcode(0xF30A)
        self.assertTrue(self.cpu.awaiting_keypress)
        self.assertEqual(0x200, self.machine.pc)

        for _ in range(3):
            self.assertFalse(self.cpu.poll_keypress())
            self.assertEqual(0x200, self.machine.pc)

        self.keypad.set_key(0xB, True)
        self.assertTrue(self.cpu.poll_keypress())
        self.assertFalse(self.cpu.awaiting_keypress)
        self.assertEqual(0xB, self.v[0x3])
        self.assertEqual(0x202, self.machine.pc)
        # Nothing left to wait for
        self.assertTrue(self.cpu.poll_keypress())
        self.assertEqual(0x202, self.machine.pc)

    def test_cpu_fx0a_held_key_ignored(self):
        self.keypad.set_key(0x4, True)
        self._check_opcode(0xF20A)
        self.assertFalse(self.cpu.poll_keypress())
        self.keypad.set_key(0x4, False)
        self.assertFalse(self.cpu.poll_keypress())
        self.keypad.set_key(0x4, True)
        self.assertTrue(self.cpu.poll_keypress())
        self.assertEqual(0x4, self.v[0x2])

    # Timers

    def test_cpu_fx07(self):  # LD Vx, DT
        self.machine.dt = 0x2
        self._check_opcode(0xF207)
        self.assertEqual(0x2, self.v[0x2])

    def test_cpu_fx15(self):  # LD DT, Vx
        self.v[0x2] = 0x3
        self._check_opcode(0xF215)
        self.assertEqual(0x3, self.machine.dt)
        self.assertEqual(0x3, self.v[0x2])

    def test_cpu_fx18(self):  # LD ST, Vx
        self.v[0x3] = 0x4
        self._check_opcode(0xF318)
        self.assertEqual(0x4, self.machine.st)
        self.assertTrue(self.audio.buzzer_enabled)
        self.v[0x3] = 0x0
        self._check_opcode(0xF318)
        self.assertFalse(self.audio.buzzer_enabled)

    # Index and memory

    def test_cpu_fx1e(self):  # ADD I, Vx
        self.v[0x1] = 0x2
        self.machine.i = 0x3
        self._check_opcode(0xF11E)
        self.assertEqual(0x5, self.machine.i)
        self.assertEqual(0x0, self.v[0xF])

    def test_cpu_fx1e_past_twelve_bits(self):  # ADD I, Vx
        self.v[0x1] = 0x10
        self.machine.i = 0xFFF
        self._check_opcode(0xF11E)
        self.assertEqual(0x100F, self.machine.i)
        self.assertEqual(0x0, self.v[0xF])

    def test_cpu_fx1e_overflow(self):  # ADD I, Vx
        self.v[0x3] = 0xFE
        self.machine.i = 0xFFFE
        self._check_opcode(0xF31E)
        self.assertEqual(0xFC, self.machine.i)

    def test_cpu_fx29(self):  # LD F, Vx
        self.v[0x1] = 0x9
        self._check_opcode(0xF129)
        self.assertEqual(0x2D, self.machine.i)
        self.v[0x1] = 0x0
        self._check_opcode(0xF129)
        self.assertEqual(0x0, self.machine.i)

    def test_cpu_fx33(self):  # LD B, Vx
        self.machine.i = 0x300
        self.v[0x1] = 0xFE
        self._check_opcode(0xF133)
        # Ensure 254 (base 10 of 0xFE) is calculated
        self.assertEqual(b"\x02\x05\x04", self.ram.read_block(0x300, 3))
        self.assertEqual(0x300, self.machine.i)

    def test_cpu_fx33_memory_wrap(self):  # LD B, Vx
        self.machine.i = 0xFFE
        self.v[0x2] = 0x07
        self._check_opcode(0xF233)
        self.assertEqual(0x0, self.ram.read(0xFFE))
        self.assertEqual(0x0, self.ram.read(0xFFF))
        self.assertEqual(0x7, self.ram.read(0x000))

    def test_cpu_fx55(self):  # LD [I], Vx
        self.v[0x0] = 3
        self.v[0x1] = 2
        self.v[0x2] = 1  # Shouldn't be written into RAM
        self.machine.i = 0x400
        self._check_opcode(0xF155)
        self.assertEqual(b"\x03\x02\x00", self.ram.read_block(0x400, 3))
        self.assertEqual(0x400, self.machine.i)

    def test_cpu_fx55_memory_wrap(self):  # LD [I], Vx
        self.v[0x0] = 3
        self.v[0x1] = 2
        self.machine.i = 0x1FFF  # Beyond 12 bits, so memory wraps
        self._check_opcode(0xF155)
        self.assertEqual(0x3, self.ram.read(0xFFF))
        self.assertEqual(0x2, self.ram.read(0x000))

    def test_cpu_fx65(self):  # LD Vx, [I]
        self.machine.i = 0x400
        self.ram.write_block(0x400, b"\x06\x05\x04")  # The last shouldn't be copied to register V2
        self._check_opcode(0xF165)
        self.assertEqual(0x6, self.v[0])
        self.assertEqual(0x5, self.v[1])
        self.assertEqual(0x0, self.v[2])

    def test_cpu_fx55_fx65_all_registers(self):
        for reg in range(16):
            self.v[reg] = reg * 3

        self.machine.i = 0x500
        self._check_opcode(0xFF55)
        self.v[:] = bytes(16)
        self._check_opcode(0xFF65)
        self.assertEqual([reg * 3 for reg in range(16)], list(self.v))

    def test_cpu_reset(self):
        self._check_opcode(0xF30A)
        self.audio.enable_buzzer(True)
        self.cpu.reset()
        self.assertFalse(self.cpu.awaiting_keypress)
        self.assertFalse(self.audio.buzzer_enabled)
        self.assertEqual(0x200, self.machine.pc)

    def test_cpu_live_debug(self):
        lines = []
        debugger = Debugger(live=True)
        debugger.output = lambda machine, ins: lines.append(ins.opcode)
        cpu = CPU(self.machine, debugger=debugger)
        self.machine.pc = 0x200
        cpu.execute(decode(0x6005))
        self.assertEqual([0x6005], lines)
