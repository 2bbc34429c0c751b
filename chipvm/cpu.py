#!/usr/bin/env python3

"""
CPU Emulator (CHIP-8)

The instruction set lives here.  Each handler takes a decoded Instruction,
applies its effect to the Machine (registers, memory, stack, timers,
framebuffer), and moves the program counter on:

    * By 2 for ordinary instructions
    * By 4 when a skip is taken
    * Not at all when the key wait (Fx0A) is still waiting
    * To an explicit address for jumps, calls and returns

Instructions which report carries, borrows, shifted-out bits or sprite
collisions do so through Vf, and Vf is always written last.  That way the flag
survives even when Vf was also the destination register.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from random import Random
from .audio.a_null import Audio
from .constants import APP_INTRO, FONT_LOC, FONT_SPRITE_HEIGHT
from .debugger import Debugger
from .decoder import FORMS, UnknownOpcodeError, decode

CPU_ENDIAN = "big"  # CHIP-8 is big-endian


class CPUError(Exception):
    pass


class CPU:
    def __init__(self, machine, audio=None, debugger=None, rng=None):
        self.machine = machine
        self.ram = machine.ram
        self.v = machine.v
        self.audio = Audio() if audio is None else audio
        self.debugger = Debugger() if debugger is None else debugger
        self.rng = Random() if rng is None else rng

        # Map every decodable form to its handler, e.g. "8xy4" -> self._8xy4
        self.instructions = {}

        for form in FORMS.values():
            handler = getattr(self, "_" + form, None)

            if handler is None:
                raise CPUError("No handler defined for instruction {}".format(form))

            self.instructions[form] = handler

        # Key wait (Fx0A) state
        self.awaiting_keypress = False
        self.wait_instruction = None

        # Kept for debugging, in case there is a crash
        self.debug_pc = machine.pc
        self.opcode = 0

    def fetch(self):
        return int.from_bytes(self.ram.read_block(self.machine.pc, 2), CPU_ENDIAN, signed=False)

    def step(self):
        # One fetch-decode-execute.  Returns the executed instruction.
        self.debug_pc = self.machine.pc
        self.opcode = self.fetch()

        try:
            instruction = decode(self.opcode)
        except UnknownOpcodeError:
            self._opcode_unsupported()

        self.execute(instruction)
        return instruction

    def execute(self, instruction):
        if self.debugger.is_live():
            self.debugger.output(self.machine, instruction)

        self.instructions[instruction.form](instruction)

    def poll_keypress(self):
        # While blocked on a key, this is the only thing run each cycle.  Returns True once the wait has finished.
        if not self.awaiting_keypress:
            return True

        self._Fx0A(self.wait_instruction)
        return not self.awaiting_keypress

    def reset(self):
        self.machine.reset()
        self.awaiting_keypress = False
        self.wait_instruction = None
        self.audio.enable_buzzer(False)
        self.debug_pc = self.machine.pc
        self.opcode = 0

    def _opcode_unsupported(self):
        raise UnknownOpcodeError(
            self.opcode,
            (
                "Emulation halted.\n\n" +
                "{}Debug info:\n" +
                "{}\n\nOpcode 0x{:04x} at address 0x{:03x} is not a CHIP-8 instruction."
            ).format(
                APP_INTRO, self.debugger.dump(self.machine, pc=self.debug_pc, opcode=self.opcode), self.opcode,
                self.debug_pc
            )
        ) from None

    def _next(self):
        self.machine.advance_pc()

    def _skip_if(self, condition):
        self.machine.advance_pc(2 if condition else 1)

    def _00E0(self, ins):  # CLS
        self.machine.framebuffer.clear()
        self._next()

    def _00EE(self, ins):  # RET
        # The stack holds the address of the CALL itself, so step over it
        self.machine.set_pc(self.machine.stack.pop() + 2)

    def _1nnn(self, ins):  # JP addr
        self.machine.set_pc(ins.nnn)

    def _2nnn(self, ins):  # CALL addr
        machine = self.machine
        machine.stack.push(machine.pc)
        machine.set_pc(ins.nnn)

    def _3xkk(self, ins):  # SE Vx, byte
        self._skip_if(self.v[ins.x] == ins.kk)

    def _4xkk(self, ins):  # SNE Vx, byte
        self._skip_if(self.v[ins.x] != ins.kk)

    def _5xy0(self, ins):  # SE Vx, Vy
        self._skip_if(self.v[ins.x] == self.v[ins.y])

    def _6xkk(self, ins):  # LD Vx, byte
        self.v[ins.x] = ins.kk
        self._next()

    def _7xkk(self, ins):  # ADD Vx, byte
        # No carry flag for this one
        self.v[ins.x] = (self.v[ins.x] + ins.kk) & 0xFF
        self._next()

    def _8xy0(self, ins):  # LD Vx, Vy
        self.v[ins.x] = self.v[ins.y]
        self._next()

    def _8xy1(self, ins):  # OR Vx, Vy
        self.v[ins.x] |= self.v[ins.y]
        self._next()

    def _8xy2(self, ins):  # AND Vx, Vy
        self.v[ins.x] &= self.v[ins.y]
        self._next()

    def _8xy3(self, ins):  # XOR Vx, Vy
        self.v[ins.x] ^= self.v[ins.y]
        self._next()

    def _8xy4(self, ins):  # ADD Vx, Vy
        val = self.v[ins.x] + self.v[ins.y]
        self.v[ins.x] = val & 0xFF
        self.v[0xF] = int(val > 0xFF)  # Vf is set when carrying
        self._next()

    def _post_8xy5_8xy7(self, ins, minuend, subtrahend):  # Post-SUB/SUBN
        self.v[ins.x] = (minuend - subtrahend) & 0xFF
        # Vf is set when NOT borrowing
        self.v[0xF] = int(minuend >= subtrahend)
        self._next()

    def _8xy5(self, ins):  # SUB Vx, Vy
        self._post_8xy5_8xy7(ins, self.v[ins.x], self.v[ins.y])

    def _8xy6(self, ins):  # SHR Vx
        val = self.v[ins.x]
        self.v[ins.x] = val >> 1
        self.v[0xF] = val & 1
        self._next()

    def _8xy7(self, ins):  # SUBN Vx, Vy
        self._post_8xy5_8xy7(ins, self.v[ins.y], self.v[ins.x])

    def _8xyE(self, ins):  # SHL Vx
        val = self.v[ins.x]
        self.v[ins.x] = (val << 1) & 0xFF
        self.v[0xF] = val >> 7
        self._next()

    def _9xy0(self, ins):  # SNE Vx, Vy
        self._skip_if(self.v[ins.x] != self.v[ins.y])

    def _Annn(self, ins):  # LD I, addr
        self.machine.set_index(ins.nnn)
        self._next()

    def _Bnnn(self, ins):  # JP V0, addr
        self.machine.set_pc(self.v[0] + ins.nnn)

    def _Cxkk(self, ins):  # RND Vx, byte
        # The ANDing here is intentional.  This is not a random number between 0 and 'byte' inclusive.
        self.v[ins.x] = self.rng.randint(0, 0xFF) & ins.kk
        self._next()

    def _Dxyn(self, ins):  # DRW Vx, Vy, nibble
        # The sprite's start wraps, and so does every pixel of it
        framebuffer = self.machine.framebuffer
        vid_width, vid_height = framebuffer.get_vid_size()
        rows = self.ram.read_block(self.machine.i, ins.n)
        collided = framebuffer.draw_sprite(self.v[ins.x] % vid_width, self.v[ins.y] % vid_height, rows)
        self.v[0xF] = int(collided)
        self._next()

    def _Ex9E(self, ins):  # SKP Vx
        self._skip_if(self.machine.keypad.is_key_down(self.v[ins.x]))

    def _ExA1(self, ins):  # SKNP Vx
        self._skip_if(not self.machine.keypad.is_key_down(self.v[ins.x]))

    def _Fx07(self, ins):  # LD Vx, DT
        self.v[ins.x] = self.machine.dt
        self._next()

    def _Fx0A(self, ins):  # LD Vx, K
        # The first run starts waiting and leaves the program counter where it is, so the cycle driver stops
        # fetching and keeps calling back here instead.  The timers stay frozen while this happens.
        keypad = self.machine.keypad

        if not self.awaiting_keypress:
            keypad.begin_wait()  # A key already held down doesn't count
            self.awaiting_keypress = True
            self.wait_instruction = ins
            return

        key = keypad.take_keypress()

        if key is not None:
            self.v[ins.x] = key
            self.awaiting_keypress = False
            self.wait_instruction = None
            self._next()

    def _Fx15(self, ins):  # LD DT, Vx
        self.machine.dt = self.v[ins.x]
        self._next()

    def _Fx18(self, ins):  # LD ST, Vx
        st = self.v[ins.x]
        # Allow the program to start the buzzer, or immediately stop it before the sound timer hits zero
        self.audio.enable_buzzer(st > 0)
        self.machine.st = st
        self._next()

    def _Fx1E(self, ins):  # ADD I, Vx
        self.machine.set_index(self.machine.i + self.v[ins.x])
        self._next()

    def _Fx29(self, ins):  # LD F, Vx
        self.machine.set_index(FONT_LOC + FONT_SPRITE_HEIGHT * self.v[ins.x])
        self._next()

    def _Fx33(self, ins):  # LD B, Vx
        val = self.v[ins.x]
        i = self.machine.i
        self.ram.write(i, val // 100)             # Most-significant digit
        self.ram.write(i + 1, (val // 10) % 10)   # Middle digit
        self.ram.write(i + 2, val % 10)           # Least-significant digit
        self._next()

    def _Fx55(self, ins):  # LD [I], Vx
        i = self.machine.i

        for reg in range(ins.x + 1):
            self.ram.write(i + reg, self.v[reg])

        self._next()

    def _Fx65(self, ins):  # LD Vx, [I]
        i = self.machine.i

        for reg in range(ins.x + 1):
            self.v[reg] = self.ram.read(i + reg)

        self._next()
