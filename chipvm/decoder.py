#!/usr/bin/env python3

"""
Opcode Decoder

Turns a 16-bit instruction word into an Instruction: the canonical form of the
opcode (e.g. "8xy4") plus every operand field, each extracted once.

Operands always sit in the same place, whatever the instruction:

    x   = bits 11-8  (register)
    y   = bits 7-4   (register)
    n   = bits 3-0   (nibble)
    kk  = bits 7-0   (byte)
    nnn = bits 11-0  (address)

The form is looked up on a (primary, secondary) pair.  The primary selector is
always the top nibble.  Only the primaries shared by several instructions have
a secondary selector:

    0x0, 0x5, 0x8, 0x9  ->  low nibble
    0xE, 0xF            ->  low byte

Everything else is looked up with a secondary selector of None.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"


class DecoderError(Exception):
    pass


class UnknownOpcodeError(DecoderError):
    def __init__(self, opcode, message=None):
        self.opcode = opcode
        super().__init__(message or "Opcode 0x{:04x} is not a CHIP-8 instruction".format(opcode))


# How the secondary selector is found for each primary nibble
SECONDARY_MASKS = {
    0x0: 0x000F,
    0x5: 0x000F,
    0x8: 0x000F,
    0x9: 0x000F,
    0xE: 0x00FF,
    0xF: 0x00FF
}

FORMS = {
    (0x0, 0x0): "00E0",  # CLS
    (0x0, 0xE): "00EE",  # RET
    (0x1, None): "1nnn",  # JP addr
    (0x2, None): "2nnn",  # CALL addr
    (0x3, None): "3xkk",  # SE Vx, byte
    (0x4, None): "4xkk",  # SNE Vx, byte
    (0x5, 0x0): "5xy0",  # SE Vx, Vy
    (0x6, None): "6xkk",  # LD Vx, byte
    (0x7, None): "7xkk",  # ADD Vx, byte
    (0x8, 0x0): "8xy0",  # LD Vx, Vy
    (0x8, 0x1): "8xy1",  # OR Vx, Vy
    (0x8, 0x2): "8xy2",  # AND Vx, Vy
    (0x8, 0x3): "8xy3",  # XOR Vx, Vy
    (0x8, 0x4): "8xy4",  # ADD Vx, Vy
    (0x8, 0x5): "8xy5",  # SUB Vx, Vy
    (0x8, 0x6): "8xy6",  # SHR Vx
    (0x8, 0x7): "8xy7",  # SUBN Vx, Vy
    (0x8, 0xE): "8xyE",  # SHL Vx
    (0x9, 0x0): "9xy0",  # SNE Vx, Vy
    (0xA, None): "Annn",  # LD I, addr
    (0xB, None): "Bnnn",  # JP V0, addr
    (0xC, None): "Cxkk",  # RND Vx, byte
    (0xD, None): "Dxyn",  # DRW Vx, Vy, nibble
    (0xE, 0x9E): "Ex9E",  # SKP Vx
    (0xE, 0xA1): "ExA1",  # SKNP Vx
    (0xF, 0x07): "Fx07",  # LD Vx, DT
    (0xF, 0x0A): "Fx0A",  # LD Vx, K
    (0xF, 0x15): "Fx15",  # LD DT, Vx
    (0xF, 0x18): "Fx18",  # LD ST, Vx
    (0xF, 0x1E): "Fx1E",  # ADD I, Vx
    (0xF, 0x29): "Fx29",  # LD F, Vx
    (0xF, 0x33): "Fx33",  # LD B, Vx
    (0xF, 0x55): "Fx55",  # LD [I], Vx
    (0xF, 0x65): "Fx65"   # LD Vx, [I]
}

# Assembler-style mnemonics, filled in from the instruction's fields
MNEMONICS = {
    "00E0": "CLS",
    "00EE": "RET",
    "1nnn": "JP 0x{nnn:03x}",
    "2nnn": "CALL 0x{nnn:03x}",
    "3xkk": "SE V{x:01x}, 0x{kk:02x}",
    "4xkk": "SNE V{x:01x}, 0x{kk:02x}",
    "5xy0": "SE V{x:01x}, V{y:01x}",
    "6xkk": "LD V{x:01x}, 0x{kk:02x}",
    "7xkk": "ADD V{x:01x}, 0x{kk:02x}",
    "8xy0": "LD V{x:01x}, V{y:01x}",
    "8xy1": "OR V{x:01x}, V{y:01x}",
    "8xy2": "AND V{x:01x}, V{y:01x}",
    "8xy3": "XOR V{x:01x}, V{y:01x}",
    "8xy4": "ADD V{x:01x}, V{y:01x}",
    "8xy5": "SUB V{x:01x}, V{y:01x}",
    "8xy6": "SHR V{x:01x}",
    "8xy7": "SUBN V{x:01x}, V{y:01x}",
    "8xyE": "SHL V{x:01x}",
    "9xy0": "SNE V{x:01x}, V{y:01x}",
    "Annn": "LD I, 0x{nnn:03x}",
    "Bnnn": "JP V0, 0x{nnn:03x}",
    "Cxkk": "RND V{x:01x}, 0x{kk:02x}",
    "Dxyn": "DRW V{x:01x}, V{y:01x}, 0x{n:01x}",
    "Ex9E": "SKP V{x:01x}",
    "ExA1": "SKNP V{x:01x}",
    "Fx07": "LD V{x:01x}, DT",
    "Fx0A": "LD V{x:01x}, K",
    "Fx15": "LD DT, V{x:01x}",
    "Fx18": "LD ST, V{x:01x}",
    "Fx1E": "ADD I, V{x:01x}",
    "Fx29": "LD F, V{x:01x}",
    "Fx33": "LD B, V{x:01x}",
    "Fx55": "LD [I], V{x:01x}",
    "Fx65": "LD V{x:01x}, [I]"
}


class Instruction:
    __slots__ = ("opcode", "form", "x", "y", "n", "kk", "nnn")

    def __init__(self, opcode, form):
        self.opcode = opcode
        self.form = form
        self.x = (opcode & 0x0F00) >> 8
        self.y = (opcode & 0x00F0) >> 4
        self.n = opcode & 0x000F
        self.kk = opcode & 0x00FF
        self.nnn = opcode & 0x0FFF

    def __eq__(self, other):
        if not isinstance(other, Instruction):
            return NotImplemented

        return self.opcode == other.opcode

    def __hash__(self):
        return hash(self.opcode)

    def __repr__(self):
        return "Instruction(0x{:04x}, {!r})".format(self.opcode, self.form)


def selectors(opcode):
    primary = (opcode & 0xF000) >> 12
    secondary_mask = SECONDARY_MASKS.get(primary)
    return primary, None if secondary_mask is None else opcode & secondary_mask


def decode(opcode):
    if not 0 <= opcode <= 0xFFFF:
        raise DecoderError("Instruction words are 16 bits, got 0x{:x}".format(opcode))

    form = FORMS.get(selectors(opcode))

    if form is None:
        raise UnknownOpcodeError(opcode)

    return Instruction(opcode, form)


def disassemble(instruction):
    return MNEMONICS[instruction.form].format(
        x=instruction.x, y=instruction.y, n=instruction.n, kk=instruction.kk, nnn=instruction.nnn
    )
