from collections import namedtuple

_Fields = namedtuple("Instruction", ["opcode", "family", "x", "y", "n", "nn", "nnn"])


class Instruction(_Fields):
    """A 16-bit opcode split into the fields every CHIP-8 instruction draws from."""
    __slots__ = ()

    def mnemonic(self):
        f, x, y, n, nn, nnn = self.family, self.x, self.y, self.n, self.nn, self.nnn
        if self.opcode == 0x00E0:
            return "CLS"
        if self.opcode == 0x00EE:
            return "RET"
        simple = {
            0x1: f"JP 0x{nnn:03X}",
            0x2: f"CALL 0x{nnn:03X}",
            0x3: f"SE V{x:X}, 0x{nn:02X}",
            0x4: f"SNE V{x:X}, 0x{nn:02X}",
            0x6: f"LD V{x:X}, 0x{nn:02X}",
            0x7: f"ADD V{x:X}, 0x{nn:02X}",
            0xA: f"LD I, 0x{nnn:03X}",
            0xB: f"JP V0, 0x{nnn:03X}",
            0xC: f"RND V{x:X}, 0x{nn:02X}",
            0xD: f"DRW V{x:X}, V{y:X}, {n}",
        }
        if f in simple:
            return simple[f]
        if f == 0x5 and n == 0:
            return f"SE V{x:X}, V{y:X}"
        if f == 0x9 and n == 0:
            return f"SNE V{x:X}, V{y:X}"
        if f == 0x8:
            names = {0x0: "LD", 0x1: "OR", 0x2: "AND", 0x3: "XOR", 0x4: "ADD",
                     0x5: "SUB", 0x6: "SHR", 0x7: "SUBN", 0xE: "SHL"}
            if n in names:
                return f"{names[n]} V{x:X}, V{y:X}"
        if f == 0xE:
            if nn == 0x9E:
                return f"SKP V{x:X}"
            if nn == 0xA1:
                return f"SKNP V{x:X}"
        if f == 0xF:
            forms = {
                0x07: f"LD V{x:X}, DT",
                0x0A: f"LD V{x:X}, K",
                0x15: f"LD DT, V{x:X}",
                0x18: f"LD ST, V{x:X}",
                0x1E: f"ADD I, V{x:X}",
                0x29: f"LD F, V{x:X}",
                0x33: f"LD B, V{x:X}",
                0x55: f"LD [I], V{x:X}",
                0x65: f"LD V{x:X}, [I]",
            }
            if nn in forms:
                return forms[nn]
        return f"DW 0x{self.opcode:04X}"


def decode(opcode):
    opcode &= 0xFFFF
    return Instruction(
        opcode=opcode,
        family=(opcode & 0xF000) >> 12,
        x=(opcode & 0x0F00) >> 8,
        y=(opcode & 0x00F0) >> 4,
        n=opcode & 0x000F,
        nn=opcode & 0x00FF,
        nnn=opcode & 0x0FFF,
    )
