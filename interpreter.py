import logging
import random
from enum import Enum
from functools import partial

from chip8 import FONT_GLYPH_SIZE, KeyWait
from decoder import decode

logger = logging.getLogger(__name__)


class StepResult(Enum):
    EXECUTED = "executed"
    WAITING_FOR_KEY = "waiting_for_key"


class Interpreter:
    """Executes one CHIP-8 instruction per call to step().

    The quirk profile is fixed for the interpreter's lifetime. Handlers whose
    behaviour depends on it receive the relevant switch as a keyword argument,
    bound once when the dispatch tables are built.
    """

    def __init__(self, quirks, rng=None):
        self.quirks = quirks
        self.rng = rng if rng is not None else random.Random()
        self._system = {
            0x00E0: self._cls,
            0x00EE: self._ret,
        }
        self._families = {
            0x1: self._jump,
            0x2: self._call,
            0x3: self._skip_if_eq,
            0x4: self._skip_if_not_eq,
            0x6: self._set_vx,
            0x7: self._add_to_vx,
            0xA: self._set_index,
            0xB: self._jump_plus_v0,
            0xC: self._random_and,
            0xD: self._draw,
        }
        self._register_pairs = {
            0x5: self._skip_if_regs_eq,
            0x9: self._skip_if_regs_not_eq,
        }
        self._arithmetic = {
            0x0: self._copy,
            0x1: partial(self._or, reset_vf=quirks.logic_resets_vf),
            0x2: partial(self._and, reset_vf=quirks.logic_resets_vf),
            0x3: partial(self._xor, reset_vf=quirks.logic_resets_vf),
            0x4: self._add,
            0x5: self._sub,
            0x6: partial(self._shift_right, use_vy=quirks.shift_uses_vy),
            0x7: self._subn,
            0xE: partial(self._shift_left, use_vy=quirks.shift_uses_vy),
        }
        self._keys = {
            0x9E: self._skip_if_pressed,
            0xA1: self._skip_if_not_pressed,
        }
        self._misc = {
            0x07: self._get_delay,
            0x0A: self._wait_key,
            0x15: self._set_delay,
            0x18: self._set_sound,
            0x1E: self._add_to_index,
            0x29: self._font_glyph,
            0x33: self._store_bcd,
            0x55: partial(self._store_registers, increment_i=quirks.load_store_increments_i),
            0x65: partial(self._load_registers, increment_i=quirks.load_store_increments_i),
        }

    def lookup(self, ins):
        """Return the handler for a decoded instruction, or None when it is not recognised."""
        family = ins.family
        if family == 0x0:
            return self._system.get(ins.opcode)
        if family in self._families:
            return self._families[family]
        if family in self._register_pairs:
            return self._register_pairs[family] if ins.n == 0 else None
        if family == 0x8:
            return self._arithmetic.get(ins.n)
        if family == 0xE:
            return self._keys.get(ins.nn)
        return self._misc.get(ins.nn)

    def step(self, machine):
        if machine.key_wait is not None:
            return self._poll_key_wait(machine)
        opcode = machine.fetch_opcode()
        machine.pc = (machine.pc + 2) & 0xFFFF
        ins = decode(opcode)
        machine.current_instruction = ins
        handler = self.lookup(ins)
        if handler is None:
            logger.debug(f"Unknown opcode {opcode:04X} at 0x{machine.pc - 2:03X}, ignoring.")
            return StepResult.EXECUTED
        result = handler(machine, ins)
        return result if result is not None else StepResult.EXECUTED

    # -- flow control

    def _cls(self, m, ins):
        "00E0 - CLS: Clear the display."
        m.clear_display()

    def _ret(self, m, ins):
        "00EE - RET: Return from a subroutine."
        m.pc = m.stack.pop()

    def _jump(self, m, ins):
        "1NNN - JP addr: Jump to location NNN."
        m.pc = ins.nnn

    def _call(self, m, ins):
        "2NNN - CALL addr: Call subroutine at NNN."
        m.stack.push(m.pc)
        m.pc = ins.nnn

    def _skip(self, m):
        m.pc = (m.pc + 2) & 0xFFFF

    def _skip_if_eq(self, m, ins):
        "3XNN - Skip the next instruction if VX equals NN."
        if m.V[ins.x] == ins.nn:
            self._skip(m)

    def _skip_if_not_eq(self, m, ins):
        "4XNN - Skip the next instruction if VX doesn't equal NN."
        if m.V[ins.x] != ins.nn:
            self._skip(m)

    def _skip_if_regs_eq(self, m, ins):
        "5XY0 - Skip the next instruction if VX equals VY."
        if m.V[ins.x] == m.V[ins.y]:
            self._skip(m)

    def _skip_if_regs_not_eq(self, m, ins):
        "9XY0 - Skip the next instruction if VX doesn't equal VY."
        if m.V[ins.x] != m.V[ins.y]:
            self._skip(m)

    def _jump_plus_v0(self, m, ins):
        "BNNN - Jump to the address NNN plus V0."
        m.pc = ins.nnn + m.V[0]

    # -- registers

    def _set_vx(self, m, ins):
        "6XNN - Set VX to NN."
        m.V[ins.x] = ins.nn

    def _add_to_vx(self, m, ins):
        "7XNN - Add NN to VX. The carry flag is not changed."
        m.V[ins.x] = (m.V[ins.x] + ins.nn) & 0xFF

    def _copy(self, m, ins):
        "8XY0 - Set VX to the value of VY."
        m.V[ins.x] = m.V[ins.y]

    def _or(self, m, ins, reset_vf):
        "8XY1 - Set VX to VX or VY."
        m.V[ins.x] |= m.V[ins.y]
        if reset_vf:
            m.V[0xF] = 0

    def _and(self, m, ins, reset_vf):
        "8XY2 - Set VX to VX and VY."
        m.V[ins.x] &= m.V[ins.y]
        if reset_vf:
            m.V[0xF] = 0

    def _xor(self, m, ins, reset_vf):
        "8XY3 - Set VX to VX xor VY."
        m.V[ins.x] ^= m.V[ins.y]
        if reset_vf:
            m.V[0xF] = 0

    # The flag is written after the result so VF holds the flag when X is F.

    def _add(self, m, ins):
        "8XY4 - Add VY to VX. VF is 1 on carry, 0 otherwise."
        total = m.V[ins.x] + m.V[ins.y]
        m.V[ins.x] = total & 0xFF
        m.V[0xF] = 1 if total > 0xFF else 0

    def _sub(self, m, ins):
        "8XY5 - Subtract VY from VX. VF is 0 on borrow, 1 otherwise."
        vx, vy = m.V[ins.x], m.V[ins.y]
        m.V[ins.x] = (vx - vy) & 0xFF
        m.V[0xF] = 1 if vy <= vx else 0

    def _subn(self, m, ins):
        "8XY7 - Set VX to VY minus VX. VF is 0 on borrow, 1 otherwise."
        vx, vy = m.V[ins.x], m.V[ins.y]
        m.V[ins.x] = (vy - vx) & 0xFF
        m.V[0xF] = 1 if vx <= vy else 0

    def _shift_right(self, m, ins, use_vy):
        "8XY6 - Shift right by one; VF takes the bit shifted out."
        source = m.V[ins.y] if use_vy else m.V[ins.x]
        m.V[ins.x] = source >> 1
        m.V[0xF] = source & 0x1

    def _shift_left(self, m, ins, use_vy):
        "8XYE - Shift left by one; VF takes the bit shifted out."
        source = m.V[ins.y] if use_vy else m.V[ins.x]
        m.V[ins.x] = (source << 1) & 0xFF
        m.V[0xF] = (source & 0x80) >> 7

    def _random_and(self, m, ins):
        "CXNN - Set VX to a random byte masked with NN."
        m.V[ins.x] = self.rng.randint(0, 255) & ins.nn

    # -- index register and memory

    def _set_index(self, m, ins):
        "ANNN - Set I to the address NNN."
        m.I = ins.nnn

    def _add_to_index(self, m, ins):
        "FX1E - Add VX to I. VF is not affected."
        m.I = (m.I + m.V[ins.x]) & 0xFFFF

    def _font_glyph(self, m, ins):
        "FX29 - Point I at the font glyph for the digit in VX."
        m.I = m.V[ins.x] * FONT_GLYPH_SIZE

    def _store_bcd(self, m, ins):
        "FX33 - Store the decimal digits of VX at I, I+1 and I+2."
        value = m.V[ins.x]
        m.write_block(m.I, [value // 100, (value // 10) % 10, value % 10])

    def _store_registers(self, m, ins, increment_i):
        "FX55 - Store V0 through VX in memory starting at I."
        m.write_block(m.I, m.V[:ins.x + 1])
        if increment_i:
            m.I = (m.I + ins.x + 1) & 0xFFFF

    def _load_registers(self, m, ins, increment_i):
        "FX65 - Fill V0 through VX from memory starting at I."
        m.V[:ins.x + 1] = list(m.read_block(m.I, ins.x + 1))
        if increment_i:
            m.I = (m.I + ins.x + 1) & 0xFFFF

    # -- display

    def _draw(self, m, ins):
        """DXYN - Draw an 8xN sprite from memory at I to (VX, VY).

        The origin wraps onto the screen; the sprite itself is clipped at the
        right and bottom edges. VF is set when a lit pixel is turned off.
        """
        x = m.V[ins.x] % m.width
        y = m.V[ins.y] % m.height
        collision = 0
        for row in range(ins.n):
            screen_y = y + row
            if screen_y >= m.height:
                break
            sprite_byte = m.read_byte(m.I + row)
            line = m.display[screen_y]
            for col in range(8):
                screen_x = x + col
                if screen_x >= m.width:
                    break
                if (sprite_byte >> (7 - col)) & 0x1:
                    if line[screen_x]:
                        collision = 1
                    line[screen_x] ^= 1
        m.V[0xF] = collision
        m.draw_flag = True

    # -- input and timers

    def _skip_if_pressed(self, m, ins):
        "EX9E - Skip the next instruction if the key in VX is pressed."
        if m.keypad[m.V[ins.x] & 0xF]:
            self._skip(m)

    def _skip_if_not_pressed(self, m, ins):
        "EXA1 - Skip the next instruction if the key in VX isn't pressed."
        if not m.keypad[m.V[ins.x] & 0xF]:
            self._skip(m)

    def _wait_key(self, m, ins):
        "FX0A - Wait for a key press and release, then store the key in VX."
        m.pc = (m.pc - 2) & 0xFFFF
        m.key_wait = KeyWait(ins.x)
        logger.debug(f"Waiting for a key to store in V{ins.x:X}.")
        return self._poll_key_wait(m)

    def _poll_key_wait(self, m):
        wait = m.key_wait
        if wait.key is None:
            wait.key = next((k for k, pressed in enumerate(m.keypad) if pressed), None)
            return StepResult.WAITING_FOR_KEY
        if m.keypad[wait.key]:
            return StepResult.WAITING_FOR_KEY
        m.V[wait.register] = wait.key
        m.key_wait = None
        m.pc = (m.pc + 2) & 0xFFFF
        logger.debug(f"Key {wait.key:X} released, stored in V{wait.register:X}.")
        return StepResult.EXECUTED

    def _get_delay(self, m, ins):
        "FX07 - Set VX to the value of the delay timer."
        m.V[ins.x] = m.delay_timer

    def _set_delay(self, m, ins):
        "FX15 - Set the delay timer to VX."
        m.delay_timer = m.V[ins.x]

    def _set_sound(self, m, ins):
        "FX18 - Set the sound timer to VX."
        m.sound_timer = m.V[ins.x]


def step(machine, quirks, rng=None):
    return Interpreter(quirks, rng=rng).step(machine)
