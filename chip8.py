import logging

logger = logging.getLogger(__name__)

MEMORY_SIZE = 4096
PROGRAM_START = 0x200
MAX_PROGRAM_SIZE = MEMORY_SIZE - PROGRAM_START
FONT_GLYPH_SIZE = 5
MIN_STACK_DEPTH = 12
MAX_STACK_DEPTH = 16

FONTSET = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80   # F
])


class Chip8Error(Exception):
    """Base class for every fault the machine reports to its host."""


class RomLoadError(Chip8Error, ValueError):
    pass


class RomTooLargeError(RomLoadError):
    pass


class StackOverflowError(Chip8Error, RuntimeError):
    pass


class StackUnderflowError(Chip8Error, RuntimeError):
    pass


class MemoryAccessError(Chip8Error, IndexError):
    pass


class KeyWait:
    """Pending FX0A read: the target register and, once seen, the latched key."""

    def __init__(self, register, key=None):
        self.register = register
        self.key = key

    def __repr__(self):
        return f"KeyWait(register={self.register}, key={self.key})"


class CallStack:
    def __init__(self, capacity=MAX_STACK_DEPTH):
        self.capacity = capacity
        self.slots = [0] * capacity
        self.top = 0

    def __len__(self):
        return self.top

    @property
    def depth(self):
        return self.top

    def push(self, address):
        if self.top >= self.capacity:
            raise StackOverflowError(
                f"Stack overflow on CALL: depth {self.top} reached capacity {self.capacity}.")
        self.slots[self.top] = address
        self.top += 1

    def pop(self):
        if self.top == 0:
            raise StackUnderflowError("Stack underflow on RET: no return address on the stack.")
        self.top -= 1
        return self.slots[self.top]

    def peek(self):
        if self.top == 0:
            return None
        return self.slots[self.top - 1]


class Machine:
    def __init__(self, width=64, height=32, stack_depth=MAX_STACK_DEPTH):
        if not MIN_STACK_DEPTH <= stack_depth <= MAX_STACK_DEPTH:
            raise ValueError(
                f"Stack depth must be between {MIN_STACK_DEPTH} and {MAX_STACK_DEPTH}, got {stack_depth}.")
        if width <= 0 or height <= 0:
            raise ValueError(f"Display size must be positive, got {width}x{height}.")
        self.memory = bytearray(MEMORY_SIZE)
        self.memory[0:len(FONTSET)] = FONTSET
        self.V = [0] * 16
        self.I = 0
        self.pc = PROGRAM_START
        self.stack = CallStack(stack_depth)
        self.delay_timer = 0
        self.sound_timer = 0
        self.keypad = [False] * 16
        self.width = width
        self.height = height
        self.display = [[0] * width for _ in range(height)]
        self.draw_flag = True
        self.current_instruction = None
        self.key_wait = None
        self.program_size = 0

    @classmethod
    def from_rom(cls, program_bytes, width=64, height=32, stack_depth=MAX_STACK_DEPTH):
        machine = cls(width=width, height=height, stack_depth=stack_depth)
        machine.load_program(program_bytes)
        return machine

    def load_from_file(self, filename):
        self.load_program(read_rom(filename))

    def load_program(self, program_bytes):
        if len(program_bytes) > MAX_PROGRAM_SIZE:
            raise RomTooLargeError(
                f"Program size {len(program_bytes)} exceeds the {MAX_PROGRAM_SIZE} bytes available.")
        self.memory[PROGRAM_START:PROGRAM_START + len(program_bytes)] = program_bytes
        self.program_size = len(program_bytes)
        logger.debug(f"Loaded {len(program_bytes)} program bytes at 0x{PROGRAM_START:03X}.")

    def _check_address(self, address, count=1):
        if address < 0 or address + count > MEMORY_SIZE:
            raise MemoryAccessError(
                f"Memory access at 0x{address:04X} (+{count}) is outside 0x000-0x{MEMORY_SIZE - 1:03X}.")

    def read_byte(self, address):
        self._check_address(address)
        return self.memory[address]

    def write_byte(self, address, value):
        self._check_address(address)
        self.memory[address] = value & 0xFF

    def read_block(self, address, count):
        self._check_address(address, count)
        return self.memory[address:address + count]

    def write_block(self, address, values):
        self._check_address(address, len(values))
        self.memory[address:address + len(values)] = bytes(values)

    def fetch_opcode(self):
        self._check_address(self.pc, 2)
        high_byte = self.memory[self.pc]
        low_byte = self.memory[self.pc + 1]
        return (high_byte << 8) | low_byte

    def clear_display(self):
        self.display = [[0] * self.width for _ in range(self.height)]
        self.draw_flag = True

    def framebuffer(self):
        """Settled copy of the display grid, safe to hand to a renderer."""
        return tuple(tuple(row) for row in self.display)

    def tick_timers(self):
        if self.delay_timer > 0:
            self.delay_timer -= 1
        if self.sound_timer > 0:
            self.sound_timer -= 1

    @property
    def sound_active(self):
        return self.sound_timer > 0

    def set_key(self, key, pressed):
        self.keypad[key & 0xF] = bool(pressed)

    def release_all_keys(self):
        self.keypad = [False] * 16

    def __str__(self):
        registers = " ".join(f"V{i:X}={v:02X}" for i, v in enumerate(self.V))
        return (f"PC=0x{self.pc:04X} I=0x{self.I:04X} SP={self.stack.depth} "
                f"DT={self.delay_timer} ST={self.sound_timer}\n{registers}")


def read_rom(filename):
    try:
        with open(filename, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise RomLoadError(f"Could not read ROM {filename}: {e}") from e
    if not data:
        raise RomLoadError(f"ROM {filename} is empty.")
    if len(data) > MAX_PROGRAM_SIZE:
        raise RomTooLargeError(
            f"ROM {filename} is {len(data)} bytes, larger than the {MAX_PROGRAM_SIZE} bytes available.")
    return data
