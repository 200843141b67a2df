import array
import logging
import os
import time
from enum import Enum

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
import pygame

from chip8 import Chip8Error, Machine
from interpreter import Interpreter
from scheduler import FrameScheduler

logger = logging.getLogger(__name__)

KEYMAP = {
    pygame.K_1: 0x1, pygame.K_2: 0x2, pygame.K_3: 0x3, pygame.K_4: 0xC,
    pygame.K_q: 0x4, pygame.K_w: 0x5, pygame.K_e: 0x6, pygame.K_r: 0xD,
    pygame.K_a: 0x7, pygame.K_s: 0x8, pygame.K_d: 0x9, pygame.K_f: 0xE,
    pygame.K_z: 0xA, pygame.K_x: 0x0, pygame.K_c: 0xB, pygame.K_v: 0xF,
}

VOLUME_STEP = 0.05
RATE_STEP = 60


class EmulatorState(Enum):
    RUNNING = "running"
    PAUSED = "paused"
    QUIT = "quit"


def make_square_wave(freq=440, duration=0.1, volume=0.2, sample_rate=44100):
    """Signed 16-bit mono square wave, returned as raw bytes."""
    n_samples = int(duration * sample_rate)
    buf = array.array("h")
    amp = int(32767 * volume)
    half_period = max(1, sample_rate // (2 * freq))

    v = amp
    count = 0
    for _ in range(n_samples):
        buf.append(v)
        count += 1
        if count >= half_period:
            v = -v
            count = 0
    return buf.tobytes()


def make_beep_sound(audio):
    return pygame.mixer.Sound(buffer=make_square_wave(
        freq=audio.tone_hz, duration=0.1, volume=audio.volume, sample_rate=audio.sample_rate))


def render(surface, framebuffer, fg_color, bg_color):
    surface.fill(bg_color)
    for y, row in enumerate(framebuffer):
        for x, pixel in enumerate(row):
            if pixel:
                surface.set_at((x, y), fg_color)
    return surface


class Emulator:
    """Host side of the machine: window, keyboard, beeper and the frame loop."""

    def __init__(self, rom, config, clock=time.perf_counter, sleep=time.sleep):
        self.rom = rom
        self.config = config
        self.clock = clock
        self.sleep = sleep
        self.fault = None
        self.quirks = config.quirk_profile()
        self.state = EmulatorState.RUNNING
        self.beeping = False
        self.beep = None
        self.channel = None
        self.reset()

    def reset(self):
        self.machine = Machine.from_rom(self.rom, width=self.config.width, height=self.config.height,
                                       stack_depth=self.config.stack_depth)
        self.interpreter = Interpreter(self.quirks)
        self.scheduler = FrameScheduler(self.interpreter, clock_rate=self.config.clock_rate,
                                        clock=self.clock, sleep=self.sleep)
        logger.debug(f"Machine reset with quirk profile {self.quirks.name}.")

    def change_volume(self, delta):
        volume = self.config.audio.adjust_volume(delta)
        logger.info(f"Volume {volume:.2f}")
        if self.channel is not None:
            self.beep = make_beep_sound(self.config.audio)
            if self.beeping:
                self.channel.play(self.beep, loops=-1)

    def change_rate(self, delta):
        rate = max(RATE_STEP, self.config.clock_rate + delta)
        self.config.clock_rate = rate
        self.scheduler.set_clock_rate(rate)
        logger.info(f"Clock rate {rate} instructions/second")

    def handle_event(self, event):
        if event.type == pygame.QUIT:
            self.state = EmulatorState.QUIT
        elif event.type == pygame.KEYDOWN:
            if event.key in KEYMAP:
                self.machine.set_key(KEYMAP[event.key], True)
            elif event.key == pygame.K_ESCAPE:
                self.state = EmulatorState.QUIT
            elif event.key == pygame.K_SPACE:
                if self.state is EmulatorState.RUNNING:
                    self.state = EmulatorState.PAUSED
                    logger.info("Paused")
                else:
                    self.state = EmulatorState.RUNNING
                    logger.info("Resumed")
            elif event.key == pygame.K_EQUALS:
                self.reset()
                logger.info("Reset")
            elif event.key == pygame.K_o:
                self.change_volume(-VOLUME_STEP)
            elif event.key == pygame.K_p:
                self.change_volume(VOLUME_STEP)
            elif event.key == pygame.K_j:
                self.change_rate(-RATE_STEP)
            elif event.key == pygame.K_k:
                self.change_rate(RATE_STEP)
        elif event.type == pygame.KEYUP:
            if event.key in KEYMAP:
                self.machine.set_key(KEYMAP[event.key], False)
        elif event.type == pygame.WINDOWFOCUSLOST:
            self.machine.release_all_keys()

    def set_audio(self, sound_on):
        if self.channel is None:
            return
        if sound_on and not self.beeping:
            self.channel.play(self.beep, loops=-1)
            self.beeping = True
        elif not sound_on and self.beeping:
            self.channel.stop()
            self.beeping = False

    def tick(self, events, present):
        """One host frame: input, instruction batch, audio gate, render, pacing.

        present receives the framebuffer whenever the machine's draw_flag is
        set, which includes the first frame after a reset. Machine faults
        propagate to the caller.
        """
        frame_start = self.clock()
        for event in events:
            self.handle_event(event)
        if self.state is EmulatorState.RUNNING:
            frame = self.scheduler.run_frame(self.machine)
            self.set_audio(frame.sound_on)
        else:
            self.set_audio(False)
        if self.machine.draw_flag:
            present(self.machine.framebuffer())
            self.machine.draw_flag = False
        if self.state is not EmulatorState.QUIT:
            self.scheduler.pace(frame_start)

    def run(self, caption="CHIP-8"):
        width, height, scale = self.config.width, self.config.height, self.config.scale
        pygame.mixer.pre_init(self.config.audio.sample_rate, -16, 1, 512)
        pygame.init()
        try:
            pygame.mixer.init()
            self.beep = make_beep_sound(self.config.audio)
            self.channel = pygame.mixer.Channel(0)
        except pygame.error as e:
            logger.warning(f"Audio unavailable, continuing without sound: {e}")
        pygame.display.set_caption(caption)
        window = pygame.display.set_mode((width * scale, height * scale))
        surface = pygame.Surface((width, height))
        fg, bg = self.config.fg_color, self.config.bg_color

        def present(framebuffer):
            render(surface, framebuffer, fg, bg)
            window.blit(pygame.transform.scale(surface, (width * scale, height * scale)), (0, 0))
            pygame.display.flip()

        try:
            while self.state is not EmulatorState.QUIT:
                try:
                    self.tick(pygame.event.get(), present)
                except Chip8Error as e:
                    logger.error(f"Machine fault: {e}")
                    logger.error(f"Last instruction: {self._describe_last()}\n{self.machine}")
                    self.fault = e
                    self.state = EmulatorState.QUIT
        finally:
            pygame.quit()
        return self.state

    def _describe_last(self):
        ins = self.machine.current_instruction
        if ins is None:
            return "none"
        return f"{ins.opcode:04X} {ins.mnemonic()}"
