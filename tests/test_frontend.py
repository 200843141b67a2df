import array

import pygame
import pytest

from chip8 import StackUnderflowError
from config import AudioConfig, EmulatorConfig
from frontend import KEYMAP, Emulator, EmulatorState, make_square_wave, render
from scheduler import TIMER_HZ


def key_event(kind, key):
    return pygame.event.Event(kind, key=key)


@pytest.fixture
def emulator():
    # 6001, then a jump-to-self
    return Emulator(bytes([0x60, 0x01, 0x12, 0x02]), EmulatorConfig(audio=AudioConfig()))


class TestKeymap:
    def test_qwerty_layout(self):
        rows = [
            (pygame.K_1, pygame.K_2, pygame.K_3, pygame.K_4),
            (pygame.K_q, pygame.K_w, pygame.K_e, pygame.K_r),
            (pygame.K_a, pygame.K_s, pygame.K_d, pygame.K_f),
            (pygame.K_z, pygame.K_x, pygame.K_c, pygame.K_v),
        ]
        expected = [(0x1, 0x2, 0x3, 0xC), (0x4, 0x5, 0x6, 0xD), (0x7, 0x8, 0x9, 0xE), (0xA, 0x0, 0xB, 0xF)]
        assert [tuple(KEYMAP[k] for k in row) for row in rows] == expected

    def test_every_hex_key_mapped_once(self):
        assert sorted(KEYMAP.values()) == list(range(16))


class TestSquareWave:
    def test_length_and_amplitude(self):
        data = make_square_wave(freq=441, duration=0.01, volume=0.5, sample_rate=44100)
        samples = array.array("h")
        samples.frombytes(data)
        assert len(samples) == 441
        assert set(samples) == {16383, -16383}
        # half period of 50 samples
        assert samples[49] == 16383 and samples[50] == -16383

    def test_silent_at_zero_volume(self):
        samples = array.array("h")
        samples.frombytes(make_square_wave(duration=0.001, volume=0))
        assert set(samples) == {0}


class TestRender:
    def test_pixels_use_configured_colours(self):
        surface = pygame.Surface((2, 1))
        render(surface, ((1, 0),), (255, 255, 255), (10, 20, 30))
        assert tuple(surface.get_at((0, 0)))[:3] == (255, 255, 255)
        assert tuple(surface.get_at((1, 0)))[:3] == (10, 20, 30)


class TestEvents:
    def test_keypad_press_and_release(self, emulator):
        emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_q))
        assert emulator.machine.keypad[0x4]
        emulator.handle_event(key_event(pygame.KEYUP, pygame.K_q))
        assert not emulator.machine.keypad[0x4]

    def test_focus_loss_releases_keys(self, emulator):
        emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_v))
        emulator.handle_event(pygame.event.Event(pygame.WINDOWFOCUSLOST))
        assert not any(emulator.machine.keypad)

    def test_pause_toggle(self, emulator):
        emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_SPACE))
        assert emulator.state is EmulatorState.PAUSED
        emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_SPACE))
        assert emulator.state is EmulatorState.RUNNING

    def test_escape_and_window_close_quit(self, emulator):
        emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_ESCAPE))
        assert emulator.state is EmulatorState.QUIT
        emulator.state = EmulatorState.RUNNING
        emulator.handle_event(pygame.event.Event(pygame.QUIT))
        assert emulator.state is EmulatorState.QUIT

    def test_reset_reloads_rom(self, emulator):
        emulator.scheduler.run_frame(emulator.machine)
        assert emulator.machine.V[0] == 1
        old = emulator.machine
        emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_EQUALS))
        assert emulator.machine is not old
        assert emulator.machine.V[0] == 0
        assert emulator.machine.pc == 0x200
        assert emulator.machine.memory[0x200:0x204] == bytes([0x60, 0x01, 0x12, 0x02])

    def test_volume_hotkeys(self, emulator):
        emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_p))
        assert emulator.config.audio.volume == pytest.approx(0.25)
        emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_o))
        emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_o))
        assert emulator.config.audio.volume == pytest.approx(0.15)

    def test_speed_hotkeys(self, emulator):
        emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_k))
        assert emulator.config.clock_rate == 760
        assert emulator.scheduler.instructions_per_frame == 12
        for _ in range(20):
            emulator.handle_event(key_event(pygame.KEYDOWN, pygame.K_j))
        assert emulator.config.clock_rate == 60
        assert emulator.scheduler.instructions_per_frame == 1

    def test_audio_gate_without_mixer_is_ignored(self, emulator):
        emulator.set_audio(True)
        assert not emulator.beeping


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.slept = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.slept.append(seconds)
        self.now += seconds


class Screen:
    def __init__(self):
        self.frames = []

    def __call__(self, framebuffer):
        self.frames.append(framebuffer)


# A000 D015 draws the "0" glyph at the origin, then a jump-to-self at 0x204
DRAWING_ROM = bytes([0xA0, 0x00, 0xD0, 0x15, 0x12, 0x04])
BLANK_ROM = bytes([0x12, 0x00])


class TestFrameLoop:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    def make(self, rom, clock):
        return Emulator(rom, EmulatorConfig(audio=AudioConfig()), clock=clock, sleep=clock.sleep)

    def test_first_frame_presented_once(self, clock):
        emulator = self.make(bytes([0x60, 0x01, 0x12, 0x02]), clock)
        screen = Screen()
        emulator.tick([], screen)
        emulator.tick([], screen)
        assert len(screen.frames) == 1
        assert not any(any(row) for row in screen.frames[0])
        assert not emulator.machine.draw_flag

    def test_sprite_presented(self, clock):
        emulator = self.make(DRAWING_ROM, clock)
        screen = Screen()
        emulator.tick([], screen)
        assert screen.frames[-1][0][:5] == (1, 1, 1, 1, 0)

    def test_reset_presents_cleared_screen(self, clock):
        emulator = self.make(DRAWING_ROM, clock)
        screen = Screen()
        emulator.tick([], screen)
        emulator.rom = BLANK_ROM
        emulator.tick([key_event(pygame.KEYDOWN, pygame.K_EQUALS)], screen)
        assert len(screen.frames) == 2
        assert not any(any(row) for row in screen.frames[-1])

    def test_reset_while_paused_presents_cleared_screen(self, clock):
        emulator = self.make(DRAWING_ROM, clock)
        screen = Screen()
        emulator.tick([], screen)
        emulator.tick([key_event(pygame.KEYDOWN, pygame.K_SPACE)], screen)
        assert len(screen.frames) == 1
        emulator.tick([key_event(pygame.KEYDOWN, pygame.K_EQUALS)], screen)
        assert emulator.state is EmulatorState.PAUSED
        assert emulator.machine.pc == 0x200
        assert len(screen.frames) == 2
        assert not any(any(row) for row in screen.frames[-1])

    def test_frame_is_paced_to_timer_rate(self, clock):
        emulator = self.make(BLANK_ROM, clock)
        assert emulator.scheduler.frame_rate == TIMER_HZ
        emulator.tick([], Screen())
        assert clock.slept == [pytest.approx(1 / TIMER_HZ)]

    def test_paused_frames_are_paced(self, clock):
        emulator = self.make(BLANK_ROM, clock)
        emulator.tick([key_event(pygame.KEYDOWN, pygame.K_SPACE)], Screen())
        emulator.tick([], Screen())
        assert len(clock.slept) == 2

    def test_no_pacing_after_quit(self, clock):
        emulator = self.make(BLANK_ROM, clock)
        emulator.tick([pygame.event.Event(pygame.QUIT)], Screen())
        assert emulator.state is EmulatorState.QUIT
        assert clock.slept == []

    def test_fault_propagates_from_tick(self, clock):
        emulator = self.make(b"\x00\xEE", clock)
        with pytest.raises(StackUnderflowError):
            emulator.tick([], Screen())
        assert emulator.fault is None
