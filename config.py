from dataclasses import dataclass, field

from chip8 import MAX_STACK_DEPTH, MIN_STACK_DEPTH
from quirks import QuirkProfile

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


@dataclass
class AudioConfig:
    """Beeper settings. The host loop holds this by reference and may change it while running."""
    tone_hz: int = 440
    volume: float = 0.2
    sample_rate: int = 44100

    def adjust_volume(self, delta):
        self.volume = round(min(1.0, max(0.0, self.volume + delta)), 2)
        return self.volume


@dataclass
class EmulatorConfig:
    clock_rate: int = 700
    width: int = 64
    height: int = 32
    quirks: str = "chip8"
    stack_depth: int = MAX_STACK_DEPTH
    scale: int = 12
    fg_color: tuple = WHITE
    bg_color: tuple = BLACK
    audio: AudioConfig = field(default_factory=AudioConfig)
    quirk_overrides: dict = field(default_factory=dict)

    def quirk_profile(self):
        return QuirkProfile.named(self.quirks).with_overrides(**self.quirk_overrides)

    def validate(self):
        for name in ("clock_rate", "width", "height", "scale"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}.")
        if not MIN_STACK_DEPTH <= self.stack_depth <= MAX_STACK_DEPTH:
            raise ValueError(
                f"stack_depth must be between {MIN_STACK_DEPTH} and {MAX_STACK_DEPTH}, got {self.stack_depth}.")
        for name in ("fg_color", "bg_color"):
            color = getattr(self, name)
            if len(color) != 3 or any(not 0 <= c <= 255 for c in color):
                raise ValueError(f"{name} must be three components in 0-255, got {color}.")
        if not 0.0 <= self.audio.volume <= 1.0:
            raise ValueError(f"volume must be between 0 and 1, got {self.audio.volume}.")
        if self.audio.tone_hz <= 0:
            raise ValueError(f"tone_hz must be positive, got {self.audio.tone_hz}.")
        self.quirk_profile()
        return self


def parse_color(text):
    """Parse "#RRGGBB" or "RRGGBB" into an (r, g, b) tuple."""
    value = text.strip().lstrip('#')
    if len(value) != 6:
        raise ValueError(f"Colour must look like #RRGGBB, got {text!r}.")
    try:
        return tuple(int(value[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        raise ValueError(f"Colour must look like #RRGGBB, got {text!r}.") from None
