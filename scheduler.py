import logging
import time
from collections import namedtuple

from interpreter import StepResult

logger = logging.getLogger(__name__)

TIMER_HZ = 60

FrameResult = namedtuple("FrameResult", ["executed", "waiting_for_key", "sound_on", "framebuffer", "drew"])


class FrameScheduler:
    """Runs the interpreter in 60 Hz batches and ticks the timers after each batch.

    The per-frame budget is clock_rate // frame_rate instructions, never less
    than one. A batch stops early only when the interpreter faults, in which
    case the fault propagates to the caller untouched. `drew` mirrors the
    machine's draw_flag, which stays set until the host has rendered it.
    """

    def __init__(self, interpreter, clock_rate=700, frame_rate=TIMER_HZ, clock=time.perf_counter, sleep=time.sleep):
        if frame_rate <= 0:
            raise ValueError(f"Frame rate must be positive, got {frame_rate}.")
        self.interpreter = interpreter
        self.frame_rate = frame_rate
        self.frame_duration = 1.0 / frame_rate
        self.clock = clock
        self.sleep = sleep
        self.frames = 0
        self.set_clock_rate(clock_rate)

    def set_clock_rate(self, clock_rate):
        if clock_rate < 1:
            raise ValueError(f"Clock rate must be at least 1 instruction per second, got {clock_rate}.")
        self.clock_rate = clock_rate
        self.instructions_per_frame = max(1, clock_rate // self.frame_rate)
        logger.debug(f"Clock rate {clock_rate} Hz, {self.instructions_per_frame} instructions per frame.")

    def run_frame(self, machine):
        executed = 0
        waiting = False
        for _ in range(self.instructions_per_frame):
            result = self.interpreter.step(machine)
            if result is StepResult.WAITING_FOR_KEY:
                waiting = True
            else:
                waiting = False
                executed += 1
        machine.tick_timers()
        self.frames += 1
        return FrameResult(
            executed=executed,
            waiting_for_key=waiting,
            sound_on=machine.sound_active,
            framebuffer=machine.framebuffer(),
            drew=machine.draw_flag,
        )

    def remaining(self, elapsed):
        return max(0.0, self.frame_duration - elapsed)

    def pace(self, frame_start):
        """Sleep out whatever is left of the frame that began at frame_start."""
        left = self.remaining(self.clock() - frame_start)
        if left > 0:
            self.sleep(left)
        return left
