# systems/chip8/timers.py

class TimerPair:
    """
    Delay and sound timers.

    Both are 8-bit counters that count down by one per execution step and stop
    at zero. A nonzero sound timer means a beep is due.
    """

    def __init__(self):
        self.delay = 0
        self.sound = 0

    def set_delay(self, value: int) -> None:
        self.delay = value & 0xFF

    def set_sound(self, value: int) -> None:
        self.sound = value & 0xFF

    def tick_delay(self) -> None:
        if self.delay > 0:
            self.delay -= 1

    def beep_pending(self) -> bool:
        return self.sound > 0

    def tick_sound(self) -> None:
        if self.sound > 0:
            self.sound -= 1

    def reset(self) -> None:
        self.delay = 0
        self.sound = 0

    def get_state(self) -> dict:
        return {
            "DT": self.delay,
            "ST": self.sound
        }
