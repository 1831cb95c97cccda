import time
from typing import Callable


class SpeechTracker:
    """Timing and word-count bookkeeping for the candidate's current utterance (ms)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.last_speech_start = self._now_ms()
        self.pause_start: float | None = None
        self.total_words = 0
        self.is_speaking = False

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def on_speech_start(self) -> None:
        self.last_speech_start = self._now_ms()
        self.pause_start = None
        self.is_speaking = True

    def on_speech_end(self) -> None:
        self.pause_start = self._now_ms()
        self.is_speaking = False

    def add_words(self, count: int) -> None:
        self.total_words += max(0, int(count))

    @property
    def pause_duration(self) -> float:
        if self.pause_start is None:
            return 0.0
        return self._now_ms() - self.pause_start

    @property
    def speech_duration(self) -> float:
        return self._now_ms() - self.last_speech_start

    def reset(self) -> None:
        self.last_speech_start = self._now_ms()
        self.total_words = 0
        self.pause_start = None
        self.is_speaking = False
