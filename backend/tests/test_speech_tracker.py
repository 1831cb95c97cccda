from conftest import FakeClock
from interview_app.interview.speech_tracker import SpeechTracker


def test_speech_and_pause_durations_in_ms():
    clock = FakeClock(10.0)
    tracker = SpeechTracker(clock=clock)

    tracker.on_speech_start()
    clock.advance(2.5)
    assert tracker.speech_duration == 2500.0
    assert tracker.pause_duration == 0.0

    tracker.on_speech_end()
    clock.advance(1.0)
    assert tracker.pause_duration == 1000.0
    assert tracker.is_speaking is False


def test_reset_clears_words_and_restarts_timing():
    clock = FakeClock()
    tracker = SpeechTracker(clock=clock)
    tracker.add_words(12)
    tracker.add_words(-3)
    tracker.on_speech_end()
    clock.advance(4.0)

    tracker.reset()

    assert tracker.total_words == 0
    assert tracker.pause_start is None
    assert tracker.speech_duration == 0.0
