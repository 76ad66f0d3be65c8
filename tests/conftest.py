"""Shared fakes for scheduler and player tests."""
import pytest

from audio.graph import AudioContext
from audio.timers import ManualTimer
from core.models import ActiveNote, Song


class ManualClock:
    """Stand-in for an AudioContext clock."""

    def __init__(self, start: float = 0.0):
        self.current_time = start

    def advance(self, seconds: float):
        self.current_time += seconds


class RecordingVoices:
    """Voice sink that records every dispatch instead of building audio."""

    def __init__(self):
        self.calls = []

    def drum(self, drum_type, time, volume, target):
        self.calls.append(("drum", drum_type, time, volume, target))

    def synth(self, note, time, params, target):
        self.calls.append(("synth", note, time, params, target))

    def of_kind(self, kind):
        return [c for c in self.calls if c[0] == kind]


class FakeGain:
    """Minimal track gain node for scheduler-only tests."""

    def __init__(self):
        self.keep_alive = True
        self.inputs = ()
        self.disconnected = False

    def disconnect(self):
        self.disconnected = True


def make_song(*keys, bpm=120, config=None, name="test"):
    """Build a song from editor note keys ("kick-KICK-0", ...)."""
    return Song(bpm=bpm, active_notes=frozenset(ActiveNote.from_key(k) for k in keys),
                config=config or {}, name=name)


def run_clock(clock, timer, seconds, step=0.025):
    """Move a ManualClock and a ManualTimer forward together."""
    for _ in range(int(round(seconds / step))):
        clock.advance(step)
        timer.advance(step)


def run_context(context, timer, seconds, step=0.025):
    """Render a context and advance a ManualTimer in lockstep."""
    frames = int(round(step * context.sample_rate))
    for _ in range(int(round(seconds / step))):
        context.render(frames)
        timer.advance(frames / context.sample_rate)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def voices():
    return RecordingVoices()


@pytest.fixture
def context():
    # Low sample rate keeps graph tests fast
    return AudioContext(sample_rate=8000)
