"""
Lookahead step scheduler for song playback.

The scheduler wakes every `interval` seconds and schedules every step whose
start time falls within `lookahead` seconds of the audio clock. Voices are
handed exact clock times, so timer jitter never reaches the audio.
"""
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from core.constants import STEPS, is_synth_track
from core.models import ActiveNote, Song, StepTrigger, resolve_voice_params

DEFAULT_LOOKAHEAD = 0.1
DEFAULT_INTERVAL = 0.025
DEFAULT_START_LEAD = 0.05


def build_step_index(active_notes: Iterable[ActiveNote]) -> Dict[int, List[StepTrigger]]:
    """
    Group active notes by the step they fire on.

    Args:
        active_notes: Active grid cells; steps outside 0-63 wrap modulo 64

    Returns:
        Dict with a (possibly empty) trigger list for every step 0-63
    """
    index: Dict[int, List[StepTrigger]] = {step: [] for step in range(STEPS)}
    for note in sorted(active_notes):
        index[note.step % STEPS].append(StepTrigger(note.track_id, note.note))
    return index


class TrackState(Enum):
    SCHEDULED = "scheduled"
    PLAYING = "playing"
    SUPERSEDED = "superseded"
    STOPPED = "stopped"
    RETIRED = "retired"


@dataclass(eq=False)
class TrackContext:
    """
    One playing instance of a song.

    Attributes:
        song: Song being played (immutable)
        step_index: Step -> triggers, built once at creation
        gain_node: Track gain all voices connect to
        key: Catalog key the song was started under
        is_playing: Cleared when the track is superseded or stopped
        current_step: Steps scheduled so far (not wrapped)
        next_note_time: Clock time of the next step; None until first tick
        state: Lifecycle state
    """
    song: Song
    step_index: Dict[int, List[StepTrigger]]
    gain_node: object
    key: str = ""
    is_playing: bool = True
    current_step: int = 0
    next_note_time: Optional[float] = None
    state: TrackState = TrackState.SCHEDULED
    pending: object = field(default=None, repr=False)

    @classmethod
    def create(cls, song: Song, gain_node, key: str = "") -> "TrackContext":
        return cls(song=song, step_index=build_step_index(song.active_notes),
                   gain_node=gain_node, key=key)

    def retire(self):
        """
        Final state: no more ticks, and the gain node is left to the graph.

        Voices already scheduled keep draining into the gain node; the graph
        drops it once they are gone.
        """
        self.is_playing = False
        self.state = TrackState.RETIRED
        if self.pending is not None:
            self.pending.cancel()
            self.pending = None
        self.gain_node.keep_alive = False
        if not self.gain_node.inputs:
            self.gain_node.disconnect()


class PlaybackScheduler:
    """
    Drives TrackContexts forward in time.

    Collaborators are injected so timing can be tested without audio:
        clock: Anything with a `current_time` attribute (seconds)
        timer: Anything with call_later(delay, callback, *args)
        voices: Sink with drum(note, time, volume, target) and
            synth(note, time, params, target)
        is_current: Returns whether a track is still the one to play
        lock: Held for the whole tick; share it with whoever switches tracks
    """

    def __init__(self, clock, timer, voices,
                 is_current: Callable[[TrackContext], bool] = lambda track: True,
                 lookahead: float = DEFAULT_LOOKAHEAD,
                 interval: float = DEFAULT_INTERVAL,
                 start_lead: float = DEFAULT_START_LEAD,
                 lock=None):
        if lookahead <= 0 or interval <= 0:
            raise ValueError("Lookahead and interval must be positive")
        self.lock = lock if lock is not None else threading.RLock()
        self.clock = clock
        self.timer = timer
        self.voices = voices
        self.is_current = is_current
        self.lookahead = lookahead
        self.interval = interval
        self.start_lead = start_lead
        self.on_step: Optional[Callable[[int], None]] = None

    def _is_active(self, track: TrackContext) -> bool:
        return track.is_playing and self.is_current(track)

    def start(self, track: TrackContext):
        """Run the first tick right away; later ticks re-arm themselves."""
        print(f"[SCHEDULER] Starting '{track.key or track.song.name}' at {track.song.bpm} BPM")
        self.tick(track)

    def tick(self, track: TrackContext):
        """
        Schedule every step that starts before clock + lookahead, then re-arm.

        A track that is no longer playing or no longer current is left
        alone and not re-armed.
        """
        with self.lock:
            self._tick(track)

    def _tick(self, track: TrackContext):
        track.pending = None
        if not self._is_active(track):
            return

        now = self.clock.current_time
        if track.next_note_time is None:
            track.next_note_time = now + self.start_lead
        track.state = TrackState.PLAYING

        step_time = track.song.step_duration
        while track.next_note_time < now + self.lookahead:
            # Another play() or stop() may have landed during a callback
            if not self._is_active(track):
                return

            step = track.current_step % STEPS
            if self.on_step is not None:
                self.on_step(step)

            for trigger in track.step_index[step]:
                self._dispatch(track, trigger, track.next_note_time)

            track.current_step += 1
            track.next_note_time += step_time

        track.pending = self.timer.call_later(self.interval, self.tick, track)

    def _dispatch(self, track: TrackContext, trigger: StepTrigger, time: float):
        params = resolve_voice_params(track.song.track_config(trigger.track_id))
        if is_synth_track(trigger.track_id):
            self.voices.synth(trigger.note, time, params, track.gain_node)
        else:
            self.voices.drum(trigger.note, time, params.linear_volume, track.gain_node)
