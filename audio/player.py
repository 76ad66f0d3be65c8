"""
Song player with crossfades between tracks.

ZsynthPlayer keeps at most two tracks alive: the current one and the one
fading out behind it. Each track owns a gain node on the master bus, and
switching songs is a pair of gain ramps on those nodes.
"""
import copy
from typing import Callable, Dict, Optional

from audio.graph import AudioContext, GainNode
from audio.scheduler import PlaybackScheduler, TrackContext, TrackState
from audio.timers import TimerLoop
from audio.voices import VoiceBank, play_drum, play_synth
from core.constants import SILENCE
from core.models import Song, VoiceParams
from core.settings import DEFAULT_SETTINGS

FULL_GAIN = 1.0


class ZsynthPlayer:
    """
    Plays songs from a catalog, one at a time, with crossfades.

    Each instance owns its own context, timer and catalog, so several
    players (e.g. game music and an editor preview) can coexist.
    """

    def __init__(self, context: Optional[AudioContext] = None, timer=None, voices=None,
                 settings: Optional[Dict] = None):
        """
        Args:
            context: Audio context to play into (created by init() if None)
            timer: Timer with call_later(); a TimerLoop is started if None
            voices: Voice sink for the scheduler (VoiceBank on the context if None)
            settings: Settings dict as returned by load_settings()
        """
        self.settings = settings if settings is not None else copy.deepcopy(DEFAULT_SETTINGS)
        self.context = context
        self.timer = timer
        self._voices = voices
        self._owns_timer = timer is None

        self.songs: Dict[str, Song] = {}
        self.master_gain: Optional[GainNode] = None
        self.current_track: Optional[TrackContext] = None
        self.previous_track: Optional[TrackContext] = None
        self.is_muted = False
        self.active_key: Optional[str] = None
        self.on_step: Optional[Callable[[int], None]] = None
        self._scheduler: Optional[PlaybackScheduler] = None

    @property
    def is_initialized(self) -> bool:
        return self.master_gain is not None

    @property
    def default_crossfade(self) -> float:
        return float(self.settings["playback"]["crossfade"])

    def init(self, songs: Dict[str, Song]):
        """
        Set up the master bus and load the song catalog.

        Args:
            songs: Catalog key -> Song
        """
        audio = self.settings["audio"]
        if self.context is None:
            self.context = AudioContext(sample_rate=audio["sample_rate"])
        if self.timer is None:
            self.timer = TimerLoop()
        if self._owns_timer:
            self.timer.start()

        self.songs = dict(songs)

        with self.context.lock:
            self.master_gain = self.context.create_gain()
            self.master_gain.keep_alive = True
            self.master_gain.gain.value = audio["master_volume"]
            self.master_gain.connect(self.context.destination)

        sched = self.settings["scheduler"]
        self._scheduler = PlaybackScheduler(
            clock=self.context,
            timer=self.timer,
            voices=self._voices or VoiceBank(self.context),
            is_current=lambda track: track is self.current_track,
            lookahead=sched["lookahead"],
            interval=sched["interval"],
            start_lead=sched["start_lead"],
            lock=self.context.lock,
        )
        self._scheduler.on_step = self._notify_step
        print(f"[ZSYNTH] Initialized with {len(self.songs)} songs")

    def _notify_step(self, step: int):
        if self.on_step is not None:
            self.on_step(step)

    def play(self, key: str, crossfade: Optional[float] = None):
        """
        Start a song, crossfading from whatever is playing.

        Unknown keys are ignored. While muted the key is only remembered
        so unmute() can start it.

        Args:
            key: Catalog key
            crossfade: Fade length in seconds (0 = hard cut); defaults to
                the playback.crossfade setting
        """
        if not self.is_initialized:
            print("[ZSYNTH] Player not initialized, call init() first")
            return

        song = self.songs.get(key)
        if song is None:
            return

        self.active_key = key
        if self.is_muted:
            return

        if crossfade is None:
            crossfade = self.default_crossfade
        if crossfade < 0:
            raise ValueError(f"Crossfade must be non-negative, got {crossfade}")

        with self.context.lock:
            start = self.context.current_time

            # Only one track may be fading out at a time
            if self.previous_track is not None:
                self._silence(self.previous_track, start)
                self.previous_track = None

            old = self.current_track
            if old is not None and old.is_playing:
                old.state = TrackState.SUPERSEDED
                old.gain_node.gain.cancel_and_hold_at_time(start)
                old.gain_node.gain.exponential_ramp_to_value_at_time(SILENCE, start + crossfade)
                self.previous_track = old
                self.timer.call_later(crossfade, self._finish_fade, old)

            gain_node = self.context.create_gain()
            gain_node.keep_alive = True
            gain_node.gain.set_value_at_time(SILENCE, start)
            gain_node.gain.exponential_ramp_to_value_at_time(FULL_GAIN, start + crossfade)
            gain_node.connect(self.master_gain)

            track = TrackContext.create(song, gain_node, key=key)
            self.current_track = track
            self._scheduler.start(track)

    def _finish_fade(self, track: TrackContext):
        with self.context.lock:
            track.retire()
            if self.previous_track is track:
                self.previous_track = None

    def _silence(self, track: TrackContext, now: float):
        """Fade a track out quickly and retire it."""
        gain = track.gain_node.gain
        gain.cancel_and_hold_at_time(now)
        gain.set_target_at_time(0.0, now, self.settings["playback"]["stop_time_constant"])
        track.retire()

    def stop(self):
        """Fade out and retire the current track (and any track still fading)."""
        if not self.is_initialized:
            return

        with self.context.lock:
            now = self.context.current_time
            if self.previous_track is not None:
                self._silence(self.previous_track, now)
                self.previous_track = None

            track = self.current_track
            if track is None:
                return
            track.is_playing = False
            track.state = TrackState.STOPPED
            self._silence(track, now)
            self.current_track = None
        print(f"[ZSYNTH] Stopped '{track.key}'")

    def mute(self):
        self.is_muted = True
        self.stop()

    def unmute(self):
        """Restart the last requested song from its first step."""
        self.is_muted = False
        if self.active_key is not None:
            self.play(self.active_key)

    def play_drum(self, drum_type: str, volume: float = 0.8,
                  time: Optional[float] = None) -> Optional[GainNode]:
        """One-shot drum hit on the master bus (editor audition)."""
        if not self.is_initialized:
            print("[ZSYNTH] Cannot play drum: player not initialized")
            return None
        if time is None:
            time = self.context.current_time
        return play_drum(self.context, drum_type, time, volume, self.master_gain)

    def play_synth(self, note: str, params: Optional[VoiceParams] = None,
                   time: Optional[float] = None) -> Optional[GainNode]:
        """One-shot synth note on the master bus (editor audition)."""
        if not self.is_initialized:
            print("[ZSYNTH] Cannot play synth: player not initialized")
            return None
        if time is None:
            time = self.context.current_time
        return play_synth(self.context, note, time, params or VoiceParams(), self.master_gain)

    def close(self):
        """Stop playback and release the timer thread if this player started it."""
        self.stop()
        if self._owns_timer and isinstance(self.timer, TimerLoop):
            self.timer.stop()
