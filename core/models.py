"""
Immutable data models for zsynth.

All song data is held in frozen dataclasses to support:
- Undo/redo via the command pattern
- Safe sharing between the editor and the playback thread
- A song that cannot change underneath a playing track
"""
import math
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Any, FrozenSet, Mapping, Optional

from core.constants import (
    STEPS,
    WAVEFORMS,
    BPM_MIN,
    BPM_MAX,
    DEFAULT_VOLUME,
    DEFAULT_WAVEFORM,
    DEFAULT_FILTER_CUTOFF,
    DEFAULT_ATTACK,
    DEFAULT_RELEASE,
    DEFAULT_DETUNE,
    is_synth_track,
    step_duration,
)

# Synth voices peak at this fraction of full scale at 100% volume
SYNTH_PEAK_GAIN = 0.2


class SongFormatError(ValueError):
    """Raised when song data handed over by the editor cannot be parsed."""


@dataclass(frozen=True, order=True)
class ActiveNote:
    """
    One cell of the step grid that is switched on.

    Attributes:
        track_id: Lane id ("kick", "synth1", ...)
        note: Note or drum name ("C4", "KICK", "HI-HAT")
        step: Step number as stored; wrapped modulo STEPS when scheduled
    """
    track_id: str
    note: str
    step: int

    def __post_init__(self):
        """Validate note identity."""
        if not self.track_id:
            raise ValueError("Track id is required")
        if "-" in self.track_id:
            raise ValueError(f"Track id must not contain '-': {self.track_id}")
        if not self.note:
            raise ValueError("Note name is required")

    @property
    def is_synth(self) -> bool:
        return is_synth_track(self.track_id)

    def to_key(self) -> str:
        """Encode as the editor's "<track>-<note>-<step>" key."""
        return f"{self.track_id}-{self.note}-{self.step}"

    @classmethod
    def from_key(cls, key: str) -> "ActiveNote":
        """
        Decode an editor key.

        The first segment is the track id and the last one the step; every
        segment in between belongs to the note name, so "hat-HI-HAT-3"
        decodes to ("hat", "HI-HAT", 3).

        Raises:
            SongFormatError: If the key has fewer than three segments or
                the step is not an integer
        """
        parts = key.split("-")
        if len(parts) < 3:
            raise SongFormatError(f"Invalid note key: {key!r}")

        try:
            step = int(parts[-1])
        except ValueError as e:
            raise SongFormatError(f"Invalid step in note key: {key!r}") from e

        try:
            return cls(track_id=parts[0], note="-".join(parts[1:-1]), step=step)
        except ValueError as e:
            raise SongFormatError(f"Invalid note key {key!r}: {e}") from e


@dataclass(frozen=True)
class StepTrigger:
    """A (track, note) pair fired when the cursor reaches its step."""
    track_id: str
    note: str


@dataclass(frozen=True)
class VoiceParams:
    """
    Fully resolved synth voice parameters (no optional fields).

    Attributes:
        volume: Volume percentage (0-100)
        waveform: Oscillator waveform
        filter_cutoff: Lowpass cutoff in Hz
        attack: Linear attack time in seconds
        release: Exponential release time in seconds
        detune: Unison oscillator offset in cents (0 = single oscillator)
    """
    volume: float = DEFAULT_VOLUME
    waveform: str = DEFAULT_WAVEFORM
    filter_cutoff: float = DEFAULT_FILTER_CUTOFF
    attack: float = DEFAULT_ATTACK
    release: float = DEFAULT_RELEASE
    detune: float = DEFAULT_DETUNE

    @property
    def peak_gain(self) -> float:
        """Linear gain reached at the end of the attack."""
        return self.volume / 100.0 * SYNTH_PEAK_GAIN

    @property
    def linear_volume(self) -> float:
        """Volume as a 0-1 multiplier (used by drum voices)."""
        return self.volume / 100.0


def _optional_number(data: Dict[str, Any], key: str) -> Optional[float]:
    """Read a numeric field that may arrive as a string from form inputs."""
    value = data.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise SongFormatError(f"Field '{key}' must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise SongFormatError(f"Field '{key}' must be a number, got {value!r}") from e


@dataclass(frozen=True)
class TrackConfig:
    """
    Per-track parameters as authored. Every field is optional.

    Attributes:
        volume: Volume percentage (0-100)
        waveform: One of WAVEFORMS
        filter_cutoff: Lowpass cutoff in Hz
        attack: Attack time in seconds
        release: Release time in seconds
        detune: Unison detune in cents
        instrument: Preset name from INSTRUMENTS (or "custom")
    """
    volume: Optional[float] = None
    waveform: Optional[str] = None
    filter_cutoff: Optional[float] = None
    attack: Optional[float] = None
    release: Optional[float] = None
    detune: Optional[float] = None
    instrument: Optional[str] = None

    def __post_init__(self):
        """Validate parameter ranges."""
        if self.volume is not None and not 0.0 <= self.volume <= 100.0:
            raise ValueError(f"Volume must be 0-100, got {self.volume}")
        if self.waveform is not None and self.waveform not in WAVEFORMS:
            raise ValueError(f"Invalid waveform: {self.waveform}")
        if self.filter_cutoff is not None and self.filter_cutoff <= 0:
            raise ValueError(f"Filter cutoff must be positive, got {self.filter_cutoff}")
        if self.attack is not None and self.attack < 0:
            raise ValueError(f"Attack must be non-negative, got {self.attack}")
        if self.release is not None and self.release < 0:
            raise ValueError(f"Release must be non-negative, got {self.release}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the editor's config record, leaving out unset fields."""
        result = {}
        for key, value in (("vol", self.volume), ("wave", self.waveform),
                           ("filter", self.filter_cutoff), ("attack", self.attack),
                           ("release", self.release), ("detune", self.detune),
                           ("inst", self.instrument)):
            if value is not None:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackConfig":
        """Create TrackConfig from an editor config record."""
        if not isinstance(data, dict):
            raise SongFormatError(f"Track config must be an object, got {type(data).__name__}")

        wave = data.get("wave") or None
        inst = data.get("inst") or None
        try:
            return cls(
                volume=_optional_number(data, "vol"),
                waveform=wave,
                filter_cutoff=_optional_number(data, "filter"),
                attack=_optional_number(data, "attack"),
                release=_optional_number(data, "release"),
                detune=_optional_number(data, "detune"),
                instrument=inst,
            )
        except SongFormatError:
            raise
        except ValueError as e:
            raise SongFormatError(str(e)) from e


def resolve_voice_params(config: Optional[TrackConfig]) -> VoiceParams:
    """
    Turn a partial track config into a complete parameter record.

    Each field comes from the explicit config value if set, otherwise from
    the default table. The instrument name is not consulted; presets are
    copied into the config when applied in the editor.

    Args:
        config: Track config, or None for a track with no config at all

    Returns:
        VoiceParams with every field populated
    """
    if config is None:
        return VoiceParams()

    def pick(value, default):
        return default if value is None else value

    return VoiceParams(
        volume=float(pick(config.volume, DEFAULT_VOLUME)),
        waveform=pick(config.waveform, DEFAULT_WAVEFORM),
        filter_cutoff=float(pick(config.filter_cutoff, DEFAULT_FILTER_CUTOFF)),
        attack=float(pick(config.attack, DEFAULT_ATTACK)),
        release=float(pick(config.release, DEFAULT_RELEASE)),
        detune=float(pick(config.detune, DEFAULT_DETUNE)),
    )


def _format_bpm(bpm: float) -> str:
    """Tempo is stored as text by the editor ("120", "97.5")."""
    return str(int(bpm)) if float(bpm).is_integer() else str(bpm)


@dataclass(frozen=True)
class Song:
    """
    A pattern as authored in the tracker.

    Attributes:
        bpm: Tempo in beats per minute
        active_notes: Set of switched-on grid cells
        config: Track id -> TrackConfig (read-only view)
        name: Song name (catalog key or file stem)
    """
    bpm: float
    active_notes: FrozenSet[ActiveNote] = field(default_factory=frozenset)
    config: Mapping[str, TrackConfig] = field(default_factory=dict, hash=False)
    name: str = "Untitled"

    def __post_init__(self):
        """Validate song structure."""
        if not math.isfinite(self.bpm) or not BPM_MIN <= self.bpm <= BPM_MAX:
            raise ValueError(f"BPM must be {BPM_MIN}-{BPM_MAX}, got {self.bpm}")
        if not isinstance(self.active_notes, frozenset):
            object.__setattr__(self, "active_notes", frozenset(self.active_notes))
        # Copy so the caller's dict cannot change the song afterwards
        object.__setattr__(self, "config", MappingProxyType(dict(self.config)))

    @property
    def step_duration(self) -> float:
        """Seconds per step (a sixteenth note)."""
        return step_duration(self.bpm)

    @property
    def cycle_duration(self) -> float:
        """Seconds for one pass over all STEPS."""
        return self.step_duration * STEPS

    def is_active(self, track_id: str, note: str, step: int) -> bool:
        return ActiveNote(track_id, note, step) in self.active_notes

    def toggle_note(self, track_id: str, note: str, step: int) -> "Song":
        """
        Switch a grid cell on or off.

        Returns:
            New Song; toggling the same cell twice gives back the original set
        """
        cell = ActiveNote(track_id, note, step)
        if cell in self.active_notes:
            return replace(self, active_notes=self.active_notes - {cell})
        return replace(self, active_notes=self.active_notes | {cell})

    def track_config(self, track_id: str) -> Optional[TrackConfig]:
        return self.config.get(track_id)

    def with_track_config(self, track_id: str, config: TrackConfig) -> "Song":
        """Return a new Song with one track's config replaced."""
        new_config = dict(self.config)
        new_config[track_id] = config
        return replace(self, config=new_config)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the editor's song definition format."""
        return {
            "bpm": _format_bpm(self.bpm),
            "activeData": {n.to_key(): True for n in sorted(self.active_notes)},
            "config": {tid: cfg.to_dict() for tid, cfg in self.config.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: str = "Untitled") -> "Song":
        """
        Create Song from the editor's song definition format.

        Raises:
            SongFormatError: If the data is structurally invalid
        """
        if not isinstance(data, dict):
            raise SongFormatError(f"Song data must be an object, got {type(data).__name__}")

        bpm = _optional_number(data, "bpm")
        if bpm is None:
            raise SongFormatError("Song data is missing 'bpm'")
        if not math.isfinite(bpm) or not BPM_MIN <= bpm <= BPM_MAX:
            raise SongFormatError(f"BPM must be {BPM_MIN}-{BPM_MAX}, got {bpm}")

        active_data = data.get("activeData", {})
        if not isinstance(active_data, dict):
            raise SongFormatError("'activeData' must be an object")
        active_notes = frozenset(
            ActiveNote.from_key(key) for key, on in active_data.items() if on
        )

        raw_config = data.get("config", {}) or {}
        if not isinstance(raw_config, dict):
            raise SongFormatError("'config' must be an object")
        config = {tid: TrackConfig.from_dict(cfg) for tid, cfg in raw_config.items()}

        return cls(bpm=bpm, active_notes=active_notes, config=config, name=name)


class TrackerState:
    """
    Editing session state for the tracker.

    Manages:
    - Current song
    - Unsaved-changes flag
    """

    def __init__(self, song: Optional[Song] = None):
        """Initialize state, optionally with a song already loaded."""
        self._current_song: Optional[Song] = song
        self._is_dirty: bool = False

    def get_current_song(self) -> Optional[Song]:
        """Get currently loaded song."""
        return self._current_song

    def set_current_song(self, song: Song):
        """Set current song."""
        self._current_song = song

    def is_dirty(self) -> bool:
        """Check if song has unsaved changes."""
        return self._is_dirty

    def mark_dirty(self):
        """Mark song as having unsaved changes."""
        self._is_dirty = True

    def mark_clean(self):
        """Mark song as saved."""
        self._is_dirty = False
