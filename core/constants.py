"""
Musical constants and utilities.

Step grid size, note frequency table, track lanes, instrument presets,
and the default synth parameter table.
"""
import math
from dataclasses import dataclass
from typing import Dict, Any

# Step grid: 64 sixteenth notes per pattern cycle
STEPS = 64
STEPS_PER_BEAT = 4

# Standard BPM ranges
BPM_MIN = 20
BPM_MAX = 300
BPM_DEFAULT = 120

# Track ids starting with this prefix are synth lanes, everything else is a drum lane
SYNTH_TRACK_PREFIX = "synth"

WAVEFORMS = ("sine", "square", "sawtooth", "triangle")

# Defaults applied when a track config leaves a field out
DEFAULT_VOLUME = 80.0
DEFAULT_WAVEFORM = "square"
DEFAULT_FILTER_CUTOFF = 2000.0
DEFAULT_ATTACK = 0.02
DEFAULT_RELEASE = 0.3
DEFAULT_DETUNE = 0.0

# Fallback pitch for note names missing from NOTE_FREQUENCIES
DEFAULT_FREQUENCY = 220.0

# Exponential ramps are undefined at zero, so envelopes decay toward this floor
SILENCE = 0.0001

# Note name -> frequency in Hz (A1..B4, flats spelled with "b")
NOTE_FREQUENCIES: Dict[str, float] = {
    "B4": 493.88,
    "Bb4": 466.16,
    "A4": 440.0,
    "Ab4": 415.3,
    "G4": 392.0,
    "Gb4": 369.99,
    "F4": 349.23,
    "E4": 329.63,
    "Eb4": 311.13,
    "D4": 293.66,
    "Db4": 277.18,
    "C4": 261.63,
    "B3": 246.94,
    "Bb3": 233.08,
    "A3": 220.0,
    "Ab3": 207.65,
    "G3": 196.0,
    "Gb3": 185.0,
    "F3": 174.61,
    "E3": 164.81,
    "Eb3": 155.56,
    "D3": 146.83,
    "Db3": 138.59,
    "C3": 130.81,
    "B2": 123.47,
    "Bb2": 116.54,
    "A2": 110.0,
    "Ab2": 103.83,
    "G2": 98.0,
    "Gb2": 92.5,
    "F2": 87.31,
    "E2": 82.41,
    "Eb2": 77.78,
    "D2": 73.42,
    "Db2": 69.3,
    "C2": 65.41,
    "B1": 61.74,
    "Bb1": 58.27,
    "A1": 55.0,
}

# Rows shown for synth lanes in the tracker grid (top to bottom)
NOTES = ["C4", "B3", "A3", "G3", "F3", "E3", "D3", "C3",
         "B2", "A2", "G2", "F2", "E2", "D2", "C2", "A1"]


@dataclass(frozen=True)
class TrackDef:
    """
    Tracker lane definition.

    Attributes:
        id: Track id used in note keys and config
        type: "drum" or "synth"
        label: Display label (also the drum lane's single note name)
    """
    id: str
    type: str
    label: str


TRACK_DEFS = (
    TrackDef(id="kick", type="drum", label="KICK"),
    TrackDef(id="snare", type="drum", label="SNARE"),
    TrackDef(id="hat", type="drum", label="HI-HAT"),
    TrackDef(id="synth1", type="synth", label="SYNTH 1"),
    TrackDef(id="synth2", type="synth", label="SYNTH 2"),
    TrackDef(id="synth3", type="synth", label="SYNTH 3"),
)

# Knob ranges for the per-track envelope/detune controls
KNOB_RANGES = {
    "attack": (0.001, 0.3),
    "release": (0.05, 1.5),
    "detune": (0.0, 25.0),
}

# Instrument presets selectable on synth lanes
INSTRUMENTS: Dict[str, Dict[str, Any]] = {
    "lead_square": {"label": "LEAD Square", "wave": "square", "filter": 2500,
                    "attack": 0.01, "release": 0.25, "detune": 0},
    "lead_saw": {"label": "LEAD Saw", "wave": "sawtooth", "filter": 3000,
                 "attack": 0.01, "release": 0.2, "detune": 0},
    "supersaw": {"label": "SUPERSAW", "wave": "sawtooth", "filter": 4000,
                 "attack": 0.02, "release": 0.35, "detune": 8},
    "bass_deep": {"label": "BASS Deep", "wave": "sine", "filter": 400,
                  "attack": 0.01, "release": 0.4, "detune": 0},
    "bass_gritty": {"label": "BASS Gritty", "wave": "sawtooth", "filter": 600,
                    "attack": 0.01, "release": 0.35, "detune": 3},
    "bass_wobble": {"label": "BASS Wobble", "wave": "sawtooth", "filter": 500,
                    "attack": 0.05, "release": 0.5, "detune": 5},
    "pluck": {"label": "PLUCK", "wave": "square", "filter": 1200,
              "attack": 0.005, "release": 0.15, "detune": 0},
    "pad_warm": {"label": "PAD Warm", "wave": "triangle", "filter": 1800,
                 "attack": 0.12, "release": 0.8, "detune": 6},
    "pad_cold": {"label": "PAD Cold", "wave": "square", "filter": 1500,
                 "attack": 0.15, "release": 1.0, "detune": 4},
    "arp_bright": {"label": "ARP Bright", "wave": "square", "filter": 3500,
                   "attack": 0.005, "release": 0.1, "detune": 0},
    "organ": {"label": "ORGAN", "wave": "sine", "filter": 5000,
              "attack": 0.03, "release": 0.2, "detune": 12},
}

# Preset name meaning "no preset, use the explicit values"
CUSTOM_INSTRUMENT = "custom"


def is_synth_track(track_id: str) -> bool:
    """Synth lanes are recognised by their id prefix."""
    return track_id.startswith(SYNTH_TRACK_PREFIX)


def note_to_frequency(note_name: str) -> float:
    """
    Look up the frequency of a note name.

    Unknown names fall back to DEFAULT_FREQUENCY instead of failing,
    so a typo in song data never interrupts playback.

    Example:
        >>> note_to_frequency("A4")
        440.0
        >>> note_to_frequency("H9")
        220.0
    """
    return NOTE_FREQUENCIES.get(note_name, DEFAULT_FREQUENCY)


def detune_frequency(frequency: float, cents: float) -> float:
    """
    Shift a frequency by a number of cents.

    Example:
        >>> round(detune_frequency(440.0, 1200), 2)
        880.0
    """
    return frequency * math.pow(2.0, cents / 1200.0)


def step_duration(bpm: float) -> float:
    """
    Length of one step (a sixteenth note) in seconds.

    Example:
        >>> step_duration(120)
        0.125
    """
    if bpm <= 0:
        raise ValueError(f"BPM must be positive, got {bpm}")
    return 60.0 / bpm / STEPS_PER_BEAT
