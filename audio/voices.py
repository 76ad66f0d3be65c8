"""
Drum and synth voices.

Each call builds a short-lived chain on the audio graph
(oscillator(s) -> [filter] -> gain -> target) with every envelope and
the oscillator stop scheduled up front. Nothing is kept by the caller:
the graph drops the chain once its oscillators have stopped.
"""
from audio.graph import AudioContext, AudioNode, GainNode
from core.constants import SILENCE, note_to_frequency, detune_frequency
from core.models import VoiceParams

KICK = "KICK"

# Drum voice shape
DRUM_GAIN_SCALE = 0.5
DRUM_DECAY_FLOOR = 0.01
DRUM_LENGTH = 0.2
KICK_START_FREQ = 150.0
KICK_END_FREQ = 0.01
KICK_DECAY = 0.2
TONE_FREQ = 120.0
TONE_DECAY = 0.1

# Extra time after the release before the oscillators stop
SYNTH_STOP_PADDING = 0.05


def play_drum(context: AudioContext, drum_type: str, time: float, volume: float,
              target: AudioNode) -> GainNode:
    """
    Schedule one drum hit.

    A kick is a sine sweep from 150 Hz down to near zero with a matching
    gain decay; every other drum is a short 120 Hz triangle blip.

    Args:
        context: Audio context to build on
        drum_type: Drum name; "KICK" (any case) selects the kick voice
        time: Context time of the hit
        volume: Linear volume 0-1
        target: Node to connect the voice to (usually a track gain)

    Returns:
        The voice's gain node
    """
    with context.lock:
        gain = context.create_gain()
        gain.connect(target)
        gain.gain.set_value_at_time(volume * DRUM_GAIN_SCALE, time)

        osc = context.create_oscillator()
        if drum_type.upper() == KICK:
            osc.frequency.set_value_at_time(KICK_START_FREQ, time)
            osc.frequency.exponential_ramp_to_value_at_time(KICK_END_FREQ, time + KICK_DECAY)
            gain.gain.exponential_ramp_to_value_at_time(DRUM_DECAY_FLOOR, time + KICK_DECAY)
        else:
            osc.type = "triangle"
            osc.frequency.set_value_at_time(TONE_FREQ, time)
            gain.gain.exponential_ramp_to_value_at_time(DRUM_DECAY_FLOOR, time + TONE_DECAY)

        osc.connect(gain)
        osc.start(time)
        osc.stop(time + DRUM_LENGTH)
    return gain


def play_synth(context: AudioContext, note: str, time: float, params: VoiceParams,
               target: AudioNode) -> GainNode:
    """
    Schedule one synth note.

    Envelope: 0.0001 at `time`, linear rise to the peak gain over the
    attack, exponential fall back to 0.0001 over the release. A nonzero
    detune adds exactly one more oscillator, offset by `detune` cents,
    feeding the same filter.

    Args:
        context: Audio context to build on
        note: Note name ("C4", "Bb2"); unknown names play at 220 Hz
        time: Context time of the note
        params: Resolved voice parameters
        target: Node to connect the voice to

    Returns:
        The voice's gain node
    """
    freq = note_to_frequency(note)
    attack_end = time + params.attack
    release_end = attack_end + params.release
    stop_time = release_end + SYNTH_STOP_PADDING

    with context.lock:
        lowpass = context.create_biquad_filter()
        lowpass.type = "lowpass"
        lowpass.frequency.value = params.filter_cutoff
        lowpass.frequency.set_value_at_time(params.filter_cutoff, time)

        gain = context.create_gain()
        gain.gain.set_value_at_time(SILENCE, time)
        gain.gain.linear_ramp_to_value_at_time(params.peak_gain, attack_end)
        gain.gain.exponential_ramp_to_value_at_time(SILENCE, release_end)

        frequencies = [freq]
        if params.detune != 0:
            frequencies.append(detune_frequency(freq, params.detune))

        for osc_freq in frequencies:
            osc = context.create_oscillator()
            osc.type = params.waveform
            osc.frequency.set_value_at_time(osc_freq, time)
            osc.connect(lowpass)
            osc.start(time)
            osc.stop(stop_time)

        lowpass.connect(gain)
        gain.connect(target)
    return gain


class VoiceBank:
    """
    Voice sink used by the scheduler: binds the voice functions to a context.
    """

    def __init__(self, context: AudioContext):
        self.context = context

    def drum(self, drum_type: str, time: float, volume: float, target: AudioNode) -> GainNode:
        return play_drum(self.context, drum_type, time, volume, target)

    def synth(self, note: str, time: float, params: VoiceParams, target: AudioNode) -> GainNode:
        return play_synth(self.context, note, time, params, target)
