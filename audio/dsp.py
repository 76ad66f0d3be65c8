"""
DSP utilities and building blocks.

Biquad filter design, oscillator waveforms, metering.
"""
import numpy as np
from numba import jit

FILTER_TYPES = ("lowpass", "highpass")


def biquad_coefficients(filter_type: str, freq: float, q: float,
                        sample_rate: int) -> np.ndarray:
    """
    Design biquad coefficients (RBJ cookbook), normalized by a0.

    Args:
        filter_type: "lowpass" or "highpass"
        freq: Cutoff frequency in Hz (clamped to 20 Hz..Nyquist)
        q: Resonance
        sample_rate: Audio sample rate

    Returns:
        Array [b0, b1, b2, a1, a2]
    """
    freq = max(20.0, min(freq, sample_rate / 2.0 - 1.0))
    q = max(0.1, min(q, 20.0))

    w0 = 2.0 * np.pi * freq / sample_rate
    cos_w0 = np.cos(w0)
    alpha = np.sin(w0) / (2.0 * q)

    if filter_type == "lowpass":
        b0 = (1.0 - cos_w0) / 2.0
        b1 = 1.0 - cos_w0
        b2 = (1.0 - cos_w0) / 2.0
    elif filter_type == "highpass":
        b0 = (1.0 + cos_w0) / 2.0
        b1 = -(1.0 + cos_w0)
        b2 = (1.0 + cos_w0) / 2.0
    else:
        raise ValueError(f"Unknown filter type: {filter_type}")

    a0 = 1.0 + alpha
    a1 = -2.0 * cos_w0
    a2 = 1.0 - alpha

    return np.array([b0 / a0, b1 / a0, b2 / a0, a1 / a0, a2 / a0], dtype=np.float64)


@jit(nopython=True)
def biquad_process(input_buffer: np.ndarray, coeffs: np.ndarray,
                   state: np.ndarray) -> np.ndarray:
    """
    Run a block through a biquad (JIT-compiled for speed).

    Direct Form II transposed. `state` holds the two delay-line values and is
    updated in place so consecutive blocks join without clicks.

    Args:
        input_buffer: Input audio
        coeffs: [b0, b1, b2, a1, a2] from biquad_coefficients
        state: Float array of length 2

    Returns:
        Filtered audio
    """
    b0, b1, b2, a1, a2 = coeffs[0], coeffs[1], coeffs[2], coeffs[3], coeffs[4]
    z1 = state[0]
    z2 = state[1]
    output = np.empty_like(input_buffer)

    for i in range(len(input_buffer)):
        x = input_buffer[i]
        y = b0 * x + z1
        z1 = b1 * x - a1 * y + z2
        z2 = b2 * x - a2 * y
        output[i] = y

    state[0] = z1
    state[1] = z2
    return output


def generate_waveform(waveform_type: str, phase: np.ndarray) -> np.ndarray:
    """
    Generate waveform samples from an oscillator phase.

    Args:
        waveform_type: "sine", "square", "sawtooth" or "triangle"
        phase: Phase in cycles (1.0 = one period), any magnitude

    Returns:
        Waveform samples in -1.0..1.0
    """
    frac = phase % 1.0

    if waveform_type == "sine":
        return np.sin(2.0 * np.pi * frac)
    elif waveform_type == "square":
        return np.where(frac < 0.5, 1.0, -1.0)
    elif waveform_type == "sawtooth":
        return 2.0 * frac - 1.0
    elif waveform_type == "triangle":
        return 1.0 - 4.0 * np.abs(frac - 0.5)
    raise ValueError(f"Unknown waveform: {waveform_type}")


def stereo_from_mono(buffer_mono: np.ndarray) -> np.ndarray:
    """
    Convert mono buffer to stereo by duplicating channels.

    Args:
        buffer_mono: Mono audio buffer (1D array)

    Returns:
        Stereo audio buffer (frames x 2)
    """
    return np.stack([buffer_mono, buffer_mono], axis=-1)


def clip_audio(buffer: np.ndarray, threshold: float = 1.0) -> np.ndarray:
    """Hard clip audio to prevent overflow."""
    return np.clip(buffer, -threshold, threshold)


def peak_level(buffer: np.ndarray) -> float:
    """Peak absolute sample value (0.0 for an empty buffer)."""
    if len(buffer) == 0:
        return 0.0
    return float(np.max(np.abs(buffer)))


def rms_level(buffer: np.ndarray) -> float:
    """RMS level of an audio buffer (0.0 for an empty buffer)."""
    if len(buffer) == 0:
        return 0.0
    return float(np.sqrt(np.mean(buffer ** 2)))
