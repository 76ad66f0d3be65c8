"""
Offline rendering ("bounce").

render_song() drives a player against a fresh context, rendering audio and
advancing a ManualTimer in lockstep so the scheduler sees the same clock it
would in real time. write_wav() saves the result.
"""
from pathlib import Path
from typing import Optional, Union

import numpy as np
from scipy.io import wavfile

from audio.dsp import clip_audio, peak_level
from audio.graph import AudioContext
from audio.player import ZsynthPlayer
from audio.timers import ManualTimer
from core.models import Song


def render_song(song: Song, seconds: float, sample_rate: int = 44100,
                settings: Optional[dict] = None, chunk_seconds: float = 0.025) -> np.ndarray:
    """
    Render a song offline.

    Args:
        song: Song to render
        seconds: Length of the bounce
        sample_rate: Output sample rate
        settings: Settings dict (scheduler and playback sections are used)
        chunk_seconds: Render block length; the scheduler runs between blocks

    Returns:
        Mono float32 buffer
    """
    if seconds <= 0:
        raise ValueError(f"Render length must be positive, got {seconds}")

    context = AudioContext(sample_rate=sample_rate)
    timer = ManualTimer()
    player = ZsynthPlayer(context=context, timer=timer, settings=settings)
    player.init({song.name: song})
    player.play(song.name, crossfade=0)

    chunk = max(1, int(round(chunk_seconds * sample_rate)))
    remaining = int(round(seconds * sample_rate))
    blocks = []
    while remaining > 0:
        frames = min(chunk, remaining)
        blocks.append(context.render(frames))
        timer.advance(frames / sample_rate)
        remaining -= frames

    audio = clip_audio(np.concatenate(blocks))
    print(f"[RENDER] '{song.name}': {seconds:.2f}s, peak {peak_level(audio):.3f}")
    return audio


def write_wav(path: Union[str, Path], audio: np.ndarray, sample_rate: int = 44100) -> Path:
    """
    Write a float buffer as a 32-bit float WAV file.

    Raises:
        IOError: If the file cannot be written
    """
    path = Path(path)
    if path.suffix != ".wav":
        path = path.with_suffix(".wav")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        wavfile.write(str(path), sample_rate, audio.astype(np.float32))
    except OSError as e:
        raise IOError(f"Failed to write {path}: {e}") from e
    return path
