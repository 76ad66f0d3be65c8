import numpy as np
import pytest
from scipy.io import wavfile

from audio.bounce import render_song, write_wav
from tests.conftest import make_song


def test_render_places_kick_at_start_lead():
    song = make_song("kick-KICK-0", name="beat")
    audio = render_song(song, 0.5, sample_rate=8000)

    assert audio.dtype == np.float32
    assert len(audio) == 4000
    assert not audio[:400].any()
    assert np.max(np.abs(audio[400:2000])) > 0.1


def test_render_synth_song_is_bounded():
    song = make_song("synth1-C3-0", "synth1-G3-2", "snare-SNARE-4", name="riff")
    audio = render_song(song, 1.0, sample_rate=8000)
    assert np.max(np.abs(audio)) <= 1.0
    assert np.max(np.abs(audio)) > 0.01


def test_render_rejects_zero_length():
    with pytest.raises(ValueError):
        render_song(make_song(name="x"), 0)


def test_write_wav(tmp_path):
    audio = np.linspace(-0.5, 0.5, 800).astype(np.float32)
    path = write_wav(tmp_path / "out" / "beat", audio, sample_rate=8000)

    assert path.name == "beat.wav"
    rate, data = wavfile.read(path)
    assert rate == 8000
    assert np.allclose(data, audio)
