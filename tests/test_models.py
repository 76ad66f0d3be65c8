import pytest

from core.constants import (
    DEFAULT_FREQUENCY, note_to_frequency, detune_frequency, step_duration,
)
from core.models import (
    ActiveNote, Song, SongFormatError, TrackConfig, VoiceParams, resolve_voice_params,
)


def test_note_key_with_hyphenated_note_name():
    note = ActiveNote.from_key("hat-HI-HAT-3")
    assert note == ActiveNote("hat", "HI-HAT", 3)
    assert note.to_key() == "hat-HI-HAT-3"


def test_note_key_simple():
    assert ActiveNote.from_key("synth1-C4-12") == ActiveNote("synth1", "C4", 12)


@pytest.mark.parametrize("key", ["kick-0", "kick", "kick-KICK-x", "-KICK-0"])
def test_invalid_note_keys(key):
    with pytest.raises(SongFormatError):
        ActiveNote.from_key(key)


def test_song_format_error_is_value_error():
    assert issubclass(SongFormatError, ValueError)


def test_is_synth_by_prefix():
    assert ActiveNote("synth2", "C4", 0).is_synth
    assert not ActiveNote("kick", "KICK", 0).is_synth


def test_toggle_twice_restores_original_set():
    song = Song(bpm=120, active_notes={ActiveNote("kick", "KICK", 0)})
    toggled = song.toggle_note("snare", "SNARE", 4)
    assert toggled.is_active("snare", "SNARE", 4)
    assert toggled.toggle_note("snare", "SNARE", 4).active_notes == song.active_notes

    removed = song.toggle_note("kick", "KICK", 0)
    assert not removed.active_notes
    assert removed.toggle_note("kick", "KICK", 0).active_notes == song.active_notes


def test_step_duration_and_cycle():
    assert step_duration(120) == 0.125
    song = Song(bpm=120)
    assert song.step_duration == 0.125
    assert song.cycle_duration == 8.0


def test_step_duration_rejects_non_positive_bpm():
    with pytest.raises(ValueError):
        step_duration(0)
    with pytest.raises(ValueError):
        Song(bpm=-10)


def test_song_from_editor_dict():
    data = {
        "bpm": "120",
        "activeData": {"kick-KICK-0": True, "snare-SNARE-4": False, "synth1-C4-8": True},
        "config": {"synth1": {"vol": "50", "wave": "sawtooth", "filter": "1200",
                              "attack": "", "detune": 7}},
    }
    song = Song.from_dict(data, name="theme")

    assert song.bpm == 120.0
    assert song.name == "theme"
    assert song.active_notes == {ActiveNote("kick", "KICK", 0), ActiveNote("synth1", "C4", 8)}
    cfg = song.track_config("synth1")
    assert cfg.volume == 50.0
    assert cfg.waveform == "sawtooth"
    assert cfg.filter_cutoff == 1200.0
    assert cfg.attack is None
    assert cfg.detune == 7.0


def test_song_to_dict_uses_editor_format():
    song = Song(bpm=97.5, active_notes={ActiveNote("hat", "HI-HAT", 2)},
                config={"hat": TrackConfig(volume=60)})
    data = song.to_dict()
    assert data == {"bpm": "97.5", "activeData": {"hat-HI-HAT-2": True},
                    "config": {"hat": {"vol": 60}}}
    assert Song(bpm=120).to_dict()["bpm"] == "120"


@pytest.mark.parametrize("data", [
    [],
    {"activeData": {}},
    {"bpm": "fast"},
    {"bpm": "0"},
    {"bpm": "inf"},
    {"bpm": "nan"},
    {"bpm": "1e12"},
    {"bpm": "10"},
    {"bpm": "120", "activeData": ["kick-KICK-0"]},
    {"bpm": "120", "activeData": {"bad-key": True}},
    {"bpm": "120", "config": {"synth1": {"wave": "noise"}}},
    {"bpm": "120", "config": {"synth1": {"vol": True}}},
])
def test_malformed_song_data(data):
    with pytest.raises(SongFormatError):
        Song.from_dict(data)


def test_track_config_validation():
    with pytest.raises(ValueError):
        TrackConfig(volume=150)
    with pytest.raises(ValueError):
        TrackConfig(attack=-0.1)
    with pytest.raises(ValueError):
        TrackConfig(filter_cutoff=0)


def test_resolve_without_config_uses_defaults():
    params = resolve_voice_params(None)
    assert params == VoiceParams(volume=80, waveform="square", filter_cutoff=2000,
                                 attack=0.02, release=0.3, detune=0)
    assert params.peak_gain == pytest.approx(0.16)
    assert params.linear_volume == pytest.approx(0.8)


def test_resolve_ignores_preset_name_and_uses_defaults():
    params = resolve_voice_params(TrackConfig(volume=80, instrument="supersaw"))
    assert params == VoiceParams(volume=80, waveform="square", filter_cutoff=2000,
                                 attack=0.02, release=0.3, detune=0)


def test_resolve_keeps_explicit_fields():
    params = resolve_voice_params(TrackConfig(volume=40, release=0.9, instrument="pad_warm"))
    assert params == VoiceParams(volume=40, release=0.9)


@pytest.mark.parametrize("instrument", ["custom", "kazoo", None])
def test_resolve_ignores_custom_and_unknown_presets(instrument):
    params = resolve_voice_params(TrackConfig(volume=50, instrument=instrument))
    assert params == VoiceParams(volume=50)


def test_note_frequencies():
    assert note_to_frequency("A4") == 440.0
    assert note_to_frequency("A1") == 55.0
    assert note_to_frequency("Bb2") == 116.54
    assert note_to_frequency("X#9") == DEFAULT_FREQUENCY == 220.0
    assert detune_frequency(440.0, 1200) == pytest.approx(880.0)


@pytest.mark.parametrize("bpm", [float("inf"), float("nan"), 19, 301])
def test_song_rejects_tempo_outside_range(bpm):
    with pytest.raises(ValueError):
        Song(bpm=bpm)


def test_song_accepts_tempo_range_edges():
    assert Song(bpm=20).step_duration == 0.75
    assert Song(bpm=300).step_duration == pytest.approx(0.05)


def test_song_config_is_read_only_copy():
    config = {"synth1": TrackConfig(volume=40)}
    song = Song(bpm=120, config=config)
    config["synth2"] = TrackConfig(volume=10)

    assert song.track_config("synth2") is None
    with pytest.raises(TypeError):
        song.config["synth1"] = TrackConfig(volume=90)
    assert hash(song) == hash(Song(bpm=120, config={"synth1": TrackConfig(volume=40)}))
    assert song.with_track_config("synth2", TrackConfig()).track_config("synth2") == TrackConfig()
