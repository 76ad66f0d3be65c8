import pytest

from core.commands import (
    ApplyPresetCommand, CommandHistory, SetTempoCommand, SetTrackConfigCommand, ToggleNoteCommand,
)
from core.constants import INSTRUMENTS
from core.models import Song, TrackConfig, TrackerState


@pytest.fixture
def history():
    return CommandHistory(TrackerState(Song(bpm=120)))


def current(history):
    return history.state.get_current_song()


def test_toggle_undo_redo(history):
    history.execute(ToggleNoteCommand("kick", "KICK", 0))
    assert current(history).is_active("kick", "KICK", 0)
    assert history.state.is_dirty()
    assert history.get_undo_description() == "Toggle Note"

    assert history.undo()
    assert not current(history).active_notes
    assert history.get_redo_description() == "Toggle Note"

    assert history.redo()
    assert current(history).is_active("kick", "KICK", 0)


def test_new_command_clears_redo(history):
    history.execute(ToggleNoteCommand("kick", "KICK", 0))
    history.undo()
    history.execute(SetTempoCommand(90))
    assert not history.can_redo()
    assert current(history).bpm == 90


def test_undo_redo_on_empty_history(history):
    assert not history.undo()
    assert not history.redo()
    assert history.get_undo_description() is None


def test_command_without_song():
    history = CommandHistory(TrackerState())
    with pytest.raises(ValueError):
        history.execute(ToggleNoteCommand("kick", "KICK", 0))


def test_apply_preset_copies_sound_but_keeps_volume(history):
    history.execute(SetTrackConfigCommand("synth1", TrackConfig(volume=35)))
    history.execute(ApplyPresetCommand("synth1", "bass_wobble"))

    cfg = current(history).track_config("synth1")
    preset = INSTRUMENTS["bass_wobble"]
    assert cfg.volume == 35
    assert cfg.instrument == "bass_wobble"
    assert cfg.waveform == preset["wave"]
    assert cfg.filter_cutoff == preset["filter"]
    assert cfg.release == preset["release"]
    assert cfg.detune == preset["detune"]

    history.undo()
    assert current(history).track_config("synth1") == TrackConfig(volume=35)


def test_custom_preset_only_records_name(history):
    history.execute(SetTrackConfigCommand("synth2", TrackConfig(waveform="sine")))
    history.execute(ApplyPresetCommand("synth2", "custom"))
    assert current(history).track_config("synth2") == TrackConfig(waveform="sine", instrument="custom")


def test_unknown_preset_rejected():
    with pytest.raises(ValueError):
        ApplyPresetCommand("synth1", "theremin")


@pytest.mark.parametrize("bpm", [10, 301])
def test_tempo_range(bpm):
    with pytest.raises(ValueError):
        SetTempoCommand(bpm)


def test_history_is_bounded():
    history = CommandHistory(TrackerState(Song(bpm=120)), max_history=3)
    for step in range(5):
        history.execute(ToggleNoteCommand("hat", "HI-HAT", step))
    undone = 0
    while history.undo():
        undone += 1
    assert undone == 3
    assert len(current(history).active_notes) == 2


def test_undo_back_to_saved_song_is_clean(history):
    history.execute(ToggleNoteCommand("kick", "KICK", 0))
    history.mark_saved()
    assert not history.state.is_dirty()

    history.execute(ToggleNoteCommand("snare", "SNARE", 4))
    assert history.state.is_dirty()
    history.undo()
    assert not history.state.is_dirty()
    history.undo()
    assert history.state.is_dirty()
    history.redo()
    assert not history.state.is_dirty()


def test_saved_point_lost_when_its_branch_is_replaced(history):
    history.execute(ToggleNoteCommand("kick", "KICK", 0))
    history.mark_saved()
    history.undo()
    history.execute(SetTempoCommand(90))
    history.undo()
    assert history.state.is_dirty()


def test_history_size_must_be_positive():
    with pytest.raises(ValueError):
        CommandHistory(TrackerState(Song(bpm=120)), max_history=0)
