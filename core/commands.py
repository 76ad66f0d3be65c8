"""
Command pattern for undo/redo support in the tracker.

All song edits go through commands to enable:
- Full undo/redo history
- A dirty flag that tracks unsaved edits
"""
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Optional, List

from core.constants import INSTRUMENTS, CUSTOM_INSTRUMENT, BPM_MIN, BPM_MAX
from core.models import TrackerState, Song, TrackConfig


class Command(ABC):
    """Base class for all commands."""

    @abstractmethod
    def execute(self, state: TrackerState) -> TrackerState:
        """
        Execute command and return new state.

        Args:
            state: Current tracker state

        Returns:
            Tracker state after command execution
        """
        raise NotImplementedError()

    @abstractmethod
    def undo(self, state: TrackerState) -> TrackerState:
        """
        Undo command and return previous state.

        Args:
            state: Current tracker state

        Returns:
            Tracker state before command execution
        """
        raise NotImplementedError()

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable command description for UI."""
        raise NotImplementedError()


class SongEditCommand(Command):
    """
    Command that replaces the current song with an edited copy.

    Subclasses implement apply(); undo restores the song seen at execute time.
    """

    def __init__(self):
        self._previous_song: Optional[Song] = None

    @abstractmethod
    def apply(self, song: Song) -> Song:
        """Return the edited song."""
        raise NotImplementedError()

    def execute(self, state: TrackerState) -> TrackerState:
        song = state.get_current_song()
        if song is None:
            raise ValueError("No song loaded")

        self._previous_song = song
        state.set_current_song(self.apply(song))
        state.mark_dirty()
        return state

    def undo(self, state: TrackerState) -> TrackerState:
        if self._previous_song is None:
            raise ValueError("Command has not been executed yet")

        state.set_current_song(self._previous_song)
        state.mark_dirty()
        return state


class ToggleNoteCommand(SongEditCommand):
    """Command to switch one grid cell on or off."""

    def __init__(self, track_id: str, note: str, step: int):
        """
        Args:
            track_id: Lane id
            note: Note or drum name
            step: Step number (0-63)
        """
        super().__init__()
        self.track_id = track_id
        self.note = note
        self.step = step

    def apply(self, song: Song) -> Song:
        return song.toggle_note(self.track_id, self.note, self.step)

    @property
    def description(self) -> str:
        return "Toggle Note"


class SetTrackConfigCommand(SongEditCommand):
    """Command to replace a track's parameters."""

    def __init__(self, track_id: str, config: TrackConfig):
        super().__init__()
        self.track_id = track_id
        self.config = config

    def apply(self, song: Song) -> Song:
        return song.with_track_config(self.track_id, self.config)

    @property
    def description(self) -> str:
        return "Change Track Settings"


class ApplyPresetCommand(SongEditCommand):
    """
    Command to load an instrument preset into a synth track.

    The preset's wave/filter/envelope/detune values are copied into the track
    config and the preset name is recorded; volume is left untouched.
    Applying "custom" only records the name.
    """

    def __init__(self, track_id: str, preset_key: str):
        super().__init__()
        if preset_key != CUSTOM_INSTRUMENT and preset_key not in INSTRUMENTS:
            raise ValueError(f"Unknown instrument preset: {preset_key}")
        self.track_id = track_id
        self.preset_key = preset_key

    def apply(self, song: Song) -> Song:
        current = song.track_config(self.track_id) or TrackConfig()
        if self.preset_key == CUSTOM_INSTRUMENT:
            return song.with_track_config(self.track_id,
                                          replace(current, instrument=CUSTOM_INSTRUMENT))

        preset = INSTRUMENTS[self.preset_key]
        config = replace(
            current,
            waveform=preset["wave"],
            filter_cutoff=float(preset["filter"]),
            attack=float(preset["attack"]),
            release=float(preset["release"]),
            detune=float(preset["detune"]),
            instrument=self.preset_key,
        )
        return song.with_track_config(self.track_id, config)

    @property
    def description(self) -> str:
        return "Apply Preset"


class SetTempoCommand(SongEditCommand):
    """Command to change the song tempo."""

    def __init__(self, bpm: float):
        super().__init__()
        if not BPM_MIN <= bpm <= BPM_MAX:
            raise ValueError(f"BPM must be {BPM_MIN}-{BPM_MAX}, got {bpm}")
        self.bpm = float(bpm)

    def apply(self, song: Song) -> Song:
        return replace(song, bpm=self.bpm)

    @property
    def description(self) -> str:
        return "Change Tempo"


class CommandHistory:
    """
    Linear edit history for one tracker session.

    Commands live in a single list with a cursor: everything before the
    cursor is applied, everything after it can be redone. The history also
    remembers which cursor position was last saved, so undoing back to the
    saved song clears the dirty flag again.
    """

    def __init__(self, state: TrackerState, max_history: int = 100):
        """
        Args:
            state: Tracker state to operate on
            max_history: Maximum number of commands to keep
        """
        if max_history < 1:
            raise ValueError(f"max_history must be at least 1, got {max_history}")
        self.state = state
        self.max_history = max_history
        self._commands: List[Command] = []
        self._cursor = 0
        self._saved_at: Optional[int] = 0

    def execute(self, command: Command):
        """Apply a command, dropping any redo branch."""
        command.execute(self.state)

        if self._saved_at is not None and self._saved_at > self._cursor:
            self._saved_at = None
        del self._commands[self._cursor:]
        self._commands.append(command)
        self._cursor += 1

        overflow = len(self._commands) - self.max_history
        if overflow > 0:
            del self._commands[:overflow]
            self._cursor -= overflow
            if self._saved_at is not None:
                self._saved_at = self._saved_at - overflow if self._saved_at >= overflow else None

        self._sync_dirty()

    def undo(self) -> bool:
        """Step back one edit. Returns False when there is nothing to undo."""
        if not self.can_undo():
            return False

        self._cursor -= 1
        self._commands[self._cursor].undo(self.state)
        self._sync_dirty()
        return True

    def redo(self) -> bool:
        """Re-apply the next undone edit. Returns False when there is none."""
        if not self.can_redo():
            return False

        self._commands[self._cursor].execute(self.state)
        self._cursor += 1
        self._sync_dirty()
        return True

    def can_undo(self) -> bool:
        return self._cursor > 0

    def can_redo(self) -> bool:
        return self._cursor < len(self._commands)

    def mark_saved(self):
        """Record the current song as the saved one."""
        self._saved_at = self._cursor
        self.state.mark_clean()

    def clear(self):
        """Forget all edits; the current song becomes the baseline."""
        self._commands.clear()
        self._cursor = 0
        self._saved_at = 0 if not self.state.is_dirty() else None

    def get_undo_description(self) -> Optional[str]:
        if self.can_undo():
            return self._commands[self._cursor - 1].description
        return None

    def get_redo_description(self) -> Optional[str]:
        if self.can_redo():
            return self._commands[self._cursor].description
        return None

    def _sync_dirty(self):
        if self._cursor == self._saved_at:
            self.state.mark_clean()
        else:
            self.state.mark_dirty()
