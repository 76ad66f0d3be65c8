"""
Song file I/O.

Formats:
- Tracker JSON (.json): the editor's export/import format, also used for the
  game's music folder
- Project file (.zsong): MessagePack binary (fast, compact) with a version tag
"""
import json
from pathlib import Path
from typing import Dict, Union

import msgpack

from core.models import Song, SongFormatError

PROJECT_VERSION = "1.0.0"
PROJECT_SUFFIX = ".zsong"


class SongFile:
    """Handles song import/export and .zsong project file I/O."""

    @staticmethod
    def import_text(text: str, name: str = "Untitled") -> Song:
        """
        Parse a song pasted into the tracker's import field.

        Args:
            text: JSON text in the tracker export format
            name: Name to give the song

        Returns:
            Parsed song

        Raises:
            SongFormatError: If the text is not valid JSON or not a song
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SongFormatError(f"Invalid JSON: {e}") from e
        return Song.from_dict(data, name=name)

    @staticmethod
    def export_text(song: Song) -> str:
        """Serialize a song the way the tracker's export field shows it."""
        return json.dumps(song.to_dict(), indent=2)

    @staticmethod
    def load_json(path: Union[str, Path]) -> Song:
        """
        Load a song from a tracker JSON file.

        The song is named after the file stem.

        Raises:
            IOError: If the file cannot be read
            SongFormatError: If the content is not a valid song
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise IOError(f"Failed to read song from {path}: {e}") from e
        return SongFile.import_text(text, name=path.stem)

    @staticmethod
    def save_json(song: Song, path: Union[str, Path]) -> Path:
        """
        Save a song as tracker JSON.

        Returns:
            Path written
        """
        path = Path(path)
        if path.suffix != ".json":
            path = path.with_suffix(".json")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(SongFile.export_text(song), encoding="utf-8")
        except OSError as e:
            raise IOError(f"Failed to save song to {path}: {e}") from e
        return path

    @staticmethod
    def save(song: Song, path: Union[str, Path]) -> Path:
        """
        Save song to a .zsong project file.

        Args:
            song: Song to save
            path: Destination file path (extension is forced to .zsong)

        Returns:
            Path written

        Raises:
            IOError: If save fails
        """
        path = Path(path)
        if path.suffix != PROJECT_SUFFIX:
            path = path.with_suffix(PROJECT_SUFFIX)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            project_data = {
                "version": PROJECT_VERSION,
                "name": song.name,
                "song": song.to_dict(),
            }
            packed_data = msgpack.packb(project_data, use_bin_type=True)

            with open(path, "wb") as f:
                f.write(packed_data)

        except (OSError, TypeError) as e:
            raise IOError(f"Failed to save project to {path}: {e}") from e

        return path

    @staticmethod
    def load(path: Union[str, Path]) -> Song:
        """
        Load song from a .zsong project file.

        Raises:
            IOError: If the file cannot be read
            ValueError: If the file format or version is invalid
        """
        path = Path(path)
        if not path.exists():
            raise IOError(f"Project file not found: {path}")

        try:
            with open(path, "rb") as f:
                packed_data = f.read()
        except OSError as e:
            raise IOError(f"Failed to load project from {path}: {e}") from e

        try:
            project_data = msgpack.unpackb(packed_data, raw=False)
        except (msgpack.exceptions.ExtraData, ValueError) as e:
            raise ValueError(f"Invalid {PROJECT_SUFFIX} file format: {e}") from e

        if not isinstance(project_data, dict):
            raise ValueError(f"Invalid {PROJECT_SUFFIX} file format: {path}")

        version = str(project_data.get("version", "unknown"))
        if not version.startswith("1."):
            raise ValueError(f"Incompatible project version: {version}. Expected 1.x")

        return Song.from_dict(project_data.get("song"),
                              name=project_data.get("name", path.stem))


def load_catalog(directory: Union[str, Path]) -> Dict[str, Song]:
    """
    Load every tracker JSON file in a directory.

    Args:
        directory: Folder holding one <key>.json per song

    Returns:
        Song key (file stem) -> Song
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise IOError(f"Song directory not found: {directory}")

    return {path.stem: SongFile.load_json(path)
            for path in sorted(directory.glob("*.json"))}
