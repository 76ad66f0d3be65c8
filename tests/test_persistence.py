import json

import msgpack
import pytest

from core.models import ActiveNote, Song, SongFormatError, TrackConfig
from core.persistence import SongFile, load_catalog


@pytest.fixture
def song():
    return Song(bpm=140, name="cave",
                active_notes={ActiveNote("kick", "KICK", 0), ActiveNote("hat", "HI-HAT", 2),
                              ActiveNote("synth1", "Eb3", 6)},
                config={"synth1": TrackConfig(volume=70, waveform="triangle",
                                              instrument="pad_warm")})


def test_import_text(song):
    text = SongFile.export_text(song)
    assert json.loads(text)["activeData"]["hat-HI-HAT-2"] is True

    imported = SongFile.import_text(text, name="cave")
    assert imported == song


def test_import_rejects_invalid_json():
    with pytest.raises(SongFormatError):
        SongFile.import_text("{bpm: 120")


def test_json_file_named_after_stem(song, tmp_path):
    written = SongFile.save_json(song, tmp_path / "music" / "level1")
    assert written.name == "level1.json"

    loaded = SongFile.load_json(written)
    assert loaded.name == "level1"
    assert loaded.active_notes == song.active_notes


def test_load_json_missing_file(tmp_path):
    with pytest.raises(IOError):
        SongFile.load_json(tmp_path / "missing.json")


def test_project_file(song, tmp_path):
    path = SongFile.save(song, tmp_path / "cave.json")
    assert path.suffix == ".zsong"
    assert SongFile.load(path) == song


def test_project_file_missing(tmp_path):
    with pytest.raises(IOError):
        SongFile.load(tmp_path / "nothing.zsong")


def test_project_file_version_check(song, tmp_path):
    path = tmp_path / "future.zsong"
    path.write_bytes(msgpack.packb({"version": "2.0.0", "name": "x", "song": song.to_dict()}))
    with pytest.raises(ValueError, match="Incompatible"):
        SongFile.load(path)


def test_project_file_garbage(tmp_path):
    path = tmp_path / "garbage.zsong"
    path.write_bytes(msgpack.packb([1, 2, 3]))
    with pytest.raises(ValueError):
        SongFile.load(path)


def test_catalog_keys_by_stem(song, tmp_path):
    SongFile.save_json(song, tmp_path / "theme")
    SongFile.save_json(Song(bpm=90), tmp_path / "menu")
    (tmp_path / "notes.txt").write_text("not a song")

    catalog = load_catalog(tmp_path)

    assert sorted(catalog) == ["menu", "theme"]
    assert catalog["menu"].bpm == 90


def test_catalog_missing_directory(tmp_path):
    with pytest.raises(IOError):
        load_catalog(tmp_path / "nope")
