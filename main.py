"""
zsynth - step sequencer audio engine
Command line entry point
"""
import argparse
import sys
import time
from pathlib import Path

from audio.bounce import render_song, write_wav
from core.constants import NOTES, STEPS, TRACK_DEFS
from core.models import SongFormatError, VoiceParams
from core.persistence import PROJECT_SUFFIX, SongFile, load_catalog
from core.settings import load_settings


def load_song_or_catalog(path: Path) -> dict:
    """Load a single song file, or every song in a directory."""
    if path.is_dir():
        return load_catalog(path)
    if path.suffix == PROJECT_SUFFIX:
        song = SongFile.load(path)
    else:
        song = SongFile.load_json(path)
    return {path.stem: song}


def cmd_play(args, settings):
    from audio.engine import AudioEngine
    from audio.player import ZsynthPlayer

    catalog = load_song_or_catalog(Path(args.path))
    key = args.key or next(iter(catalog), None)
    if key not in catalog:
        print(f"Song '{key}' not found (available: {', '.join(sorted(catalog)) or 'none'})")
        return 1

    player = ZsynthPlayer(settings=settings)
    player.init(catalog)
    player.on_step = lambda step: print(f"STEP: {step + 1}", end="\r", flush=True)

    engine = AudioEngine(player.context, buffer_size=settings["audio"]["buffer_size"],
                         device=settings["audio"]["device"])
    engine.start()
    try:
        player.play(key, crossfade=args.crossfade)
        if args.then:
            time.sleep(args.switch_after)
            player.play(args.then, crossfade=args.crossfade)
        if args.duration:
            time.sleep(args.duration)
        else:
            while True:
                time.sleep(0.1)
    except KeyboardInterrupt:
        pass
    finally:
        player.close()
        time.sleep(0.2)
        engine.stop()
    print()
    return 0


def cmd_render(args, settings):
    catalog = load_song_or_catalog(Path(args.path))
    key = args.key or next(iter(catalog), None)
    if key not in catalog:
        print(f"Song '{key}' not found")
        return 1

    song = catalog[key]
    seconds = args.seconds if args.seconds else song.cycle_duration * args.loops
    sample_rate = settings["audio"]["sample_rate"]
    audio = render_song(song, seconds, sample_rate=sample_rate, settings=settings)
    out = write_wav(args.output or Path(args.path).with_name(f"{key}.wav"), audio, sample_rate)
    print(f"Wrote {out}")
    return 0


def cmd_audition(args, settings):
    from audio.engine import AudioEngine
    from audio.player import ZsynthPlayer

    player = ZsynthPlayer(settings=settings)
    player.init({})
    engine = AudioEngine(player.context, buffer_size=settings["audio"]["buffer_size"],
                         device=settings["audio"]["device"])
    engine.start()
    try:
        if args.drum:
            player.play_drum(args.drum, volume=args.volume / 100.0)
        else:
            params = VoiceParams(volume=args.volume, waveform=args.wave,
                                 filter_cutoff=args.filter, attack=args.attack,
                                 release=args.release, detune=args.detune)
            player.play_synth(args.note, params)
        time.sleep(1.0)
    finally:
        player.close()
        engine.stop()
    return 0


def cmd_info(args, settings):
    catalog = load_song_or_catalog(Path(args.path))
    from audio.scheduler import build_step_index

    for key, song in catalog.items():
        print(f"{key}: {song.bpm:g} BPM, step {song.step_duration:.4f}s, "
              f"cycle {song.cycle_duration:.2f}s, {len(song.active_notes)} notes")
        index = build_step_index(song.active_notes)
        for step in range(STEPS):
            if index[step]:
                triggers = ", ".join(f"{t.track_id}:{t.note}" for t in index[step])
                print(f"  {step + 1:>2}: {triggers}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zsynth", description="Step sequencer audio engine")
    parser.add_argument("--settings", type=Path, default=None,
                        help="Settings file (default ~/.zsynth/settings.json)")
    sub = parser.add_subparsers(dest="command", required=True)

    play = sub.add_parser("play", help="Play a song in real time")
    play.add_argument("path", help="Song file (.json/.zsong) or folder of songs")
    play.add_argument("--key", help="Song key when path is a folder")
    play.add_argument("--crossfade", type=float, default=None, help="Fade length in seconds")
    play.add_argument("--then", help="Second song key to crossfade into")
    play.add_argument("--switch-after", type=float, default=8.0,
                      help="Seconds before switching to --then")
    play.add_argument("--duration", type=float, default=None,
                      help="Stop after this many seconds (default: until Ctrl+C)")
    play.set_defaults(func=cmd_play)

    render = sub.add_parser("render", help="Bounce a song to a WAV file")
    render.add_argument("path")
    render.add_argument("--key")
    render.add_argument("-o", "--output", type=Path, default=None)
    render.add_argument("--seconds", type=float, default=None)
    render.add_argument("--loops", type=int, default=1, help="Pattern cycles when --seconds is not given")
    render.set_defaults(func=cmd_render)

    drum_names = sorted({d.label for d in TRACK_DEFS if d.type == "drum"})
    audition = sub.add_parser("audition", help="Play one drum hit or synth note")
    audition.add_argument("--drum", help=f"Drum name ({', '.join(drum_names)})")
    audition.add_argument("--note", default="C4", help=f"Synth note ({NOTES[-1]}..{NOTES[0]})")
    audition.add_argument("--volume", type=float, default=80.0)
    audition.add_argument("--wave", default="square")
    audition.add_argument("--filter", type=float, default=2000.0)
    audition.add_argument("--attack", type=float, default=0.02)
    audition.add_argument("--release", type=float, default=0.3)
    audition.add_argument("--detune", type=float, default=0.0)
    audition.set_defaults(func=cmd_audition)

    info = sub.add_parser("info", help="Show tempo and step triggers")
    info.add_argument("path")
    info.set_defaults(func=cmd_info)
    return parser


def main(argv=None) -> int:
    """Run the zsynth command line."""
    args = build_parser().parse_args(argv)
    settings = load_settings(args.settings)
    try:
        return args.func(args, settings)
    except (IOError, SongFormatError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
