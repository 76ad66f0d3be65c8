"""
Core data structures and state management for zsynth.

Modules:
- models: Immutable data structures (ActiveNote, TrackConfig, Song, etc.)
- constants: Step grid, note frequencies, instrument presets, defaults
- commands: Command pattern for tracker undo/redo
- persistence: Tracker JSON and .zsong project file I/O
- settings: User settings file (~/.zsynth/settings.json)
"""
