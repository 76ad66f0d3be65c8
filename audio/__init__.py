"""
Audio processing layer for zsynth.

Modules:
- graph: Audio context, nodes and parameter automation
- dsp: DSP utilities (filters, waveforms, metering)
- voices: Drum and synth voice synthesis
- scheduler: Step index builder and lookahead playback scheduler
- player: Track lifecycle, crossfades, mute/unmute
- timers: Cooperative timer loop (real-time and manual)
- engine: Real-time output stream
- bounce: Offline rendering to buffers and WAV files
"""
