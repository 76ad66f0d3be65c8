"""
Real-time audio output.

AudioEngine opens a sounddevice output stream whose callback renders the
context block by block. The callback only renders; tracks are started and
switched from the player's timer thread.
"""
from typing import Optional, Union

import sounddevice as sd

from audio.dsp import clip_audio, peak_level, stereo_from_mono
from audio.graph import AudioContext


class AudioEngine:
    """
    Plays an AudioContext through the default (or given) output device.
    """

    def __init__(self, context: AudioContext, buffer_size: int = 512,
                 device: Optional[Union[int, str]] = None):
        """
        Args:
            context: Context to render
            buffer_size: Frames per callback
            device: sounddevice device id or name (None = system default)
        """
        self.context = context
        self.buffer_size = buffer_size
        self.device = device
        self._stream: Optional[sd.OutputStream] = None
        self.peak = 0.0

    @property
    def is_running(self) -> bool:
        return self._stream is not None and self._stream.active

    def _callback(self, outdata, frames, time_info, status):
        """Called by sounddevice for each block."""
        if status:
            print(f"[ENGINE] Stream status: {status}")
        try:
            block = clip_audio(self.context.render(frames))
        except Exception as e:
            print(f"[ENGINE] Render failed: {e}")
            outdata.fill(0)
            return

        self.peak = peak_level(block)
        outdata[:] = stereo_from_mono(block)

    def start(self):
        """Open and start the output stream."""
        if self._stream is not None:
            return

        self._stream = sd.OutputStream(
            samplerate=self.context.sample_rate,
            blocksize=self.buffer_size,
            channels=2,
            dtype="float32",
            device=self.device,
            callback=self._callback,
        )
        self._stream.start()
        print(f"[ENGINE] Output started ({self.context.sample_rate} Hz, {self.buffer_size} frames)")

    def stop(self):
        """Stop and close the output stream."""
        if self._stream is None:
            return

        self._stream.stop()
        self._stream.close()
        self._stream = None
        print("[ENGINE] Output stopped")
