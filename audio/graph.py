"""
Audio graph with sample-accurate parameter automation.

A small pull-based node graph modelled on browser audio graphs:
- AudioContext owns the sample clock and the destination node
- Nodes (gain, oscillator, biquad filter) are wired with connect()
- AudioParam holds a timeline of automation events evaluated per sample
- render() pulls one block from the destination and advances the clock

Voices are fire-and-forget: once an oscillator's stop time has been
rendered it reports finished, and nodes whose inputs have all finished are
dropped from the graph on the next render.
"""
import bisect
import itertools
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from audio.dsp import FILTER_TYPES, biquad_coefficients, biquad_process, generate_waveform
from core.constants import WAVEFORMS


@dataclass(order=True)
class AutomationEvent:
    """
    One entry on an AudioParam timeline.

    Attributes:
        time: Context time the event applies at (end time for ramps)
        seq: Insertion counter, keeps events at equal times in call order
        kind: "set", "linear", "exponential" or "target"
        value: Value to reach (target value for "target")
        time_constant: Decay constant for "target" events
    """
    time: float
    seq: int
    kind: str = field(compare=False)
    value: float = field(compare=False)
    time_constant: float = field(default=0.0, compare=False)


class AudioParam:
    """
    Automatable parameter (gain, frequency, ...).

    Curves follow the usual audio-graph rules: ramps run from the previous
    event's time and value to their own, exponential ramps never cross zero,
    and set_target_at_time approaches its target with a time constant.
    """

    def __init__(self, context: "AudioContext", default_value: float, name: str = ""):
        self.context = context
        self.name = name
        self.default_value = float(default_value)
        self._events: List[AutomationEvent] = []
        self._seq = itertools.count()

    @property
    def value(self) -> float:
        """Current value at the context's clock."""
        return self.value_at_time(self.context.current_time)

    @value.setter
    def value(self, value: float):
        self.set_value_at_time(value, self.context.current_time)

    @property
    def events(self) -> Tuple[AutomationEvent, ...]:
        return tuple(self._events)

    def _insert(self, kind: str, value: float, time: float, time_constant: float = 0.0):
        if time < 0:
            raise ValueError(f"{self.name or 'AudioParam'}: event time must be non-negative, got {time}")

        with self.context.lock:
            if kind in ("linear", "exponential") and not self._events:
                # A ramp with nothing before it starts from "now"
                now = self.context.current_time
                self._events.append(AutomationEvent(now, next(self._seq), "set",
                                                    self.value_at_time(now)))
            bisect.insort(self._events,
                          AutomationEvent(float(time), next(self._seq), kind,
                                          float(value), float(time_constant)))

    def set_value_at_time(self, value: float, time: float) -> "AudioParam":
        self._insert("set", value, time)
        return self

    def linear_ramp_to_value_at_time(self, value: float, end_time: float) -> "AudioParam":
        self._insert("linear", value, end_time)
        return self

    def exponential_ramp_to_value_at_time(self, value: float, end_time: float) -> "AudioParam":
        """
        Schedule an exponential ramp ending at end_time.

        Raises:
            ValueError: If value is zero or negative (exponential curves
                cannot reach zero; ramp toward a small floor instead)
        """
        if value <= 0:
            raise ValueError(
                f"{self.name or 'AudioParam'}: exponential ramp target must be positive, got {value}"
            )
        self._insert("exponential", value, end_time)
        return self

    def set_target_at_time(self, target: float, start_time: float,
                           time_constant: float) -> "AudioParam":
        """Approach target exponentially from start_time with the given time constant."""
        if time_constant < 0:
            raise ValueError(f"Time constant must be non-negative, got {time_constant}")
        if time_constant == 0:
            return self.set_value_at_time(target, start_time)
        self._insert("target", target, start_time, time_constant)
        return self

    def cancel_scheduled_values(self, start_time: float) -> "AudioParam":
        """Remove every event at or after start_time."""
        with self.context.lock:
            self._events = [e for e in self._events if e.time < start_time]
        return self

    def cancel_and_hold_at_time(self, time: float) -> "AudioParam":
        """
        Freeze the curve at its value at `time`, dropping later events.

        A ramp still in progress at `time` is cut short there, so the curve
        up to `time` is unchanged.
        """
        with self.context.lock:
            held = self.value_at_time(time)
            cut = next((e for e in self._events if e.time >= time), None)
            self.cancel_scheduled_values(time)

            if cut is not None and cut.kind == "linear":
                self._insert("linear", held, time)
            elif cut is not None and cut.kind == "exponential" and held > 0:
                self._insert("exponential", held, time)
            else:
                self._insert("set", held, time)
        return self

    def _segments(self) -> List[tuple]:
        """
        Split the timeline into (start, end, kind, args) pieces covering [0, inf).
        """
        segments = []
        start = 0.0
        current = ("hold", (self.default_value,))

        for event in self._events:
            if event.kind in ("linear", "exponential"):
                start_value = _evaluate_scalar(current, start)
                segments.append((start, event.time, event.kind,
                                 (start, start_value, event.time, event.value)))
                current = ("hold", (event.value,))
            else:
                segments.append((start, event.time) + current)
                if event.kind == "set":
                    current = ("hold", (event.value,))
                else:
                    v0 = _evaluate_scalar(current, event.time)
                    current = ("target", (event.time, v0, event.value, event.time_constant))
            start = event.time

        segments.append((start, np.inf) + current)
        return segments

    def values(self, times: np.ndarray) -> np.ndarray:
        """
        Evaluate the automation curve at each time.

        Args:
            times: Context times in seconds

        Returns:
            Parameter values (float64), same shape as times
        """
        with self.context.lock:
            segments = self._segments()

        out = np.full(len(times), self.default_value, dtype=np.float64)
        for start, end, kind, args in segments:
            if end <= start:
                continue
            mask = (times >= start) & (times < end)
            if mask.any():
                out[mask] = _evaluate(kind, args, times[mask])
        return out

    def value_at_time(self, time: float) -> float:
        return float(self.values(np.array([time], dtype=np.float64))[0])


def _evaluate(kind: str, args: tuple, t: np.ndarray) -> np.ndarray:
    """Evaluate one timeline segment."""
    if kind == "hold":
        return np.full(len(t), args[0])

    if kind == "target":
        t0, v0, target, tau = args
        return target + (v0 - target) * np.exp(-(t - t0) / tau)

    t1, v1, t2, v2 = args
    progress = (t - t1) / (t2 - t1)
    if kind == "linear":
        return v1 + (v2 - v1) * progress

    # Exponential: undefined from zero or across a sign change, so hold
    if v1 <= 0 or v2 <= 0:
        return np.full(len(t), v1)
    return v1 * np.power(v2 / v1, progress)


def _evaluate_scalar(segment: tuple, time: float) -> float:
    kind, args = segment
    return float(_evaluate(kind, args, np.array([time], dtype=np.float64))[0])


@dataclass
class RenderBlock:
    """Times of the samples being rendered, shared by every node in one pull."""
    index: int
    times: np.ndarray

    @property
    def end_time(self) -> float:
        return float(self.times[-1]) if len(self.times) else 0.0


class AudioNode:
    """
    Base graph node.

    Output is the sum of all connected inputs passed through process().
    A node that has had inputs and lost all of them is finished, unless
    keep_alive is set by its owner.
    """

    def __init__(self, context: "AudioContext"):
        self.context = context
        self.keep_alive = False
        self._inputs: List["AudioNode"] = []
        self._outputs: List["AudioNode"] = []
        self._had_input = False
        self._cache_index = -1
        self._cache: Optional[np.ndarray] = None

    @property
    def inputs(self) -> Tuple["AudioNode", ...]:
        return tuple(self._inputs)

    @property
    def outputs(self) -> Tuple["AudioNode", ...]:
        return tuple(self._outputs)

    @property
    def is_finished(self) -> bool:
        return not self.keep_alive and self._had_input and not self._inputs

    def connect(self, destination: "AudioNode") -> "AudioNode":
        """Route this node's output into destination. Returns destination."""
        with self.context.lock:
            if self not in destination._inputs:
                destination._inputs.append(self)
                destination._had_input = True
                self._outputs.append(destination)
        return destination

    def disconnect(self):
        """Detach this node from every destination."""
        with self.context.lock:
            for destination in self._outputs:
                if self in destination._inputs:
                    destination._inputs.remove(self)
            self._outputs.clear()

    def pull(self, block: RenderBlock) -> np.ndarray:
        """Render this node once per block (fan-out reuses the result)."""
        if self._cache_index != block.index:
            self._cache = self.process(block)
            self._cache_index = block.index
        return self._cache

    def process(self, block: RenderBlock) -> np.ndarray:
        return self._mix_inputs(block)

    def _mix_inputs(self, block: RenderBlock) -> np.ndarray:
        total = np.zeros(len(block.times), dtype=np.float64)
        for node in list(self._inputs):
            total += node.pull(block)

        for node in [n for n in self._inputs if n.is_finished]:
            self._inputs.remove(node)
            if self in node._outputs:
                node._outputs.remove(self)
        return total


class AudioDestinationNode(AudioNode):
    """Final output of the context; never finishes."""

    def __init__(self, context: "AudioContext"):
        super().__init__(context)
        self.keep_alive = True


class GainNode(AudioNode):
    """Multiplies its input by an automatable gain."""

    def __init__(self, context: "AudioContext"):
        super().__init__(context)
        self.gain = AudioParam(context, 1.0, name="gain")

    def process(self, block: RenderBlock) -> np.ndarray:
        mixed = self._mix_inputs(block)
        return mixed * self.gain.values(block.times)


class OscillatorNode(AudioNode):
    """
    Periodic source between start() and stop().

    Phase is accumulated sample by sample from the (automatable) frequency,
    so frequency sweeps stay continuous.
    """

    def __init__(self, context: "AudioContext"):
        super().__init__(context)
        self.frequency = AudioParam(context, 440.0, name="frequency")
        self._type = "sine"
        self._phase = 0.0
        self._start_time: Optional[float] = None
        self._stop_time: Optional[float] = None
        self._rendered_until = -1.0

    @property
    def type(self) -> str:
        return self._type

    @type.setter
    def type(self, waveform: str):
        if waveform not in WAVEFORMS:
            raise ValueError(f"Invalid waveform: {waveform}")
        self._type = waveform

    @property
    def start_time(self) -> Optional[float]:
        return self._start_time

    @property
    def stop_time(self) -> Optional[float]:
        return self._stop_time

    def start(self, when: float = 0.0):
        if self._start_time is not None:
            raise ValueError("Oscillator already started")
        self._start_time = max(0.0, float(when))

    def stop(self, when: float = 0.0):
        if self._start_time is None:
            raise ValueError("Oscillator stopped before it was started")
        self._stop_time = max(self._start_time, float(when))

    @property
    def is_finished(self) -> bool:
        return self._stop_time is not None and self._rendered_until >= self._stop_time

    def process(self, block: RenderBlock) -> np.ndarray:
        times = block.times
        self._rendered_until = block.end_time
        if self._start_time is None or block.end_time < self._start_time:
            return np.zeros(len(times), dtype=np.float64)

        active = times >= self._start_time
        if self._stop_time is not None:
            active &= times < self._stop_time
        if not active.any():
            return np.zeros(len(times), dtype=np.float64)

        increments = self.frequency.values(times) / self.context.sample_rate * active
        accumulated = np.cumsum(increments)
        phase = self._phase + accumulated - increments
        self._phase = (self._phase + accumulated[-1]) % 1.0

        return generate_waveform(self._type, phase) * active


class BiquadFilterNode(AudioNode):
    """Second-order filter; cutoff is read once per block."""

    def __init__(self, context: "AudioContext"):
        super().__init__(context)
        self.frequency = AudioParam(context, 350.0, name="frequency")
        self.q = AudioParam(context, 0.707, name="Q")
        self._type = "lowpass"
        self._state = np.zeros(2, dtype=np.float64)

    @property
    def type(self) -> str:
        return self._type

    @type.setter
    def type(self, filter_type: str):
        if filter_type not in FILTER_TYPES:
            raise ValueError(f"Unknown filter type: {filter_type}")
        self._type = filter_type

    def process(self, block: RenderBlock) -> np.ndarray:
        mixed = self._mix_inputs(block)
        if not len(mixed):
            return mixed
        start = float(block.times[0])
        coeffs = biquad_coefficients(self._type, self.frequency.value_at_time(start),
                                     self.q.value_at_time(start), self.context.sample_rate)
        return biquad_process(mixed, coeffs, self._state)


class AudioContext:
    """
    Owns the sample clock and the node graph.

    current_time advances only as audio is rendered, which makes it the
    monotonic clock the scheduler plans against. All graph mutation and
    rendering is serialized on `lock`.
    """

    def __init__(self, sample_rate: int = 44100):
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        self.sample_rate = int(sample_rate)
        self.lock = threading.RLock()
        self.state = "running"
        self._frame = 0
        self._block_index = 0
        self.destination = AudioDestinationNode(self)

    @property
    def current_time(self) -> float:
        return self._frame / self.sample_rate

    def create_gain(self) -> GainNode:
        return GainNode(self)

    def create_oscillator(self) -> OscillatorNode:
        return OscillatorNode(self)

    def create_biquad_filter(self) -> BiquadFilterNode:
        return BiquadFilterNode(self)

    def render(self, frames: int) -> np.ndarray:
        """
        Render the next block and advance the clock.

        Args:
            frames: Number of samples to render

        Returns:
            Mono float32 block
        """
        if self.state == "closed":
            raise RuntimeError("AudioContext is closed")

        with self.lock:
            times = (self._frame + np.arange(frames, dtype=np.float64)) / self.sample_rate
            block = RenderBlock(index=self._block_index, times=times)
            output = self.destination.pull(block)
            self._block_index += 1
            self._frame += frames
        return output.astype(np.float32)

    def render_seconds(self, seconds: float) -> np.ndarray:
        return self.render(int(round(seconds * self.sample_rate)))

    def close(self):
        self.state = "closed"
