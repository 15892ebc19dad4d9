"""Keyscribe session state — recording flag and the utterance accumulator.

Lock order when both are needed: SessionState.lock, then Accumulator.lock.
Neither lock is held across an await on an external service.
"""

import asyncio
import itertools
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Utterance:
    """One flushed recording. Never mutated after the flush that created it."""
    seq: int
    samples: np.ndarray
    sample_rate: int

    @property
    def duration(self):
        return len(self.samples) / self.sample_rate


class SessionState:
    """Idle/Recording flag plus speech flag, mutated only under `lock`."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.is_recording = False
        self.speech_detected = False

    @property
    def name(self):
        return "recording" if self.is_recording else "idle"


class Accumulator:
    """Append-only sample buffer, drained atomically into an Utterance."""

    def __init__(self, sample_rate):
        self.lock = asyncio.Lock()
        self.sample_rate = sample_rate
        self._chunks = []
        self._length = 0
        self._seq = itertools.count(1)

    def __len__(self):
        return self._length

    def append(self, chunk):
        """Caller must hold `lock`."""
        self._chunks.append(chunk)
        self._length += len(chunk)

    async def drain(self):
        """Take everything buffered. Returns an Utterance, or None if empty."""
        async with self.lock:
            if self._length == 0:
                self._chunks = []
                return None
            samples = np.concatenate(self._chunks).astype(np.float32, copy=False)
            self._chunks = []
            self._length = 0
            samples.flags.writeable = False
            return Utterance(next(self._seq), samples, self.sample_rate)
