"""Keyscribe sample conversion — channel reduction and decimation to the target rate."""

import numpy as np

TARGET_SAMPLE_RATE = 16000


def to_mono(samples, channels):
    """Take the left channel of each interleaved frame.

    Channels are not averaged. A trailing partial frame is dropped.
    """
    samples = np.asarray(samples, dtype=np.float32)
    if channels <= 1:
        return samples
    usable = len(samples) - len(samples) % channels
    return samples[:usable:channels].copy()


def downsample(samples, native_rate, target_rate=TARGET_SAMPLE_RATE):
    """Box-filter decimation by floor(native_rate / target_rate).

    Each output sample is the mean of `ratio` consecutive inputs; the
    trailing partial group is averaged over its actual length. Returns
    the input unchanged when the ratio is 1 or less.
    """
    samples = np.asarray(samples, dtype=np.float32)
    if native_rate == target_rate:
        return samples
    ratio = int(native_rate) // int(target_rate)
    if ratio <= 1:
        return samples

    full = len(samples) // ratio
    out = samples[:full * ratio].reshape(full, ratio).mean(axis=1, dtype=np.float64)
    tail = samples[full * ratio:]
    if len(tail):
        out = np.append(out, tail.mean(dtype=np.float64))
    return out.astype(np.float32)
