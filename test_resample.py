"""Tests for channel reduction and box-filter decimation."""

import unittest

import numpy as np

from resample import downsample, to_mono


class TestResample(unittest.TestCase):

    def test_downsample_averages_groups(self):
        samples = np.array([1, 2, 3, 4, 5, 6, 7], dtype=np.float32)
        out = downsample(samples, 48000, 16000)
        # ceil(7 / 3) outputs; the short tail is averaged on its own
        np.testing.assert_allclose(out, [2.0, 5.0, 7.0])
        self.assertEqual(out.dtype, np.float32)

    def test_same_rate_unchanged(self):
        samples = np.arange(10, dtype=np.float32)
        np.testing.assert_array_equal(downsample(samples, 16000, 16000), samples)

    def test_to_mono_takes_first_channel(self):
        interleaved = np.array([0.1, 0.9, 0.2, 0.8, 0.3, 0.7], dtype=np.float32)
        np.testing.assert_allclose(to_mono(interleaved, 2), [0.1, 0.2, 0.3])

    def test_to_mono_single_channel(self):
        samples = np.arange(4, dtype=np.float32)
        np.testing.assert_array_equal(to_mono(samples, 1), samples)


if __name__ == '__main__':
    unittest.main()
