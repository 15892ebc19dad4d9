"""Tests for session state and the utterance Accumulator."""

import unittest

import numpy as np

from session import Accumulator, SessionState


class TestSessionState(unittest.TestCase):

    def test_starts_idle(self):
        session = SessionState()
        self.assertEqual(session.name, "idle")
        session.is_recording = True
        self.assertEqual(session.name, "recording")


class TestAccumulator(unittest.IsolatedAsyncioTestCase):

    async def test_drain_concatenates_and_clears(self):
        acc = Accumulator(16000)
        async with acc.lock:
            acc.append(np.ones(100, dtype=np.float32))
            acc.append(np.zeros(60, dtype=np.float32))

        utterance = await acc.drain()

        self.assertEqual(len(utterance.samples), 160)
        self.assertEqual(utterance.sample_rate, 16000)
        self.assertEqual(len(acc), 0)
        self.assertFalse(utterance.samples.flags.writeable)
        self.assertIsNone(await acc.drain())

    async def test_sequence_numbers_increase(self):
        acc = Accumulator(16000)
        seqs = []
        for _ in range(2):
            async with acc.lock:
                acc.append(np.ones(10, dtype=np.float32))
            seqs.append((await acc.drain()).seq)
        self.assertEqual(seqs, [1, 2])


if __name__ == '__main__':
    unittest.main()
