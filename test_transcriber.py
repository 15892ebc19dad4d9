"""Tests for SpeechTranscriber and transcription jobs — no Whisper model is loaded."""

import asyncio
import os
import tempfile
import unittest
from types import SimpleNamespace
from unittest import mock

import numpy as np

from notifier import StatusEvent
from session import Utterance
from transcriber import SpeechTranscriber, TranscriptionResult, run_transcription_job


class FakeStatus:
    def __init__(self):
        self.events = []

    def emit(self, event, message):
        self.events.append((event, message))


class FailingTranscriber:
    async def transcribe(self, samples, sample_rate):
        raise RuntimeError("decoder exploded")


class FixedTranscriber:
    def __init__(self, text):
        self.text = text

    async def transcribe(self, samples, sample_rate):
        return self.text


def _utterance(seq=1, seconds=0.5):
    return Utterance(seq, np.zeros(int(16000 * seconds), dtype=np.float32), 16000)


class TestSpeechTranscriber(unittest.IsolatedAsyncioTestCase):

    async def test_joins_segments(self):
        transcriber = SpeechTranscriber("base.en")
        transcriber.model = mock.MagicMock()
        transcriber.model.transcribe.return_value = (
            iter([SimpleNamespace(text=" Hello "), SimpleNamespace(text="world. ")]),
            None,
        )

        text = await transcriber.transcribe(np.zeros(16000, dtype=np.float32), 16000)

        self.assertEqual(text, "Hello world.")
        _, kwargs = transcriber.model.transcribe.call_args
        self.assertEqual(kwargs['beam_size'], 5)
        self.assertEqual(kwargs['language'], "en")

    async def test_empty_audio_skips_model(self):
        transcriber = SpeechTranscriber("base.en")
        transcriber.model = mock.MagicMock()
        self.assertEqual(await transcriber.transcribe(np.zeros(0, dtype=np.float32), 16000), "")
        transcriber.model.transcribe.assert_not_called()

    async def test_unloaded_model_raises(self):
        transcriber = SpeechTranscriber("base.en")
        with self.assertRaises(RuntimeError):
            await transcriber.transcribe(np.zeros(160, dtype=np.float32), 16000)

    def test_missing_model_directory(self):
        with tempfile.TemporaryDirectory() as tmp:
            transcriber = SpeechTranscriber(os.path.join(tmp, "no-such-model"))
            with self.assertRaises(FileNotFoundError):
                transcriber.load()
            self.assertIsNone(transcriber.model)

    def test_unload_is_idempotent(self):
        transcriber = SpeechTranscriber("base.en")
        transcriber.model = object()
        transcriber.unload()
        transcriber.unload()
        self.assertIsNone(transcriber.model)


class TestTranscriptionJob(unittest.IsolatedAsyncioTestCase):

    async def test_success_forwards_result(self):
        results = asyncio.Queue()
        status = FakeStatus()

        result = await run_transcription_job(_utterance(7), FixedTranscriber("hi there"), results, status)

        self.assertEqual(result, TranscriptionResult(7, "hi there"))
        self.assertEqual(results.get_nowait(), result)
        self.assertEqual(status.events[-1][0], StatusEvent.TRANSCRIPTION_COMPLETE)

    async def test_failure_is_contained(self):
        """Engine errors are reported, never raised, and nothing is forwarded."""
        results = asyncio.Queue()
        status = FakeStatus()

        result = await run_transcription_job(_utterance(), FailingTranscriber(), results, status)

        self.assertIsNone(result)
        self.assertTrue(results.empty())
        self.assertEqual(status.events[-1][0], StatusEvent.TRANSCRIPTION_ERROR)
        self.assertIn("decoder exploded", status.events[-1][1])

    async def test_empty_text_not_forwarded(self):
        results = asyncio.Queue()
        status = FakeStatus()

        result = await run_transcription_job(_utterance(), FixedTranscriber(""), results, status)

        self.assertIsNone(result)
        self.assertTrue(results.empty())
        self.assertEqual(status.events[-1],
                         (StatusEvent.TRANSCRIPTION_COMPLETE, "Empty transcription result"))


if __name__ == '__main__':
    unittest.main()
