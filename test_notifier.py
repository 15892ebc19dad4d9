"""Tests for state notification backends and GUI status events."""

import io
import json
import os
import tempfile
import unittest
from unittest import mock

import logging_utils
from notifier import (
    FileStateBackend,
    StateNotifier,
    StatusEmitter,
    StatusEvent,
    build_state_notifier,
)


class FakeBackend:
    def __init__(self, name, fail=False):
        self.name = name
        self.fail = fail
        self.payloads = []
        self.closed = False

    async def send(self, payload):
        if self.fail:
            raise ConnectionRefusedError("nobody listening")
        self.payloads.append(payload)

    async def close(self):
        self.closed = True


class TestStateNotifier(unittest.IsolatedAsyncioTestCase):

    async def test_first_backend_wins(self):
        primary, secondary = FakeBackend("http"), FakeBackend("file")
        notifier = StateNotifier([primary, secondary])

        self.assertTrue(await notifier.notify(True))

        self.assertEqual(len(primary.payloads), 1)
        self.assertTrue(primary.payloads[0]['recording'])
        self.assertIsInstance(primary.payloads[0]['timestamp'], int)
        self.assertEqual(secondary.payloads, [])

    async def test_falls_back_on_failure(self):
        primary, secondary = FakeBackend("http", fail=True), FakeBackend("file")
        notifier = StateNotifier([primary, secondary])

        self.assertTrue(await notifier.notify(False))
        self.assertEqual(secondary.payloads[0]['recording'], False)

    async def test_all_backends_fail(self):
        notifier = StateNotifier([FakeBackend("http", fail=True), FakeBackend("file", fail=True)])
        self.assertFalse(await notifier.notify(True))

    async def test_close_closes_every_backend(self):
        backends = [FakeBackend("http"), FakeBackend("file")]
        await StateNotifier(backends).close()
        self.assertTrue(all(b.closed for b in backends))


class TestFileStateBackend(unittest.IsolatedAsyncioTestCase):

    async def test_writes_json_state(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "state.json")
            await FileStateBackend(path).send({"recording": True, "timestamp": 1700000000})
            with open(path) as f:
                self.assertEqual(json.load(f), {"recording": True, "timestamp": 1700000000})
            self.assertFalse(os.path.exists(path + ".tmp"))

    async def test_http_failure_falls_back_to_file(self):
        """With no listener on the port the state still lands in the file."""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "state.json")
            notifier = build_state_notifier({'notify_port': 9, 'state_file': path})
            failing = mock.AsyncMock(side_effect=OSError("connection refused"))
            with mock.patch.object(notifier.backends[0], 'send', failing):
                self.assertTrue(await notifier.notify(True))
            await notifier.close()
            with open(path) as f:
                self.assertTrue(json.load(f)['recording'])


class TestStatusEmitter(unittest.TestCase):

    def test_emits_json_line_when_enabled(self):
        with mock.patch('sys.stdout', new_callable=io.StringIO) as out:
            StatusEmitter(True).emit(StatusEvent.RECORDING_STARTED, "Recording started")
        event = json.loads(out.getvalue().strip())
        self.assertEqual(event['event'], "recording_started")
        self.assertEqual(event['message'], "Recording started")
        self.assertIn('timestamp', event)

    def test_silent_when_disabled(self):
        with mock.patch('sys.stdout', new_callable=io.StringIO) as out:
            StatusEmitter(False).emit(StatusEvent.TRANSCRIBING, "Transcribing audio")
        self.assertEqual(out.getvalue(), "")


class TestGuiModeLogging(unittest.TestCase):

    def tearDown(self):
        logging_utils.set_gui_mode(False)

    def test_gui_mode_keeps_stdout_clean(self):
        """In GUI mode info is suppressed and errors go to stderr."""
        with mock.patch('sys.stdout', new_callable=io.StringIO) as out, \
                mock.patch('sys.stderr', new_callable=io.StringIO) as err:
            logging_utils.set_gui_mode(True)
            logging_utils.log_info("ready")
            logging_utils.log_error("boom")
        self.assertEqual(out.getvalue(), "")
        self.assertEqual(err.getvalue(), "[ERROR] boom\n")


if __name__ == '__main__':
    unittest.main()
