"""Keyscribe notifications — recording state push and stdout status events."""

import json
import os
import time

import aiohttp

from logging_utils import log_debug, log_error


class StatusEvent:
    RECORDING_STARTED = "recording_started"
    RECORDING_STOPPED = "recording_stopped"
    TRANSCRIBING = "transcribing"
    TRANSCRIPTION_COMPLETE = "transcription_complete"
    TRANSCRIPTION_ERROR = "transcription_error"


def _timestamp():
    return int(time.time())


class HttpStateBackend:
    """POST the state update to a local listener (e.g. a recording bubble UI)."""

    name = "http"

    def __init__(self, port, host="127.0.0.1", timeout=0.5):
        self.url = f"http://{host}:{port}/state"
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session = None

    async def send(self, payload):
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        async with self.session.post(self.url, json=payload) as resp:
            if resp.status >= 300:
                raise RuntimeError(f"HTTP {resp.status} from {self.url}")

    async def close(self):
        if self.session is not None:
            await self.session.close()
            self.session = None


class FileStateBackend:
    """Write the state update to a well-known JSON file."""

    name = "file"

    def __init__(self, path):
        self.path = path

    async def send(self, payload):
        tmp_path = self.path + ".tmp"
        with open(tmp_path, 'w') as f:
            json.dump(payload, f)
        os.replace(tmp_path, self.path)

    async def close(self):
        pass


class StateNotifier:
    """Tries each backend in priority order; the first success wins."""

    def __init__(self, backends):
        self.backends = list(backends)

    async def notify(self, recording):
        payload = {"recording": recording, "timestamp": _timestamp()}
        log_debug(f"[NOTIFY] State change: recording={recording}")
        for backend in self.backends:
            try:
                await backend.send(payload)
                log_debug(f"[NOTIFY] Delivered via {backend.name}")
                return True
            except Exception as e:
                log_debug(f"[NOTIFY] {backend.name} backend failed: {e!r}")
        log_error(f"[NOTIFY] All backends failed for recording={recording}")
        return False

    async def close(self):
        for backend in self.backends:
            try:
                await backend.close()
            except Exception as e:
                log_error(f"[NOTIFY] {backend.name} close failed: {e}")


def build_state_notifier(config):
    return StateNotifier([
        HttpStateBackend(config['notify_port']),
        FileStateBackend(config['state_file']),
    ])


class StatusEmitter:
    """JSON status events on stdout, one object per line (GUI mode only)."""

    def __init__(self, enabled):
        self.enabled = enabled

    def emit(self, event, message):
        if not self.enabled:
            return
        print(json.dumps({
            "event": event,
            "message": message,
            "timestamp": _timestamp(),
        }), flush=True)
