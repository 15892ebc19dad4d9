"""Keyscribe audio capture — device stream converted to 16 kHz mono chunks."""

import time

import numpy as np
import sounddevice as sd

from logging_utils import log_debug, log_info, log_error
from resample import TARGET_SAMPLE_RATE, to_mono, downsample


class AudioDeviceError(RuntimeError):
    """No usable input device (fatal at startup)."""


class AudioCapture:
    """
    Owns the input stream. Each device callback produces one float32 mono
    chunk at 16 kHz and hands it to `emit` without blocking.

    The stream runs at the device's native rate with the configured channel
    count; conversion happens in the callback (left channel, box-filter
    decimation).
    """

    def __init__(self, config):
        self.target_rate = config.get('sample_rate', TARGET_SAMPLE_RATE)
        self.device_name = config.get('audio_device', '')
        requested_channels = config.get('channels', 1)

        self.device_index = self._resolve_device()
        try:
            info = sd.query_devices(self.device_index, 'input')
        except (ValueError, sd.PortAudioError) as e:
            raise AudioDeviceError(f"No input device available: {e}") from e

        self.native_rate = int(info['default_samplerate'])
        max_channels = int(info['max_input_channels'])
        if max_channels < 1:
            raise AudioDeviceError(f"Device '{info['name']}' has no input channels")
        self.channels = max(1, min(requested_channels, max_channels))
        self.device_label = info['name']

        self.stream = None
        self._emit = None
        self._last_error_log_time = 0
        log_info(
            f"[AUDIO] Using input device: {self.device_label} "
            f"({self.channels} ch, {self.native_rate} Hz)"
        )

    def _resolve_device(self):
        """Resolve device name to sounddevice index.

        Returns int device index, or None for the default input device.
        Raises ValueError if name is configured but cannot be resolved.
        """
        if not self.device_name:
            return None

        devices = sd.query_devices()
        input_devices = [
            (i, d) for i, d in enumerate(devices)
            if d['max_input_channels'] > 0
        ]

        for idx, dev in input_devices:
            if dev['name'] == self.device_name:
                log_info(f"[AUDIO] Device exact match: [{idx}] {dev['name']}")
                return idx

        name_lower = self.device_name.lower()
        matches = [
            (idx, dev) for idx, dev in input_devices
            if name_lower in dev['name'].lower()
        ]

        if len(matches) > 1:
            names = [dev['name'] for _, dev in matches]
            raise ValueError(
                f"Ambiguous audio device '{self.device_name}' matched {len(matches)} "
                f"devices: {names}. Use a more specific string."
            )

        if len(matches) == 1:
            idx, dev = matches[0]
            log_info(f"[AUDIO] Device substring match: [{idx}] {dev['name']}")
            return idx

        available_names = [dev['name'] for _, dev in input_devices]
        raise ValueError(
            f"Audio device '{self.device_name}' not found. "
            f"Available input devices: {available_names}"
        )

    def start(self, emit):
        """Start audio stream, delivering chunks to emit(chunk). Idempotent.

        On any exception, calls stop() to ensure clean stopped state, then re-raises.
        """
        if self.stream is not None:
            return
        self._emit = emit
        try:
            self.stream = sd.InputStream(
                samplerate=self.native_rate,
                channels=self.channels,
                dtype='float32',
                callback=self._audio_callback,
                device=self.device_index,
                finished_callback=self._on_finished,
            )
            self.stream.start()
            log_info(f"[AUDIO] Capture started (device={self.device_index})")
        except Exception:
            self.stop()
            raise

    def stop(self):
        """Stop stream. Idempotent, no-throw."""
        if self.stream is None:
            return
        try:
            self.stream.stop()
        except Exception as e:
            log_error(f"[AUDIO] Stream stop failed: {e}")
        try:
            self.stream.close()
        except Exception as e:
            log_error(f"[AUDIO] Stream close failed: {e}")
        self.stream = None
        log_info("[AUDIO] Capture stopped")

    def convert(self, indata):
        """Interleave the (frames, channels) block, keep the left channel, decimate."""
        interleaved = np.asarray(indata, dtype=np.float32).reshape(-1)
        mono = to_mono(interleaved, self.channels)
        return downsample(mono, self.native_rate, self.target_rate)

    def _on_finished(self):
        log_debug("[AUDIO] Stream finished")

    def _audio_callback(self, indata, frames, time_info, status):
        """Called by sounddevice in the audio thread. Must never block."""
        if status:
            # Throttled status logging (at most once per 5 seconds)
            now = time.monotonic()
            if (now - self._last_error_log_time) > 5.0:
                log_error(f"[AUDIO] Callback status: {status}")
                self._last_error_log_time = now

        try:
            chunk = self.convert(indata)
            self._emit(chunk)
        except Exception as e:
            # Mid-stream failure: abandon the stream, no automatic restart
            log_error(f"[AUDIO] Audio input error, abandoning stream: {e}")
            raise sd.CallbackAbort
