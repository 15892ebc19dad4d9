"""Keyscribe activity gate — speech/silence hysteresis for auto-stop."""

import time

import numpy as np

from logging_utils import log_debug, log_info

# 20 ms frames, the only sizes the WebRTC classifier accepts at these rates
FRAME_SIZES = {
    8000: 160,
    16000: 320,
    32000: 640,
    48000: 960,
}


class GateSignal:
    SPEECH_DETECTED = "speech_detected"
    SILENCE = "silence"
    SILENCE_DETECTED = "silence_detected"  # speech followed by timeout, fires once


def frame_size_for(sample_rate):
    if sample_rate not in FRAME_SIZES:
        raise ValueError(f"Unsupported VAD sample rate: {sample_rate}")
    return FRAME_SIZES[sample_rate]


class WebRtcClassifier:
    """webrtcvad wrapper: classify(frame) -> bool on fixed-size float frames."""

    def __init__(self, sample_rate, sensitivity):
        import webrtcvad

        self.frame_size = frame_size_for(sample_rate)
        self.sample_rate = sample_rate
        self.mode = sensitivity if sensitivity in (0, 1, 2, 3) else 0
        self._webrtcvad = webrtcvad
        self._vad = webrtcvad.Vad(self.mode)
        log_info(
            f"[VAD] WebRTC VAD initialized: {sample_rate}Hz, mode {self.mode}, "
            f"frame_size {self.frame_size}"
        )

    def classify(self, frame):
        frame_i16 = (np.clip(frame, -1.0, 1.0) * 32767.0).astype(np.int16)
        return self._vad.is_speech(frame_i16.tobytes(), self.sample_rate)

    def reset(self):
        self._vad = self._webrtcvad.Vad(self.mode)


class ActivityGate:
    """
    Feeds fixed-size frames to a classifier and tracks speech/silence.

    process() returns SILENCE_DETECTED exactly once per speech episode, when
    silence has lasted longer than the timeout after speech was observed.
    Owned by a single task; not thread-safe.
    """

    def __init__(self, classifier, frame_size, silence_timeout_ms, clock=time.monotonic):
        self.classifier = classifier
        self.frame_size = frame_size
        self.silence_timeout = silence_timeout_ms / 1000.0
        self._clock = clock

        self.pending = np.zeros(0, dtype=np.float32)
        self.last_speech_time = None
        self.speech_detected = False

    def process(self, chunk):
        self.pending = np.concatenate((self.pending, np.asarray(chunk, dtype=np.float32)))

        has_speech = False
        while len(self.pending) >= self.frame_size:
            frame = self.pending[:self.frame_size]
            self.pending = self.pending[self.frame_size:]

            try:
                is_speech = self.classifier.classify(frame)
            except Exception as e:
                log_debug(f"[VAD] Frame classification failed, skipping: {e}")
                continue

            if is_speech:
                has_speech = True
                self.last_speech_time = self._clock()
                if not self.speech_detected:
                    log_debug("[VAD] Speech detected")
                    self.speech_detected = True

        if self.last_speech_time is None:
            silence_duration = float('inf')
        else:
            silence_duration = self._clock() - self.last_speech_time

        if self.speech_detected and silence_duration > self.silence_timeout:
            log_debug("[VAD] Silence timeout reached")
            self.speech_detected = False
            return GateSignal.SILENCE_DETECTED
        if has_speech:
            return GateSignal.SPEECH_DETECTED
        return GateSignal.SILENCE

    def reset(self):
        self.pending = np.zeros(0, dtype=np.float32)
        self.last_speech_time = None
        self.speech_detected = False
        try:
            self.classifier.reset()
        except Exception as e:
            log_debug(f"[VAD] Classifier reset failed: {e}")
        log_debug("[VAD] State reset")
