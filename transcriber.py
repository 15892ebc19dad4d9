"""Keyscribe transcription — faster-whisper engine and per-utterance jobs."""

import asyncio
import os
import time
from dataclasses import dataclass

import numpy as np

from logging_utils import log_debug, log_info, log_error, should_log_transcripts
from notifier import StatusEvent


@dataclass(frozen=True)
class TranscriptionResult:
    seq: int
    text: str


class SpeechTranscriber:
    """Speech-to-text engine. The model is loaded explicitly via load()."""

    def __init__(self, model_dir, language="en", device="cpu", compute_type="int8", beam_size=5):
        self.model_dir = model_dir
        self.language = language or None
        self.device = device
        self.compute_type = compute_type
        self.beam_size = beam_size
        self.model = None

    def load(self):
        """Load the Whisper model. Raises on missing/invalid model artifacts."""
        if os.sep in self.model_dir and not os.path.isdir(self.model_dir):
            raise FileNotFoundError(
                f"Model directory not found: {self.model_dir}. "
                f"Set [speech] model_dir or KEYSCRIBE_MODEL_PATH."
            )

        # Lazy import: avoids import-time GPU init
        from faster_whisper import WhisperModel

        log_info(f"[MODELS] Loading Whisper model from: {self.model_dir}")
        self.model = WhisperModel(
            self.model_dir,
            device=self.device,
            compute_type=self.compute_type,
        )
        log_info("[MODELS] Whisper model loaded")

    def unload(self):
        """Idempotent, no-throw."""
        if self.model is not None:
            self.model = None
            log_debug("[MODELS] Whisper unloaded")

    def _transcribe_blocking(self, samples):
        segments, _info = self.model.transcribe(
            samples,
            beam_size=self.beam_size,
            language=self.language,
        )
        return " ".join(segment.text.strip() for segment in segments).strip()

    async def transcribe(self, samples, sample_rate):
        """Transcribe float32 mono samples. Runs inference in a worker thread."""
        if len(samples) == 0:
            return ""
        if self.model is None:
            raise RuntimeError("Whisper model is not loaded")

        audio = np.asarray(samples, dtype=np.float32)
        audio_duration = len(audio) / sample_rate
        log_info(f"[TRANSCRIBE] Transcribing {len(audio)} samples ({audio_duration:.2f}s of audio)")

        start = time.monotonic()
        text = await asyncio.to_thread(self._transcribe_blocking, audio)
        elapsed = time.monotonic() - start
        rtf = elapsed / audio_duration if audio_duration > 0 else 0.0

        if should_log_transcripts():
            log_info(f'[TRANSCRIBE] Complete in {elapsed:.2f}s (RTF: {rtf:.2f}x): "{text}"')
        else:
            log_info(f"[TRANSCRIBE] Complete in {elapsed:.2f}s (RTF: {rtf:.2f}x), {len(text)} chars")
        return text


async def run_transcription_job(utterance, transcriber, results, status):
    """Transcribe one utterance and forward the text. Never raises.

    Failures are logged and reported as a status event; nothing is forwarded.
    """
    try:
        text = await transcriber.transcribe(utterance.samples, utterance.sample_rate)
    except Exception as e:
        log_error(f"[TRANSCRIBE] Utterance #{utterance.seq} failed: {e}")
        status.emit(StatusEvent.TRANSCRIPTION_ERROR, f"Transcription failed: {e}")
        return None

    if not text:
        log_debug(f"[TRANSCRIBE] Utterance #{utterance.seq}: empty result")
        status.emit(StatusEvent.TRANSCRIPTION_COMPLETE, "Empty transcription result")
        return None

    status.emit(StatusEvent.TRANSCRIPTION_COMPLETE, f"Transcription: {text}")
    result = TranscriptionResult(utterance.seq, text)
    await results.put(result)
    return result
