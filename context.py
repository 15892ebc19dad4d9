"""Keyscribe context — builds the pipeline's collaborators and tears them down."""

import asyncio
import gc
import os

from activity_gate import ActivityGate, WebRtcClassifier, frame_size_for
from audio_capture import AudioCapture
from dispatcher import Dispatcher
from hotkey import HotkeyManager
from logging_utils import log_debug, log_info, log_error
from handoff import Mailbox
from notifier import StatusEmitter, build_state_notifier
from output_stage import OutputStage
from refiner import build_refiner
from session import Accumulator, SessionState
from transcriber import SpeechTranscriber


class PipelineContext:
    def __init__(self, config, gui_mode=False):
        self.config = config
        self.gui_mode = gui_mode

        # Shared state (owned here, handed to tasks explicitly)
        self.session = SessionState()
        self.accumulator = Accumulator(config['sample_rate'])

        # Handoff channels
        self.audio_mailbox = Mailbox("audio", config['queue_max_chunks'])
        self.hotkey_mailbox = Mailbox("hotkey", 100)
        self.results = asyncio.Queue(maxsize=100)

        # Collaborators (set by build())
        self.classifier = None
        self.gate = None
        self.transcriber = None
        self.audio_capture = None
        self.hotkey_manager = None
        self.hotkey_id = None
        self.refiner = None
        self.notifier = None
        self.status = StatusEmitter(gui_mode)

    def load_models(self):
        """Load VAD + Whisper. Atomic: if any fails, all unloaded."""
        try:
            vad_model_path = self.config.get('vad_model_path')
            if vad_model_path and not os.path.exists(vad_model_path):
                raise FileNotFoundError(f"VAD model not found: {vad_model_path}")

            rate = self.config['sample_rate']
            self.classifier = WebRtcClassifier(rate, self.config['vad_sensitivity'])
            self.gate = ActivityGate(
                self.classifier,
                frame_size_for(rate),
                self.config['vad_timeout_ms'],
            )

            self.transcriber = SpeechTranscriber(
                self.config['speech_model_dir'],
                language=self.config['speech_language'],
                device=self.config['speech_device'],
                compute_type=self.config['speech_compute_type'],
                beam_size=self.config['speech_beam_size'],
            )
            self.transcriber.load()
            log_info("[MODELS] Models loaded")
        except Exception as e:
            log_error(f"[MODELS] Load failed: {e}")
            self.unload_models()
            raise

    def unload_models(self):
        """Idempotent, no-throw."""
        try:
            if self.transcriber is not None:
                self.transcriber.unload()
                self.transcriber = None
        except Exception as e:
            log_error(f"[MODELS] Whisper unload failed: {e}")
        self.gate = None
        self.classifier = None
        gc.collect()
        log_debug("[MODELS] Models released")

    async def build(self):
        """Construct every collaborator. Any exception here is fatal at startup."""
        log_info("[STARTUP] Initializing...")
        self.audio_capture = AudioCapture(self.config)
        await asyncio.to_thread(self.load_models)
        self.refiner = await build_refiner(self.config['refinement'])
        self.notifier = build_state_notifier(self.config)
        self.hotkey_manager = HotkeyManager()
        self.hotkey_id = self.hotkey_manager.register(self.config['hotkey'])
        log_info("[STARTUP] All components initialized")

    def start_io(self):
        """Bind handoff channels to the running loop and start foreign-thread producers."""
        self.audio_mailbox.bind()
        self.hotkey_mailbox.bind()
        self.audio_capture.start(self.audio_mailbox.post_threadsafe)
        self.hotkey_manager.start(self.hotkey_mailbox.post_threadsafe)

    def make_dispatcher(self):
        return Dispatcher(
            self.session,
            self.accumulator,
            self.gate,
            self.transcriber,
            self.audio_mailbox,
            self.hotkey_mailbox,
            self.results,
            self.notifier,
            self.status,
            self.hotkey_id,
            self.config['vad_auto_stop'],
        )

    def make_output_stage(self):
        return OutputStage(self.results, self.refiner, self.config)

    async def close(self):
        """Final cleanup — each step individually guarded."""
        log_info("[SHUTDOWN] Cleaning up")

        if self.audio_capture is not None:
            try:
                self.audio_capture.stop()
            except Exception as e:
                log_error(f"[SHUTDOWN] Audio stop failed: {e}")

        if self.hotkey_manager is not None:
            try:
                self.hotkey_manager.stop()
            except Exception as e:
                log_error(f"[SHUTDOWN] Hotkey stop failed: {e}")

        if self.refiner is not None:
            try:
                await self.refiner.close()
            except Exception as e:
                log_error(f"[SHUTDOWN] Refiner close failed: {e}")

        if self.notifier is not None:
            try:
                await self.notifier.close()
            except Exception as e:
                log_error(f"[SHUTDOWN] Notifier close failed: {e}")

        try:
            self.unload_models()
        except Exception as e:
            log_error(f"[SHUTDOWN] Model unload failed: {e}")
