"""Keyscribe dispatcher — the recording state machine and its event loop.

Three sources feed one loop: audio chunks, process-now signals and hotkey
events. Every ready source is serviced on each iteration, so none starves.

State table (state, event) -> handler:
    idle      + hotkey_toggle -> start recording
    recording + hotkey_toggle -> stop recording, flush
    recording + auto_stop     -> stop recording, flush
Audio chunks are buffered only while recording.
"""

import asyncio

from activity_gate import GateSignal
from logging_utils import log_debug, log_info, log_warning, log_error
from notifier import StatusEvent
from transcriber import run_transcription_job


class SessionEvent:
    HOTKEY_TOGGLE = "hotkey_toggle"
    AUTO_STOP = "auto_stop"


class Transition:
    STARTED = "started"
    STOPPED = "stopped"


class Dispatcher:

    # Servicing order within one loop iteration
    SOURCES = ("audio", "process", "hotkey")

    def __init__(self, session, accumulator, gate, transcriber, audio_mailbox, hotkey_mailbox,
                 results, notifier, status, hotkey_id, auto_stop):
        self.session = session
        self.accumulator = accumulator
        self.gate = gate
        self.transcriber = transcriber
        self.audio = audio_mailbox
        self.hotkeys = hotkey_mailbox
        self.results = results
        self.notifier = notifier
        self.status = status
        self.hotkey_id = hotkey_id
        self.auto_stop = auto_stop

        self.process_signals = asyncio.Queue(maxsize=10)
        self.jobs = set()

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    async def run(self):
        getters = {
            "audio": self.audio.get,
            "process": self.process_signals.get,
            "hotkey": self.hotkeys.get,
        }
        handlers = {
            "audio": self.on_audio,
            "process": self.on_process_signal,
            "hotkey": self.on_hotkey,
        }
        pending = {name: asyncio.create_task(getters[name]()) for name in self.SOURCES}
        log_debug("[STATE] Dispatcher running")
        try:
            while True:
                done, _ = await asyncio.wait(pending.values(), return_when=asyncio.FIRST_COMPLETED)
                for name in self.SOURCES:
                    task = pending[name]
                    if task not in done:
                        continue
                    item = task.result()
                    pending[name] = asyncio.create_task(getters[name]())
                    await handlers[name](item)
        finally:
            for task in pending.values():
                task.cancel()
            self.cancel_jobs()

    def cancel_jobs(self):
        for job in list(self.jobs):
            job.cancel()

    # ------------------------------------------------------------------
    # Source handlers
    # ------------------------------------------------------------------

    async def on_audio(self, chunk):
        transition = None
        async with self.session.lock:
            if not self.session.is_recording:
                return  # Idle: discard

            async with self.accumulator.lock:
                self.accumulator.append(chunk)

            if self.auto_stop:
                signal = self.gate.process(chunk)
                if signal == GateSignal.SPEECH_DETECTED:
                    if not self.session.speech_detected:
                        log_debug("[STATE] Speech started")
                        self.session.speech_detected = True
                elif signal == GateSignal.SILENCE_DETECTED and self.session.speech_detected:
                    transition = await self._transition_locked(SessionEvent.AUTO_STOP)

        if transition:
            await self._announce(transition)

    async def on_process_signal(self, _signal=None):
        """Reset the gate (between sessions) and flush the accumulator."""
        async with self.session.lock:
            if self.session.is_recording:
                # Stale: the new session flushed the previous audio at start
                log_debug("[STATE] Process signal arrived mid-session, ignored")
                return None
            self.gate.reset()
        return await self.flush()

    async def on_hotkey(self, event):
        if not event.pressed or event.id != self.hotkey_id:
            return None
        return await self.apply(SessionEvent.HOTKEY_TOGGLE)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def apply(self, event):
        """Run one state-table transition. Returns the Transition or None."""
        async with self.session.lock:
            transition = await self._transition_locked(event)
        if transition:
            await self._announce(transition)
        return transition

    async def _transition_locked(self, event):
        """Caller holds session.lock."""
        handler = self.TRANSITIONS.get((self.session.name, event))
        if handler is None:
            log_debug(f"[STATE] Ignored {event} while {self.session.name}")
            return None
        return await handler(self, event)

    async def _start_recording(self, event):
        if len(self.accumulator):
            # Previous session stopped but not yet flushed
            log_warning("[STATE] Flushing previous utterance before new session")
            await self.flush()
        self.gate.reset()
        self.session.is_recording = True
        self.session.speech_detected = False
        log_info("[STATE] Recording started by hotkey")
        return Transition.STARTED

    async def _stop_recording(self, event):
        self.session.is_recording = False
        self.session.speech_detected = False
        if event == SessionEvent.AUTO_STOP:
            log_info("[STATE] Auto-stopping: silence detected after speech")
        else:
            log_info("[STATE] Recording stopped by hotkey")
        return Transition.STOPPED

    TRANSITIONS = {
        ("idle", SessionEvent.HOTKEY_TOGGLE): _start_recording,
        ("recording", SessionEvent.HOTKEY_TOGGLE): _stop_recording,
        ("recording", SessionEvent.AUTO_STOP): _stop_recording,
    }

    async def _announce(self, transition):
        """Side effects that run after the session lock is released."""
        if transition == Transition.STARTED:
            self.status.emit(StatusEvent.RECORDING_STARTED, "Recording started")
            await self.notifier.notify(True)
        else:
            self.status.emit(StatusEvent.RECORDING_STOPPED, "Recording stopped")
            await self.notifier.notify(False)
            self.request_processing()

    def request_processing(self):
        try:
            self.process_signals.put_nowait(None)
        except asyncio.QueueFull:
            # Pending signals already cover everything buffered
            log_warning("[STATE] Process queue full, signal coalesced")

    # ------------------------------------------------------------------
    # Flush / transcription jobs
    # ------------------------------------------------------------------

    async def flush(self):
        """Drain the accumulator and spawn a transcription job if anything was buffered."""
        utterance = await self.accumulator.drain()
        if utterance is None:
            log_info("[STATE] No audio data to transcribe")
            return None

        log_info(f"[STATE] Utterance #{utterance.seq}: {len(utterance.samples)} samples "
                 f"({utterance.duration:.1f}s)")
        self.status.emit(StatusEvent.TRANSCRIBING, "Transcribing audio")
        self._spawn_job(utterance)
        return utterance

    def _spawn_job(self, utterance):
        task = asyncio.create_task(
            run_transcription_job(utterance, self.transcriber, self.results, self.status)
        )
        self.jobs.add(task)
        task.add_done_callback(self._job_done)
        return task

    def _job_done(self, task):
        self.jobs.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_error(f"[TRANSCRIBE] Job crashed: {exc}")
