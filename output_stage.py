"""Keyscribe output stage — refine transcripts and type them."""

import asyncio

from logging_utils import log_info, log_warning, log_error, should_log_transcripts
from refiner import RefinementError
from text_output import inject_text
from text_processing import clean_text

# Settle delay so the target window is ready for keystrokes
INJECT_DELAY = 0.05


class OutputStage:
    """Consumes TranscriptionResults in completion order."""

    def __init__(self, results, refiner, config, inject=inject_text):
        self.results = results
        self.refiner = refiner
        self.config = config
        self._inject = inject

    async def run(self):
        while True:
            result = await self.results.get()
            await self.deliver(result)

    async def deliver(self, result):
        """Refine, clean and inject one transcript. Returns the text that was sent."""
        raw_text = result.text
        if should_log_transcripts():
            log_info(f'[OUTPUT] Transcribed #{result.seq}: "{raw_text}"')

        try:
            final_text = await self.refiner.refine(raw_text)
        except RefinementError as e:
            log_warning(f"[REFINE] {e}, using original")
            final_text = raw_text

        if final_text != raw_text and should_log_transcripts():
            log_info(f'[REFINE] Refined: "{raw_text}" -> "{final_text}"')

        final_text = clean_text(final_text)
        if not final_text:
            log_info("[OUTPUT] (empty after processing)")
            return ""

        await asyncio.sleep(INJECT_DELAY)
        try:
            ok = await asyncio.to_thread(self._inject, final_text, self.config)
        except Exception as e:
            log_error(f"[OUTPUT] Failed to inject text: {e}")
            ok = False

        if ok:
            log_info("[OUTPUT] Text injected successfully")
        else:
            log_error("[OUTPUT] Failed to inject text")
        return final_text
