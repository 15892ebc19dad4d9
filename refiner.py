"""Keyscribe text refinement — Ollama post-processing with timeout and fallback."""

import asyncio

import aiohttp

from logging_utils import log_debug, log_info, log_warning, should_log_transcripts
from text_processing import build_prompt, word_count

# Extra tokens allowed beyond the input word count
TOKEN_BUFFER = 50


class RefinementError(RuntimeError):
    """Refinement failed or timed out and fallback is disabled."""


class PassthroughRefiner:
    """Used when refinement is disabled or unavailable: text passes unchanged."""

    async def refine(self, text):
        return text

    async def close(self):
        pass


class TextRefiner:
    """Ollama /api/generate client. Every call is bounded by timeout_ms."""

    def __init__(self, config, session=None):
        self.config = config
        self.url = f"{config['ollama_url']}/api/generate"
        self.timeout = config['timeout_ms'] / 1000.0
        self.session = session

    def _session(self):
        if self.session is None:
            self.session = aiohttp.ClientSession()
        return self.session

    def token_budget(self, text):
        return max(word_count(text) + TOKEN_BUFFER, self.config['max_tokens'])

    async def _generate(self, prompt, num_predict):
        payload = {
            "model": self.config['model_name'],
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.config['temperature'],
                "top_p": 0.9,
                "top_k": 40,
                "num_predict": num_predict,
            },
        }
        async with self._session().post(self.url, json=payload) as resp:
            resp.raise_for_status()
            body = await resp.json()
        response = body.get("response") if isinstance(body, dict) else None
        if not isinstance(response, str):
            raise ValueError(f"Malformed Ollama reply: response={response!r}")
        return response

    async def test_connection(self):
        """Send a tiny prompt to confirm the server and model respond."""
        log_info(f"[REFINE] Connecting to Ollama at {self.config['ollama_url']} "
                 f"(model {self.config['model_name']})")
        await asyncio.wait_for(self._generate("Test", 1), timeout=self.timeout)
        log_info(f"[REFINE] Model {self.config['model_name']} is available and responding")

    async def refine(self, text):
        """Return refined text.

        Makes 1 + max_retries attempts, each bounded by timeout_ms. After the
        last failure returns `text` unchanged if fallback_on_timeout is set,
        otherwise raises RefinementError.
        """
        prompt = build_prompt(self.config['prompt_template'], text)
        num_predict = self.token_budget(text)
        attempts = 1 + max(0, self.config['max_retries'])

        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                output = await asyncio.wait_for(
                    self._generate(prompt, num_predict), timeout=self.timeout
                )
                refined = output.strip()
                if should_log_transcripts():
                    log_info(f'[REFINE] "{text}" -> "{refined}"')
                return refined
            except asyncio.TimeoutError:
                last_error = f"timed out after {self.config['timeout_ms']}ms"
            except (aiohttp.ClientError, ValueError) as e:
                last_error = str(e) or e.__class__.__name__
            log_debug(f"[REFINE] Attempt {attempt}/{attempts} failed: {last_error}")

        if self.config['fallback_on_timeout']:
            log_warning(f"[REFINE] Refinement failed ({last_error}), using original text")
            return text
        raise RefinementError(f"Text refinement failed: {last_error}")

    async def close(self):
        if self.session is not None:
            await self.session.close()
            self.session = None


async def build_refiner(refinement_config):
    """Select the refinement capability once, at construction.

    Returns a TextRefiner when enabled and reachable, otherwise a
    PassthroughRefiner.
    """
    if refinement_config is None:
        log_debug("[REFINE] Text refinement disabled")
        return PassthroughRefiner()

    refiner = TextRefiner(refinement_config)
    try:
        await refiner.test_connection()
    except (asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
        log_warning(f"[REFINE] Ollama connection failed: {e!r}; continuing without refinement")
        log_warning(f"[REFINE] Is `ollama serve` running and `{refinement_config['model_name']}` pulled?")
        await refiner.close()
        return PassthroughRefiner()
    log_info("[REFINE] Text refinement initialized")
    return refiner
