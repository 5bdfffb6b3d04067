from __future__ import annotations

import logging
import os
from typing import List, Optional

from openai import OpenAI

from .config import TTSConfig
from .tts import SpeechSynthesizer, split_into_chunks

logger = logging.getLogger(__name__)


class OpenAISynthesizer(SpeechSynthesizer):
    provider = "openai"

    def __init__(self, cfg: TTSConfig, client: Optional[OpenAI] = None, api_key_env: str = "OPENAI_API_KEY") -> None:
        super().__init__(cfg.openai_voices, cfg.max_retries, cfg.initial_retry_delay)
        self.cfg = cfg
        if client is None:
            # The chat model may live on another vendor; prefer a dedicated key.
            api_key = os.environ.get(cfg.openai_api_key_env) or os.environ.get(api_key_env)
            if not api_key:
                raise RuntimeError(
                    f"OpenAI TTS api key missing; set {cfg.openai_api_key_env} or {api_key_env}"
                )
            client = OpenAI(api_key=api_key, timeout=cfg.timeout, max_retries=0)
        self.client = client

    def _synthesize(self, text: str, voice: str) -> bytes:
        parts: List[bytes] = []
        for idx, chunk in enumerate(split_into_chunks(text, self.cfg.max_chars_per_chunk)):

            def call(chunk=chunk) -> bytes:
                # Streaming response gives raw bytes across SDK versions
                with self.client.audio.speech.with_streaming_response.create(
                    model=self.cfg.openai_model,
                    voice=voice,
                    input=chunk,
                    response_format="mp3",
                ) as response:
                    buf = b"".join(response.iter_bytes())
                if not buf:
                    raise RuntimeError("Empty audio buffer from OpenAI TTS")
                return buf

            parts.append(self._with_retries(call, idx))
        return b"".join(parts)
