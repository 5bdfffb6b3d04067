from __future__ import annotations

import asyncio
import logging

import edge_tts

from .config import TTSConfig
from .tts import SpeechSynthesizer

logger = logging.getLogger(__name__)


def _rate_string(speaking_rate: float) -> str:
    pct = int(round((speaking_rate - 1.0) * 100))
    return f"{pct:+d}%"


class EdgeSynthesizer(SpeechSynthesizer):
    """Microsoft Edge read-aloud voices via the edge-tts package."""

    provider = "edge"

    def __init__(self, cfg: TTSConfig) -> None:
        super().__init__(cfg.edge_voices, cfg.max_retries, cfg.initial_retry_delay)
        self.cfg = cfg

    async def _stream(self, text: str, voice: str) -> bytes:
        communicate = edge_tts.Communicate(text, voice, rate=_rate_string(self.cfg.speaking_rate))
        buf = bytearray()
        async for chunk in communicate.stream():
            if chunk.get("type") == "audio":
                buf.extend(chunk["data"])
        return bytes(buf)

    def _synthesize(self, text: str, voice: str) -> bytes:
        def call() -> bytes:
            # Each pipeline run lives on its own thread, so a fresh loop is safe
            return asyncio.run(asyncio.wait_for(self._stream(text, voice), timeout=self.cfg.timeout))

        return self._with_retries(call)
