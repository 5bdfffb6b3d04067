from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from google.cloud import texttospeech

from .config import TTSConfig
from .errors import TransientUpstreamError
from .models import SPEAKERS


logger = logging.getLogger(__name__)


def split_into_chunks(text: str, max_len: int) -> List[str]:
    # Simple sentence-aware chunking
    sentences = []
    start = 0
    for i, ch in enumerate(text):
        if ch in ".!?。！？\n":
            sentences.append(text[start : i + 1].strip())
            start = i + 1
    if start < len(text):
        sentences.append(text[start:].strip())

    chunks: List[str] = []
    buf = ""
    for s in sentences:
        if not s:
            continue
        if len(buf) + 1 + len(s) <= max_len:
            buf = (buf + " " + s).strip()
        else:
            if buf:
                chunks.append(buf)
            buf = s
    if buf:
        chunks.append(buf)
    if not chunks:
        chunks = [text[:max_len]]
    return chunks


class SpeechSynthesizer(ABC):
    """Turns one piece of text into MP3 bytes in the voice of one speaker."""

    provider = ""

    def __init__(self, voices: Dict[str, str], max_retries: int = 2, initial_retry_delay: float = 1.0) -> None:
        self.voices = voices
        self.max_retries = max(1, max_retries)
        self.initial_retry_delay = initial_retry_delay

    def voice_for(self, speaker: str) -> str:
        if speaker not in SPEAKERS:
            raise ValueError(f"invalid speaker {speaker!r}; expected one of {SPEAKERS}")
        return self.voices[speaker]

    def synthesize(self, text: str, speaker: str) -> bytes:
        voice = self.voice_for(speaker)
        if not text.strip():
            raise ValueError("cannot synthesize empty text")
        audio = self._synthesize(text, voice)
        if not audio:
            raise TransientUpstreamError(f"{self.provider} returned empty audio")
        logger.info(
            "Synthesized speech",
            extra={"provider": self.provider, "voice": voice, "chars": len(text), "bytes": len(audio)},
        )
        return audio

    @abstractmethod
    def _synthesize(self, text: str, voice: str) -> bytes:
        ...

    def _with_retries(self, call: Callable[[], bytes], chunk_index: int = 0) -> bytes:
        attempt = 0
        delay = self.initial_retry_delay
        while True:
            attempt += 1
            try:
                return call()
            except Exception as e:  # noqa: BLE001
                logger.warning(
                    "TTS chunk failed",
                    extra={"provider": self.provider, "chunk_index": chunk_index, "attempt": attempt, "error": str(e)},
                )
                if attempt >= self.max_retries:
                    raise TransientUpstreamError(f"{self.provider} TTS failed: {e}") from e
                time.sleep(delay)
                delay *= 2


def _ensure_credentials_from_inline_json() -> None:
    # Allow credentials via GCP_TTS_SERVICE_ACCOUNT_JSON secret
    inline_json = os.environ.get("GCP_TTS_SERVICE_ACCOUNT_JSON")
    if inline_json and not os.environ.get("GOOGLE_APPLICATION_CREDENTIALS"):
        path = os.path.join(".secrets", "gcp_tts_sa.json")
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(inline_json)
        os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = path


class GcpSynthesizer(SpeechSynthesizer):
    provider = "gcp"

    def __init__(self, cfg: TTSConfig, client=None) -> None:
        super().__init__(cfg.gcp_voices, cfg.max_retries, cfg.initial_retry_delay)
        self.cfg = cfg
        if client is None:
            _ensure_credentials_from_inline_json()
            client = texttospeech.TextToSpeechClient()
        self.client = client

    def _synthesize(self, text: str, voice: str) -> bytes:
        parts: List[bytes] = []
        for idx, chunk in enumerate(split_into_chunks(text, self.cfg.max_chars_per_chunk)):

            def call(chunk=chunk) -> bytes:
                response = self.client.synthesize_speech(
                    request={
                        "input": texttospeech.SynthesisInput(text=chunk),
                        "voice": texttospeech.VoiceSelectionParams(
                            language_code=self.cfg.gcp_language_code,
                            name=voice,
                        ),
                        "audio_config": texttospeech.AudioConfig(
                            audio_encoding=texttospeech.AudioEncoding.MP3,
                            speaking_rate=self.cfg.speaking_rate,
                        ),
                    },
                    timeout=self.cfg.timeout,
                )
                return response.audio_content

            parts.append(self._with_retries(call, idx))
        # Google returns raw MP3 frames without ID3 tags, so bytes concatenate
        return b"".join(parts)


def build_synthesizer(cfg: TTSConfig) -> SpeechSynthesizer:
    provider = (cfg.provider or "edge").lower()
    if provider == "openai":
        from .tts_openai import OpenAISynthesizer

        return OpenAISynthesizer(cfg)
    if provider == "gcp":
        return GcpSynthesizer(cfg)
    if provider != "edge":
        logger.warning("Unknown TTS provider; using edge", extra={"provider": provider})
    from .tts_edge import EdgeSynthesizer

    return EdgeSynthesizer(cfg)
