from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional

from openai import OpenAI, OpenAIError

from .config import LLMConfig
from .errors import TransientUpstreamError
from .models import PART_SEPARATOR
from .prompts import ROLE_INTRO, resolve_prompt


logger = logging.getLogger(__name__)


def join_summaries(summaries: List[str]) -> str:
    return PART_SEPARATOR.join(summaries)


class OpenAIChatGenerator:
    """Text generator backed by any OpenAI-compatible chat completion API.

    One attempt per call; retrying is left to RetryingTextGenerator so the
    SDK's own retries are switched off.
    """

    def __init__(self, cfg: LLMConfig, client: Optional[OpenAI] = None) -> None:
        self.cfg = cfg
        if client is None:
            api_key = os.environ.get(cfg.api_key_env)
            if not api_key:
                raise RuntimeError(f"LLM api key missing; set {cfg.api_key_env}")
            client = OpenAI(
                api_key=api_key,
                base_url=cfg.base_url or None,
                timeout=cfg.timeout,
                max_retries=0,
            )
        self.client = client
        self._prompts: Dict[str, str] = {}

    def _system_prompt(self, role: str) -> str:
        if role not in self._prompts:
            self._prompts[role] = resolve_prompt(role, self.cfg.prompt_files)
        return self._prompts[role]

    def generate(self, role: str, payload: str) -> str:
        system_prompt = self._system_prompt(role)
        max_chars = self.cfg.max_tokens * 4
        if len(payload) > max_chars:
            payload = payload[:max_chars]
        max_tokens = self.cfg.intro_max_tokens if role == ROLE_INTRO else self.cfg.max_tokens

        logger.info("Requesting generation", extra={"role": role, "model": self.cfg.model, "chars": len(payload)})
        try:
            resp = self.client.chat.completions.create(
                model=self.cfg.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": payload},
                ],
                max_tokens=max_tokens,
                temperature=self.cfg.temperature,
            )
        except OpenAIError as e:
            raise TransientUpstreamError(f"{role} generation failed: {e}") from e

        if not resp or not resp.choices:
            return ""
        out = resp.choices[0].message.content
        usage = getattr(resp, "usage", None)
        logger.info(
            "Generation done",
            extra={"role": role, "total_tokens": getattr(usage, "total_tokens", None)},
        )
        return out.strip() if out else ""
