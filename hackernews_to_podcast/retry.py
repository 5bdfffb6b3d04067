from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .errors import TerminalGenerationError, TransientUpstreamError


logger = logging.getLogger(__name__)


class RetryingTextGenerator:
    """Wraps a text generator with bounded attempts and linear backoff.

    The per-attempt timeout lives in the inner generator's HTTP client; a
    timeout surfaces here as TransientUpstreamError like any other
    network failure. An empty reply counts as a failed attempt.
    """

    def __init__(
        self,
        inner,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.inner = inner
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def generate(self, role: str, payload: str) -> str:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                text = self.inner.generate(role, payload)
                if isinstance(text, str) and text.strip():
                    if attempt > 1:
                        logger.info("Generation recovered", extra={"role": role, "attempt": attempt})
                    return text.strip()
                last_error = None
                logger.warning("Empty generation result", extra={"role": role, "attempt": attempt})
            except TransientUpstreamError as e:
                last_error = e
                logger.warning(
                    "Generation attempt failed",
                    extra={"role": role, "attempt": attempt, "error": str(e)},
                )
            if attempt < self.max_attempts:
                self._sleep(attempt * self.base_delay)

        err = TerminalGenerationError(role, self.max_attempts)
        if last_error is not None:
            raise err from last_error
        raise err
