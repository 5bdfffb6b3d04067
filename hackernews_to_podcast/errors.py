from __future__ import annotations


class PodcastError(Exception):
    """Base class for all errors raised inside the generation pipeline."""


class TransientUpstreamError(PodcastError):
    """A collaborator call failed in a way that may succeed when retried."""


class TerminalGenerationError(PodcastError):
    """A text-generation call kept failing after all retry attempts."""

    def __init__(self, role: str, attempts: int, message: str = "") -> None:
        self.role = role
        self.attempts = attempts
        super().__init__(message or f"generation for role '{role}' failed after {attempts} attempts")


class UnitSkippedError(PodcastError):
    """One story or one narration turn was dropped; the run continues."""

    def __init__(self, unit: str, reason: str) -> None:
        self.unit = unit
        self.reason = reason
        super().__init__(f"{unit} skipped: {reason}")


class MergeError(PodcastError):
    """Audio segments could not be concatenated."""


class StorageError(PodcastError):
    """The artifact store backend rejected or failed an operation."""


class ArtifactFormatError(PodcastError):
    """A stored content record could not be decoded."""
