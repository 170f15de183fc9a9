"""Exceptions surfaced by WordCut operations."""


class WordCutError(Exception):
    """Base class for all user-visible WordCut failures."""


class ValidationError(WordCutError, ValueError):
    """Raised when a request cannot be attempted, e.g. nothing is left to export."""


class ToolExecutionError(WordCutError, RuntimeError):
    """Raised when an external tool (ffmpeg, whisper) fails for good."""

    def __init__(self, message: str, diagnostic: str = "", variant: str | None = None):
        super().__init__(message)
        self.diagnostic = diagnostic
        self.variant = variant


class EmptyTranscriptError(WordCutError):
    """Raised when recognition output yields no words."""


class ReadinessError(WordCutError):
    """Raised when a model, binary or output location is not usable."""
