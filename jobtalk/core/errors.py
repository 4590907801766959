"""
Error taxonomy for the intake pipeline.

Every stage failure is an ``IntakeError`` carrying the name of the stage that
raised it, so callers can report a single message without inspecting the type.
"""

from typing import Optional


class IntakeError(Exception):
    """Base class for recoverable intake failures."""

    stage: str = "intake"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class ValidationError(IntakeError):
    """Raised when audio input is malformed; no network call has been made."""

    stage = "validation"


class TranscriptionError(IntakeError):
    """Raised when the transcription service fails or returns empty text."""

    stage = "transcription"


class CategorizationError(IntakeError):
    """Raised when the categorization service fails or returns a malformed result."""

    stage = "categorization"
