"""
Dummy async OpenAI clients shared by the tests.

They record every call so tests can assert that no network request was made.
"""

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional


class DummyTranscriptions:
    def __init__(self, text: Optional[str] = None, language: str = "en", error: Optional[Exception] = None):
        self.text = text
        self.language = language
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text, language=self.language)


class DummyCompletions:
    def __init__(self, content: Optional[str] = None, error: Optional[Exception] = None):
        self.content = content
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class DummyAsyncOpenAI:
    """
    Minimal stand-in for AsyncOpenAI covering audio transcriptions and chat completions.
    """

    def __init__(
        self,
        transcript: Optional[str] = None,
        completion: Optional[Any] = None,
        transcription_error: Optional[Exception] = None,
        completion_error: Optional[Exception] = None,
    ):
        if completion is not None and not isinstance(completion, str):
            completion = json.dumps(completion)
        self.transcriptions = DummyTranscriptions(transcript, error=transcription_error)
        self.completions = DummyCompletions(completion, error=completion_error)
        self.audio = SimpleNamespace(transcriptions=self.transcriptions)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def call_count(self) -> int:
        return len(self.transcriptions.calls) + len(self.completions.calls)


JANE_DOE_TRANSCRIPT = "Jane Doe, 555-1234, job is repainting the fence, done in one week, costs $500"

JANE_DOE_RESPONSE = {
    "scopeOfWork": (
        "We will carefully repaint your fence, protecting your yard and plants while we work "
        "and leaving everything clean when we are done."
    ),
    "contactInformation": {
        "name": "Jane Doe",
        "address": "Not mentioned",
        "phone": "555-1234",
        "email": "Not mentioned",
    },
    "timeline": "We expect to finish the fence in about one week.",
    "budget": "Fence repainting: $500",
}
