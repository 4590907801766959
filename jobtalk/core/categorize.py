"""
Categorization of job transcripts into structured fields.

Wraps the LLM handler and guarantees that every field of the result is
populated, either with extracted content or with the "Not mentioned" sentinel.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as SchemaValidationError

from .errors import CategorizationError
from .llm_handler import LLMHandler, LLMHandlerError
from .timing import timer
from .types import CategorizedFields

logger = logging.getLogger(__name__)


def normalize_categorization(data: Optional[Dict[str, Any]]) -> CategorizedFields:
    """
    Turn raw model output into CategorizedFields, defaulting anything missing.

    Args:
        data: Parsed JSON object returned by the model

    Returns:
        CategorizedFields with every field populated

    Raises:
        CategorizationError: If the output is null or not an object
    """
    if data is None:
        raise CategorizationError("AI prompt did not return the expected output.")
    if not isinstance(data, dict):
        raise CategorizationError(f"AI prompt returned {type(data).__name__}, expected an object.")

    try:
        return CategorizedFields.model_validate(data)
    except SchemaValidationError as e:
        raise CategorizationError(f"AI prompt returned malformed fields: {e}") from e


class Categorizer:
    """
    Converts transcript text into categorized job fields.
    """

    def __init__(self, handler: Optional[LLMHandler] = None, project_root: str = "."):
        self._handler = handler
        self.project_root = project_root

    @property
    def handler(self) -> LLMHandler:
        # Built lazily so an empty transcript never needs an API key
        if self._handler is None:
            self._handler = LLMHandler(self.project_root)
        return self._handler

    @timer
    async def categorize(self, transcribed_text: str) -> CategorizedFields:
        """
        Categorize transcript text.

        An empty (or whitespace-only) transcript yields an all-sentinel result
        without contacting the model.

        Raises:
            CategorizationError: If the service fails or returns a malformed result
        """
        if not transcribed_text or not transcribed_text.strip():
            logger.info("Empty transcript, returning default fields")
            return CategorizedFields()

        logger.info("Categorizing transcript of %d characters", len(transcribed_text))
        try:
            data = await self.handler.make_categorization_request(transcribed_text)
        except LLMHandlerError as e:
            raise CategorizationError(f"Failed to categorize information: {e}") from e

        try:
            return normalize_categorization(data)
        except CategorizationError as e:
            self.handler.debug_logger.log_validation_error(e, data, context="categorization")
            raise


async def categorize_information(transcribed_text: str, handler: Optional[LLMHandler] = None) -> CategorizedFields:
    """
    Convenience function to categorize a transcript.

    Raises:
        CategorizationError: If categorization fails
    """
    return await Categorizer(handler=handler).categorize(transcribed_text)
