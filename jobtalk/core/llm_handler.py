"""
Centralized LLM Handler for the categorization request.

This module builds the schema-constrained categorization prompt, sends it to
the chat completions API in JSON mode, and returns the parsed JSON object.
Each request is attempted exactly once.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from .config import config, get_client
from .debug_log import get_debug_logger

logger = logging.getLogger(__name__)


class LLMHandlerError(Exception):
    """Base exception for LLM Handler errors."""

    pass


def get_env_model_temperature() -> float:
    """Get model temperature from environment variable with default fallback."""
    try:
        temp = float(os.getenv("MODEL_TEMPERATURE", "0.2"))
        if not (0.0 <= temp <= 2.0):
            logger.warning(f"Invalid MODEL_TEMPERATURE value: {temp}. Using 0.2 as default.")
            return 0.2
        return temp
    except (ValueError, TypeError):
        logger.warning("Invalid MODEL_TEMPERATURE format. Using 0.2 as default.")
        return 0.2


CATEGORIZATION_SCHEMA = """{
  "scopeOfWork": "Professionally rewritten paragraphs summarizing the project's scope of work, or \\"Not mentioned\\"",
  "contactInformation": {
    "name": "Extracted contact name(s), or \\"Not mentioned\\"",
    "address": "Extracted full address, completed if partial, or \\"Not mentioned\\"",
    "phone": "Extracted phone number(s), or \\"Not mentioned\\"",
    "email": "Extracted email address(es), or \\"Not mentioned\\""
  },
  "timeline": "Professionally rewritten paragraphs summarizing the project timeline, or \\"Not mentioned\\"",
  "budget": "Extracted budget or cost-related information, or \\"Not mentioned\\""
}"""


class LLMHandler:
    """
    Handler for categorization requests against the chat completions API.
    """

    def __init__(self, project_root: str = ".", client: Optional[Any] = None):
        """
        Initialize LLM Handler.

        Args:
            project_root: Project root directory for debug logging
            client: Optional pre-built async OpenAI client
        """
        self.project_root = project_root
        self.client = client if client is not None else get_client()
        self.debug_logger = get_debug_logger(project_root)

    def build_request_params(self, transcribed_text: str) -> Dict[str, Any]:
        """Assemble chat completion parameters for a categorization request."""
        request_params: Dict[str, Any] = {
            "model": config.llm_model,
            "messages": [
                {"role": "system", "content": self._create_categorization_system_prompt()},
                {"role": "user", "content": self._create_categorization_user_prompt(transcribed_text)},
            ],
            "response_format": {"type": "json_object"},
        }

        # Reasoning models reject a custom temperature
        if not config.is_reasoning_model:
            request_params["temperature"] = get_env_model_temperature()

        return request_params

    async def make_categorization_request(self, transcribed_text: str) -> Optional[Dict[str, Any]]:
        """
        Make a categorization request and return the parsed JSON object.

        Args:
            transcribed_text: Transcript text to categorize

        Returns:
            Parsed JSON response, or None if the model answered with JSON null

        Raises:
            LLMHandlerError: If the request fails, is empty, or is not a JSON object
        """
        request_params = self.build_request_params(transcribed_text)

        messages = request_params["messages"]
        full_prompt = f"SYSTEM: {messages[0]['content']}\n\nUSER: {messages[1]['content']}"
        self.debug_logger.log_llm_request(full_prompt, "categorization")

        try:
            response = await self.client.chat.completions.create(**request_params)
        except Exception as e:
            raise LLMHandlerError(f"Categorization LLM request failed: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise LLMHandlerError(f"Unexpected response shape from categorization model: {e}") from e

        if not content or not content.strip():
            raise LLMHandlerError("Empty response from categorization model")

        self.debug_logger.log_llm_response(content, transcribed_text)

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            self.debug_logger.log_validation_error(e, content, context="categorization")
            raise LLMHandlerError(f"Invalid JSON response from categorization model: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise LLMHandlerError(f"Categorization model returned {type(data).__name__}, expected a JSON object")

        return data

    def _create_categorization_system_prompt(self) -> str:
        """Create system prompt for categorization of a job conversation."""
        return f"""You are an AI assistant specializing in analyzing transcribed text from construction job conversations. Your task is to categorize the information and present it professionally.

Categorize the information into the following sections and structure the output as a JSON object matching this schema:

{CATEGORIZATION_SCHEMA}

1.  **scopeOfWork**: Identify all details related to the project's tasks, deliverables, and objectives. Rewrite this information into professional-sounding paragraphs that instill customer confidence. Be friendly and down to earth. Avoid business jargon. Emphasize the care that will be taken by the service provider and the care that will be taken with the customer property. If no scope details are found, set this field to "Not mentioned".
2.  **contactInformation**: Extract any names, phone numbers, email addresses, company affiliations, and physical addresses mentioned. Structure this as an object with the following keys: 'name', 'address', 'phone', 'email'.
    *   For the 'address' field: If an address is mentioned but seems incomplete (e.g., missing city, state, or zip code), use your knowledge to try and complete it based on the available information like street name and potentially mentioned city/region. If you cannot confidently complete it, provide the address as extracted.
    *   For each key ('name', 'address', 'phone', 'email'): If the corresponding information is not found in the text, set the value for that key to "Not mentioned".
3.  **timeline**: Identify all dates, deadlines, durations, or scheduling mentions. Rewrite this information into professional-sounding paragraphs outlining the expected timeframe, conveying efficiency and reliability. Be friendly and down to earth. Avoid business jargon. If no timeline details are found, set this field to "Not mentioned".
4.  **budget**: Extract any cost estimates, payment terms, or financial details mentioned. List them clearly. Do not rewrite them into prose. If no budget details are found, set this field to "Not mentioned".

Output the results strictly in JSON format according to the schema above. Ensure the 'scopeOfWork' and 'timeline' fields contain the rewritten professional paragraphs, and 'contactInformation' is an object containing the extracted (and potentially completed/formatted) details or "Not mentioned" for each field.

Respond only with valid JSON matching the schema above."""

    def _create_categorization_user_prompt(self, transcribed_text: str) -> str:
        """Create user prompt for categorization requests."""
        return f"""Analyze the following transcribed text:
'''
{transcribed_text}
'''

Extract the information into the JSON schema format as instructed."""
