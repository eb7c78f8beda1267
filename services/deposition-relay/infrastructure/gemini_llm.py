"""Gemini LLM service implementation."""

import re

from google import genai
from legal_common.logging import setup_logging
from pydantic import ValidationError

from domain.models import DepositionAnalysis
from exceptions import LLMServiceError
from infrastructure.interfaces import LLMService

logger = setup_logging()

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def strip_code_fence(text: str) -> str:
    """Removes a Markdown code fence wrapped around a JSON answer."""
    return _CODE_FENCE.sub("", text.strip())


class GeminiLLMService(LLMService):
    """LLM service implementation using Google Gemini."""

    def __init__(self, client: genai.Client, model_name: str, system_prompt: str):
        self._client = client
        self._model_name = model_name
        self._system_prompt = system_prompt

    def analyze(self, prompt: str) -> DepositionAnalysis:
        """
        Analyzes a deposition using Gemini and returns structured analysis.

        Args:
            prompt: Deposition metadata followed by the transcript.

        Returns:
            DepositionAnalysis with discrepancies and suggested questions.

        Raises:
            LLMServiceError: If the Gemini API call fails or returns an unusable answer.
        """
        try:
            response = self._client.models.generate_content(
                model=self._model_name,
                contents=prompt,
                config={
                    "response_mime_type": "application/json",
                    "response_schema": DepositionAnalysis,
                    "system_instruction": self._system_prompt,
                    "temperature": 0.1,
                },
            )
        except Exception as e:
            logger.exception("Gemini API call failed")
            raise LLMServiceError(f"Gemini analysis failed: {e}", cause=e) from e

        if not response.text:
            raise LLMServiceError("Gemini returned empty response")

        try:
            analysis = DepositionAnalysis.model_validate_json(
                strip_code_fence(response.text)
            )
        except ValidationError as e:
            logger.exception(
                "Gemini returned malformed analysis",
                extra={"response_length": len(response.text)},
            )
            raise LLMServiceError("Gemini returned malformed analysis", cause=e) from e

        logger.info(
            "LLM analysis completed",
            extra={
                "discrepancies": len(analysis.discrepancies),
                "suggested_questions": len(analysis.suggested_questions),
            },
        )
        return analysis
