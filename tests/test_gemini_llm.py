"""
Tests for the Gemini LLM adapter.
"""
import json
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock

from domain.models import DepositionAnalysis
from exceptions import LLMServiceError
from infrastructure.gemini_llm import GeminiLLMService, strip_code_fence

ANSWER = {
    "discrepancies": [
        {
            "testimony_excerpt": "I never met him",
            "document_reference": None,
            "explanation": "Earlier the witness described their first meeting",
        }
    ],
    "suggested_questions": ["When did you first meet Mr. Jones?"],
}


class TestStripCodeFence(unittest.TestCase):
    def test_json_fence(self):
        self.assertEqual(strip_code_fence('```json\n{"a": 1}\n```'), '{"a": 1}')

    def test_plain_fence(self):
        self.assertEqual(strip_code_fence('```\n{"a": 1}```'), '{"a": 1}')

    def test_no_fence(self):
        self.assertEqual(strip_code_fence('  {"a": 1} '), '{"a": 1}')


class TestGeminiLLMService(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.service = GeminiLLMService(self.client, "gemini-test", "system prompt")

    def _respond(self, text):
        self.client.models.generate_content.return_value = SimpleNamespace(text=text)

    def test_parses_structured_answer(self):
        self._respond(json.dumps(ANSWER))
        analysis = self.service.analyze("Witness: Jane Doe")

        self.assertIsInstance(analysis, DepositionAnalysis)
        self.assertEqual(analysis.suggested_questions, ANSWER["suggested_questions"])
        kwargs = self.client.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-test")
        self.assertEqual(kwargs["contents"], "Witness: Jane Doe")
        self.assertEqual(kwargs["config"]["response_schema"], DepositionAnalysis)
        self.assertEqual(kwargs["config"]["system_instruction"], "system prompt")

    def test_fenced_answer(self):
        self._respond(f"```json\n{json.dumps(ANSWER)}\n```")
        analysis = self.service.analyze("prompt")
        self.assertEqual(len(analysis.discrepancies), 1)

    def test_api_error(self):
        self.client.models.generate_content.side_effect = RuntimeError("503")
        with self.assertRaises(LLMServiceError):
            self.service.analyze("prompt")

    def test_empty_answer(self):
        self._respond("")
        with self.assertRaises(LLMServiceError):
            self.service.analyze("prompt")

    def test_malformed_answer(self):
        self._respond('{"discrepancies": "none"}')
        with self.assertRaises(LLMServiceError):
            self.service.analyze("prompt")


if __name__ == "__main__":
    unittest.main()
