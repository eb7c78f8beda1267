"""Abstract interface for LLM service operations."""

from abc import ABC, abstractmethod

from domain.models import DepositionAnalysis


class LLMService(ABC):
    """Abstract base class for LLM backends."""

    @abstractmethod
    def analyze(self, prompt: str) -> DepositionAnalysis:
        """
        Analyzes a deposition prompt and returns structured analysis.

        Args:
            prompt: Deposition metadata followed by the transcript.

        Returns:
            DepositionAnalysis with discrepancies and suggested questions.

        Raises:
            LLMServiceError: If the LLM call fails.
        """
        pass
