"""Best-effort language-model analysis of deposition transcripts."""

import hashlib

from legal_common.logging import setup_logging

from domain.models import DepositionAnalysis, DepositionRecord, DocumentRecord
from infrastructure.interfaces import CacheService, LLMService

logger = setup_logging()


class DepositionAnalyzer:
    """
    Analyzes deposition transcripts against the case's discovery documents
    using the LLM, with cache and persistence.
    """

    def __init__(
        self,
        llm_service: LLMService,
        cache_service: CacheService,
        repository,
        case_repository,
    ):
        self._llm = llm_service
        self._cache = cache_service
        self._repository = repository
        self._cases = case_repository

    @staticmethod
    def cache_key(deposition_id, prompt: str) -> str:
        digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:16]
        return f"analysis:{deposition_id}:{digest}"

    def analyze(self, deposition: DepositionRecord, transcript: str) -> DepositionAnalysis:
        """
        Analyzes a transcript, using cache when available, and stores the result.

        The prompt carries the case's documents, so adding a document gives
        the same transcript a new cache key.

        Args:
            deposition: The deposition the transcript belongs to.
            transcript: The transcript text to analyze.

        Returns:
            DepositionAnalysis with discrepancies and suggested questions.

        Raises:
            LLMServiceError: If the LLM call fails.
            CacheServiceError: If the cache is unreachable.
            DepositionPersistenceError: If the analysis cannot be stored.
        """
        documents = self._cases.list_documents(deposition.case_id)
        prompt = self._build_prompt(deposition, transcript, documents)
        key = self.cache_key(deposition.id, prompt)

        cached = self._cache.get(key)
        if cached:
            logger.info(
                "Analysis retrieved from cache",
                extra={"deposition_id": str(deposition.id)},
            )
            analysis = DepositionAnalysis.model_validate_json(cached)
        else:
            analysis = self._llm.analyze(prompt)
            self._cache.set(key, analysis.model_dump_json())
            logger.info(
                "Analysis cached",
                extra={"deposition_id": str(deposition.id), "documents": len(documents)},
            )

        self._repository.save_analysis(deposition.id, analysis)
        return analysis

    def _build_prompt(
        self,
        deposition: DepositionRecord,
        transcript: str,
        documents: list[DocumentRecord],
    ) -> str:
        lines = ["Discovery Documents:"]
        if documents:
            lines.append(
                "\n\n".join(
                    f"Document: {doc.name} (id: {doc.id})\nContent: {doc.content}"
                    for doc in documents
                )
            )
        else:
            lines.append("(none)")
        lines.append("")
        lines.append(f"Witness: {deposition.witness_name}")
        lines.append(f"Date: {deposition.date.isoformat()}")
        if deposition.deposition_conductor:
            lines.append(f"Deposition conducted by: {deposition.deposition_conductor}")
        if deposition.opposing_counsel:
            lines.append(f"Opposing counsel: {deposition.opposing_counsel}")
        if deposition.deposition_goals:
            lines.append(f"Deposition goals: {deposition.deposition_goals}")
        lines.append("")
        lines.append("Transcript:")
        lines.append(transcript)
        return "\n".join(lines)
