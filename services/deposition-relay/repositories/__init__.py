"""Repository layer exports."""

from repositories.audio_deposition_repository import AudioDepositionRepository
from repositories.case_repository import CaseRepository

__all__ = ["AudioDepositionRepository", "CaseRepository"]
