"""Audio deposition endpoints."""

import asyncio
from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from legal_common.logging import setup_logging

from dependencies import get_audio_deposition_repository, get_optional_analyzer
from domain.deposition_analyzer import DepositionAnalyzer
from domain.models import DepositionAnalysis
from domain.recording_archiver import WAV_CONTENT_TYPE, build_wav, slugify
from exceptions import (
    AnalysisNotFoundError,
    AudioDepositionNotFoundError,
    CacheServiceError,
    DepositionPersistenceError,
    LLMServiceError,
)
from repositories import AudioDepositionRepository
from response_models import AudioDepositionResponse

logger = setup_logging()

router = APIRouter(prefix="/audio-depositions", tags=["audio-depositions"])

RepositoryDep = Annotated[
    AudioDepositionRepository, Depends(get_audio_deposition_repository)
]
AnalyzerDep = Annotated[DepositionAnalyzer | None, Depends(get_optional_analyzer)]


@router.get("", response_model=List[AudioDepositionResponse])
def list_audio_depositions(case_id: UUID, repo: RepositoryDep):
    """Returns the audio depositions of a case, newest first."""
    try:
        return [r.model_dump() for r in repo.list_audio_depositions(case_id)]
    except Exception as e:
        logger.error(f"Error listing audio depositions for case {case_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{deposition_id}", response_model=AudioDepositionResponse)
def get_audio_deposition(deposition_id: UUID, repo: RepositoryDep):
    """Returns one audio deposition without its audio."""
    try:
        return repo.get_audio_deposition(deposition_id).model_dump()
    except AudioDepositionNotFoundError:
        raise HTTPException(status_code=404, detail="Audio deposition not found")
    except Exception as e:
        logger.error(f"Error getting audio deposition {deposition_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{deposition_id}/audio")
def download_audio(deposition_id: UUID, repo: RepositoryDep) -> Response:
    """Returns the recorded audio as a 16 kHz mono WAV file."""
    try:
        deposition = repo.get_audio_deposition(deposition_id)
        chunks = repo.get_audio_chunks(deposition_id)
    except AudioDepositionNotFoundError:
        raise HTTPException(status_code=404, detail="Audio deposition not found")
    except Exception as e:
        logger.error(f"Error reading audio of {deposition_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    filename = f"{slugify(deposition.witness_name)}-{deposition_id}.wav"
    return Response(
        content=build_wav(chunks),
        media_type=WAV_CONTENT_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{deposition_id}/analysis", response_model=DepositionAnalysis)
def get_analysis(deposition_id: UUID, repo: RepositoryDep):
    """Returns the stored analysis of a deposition."""
    try:
        return repo.get_analysis(deposition_id)
    except AnalysisNotFoundError:
        raise HTTPException(status_code=404, detail="Analysis not found")
    except Exception as e:
        logger.error(f"Error getting analysis of {deposition_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/{deposition_id}/analysis", response_model=DepositionAnalysis)
async def request_analysis(
    deposition_id: UUID, repo: RepositoryDep, analyzer: AnalyzerDep
):
    """Analyzes the stored transcript and returns the new analysis."""
    try:
        deposition = await asyncio.to_thread(repo.get_audio_deposition, deposition_id)
    except AudioDepositionNotFoundError:
        raise HTTPException(status_code=404, detail="Audio deposition not found")

    if not deposition.transcript:
        raise HTTPException(status_code=409, detail="Deposition has no transcript yet")

    if analyzer is None:
        logger.error(f"Analysis of {deposition_id} failed: analyzer unavailable")
        raise HTTPException(status_code=500, detail="Analysis failed")

    try:
        return await asyncio.to_thread(
            analyzer.analyze, deposition, deposition.transcript
        )
    except (LLMServiceError, CacheServiceError, DepositionPersistenceError) as e:
        logger.error(f"Analysis of {deposition_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Analysis failed")
