"""Case and case document endpoints."""

from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from legal_common.logging import setup_logging

from dependencies import get_case_repository
from exceptions import CaseNotFoundError, DepositionPersistenceError
from repositories import CaseRepository
from response_models import (
    CaseResponse,
    CreateCaseRequest,
    CreateDocumentRequest,
    DocumentResponse,
)

logger = setup_logging()

router = APIRouter(prefix="/cases", tags=["cases"])

RepositoryDep = Annotated[CaseRepository, Depends(get_case_repository)]


@router.post("", response_model=CaseResponse, status_code=201)
def create_case(request: CreateCaseRequest, repo: RepositoryDep):
    """Creates a case for a user."""
    try:
        record = repo.create_case(request.title, request.description, request.user_id)
    except DepositionPersistenceError:
        raise HTTPException(status_code=500, detail="Internal server error")
    return CaseResponse.model_validate(record.model_dump())


@router.get("", response_model=List[CaseResponse])
def list_cases(repo: RepositoryDep, user_id: str = Query(..., min_length=1)):
    """Returns the cases of a user."""
    try:
        return [CaseResponse.model_validate(c.model_dump()) for c in repo.list_cases(user_id)]
    except Exception as e:
        logger.error(f"Error listing cases for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/{case_id}/documents", response_model=DocumentResponse, status_code=201)
def add_document(case_id: UUID, request: CreateDocumentRequest, repo: RepositoryDep):
    """Attaches a discovery document, given as plain text, to a case."""
    try:
        record = repo.add_document(case_id, request.name, request.content)
    except CaseNotFoundError:
        raise HTTPException(status_code=404, detail="Case not found")
    except DepositionPersistenceError:
        raise HTTPException(status_code=500, detail="Internal server error")
    return DocumentResponse.model_validate(record.model_dump())


@router.get("/{case_id}/documents", response_model=List[DocumentResponse])
def list_documents(case_id: UUID, repo: RepositoryDep):
    """Returns the documents of a case without their content."""
    try:
        repo.get_case(case_id)
        return [
            DocumentResponse.model_validate(d.model_dump())
            for d in repo.list_documents(case_id)
        ]
    except CaseNotFoundError:
        raise HTTPException(status_code=404, detail="Case not found")
    except Exception as e:
        logger.error(f"Error listing documents for case {case_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
