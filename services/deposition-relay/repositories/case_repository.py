"""Repository for case and discovery document data access."""

from uuid import UUID

from legal_common.db_models import Case, Document
from legal_common.logging import setup_logging
from sqlmodel import select

from domain.models import CaseRecord, DocumentRecord
from exceptions import CaseNotFoundError, DepositionPersistenceError

logger = setup_logging()


class CaseRepository:
    """Creates and lists cases and the discovery documents attached to them."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def create_case(self, title: str, description: str, user_id: str) -> CaseRecord:
        """
        Raises:
            DepositionPersistenceError: If the insert fails.
        """
        try:
            with self._session_factory() as db_session:
                case = Case(title=title, description=description, user_id=user_id)
                db_session.add(case)
                db_session.commit()
                db_session.refresh(case)
                record = CaseRecord.model_validate(case, from_attributes=True)
        except Exception as e:
            logger.exception("Failed to create case", extra={"user_id": user_id})
            raise DepositionPersistenceError("case create", cause=e) from e

        logger.info("Case created", extra={"case_id": str(record.id), "user_id": user_id})
        return record

    def get_case(self, case_id: UUID) -> CaseRecord:
        """
        Raises:
            CaseNotFoundError: If the case does not exist.
        """
        with self._session_factory() as db_session:
            case = db_session.get(Case, case_id)
            if case is None:
                raise CaseNotFoundError(case_id)
            return CaseRecord.model_validate(case, from_attributes=True)

    def list_cases(self, user_id: str) -> list[CaseRecord]:
        """Returns the cases of a user, newest first."""
        with self._session_factory() as db_session:
            statement = (
                select(Case)
                .where(Case.user_id == user_id)
                .order_by(Case.created_at.desc())
            )
            return [
                CaseRecord.model_validate(case, from_attributes=True)
                for case in db_session.exec(statement).all()
            ]

    def add_document(self, case_id: UUID, name: str, content: str) -> DocumentRecord:
        """
        Attaches a text document to a case.

        Raises:
            CaseNotFoundError: If the case does not exist.
            DepositionPersistenceError: If the insert fails.
        """
        try:
            with self._session_factory() as db_session:
                if db_session.get(Case, case_id) is None:
                    raise CaseNotFoundError(case_id)
                document = Document(case_id=case_id, name=name, content=content)
                db_session.add(document)
                db_session.commit()
                db_session.refresh(document)
                record = DocumentRecord.model_validate(document, from_attributes=True)
        except CaseNotFoundError:
            raise
        except Exception as e:
            logger.exception("Failed to add document", extra={"case_id": str(case_id)})
            raise DepositionPersistenceError("document create", cause=e) from e

        logger.info(
            "Document added",
            extra={"case_id": str(case_id), "document_id": str(record.id)},
        )
        return record

    def list_documents(self, case_id: UUID) -> list[DocumentRecord]:
        """Returns the documents of a case in upload order."""
        with self._session_factory() as db_session:
            statement = (
                select(Document)
                .where(Document.case_id == case_id)
                .order_by(Document.created_at)
            )
            return [
                DocumentRecord.model_validate(document, from_attributes=True)
                for document in db_session.exec(statement).all()
            ]
