"""
Tests for the REST endpoints, with repositories on in-memory SQLite.
"""
import io
import unittest
import wave
from contextlib import contextmanager
from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import uuid4

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from dependencies import (
    get_audio_deposition_repository,
    get_case_repository,
    get_optional_analyzer,
    get_registry,
)
from domain.models import DepositionAnalysis, NewAudioDeposition
from domain.session_registry import SessionRegistry
from exceptions import LLMServiceError
from repositories import AudioDepositionRepository, CaseRepository
from routes import audio_depositions_router, cases_router, health_router


class RoutesTestCase(unittest.TestCase):
    def setUp(self):
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        SQLModel.metadata.create_all(engine)

        @contextmanager
        def factory():
            with Session(engine) as session:
                yield session

        self.cases = CaseRepository(factory)
        self.depositions = AudioDepositionRepository(factory)
        self.analyzer = MagicMock()
        self.registry = SessionRegistry()

        app = FastAPI()
        app.include_router(cases_router)
        app.include_router(audio_depositions_router)
        app.include_router(health_router)
        app.dependency_overrides[get_case_repository] = lambda: self.cases
        app.dependency_overrides[get_audio_deposition_repository] = lambda: self.depositions
        app.dependency_overrides[get_optional_analyzer] = lambda: self.analyzer
        app.dependency_overrides[get_registry] = lambda: self.registry
        self.client = TestClient(app)

    def _deposition(self, transcript=""):
        case = self.cases.create_case("Smith v. Jones", "", "user-1")
        record = self.depositions.create_audio_deposition(
            NewAudioDeposition(case_id=case.id, witness_name="Jane Doe")
        )
        if transcript:
            self.depositions.append_transcript(record.id, transcript)
        return record


class TestCaseRoutes(RoutesTestCase):
    def test_create_and_list(self):
        response = self.client.post(
            "/cases", json={"title": "Smith v. Jones", "user_id": "user-1"}
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["title"], "Smith v. Jones")

        listed = self.client.get("/cases", params={"user_id": "user-1"}).json()
        self.assertEqual([c["id"] for c in listed], [response.json()["id"]])

    def test_create_requires_title(self):
        response = self.client.post("/cases", json={"title": "", "user_id": "u"})
        self.assertEqual(response.status_code, 422)


class TestDocumentRoutes(RoutesTestCase):
    def test_add_and_list(self):
        case = self.cases.create_case("Smith v. Jones", "", "user-1")
        response = self.client.post(
            f"/cases/{case.id}/documents",
            json={"name": "Lease", "content": "Moved out on 1 May."},
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["name"], "Lease")

        listed = self.client.get(f"/cases/{case.id}/documents").json()
        self.assertEqual([d["id"] for d in listed], [response.json()["id"]])
        self.assertNotIn("content", listed[0])
        self.assertEqual(
            self.cases.list_documents(case.id)[0].content, "Moved out on 1 May."
        )

    def test_unknown_case_is_404(self):
        missing = uuid4()
        response = self.client.post(
            f"/cases/{missing}/documents", json={"name": "Lease", "content": "x"}
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.client.get(f"/cases/{missing}/documents").status_code, 404)

    def test_content_is_required(self):
        case = self.cases.create_case("Smith v. Jones", "", "user-1")
        response = self.client.post(
            f"/cases/{case.id}/documents", json={"name": "Lease", "content": ""}
        )
        self.assertEqual(response.status_code, 422)


class TestAudioDepositionRoutes(RoutesTestCase):
    def test_get_and_list(self):
        record = self._deposition("Hello.")
        self.depositions.append_audio_chunk(record.id, b"\x00\x00", datetime.now(timezone.utc))

        body = self.client.get(f"/audio-depositions/{record.id}").json()
        self.assertEqual(body["transcript"], "Hello.")
        self.assertEqual(body["status"], "recording")
        self.assertEqual(body["chunk_count"], 1)
        self.assertNotIn("chunks", body)

        listed = self.client.get(
            "/audio-depositions", params={"case_id": str(record.case_id)}
        ).json()
        self.assertEqual([d["id"] for d in listed], [str(record.id)])

    def test_unknown_ids_are_404(self):
        missing = uuid4()
        self.assertEqual(self.client.get(f"/audio-depositions/{missing}").status_code, 404)
        self.assertEqual(
            self.client.get(f"/audio-depositions/{missing}/audio").status_code, 404
        )
        self.assertEqual(
            self.client.get(f"/audio-depositions/{missing}/analysis").status_code, 404
        )
        self.assertEqual(
            self.client.post(f"/audio-depositions/{missing}/analysis").status_code, 404
        )

    def test_download_audio(self):
        record = self._deposition()
        now = datetime.now(timezone.utc)
        self.depositions.append_audio_chunk(record.id, b"\x01\x00" * 2, now)
        self.depositions.append_audio_chunk(record.id, b"\x02\x00" * 2, now)

        response = self.client.get(f"/audio-depositions/{record.id}/audio")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "audio/wav")
        with wave.open(io.BytesIO(response.content), "rb") as wav:
            self.assertEqual(wav.readframes(4), b"\x01\x00\x01\x00\x02\x00\x02\x00")

    def test_request_analysis(self):
        record = self._deposition("I was at home.")
        analysis = DepositionAnalysis(discrepancies=[], suggested_questions=["Q?"])
        self.analyzer.analyze.return_value = analysis

        response = self.client.post(f"/audio-depositions/{record.id}/analysis")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["suggested_questions"], ["Q?"])
        deposition, transcript = self.analyzer.analyze.call_args.args
        self.assertEqual(deposition.id, record.id)
        self.assertEqual(transcript, "I was at home.")

    def test_request_analysis_without_transcript(self):
        record = self._deposition()
        response = self.client.post(f"/audio-depositions/{record.id}/analysis")
        self.assertEqual(response.status_code, 409)
        self.analyzer.analyze.assert_not_called()

    def test_request_analysis_failure(self):
        record = self._deposition("text")
        self.analyzer.analyze.side_effect = LLMServiceError("quota")
        response = self.client.post(f"/audio-depositions/{record.id}/analysis")
        self.assertEqual(response.status_code, 500)

    def test_request_analysis_with_analyzer_unavailable(self):
        record = self._deposition("text")
        self.analyzer = None
        response = self.client.post(f"/audio-depositions/{record.id}/analysis")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Analysis failed")

    def test_get_stored_analysis(self):
        record = self._deposition("text")
        self.depositions.save_analysis(
            record.id, DepositionAnalysis(discrepancies=[], suggested_questions=["Q1"])
        )
        body = self.client.get(f"/audio-depositions/{record.id}/analysis").json()
        self.assertEqual(body, {"discrepancies": [], "suggested_questions": ["Q1"]})


class TestHealth(RoutesTestCase):
    def test_reports_active_sessions(self):
        self.registry.register(uuid4(), MagicMock())
        body = self.client.get("/health").json()
        self.assertEqual(body, {"status": "ok", "active_sessions": 1})


if __name__ == "__main__":
    unittest.main()
