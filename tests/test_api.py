from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_document_parser, get_fusion_service, get_store
from app.main import app
from app.services.checklists.models import ChecklistItem, ParsedChecklist
from app.services.checklists.parser import ParseError
from app.services.fusion.generator import FusionTextGenerator
from app.services.fusion.matcher import CandidateMatcher
from app.services.fusion.service import FusionService
from app.services.store.records import RecordStore

TRAINING = "Staff must be trained annually."
YEARLY = "Personnel require yearly training."


class FakeParser:
    def __init__(self) -> None:
        self.calls = 0

    def parse(self, file_bytes: bytes, file_name: str) -> ParsedChecklist:
        self.calls += 1
        if file_bytes.startswith(b"BROKEN"):
            raise ParseError("Invalid Unstract response structure: missing message.result")
        text = TRAINING if file_bytes.startswith(b"A") else YEARLY
        prefix = "a" if file_bytes.startswith(b"A") else "b"
        return ParsedChecklist(
            items=[
                ChecklistItem(id=f"{prefix}1", section=f"{prefix.upper()}. Staff", text=text,
                              category="Personnel", references=["3.2"]),
                ChecklistItem(id=f"{prefix}2", section=f"{prefix.upper()}. Other",
                              text=f"Unrelated {prefix} requirement."),
            ]
        )


@pytest.fixture
def parser() -> FakeParser:
    return FakeParser()


@pytest.fixture
def client(tmp_path: Path, parser, embedder, completer) -> Iterator[TestClient]:
    store = RecordStore(tmp_path / "store")
    embedder.vectors = {
        TRAINING: [1.0, 0.0, 0.0],
        YEARLY: [0.6, 0.8, 0.0],
        "Unrelated a requirement.": [0.0, 0.0, 1.0],
        "Unrelated b requirement.": [0.0, 1.0, 0.0],
    }
    service = FusionService(store, CandidateMatcher(embedder, FusionTextGenerator(completer)))
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_document_parser] = lambda: parser
    app.dependency_overrides[get_fusion_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client: TestClient, content: bytes, name: str = "a.pdf"):
    return client.post("/checklists/parse", files={"file": (name, content, "application/pdf")})


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_parse_rejects_empty_file(client: TestClient) -> None:
    response = _upload(client, b"")
    assert response.status_code == 400


def test_parse_caches_by_content(client: TestClient, parser: FakeParser) -> None:
    first = _upload(client, b"A-pdf-bytes")
    second = _upload(client, b"A-pdf-bytes", name="renamed.pdf")
    assert first.status_code == 200
    assert first.json()["cached"] is False
    assert second.json()["cached"] is True
    assert second.json()["checklist"]["id"] == first.json()["checklist"]["id"]
    assert parser.calls == 1

    file_hash = first.json()["checklist"]["file_hash"]
    assert client.get(f"/checklists/{file_hash}").status_code == 200
    assert client.get("/checklists/unknown").status_code == 404


def test_parse_error_is_reported(client: TestClient) -> None:
    response = _upload(client, b"BROKEN")
    assert response.status_code == 502
    assert "missing message.result" in response.json()["detail"]


def test_generate_requires_known_checklists(client: TestClient) -> None:
    response = client.post(
        "/fusions/generate", json={"checklist1_hash": "nope", "checklist2_hash": "nope"}
    )
    assert response.status_code == 404


def test_generate_validates_options(client: TestClient) -> None:
    response = client.post(
        "/fusions/generate",
        json={"checklist1_hash": "x", "checklist2_hash": "y", "options": {"similarity_threshold": 1.5}},
    )
    assert response.status_code == 422


def test_full_fusion_flow(client: TestClient) -> None:
    hash1 = _upload(client, b"A-pdf-bytes").json()["checklist"]["file_hash"]
    hash2 = _upload(client, b"B-pdf-bytes", name="b.pdf").json()["checklist"]["file_hash"]
    pair = {"checklist1_hash": hash1, "checklist2_hash": hash2}

    generated = client.post("/fusions/generate", json=pair)
    assert generated.status_code == 200
    body = generated.json()
    assert body["cached"] is False
    assert len(body["suggestions"]) == 1
    suggestion = body["suggestions"][0]
    assert suggestion["source_items"]["item1"]["id"] == "a1"
    assert suggestion["source_items"]["item2"]["id"] == "b1"

    again = client.post("/fusions/generate", json=pair)
    assert again.json()["cached"] is True

    regenerated = client.post("/fusions/regenerate", json={**pair, "item1_id": "a1", "item2_id": "b1"})
    assert regenerated.json() == {"text": "Merged requirement."}

    built = client.post(
        "/fusions/build",
        json={**pair, "decisions": [{"suggestion_id": suggestion["id"], "status": "accepted"}]},
    )
    assert built.status_code == 200
    checklist = built.json()["checklist"]
    # Ordered by section: "A. Other", "A. Staff", "B. Other".
    assert [item["id"] for item in checklist["items"]] == ["a2", f"fused_{suggestion['id']}", "b2"]
    fused_items = built.json()["fused_items"]
    assert [row["is_fused"] for row in fused_items] == [False, True, False]
    assert fused_items[1]["source_ids"] == ["a1", "b1"]

    exported = client.post(
        "/export/pdf",
        json={"title": "Fused", "version": "v1.0", "date": "2025-03-14", "fused_items": fused_items},
    )
    assert exported.status_code == 200
    assert exported.headers["content-type"] == "application/pdf"
    assert "fused-checklist-2025-03-14.pdf" in exported.headers["content-disposition"]
    assert exported.content.startswith(b"%PDF")


def test_build_rejects_empty_edit(client: TestClient) -> None:
    hash1 = _upload(client, b"A-pdf-bytes").json()["checklist"]["file_hash"]
    hash2 = _upload(client, b"B-pdf-bytes", name="b.pdf").json()["checklist"]["file_hash"]
    pair = {"checklist1_hash": hash1, "checklist2_hash": hash2}
    suggestion_id = client.post("/fusions/generate", json=pair).json()["suggestions"][0]["id"]
    response = client.post(
        "/fusions/build",
        json={**pair, "decisions": [{"suggestion_id": suggestion_id, "status": "edited", "custom_text": " "}]},
    )
    assert response.status_code == 400


def test_export_requires_items(client: TestClient) -> None:
    assert client.post("/export/pdf", json={"title": "x"}).status_code == 422
    bad_item = {"fused_items": [{"item": {"id": "x", "text": ""}}]}
    assert client.post("/export/pdf", json=bad_item).status_code == 400
