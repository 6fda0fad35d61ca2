"""Service wiring for the API routes."""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, HTTPException, status

from app.config import Settings, get_settings
from app.services.checklists.models import Checklist
from app.services.checklists.parser import DocumentParser
from app.services.fusion.generator import FusionTextGenerator
from app.services.fusion.matcher import CandidateMatcher
from app.services.fusion.service import FusionService
from app.services.llm.client import LLMClient
from app.services.store.records import RecordStore


@lru_cache(maxsize=4)
def _store_for(root: Path) -> RecordStore:
    # One instance per directory so pair locks are shared across requests.
    return RecordStore(root)


def get_store(settings: Annotated[Settings, Depends(get_settings)]) -> RecordStore:
    return _store_for(settings.store_dir)


def get_llm_client(settings: Annotated[Settings, Depends(get_settings)]) -> LLMClient:
    return LLMClient(
        base_url=settings.llm_base_url or None,
        api_key=settings.llm_api_key,
        default_model=settings.llm_model,
        embedding_model=settings.embedding_model,
        provider=settings.llm_provider,
        timeout_s=settings.llm_timeout_seconds,
    )


def get_document_parser(settings: Annotated[Settings, Depends(get_settings)]) -> DocumentParser:
    return DocumentParser(
        host=settings.unstract_host,
        api_key=settings.unstract_api_key,
        org_id=settings.unstract_org_id,
        deployment_name=settings.unstract_deployment_name,
        timeout_s=settings.unstract_timeout_seconds,
    )


def get_fusion_service(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[RecordStore, Depends(get_store)],
    client: Annotated[LLMClient, Depends(get_llm_client)],
) -> FusionService:
    matcher = CandidateMatcher(
        embedder=client,
        generator=FusionTextGenerator(client),
        max_workers=settings.fusion_max_workers,
    )
    return FusionService(
        store,
        matcher,
        default_threshold=settings.fusion_similarity_threshold,
        default_max_results=settings.fusion_max_suggestions,
    )


def load_checklist(store: RecordStore, file_hash: str) -> Checklist:
    """Fetch a stored checklist or answer 404."""
    checklist = store.find_checklist(file_hash)
    if checklist is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Checklist not found: {file_hash}"
        )
    return checklist
