"""Routes for fusion suggestions and fused checklist assembly."""

from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.api.dependencies import get_fusion_service, get_store, load_checklist
from app.services.checklists.models import FusionDecision
from app.services.fusion.builder import export_rows
from app.services.fusion.errors import MatchingUnavailableError, SuggestionConsistencyError
from app.services.fusion.service import FusionService
from app.services.store.records import RecordStore, StoreError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter(prefix="/fusions", tags=["fusions"])


class FusionOptions(BaseModel):
    similarity_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    max_suggestions: int | None = Field(default=None, ge=1)
    force_refresh: bool = False


class ChecklistPair(BaseModel):
    checklist1_hash: str = Field(..., min_length=1)
    checklist2_hash: str = Field(..., min_length=1)


class GenerateRequest(ChecklistPair):
    options: FusionOptions = Field(default_factory=FusionOptions)


class GenerateResponse(BaseModel):
    suggestions: list[dict[str, Any]]
    cached: bool


class RegenerateRequest(ChecklistPair):
    item1_id: str = Field(..., min_length=1)
    item2_id: str = Field(..., min_length=1)


class RegenerateResponse(BaseModel):
    text: str


class DecisionPayload(BaseModel):
    suggestion_id: str = Field(..., min_length=1)
    status: Literal["accepted", "rejected", "edited"]
    custom_text: str | None = None


class BuildRequest(ChecklistPair):
    decisions: list[DecisionPayload] = Field(default_factory=list)


class BuildResponse(BaseModel):
    checklist: dict[str, Any]
    fused_items: list[dict[str, Any]]


@router.post("/generate", response_model=GenerateResponse)
def generate(
    payload: GenerateRequest,
    store: Annotated[RecordStore, Depends(get_store)],
    service: Annotated[FusionService, Depends(get_fusion_service)],
) -> GenerateResponse:
    """Match two stored checklists; a stored suggestion set for the pair is reused."""
    try:
        checklist1 = load_checklist(store, payload.checklist1_hash)
        checklist2 = load_checklist(store, payload.checklist2_hash)
        batch = service.generate_suggestions(
            checklist1,
            checklist2,
            threshold=payload.options.similarity_threshold,
            max_results=payload.options.max_suggestions,
            force_refresh=payload.options.force_refresh,
        )
    except SuggestionConsistencyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except (MatchingUnavailableError, StoreError) as exc:
        LOGGER.error("Fusion generation failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return GenerateResponse(
        suggestions=[entry.to_dict() for entry in batch.suggestions], cached=batch.cached
    )


@router.post("/regenerate", response_model=RegenerateResponse)
def regenerate(
    payload: RegenerateRequest,
    store: Annotated[RecordStore, Depends(get_store)],
    service: Annotated[FusionService, Depends(get_fusion_service)],
) -> RegenerateResponse:
    try:
        checklist1 = load_checklist(store, payload.checklist1_hash)
        checklist2 = load_checklist(store, payload.checklist2_hash)
        text = service.regenerate_text(checklist1, checklist2, payload.item1_id, payload.item2_id)
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return RegenerateResponse(text=text)


@router.post("/build", response_model=BuildResponse)
def build(
    payload: BuildRequest,
    store: Annotated[RecordStore, Depends(get_store)],
    service: Annotated[FusionService, Depends(get_fusion_service)],
) -> BuildResponse:
    """Apply the user's decisions and return the fused checklist with export rows."""
    decisions = [
        FusionDecision(
            suggestion_id=entry.suggestion_id, status=entry.status, custom_text=entry.custom_text
        )
        for entry in payload.decisions
    ]
    try:
        checklist1 = load_checklist(store, payload.checklist1_hash)
        checklist2 = load_checklist(store, payload.checklist2_hash)
        fused = service.build(checklist1, checklist2, decisions)
    except SuggestionConsistencyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return BuildResponse(
        checklist=fused.to_dict(), fused_items=[row.to_dict() for row in export_rows(fused)]
    )
