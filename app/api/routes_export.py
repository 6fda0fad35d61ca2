"""PDF export of a fused checklist."""

import datetime as dt
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from app.config import Settings, get_settings
from app.services.checklists.models import ExportRow
from app.services.export.renderer import ExportDocument, render_checklist_pdf

router = APIRouter(prefix="/export", tags=["export"])


class ExportRowPayload(BaseModel):
    item: dict[str, Any]
    source_ids: list[str] = Field(default_factory=list)
    is_fused: bool = False


class ExportRequest(BaseModel):
    title: str = "Fused Audit Checklist"
    version: str = "v1.0"
    date: str | None = None
    fused_items: list[ExportRowPayload]
    metadata: dict[str, Any] = Field(default_factory=dict)


@router.post("/pdf", response_class=Response)
def export_pdf(
    payload: ExportRequest, settings: Annotated[Settings, Depends(get_settings)]
) -> Response:
    date = payload.date or dt.date.today().isoformat()
    try:
        rows = [ExportRow.from_dict(entry.model_dump()) for entry in payload.fused_items]
    except (KeyError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    document = ExportDocument(
        title=payload.title,
        version=payload.version,
        date=date,
        rows=rows,
        metadata=payload.metadata,
    )
    pdf_bytes = render_checklist_pdf(document, font_path=settings.export_font_path)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="fused-checklist-{date}.pdf"'},
    )
