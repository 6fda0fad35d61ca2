"""Routes for uploading and fetching parsed checklists."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status
from pydantic import BaseModel

from app.api.dependencies import get_document_parser, get_store, load_checklist
from app.services.checklists.hashing import file_hash
from app.services.checklists.parser import DocumentParser, ParseError
from app.services.store.records import RecordStore, StoreError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter(prefix="/checklists", tags=["checklists"])


class ChecklistResponse(BaseModel):
    checklist: dict[str, Any]
    cached: bool


@router.post("/parse", response_model=ChecklistResponse, status_code=status.HTTP_200_OK)
def parse_checklist(
    file: UploadFile,
    store: Annotated[RecordStore, Depends(get_store)],
    parser: Annotated[DocumentParser, Depends(get_document_parser)],
) -> ChecklistResponse:
    """Parse an uploaded checklist PDF, reusing the stored result for known content."""
    data = file.file.read()
    file_name = file.filename or "checklist.pdf"
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    digest = file_hash(data)
    try:
        existing = store.find_checklist(digest)
        if existing is not None:
            LOGGER.info("Found cached checklist %s for %s", existing.id, file_name)
            return ChecklistResponse(checklist=existing.to_dict(), cached=True)

        parsed = parser.parse(data, file_name)
        checklist = store.save_checklist(digest, file_name, parsed)
    except (ParseError, StoreError) as exc:
        LOGGER.error("Parsing %s failed: %s", file_name, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return ChecklistResponse(checklist=checklist.to_dict(), cached=False)


@router.get("/{checklist_hash}", response_model=ChecklistResponse)
def get_checklist(
    checklist_hash: str, store: Annotated[RecordStore, Depends(get_store)]
) -> ChecklistResponse:
    try:
        checklist = load_checklist(store, checklist_hash)
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return ChecklistResponse(checklist=checklist.to_dict(), cached=True)
