"""Checklist extraction through an Unstract deployed workflow."""

from __future__ import annotations

import datetime as dt
import json
import re
from pathlib import PurePath
from typing import Any, Dict, List

import httpx

from app.services.checklists.models import ChecklistItem, ChecklistMetadata, ParsedChecklist
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

CODE_FENCE_PATTERN = re.compile(r"^\s*```(?:json)?\s*\n?|\n?\s*```\s*$")

# Section-title keywords (French audit checklists) mapped to item categories.
SECTION_CATEGORIES: List[tuple[tuple[str, ...], str]] = [
    (("contrat", "licence", "document"), "Documentation"),
    (("achat", "réception", "matières premières"), "Procurement"),
    (("emballage", "déclaration"), "Packaging"),
    (("recette", "transformation", "production"), "Production"),
    (("parasite", "hygiène", "nettoyage"), "Hygiene"),
    (("importation", "transport"), "Import"),
    (("contrôle", "flux"), "Quality Control"),
    (("annonce", "obligation"), "Compliance"),
]


class ParseError(Exception):
    """Raised when a document cannot be turned into a checklist."""


def category_for_section(section_title: str) -> str:
    lowered = section_title.lower()
    for keywords, category in SECTION_CATEGORIES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return "General"


def _strip_code_fence(raw: str) -> str:
    return CODE_FENCE_PATTERN.sub("", raw).strip()


def _extract_output(payload: Any) -> Dict[str, Any]:
    """Dig the workflow output JSON out of the deployment API envelope."""
    message = payload.get("message") if isinstance(payload, dict) else None
    results = message.get("result") if isinstance(message, dict) else None
    if not isinstance(results, list) or not results:
        raise ParseError("Invalid Unstract response structure: missing message.result")

    first = results[0]
    status = first.get("status") if isinstance(first, dict) else None
    if status != "Success":
        raise ParseError(f"Unstract processing failed with status: {status}")

    result = first.get("result")
    if not isinstance(result, dict):
        raise ParseError("Invalid Unstract response structure: result is not an object")
    output = result.get("output")
    if not isinstance(output, dict) or not output:
        raise ParseError("Invalid Unstract response structure: missing result.output")

    raw = next(iter(output.values()))
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        raise ParseError(f"Unexpected Unstract output type: {type(raw).__name__}")
    try:
        parsed = json.loads(_strip_code_fence(raw))
    except json.JSONDecodeError as exc:
        raise ParseError(f"Unstract output is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ParseError("Unstract output JSON must be an object")
    return parsed


def transform_response(payload: Any, file_name: str) -> ParsedChecklist:
    """Map the workflow output (document + lettered sections) to a ParsedChecklist."""
    data = _extract_output(payload)
    document = data.get("document") or {}
    if not isinstance(document, dict):
        raise ParseError(f"Unexpected document entry: {document!r}")
    sections = data.get("sections")
    if not isinstance(sections, list):
        raise ParseError("Unstract output has no 'sections' list")

    items: List[ChecklistItem] = []
    section_names: List[str] = []
    seen_ids: set[str] = set()
    for section in sections:
        if not isinstance(section, dict):
            raise ParseError(f"Unexpected section entry: {section!r}")
        title = str(section.get("title") or "").strip()
        letter = str(section.get("letter") or "").strip()
        section_name = f"{letter}. {title}" if letter else title
        section_names.append(section_name)
        category = category_for_section(title)

        for raw_item in section.get("items") or []:
            if not isinstance(raw_item, dict):
                raise ParseError(f"Unexpected item entry in section {section_name}: {raw_item!r}")
            text = str(raw_item.get("label") or raw_item.get("text") or "").strip()
            item_id = str(raw_item.get("id") or "").strip()
            if not item_id or not text:
                LOGGER.warning("Skipping item without id or text in section %s", section_name)
                continue
            if item_id in seen_ids:
                LOGGER.warning("Skipping duplicate item id %s in section %s", item_id, section_name)
                continue
            seen_ids.add(item_id)
            metadata: Dict[str, Any] = {
                "page": raw_item.get("page"),
                "status": raw_item.get("status"),
                "notes": raw_item.get("notes"),
            }
            fields = raw_item.get("fields") or {}
            if isinstance(fields, dict):
                metadata.update(fields)
            items.append(
                ChecklistItem(
                    id=item_id,
                    section=section_name,
                    text=text,
                    category=category,
                    options=[
                        str(option.get("label", "")) if isinstance(option, dict) else str(option)
                        for option in raw_item.get("options") or []
                    ],
                    references=[str(ref) for ref in raw_item.get("references") or []],
                    metadata=metadata,
                )
            )

    if not items:
        raise ParseError(f"No checklist items found in {file_name}")

    today = dt.date.today().isoformat()
    metadata = ChecklistMetadata(
        title=str(document.get("title") or PurePath(file_name).stem),
        version=str(document.get("version") or document.get("date") or ""),
        date=str(document.get("date") or today),
        sections=section_names,
    )
    return ParsedChecklist(items=items, metadata=metadata)


class DocumentParser:
    """Send a PDF to the Unstract deployment API and map the result."""

    def __init__(
        self,
        host: str,
        api_key: str | None,
        org_id: str,
        deployment_name: str,
        timeout_s: float = 300.0,
    ) -> None:
        self.host = host.rstrip("/")
        self.api_key = api_key
        self.org_id = org_id
        self.deployment_name = deployment_name
        self.timeout_s = timeout_s

    @property
    def endpoint(self) -> str:
        return f"{self.host}/deployment/api/{self.org_id}/{self.deployment_name}/"

    def parse(self, file_bytes: bytes, file_name: str) -> ParsedChecklist:
        if not self.api_key:
            raise ParseError("UNSTRACT_API_KEY is required to parse documents")
        if not file_bytes:
            raise ParseError(f"{file_name} is empty")

        LOGGER.info("Parsing %s (%d bytes) via %s", file_name, len(file_bytes), self.endpoint)
        try:
            response = httpx.post(
                self.endpoint,
                files={"files": (file_name, file_bytes, "application/pdf")},
                data={"timeout": str(int(self.timeout_s)), "include_metadata": "false"},
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.RequestError as exc:
            raise ParseError(f"Unstract connection error: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise ParseError(
                f"Unstract API returned {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except ValueError as exc:
            raise ParseError(f"Unstract API returned invalid JSON: {exc}") from exc

        checklist = transform_response(payload, file_name)
        LOGGER.info("Parsed %s: %d items", file_name, len(checklist.items))
        return checklist
