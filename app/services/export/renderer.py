"""PDF export of a fused checklist."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from fpdf.fonts import FontFace

from app.services.checklists.models import ExportRow
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

CORE_FONT = "helvetica"
CUSTOM_FONT = "ExportSans"
COLOR_TEXT = (0, 0, 0)
COLOR_HEADER = (0, 51, 102)
COLOR_FUSED = (0, 128, 0)
COLOR_FOOTER = (102, 102, 102)
DEFAULT_SECTION = "General"
FUSED_TAG = "[Fused item]"

AUDIT_INFO_LABELS = (
    ("date_place", "Date, place:"),
    ("auditor", "Auditor:"),
    ("company", "Company:"),
    ("client_number", "Client no.:"),
    ("audited_persons", "Audited person(s), with role:"),
    ("audit_type", "Audit type:"),
)


@dataclass
class ExportDocument:
    title: str
    version: str
    date: str
    rows: List[ExportRow]
    # checklist1_name, checklist2_name and an optional audit_info mapping.
    metadata: Dict[str, Any] = field(default_factory=dict)


class ChecklistPDF(FPDF):
    """FPDF with a title header and a versioned footer on every page."""

    def __init__(self, font_family: str, header_text: str, footer_text: str) -> None:
        super().__init__(orientation="P", unit="mm", format="A4")
        self.font_family_name = font_family
        self.header_text = header_text
        self.footer_text = footer_text

    def header(self) -> None:
        self.set_font(self.font_family_name, "B", 9)
        self.set_text_color(*COLOR_FOOTER)
        self.cell(0, 8, self.header_text, align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(2)

    def footer(self) -> None:
        self.set_y(-15)
        self.set_font(self.font_family_name, "I", 8)
        self.set_text_color(*COLOR_FOOTER)
        self.cell(self.epw / 2, 8, self.footer_text, align="L")
        self.cell(0, 8, f"Page {self.page_no()}/{{nb}}", align="R")


class ChecklistRenderer:
    """Lay out an ExportDocument: audit info block, then one table per section."""

    def __init__(self, font_path: Optional[Path] = None) -> None:
        self.font_path = font_path

    def render(self, document: ExportDocument) -> bytes:
        family = CUSTOM_FONT if self.font_path else CORE_FONT
        pdf = ChecklistPDF(
            family,
            header_text=self._text(document.title),
            footer_text=self._text(f"Version: {document.version} {document.date}"),
        )
        if self.font_path:
            for style in ("", "B", "I"):
                pdf.add_font(CUSTOM_FONT, style=style, fname=str(self.font_path))
        pdf.set_auto_page_break(auto=True, margin=20)
        pdf.add_page()

        self._add_title(pdf, document)
        self._add_audit_info(pdf, document.metadata.get("audit_info") or {})
        for section, rows in self._group_by_section(document.rows).items():
            self._add_section(pdf, section, rows)

        LOGGER.info("Rendered %d rows on %d pages", len(document.rows), pdf.page_no())
        return bytes(pdf.output())

    def _text(self, value: str) -> str:
        if self.font_path:
            return value
        # Core fonts only cover latin-1.
        return value.encode("latin-1", "replace").decode("latin-1")

    def _add_title(self, pdf: ChecklistPDF, document: ExportDocument) -> None:
        pdf.set_font(pdf.font_family_name, "B", 16)
        pdf.set_text_color(*COLOR_TEXT)
        pdf.multi_cell(0, 9, self._text(document.title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        sources = [
            document.metadata.get(key) for key in ("checklist1_name", "checklist2_name")
        ]
        sources = [str(name) for name in sources if name]
        if sources:
            pdf.set_font(pdf.font_family_name, "", 10)
            pdf.multi_cell(
                0,
                6,
                self._text("Sources: " + " + ".join(sources)),
                new_x=XPos.LMARGIN,
                new_y=YPos.NEXT,
            )
        pdf.ln(4)

    def _add_audit_info(self, pdf: ChecklistPDF, info: Mapping[str, Any]) -> None:
        pdf.set_font(pdf.font_family_name, "", 9)
        pdf.set_text_color(*COLOR_TEXT)
        with pdf.table(col_widths=(1, 2), first_row_as_headings=False) as table:
            for key, label in AUDIT_INFO_LABELS:
                row = table.row()
                row.cell(self._text(label))
                row.cell(self._text(str(info.get(key) or "")))
        pdf.ln(6)

    @staticmethod
    def _group_by_section(rows: List[ExportRow]) -> Dict[str, List[ExportRow]]:
        grouped: Dict[str, List[ExportRow]] = {}
        for row in rows:
            grouped.setdefault(row.item.section or DEFAULT_SECTION, []).append(row)
        return grouped

    def _add_section(self, pdf: ChecklistPDF, section: str, rows: List[ExportRow]) -> None:
        pdf.set_font(pdf.font_family_name, "B", 12)
        pdf.set_text_color(*COLOR_HEADER)
        pdf.multi_cell(0, 8, self._text(section), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        pdf.set_font(pdf.font_family_name, "", 9)
        pdf.set_text_color(*COLOR_TEXT)
        fused_style = FontFace(color=COLOR_FUSED)
        with pdf.table(
            col_widths=(1, 12, 5),
            headings_style=FontFace(emphasis="BOLD", color=COLOR_TEXT),
        ) as table:
            heading = table.row()
            heading.cell("")
            heading.cell("Requirement")
            heading.cell("References / Notes")
            for export_row in rows:
                row = table.row()
                text = export_row.item.text
                if export_row.is_fused:
                    text = f"{text}\n{FUSED_TAG}"
                style = fused_style if export_row.is_fused else None
                row.cell("[ ]")
                row.cell(self._text(text), style=style)
                row.cell(self._text(" ".join(export_row.item.references)), style=style)
        pdf.ln(5)


def render_checklist_pdf(document: ExportDocument, font_path: Optional[Path] = None) -> bytes:
    return ChecklistRenderer(font_path=font_path).render(document)
