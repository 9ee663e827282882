"""Summary exports: Excel workbook, Notion-ready markdown and PDF."""

import io
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from xml.sax.saxutils import escape

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas
from reportlab.platypus import BaseDocTemplate, Frame, PageTemplate, Paragraph, Spacer, Table, TableStyle
from sqlalchemy.ext.asyncio import AsyncSession

from summaryscribe.domain.summary import Summary
from summaryscribe.errors import NotFoundOrForbidden, ScribeError
from summaryscribe.infrastructure.database import best_effort
from summaryscribe.repositories.activity_repo import ExportRepository, NotificationRepository
from summaryscribe.repositories.summary_repo import SummaryRepository

logger = logging.getLogger(__name__)


class ExportFormat(StrEnum):
    EXCEL = "excel"
    NOTION = "notion"
    PDF = "pdf"


MEDIA_TYPES = {
    ExportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ExportFormat.NOTION: "text/markdown; charset=utf-8",
    ExportFormat.PDF: "application/pdf",
}
EXTENSIONS = {ExportFormat.EXCEL: "xlsx", ExportFormat.NOTION: "md", ExportFormat.PDF: "pdf"}
LABELS = {ExportFormat.EXCEL: "Excel", ExportFormat.NOTION: "Notion", ExportFormat.PDF: "PDF"}

HEADER_FILL = PatternFill(start_color="E6F3FF", end_color="E6F3FF", fill_type="solid")
THIN = Side(style="thin")
THIN_BORDER = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)
CONTENT_BLOCK_ROWS = 21

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9 _.-]+")
_BULLET = re.compile(r"^(?:•\s*|[-*]\s+)")
_NUMBERED = re.compile(r"^\d+\.")
_HEADING = re.compile(r"^#+\s*")


@dataclass
class ExportFile:
    content: bytes
    filename: str
    media_type: str


def safe_filename(title: str | None, extension: str) -> str:
    """Filename derived from the title with unsafe characters replaced."""
    stem = _UNSAFE_FILENAME.sub("_", title or "").strip(" ._")[:100] or "summary"
    return f"{stem}.{extension}"


def _format_date(value: datetime | None) -> str:
    if value is None:
        return "N/A"
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%d %H:%M UTC")


def render_excel(summary: Summary) -> bytes:
    """Two-sheet workbook: Summary fields, plus Metadata when there is any."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Summary"
    ws.column_dimensions["A"].width = 20
    ws.column_dimensions["B"].width = 80

    ws.append(["Field", "Value"])
    for cell in ws[1]:
        cell.font = Font(bold=True, size=12)
        cell.fill = HEADER_FILL
        cell.border = THIN_BORDER

    rows = [
        ("Title", summary.title or "Untitled Summary"),
        ("Created Date", _format_date(summary.created_at)),
        ("Source Type", str(summary.source_type)),
        ("File Name", summary.file_name or "N/A"),
        ("Organization", summary.organization_id or "Personal"),
        ("", ""),
        ("Summary Content", ""),
    ]
    for field_name, value in rows:
        ws.append([field_name, value])
        row_num = ws.max_row
        ws.cell(row=row_num, column=1).font = Font(bold=True)
        for col in (1, 2):
            ws.cell(row=row_num, column=col).border = THIN_BORDER

    start = ws.max_row + 1
    ws.merge_cells(start_row=start, start_column=1, end_row=start + CONTENT_BLOCK_ROWS - 1, end_column=2)
    content_cell = ws.cell(row=start, column=1, value=summary.content or "No content available")
    content_cell.alignment = Alignment(vertical="top", horizontal="left", wrap_text=True)
    content_cell.border = THIN_BORDER

    items = summary.typed_metadata.display_items()
    if items:
        meta = wb.create_sheet("Metadata")
        meta.column_dimensions["A"].width = 25
        meta.column_dimensions["B"].width = 30
        meta.append(["Property", "Value"])
        for cell in meta[1]:
            cell.font = Font(bold=True, size=12)
            cell.fill = HEADER_FILL
        for label, value in items:
            meta.append([label, value])
        for row in meta.iter_rows(min_row=1, max_row=meta.max_row, max_col=2):
            for cell in row:
                cell.border = THIN_BORDER
            row[0].font = Font(bold=True, size=row[0].font.size or 11)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def normalize_markdown_line(line: str) -> str:
    trimmed = line.strip()
    if not trimmed:
        return ""
    if _BULLET.match(trimmed):
        return f"- {_BULLET.sub('', trimmed, count=1).strip()}"
    if _NUMBERED.match(trimmed):
        return trimmed
    if trimmed.startswith("#"):
        return f"### {_HEADING.sub('', trimmed, count=1).strip()}"
    return trimmed


def render_notion_markdown(summary: Summary, now: datetime | None = None) -> str:
    """Markdown document ready for Notion's import."""
    now = now or datetime.now(UTC)
    parts = [
        f"# {summary.title or 'Untitled Summary'}",
        "",
        "## Document Information",
        "",
        f"- **Created:** {_format_date(summary.created_at)}",
        f"- **Source Type:** {summary.source_type}",
        f"- **File Name:** {summary.file_name or 'N/A'}",
        "",
        "---",
        "",
        "## Summary",
        "",
    ]
    body = [normalize_markdown_line(line) for line in (summary.content or "").splitlines()]
    parts.append("\n".join(line for line in body if line) or "No content available")

    items = summary.typed_metadata.display_items()
    if items:
        parts += ["", "---", "", "## Technical Metadata", ""]
        parts += [f"- **{label}:** {value}" for label, value in items]

    parts += [
        "",
        "---",
        "",
        f"*Generated by Slack Summary Scribe on {_format_date(now)}*",
        "*Import this file into Notion by copying and pasting the content "
        "or using Notion's import feature.*",
        "",
    ]
    return "\n".join(parts)


def render_pdf(summary: Summary, now: datetime | None = None) -> bytes:
    """Single-document PDF: title, details table, content, page footer."""
    now = now or datetime.now(UTC)
    base = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "SS_Title", parent=base["Title"], fontSize=22, leading=26, alignment=TA_LEFT,
        spaceAfter=10, textColor=colors.HexColor("#111827"),
    )
    heading_style = ParagraphStyle(
        "SS_Heading", parent=base["Heading3"], fontSize=13, leading=17,
        spaceBefore=10, spaceAfter=6, textColor=colors.HexColor("#111827"),
    )
    body_style = ParagraphStyle(
        "SS_Body", parent=base["BodyText"], fontSize=10.5, leading=14,
        textColor=colors.HexColor("#111827"), spaceAfter=6,
    )
    note_style = ParagraphStyle(
        "SS_Note", parent=base["BodyText"], fontSize=9, leading=12,
        textColor=colors.HexColor("#6B7280"),
    )

    def _footer(canv: canvas.Canvas, doc):
        canv.setFont("Helvetica", 9)
        canv.setFillColor(colors.HexColor("#6B7280"))
        canv.drawString(0.75 * inch, 0.5 * inch, "Generated by Slack Summary Scribe")
        canv.drawRightString(7.75 * inch, 0.5 * inch, f"Page {doc.page}")

    buffer = io.BytesIO()
    doc = BaseDocTemplate(buffer, pagesize=LETTER, title=summary.title or "Summary")
    frame = Frame(0.75 * inch, 0.75 * inch, 7.0 * inch, 9.5 * inch, showBoundary=0)
    doc.addPageTemplates([PageTemplate(id="main", frames=[frame], onPage=_footer)])

    details = [
        ["Created", _format_date(summary.created_at)],
        ["Source Type", str(summary.source_type)],
        ["File Name", summary.file_name or "N/A"],
    ] + [[label, value] for label, value in summary.typed_metadata.display_items()]
    table = Table(
        [[Paragraph(escape(k), body_style), Paragraph(escape(v), body_style)] for k, v in details],
        colWidths=[1.8 * inch, 5.2 * inch],
    )
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#E6F3FF")),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#D1D5DB")),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )

    story = [Paragraph(escape(summary.title or "Untitled Summary"), title_style), table]
    story.append(Paragraph("Summary", heading_style))
    for line in (summary.content or "No content available").splitlines():
        text = normalize_markdown_line(line)
        if not text:
            story.append(Spacer(1, 4))
        elif text.startswith("### "):
            story.append(Paragraph(escape(text[4:]), heading_style))
        elif text.startswith("- "):
            story.append(Paragraph(f"• {escape(text[2:])}", body_style))
        else:
            story.append(Paragraph(escape(text), body_style))
    story.append(Spacer(1, 12))
    story.append(Paragraph(f"Exported {_format_date(now)}", note_style))

    doc.build(story)
    return buffer.getvalue()


class ExporterService:
    """Ownership-checked exports with an audit row per attempt."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.summaries = SummaryRepository(session)
        self.exports = ExportRepository(session)
        self.notifications = NotificationRepository(session)

    async def export(
        self,
        summary_id: str,
        user_id: str,
        fmt: ExportFormat,
        organization_id: str | None = None,
    ) -> ExportFile:
        """Render a summary in the requested format.

        Raises:
            NotFoundOrForbidden: the summary is not the caller's
            ScribeError: rendering failed (a failed export row is recorded)
        """
        fmt = ExportFormat(fmt)
        row = await self.summaries.get_by_id(summary_id, user_id)
        if row is None:
            raise NotFoundOrForbidden("Summary not found or access denied")
        summary = Summary.from_model(row)
        organization_id = organization_id or summary.organization_id

        try:
            if fmt is ExportFormat.EXCEL:
                content = render_excel(summary)
            elif fmt is ExportFormat.NOTION:
                content = render_notion_markdown(summary).encode("utf-8")
            else:
                content = render_pdf(summary)
        except Exception as e:
            logger.error(f"{LABELS[fmt]} export failed for summary {summary_id}: {e}", exc_info=True)
            logged = await best_effort(
                self.session,
                "log failed export",
                lambda: self.exports.log(
                    user_id, summary_id, fmt, "failed",
                    organization_id=organization_id, error_message=str(e),
                ),
            )
            if logged:
                # The request session is rolled back once the error propagates
                await self._commit_failure_record()
            raise ScribeError(f"Failed to generate {LABELS[fmt]} export") from e

        export_file = ExportFile(
            content=content,
            filename=safe_filename(summary.title, EXTENSIONS[fmt]),
            media_type=MEDIA_TYPES[fmt],
        )
        await best_effort(
            self.session,
            "log export",
            lambda: self.exports.log(
                user_id, summary_id, fmt, "completed", organization_id=organization_id
            ),
        )
        await best_effort(
            self.session,
            "create export notification",
            lambda: self.notifications.create(
                user_id,
                "export_complete",
                f"{LABELS[fmt]} Export Ready",
                f'Your {LABELS[fmt]} export for "{summary.title}" is ready!',
                data={
                    "summary_id": summary_id,
                    "export_type": str(fmt),
                    "file_name": export_file.filename,
                },
                organization_id=organization_id,
            ),
        )
        logger.info(f"Exported summary {summary_id} as {fmt}")
        return export_file

    async def _commit_failure_record(self) -> None:
        try:
            await self.session.commit()
        except Exception as e:
            logger.warning(f"Failed to commit failed export record: {e}")
            await self.session.rollback()
