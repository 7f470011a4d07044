"""
Certificate renderer.

Builds the A4 transcript PDF with ReportLab. Layout, top to bottom:

- institution header and transcript title (continuation pages get a short
  header)
- student identity block
- one section per academic record, ascending by semester, with SGPA/CGPA
  and every populated subject/mark pair
- on the last page: QR code for the public verification URL, the full
  verification code as text, instructions, issuing office and the
  "Generated on" timestamp

Records that do not fit on a page continue on the next one. Every page
footer repeats the verification code so a single printed page can still be
verified without a scanner.

Output is byte-for-byte deterministic for identical inputs, code and
timestamp (``invariant`` canvas, uncompressed page streams).
"""

import io
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from reportlab.graphics import renderPDF
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from transcript_engine.codes.generator import generate_verification_code
from transcript_engine.common.config import TranscriptSettings
from transcript_engine.common.exceptions import RenderFailureError
from transcript_engine.rendering.storage import PDF_CONTENT_TYPE

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN_X = 50
LINE_HEIGHT = 20
# Content never goes below this line; the verification block and footer live underneath.
CONTENT_FLOOR = 210
FOOTER_Y = 30
QR_SIZE = 90

HEADER_COLOR = colors.Color(0.02, 0.23, 0.47)
GOLD_COLOR = colors.Color(0.85, 0.65, 0.13)
WATERMARK_COLOR = colors.Color(0.9, 0.9, 0.9, alpha=0.35)
MUTED_COLOR = colors.Color(0.4, 0.4, 0.4)


@dataclass
class RenderedCertificate:
    """A rendered transcript and the verification code printed on it."""

    verification_code: str
    content: bytes
    generated_at: datetime
    page_count: int
    content_type: str = PDF_CONTENT_TYPE


def _subjects(record: Any) -> list[tuple[str, Any]]:
    pairs = []
    for subject in record.subjects or []:
        name, mark = subject.get("name"), subject.get("mark")
        if name and mark is not None:
            pairs.append((name, mark))
    return pairs


def _record_height(record: Any) -> float:
    return LINE_HEIGHT + len(_subjects(record)) * LINE_HEIGHT * 0.9 + LINE_HEIGHT * 0.5


class CertificateRenderer:
    """Render transcripts bound to a fresh verification code."""

    def __init__(self, settings: TranscriptSettings):
        self.settings = settings

    def issue(
        self,
        student: Any,
        records: Iterable[Any],
        generated_at: datetime | None = None,
    ) -> RenderedCertificate:
        """Draw a new verification code and render the transcript around it."""
        code = generate_verification_code()
        return self.render_pdf(student, records, code, generated_at=generated_at)

    def render_pdf(
        self,
        student: Any,
        records: Iterable[Any],
        verification_code: str,
        generated_at: datetime | None = None,
    ) -> RenderedCertificate:
        generated_at = generated_at or datetime.now(timezone.utc)
        if generated_at.tzinfo is None:
            generated_at = generated_at.replace(tzinfo=timezone.utc)
        generated_at = generated_at.astimezone(timezone.utc)
        ordered = sorted(records, key=lambda r: r.semester)
        try:
            content, pages = self._draw(student, ordered, verification_code, generated_at)
        except Exception as exc:
            logger.exception("Failed to render transcript for %s", getattr(student, "usn", "?"))
            raise RenderFailureError(f"Could not assemble transcript: {exc}") from exc
        return RenderedCertificate(
            verification_code=verification_code,
            content=content,
            generated_at=generated_at,
            page_count=pages,
        )

    # ── Drawing ──

    def _draw(
        self,
        student: Any,
        records: list[Any],
        code: str,
        generated_at: datetime,
    ) -> tuple[bytes, int]:
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=A4, invariant=1, pageCompression=0)
        c.setTitle(f"{self.settings.institution_name} - {self.settings.transcript_title}")
        c.setAuthor(self.settings.institution_name)
        c.setSubject(f"Academic transcript of {student.usn}")

        self._decorate_page(c, code)
        y = self._draw_header(c)
        y = self._draw_student(c, student, y)

        y -= LINE_HEIGHT
        c.setFont("Times-Bold", 14)
        c.setFillColor(HEADER_COLOR)
        c.drawString(MARGIN_X, y, "Academic Performance:")
        y -= LINE_HEIGHT * 1.5

        if not records:
            c.setFont("Helvetica-Oblique", 11)
            c.setFillColor(colors.black)
            c.drawString(MARGIN_X + 20, y, "No academic records on file.")
            y -= LINE_HEIGHT

        for record in records:
            if y - _record_height(record) < CONTENT_FLOOR:
                c.showPage()
                self._decorate_page(c, code)
                y = self._draw_continuation_header(c)
            y = self._draw_record(c, record, y)

        self._draw_verification_block(c, code, generated_at)
        pages = c.getPageNumber()
        c.showPage()
        c.save()
        return buffer.getvalue(), pages

    def _decorate_page(self, c: canvas.Canvas, code: str) -> None:
        """Watermark and footer, drawn on every page."""
        c.saveState()
        c.setFillColor(WATERMARK_COLOR)
        c.setFont("Times-Bold", 40)
        c.translate(PAGE_WIDTH / 2, PAGE_HEIGHT / 2)
        c.rotate(45)
        c.drawCentredString(0, 0, f"{self.settings.institution_name} - VERIFIED COPY")
        c.restoreState()

        c.setFont("Helvetica", 8)
        c.setFillColor(MUTED_COLOR)
        c.drawString(MARGIN_X, FOOTER_Y, f"Verification Code: {code}")
        c.drawRightString(PAGE_WIDTH - MARGIN_X, FOOTER_Y, f"Page {c.getPageNumber()}")

    def _draw_header(self, c: canvas.Canvas) -> float:
        c.setFont("Times-Bold", 28)
        c.setFillColor(HEADER_COLOR)
        c.drawString(MARGIN_X, PAGE_HEIGHT - 60, self.settings.institution_name)
        c.setFont("Times-Roman", 18)
        c.setFillColor(GOLD_COLOR)
        c.drawString(MARGIN_X, PAGE_HEIGHT - 90, self.settings.transcript_title)
        return PAGE_HEIGHT - 140

    def _draw_continuation_header(self, c: canvas.Canvas) -> float:
        c.setFont("Times-Bold", 14)
        c.setFillColor(HEADER_COLOR)
        c.drawString(
            MARGIN_X, PAGE_HEIGHT - 50,
            f"{self.settings.institution_name} - {self.settings.transcript_title} (continued)",
        )
        return PAGE_HEIGHT - 90

    def _draw_student(self, c: canvas.Canvas, student: Any, y: float) -> float:
        c.setFont("Times-Bold", 14)
        c.setFillColor(HEADER_COLOR)
        c.drawString(MARGIN_X, y, "Student Information:")
        y -= LINE_HEIGHT * 1.5

        c.setFont("Helvetica", 11)
        c.setFillColor(colors.black)
        for line in (
            f"Name: {student.name}",
            f"USN: {student.usn}",
            f"Program: {student.major}",
            f"Email: {student.email}",
        ):
            c.drawString(MARGIN_X + 20, y, line)
            y -= LINE_HEIGHT
        return y

    def _draw_record(self, c: canvas.Canvas, record: Any, y: float) -> float:
        c.setFont("Times-Bold", 11)
        c.setFillColor(HEADER_COLOR)
        c.drawString(
            MARGIN_X + 20, y,
            f"Semester {record.semester} - SGPA: {float(record.sgpa):.2f} | "
            f"CGPA: {float(record.cgpa):.2f}",
        )
        y -= LINE_HEIGHT

        c.setFont("Helvetica", 10)
        c.setFillColor(colors.Color(0.2, 0.2, 0.2))
        for name, mark in _subjects(record):
            c.drawString(MARGIN_X + 40, y, f"• {name} - {mark}")
            y -= LINE_HEIGHT * 0.9
        return y - LINE_HEIGHT * 0.5

    def _draw_verification_block(
        self, c: canvas.Canvas, code: str, generated_at: datetime,
    ) -> None:
        url = self.settings.verification_url(code)

        widget = QrCodeWidget(url)
        x1, y1, x2, y2 = widget.getBounds()
        drawing = Drawing(
            QR_SIZE, QR_SIZE,
            transform=[QR_SIZE / (x2 - x1), 0, 0, QR_SIZE / (y2 - y1), 0, 0],
        )
        drawing.add(widget)
        renderPDF.draw(drawing, c, PAGE_WIDTH - MARGIN_X - QR_SIZE, 70)

        c.setFillColor(colors.black)
        c.setFont("Times-Bold", 12)
        c.drawString(MARGIN_X, 180, "Verify this transcript")
        c.setFont("Helvetica", 9)
        c.drawString(MARGIN_X, 164, "Scan the QR code, or visit the address below and enter the code:")
        c.drawString(MARGIN_X, 150, self.settings.verification_url_base)
        c.setFont("Helvetica-Bold", 10)
        c.drawString(MARGIN_X, 132, f"Verification Code: {code}")

        c.setFont("Times-Roman", 10)
        c.drawString(MARGIN_X, 105, self.settings.issuing_office)
        c.setFont("Helvetica", 9)
        c.setFillColor(MUTED_COLOR)
        c.drawString(
            MARGIN_X, 90,
            f"Generated on {generated_at.strftime('%d %B %Y, %H:%M UTC')}",
        )
