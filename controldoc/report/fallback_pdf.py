from __future__ import annotations

import html
import io
import logging
import re
import textwrap
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from pathlib import Path

import reportlab
from reportlab.lib import colors
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen.canvas import Canvas

from controldoc.errors import FallbackRenderError
from controldoc.report.base import DocumentRenderer
from controldoc.report.header_footer import HeaderFields, header_lines, resolve_header_fields
from controldoc.types import ControlCopyInfo, DocumentMetadata, RenderDocument, RenderEngine


logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = 595.28, 841.89
LEFT_X = 40
BOX_WIDTH = PAGE_WIDTH - 80
BODY_X = 50
BODY_WIDTH = PAGE_WIDTH - 2 * BODY_X
BODY_TOP_OFFSET = 170

# Body text is sanitised to printable ASCII and drawn with the standard fonts.
FONT = 'Helvetica'
FONT_BOLD = 'Helvetica-Bold'

# Header, footer and stamp values are drawn verbatim, so they need a Unicode
# TrueType font. reportlab ships Bitstream Vera, which is always present.
_BUNDLED_FONT_DIR = Path(reportlab.__file__).resolve().parent / 'fonts'
UNICODE_FONT_CANDIDATES: tuple[tuple[Path, Path], ...] = (
    (
        Path('/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf'),
        Path('/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf'),
    ),
    (
        Path('/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf'),
        Path('/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf'),
    ),
    (_BUNDLED_FONT_DIR / 'Vera.ttf', _BUNDLED_FONT_DIR / 'VeraBd.ttf'),
)

_NON_PRINTABLE = re.compile(r'[^\x20-\x7E]')
_BLOCK_END_TAGS = re.compile(r'<\s*(br|/p|/div|/h[1-6]|/li|/tr|/table)\b[^>]*>', re.IGNORECASE)
_ANY_TAG = re.compile(r'<[^>]+>')


@dataclass(frozen=True)
class HeaderFonts:
    regular: str
    bold: str


def _register_ttf_font(font_name: str, font_path: Path) -> bool:
    if font_name in pdfmetrics.getRegisteredFontNames():
        return True

    try:
        pdfmetrics.registerFont(TTFont(font_name, str(font_path)))
        return True
    except Exception as exc:
        logger.warning('Failed to register PDF font %s from %s: %s', font_name, font_path, exc)
        return False


@lru_cache(maxsize=8)
def resolve_header_fonts(
    regular_path: str | None = None,
    bold_path: str | None = None,
) -> HeaderFonts:
    candidates = list(UNICODE_FONT_CANDIDATES)
    if regular_path:
        candidates.insert(0, (Path(regular_path), Path(bold_path or regular_path)))

    for regular, bold in candidates:
        if not regular.is_file():
            continue
        regular_name = f'controldoc-{regular.stem}'
        if not _register_ttf_font(regular_name, regular):
            continue
        bold_name = f'controldoc-{bold.stem}'
        if not (bold.is_file() and _register_ttf_font(bold_name, bold)):
            bold_name = regular_name
        logger.debug('Fallback header font: %s / %s', regular_name, bold_name)
        return HeaderFonts(regular=regular_name, bold=bold_name)

    logger.warning('No Unicode TrueType font available; header values use %s', FONT)
    return HeaderFonts(regular=FONT, bold=FONT_BOLD)


def printable_ascii(value: str) -> str:
    """Replace everything outside printable ASCII so standard fonts can draw it."""
    return _NON_PRINTABLE.sub(' ', value or '')


def markup_to_text(markup: str | None) -> str:
    if not markup:
        return ''
    text = _BLOCK_END_TAGS.sub('\n', markup)
    text = _ANY_TAG.sub('', text)
    return html.unescape(text).strip()


def wrap_body_lines(text: str, width: int) -> list[str]:
    lines: list[str] = []
    for paragraph in (text or '').splitlines():
        cleaned = printable_ascii(paragraph).strip()
        if not cleaned:
            continue
        lines.extend(textwrap.wrap(cleaned, width=width) or [cleaned])
    return lines


def fit_to_width(line: str, font_name: str, font_size: float, max_width: float) -> list[str]:
    """Split ``line`` so that no piece is wider than ``max_width`` points."""
    if pdfmetrics.stringWidth(line, font_name, font_size) <= max_width:
        return [line]
    pieces: list[str] = []
    for piece in simpleSplit(line, font_name, font_size, max_width) or [line]:
        # simpleSplit keeps single words whole; cut those by glyph width.
        while len(piece) > 1 and pdfmetrics.stringWidth(piece, font_name, font_size) > max_width:
            cut = len(piece) - 1
            while cut > 1 and pdfmetrics.stringWidth(piece[:cut], font_name, font_size) > max_width:
                cut -= 1
            pieces.append(piece[:cut])
            piece = piece[cut:]
        pieces.append(piece)
    return pieces


class FallbackRenderer(DocumentRenderer):
    """Deterministic single-pass plain-text compositor on a reportlab canvas.

    The header is redrawn on every page. Pages are laid out in one pass, so the
    page indicator carries the current page only; the total is not known while
    drawing.
    """

    engine = RenderEngine.fallback

    def __init__(
        self,
        *,
        company_name: str,
        wrap_width: int = 95,
        font_size: int = 10,
        line_height: int = 15,
        bottom_threshold: int = 150,
        header_font_path: str | None = None,
        header_bold_font_path: str | None = None,
        today: date | None = None,
    ):
        self.company_name = company_name
        self.wrap_width = int(wrap_width)
        self.font_size = font_size
        self.line_height = line_height
        self.bottom_threshold = bottom_threshold
        self.header_font_path = header_font_path
        self.header_bold_font_path = header_bold_font_path
        self.today = today

    def render(
        self,
        document: RenderDocument,
        metadata: DocumentMetadata,
        control_copy: ControlCopyInfo | None = None,
    ) -> bytes:
        try:
            return self._compose(document, metadata, control_copy)
        except Exception as exc:
            raise FallbackRenderError(f'Fallback renderer failed: {type(exc).__name__}: {exc}') from exc

    def body_lines(self, document: RenderDocument, metadata: DocumentMetadata) -> list[str]:
        sections = [
            markup_to_text(metadata.header_info),
            document.text,
            markup_to_text(metadata.content),
            markup_to_text(metadata.footer_info),
        ]
        text = '\n'.join(section for section in sections if section)
        lines: list[str] = []
        for line in wrap_body_lines(text, self.wrap_width):
            lines.extend(fit_to_width(line, FONT, self.font_size, BODY_WIDTH))
        return lines

    def _compose(
        self,
        document: RenderDocument,
        metadata: DocumentMetadata,
        control_copy: ControlCopyInfo | None,
    ) -> bytes:
        fields = resolve_header_fields(
            metadata,
            control_copy,
            company_name=self.company_name,
            today=self.today,
        )
        fonts = resolve_header_fonts(self.header_font_path, self.header_bold_font_path)
        lines = self.body_lines(document, metadata)

        buffer = io.BytesIO()
        canvas = Canvas(buffer, pagesize=(PAGE_WIDTH, PAGE_HEIGHT))
        canvas.setTitle(f'{metadata.doc_number} - {metadata.doc_name}')
        canvas.setAuthor(fields.prepared_by)
        canvas.setProducer('controldoc fallback renderer')

        page_number = 1
        self._draw_page_frame(canvas, fields, metadata, fonts, page_number)
        y = PAGE_HEIGHT - BODY_TOP_OFFSET

        canvas.setFont(fonts.bold, 12)
        for title_line in simpleSplit(metadata.doc_name.upper(), fonts.bold, 12, BODY_WIDTH)[:2]:
            canvas.drawCentredString(PAGE_WIDTH / 2, y, title_line)
            y -= self.line_height
        y -= self.line_height

        for line in lines:
            if y < self.bottom_threshold:
                canvas.showPage()
                page_number += 1
                self._draw_page_frame(canvas, fields, metadata, fonts, page_number)
                y = PAGE_HEIGHT - BODY_TOP_OFFSET
            canvas.setFont(FONT, self.font_size)
            canvas.drawString(BODY_X, y, line)
            y -= self.line_height

        canvas.showPage()
        canvas.save()
        logger.info('Fallback renderer laid out %d line(s) on %d page(s)', len(lines), page_number)
        return buffer.getvalue()

    def _draw_page_frame(
        self,
        canvas: Canvas,
        fields: HeaderFields,
        metadata: DocumentMetadata,
        fonts: HeaderFonts,
        page_number: int,
    ) -> None:
        canvas.saveState()
        self._draw_header(canvas, fields, metadata, fonts, page_number)
        self._draw_footer(canvas, fields, fonts)
        canvas.restoreState()

    def _draw_header(
        self,
        canvas: Canvas,
        fields: HeaderFields,
        metadata: DocumentMetadata,
        fonts: HeaderFonts,
        page_number: int,
    ) -> None:
        top = PAGE_HEIGHT
        canvas.setFillColor(colors.black)
        canvas.setStrokeColor(colors.black)

        # Name/number banner above the box; the HTML header has no equivalent
        # because Chromium keeps pagination context itself.
        canvas.setFont(fonts.bold, 9)
        canvas.drawString(
            45,
            top - 30,
            f'Document Name: {metadata.doc_name[:60]} | Document Number: {metadata.doc_number[:30]}',
        )

        canvas.setLineWidth(1)
        canvas.rect(LEFT_X, top - 135, BOX_WIDTH, 95)
        canvas.line(LEFT_X, top - 66, LEFT_X + BOX_WIDTH, top - 66)
        canvas.line(LEFT_X, top - 101, LEFT_X + BOX_WIDTH, top - 101)

        company, issue_first, issue_second, identity = header_lines(fields, page_label=f'Page {page_number}')
        canvas.setFont(fonts.bold, 11)
        canvas.drawCentredString(PAGE_WIDTH / 2, top - 58, company[:70])

        canvas.setFont(fonts.regular, 8)
        canvas.drawString(45, top - 80, issue_first)
        canvas.drawString(45, top - 93, issue_second)

        for offset, text in enumerate(simpleSplit(identity, fonts.regular, 8, BOX_WIDTH - 10)[:2]):
            canvas.drawString(45, top - 114 - offset * 11, text)

    def _draw_footer(self, canvas: Canvas, fields: HeaderFields, fonts: HeaderFonts) -> None:
        bottom = 60
        height = 62
        canvas.setLineWidth(1)
        canvas.rect(LEFT_X, bottom, BOX_WIDTH, height)

        x = LEFT_X
        shares = (0.20, 0.20, 0.35, 0.25)
        for (label, value), share in zip(fields.approval_row(), shares):
            width = BOX_WIDTH * share
            if x > LEFT_X:
                canvas.line(x, bottom, x, bottom + height)
            canvas.setFont(fonts.bold, 8)
            canvas.drawString(x + 4, bottom + height - 12, label)
            value_font = fonts.bold if label == 'Status' else fonts.regular
            canvas.setFont(value_font, 8)
            for offset, text in enumerate(simpleSplit(value, value_font, 8, width - 8)[:3]):
                canvas.drawString(x + 4, bottom + height - 32 - offset * 10, text)
            x += width

        if fields.control_copy_banner:
            banner_y = bottom - 18
            canvas.setDash(2, 2)
            canvas.setStrokeColor(colors.HexColor('#FFC107'))
            canvas.setFillColor(colors.HexColor('#FFF3CD'))
            canvas.rect(LEFT_X, banner_y - 4, BOX_WIDTH, 13, stroke=1, fill=1)
            canvas.setDash()
            canvas.setFillColor(colors.HexColor('#856404'))
            canvas.setFont(fonts.bold, 7)
            canvas.drawCentredString(PAGE_WIDTH / 2, banner_y, fields.control_copy_banner)
