from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Iterable

from docx import Document
from docx.table import Table
from docx.text.hyperlink import Hyperlink
from docx.text.paragraph import Paragraph

from controldoc.errors import ExtractionError


logger = logging.getLogger(__name__)

# Paragraph style name -> heading tag. Every other style renders as <p>.
HEADING_STYLE_MAP: dict[str, str] = {
    'Header': 'h1',
    'Heading 1': 'h1',
    'Heading 2': 'h2',
    'Heading 3': 'h3',
}
TABLE_CSS_CLASS = 'document-table'


@dataclass
class SourceDocument:
    path: Path
    size_bytes: int
    document: Any


@dataclass
class HeaderFooterInfo:
    header_info: str
    footer_info: str


def load_docx(path: Path, *, max_bytes: int | None = None) -> SourceDocument:
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ExtractionError(f'Source file is not readable: {path}: {exc}') from exc

    if not data:
        raise ExtractionError(f'Source file is empty: {path}')
    if max_bytes is not None and len(data) > max_bytes:
        raise ExtractionError(
            f'Source file too large: {len(data)} bytes, max allowed {max_bytes} bytes'
        )

    try:
        document = Document(BytesIO(data))
    except Exception as exc:
        raise ExtractionError(
            f'{path.name} could not be opened as a Word document: {type(exc).__name__}: {exc}'
        ) from exc

    logger.debug('Loaded %s (%d bytes)', path.name, len(data))
    return SourceDocument(path=path, size_bytes=len(data), document=document)


def _style_name(paragraph: Paragraph) -> str:
    return str(getattr(paragraph.style, 'name', '') or '')


def _list_tag(style_name: str) -> str | None:
    if style_name.startswith('List Number'):
        return 'ol'
    if style_name.startswith('List Bullet') or style_name == 'List Paragraph':
        return 'ul'
    return None


def _run_markup(run: Any) -> str:
    text = html.escape(run.text or '')
    if not text:
        return ''
    if run.underline:
        text = f'<u>{text}</u>'
    if run.italic:
        text = f'<em>{text}</em>'
    if run.bold:
        text = f'<strong>{text}</strong>'
    return text


def _paragraph_inline_html(paragraph: Paragraph) -> str:
    parts: list[str] = []
    for item in paragraph.iter_inner_content():
        if isinstance(item, Hyperlink):
            inner = ''.join(_run_markup(run) for run in item.runs)
            address = html.escape(item.url or '', quote=True)
            parts.append(f'<a href="{address}">{inner}</a>' if address else inner)
        else:
            parts.append(_run_markup(item))
    return ''.join(parts)


def _row_cells(row: Any) -> list[tuple[Any, int]]:
    # Horizontally merged cells come back once per grid column; collapse
    # them into a single cell with a colspan.
    cells: list[tuple[Any, int]] = []
    for cell in row.cells:
        if cells and cells[-1][0]._tc is cell._tc:
            cells[-1] = (cells[-1][0], cells[-1][1] + 1)
        else:
            cells.append((cell, 1))
    return cells


def _table_html(table: Table) -> str:
    rows: list[str] = []
    for row in table.rows:
        cells: list[str] = []
        for cell, span in _row_cells(row):
            inner = '\n'.join(_blocks_html(cell.iter_inner_content()))
            span_attr = f' colspan="{span}"' if span > 1 else ''
            cells.append(f'<td{span_attr}>{inner}</td>')
        rows.append('<tr>' + ''.join(cells) + '</tr>')
    return f'<table class="{TABLE_CSS_CLASS}">' + ''.join(rows) + '</table>'


def _blocks_html(blocks: Iterable[Any]) -> list[str]:
    out: list[str] = []
    open_list: str | None = None

    def close_list() -> None:
        nonlocal open_list
        if open_list:
            out.append(f'</{open_list}>')
            open_list = None

    for block in blocks:
        if isinstance(block, Table):
            close_list()
            out.append(_table_html(block))
            continue

        inline = _paragraph_inline_html(block)
        if not inline.strip():
            continue

        style_name = _style_name(block)
        list_tag = _list_tag(style_name)
        if list_tag:
            if open_list != list_tag:
                close_list()
                out.append(f'<{list_tag}>')
                open_list = list_tag
            out.append(f'<li>{inline}</li>')
            continue

        close_list()
        tag = HEADING_STYLE_MAP.get(style_name, 'p')
        out.append(f'<{tag}>{inline}</{tag}>')

    close_list()
    return out


def docx_to_html(source: SourceDocument) -> str:
    return '\n'.join(_blocks_html(source.document.iter_inner_content()))


def _cell_text(cell: Any) -> str:
    return ' '.join(line.strip() for line in (cell.text or '').splitlines() if line.strip())


def _blocks_text(blocks: Iterable[Any]) -> list[str]:
    lines: list[str] = []
    for block in blocks:
        if isinstance(block, Table):
            for row in block.rows:
                texts = [_cell_text(cell) for cell, _ in _row_cells(row)]
                if any(texts):
                    lines.append(' | '.join(texts))
            continue
        text = (block.text or '').strip()
        if text:
            lines.append(text)
    return lines


def docx_to_text(source: SourceDocument) -> str:
    return '\n'.join(_blocks_text(source.document.iter_inner_content()))


def extract_header_footer(source: SourceDocument) -> HeaderFooterInfo:
    """Plain text of the first section's page header and footer."""
    sections = source.document.sections
    if len(sections) == 0:
        return HeaderFooterInfo(header_info='', footer_info='')

    def _text(part: Any) -> str:
        # A linked header on the first section means none is defined; reading
        # its content would add an empty definition to the package.
        if part.is_linked_to_previous:
            return ''
        return '\n'.join(_blocks_text(part.iter_inner_content()))

    section = sections[0]
    return HeaderFooterInfo(
        header_info=_text(section.header),
        footer_info=_text(section.footer),
    )
