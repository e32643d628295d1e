from __future__ import annotations

import io
from datetime import date
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from docx import Document
from docx.enum.style import WD_STYLE_TYPE
from pypdf import PdfWriter

from controldoc.config import Settings
from controldoc.storage import StorageLayout
from controldoc.types import ControlCopyInfo, DocumentMetadata


COMPANY_NAME = 'Acme Food Dyes and Chemicals Limited'
TODAY = date(2026, 10, 19)


def build_docx(path: Path) -> Path:
    doc = Document()
    if 'Header' not in [style.name for style in doc.styles]:
        doc.styles.add_style('Header', WD_STYLE_TYPE.PARAGRAPH)

    doc.add_paragraph('Standard Operating Procedure', style='Header')
    doc.add_heading('Purpose', level=1)
    intro = doc.add_paragraph('This procedure covers ')
    intro.add_run('incoming inspection').bold = True
    intro.add_run(' of raw materials.')
    doc.add_paragraph('')
    doc.add_heading('Scope', level=2)
    doc.add_paragraph('Applies to all dye lots.', style='List Bullet')
    doc.add_paragraph('Applies to all solvent lots.', style='List Bullet')
    doc.add_heading('Storage', level=3)
    doc.add_paragraph('Keep below 25 °C ≤ limits & away from <light>.')

    table = doc.add_table(rows=2, cols=2)
    table.cell(0, 0).text = 'Parameter'
    table.cell(0, 1).text = 'Limit'
    table.cell(1, 0).text = 'Moisture'
    table.cell(1, 1).text = '0.5 %'

    section = doc.sections[0]
    section.header.paragraphs[0].text = 'ACME QMS HEADER'
    section.footer.paragraphs[0].text = 'Confidential - internal use'

    doc.save(str(path))
    return path


@pytest.fixture()
def sample_docx(tmp_path: Path) -> Path:
    return build_docx(tmp_path / 'QC-SOP-001.docx')


@pytest.fixture()
def long_docx(tmp_path: Path) -> Path:
    doc = Document()
    for index in range(1, 121):
        doc.add_paragraph(f'Step {index}: record the batch reading and sign the log sheet.')
    path = tmp_path / 'long.docx'
    doc.save(str(path))
    return path


@pytest.fixture()
def corrupt_file(tmp_path: Path) -> Path:
    path = tmp_path / 'corrupt.docx'
    path.write_bytes(b'\x00\x01not a word document at all\xff' * 8)
    return path


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        data_dir=tmp_path,
        company_name=COMPANY_NAME,
        chromium_executable_path=None,
    )


@pytest.fixture()
def layout(tmp_path: Path) -> StorageLayout:
    return StorageLayout(
        uploads_dir=tmp_path / 'uploads',
        pdfs_dir=tmp_path / 'pdfs',
        events_path=tmp_path / 'pdfs' / 'events.jsonl',
    )


@pytest.fixture()
def metadata() -> DocumentMetadata:
    return DocumentMetadata(
        doc_name='Incoming Material Inspection',
        doc_number='QC-SOP-001',
        revision_no=2,
        status='approved',
    )


@pytest.fixture()
def control_copy() -> ControlCopyInfo:
    return ControlCopyInfo(
        user_id='user-7',
        user_full_name='J. Smith',
        control_copy_number=3,
        date='19/10/2026',
    )


@pytest.fixture()
def blank_pdf_bytes() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=595, height=842)
    writer.add_blank_page(width=595, height=842)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture()
def fake_playwright(blank_pdf_bytes: bytes):
    """Patch Playwright so the Chromium renderer runs without a browser.

    Yields the driver session, browser and page mocks; configure side effects on them
    to simulate engine failures.
    """
    with patch('controldoc.report.chromium_pdf.sync_playwright') as factory:
        driver = MagicMock(name='playwright')
        session = factory.return_value
        session.__enter__.return_value = driver
        browser = driver.chromium.launch.return_value
        page = browser.new_page.return_value
        page.pdf.return_value = blank_pdf_bytes
        yield SimpleNamespace(factory=factory, session=session, driver=driver, browser=browser, page=page)
