from __future__ import annotations

import html
import logging
import time
from datetime import date
from typing import Callable

from playwright.sync_api import sync_playwright

from controldoc.errors import PrimaryRenderError, ResourceCleanupError
from controldoc.report.base import DocumentRenderer
from controldoc.report.header_footer import build_header_footer
from controldoc.types import ControlCopyInfo, DocumentMetadata, RenderDocument, RenderEngine


logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-gpu',
    '--font-render-hinting=none',
]


def wrap_document_html(
    metadata: DocumentMetadata,
    body_html: str,
    *,
    margin_top: str = '160px',
    margin_bottom: str = '180px',
    margin_side: str = '45px',
) -> str:
    title = html.escape(metadata.doc_name.upper())
    header_block = f'<div class="header-info">{metadata.header_info}</div>' if metadata.header_info else ''
    content_block = f'<div style="margin-top: 20px;">{metadata.content}</div>' if metadata.content else ''
    footer_block = f'<div class="footer-info">{metadata.footer_info}</div>' if metadata.footer_info else ''

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <style>
    @page {{ size: A4; margin: {margin_top} {margin_side} {margin_bottom} {margin_side}; }}
    body {{ font-family: 'Segoe UI', Calibri, Arial, sans-serif; margin: 0; padding: 0; color: black; background: white; }}
    .content-body {{ font-size: 11pt; line-height: 1.5; color: black; padding-top: 10px; }}
    .content-body h1.document-title {{ text-align: center; text-decoration: underline; font-size: 14pt; margin-bottom: 25px; font-weight: bold; }}
    .document-table {{ width: 100%; border-collapse: collapse; margin-bottom: 20px; }}
    .document-table td, .document-table th {{ border: 1pt solid black; padding: 8px; }}
  </style>
</head>
<body>
  <div class="content-body">
    {header_block}
    <h1 class="document-title">{title}</h1>
    <div class="document-content">
      {body_html}
    </div>
    {content_block}
    {footer_block}
  </div>
</body>
</html>"""


def _release(resource: str, close: Callable[[], None]) -> None:
    try:
        close()
    except Exception as exc:
        error = ResourceCleanupError(f'Failed to close {resource}: {type(exc).__name__}: {exc}')
        logger.warning('%s', error, exc_info=exc)


class ChromiumRenderer(DocumentRenderer):
    """Full-fidelity renderer: styled HTML printed by headless Chromium.

    Chromium fills the ``pageNumber``/``totalPages`` placeholders of the header
    template while laying out the PDF, so page counts are always true.
    """

    engine = RenderEngine.primary

    def __init__(
        self,
        *,
        company_name: str,
        executable_path: str | None = None,
        timeout_ms: int = 30000,
        margin_top: str = '160px',
        margin_bottom: str = '180px',
        margin_side: str = '45px',
        today: date | None = None,
    ):
        self.company_name = company_name
        self.executable_path = executable_path
        self.timeout_ms = int(timeout_ms)
        self.margin_top = margin_top
        self.margin_bottom = margin_bottom
        self.margin_side = margin_side
        self.today = today

    def render(
        self,
        document: RenderDocument,
        metadata: DocumentMetadata,
        control_copy: ControlCopyInfo | None = None,
    ) -> bytes:
        header_footer = build_header_footer(
            metadata,
            control_copy,
            company_name=self.company_name,
            today=self.today,
        )
        page_html = wrap_document_html(
            metadata,
            document.html,
            margin_top=self.margin_top,
            margin_bottom=self.margin_bottom,
            margin_side=self.margin_side,
        )

        try:
            return self._print(page_html, header_footer.header_html, header_footer.footer_html)
        except Exception as exc:
            raise PrimaryRenderError(f'Chromium render failed: {type(exc).__name__}: {exc}') from exc

    def _print(self, page_html: str, header_html: str, footer_html: str) -> bytes:
        started = time.time()
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(
                headless=True,
                executable_path=self.executable_path or None,
                args=CHROMIUM_ARGS,
                timeout=self.timeout_ms,
            )
            try:
                logger.info('Chromium launched in %.2fs', time.time() - started)
                page = browser.new_page()
                page.set_default_timeout(self.timeout_ms)
                page.set_content(page_html, wait_until='networkidle', timeout=self.timeout_ms)
                pdf_bytes = page.pdf(
                    format='A4',
                    print_background=True,
                    margin={
                        'top': self.margin_top,
                        'bottom': self.margin_bottom,
                        'left': self.margin_side,
                        'right': self.margin_side,
                    },
                    display_header_footer=True,
                    header_template=header_html,
                    footer_template=footer_html,
                    prefer_css_page_size=True,
                )
            finally:
                _release('Chromium browser', browser.close)

        logger.info('Chromium printed %d bytes in %.2fs', len(pdf_bytes), time.time() - started)
        return pdf_bytes
