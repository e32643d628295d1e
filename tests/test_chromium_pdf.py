from __future__ import annotations

import pytest

from controldoc.errors import PrimaryRenderError
from controldoc.report.chromium_pdf import CHROMIUM_ARGS, ChromiumRenderer, wrap_document_html
from controldoc.types import ControlCopyInfo, DocumentMetadata, RenderDocument, RenderEngine

from conftest import COMPANY_NAME, TODAY


def _renderer(**kwargs) -> ChromiumRenderer:
    return ChromiumRenderer(company_name=COMPANY_NAME, today=TODAY, **kwargs)


def test_wrap_document_html(metadata: DocumentMetadata):
    enriched = metadata.model_copy(update={'header_info': '<p>Scope note</p>', 'content': '<p>Annex</p>'})
    page = wrap_document_html(enriched, '<h2>Body</h2>')

    assert '@page { size: A4; margin: 160px 45px 180px 45px; }' in page
    assert '<h1 class="document-title">INCOMING MATERIAL INSPECTION</h1>' in page
    assert page.index('Scope note') < page.index('<h1 class="document-title">') < page.index('<h2>Body</h2>') < page.index('Annex')
    assert 'footer-info' not in page


def test_render_prints_with_templates(fake_playwright, metadata, control_copy, blank_pdf_bytes):
    renderer = _renderer(executable_path='/usr/bin/chromium', timeout_ms=5000)
    pdf_bytes = renderer.render(RenderDocument(html='<p>Hello</p>'), metadata, control_copy)

    assert pdf_bytes == blank_pdf_bytes
    assert renderer.engine is RenderEngine.primary

    launch = fake_playwright.driver.chromium.launch
    launch.assert_called_once_with(
        headless=True,
        executable_path='/usr/bin/chromium',
        args=CHROMIUM_ARGS,
        timeout=5000,
    )

    page = fake_playwright.page
    content_args, content_kwargs = page.set_content.call_args
    assert '<p>Hello</p>' in content_args[0]
    assert content_kwargs == {'wait_until': 'networkidle', 'timeout': 5000}

    pdf_kwargs = page.pdf.call_args.kwargs
    assert pdf_kwargs['format'] == 'A4'
    assert pdf_kwargs['display_header_footer'] is True
    assert pdf_kwargs['margin'] == {'top': '160px', 'bottom': '180px', 'left': '45px', 'right': '45px'}
    assert 'QC-SOP-001' in pdf_kwargs['header_template']
    assert '<span class="totalPages"></span>' in pdf_kwargs['header_template']
    assert 'APPROVED' in pdf_kwargs['footer_template']
    assert 'CONTROLLED COPY' in pdf_kwargs['footer_template']

    fake_playwright.browser.close.assert_called_once()
    fake_playwright.session.__exit__.assert_called_once()


def test_default_executable_is_bundled_browser(fake_playwright, metadata):
    _renderer().render(RenderDocument(html='<p>x</p>'), metadata)

    assert fake_playwright.driver.chromium.launch.call_args.kwargs['executable_path'] is None
    assert 'CONTROLLED COPY' not in fake_playwright.page.pdf.call_args.kwargs['footer_template']


def test_resources_released_when_navigation_times_out(fake_playwright, metadata):
    fake_playwright.page.set_content.side_effect = TimeoutError('Timeout 30000ms exceeded')

    with pytest.raises(PrimaryRenderError, match='Timeout 30000ms exceeded'):
        _renderer().render(RenderDocument(html='<p>x</p>'), metadata)

    fake_playwright.browser.close.assert_called_once()
    fake_playwright.session.__exit__.assert_called_once()


def test_launch_failure_is_wrapped(fake_playwright, metadata):
    fake_playwright.driver.chromium.launch.side_effect = RuntimeError('Executable does not exist')

    with pytest.raises(PrimaryRenderError, match='Executable does not exist'):
        _renderer().render(RenderDocument(html='<p>x</p>'), metadata)

    fake_playwright.browser.close.assert_not_called()
    fake_playwright.session.__exit__.assert_called_once()


def test_cleanup_failure_does_not_mask_result(fake_playwright, metadata, blank_pdf_bytes, caplog):
    fake_playwright.browser.close.side_effect = RuntimeError('browser already gone')

    with caplog.at_level('WARNING', logger='controldoc.report.chromium_pdf'):
        pdf_bytes = _renderer().render(RenderDocument(html='<p>x</p>'), metadata)

    assert pdf_bytes == blank_pdf_bytes
    assert 'Failed to close Chromium browser' in caplog.text
    fake_playwright.session.__exit__.assert_called_once()


def test_cleanup_failure_does_not_mask_render_error(fake_playwright, metadata):
    fake_playwright.page.pdf.side_effect = RuntimeError('Target closed')
    fake_playwright.browser.close.side_effect = RuntimeError('browser already gone')

    with pytest.raises(PrimaryRenderError, match='Target closed'):
        _renderer().render(RenderDocument(html='<p>x</p>'), metadata)


def test_control_copy_is_optional(fake_playwright, metadata: DocumentMetadata, control_copy: ControlCopyInfo):
    renderer = _renderer()
    renderer.render(RenderDocument(html='<p>x</p>'), metadata, control_copy)
    with_copy = fake_playwright.page.pdf.call_args.kwargs['header_template']
    renderer.render(RenderDocument(html='<p>x</p>'), metadata)
    without_copy = fake_playwright.page.pdf.call_args.kwargs['header_template']

    assert with_copy == without_copy
