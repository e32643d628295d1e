from __future__ import annotations

import logging
import time
import traceback
from io import BytesIO
from pathlib import Path
from typing import Callable

from pypdf import PdfReader

from controldoc.adapters.docx_parser import (
    HeaderFooterInfo,
    docx_to_html,
    docx_to_text,
    extract_header_footer,
    load_docx,
)
from controldoc.config import Settings, get_settings
from controldoc.errors import ExtractionError, FallbackRenderError
from controldoc.report.base import DocumentRenderer
from controldoc.report.chromium_pdf import ChromiumRenderer
from controldoc.report.fallback_pdf import FallbackRenderer
from controldoc.storage import StorageLayout, append_event, write_artifact
from controldoc.types import ControlCopyInfo, DocumentMetadata, RenderDocument, RenderedArtifact


logger = logging.getLogger(__name__)


def build_primary_renderer(settings: Settings) -> ChromiumRenderer:
    return ChromiumRenderer(
        company_name=settings.company_name,
        executable_path=settings.chromium_executable_path,
        timeout_ms=settings.render_timeout_ms,
        margin_top=settings.pdf_margin_top,
        margin_bottom=settings.pdf_margin_bottom,
        margin_side=settings.pdf_margin_side,
    )


def build_fallback_renderer(settings: Settings) -> FallbackRenderer:
    return FallbackRenderer(
        company_name=settings.company_name,
        wrap_width=settings.fallback_wrap_width,
        font_size=settings.fallback_font_size,
        line_height=settings.fallback_line_height,
        bottom_threshold=settings.fallback_bottom_threshold,
        header_font_path=settings.fallback_header_font_path,
        header_bold_font_path=settings.fallback_header_bold_font_path,
    )


def _count_pages(pdf_bytes: bytes) -> int | None:
    try:
        return len(PdfReader(BytesIO(pdf_bytes)).pages)
    except Exception as exc:
        logger.warning('Could not count pages of rendered PDF: %s', exc)
        return None


def _describe(exc: BaseException) -> str:
    return ''.join(traceback.format_exception_only(type(exc), exc)).strip()


class DocumentPipeline:
    """Word document -> controlled PDF, primary renderer first, fallback second.

    Each stage runs exactly once. Extraction errors abort before any renderer
    runs; any other failure of the primary stage hands over to the fallback
    stage, and a fallback failure is terminal.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        layout: StorageLayout | None = None,
        primary: DocumentRenderer | None = None,
        fallback: DocumentRenderer | None = None,
    ):
        self.settings = settings or get_settings()
        self.layout = layout or StorageLayout.from_settings(self.settings)
        self.primary = primary or build_primary_renderer(self.settings)
        self.fallback = fallback or build_fallback_renderer(self.settings)

    def initialize(self) -> None:
        self.layout.ensure_directories()

    def convert(
        self,
        source_path: Path | str,
        metadata: DocumentMetadata,
        control_copy: ControlCopyInfo | None = None,
    ) -> Path:
        return self.convert_with_details(source_path, metadata, control_copy).path

    def convert_with_details(
        self,
        source_path: Path | str,
        metadata: DocumentMetadata,
        control_copy: ControlCopyInfo | None = None,
    ) -> RenderedArtifact:
        self.initialize()
        source_path = Path(source_path)
        self._event(
            'conversion_started',
            doc_number=metadata.doc_number,
            revision_no=metadata.revision_no,
            source=str(source_path),
            control_copy=bool(control_copy),
        )

        try:
            source = load_docx(source_path, max_bytes=self.settings.max_source_bytes)
        except ExtractionError as exc:
            self._record_failure(metadata, stage='extraction', exc=exc)
            raise

        logger.info('[PDF] Attempting primary render for: %s', metadata.doc_number)
        try:
            return self._run_stage(
                self.primary,
                lambda: RenderDocument(html=docx_to_html(source)),
                metadata,
                control_copy,
            )
        except ExtractionError as exc:
            self._record_failure(metadata, stage='extraction', exc=exc)
            raise
        except Exception as exc:
            logger.error(
                '[PDF] Primary render failed for %s: %s. Switching to fallback renderer.',
                metadata.doc_number,
                exc,
            )
            self._event('primary_failed', doc_number=metadata.doc_number, error=_describe(exc))

        try:
            return self._run_stage(
                self.fallback,
                lambda: RenderDocument(text=docx_to_text(source)),
                metadata,
                control_copy,
            )
        except ExtractionError as exc:
            self._record_failure(metadata, stage='extraction', exc=exc)
            raise
        except Exception as exc:
            logger.error('[PDF] Fallback renderer also failed for %s: %s', metadata.doc_number, exc)
            self._record_failure(metadata, stage='fallback', exc=exc)
            raise FallbackRenderError(
                f'PDF generation failed completely: primary and fallback renderers exhausted. {exc}'
            ) from exc

    def extract_header_footer(self, source_path: Path | str) -> HeaderFooterInfo:
        source = load_docx(Path(source_path), max_bytes=self.settings.max_source_bytes)
        return extract_header_footer(source)

    def _run_stage(
        self,
        renderer: DocumentRenderer,
        build_document: Callable[[], RenderDocument],
        metadata: DocumentMetadata,
        control_copy: ControlCopyInfo | None,
    ) -> RenderedArtifact:
        started = time.time()
        document = build_document()
        pdf_bytes = renderer.render(document, metadata, control_copy)
        if not pdf_bytes:
            raise RuntimeError(f'{renderer.engine.value} renderer returned an empty PDF')

        path = write_artifact(
            self.layout,
            pdf_bytes,
            doc_number=metadata.doc_number,
            revision_no=metadata.revision_no,
            engine=renderer.engine,
        )

        artifact = RenderedArtifact(
            path=path,
            engine=renderer.engine,
            size_bytes=len(pdf_bytes),
            page_count=_count_pages(pdf_bytes),
        )
        logger.info(
            '[PDF] %s written by %s renderer (%d bytes, %s page(s), %.2fs)',
            path.name,
            renderer.engine.value,
            artifact.size_bytes,
            artifact.page_count,
            time.time() - started,
        )
        self._event(
            'pdf_rendered',
            doc_number=metadata.doc_number,
            engine=renderer.engine.value,
            pdf_path=str(path),
            size_bytes=artifact.size_bytes,
            page_count=artifact.page_count,
        )
        return artifact

    def _event(self, event: str, **extra) -> None:
        try:
            append_event(self.layout, event, **extra)
        except OSError as exc:
            logger.warning('Could not append %s event to %s: %s', event, self.layout.events_path, exc)

    def _record_failure(self, metadata: DocumentMetadata, *, stage: str, exc: BaseException) -> None:
        self._event(
            'conversion_failed',
            doc_number=metadata.doc_number,
            stage=stage,
            error=_describe(exc),
        )
