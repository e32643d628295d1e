from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
        populate_by_name=True,
    )

    app_name: str = 'controldoc rendering pipeline'
    log_level: str = 'INFO'

    # Managed directories. Relative paths resolve against data_dir.
    data_dir: Path = Field(default=Path('.'))
    uploads_dir: Path = Field(default=Path('uploads'))
    pdfs_dir: Path = Field(default=Path('pdfs'))
    events_file_name: str = 'conversion_events.jsonl'
    max_source_bytes: int = 25 * 1024 * 1024

    # Banner printed across the top of every controlled page.
    company_name: str = Field(
        default='Quality Management System',
        validation_alias=AliasChoices('COMPANY_NAME', 'CONTROLDOC_COMPANY_NAME'),
    )

    # Primary renderer (headless Chromium)
    chromium_executable_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            'CHROMIUM_EXECUTABLE_PATH',
            'PUPPETEER_EXECUTABLE_PATH',
            'PLAYWRIGHT_CHROMIUM_EXECUTABLE_PATH',
        ),
    )
    render_timeout_ms: int = 30000
    pdf_margin_top: str = '160px'
    pdf_margin_bottom: str = '180px'
    pdf_margin_side: str = '45px'

    # Fallback renderer (reportlab canvas)
    fallback_wrap_width: int = 95
    fallback_font_size: int = 10
    fallback_line_height: int = 15
    fallback_bottom_threshold: int = 150
    # Unicode TrueType font for header/footer values; bundled fonts when unset.
    fallback_header_font_path: str | None = None
    fallback_header_bold_font_path: str | None = None

    def resolve_dir(self, path: Path) -> Path:
        if path.is_absolute():
            return path
        return self.data_dir / path


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
