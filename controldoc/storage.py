from __future__ import annotations

import json
import os
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from .config import Settings, get_settings
from .types import RenderEngine


_UNSAFE_NAME_CHARS = re.compile(r'[\\/\x00-\x1f]')


@dataclass(frozen=True)
class StorageLayout:
    uploads_dir: Path
    pdfs_dir: Path
    events_path: Path

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> StorageLayout:
        settings = settings or get_settings()
        pdfs_dir = settings.resolve_dir(settings.pdfs_dir)
        return cls(
            uploads_dir=settings.resolve_dir(settings.uploads_dir),
            pdfs_dir=pdfs_dir,
            events_path=pdfs_dir / settings.events_file_name,
        )

    def ensure_directories(self) -> None:
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.pdfs_dir.mkdir(parents=True, exist_ok=True)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _safe_name(value: str) -> str:
    token = _UNSAFE_NAME_CHARS.sub('-', str(value or '').strip())
    if not token or token in {'.', '..'}:
        raise ValueError(f'invalid file name component: {value!r}')
    return token


def artifact_path(
    layout: StorageLayout,
    *,
    doc_number: str,
    revision_no: int,
    engine: RenderEngine,
    timestamp_ms: int | None = None,
) -> Path:
    stamp = _now_ms() if timestamp_ms is None else int(timestamp_ms)
    prefix = f'{_safe_name(doc_number)}_v{int(revision_no)}_{engine.value}'
    return layout.pdfs_dir / f'{prefix}_{stamp}.pdf'


def write_artifact(
    layout: StorageLayout,
    data: bytes,
    *,
    doc_number: str,
    revision_no: int,
    engine: RenderEngine,
) -> Path:
    """Write a rendered PDF under a name no other writer holds.

    The name is claimed with a hard link, which fails if the target exists, so
    concurrent conversions in the same millisecond take the next free stamp
    instead of replacing each other.
    """
    layout.pdfs_dir.mkdir(parents=True, exist_ok=True)
    stamp = _now_ms()
    tmp = layout.pdfs_dir / f'.{_safe_name(doc_number)}.{uuid4().hex}.tmp'
    try:
        tmp.write_bytes(data)
        while True:
            path = artifact_path(
                layout,
                doc_number=doc_number,
                revision_no=revision_no,
                engine=engine,
                timestamp_ms=stamp,
            )
            try:
                os.link(tmp, path)
            except FileExistsError:
                stamp += 1
                continue
            return path
    finally:
        tmp.unlink(missing_ok=True)


def write_bytes_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f'.{path.name}.{uuid4().hex}.tmp')
    try:
        tmp.write_bytes(data)
        tmp.replace(path)
    finally:
        tmp.unlink(missing_ok=True)


def save_uploaded_file(
    layout: StorageLayout,
    data: bytes,
    *,
    original_name: str,
    document_id: str,
) -> str:
    layout.ensure_directories()
    base_name = _safe_name(Path(str(original_name or '').replace('\\', '/')).name)
    file_name = f'{_safe_name(document_id)}_{_now_ms()}_{base_name}'
    write_bytes_atomic(layout.uploads_dir / file_name, data)
    return f'uploads/{file_name}'


def append_event(layout: StorageLayout, event: str, **extra: Any) -> None:
    now = datetime.now(timezone.utc).isoformat()
    row = {
        'ts': now,
        'event': event,
        **extra,
    }
    layout.events_path.parent.mkdir(parents=True, exist_ok=True)
    with layout.events_path.open('a', encoding='utf-8') as f:
        f.write(json.dumps(row, ensure_ascii=False, default=str) + '\n')


def read_events(layout: StorageLayout) -> list[dict[str, Any]]:
    if not layout.events_path.exists():
        return []
    rows: list[dict[str, Any]] = []
    for line in layout.events_path.read_text(encoding='utf-8').splitlines():
        if line.strip():
            rows.append(json.loads(line))
    return rows
