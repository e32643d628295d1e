from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from controldoc.config import get_settings
from controldoc.errors import RenderPipelineError
from controldoc.pipeline import DocumentPipeline
from controldoc.storage import StorageLayout, save_uploaded_file
from controldoc.types import ControlCopyInfo, DocumentMetadata


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _read_json_file(path: str) -> dict:
    payload = json.loads(Path(path).expanduser().read_text(encoding='utf-8'))
    if not isinstance(payload, dict):
        raise ValueError(f'expected a JSON object in {path}')
    return payload


def _configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
        format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def cmd_init(args: argparse.Namespace) -> int:
    layout = StorageLayout.from_settings(get_settings())
    layout.ensure_directories()
    _print_json(
        {
            'status': 'ok',
            'uploads_dir': str(layout.uploads_dir),
            'pdfs_dir': str(layout.pdfs_dir),
        }
    )
    return 0


def cmd_upload(args: argparse.Namespace) -> int:
    source = Path(args.file).expanduser().resolve()
    if not source.exists() or not source.is_file():
        _print_json({'status': 'error', 'message': f'File not found: {source}'})
        return 2

    layout = StorageLayout.from_settings(get_settings())
    stored = save_uploaded_file(
        layout,
        source.read_bytes(),
        original_name=args.name or source.name,
        document_id=args.document_id,
    )
    _print_json({'status': 'ok', 'stored_path': stored})
    return 0


def cmd_convert(args: argparse.Namespace) -> int:
    try:
        metadata = DocumentMetadata.model_validate(_read_json_file(args.metadata))
        control_copy = (
            ControlCopyInfo.model_validate(_read_json_file(args.control_copy))
            if args.control_copy
            else None
        )
    except (OSError, ValueError, ValidationError) as exc:
        _print_json({'status': 'error', 'message': f'Invalid input: {exc}'})
        return 2

    pipeline = DocumentPipeline()
    try:
        artifact = pipeline.convert_with_details(
            Path(args.source).expanduser(),
            metadata,
            control_copy,
        )
    except RenderPipelineError as exc:
        _print_json({'status': 'error', 'error_type': type(exc).__name__, 'message': str(exc)})
        return 2

    _print_json(
        {
            'status': 'ok',
            'pdf_path': str(artifact.path),
            'engine': artifact.engine.value,
            'size_bytes': artifact.size_bytes,
            'page_count': artifact.page_count,
        }
    )
    return 0


def cmd_header_info(args: argparse.Namespace) -> int:
    pipeline = DocumentPipeline()
    try:
        info = pipeline.extract_header_footer(Path(args.source).expanduser())
    except RenderPipelineError as exc:
        _print_json({'status': 'error', 'error_type': type(exc).__name__, 'message': str(exc)})
        return 2
    _print_json({'header_info': info.header_info, 'footer_info': info.footer_info})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Controlled-copy PDF rendering pipeline')
    sub = parser.add_subparsers(dest='command', required=True)

    init = sub.add_parser('init', help='Create the managed uploads/pdfs directories')
    init.set_defaults(func=cmd_init)

    upload = sub.add_parser('upload', help='Store an original Word file in the uploads directory')
    upload.add_argument('--file', required=True, help='Path to the Word file')
    upload.add_argument('--document-id', required=True, help='Owning document ID')
    upload.add_argument('--name', required=False, help='Original file name override')
    upload.set_defaults(func=cmd_upload)

    convert = sub.add_parser('convert', help='Render a Word file into a controlled PDF')
    convert.add_argument('--source', required=True, help='Path to the Word file')
    convert.add_argument('--metadata', required=True, help='JSON file with the document record')
    convert.add_argument('--control-copy', required=False, help='JSON file with controlled-copy recipient')
    convert.set_defaults(func=cmd_convert)

    header_info = sub.add_parser('header-info', help='Print the page header/footer text of a Word file')
    header_info.add_argument('--source', required=True, help='Path to the Word file')
    header_info.set_defaults(func=cmd_header_info)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging()
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())
