from __future__ import annotations

import json
from pathlib import Path

import pytest

import main
from controldoc import pipeline as pipeline_module


@pytest.fixture()
def cli_settings(settings, monkeypatch):
    monkeypatch.setattr(main, 'get_settings', lambda: settings)
    monkeypatch.setattr(pipeline_module, 'get_settings', lambda: settings)
    return settings


def _write_json(path: Path, payload: dict) -> str:
    path.write_text(json.dumps(payload), encoding='utf-8')
    return str(path)


def _output(capsys) -> dict:
    return json.loads(capsys.readouterr().out)


def test_init_creates_directories(cli_settings, capsys):
    assert main.main(['init']) == 0

    payload = _output(capsys)
    assert payload['status'] == 'ok'
    assert Path(payload['pdfs_dir']).is_dir()
    assert Path(payload['uploads_dir']).is_dir()


def test_upload_stores_copy(cli_settings, sample_docx, capsys):
    code = main.main(['upload', '--file', str(sample_docx), '--document-id', 'doc-9'])

    assert code == 0
    stored = _output(capsys)['stored_path']
    assert stored.startswith('uploads/doc-9_')
    assert (cli_settings.data_dir / stored).read_bytes() == sample_docx.read_bytes()


def test_upload_missing_file(cli_settings, tmp_path, capsys):
    code = main.main(['upload', '--file', str(tmp_path / 'nope.docx'), '--document-id', 'doc-9'])

    assert code == 2
    assert _output(capsys)['status'] == 'error'


def test_convert_falls_back_without_browser(cli_settings, fake_playwright, sample_docx, tmp_path, capsys):
    fake_playwright.driver.chromium.launch.side_effect = RuntimeError('Executable does not exist')
    metadata = _write_json(
        tmp_path / 'metadata.json',
        {'docName': 'Incoming Material Inspection', 'docNumber': 'QC-SOP-001', 'revisionNo': 2, 'status': 'approved'},
    )
    control_copy = _write_json(
        tmp_path / 'cc.json',
        {'userId': 'u1', 'userFullName': 'J. Smith', 'controlCopyNumber': 3, 'date': '19/10/2026'},
    )

    code = main.main(
        ['convert', '--source', str(sample_docx), '--metadata', metadata, '--control-copy', control_copy]
    )

    assert code == 0
    payload = _output(capsys)
    assert payload['engine'] == 'fallback'
    assert Path(payload['pdf_path']).name.startswith('QC-SOP-001_v2_fallback_')
    assert payload['page_count'] == 1


def test_convert_rejects_invalid_metadata(cli_settings, sample_docx, tmp_path, capsys):
    metadata = _write_json(tmp_path / 'metadata.json', {'docName': 'No number'})

    code = main.main(['convert', '--source', str(sample_docx), '--metadata', metadata])

    assert code == 2
    assert 'Invalid input' in _output(capsys)['message']


def test_convert_reports_extraction_error(cli_settings, corrupt_file, tmp_path, capsys):
    metadata = _write_json(tmp_path / 'metadata.json', {'docName': 'Broken', 'docNumber': 'X-1'})

    code = main.main(['convert', '--source', str(corrupt_file), '--metadata', metadata])

    assert code == 2
    assert _output(capsys)['error_type'] == 'ExtractionError'


def test_header_info(cli_settings, sample_docx, capsys):
    assert main.main(['header-info', '--source', str(sample_docx)]) == 0

    assert _output(capsys) == {
        'header_info': 'ACME QMS HEADER',
        'footer_info': 'Confidential - internal use',
    }
