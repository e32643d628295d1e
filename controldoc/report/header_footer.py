"""Regulated header/footer content shared by both renderers.

Every value printed in a controlled page's header or footer is resolved once
into :class:`HeaderFields`. The Chromium templates and the fallback canvas
both draw from that object, so the two outputs carry the same document
number, revision, dates, roles and controlled-copy stamp.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import date

from controldoc.types import ControlCopyInfo, DocumentMetadata


DATE_FORMAT = '%d/%m/%Y'
NOT_AVAILABLE = 'N/A'
CONTROLLED_COPY_MARKER = 'CONTROLLED COPY'

DEFAULT_ISSUE_NO = '01'
DEFAULT_DEPARTMENT = 'Management Representative'
DEFAULT_PREPARER = 'Asst. MR'
DEFAULT_APPROVER = 'HOD'
DEFAULT_ISSUER = 'Management Representative { MR }'


def format_date(value: date | None, *, default: str = NOT_AVAILABLE) -> str:
    if value is None:
        return default
    return value.strftime(DATE_FORMAT)


def controlled_copy_banner(control_copy: ControlCopyInfo) -> str:
    return (
        f'{CONTROLLED_COPY_MARKER} - NOT FOR REPRODUCTION | '
        f'Printed by: {control_copy.user_full_name} | '
        f'Copy No: {control_copy.control_copy_number} | '
        f'Date: {control_copy.date}'
    )


@dataclass(frozen=True)
class HeaderFields:
    company_name: str
    issue_no: str
    date_of_issue: str
    revision_no: str
    date_of_revision: str
    due_date_of_revision: str
    department: str
    title: str
    doc_number: str
    prepared_by: str
    approved_by: str
    issued_by: str
    status: str
    control_copy_banner: str | None = None

    def issue_row(self) -> list[tuple[str, str]]:
        return [
            ('Issue No', self.issue_no),
            ('Date of Issue', self.date_of_issue),
            ('Rev. No', self.revision_no),
            ('Date of Rev.', self.date_of_revision),
            ('Due Date of Rev.', self.due_date_of_revision),
        ]

    def identity_row(self) -> list[tuple[str, str]]:
        return [
            ('Dept.', self.department),
            ('Title', self.title),
            ('Doc. No', self.doc_number),
        ]

    def approval_row(self) -> list[tuple[str, str]]:
        return [
            ('Prepared by', self.prepared_by),
            ('Approved by', self.approved_by),
            ('Issued by', self.issued_by),
            ('Status', self.status),
        ]


def resolve_header_fields(
    metadata: DocumentMetadata,
    control_copy: ControlCopyInfo | None = None,
    *,
    company_name: str,
    today: date | None = None,
) -> HeaderFields:
    today = today or date.today()
    departments = metadata.department_names
    return HeaderFields(
        company_name=str(company_name or '').strip().upper(),
        issue_no=metadata.issue_no or DEFAULT_ISSUE_NO,
        date_of_issue=format_date(metadata.date_of_issue, default=format_date(today)),
        revision_no=str(metadata.revision_no),
        date_of_revision=format_date(metadata.date_of_issue),
        due_date_of_revision=format_date(metadata.review_due_date),
        department=departments[0] if departments else DEFAULT_DEPARTMENT,
        title=metadata.doc_name,
        doc_number=metadata.doc_number,
        prepared_by=metadata.preparer_name or DEFAULT_PREPARER,
        approved_by=metadata.approver_name or DEFAULT_APPROVER,
        issued_by=metadata.issuer_name or DEFAULT_ISSUER,
        status=metadata.status.value.upper(),
        control_copy_banner=controlled_copy_banner(control_copy) if control_copy else None,
    )


def _e(value: str) -> str:
    return html.escape(value, quote=True)


_HEADER_STYLE = """
<style>
  .header-container { margin: 0 45px; width: 100%; font-family: 'Segoe UI', Arial, sans-serif; -webkit-print-color-adjust: exact; }
  .header-table { width: calc(100% - 90px); border-collapse: collapse; border: 1pt solid #000; table-layout: fixed; }
  .header-table td { border: 1pt solid #000; padding: 4px 8px; vertical-align: middle; font-size: 8pt; }
  .company-name { text-align: center; font-weight: bold; font-size: 10pt; text-transform: uppercase; padding: 10px !important; }
  .bold-text { font-weight: bold; }
  .center-text { text-align: center; }
  .nowrap { white-space: nowrap; }
</style>
"""

_FOOTER_STYLE = """
<style>
  .footer-container { margin: 0 45px; width: 100%; font-family: 'Segoe UI', Arial, sans-serif; -webkit-print-color-adjust: exact; }
  .footer-table { width: calc(100% - 90px); border-collapse: collapse; border: 1pt solid #000; table-layout: fixed; }
  .footer-table td { border: 1pt solid #000; padding: 4px; vertical-align: top; font-size: 8pt; height: 60px; }
  .footer-label { font-weight: bold; margin-bottom: 20px; display: block; }
  .footer-value { display: block; }
  .status-cell { vertical-align: middle !important; text-align: center; font-weight: bold; font-size: 10pt; }
  .controlled-copy { text-align: center; font-size: 7pt; color: #856404; background: #fff3cd; border: 0.5pt dashed #ffc107; padding: 2px; margin-top: 5px; width: calc(100% - 90px); }
</style>
"""


def render_header_html(fields: HeaderFields) -> str:
    issue_no, date_of_issue, rev_no, date_of_rev, due_date = fields.issue_row()
    dept, title, doc_no = fields.identity_row()
    return f"""{_HEADER_STYLE}
<div class="header-container">
  <table class="header-table">
    <tr>
      <td colspan="5" class="company-name">{_e(fields.company_name)}</td>
    </tr>
    <tr>
      <td style="width: 15%;"><span class="bold-text">{issue_no[0]}:</span> {_e(issue_no[1])}</td>
      <td style="width: 25%;"><span class="bold-text">{date_of_issue[0]}:</span> {_e(date_of_issue[1])}</td>
      <td style="width: 15%;"><span class="bold-text">{rev_no[0]}:</span> {_e(rev_no[1])}</td>
      <td style="width: 35%;">
        <div class="nowrap"><span class="bold-text">{date_of_rev[0]}:</span> {_e(date_of_rev[1])}</div>
        <div class="nowrap"><span class="bold-text">{due_date[0]}:</span> {_e(due_date[1])}</div>
      </td>
      <td style="width: 10%;" class="center-text">Page <span class="pageNumber"></span> of <span class="totalPages"></span></td>
    </tr>
    <tr>
      <td colspan="2"><span class="bold-text">{dept[0]}:</span> {_e(dept[1])}</td>
      <td colspan="2"><span class="bold-text">{title[0]}:</span> {_e(title[1])}</td>
      <td><span class="bold-text">{doc_no[0]}:</span> {_e(doc_no[1])}</td>
    </tr>
  </table>
</div>
"""


def render_footer_html(fields: HeaderFields) -> str:
    widths = ('20%', '20%', '35%', '25%')
    cells: list[str] = []
    for (label, value), width in zip(fields.approval_row(), widths):
        if label == 'Status':
            cells.append(
                f'<td style="width: {width};" class="status-cell">'
                f'<span class="footer-label">{label}</span>{_e(value)}</td>'
            )
        else:
            cells.append(
                f'<td style="width: {width};">'
                f'<span class="footer-label">{label}</span>'
                f'<span class="footer-value">{_e(value)}</span></td>'
            )

    banner = ''
    if fields.control_copy_banner:
        banner = f'\n  <div class="controlled-copy">{_e(fields.control_copy_banner)}</div>'

    return f"""{_FOOTER_STYLE}
<div class="footer-container">
  <table class="footer-table">
    <tr>{''.join(cells)}</tr>
  </table>{banner}
</div>
"""


def _joined(cells: list[tuple[str, str]]) -> str:
    return ' | '.join(f'{label}: {value}' for label, value in cells)


def header_lines(fields: HeaderFields, *, page_label: str) -> list[str]:
    """Plain-text header rows, in drawing order, for canvas renderers."""
    issue = fields.issue_row()
    return [
        fields.company_name,
        _joined(issue[:3]),
        f'{_joined(issue[3:])} | {page_label}',
        _joined(fields.identity_row()),
    ]


@dataclass(frozen=True)
class HeaderFooter:
    fields: HeaderFields
    header_html: str
    footer_html: str


def build_header_footer(
    metadata: DocumentMetadata,
    control_copy: ControlCopyInfo | None = None,
    *,
    company_name: str,
    today: date | None = None,
) -> HeaderFooter:
    fields = resolve_header_fields(
        metadata,
        control_copy,
        company_name=company_name,
        today=today,
    )
    return HeaderFooter(
        fields=fields,
        header_html=render_header_html(fields),
        footer_html=render_footer_html(fields),
    )
