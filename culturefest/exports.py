"""
Document rendering for organizer downloads: the score report and
registration details as PDF (reportlab), registrations and performance
order as Excel (openpyxl), and reading the school import sheet.
"""
from datetime import datetime
from io import BytesIO
from typing import Dict, Iterable, List
from xml.sax.saxutils import escape
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils.exceptions import InvalidFileException
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, PageBreak

from .errors import ValidationError

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
PDF_MIMETYPE = 'application/pdf'

HEADER_GREEN = colors.Color(35 / 255, 92 / 255, 55 / 255)

REGISTRATION_COLUMNS = [
    'School Name', 'Account Holder Name', 'Bank Name', 'Account Number', 'IFSC Code',
    'UPI ID', 'Contact Name', 'Designation', 'Mobile Number', 'Email'
]


def _table(data, header_color=HEADER_GREEN, col_widths=None, font_size=9) -> Table:
    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), header_color),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), font_size),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    return table


def _footer(generated_on: str):
    def draw(canvas, doc):
        canvas.saveState()
        canvas.setFont('Helvetica', 8)
        width, _ = doc.pagesize
        canvas.drawCentredString(width / 2, 20, f"Page {doc.page}")
        canvas.drawRightString(width - 30, 20, f"Generated on: {generated_on}")
        canvas.restoreState()
    return draw


def _fmt(value: float) -> str:
    return f"{value:.2f}"


def score_report_pdf(
    leaderboard: Dict[str, list],
    categories: List,
    breakdowns: Dict[str, List[dict]],
    feedback: Dict[str, dict] = None,
    remarks: str = '',
    title: str = 'Competition Score Report'
) -> bytes:
    """
    Landscape score report.
    
    Args:
        leaderboard: tier -> ranked LeaderboardEntry list
        categories: CategoryRecord list, in column order
        breakdowns: school_id -> ScoreAggregator.judge_breakdown rows
        feedback: ScoreBook.feedback_for_tier result for the feedback-only tier
        remarks: printed under the title
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=landscape(A4),
        rightMargin=30, leftMargin=30, topMargin=30, bottomMargin=40
    )
    styles = getSampleStyleSheet()
    elements = [Paragraph(f"<b>{title}</b>", styles['Title'])]
    if remarks:
        elements.append(Paragraph(f"Remarks: {escape(remarks)}", styles['Normal']))
    elements.append(Spacer(1, 12))
    
    category_names = [c.name for c in categories]
    
    for tier, entries in leaderboard.items():
        if not entries:
            continue
        elements.append(Paragraph(f"{tier} Category Scores", styles['Heading2']))
        data = [['Rank', 'School', *category_names, 'Total Score']]
        for entry in entries:
            data.append([
                entry.rank,
                entry.school.name,
                *[_fmt(entry.averages.get(c.id, 0)) for c in categories],
                _fmt(entry.total)
            ])
        elements.append(_table(data))
        
        for entry in entries:
            rows = breakdowns.get(entry.school.id) or []
            if not rows:
                continue
            elements.append(Spacer(1, 10))
            elements.append(Paragraph(f"Score Breakdown for: {escape(entry.school.name)}", styles['Heading4']))
            judge_data = [['Judge', *category_names, 'Total']]
            for row in rows:
                judge_data.append([
                    row['judge_name'],
                    *[row['scores'].get(c.id, 0) for c in categories],
                    row['total']
                ])
            elements.append(_table(judge_data, header_color=colors.grey))
        elements.append(PageBreak())
    
    if feedback:
        elements.append(Paragraph('Sub-Junior Category Feedback', styles['Heading2']))
        data = [['School', 'Judge', 'Feedback']]
        for item in feedback.values():
            for given in item['feedback']:
                data.append([
                    item['school'].name,
                    given['judge_name'],
                    Paragraph(escape(given['feedback']), styles['BodyText'])
                ])
        elements.append(_table(data, col_widths=[180, 120, 460]))
    
    if len(elements) <= 3:
        elements.append(Paragraph('No scores have been recorded yet.', styles['Normal']))
    
    footer = _footer(datetime.now().strftime('%Y-%m-%d %H:%M:%S'))
    doc.build(elements, onFirstPage=footer, onLaterPages=footer)
    pdf = buffer.getvalue()
    buffer.close()
    return pdf


def _append_text(ws, row: list):
    """Append a row; strings stay literal text so a value like '=SUM(..)' is never a formula."""
    ws.append(row)
    for cell in ws[ws.max_row]:
        if isinstance(cell.value, str):
            cell.data_type = 's'


def _registration_row(registration) -> list:
    return [
        registration.school_name,
        registration.account_holder_name,
        registration.bank_name,
        registration.account_number,
        registration.ifsc_code,
        registration.upi_id or '',
        registration.contact_name,
        registration.designation,
        registration.mobile_number,
        registration.email or '',
    ]


def registrations_workbook(registrations: Iterable) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = 'Bank & Contact Details'
    ws.append(REGISTRATION_COLUMNS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for registration in registrations:
        _append_text(ws, _registration_row(registration))
    
    stream = BytesIO()
    wb.save(stream)
    return stream.getvalue()


def registrations_pdf(registrations: Iterable) -> bytes:
    """One section per school: contact person, bank details and participants."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, rightMargin=30, leftMargin=30, topMargin=30, bottomMargin=40)
    styles = getSampleStyleSheet()
    elements = []
    
    for index, r in enumerate(registrations):
        if index > 0:
            elements.append(PageBreak())
        elements.append(Paragraph(f"<b>{escape(r.school_name)}</b>", styles['Heading1']))
        elements.append(_table([
            ['Details', 'Information'],
            ['Contact Person', r.contact_name],
            ['Designation', r.designation],
            ['Mobile Number', r.mobile_number],
            ['Email', r.email or 'N/A'],
        ], col_widths=[150, 330]))
        elements.append(Spacer(1, 10))
        elements.append(_table([
            ['Bank Details', ''],
            ['Account Holder', r.account_holder_name],
            ['Bank', r.bank_name],
            ['Account No', r.account_number],
            ['IFSC Code', r.ifsc_code],
            ['UPI ID', r.upi_id or 'N/A'],
        ], header_color=colors.Color(22 / 255, 163 / 255, 74 / 255), col_widths=[150, 330]))
        elements.append(Spacer(1, 10))
        participant_rows = [['#', 'Participant Name', 'ID Card']]
        for number, p in enumerate(r.participants, start=1):
            participant_rows.append([number, p.name, 'Uploaded' if p.id_card_url else '-'])
        elements.append(_table(
            participant_rows,
            header_color=colors.Color(37 / 255, 99 / 255, 235 / 255),
            col_widths=[30, 330, 120]
        ))
    
    if not elements:
        elements.append(Paragraph('No registrations yet.', styles['Normal']))
    
    footer = _footer(datetime.now().strftime('%Y-%m-%d %H:%M:%S'))
    doc.build(elements, onFirstPage=footer, onLaterPages=footer)
    pdf = buffer.getvalue()
    buffer.close()
    return pdf


def performance_order_workbook(order: Dict[str, list]) -> bytes:
    """One sheet per tier with the drawn serial numbers."""
    wb = Workbook()
    wb.remove(wb.active)
    for tier, schools in order.items():
        ws = wb.create_sheet(title=tier)
        ws.append(['Serial Number', 'School Name'])
        for cell in ws[1]:
            cell.font = Font(bold=True)
        for school in schools:
            _append_text(ws, [school.serial_number, school.name])
    if not wb.sheetnames:
        wb.create_sheet(title='Performance Order').append(['Serial Number', 'School Name'])
    
    stream = BytesIO()
    wb.save(stream)
    return stream.getvalue()


def read_school_rows(data: bytes) -> List[dict]:
    """
    Read 'School Name' and 'Category' columns from the first sheet.
    
    Returns:
        [{'name': str, 'tier': str}] in sheet order; blank lines are skipped.
    """
    try:
        wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as e:
        raise ValidationError('file', 'invalidWorkbook', 'Could not read the uploaded Excel file') from e
    
    ws = wb.worksheets[0]
    rows = ws.iter_rows(values_only=True)
    header = next(rows, None)
    if not header:
        wb.close()
        raise ValidationError('file', 'empty', 'The uploaded sheet has no schools')
    
    columns = [str(h).strip() if h is not None else '' for h in header]
    if 'School Name' not in columns or 'Category' not in columns:
        wb.close()
        raise ValidationError(
            'file', 'missingColumns', "The sheet needs 'School Name' and 'Category' columns"
        )
    name_index = columns.index('School Name')
    tier_index = columns.index('Category')
    
    schools = []
    for row in rows:
        if row is None or all(value is None or str(value).strip() == '' for value in row):
            continue
        name = row[name_index] if name_index < len(row) else None
        tier = row[tier_index] if tier_index < len(row) else None
        schools.append({
            'name': str(name).strip() if name is not None else '',
            'tier': str(tier).strip() if tier is not None else '',
        })
    wb.close()
    return schools
