"""PDF rendering for a normalized pathway record."""

import html
import io

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

STATUS_LABELS = {
    'pending': 'Pending',
    'in-progress': 'In progress',
    'completed': 'Completed',
}


def _text(value, default='-'):
    text = str(value or '').strip()
    return html.escape(text) if text else default


def _build_styles():
    base_styles = getSampleStyleSheet()
    return {
        'pdfTitle': ParagraphStyle(
            'PdfTitle',
            parent=base_styles['Heading1'],
            fontName='Helvetica-Bold',
            fontSize=17,
            leading=21,
            spaceAfter=6,
            textColor=colors.HexColor('#111827')
        ),
        'pdfMeta': ParagraphStyle(
            'PdfMeta',
            parent=base_styles['BodyText'],
            fontName='Helvetica',
            fontSize=9.5,
            leading=12.5,
            textColor=colors.HexColor('#4B5563')
        ),
        'pdfSection': ParagraphStyle(
            'PdfSection',
            parent=base_styles['Heading2'],
            fontName='Helvetica-Bold',
            fontSize=12.5,
            leading=16,
            spaceBefore=6,
            spaceAfter=6,
            textColor=colors.HexColor('#111827')
        ),
        'pdfStep': ParagraphStyle(
            'PdfStep',
            parent=base_styles['BodyText'],
            fontName='Helvetica-Bold',
            fontSize=10.5,
            leading=14,
            textColor=colors.HexColor('#1F2937')
        ),
        'pdfBody': ParagraphStyle(
            'PdfBody',
            parent=base_styles['BodyText'],
            fontName='Helvetica',
            fontSize=9.5,
            leading=13,
            textColor=colors.HexColor('#111827')
        ),
        'pdfTask': ParagraphStyle(
            'PdfTask',
            parent=base_styles['BodyText'],
            fontName='Helvetica',
            fontSize=9.5,
            leading=12.5,
            leftIndent=10,
            textColor=colors.HexColor('#1F2937')
        ),
        'pdfNotice': ParagraphStyle(
            'PdfNotice',
            parent=base_styles['BodyText'],
            fontName='Helvetica-Oblique',
            fontSize=9,
            leading=12,
            textColor=colors.HexColor('#92400E')
        ),
    }


def _grid_table(rows, col_widths):
    table = Table(rows, colWidths=col_widths, repeatRows=1 if len(rows) > 1 else 0, hAlign='LEFT')
    table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('LEFTPADDING', (0, 0), (-1, -1), 4),
        ('RIGHTPADDING', (0, 0), (-1, -1), 4),
        ('TOPPADDING', (0, 0), (-1, -1), 2),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
        ('GRID', (0, 0), (-1, -1), 0.35, colors.HexColor('#E5E7EB')),
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#F9FAFB')),
    ]))
    return table


def _append_key_values(story, title, data, styles):
    if not isinstance(data, dict) or not data:
        return
    rows = []
    for key, value in data.items():
        if isinstance(value, (list, tuple)):
            value = ', '.join(str(item) for item in value if str(item).strip())
        elif isinstance(value, dict):
            continue
        rows.append([Paragraph(f"<b>{_text(key)}</b>", styles['pdfMeta']), Paragraph(_text(value), styles['pdfBody'])])
    if not rows:
        return
    story.append(Paragraph(title, styles['pdfSection']))
    story.append(_grid_table(rows, [40 * mm, 141 * mm]))
    story.append(Spacer(1, 8))


def _append_named_list(story, title, items, columns, styles):
    items = [item for item in (items or []) if isinstance(item, dict)]
    if not items:
        return
    story.append(Paragraph(title, styles['pdfSection']))
    rows = [[Paragraph(f"<b>{label}</b>", styles['pdfMeta']) for _, label in columns]]
    for item in items:
        rows.append([Paragraph(_text(item.get(key)), styles['pdfBody']) for key, _ in columns])
    width = 181 / len(columns)
    story.append(_grid_table(rows, [width * mm] * len(columns)))
    story.append(Spacer(1, 8))


def build_pathway_pdf(pathway):
    """Render a pathway record into an in-memory PDF."""
    pathway = pathway or {}
    pdf_buffer = io.BytesIO()
    title = f"Study Pathway: {str(pathway.get('course', '') or '').strip() or 'Study Abroad'}"
    doc = SimpleDocTemplate(
        pdf_buffer,
        pagesize=A4,
        leftMargin=16 * mm,
        rightMargin=16 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
        title=title,
    )
    styles = _build_styles()
    story = [Paragraph(_text(title), styles['pdfTitle'])]

    timeline = pathway.get('timeline') if isinstance(pathway.get('timeline'), dict) else {}
    metadata_rows = [
        [Paragraph('<b>Country</b>', styles['pdfMeta']), Paragraph(_text(pathway.get('country')), styles['pdfMeta'])],
        [Paragraph('<b>Course</b>', styles['pdfMeta']), Paragraph(_text(pathway.get('course')), styles['pdfMeta'])],
        [Paragraph('<b>Academic level</b>', styles['pdfMeta']), Paragraph(_text(pathway.get('academicLevel')), styles['pdfMeta'])],
        [Paragraph('<b>Total duration</b>', styles['pdfMeta']), Paragraph(_text(timeline.get('totalDuration')), styles['pdfMeta'])],
        [Paragraph('<b>Generated</b>', styles['pdfMeta']), Paragraph(_text(pathway.get('generatedAt')), styles['pdfMeta'])],
    ]
    story.append(_grid_table(metadata_rows, [36 * mm, 145 * mm]))
    story.append(Spacer(1, 10))

    if pathway.get('isFallback'):
        story.append(Paragraph(
            'This pathway was built from an unstructured AI response. Regenerate it for a full plan.',
            styles['pdfNotice'],
        ))
        story.append(Spacer(1, 8))

    _append_named_list(
        story,
        'Timeline',
        timeline.get('phases'),
        [('phase', 'Phase'), ('duration', 'Duration'), ('description', 'Description')],
        styles,
    )

    story.append(Paragraph('Steps', styles['pdfSection']))
    steps = pathway.get('steps') if isinstance(pathway.get('steps'), list) else []
    if not steps:
        story.append(Paragraph('No steps available.', styles['pdfBody']))
    for step in steps:
        status = STATUS_LABELS.get(step.get('status'), 'Pending')
        heading = f"{step.get('step', '')}. {_text(step.get('title'), 'Step')} ({status})"
        story.append(Paragraph(heading, styles['pdfStep']))
        if str(step.get('description', '') or '').strip():
            story.append(Paragraph(_text(step.get('description')), styles['pdfBody']))
        if str(step.get('duration', '') or '').strip():
            story.append(Paragraph(f"<b>Duration:</b> {_text(step.get('duration'))}", styles['pdfMeta']))
        for task in step.get('tasks') or []:
            story.append(Paragraph(f"- {_text(task)}", styles['pdfTask']))
        story.append(Spacer(1, 6))

    _append_named_list(
        story,
        'Universities',
        pathway.get('universities'),
        [('name', 'Name'), ('city', 'City'), ('tuition', 'Tuition'), ('ranking', 'Ranking')],
        styles,
    )
    _append_named_list(
        story,
        'Scholarships',
        pathway.get('scholarships'),
        [('name', 'Name'), ('amount', 'Amount'), ('eligibility', 'Eligibility')],
        styles,
    )
    _append_key_values(story, 'Visa requirements', pathway.get('visaRequirements'), styles)
    _append_key_values(story, 'Estimated costs', pathway.get('costs'), styles)
    _append_key_values(story, 'Language requirements', pathway.get('languageRequirements'), styles)
    _append_key_values(story, 'Career prospects', pathway.get('careerProspects'), styles)

    tips = [tip for tip in (pathway.get('tips') or []) if str(tip).strip()]
    if tips:
        story.append(Paragraph('Tips', styles['pdfSection']))
        for tip in tips:
            story.append(Paragraph(f"- {_text(tip)}", styles['pdfTask']))

    doc.build(story)
    pdf_buffer.seek(0)
    return pdf_buffer
