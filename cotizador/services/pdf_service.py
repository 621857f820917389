"""
PDF rendering of quotes.

Two steps:
- build_quote_document(): pure layout model (every string that ends up on
  the page, already formatted), easy to inspect in tests.
- render_quote_pdf(): draws a QuoteDocument with reportlab platypus.
"""
import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.graphics.shapes import Drawing, Rect, String
from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    CondPageBreak, Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
)

from cotizador.services.totals_service import calculate_totals, line_subtotal
from cotizador.utils.formatters import date_long_mx, money_mx

logger = logging.getLogger(__name__)

DOCUMENT_TITLE = 'COTIZACIÓN'
TABLE_HEADER = ['#', 'Modelo', 'Descripción', 'P. Unitario', 'Cant.', 'Subtotal']
CLIENT_PLACEHOLDER = 'N/A'

# Narrative sections in print order: (quote attribute, section title)
NARRATIVE_SECTIONS = [
    ('scope', 'Alcance del Trabajo:'),
    ('exclusions', 'Exclusiones:'),
    ('payment_terms', 'Condiciones de Pago:'),
    ('observations', 'Observaciones:'),
    ('training', 'Capacitación:'),
]

BRAND_GREEN = colors.Color(45 / 255.0, 90 / 255.0, 61 / 255.0)
SECTION_FILL = colors.Color(245 / 255.0, 245 / 255.0, 245 / 255.0)
ALT_ROW_FILL = colors.Color(250 / 255.0, 250 / 255.0, 250 / 255.0)
GRID_COLOR = colors.Color(200 / 255.0, 200 / 255.0, 200 / 255.0)
TEXT_COLOR = colors.Color(60 / 255.0, 60 / 255.0, 60 / 255.0)
MUTED_COLOR = colors.Color(120 / 255.0, 120 / 255.0, 120 / 255.0)

MARGIN = 15 * mm
MARK_SIZE = 30 * mm
SECTION_HEADER_HEIGHT = 8 * mm
BODY_LINE_HEIGHT = 5 * mm


@dataclass
class QuoteDocument:
    """Everything printed on a quote PDF, already formatted."""
    company_name: str
    tagline: str
    initials: str
    number: str
    issue_date: str
    expiry_date: Optional[str] = None
    title: str = DOCUMENT_TITLE
    client_lines: List[Tuple[str, str]] = field(default_factory=list)
    project_title: str = ''
    prepared_by: Optional[str] = None
    table_header: List[str] = field(default_factory=lambda: list(TABLE_HEADER))
    rows: List[List[str]] = field(default_factory=list)
    totals: List[Tuple[str, str]] = field(default_factory=list)
    sections: List[Tuple[str, str]] = field(default_factory=list)
    footer_lines: List[str] = field(default_factory=list)


def company_initials(name: Optional[str]) -> str:
    """'CVA Systems' -> 'CVA'; 'Acme Seguridad Integral' -> 'ASI'."""
    words = (name or '').split()
    if not words:
        return ''
    first = words[0]
    if first.isupper() and len(first) <= 4:
        return first
    return ''.join(word[0] for word in words[:3]).upper()


def _attr(obj: Any, name: str):
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def build_quote_document(quote: Any, items: List[Any], client: Any, business: Dict[str, Any]) -> QuoteDocument:
    """
    Lay out a quote.

    Client lines: the client name (or N/A), then only the non-empty legal
    name, RFC, email and phone. Totals are computed from ``items``, which
    must already be in position order.
    """
    client_lines = [('Cliente:', _attr(client, 'name') or CLIENT_PLACEHOLDER)]
    for label, attribute in (('Razón Social:', 'legal_name'), ('RFC:', 'rfc'),
                             ('Email:', 'email'), ('Teléfono:', 'phone')):
        value = _attr(client, attribute)
        if value:
            client_lines.append((label, value))

    rows = []
    for index, item in enumerate(items, start=1):
        rows.append([
            str(index),
            _attr(item, 'concept') or '-',
            _attr(item, 'description') or '-',
            money_mx(_attr(item, 'unit_price') or 0),
            str(_attr(item, 'quantity')),
            money_mx(line_subtotal(item)),
        ])

    totals = calculate_totals(items).rounded()
    sections = []
    for attribute, title in NARRATIVE_SECTIONS:
        body = (_attr(quote, attribute) or '').strip()
        if body:
            sections.append((title, body))

    company_name = business.get('name') or ''
    tagline = business.get('tagline') or ''
    footer_lines = [' - '.join(part for part in (company_name, tagline) if part)]
    if business.get('footer'):
        footer_lines.append(business['footer'])

    expiry = _attr(quote, 'expiry_date')
    return QuoteDocument(
        company_name=company_name,
        tagline=tagline,
        initials=company_initials(company_name),
        number=str(_attr(quote, 'number')),
        issue_date=date_long_mx(_attr(quote, 'issue_date')),
        expiry_date=date_long_mx(expiry) if expiry else None,
        client_lines=client_lines,
        project_title=_attr(quote, 'title') or '',
        prepared_by=_attr(quote, 'prepared_by') or None,
        rows=rows,
        totals=[
            ('Subtotal:', money_mx(totals.subtotal)),
            ('IVA (16%):', money_mx(totals.tax)),
            ('TOTAL:', money_mx(totals.total)),
        ],
        sections=sections,
        footer_lines=footer_lines,
    )


def _styles():
    base = getSampleStyleSheet()
    return {
        'company': ParagraphStyle('Company', parent=base['Normal'], fontName='Helvetica-Bold',
                                  fontSize=16, leading=20, textColor=BRAND_GREEN),
        'tagline': ParagraphStyle('Tagline', parent=base['Normal'], fontSize=9, textColor=MUTED_COLOR),
        'title': ParagraphStyle('DocTitle', parent=base['Normal'], fontName='Helvetica-Bold',
                                fontSize=22, leading=26, textColor=BRAND_GREEN, alignment=TA_RIGHT),
        'meta': ParagraphStyle('Meta', parent=base['Normal'], fontSize=10, leading=14,
                               textColor=TEXT_COLOR, alignment=TA_RIGHT),
        'section': ParagraphStyle('Section', parent=base['Normal'], fontName='Helvetica-Bold',
                                  fontSize=11, textColor=BRAND_GREEN),
        'body': ParagraphStyle('Body', parent=base['Normal'], fontSize=9, leading=13, textColor=TEXT_COLOR),
        'project': ParagraphStyle('Project', parent=base['Normal'], fontName='Helvetica-Bold',
                                  fontSize=10, leading=14, textColor=TEXT_COLOR),
        'cell': ParagraphStyle('Cell', parent=base['Normal'], fontSize=8, leading=10, textColor=TEXT_COLOR),
    }


def _mark(initials: str) -> Drawing:
    drawing = Drawing(MARK_SIZE, MARK_SIZE)
    drawing.add(Rect(0, 0, MARK_SIZE, MARK_SIZE, fillColor=BRAND_GREEN, strokeColor=None))
    drawing.add(String(MARK_SIZE / 2, MARK_SIZE / 2 - 6, initials, fontName='Helvetica-Bold',
                       fontSize=18, fillColor=colors.white, textAnchor='middle'))
    return drawing


def _logo(logo_bytes: Optional[bytes], initials: str):
    if logo_bytes:
        try:
            image = Image(BytesIO(logo_bytes))
            ratio = min(MARK_SIZE / image.imageWidth, MARK_SIZE / image.imageHeight)
            image.drawWidth = image.imageWidth * ratio
            image.drawHeight = image.imageHeight * ratio
            return image
        except Exception as e:  # PIL raises several types for undecodable input
            logger.warning(f"[PDF] Logo could not be decoded, using initials mark: {e}")
    return _mark(initials)


def _section_header(title: str, styles, width) -> Table:
    table = Table([[Paragraph(escape(title), styles['section'])]], colWidths=[width],
                  rowHeights=[SECTION_HEADER_HEIGHT])
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, -1), SECTION_FILL),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('LEFTPADDING', (0, 0), (-1, -1), 3 * mm),
    ]))
    return table


def _multiline(text: str) -> str:
    return '<br/>'.join(escape(line) for line in text.splitlines())


def render_quote_pdf(document: QuoteDocument, logo_bytes: Optional[bytes] = None, compress: bool = True) -> bytes:
    """Render a QuoteDocument to PDF bytes (A4)."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=MARGIN,
        leftMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN + 10 * mm,
        title=f"{document.title} {document.number}",
        author=document.company_name,
        pageCompression=1 if compress else 0,
    )
    width = doc.width
    styles = _styles()
    elements = []

    # 1. Header band: mark/logo, company, title and quote metadata
    meta = [
        Paragraph(escape(document.title), styles['title']),
        Paragraph(f"No. {escape(document.number)}", styles['meta']),
        Paragraph(f"Fecha: {escape(document.issue_date)}", styles['meta']),
    ]
    if document.expiry_date:
        meta.append(Paragraph(f"Vigencia: {escape(document.expiry_date)}", styles['meta']))

    header = Table(
        [[
            _logo(logo_bytes, document.initials),
            [Paragraph(escape(document.company_name), styles['company']),
             Paragraph(escape(document.tagline), styles['tagline'])],
            meta,
        ]],
        colWidths=[MARK_SIZE + 4 * mm, width - MARK_SIZE - 4 * mm - 70 * mm, 70 * mm],
    )
    header.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('LEFTPADDING', (0, 0), (0, 0), 0),
        ('LINEBELOW', (0, 0), (-1, 0), 2, BRAND_GREEN),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4 * mm),
    ]))
    elements.append(header)
    elements.append(Spacer(1, 6 * mm))

    # 2. Client
    elements.append(_section_header('DATOS DEL CLIENTE', styles, width))
    client_table = Table(
        [[Paragraph(f"<b>{escape(label)}</b>", styles['body']), Paragraph(escape(value), styles['body'])]
         for label, value in document.client_lines],
        colWidths=[32 * mm, width - 32 * mm],
    )
    client_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('TOPPADDING', (0, 0), (-1, -1), 1),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 1),
    ]))
    elements.append(client_table)
    elements.append(Spacer(1, 5 * mm))

    # 3. Project
    elements.append(_section_header('PROYECTO', styles, width))
    elements.append(Spacer(1, 2 * mm))
    elements.append(Paragraph(escape(document.project_title), styles['project']))
    if document.prepared_by:
        elements.append(Paragraph(f"Elaborado por: {escape(document.prepared_by)}", styles['body']))
    elements.append(Spacer(1, 5 * mm))

    # 4. Items
    elements.append(_section_header('PARTIDAS', styles, width))
    elements.append(Spacer(1, 2 * mm))
    table_data = [document.table_header]
    for row in document.rows:
        # Text columns wrap; money and quantity cells stay plain strings
        table_data.append([
            row[0],
            Paragraph(escape(row[1]), styles['cell']),
            Paragraph(escape(row[2]), styles['cell']),
            row[3],
            row[4],
            row[5],
        ])
    fixed = 12 * mm + 28 * mm + 28 * mm + 18 * mm + 28 * mm
    items_table = Table(
        table_data,
        colWidths=[12 * mm, 28 * mm, width - fixed, 28 * mm, 18 * mm, 28 * mm],
        repeatRows=1,
    )
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), BRAND_GREEN),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 9),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTSIZE', (0, 1), (-1, -1), 8),
        ('TEXTCOLOR', (0, 1), (-1, -1), TEXT_COLOR),
        ('ALIGN', (0, 1), (0, -1), 'CENTER'),
        ('ALIGN', (3, 1), (3, -1), 'RIGHT'),
        ('ALIGN', (4, 1), (4, -1), 'CENTER'),
        ('ALIGN', (5, 1), (5, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.25, GRID_COLOR),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, ALT_ROW_FILL]),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 4 * mm))

    # 5. Totals, right-aligned, rule before TOTAL
    totals_table = Table(document.totals, colWidths=[40 * mm, 40 * mm], hAlign='RIGHT')
    last = len(document.totals) - 1
    totals_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, -1), ALT_ROW_FILL),
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), TEXT_COLOR),
        ('LINEABOVE', (0, last), (-1, last), 1, BRAND_GREEN),
        ('FONTNAME', (0, last), (-1, last), 'Helvetica-Bold'),
        ('FONTSIZE', (0, last), (-1, last), 12),
        ('TEXTCOLOR', (0, last), (-1, last), BRAND_GREEN),
    ]))
    elements.append(totals_table)
    elements.append(Spacer(1, 8 * mm))

    # 6. Narrative sections; never leave a lone header at the bottom of a page
    for title, body in document.sections:
        elements.append(CondPageBreak(SECTION_HEADER_HEIGHT + BODY_LINE_HEIGHT + 2 * mm))
        elements.append(_section_header(title, styles, width))
        elements.append(Spacer(1, 2 * mm))
        elements.append(Paragraph(_multiline(body), styles['body']))
        elements.append(Spacer(1, 4 * mm))

    def draw_footer(canvas, _doc):
        canvas.saveState()
        canvas.setFont('Helvetica', 8)
        canvas.setFillColor(MUTED_COLOR)
        y = MARGIN
        for line in reversed(document.footer_lines):
            canvas.drawCentredString(A4[0] / 2.0, y, line)
            y += 10
        canvas.restoreState()

    doc.build(elements, onFirstPage=draw_footer, onLaterPages=draw_footer)
    logger.info(f"[PDF] Rendered quote {document.number} ({len(document.rows)} items)")
    return buffer.getvalue()
