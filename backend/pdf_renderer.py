"""
Flow Renderer: fixed-page PDF output on a ReportLab canvas.

The renderer owns an explicit cursor measured downward from the top of the
page. Before a card is drawn its height is estimated with the same wrapped
lines that will be drawn, and a page break is forced when the card would
cross the bottom margin. A card therefore never spans two pages, and every
drawn card leaves a CardPlacement that records where it landed.

Document structure (user report):
    Title and header lines
    Resumo de Progresso (progress card)
    Detalhamento por Tópico, one page per topic, one card per question

Document structure (builder report):
    1- Introdução
    2- Metodologia de Avaliação (criteria tables)
    3- Qualificação do Avaliador
    4- Execução (one page per section, cards, Apontamentos)
    5- CONCLUSÃO (counts table, effectiveness verdict)
    6- ANEXO EVIDÊNCIAS (files per evaluated item)
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Dict, List, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas as pdf_canvas
from reportlab.platypus import Flowable, Paragraph, Table, TableStyle

import assessment
import report_text
from card_model import (
    Card,
    LabeledField,
    LinkBullet,
    SectionHeading,
    StatusLine,
    Title,
    build_builder_card,
    build_progress_card,
    build_question_card,
)
from dataset import (
    BuilderReportOptions,
    BuilderSection,
    ComplianceDataset,
    ProgressSummary,
    ReportKind,
    UserRecord,
)
from text_metrics import line_height, wrap_text

logger = logging.getLogger(__name__)

# =============================================================================
# STYLING CONSTANTS
# =============================================================================

PAGE_SIZE = A4
MARGIN = 50

BOX_PADDING_X = 16
BOX_PADDING_Y = 14
CARD_SPACING = 10

PLD_BLUE = colors.HexColor("#1f3a5f")
LINE_COLOR = colors.HexColor("#e2e8f0")
TEXT_MUTED = colors.HexColor("#475569")
TEXT_DARK = colors.HexColor("#0f172a")
LINK_COLOR = colors.HexColor("#1d4ed8")
ROW_ALT = colors.HexColor("#f8f9fa")

# Extra entities for text placed inside a double-quoted markup attribute
ATTRIBUTE_ENTITIES = {'"': "&quot;"}


@dataclass(frozen=True)
class BlockStyle:
    """Font and vertical spacing of one content block type."""
    font: str
    size: float
    color: colors.Color
    line_gap: float = 0.0
    space_before: float = 0.0
    space_after: float = 0.0
    underline: bool = False

    @property
    def line_height(self) -> float:
        return line_height(self.size, self.line_gap)


BLOCK_STYLES = {
    Title: BlockStyle("Helvetica-Bold", 12, TEXT_DARK, line_gap=2, space_after=6),
    LabeledField: BlockStyle("Helvetica", 10, TEXT_MUTED, line_gap=2, space_after=2),
    StatusLine: BlockStyle("Helvetica-Oblique", 10, TEXT_MUTED, line_gap=2),
    SectionHeading: BlockStyle("Helvetica-Bold", 10.5, TEXT_DARK, space_before=6, space_after=3),
    LinkBullet: BlockStyle("Helvetica", 10, LINK_COLOR, line_gap=2, space_after=2, underline=True),
}

HEADING_STYLE = BlockStyle("Helvetica-Bold", 13, PLD_BLUE, line_gap=2, space_before=4, space_after=8)
BODY_STYLE = BlockStyle("Helvetica", 10, TEXT_DARK, line_gap=3, space_after=6)
BAR_STYLE = BlockStyle("Helvetica-Bold", 11, colors.white)


def _get_styles() -> Dict[str, ParagraphStyle]:
    """Paragraph styles for table cells."""
    base = getSampleStyleSheet()

    return {
        "table_header": ParagraphStyle(
            "TableHeader",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=9,
            textColor=colors.white,
            alignment=TA_CENTER,
        ),
        "table_cell": ParagraphStyle(
            "TableCell",
            parent=base["Normal"],
            fontSize=8.5,
            leading=11,
        ),
        "table_cell_bold": ParagraphStyle(
            "TableCellBold",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=8.5,
            leading=11,
        ),
        "table_link": ParagraphStyle(
            "TableLink",
            parent=base["Normal"],
            fontSize=8.5,
            leading=11,
            textColor=LINK_COLOR,
        ),
    }


# =============================================================================
# LAYOUT RECORDS
# =============================================================================

@dataclass(frozen=True)
class BlockLayout:
    """A content block with the exact lines it will be drawn as."""
    block: object
    style: BlockStyle
    lines: List[str]

    @property
    def height(self) -> float:
        return self.style.space_before + len(self.lines) * self.style.line_height + self.style.space_after


@dataclass(frozen=True)
class CardPlacement:
    """Where a drawn card's box landed. y values are measured from the page top."""
    key: str
    top_page: int
    bottom_page: int
    top_y: float
    bottom_y: float
    estimated_height: float

    @property
    def fits_one_page(self) -> bool:
        return self.top_page == self.bottom_page


# =============================================================================
# FLOW RENDERER
# =============================================================================

class FlowRenderer:
    """
    Manual-cursor PDF writer.

    The cursor only moves through page_break(), ensure_space() and the draw
    operations, so height decisions and drawing never disagree.
    """

    def __init__(self, title: str = "", author: str = "PLD Report Compositor",
                 page_size=PAGE_SIZE, margin: float = MARGIN):
        self.buffer = BytesIO()
        self.canvas = pdf_canvas.Canvas(self.buffer, pagesize=page_size)
        self.canvas.setTitle(title)
        self.canvas.setAuthor(author)
        self.page_width, self.page_height = page_size
        self.margin = margin
        self.content_width = self.page_width - 2 * margin
        self.page_top = margin
        self.page_bottom = self.page_height - margin
        self.y = self.page_top
        self.placements: List[CardPlacement] = []
        self.rendered_fields: Dict[str, List[str]] = {}
        self.styles = _get_styles()
        self._finished = False

    @property
    def page_number(self) -> int:
        return self.canvas.getPageNumber()

    @property
    def content_height(self) -> float:
        return self.page_bottom - self.page_top

    @property
    def remaining(self) -> float:
        return self.page_bottom - self.y

    def _pdf_y(self, y: float) -> float:
        """Convert a top-down cursor value to ReportLab's bottom-up coordinate."""
        return self.page_height - y

    # -------------------------------------------------------------------------
    # Pagination
    # -------------------------------------------------------------------------

    def page_break(self):
        self._draw_footer()
        self.canvas.showPage()
        self.y = self.page_top

    def ensure_space(self, height: float):
        """Start a new page unless `height` fits below the cursor."""
        if self.y + height > self.page_bottom and self.y > self.page_top:
            self.page_break()

    def move_down(self, amount: float):
        self.y += amount

    def _draw_footer(self):
        text = f"Página {self.page_number}"
        self.canvas.saveState()
        self.canvas.setFont("Helvetica", 8)
        self.canvas.setFillColor(colors.gray)
        self.canvas.drawCentredString(self.page_width / 2, 0.5 * inch, text)
        self.canvas.restoreState()

    # -------------------------------------------------------------------------
    # Cards
    # -------------------------------------------------------------------------

    def _block_layout(self, block) -> BlockLayout:
        style = BLOCK_STYLES[type(block)]
        width = self.content_width - 2 * BOX_PADDING_X
        return BlockLayout(block, style, wrap_text(block.text, width, style.font, style.size))

    def layout_card(self, card: Card) -> List[BlockLayout]:
        return [self._block_layout(block) for block in card.blocks]

    def estimate_card(self, card: Card) -> float:
        """Height of the card's box, padding included, excluding trailing spacing."""
        return 2 * BOX_PADDING_Y + sum(layout.height for layout in self.layout_card(card))

    def draw_card(self, card: Card) -> CardPlacement:
        layouts = self.layout_card(card)
        height = 2 * BOX_PADDING_Y + sum(layout.height for layout in layouts)
        oversize = height > self.content_height

        if oversize:
            logger.warning(
                "Card %s is %.0fpt tall, taller than a page (%.0fpt); it will continue on the next page",
                card.key, height, self.content_height,
            )
            if self.y > self.page_top:
                self.page_break()
        else:
            self.ensure_space(height)

        top_page = self.page_number
        top_y = self.y
        box_top = self.y
        self.y += BOX_PADDING_Y
        x = self.margin + BOX_PADDING_X
        drawn_fields = []

        for layout in layouts:
            self.y += layout.style.space_before
            for index, line in enumerate(layout.lines):
                trailing = layout.style.space_after if index == len(layout.lines) - 1 else 0
                if oversize and self.y + layout.style.line_height + trailing + BOX_PADDING_Y > self.page_bottom:
                    self._stroke_box(box_top, self.page_bottom)
                    self.page_break()
                    box_top = self.y
                    self.y += BOX_PADDING_Y
                self._draw_block_line(layout, line, index, x)
            self.y += layout.style.space_after
            if isinstance(layout.block, LabeledField):
                drawn_fields.append(layout.block.text)

        bottom_y = self.y + BOX_PADDING_Y
        self._stroke_box(box_top, bottom_y)

        placement = CardPlacement(
            key=card.key,
            top_page=top_page,
            bottom_page=self.page_number,
            top_y=top_y,
            bottom_y=bottom_y,
            estimated_height=height,
        )
        self.placements.append(placement)
        self.rendered_fields[card.key] = drawn_fields
        self.y = bottom_y + CARD_SPACING
        return placement

    def _stroke_box(self, top: float, bottom: float):
        self.canvas.saveState()
        self.canvas.setStrokeColor(LINE_COLOR)
        self.canvas.setLineWidth(1)
        self.canvas.rect(self.margin, self._pdf_y(bottom), self.content_width, bottom - top,
                         stroke=1, fill=0)
        self.canvas.restoreState()

    def _draw_block_line(self, layout: BlockLayout, line: str, index: int, x: float):
        """Draw one wrapped line of a block at the cursor and advance."""
        style = layout.style
        baseline = self._pdf_y(self.y + style.size)
        block = layout.block

        self.canvas.setFont(style.font, style.size)
        prefix = f"{block.label}:" if isinstance(block, LabeledField) else ""
        if prefix and index == 0 and line.startswith(prefix):
            # Same font for label and value so the wrap width stays exact
            self.canvas.setFillColor(TEXT_DARK)
            self.canvas.drawString(x, baseline, prefix)
            self.canvas.setFillColor(style.color)
            offset = stringWidth(prefix, style.font, style.size)
            self.canvas.drawString(x + offset, baseline, line[len(prefix):])
        else:
            self.canvas.setFillColor(style.color)
            self.canvas.drawString(x, baseline, line)

        if style.underline and line:
            width = stringWidth(line, style.font, style.size)
            self.canvas.saveState()
            self.canvas.setStrokeColor(style.color)
            self.canvas.setLineWidth(0.5)
            self.canvas.line(x, baseline - 1.5, x + width, baseline - 1.5)
            self.canvas.restoreState()
            if isinstance(block, LinkBullet) and block.url:
                self.canvas.linkURL(block.url, (x, baseline - 3, x + width, baseline + style.size),
                                    relative=0, thickness=0)

        self.y += style.line_height

    # -------------------------------------------------------------------------
    # Free text
    # -------------------------------------------------------------------------

    def text(self, text: str, style: BlockStyle = BODY_STYLE, align: str = "left",
             indent: float = 0.0):
        """Wrapped paragraph; may continue on the next page line by line."""
        width = self.content_width - indent
        self.y += style.space_before
        for line in wrap_text(text, width, style.font, style.size):
            self.ensure_space(style.line_height)
            baseline = self._pdf_y(self.y + style.size)
            self.canvas.setFont(style.font, style.size)
            self.canvas.setFillColor(style.color)
            if align == "center":
                self.canvas.drawCentredString(self.page_width / 2, baseline, line)
            else:
                self.canvas.drawString(self.margin + indent, baseline, line)
            self.y += style.line_height
        self.y += style.space_after

    def heading(self, text: str, style: BlockStyle = HEADING_STYLE, keep_with_next: float = 40):
        lines = wrap_text(text, self.content_width, style.font, style.size)
        self.ensure_space(style.space_before + len(lines) * style.line_height + keep_with_next)
        self.text(text, style)

    def title_bar(self, text: str, keep_with_next: float = 60):
        """Full-width filled bar used for the numbered builder chapters."""
        style = BAR_STYLE
        lines = wrap_text(text, self.content_width - 16, style.font, style.size)
        height = len(lines) * style.line_height + 12
        self.ensure_space(height + keep_with_next)
        self.canvas.saveState()
        self.canvas.setFillColor(PLD_BLUE)
        self.canvas.rect(self.margin, self._pdf_y(self.y + height), self.content_width, height,
                         stroke=0, fill=1)
        self.canvas.restoreState()
        self.y += 6
        for line in lines:
            self.canvas.setFont(style.font, style.size)
            self.canvas.setFillColor(style.color)
            self.canvas.drawString(self.margin + 8, self._pdf_y(self.y + style.size), line)
            self.y += style.line_height
        self.y += 6 + 8

    def rule(self, spacing: float = 8):
        self.ensure_space(2 * spacing)
        self.y += spacing
        self.canvas.saveState()
        self.canvas.setStrokeColor(LINE_COLOR)
        self.canvas.line(self.margin, self._pdf_y(self.y), self.page_width - self.margin, self._pdf_y(self.y))
        self.canvas.restoreState()
        self.y += spacing

    def flowable(self, flowable: Flowable, space_after: float = 10):
        """
        Draw a platypus flowable (tables) at the cursor, splitting it across
        pages when it does not fit.
        """
        pending = [flowable]
        while pending:
            current = pending.pop(0)
            _, height = current.wrapOn(self.canvas, self.content_width, self.remaining)
            if height <= self.remaining:
                current.drawOn(self.canvas, self.margin, self._pdf_y(self.y + height))
                self.y += height
                continue

            parts = current.splitOn(self.canvas, self.content_width, self.remaining)
            if len(parts) > 1:
                pending = list(parts) + pending
            elif self.y > self.page_top:
                self.page_break()
                pending.insert(0, current)
            else:
                logger.warning("Flowable taller than a page drawn without splitting")
                current.drawOn(self.canvas, self.margin, self._pdf_y(self.y + height))
                self.y += height
        self.y += space_after

    def finish(self) -> bytes:
        """Close the last page and return the document bytes."""
        if not self._finished:
            self._draw_footer()
            self.canvas.save()
            self._finished = True
        return self.buffer.getvalue()


# =============================================================================
# TABLE BUILDERS
# =============================================================================

def _header_table_style(extra: Optional[list] = None) -> TableStyle:
    commands = [
        ("BACKGROUND", (0, 0), (-1, 0), PLD_BLUE),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.gray),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ("TOPPADDING", (0, 0), (-1, -1), 5),
    ]
    return TableStyle(commands + (extra or []))


def _criteria_table(title: str, criteria, styles, width: float) -> Table:
    data = [
        [Paragraph(escape(title), styles["table_header"]), ""],
    ]
    commands = [("SPAN", (0, 0), (1, 0))]
    for row, (label, description, fill) in enumerate(criteria, start=1):
        data.append([
            Paragraph(escape(label), styles["table_cell_bold"]),
            Paragraph(escape(description), styles["table_cell"]),
        ])
        commands.append(("BACKGROUND", (0, row), (0, row), colors.HexColor(fill)))
    table = Table(data, colWidths=[width * 0.28, width * 0.72], repeatRows=1)
    table.setStyle(_header_table_style(commands))
    return table


def _conclusion_table(rows: Sequence[assessment.ConclusionRow], styles, width: float) -> Table:
    header = ["Item avaliado", "Baixa", "Média", "Alta", "Total"]
    data = [[Paragraph(text, styles["table_header"]) for text in header]]
    for row in rows:
        cell_style = styles["table_cell_bold"] if row.label == "TOTAL" else styles["table_cell"]
        data.append([
            Paragraph(escape(row.label), cell_style),
            str(row.baixa), str(row.media), str(row.alta), str(row.total),
        ])

    commands = [
        ("ALIGN", (1, 1), (-1, -1), "CENTER"),
        ("FONTSIZE", (1, 1), (-1, -1), 8.5),
        ("FONTNAME", (0, len(data) - 1), (-1, len(data) - 1), "Helvetica-Bold"),
    ]
    for i in range(1, len(data)):
        if i % 2 == 0:
            commands.append(("BACKGROUND", (0, i), (-1, i), ROW_ALT))

    table = Table(data, colWidths=[width * 0.52] + [width * 0.12] * 4, repeatRows=1)
    table.setStyle(_header_table_style(commands))
    return table


def _annex_table(rows: Sequence[assessment.AnnexRow], styles, width: float) -> Table:
    data = [[Paragraph("Item avaliado", styles["table_header"]),
             Paragraph("Arquivos", styles["table_header"])]]
    for row in rows:
        if row.files:
            links = "<br/>".join(
                f'<link href="{escape(f.url, ATTRIBUTE_ENTITIES)}"><u>{escape(f.name)}</u></link>' for f in row.files
            )
            files_cell = Paragraph(links, styles["table_link"])
        else:
            files_cell = Paragraph("-", styles["table_cell"])
        data.append([Paragraph(escape(row.item_label), styles["table_cell"]), files_cell])

    table = Table(data, colWidths=[width * 0.4, width * 0.6], repeatRows=1)
    table.setStyle(_header_table_style())
    return table


# =============================================================================
# REPORT COMPOSITION
# =============================================================================

def _draw_document_header(renderer: FlowRenderer, title: str, lines: List[str]):
    renderer.text(title, BlockStyle("Helvetica-Bold", 18, PLD_BLUE, space_after=10), align="center")
    for line in lines:
        renderer.text(line, BlockStyle("Helvetica", 10, TEXT_MUTED, line_gap=2), align="center")
    renderer.rule(12)


def render_user_report_pdf(
    user: UserRecord,
    kind: ReportKind,
    progress: ProgressSummary,
    dataset: ComplianceDataset,
    base_url: str,
    generated_at: Optional[datetime] = None,
    renderer: Optional[FlowRenderer] = None,
) -> bytes:
    """
    Render the FULL or PARTIAL topic-mode report.

    Args:
        user: Report owner shown in the header
        kind: FULL or PARTIAL
        progress: Summary drawn in the "Resumo de Progresso" box
        dataset: Topics and questions in stored order
        base_url: Normalised public base URL for attachment links
        generated_at: Timestamp printed in the header
        renderer: Optional renderer to draw into (tests inspect its placements)

    Returns:
        PDF file contents as bytes
    """
    generated_at = generated_at or datetime.now()
    renderer = renderer or FlowRenderer(title=report_text.USER_REPORT_TITLE)

    _draw_document_header(renderer, report_text.USER_REPORT_TITLE,
                          report_text.user_report_header(user, kind, generated_at))

    renderer.heading(report_text.PROGRESS_HEADING)
    renderer.draw_card(build_progress_card(progress))

    renderer.heading(report_text.TOPICS_HEADING)
    for topic_index, topic in enumerate(dataset):
        if topic_index > 0:
            renderer.page_break()
        renderer.heading(report_text.topic_heading(topic.name))
        for line in report_text.topic_details(topic):
            renderer.text(line, BlockStyle("Helvetica", 10, TEXT_MUTED, line_gap=2, space_after=2))
        renderer.move_down(6)

        for index, question in enumerate(topic.questions, start=1):
            renderer.draw_card(build_question_card(question, index, base_url))

    logger.info("Rendered PDF user report: %d topics, %d cards, %d pages",
                len(dataset), len(renderer.placements), renderer.page_number)
    return renderer.finish()


def _draw_findings(renderer: FlowRenderer, number: str, findings, include_recommendations: bool):
    renderer.heading(f"{number} Apontamentos", BlockStyle("Helvetica-Bold", 11, PLD_BLUE,
                                                        line_gap=2, space_before=4, space_after=6))
    if not findings:
        renderer.text(report_text.NO_DEFICIENCIES)
        return
    for position, item in enumerate(findings, start=1):
        headline, details = report_text.deficiency_lines(position, item, include_recommendations)
        renderer.text(headline, BlockStyle("Helvetica-Bold", 10, TEXT_DARK, line_gap=2, space_after=2))
        for detail in details:
            renderer.text(detail, BlockStyle("Helvetica", 10, TEXT_MUTED, line_gap=2, space_after=2),
                          indent=12)
        renderer.move_down(4)


def render_builder_report_pdf(
    user: UserRecord,
    sections: Sequence[BuilderSection],
    options: BuilderReportOptions,
    base_url: str,
    generated_at: Optional[datetime] = None,
    renderer: Optional[FlowRenderer] = None,
) -> bytes:
    """Render the builder-mode assessment report."""
    generated_at = generated_at or datetime.now()
    renderer = renderer or FlowRenderer(title=report_text.BUILDER_REPORT_TITLE)
    width = renderer.content_width
    styles = renderer.styles

    _draw_document_header(renderer, report_text.BUILDER_REPORT_TITLE,
                          report_text.builder_report_header(user, generated_at))

    renderer.title_bar("1- Introdução")
    for paragraph in report_text.builder_introduction(options, generated_at):
        renderer.text(paragraph)

    renderer.title_bar("2- Metodologia de Avaliação")
    renderer.text(report_text.METHODOLOGY_INTRO)
    for item in report_text.METHODOLOGY_ITEMS:
        renderer.text(f"• {item}", indent=12)
    section_lines = report_text.section_label_lines(sections)
    renderer.text(report_text.SECTIONS_INTRO)
    for line in section_lines:
        renderer.text(f"• {line}", indent=12)
    if not section_lines:
        renderer.text("-")
    renderer.text(report_text.EXECUTION_REFERENCE)
    renderer.flowable(_criteria_table(report_text.CRITICALITY_TABLE_TITLE,
                                      report_text.CRITICALITY_CRITERIA, styles, width))
    renderer.flowable(_criteria_table(report_text.EFFECTIVENESS_TABLE_TITLE,
                                      report_text.EFFECTIVENESS_CRITERIA, styles, width))

    renderer.title_bar("3- Qualificação do Avaliador")
    renderer.text(options.evaluator_qualification or report_text.EVALUATOR_FALLBACK)

    renderer.page_break()
    renderer.title_bar("4- Execução")
    findings = assessment.deficiencies_by_section(assessment.collect_deficiencies(sections))
    prefix = report_text.EXECUTION_PREFIX
    for position, section in enumerate(sections, start=1):
        if position > 1:
            renderer.page_break()
        renderer.heading(f"{prefix}.{position} {section.label}")
        if section.description:
            renderer.text(f"Descrição do item avaliado: {section.description}")
        if section.norma_reference:
            renderer.text(f"Referência normativa: {section.norma_reference}")
        for index, question in enumerate(section.questions, start=1):
            renderer.draw_card(build_builder_card(question, index, base_url))
        _draw_findings(renderer, f"{prefix}.{position}.1", findings.get(section.label, []),
                       options.include_recommendations)

    renderer.page_break()
    renderer.title_bar("5- CONCLUSÃO")
    renderer.text(report_text.CONCLUSION_INTRO)
    renderer.flowable(_conclusion_table(assessment.build_conclusion_rows(sections), styles, width))

    if options.show_methodology:
        result = assessment.evaluate_effectiveness(sections)
        renderer.heading("Resultado da Avaliação")
        renderer.text(f"Resultado: {result.verdict}",
                      BlockStyle("Helvetica-Bold", 11, TEXT_DARK, line_gap=2, space_after=4))
        renderer.text(result.description)

    renderer.title_bar("6- ANEXO EVIDÊNCIAS")
    renderer.text(report_text.ANNEX_INTRO)
    annex_rows = assessment.build_evidence_annex_rows(sections, prefix, base_url)
    if annex_rows:
        renderer.flowable(_annex_table(annex_rows, styles, width))
    else:
        renderer.text("-")

    logger.info("Rendered PDF builder report: %d sections, %d cards, %d pages",
                len(sections), len(renderer.placements), renderer.page_number)
    return renderer.finish()
