"""
Structured Renderer: flowing DOCX output with python-docx.

Pagination is left to the word processor. Each card is a one-cell table
with a fixed width and explicit borders, so an almost empty card still
keeps its full width and frame.
"""

import logging
from datetime import datetime
from io import BytesIO
from typing import Dict, List, Optional, Sequence

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor, Twips

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

logger = logging.getLogger(__name__)

# 6.5 inches, the text width of an A4 page with the margins below
CARD_WIDTH_TWIPS = 9360
CARD_BORDER_COLOR = "CBD5E1"
CARD_BORDER_SIZE = 8
CARD_FILL = "F8FAFC"
CARD_MARGIN_VERTICAL = 160
CARD_MARGIN_HORIZONTAL = 240

PLD_BLUE = "1F3A5F"
LINK_COLOR = "0563C1"
TEXT_MUTED = RGBColor(0x47, 0x55, 0x69)


# =============================================================================
# OOXML HELPERS
# =============================================================================

def _set_table_width(table, width_twips: int):
    """Fixed layout and an absolute width for the table and its single grid column."""
    table.autofit = False
    tbl_pr = table._tbl.tblPr
    tbl_w = tbl_pr.find(qn("w:tblW"))
    if tbl_w is None:
        tbl_w = OxmlElement("w:tblW")
        tbl_pr.append(tbl_w)
    tbl_w.set(qn("w:w"), str(width_twips))
    tbl_w.set(qn("w:type"), "dxa")


def _set_column_widths(table, widths_twips: Sequence[int]):
    for index, width in enumerate(widths_twips):
        table.columns[index].width = Twips(width)
        for cell in table.columns[index].cells:
            cell.width = Twips(width)


def _set_table_borders(table, color: str, size: int):
    tbl_pr = table._tbl.tblPr
    borders = OxmlElement("w:tblBorders")
    for edge in ("top", "left", "bottom", "right", "insideH", "insideV"):
        element = OxmlElement(f"w:{edge}")
        element.set(qn("w:val"), "single")
        element.set(qn("w:sz"), str(size))
        element.set(qn("w:space"), "0")
        element.set(qn("w:color"), color)
        borders.append(element)
    tbl_pr.insert_element_before(borders, "w:shd", "w:tblLayout", "w:tblCellMar", "w:tblLook")


def _set_cell_margins(table, vertical: int, horizontal: int):
    tbl_pr = table._tbl.tblPr
    margins = OxmlElement("w:tblCellMar")
    for edge, value in (("top", vertical), ("left", horizontal),
                        ("bottom", vertical), ("right", horizontal)):
        element = OxmlElement(f"w:{edge}")
        element.set(qn("w:w"), str(value))
        element.set(qn("w:type"), "dxa")
        margins.append(element)
    tbl_pr.insert_element_before(margins, "w:tblLook")


def _set_cell_shading(cell, fill: str):
    tc_pr = cell._tc.get_or_add_tcPr()
    shading = OxmlElement("w:shd")
    shading.set(qn("w:val"), "clear")
    shading.set(qn("w:color"), "auto")
    shading.set(qn("w:fill"), fill)
    tc_pr.append(shading)


def _add_hyperlink(paragraph, text: str, url: str, color: str = LINK_COLOR):
    """Append an external hyperlink run (coloured, underlined) to a paragraph."""
    r_id = paragraph.part.relate_to(url, RT.HYPERLINK, is_external=True)
    hyperlink = OxmlElement("w:hyperlink")
    hyperlink.set(qn("r:id"), r_id)

    run = OxmlElement("w:r")
    r_pr = OxmlElement("w:rPr")
    color_element = OxmlElement("w:color")
    color_element.set(qn("w:val"), color)
    r_pr.append(color_element)
    underline = OxmlElement("w:u")
    underline.set(qn("w:val"), "single")
    r_pr.append(underline)
    run.append(r_pr)

    text_element = OxmlElement("w:t")
    text_element.text = text
    text_element.set(qn("xml:space"), "preserve")
    run.append(text_element)

    hyperlink.append(run)
    paragraph._p.append(hyperlink)
    return hyperlink


# =============================================================================
# STRUCTURED RENDERER
# =============================================================================

class StructuredRenderer:
    """Wraps a python-docx Document with the report's building blocks."""

    def __init__(self):
        self.document = Document()
        section = self.document.sections[0]
        section.page_width = Inches(8.27)  # A4
        section.page_height = Inches(11.69)
        section.left_margin = Inches(0.885)
        section.right_margin = Inches(0.885)
        section.top_margin = Inches(0.8)
        section.bottom_margin = Inches(0.8)

        normal = self.document.styles["Normal"]
        normal.font.name = "Calibri"
        normal.font.size = Pt(10)

        self.rendered_fields: Dict[str, List[str]] = {}
        self.card_keys: List[str] = []

    def title(self, text: str):
        heading = self.document.add_heading(text, level=0)
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER

    def heading(self, text: str, level: int = 1):
        return self.document.add_heading(text, level=level)

    def paragraph(self, text: str = "", bold: bool = False, italic: bool = False,
                  centered: bool = False, style: Optional[str] = None, space_after: int = 6):
        paragraph = self.document.add_paragraph(style=style)
        if text:
            run = paragraph.add_run(text)
            run.bold = bold
            run.italic = italic
        if centered:
            paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        paragraph.paragraph_format.space_after = Pt(space_after)
        return paragraph

    def page_break(self):
        self.document.add_page_break()

    def title_bar(self, text: str):
        """Full-width filled bar used for the numbered builder chapters."""
        table = self.document.add_table(rows=1, cols=1)
        _set_table_width(table, CARD_WIDTH_TWIPS)
        _set_column_widths(table, [CARD_WIDTH_TWIPS])
        cell = table.cell(0, 0)
        _set_cell_shading(cell, PLD_BLUE)
        run = cell.paragraphs[0].add_run(text)
        run.bold = True
        run.font.size = Pt(11)
        run.font.color.rgb = RGBColor(0xFF, 0xFF, 0xFF)
        self.paragraph(space_after=2)

    # -------------------------------------------------------------------------
    # Cards
    # -------------------------------------------------------------------------

    def add_card(self, card: Card):
        table = self.document.add_table(rows=1, cols=1)
        _set_table_width(table, CARD_WIDTH_TWIPS)
        _set_column_widths(table, [CARD_WIDTH_TWIPS])
        _set_table_borders(table, CARD_BORDER_COLOR, CARD_BORDER_SIZE)
        _set_cell_margins(table, CARD_MARGIN_VERTICAL, CARD_MARGIN_HORIZONTAL)
        cell = table.cell(0, 0)
        _set_cell_shading(cell, CARD_FILL)

        fields = []
        for position, block in enumerate(card.blocks):
            style = "List Bullet" if isinstance(block, LinkBullet) else None
            if position == 0:
                paragraph = cell.paragraphs[0]
                if style:
                    paragraph.style = self.document.styles[style]
            else:
                paragraph = cell.add_paragraph(style=style)
            paragraph.paragraph_format.space_after = Pt(2)

            if isinstance(block, Title):
                run = paragraph.add_run(block.text)
                run.bold = True
                run.font.size = Pt(12)
                paragraph.paragraph_format.space_after = Pt(6)
            elif isinstance(block, LabeledField):
                paragraph.add_run(f"{block.label}: ").bold = True
                paragraph.add_run(block.value)
                fields.append(block.text)
            elif isinstance(block, StatusLine):
                run = paragraph.add_run(block.text)
                run.italic = True
                run.font.color.rgb = TEXT_MUTED
            elif isinstance(block, SectionHeading):
                run = paragraph.add_run(block.text)
                run.bold = True
                run.font.size = Pt(10.5)
                paragraph.paragraph_format.space_before = Pt(6)
            elif isinstance(block, LinkBullet):
                _add_hyperlink(paragraph, block.display_text, block.url)
                if block.reference_text:
                    paragraph.add_run(f" (Ref.: {block.reference_text})")
            else:
                raise TypeError(f"Unsupported content block: {block!r}")

        self.rendered_fields[card.key] = fields
        self.card_keys.append(card.key)
        self.paragraph(space_after=4)
        return table

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def grid_table(self, header: Sequence[str], widths: Sequence[int]):
        """Bordered table with a filled header row; returns it for the caller to fill."""
        table = self.document.add_table(rows=1, cols=len(header))
        _set_table_width(table, sum(widths))
        _set_table_borders(table, "808080", 4)
        for index, text in enumerate(header):
            cell = table.rows[0].cells[index]
            _set_cell_shading(cell, PLD_BLUE)
            run = cell.paragraphs[0].add_run(text)
            run.bold = True
            run.font.size = Pt(9)
            run.font.color.rgb = RGBColor(0xFF, 0xFF, 0xFF)
        return table

    def finish_table(self, table, widths: Sequence[int]):
        _set_column_widths(table, widths)
        self.paragraph(space_after=6)

    def to_bytes(self) -> bytes:
        buffer = BytesIO()
        self.document.save(buffer)
        return buffer.getvalue()


# =============================================================================
# REPORT COMPOSITION
# =============================================================================

def _add_document_header(renderer: StructuredRenderer, title: str, lines: List[str]):
    renderer.title(title)
    for line in lines:
        renderer.paragraph(line, centered=True, space_after=2)
    renderer.paragraph(space_after=10)


def render_user_report_docx(
    user: UserRecord,
    kind: ReportKind,
    progress: ProgressSummary,
    dataset: ComplianceDataset,
    base_url: str,
    generated_at: Optional[datetime] = None,
    renderer: Optional[StructuredRenderer] = None,
) -> bytes:
    """Render the FULL or PARTIAL topic-mode report as DOCX bytes."""
    generated_at = generated_at or datetime.now()
    renderer = renderer or StructuredRenderer()

    _add_document_header(renderer, report_text.USER_REPORT_TITLE,
                         report_text.user_report_header(user, kind, generated_at))

    renderer.heading(report_text.PROGRESS_HEADING, level=1)
    renderer.add_card(build_progress_card(progress))

    renderer.heading(report_text.TOPICS_HEADING, level=1)
    for topic_index, topic in enumerate(dataset):
        if topic_index > 0:
            renderer.page_break()
        renderer.heading(report_text.topic_heading(topic.name), level=2)
        for line in report_text.topic_details(topic):
            renderer.paragraph(line, space_after=2)

        for index, question in enumerate(topic.questions, start=1):
            renderer.add_card(build_question_card(question, index, base_url))

    logger.info("Rendered DOCX user report: %d topics, %d cards",
                len(dataset), len(renderer.card_keys))
    return renderer.to_bytes()


def _add_criteria_table(renderer: StructuredRenderer, title: str, criteria):
    widths = [2620, 6740]
    table = renderer.grid_table([title, ""], widths)
    header = table.rows[0].cells
    header[0].merge(header[1])
    for label, description, fill in criteria:
        cells = table.add_row().cells
        cells[0].paragraphs[0].add_run(label).bold = True
        _set_cell_shading(cells[0], fill.lstrip("#"))
        cells[1].paragraphs[0].add_run(description)
    renderer.finish_table(table, widths)


def _add_findings(renderer: StructuredRenderer, number: str, findings, include_recommendations: bool):
    renderer.heading(f"{number} Apontamentos", level=3)
    if not findings:
        renderer.paragraph(report_text.NO_DEFICIENCIES)
        return
    for position, item in enumerate(findings, start=1):
        headline, details = report_text.deficiency_lines(position, item, include_recommendations)
        renderer.paragraph(headline, bold=True, space_after=2)
        for detail in details:
            renderer.paragraph(detail, space_after=2)


def render_builder_report_docx(
    user: UserRecord,
    sections: Sequence[BuilderSection],
    options: BuilderReportOptions,
    base_url: str,
    generated_at: Optional[datetime] = None,
    renderer: Optional[StructuredRenderer] = None,
) -> bytes:
    """Render the builder-mode assessment report as DOCX bytes."""
    generated_at = generated_at or datetime.now()
    renderer = renderer or StructuredRenderer()

    _add_document_header(renderer, report_text.BUILDER_REPORT_TITLE,
                         report_text.builder_report_header(user, generated_at))

    renderer.title_bar("1- Introdução")
    for paragraph in report_text.builder_introduction(options, generated_at):
        renderer.paragraph(paragraph, space_after=8)

    renderer.title_bar("2- Metodologia de Avaliação")
    renderer.paragraph(report_text.METHODOLOGY_INTRO)
    for item in report_text.METHODOLOGY_ITEMS:
        renderer.paragraph(item, style="List Bullet", space_after=2)
    section_lines = report_text.section_label_lines(sections)
    renderer.paragraph(report_text.SECTIONS_INTRO, space_after=4)
    for line in section_lines:
        renderer.paragraph(line, style="List Bullet", space_after=2)
    if not section_lines:
        renderer.paragraph("-")
    renderer.paragraph(report_text.EXECUTION_REFERENCE, space_after=6)
    _add_criteria_table(renderer, report_text.CRITICALITY_TABLE_TITLE, report_text.CRITICALITY_CRITERIA)
    _add_criteria_table(renderer, report_text.EFFECTIVENESS_TABLE_TITLE, report_text.EFFECTIVENESS_CRITERIA)

    renderer.title_bar("3- Qualificação do Avaliador")
    renderer.paragraph(options.evaluator_qualification or report_text.EVALUATOR_FALLBACK)

    renderer.page_break()
    renderer.title_bar("4- Execução")
    findings = assessment.deficiencies_by_section(assessment.collect_deficiencies(sections))
    prefix = report_text.EXECUTION_PREFIX
    for position, section in enumerate(sections, start=1):
        if position > 1:
            renderer.page_break()
        renderer.heading(f"{prefix}.{position} {section.label}", level=2)
        if section.description:
            renderer.paragraph(f"Descrição do item avaliado: {section.description}")
        if section.norma_reference:
            renderer.paragraph(f"Referência normativa: {section.norma_reference}")
        for index, question in enumerate(section.questions, start=1):
            renderer.add_card(build_builder_card(question, index, base_url))
        _add_findings(renderer, f"{prefix}.{position}.1", findings.get(section.label, []),
                      options.include_recommendations)

    renderer.page_break()
    renderer.title_bar("5- CONCLUSÃO")
    renderer.paragraph(report_text.CONCLUSION_INTRO)
    widths = [4860, 1125, 1125, 1125, 1125]
    table = renderer.grid_table(["Item avaliado", "Baixa", "Média", "Alta", "Total"], widths)
    for row in assessment.build_conclusion_rows(sections):
        cells = table.add_row().cells
        values = [row.label, str(row.baixa), str(row.media), str(row.alta), str(row.total)]
        for index, value in enumerate(values):
            run = cells[index].paragraphs[0].add_run(value)
            run.bold = row.label == "TOTAL"
            if index > 0:
                cells[index].paragraphs[0].alignment = WD_ALIGN_PARAGRAPH.CENTER
    renderer.finish_table(table, widths)

    if options.show_methodology:
        result = assessment.evaluate_effectiveness(sections)
        renderer.heading("Resultado da Avaliação", level=2)
        renderer.paragraph(f"Resultado: {result.verdict}", bold=True)
        renderer.paragraph(result.description)

    renderer.title_bar("6- ANEXO EVIDÊNCIAS")
    renderer.paragraph(report_text.ANNEX_INTRO)
    annex_rows = assessment.build_evidence_annex_rows(sections, prefix, base_url)
    if annex_rows:
        widths = [3740, 5620]
        table = renderer.grid_table(["Item avaliado", "Arquivos"], widths)
        for row in annex_rows:
            cells = table.add_row().cells
            cells[0].paragraphs[0].add_run(row.item_label)
            if not row.files:
                cells[1].paragraphs[0].add_run("-")
            for file_index, annex_file in enumerate(row.files):
                paragraph = cells[1].paragraphs[0] if file_index == 0 else cells[1].add_paragraph()
                _add_hyperlink(paragraph, annex_file.name, annex_file.url)
        renderer.finish_table(table, widths)
    else:
        renderer.paragraph("-")

    logger.info("Rendered DOCX builder report: %d sections, %d cards",
                len(sections), len(renderer.card_keys))
    return renderer.to_bytes()
