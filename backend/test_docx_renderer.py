"""
Tests for docx_renderer.py and PDF/DOCX informational parity.
"""

from io import BytesIO

from docx import Document
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml.ns import qn

from conftest import BASE_URL, make_attachment, make_question
from dataset import (
    BuilderReportOptions,
    ComplianceDataset,
    ProgressSummary,
    ReportKind,
    TopicGroup,
)
from docx_renderer import (
    CARD_WIDTH_TWIPS,
    StructuredRenderer,
    render_builder_report_docx,
    render_user_report_docx,
)
from pdf_renderer import FlowRenderer, render_builder_report_pdf, render_user_report_pdf

PROGRESS = ProgressSummary(4, 3, 5, 75)


def _card_tables(document):
    """Tables rendered as cards: fixed width and a light fill."""
    cards = []
    for table in document.tables:
        tbl_w = table._tbl.tblPr.find(qn("w:tblW"))
        shading = table._tbl.xpath(".//w:tcPr/w:shd")
        if tbl_w is not None and tbl_w.get(qn("w:w")) == str(CARD_WIDTH_TWIPS) \
                and shading and shading[0].get(qn("w:fill")) == "F8FAFC":
            cards.append(table)
    return cards


def _labeled_fields(table):
    """"label: value" strings read back from a card's bold-label paragraphs."""
    fields = []
    for paragraph in table.cell(0, 0).paragraphs:
        runs = paragraph.runs
        if len(runs) == 2 and runs[0].bold and runs[0].text.endswith(": "):
            fields.append(runs[0].text + runs[1].text)
    return fields


def test_card_table_geometry(user, sample_dataset):
    content = render_user_report_docx(user, ReportKind.PARTIAL, PROGRESS, sample_dataset, BASE_URL)
    document = Document(BytesIO(content))

    cards = _card_tables(document)

    # progress box plus five questions
    assert len(cards) == 6
    for table in cards:
        tbl_pr = table._tbl.tblPr
        assert tbl_pr.find(qn("w:tblLayout")).get(qn("w:type")) == "fixed"
        assert tbl_pr.find(qn("w:tblW")).get(qn("w:type")) == "dxa"
        borders = tbl_pr.find(qn("w:tblBorders"))
        assert borders.find(qn("w:top")).get(qn("w:val")) == "single"
        assert len(table.rows) == 1 and len(table.columns) == 1


def test_non_applicable_card_is_a_single_italic_status(user, sample_dataset):
    renderer = StructuredRenderer()
    render_user_report_docx(user, ReportKind.PARTIAL, PROGRESS, sample_dataset, BASE_URL,
                            renderer=renderer)
    cards = _card_tables(renderer.document)

    non_applicable = cards[3]
    paragraphs = non_applicable.cell(0, 0).paragraphs
    assert [p.text for p in paragraphs] == ["3. Pergunta não aplicável", "Status: Não aplicável"]
    assert paragraphs[1].runs[0].italic is True
    assert renderer.rendered_fields["q3"] == []


def test_hyperlinks_are_real_relationships(user):
    attachment = make_attachment("ata.pdf", "GENERAL", "/srv/app/uploads/ev", reference_text="p. 2")
    dataset = ComplianceDataset(topics=[
        TopicGroup(id="t1", name="Evidências", questions=[make_question(evidences=[attachment])]),
    ])

    document = Document(BytesIO(
        render_user_report_docx(user, ReportKind.PARTIAL, PROGRESS, dataset, BASE_URL)
    ))

    targets = [rel.target_ref for rel in document.part.rels.values() if rel.reltype == RT.HYPERLINK]
    assert targets == [f"{BASE_URL}/uploads/ev/ata.pdf"]
    bullets = [p for p in document.paragraphs if p.style.name == "List Bullet"]
    bullets += [p for t in document.tables for p in t.cell(0, 0).paragraphs
                if p.style.name == "List Bullet"]
    assert len(bullets) == 1
    hyperlink = bullets[0]._p.find(qn("w:hyperlink"))
    assert hyperlink is not None
    assert hyperlink.find(".//" + qn("w:u")).get(qn("w:val")) == "single"
    assert bullets[0].runs[-1].text == " (Ref.: p. 2)"


def test_labeled_fields_match_pdf(user, sample_dataset):
    flow = FlowRenderer()
    structured = StructuredRenderer()

    render_user_report_pdf(user, ReportKind.PARTIAL, PROGRESS, sample_dataset, BASE_URL, renderer=flow)
    content = render_user_report_docx(user, ReportKind.PARTIAL, PROGRESS, sample_dataset, BASE_URL,
                                      renderer=structured)

    assert flow.rendered_fields == structured.rendered_fields
    parsed = [_labeled_fields(t) for t in _card_tables(Document(BytesIO(content)))]
    assert parsed == [flow.rendered_fields[p.key] for p in flow.placements]
    assert flow.rendered_fields["q2"][-2:] == [
        "Deficiência: Ausência de designação do diretor.",
        "Recomendação: Formalizar a designação.",
    ]


def test_builder_fields_match_pdf(user, builder_sections):
    options = BuilderReportOptions()
    flow = FlowRenderer()
    structured = StructuredRenderer()

    render_builder_report_pdf(user, builder_sections, options, BASE_URL, renderer=flow)
    render_builder_report_docx(user, builder_sections, options, BASE_URL, renderer=structured)

    assert flow.rendered_fields == structured.rendered_fields
    assert structured.card_keys == ["b1", "b2", "b3", "b4"]


def test_builder_document_outline(user, builder_sections):
    options = BuilderReportOptions.from_metadata("Avaliação 2026", {
        "instituicoes": [{"nome": "Banco Exemplo"}, {"nome": "Corretora Exemplo", "cnpj": "11"}],
    })

    document = Document(BytesIO(
        render_builder_report_docx(user, builder_sections, options, BASE_URL)
    ))

    paragraphs = [p.text for p in document.paragraphs]
    assert any("Banco Exemplo, Corretora Exemplo (CNPJ: 11)" in text for text in paragraphs)
    assert "4.1 Política de PLD/FTP - Política institucional" in paragraphs
    assert "4.2.1 Apontamentos" in paragraphs
    assert "Resultado: EFETIVO" in paragraphs
    table_text = [cell.text for table in document.tables for row in table.rows for cell in row.cells]
    for title in ("1- Introdução", "5- CONCLUSÃO", "6- ANEXO EVIDÊNCIAS"):
        assert title in table_text
    assert "TOTAL" in table_text
    assert "4.1 Política de PLD/FTP - Política institucional" in table_text


def test_builder_methodology_lists_evaluated_items(user, builder_sections):
    document = Document(BytesIO(
        render_builder_report_docx(user, builder_sections, BuilderReportOptions(), BASE_URL)
    ))
    paragraphs = [p.text for p in document.paragraphs]

    start = paragraphs.index("Os itens avaliados do programa de PLD/FTP da Instituição foram:")
    assert paragraphs[start + 1:start + 3] == [
        "1. Política de PLD/FTP - Política institucional",
        "2. Sanções CSNU",
    ]
    assert paragraphs[start + 3].endswith("consta no item EXECUÇÃO.")


def test_builder_methodology_without_sections(user):
    document = Document(BytesIO(
        render_builder_report_docx(user, [], BuilderReportOptions(), BASE_URL)
    ))
    paragraphs = [p.text for p in document.paragraphs]

    start = paragraphs.index("Os itens avaliados do programa de PLD/FTP da Instituição foram:")
    assert paragraphs[start + 1] == "-"
