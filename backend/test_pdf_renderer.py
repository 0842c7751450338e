"""
Tests for pdf_renderer.py

Validates:
- Page breaks happen before a card that would not fit
- Estimated and drawn card heights agree
- Oversize cards are continued on the next page with a warning
- Text and link annotations in the generated PDF
"""

import logging
from io import BytesIO

import pdfplumber
import pytest

from card_model import build_question_card
from conftest import BASE_URL, make_attachment, make_question
from dataset import (
    BuilderReportOptions,
    BuilderSection,
    ComplianceDataset,
    ProgressSummary,
    ReportKind,
    TopicGroup,
)
from pdf_renderer import CARD_SPACING, FlowRenderer, render_builder_report_pdf, render_user_report_pdf


def _question_with_lines(index, lines):
    return make_question(
        f"q{index}",
        title=f"Pergunta {index}",
        justification="\n".join(f"linha {n}" for n in range(lines)),
    )


def _pdf_pages_text(content):
    with pdfplumber.open(BytesIO(content)) as pdf:
        return [page.extract_text() or "" for page in pdf.pages]


# ============================================================================
# CARD PLACEMENT
# ============================================================================

def test_fifth_card_moves_to_new_page():
    renderer = FlowRenderer()
    available = renderer.content_height

    # Pick a card height where four cards fit on a page and five do not
    chosen = None
    for lines in range(1, 60):
        card = build_question_card(_question_with_lines(1, lines), 1, BASE_URL)
        height = renderer.estimate_card(card)
        if 4 * height + 3 * CARD_SPACING <= available < 5 * height + 4 * CARD_SPACING:
            chosen = lines
            break
    assert chosen is not None

    cards = [build_question_card(_question_with_lines(i, chosen), i, BASE_URL) for i in range(1, 6)]
    for card in cards:
        renderer.draw_card(card)

    placements = renderer.placements
    assert [p.top_page for p in placements] == [1, 1, 1, 1, 2]
    assert placements[4].top_y == renderer.page_top
    assert all(p.fits_one_page for p in placements)

    pages = _pdf_pages_text(renderer.finish())
    assert len(pages) == 2
    assert "5. Pergunta 5" in pages[1]
    assert "5. Pergunta 5" not in pages[0]


def test_estimate_matches_drawn_height():
    renderer = FlowRenderer()
    question = make_question(
        response=False,
        justification="Texto longo " * 40,
        deficiency="Deficiência relevante " * 10,
        recommendation="Recomendação",
        evidences=[make_attachment(f"evidencia-{i}.pdf", "GENERAL") for i in range(3)],
    )
    card = build_question_card(question, 1, BASE_URL)
    renderer.move_down(200)

    estimate = renderer.estimate_card(card)
    placement = renderer.draw_card(card)

    assert placement.bottom_y - placement.top_y == pytest.approx(estimate)
    assert placement.bottom_y <= renderer.page_bottom


def test_cards_never_cross_a_page_in_full_report(user):
    questions = [_question_with_lines(i, (i * 7) % 23 + 1) for i in range(1, 30)]
    dataset = ComplianceDataset(topics=[
        TopicGroup(id="t1", name="Tópico longo", questions=questions),
        TopicGroup(id="t2", name="Tópico curto", questions=questions[:3]),
    ])
    renderer = FlowRenderer()

    render_user_report_pdf(user, ReportKind.PARTIAL, ProgressSummary(32, 32, 32, 100), dataset,
                           BASE_URL, renderer=renderer)

    assert len(renderer.placements) == 1 + 29 + 3
    for placement in renderer.placements:
        assert placement.fits_one_page
        assert placement.bottom_y <= renderer.page_bottom


def test_topics_start_on_new_page(user, sample_dataset):
    renderer = FlowRenderer()

    content = render_user_report_pdf(user, ReportKind.PARTIAL, ProgressSummary(4, 3, 5, 75),
                                     sample_dataset, BASE_URL, renderer=renderer)

    pages = {p.key: p.top_page for p in renderer.placements}
    assert pages["q4"] == pages["q3"] + 1
    text = _pdf_pages_text(content)
    assert "Relatório de Conformidade PLD" in text[0]
    assert "Tipo de relatório: Parcial" in text[0]


def test_oversize_card_continues_with_warning(caplog):
    renderer = FlowRenderer()
    renderer.move_down(100)
    card = build_question_card(_question_with_lines(1, 80), 1, BASE_URL)
    assert renderer.estimate_card(card) > renderer.content_height

    with caplog.at_level(logging.WARNING, logger="pdf_renderer"):
        placement = renderer.draw_card(card)

    assert "taller than a page" in caplog.text
    assert placement.top_page == 2
    assert placement.top_y == renderer.page_top
    assert placement.bottom_page == 3


def test_oversize_card_bottom_stays_on_page():
    # Different lengths put the last line at every distance from the page bottom
    for lines in range(70, 150):
        renderer = FlowRenderer()
        placement = renderer.draw_card(build_question_card(_question_with_lines(1, lines), 1, BASE_URL))
        assert placement.bottom_page > placement.top_page
        assert placement.bottom_y <= renderer.page_bottom, lines


def test_link_bullets_are_clickable(user):
    attachment = make_attachment("ata.pdf", "GENERAL", "C:\\dados\\uploads\\ev")
    dataset = ComplianceDataset(topics=[
        TopicGroup(id="t1", name="Evidências", questions=[make_question(evidences=[attachment])]),
    ])

    content = render_user_report_pdf(user, ReportKind.PARTIAL, ProgressSummary(1, 1, 1, 100),
                                     dataset, BASE_URL)

    with pdfplumber.open(BytesIO(content)) as pdf:
        uris = [link.get("uri") for page in pdf.pages for link in page.hyperlinks]
    assert f"{BASE_URL}/uploads/ev/ata.pdf" in uris


def test_non_applicable_card_has_no_fields(user, sample_dataset):
    renderer = FlowRenderer()
    render_user_report_pdf(user, ReportKind.PARTIAL, ProgressSummary(4, 3, 5, 75),
                           sample_dataset, BASE_URL, renderer=renderer)
    assert renderer.rendered_fields["q3"] == []
    assert renderer.rendered_fields["q5"] == []


# ============================================================================
# BUILDER REPORT
# ============================================================================

def test_builder_report_sections(user, builder_sections):
    renderer = FlowRenderer()
    options = BuilderReportOptions.from_metadata("Avaliação 2026", {
        "instituicoes": [{"nome": "Banco Exemplo", "cnpj": "00.000.000/0001-00"}],
        "qualificacaoAvaliador": "Auditor interno certificado",
    })

    content = render_builder_report_pdf(user, builder_sections, options, BASE_URL, renderer=renderer)

    text = " ".join(" ".join(_pdf_pages_text(content)).split())
    assert "Banco Exemplo (CNPJ: 00.000.000/0001-00)" in text
    assert "Auditor interno certificado" in text
    assert "4.1.1 Apontamentos" in text
    assert text.count("Recomendação: Submeter a política à aprovação.") == 2
    assert "TOTAL" in text
    assert "Resultado: EFETIVO" in text
    assert [p.key for p in renderer.placements] == ["b1", "b2", "b3", "b4"]
    assert all(p.fits_one_page for p in renderer.placements)


def test_builder_report_options_toggle_content(user, builder_sections):
    options = BuilderReportOptions.from_metadata(None, {
        "incluirRecomendacoes": "OCULTAR",
        "mostrarMetodologia": "OCULTAR",
    })

    pages = _pdf_pages_text(render_builder_report_pdf(user, builder_sections, options, BASE_URL))
    text = " ".join(" ".join(pages).split())

    assert text.count("Recomendação: Submeter a política à aprovação.") == 1
    assert "Resultado:" not in text


def test_builder_methodology_lists_evaluated_items(user, builder_sections):
    text = " ".join(" ".join(_pdf_pages_text(
        render_builder_report_pdf(user, builder_sections, BuilderReportOptions(), BASE_URL)
    )).split())

    intro = text.index("Os itens avaliados do programa de PLD/FTP da Instituição foram:")
    first = text.index("1. Política de PLD/FTP - Política institucional")
    second = text.index("2. Sanções CSNU")
    reference = text.index("consta no item EXECUÇÃO.")
    assert intro < first < second < reference


def test_builder_annex_link_with_quote_in_path(user):
    section = BuilderSection(
        id="s1",
        item="Política",
        attachments=[make_attachment("a\"b.pdf", "NORMA", "uploads/pld")],
    )

    content = render_builder_report_pdf(user, [section], BuilderReportOptions(), BASE_URL)

    with pdfplumber.open(BytesIO(content)) as pdf:
        uris = [link.get("uri") for page in pdf.pages for link in page.hyperlinks]
    assert any(uri and uri.startswith(f"{BASE_URL}/uploads/pld/a") for uri in uris)
