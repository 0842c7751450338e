"""
Tests for card_model.py
"""

from datetime import date

import pytest

from card_model import (
    LabeledField,
    LinkBullet,
    SectionHeading,
    StatusLine,
    Title,
    build_builder_card,
    build_progress_card,
    build_question_card,
    format_date_br,
    sanitize_title,
)
from conftest import BASE_URL, make_attachment, make_question
from dataset import BuilderQuestion, ProgressSummary


def test_non_applicable_question_renders_status_only():
    question = make_question(applicable=False, answered=True, response=False,
                             deficiency="Não deveria aparecer")

    card = build_question_card(question, 3, BASE_URL)

    assert card.blocks == [
        Title("3. Existe política de PLD/FTP aprovada?"),
        StatusLine("Status: Não aplicável"),
    ]
    assert card.fields() == []


def test_unanswered_question_renders_status_only():
    card = build_question_card(make_question(answered=False), 1, BASE_URL)
    assert [type(b) for b in card.blocks] == [Title, StatusLine]
    assert card.blocks[1].text == "Status: Não respondida"


def test_negative_answer_field_order():
    question = make_question(response=False, description="Verificar a ata",
                             justification="Sem aprovação formal",
                             deficiency="Política não aprovada",
                             recommendation="Aprovar a política")

    card = build_question_card(question, 1, BASE_URL)

    assert card.fields() == [
        "Aplicável: Sim",
        "Descrição: Verificar a ata",
        "Criticidade: Alta",
        "Resposta: Não",
        "Justificativa: Sem aprovação formal",
        "Deficiência: Política não aprovada",
        "Recomendação: Aprovar a política",
    ]


def test_positive_answer_hides_deficiency_fields():
    question = make_question(response=True, deficiency="ignorada", recommendation="ignorada")
    fields = build_question_card(question, 1, BASE_URL).fields()
    assert "Resposta: Sim" in fields
    assert not any(f.startswith(("Deficiência", "Recomendação")) for f in fields)


def test_empty_values_are_dropped():
    question = make_question(justification="   ", criticality=None)
    fields = build_question_card(question, 1, BASE_URL).fields()
    assert fields == ["Aplicável: Sim", "Resposta: Sim"]


def test_evidences_are_deduplicated_and_linked():
    doc = make_attachment("ata.pdf", "GENERAL", "/srv/app/uploads/ev", reference_text="p. 3")
    question = make_question(attachments=[doc], evidences=[doc, make_attachment("b.pdf", "GENERAL")])

    card = build_question_card(question, 1, BASE_URL)

    headings = [b for b in card.blocks if isinstance(b, SectionHeading)]
    assert headings == [SectionHeading("Evidências")]
    links = card.links()
    assert [l.display_text for l in links] == ["1. ata.pdf", "2. b.pdf"]
    assert links[0].url == f"{BASE_URL}/uploads/ev/ata.pdf"
    assert links[0].text == "1. ata.pdf (Ref.: p. 3)"


def test_builder_card_fields_and_dates():
    question = BuilderQuestion(
        id="b1",
        text="A política foi aprovada?",
        capitulacao="Art. 2º",
        criticidade="MEDIA",
        resposta="N",
        resposta_texto="Aguardando reunião",
        deficiencia_texto="Sem aprovação",
        test_status="NAO",
        test_description="não deve aparecer",
        action_prazo_original=date(2026, 5, 1),
        action_prazo_atual="data inválida",
    )

    card = build_builder_card(question, 2, BASE_URL)

    assert card.blocks[0] == Title("2. A política foi aprovada?")
    assert card.fields() == [
        "Aplicável: Sim",
        "Capitulação: Art. 2º",
        "Criticidade: Média",
        "Resposta: Não",
        "Resposta (texto): Aguardando reunião",
        "Deficiência: Sem aprovação",
        "Teste: Não",
        "Ação - Prazo original: 01/05/2026",
    ]


def test_builder_test_attachments_need_executed_test(builder_sections):
    question = builder_sections[0].questions[0]

    card = build_builder_card(question, 1, BASE_URL)
    headings = [b.text for b in card.blocks if isinstance(b, SectionHeading)]
    assert headings == ["Arquivos", "Arquivos - Requisição", "Arquivos - Amostra"]

    not_executed = build_builder_card(
        BuilderQuestion(**{**question.__dict__, "test_status": "NAO"}), 1, BASE_URL
    )
    headings = [b.text for b in not_executed.blocks if isinstance(b, SectionHeading)]
    assert headings == ["Arquivos"]
    assert [l.display_text for l in not_executed.links()] == ["1. modelo.docx"]


def test_builder_test_references_follow_test_description(builder_sections):
    question = builder_sections[0].questions[0]

    fields = build_builder_card(question, 1, BASE_URL).fields()
    start = fields.index("Teste (descrição): Análise da ata de aprovação.")
    assert fields[start + 1:start + 3] == [
        "Referência (requisição): REQ-01",
        "Referência (amostra): AM-07",
    ]

    not_executed = build_builder_card(
        BuilderQuestion(**{**question.__dict__, "test_status": "NAO"}), 1, BASE_URL
    )
    assert not any(f.startswith("Referência") for f in not_executed.fields())


def test_progress_card():
    card = build_progress_card(ProgressSummary(8, 7, 10, 88))
    assert card.key == "progress"
    assert card.fields()[0] == "Progresso: 88%"
    assert all(isinstance(b, LabeledField) for b in card.blocks)


@pytest.mark.parametrize("value, expected", [
    ("2026-03-15T00:00:00Z", "15/03/2026"),
    ("2026-03-15", "15/03/2026"),
    (date(2025, 1, 2), "02/01/2025"),
    ("15 de março", None),
    (None, None),
])
def test_format_date_br(value, expected):
    assert format_date_br(value) == expected


def test_sanitize_title():
    assert sanitize_title("  Pergunta  ") == "Pergunta"
    assert sanitize_title("") == "-"
    assert sanitize_title(None) == "-"
    assert sanitize_title(42) == "-"


def test_link_bullet_without_reference():
    assert LinkBullet("1. a.pdf", "https://x/uploads/a.pdf").text == "1. a.pdf"


def test_duplicate_norma_keeps_first_reference_text():
    first = make_attachment("doc.pdf", "NORMA", "uploads/x", reference_text="Art. 1")
    second = make_attachment("doc.pdf", "NORMA", "uploads/x", reference_text="Art. 7")
    question = make_question(attachments=[first], evidences=[second])

    links = build_question_card(question, 1, BASE_URL).links()

    assert [l.text for l in links] == ["1. doc.pdf (Ref.: Art. 1)"]
