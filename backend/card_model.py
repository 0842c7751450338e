"""
Card Model Builder.

Turns one question (and its answer and attachments) into an ordered list of
backend-agnostic content blocks. Both renderers consume only these blocks,
which keeps the PDF and the DOCX informationally identical.

Block types:
    Title           - the numbered question title
    LabeledField    - "label: value", only emitted for non-empty values
    StatusLine      - italic status ("Não aplicável", "Não respondida")
    SectionHeading  - heading above an attachment list
    LinkBullet      - one attachment with its resolved link
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple, Union

from assessment import is_negative_response
from attachments import TEST_ATTACHMENT_GROUPS, dedupe, group_by_category
from dataset import (
    AttachmentRecord,
    BuilderQuestion,
    DateLike,
    ProgressSummary,
    QuestionRecord,
)
from links import build_link

STATUS_NOT_APPLICABLE = "Status: Não aplicável"
STATUS_UNANSWERED = "Status: Não respondida"

CRITICALITY_LABELS = {
    "ALTA": "Alta",
    "MEDIA": "Média",
    "MÉDIA": "Média",
    "BAIXA": "Baixa",
}

TEST_STATUS_LABELS = {
    "SIM": "Sim",
    "NAO": "Não",
    "NAO_PLANO": "Não (previsto em plano de testes)",
}


# =============================================================================
# CONTENT BLOCKS
# =============================================================================

@dataclass(frozen=True)
class Title:
    text: str


@dataclass(frozen=True)
class LabeledField:
    label: str
    value: str

    @property
    def text(self) -> str:
        return f"{self.label}: {self.value}"


@dataclass(frozen=True)
class StatusLine:
    text: str


@dataclass(frozen=True)
class SectionHeading:
    text: str


@dataclass(frozen=True)
class LinkBullet:
    display_text: str
    url: str
    reference_text: Optional[str] = None

    @property
    def text(self) -> str:
        if self.reference_text:
            return f"{self.display_text} (Ref.: {self.reference_text})"
        return self.display_text


ContentBlock = Union[Title, LabeledField, StatusLine, SectionHeading, LinkBullet]


@dataclass(frozen=True)
class Card:
    """The bordered unit representing one question."""
    key: str
    blocks: List[ContentBlock] = field(default_factory=list)

    def fields(self) -> List[str]:
        """Ordered "label: value" strings of the card."""
        return [b.text for b in self.blocks if isinstance(b, LabeledField)]

    def links(self) -> List[LinkBullet]:
        return [b for b in self.blocks if isinstance(b, LinkBullet)]


# =============================================================================
# FORMATTING HELPERS
# =============================================================================

def sanitize_title(raw: object) -> str:
    """Question titles are user input; blank or non-text titles render as "-"."""
    if not isinstance(raw, str):
        return "-"
    return raw.strip() or "-"


def format_date_br(value: DateLike) -> Optional[str]:
    """Format as dd/mm/yyyy. Unparseable values yield None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).strftime("%d/%m/%Y")
    except ValueError:
        return None


def format_criticality(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return CRITICALITY_LABELS.get(str(value).strip().upper(), str(value).strip())


def format_test_status(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return TEST_STATUS_LABELS.get(str(value).strip().upper(), str(value).strip())


def _clean(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def build_fields(pairs: Sequence[Tuple[str, object]]) -> List[LabeledField]:
    """Drop pairs with empty values, keeping the given order."""
    fields = []
    for label, value in pairs:
        cleaned = _clean(value)
        if cleaned is not None:
            fields.append(LabeledField(label, cleaned))
    return fields


def build_link_bullets(records: Sequence[AttachmentRecord], base_url: str) -> List[LinkBullet]:
    """Numbered link bullets for already de-duplicated records."""
    return [
        LinkBullet(
            display_text=f"{position}. {record.display_name}",
            url=build_link(record.path, base_url, record.filename),
            reference_text=_clean(record.reference_text),
        )
        for position, record in enumerate(records, start=1)
    ]


# =============================================================================
# CARD BUILDERS
# =============================================================================

def build_question_card(question: QuestionRecord, index: int, base_url: str) -> Card:
    """
    Card for a legacy topic-mode question.

    Args:
        question: The question with the requesting user's answer, if any
        index: 1-based position inside its topic
        base_url: Normalised public base URL for attachment links
    """
    blocks: List[ContentBlock] = [Title(f"{index}. {sanitize_title(question.title)}")]

    if not question.is_applicable:
        blocks.append(StatusLine(STATUS_NOT_APPLICABLE))
        return Card(question.id, blocks)

    answer = question.answer
    if answer is None:
        blocks.append(StatusLine(STATUS_UNANSWERED))
        return Card(question.id, blocks)

    negative = not answer.response
    blocks.extend(build_fields([
        ("Aplicável", "Sim"),
        ("Descrição", question.description),
        ("Criticidade", format_criticality(question.criticality)),
        ("Resposta", "Sim" if answer.response else "Não"),
        ("Justificativa", answer.justification),
        ("Deficiência", answer.deficiency if negative else None),
        ("Recomendação", answer.recommendation if negative else None),
        ("Teste", format_test_status(answer.test_status)),
        ("Teste (descrição)", answer.test_description),
    ]))

    evidences = dedupe(list(question.attachments) + list(answer.evidences))
    if evidences:
        blocks.append(SectionHeading("Evidências"))
        blocks.extend(build_link_bullets(evidences, base_url))

    return Card(question.id, blocks)


def build_builder_card(question: BuilderQuestion, index: int, base_url: str) -> Card:
    """
    Card for a builder-mode question.

    Test attachments are listed per test group only when the test was
    executed (status SIM); every other attachment goes under "Arquivos".
    """
    blocks: List[ContentBlock] = [Title(f"{index}. {sanitize_title(question.text)}")]

    if not question.applicable:
        blocks.append(StatusLine(STATUS_NOT_APPLICABLE))
        return Card(question.id, blocks)

    if not _clean(question.resposta):
        blocks.append(StatusLine(STATUS_UNANSWERED))
        return Card(question.id, blocks)

    negative = is_negative_response(question.resposta)
    test_executed = (question.test_status or "").strip().upper() == "SIM"
    blocks.extend(build_fields([
        ("Aplicável", "Sim"),
        ("Capitulação", question.capitulacao),
        ("Criticidade", format_criticality(question.criticidade)),
        ("Resposta", _format_builder_response(question.resposta)),
        ("Resposta (texto)", question.resposta_texto),
        ("Deficiência", question.deficiencia_texto if negative else None),
        ("Recomendação", question.recomendacao_texto if negative else None),
        ("Teste", format_test_status(question.test_status)),
        ("Teste (descrição)", question.test_description if test_executed else None),
        ("Referência (requisição)", question.requisicao_ref if test_executed else None),
        ("Referência (resposta)", question.resposta_teste_ref if test_executed else None),
        ("Referência (amostra)", question.amostra_ref if test_executed else None),
        ("Referência (evidências)", question.evidencias_ref if test_executed else None),
        ("Ação - Origem", question.action_origem),
        ("Ação - Responsável", question.action_responsavel),
        ("Ação - Descrição", question.action_descricao),
        ("Ação - Data do apontamento", format_date_br(question.action_data_apontamento)),
        ("Ação - Prazo original", format_date_br(question.action_prazo_original)),
        ("Ação - Prazo atual", format_date_br(question.action_prazo_atual)),
        ("Comentários", question.action_comentarios),
    ]))

    unique = dedupe(question.attachments)
    test_categories = {c for _, categories in TEST_ATTACHMENT_GROUPS for c in categories}
    general = [a for a in unique if (a.category or "").upper() not in test_categories]
    if general:
        blocks.append(SectionHeading("Arquivos"))
        blocks.extend(build_link_bullets(general, base_url))
    if test_executed:
        for label, members in group_by_category(unique):
            blocks.append(SectionHeading(f"Arquivos - {label}"))
            blocks.extend(build_link_bullets(members, base_url))

    return Card(question.id, blocks)


def build_progress_card(progress: ProgressSummary) -> Card:
    """The "Resumo de Progresso" box."""
    return Card("progress", [
        LabeledField("Progresso", f"{progress.percentage}%"),
        LabeledField("Perguntas aplicáveis", str(progress.total_applicable)),
        LabeledField("Perguntas respondidas", str(progress.total_answered)),
        LabeledField("Total de perguntas", str(progress.total_questions)),
    ])


def _format_builder_response(value: Optional[str]) -> Optional[str]:
    cleaned = _clean(value)
    if cleaned is None:
        return None
    if is_negative_response(cleaned):
        return "Não"
    if cleaned.upper() in ("SIM", "S"):
        return "Sim"
    return cleaned
