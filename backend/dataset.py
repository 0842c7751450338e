"""
Read-only records consumed by the report compositor.

The dataset provider hands these over already joined: topics with their
questions, one answer per user per question, and the evidence/attachment
records. Nothing here is mutated during rendering; the only record that
outlives a render call is ReportArtifact.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class ReportKind(Enum):
    """Report variants a user can request."""
    FULL = "FULL"
    PARTIAL = "PARTIAL"
    BUILDER = "BUILDER"
    FORM = "BUILDER_FORM_USER_REPORT"


class ReportFormat(Enum):
    """Output containers."""
    PDF = "PDF"
    DOCX = "DOCX"

    @property
    def extension(self) -> str:
        return self.value.lower()


class AttachmentCategory(Enum):
    """Known attachment category tags. Stored tags outside this set are kept verbatim."""
    NORMA = "NORMA"
    TEMPLATE = "TEMPLATE"
    RESPOSTA = "RESPOSTA"
    DEFICIENCIA = "DEFICIENCIA"
    TEST_REQUISICAO = "TEST_REQUISICAO"
    TEST_RESPOSTA = "TEST_RESPOSTA"
    TEST_AMOSTRA = "TEST_AMOSTRA"
    TEST_EVIDENCIAS = "TEST_EVIDENCIAS"
    GENERAL = "GENERAL"


DateLike = Union[date, datetime, str, None]


@dataclass(frozen=True)
class AttachmentRecord:
    """A stored file attached to a question, answer or builder section."""
    category: str
    path: str
    original_name: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    size: int = 0
    reference_text: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        return f"{self.category or ''}|{self.path or ''}"

    @property
    def display_name(self) -> str:
        if self.original_name:
            return self.original_name
        if self.filename:
            return self.filename
        base = (self.path or "").replace("\\", "/").rsplit("/", 1)[-1]
        return base or "Arquivo"


# Legacy answers carry "evidences"; they share the attachment shape.
EvidenceRecord = AttachmentRecord


@dataclass(frozen=True)
class AnswerRecord:
    """One user's answer to a legacy-mode question."""
    response: bool
    justification: Optional[str] = None
    deficiency: Optional[str] = None
    recommendation: Optional[str] = None
    test_status: Optional[str] = None
    test_description: Optional[str] = None
    evidences: List[AttachmentRecord] = field(default_factory=list)


@dataclass(frozen=True)
class QuestionRecord:
    """A legacy-mode question, optionally answered by the requesting user."""
    id: str
    title: str
    description: Optional[str] = None
    is_applicable: bool = True
    criticality: Optional[str] = None
    answer: Optional[AnswerRecord] = None
    attachments: List[AttachmentRecord] = field(default_factory=list)


@dataclass(frozen=True)
class TopicGroup:
    """A topic with its questions in stored order."""
    id: str
    name: str
    description: Optional[str] = None
    internal_norm: Optional[str] = None
    norm_original_name: Optional[str] = None
    questions: List[QuestionRecord] = field(default_factory=list)


@dataclass(frozen=True)
class ComplianceDataset:
    """Ordered topics for one user."""
    topics: List[TopicGroup] = field(default_factory=list)

    def filtered(self, topic_ids: Optional[List[str]]) -> "ComplianceDataset":
        """Keep only the given topic ids, preserving stored order."""
        if not topic_ids:
            return self
        allowed = set(topic_ids)
        return ComplianceDataset(topics=[t for t in self.topics if t.id in allowed])

    def __iter__(self):
        return iter(self.topics)

    def __len__(self) -> int:
        return len(self.topics)


@dataclass(frozen=True)
class BuilderQuestion:
    """A question of the section/question "builder" dataset shape."""
    id: str
    text: str
    applicable: bool = True
    capitulacao: Optional[str] = None
    criticidade: Optional[str] = None
    resposta: Optional[str] = None
    resposta_texto: Optional[str] = None
    deficiencia_texto: Optional[str] = None
    recomendacao_texto: Optional[str] = None
    test_status: Optional[str] = None
    test_description: Optional[str] = None
    requisicao_ref: Optional[str] = None
    resposta_teste_ref: Optional[str] = None
    amostra_ref: Optional[str] = None
    evidencias_ref: Optional[str] = None
    action_origem: Optional[str] = None
    action_responsavel: Optional[str] = None
    action_descricao: Optional[str] = None
    action_data_apontamento: DateLike = None
    action_prazo_original: DateLike = None
    action_prazo_atual: DateLike = None
    action_comentarios: Optional[str] = None
    attachments: List[AttachmentRecord] = field(default_factory=list)


@dataclass(frozen=True)
class BuilderSection:
    """A builder section ("item avaliado") with its questions in stored order."""
    id: str
    item: str
    custom_label: Optional[str] = None
    description: Optional[str] = None
    norma_reference: Optional[str] = None
    attachments: List[AttachmentRecord] = field(default_factory=list)
    questions: List[BuilderQuestion] = field(default_factory=list)

    @property
    def label(self) -> str:
        custom = (self.custom_label or "").strip()
        if custom:
            return f"{self.item} - {custom}"
        return self.item or "-"


def _text(raw: Dict[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    return str(value)


def _attachments_from_payload(raw_list: Any) -> List[AttachmentRecord]:
    if not isinstance(raw_list, list):
        return []
    records = []
    for raw in raw_list:
        if not isinstance(raw, dict):
            continue
        size = raw.get("size")
        records.append(AttachmentRecord(
            category=str(raw.get("category") or AttachmentCategory.GENERAL.value),
            path=str(raw.get("path") or ""),
            original_name=str(raw.get("originalName") or ""),
            filename=_text(raw, "filename"),
            mime_type=_text(raw, "mimeType"),
            size=size if isinstance(size, int) else 0,
            reference_text=_text(raw, "referenceText"),
        ))
    return records


def _question_from_payload(raw: Dict[str, Any], position: int) -> BuilderQuestion:
    return BuilderQuestion(
        id=str(raw.get("id") or f"question-{position}"),
        text=str(raw.get("texto") or ""),
        applicable=raw.get("aplicavel") is not False,
        capitulacao=_text(raw, "capitulacao"),
        criticidade=_text(raw, "criticidade"),
        resposta=_text(raw, "resposta"),
        resposta_texto=_text(raw, "respostaTexto"),
        deficiencia_texto=_text(raw, "deficienciaTexto"),
        recomendacao_texto=_text(raw, "recomendacaoTexto"),
        test_status=_text(raw, "testStatus"),
        test_description=_text(raw, "testDescription"),
        requisicao_ref=_text(raw, "requisicaoRef"),
        resposta_teste_ref=_text(raw, "respostaTesteRef"),
        amostra_ref=_text(raw, "amostraRef"),
        evidencias_ref=_text(raw, "evidenciasRef"),
        action_origem=_text(raw, "actionOrigem"),
        action_responsavel=_text(raw, "actionResponsavel"),
        action_descricao=_text(raw, "actionDescricao"),
        action_data_apontamento=raw.get("actionDataApontamento"),
        action_prazo_original=raw.get("actionPrazoOriginal"),
        action_prazo_atual=raw.get("actionPrazoAtual"),
        action_comentarios=_text(raw, "actionComentarios"),
        attachments=_attachments_from_payload(raw.get("attachments")),
    )


def _section_from_payload(raw: Dict[str, Any], position: int) -> BuilderSection:
    raw_questions = raw.get("questions")
    questions = []
    if isinstance(raw_questions, list):
        questions = [
            _question_from_payload(q, index)
            for index, q in enumerate(raw_questions, 1)
            if isinstance(q, dict)
        ]
    return BuilderSection(
        id=str(raw.get("id") or f"section-{position}"),
        item=str(raw.get("item") or ""),
        custom_label=_text(raw, "customLabel"),
        description=_text(raw, "descricao"),
        norma_reference=_text(raw, "normaReferencia"),
        attachments=_attachments_from_payload(raw.get("attachments")),
        questions=questions,
    )


@dataclass(frozen=True)
class FormSnapshot:
    """
    A builder form stored as a JSON snapshot.

    payload is the decoded content as stored: {"sections": [...], "metadata": {...}}
    with the camelCase keys the builder front end writes. It is None when the
    stored content could not be decoded.
    """
    id: str
    name: Optional[str] = None
    payload: Any = None

    @property
    def is_valid(self) -> bool:
        return isinstance(self.payload, dict)

    @property
    def display_name(self) -> str:
        return (self.name or "").strip() or "Formulário"

    @property
    def metadata(self) -> Optional[Dict[str, Any]]:
        if not self.is_valid:
            return None
        metadata = self.payload.get("metadata")
        return metadata if isinstance(metadata, dict) else None

    def builder_sections(self) -> List[BuilderSection]:
        """Sections of the snapshot in stored order; malformed entries are skipped."""
        if not self.is_valid:
            return []
        raw_sections = self.payload.get("sections")
        if not isinstance(raw_sections, list):
            return []
        return [
            _section_from_payload(raw, index)
            for index, raw in enumerate(raw_sections, 1)
            if isinstance(raw, dict)
        ]


@dataclass(frozen=True)
class ProgressSummary:
    """Applicable/answered counts and the rounded completion percentage."""
    total_applicable: int
    total_answered: int
    total_questions: int
    percentage: int

    @classmethod
    def from_topics(cls, topics: List[TopicGroup]) -> "ProgressSummary":
        """Count applicable and answered questions over the given topics."""
        total_questions = 0
        total_applicable = 0
        total_answered = 0
        for topic in topics:
            for question in topic.questions:
                total_questions += 1
                if question.is_applicable:
                    total_applicable += 1
                    if question.answer is not None:
                        total_answered += 1

        percentage = 0
        if total_applicable > 0:
            # Half rounds up, never to even
            percentage = int(math.floor(total_answered * 100 / total_applicable + 0.5))

        return cls(
            total_applicable=total_applicable,
            total_answered=total_answered,
            total_questions=total_questions,
            percentage=percentage,
        )

    @property
    def is_complete(self) -> bool:
        return self.percentage >= 100


@dataclass(frozen=True)
class UserRecord:
    """The owner of a report."""
    id: str
    name: str
    email: str = ""


@dataclass(frozen=True)
class ReportRequest:
    """What the caller asked for."""
    kind: ReportKind
    format: ReportFormat
    user_id: str
    topic_ids: Optional[List[str]] = None
    form_id: Optional[str] = None
    name: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ReportArtifact:
    """Metadata of a written report file, handed to the persistence store."""
    name: str
    kind: ReportKind
    format: ReportFormat
    file_path: str
    user_id: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persistence record."""
        return {
            "name": self.name,
            "type": self.kind.value,
            "format": self.format.value,
            "filePath": self.file_path,
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Institution:
    nome: str
    cnpj: Optional[str] = None

    @property
    def display(self) -> str:
        name = (self.nome or "").strip() or "-"
        return f"{name} (CNPJ: {self.cnpj})" if self.cnpj else name


@dataclass(frozen=True)
class BuilderReportOptions:
    """Introduction metadata and display toggles of a builder report."""
    name: Optional[str] = None
    institutions: List[Institution] = field(default_factory=list)
    evaluator_qualification: str = ""
    include_recommendations: bool = True
    show_methodology: bool = True

    @classmethod
    def from_metadata(cls, name: Optional[str], metadata: Optional[Dict[str, Any]]) -> "BuilderReportOptions":
        """
        Build options from the request body.

        metadata keys: instituicoes (list of {nome, cnpj}), qualificacaoAvaliador,
        incluirRecomendacoes ("INCLUIR" by default), mostrarMetodologia
        ("MOSTRAR" by default).
        """
        metadata = metadata or {}
        raw_institutions = metadata.get("instituicoes")
        institutions = []
        if isinstance(raw_institutions, list):
            for item in raw_institutions:
                if isinstance(item, dict):
                    institutions.append(Institution(
                        nome=str(item.get("nome") or ""),
                        cnpj=item.get("cnpj") or None,
                    ))
        return cls(
            name=(name or "").strip() or None,
            institutions=institutions,
            evaluator_qualification=str(metadata.get("qualificacaoAvaliador") or "").strip(),
            include_recommendations=str(metadata.get("incluirRecomendacoes") or "INCLUIR").upper() == "INCLUIR",
            show_methodology=str(metadata.get("mostrarMetodologia") or "MOSTRAR").upper() == "MOSTRAR",
        )

    @property
    def institutions_inline(self) -> str:
        if not self.institutions:
            return "-"
        return ", ".join(inst.display for inst in self.institutions)
