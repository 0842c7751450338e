"""
Database connection, session management and the default report collaborators.

The report generator reads through get_user(), get_form_data(),
get_builder_sections(), get_form_snapshot() and calculate_progress(), and writes through
save_report(). All of them hand back plain dataset records, never ORM rows.
"""

import json
import logging
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from config import DATABASE_URL
from dataset import (
    AnswerRecord,
    AttachmentCategory,
    AttachmentRecord,
    BuilderQuestion,
    BuilderSection,
    ComplianceDataset,
    FormSnapshot,
    ProgressSummary,
    QuestionRecord,
    ReportArtifact,
    TopicGroup,
    UserRecord,
)
from models import (
    Base,
    User,
    Topic,
    Question,
    Answer,
    PldSection,
    Report,
)

logger = logging.getLogger(__name__)

# Report rows of this type hold a builder form snapshot instead of a file
FORM_REPORT_TYPE = "BUILDER_FORM"

# Create engine
engine = create_engine(DATABASE_URL, echo=False)

# Create session factory
session_factory = sessionmaker(bind=engine)
Session = scoped_session(session_factory)


def init_db():
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(engine)
    logger.info("Database initialized at %s", DATABASE_URL)


def drop_db():
    """Drop all tables (use with caution!)."""
    Base.metadata.drop_all(engine)
    logger.info("All tables dropped")


@contextmanager
def get_session():
    """
    Context manager for database sessions.

    Usage:
        with get_session() as session:
            session.query(Report).all()
    """
    session = Session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================================
# ROW -> RECORD CONVERSION
# =============================================================================

def _attachment_record(row) -> AttachmentRecord:
    return AttachmentRecord(
        category=row.category or AttachmentCategory.GENERAL.value,
        path=row.path,
        original_name=row.original_name,
        filename=row.filename,
        mime_type=row.mime_type,
        size=row.size or 0,
        reference_text=row.reference_text,
    )


def _question_record(question: Question, answer: Optional[Answer]) -> QuestionRecord:
    answer_record = None
    if answer is not None:
        answer_record = AnswerRecord(
            response=bool(answer.response),
            justification=answer.justification,
            deficiency=answer.deficiency,
            recommendation=answer.recommendation,
            test_status=answer.test_status,
            test_description=answer.test_description,
            evidences=[_attachment_record(e) for e in answer.evidences],
        )
    return QuestionRecord(
        id=question.id,
        title=question.title,
        description=question.description,
        is_applicable=bool(question.is_applicable),
        criticality=question.criticality,
        answer=answer_record,
    )


def _builder_section(section: PldSection) -> BuilderSection:
    questions = [
        BuilderQuestion(
            id=q.id,
            text=q.texto,
            applicable=bool(q.aplicavel),
            capitulacao=q.capitulacao,
            criticidade=q.criticidade,
            resposta=q.resposta,
            resposta_texto=q.resposta_texto,
            deficiencia_texto=q.deficiencia_texto,
            recomendacao_texto=q.recomendacao_texto,
            test_status=q.test_status,
            test_description=q.test_description,
            requisicao_ref=q.requisicao_ref,
            resposta_teste_ref=q.resposta_teste_ref,
            amostra_ref=q.amostra_ref,
            evidencias_ref=q.evidencias_ref,
            action_origem=q.action_origem,
            action_responsavel=q.action_responsavel,
            action_descricao=q.action_descricao,
            action_data_apontamento=q.action_data_apontamento,
            action_prazo_original=q.action_prazo_original,
            action_prazo_atual=q.action_prazo_atual,
            action_comentarios=q.action_comentarios,
            attachments=[_attachment_record(a) for a in q.attachments],
        )
        for q in section.questions
    ]
    return BuilderSection(
        id=section.id,
        item=section.item,
        custom_label=section.custom_label,
        description=section.descricao,
        norma_reference=section.norma_referencia,
        attachments=[_attachment_record(a) for a in section.attachments],
        questions=questions,
    )


# =============================================================================
# DATASET PROVIDER
# =============================================================================

def get_user(user_id: str) -> Optional[UserRecord]:
    """
    Get a user by ID.

    Returns:
        The user record, or None if not found
    """
    with get_session() as session:
        user = session.query(User).filter(User.id == user_id).first()
        if user:
            return UserRecord(id=user.id, name=user.name, email=user.email)
        return None


def get_form_data(user_id: str, topic_ids: Optional[List[str]] = None) -> ComplianceDataset:
    """
    Active topics of a user with their questions and that user's answers.

    Args:
        user_id: The owner of the topics and answers
        topic_ids: Optional topic filter; stored order is kept either way

    Returns:
        ComplianceDataset ordered by topic order, then question order
    """
    with get_session() as session:
        query = session.query(Topic)\
            .filter(Topic.user_id == user_id, Topic.is_active.is_(True))
        if topic_ids:
            query = query.filter(Topic.id.in_(topic_ids))
        topics = query.order_by(Topic.order, Topic.name).all()

        groups = []
        for topic in topics:
            questions = []
            for question in topic.questions:
                answer = next((a for a in question.answers if a.user_id == user_id), None)
                questions.append(_question_record(question, answer))
            groups.append(TopicGroup(
                id=topic.id,
                name=topic.name,
                description=topic.description,
                internal_norm=topic.internal_norm,
                norm_original_name=topic.norm_original_name,
                questions=questions,
            ))
        return ComplianceDataset(topics=groups)


def get_builder_sections() -> List[BuilderSection]:
    """Sections of the shared builder form (no owner), in stored order."""
    with get_session() as session:
        sections = session.query(PldSection)\
            .filter(PldSection.created_by_id.is_(None))\
            .order_by(PldSection.order)\
            .all()
        return [_builder_section(section) for section in sections]


def get_form_snapshot(form_id: str) -> Optional[FormSnapshot]:
    """
    Get a stored builder form snapshot by ID.

    Returns:
        The snapshot, or None if no BUILDER_FORM row has this ID. Content that
        is not valid JSON comes back as a snapshot without payload.
    """
    with get_session() as session:
        row = session.query(Report)\
            .filter(Report.id == form_id, Report.type == FORM_REPORT_TYPE)\
            .first()
        if row is None:
            return None
        payload = None
        if row.content:
            try:
                payload = json.loads(row.content)
            except ValueError:
                logger.warning("Form %s has unreadable content", form_id)
        return FormSnapshot(id=row.id, name=row.name, payload=payload)


# =============================================================================
# PROGRESS CALCULATOR
# =============================================================================

def calculate_progress(user_id: str, topic_ids: Optional[List[str]] = None) -> ProgressSummary:
    """Applicable/answered counts over the user's (optionally filtered) topics."""
    return ProgressSummary.from_topics(get_form_data(user_id, topic_ids).topics)


# =============================================================================
# PERSISTENCE STORE
# =============================================================================

def save_report(artifact: ReportArtifact) -> dict:
    """
    Persist a generated report.

    Args:
        artifact: Metadata of a file that has already been written and synced

    Returns:
        Dictionary representation of the stored report
    """
    with get_session() as session:
        report = Report(
            user_id=artifact.user_id,
            name=artifact.name,
            type=artifact.kind.value,
            format=artifact.format.value,
            file_path=artifact.file_path,
            created_at=artifact.created_at,
        )
        session.add(report)
        session.flush()
        return report.to_dict()


def get_report(report_id: str) -> Optional[dict]:
    """
    Get a report by ID.

    Returns:
        Dictionary representation of the report, or None if not found
    """
    with get_session() as session:
        report = session.query(Report).filter(Report.id == report_id).first()
        if report:
            return report.to_dict()
        return None


def get_reports_for_user(user_id: str) -> List[dict]:
    """Reports of a user, newest first."""
    with get_session() as session:
        reports = session.query(Report)\
            .filter(Report.user_id == user_id, Report.type != FORM_REPORT_TYPE)\
            .order_by(Report.created_at.desc())\
            .all()
        return [r.to_dict() for r in reports]
