"""
SQLAlchemy models for the PLD report compositor.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def _uuid():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


class User(Base):
    """
    Owner of topics, answers and generated reports.
    """
    __tablename__ = 'users'

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    topics = relationship("Topic", back_populates="user", cascade="all, delete-orphan")
    answers = relationship("Answer", back_populates="user", cascade="all, delete-orphan")
    reports = relationship("Report", back_populates="user", cascade="all, delete-orphan")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "createdAt": _iso(self.created_at),
        }


class Topic(Base):
    """
    A group of questions in the legacy topic/question form.
    """
    __tablename__ = 'topics'

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    internal_norm = Column(String(255), nullable=True)  # e.g., "POL-PLD-001"
    norm_original_name = Column(String(255), nullable=True)
    order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)

    user = relationship("User", back_populates="topics")
    questions = relationship("Question", back_populates="topic",
                             cascade="all, delete-orphan", order_by="Question.order")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "description": self.description,
            "internalNorm": self.internal_norm,
            "normOriginalName": self.norm_original_name,
            "order": self.order,
            "isActive": self.is_active,
        }


class Question(Base):
    """
    A question of a topic. Answers are stored per user.
    """
    __tablename__ = 'questions'

    id = Column(String(36), primary_key=True, default=_uuid)
    topic_id = Column(String(36), ForeignKey('topics.id'), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    is_applicable = Column(Boolean, default=True)
    criticality = Column(String(20), default='MEDIA')  # BAIXA, MEDIA, ALTA
    order = Column(Integer, default=0)

    topic = relationship("Topic", back_populates="questions")
    answers = relationship("Answer", back_populates="question", cascade="all, delete-orphan")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "topicId": self.topic_id,
            "title": self.title,
            "description": self.description,
            "isApplicable": self.is_applicable,
            "criticality": self.criticality,
            "order": self.order,
        }


class Answer(Base):
    """
    One user's answer to a question.
    """
    __tablename__ = 'answers'

    id = Column(String(36), primary_key=True, default=_uuid)
    question_id = Column(String(36), ForeignKey('questions.id'), nullable=False)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    response = Column(Boolean, nullable=False)
    justification = Column(Text, nullable=True)
    deficiency = Column(Text, nullable=True)
    recommendation = Column(Text, nullable=True)
    test_status = Column(String(20), nullable=True)  # SIM, NAO, NAO_PLANO
    test_description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    question = relationship("Question", back_populates="answers")
    user = relationship("User", back_populates="answers")
    evidences = relationship("Evidence", back_populates="answer",
                             cascade="all, delete-orphan", order_by="Evidence.uploaded_at")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "questionId": self.question_id,
            "userId": self.user_id,
            "response": self.response,
            "justification": self.justification,
            "deficiency": self.deficiency,
            "recommendation": self.recommendation,
            "testStatus": self.test_status,
            "testDescription": self.test_description,
            "evidences": [e.to_dict() for e in self.evidences],
        }


class Evidence(Base):
    """
    A file uploaded as evidence for an answer.
    """
    __tablename__ = 'evidences'

    id = Column(String(36), primary_key=True, default=_uuid)
    answer_id = Column(String(36), ForeignKey('answers.id'), nullable=False)
    category = Column(String(50), default='GENERAL')
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    path = Column(String(500), nullable=False)
    mime_type = Column(String(100), nullable=True)
    size = Column(Integer, default=0)
    reference_text = Column(Text, nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow)

    answer = relationship("Answer", back_populates="evidences")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "answerId": self.answer_id,
            "category": self.category,
            "filename": self.filename,
            "originalName": self.original_name,
            "path": self.path,
            "mimeType": self.mime_type,
            "size": self.size,
            "referenceText": self.reference_text,
        }


class PldSection(Base):
    """
    A builder-mode evaluated item ("item avaliado").
    """
    __tablename__ = 'pld_sections'

    id = Column(String(36), primary_key=True, default=_uuid)
    item = Column(String(255), nullable=False)
    custom_label = Column(String(255), nullable=True)
    norma_referencia = Column(Text, nullable=True)
    descricao = Column(Text, nullable=True)
    order = Column(Integer, default=0)
    created_by_id = Column(String(36), nullable=True)  # NULL for the shared builder form

    questions = relationship("PldQuestion", back_populates="section",
                             cascade="all, delete-orphan", order_by="PldQuestion.order")
    attachments = relationship("PldAttachment", back_populates="section",
                               cascade="all, delete-orphan", order_by="PldAttachment.created_at")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "item": self.item,
            "customLabel": self.custom_label,
            "normaReferencia": self.norma_referencia,
            "descricao": self.descricao,
            "order": self.order,
            "questions": [q.to_dict() for q in self.questions],
            "attachments": [a.to_dict() for a in self.attachments],
        }


class PldQuestion(Base):
    """
    A builder-mode question with its inline answer and action plan.
    """
    __tablename__ = 'pld_questions'

    id = Column(String(36), primary_key=True, default=_uuid)
    section_id = Column(String(36), ForeignKey('pld_sections.id'), nullable=False)
    order = Column(Integer, default=0)
    texto = Column(Text, nullable=False)
    aplicavel = Column(Boolean, default=True)
    capitulacao = Column(Text, nullable=True)
    criticidade = Column(String(20), default='MEDIA')
    resposta = Column(String(50), nullable=True)
    resposta_texto = Column(Text, nullable=True)
    deficiencia_texto = Column(Text, nullable=True)
    recomendacao_texto = Column(Text, nullable=True)
    test_status = Column(String(20), nullable=True)
    test_description = Column(Text, nullable=True)
    requisicao_ref = Column(String(300), nullable=True)
    resposta_teste_ref = Column(String(300), nullable=True)
    amostra_ref = Column(String(300), nullable=True)
    evidencias_ref = Column(String(300), nullable=True)
    action_origem = Column(Text, nullable=True)
    action_responsavel = Column(Text, nullable=True)
    action_descricao = Column(Text, nullable=True)
    action_data_apontamento = Column(DateTime, nullable=True)
    action_prazo_original = Column(DateTime, nullable=True)
    action_prazo_atual = Column(DateTime, nullable=True)
    action_comentarios = Column(Text, nullable=True)

    section = relationship("PldSection", back_populates="questions")
    attachments = relationship("PldAttachment", back_populates="question",
                               cascade="all, delete-orphan", order_by="PldAttachment.created_at")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "sectionId": self.section_id,
            "order": self.order,
            "texto": self.texto,
            "aplicavel": self.aplicavel,
            "capitulacao": self.capitulacao,
            "criticidade": self.criticidade,
            "resposta": self.resposta,
            "respostaTexto": self.resposta_texto,
            "deficienciaTexto": self.deficiencia_texto,
            "recomendacaoTexto": self.recomendacao_texto,
            "testStatus": self.test_status,
            "testDescription": self.test_description,
            "requisicaoRef": self.requisicao_ref,
            "respostaTesteRef": self.resposta_teste_ref,
            "amostraRef": self.amostra_ref,
            "evidenciasRef": self.evidencias_ref,
            "actionOrigem": self.action_origem,
            "actionResponsavel": self.action_responsavel,
            "actionDescricao": self.action_descricao,
            "actionDataApontamento": _iso(self.action_data_apontamento),
            "actionPrazoOriginal": _iso(self.action_prazo_original),
            "actionPrazoAtual": _iso(self.action_prazo_atual),
            "actionComentarios": self.action_comentarios,
            "attachments": [a.to_dict() for a in self.attachments],
        }


class PldAttachment(Base):
    """
    A file attached to a builder section or question.
    """
    __tablename__ = 'pld_attachments'

    id = Column(String(36), primary_key=True, default=_uuid)
    section_id = Column(String(36), ForeignKey('pld_sections.id'), nullable=True)
    question_id = Column(String(36), ForeignKey('pld_questions.id'), nullable=True)
    category = Column(String(50), nullable=False)  # NORMA, TEMPLATE, TEST_REQUISICAO, ...
    reference_text = Column(Text, nullable=True)
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    path = Column(String(500), nullable=False)
    mime_type = Column(String(100), nullable=True)
    size = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    section = relationship("PldSection", back_populates="attachments")
    question = relationship("PldQuestion", back_populates="attachments")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "sectionId": self.section_id,
            "questionId": self.question_id,
            "category": self.category,
            "referenceText": self.reference_text,
            "filename": self.filename,
            "originalName": self.original_name,
            "path": self.path,
            "mimeType": self.mime_type,
            "size": self.size,
        }


class Report(Base):
    """
    A generated report file.
    """
    __tablename__ = 'reports'

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    name = Column(String(255), nullable=False)
    type = Column(String(40), default='FULL')  # FULL, PARTIAL, BUILDER, BUILDER_FORM, ...
    format = Column(String(10), default='PDF')  # PDF, DOCX
    file_path = Column(String(500), nullable=True)
    content = Column(Text, nullable=True)  # JSON snapshot of BUILDER_FORM rows
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="reports")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "format": self.format,
            "filePath": self.file_path,
            "userId": self.user_id,
            "createdAt": _iso(self.created_at),
        }
