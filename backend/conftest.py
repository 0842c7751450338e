"""
Shared fixtures. Storage is redirected to a temporary directory before any
backend module reads its configuration.
"""

import os
import tempfile

_TEST_ROOT = tempfile.mkdtemp(prefix="pld-reports-")
os.environ["DATABASE_PATH"] = os.path.join(_TEST_ROOT, "test.db")
os.environ.pop("DATABASE_URL", None)
os.environ["UPLOAD_FOLDER"] = os.path.join(_TEST_ROOT, "uploads")
os.environ["REPORTS_FOLDER"] = os.path.join(_TEST_ROOT, "uploads", "reports")
os.environ["PUBLIC_BASE_URL"] = "https://pld.example.com/api"

import pytest  # noqa: E402

from dataset import (  # noqa: E402
    AnswerRecord,
    AttachmentRecord,
    BuilderQuestion,
    BuilderSection,
    ComplianceDataset,
    QuestionRecord,
    TopicGroup,
    UserRecord,
)

BASE_URL = "https://pld.example.com"


@pytest.fixture
def base_url():
    return BASE_URL


@pytest.fixture
def user():
    return UserRecord(id="u1", name="Maria Souza", email="maria@example.com")


def make_attachment(name="politica.pdf", category="NORMA", folder="uploads/forms/q1",
                    reference_text=None):
    return AttachmentRecord(
        category=category,
        path=f"{folder}/{name}",
        original_name=name,
        filename=name,
        mime_type="application/pdf",
        size=1024,
        reference_text=reference_text,
    )


def make_question(qid="q1", title="Existe política de PLD/FTP aprovada?", applicable=True,
                  answered=True, response=True, justification="Política aprovada em 2025.",
                  deficiency=None, recommendation=None, evidences=None, attachments=None,
                  description=None, criticality="ALTA"):
    answer = None
    if answered:
        answer = AnswerRecord(
            response=response,
            justification=justification,
            deficiency=deficiency,
            recommendation=recommendation,
            evidences=list(evidences or []),
        )
    return QuestionRecord(
        id=qid,
        title=title,
        description=description,
        is_applicable=applicable,
        criticality=criticality,
        answer=answer,
        attachments=list(attachments or []),
    )


@pytest.fixture
def sample_dataset():
    governance = TopicGroup(
        id="t1",
        name="Governança",
        description="Estrutura de governança de PLD/FTP",
        internal_norm="POL-PLD-001",
        questions=[
            make_question("q1", evidences=[make_attachment("ata.pdf", "GENERAL")]),
            make_question("q2", title="O diretor responsável foi designado?", response=False,
                          justification="Não houve designação formal.",
                          deficiency="Ausência de designação do diretor.",
                          recommendation="Formalizar a designação."),
            make_question("q3", title="Pergunta não aplicável", applicable=False),
        ],
    )
    kyc = TopicGroup(
        id="t2",
        name="Conheça seu Cliente",
        questions=[
            make_question("q4", title="Há cadastro atualizado dos clientes?"),
            make_question("q5", title="Pergunta sem resposta", answered=False),
        ],
    )
    return ComplianceDataset(topics=[governance, kyc])


@pytest.fixture
def builder_sections():
    section = BuilderSection(
        id="s1",
        item="Política de PLD/FTP",
        custom_label="Política institucional",
        description="Avaliação da política de PLD/FTP",
        attachments=[make_attachment("politica.pdf", "NORMA", "uploads/pld/s1")],
        questions=[
            BuilderQuestion(
                id="b1",
                text="A política foi aprovada pela diretoria?",
                capitulacao="Art. 2º",
                criticidade="ALTA",
                resposta="Não",
                deficiencia_texto="Política não aprovada no monitoramento de operações atípicas.",
                recomendacao_texto="Submeter a política à aprovação.",
                test_status="SIM",
                test_description="Análise da ata de aprovação.",
                requisicao_ref="REQ-01",
                amostra_ref="AM-07",
                action_data_apontamento="2026-03-15T00:00:00Z",
                attachments=[
                    make_attachment("req.pdf", "TEST_REQUISICAO", "uploads/pld/b1"),
                    make_attachment("amostra.xlsx", "TESTE_AMOSTRA", "uploads/pld/b1"),
                    make_attachment("modelo.docx", "TEMPLATE", "uploads/pld/b1"),
                ],
            ),
            BuilderQuestion(
                id="b2",
                text="A política é revisada anualmente?",
                criticidade="BAIXA",
                resposta="Sim",
            ),
            BuilderQuestion(id="b3", text="Item não aplicável", applicable=False, resposta="Não",
                            criticidade="MEDIA"),
        ],
    )
    sanctions = BuilderSection(
        id="s2",
        item="Sanções CSNU",
        questions=[
            BuilderQuestion(
                id="b4",
                text="As sanções do CSNU são verificadas?",
                criticidade="MEDIA",
                resposta="nao",
                deficiencia_texto="Verificação manual e esporádica.",
            ),
        ],
    )
    return [section, sanctions]


@pytest.fixture
def clean_db():
    """Fresh tables for each database-backed test."""
    import database as db
    db.drop_db()
    db.init_db()
    yield db
    db.Session.remove()
