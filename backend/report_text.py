"""
Fixed document copy shared by the PDF and DOCX renderers.

Keeping the wording in one place is what lets the two formats carry the
same information.
"""

from datetime import datetime
from typing import List, Sequence, Tuple

from dataset import BuilderReportOptions, BuilderSection, ReportKind, UserRecord

USER_REPORT_TITLE = "Relatório de Conformidade PLD"
BUILDER_REPORT_TITLE = "Relatório PLD"

PROGRESS_HEADING = "Resumo de Progresso"
TOPICS_HEADING = "Detalhamento por Tópico"

NO_DEFICIENCIES = "Nenhuma deficiência identificada."

# (label, description, fill colour)
CRITICALITY_CRITERIA: List[Tuple[str, str, str]] = [
    ("ALTA",
     "Quando a deficiência comprometer de maneira significativa a efetividade do "
     "controle de PLD/FTP associado.",
     "#FEE2E2"),
    ("MÉDIA",
     "Quando a deficiência corresponder a inobservância de boa prática de PLD/FTP ou "
     "quando a deficiência comprometer parcialmente a efetividade do controle de "
     "PLD/FTP associado.",
     "#FEF9C3"),
    ("BAIXA",
     "Quando a deficiência não compromete a efetividade do controle de PLD/FTP associado.",
     "#DCFCE7"),
]

EFFECTIVENESS_CRITERIA: List[Tuple[str, str, str]] = [
    ("EFETIVO",
     "Quando o programa de PLD/FTP atingir a maioria dos resultados esperados, sem a "
     "identificação de deficiências de alta criticidade nos procedimentos de "
     "monitoramento, seleção, análise e comunicação de operações atípicas, nos "
     "procedimentos de verificação de sanções CSNU, e nos procedimentos conheça seu cliente.",
     "#DCFCE7"),
    ("PARCIALMENTE EFETIVO",
     "Quando o programa de PLD/FTP atingir a maioria dos resultados esperados, com a "
     "identificação de algumas deficiências de alta criticidade nos procedimentos conheça "
     "seu cliente ou nos procedimentos de monitoramento, seleção, análise e comunicação de "
     "operações atípicas.",
     "#FEF9C3"),
    ("POUCO EFETIVO",
     "Quando o programa de PLD/FTP não atingir a maioria dos resultados esperados, com a "
     "identificação de deficiências de alta criticidade nos procedimentos de "
     "monitoramento, seleção, análise e comunicação de operações atípicas, nos "
     "procedimentos de verificação de sanções CSNU, e nos procedimentos conheça seu cliente.",
     "#FEE2E2"),
]

CRITICALITY_TABLE_TITLE = "GRAU DE CRITICIDADE"
EFFECTIVENESS_TABLE_TITLE = "CRITÉRIOS DE AVALIAÇÃO DE EFETIVIDADE"

CONCLUSION_INTRO = (
    "A tabela abaixo mostra a relação de deficiências e respectiva criticidade "
    "identificadas como resultado da avaliação dos diversos itens do Programa de "
    "PLD/FTP da Instituição."
)
ANNEX_INTRO = (
    "A tabela abaixo apresenta os itens avaliados e todos os arquivos enviados "
    "(norma e demais anexos) relacionados às questões."
)
METHODOLOGY_INTRO = "A metodologia de avaliação consistiu na:"
METHODOLOGY_ITEMS = [
    "verificação da existência, formalização, conteúdo, atualização e, quando for o caso, "
    "a divulgação dos documentos exigidos expressamente na Circular BCB nº 3.978/20;",
    "aplicação de testes sobre os procedimentos de PLD/FTP, incluindo requisição de "
    "informações, análise de respostas e de amostras;",
    "classificação das deficiências identificadas segundo os critérios de criticidade abaixo.",
]
SECTIONS_INTRO = "Os itens avaliados do programa de PLD/FTP da Instituição foram:"
EXECUTION_REFERENCE = (
    "A descrição detalhada da avaliação de cada item, incluindo os testes realizados, "
    "consta no item EXECUÇÃO."
)
EVALUATOR_FALLBACK = "-"

EXECUTION_PREFIX = "4"


def format_timestamp_br(moment: datetime) -> str:
    return moment.strftime("%d/%m/%Y %H:%M:%S")


def report_kind_label(kind: ReportKind) -> str:
    return "Final" if kind == ReportKind.FULL else "Parcial"


def user_report_header(user: UserRecord, kind: ReportKind, generated_at: datetime) -> List[str]:
    """Centered lines under the user report title."""
    return [
        f"Usuário: {user.name} <{user.email}>",
        f"Data: {format_timestamp_br(generated_at)}",
        f"Tipo de relatório: {report_kind_label(kind)}",
    ]


def builder_report_header(user: UserRecord, generated_at: datetime) -> List[str]:
    return [
        f"Gerado por: {user.name} <{user.email}>",
        f"Data: {format_timestamp_br(generated_at)}",
    ]


def topic_heading(name: str) -> str:
    return f"Tópico: {name}" if name else "Tópico"


def topic_details(topic) -> List[str]:
    """Optional description lines printed under a topic heading."""
    lines = []
    if topic.description:
        lines.append(f"Descrição: {topic.description}")
    if topic.internal_norm:
        lines.append(f"Identificação: {topic.internal_norm}")
    if topic.norm_original_name:
        lines.append(f"Arquivo da norma: {topic.norm_original_name}")
    return lines


def builder_introduction(options: BuilderReportOptions, generated_at: datetime) -> List[str]:
    """Paragraphs of section "1- Introdução"."""
    return [
        "Conforme artigo 62 da Circular BCB nº 3.978, de 23 de janeiro de 2020, as "
        "instituições autorizadas a funcionar pelo Banco Central do Brasil devem avaliar "
        "anualmente a efetividade da política, dos procedimentos e dos controles internos "
        "por elas implementados para a prevenção à lavagem de dinheiro e ao financiamento "
        "do terrorismo.",
        "Este relatório contém o resultado da avaliação dos diversos itens do programa de "
        f"PLD/FTP das instituições {options.institutions_inline}.",
        "Para fins de elaboração deste relatório, Instituição será doravante adotado para "
        "designar ambas as instituições.",
        "Em atendimento ao disposto no § 1º do artigo 62 da Circular BCB nº 3.978/20, este "
        "relatório descreve a metodologia empregada nessa avaliação, os testes aplicados, a "
        "qualificação do avaliador, os itens avaliados e o resultado dessa avaliação "
        "(deficiências identificadas).",
        f"A avaliação considerou o programa de PLD/FTP vigente em {generated_at.strftime('%d/%m/%Y')}.",
    ]


def deficiency_lines(position: int, deficiency, include_recommendation: bool) -> Tuple[str, List[str]]:
    """Bold headline and detail lines of one finding."""
    headline = f"{position}. Deficiência: {deficiency.deficiency}"
    details = [f"Criticidade: {deficiency.criticality}"]
    if include_recommendation and deficiency.recommendation:
        details.append(f"Recomendação: {deficiency.recommendation}")
    return headline, details


def section_label_lines(sections: Sequence[BuilderSection]) -> List[str]:
    """Numbered labels of the evaluated items; empty when there are none."""
    return [f"{position}. {section.label}" for position, section in enumerate(sections, 1)]
