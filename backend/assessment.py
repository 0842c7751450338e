"""
Builder-mode assessment summaries.

A deficiency is a question answered "Não" whose criticality is one of
ALTA/MEDIA/BAIXA. From those the builder report derives the findings list
per section ("Apontamentos"), the conclusion table of counts by
criticality, and the overall effectiveness verdict of the PLD/FTP program.
"""

import unicodedata
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from attachments import dedupe
from dataset import BuilderSection
from links import build_link

CRITICALITIES = ("BAIXA", "MEDIA", "ALTA")

EFETIVO = "EFETIVO"
PARCIALMENTE_EFETIVO = "PARCIALMENTE EFETIVO"
POUCO_EFETIVO = "POUCO EFETIVO"

# Keywords locating a high-criticality deficiency in each key procedure
MSAC_KEYWORDS = [
    "msac", "monitoramento", "seleção", "análise", "comunicação",
    "operações atípicas", "operações suspeitas",
]
CSNU_KEYWORDS = [
    "csnu", "sanções", "lei 13.810", "resolução bcb 44", "instrução normativa bcb 262",
]
CSC_KEYWORDS = ["conheça seu cliente", "csc", "kyc", "know your customer"]

VERDICT_DESCRIPTIONS = {
    EFETIVO: (
        "O programa de PLD/FTP atingiu a maioria dos resultados esperados, sem a "
        "identificação de deficiências de alta criticidade nos procedimentos de "
        "monitoramento, seleção, análise e comunicação de operações atípicas (MSAC), "
        "nos procedimentos de verificação de sanções CSNU, e nos procedimentos "
        "conheça seu cliente (CSC)."
    ),
    PARCIALMENTE_EFETIVO: (
        "O programa de PLD/FTP atingiu a maioria dos resultados esperados, porém foram "
        "identificadas deficiências de alta criticidade em alguns dos procedimentos "
        "avaliados (MSAC, CSNU ou CSC)."
    ),
    POUCO_EFETIVO: (
        "O programa de PLD/FTP não atingiu a maioria dos resultados esperados, com a "
        "identificação de deficiências de alta criticidade nos procedimentos de "
        "monitoramento, seleção, análise e comunicação de operações atípicas (MSAC), "
        "nos procedimentos de verificação de sanções CSNU, e nos procedimentos "
        "conheça seu cliente (CSC)."
    ),
}


@dataclass
class Deficiency:
    """One finding listed under a section's "Apontamentos"."""
    section_label: str
    question_title: str
    deficiency: str
    criticality: str
    recommendation: Optional[str] = None


@dataclass
class ConclusionRow:
    """Negative answers of one section, counted by criticality."""
    label: str
    baixa: int = 0
    media: int = 0
    alta: int = 0

    @property
    def total(self) -> int:
        return self.baixa + self.media + self.alta


@dataclass
class EffectivenessResult:
    """Overall verdict and which key procedures carry high-criticality findings."""
    verdict: str
    description: str
    msac_high: bool = False
    csnu_high: bool = False
    csc_high: bool = False


@dataclass
class AnnexFile:
    name: str
    url: str


@dataclass
class AnnexRow:
    """One row of the evidence annex: an evaluated item and all its files."""
    item_label: str
    files: List[AnnexFile] = field(default_factory=list)


def strip_accents(text: str) -> str:
    """Lowercase and remove combining marks ("Não" -> "nao")."""
    decomposed = unicodedata.normalize("NFD", (text or "").lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def is_negative_response(value: object) -> bool:
    """True for "Não", "nao", "N" and the like."""
    normalized = strip_accents(str(value or "").strip())
    return normalized in ("nao", "n")


def normalize_criticality(value: object) -> Optional[str]:
    """Map stored criticality spellings onto BAIXA/MEDIA/ALTA."""
    normalized = strip_accents(str(value or "").strip()).upper()
    return normalized if normalized in CRITICALITIES else None


def collect_deficiencies(sections: Sequence[BuilderSection]) -> List[Deficiency]:
    """Findings of applicable questions across all sections, in section and question order."""
    items = []
    for section in sections:
        for question in section.questions:
            if not question.applicable or not is_negative_response(question.resposta):
                continue
            criticality = normalize_criticality(question.criticidade)
            if criticality is None:
                continue
            items.append(Deficiency(
                section_label=section.label,
                question_title=(question.text or "").strip() or "-",
                deficiency=question.deficiencia_texto or "-",
                criticality=criticality,
                recommendation=question.recomendacao_texto or None,
            ))
    return items


def deficiencies_by_section(deficiencies: Sequence[Deficiency]) -> Dict[str, List[Deficiency]]:
    grouped: Dict[str, List[Deficiency]] = {}
    for item in deficiencies:
        grouped.setdefault(item.section_label, []).append(item)
    return grouped


def build_conclusion_rows(sections: Sequence[BuilderSection]) -> List[ConclusionRow]:
    """
    Per-section counts of negative answers by criticality plus a TOTAL row.

    Non-applicable questions are not counted.
    """
    rows = []
    for section in sections:
        row = ConclusionRow(label=section.label)
        for question in section.questions:
            if not question.applicable or not is_negative_response(question.resposta):
                continue
            criticality = normalize_criticality(question.criticidade)
            if criticality == "BAIXA":
                row.baixa += 1
            elif criticality == "MEDIA":
                row.media += 1
            elif criticality == "ALTA":
                row.alta += 1
        rows.append(row)

    total = ConclusionRow(label="TOTAL")
    for row in rows:
        total.baixa += row.baixa
        total.media += row.media
        total.alta += row.alta
    rows.append(total)
    return rows


def _contains_keyword(text: str, keywords: Sequence[str]) -> bool:
    normalized = strip_accents(text)
    return any(strip_accents(keyword) in normalized for keyword in keywords)


def evaluate_effectiveness(sections: Sequence[BuilderSection]) -> EffectivenessResult:
    """
    Effectiveness verdict from high-criticality findings in MSAC, CSNU and CSC.

    0 or 1 affected procedure -> EFETIVO, 2 -> PARCIALMENTE EFETIVO,
    3 -> POUCO EFETIVO.
    """
    msac = csnu = csc = False
    for section in sections:
        section_context = f"{section.custom_label or section.item or ''} {section.description or ''}"
        for question in section.questions:
            if not question.applicable or not is_negative_response(question.resposta):
                continue
            if normalize_criticality(question.criticidade) != "ALTA":
                continue
            context = " ".join([
                section_context,
                question.text or "",
                question.deficiencia_texto or "",
            ])
            msac = msac or _contains_keyword(context, MSAC_KEYWORDS)
            csnu = csnu or _contains_keyword(context, CSNU_KEYWORDS)
            csc = csc or _contains_keyword(context, CSC_KEYWORDS)

    affected = sum([msac, csnu, csc])
    if affected <= 1:
        verdict = EFETIVO
    elif affected == 2:
        verdict = PARCIALMENTE_EFETIVO
    else:
        verdict = POUCO_EFETIVO

    return EffectivenessResult(
        verdict=verdict,
        description=VERDICT_DESCRIPTIONS[verdict],
        msac_high=msac,
        csnu_high=csnu,
        csc_high=csc,
    )


def build_evidence_annex_rows(
    sections: Sequence[BuilderSection],
    prefix: str,
    base_url: str,
) -> List[AnnexRow]:
    """Every file attached to a section or its questions, one row per section."""
    rows = []
    for position, section in enumerate(sections, start=1):
        records = list(section.attachments)
        for question in section.questions:
            records.extend(question.attachments)
        files = [
            AnnexFile(name=record.display_name,
                      url=build_link(record.path, base_url, record.filename))
            for record in dedupe(records)
        ]
        rows.append(AnnexRow(item_label=f"{prefix}.{position} {section.label}", files=files))
    return rows
